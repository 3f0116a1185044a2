"""Service layer: load aggregates, authorize, apply intents, save, then notify."""
