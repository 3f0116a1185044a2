"""FastAPI dependencies for the kanbanflow API."""
from typing import Optional

import redis.asyncio as redis
from fastapi import Header, HTTPException

from kanbanflow.engine.errors import ValidationError
from kanbanflow.engine.permissions import ActorContext

# Global Redis client (initialized in main.py lifespan)
redis_client: redis.Redis | None = None


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> ActorContext:
    """
    Build the caller's ActorContext from identity headers.

    Authentication happens upstream; this only refuses requests that arrive
    without a usable identity.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing user identity")
    try:
        return ActorContext.of(x_user_id.strip(), x_user_role.strip().lower())
    except ValidationError as e:
        raise HTTPException(status_code=401, detail=e.detail)
