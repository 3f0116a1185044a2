"""API routers."""
from kanbanflow.routers import boards, cards, lists, tasks

__all__ = ["boards", "cards", "lists", "tasks"]
