"""SQLAlchemy ORM models for kanbanflow."""

from kanbanflow.models.base import (
    Base,
    TimestampMixin,
    TimestampWithCompletedMixin,
)
from kanbanflow.models.board import Board, BoardMember, BoardList
from kanbanflow.models.card import Card, CardMember, ChecklistItem, Task, Subtask
from kanbanflow.models.activity import Activity

__all__ = [
    # SQLAlchemy base
    "Base",
    "TimestampMixin",
    "TimestampWithCompletedMixin",
    # SQLAlchemy models
    "Board",
    "BoardMember",
    "BoardList",
    "Card",
    "CardMember",
    "ChecklistItem",
    "Task",
    "Subtask",
    "Activity",
]
