"""SQLAlchemy declarative base and mixins for kanbanflow models."""
from typing import Optional

from sqlalchemy import BigInteger
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class TimestampMixin:
    """Mixin for created_at/updated_at timestamps (milliseconds since epoch)."""

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class TimestampWithCompletedMixin(TimestampMixin):
    """Mixin for entities with optional completed_at."""

    completed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

