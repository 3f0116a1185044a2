"""Activity log entries written by the activity logger."""

from typing import Optional
from sqlalchemy import String, BigInteger, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from kanbanflow.models.base import Base


class Activity(Base):
    """One logged action; scope columns are plain ids so entries outlive deletes."""

    __tablename__ = "activities"
    __table_args__ = (
        Index("idx_activities_board_created", "board_id", "created_at"),
        Index("idx_activities_card", "card_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    project_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    board_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    list_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    card_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    activity_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
