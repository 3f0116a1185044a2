"""Card aggregate models: card, members, checklist, tasks and subtasks.

Tasks and subtasks are stored flat, keyed by id and pointing back at their
card; the card row is the aggregate root and the only optimistic-version check
for everything it owns.
"""

from typing import Optional
from sqlalchemy import (
    String,
    Text,
    Integer,
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    UniqueConstraint,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kanbanflow.models.base import Base, TimestampMixin, TimestampWithCompletedMixin


class Card(Base, TimestampWithCompletedMixin):
    """Card entity."""

    __tablename__ = "cards"
    __table_args__ = (
        Index("idx_cards_list_position", "list_id", "position"),
        Index("idx_cards_board", "board_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    list_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("lists.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="planning"
    )  # planning | open | in_progress | review | blocked | completed | on_hold
    priority: Mapped[str] = mapped_column(
        String(8), nullable=False, default="medium"
    )  # low | medium | high | urgent
    due_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    # Furthest stage reached; only ever raised
    current_stage_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    members: Mapped[list["CardMember"]] = relationship(
        back_populates="card", cascade="all, delete-orphan"
    )
    checklist_items: Mapped[list["ChecklistItem"]] = relationship(
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="ChecklistItem.position",
    )
    tasks: Mapped[list["Task"]] = relationship(
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="Task.position",
    )

    __mapper_args__ = {"version_id_col": version}


class CardMember(Base):
    """Card membership; grants card-scoped roles, including to board guests."""

    __tablename__ = "card_members"
    __table_args__ = (
        UniqueConstraint("card_id", "user_id", name="uq_card_member"),
        Index("idx_card_members_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    card_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(
        String(24), nullable=False, default="contributor"
    )  # viewer | commenter | contributor | lead | project-manager
    added_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    card: Mapped["Card"] = relationship(back_populates="members")


class ChecklistItem(Base):
    """Simple checklist entry on a card."""

    __tablename__ = "checklist_items"
    __table_args__ = (Index("idx_checklist_card", "card_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    card_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(String(500), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    card: Mapped["Card"] = relationship(back_populates="checklist_items")


class Task(Base, TimestampWithCompletedMixin):
    """Task within a card, optionally gated on a sibling task."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_card", "card_id"),
        Index("idx_tasks_depends_on", "depends_on"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    card_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(
        String(8), nullable=False, default="medium"
    )  # low | medium | high
    due_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_to: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # Sibling task id (same card); no FK so the engine owns the lifecycle
    depends_on: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_reason: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    unlocked_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    auto_assign_on_unlock: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    assign_to_on_unlock: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    card: Mapped["Card"] = relationship(back_populates="tasks")
    subtasks: Mapped[list["Subtask"]] = relationship(
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="Subtask.position",
    )


class Subtask(Base, TimestampMixin):
    """Checklist-like step inside a task. No dependency semantics."""

    __tablename__ = "subtasks"
    __table_args__ = (Index("idx_subtasks_task", "task_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(String(150), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    task: Mapped["Task"] = relationship(back_populates="subtasks")
