"""Board and list (workflow stage) models."""

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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kanbanflow.models.base import Base, TimestampMixin


class Board(Base, TimestampMixin):
    """Board aggregate: members and the ordered set of lists."""

    __tablename__ = "boards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    project_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    template_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # Metadata counters
    total_lists: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    members: Mapped[list["BoardMember"]] = relationship(
        back_populates="board", cascade="all, delete-orphan"
    )
    lists: Mapped[list["BoardList"]] = relationship(
        back_populates="board",
        cascade="all, delete-orphan",
        order_by="BoardList.position",
    )

    __mapper_args__ = {"version_id_col": version}


class BoardMember(Base):
    """Board membership with a board-level role."""

    __tablename__ = "board_members"
    __table_args__ = (
        UniqueConstraint("board_id", "user_id", name="uq_board_member"),
        Index("idx_board_members_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, default="editor"
    )  # owner | admin | editor | viewer
    added_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    board: Mapped["Board"] = relationship(back_populates="members")


class BoardList(Base, TimestampMixin):
    """A list on a board; non-archived lists in position order are the stages."""

    __tablename__ = "lists"
    __table_args__ = (
        Index("idx_lists_board", "board_id"),
        Index("idx_lists_board_archived", "board_id", "is_archived"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    list_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default="custom"
    )  # todo | in_progress | review | done | custom
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # WIP limit; None means unlimited
    card_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    board: Mapped["Board"] = relationship(back_populates="lists")

    __mapper_args__ = {"version_id_col": version}
