"""initial_schema

Adds:
  - boards, board_members, lists
  - cards, card_members, checklist_items
  - tasks, subtasks
  - activities

boards, lists and cards carry a ``version`` column used for optimistic
concurrency checks.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "boards",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("template_id", sa.String(length=64), nullable=True),
        sa.Column("total_lists", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cards", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "board_members",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "board_id",
            sa.String(length=64),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="editor"),
        sa.Column("added_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("board_id", "user_id", name="uq_board_member"),
    )
    op.create_index("idx_board_members_user", "board_members", ["user_id"])

    op.create_table(
        "lists",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "board_id",
            sa.String(length=64),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("list_type", sa.String(length=16), nullable=False, server_default="custom"),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("card_limit", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("idx_lists_board", "lists", ["board_id"])
    op.create_index("idx_lists_board_archived", "lists", ["board_id", "is_archived"])

    op.create_table(
        "cards",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "board_id",
            sa.String(length=64),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("list_id", sa.String(length=64), sa.ForeignKey("lists.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="planning"),
        sa.Column("priority", sa.String(length=8), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.BigInteger(), nullable=True),
        sa.Column("current_stage_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
    )
    op.create_index("idx_cards_list_position", "cards", ["list_id", "position"])
    op.create_index("idx_cards_board", "cards", ["board_id"])

    op.create_table(
        "card_members",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "card_id",
            sa.String(length=64),
            sa.ForeignKey("cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=24), nullable=False, server_default="contributor"),
        sa.Column("added_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("card_id", "user_id", name="uq_card_member"),
    )
    op.create_index("idx_card_members_user", "card_members", ["user_id"])

    op.create_table(
        "checklist_items",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "card_id",
            sa.String(length=64),
            sa.ForeignKey("cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
    )
    op.create_index("idx_checklist_card", "checklist_items", ["card_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "card_id",
            sa.String(length=64),
            sa.ForeignKey("cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=8), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.BigInteger(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("assigned_to", sa.JSON(), nullable=False),
        sa.Column("depends_on", sa.String(length=64), nullable=True),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_reason", sa.String(length=256), nullable=False, server_default=""),
        sa.Column("unlocked_at", sa.BigInteger(), nullable=True),
        sa.Column(
            "auto_assign_on_unlock", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("assign_to_on_unlock", sa.JSON(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
    )
    op.create_index("idx_tasks_card", "tasks", ["card_id"])
    op.create_index("idx_tasks_depends_on", "tasks", ["depends_on"])

    op.create_table(
        "subtasks",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(length=64),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.String(length=150), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("idx_subtasks_task", "subtasks", ["task_id"])

    op.create_table(
        "activities",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=True),
        sa.Column("board_id", sa.String(length=64), nullable=True),
        sa.Column("list_id", sa.String(length=64), nullable=True),
        sa.Column("card_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("idx_activities_board_created", "activities", ["board_id", "created_at"])
    op.create_index("idx_activities_card", "activities", ["card_id"])


def downgrade() -> None:
    op.drop_table("activities")
    op.drop_table("subtasks")
    op.drop_table("tasks")
    op.drop_table("checklist_items")
    op.drop_table("card_members")
    op.drop_table("cards")
    op.drop_table("lists")
    op.drop_table("board_members")
    op.drop_table("boards")
