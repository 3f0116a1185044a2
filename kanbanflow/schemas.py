"""Request models and response serializers shared by routers and services."""
from typing import Literal, Optional

from pydantic import BaseModel, Field

from kanbanflow.models import (
    Activity,
    Board,
    BoardList,
    BoardMember,
    Card,
    CardMember,
    ChecklistItem,
    Subtask,
    Task,
)

BoardRoleName = Literal["owner", "admin", "editor", "viewer"]
CardRoleName = Literal["viewer", "commenter", "contributor", "lead", "project-manager"]
ListTypeName = Literal["todo", "in_progress", "review", "done", "custom"]


# ══════════════════════════════════════════════════════════════════════════
# PYDANTIC MODELS
# ══════════════════════════════════════════════════════════════════════════


class CreateBoardRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    projectId: Optional[str] = None
    templateId: str = "default"


class BoardMemberRequest(BaseModel):
    userId: str = Field(min_length=1)
    role: BoardRoleName = "editor"


class CreateListRequest(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    listType: ListTypeName = "custom"
    cardLimit: Optional[int] = Field(default=None, ge=1)
    position: Optional[int] = None


class UpdateListRequest(BaseModel):
    title: Optional[str] = None
    listType: Optional[ListTypeName] = None
    cardLimit: Optional[int] = Field(default=None, ge=1)
    isArchived: Optional[bool] = None


class MoveRequest(BaseModel):
    position: int


class CreateCardRequest(BaseModel):
    listId: str
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    dueDate: Optional[int] = None
    position: Optional[int] = None


class MoveCardRequest(BaseModel):
    listId: str
    position: Optional[int] = None


class CardMemberRequest(BaseModel):
    userId: str = Field(min_length=1)
    role: CardRoleName = "contributor"


class ChecklistItemRequest(BaseModel):
    text: str = Field(min_length=1, max_length=500)
    position: Optional[int] = None


class UpdateChecklistItemRequest(BaseModel):
    text: Optional[str] = None
    completed: Optional[bool] = None
    position: Optional[int] = None


class CreateTaskRequest(BaseModel):
    title: str
    description: str = ""
    priority: Literal["low", "medium", "high"] = "medium"
    dueDate: Optional[int] = None
    assignedTo: list[str] = []
    dependsOn: Optional[str] = None
    autoAssignOnUnlock: bool = False
    assignToOnUnlock: list[str] = []
    position: Optional[int] = None


_TASK_FIELD_MAP = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "dueDate": "due_date",
    "assignedTo": "assigned_to",
    "dependsOn": "depends_on",
    "autoAssignOnUnlock": "auto_assign_on_unlock",
    "assignToOnUnlock": "assign_to_on_unlock",
    "completed": "completed",
}


class UpdateTaskRequest(BaseModel):
    """Only fields present in the body are applied; ``dependsOn: null`` clears."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Literal["low", "medium", "high"]] = None
    dueDate: Optional[int] = None
    assignedTo: Optional[list[str]] = None
    dependsOn: Optional[str] = None
    autoAssignOnUnlock: Optional[bool] = None
    assignToOnUnlock: Optional[list[str]] = None
    completed: Optional[bool] = None

    def to_changes(self) -> dict:
        """Field deltas keyed by model attribute name."""
        changes = {}
        for name, value in self.model_dump(exclude_unset=True).items():
            # Only dependsOn and dueDate may be cleared with an explicit null
            if value is None and name not in ("dependsOn", "dueDate"):
                continue
            changes[_TASK_FIELD_MAP[name]] = value
        return changes


class SubtaskRequest(BaseModel):
    text: str = Field(min_length=1, max_length=150)
    position: Optional[int] = None


class UpdateSubtaskRequest(BaseModel):
    text: Optional[str] = None
    completed: Optional[bool] = None
    position: Optional[int] = None


# ══════════════════════════════════════════════════════════════════════════
# SERIALIZERS
# ══════════════════════════════════════════════════════════════════════════


def serialize_board_member(member: BoardMember) -> dict:
    return {"user_id": member.user_id, "role": member.role, "added_at": member.added_at}


def serialize_list(lst: BoardList) -> dict:
    return {
        "id": lst.id,
        "board_id": lst.board_id,
        "title": lst.title,
        "position": lst.position,
        "list_type": lst.list_type,
        "is_archived": lst.is_archived,
        "card_limit": lst.card_limit,
        "version": lst.version,
        "created_at": lst.created_at,
        "updated_at": lst.updated_at,
    }


def serialize_board(board: Board) -> dict:
    return {
        "id": board.id,
        "name": board.name,
        "description": board.description,
        "project_id": board.project_id,
        "created_by": board.created_by,
        "template_id": board.template_id,
        "members": [serialize_board_member(m) for m in board.members],
        "lists": [serialize_list(lst) for lst in sorted(board.lists, key=lambda lst: lst.position)],
        "metadata": {"total_lists": board.total_lists, "total_cards": board.total_cards},
        "version": board.version,
        "created_at": board.created_at,
        "updated_at": board.updated_at,
    }


def serialize_subtask(subtask: Subtask) -> dict:
    return {
        "id": subtask.id,
        "text": subtask.text,
        "completed": subtask.completed,
        "completed_by": subtask.completed_by,
        "completed_at": subtask.completed_at,
        "position": subtask.position,
    }


def serialize_task(task: Task) -> dict:
    """Serialize a Task model to dict."""
    return {
        "id": task.id,
        "card_id": task.card_id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "due_date": task.due_date,
        "position": task.position,
        "assigned_to": list(task.assigned_to or []),
        "depends_on": task.depends_on,
        "is_locked": task.is_locked,
        "locked_reason": task.locked_reason,
        "unlocked_at": task.unlocked_at,
        "auto_assign_on_unlock": task.auto_assign_on_unlock,
        "assign_to_on_unlock": list(task.assign_to_on_unlock or []),
        "completed": task.completed,
        "completed_by": task.completed_by,
        "completed_at": task.completed_at,
        "created_by": task.created_by,
        "subtasks": [
            serialize_subtask(s) for s in sorted(task.subtasks, key=lambda s: s.position)
        ],
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


def serialize_checklist_item(item: ChecklistItem) -> dict:
    return {
        "id": item.id,
        "text": item.text,
        "completed": item.completed,
        "completed_by": item.completed_by,
        "completed_at": item.completed_at,
        "position": item.position,
    }


def serialize_card_member(member: CardMember) -> dict:
    return {"user_id": member.user_id, "role": member.role, "added_at": member.added_at}


def serialize_card_summary(card: Card) -> dict:
    """Card columns only; safe for cards loaded without their contents."""
    return {
        "id": card.id,
        "board_id": card.board_id,
        "list_id": card.list_id,
        "position": card.position,
        "title": card.title,
        "description": card.description,
        "status": card.status,
        "priority": card.priority,
        "due_date": card.due_date,
        "current_stage_index": card.current_stage_index,
        "is_completed": card.is_completed,
        "completed_at": card.completed_at,
        "created_by": card.created_by,
        "version": card.version,
        "created_at": card.created_at,
        "updated_at": card.updated_at,
    }


def serialize_card(card: Card) -> dict:
    data = serialize_card_summary(card)
    data["tasks"] = [serialize_task(t) for t in sorted(card.tasks, key=lambda t: t.position)]
    data["checklist"] = [
        serialize_checklist_item(i)
        for i in sorted(card.checklist_items, key=lambda i: i.position)
    ]
    data["members"] = [serialize_card_member(m) for m in card.members]
    return data


def serialize_activity(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "type": activity.type,
        "actor_id": activity.actor_id,
        "project_id": activity.project_id,
        "board_id": activity.board_id,
        "list_id": activity.list_id,
        "card_id": activity.card_id,
        "metadata": activity.activity_metadata,
        "created_at": activity.created_at,
    }
