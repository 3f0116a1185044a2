"""Replayable mutation intents and the aggregates they apply to.

An intent holds only what the caller asked for (ids and field values). Its
``apply`` reads the current state from a freshly loaded aggregate, so the
concurrency guard can apply the same intent again after a reload.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from kanbanflow.engine import positions, unlock, workflow
from kanbanflow.engine.errors import NotFound, ValidationError
from kanbanflow.engine.permissions import (
    Action,
    ActorContext,
    BoardRole,
    CardRole,
    Scope,
)
from kanbanflow.engine.unlock import TaskChange
from kanbanflow.engine.workflow import StageProgress
from kanbanflow.models import (
    Board,
    BoardList,
    BoardMember,
    Card,
    CardMember,
    ChecklistItem,
)
from kanbanflow.utils import gen_id, now_ms

LIST_TYPES = ("todo", "in_progress", "review", "done", "custom")
CARD_PRIORITIES = ("low", "medium", "high", "urgent")


# ═══════════════════════════════════════════════════════════════════════════
# Aggregates
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class BoardAggregate:
    """A board with its members and lists, plus the cards of selected lists."""

    board: Board
    cards_by_list: dict[str, list[Card]] = field(default_factory=dict)
    # Rows the save step must add to or delete from the session
    added: list = field(default_factory=list)
    deleted: list = field(default_factory=list)

    @property
    def stages(self) -> list[BoardList]:
        return workflow.stage_sequence(self.board.lists)

    @property
    def scope(self) -> Scope:
        return Scope(board=self.board)

    def find_list(self, list_id: str) -> BoardList:
        for lst in self.board.lists:
            if lst.id == list_id:
                return lst
        raise NotFound(f"List {list_id} not found")

    def cards_in(self, list_id: str) -> list[Card]:
        return self.cards_by_list.get(list_id, [])


@dataclass
class CardAggregate(BoardAggregate):
    """A card with everything it owns, inside its board."""

    card: Optional[Card] = None

    @property
    def current_list(self) -> BoardList:
        return self.find_list(self.card.list_id)

    @property
    def scope(self) -> Scope:
        return Scope(board=self.board, list=self.current_list, card=self.card)

    def progress(self) -> StageProgress:
        """Run stage evaluation for the card."""
        stages = self.stages
        index = workflow.stage_index(self.card, stages)
        next_cards: list[Card] = []
        if index is not None and index + 1 < len(stages):
            next_cards = self.cards_in(stages[index + 1].id)
        return workflow.evaluate(
            self.card, stages, self.cards_in(self.card.list_id), next_cards
        )


@dataclass
class Outcome:
    """What an intent produced: the touched entity plus engine side results."""

    value: Any
    change: Optional[TaskChange] = None
    progress: Optional[StageProgress] = None
    # Set by the runner: the aggregate the intent was finally applied to
    aggregate: Optional[BoardAggregate] = None


def _touch(*rows: Any) -> None:
    now = now_ms()
    for row in rows:
        row.updated_at = now


def _check_card_limit(target: BoardList, cards: list[Card]) -> None:
    if target.card_limit is not None and len(cards) >= target.card_limit:
        raise ValidationError(
            f"List WIP limit ({target.card_limit}) reached", field="listId"
        )


# ═══════════════════════════════════════════════════════════════════════════
# Task intents (card aggregate)
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class CreateTask:
    title: str
    description: str = ""
    priority: str = "medium"
    due_date: Optional[int] = None
    assigned_to: list[str] = field(default_factory=list)
    depends_on: Optional[str] = None
    auto_assign_on_unlock: bool = False
    assign_to_on_unlock: list[str] = field(default_factory=list)
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        change = unlock.create_task(
            agg.card,
            actor,
            title=self.title,
            description=self.description,
            priority=self.priority,
            due_date=self.due_date,
            assigned_to=self.assigned_to,
            depends_on=self.depends_on,
            auto_assign_on_unlock=self.auto_assign_on_unlock,
            assign_to_on_unlock=self.assign_to_on_unlock,
            position=self.position,
        )
        return Outcome(value=change.task, change=change)


@dataclass
class UpdateTask:
    """Field deltas for one task; ``completed`` toggles completion."""

    task_id: str
    changes: dict = field(default_factory=dict)

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        # Copy: the engine normalises values in place and retries reuse the intent
        change = unlock.update_task(agg.card, self.task_id, actor, dict(self.changes))
        progress = agg.progress() if change.completed_now else None
        return Outcome(value=change.task, change=change, progress=progress)


@dataclass
class DeleteTask:
    task_id: str

    action = Action.DELETE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        change = unlock.delete_task(agg.card, self.task_id)
        return Outcome(value=change.task, change=change)


@dataclass
class ReorderTask:
    task_id: str
    position: int

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        return Outcome(value=unlock.reorder_task(agg.card, self.task_id, self.position))


@dataclass
class AddSubtask:
    task_id: str
    text: str
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        subtask = unlock.add_subtask(agg.card, self.task_id, self.text, self.position)
        return Outcome(value=subtask)


@dataclass
class UpdateSubtask:
    task_id: str
    subtask_id: str
    text: Optional[str] = None
    completed: Optional[bool] = None
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        subtask = unlock.update_subtask(
            agg.card,
            self.task_id,
            self.subtask_id,
            actor,
            text=self.text,
            completed=self.completed,
            position=self.position,
        )
        return Outcome(value=subtask)


@dataclass
class DeleteSubtask:
    task_id: str
    subtask_id: str

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        return Outcome(value=unlock.delete_subtask(agg.card, self.task_id, self.subtask_id))


# ═══════════════════════════════════════════════════════════════════════════
# Checklist intents (card aggregate)
# ═══════════════════════════════════════════════════════════════════════════


def _find_item(card: Card, item_id: str) -> ChecklistItem:
    for item in card.checklist_items:
        if item.id == item_id:
            return item
    raise NotFound(f"Checklist item {item_id} not found")


@dataclass
class AddChecklistItem:
    text: str
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        if not self.text or not self.text.strip():
            raise ValidationError("Checklist text is required", field="text")
        item = ChecklistItem(
            id=gen_id("chk_"), card_id=agg.card.id, text=self.text.strip(), completed=False
        )
        positions.insert(list(agg.card.checklist_items), item, self.position)
        agg.card.checklist_items.append(item)
        _touch(agg.card)
        return Outcome(value=item)


@dataclass
class UpdateChecklistItem:
    item_id: str
    text: Optional[str] = None
    completed: Optional[bool] = None
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        item = _find_item(agg.card, self.item_id)
        if self.text is not None:
            if not self.text.strip():
                raise ValidationError("Checklist text is required", field="text")
            item.text = self.text.strip()
        completed_now = False
        if self.completed is not None and self.completed != item.completed:
            item.completed = self.completed
            item.completed_at = now_ms() if self.completed else None
            item.completed_by = actor.user_id if self.completed else None
            completed_now = self.completed
        if self.position is not None:
            positions.move(list(agg.card.checklist_items), item.id, self.position)
        _touch(agg.card)
        progress = agg.progress() if completed_now else None
        return Outcome(value=item, progress=progress)


@dataclass
class DeleteChecklistItem:
    item_id: str

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        item = _find_item(agg.card, self.item_id)
        positions.remove(list(agg.card.checklist_items), item.id)
        agg.card.checklist_items.remove(item)
        _touch(agg.card)
        return Outcome(value=item)


# ═══════════════════════════════════════════════════════════════════════════
# Card placement and membership (card aggregate)
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class MoveCard:
    """Manual move: within the card's list, or into another list of the board.

    Unlike stage progression this honours the target's card limit. The stage
    index is only ever raised. A completed card moved out of the terminal
    stage is reopened.
    """

    target_list_id: str
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        card = agg.card
        source = agg.current_list
        target = agg.find_list(self.target_list_id)
        if target.is_archived:
            raise ValidationError("Cannot move a card into an archived list", field="listId")

        if target.id == source.id:
            if self.position is not None:
                agg.cards_by_list[source.id] = positions.move(
                    agg.cards_in(source.id), card.id, self.position
                )
            _touch(card, source)
            return Outcome(value=card)

        target_cards = agg.cards_in(target.id)
        _check_card_limit(target, target_cards)
        agg.cards_by_list[source.id], agg.cards_by_list[target.id] = positions.move_across(
            agg.cards_in(source.id), target_cards, card.id, self.position
        )
        card.list_id = target.id
        workflow.apply_list_status(card, target)
        index = workflow.stage_index(card, agg.stages)
        if index is not None:
            card.current_stage_index = max(card.current_stage_index, index)
        if card.is_completed and index != len(agg.stages) - 1:
            workflow.reopen(card, target)
        _touch(card, source, target)
        return Outcome(value=card)


@dataclass
class DeleteCard:
    action = Action.DELETE

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        card = agg.card
        positions.remove(agg.cards_in(card.list_id), card.id)
        agg.board.total_cards = max(0, agg.board.total_cards - 1)
        agg.deleted.append(card)
        _touch(agg.board, agg.current_list)
        return Outcome(value=card)


@dataclass
class AddCardMember:
    user_id: str
    role: str = CardRole.CONTRIBUTOR.value

    action = Action.MANAGE_MEMBERS

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        role = _card_role(self.role)
        for member in agg.card.members:
            if member.user_id == self.user_id:
                member.role = role.value
                _touch(agg.card)
                return Outcome(value=member)
        member = CardMember(
            id=gen_id("cm_"),
            card_id=agg.card.id,
            user_id=self.user_id,
            role=role.value,
            added_at=now_ms(),
        )
        agg.card.members.append(member)
        _touch(agg.card)
        return Outcome(value=member)


@dataclass
class RemoveCardMember:
    user_id: str

    action = Action.MANAGE_MEMBERS

    def apply(self, agg: CardAggregate, actor: ActorContext) -> Outcome:
        for member in agg.card.members:
            if member.user_id == self.user_id:
                agg.card.members.remove(member)
                _touch(agg.card)
                return Outcome(value=member)
        raise NotFound(f"User {self.user_id} is not a member of this card")


def _card_role(role: str) -> CardRole:
    try:
        return CardRole(role)
    except ValueError:
        raise ValidationError(f"Unknown card role '{role}'", field="role")


def _board_role(role: str) -> BoardRole:
    try:
        return BoardRole(role)
    except ValueError:
        raise ValidationError(f"Unknown board role '{role}'", field="role")


# ═══════════════════════════════════════════════════════════════════════════
# Board intents (board aggregate)
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class CreateList:
    title: str
    list_type: str = "custom"
    card_limit: Optional[int] = None
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: BoardAggregate, actor: ActorContext) -> Outcome:
        if not self.title or not self.title.strip():
            raise ValidationError("Title is required", field="title")
        if self.list_type not in LIST_TYPES:
            raise ValidationError(f"Unknown list type '{self.list_type}'", field="listType")
        if self.card_limit is not None and self.card_limit < 1:
            raise ValidationError("Card limit must be positive", field="cardLimit")
        now = now_ms()
        new_list = BoardList(
            id=gen_id("list_"),
            board_id=agg.board.id,
            title=self.title.strip(),
            list_type=self.list_type,
            is_archived=False,
            card_limit=self.card_limit,
            created_by=actor.user_id,
            created_at=now,
            updated_at=now,
        )
        positions.insert(list(agg.board.lists), new_list, self.position)
        agg.board.lists.append(new_list)
        agg.board.total_lists += 1
        _touch(agg.board)
        return Outcome(value=new_list)


@dataclass
class MoveList:
    list_id: str
    position: int

    action = Action.WRITE

    def apply(self, agg: BoardAggregate, actor: ActorContext) -> Outcome:
        moved = agg.find_list(self.list_id)
        positions.move(list(agg.board.lists), moved.id, self.position)
        _touch(agg.board, moved)
        return Outcome(value=moved)


@dataclass
class UpdateList:
    list_id: str
    changes: dict = field(default_factory=dict)

    action = Action.WRITE

    def apply(self, agg: BoardAggregate, actor: ActorContext) -> Outcome:
        target = agg.find_list(self.list_id)
        if "title" in self.changes:
            title = self.changes["title"]
            if not title or not title.strip():
                raise ValidationError("Title is required", field="title")
            target.title = title.strip()
        if "list_type" in self.changes:
            if self.changes["list_type"] not in LIST_TYPES:
                raise ValidationError("Unknown list type", field="listType")
            target.list_type = self.changes["list_type"]
        if "card_limit" in self.changes:
            limit = self.changes["card_limit"]
            if limit is not None and limit < 1:
                raise ValidationError("Card limit must be positive", field="cardLimit")
            target.card_limit = limit
        if "is_archived" in self.changes:
            # Archived lists keep their position but leave the stage sequence
            target.is_archived = bool(self.changes["is_archived"])
        _touch(target)
        return Outcome(value=target)


@dataclass
class CreateCard:
    list_id: str
    title: str
    description: str = ""
    priority: str = "medium"
    due_date: Optional[int] = None
    position: Optional[int] = None

    action = Action.WRITE

    def apply(self, agg: BoardAggregate, actor: ActorContext) -> Outcome:
        target = agg.find_list(self.list_id)
        if target.is_archived:
            raise ValidationError("Cannot add cards to an archived list", field="listId")
        if not self.title or not self.title.strip():
            raise ValidationError("Title is required", field="title")
        if self.priority not in CARD_PRIORITIES:
            raise ValidationError(f"Unknown priority '{self.priority}'", field="priority")
        cards = agg.cards_in(target.id)
        _check_card_limit(target, cards)

        now = now_ms()
        card = Card(
            id=gen_id("card_"),
            board_id=agg.board.id,
            list_id=target.id,
            title=self.title.strip(),
            description=self.description or "",
            status="planning",
            priority=self.priority,
            due_date=self.due_date,
            is_completed=False,
            created_by=actor.user_id,
            created_at=now,
            updated_at=now,
            tasks=[],
            checklist_items=[],
            members=[],
        )
        workflow.apply_list_status(card, target)
        index = workflow.stage_index(card, agg.stages)
        card.current_stage_index = index or 0
        positions.insert(cards, card, self.position)
        agg.cards_by_list[target.id] = [*cards, card]
        agg.added.append(card)
        agg.board.total_cards += 1
        _touch(agg.board, target)
        return Outcome(value=card)


@dataclass
class AddBoardMember:
    user_id: str
    role: str = BoardRole.EDITOR.value

    action = Action.MANAGE_MEMBERS

    def apply(self, agg: BoardAggregate, actor: ActorContext) -> Outcome:
        role = _board_role(self.role)
        if self.user_id == agg.board.created_by and role != BoardRole.OWNER:
            raise ValidationError("The board creator is always an owner", field="role")
        for member in agg.board.members:
            if member.user_id == self.user_id:
                member.role = role.value
                _touch(agg.board)
                return Outcome(value=member)
        member = BoardMember(
            id=gen_id("bm_"),
            board_id=agg.board.id,
            user_id=self.user_id,
            role=role.value,
            added_at=now_ms(),
        )
        agg.board.members.append(member)
        _touch(agg.board)
        return Outcome(value=member)


@dataclass
class RemoveBoardMember:
    user_id: str

    action = Action.MANAGE_MEMBERS

    def apply(self, agg: BoardAggregate, actor: ActorContext) -> Outcome:
        if self.user_id == agg.board.created_by:
            raise ValidationError("The board creator cannot be removed", field="userId")
        for member in agg.board.members:
            if member.user_id == self.user_id:
                agg.board.members.remove(member)
                _touch(agg.board)
                return Outcome(value=member)
        raise NotFound(f"User {self.user_id} is not a member of this board")
