"""Stage completion detection and card auto-advance.

A board's stages are its non-archived lists in position order. ``evaluate``
runs once per task or checklist-item completion; it never moves a card
backwards, and reopening work on an advanced card leaves it where it is.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from kanbanflow.engine import positions
from kanbanflow.models import BoardList, Card
from kanbanflow.utils import now_ms

STATUS_BY_LIST_TYPE = {
    "todo": "open",
    "in_progress": "in_progress",
    "review": "review",
    "done": "completed",
}


@dataclass
class StageProgress:
    advanced: bool = False
    from_stage: Optional[int] = None
    to_stage: Optional[int] = None
    completed: bool = False

    def to_dict(self) -> dict:
        return {
            "advanced": self.advanced,
            "fromStage": self.from_stage,
            "toStage": self.to_stage,
            "completed": self.completed,
        }


def stage_sequence(lists: Sequence[BoardList]) -> list[BoardList]:
    """Non-archived lists in position order."""
    return positions.ordered([lst for lst in lists if not lst.is_archived])


def stage_index(card: Card, stages: Sequence[BoardList]) -> Optional[int]:
    for index, stage in enumerate(stages):
        if stage.id == card.list_id:
            return index
    return None


def is_stage_complete(card: Card) -> bool:
    """At least one task, every task done and every checklist item ticked."""
    if not card.tasks:
        return False
    if not all(task.completed for task in card.tasks):
        return False
    return all(item.completed for item in card.checklist_items)


def apply_list_status(card: Card, target: BoardList) -> None:
    """Card status follows the list type; custom lists leave it alone."""
    status = STATUS_BY_LIST_TYPE.get(target.list_type)
    if status:
        card.status = status


def reopen(card: Card, target: BoardList) -> None:
    """Clear a card's completion once it has left the terminal stage."""
    card.is_completed = False
    card.completed_at = None
    card.completed_by = None
    apply_list_status(card, target)
    if card.status == "completed":
        card.status = "open"


def evaluate(
    card: Card,
    stages: Sequence[BoardList],
    source_cards: Sequence[Card],
    next_cards: Sequence[Card],
) -> StageProgress:
    """Advance ``card`` one stage when its work is done.

    ``source_cards`` are the cards of the card's current list (including it);
    ``next_cards`` those of the following stage, ignored on the terminal stage.
    Card limits do not apply to this move.
    """
    index = stage_index(card, stages)
    if index is None or not is_stage_complete(card):
        return StageProgress(from_stage=index, to_stage=index)

    now = now_ms()
    if index == len(stages) - 1:
        if card.is_completed:
            return StageProgress(from_stage=index, to_stage=index)
        card.is_completed = True
        card.completed_at = now
        card.status = "completed"
        card.current_stage_index = max(card.current_stage_index, index)
        card.updated_at = now
        return StageProgress(from_stage=index, to_stage=index, completed=True)

    current, target = stages[index], stages[index + 1]
    positions.move_across(list(source_cards), list(next_cards), card.id)
    card.list_id = target.id
    card.current_stage_index = max(card.current_stage_index, index + 1)
    apply_list_status(card, target)
    card.updated_at = now
    current.updated_at = now
    target.updated_at = now
    return StageProgress(advanced=True, from_stage=index, to_stage=index + 1)
