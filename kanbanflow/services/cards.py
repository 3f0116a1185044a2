"""Card operations: create, move, delete, membership and checklist."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.engine import intents
from kanbanflow.engine.permissions import Action, ActorContext
from kanbanflow.logging_config import get_logger
from kanbanflow.schemas import (
    serialize_activity,
    serialize_card,
    serialize_card_member,
    serialize_card_summary,
    serialize_checklist_item,
)
from kanbanflow.services import activity, broadcast
from kanbanflow.services.aggregates import (
    authorize,
    load_card,
    run_board_intent,
    run_card_intent,
)
from kanbanflow.services.tasks import activity_scope, log_stage_progress

logger = get_logger(__name__)


async def create_card(
    session: AsyncSession, actor: ActorContext, board_id: str, intent: intents.CreateCard
) -> dict:
    outcome = await run_board_intent(
        session, board_id, intent, actor, list_ids=[intent.list_id]
    )
    card = outcome.value
    board = outcome.aggregate.board
    logger.debug(f"Created card {card.id} in list {card.list_id}")
    await activity.log(
        "card_created",
        actor.user_id,
        {"project": board.project_id, "board": board.id, "list": card.list_id, "card": card.id},
        {"title": card.title},
    )
    await broadcast.publish_event("CARD_CREATED", {"boardId": board.id, "cardId": card.id})
    return serialize_card(card)


async def get_card(session: AsyncSession, actor: ActorContext, card_id: str) -> dict:
    agg = await load_card(session, card_id)
    authorize(actor, Action.READ, agg)
    return serialize_card(agg.card)


async def move_card_to_list(
    session: AsyncSession,
    actor: ActorContext,
    card_id: str,
    list_id: str,
    position: Optional[int] = None,
) -> dict:
    """Move a card into ``list_id`` (or within its list when it is the same)."""
    outcome = await run_card_intent(
        session,
        card_id,
        intents.MoveCard(target_list_id=list_id, position=position),
        actor,
        extra_list_ids=[list_id],
    )
    agg = outcome.aggregate
    card = agg.card
    await activity.log(
        "card_moved",
        actor.user_id,
        activity_scope(outcome),
        {"toListId": list_id, "position": card.position},
    )
    await broadcast.publish_event(
        "CARD_MOVED",
        {"boardId": agg.board.id, "cardId": card.id, "listId": list_id, "position": card.position},
    )
    return {
        "card": serialize_card(card),
        "list_cards": [serialize_card_summary(c) for c in agg.cards_in(card.list_id)],
    }


async def reorder_card(
    session: AsyncSession, actor: ActorContext, card_id: str, position: int
) -> dict:
    """Move a card to ``position`` within its current list."""
    agg = await load_card(session, card_id)
    return await move_card_to_list(session, actor, card_id, agg.card.list_id, position)


async def delete_card(session: AsyncSession, actor: ActorContext, card_id: str) -> dict:
    outcome = await run_card_intent(session, card_id, intents.DeleteCard(), actor)
    card = outcome.value
    await activity.log(
        "card_deleted", actor.user_id, activity_scope(outcome), {"title": card.title}
    )
    await broadcast.publish_event(
        "CARD_DELETED", {"boardId": card.board_id, "cardId": card.id}
    )
    return {"status": "deleted", "card_id": card.id}


async def add_card_member(
    session: AsyncSession, actor: ActorContext, card_id: str, user_id: str, role: str
) -> dict:
    outcome = await run_card_intent(
        session, card_id, intents.AddCardMember(user_id=user_id, role=role), actor
    )
    await activity.log(
        "card_member_added", actor.user_id, activity_scope(outcome), {"userId": user_id, "role": role}
    )
    return serialize_card_member(outcome.value)


async def remove_card_member(
    session: AsyncSession, actor: ActorContext, card_id: str, user_id: str
) -> dict:
    outcome = await run_card_intent(
        session, card_id, intents.RemoveCardMember(user_id=user_id), actor
    )
    await activity.log(
        "card_member_removed", actor.user_id, activity_scope(outcome), {"userId": user_id}
    )
    return {"status": "removed", "user_id": user_id}


async def card_activity(session: AsyncSession, actor: ActorContext, card_id: str) -> list[dict]:
    agg = await load_card(session, card_id)
    authorize(actor, Action.READ, agg)
    entries = await activity.list_board_activity(session, agg.board.id, card_id=card_id)
    return [serialize_activity(a) for a in entries]


# ══════════════════════════════════════════════════════════════════════════
# Checklist
# ══════════════════════════════════════════════════════════════════════════


async def add_checklist_item(
    session: AsyncSession,
    actor: ActorContext,
    card_id: str,
    text: str,
    position: Optional[int] = None,
) -> dict:
    outcome = await run_card_intent(
        session, card_id, intents.AddChecklistItem(text=text, position=position), actor
    )
    return serialize_checklist_item(outcome.value)


async def update_checklist_item(
    session: AsyncSession,
    actor: ActorContext,
    card_id: str,
    item_id: str,
    text: Optional[str] = None,
    completed: Optional[bool] = None,
    position: Optional[int] = None,
) -> dict:
    """Update an item; ticking it runs stage evaluation for the card."""
    intent = intents.UpdateChecklistItem(
        item_id=item_id, text=text, completed=completed, position=position
    )
    outcome = await run_card_intent(session, card_id, intent, actor)
    item = outcome.value
    if completed is not None:
        await activity.log(
            "card_checklist_item_completed" if completed else "card_checklist_item_uncompleted",
            actor.user_id,
            activity_scope(outcome),
            {"itemId": item.id, "text": item.text},
        )
    await log_stage_progress(outcome, actor)

    workflow = None
    if outcome.progress and (outcome.progress.advanced or outcome.progress.completed):
        workflow = outcome.progress.to_dict()
        await broadcast.publish_card_update(card_id, None, [], workflow)
    return {"item": serialize_checklist_item(item), "workflow": workflow}


async def delete_checklist_item(
    session: AsyncSession, actor: ActorContext, card_id: str, item_id: str
) -> dict:
    await run_card_intent(session, card_id, intents.DeleteChecklistItem(item_id=item_id), actor)
    return {"status": "deleted", "item_id": item_id}
