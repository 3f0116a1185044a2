"""Card endpoints: placement, membership and checklist."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.database import get_async_session
from kanbanflow.dependencies import get_actor
from kanbanflow.engine import intents
from kanbanflow.engine.permissions import ActorContext
from kanbanflow.logging_config import get_logger
from kanbanflow.schemas import (
    CardMemberRequest,
    ChecklistItemRequest,
    CreateCardRequest,
    MoveCardRequest,
    MoveRequest,
    UpdateChecklistItemRequest,
)
from kanbanflow.services import cards as card_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/boards/{board_id}/cards", status_code=201)
async def create_card(
    board_id: str,
    req: CreateCardRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a card in a list; appended unless a position is given."""
    intent = intents.CreateCard(
        list_id=req.listId,
        title=req.title,
        description=req.description,
        priority=req.priority,
        due_date=req.dueDate,
        position=req.position,
    )
    return await card_service.create_card(session, actor, board_id, intent)


@router.get("/cards/{card_id}")
async def get_card(
    card_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.get_card(session, actor, card_id)


@router.delete("/cards/{card_id}")
async def delete_card(
    card_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a card with its tasks and close the gap in its list."""
    return await card_service.delete_card(session, actor, card_id)


@router.post("/cards/{card_id}/move")
async def move_card(
    card_id: str,
    req: MoveCardRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Move a card to another list (or within its own)."""
    logger.debug(f"Moving card {card_id} to list {req.listId} at {req.position}")
    return await card_service.move_card_to_list(
        session, actor, card_id, req.listId, req.position
    )


@router.post("/cards/{card_id}/reorder")
async def reorder_card(
    card_id: str,
    req: MoveRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.reorder_card(session, actor, card_id, req.position)


@router.get("/cards/{card_id}/activity")
async def get_card_activity(
    card_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.card_activity(session, actor, card_id)


@router.post("/cards/{card_id}/members")
async def add_card_member(
    card_id: str,
    req: CardMemberRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.add_card_member(session, actor, card_id, req.userId, req.role)


@router.delete("/cards/{card_id}/members/{user_id}")
async def remove_card_member(
    card_id: str,
    user_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.remove_card_member(session, actor, card_id, user_id)


@router.post("/cards/{card_id}/checklist", status_code=201)
async def add_checklist_item(
    card_id: str,
    req: ChecklistItemRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.add_checklist_item(session, actor, card_id, req.text, req.position)


@router.put("/cards/{card_id}/checklist/{item_id}")
async def update_checklist_item(
    card_id: str,
    item_id: str,
    req: UpdateChecklistItemRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Edit or tick an item. Ticking may advance the card."""
    return await card_service.update_checklist_item(
        session,
        actor,
        card_id,
        item_id,
        text=req.text,
        completed=req.completed,
        position=req.position,
    )


@router.delete("/cards/{card_id}/checklist/{item_id}")
async def delete_checklist_item(
    card_id: str,
    item_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await card_service.delete_checklist_item(session, actor, card_id, item_id)
