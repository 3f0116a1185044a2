"""List (stage) endpoints, nested under a board."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.database import get_async_session
from kanbanflow.dependencies import get_actor
from kanbanflow.engine import intents
from kanbanflow.engine.permissions import ActorContext
from kanbanflow.logging_config import get_logger
from kanbanflow.schemas import CreateListRequest, MoveRequest, UpdateListRequest
from kanbanflow.services import boards as board_service

logger = get_logger(__name__)
router = APIRouter()

_LIST_FIELD_MAP = {
    "title": "title",
    "listType": "list_type",
    "cardLimit": "card_limit",
    "isArchived": "is_archived",
}


@router.post("/{board_id}/lists", status_code=201)
async def create_list(
    board_id: str,
    req: CreateListRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a list; appended unless a position is given."""
    intent = intents.CreateList(
        title=req.title, list_type=req.listType, card_limit=req.cardLimit, position=req.position
    )
    return await board_service.create_list(session, actor, board_id, intent)


@router.put("/{board_id}/lists/{list_id}")
async def update_list(
    board_id: str,
    list_id: str,
    req: UpdateListRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Rename, retype, set or clear the card limit, archive or restore."""
    changes = {
        _LIST_FIELD_MAP[name]: value
        for name, value in req.model_dump(exclude_unset=True).items()
        if value is not None or name == "cardLimit"
    }
    return await board_service.update_list(session, actor, board_id, list_id, changes)


@router.post("/{board_id}/lists/{list_id}/move")
async def move_list(
    board_id: str,
    list_id: str,
    req: MoveRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Reorder a list within its board."""
    logger.debug(f"Moving list {list_id} to position {req.position}")
    return await board_service.move_list(session, actor, board_id, list_id, req.position)
