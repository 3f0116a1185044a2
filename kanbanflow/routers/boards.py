"""Board endpoints: create, read, members and activity."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.database import get_async_session
from kanbanflow.dependencies import get_actor
from kanbanflow.engine.permissions import ActorContext
from kanbanflow.logging_config import get_logger
from kanbanflow.schemas import BoardMemberRequest, CreateBoardRequest
from kanbanflow.services import boards as board_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/", status_code=201)
async def create_board(
    req: CreateBoardRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a board from a template. The caller becomes its owner."""
    logger.debug(f"Creating board: name={req.name}, template={req.templateId}")
    return await board_service.create_board(
        session,
        actor,
        name=req.name,
        description=req.description,
        project_id=req.projectId,
        template_id=req.templateId,
    )


@router.get("/{board_id}")
async def get_board(
    board_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Board with lists and card summaries."""
    return await board_service.get_board(session, actor, board_id)


@router.get("/{board_id}/activity")
async def get_board_activity(
    board_id: str,
    limit: int = Query(50, ge=1, le=500),
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await board_service.board_activity(session, actor, board_id, limit=limit)


@router.post("/{board_id}/members")
async def add_member(
    board_id: str,
    req: BoardMemberRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Add a member or change an existing member's role."""
    return await board_service.add_board_member(session, actor, board_id, req.userId, req.role)


@router.delete("/{board_id}/members/{user_id}")
async def remove_member(
    board_id: str,
    user_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await board_service.remove_board_member(session, actor, board_id, user_id)
