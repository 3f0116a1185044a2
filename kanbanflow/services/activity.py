"""Activity logger: one Activity row per user-visible action.

Writes happen in their own session after the primary mutation has been
saved, so a failing log write never rolls anything back. Failures are logged
and dropped.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kanbanflow.database import AsyncSessionLocal
from kanbanflow.logging_config import get_logger
from kanbanflow.models import Activity
from kanbanflow.utils import gen_id, now_ms

logger = get_logger(__name__)

# Replaced by tests to point at their own engine
session_factory: async_sessionmaker = AsyncSessionLocal


async def log(
    type: str,
    actor_id: str,
    scope: dict,
    metadata: Optional[dict] = None,
) -> None:
    """Record an activity.

    ``scope`` may hold ``project``, ``board``, ``list`` and ``card`` ids.
    """
    try:
        async with session_factory() as session:
            session.add(
                Activity(
                    id=gen_id("act_"),
                    type=type,
                    actor_id=actor_id,
                    project_id=scope.get("project"),
                    board_id=scope.get("board"),
                    list_id=scope.get("list"),
                    card_id=scope.get("card"),
                    activity_metadata=metadata or {},
                    created_at=now_ms(),
                )
            )
            await session.commit()
        logger.debug(f"Activity {type} by {actor_id} on {scope}")
    except Exception as e:
        logger.error(f"Failed to log activity {type}: {e}")


async def list_board_activity(
    session: AsyncSession, board_id: str, card_id: Optional[str] = None, limit: int = 50
) -> list[Activity]:
    """Most recent activities on a board, newest first."""
    query = select(Activity).where(Activity.board_id == board_id)
    if card_id:
        query = query.where(Activity.card_id == card_id)
    result = await session.execute(
        query.order_by(Activity.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())
