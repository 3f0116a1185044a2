"""Board and list operations."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.engine import intents
from kanbanflow.engine.errors import NotFound, ValidationError
from kanbanflow.engine.intents import LIST_TYPES, Outcome
from kanbanflow.engine.permissions import Action, ActorContext, BoardRole
from kanbanflow.logging_config import get_logger
from kanbanflow.models import Board, BoardList, BoardMember
from kanbanflow.schemas import (
    serialize_activity,
    serialize_board,
    serialize_board_member,
    serialize_card_summary,
    serialize_list,
)
from kanbanflow.services import activity, broadcast
from kanbanflow.services.aggregates import authorize, load_board, run_board_intent
from kanbanflow.utils import gen_id, load_board_template, now_ms

logger = get_logger(__name__)


def _scope(board: Board, list_id: Optional[str] = None) -> dict:
    return {"project": board.project_id, "board": board.id, "list": list_id}


def _template_lists(template: dict) -> list[dict]:
    lists = template.get("lists") or []
    for entry in lists:
        if not entry.get("title"):
            raise ValidationError(f"Template '{template.get('id')}' has a list without a title")
        if entry.get("list_type", "custom") not in LIST_TYPES:
            raise ValidationError(
                f"Template '{template.get('id')}' uses unknown list type '{entry.get('list_type')}'"
            )
    return lists


async def create_board(
    session: AsyncSession,
    actor: ActorContext,
    name: str,
    description: str = "",
    project_id: Optional[str] = None,
    template_id: str = "default",
) -> dict:
    """Create a board from a YAML template; the creator becomes its owner."""
    if not name or not name.strip():
        raise ValidationError("Name is required", field="name")
    template = load_board_template(template_id)
    if template is None:
        raise NotFound(f"Board template '{template_id}' not found")

    now = now_ms()
    board_id = gen_id("board_")
    lists = [
        BoardList(
            id=gen_id("list_"),
            board_id=board_id,
            title=entry["title"],
            position=index,
            list_type=entry.get("list_type", "custom"),
            is_archived=False,
            card_limit=entry.get("card_limit"),
            created_by=actor.user_id,
            created_at=now,
            updated_at=now,
        )
        for index, entry in enumerate(_template_lists(template), start=1)
    ]
    board = Board(
        id=board_id,
        name=name.strip(),
        description=description or "",
        project_id=project_id,
        created_by=actor.user_id,
        template_id=template_id,
        total_lists=len(lists),
        total_cards=0,
        created_at=now,
        updated_at=now,
        members=[
            BoardMember(
                id=gen_id("bm_"),
                board_id=board_id,
                user_id=actor.user_id,
                role=BoardRole.OWNER.value,
                added_at=now,
            )
        ],
        lists=lists,
    )
    session.add(board)
    await session.commit()
    logger.info(f"Created board {board.id} from template '{template_id}'")

    await activity.log(
        "board_created", actor.user_id, _scope(board), {"name": board.name, "template": template_id}
    )
    await broadcast.publish_event("BOARD_CREATED", {"boardId": board.id})
    return serialize_board(board)


async def get_board(session: AsyncSession, actor: ActorContext, board_id: str) -> dict:
    """Board with every list and the card summaries in each."""
    agg = await load_board(session, board_id)
    authorize(actor, Action.READ, agg)
    agg = await load_board(session, board_id, [lst.id for lst in agg.board.lists])
    data = serialize_board(agg.board)
    for list_data in data["lists"]:
        list_data["cards"] = [serialize_card_summary(c) for c in agg.cards_in(list_data["id"])]
    return data


async def board_activity(
    session: AsyncSession, actor: ActorContext, board_id: str, limit: int = 50
) -> list[dict]:
    agg = await load_board(session, board_id)
    authorize(actor, Action.READ, agg)
    entries = await activity.list_board_activity(session, board_id, limit=limit)
    return [serialize_activity(a) for a in entries]


# ══════════════════════════════════════════════════════════════════════════
# Members
# ══════════════════════════════════════════════════════════════════════════


async def add_board_member(
    session: AsyncSession, actor: ActorContext, board_id: str, user_id: str, role: str
) -> dict:
    """Add a member, or change the role of an existing one."""
    outcome = await run_board_intent(
        session, board_id, intents.AddBoardMember(user_id=user_id, role=role), actor
    )
    board = outcome.aggregate.board
    await activity.log(
        "board_member_added", actor.user_id, _scope(board), {"userId": user_id, "role": role}
    )
    return serialize_board_member(outcome.value)


async def remove_board_member(
    session: AsyncSession, actor: ActorContext, board_id: str, user_id: str
) -> dict:
    outcome = await run_board_intent(
        session, board_id, intents.RemoveBoardMember(user_id=user_id), actor
    )
    await activity.log(
        "board_member_removed", actor.user_id, _scope(outcome.aggregate.board), {"userId": user_id}
    )
    return {"status": "removed", "user_id": user_id}


# ══════════════════════════════════════════════════════════════════════════
# Lists
# ══════════════════════════════════════════════════════════════════════════


async def _after_list_change(outcome: Outcome, actor: ActorContext, activity_type: str) -> dict:
    board = outcome.aggregate.board
    lst = outcome.value
    await activity.log(
        activity_type, actor.user_id, _scope(board, lst.id), {"title": lst.title, "position": lst.position}
    )
    await broadcast.publish_event(
        "LIST_UPDATED", {"boardId": board.id, "listId": lst.id, "change": activity_type}
    )
    return serialize_list(lst)


async def create_list(
    session: AsyncSession, actor: ActorContext, board_id: str, intent: intents.CreateList
) -> dict:
    outcome = await run_board_intent(session, board_id, intent, actor)
    return await _after_list_change(outcome, actor, "list_created")


async def move_list(
    session: AsyncSession, actor: ActorContext, board_id: str, list_id: str, position: int
) -> list[dict]:
    """Reorder a list within its board; returns all lists in order."""
    outcome = await run_board_intent(
        session, board_id, intents.MoveList(list_id=list_id, position=position), actor
    )
    await _after_list_change(outcome, actor, "list_moved")
    lists = sorted(outcome.aggregate.board.lists, key=lambda lst: lst.position)
    return [serialize_list(lst) for lst in lists]


async def update_list(
    session: AsyncSession, actor: ActorContext, board_id: str, list_id: str, changes: dict
) -> dict:
    outcome = await run_board_intent(
        session, board_id, intents.UpdateList(list_id=list_id, changes=changes), actor
    )
    if changes.get("is_archived") is True:
        activity_type = "list_archived"
    else:
        activity_type = "list_updated"
    return await _after_list_change(outcome, actor, activity_type)
