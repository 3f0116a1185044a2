"""Aggregate loading and the guarded load/authorize/apply/save cycle."""
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kanbanflow.config import settings
from kanbanflow.engine import permissions
from kanbanflow.engine.concurrency import with_retry
from kanbanflow.engine.errors import EngineError, NotFound
from kanbanflow.engine.intents import BoardAggregate, CardAggregate, Outcome
from kanbanflow.engine.permissions import Action, ActorContext
from kanbanflow.engine.workflow import stage_sequence
from kanbanflow.logging_config import get_logger
from kanbanflow.models import Board, Card, Task

logger = get_logger(__name__)


def _card_options():
    return (
        selectinload(Card.tasks).selectinload(Task.subtasks),
        selectinload(Card.checklist_items),
        selectinload(Card.members),
    )


async def _load_board_row(session: AsyncSession, board_id: str) -> Board:
    result = await session.execute(
        select(Board)
        .where(Board.id == board_id)
        .options(selectinload(Board.members), selectinload(Board.lists))
        .execution_options(populate_existing=True)
    )
    board = result.scalar_one_or_none()
    if not board:
        raise NotFound(f"Board {board_id} not found")
    return board


async def _load_list_cards(
    session: AsyncSession, list_ids: Iterable[str], with_contents: bool = False
) -> dict[str, list[Card]]:
    ids = [i for i in dict.fromkeys(list_ids) if i]
    cards_by_list: dict[str, list[Card]] = {i: [] for i in ids}
    if not ids:
        return cards_by_list
    query = (
        select(Card)
        .where(Card.list_id.in_(ids))
        .order_by(Card.position)
        .execution_options(populate_existing=True)
    )
    if with_contents:
        query = query.options(*_card_options())
    result = await session.execute(query)
    for card in result.scalars().all():
        cards_by_list[card.list_id].append(card)
    return cards_by_list


async def load_board(
    session: AsyncSession,
    board_id: str,
    list_ids: Iterable[str] = (),
    with_contents: bool = False,
) -> BoardAggregate:
    """Board with members and lists, plus the cards of ``list_ids``."""
    board = await _load_board_row(session, board_id)
    cards_by_list = await _load_list_cards(session, list_ids, with_contents)
    return BoardAggregate(board=board, cards_by_list=cards_by_list)


async def load_card(
    session: AsyncSession, card_id: str, extra_list_ids: Iterable[str] = ()
) -> CardAggregate:
    """Card with tasks, subtasks, checklist and members inside its board.

    Cards of the card's own list and of the next stage are always loaded so
    stage progression can run; ``extra_list_ids`` adds move targets.
    """
    result = await session.execute(
        select(Card.board_id, Card.list_id).where(Card.id == card_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound(f"Card {card_id} not found")
    board_id, list_id = row

    board = await _load_board_row(session, board_id)
    stages = stage_sequence(board.lists)
    list_ids = [list_id, *extra_list_ids]
    for index, stage in enumerate(stages[:-1]):
        if stage.id == list_id:
            list_ids.append(stages[index + 1].id)

    # Sibling cards first: the card query below must be the last to populate it
    cards_by_list = await _load_list_cards(session, list_ids)
    result = await session.execute(
        select(Card)
        .where(Card.id == card_id)
        .options(*_card_options())
        .execution_options(populate_existing=True)
    )
    card = result.scalar_one()
    return CardAggregate(board=board, cards_by_list=cards_by_list, card=card)


async def save(session: AsyncSession, agg: BoardAggregate) -> None:
    """Single save path for an aggregate: pending rows, then one commit."""
    session.add_all(agg.added)
    for row in agg.deleted:
        await session.delete(row)
    await session.commit()


def authorize(actor: ActorContext, action: Action, agg: BoardAggregate) -> None:
    permissions.require(actor, action, agg.scope)


async def run_intent(
    session: AsyncSession,
    load,
    intent,
    actor: ActorContext,
    max_attempts: Optional[int] = None,
) -> Outcome:
    """Authorize and apply ``intent`` under the concurrency guard."""

    def apply(agg: BoardAggregate) -> Outcome:
        authorize(actor, intent.action, agg)
        outcome = intent.apply(agg, actor)
        outcome.aggregate = agg
        return outcome

    try:
        return await with_retry(
            load,
            apply,
            lambda agg: save(session, agg),
            max_attempts=max_attempts or settings.max_save_attempts,
            rollback=session.rollback,
        )
    except EngineError as e:
        logger.debug(f"{type(intent).__name__} rejected: {e.detail}")
        await session.rollback()
        raise


async def run_card_intent(
    session: AsyncSession,
    card_id: str,
    intent,
    actor: ActorContext,
    extra_list_ids: Iterable[str] = (),
) -> Outcome:
    extra = list(extra_list_ids)
    return await run_intent(
        session, lambda: load_card(session, card_id, extra), intent, actor
    )


async def run_board_intent(
    session: AsyncSession,
    board_id: str,
    intent,
    actor: ActorContext,
    list_ids: Iterable[str] = (),
) -> Outcome:
    ids = list(list_ids)
    return await run_intent(
        session, lambda: load_board(session, board_id, ids), intent, actor
    )
