"""Tests for the optimistic-version retry guard."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from kanbanflow.engine import intents
from kanbanflow.engine.concurrency import with_retry
from kanbanflow.engine.errors import ConcurrencyConflict, Forbidden
from kanbanflow.engine.permissions import ActorContext, GlobalRole
from kanbanflow.models import Base
from kanbanflow.services import aggregates
from kanbanflow.utils import now_ms

from factories import OWNER, make_board, make_card


class FakeStore:
    """Counts loads and fails the first ``conflicts`` saves."""

    def __init__(self, conflicts: int):
        self.conflicts = conflicts
        self.loads = 0
        self.saves = 0
        self.rollbacks = 0
        self.value = 0

    async def load(self):
        self.loads += 1
        return {"value": self.value}

    async def save(self, state):
        self.saves += 1
        if self.saves <= self.conflicts:
            self.value += 10  # someone else wrote in between
            raise StaleDataError("version mismatch")
        self.value = state["value"]

    async def rollback(self):
        self.rollbacks += 1


@pytest.mark.asyncio
async def test_succeeds_first_time():
    """Test a conflict-free save runs once."""
    store = FakeStore(conflicts=0)

    def apply(state):
        state["value"] += 1
        return "ok"

    assert await with_retry(store.load, apply, store.save) == "ok"
    assert (store.loads, store.saves, store.value) == (1, 1, 1)


@pytest.mark.asyncio
async def test_retries_reapply_intent_to_fresh_state():
    """Test each retry reloads and reapplies, keeping concurrent writes."""
    store = FakeStore(conflicts=2)

    def apply(state):
        state["value"] += 1

    await with_retry(store.load, apply, store.save, max_attempts=3, rollback=store.rollback)

    assert store.loads == 3
    assert store.rollbacks == 2
    assert store.value == 21


@pytest.mark.asyncio
async def test_exhausted_retries_raise_conflict():
    """Test ConcurrencyConflict after max_attempts conflicting saves."""
    store = FakeStore(conflicts=5)

    with pytest.raises(ConcurrencyConflict) as exc_info:
        await with_retry(store.load, lambda s: None, store.save, max_attempts=3)

    assert store.saves == 3
    assert exc_info.value.status_code == 409
    assert exc_info.value.to_dict()["retryable"] is True


@pytest.mark.asyncio
async def test_async_apply_and_intent_errors_propagate():
    """Test async apply is awaited and its errors are not retried."""
    store = FakeStore(conflicts=0)

    async def apply(state):
        raise Forbidden("no")

    with pytest.raises(Forbidden):
        await with_retry(store.load, apply, store.save)
    assert store.saves == 0


@pytest.mark.asyncio
async def test_invalid_attempts():
    """Test max_attempts below one is refused."""
    store = FakeStore(conflicts=0)
    with pytest.raises(ValueError):
        await with_retry(store.load, lambda s: None, store.save, max_attempts=0)


@pytest.mark.asyncio
async def test_concurrent_writers_both_kept(tmp_path):
    """Test two sessions editing one card: the stale writer retries and both edits survive."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    actor = ActorContext(user_id=OWNER, global_role=GlobalRole.EMPLOYEE)

    now = now_ms()
    async with maker() as session:
        board = make_board()
        for row in [board, *board.lists]:
            row.created_at = row.updated_at = now
        card = make_card()
        card.created_at = card.updated_at = now
        session.add_all([board, card])
        await session.commit()

    async with maker() as first, maker() as second:
        loads = []

        async def load():
            agg = await aggregates.load_card(first, "card_1")
            if not loads:
                # Another writer commits between our load and our save
                await aggregates.run_card_intent(
                    second, "card_1", intents.CreateTask(title="From second"), actor
                )
            loads.append(agg)
            return agg

        outcome = await aggregates.run_intent(
            first, load, intents.CreateTask(title="From first"), actor
        )

        assert len(loads) == 2
        assert outcome.value.title == "From first"

    async with maker() as session:
        agg = await aggregates.load_card(session, "card_1")
        titles = sorted(t.title for t in agg.card.tasks)
        assert titles == ["From first", "From second"]
        assert sorted(t.position for t in agg.card.tasks) == [1, 2]

    await engine.dispose()
