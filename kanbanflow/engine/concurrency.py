"""Optimistic-version retry around a single aggregate write.

A mutation is an intent object, never a mutated snapshot: on a version
conflict the aggregate is reloaded and the same intent is applied again to the
fresh state, so concurrent changes are kept instead of overwritten.
"""
import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.orm.exc import StaleDataError

from kanbanflow.engine.errors import ConcurrencyConflict
from kanbanflow.logging_config import get_logger

logger = get_logger(__name__)

A = TypeVar("A")

DEFAULT_MAX_ATTEMPTS = 3


async def with_retry(
    load: Callable[[], Awaitable[A]],
    apply_intent: Callable[[A], Any],
    save: Callable[[A], Awaitable[None]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rollback: Optional[Callable[[], Awaitable[None]]] = None,
    conflict_errors: tuple[type[BaseException], ...] = (StaleDataError,),
) -> Any:
    """Load, apply, save; on a version conflict roll back and start over.

    ``apply_intent`` may be sync or async. Errors it raises propagate as is;
    only ``conflict_errors`` raised by ``save`` are retried. After
    ``max_attempts`` conflicting saves ``ConcurrencyConflict`` is raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        aggregate = await load()
        result = apply_intent(aggregate)
        if inspect.isawaitable(result):
            result = await result
        try:
            await save(aggregate)
        except conflict_errors as e:
            logger.warning(
                f"Version conflict on attempt {attempt}/{max_attempts}: {e}"
            )
            if rollback is not None:
                await rollback()
            continue
        if attempt > 1:
            logger.info(f"Save succeeded after {attempt} attempts")
        return result

    raise ConcurrencyConflict(
        f"The item was changed by someone else {max_attempts} times in a row; "
        "reload and try again"
    )
