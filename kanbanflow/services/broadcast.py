"""Real-time fan-out through the global Redis event stream."""
import json

from kanbanflow import dependencies
from kanbanflow.logging_config import get_logger
from kanbanflow.utils import now_ms

logger = get_logger(__name__)

EVENTS_STREAM = "kanbanflow:events:global"


async def publish_event(event_type: str, data: dict) -> None:
    """Append an event to the global stream. Best effort."""
    if not dependencies.redis_client:
        return
    try:
        logger.debug(f"Publishing Redis event: type={event_type}")
        event = {"type": event_type, **data, "timestamp": now_ms()}
        await dependencies.redis_client.xadd(EVENTS_STREAM, {"data": json.dumps(event)})
    except Exception as e:
        logger.warning(f"Could not publish {event_type}: {e}")


async def publish_card_update(
    card_id: str, task: dict | None, unlocked_tasks: list[dict], workflow_progressed: dict | None
) -> None:
    await publish_event(
        "CARD_TASKS_UPDATED",
        {
            "cardId": card_id,
            "task": task,
            "unlockedTasks": unlocked_tasks,
            "workflowProgressed": workflow_progressed,
        },
    )
