"""Task and subtask operations on a card.

Each call authorizes against the loaded card, applies one intent under the
concurrency guard, then runs the side effects (activity, notifications,
broadcast) once the save has succeeded.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.engine import intents, unlock
from kanbanflow.engine.intents import Outcome
from kanbanflow.engine.permissions import Action, ActorContext
from kanbanflow.logging_config import get_logger
from kanbanflow.schemas import serialize_subtask, serialize_task
from kanbanflow.services import activity, broadcast, notifications
from kanbanflow.services.aggregates import authorize, load_card, run_card_intent

logger = get_logger(__name__)


def activity_scope(outcome: Outcome) -> dict:
    board = outcome.aggregate.board
    card = outcome.aggregate.card
    return {
        "project": board.project_id,
        "board": board.id,
        "list": card.list_id,
        "card": card.id,
    }


def _progress_dict(outcome: Outcome) -> Optional[dict]:
    progress = outcome.progress
    if progress is None or not (progress.advanced or progress.completed):
        return None
    return progress.to_dict()


async def _notify_assigned(outcome: Outcome, task, assignees: list[str], assigned_by: str) -> None:
    if not assignees:
        return
    agg = outcome.aggregate
    payload = notifications.build_assignment_payload(
        task_title=task.title,
        assigned_to=assignees,
        assigned_by=assigned_by,
        due_date=task.due_date,
        board_name=agg.board.name,
        card_name=agg.card.title,
    )
    await notifications.notify_task_assigned(payload)


async def log_stage_progress(outcome: Outcome, actor: ActorContext) -> None:
    progress = outcome.progress
    if progress is None:
        return
    scope = activity_scope(outcome)
    if progress.advanced:
        logger.info(
            f"Card {outcome.aggregate.card.id} advanced from stage "
            f"{progress.from_stage} to {progress.to_stage}"
        )
        await activity.log(
            "card_moved",
            actor.user_id,
            scope,
            {"fromStage": progress.from_stage, "toStage": progress.to_stage, "automatic": True},
        )
    elif progress.completed:
        logger.info(f"Card {outcome.aggregate.card.id} completed")
        await activity.log("card_completed", actor.user_id, scope, {"automatic": True})


async def _after_task_change(
    outcome: Outcome, actor: ActorContext, activity_type: str
) -> dict:
    """Side effects of a saved task mutation; returns the response body."""
    change = outcome.change
    task = change.task
    scope = activity_scope(outcome)

    await activity.log(
        activity_type, actor.user_id, scope, {"taskId": task.id, "taskTitle": task.title}
    )
    await _notify_assigned(outcome, task, change.newly_assigned, actor.user_id)

    for unlocked in change.unlocked:
        logger.info(f"Task {unlocked.task.id} unlocked by {task.id}")
        await activity.log(
            "task_unlocked",
            actor.user_id,
            scope,
            {
                "taskId": unlocked.task.id,
                "taskTitle": unlocked.task.title,
                "unlockedBy": task.id,
                "assignedTo": unlocked.added_assignees,
            },
        )
        await _notify_assigned(outcome, unlocked.task, unlocked.added_assignees, actor.user_id)

    await log_stage_progress(outcome, actor)

    task_data = serialize_task(task)
    unlocked_data = [serialize_task(u.task) for u in change.unlocked]
    workflow = _progress_dict(outcome)
    await broadcast.publish_card_update(
        outcome.aggregate.card.id, task_data, unlocked_data, workflow
    )
    return {
        "task": task_data,
        "unlocked_tasks": unlocked_data,
        "relocked_tasks": [serialize_task(t) for t in change.relocked],
        "workflow": workflow,
    }


# ══════════════════════════════════════════════════════════════════════════
# Tasks
# ══════════════════════════════════════════════════════════════════════════


async def create_task(
    session: AsyncSession, actor: ActorContext, card_id: str, intent: intents.CreateTask
) -> dict:
    outcome = await run_card_intent(session, card_id, intent, actor)
    logger.debug(f"Created task {outcome.value.id} on card {card_id}")
    return await _after_task_change(outcome, actor, "task_created")


async def update_task(
    session: AsyncSession, actor: ActorContext, card_id: str, task_id: str, changes: dict
) -> dict:
    """Field update; ``completed`` in ``changes`` completes or reopens the task."""
    outcome = await run_card_intent(
        session, card_id, intents.UpdateTask(task_id=task_id, changes=changes), actor
    )
    if outcome.change.completed_now:
        activity_type = "task_completed"
    elif changes.get("completed") is False:
        activity_type = "task_uncompleted"
    else:
        activity_type = "task_updated"
    return await _after_task_change(outcome, actor, activity_type)


async def delete_task(
    session: AsyncSession, actor: ActorContext, card_id: str, task_id: str
) -> dict:
    outcome = await run_card_intent(
        session, card_id, intents.DeleteTask(task_id=task_id), actor
    )
    logger.debug(f"Deleted task {task_id} from card {card_id}")
    return await _after_task_change(outcome, actor, "task_deleted")


async def reorder_task(
    session: AsyncSession, actor: ActorContext, card_id: str, task_id: str, position: int
) -> list[dict]:
    outcome = await run_card_intent(
        session, card_id, intents.ReorderTask(task_id=task_id, position=position), actor
    )
    card = outcome.aggregate.card
    await broadcast.publish_event("TASK_REORDERED", {"cardId": card.id, "taskId": task_id})
    return [serialize_task(t) for t in sorted(card.tasks, key=lambda t: t.position)]


async def get_task(
    session: AsyncSession, actor: ActorContext, card_id: str, task_id: str
) -> dict:
    """Task with its dependency chain, startability and progress."""
    agg = await load_card(session, card_id)
    authorize(actor, Action.READ, agg)
    task = unlock.find_task(agg.card, task_id)
    return {
        "task": serialize_task(task),
        "dependency_chain": [
            {
                "task_id": t.id,
                "title": t.title,
                "completed": t.completed,
                "assigned_to": list(t.assigned_to),
            }
            for t in unlock.dependency_chain(agg.card, task_id)
        ],
        "can_start": unlock.can_start(agg.card, task_id),
        "progress": unlock.task_progress(agg.card, task_id),
    }


# ══════════════════════════════════════════════════════════════════════════
# Subtasks
# ══════════════════════════════════════════════════════════════════════════


async def _after_subtask_change(
    outcome: Outcome, actor: ActorContext, activity_type: str, task_id: str
) -> dict:
    subtask = outcome.value
    await activity.log(
        activity_type,
        actor.user_id,
        activity_scope(outcome),
        {"taskId": task_id, "subtaskId": subtask.id, "text": subtask.text},
    )
    data = serialize_subtask(subtask)
    await broadcast.publish_event(
        "SUBTASK_UPDATED", {"cardId": outcome.aggregate.card.id, "taskId": task_id, "subtask": data}
    )
    return data


async def add_subtask(
    session: AsyncSession,
    actor: ActorContext,
    card_id: str,
    task_id: str,
    text: str,
    position: Optional[int] = None,
) -> dict:
    outcome = await run_card_intent(
        session, card_id, intents.AddSubtask(task_id=task_id, text=text, position=position), actor
    )
    return await _after_subtask_change(outcome, actor, "subtask_created", task_id)


async def update_subtask(
    session: AsyncSession,
    actor: ActorContext,
    card_id: str,
    task_id: str,
    subtask_id: str,
    text: Optional[str] = None,
    completed: Optional[bool] = None,
    position: Optional[int] = None,
) -> dict:
    intent = intents.UpdateSubtask(
        task_id=task_id, subtask_id=subtask_id, text=text, completed=completed, position=position
    )
    outcome = await run_card_intent(session, card_id, intent, actor)
    return await _after_subtask_change(outcome, actor, "subtask_updated", task_id)


async def delete_subtask(
    session: AsyncSession, actor: ActorContext, card_id: str, task_id: str, subtask_id: str
) -> dict:
    outcome = await run_card_intent(
        session, card_id, intents.DeleteSubtask(task_id=task_id, subtask_id=subtask_id), actor
    )
    return await _after_subtask_change(outcome, actor, "subtask_deleted", task_id)
