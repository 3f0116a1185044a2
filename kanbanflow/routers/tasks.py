"""Task and subtask endpoints, nested under a card."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kanbanflow.database import get_async_session
from kanbanflow.dependencies import get_actor
from kanbanflow.engine import intents
from kanbanflow.engine.permissions import ActorContext
from kanbanflow.logging_config import get_logger
from kanbanflow.schemas import (
    CreateTaskRequest,
    MoveRequest,
    SubtaskRequest,
    UpdateSubtaskRequest,
    UpdateTaskRequest,
)
from kanbanflow.services import tasks as task_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/{card_id}/tasks", status_code=201)
async def create_task(
    card_id: str,
    req: CreateTaskRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a task. With dependsOn it starts locked until that task is done."""
    logger.debug(f"Creating task on card {card_id}: title={req.title}, dependsOn={req.dependsOn}")
    intent = intents.CreateTask(
        title=req.title,
        description=req.description,
        priority=req.priority,
        due_date=req.dueDate,
        assigned_to=req.assignedTo,
        depends_on=req.dependsOn,
        auto_assign_on_unlock=req.autoAssignOnUnlock,
        assign_to_on_unlock=req.assignToOnUnlock,
        position=req.position,
    )
    return await task_service.create_task(session, actor, card_id, intent)


@router.get("/{card_id}/tasks/{task_id}")
async def get_task(
    card_id: str,
    task_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Task with its dependency chain, whether it can start, and progress."""
    return await task_service.get_task(session, actor, card_id, task_id)


@router.put("/{card_id}/tasks/{task_id}")
async def update_task(
    card_id: str,
    task_id: str,
    req: UpdateTaskRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Update task fields. ``completed`` completes or reopens the task."""
    changes = req.to_changes()
    logger.debug(f"Updating task {task_id}: fields={sorted(changes)}")
    return await task_service.update_task(session, actor, card_id, task_id, changes)


@router.delete("/{card_id}/tasks/{task_id}")
async def delete_task(
    card_id: str,
    task_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a task. Tasks waiting on it are released."""
    return await task_service.delete_task(session, actor, card_id, task_id)


@router.post("/{card_id}/tasks/{task_id}/move")
async def reorder_task(
    card_id: str,
    task_id: str,
    req: MoveRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await task_service.reorder_task(session, actor, card_id, task_id, req.position)


@router.post("/{card_id}/tasks/{task_id}/subtasks", status_code=201)
async def add_subtask(
    card_id: str,
    task_id: str,
    req: SubtaskRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await task_service.add_subtask(session, actor, card_id, task_id, req.text, req.position)


@router.put("/{card_id}/tasks/{task_id}/subtasks/{subtask_id}")
async def update_subtask(
    card_id: str,
    task_id: str,
    subtask_id: str,
    req: UpdateSubtaskRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await task_service.update_subtask(
        session,
        actor,
        card_id,
        task_id,
        subtask_id,
        text=req.text,
        completed=req.completed,
        position=req.position,
    )


@router.delete("/{card_id}/tasks/{task_id}/subtasks/{subtask_id}")
async def delete_subtask(
    card_id: str,
    task_id: str,
    subtask_id: str,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_async_session),
):
    return await task_service.delete_subtask(session, actor, card_id, task_id, subtask_id)
