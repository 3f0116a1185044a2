"""Task lock state, auto-unlock and auto-assign-on-unlock.

Every function operates on a loaded ``Card`` whose ``tasks`` (and their
``subtasks``) are in memory, and keeps this invariant for every open task::

    task.is_locked == (task.depends_on is not None
                       and not <predecessor>.completed)

A locked task can never become completed, and a completed task is never
locked.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from kanbanflow.engine import positions
from kanbanflow.engine.errors import (
    DependencyNotFound,
    Forbidden,
    NotFound,
    ValidationError,
)
from kanbanflow.engine.permissions import ActorContext
from kanbanflow.models import Card, Subtask, Task
from kanbanflow.utils import gen_id, merge_unique, now_ms

TASK_PRIORITIES = ("low", "medium", "high")

# Fields a caller may change through update_task
TASK_FIELDS = (
    "title",
    "description",
    "priority",
    "due_date",
    "assigned_to",
    "depends_on",
    "auto_assign_on_unlock",
    "assign_to_on_unlock",
    "completed",
)


@dataclass
class UnlockedTask:
    """A dependent released by its predecessor, with the assignees it gained."""

    task: Task
    added_assignees: list[str] = field(default_factory=list)


@dataclass
class TaskChange:
    """Outcome of a task mutation, for logging, notifying and broadcasting."""

    task: Optional[Task]
    unlocked: list[UnlockedTask] = field(default_factory=list)
    relocked: list[Task] = field(default_factory=list)
    newly_assigned: list[str] = field(default_factory=list)
    completed_now: bool = False


# ═══════════════════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════════════════


def find_task(card: Card, task_id: str) -> Task:
    for task in card.tasks:
        if task.id == task_id:
            return task
    raise NotFound(f"Task {task_id} not found")


def find_subtask(task: Task, subtask_id: str) -> Subtask:
    for subtask in task.subtasks:
        if subtask.id == subtask_id:
            return subtask
    raise NotFound(f"Subtask {subtask_id} not found")


def dependents_of(card: Card, task_id: str) -> list[Task]:
    return [t for t in card.tasks if t.depends_on == task_id]


def _touch(card: Card) -> None:
    # Tasks live in their own table; dirtying the card row bumps its version
    card.updated_at = now_ms()


def _lock(task: Task, predecessor: Task) -> None:
    task.is_locked = True
    task.locked_reason = f"Waiting for: {predecessor.title}"
    task.unlocked_at = None


def _unlock(task: Task) -> UnlockedTask:
    task.is_locked = False
    task.locked_reason = ""
    task.unlocked_at = now_ms()
    added: list[str] = []
    if task.auto_assign_on_unlock and task.assign_to_on_unlock:
        added = [u for u in task.assign_to_on_unlock if u not in task.assigned_to]
        # JSON column: assign a new list so the change is tracked
        task.assigned_to = merge_unique(task.assigned_to, task.assign_to_on_unlock)
    return UnlockedTask(task=task, added_assignees=added)


def _require_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", field="title")
    return title.strip()


def _require_priority(priority: str) -> str:
    if priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"Priority must be one of {', '.join(TASK_PRIORITIES)}", field="priority"
        )
    return priority


def _find_cycle(card: Card, task_id: str, depends_on: str) -> Optional[list[str]]:
    """Path of titles if ``task_id -> depends_on`` would close a loop."""
    by_id = {t.id: t for t in card.tasks}
    path = [by_id[task_id].title]
    seen = {task_id}
    current: Optional[str] = depends_on
    while current is not None and current in by_id:
        path.append(by_id[current].title)
        if current in seen:
            return path
        seen.add(current)
        current = by_id[current].depends_on
    return None


def _resolve_dependency(card: Card, task_id: Optional[str], depends_on: str) -> Task:
    if depends_on == task_id:
        raise ValidationError("A task cannot depend on itself", field="dependsOn")
    predecessor = next((t for t in card.tasks if t.id == depends_on), None)
    if predecessor is None:
        raise DependencyNotFound(
            f"Dependency task {depends_on} not found on this card", field="dependsOn"
        )
    if task_id is not None:
        cycle = _find_cycle(card, task_id, depends_on)
        if cycle:
            raise ValidationError(
                f"Dependency would create a cycle: {' → '.join(cycle)}",
                field="dependsOn",
            )
    return predecessor


# ═══════════════════════════════════════════════════════════════════════════
# Task operations
# ═══════════════════════════════════════════════════════════════════════════


def create_task(
    card: Card,
    actor: ActorContext,
    title: str,
    description: str = "",
    priority: str = "medium",
    due_date: Optional[int] = None,
    assigned_to: Optional[list[str]] = None,
    depends_on: Optional[str] = None,
    auto_assign_on_unlock: bool = False,
    assign_to_on_unlock: Optional[list[str]] = None,
    position: Optional[int] = None,
) -> TaskChange:
    """Add a task to ``card``; locked when its predecessor is still open."""
    title = _require_title(title)
    priority = _require_priority(priority)
    predecessor = _resolve_dependency(card, None, depends_on) if depends_on else None

    now = now_ms()
    task = Task(
        id=gen_id("task_"),
        card_id=card.id,
        title=title,
        description=description or "",
        priority=priority,
        due_date=due_date,
        assigned_to=merge_unique([], assigned_to or []),
        depends_on=depends_on,
        is_locked=False,
        locked_reason="",
        unlocked_at=now,
        auto_assign_on_unlock=auto_assign_on_unlock,
        assign_to_on_unlock=merge_unique([], assign_to_on_unlock or []),
        completed=False,
        created_by=actor.user_id,
        created_at=now,
        updated_at=now,
        subtasks=[],
    )
    if predecessor is not None and not predecessor.completed:
        _lock(task, predecessor)

    positions.insert(list(card.tasks), task, position)
    card.tasks.append(task)
    _touch(card)
    return TaskChange(task=task, newly_assigned=list(task.assigned_to))


def complete_task(card: Card, task_id: str, actor: ActorContext) -> TaskChange:
    """Complete a task and release every task waiting on it.

    Raises ``Forbidden`` without touching anything when the task is locked.
    Completing an already-completed task changes nothing.
    """
    task = find_task(card, task_id)
    if task.is_locked:
        raise Forbidden(
            f"Task '{task.title}' is locked. {task.locked_reason}".strip()
        )
    if task.completed:
        return TaskChange(task=task)

    now = now_ms()
    task.completed = True
    task.completed_by = actor.user_id
    task.completed_at = now
    task.updated_at = now

    unlocked = [_unlock(t) for t in dependents_of(card, task.id) if t.is_locked]
    _touch(card)
    return TaskChange(task=task, unlocked=unlocked, completed_now=True)


def uncomplete_task(card: Card, task_id: str, actor: ActorContext) -> TaskChange:
    """Reopen a task; its open dependents lock again. Stage progress is kept."""
    task = find_task(card, task_id)
    if not task.completed:
        return TaskChange(task=task)

    task.completed = False
    task.completed_by = None
    task.completed_at = None
    task.updated_at = now_ms()

    # Finished dependents stay finished; only open ones wait again
    relocked = [t for t in dependents_of(card, task.id) if not t.completed]
    for dependent in relocked:
        _lock(dependent, task)
    _touch(card)
    return TaskChange(task=task, relocked=relocked)


def update_task(
    card: Card, task_id: str, actor: ActorContext, changes: dict
) -> TaskChange:
    """Apply field changes to a task; ``completed`` routes through completion.

    ``changes`` maps names from ``TASK_FIELDS`` to new values. A ``depends_on``
    key with value None removes the dependency. All validation runs before the
    first mutation.
    """
    task = find_task(card, task_id)
    unknown = set(changes) - set(TASK_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

    if "title" in changes:
        changes["title"] = _require_title(changes["title"])
    if "priority" in changes:
        _require_priority(changes["priority"])

    predecessor: Optional[Task] = None
    will_lock = task.is_locked
    if "depends_on" in changes:
        if changes["depends_on"]:
            predecessor = _resolve_dependency(card, task.id, changes["depends_on"])
        will_lock = predecessor is not None and not predecessor.completed
        if will_lock and task.completed and changes.get("completed") is not False:
            raise ValidationError(
                "A completed task cannot wait on an open task", field="dependsOn"
            )

    if changes.get("completed") is True and not task.completed and will_lock:
        reason = f"Waiting for: {predecessor.title}" if predecessor else task.locked_reason
        raise Forbidden(f"Task '{task.title}' is locked. {reason}".strip())

    previous_assignees = list(task.assigned_to)
    for name in ("title", "priority", "due_date", "auto_assign_on_unlock"):
        if name in changes:
            setattr(task, name, changes[name])
    if "description" in changes:
        task.description = changes["description"] or ""
    if "assigned_to" in changes:
        task.assigned_to = merge_unique([], changes["assigned_to"] or [])
    if "assign_to_on_unlock" in changes:
        task.assign_to_on_unlock = merge_unique([], changes["assign_to_on_unlock"] or [])

    if "depends_on" in changes:
        task.depends_on = changes["depends_on"] or None
        if will_lock:
            _lock(task, predecessor)
        elif task.is_locked:
            _unlock(task)
    task.updated_at = now_ms()

    result = TaskChange(task=task)
    if changes.get("completed") is True:
        result = complete_task(card, task.id, actor)
    elif changes.get("completed") is False:
        result = uncomplete_task(card, task.id, actor)
    _touch(card)

    result.newly_assigned = [u for u in task.assigned_to if u not in previous_assignees]
    return result


def delete_task(card: Card, task_id: str) -> TaskChange:
    """Remove a task and close the gap.

    Dependents lose their dependency and are released, including
    auto-assignment, as if the predecessor had completed.
    """
    task = find_task(card, task_id)
    released: list[UnlockedTask] = []
    for dependent in dependents_of(card, task.id):
        dependent.depends_on = None
        if dependent.is_locked:
            released.append(_unlock(dependent))
        dependent.updated_at = now_ms()

    positions.remove(list(card.tasks), task.id)
    card.tasks.remove(task)
    _touch(card)
    return TaskChange(task=task, unlocked=released)


def reorder_task(card: Card, task_id: str, new_position: int) -> Task:
    task = find_task(card, task_id)
    positions.move(list(card.tasks), task_id, new_position)
    _touch(card)
    return task


# ═══════════════════════════════════════════════════════════════════════════
# Subtasks (ordering only, no dependency semantics)
# ═══════════════════════════════════════════════════════════════════════════


def add_subtask(
    card: Card, task_id: str, text: str, position: Optional[int] = None
) -> Subtask:
    task = find_task(card, task_id)
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Subtask text is required", field="text")
    now = now_ms()
    subtask = Subtask(
        id=gen_id("sub_"),
        task_id=task.id,
        text=text.strip(),
        completed=False,
        created_at=now,
        updated_at=now,
    )
    positions.insert(list(task.subtasks), subtask, position)
    task.subtasks.append(subtask)
    _touch(card)
    return subtask


def update_subtask(
    card: Card,
    task_id: str,
    subtask_id: str,
    actor: ActorContext,
    text: Optional[str] = None,
    completed: Optional[bool] = None,
    position: Optional[int] = None,
) -> Subtask:
    task = find_task(card, task_id)
    subtask = find_subtask(task, subtask_id)
    if text is not None:
        if not text.strip():
            raise ValidationError("Subtask text is required", field="text")
        subtask.text = text.strip()
    if completed is not None and completed != subtask.completed:
        subtask.completed = completed
        subtask.completed_at = now_ms() if completed else None
        subtask.completed_by = actor.user_id if completed else None
    if position is not None:
        positions.move(list(task.subtasks), subtask.id, position)
    subtask.updated_at = now_ms()
    _touch(card)
    return subtask


def delete_subtask(card: Card, task_id: str, subtask_id: str) -> Subtask:
    task = find_task(card, task_id)
    subtask = find_subtask(task, subtask_id)
    positions.remove(list(task.subtasks), subtask.id)
    task.subtasks.remove(subtask)
    _touch(card)
    return subtask


# ═══════════════════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════════════════


def dependency_chain(card: Card, task_id: str) -> list[Task]:
    """Predecessors of a task, ordered from the first to the direct one."""
    by_id = {t.id: t for t in card.tasks}
    current = find_task(card, task_id)
    chain: list[Task] = []
    seen = {current.id}
    while current.depends_on and current.depends_on in by_id:
        current = by_id[current.depends_on]
        if current.id in seen:
            break
        seen.add(current.id)
        chain.append(current)
    chain.reverse()
    return chain


def can_start(card: Card, task_id: str) -> bool:
    task = find_task(card, task_id)
    if not task.depends_on:
        return True
    predecessor = next((t for t in card.tasks if t.id == task.depends_on), None)
    return predecessor is not None and predecessor.completed


def task_progress(card: Card, task_id: str) -> int:
    """Percent of subtasks done, or 0/100 from the task itself without any."""
    task = find_task(card, task_id)
    if not task.subtasks:
        return 100 if task.completed else 0
    done = sum(1 for s in task.subtasks if s.completed)
    return int(done * 100 / len(task.subtasks) + 0.5)
