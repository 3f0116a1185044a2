"""Dense 1..N ordering for sibling collections.

Every function works on a list of objects exposing ``id`` and ``position``
attributes and mutates positions in place. Items are never added to or removed
from the caller's persistence here; callers attach/detach the ORM rows.
"""
from typing import Any, Optional, Sequence

from kanbanflow.engine.errors import NotFound


def _find(items: Sequence[Any], item_id: str) -> Any:
    for item in items:
        if item.id == item_id:
            return item
    raise NotFound(f"Item {item_id} not found")


def _clamp(position: int, upper: int) -> int:
    return max(1, min(position, upper))


def ordered(items: Sequence[Any]) -> list:
    """Items sorted by position."""
    return sorted(items, key=lambda i: i.position)


def renumber(items: Sequence[Any]) -> list:
    """Rewrite positions to 1..N keeping the current relative order."""
    result = ordered(items)
    for index, item in enumerate(result, start=1):
        item.position = index
    return result


def insert(items: Sequence[Any], new_item: Any, position: Optional[int] = None) -> int:
    """Assign ``new_item`` a slot among ``items`` and return it.

    Without ``position`` the item is appended at max+1. With it, existing items
    at or after the slot shift down by one. ``items`` must not contain
    ``new_item``.
    """
    size = len(items) + 1
    if position is None:
        assigned = max((i.position for i in items), default=0) + 1
    else:
        assigned = _clamp(position, size)
        for item in items:
            if item.position >= assigned:
                item.position += 1
    new_item.position = assigned
    return assigned


def move(items: Sequence[Any], item_id: str, new_position: int) -> list:
    """Move one item within its own collection; returns items in order."""
    target = _find(items, item_id)
    old_position = target.position
    new_position = _clamp(new_position, len(items))
    if new_position == old_position:
        return ordered(items)

    for item in items:
        if item is target:
            continue
        if old_position < new_position and old_position < item.position <= new_position:
            item.position -= 1
        elif new_position < old_position and new_position <= item.position < old_position:
            item.position += 1
    target.position = new_position
    return ordered(items)


def remove(items: Sequence[Any], item_id: str) -> list:
    """Close the gap left by ``item_id``; returns the remaining items in order."""
    target = _find(items, item_id)
    remaining = [i for i in items if i is not target]
    for item in remaining:
        if item.position > target.position:
            item.position -= 1
    return ordered(remaining)


def move_across(
    source: Sequence[Any],
    target: Sequence[Any],
    item_id: str,
    new_position: Optional[int] = None,
) -> tuple[list, list]:
    """Move an item from ``source`` into ``target``.

    Closes the gap in ``source`` and opens a slot in ``target`` (appending when
    ``new_position`` is None). Returns ``(source, target)`` in position order,
    with the moved item included in the target list.
    """
    moved = _find(source, item_id)
    remaining = remove(source, item_id)
    insert(target, moved, new_position)
    return remaining, ordered([*target, moved])
