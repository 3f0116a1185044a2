"""Hierarchical permission resolution: card -> list -> board -> global role.

All checks are pure functions over already-loaded rows. Callers raise
``Forbidden`` (see ``require``) when a check fails.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from kanbanflow.engine.errors import Forbidden, ValidationError


class GlobalRole(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    HR = "hr"
    EMPLOYEE = "employee"
    CLIENT = "client"


class BoardRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class CardRole(str, Enum):
    VIEWER = "viewer"
    COMMENTER = "commenter"
    CONTRIBUTOR = "contributor"
    LEAD = "lead"
    PROJECT_MANAGER = "project-manager"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE_MEMBERS = "manage_members"


_ALL = frozenset(Action)

CAPABILITIES: dict[Enum, frozenset] = {
    BoardRole.OWNER: _ALL,
    BoardRole.ADMIN: _ALL,
    BoardRole.EDITOR: frozenset({Action.READ, Action.WRITE, Action.DELETE}),
    BoardRole.VIEWER: frozenset({Action.READ}),
    CardRole.VIEWER: frozenset({Action.READ}),
    CardRole.COMMENTER: frozenset({Action.READ}),
    CardRole.CONTRIBUTOR: frozenset({Action.READ, Action.WRITE}),
    CardRole.LEAD: _ALL,
    CardRole.PROJECT_MANAGER: _ALL,
}

BYPASS_ROLES = frozenset({GlobalRole.SUPERADMIN, GlobalRole.ADMIN})


@dataclass(frozen=True)
class ActorContext:
    """The authenticated caller, passed explicitly into every operation."""

    user_id: str
    global_role: GlobalRole

    @classmethod
    def of(cls, user_id: str, global_role: str) -> "ActorContext":
        if not user_id:
            raise ValidationError("user id is required", field="userId")
        try:
            role = GlobalRole(global_role)
        except ValueError:
            raise ValidationError(f"Unknown role '{global_role}'", field="role")
        return cls(user_id=user_id, global_role=role)

    @property
    def bypasses(self) -> bool:
        return self.global_role in BYPASS_ROLES


@dataclass(frozen=True)
class Scope:
    """What a check is about. ``card`` set means a card-scoped check."""

    board: Any
    list: Optional[Any] = None
    card: Optional[Any] = None


def board_role_of(user_id: str, board: Any) -> Optional[BoardRole]:
    """Board role of ``user_id``; the creator counts as owner."""
    if board.created_by == user_id:
        return BoardRole.OWNER
    for member in board.members:
        if member.user_id == user_id:
            return BoardRole(member.role)
    return None


def card_role_of(user_id: str, card: Any) -> Optional[CardRole]:
    for member in card.members:
        if member.user_id == user_id:
            return CardRole(member.role)
    return None


def _effective_role(actor: ActorContext, scope: Scope) -> Optional[Enum]:
    if scope.card is not None:
        card_role = card_role_of(actor.user_id, scope.card)
        if card_role is not None:
            return card_role
    return board_role_of(actor.user_id, scope.board)


def has_access(actor: ActorContext, scope: Scope) -> bool:
    """True when the actor may see anything at ``scope``.

    Card members without board membership (guests) reach that card only.
    """
    if actor.bypasses:
        return True
    return _effective_role(actor, scope) is not None


def has_permission(actor: ActorContext, action: Action, scope: Scope) -> bool:
    if actor.bypasses:
        return True
    role = _effective_role(actor, scope)
    if role is None:
        return False
    return Action(action) in CAPABILITIES[role]


def require(actor: ActorContext, action: Action, scope: Scope) -> None:
    """Raise ``Forbidden`` unless the actor holds ``action`` at ``scope``."""
    if not has_permission(actor, action, scope):
        raise Forbidden(f"Not allowed to {Action(action).value} here")
