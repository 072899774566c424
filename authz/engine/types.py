"""
Domain types for the authorization engine.

Everything here is an immutable value object. Storage adapters convert their
rows into these types, so the decision logic never touches ORM state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

WILDCARD = "*"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AssignmentState(str, Enum):
    """Lifecycle state of an assignment at a given instant."""

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Permission:
    id: str
    resource: str
    action: str
    name: str
    description: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.resource, self.action)

    def matches(self, resource: str, action: str) -> bool:
        """True if this permission covers (resource, action), honouring `*`."""
        return (self.resource == resource or self.resource == WILDCARD) and (
            self.action == action or self.action == WILDCARD
        )


@dataclass(frozen=True)
class Role:
    id: str
    name: str
    permissions: frozenset[Permission] = frozenset()
    parent_role_id: str | None = None
    description: str | None = None
    is_system_role: bool = False

    def grants(self, resource: str, action: str) -> bool:
        return any(p.matches(resource, action) for p in self.permissions)


@dataclass(frozen=True)
class RoleAssignment:
    """
    "subject holds role, scoped to context, during [valid_from, valid_until)".

    A missing `context_id` means the assignment is global.
    """

    id: str
    role_id: str
    subject_id: str
    granted_by: str
    valid_from: datetime
    valid_until: datetime | None = None
    context_type: str | None = None
    context_id: str | None = None
    is_active: bool = True

    @property
    def is_global(self) -> bool:
        return self.context_id is None

    def state_at(self, now: datetime) -> AssignmentState:
        if now < self.valid_from:
            return AssignmentState.PENDING
        if self.valid_until is not None and self.valid_until <= now:
            return AssignmentState.EXPIRED
        return AssignmentState.ACTIVE

    def is_valid_at(self, now: datetime) -> bool:
        return self.state_at(now) is AssignmentState.ACTIVE


@dataclass(frozen=True)
class PermissionOverride:
    subject_id: str
    resource: str
    action: str
    granted: bool
    granted_by: str | None = None


@dataclass(frozen=True)
class OverrideEntry:
    """One requested change for `set_overrides`."""

    resource: str
    action: str
    granted: bool = True


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


@dataclass(frozen=True)
class RolePatch:
    """
    Partial update for a role.

    Fields left at `UNSET` are not touched. `parent_role_id=None` clears the
    parent; `permission_ids` replaces the whole permission set.
    """

    name: str | _Unset = UNSET
    description: str | None | _Unset = UNSET
    parent_role_id: str | None | _Unset = UNSET
    permission_ids: tuple[str, ...] | _Unset = UNSET


@dataclass(frozen=True)
class RolePermissionGrant:
    resource: str
    action: str
    source_role_name: str


@dataclass(frozen=True)
class SubjectPermissions:
    """Reporting view of everything a subject can reach. Not used for decisions."""

    subject_id: str
    role_permissions: tuple[RolePermissionGrant, ...] = field(default_factory=tuple)
    overrides: tuple[PermissionOverride, ...] = field(default_factory=tuple)
