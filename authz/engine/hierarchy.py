"""
Role inheritance helpers.

Roles form single-parent chains. The walk is iterative and remembers every id
it has seen, so malformed (cyclic) data ends in InvalidStateError instead of
an endless loop.
"""

from __future__ import annotations

from typing import Callable

from .errors import InvalidStateError
from .types import Permission, Role

RoleLookup = Callable[[str], "Role | None"]


def walk_hierarchy(start: Role, lookup: RoleLookup) -> list[Role]:
    """
    Return [start, parent, grandparent, ...].

    A parent id that no longer resolves ends the chain.
    """

    chain = [start]
    visited = {start.id}
    parent_id = start.parent_role_id
    while parent_id is not None:
        if parent_id in visited:
            raise InvalidStateError(
                f"cycle detected in role hierarchy of {start.name!r} at role id {parent_id!r}"
            )
        visited.add(parent_id)
        parent = lookup(parent_id)
        if parent is None:
            break
        chain.append(parent)
        parent_id = parent.parent_role_id
    return chain


def union_permissions(chain: list[Role]) -> frozenset[Permission]:
    perms: set[Permission] = set()
    for role in chain:
        perms.update(role.permissions)
    return frozenset(perms)


def would_create_cycle(role_id: str, new_parent_id: str, lookup: RoleLookup) -> bool:
    """True if making `new_parent_id` the parent of `role_id` closes a loop."""

    current: str | None = new_parent_id
    seen: set[str] = set()
    while current is not None:
        if current == role_id or current in seen:
            return True
        seen.add(current)
        parent = lookup(current)
        current = parent.parent_role_id if parent is not None else None
    return False


class CachedRoleLookup:
    """
    Memoizing lookup for the duration of one decision.

    Several assignments often share ancestors; this avoids reloading them.
    """

    def __init__(self, lookup: RoleLookup) -> None:
        self._lookup = lookup
        self._roles: dict[str, Role | None] = {}
        self._effective: dict[str, frozenset[Permission]] = {}

    def __call__(self, role_id: str) -> Role | None:
        if role_id not in self._roles:
            self._roles[role_id] = self._lookup(role_id)
        return self._roles[role_id]

    def effective_permissions(self, role_id: str) -> frozenset[Permission]:
        if role_id in self._effective:
            return self._effective[role_id]
        role = self(role_id)
        perms = frozenset() if role is None else union_permissions(walk_hierarchy(role, self))
        self._effective[role_id] = perms
        return perms
