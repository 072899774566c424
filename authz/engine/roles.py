"""
Role graph: named roles with direct permissions and an optional parent.

Inheritance is a single-parent chain. Cycles are rejected on write and
detected on read (see `hierarchy.walk_hierarchy`).
"""

from __future__ import annotations

from collections.abc import Iterable
import dataclasses
import logging
import uuid

from .errors import ConflictError, ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError
from .hierarchy import union_permissions, walk_hierarchy, would_create_cycle
from .ports import UnitOfWork, UnitOfWorkFactory
from .types import UNSET, Permission, Role, RolePatch

logger = logging.getLogger(__name__)


def _resolve_permissions(uow: UnitOfWork, permission_ids: Iterable[str]) -> frozenset[Permission]:
    wanted = set(permission_ids)
    found = uow.permissions.get_many(wanted)
    missing = wanted.difference(p.id for p in found)
    if missing:
        raise NotFoundError("permission", sorted(missing)[0])
    return frozenset(found)


class RoleGraph:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    # ---- Reads -----------------------------------------------------------------------

    def get_role(self, role_id: str) -> Role:
        with self._uow_factory() as uow:
            role = uow.roles.get(role_id)
        if role is None:
            raise NotFoundError("role", role_id)
        return role

    def list_roles(self) -> list[Role]:
        with self._uow_factory() as uow:
            roles = uow.roles.list_all()
        return sorted(roles, key=lambda r: r.name)

    def resolve_hierarchy(self, role_id: str) -> list[Role]:
        """[role, parent, grandparent, ...]; InvalidStateError on a cycle."""
        with self._uow_factory() as uow:
            role = uow.roles.get(role_id)
            if role is None:
                raise NotFoundError("role", role_id)
            return walk_hierarchy(role, uow.roles.get)

    def effective_permissions(self, role_id: str) -> frozenset[Permission]:
        return union_permissions(self.resolve_hierarchy(role_id))

    # ---- Mutations -------------------------------------------------------------------

    def create_role(
        self,
        name: str,
        description: str | None = None,
        parent_role_id: str | None = None,
        permission_ids: Iterable[str] = (),
        is_system_role: bool = False,
    ) -> Role:
        name = name.strip()
        if not name:
            raise InvalidInputError("role name must be non-empty")

        with self._uow_factory() as uow:
            permissions = _resolve_permissions(uow, permission_ids)
            if parent_role_id is not None and uow.roles.get(parent_role_id) is None:
                raise NotFoundError("role", parent_role_id)
            if uow.roles.get_by_name(name) is not None:
                raise ConflictError(f"role named {name!r} already exists")

            role = uow.roles.add(
                Role(
                    id=str(uuid.uuid4()),
                    name=name,
                    description=description,
                    parent_role_id=parent_role_id,
                    permissions=permissions,
                    is_system_role=is_system_role,
                )
            )
            uow.commit()

        logger.info(
            "Created role name=%s parent=%s permissions=%d system=%s",
            role.name,
            role.parent_role_id,
            len(role.permissions),
            role.is_system_role,
        )
        return role

    def update_role(self, role_id: str, patch: RolePatch) -> Role:
        with self._uow_factory() as uow:
            role = uow.roles.get(role_id)
            if role is None:
                raise NotFoundError("role", role_id)
            if role.is_system_role:
                raise ForbiddenError(f"system role {role.name!r} cannot be modified")

            changes: dict[str, object] = {}

            if patch.name is not UNSET and patch.name != role.name:
                new_name = patch.name.strip()
                if not new_name:
                    raise InvalidInputError("role name must be non-empty")
                existing = uow.roles.get_by_name(new_name)
                if existing is not None and existing.id != role.id:
                    raise ConflictError(f"role named {new_name!r} already exists")
                changes["name"] = new_name

            if patch.description is not UNSET:
                changes["description"] = patch.description

            if patch.parent_role_id is not UNSET:
                parent_id = patch.parent_role_id
                if parent_id is not None:
                    if uow.roles.get(parent_id) is None:
                        raise NotFoundError("role", parent_id)
                    if would_create_cycle(role.id, parent_id, uow.roles.get):
                        raise InvalidStateError(
                            f"making {parent_id!r} the parent of {role.name!r} would create a cycle"
                        )
                changes["parent_role_id"] = parent_id

            if patch.permission_ids is not UNSET:
                changes["permissions"] = _resolve_permissions(uow, patch.permission_ids)

            updated = uow.roles.update(dataclasses.replace(role, **changes))
            uow.commit()

        logger.info("Updated role id=%s fields=%s", role_id, sorted(changes))
        return updated

    def delete_role(self, role_id: str) -> None:
        with self._uow_factory() as uow:
            role = uow.roles.get(role_id)
            if role is None:
                raise NotFoundError("role", role_id)
            if role.is_system_role:
                raise ForbiddenError(f"system role {role.name!r} cannot be deleted")
            assigned = uow.assignments.count_for_role(role_id)
            if assigned:
                raise ConflictError(f"role {role.name!r} is referenced by {assigned} assignment(s)")
            children = uow.roles.list_children(role_id)
            if children:
                raise ConflictError(
                    f"role {role.name!r} is the parent of {sorted(c.name for c in children)}"
                )
            uow.roles.delete(role_id)
            uow.commit()

        logger.info("Deleted role id=%s name=%s", role_id, role.name)
