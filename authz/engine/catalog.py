"""Permission catalog: append-only registry of (resource, action) pairs."""

from __future__ import annotations

import logging
import uuid

from .errors import ConflictError, InvalidInputError, NotFoundError
from .ports import UnitOfWorkFactory
from .types import Permission

logger = logging.getLogger(__name__)


class PermissionCatalog:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def create_permission(
        self,
        resource: str,
        action: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Permission:
        resource = resource.strip()
        action = action.strip()
        if not resource or not action:
            raise InvalidInputError("resource and action must be non-empty")
        name = (name or f"{resource}:{action}").strip()

        with self._uow_factory() as uow:
            if uow.permissions.get_by_key(resource, action) is not None:
                raise ConflictError(f"permission ({resource!r}, {action!r}) already exists")
            if uow.permissions.get_by_name(name) is not None:
                raise ConflictError(f"permission named {name!r} already exists")

            permission = uow.permissions.add(
                Permission(
                    id=str(uuid.uuid4()),
                    resource=resource,
                    action=action,
                    name=name,
                    description=description,
                )
            )
            uow.commit()

        logger.info("Created permission name=%s resource=%s action=%s", name, resource, action)
        return permission

    def get_permission(self, permission_id: str) -> Permission:
        with self._uow_factory() as uow:
            permission = uow.permissions.get(permission_id)
        if permission is None:
            raise NotFoundError("permission", permission_id)
        return permission

    def list_permissions(self) -> list[Permission]:
        """All permissions ordered by (resource, action)."""
        with self._uow_factory() as uow:
            permissions = uow.permissions.list_all()
        return sorted(permissions, key=lambda p: p.key)
