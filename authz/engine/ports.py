"""
Storage and directory ports consumed by the engine.

The engine depends only on these protocols. `authz.storage.sql` provides the
SQLAlchemy implementation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from typing import Protocol

from .types import Permission, PermissionOverride, Role, RoleAssignment


class SubjectDirectory(Protocol):
    """Identity directory: the engine only needs to know whether a subject exists."""

    def exists(self, subject_id: str) -> bool: ...


class PermissionRepository(Protocol):
    def get(self, permission_id: str) -> Permission | None: ...

    def get_by_key(self, resource: str, action: str) -> Permission | None: ...

    def get_by_name(self, name: str) -> Permission | None: ...

    def get_many(self, permission_ids: Iterable[str]) -> list[Permission]: ...

    def list_all(self) -> list[Permission]: ...

    def add(self, permission: Permission) -> Permission: ...


class RoleRepository(Protocol):
    def get(self, role_id: str) -> Role | None: ...

    def get_by_name(self, name: str) -> Role | None: ...

    def list_all(self) -> list[Role]: ...

    def list_children(self, role_id: str) -> list[Role]: ...

    def add(self, role: Role) -> Role: ...

    def update(self, role: Role) -> Role: ...

    def delete(self, role_id: str) -> None: ...


class AssignmentRepository(Protocol):
    def get(self, assignment_id: str) -> RoleAssignment | None: ...

    def find(
        self,
        subject_id: str,
        role_id: str,
        context_type: str | None,
        context_id: str | None,
    ) -> RoleAssignment | None: ...

    def list_active_for_subject(self, subject_id: str) -> list[RoleAssignment]: ...

    def count_for_role(self, role_id: str) -> int: ...

    def add(self, assignment: RoleAssignment) -> RoleAssignment: ...

    def delete(self, assignment_id: str) -> None: ...


class OverrideRepository(Protocol):
    def get(self, subject_id: str, resource: str, action: str) -> PermissionOverride | None: ...

    def list_for_subject(self, subject_id: str) -> list[PermissionOverride]: ...

    def upsert(self, override: PermissionOverride) -> PermissionOverride: ...

    def delete(self, subject_id: str, resource: str, action: str) -> bool: ...


class UnitOfWork(Protocol):
    """One transaction over all repositories. Leaving the block without commit rolls back."""

    permissions: PermissionRepository
    roles: RoleRepository
    assignments: AssignmentRepository
    overrides: OverrideRepository

    def __enter__(self) -> UnitOfWork: ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def commit(self) -> None: ...


UnitOfWorkFactory = Callable[[], AbstractContextManager[UnitOfWork]]
