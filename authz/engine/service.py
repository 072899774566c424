"""
AuthorizationService: the public contract of the engine.

One instance is built per application (see `authz.main`) from a unit-of-work
factory, a subject directory and a clock. Nothing here is module-global.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from .assignments import AssignmentStore
from .catalog import PermissionCatalog
from .delegation import DelegationManager
from .overrides import OverrideStore
from .ports import SubjectDirectory, UnitOfWorkFactory
from .resolver import Resolver
from .roles import RoleGraph
from .types import (
    Clock,
    OverrideEntry,
    Permission,
    PermissionOverride,
    Role,
    RoleAssignment,
    RolePatch,
    SubjectPermissions,
    utcnow,
)


class AuthorizationService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        directory: SubjectDirectory,
        clock: Clock = utcnow,
    ) -> None:
        self.catalog = PermissionCatalog(uow_factory)
        self.roles = RoleGraph(uow_factory)
        self.assignments = AssignmentStore(uow_factory, directory, clock)
        self.overrides = OverrideStore(uow_factory, directory)
        self.resolver = Resolver(uow_factory, directory, clock)
        self.delegation = DelegationManager(uow_factory, directory, clock)

    # ---- Permission catalog ------------------------------------------------------------

    def create_permission(
        self,
        resource: str,
        action: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Permission:
        return self.catalog.create_permission(resource, action, name=name, description=description)

    def list_permissions(self) -> list[Permission]:
        return self.catalog.list_permissions()

    # ---- Role graph --------------------------------------------------------------------

    def create_role(
        self,
        name: str,
        description: str | None = None,
        parent_role_id: str | None = None,
        permission_ids: Iterable[str] = (),
        is_system_role: bool = False,
    ) -> Role:
        return self.roles.create_role(
            name,
            description=description,
            parent_role_id=parent_role_id,
            permission_ids=permission_ids,
            is_system_role=is_system_role,
        )

    def update_role(self, role_id: str, patch: RolePatch) -> Role:
        return self.roles.update_role(role_id, patch)

    def delete_role(self, role_id: str) -> None:
        self.roles.delete_role(role_id)

    def get_role(self, role_id: str) -> Role:
        return self.roles.get_role(role_id)

    def list_roles(self) -> list[Role]:
        return self.roles.list_roles()

    def resolve_hierarchy(self, role_id: str) -> list[Role]:
        return self.roles.resolve_hierarchy(role_id)

    def effective_permissions(self, role_id: str) -> frozenset[Permission]:
        return self.roles.effective_permissions(role_id)

    # ---- Assignments -------------------------------------------------------------------

    def assign(
        self,
        role_id: str,
        subject_id: str,
        granted_by: str,
        context_type: str | None = None,
        context_id: str | None = None,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
    ) -> RoleAssignment:
        return self.assignments.assign(
            role_id,
            subject_id,
            granted_by,
            context_type=context_type,
            context_id=context_id,
            valid_from=valid_from,
            valid_until=valid_until,
        )

    def revoke(self, assignment_id: str) -> None:
        self.assignments.revoke(assignment_id)

    def list_for_subject(self, subject_id: str) -> list[RoleAssignment]:
        return self.assignments.list_for_subject(subject_id)

    # ---- Overrides ---------------------------------------------------------------------

    def set_overrides(
        self,
        subject_id: str,
        entries: Iterable[OverrideEntry],
        granted_by: str,
    ) -> list[PermissionOverride]:
        return self.overrides.set_overrides(subject_id, entries, granted_by)

    def get_overrides(self, subject_id: str) -> list[PermissionOverride]:
        return self.overrides.get_overrides(subject_id)

    def remove_override(self, subject_id: str, resource: str, action: str) -> None:
        self.overrides.remove_override(subject_id, resource, action)

    # ---- Decisions ---------------------------------------------------------------------

    def has_permission(
        self,
        subject_id: str,
        resource: str,
        action: str,
        context_id: str | None = None,
    ) -> bool:
        return self.resolver.has_permission(subject_id, resource, action, context_id)

    def all_permissions_for_subject(self, subject_id: str) -> SubjectPermissions:
        return self.resolver.all_permissions_for_subject(subject_id)

    # ---- Delegation --------------------------------------------------------------------

    def delegate(
        self,
        from_subject_id: str,
        to_subject_id: str,
        source_assignment_id: str,
        valid_until: datetime,
    ) -> RoleAssignment:
        return self.delegation.delegate(from_subject_id, to_subject_id, source_assignment_id, valid_until)
