from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from authz.engine import UNSET, AssignmentState, OverrideEntry, RolePatch

# Surrounding whitespace is dropped first, so "   " is rejected as empty.
Key = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class PermissionCreate(BaseModel):
    resource: Key
    action: Key
    name: str | None = Field(default=None, max_length=150)
    description: str | None = None


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    resource: str
    action: str
    name: str
    description: str | None


class RoleCreate(BaseModel):
    name: Key
    description: str | None = None
    parent_role_id: str | None = None
    permission_ids: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """Only fields present in the request body are changed; `parent_role_id: null` clears the parent."""

    name: Key | None = None
    description: str | None = None
    parent_role_id: str | None = None
    permission_ids: list[str] | None = None

    def to_patch(self) -> RolePatch:
        sent = self.model_fields_set
        return RolePatch(
            name=self.name if self.name is not None else UNSET,
            description=self.description if "description" in sent else UNSET,
            parent_role_id=self.parent_role_id if "parent_role_id" in sent else UNSET,
            permission_ids=tuple(self.permission_ids) if self.permission_ids is not None else UNSET,
        )


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    parent_role_id: str | None
    is_system_role: bool
    permissions: list[PermissionOut]

    @field_validator("permissions", mode="before")
    @classmethod
    def _stable_order(cls, value):
        return sorted(value, key=lambda p: (p.resource, p.action)) if isinstance(value, (set, frozenset)) else value


class AssignRoleIn(BaseModel):
    role_id: str
    subject_id: str
    context_type: str | None = Field(default=None, max_length=50)
    context_id: str | None = Field(default=None, max_length=100)
    valid_from: datetime | None = None
    valid_until: datetime | None = None


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    role_id: str
    subject_id: str
    granted_by: str
    context_type: str | None
    context_id: str | None
    valid_from: datetime
    valid_until: datetime | None
    is_active: bool
    state: AssignmentState | None = None


class DelegateIn(BaseModel):
    to_subject_id: str
    source_assignment_id: str
    valid_until: datetime


class OverrideEntryIn(BaseModel):
    resource: Key
    action: Key
    granted: bool = True

    def to_entry(self) -> OverrideEntry:
        return OverrideEntry(resource=self.resource, action=self.action, granted=self.granted)


class OverridesUpdate(BaseModel):
    permissions: list[OverrideEntryIn]


class OverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subject_id: str
    resource: str
    action: str
    granted: bool
    granted_by: str | None


class RolePermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    resource: str
    action: str
    source_role_name: str


class SubjectPermissionsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subject_id: str
    role_permissions: list[RolePermissionOut]
    overrides: list[OverrideOut]


class PermissionCheckOut(BaseModel):
    has_permission: bool
