from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from authz.api.dependencies import get_current_subject, get_service, require_permission
from authz.engine import AuthorizationService, RoleAssignment
from authz.engine.types import utcnow
from authz.schemas.rbac import (
    AssignmentOut,
    AssignRoleIn,
    DelegateIn,
    OverrideOut,
    OverridesUpdate,
    PermissionCheckOut,
    PermissionCreate,
    PermissionOut,
    RoleCreate,
    RoleOut,
    RoleUpdate,
    SubjectPermissionsOut,
)

router = APIRouter(prefix="/rbac", tags=["rbac"])


def _assignment_out(assignment: RoleAssignment) -> AssignmentOut:
    out = AssignmentOut.model_validate(assignment)
    out.state = assignment.state_at(utcnow())
    return out


# ---- Permissions ---------------------------------------------------------------------


@router.post("/permissions", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
def create_permission(
    body: PermissionCreate,
    _: str = Depends(require_permission("rbac", "create_permission")),
    service: AuthorizationService = Depends(get_service),
):
    permission = service.create_permission(body.resource, body.action, name=body.name, description=body.description)
    return PermissionOut.model_validate(permission)


@router.get("/permissions", response_model=list[PermissionOut])
def list_permissions(service: AuthorizationService = Depends(get_service)):
    return [PermissionOut.model_validate(p) for p in service.list_permissions()]


# ---- Roles ---------------------------------------------------------------------------


@router.post("/roles", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleCreate,
    _: str = Depends(require_permission("rbac", "create_role")),
    service: AuthorizationService = Depends(get_service),
):
    # Custom roles only; system roles come from the bootstrap file.
    role = service.create_role(
        body.name,
        description=body.description,
        parent_role_id=body.parent_role_id,
        permission_ids=body.permission_ids,
    )
    return RoleOut.model_validate(role)


@router.get("/roles", response_model=list[RoleOut])
def list_roles(service: AuthorizationService = Depends(get_service)):
    return [RoleOut.model_validate(r) for r in service.list_roles()]


@router.get("/roles/{role_id}", response_model=RoleOut)
def get_role(role_id: str, service: AuthorizationService = Depends(get_service)):
    return RoleOut.model_validate(service.get_role(role_id))


@router.patch("/roles/{role_id}", response_model=RoleOut)
def update_role(
    role_id: str,
    body: RoleUpdate,
    _: str = Depends(require_permission("rbac", "update_role")),
    service: AuthorizationService = Depends(get_service),
):
    return RoleOut.model_validate(service.update_role(role_id, body.to_patch()))


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: str,
    _: str = Depends(require_permission("rbac", "delete_role")),
    service: AuthorizationService = Depends(get_service),
) -> Response:
    service.delete_role(role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/roles/{role_id}/hierarchy", response_model=list[RoleOut])
def get_role_hierarchy(
    role_id: str,
    _: str = Depends(require_permission("rbac", "read_roles")),
    service: AuthorizationService = Depends(get_service),
):
    return [RoleOut.model_validate(r) for r in service.resolve_hierarchy(role_id)]


@router.get("/roles/{role_id}/effective-permissions", response_model=list[PermissionOut])
def get_effective_permissions(
    role_id: str,
    _: str = Depends(require_permission("rbac", "read_roles")),
    service: AuthorizationService = Depends(get_service),
):
    permissions = sorted(service.effective_permissions(role_id), key=lambda p: p.key)
    return [PermissionOut.model_validate(p) for p in permissions]


# ---- Assignments ---------------------------------------------------------------------


@router.post("/assignments", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_role(
    body: AssignRoleIn,
    granted_by: str = Depends(require_permission("rbac", "assign_role")),
    service: AuthorizationService = Depends(get_service),
):
    assignment = service.assign(
        body.role_id,
        body.subject_id,
        granted_by,
        context_type=body.context_type,
        context_id=body.context_id,
        valid_from=body.valid_from,
        valid_until=body.valid_until,
    )
    return _assignment_out(assignment)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_assignment(
    assignment_id: str,
    _: str = Depends(require_permission("rbac", "revoke_role")),
    service: AuthorizationService = Depends(get_service),
) -> Response:
    service.revoke(assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/subjects/{subject_id}/assignments", response_model=list[AssignmentOut])
def list_subject_assignments(
    subject_id: str,
    _: str = Depends(require_permission("rbac", "read_roles")),
    service: AuthorizationService = Depends(get_service),
):
    return [_assignment_out(a) for a in service.list_for_subject(subject_id)]


@router.post("/delegate", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def delegate_role(
    body: DelegateIn,
    from_subject_id: str = Depends(require_permission("rbac", "delegate_role")),
    service: AuthorizationService = Depends(get_service),
):
    assignment = service.delegate(from_subject_id, body.to_subject_id, body.source_assignment_id, body.valid_until)
    return _assignment_out(assignment)


# ---- Overrides -----------------------------------------------------------------------


@router.put("/subjects/{subject_id}/overrides", response_model=list[OverrideOut])
def set_overrides(
    subject_id: str,
    body: OverridesUpdate,
    granted_by: str = Depends(require_permission("rbac", "assign_role")),
    service: AuthorizationService = Depends(get_service),
):
    overrides = service.set_overrides(subject_id, [p.to_entry() for p in body.permissions], granted_by)
    return [OverrideOut.model_validate(o) for o in overrides]


@router.get("/subjects/{subject_id}/overrides", response_model=list[OverrideOut])
def get_overrides(
    subject_id: str,
    _: str = Depends(require_permission("rbac", "read_roles")),
    service: AuthorizationService = Depends(get_service),
):
    return [OverrideOut.model_validate(o) for o in service.get_overrides(subject_id)]


@router.delete("/subjects/{subject_id}/overrides/{resource}/{action}", status_code=status.HTTP_204_NO_CONTENT)
def remove_override(
    subject_id: str,
    resource: str,
    action: str,
    _: str = Depends(require_permission("rbac", "revoke_role")),
    service: AuthorizationService = Depends(get_service),
) -> Response:
    service.remove_override(subject_id, resource, action)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---- Decisions -----------------------------------------------------------------------


@router.get("/subjects/{subject_id}/permissions", response_model=SubjectPermissionsOut)
def all_permissions_for_subject(
    subject_id: str,
    _: str = Depends(require_permission("rbac", "read_roles")),
    service: AuthorizationService = Depends(get_service),
):
    return SubjectPermissionsOut.model_validate(service.all_permissions_for_subject(subject_id))


@router.get("/check-permission", response_model=PermissionCheckOut)
def check_permission(
    resource: str,
    action: str,
    context_id: str | None = None,
    subject_id: str = Depends(get_current_subject),
    service: AuthorizationService = Depends(get_service),
) -> PermissionCheckOut:
    return PermissionCheckOut(has_permission=service.has_permission(subject_id, resource, action, context_id))
