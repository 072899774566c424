"""
Authorization resolution engine.

Decides whether a subject may perform an action on a resource, optionally
within a context, from hierarchical roles, time-bounded assignments,
per-subject overrides and delegation.

This package has no web framework or ORM dependency; storage comes in through
the protocols in `ports`. Build an `AuthorizationService` and call
`has_permission()`.
"""

from .bootstrap import BootstrapConfig, BootstrapConfigError, apply_bootstrap, load_bootstrap_config
from .errors import AuthzError, ConflictError, ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError
from .ports import SubjectDirectory, UnitOfWork, UnitOfWorkFactory
from .service import AuthorizationService
from .types import (
    UNSET,
    WILDCARD,
    AssignmentState,
    OverrideEntry,
    Permission,
    PermissionOverride,
    Role,
    RoleAssignment,
    RolePatch,
    RolePermissionGrant,
    SubjectPermissions,
)

__all__ = [
    "AuthorizationService",
    "AssignmentState",
    "AuthzError",
    "BootstrapConfig",
    "BootstrapConfigError",
    "ConflictError",
    "ForbiddenError",
    "InvalidInputError",
    "InvalidStateError",
    "NotFoundError",
    "OverrideEntry",
    "Permission",
    "PermissionOverride",
    "Role",
    "RoleAssignment",
    "RolePatch",
    "RolePermissionGrant",
    "SubjectDirectory",
    "SubjectPermissions",
    "UNSET",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "WILDCARD",
    "apply_bootstrap",
    "load_bootstrap_config",
]
