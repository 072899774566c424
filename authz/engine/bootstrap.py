"""
RBAC bootstrap from YAML.

Provisions the permission catalog and the default roles once, at startup or
from a script. Applying the same file twice is a no-op.

Expected shape:

    permissions:
      reviews.read:
        resource: reviews
        action: read
        description: Read reviews
      everything:
        resource: "*"
        action: "*"

    roles:
      employee:
        system: true
        permissions: [reviews.read]
      manager:
        extends: employee
        permissions: [analytics.read]

A permission key is also its display name. Roles are created parents first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Mapping

import yaml

from .service import AuthorizationService

logger = logging.getLogger(__name__)


# ---- Data structures -----------------------------------------------------------------


@dataclass(frozen=True)
class PermissionDef:
    name: str
    resource: str
    action: str
    description: str | None = None


@dataclass(frozen=True)
class RoleDef:
    name: str
    permissions: frozenset[str]
    extends: str | None = None
    description: str | None = None
    system: bool = False


@dataclass(frozen=True)
class BootstrapConfig:
    permissions: Mapping[str, PermissionDef]
    roles: Mapping[str, RoleDef]


@dataclass
class BootstrapReport:
    created_permissions: list[str] = field(default_factory=list)
    created_roles: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class BootstrapConfigError(ValueError):
    """Raised when the bootstrap YAML is invalid."""


# ---- Loader --------------------------------------------------------------------------


def load_bootstrap_config(path: Path) -> BootstrapConfig:
    raw_text = path.read_text(encoding="utf-8")
    return parse_bootstrap_config(yaml.safe_load(raw_text) or {})


def parse_bootstrap_config(raw: Mapping) -> BootstrapConfig:
    if not isinstance(raw, dict):
        raise BootstrapConfigError("bootstrap config must be a mapping")

    perms_raw = raw.get("permissions") or {}
    roles_raw = raw.get("roles") or {}

    if not isinstance(perms_raw, dict):
        raise BootstrapConfigError("permissions must be a mapping")
    if not isinstance(roles_raw, dict):
        raise BootstrapConfigError("roles must be a mapping")

    permissions: dict[str, PermissionDef] = {}
    seen_keys: dict[tuple[str, str], str] = {}
    for perm_name, perm_val in perms_raw.items():
        if not isinstance(perm_val, dict):
            raise BootstrapConfigError(f"permission {perm_name!r} must be a mapping")
        resource = str(perm_val.get("resource", "")).strip()
        action = str(perm_val.get("action", "")).strip()
        if not resource or not action:
            raise BootstrapConfigError(f"permission {perm_name!r} requires resource and action")
        if (resource, action) in seen_keys:
            raise BootstrapConfigError(
                f"permission {perm_name!r} duplicates ({resource!r}, {action!r}) "
                f"of {seen_keys[(resource, action)]!r}"
            )
        seen_keys[(resource, action)] = perm_name
        description = perm_val.get("description")
        permissions[perm_name] = PermissionDef(
            name=str(perm_name),
            resource=resource,
            action=action,
            description=str(description) if description is not None else None,
        )

    roles: dict[str, RoleDef] = {}
    for role_name, role_val in roles_raw.items():
        if not isinstance(role_val, dict):
            raise BootstrapConfigError(f"role {role_name!r} must be a mapping")
        extends = role_val.get("extends")
        if extends is not None:
            extends = str(extends).strip() or None
        perms_list = role_val.get("permissions") or []
        if not isinstance(perms_list, list):
            raise BootstrapConfigError(f"role {role_name!r}.permissions must be a list when present")
        description = role_val.get("description")

        roles[role_name] = RoleDef(
            name=str(role_name),
            permissions=frozenset(str(p) for p in perms_list),
            extends=extends,
            description=str(description) if description is not None else None,
            system=bool(role_val.get("system", False)),
        )

    for role in roles.values():
        if role.extends and role.extends not in roles:
            raise BootstrapConfigError(f"role {role.name!r} extends unknown role {role.extends!r}")
        unknown = role.permissions.difference(permissions.keys())
        if unknown:
            raise BootstrapConfigError(f"role {role.name!r} references unknown permissions: {sorted(unknown)}")

    config = BootstrapConfig(permissions=permissions, roles=roles)
    creation_order(config)
    return config


def creation_order(config: BootstrapConfig) -> list[RoleDef]:
    """
    Roles ordered so that every parent precedes its children.

    Raises BootstrapConfigError on a cycle in `extends`.
    """

    ordered: list[RoleDef] = []
    done: set[str] = set()
    visiting: set[str] = set()

    def visit(role_name: str) -> None:
        if role_name in done:
            return
        if role_name in visiting:
            raise BootstrapConfigError(f"cycle detected in role inheritance at {role_name!r}")
        visiting.add(role_name)
        role = config.roles[role_name]
        if role.extends:
            visit(role.extends)
        visiting.remove(role_name)
        done.add(role_name)
        ordered.append(role)

    for name in config.roles:
        visit(name)
    return ordered


# ---- Apply ---------------------------------------------------------------------------


def apply_bootstrap(service: AuthorizationService, config: BootstrapConfig) -> BootstrapReport:
    """Create whatever permissions and roles are missing; leave existing ones alone."""

    report = BootstrapReport()

    existing_perms = {p.key: p for p in service.list_permissions()}
    perm_ids: dict[str, str] = {}
    for perm in config.permissions.values():
        current = existing_perms.get((perm.resource, perm.action))
        if current is None:
            current = service.create_permission(
                perm.resource,
                perm.action,
                name=perm.name,
                description=perm.description,
            )
            report.created_permissions.append(perm.name)
        else:
            report.skipped.append(f"permission:{perm.name}")
        perm_ids[perm.name] = current.id

    role_ids = {r.name: r.id for r in service.list_roles()}
    for role in creation_order(config):
        if role.name in role_ids:
            report.skipped.append(f"role:{role.name}")
            continue
        created = service.create_role(
            role.name,
            description=role.description,
            parent_role_id=role_ids[role.extends] if role.extends else None,
            permission_ids=[perm_ids[p] for p in sorted(role.permissions)],
            is_system_role=role.system,
        )
        role_ids[role.name] = created.id
        report.created_roles.append(role.name)

    logger.info(
        "RBAC bootstrap: created %d permission(s), %d role(s), skipped %d",
        len(report.created_permissions),
        len(report.created_roles),
        len(report.skipped),
    )
    return report
