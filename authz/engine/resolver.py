"""
The access decision.

`has_permission` answers one question per call:

1. An exact override for (subject, resource, action) decides alone.
2. Otherwise every active assignment whose validity window contains "now"
   and whose context fits the request is expanded through the role
   hierarchy. Context-matching assignments are tried before global ones.
3. The first permission covering (resource, action), wildcards included,
   allows. Nothing matching means deny.

A denial is a plain False. Callers get no explanation of why.
"""

from __future__ import annotations

from datetime import datetime
import logging

from .errors import InvalidStateError, NotFoundError
from .hierarchy import CachedRoleLookup, walk_hierarchy
from .ports import SubjectDirectory, UnitOfWorkFactory
from .types import (
    Clock,
    RoleAssignment,
    RolePermissionGrant,
    SubjectPermissions,
    as_utc,
    utcnow,
)

logger = logging.getLogger(__name__)


def eligible_assignments(
    assignments: list[RoleAssignment],
    context_id: str | None,
    now: datetime,
) -> list[RoleAssignment]:
    """
    Valid-now assignments that apply to `context_id`, context-matching first.

    Scoped assignments for another context (or when no context is given) are
    dropped entirely.
    """

    matching: list[RoleAssignment] = []
    global_: list[RoleAssignment] = []
    for assignment in assignments:
        if not assignment.is_active or not assignment.is_valid_at(now):
            continue
        if assignment.is_global:
            global_.append(assignment)
        elif context_id is not None and assignment.context_id == context_id:
            matching.append(assignment)
    return matching + global_


class Resolver:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        directory: SubjectDirectory,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._directory = directory
        self._clock = clock

    def has_permission(
        self,
        subject_id: str,
        resource: str,
        action: str,
        context_id: str | None = None,
    ) -> bool:
        with self._uow_factory() as uow:
            override = uow.overrides.get(subject_id, resource, action)
            if override is not None:
                logger.debug(
                    "AUTHZ: override subject=%s resource=%s action=%s granted=%s",
                    subject_id,
                    resource,
                    action,
                    override.granted,
                )
                return override.granted

            assignments = uow.assignments.list_active_for_subject(subject_id)
            if not assignments:
                logger.debug("AUTHZ: no assignments subject=%s", subject_id)
                return False

            now = as_utc(self._clock())
            roles = CachedRoleLookup(uow.roles.get)
            for assignment in eligible_assignments(assignments, context_id, now):
                try:
                    permissions = roles.effective_permissions(assignment.role_id)
                except InvalidStateError:
                    logger.exception(
                        "AUTHZ: skipping assignment id=%s with corrupt role hierarchy",
                        assignment.id,
                    )
                    continue
                if any(p.matches(resource, action) for p in permissions):
                    logger.debug(
                        "AUTHZ: allowed subject=%s resource=%s action=%s context=%s via assignment=%s",
                        subject_id,
                        resource,
                        action,
                        context_id,
                        assignment.id,
                    )
                    return True

        logger.debug(
            "AUTHZ: denied subject=%s resource=%s action=%s context=%s",
            subject_id,
            resource,
            action,
            context_id,
        )
        return False

    def all_permissions_for_subject(self, subject_id: str) -> SubjectPermissions:
        """
        Everything reachable through assignments valid right now, tagged with
        the role that carries it, plus the raw overrides. For audit and admin
        screens. Expired and not-yet-started assignments contribute nothing.
        """

        if not self._directory.exists(subject_id):
            raise NotFoundError("subject", subject_id)

        now = as_utc(self._clock())
        grants: list[RolePermissionGrant] = []
        seen: set[tuple[str, str, str]] = set()
        with self._uow_factory() as uow:
            roles = CachedRoleLookup(uow.roles.get)
            for assignment in uow.assignments.list_active_for_subject(subject_id):
                if not assignment.is_valid_at(now):
                    continue
                role = roles(assignment.role_id)
                if role is None:
                    continue
                for member in walk_hierarchy(role, roles):
                    for permission in sorted(member.permissions, key=lambda p: p.key):
                        key = (permission.resource, permission.action, member.name)
                        if key in seen:
                            continue
                        seen.add(key)
                        grants.append(RolePermissionGrant(*key))
            overrides = uow.overrides.list_for_subject(subject_id)

        return SubjectPermissions(
            subject_id=subject_id,
            role_permissions=tuple(grants),
            overrides=tuple(sorted(overrides, key=lambda o: (o.resource, o.action))),
        )
