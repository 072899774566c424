"""Assignment store: which subject holds which role, where and when."""

from __future__ import annotations

from datetime import datetime
import logging
import uuid

from .errors import ConflictError, NotFoundError
from .ports import SubjectDirectory, UnitOfWork, UnitOfWorkFactory
from .types import Clock, RoleAssignment, as_utc, utcnow

logger = logging.getLogger(__name__)


def create_assignment(
    uow: UnitOfWork,
    *,
    role_id: str,
    subject_id: str,
    granted_by: str,
    context_type: str | None,
    context_id: str | None,
    valid_from: datetime,
    valid_until: datetime | None,
) -> RoleAssignment:
    """
    Insert a new assignment inside an open unit of work.

    The existence check gives a clean error in the common case; the storage
    unique constraint settles concurrent inserts of the same tuple.
    """

    if uow.assignments.find(subject_id, role_id, context_type, context_id) is not None:
        raise ConflictError(
            f"subject {subject_id!r} already holds role {role_id!r} "
            f"in context ({context_type!r}, {context_id!r})"
        )
    return uow.assignments.add(
        RoleAssignment(
            id=str(uuid.uuid4()),
            role_id=role_id,
            subject_id=subject_id,
            granted_by=granted_by,
            context_type=context_type,
            context_id=context_id,
            valid_from=as_utc(valid_from),
            valid_until=as_utc(valid_until),
            is_active=True,
        )
    )


class AssignmentStore:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        directory: SubjectDirectory,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._directory = directory
        self._clock = clock

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
        if not self._directory.exists(subject_id):
            raise NotFoundError("subject", subject_id)

        with self._uow_factory() as uow:
            if uow.roles.get(role_id) is None:
                raise NotFoundError("role", role_id)
            assignment = create_assignment(
                uow,
                role_id=role_id,
                subject_id=subject_id,
                granted_by=granted_by,
                context_type=context_type,
                context_id=context_id,
                valid_from=valid_from or self._clock(),
                valid_until=valid_until,
            )
            uow.commit()

        logger.info(
            "Assigned role=%s subject=%s context=%s:%s by=%s",
            role_id,
            subject_id,
            context_type,
            context_id,
            granted_by,
        )
        return assignment

    def revoke(self, assignment_id: str) -> None:
        with self._uow_factory() as uow:
            assignment = uow.assignments.get(assignment_id)
            if assignment is None:
                raise NotFoundError("assignment", assignment_id)
            uow.assignments.delete(assignment_id)
            uow.commit()

        logger.info(
            "Revoked assignment id=%s role=%s subject=%s",
            assignment_id,
            assignment.role_id,
            assignment.subject_id,
        )

    def get_assignment(self, assignment_id: str) -> RoleAssignment:
        with self._uow_factory() as uow:
            assignment = uow.assignments.get(assignment_id)
        if assignment is None:
            raise NotFoundError("assignment", assignment_id)
        return assignment

    def list_for_subject(self, subject_id: str) -> list[RoleAssignment]:
        """Active rows only; the validity window is checked at resolution time."""
        with self._uow_factory() as uow:
            return uow.assignments.list_active_for_subject(subject_id)
