"""Delegation: a holder hands a time-bounded copy of an assignment to someone else."""

from __future__ import annotations

from datetime import datetime
import logging

from .assignments import create_assignment
from .errors import InvalidInputError, NotFoundError
from .ports import SubjectDirectory, UnitOfWorkFactory
from .types import Clock, RoleAssignment, as_utc, utcnow

logger = logging.getLogger(__name__)


class DelegationManager:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        directory: SubjectDirectory,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._directory = directory
        self._clock = clock

    def delegate(
        self,
        from_subject_id: str,
        to_subject_id: str,
        source_assignment_id: str,
        valid_until: datetime,
    ) -> RoleAssignment:
        """
        Copy role and context of `source_assignment_id` to `to_subject_id`.

        The new assignment starts now, ends at `valid_until` and records the
        delegator as grantor. The source assignment is left as it is.

        Only an assignment the delegator holds right now can be delegated; an
        expired, pending or deactivated source is reported as not found.
        """

        now = as_utc(self._clock())
        valid_until = as_utc(valid_until)
        if valid_until is None or valid_until <= now:
            raise InvalidInputError("valid_until must be in the future")

        with self._uow_factory() as uow:
            source = uow.assignments.get(source_assignment_id)
            if source is None or source.subject_id != from_subject_id:
                raise NotFoundError("assignment", source_assignment_id)
            if not source.is_active or not source.is_valid_at(now):
                raise NotFoundError("active assignment", source_assignment_id)
            if not self._directory.exists(to_subject_id):
                raise NotFoundError("subject", to_subject_id)

            delegated = create_assignment(
                uow,
                role_id=source.role_id,
                subject_id=to_subject_id,
                granted_by=from_subject_id,
                context_type=source.context_type,
                context_id=source.context_id,
                valid_from=now,
                valid_until=valid_until,
            )
            uow.commit()

        logger.info(
            "Delegated role=%s from=%s to=%s until=%s source=%s",
            source.role_id,
            from_subject_id,
            to_subject_id,
            valid_until,
            source_assignment_id,
        )
        return delegated
