"""Per-subject explicit grant/deny for one (resource, action) pair."""

from __future__ import annotations

from collections.abc import Iterable
import logging

from .errors import NotFoundError
from .ports import SubjectDirectory, UnitOfWorkFactory
from .types import OverrideEntry, PermissionOverride

logger = logging.getLogger(__name__)


class OverrideStore:
    def __init__(self, uow_factory: UnitOfWorkFactory, directory: SubjectDirectory) -> None:
        self._uow_factory = uow_factory
        self._directory = directory

    def set_overrides(
        self,
        subject_id: str,
        entries: Iterable[OverrideEntry],
        granted_by: str,
    ) -> list[PermissionOverride]:
        """Upsert every entry in one transaction and return the stored records."""

        if not self._directory.exists(subject_id):
            raise NotFoundError("subject", subject_id)

        results: list[PermissionOverride] = []
        with self._uow_factory() as uow:
            for entry in entries:
                results.append(
                    uow.overrides.upsert(
                        PermissionOverride(
                            subject_id=subject_id,
                            resource=entry.resource,
                            action=entry.action,
                            granted=entry.granted,
                            granted_by=granted_by,
                        )
                    )
                )
            uow.commit()

        logger.info("Set %d override(s) subject=%s by=%s", len(results), subject_id, granted_by)
        return results

    def get_override(self, subject_id: str, resource: str, action: str) -> PermissionOverride | None:
        with self._uow_factory() as uow:
            return uow.overrides.get(subject_id, resource, action)

    def get_overrides(self, subject_id: str) -> list[PermissionOverride]:
        with self._uow_factory() as uow:
            overrides = uow.overrides.list_for_subject(subject_id)
        return sorted(overrides, key=lambda o: (o.resource, o.action))

    def remove_override(self, subject_id: str, resource: str, action: str) -> None:
        with self._uow_factory() as uow:
            removed = uow.overrides.delete(subject_id, resource, action)
            uow.commit()
        if removed:
            logger.info("Removed override subject=%s resource=%s action=%s", subject_id, resource, action)
