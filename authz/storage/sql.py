"""
SQLAlchemy implementation of the engine's storage ports.

One `SqlUnitOfWork` wraps one Session (one transaction). Repositories convert
rows to the engine's frozen value objects so nothing ORM-bound leaks out of
the session.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from authz.engine.errors import ConflictError, NotFoundError
from authz.engine.types import Permission, PermissionOverride, Role, RoleAssignment, as_utc
from authz.models import rbac as tables
from authz.models.directory import Employee
from authz.models.rbac import NO_CONTEXT

logger = logging.getLogger(__name__)


# ---- Row conversion ------------------------------------------------------------------


def _to_column(value: str | None) -> str:
    return NO_CONTEXT if value is None else value


def _from_column(value: str) -> str | None:
    return None if value == NO_CONTEXT else value


def _permission(row: tables.Permission) -> Permission:
    return Permission(
        id=row.id,
        resource=row.resource,
        action=row.action,
        name=row.name,
        description=row.description,
    )


def _role(row: tables.Role) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        description=row.description,
        parent_role_id=row.parent_role_id,
        permissions=frozenset(_permission(p) for p in row.permissions),
        is_system_role=row.is_system_role,
    )


def _assignment(row: tables.RoleAssignment) -> RoleAssignment:
    return RoleAssignment(
        id=row.id,
        role_id=row.role_id,
        subject_id=row.subject_id,
        granted_by=row.granted_by,
        context_type=_from_column(row.context_type),
        context_id=_from_column(row.context_id),
        valid_from=as_utc(row.valid_from),
        valid_until=as_utc(row.valid_until),
        is_active=row.is_active,
    )


def _override(row: tables.PermissionOverride) -> PermissionOverride:
    return PermissionOverride(
        subject_id=row.subject_id,
        resource=row.resource,
        action=row.action,
        granted=row.granted,
        granted_by=row.granted_by,
    )


def _flush(db: Session, what: str) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        logger.info("Unique constraint violated while writing %s", what)
        raise ConflictError(f"{what} already exists") from exc


# ---- Repositories --------------------------------------------------------------------


class SqlPermissionRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, permission_id: str) -> Permission | None:
        row = self._db.get(tables.Permission, permission_id)
        return _permission(row) if row is not None else None

    def get_by_key(self, resource: str, action: str) -> Permission | None:
        row = self._db.scalars(
            select(tables.Permission).where(
                tables.Permission.resource == resource,
                tables.Permission.action == action,
            )
        ).first()
        return _permission(row) if row is not None else None

    def get_by_name(self, name: str) -> Permission | None:
        row = self._db.scalars(select(tables.Permission).where(tables.Permission.name == name)).first()
        return _permission(row) if row is not None else None

    def get_many(self, permission_ids: Iterable[str]) -> list[Permission]:
        ids = list(permission_ids)
        if not ids:
            return []
        rows = self._db.scalars(select(tables.Permission).where(tables.Permission.id.in_(ids))).all()
        return [_permission(r) for r in rows]

    def list_all(self) -> list[Permission]:
        rows = self._db.scalars(
            select(tables.Permission).order_by(tables.Permission.resource, tables.Permission.action)
        ).all()
        return [_permission(r) for r in rows]

    def add(self, permission: Permission) -> Permission:
        self._db.add(
            tables.Permission(
                id=permission.id,
                name=permission.name,
                resource=permission.resource,
                action=permission.action,
                description=permission.description,
            )
        )
        _flush(self._db, f"permission ({permission.resource!r}, {permission.action!r})")
        return permission


class SqlRoleRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, role_id: str) -> Role | None:
        row = self._db.get(tables.Role, role_id)
        return _role(row) if row is not None else None

    def get_by_name(self, name: str) -> Role | None:
        row = self._db.scalars(select(tables.Role).where(tables.Role.name == name)).first()
        return _role(row) if row is not None else None

    def list_all(self) -> list[Role]:
        rows = self._db.scalars(select(tables.Role).order_by(tables.Role.name)).all()
        return [_role(r) for r in rows]

    def list_children(self, role_id: str) -> list[Role]:
        rows = self._db.scalars(select(tables.Role).where(tables.Role.parent_role_id == role_id)).all()
        return [_role(r) for r in rows]

    def _permission_rows(self, role: Role) -> list[tables.Permission]:
        ids = [p.id for p in role.permissions]
        if not ids:
            return []
        return list(self._db.scalars(select(tables.Permission).where(tables.Permission.id.in_(ids))).all())

    def add(self, role: Role) -> Role:
        row = tables.Role(
            id=role.id,
            name=role.name,
            description=role.description,
            parent_role_id=role.parent_role_id,
            is_system_role=role.is_system_role,
        )
        row.permissions = self._permission_rows(role)
        self._db.add(row)
        _flush(self._db, f"role {role.name!r}")
        return _role(row)

    def update(self, role: Role) -> Role:
        row = self._db.get(tables.Role, role.id)
        if row is None:
            raise NotFoundError("role", role.id)
        row.name = role.name
        row.description = role.description
        row.parent_role_id = role.parent_role_id
        row.permissions = self._permission_rows(role)
        _flush(self._db, f"role {role.name!r}")
        return _role(row)

    def delete(self, role_id: str) -> None:
        row = self._db.get(tables.Role, role_id)
        if row is not None:
            self._db.delete(row)
            self._db.flush()


class SqlAssignmentRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, assignment_id: str) -> RoleAssignment | None:
        row = self._db.get(tables.RoleAssignment, assignment_id)
        return _assignment(row) if row is not None else None

    def find(
        self,
        subject_id: str,
        role_id: str,
        context_type: str | None,
        context_id: str | None,
    ) -> RoleAssignment | None:
        row = self._db.scalars(
            select(tables.RoleAssignment).where(
                tables.RoleAssignment.subject_id == subject_id,
                tables.RoleAssignment.role_id == role_id,
                tables.RoleAssignment.context_type == _to_column(context_type),
                tables.RoleAssignment.context_id == _to_column(context_id),
            )
        ).first()
        return _assignment(row) if row is not None else None

    def list_active_for_subject(self, subject_id: str) -> list[RoleAssignment]:
        rows = self._db.scalars(
            select(tables.RoleAssignment)
            .where(
                tables.RoleAssignment.subject_id == subject_id,
                tables.RoleAssignment.is_active.is_(True),
            )
            .order_by(tables.RoleAssignment.created_at, tables.RoleAssignment.id)
        ).all()
        return [_assignment(r) for r in rows]

    def count_for_role(self, role_id: str) -> int:
        return self._db.scalar(
            select(func.count()).select_from(tables.RoleAssignment).where(tables.RoleAssignment.role_id == role_id)
        ) or 0

    def add(self, assignment: RoleAssignment) -> RoleAssignment:
        self._db.add(
            tables.RoleAssignment(
                id=assignment.id,
                role_id=assignment.role_id,
                subject_id=assignment.subject_id,
                granted_by=assignment.granted_by,
                context_type=_to_column(assignment.context_type),
                context_id=_to_column(assignment.context_id),
                valid_from=as_utc(assignment.valid_from),
                valid_until=as_utc(assignment.valid_until),
                is_active=assignment.is_active,
            )
        )
        _flush(self._db, f"assignment of role {assignment.role_id!r} to {assignment.subject_id!r}")
        return assignment

    def delete(self, assignment_id: str) -> None:
        self._db.execute(delete(tables.RoleAssignment).where(tables.RoleAssignment.id == assignment_id))


class SqlOverrideRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def _row(self, subject_id: str, resource: str, action: str) -> tables.PermissionOverride | None:
        return self._db.scalars(
            select(tables.PermissionOverride).where(
                tables.PermissionOverride.subject_id == subject_id,
                tables.PermissionOverride.resource == resource,
                tables.PermissionOverride.action == action,
            )
        ).first()

    def get(self, subject_id: str, resource: str, action: str) -> PermissionOverride | None:
        row = self._row(subject_id, resource, action)
        return _override(row) if row is not None else None

    def list_for_subject(self, subject_id: str) -> list[PermissionOverride]:
        rows = self._db.scalars(
            select(tables.PermissionOverride)
            .where(tables.PermissionOverride.subject_id == subject_id)
            .order_by(tables.PermissionOverride.resource, tables.PermissionOverride.action)
        ).all()
        return [_override(r) for r in rows]

    def upsert(self, override: PermissionOverride) -> PermissionOverride:
        row = self._row(override.subject_id, override.resource, override.action)
        if row is None:
            row = tables.PermissionOverride(
                subject_id=override.subject_id,
                resource=override.resource,
                action=override.action,
            )
            self._db.add(row)
        row.granted = override.granted
        row.granted_by = override.granted_by
        _flush(self._db, f"override ({override.resource!r}, {override.action!r}) for {override.subject_id!r}")
        return _override(row)

    def delete(self, subject_id: str, resource: str, action: str) -> bool:
        result = self._db.execute(
            delete(tables.PermissionOverride).where(
                tables.PermissionOverride.subject_id == subject_id,
                tables.PermissionOverride.resource == resource,
                tables.PermissionOverride.action == action,
            )
        )
        return bool(result.rowcount)


# ---- Unit of work --------------------------------------------------------------------


class SqlUnitOfWork:
    """One Session, one transaction. Anything not committed is rolled back on exit."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._db: Session | None = None

    def __enter__(self) -> SqlUnitOfWork:
        self._db = self._session_factory()
        self.permissions = SqlPermissionRepository(self._db)
        self.roles = SqlRoleRepository(self._db)
        self.assignments = SqlAssignmentRepository(self._db)
        self.overrides = SqlOverrideRepository(self._db)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._db is None:
            return
        try:
            self._db.rollback()
        finally:
            self._db.close()
            self._db = None

    def commit(self) -> None:
        if self._db is None:
            raise RuntimeError("unit of work is not open")
        try:
            self._db.commit()
        except IntegrityError as exc:
            raise ConflictError("unique constraint violated on commit") from exc


def sql_uow_factory(session_factory: sessionmaker):
    """Zero-argument factory suitable for AuthorizationService."""

    def factory() -> SqlUnitOfWork:
        return SqlUnitOfWork(session_factory)

    return factory


class SqlEmployeeDirectory:
    """SubjectDirectory backed by the employees table; inactive employees do not exist."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def exists(self, subject_id: str) -> bool:
        with self._session_factory() as db:
            return (
                db.scalar(
                    select(Employee.id).where(Employee.id == subject_id, Employee.is_active.is_(True))
                )
                is not None
            )
