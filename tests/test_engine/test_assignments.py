"""Tests for the assignment store, including the uniqueness invariant under concurrency."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
import threading

import pytest

from authz.db.init_db import create_tables
from authz.db.session import build_engine, build_session_factory
from authz.engine import AuthorizationService, ConflictError, NotFoundError
from authz.models import rbac as tables
from authz.models.directory import Employee
from authz.storage.sql import SqlEmployeeDirectory, sql_uow_factory


@pytest.fixture
def role(service):
    return service.create_role("manager")


def test_assign_defaults_valid_from_to_now(service, add_employee, role, clock):
    add_employee("u1", "admin")

    assignment = service.assign(role.id, "u1", granted_by="admin")

    assert assignment.subject_id == "u1"
    assert assignment.role_id == role.id
    assert assignment.granted_by == "admin"
    assert assignment.valid_from == clock.now
    assert assignment.valid_until is None
    assert assignment.context_type is None and assignment.context_id is None
    assert assignment.is_active is True


def test_assign_stores_context_and_window(service, add_employee, role, clock):
    add_employee("u1")
    until = clock.now + timedelta(days=30)

    assignment = service.assign(
        role.id,
        "u1",
        granted_by="u1",
        context_type="department",
        context_id="deptA",
        valid_until=until,
    )

    stored = service.assignments.get_assignment(assignment.id)
    assert stored.context_type == "department"
    assert stored.context_id == "deptA"
    assert stored.valid_until == until
    assert stored.valid_from.tzinfo is not None


def test_assign_normalizes_naive_datetimes_to_utc(service, add_employee, role):
    add_employee("u1")
    naive = datetime(2026, 5, 1, 12, 0)

    assignment = service.assign(role.id, "u1", granted_by="u1", valid_from=naive)

    assert assignment.valid_from == naive.replace(tzinfo=timezone.utc)


def test_assign_unknown_role(service, add_employee):
    add_employee("u1")
    with pytest.raises(NotFoundError):
        service.assign("missing", "u1", granted_by="u1")


def test_assign_unknown_or_inactive_subject(service, add_employee, role):
    add_employee("gone", is_active=False)
    with pytest.raises(NotFoundError):
        service.assign(role.id, "nobody", granted_by="admin")
    with pytest.raises(NotFoundError):
        service.assign(role.id, "gone", granted_by="admin")


def test_assign_duplicate_tuple_conflicts(service, add_employee, role):
    add_employee("u1")
    service.assign(role.id, "u1", granted_by="u1")
    with pytest.raises(ConflictError):
        service.assign(role.id, "u1", granted_by="u1")

    service.assign(role.id, "u1", granted_by="u1", context_type="department", context_id="deptA")
    with pytest.raises(ConflictError):
        service.assign(role.id, "u1", granted_by="u1", context_type="department", context_id="deptA")

    # A different context is a different tuple.
    service.assign(role.id, "u1", granted_by="u1", context_type="department", context_id="deptB")
    assert len(service.list_for_subject("u1")) == 3


def test_revoke_removes_assignment(service, add_employee, role):
    add_employee("u1")
    assignment = service.assign(role.id, "u1", granted_by="u1")

    service.revoke(assignment.id)

    assert service.list_for_subject("u1") == []
    with pytest.raises(NotFoundError):
        service.revoke(assignment.id)
    # The tuple is free again.
    service.assign(role.id, "u1", granted_by="u1")


def test_list_for_subject_returns_active_rows_regardless_of_window(service, add_employee, role, clock, db_session):
    add_employee("u1")
    expired = service.assign(
        role.id, "u1", granted_by="u1", context_id="old", valid_until=clock.now + timedelta(minutes=1)
    )
    pending = service.assign(role.id, "u1", granted_by="u1", context_id="future", valid_from=clock.now + timedelta(days=1))
    suspended = service.assign(role.id, "u1", granted_by="u1", context_id="suspended")
    db_session.get(tables.RoleAssignment, suspended.id).is_active = False
    db_session.commit()
    clock.advance(hours=1)

    ids = {a.id for a in service.list_for_subject("u1")}

    assert ids == {expired.id, pending.id}


def test_concurrent_identical_assign_yields_one_success(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    create_tables(engine)
    session_factory = build_session_factory(engine)
    with session_factory() as db:
        db.add(Employee(id="u1", email="u1@example.com", first_name="U", last_name="One"))
        db.commit()
    service = AuthorizationService(sql_uow_factory(session_factory), SqlEmployeeDirectory(session_factory))
    role = service.create_role("manager")

    workers = 6
    barrier = threading.Barrier(workers)

    def attempt(_):
        barrier.wait()
        try:
            service.assign(role.id, "u1", granted_by="admin", context_type="department", context_id="deptA")
            return "ok"
        except ConflictError:
            return "conflict"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(attempt, range(workers)))

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == workers - 1
    assert len(service.list_for_subject("u1")) == 1
    engine.dispose()
