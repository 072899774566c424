"""
Tests for the identity directory and the raw shape of the RBAC tables.

Rows are arranged through the ORM on the in-memory SQLite database.
"""
from __future__ import annotations

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from authz.models.directory import Department, Employee
from authz.models.rbac import NO_CONTEXT
from authz.storage.sql import SqlEmployeeDirectory


def get_role_assignment_counts(db: Session) -> dict[str, int]:
    """Role name -> number of assignment rows, roles without assignments included."""
    result = db.execute(
        text("""
            SELECT r.name AS name, COUNT(a.id) AS assignment_count
            FROM roles r
            LEFT JOIN role_assignments a ON a.role_id = r.id
            GROUP BY r.id, r.name
        """)
    )
    return {row.name: row.assignment_count for row in result}


def test_directory_knows_active_employees_only(db_session, session_factory):
    dept = Department(name="IT", code="IT", description="IT Dept")
    db_session.add(dept)
    db_session.flush()
    db_session.add_all(
        [
            Employee(id="E-1", email="a@b.com", first_name="A", last_name="B", department_id=dept.id),
            Employee(id="E-2", email="c@d.com", first_name="C", last_name="D", is_active=False),
        ]
    )
    db_session.commit()

    directory = SqlEmployeeDirectory(session_factory)

    assert directory.exists("E-1") is True
    assert directory.exists("E-2") is False
    assert directory.exists("E-404") is False


def test_employees_load_with_department(db_session):
    dept = Department(name="HR", code="HR", description="HR")
    db_session.add(dept)
    db_session.flush()
    db_session.add(Employee(id="E-1", email="a@b.com", first_name="A", last_name="B", department_id=dept.id))
    db_session.commit()

    loaded = db_session.scalars(select(Employee).where(Employee.id == "E-1")).one()

    assert loaded.department is not None
    assert loaded.department.code == "HR"
    assert loaded.created_at is not None
    assert [e.id for e in dept.employees] == ["E-1"]


def test_global_assignment_is_stored_with_empty_context(service, add_employee, db_session):
    add_employee("u1")
    role = service.create_role("employee")
    service.create_role("unused")
    service.assign(role.id, "u1", granted_by="u1")

    row = db_session.execute(
        text("SELECT context_type, context_id FROM role_assignments WHERE subject_id = :s"), {"s": "u1"}
    ).one()

    assert (row.context_type, row.context_id) == (NO_CONTEXT, NO_CONTEXT)
    assert get_role_assignment_counts(db_session) == {"employee": 1, "unused": 0}
