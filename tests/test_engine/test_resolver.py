"""Tests for the access decision and the subject permission report."""

from datetime import timedelta
import logging

import pytest

from authz.engine import NotFoundError, OverrideEntry, RolePermissionGrant
from authz.models import rbac as tables


@pytest.fixture
def perm(service):
    """Create (or reuse) a catalog entry by resource and action."""
    created = {}

    def _perm(resource, action):
        if (resource, action) not in created:
            created[(resource, action)] = service.create_permission(resource, action)
        return created[(resource, action)]

    return _perm


def _role(service, perm, name, *pairs, parent=None):
    return service.create_role(
        name,
        parent_role_id=parent.id if parent else None,
        permission_ids=[perm(r, a).id for r, a in pairs],
    )


def test_wildcard_admin_is_allowed_everything(service, perm, add_employee, clock):
    add_employee("u1")
    admin = _role(service, perm, "admin", ("*", "*"))
    service.assign(admin.id, "u1", granted_by="u1", valid_from=clock.now - timedelta(hours=1))

    assert service.has_permission("u1", "reviews", "delete") is True
    assert service.has_permission("u1", "payroll", "approve", context_id="deptA") is True


def test_role_without_permission_is_denied(service, perm, add_employee):
    add_employee("u2")
    employee = _role(service, perm, "employee", ("reviews", "read"))
    service.assign(employee.id, "u2", granted_by="u2")

    assert service.has_permission("u2", "reviews", "read") is True
    assert service.has_permission("u2", "reviews", "delete") is False


def test_grant_override_beats_missing_role_permission(service, perm, add_employee):
    add_employee("u2")
    employee = _role(service, perm, "employee", ("reviews", "read"))
    service.assign(employee.id, "u2", granted_by="u2")
    service.set_overrides("u2", [OverrideEntry("reviews", "delete", granted=True)], granted_by="admin")

    assert service.has_permission("u2", "reviews", "delete") is True


def test_deny_override_beats_role_permission(service, perm, add_employee):
    add_employee("u1")
    admin = _role(service, perm, "admin", ("*", "*"))
    service.assign(admin.id, "u1", granted_by="u1")
    service.set_overrides("u1", [OverrideEntry("reviews", "delete", granted=False)], granted_by="hr")

    assert service.has_permission("u1", "reviews", "delete") is False
    assert service.has_permission("u1", "reviews", "read") is True

    service.remove_override("u1", "reviews", "delete")
    assert service.has_permission("u1", "reviews", "delete") is True


def test_override_applies_without_any_assignment(service, add_employee):
    add_employee("u4")
    service.set_overrides("u4", [OverrideEntry("okrs", "read")], granted_by="admin")

    assert service.has_permission("u4", "okrs", "read") is True
    assert service.has_permission("u4", "okrs", "write") is False


def test_scoped_assignment_only_applies_to_its_context(service, perm, add_employee):
    add_employee("u3")
    manager = _role(service, perm, "manager", ("analytics", "read"))
    service.assign(manager.id, "u3", granted_by="u3", context_type="department", context_id="deptA")

    assert service.has_permission("u3", "analytics", "read", context_id="deptA") is True
    assert service.has_permission("u3", "analytics", "read", context_id="deptB") is False
    assert service.has_permission("u3", "analytics", "read") is False


def test_global_assignment_applies_in_every_context(service, perm, add_employee):
    add_employee("u3")
    employee = _role(service, perm, "employee", ("reviews", "read"))
    manager = _role(service, perm, "manager", ("analytics", "read"))
    service.assign(employee.id, "u3", granted_by="u3")
    service.assign(manager.id, "u3", granted_by="u3", context_type="department", context_id="deptA")

    assert service.has_permission("u3", "reviews", "read", context_id="deptB") is True
    assert service.has_permission("u3", "reviews", "read") is True
    assert service.has_permission("u3", "analytics", "read", context_id="deptB") is False


def test_expired_assignment_grants_nothing(service, perm, add_employee, clock):
    add_employee("u5")
    admin = _role(service, perm, "admin", ("*", "*"))
    service.assign(
        admin.id,
        "u5",
        granted_by="u5",
        valid_from=clock.now - timedelta(days=10),
        valid_until=clock.now - timedelta(days=1),
    )

    assert service.has_permission("u5", "reviews", "read") is False
    assert service.has_permission("u5", "reviews", "read", context_id="deptA") is False


def test_validity_window_boundaries(service, perm, add_employee, clock):
    add_employee("u6")
    employee = _role(service, perm, "employee", ("reviews", "read"))
    service.assign(
        employee.id,
        "u6",
        granted_by="u6",
        valid_from=clock.now + timedelta(hours=1),
        valid_until=clock.now + timedelta(hours=3),
    )

    assert service.has_permission("u6", "reviews", "read") is False
    clock.advance(hours=1)
    assert service.has_permission("u6", "reviews", "read") is True
    clock.advance(hours=2)
    assert service.has_permission("u6", "reviews", "read") is False


def test_inherited_permissions_are_honoured(service, perm, add_employee):
    add_employee("u7")
    employee = _role(service, perm, "employee", ("reviews", "read"))
    manager = _role(service, perm, "manager", ("analytics", "read"), parent=employee)
    senior = _role(service, perm, "senior", ("reviews", "write"), parent=manager)
    service.assign(senior.id, "u7", granted_by="u7")

    assert service.has_permission("u7", "reviews", "read") is True
    assert service.has_permission("u7", "analytics", "read") is True
    assert service.has_permission("u7", "reviews", "write") is True
    assert service.has_permission("u7", "reviews", "delete") is False


def test_resource_wildcard(service, perm, add_employee):
    add_employee("u8")
    reviewer = _role(service, perm, "review-owner", ("reviews", "*"))
    service.assign(reviewer.id, "u8", granted_by="u8")

    assert service.has_permission("u8", "reviews", "delete") is True
    assert service.has_permission("u8", "okrs", "delete") is False


def test_unknown_subject_is_denied(service):
    assert service.has_permission("ghost", "reviews", "read") is False


def test_cyclic_hierarchy_fails_closed(service, perm, add_employee, db_session, caplog):
    add_employee("u9")
    base = _role(service, perm, "base", ("reviews", "delete"))
    looped = _role(service, perm, "looped", ("okrs", "read"), parent=base)
    reader = _role(service, perm, "reader", ("reviews", "read"))
    db_session.get(tables.Role, base.id).parent_role_id = looped.id
    db_session.commit()
    service.assign(looped.id, "u9", granted_by="u9")
    service.assign(reader.id, "u9", granted_by="u9")

    with caplog.at_level(logging.ERROR, logger="authz.engine.resolver"):
        assert service.has_permission("u9", "reviews", "delete") is False
        assert service.has_permission("u9", "reviews", "read") is True

    assert any(r.levelno == logging.ERROR for r in caplog.records)


def test_all_permissions_for_subject(service, perm, add_employee):
    add_employee("u1")
    employee = _role(service, perm, "employee", ("reviews", "read"))
    manager = _role(service, perm, "manager", ("analytics", "read"), parent=employee)
    service.assign(manager.id, "u1", granted_by="u1")
    service.assign(employee.id, "u1", granted_by="u1", context_type="department", context_id="deptA")
    service.set_overrides("u1", [OverrideEntry("reviews", "delete", granted=False)], granted_by="hr")

    report = service.all_permissions_for_subject("u1")

    assert report.subject_id == "u1"
    assert set(report.role_permissions) == {
        RolePermissionGrant("analytics", "read", "manager"),
        RolePermissionGrant("reviews", "read", "employee"),
    }
    assert len(report.role_permissions) == 2
    assert [(o.resource, o.action, o.granted) for o in report.overrides] == [("reviews", "delete", False)]


def test_all_permissions_for_unknown_subject(service):
    with pytest.raises(NotFoundError):
        service.all_permissions_for_subject("ghost")


def test_all_permissions_ignores_assignments_outside_their_window(service, perm, add_employee, clock):
    add_employee("u1")
    current = _role(service, perm, "current", ("reviews", "read"))
    expired = _role(service, perm, "expired", ("okrs", "write"))
    upcoming = _role(service, perm, "upcoming", ("analytics", "write"))
    service.assign(current.id, "u1", granted_by="u1")
    service.assign(
        expired.id,
        "u1",
        granted_by="u1",
        valid_from=clock.now - timedelta(days=2),
        valid_until=clock.now - timedelta(days=1),
    )
    service.assign(upcoming.id, "u1", granted_by="u1", valid_from=clock.now + timedelta(days=1))

    report = service.all_permissions_for_subject("u1")

    assert report.role_permissions == (RolePermissionGrant("reviews", "read", "current"),)

    clock.advance(days=2)
    names = {g.source_role_name for g in service.all_permissions_for_subject("u1").role_permissions}
    assert names == {"current", "upcoming"}
