"""Role guard decisions."""

import uuid

from erp.core.permissions import (
    APPROVER_ROLES,
    FINANCE_ROLES,
    HR_ROLES,
    RequestContext,
    authorize,
    can_view_employee_record,
    has_role_level,
)
from erp.models.user import UserRole


def _context(role: UserRole, employee_id=None) -> RequestContext:
    return RequestContext(user_id=uuid.uuid4(), email="x@example.com", role=role.value, employee_id=employee_id)


def test_unauthenticated_is_denied():
    decision = authorize(None, HR_ROLES)
    assert not decision.allowed
    assert decision.reason == "Not authenticated"


def test_admin_passes_everything():
    assert authorize(_context(UserRole.ADMIN), [UserRole.EMPLOYEE]).allowed


def test_role_must_be_listed():
    assert authorize(_context(UserRole.HR), APPROVER_ROLES).allowed
    decision = authorize(_context(UserRole.EMPLOYEE), APPROVER_ROLES)
    assert not decision.allowed
    assert decision.required == ("MANAGER", "HR", "ADMIN")
    assert "Insufficient role" in decision.reason


def test_hr_is_not_finance():
    assert not authorize(_context(UserRole.HR), FINANCE_ROLES).allowed
    assert authorize(_context(UserRole.MANAGER), FINANCE_ROLES).allowed


def test_empty_role_list_allows_any_caller():
    assert authorize(_context(UserRole.EMPLOYEE), []).allowed


def test_role_levels():
    assert has_role_level(_context(UserRole.HR), UserRole.MANAGER)
    assert not has_role_level(_context(UserRole.EMPLOYEE), UserRole.MANAGER)


def test_employees_see_only_their_records():
    own = uuid.uuid4()
    employee = _context(UserRole.EMPLOYEE, employee_id=own)
    assert can_view_employee_record(employee, own)
    assert not can_view_employee_record(employee, uuid.uuid4())
    assert not can_view_employee_record(_context(UserRole.EMPLOYEE), None)
    assert can_view_employee_record(_context(UserRole.MANAGER), uuid.uuid4())
