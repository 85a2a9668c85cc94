from dataclasses import dataclass, field
from typing import Iterable, Optional
import uuid

from erp.models.user import UserRole


# Higher value = more authority. ADMIN passes every guard.
ROLE_LEVELS = {
    UserRole.EMPLOYEE.value: 1,
    UserRole.MANAGER.value: 2,
    UserRole.HR.value: 3,
    UserRole.ADMIN.value: 4,
}

# Role groups used by route guards
ALL_ROLES = (UserRole.EMPLOYEE, UserRole.MANAGER, UserRole.HR, UserRole.ADMIN)
APPROVER_ROLES = (UserRole.MANAGER, UserRole.HR, UserRole.ADMIN)
HR_ROLES = (UserRole.HR, UserRole.ADMIN)
FINANCE_ROLES = (UserRole.MANAGER, UserRole.ADMIN)


def get_level_value(role: str) -> int:
    """Convert a role name to its level, 0 for unknown roles."""
    return ROLE_LEVELS.get(str(role), 0)


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller, resolved once per request."""

    user_id: uuid.UUID
    email: str
    role: str
    employee_id: Optional[uuid.UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def has_any_role(self, roles: Iterable[UserRole | str]) -> bool:
        values = {r.value if isinstance(r, UserRole) else str(r) for r in roles}
        return self.role in values


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a route guard."""

    allowed: bool
    reason: str = ""
    required: tuple[str, ...] = field(default_factory=tuple)


def authorize(context: Optional[RequestContext], allowed_roles: Iterable[UserRole | str]) -> AccessDecision:
    """
    Decide whether the caller may invoke a route restricted to ``allowed_roles``.

    An empty role list means any authenticated caller. ADMIN is always allowed.
    """
    required = tuple(r.value if isinstance(r, UserRole) else str(r) for r in allowed_roles)

    if context is None:
        return AccessDecision(False, "Not authenticated", required)

    if context.is_admin or not required:
        return AccessDecision(True, required=required)

    if context.role in required:
        return AccessDecision(True, required=required)

    return AccessDecision(
        False,
        f"Insufficient role. Required one of: {', '.join(required)}",
        required,
    )


def has_role_level(context: RequestContext, minimum: UserRole) -> bool:
    """Check the caller sits at or above ``minimum`` in the role hierarchy."""
    return get_level_value(context.role) >= get_level_value(minimum.value)


def can_view_employee_record(context: RequestContext, employee_id: Optional[uuid.UUID]) -> bool:
    """Managers and above see every employee's records; others only their own."""
    if has_role_level(context, UserRole.MANAGER):
        return True
    return context.employee_id is not None and context.employee_id == employee_id
