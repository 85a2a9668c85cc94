"""
Status transition tables for every stateful record.

All status changes go through ``validate_transition`` so that the allowed
lifecycle of each entity is declared in one place.
"""

from typing import Dict, List

from erp.core.exceptions import BadRequestError
from erp.models.hr import LeaveStatus, PayrollStatus, ReviewStatus, ComplianceStatus
from erp.models.billing import InvoiceStatus, BillStatus
from erp.models.export import JobStatus


# =============================================================================
# TRANSITION RULES
# Format: current_status -> [list of allowed next statuses]
# =============================================================================

LEAVE_TRANSITIONS: Dict[str, List[str]] = {
    LeaveStatus.PENDING.value: [
        LeaveStatus.APPROVED.value,
        LeaveStatus.REJECTED.value,
        LeaveStatus.CANCELLED.value,
    ],
    LeaveStatus.APPROVED.value: [],
    LeaveStatus.REJECTED.value: [],
    LeaveStatus.CANCELLED.value: [],
}

PAYROLL_TRANSITIONS: Dict[str, List[str]] = {
    PayrollStatus.DRAFT.value: [
        PayrollStatus.PROCESSED.value,
        PayrollStatus.PAID.value,       # Processed and paid in one step
        PayrollStatus.CANCELLED.value,
    ],
    PayrollStatus.PROCESSED.value: [
        PayrollStatus.PAID.value,
        PayrollStatus.CANCELLED.value,
    ],
    PayrollStatus.PAID.value: [],
    PayrollStatus.CANCELLED.value: [],
}

REVIEW_TRANSITIONS: Dict[str, List[str]] = {
    ReviewStatus.DRAFT.value: [
        ReviewStatus.IN_PROGRESS.value,
        ReviewStatus.COMPLETED.value,
        ReviewStatus.APPROVED.value,
    ],
    ReviewStatus.IN_PROGRESS.value: [
        ReviewStatus.COMPLETED.value,
        ReviewStatus.APPROVED.value,
    ],
    ReviewStatus.COMPLETED.value: [
        ReviewStatus.APPROVED.value,
    ],
    ReviewStatus.APPROVED.value: [],
}

COMPLIANCE_TRANSITIONS: Dict[str, List[str]] = {
    ComplianceStatus.PENDING.value: [
        ComplianceStatus.COMPLETED.value,
        ComplianceStatus.NOT_APPLICABLE.value,
    ],
    ComplianceStatus.COMPLETED.value: [
        ComplianceStatus.EXPIRED.value,  # Time-based sweep only
    ],
    ComplianceStatus.EXPIRED.value: [],
    ComplianceStatus.NOT_APPLICABLE.value: [],
}

INVOICE_TRANSITIONS: Dict[str, List[str]] = {
    InvoiceStatus.DRAFT.value: [
        InvoiceStatus.PENDING.value,
        InvoiceStatus.CANCELLED.value,
    ],
    InvoiceStatus.PENDING.value: [
        InvoiceStatus.APPROVED.value,
        InvoiceStatus.DRAFT.value,      # Sent back for correction
        InvoiceStatus.CANCELLED.value,
    ],
    InvoiceStatus.APPROVED.value: [
        InvoiceStatus.PAID.value,
        InvoiceStatus.OVERDUE.value,
        InvoiceStatus.CANCELLED.value,
    ],
    InvoiceStatus.OVERDUE.value: [
        InvoiceStatus.PAID.value,
        InvoiceStatus.CANCELLED.value,
    ],
    InvoiceStatus.PAID.value: [],
    InvoiceStatus.CANCELLED.value: [],
}

BILL_TRANSITIONS: Dict[str, List[str]] = {
    BillStatus.DRAFT.value: [
        BillStatus.PENDING.value,
        BillStatus.APPROVED.value,
        BillStatus.CANCELLED.value,
    ],
    BillStatus.PENDING.value: [
        BillStatus.APPROVED.value,
        BillStatus.DRAFT.value,
        BillStatus.CANCELLED.value,
    ],
    BillStatus.APPROVED.value: [
        BillStatus.PARTIALLY_PAID.value,
        BillStatus.PAID.value,
        BillStatus.OVERDUE.value,
        BillStatus.CANCELLED.value,
    ],
    BillStatus.PARTIALLY_PAID.value: [
        BillStatus.PARTIALLY_PAID.value,
        BillStatus.PAID.value,
        BillStatus.OVERDUE.value,
    ],
    BillStatus.OVERDUE.value: [
        BillStatus.PARTIALLY_PAID.value,
        BillStatus.PAID.value,
        BillStatus.CANCELLED.value,
    ],
    BillStatus.PAID.value: [],
    BillStatus.CANCELLED.value: [],
}

JOB_TRANSITIONS: Dict[str, List[str]] = {
    JobStatus.PENDING.value: [
        JobStatus.PROCESSING.value,
        JobStatus.CANCELLED.value,
        JobStatus.FAILED.value,
    ],
    JobStatus.PROCESSING.value: [
        JobStatus.COMPLETED.value,
        JobStatus.FAILED.value,
        JobStatus.CANCELLED.value,
    ],
    JobStatus.COMPLETED.value: [],
    JobStatus.FAILED.value: [],
    JobStatus.CANCELLED.value: [],
}

# Statuses in which the record's content may still be edited
EDITABLE_STATUSES: Dict[str, List[str]] = {
    "leave request": [LeaveStatus.PENDING.value],
    "payroll": [PayrollStatus.DRAFT.value, PayrollStatus.PROCESSED.value],
    "performance review": [
        ReviewStatus.DRAFT.value,
        ReviewStatus.IN_PROGRESS.value,
        ReviewStatus.COMPLETED.value,
    ],
    "compliance item": [ComplianceStatus.PENDING.value],
    "invoice": [InvoiceStatus.DRAFT.value, InvoiceStatus.PENDING.value],
    "bill": [BillStatus.DRAFT.value, BillStatus.PENDING.value],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def can_transition(transitions: Dict[str, List[str]], current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return _value(new_status) in transitions.get(_value(current_status), [])


def get_allowed_transitions(transitions: Dict[str, List[str]], current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return transitions.get(_value(current_status), [])


def is_terminal(transitions: Dict[str, List[str]], status: str) -> bool:
    """Is this a terminal (final) state?"""
    return not transitions.get(_value(status), [])


def validate_transition(
    transitions: Dict[str, List[str]],
    current_status: str,
    new_status: str,
    entity: str = "Record",
) -> None:
    """
    Validate a status transition. Raises BadRequestError if invalid.
    """
    current, new = _value(current_status), _value(new_status)
    if current == new and new not in transitions.get(current, []):
        raise BadRequestError(f"{entity} is already {current}")

    if not can_transition(transitions, current, new):
        allowed = get_allowed_transitions(transitions, current)
        if not allowed:
            raise BadRequestError(
                f"{entity} in '{current}' status cannot be modified. This is a terminal state."
            )
        raise BadRequestError(
            f"Cannot change {entity.lower()} from '{current}' to '{new}'. "
            f"Allowed transitions: {', '.join(allowed)}"
        )


def can_edit(entity: str, status: str) -> bool:
    """Can a record of this kind be edited in this status?"""
    return _value(status) in EDITABLE_STATUSES.get(entity, [])


def ensure_editable(entity: str, status: str) -> None:
    """Raise BadRequestError when the record is no longer editable."""
    if not can_edit(entity, status):
        raise BadRequestError(f"Cannot modify {entity} in '{_value(status)}' status")
