"""Status transition tables."""

import pytest

from erp.core.exceptions import BadRequestError
from erp.models.billing import BillStatus, InvoiceStatus
from erp.models.export import JobStatus
from erp.models.hr import ComplianceStatus, LeaveStatus, PayrollStatus
from erp.services.state_machine import (
    BILL_TRANSITIONS,
    COMPLIANCE_TRANSITIONS,
    INVOICE_TRANSITIONS,
    JOB_TRANSITIONS,
    LEAVE_TRANSITIONS,
    PAYROLL_TRANSITIONS,
    can_edit,
    can_transition,
    ensure_editable,
    is_terminal,
    validate_transition,
)


@pytest.mark.parametrize(
    "current,new",
    [
        (InvoiceStatus.DRAFT, InvoiceStatus.PENDING),
        (InvoiceStatus.PENDING, InvoiceStatus.APPROVED),
        (InvoiceStatus.PENDING, InvoiceStatus.DRAFT),
        (InvoiceStatus.APPROVED, InvoiceStatus.PAID),
        (InvoiceStatus.APPROVED, InvoiceStatus.OVERDUE),
        (InvoiceStatus.OVERDUE, InvoiceStatus.PAID),
    ],
)
def test_invoice_allowed(current, new):
    validate_transition(INVOICE_TRANSITIONS, current, new, "Invoice")


def test_invoice_cannot_skip_approval():
    with pytest.raises(BadRequestError, match="Allowed transitions: PENDING, CANCELLED"):
        validate_transition(INVOICE_TRANSITIONS, InvoiceStatus.DRAFT, InvoiceStatus.PAID, "Invoice")


def test_paid_invoice_is_terminal():
    assert is_terminal(INVOICE_TRANSITIONS, InvoiceStatus.PAID)
    with pytest.raises(BadRequestError, match="terminal state"):
        validate_transition(INVOICE_TRANSITIONS, InvoiceStatus.PAID, InvoiceStatus.CANCELLED, "Invoice")


def test_same_status_rejected_unless_listed():
    with pytest.raises(BadRequestError, match="already PENDING"):
        validate_transition(LEAVE_TRANSITIONS, LeaveStatus.PENDING, LeaveStatus.PENDING, "Leave request")
    # Repeated part payments keep the bill in PARTIALLY_PAID
    validate_transition(
        BILL_TRANSITIONS, BillStatus.PARTIALLY_PAID, BillStatus.PARTIALLY_PAID, "Bill"
    )


def test_leave_decisions_are_final():
    for status in (LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED):
        assert is_terminal(LEAVE_TRANSITIONS, status)
    assert can_transition(LEAVE_TRANSITIONS, "PENDING", "APPROVED")


def test_payroll_can_be_paid_directly():
    assert can_transition(PAYROLL_TRANSITIONS, PayrollStatus.DRAFT, PayrollStatus.PAID)
    assert not can_transition(PAYROLL_TRANSITIONS, PayrollStatus.PAID, PayrollStatus.DRAFT)


def test_compliance_expiry_only_from_completed():
    assert can_transition(COMPLIANCE_TRANSITIONS, ComplianceStatus.COMPLETED, ComplianceStatus.EXPIRED)
    assert not can_transition(COMPLIANCE_TRANSITIONS, ComplianceStatus.PENDING, ComplianceStatus.EXPIRED)


def test_job_terminal_states():
    for status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED):
        assert is_terminal(JOB_TRANSITIONS, status)
    assert not is_terminal(JOB_TRANSITIONS, JobStatus.PROCESSING)


def test_editable_statuses():
    assert can_edit("invoice", InvoiceStatus.PENDING)
    assert not can_edit("invoice", InvoiceStatus.APPROVED)
    ensure_editable("leave request", LeaveStatus.PENDING)
    with pytest.raises(BadRequestError, match="Cannot modify payroll in 'PAID' status"):
        ensure_editable("payroll", PayrollStatus.PAID)
