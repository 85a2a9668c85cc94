"""
Filter-predicate builders.

Each builder takes a filter schema and returns the list of SQLAlchemy
conditions it implies. They never touch the database, so list queries can be
checked by compiling the returned expressions.
"""
from typing import Any, List

from sqlalchemy import or_

from erp.models.hr import LeaveRequest, Payroll, Attendance, PerformanceReview, ComplianceTracking
from erp.models.billing import Invoice, Bill, CustomerAddress
from erp.schemas.hr import (
    LeaveRequestFilter, PayrollFilter, AttendanceFilter,
    PerformanceReviewFilter, ComplianceFilter,
)
from erp.schemas.billing import InvoiceSearchFilter, BillFilter


def _value(v: Any) -> Any:
    return v.value if hasattr(v, "value") else v


def build_leave_request_filters(filters: LeaveRequestFilter) -> List[Any]:
    conditions = []
    if filters.employee_id:
        conditions.append(LeaveRequest.employee_id == filters.employee_id)
    if filters.leave_type:
        conditions.append(LeaveRequest.leave_type == _value(filters.leave_type))
    if filters.status:
        conditions.append(LeaveRequest.status == _value(filters.status))
    if filters.start_date:
        conditions.append(LeaveRequest.start_date >= filters.start_date)
    if filters.end_date:
        conditions.append(LeaveRequest.end_date <= filters.end_date)
    return conditions


def build_payroll_filters(filters: PayrollFilter) -> List[Any]:
    conditions = []
    if filters.employee_id:
        conditions.append(Payroll.employee_id == filters.employee_id)
    if filters.pay_period:
        conditions.append(Payroll.pay_period == filters.pay_period)
    if filters.status:
        conditions.append(Payroll.status == _value(filters.status))
    # YYYY-MM strings sort chronologically
    if filters.start_period:
        conditions.append(Payroll.pay_period >= filters.start_period)
    if filters.end_period:
        conditions.append(Payroll.pay_period <= filters.end_period)
    return conditions


def build_attendance_filters(filters: AttendanceFilter) -> List[Any]:
    conditions = []
    if filters.employee_id:
        conditions.append(Attendance.employee_id == filters.employee_id)
    if filters.status:
        conditions.append(Attendance.status == _value(filters.status))
    if filters.start_date:
        conditions.append(Attendance.attendance_date >= filters.start_date)
    if filters.end_date:
        conditions.append(Attendance.attendance_date <= filters.end_date)
    return conditions


def build_performance_review_filters(filters: PerformanceReviewFilter) -> List[Any]:
    conditions = []
    if filters.employee_id:
        conditions.append(PerformanceReview.employee_id == filters.employee_id)
    if filters.reviewer_id:
        conditions.append(PerformanceReview.reviewer_id == filters.reviewer_id)
    if filters.period_type:
        conditions.append(PerformanceReview.period_type == _value(filters.period_type))
    if filters.status:
        conditions.append(PerformanceReview.status == _value(filters.status))
    if filters.review_period:
        conditions.append(PerformanceReview.review_period == filters.review_period)
    return conditions


def build_compliance_filters(filters: ComplianceFilter) -> List[Any]:
    conditions = []
    if filters.employee_id:
        conditions.append(ComplianceTracking.employee_id == filters.employee_id)
    if filters.compliance_type:
        conditions.append(ComplianceTracking.compliance_type == _value(filters.compliance_type))
    if filters.status:
        conditions.append(ComplianceTracking.status == _value(filters.status))
    if filters.due_date_start:
        conditions.append(ComplianceTracking.due_date >= filters.due_date_start)
    if filters.due_date_end:
        conditions.append(ComplianceTracking.due_date <= filters.due_date_end)
    return conditions


def build_invoice_filters(filters: InvoiceSearchFilter) -> List[Any]:
    conditions = []
    if filters.status:
        conditions.append(Invoice.status == _value(filters.status))
    if filters.start_date:
        conditions.append(Invoice.invoice_date >= filters.start_date)
    if filters.end_date:
        conditions.append(Invoice.invoice_date <= filters.end_date)
    if filters.min_amount is not None:
        conditions.append(Invoice.total_amount >= filters.min_amount)
    if filters.max_amount is not None:
        conditions.append(Invoice.total_amount <= filters.max_amount)
    if filters.client_name:
        conditions.append(Invoice.client_name.ilike(f"%{filters.client_name}%"))
    if filters.bill_to_gstin:
        conditions.append(Invoice.bill_to_gstin == filters.bill_to_gstin.upper())
    if filters.customer_id:
        conditions.append(Invoice.customer_id == filters.customer_id)
    if filters.has_gst is True:
        conditions.append(Invoice.total_tax > 0)
    elif filters.has_gst is False:
        conditions.append(Invoice.total_tax == 0)
    if filters.search:
        pattern = f"%{filters.search}%"
        conditions.append(or_(
            Invoice.invoice_number.ilike(pattern),
            Invoice.client_name.ilike(pattern),
            Invoice.bill_to_name.ilike(pattern),
        ))
    return conditions


def build_bill_filters(filters: BillFilter) -> List[Any]:
    conditions = []
    if filters.status:
        conditions.append(Bill.status == _value(filters.status))
    if filters.bill_type:
        conditions.append(Bill.bill_type == _value(filters.bill_type))
    if filters.vendor_name:
        conditions.append(Bill.vendor_name.ilike(f"%{filters.vendor_name}%"))
    if filters.start_date:
        conditions.append(Bill.bill_date >= filters.start_date)
    if filters.end_date:
        conditions.append(Bill.bill_date <= filters.end_date)
    return conditions


def build_address_search(term: str) -> List[Any]:
    """Active addresses where any descriptive field contains ``term``."""
    pattern = f"%{term.strip()}%"
    return [
        CustomerAddress.is_active.is_(True),
        or_(
            CustomerAddress.contact_name.ilike(pattern),
            CustomerAddress.company_name.ilike(pattern),
            CustomerAddress.address_line1.ilike(pattern),
            CustomerAddress.city.ilike(pattern),
            CustomerAddress.state.ilike(pattern),
            CustomerAddress.pincode.ilike(pattern),
            CustomerAddress.gstin.ilike(pattern),
        ),
    ]

