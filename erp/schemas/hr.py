"""Pydantic schemas for the HR module."""
from datetime import datetime, date, time
from typing import Optional, List, Dict
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, EmailStr

from erp.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema

from erp.models.hr import (
    EmployeeStatus, LeaveType, LeaveStatus, PayrollStatus, AttendanceStatus,
    ReviewPeriodType, ReviewStatus, ComplianceType, ComplianceStatus,
)

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


# ==================== Employee Schemas ====================

class EmployeeCreate(BaseCreateSchema):
    """Schema for creating Employee."""
    employee_code: Optional[str] = Field(None, max_length=20)  # Auto-generated if omitted
    first_name: str = Field(..., max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    designation: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    joining_date: Optional[date] = None
    salary: Decimal = Field(Decimal("0"), ge=0)
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    user_id: Optional[UUID] = None


class EmployeeUpdate(BaseUpdateSchema):
    """Schema for updating Employee."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    designation: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    salary: Optional[Decimal] = Field(None, ge=0)
    status: Optional[EmployeeStatus] = None
    user_id: Optional[UUID] = None


class EmployeeResponse(BaseResponseSchema):
    """Response schema for Employee."""
    id: UUID
    employee_code: str
    user_id: Optional[UUID] = None
    first_name: str
    last_name: Optional[str] = None
    full_name: str
    email: str
    phone: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    state: Optional[str] = None
    joining_date: Optional[date] = None
    salary: Decimal
    status: str
    created_at: datetime
    updated_at: datetime


# ==================== Leave Schemas ====================

class LeaveRequestCreate(BaseCreateSchema):
    """Schema for creating Leave Request."""
    employee_id: Optional[UUID] = None  # HR/admin only; defaults to caller's employee
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: Optional[int] = Field(None, ge=1)  # Inclusive day count if omitted
    reason: Optional[str] = None
    attachment_url: Optional[str] = Field(None, max_length=500)


class LeaveRequestUpdate(BaseUpdateSchema):
    """Schema for updating a pending Leave Request."""
    leave_type: Optional[LeaveType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_days: Optional[int] = Field(None, ge=1)
    reason: Optional[str] = None
    attachment_url: Optional[str] = Field(None, max_length=500)


class LeaveApproveRequest(BaseModel):
    """Approve or reject a leave request."""
    status: LeaveStatus
    approver_comments: Optional[str] = None


class LeaveRequestFilter(BaseModel):
    """Optional filters for listing leave requests."""
    employee_id: Optional[UUID] = None
    leave_type: Optional[LeaveType] = None
    status: Optional[LeaveStatus] = None
    start_date: Optional[date] = None  # start_date >= value
    end_date: Optional[date] = None  # end_date <= value


class LeaveRequestResponse(BaseResponseSchema):
    """Response schema for Leave Request."""
    id: UUID
    employee_id: UUID
    leave_type: str
    start_date: date
    end_date: date
    total_days: int
    reason: Optional[str] = None
    attachment_url: Optional[str] = None
    status: str
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    approver_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LeaveBalanceResponse(BaseModel):
    """Annual leave balance for an employee."""
    employee_id: UUID
    year: int
    entitlement: int
    taken: int
    remaining: int
    by_type: Dict[str, int] = {}


# ==================== Payroll Schemas ====================

class PayrollAmounts(BaseModel):
    """Earning and deduction components shared by create and update."""
    basic_salary: Decimal = Field(..., ge=0)
    allowances: Decimal = Field(Decimal("0"), ge=0)
    overtime: Decimal = Field(Decimal("0"), ge=0)
    bonus: Decimal = Field(Decimal("0"), ge=0)
    commission: Decimal = Field(Decimal("0"), ge=0)
    deductions: Decimal = Field(Decimal("0"), ge=0)
    tax_deduction: Decimal = Field(Decimal("0"), ge=0)
    provident_fund: Decimal = Field(Decimal("0"), ge=0)
    insurance: Decimal = Field(Decimal("0"), ge=0)


class PayrollCreate(PayrollAmounts, BaseCreateSchema):
    """Schema for creating Payroll."""
    employee_id: UUID
    pay_period: str = Field(..., pattern=PERIOD_PATTERN)
    working_days: int = Field(0, ge=0, le=31)
    actual_working_days: int = Field(0, ge=0, le=31)
    overtime_hours: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None


class PayrollUpdate(BaseUpdateSchema):
    """Schema for updating Payroll. Money fields trigger recalculation."""
    basic_salary: Optional[Decimal] = Field(None, ge=0)
    allowances: Optional[Decimal] = Field(None, ge=0)
    overtime: Optional[Decimal] = Field(None, ge=0)
    bonus: Optional[Decimal] = Field(None, ge=0)
    commission: Optional[Decimal] = Field(None, ge=0)
    deductions: Optional[Decimal] = Field(None, ge=0)
    tax_deduction: Optional[Decimal] = Field(None, ge=0)
    provident_fund: Optional[Decimal] = Field(None, ge=0)
    insurance: Optional[Decimal] = Field(None, ge=0)
    working_days: Optional[int] = Field(None, ge=0, le=31)
    actual_working_days: Optional[int] = Field(None, ge=0, le=31)
    overtime_hours: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class PayrollProcessRequest(BaseModel):
    """Advance payroll status."""
    status: PayrollStatus
    notes: Optional[str] = None


class PayrollBulkGenerateRequest(BaseModel):
    """Generate draft payroll rows for a pay period."""
    pay_period: str = Field(..., pattern=PERIOD_PATTERN)
    employee_ids: Optional[List[UUID]] = None  # If None, all active employees


class PayrollBulkGenerateResponse(BaseModel):
    pay_period: str
    created: int
    skipped: int
    payroll_ids: List[UUID] = []


class PayrollFilter(BaseModel):
    """Optional filters for listing payroll."""
    employee_id: Optional[UUID] = None
    pay_period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)
    status: Optional[PayrollStatus] = None
    start_period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)
    end_period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)


class PayrollResponse(BaseResponseSchema):
    """Response schema for Payroll."""
    id: UUID
    employee_id: UUID
    pay_period: str
    basic_salary: Decimal
    allowances: Decimal
    overtime: Decimal
    bonus: Decimal
    commission: Decimal
    deductions: Decimal
    tax_deduction: Decimal
    provident_fund: Decimal
    insurance: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    working_days: int
    actual_working_days: int
    overtime_hours: Decimal
    status: str
    processed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PayrollSummaryResponse(BaseModel):
    """Totals for a pay period."""
    pay_period: str
    total_employees: int
    total_gross: Decimal
    total_net: Decimal
    total_deductions: Decimal
    total_tax: Decimal
    total_provident_fund: Decimal
    total_insurance: Decimal
    by_status: Dict[str, int] = {}


# ==================== Attendance Schemas ====================

class AttendanceCreate(BaseCreateSchema):
    """Schema for creating Attendance."""
    employee_id: UUID
    attendance_date: date
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    status: AttendanceStatus = AttendanceStatus.PRESENT
    remarks: Optional[str] = None
    ip_address: Optional[str] = Field(None, max_length=45)
    location: Optional[str] = Field(None, max_length=255)


class AttendanceUpdate(BaseUpdateSchema):
    """Schema for updating Attendance."""
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)


class AttendanceCheckIn(BaseModel):
    """Schema for check-in."""
    location: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None


class AttendanceCheckOut(BaseModel):
    """Schema for check-out."""
    remarks: Optional[str] = None


class AttendanceFilter(BaseModel):
    """Optional filters for listing attendance."""
    employee_id: Optional[UUID] = None
    status: Optional[AttendanceStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class AttendanceResponse(BaseResponseSchema):
    """Response schema for Attendance."""
    id: UUID
    employee_id: UUID
    attendance_date: date
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    hours_worked: Optional[Decimal] = None
    overtime_hours: Decimal
    status: str
    remarks: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AttendanceSummaryResponse(BaseModel):
    """Monthly attendance summary for one employee."""
    employee_id: UUID
    month: int
    year: int
    working_days: int
    present_days: int
    absent_days: int
    late_days: int
    half_days: int
    work_from_home_days: int
    leave_days: int
    holidays: int
    total_hours: Decimal
    overtime_hours: Decimal
    attendance_percentage: int


class TeamAttendanceSummaryResponse(BaseModel):
    """Attendance counts across all employees for a date."""
    date: date
    total_employees: int
    marked: int
    not_marked: int
    by_status: Dict[str, int] = {}


# ==================== Performance Review Schemas ====================

class ReviewRatings(BaseModel):
    overall_rating: int = Field(..., ge=1, le=5)
    technical_skills: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    teamwork: Optional[int] = Field(None, ge=1, le=5)
    leadership: Optional[int] = Field(None, ge=1, le=5)
    problem_solving: Optional[int] = Field(None, ge=1, le=5)
    time_management: Optional[int] = Field(None, ge=1, le=5)


class PerformanceReviewCreate(ReviewRatings, BaseCreateSchema):
    """Schema for creating Performance Review. Reviewer is the caller."""
    employee_id: UUID
    review_period: str = Field(..., pattern=PERIOD_PATTERN)
    period_type: ReviewPeriodType = ReviewPeriodType.QUARTERLY
    review_date: date
    achievements: Optional[str] = None
    areas_of_improvement: Optional[str] = None
    goals: Optional[str] = None
    reviewer_comments: Optional[str] = None
    status: ReviewStatus = ReviewStatus.DRAFT


class PerformanceReviewUpdate(BaseUpdateSchema):
    """Schema for updating Performance Review (reviewer only)."""
    review_date: Optional[date] = None
    period_type: Optional[ReviewPeriodType] = None
    overall_rating: Optional[int] = Field(None, ge=1, le=5)
    technical_skills: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    teamwork: Optional[int] = Field(None, ge=1, le=5)
    leadership: Optional[int] = Field(None, ge=1, le=5)
    problem_solving: Optional[int] = Field(None, ge=1, le=5)
    time_management: Optional[int] = Field(None, ge=1, le=5)
    achievements: Optional[str] = None
    areas_of_improvement: Optional[str] = None
    goals: Optional[str] = None
    reviewer_comments: Optional[str] = None
    status: Optional[ReviewStatus] = None


class PerformanceReviewComplete(BaseModel):
    """Employee acknowledgement (COMPLETED) or manager approval (APPROVED)."""
    status: ReviewStatus
    employee_comments: Optional[str] = None


class PerformanceReviewFilter(BaseModel):
    """Optional filters for listing reviews."""
    employee_id: Optional[UUID] = None
    reviewer_id: Optional[UUID] = None
    period_type: Optional[ReviewPeriodType] = None
    status: Optional[ReviewStatus] = None
    review_period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)


class PerformanceReviewResponse(BaseResponseSchema):
    """Response schema for Performance Review."""
    id: UUID
    employee_id: UUID
    reviewer_id: UUID
    review_period: str
    period_type: str
    review_date: date
    overall_rating: int
    technical_skills: Optional[int] = None
    communication: Optional[int] = None
    teamwork: Optional[int] = None
    leadership: Optional[int] = None
    problem_solving: Optional[int] = None
    time_management: Optional[int] = None
    achievements: Optional[str] = None
    areas_of_improvement: Optional[str] = None
    goals: Optional[str] = None
    reviewer_comments: Optional[str] = None
    employee_comments: Optional[str] = None
    status: str
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PerformanceSummaryResponse(BaseModel):
    """Approved review averages for an employee in a year."""
    employee_id: UUID
    year: int
    total_reviews: int
    average_rating: Optional[float] = None
    skill_averages: Dict[str, Optional[float]] = {}
    latest_review_period: Optional[str] = None


class TeamPerformanceSummaryResponse(BaseModel):
    """Reviews written by a reviewer."""
    reviewer_id: UUID
    review_period: Optional[str] = None
    total_reviews: int
    average_rating: Optional[float] = None
    rating_distribution: Dict[str, int] = {}
    by_status: Dict[str, int] = {}


# ==================== Compliance Schemas ====================

class ComplianceCreate(BaseCreateSchema):
    """Schema for creating a compliance item."""
    employee_id: UUID
    compliance_type: ComplianceType
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: date
    expiry_date: Optional[date] = None
    document_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class ComplianceUpdate(BaseUpdateSchema):
    """Schema for updating a pending compliance item."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    expiry_date: Optional[date] = None
    document_url: Optional[str] = Field(None, max_length=500)
    certificate_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class ComplianceVerify(BaseModel):
    """Verification of a compliance item."""
    status: ComplianceStatus
    completed_date: Optional[date] = None
    expiry_date: Optional[date] = None
    certificate_url: Optional[str] = Field(None, max_length=500)
    document_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class ComplianceBulkCreate(BaseModel):
    """Create many compliance items; failures do not stop the batch."""
    items: List[ComplianceCreate] = Field(..., min_length=1)


class ComplianceFilter(BaseModel):
    """Optional filters for listing compliance items."""
    employee_id: Optional[UUID] = None
    compliance_type: Optional[ComplianceType] = None
    status: Optional[ComplianceStatus] = None
    due_date_start: Optional[date] = None
    due_date_end: Optional[date] = None


class ComplianceResponse(BaseResponseSchema):
    """Response schema for a compliance item."""
    id: UUID
    employee_id: UUID
    compliance_type: str
    title: str
    description: Optional[str] = None
    status: str
    due_date: date
    completed_date: Optional[date] = None
    expiry_date: Optional[date] = None
    document_url: Optional[str] = None
    certificate_url: Optional[str] = None
    notes: Optional[str] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ComplianceSummaryResponse(BaseModel):
    """Compliance status counts."""
    employee_id: Optional[UUID] = None
    total: int
    by_status: Dict[str, int] = {}
    by_type: Dict[str, int] = {}
    overdue: int
    compliance_rate: float


class ComplianceSweepResponse(BaseModel):
    expired: int
