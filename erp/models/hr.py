"""HR models.

Supports:
- Employee records (optionally linked to User accounts)
- Leave requests with approval tracking
- Monthly payroll with derived gross/net salary
- Daily attendance with check-in/check-out hours
- Performance reviews with 1-5 ratings
- Compliance tracking with verification and expiry

Models are plain data holders; lifecycle rules live in erp.services.
"""
import uuid
from datetime import datetime, date, time, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Date, Time
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp.database import Base
from erp.db_types import UUIDType, Money

if TYPE_CHECKING:
    from erp.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Enums ====================

class EmployeeStatus(str, Enum):
    """Employee status in organization."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"


class LeaveType(str, Enum):
    """Types of leave available."""
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    PERSONAL = "PERSONAL"
    EMERGENCY = "EMERGENCY"
    COMPENSATORY = "COMPENSATORY"
    UNPAID = "UNPAID"


class LeaveStatus(str, Enum):
    """Leave request status."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class PayrollStatus(str, Enum):
    """Payroll processing status."""
    DRAFT = "DRAFT"
    PROCESSED = "PROCESSED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class AttendanceStatus(str, Enum):
    """Daily attendance status."""
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    HALF_DAY = "HALF_DAY"
    WORK_FROM_HOME = "WORK_FROM_HOME"
    ON_LEAVE = "ON_LEAVE"
    HOLIDAY = "HOLIDAY"


class ReviewPeriodType(str, Enum):
    """Performance review cadence."""
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    ANNUAL = "ANNUAL"


class ReviewStatus(str, Enum):
    """Performance review status."""
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"


class PerformanceRating(int, Enum):
    """Ordinal rating scale used by reviews."""
    UNSATISFACTORY = 1
    NEEDS_IMPROVEMENT = 2
    MEETS_EXPECTATIONS = 3
    EXCEEDS_EXPECTATIONS = 4
    EXCELLENT = 5


class ComplianceType(str, Enum):
    """Kinds of tracked compliance obligations."""
    POLICY_ACKNOWLEDGMENT = "POLICY_ACKNOWLEDGMENT"
    TRAINING_COMPLETION = "TRAINING_COMPLETION"
    DOCUMENT_SUBMISSION = "DOCUMENT_SUBMISSION"
    CERTIFICATION = "CERTIFICATION"
    BACKGROUND_CHECK = "BACKGROUND_CHECK"
    MEDICAL_CHECKUP = "MEDICAL_CHECKUP"
    DATA_PRIVACY = "DATA_PRIVACY"
    CODE_OF_CONDUCT = "CODE_OF_CONDUCT"


class ComplianceStatus(str, Enum):
    """Compliance item status."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


# ==================== Employee ====================

class Employee(Base):
    """
    Employee record. Owns its leave, payroll, attendance, review and
    compliance rows (deleted with the employee).
    """
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    employee_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="EMP-0001"
    )

    # Link to User (1:1, optional)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        unique=True,
        nullable=True
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    designation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    joining_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    salary: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
        comment="Monthly basic salary"
    )
    status: Mapped[str] = mapped_column(
        String(50),
        default=EmployeeStatus.ACTIVE.value,
        nullable=False,
        index=True,
        comment="ACTIVE, INACTIVE, TERMINATED"
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    user: Mapped[Optional["User"]] = relationship("User", back_populates="employee")

    leave_requests: Mapped[List["LeaveRequest"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan", passive_deletes=True
    )
    payrolls: Mapped[List["Payroll"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan", passive_deletes=True
    )
    attendance_records: Mapped[List["Attendance"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan", passive_deletes=True
    )
    performance_reviews: Mapped[List["PerformanceReview"]] = relationship(
        back_populates="employee",
        foreign_keys="PerformanceReview.employee_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    compliance_items: Mapped[List["ComplianceTracking"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<Employee(code='{self.employee_code}', email='{self.email}')>"


# ==================== Leave Request ====================

class LeaveRequest(Base):
    """
    Employee leave application and approval.
    """
    __tablename__ = "leave_requests"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    leave_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="ANNUAL, SICK, MATERNITY, PATERNITY, PERSONAL, EMERGENCY, COMPENSATORY, UNPAID"
    )

    # Leave Period
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachment_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(50),
        default=LeaveStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, APPROVED, REJECTED, CANCELLED"
    )

    # Approval tracking
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approver_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(back_populates="leave_requests")

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<LeaveRequest(employee_id={self.employee_id}, {self.start_date}..{self.end_date}, status='{self.status}')>"


# ==================== Payroll ====================

class Payroll(Base):
    """
    Monthly payroll line for one employee.
    gross_salary and net_salary are derived by the payroll service.
    """
    __tablename__ = "payrolls"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    pay_period: Mapped[str] = mapped_column(String(7), nullable=False, index=True, comment="YYYY-MM")

    # Earnings
    basic_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)
    allowances: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    overtime: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    bonus: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    commission: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    # Deductions
    deductions: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    tax_deduction: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    provident_fund: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    insurance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    # Derived
    gross_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)

    working_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    actual_working_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=PayrollStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, PROCESSED, PAID, CANCELLED"
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(back_populates="payrolls")

    __table_args__ = (
        UniqueConstraint("employee_id", "pay_period", name="uq_payroll_employee_period"),
    )

    def __repr__(self) -> str:
        return f"<Payroll(employee_id={self.employee_id}, period='{self.pay_period}', net={self.net_salary})>"


# ==================== Attendance ====================

class Attendance(Base):
    """
    Daily attendance record.
    """
    __tablename__ = "attendance"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    check_in_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    check_out_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    hours_worked: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=AttendanceStatus.PRESENT.value,
        nullable=False,
        comment="PRESENT, ABSENT, LATE, HALF_DAY, WORK_FROM_HOME, ON_LEAVE, HOLIDAY"
    )
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("employee_id", "attendance_date", name="uq_attendance_employee_date"),
    )

    def __repr__(self) -> str:
        return f"<Attendance(employee_id={self.employee_id}, date={self.attendance_date}, status='{self.status}')>"


# ==================== Performance Review ====================

class PerformanceReview(Base):
    """
    Periodic performance review written by a reviewer (also an employee).
    """
    __tablename__ = "performance_reviews"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    review_period: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")
    period_type: Mapped[str] = mapped_column(
        String(50),
        default=ReviewPeriodType.QUARTERLY.value,
        nullable=False,
        comment="QUARTERLY, SEMI_ANNUAL, ANNUAL"
    )
    review_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Ratings (1-5)
    overall_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    technical_skills: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    communication: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    teamwork: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    leadership: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    problem_solving: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    time_management: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    achievements: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    areas_of_improvement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    goals: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewer_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    employee_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        default=ReviewStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, IN_PROGRESS, COMPLETED, APPROVED"
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(
        back_populates="performance_reviews", foreign_keys=[employee_id]
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "review_period", name="uq_review_employee_period"),
    )

    def __repr__(self) -> str:
        return f"<PerformanceReview(employee_id={self.employee_id}, period='{self.review_period}', status='{self.status}')>"


# ==================== Compliance Tracking ====================

class ComplianceTracking(Base):
    """
    Tracked compliance obligation (training, certification, document) for an employee.
    """
    __tablename__ = "compliance_tracking"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    compliance_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="POLICY_ACKNOWLEDGMENT, TRAINING_COMPLETION, DOCUMENT_SUBMISSION, CERTIFICATION, ..."
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        default=ComplianceStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, COMPLETED, EXPIRED, NOT_APPLICABLE"
    )

    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    completed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    document_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    certificate_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    verified_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(back_populates="compliance_items")

    def __repr__(self) -> str:
        return f"<ComplianceTracking(employee_id={self.employee_id}, type='{self.compliance_type}', status='{self.status}')>"
