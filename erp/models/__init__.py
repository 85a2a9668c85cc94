# Models module - importing here registers every table on Base.metadata
from erp.models.user import User, UserRole
from erp.models.hr import (
    Employee, EmployeeStatus,
    LeaveRequest, LeaveType, LeaveStatus,
    Payroll, PayrollStatus,
    Attendance, AttendanceStatus,
    PerformanceReview, ReviewPeriodType, ReviewStatus, PerformanceRating,
    ComplianceTracking, ComplianceType, ComplianceStatus,
)
from erp.models.billing import (
    Invoice, InvoiceItem, InvoiceStatus,
    Bill, BillItem, BillPayment, BillStatus, BillType, PaymentMethod,
    CustomerAddress, AddressType,
)
from erp.models.export import (
    ExportJob, PrintJob, JobStatus, ExportFormat, ExportType,
    PrintEntityType, PaperSize, PageOrientation,
)
from erp.models.operation_log import OperationLog, OperationEntity, OperationType

__all__ = [
    "User", "UserRole",
    # HR
    "Employee", "EmployeeStatus",
    "LeaveRequest", "LeaveType", "LeaveStatus",
    "Payroll", "PayrollStatus",
    "Attendance", "AttendanceStatus",
    "PerformanceReview", "ReviewPeriodType", "ReviewStatus", "PerformanceRating",
    "ComplianceTracking", "ComplianceType", "ComplianceStatus",
    # Finance
    "Invoice", "InvoiceItem", "InvoiceStatus",
    "Bill", "BillItem", "BillPayment", "BillStatus", "BillType", "PaymentMethod",
    "CustomerAddress", "AddressType",
    # Jobs
    "ExportJob", "PrintJob", "JobStatus", "ExportFormat", "ExportType",
    "PrintEntityType", "PaperSize", "PageOrientation",
    # Audit
    "OperationLog", "OperationEntity", "OperationType",
]
