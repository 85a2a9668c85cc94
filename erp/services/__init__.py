# Services module
from erp.services.auth_service import AuthService
from erp.services.employee_service import EmployeeService

# HR Services
from erp.services.leave_service import LeaveService
from erp.services.payroll_service import PayrollService
from erp.services.attendance_service import AttendanceService
from erp.services.performance_review_service import PerformanceReviewService
from erp.services.compliance_service import ComplianceService

# Finance Services
from erp.services.invoice_service import InvoiceService
from erp.services.bill_service import BillService
from erp.services.customer_address_service import CustomerAddressService
from erp.services.export_service import ExportService
from erp.services.print_service import PrintService

__all__ = [
    "AuthService",
    "EmployeeService",
    # HR
    "LeaveService",
    "PayrollService",
    "AttendanceService",
    "PerformanceReviewService",
    "ComplianceService",
    # Finance
    "InvoiceService",
    "BillService",
    "CustomerAddressService",
    "ExportService",
    "PrintService",
]
