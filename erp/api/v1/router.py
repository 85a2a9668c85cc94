from fastapi import APIRouter

from erp.api.v1.endpoints import (
    # Access Control
    auth,
    employees,
    # HR
    leave_requests,
    payroll,
    attendance,
    performance_reviews,
    compliance,
    # Finance
    invoices,
    bills,
    customer_addresses,
    gst,
    exports,
    prints,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(auth.router, prefix="/auth")
api_router.include_router(employees.router, prefix="/employees")

# ==================== HR ====================
api_router.include_router(leave_requests.router, prefix="/hr/leave-requests")
api_router.include_router(payroll.router, prefix="/hr/payrolls")
api_router.include_router(attendance.router, prefix="/hr/attendance")
api_router.include_router(performance_reviews.router, prefix="/hr/performance-reviews")
api_router.include_router(compliance.router, prefix="/hr/compliance-tracking")

# ==================== Finance ====================
api_router.include_router(invoices.router, prefix="/finance/invoices")
api_router.include_router(bills.router, prefix="/finance/bills")
api_router.include_router(customer_addresses.router, prefix="/finance/customer-addresses")
api_router.include_router(gst.router, prefix="/finance/gst")
api_router.include_router(exports.router, prefix="/finance/exports")
api_router.include_router(prints.router, prefix="/finance/prints")
