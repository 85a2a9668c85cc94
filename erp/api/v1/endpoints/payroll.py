"""API endpoints for payroll."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from erp.api.deps import DB, require_roles
from erp.core.exceptions import ForbiddenError
from erp.core.permissions import (
    RequestContext, ALL_ROLES, APPROVER_ROLES, HR_ROLES, can_view_employee_record,
)
from erp.schemas.base import PaginatedResponse
from erp.schemas.hr import (
    PayrollCreate, PayrollUpdate, PayrollProcessRequest, PayrollFilter,
    PayrollBulkGenerateRequest, PayrollBulkGenerateResponse,
    PayrollResponse, PayrollSummaryResponse, PERIOD_PATTERN,
)
from erp.services.payroll_service import PayrollService

router = APIRouter(tags=["Payroll"])


@router.post("", response_model=PayrollResponse, status_code=status.HTTP_201_CREATED)
async def create_payroll(
    data: PayrollCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    """
    Create payroll for an employee and pay period.

    Gross and net salary are always computed from the components.
    One row per employee per period.
    """
    return await PayrollService(db).create(data)


@router.post("/bulk-generate", response_model=PayrollBulkGenerateResponse)
async def bulk_generate_payroll(
    data: PayrollBulkGenerateRequest,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    """Draft payroll for each active employee lacking one for the period."""
    return await PayrollService(db).bulk_generate(data)


@router.get("", response_model=PaginatedResponse[PayrollResponse])
async def list_payroll(
    db: DB,
    filters: PayrollFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await PayrollService(db).list(filters, page, limit)


@router.get("/my-payroll", response_model=List[PayrollResponse])
async def my_payroll(
    db: DB,
    year: Optional[int] = None,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    if not context.employee_id:
        raise ForbiddenError("Employee record not found for this user")
    return await PayrollService(db).by_employee(context.employee_id, year)


@router.get("/employee/{employee_id}", response_model=List[PayrollResponse])
async def employee_payroll(
    employee_id: UUID,
    db: DB,
    year: Optional[int] = None,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await PayrollService(db).by_employee(employee_id, year)


@router.get("/summary/{pay_period}", response_model=PayrollSummaryResponse)
async def payroll_summary(
    db: DB,
    pay_period: str = Path(..., pattern=PERIOD_PATTERN),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await PayrollService(db).summary(pay_period)


@router.get("/{payroll_id}", response_model=PayrollResponse)
async def get_payroll(
    payroll_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    payroll = await PayrollService(db).get(payroll_id)
    if not can_view_employee_record(context, payroll.employee_id):
        raise ForbiddenError("You can only view your own payroll")
    return payroll


@router.patch("/{payroll_id}", response_model=PayrollResponse)
async def update_payroll(
    payroll_id: UUID,
    data: PayrollUpdate,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    """Edit a DRAFT payroll; totals are recomputed."""
    return await PayrollService(db).update(payroll_id, data)


@router.patch("/{payroll_id}/process", response_model=PayrollResponse)
async def process_payroll(
    payroll_id: UUID,
    data: PayrollProcessRequest,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    """Advance DRAFT -> PROCESSED -> PAID, or cancel."""
    return await PayrollService(db).process(payroll_id, data)


@router.delete("/{payroll_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payroll(
    payroll_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    await PayrollService(db).remove(payroll_id)
