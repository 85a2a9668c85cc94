"""API endpoints for leave requests."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.exceptions import ForbiddenError
from erp.core.permissions import (
    RequestContext, ALL_ROLES, APPROVER_ROLES, HR_ROLES, can_view_employee_record,
)
from erp.models.hr import LeaveStatus
from erp.schemas.base import PaginatedResponse
from erp.schemas.hr import (
    LeaveRequestCreate, LeaveRequestUpdate, LeaveApproveRequest, LeaveRequestFilter,
    LeaveRequestResponse, LeaveBalanceResponse,
)
from erp.services.leave_service import LeaveService

router = APIRouter(tags=["Leave Requests"])


@router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    data: LeaveRequestCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """
    Apply for leave.

    Rejected when the range overlaps an already approved leave of the same employee.
    """
    return await LeaveService(db).create(data, context)


@router.get("", response_model=PaginatedResponse[LeaveRequestResponse])
async def list_leave_requests(
    db: DB,
    filters: LeaveRequestFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await LeaveService(db).list(filters, page, limit)


@router.get("/my-requests", response_model=PaginatedResponse[LeaveRequestResponse])
async def my_leave_requests(
    db: DB,
    leave_status: Optional[LeaveStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    return await LeaveService(db).my_requests(context, leave_status, page, limit)


@router.get("/balance/{year}", response_model=LeaveBalanceResponse)
async def get_leave_balance(
    year: int,
    db: DB,
    employee_id: Optional[UUID] = None,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Annual leave balance for the caller, or for ``employee_id`` (HR only)."""
    if employee_id and employee_id != context.employee_id:
        if not context.has_any_role(HR_ROLES):
            raise ForbiddenError("Only HR can view another employee's leave balance")
    target = employee_id or context.employee_id
    if not target:
        raise ForbiddenError("Employee record not found for this user")
    return await LeaveService(db).balance(target, year)


@router.get("/{leave_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    leave_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    leave = await LeaveService(db).get(leave_id)
    if not can_view_employee_record(context, leave.employee_id):
        raise ForbiddenError("You can only view your own leave requests")
    return leave


@router.patch("/{leave_id}", response_model=LeaveRequestResponse)
async def update_leave_request(
    leave_id: UUID,
    data: LeaveRequestUpdate,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Edit a pending leave request owned by the caller."""
    return await LeaveService(db).update(leave_id, data, context)


@router.patch("/{leave_id}/approve", response_model=LeaveRequestResponse)
async def approve_leave_request(
    leave_id: UUID,
    data: LeaveApproveRequest,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    """Approve or reject a pending leave request."""
    return await LeaveService(db).approve(leave_id, data, context)


@router.patch("/{leave_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    leave_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    return await LeaveService(db).cancel(leave_id, context)


@router.delete("/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_request(
    leave_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    await LeaveService(db).remove(leave_id, context)
