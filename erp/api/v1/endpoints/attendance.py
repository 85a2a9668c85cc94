"""API endpoints for attendance."""
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from erp.api.deps import DB, require_roles
from erp.core.exceptions import ForbiddenError
from erp.core.permissions import (
    RequestContext, ALL_ROLES, APPROVER_ROLES, HR_ROLES, can_view_employee_record,
)
from erp.schemas.base import PaginatedResponse
from erp.schemas.hr import (
    AttendanceCreate, AttendanceUpdate, AttendanceCheckIn, AttendanceCheckOut,
    AttendanceFilter, AttendanceResponse, AttendanceSummaryResponse,
    TeamAttendanceSummaryResponse,
)
from erp.services.attendance_service import AttendanceService

router = APIRouter(tags=["Attendance"])


@router.post("", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def create_attendance(
    data: AttendanceCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    """Record attendance for an employee and date. Hours are derived from the times."""
    return await AttendanceService(db).create(data)


@router.post("/check-in", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def check_in(
    request: Request,
    data: AttendanceCheckIn,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    ip_address = request.client.host if request.client else None
    return await AttendanceService(db).check_in(context, data, ip_address)


@router.post("/check-out", response_model=AttendanceResponse)
async def check_out(
    data: AttendanceCheckOut,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    return await AttendanceService(db).check_out(context, data)


@router.get("", response_model=PaginatedResponse[AttendanceResponse])
async def list_attendance(
    db: DB,
    filters: AttendanceFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await AttendanceService(db).list(filters, page, limit)


@router.get("/employee/{employee_id}/{attendance_date}", response_model=AttendanceResponse)
async def get_attendance_by_date(
    employee_id: UUID,
    attendance_date: date,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await AttendanceService(db).by_employee_and_date(employee_id, attendance_date)


@router.get("/summary/{employee_id}/{month}/{year}", response_model=AttendanceSummaryResponse)
async def monthly_summary(
    employee_id: UUID,
    month: int,
    year: int,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Monthly counts, hours and attendance percentage for an employee."""
    if not can_view_employee_record(context, employee_id):
        raise ForbiddenError("You can only view your own attendance")
    return await AttendanceService(db).monthly_summary(employee_id, month, year)


@router.get("/team-summary/{attendance_date}", response_model=TeamAttendanceSummaryResponse)
async def team_summary(
    attendance_date: date,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await AttendanceService(db).team_summary(attendance_date)


@router.get("/{attendance_id}", response_model=AttendanceResponse)
async def get_attendance(
    attendance_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    record = await AttendanceService(db).get(attendance_id)
    if not can_view_employee_record(context, record.employee_id):
        raise ForbiddenError("You can only view your own attendance")
    return record


@router.patch("/{attendance_id}", response_model=AttendanceResponse)
async def update_attendance(
    attendance_id: UUID,
    data: AttendanceUpdate,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await AttendanceService(db).update(attendance_id, data)


@router.delete("/{attendance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attendance(
    attendance_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    await AttendanceService(db).remove(attendance_id)
