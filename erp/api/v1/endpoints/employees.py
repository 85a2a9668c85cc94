"""API endpoints for employee records."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.exceptions import ForbiddenError
from erp.core.permissions import (
    RequestContext, ALL_ROLES, APPROVER_ROLES, HR_ROLES, can_view_employee_record,
)
from erp.models.hr import EmployeeStatus
from erp.schemas.base import PaginatedResponse
from erp.schemas.hr import EmployeeCreate, EmployeeUpdate, EmployeeResponse
from erp.services.employee_service import EmployeeService

router = APIRouter(tags=["Employees"])


@router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    """Create an employee. The code is generated when omitted."""
    return await EmployeeService(db).create(data)


@router.get("", response_model=PaginatedResponse[EmployeeResponse])
async def list_employees(
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
    status: Optional[EmployeeStatus] = None,
    department: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    return await EmployeeService(db).list(status, department, search, page, limit)


@router.get("/me", response_model=EmployeeResponse)
async def get_my_employee(
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Employee record linked to the caller."""
    if not context.employee_id:
        raise ForbiddenError("Employee record not found for this user")
    return await EmployeeService(db).get(context.employee_id)


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    if not can_view_employee_record(context, employee_id):
        raise ForbiddenError("You can only view your own employee record")
    return await EmployeeService(db).get(employee_id)


@router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: UUID,
    data: EmployeeUpdate,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    return await EmployeeService(db).update(employee_id, data)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    await EmployeeService(db).remove(employee_id)
