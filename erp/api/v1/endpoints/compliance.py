"""API endpoints for employee compliance tracking."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.exceptions import ForbiddenError
from erp.core.permissions import (
    RequestContext, ALL_ROLES, APPROVER_ROLES, HR_ROLES, can_view_employee_record,
)
from erp.models.hr import ComplianceStatus
from erp.schemas.base import PaginatedResponse, BulkResult
from erp.schemas.hr import (
    ComplianceCreate, ComplianceUpdate, ComplianceVerify, ComplianceBulkCreate,
    ComplianceFilter, ComplianceResponse, ComplianceSummaryResponse, ComplianceSweepResponse,
)
from erp.services.compliance_service import ComplianceService

router = APIRouter(tags=["Compliance Tracking"])


@router.post("", response_model=ComplianceResponse, status_code=status.HTTP_201_CREATED)
async def create_compliance(
    data: ComplianceCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    return await ComplianceService(db).create(data)


@router.post("/bulk", response_model=BulkResult)
async def bulk_create_compliance(
    data: ComplianceBulkCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    """Create many items; each failure is reported by index and the rest continue."""
    return await ComplianceService(db).bulk_create(data.items)


@router.post("/mark-expired", response_model=ComplianceSweepResponse)
async def mark_expired(
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    """Run the expiry sweep now instead of waiting for the scheduler."""
    return ComplianceSweepResponse(expired=await ComplianceService(db).mark_expired())


@router.get("", response_model=PaginatedResponse[ComplianceResponse])
async def list_compliance(
    db: DB,
    filters: ComplianceFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await ComplianceService(db).list(filters, page, limit)


@router.get("/my-compliance", response_model=List[ComplianceResponse])
async def my_compliance(
    db: DB,
    item_status: Optional[ComplianceStatus] = Query(None, alias="status"),
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    if not context.employee_id:
        raise ForbiddenError("Employee record not found for this user")
    return await ComplianceService(db).by_employee(context.employee_id, item_status)


@router.get("/employee/{employee_id}", response_model=List[ComplianceResponse])
async def employee_compliance(
    employee_id: UUID,
    db: DB,
    item_status: Optional[ComplianceStatus] = Query(None, alias="status"),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await ComplianceService(db).by_employee(employee_id, item_status)


@router.get("/due-soon", response_model=List[ComplianceResponse])
async def due_soon(
    db: DB,
    days: int = Query(30, ge=1, le=365),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await ComplianceService(db).due_soon(days)


@router.get("/overdue", response_model=List[ComplianceResponse])
async def overdue(
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await ComplianceService(db).overdue()


@router.get("/expiring", response_model=List[ComplianceResponse])
async def expiring(
    db: DB,
    days: int = Query(30, ge=1, le=365),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await ComplianceService(db).expiring(days)


@router.get("/summary", response_model=ComplianceSummaryResponse)
async def compliance_summary(
    db: DB,
    employee_id: Optional[UUID] = None,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await ComplianceService(db).summary(employee_id)


@router.get("/{item_id}", response_model=ComplianceResponse)
async def get_compliance(
    item_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    item = await ComplianceService(db).get(item_id)
    if not can_view_employee_record(context, item.employee_id):
        raise ForbiddenError("You can only view your own compliance items")
    return item


@router.patch("/{item_id}", response_model=ComplianceResponse)
async def update_compliance(
    item_id: UUID,
    data: ComplianceUpdate,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    return await ComplianceService(db).update(item_id, data)


@router.patch("/{item_id}/verify", response_model=ComplianceResponse)
async def verify_compliance(
    item_id: UUID,
    data: ComplianceVerify,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    return await ComplianceService(db).verify(item_id, data, context)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_compliance(
    item_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*HR_ROLES)),
):
    await ComplianceService(db).remove(item_id)
