"""API endpoints for performance reviews."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.exceptions import ForbiddenError
from erp.core.permissions import (
    RequestContext, ALL_ROLES, APPROVER_ROLES, can_view_employee_record,
)
from erp.schemas.base import PaginatedResponse
from erp.schemas.hr import (
    PerformanceReviewCreate, PerformanceReviewUpdate, PerformanceReviewComplete,
    PerformanceReviewFilter, PerformanceReviewResponse,
    PerformanceSummaryResponse, TeamPerformanceSummaryResponse,
)
from erp.services.performance_review_service import PerformanceReviewService

router = APIRouter(tags=["Performance Reviews"])


@router.post("", response_model=PerformanceReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: PerformanceReviewCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    """Create a review; the caller's employee record is the reviewer."""
    return await PerformanceReviewService(db).create(data, context)


@router.get("", response_model=PaginatedResponse[PerformanceReviewResponse])
async def list_reviews(
    db: DB,
    filters: PerformanceReviewFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await PerformanceReviewService(db).list(filters, page, limit)


@router.get("/my-reviews", response_model=List[PerformanceReviewResponse])
async def my_reviews(
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    if not context.employee_id:
        raise ForbiddenError("Employee record not found for this user")
    return await PerformanceReviewService(db).by_employee(context.employee_id)


@router.get("/employee/{employee_id}", response_model=List[PerformanceReviewResponse])
async def employee_reviews(
    employee_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await PerformanceReviewService(db).by_employee(employee_id)


@router.get("/summary/{employee_id}", response_model=PerformanceSummaryResponse)
async def employee_summary(
    employee_id: UUID,
    db: DB,
    year: Optional[int] = None,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Averages over the employee's approved reviews for a year."""
    if not can_view_employee_record(context, employee_id):
        raise ForbiddenError("You can only view your own performance summary")
    return await PerformanceReviewService(db).employee_summary(employee_id, year)


@router.get("/team-summary", response_model=TeamPerformanceSummaryResponse)
async def team_summary(
    db: DB,
    reviewer_id: Optional[UUID] = None,
    review_period: Optional[str] = None,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    """Reviews written by ``reviewer_id``, defaulting to the caller."""
    target = reviewer_id or context.employee_id
    if not target:
        raise ForbiddenError("Employee record not found for this user")
    return await PerformanceReviewService(db).team_summary(target, review_period)


@router.get("/{review_id}", response_model=PerformanceReviewResponse)
async def get_review(
    review_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    review = await PerformanceReviewService(db).get(review_id)
    if not can_view_employee_record(context, review.employee_id):
        raise ForbiddenError("You can only view your own reviews")
    return review


@router.patch("/{review_id}", response_model=PerformanceReviewResponse)
async def update_review(
    review_id: UUID,
    data: PerformanceReviewUpdate,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    return await PerformanceReviewService(db).update(review_id, data, context)


@router.patch("/{review_id}/complete", response_model=PerformanceReviewResponse)
async def complete_review(
    review_id: UUID,
    data: PerformanceReviewComplete,
    db: DB,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Employee acknowledges (COMPLETED) or a manager signs off (APPROVED)."""
    return await PerformanceReviewService(db).complete(review_id, data, context)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    db: DB,
    context: RequestContext = Depends(require_roles(*APPROVER_ROLES)),
):
    await PerformanceReviewService(db).remove(review_id, context)
