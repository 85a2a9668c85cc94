"""Performance reviews: authoring by a reviewer, acknowledgement and approval."""
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import NotFoundError, BadRequestError, ForbiddenError
from erp.core.permissions import RequestContext, APPROVER_ROLES
from erp.models.hr import Employee, PerformanceReview, ReviewStatus
from erp.schemas.hr import (
    PerformanceReviewCreate, PerformanceReviewUpdate, PerformanceReviewComplete, PerformanceReviewFilter,
)
from erp.services.filters import build_performance_review_filters
from erp.services.pagination import apply_filters, paginate
from erp.services.state_machine import REVIEW_TRANSITIONS, validate_transition, is_terminal

logger = logging.getLogger(__name__)

SKILL_FIELDS = (
    "technical_skills",
    "communication",
    "teamwork",
    "leadership",
    "problem_solving",
    "time_management",
)

DUPLICATE_MESSAGE = "Performance review already exists for this employee and period"


def average_rating(values: Iterable[Optional[int]]) -> Optional[float]:
    """Mean of the non-null ratings rounded to 2 dp, None when there are none."""
    present = [Decimal(v) for v in values if v is not None]
    if not present:
        return None
    mean = sum(present) / len(present)
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class PerformanceReviewService:
    """Reviews are written by the caller's employee record."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, review_id: UUID) -> PerformanceReview:
        review = await self.db.get(PerformanceReview, review_id)
        if not review:
            raise NotFoundError("Performance review not found")
        return review

    def _ensure_reviewer(self, review: PerformanceReview, context: RequestContext) -> None:
        if review.reviewer_id != context.employee_id:
            raise ForbiddenError("Only the reviewer can modify this review")

    def _ensure_not_approved(self, review: PerformanceReview) -> None:
        if is_terminal(REVIEW_TRANSITIONS, review.status):
            raise BadRequestError("Cannot modify an approved review")

    async def create(self, data: PerformanceReviewCreate, context: RequestContext) -> PerformanceReview:
        if data.status == ReviewStatus.APPROVED:
            raise BadRequestError("Use the complete endpoint to approve a review")
        if not context.employee_id:
            raise NotFoundError("Employee record not found for this user")
        if not await self.db.get(Employee, data.employee_id):
            raise NotFoundError("Employee not found")

        existing = await self.db.execute(
            select(PerformanceReview.id).where(
                PerformanceReview.employee_id == data.employee_id,
                PerformanceReview.review_period == data.review_period,
            )
        )
        if existing.scalar_one_or_none():
            raise BadRequestError(DUPLICATE_MESSAGE)

        payload = data.model_dump()
        payload["period_type"] = data.period_type.value
        payload["status"] = data.status.value
        review = PerformanceReview(**payload, reviewer_id=context.employee_id)
        self.db.add(review)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError(DUPLICATE_MESSAGE)
        await self.db.refresh(review)

        logger.info(f"Review {review.review_period} created for employee {review.employee_id}")
        return review

    async def list(self, filters: PerformanceReviewFilter, page: int = 1, limit: int = 10) -> dict:
        query = apply_filters(select(PerformanceReview), build_performance_review_filters(filters))
        return await paginate(
            self.db, query, page, limit,
            order_by=[PerformanceReview.review_date.desc()],
        )

    async def by_employee(self, employee_id: UUID) -> List[PerformanceReview]:
        result = await self.db.execute(
            select(PerformanceReview)
            .where(PerformanceReview.employee_id == employee_id)
            .order_by(PerformanceReview.review_date.desc())
        )
        return list(result.scalars().all())

    async def update(
        self, review_id: UUID, data: PerformanceReviewUpdate, context: RequestContext
    ) -> PerformanceReview:
        review = await self.get(review_id)
        self._ensure_reviewer(review, context)
        self._ensure_not_approved(review)

        update_data = data.model_dump(exclude_unset=True)
        new_status = update_data.pop("status", None)
        if new_status is not None and new_status.value != review.status:
            validate_transition(REVIEW_TRANSITIONS, review.status, new_status, "Performance review")
            if new_status == ReviewStatus.APPROVED:
                raise BadRequestError("Use the complete endpoint to approve a review")
            review.status = new_status.value

        for field, value in update_data.items():
            setattr(review, field, value.value if hasattr(value, "value") else value)

        await self.db.commit()
        await self.db.refresh(review)
        return review

    async def complete(
        self, review_id: UUID, data: PerformanceReviewComplete, context: RequestContext
    ) -> PerformanceReview:
        """
        COMPLETED: the reviewed employee acknowledges the review.
        APPROVED: a manager, HR or admin signs it off.
        """
        review = await self.get(review_id)
        now = datetime.now(timezone.utc)

        if data.status == ReviewStatus.COMPLETED:
            if review.employee_id != context.employee_id:
                raise ForbiddenError("Only the reviewed employee can complete this review")
            validate_transition(REVIEW_TRANSITIONS, review.status, data.status, "Performance review")
            review.completed_at = now
            if data.employee_comments is not None:
                review.employee_comments = data.employee_comments
        elif data.status == ReviewStatus.APPROVED:
            if not context.has_any_role(APPROVER_ROLES):
                raise ForbiddenError("Only managers, HR or admins can approve reviews")
            validate_transition(REVIEW_TRANSITIONS, review.status, data.status, "Performance review")
            review.approved_at = now
            if review.completed_at is None:
                review.completed_at = now
        else:
            raise BadRequestError("Status must be COMPLETED or APPROVED")

        review.status = data.status.value
        await self.db.commit()
        await self.db.refresh(review)

        logger.info(f"Review {review.id} marked {review.status}")
        return review

    async def remove(self, review_id: UUID, context: RequestContext) -> None:
        review = await self.get(review_id)
        self._ensure_reviewer(review, context)
        self._ensure_not_approved(review)
        await self.db.delete(review)
        await self.db.commit()

    async def employee_summary(self, employee_id: UUID, year: Optional[int] = None) -> dict:
        """Averages over APPROVED reviews, optionally restricted to one year."""
        query = select(PerformanceReview).where(
            PerformanceReview.employee_id == employee_id,
            PerformanceReview.status == ReviewStatus.APPROVED.value,
        )
        if year:
            query = query.where(PerformanceReview.review_period.like(f"{year}-%"))
        result = await self.db.execute(query.order_by(PerformanceReview.review_period.desc()))
        reviews = list(result.scalars().all())

        return {
            "employee_id": employee_id,
            "year": year or datetime.now(timezone.utc).year,
            "total_reviews": len(reviews),
            "average_rating": average_rating(r.overall_rating for r in reviews),
            "skill_averages": {
                skill: average_rating(getattr(r, skill) for r in reviews) for skill in SKILL_FIELDS
            },
            "latest_review_period": reviews[0].review_period if reviews else None,
        }

    async def team_summary(self, reviewer_id: UUID, review_period: Optional[str] = None) -> dict:
        query = select(PerformanceReview).where(PerformanceReview.reviewer_id == reviewer_id)
        if review_period:
            query = query.where(PerformanceReview.review_period == review_period)
        reviews = list((await self.db.execute(query)).scalars().all())

        distribution = {str(rating): 0 for rating in range(1, 6)}
        by_status: dict = {}
        for review in reviews:
            distribution[str(review.overall_rating)] = distribution.get(str(review.overall_rating), 0) + 1
            by_status[review.status] = by_status.get(review.status, 0) + 1

        return {
            "reviewer_id": reviewer_id,
            "review_period": review_period,
            "total_reviews": len(reviews),
            "average_rating": average_rating(r.overall_rating for r in reviews),
            "rating_distribution": distribution,
            "by_status": by_status,
        }
