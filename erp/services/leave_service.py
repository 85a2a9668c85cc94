"""
Leave request service.

Rules:
- end_date must not precede start_date
- an employee may not hold two APPROVED requests with overlapping dates;
  checked when a request is created, edited and approved
- only the owner edits, cancels or deletes, and only while PENDING
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.config import settings
from erp.core.exceptions import NotFoundError, BadRequestError, ForbiddenError
from erp.core.permissions import RequestContext, HR_ROLES
from erp.models.hr import Employee, LeaveRequest, LeaveStatus
from erp.schemas.hr import (
    LeaveRequestCreate, LeaveRequestUpdate, LeaveApproveRequest, LeaveRequestFilter,
)
from erp.services.filters import build_leave_request_filters
from erp.services.pagination import apply_filters, paginate
from erp.services.state_machine import LEAVE_TRANSITIONS, validate_transition, ensure_editable

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Leave request overlaps with existing approved leave"


def count_leave_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar-day count."""
    return (end_date - start_date).days + 1


def validate_leave_dates(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise BadRequestError("End date must be on or after start date")


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and b_start <= a_end


class LeaveService:
    """Leave applications, approval and balance."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _resolve_employee_id(self, context: RequestContext, requested: Optional[UUID]) -> UUID:
        if requested and requested != context.employee_id:
            if not context.has_any_role(HR_ROLES):
                raise ForbiddenError("Only HR can apply leave on behalf of another employee")
            if not await self.db.get(Employee, requested):
                raise NotFoundError("Employee not found")
            return requested
        if not context.employee_id:
            raise NotFoundError("Employee record not found for this user")
        return context.employee_id

    async def has_approved_overlap(
        self,
        employee_id: UUID,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None,
    ) -> bool:
        query = select(LeaveRequest.id).where(
            and_(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
        )
        if exclude_id:
            query = query.where(LeaveRequest.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def get(self, leave_id: UUID) -> LeaveRequest:
        leave = await self.db.get(LeaveRequest, leave_id)
        if not leave:
            raise NotFoundError("Leave request not found")
        return leave

    def _ensure_owner(self, leave: LeaveRequest, context: RequestContext) -> None:
        if leave.employee_id != context.employee_id:
            raise ForbiddenError("You can only modify your own leave requests")

    async def create(self, data: LeaveRequestCreate, context: RequestContext) -> LeaveRequest:
        employee_id = await self._resolve_employee_id(context, data.employee_id)
        validate_leave_dates(data.start_date, data.end_date)

        if await self.has_approved_overlap(employee_id, data.start_date, data.end_date):
            raise BadRequestError(OVERLAP_MESSAGE)

        leave = LeaveRequest(
            employee_id=employee_id,
            leave_type=data.leave_type.value,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=data.total_days or count_leave_days(data.start_date, data.end_date),
            reason=data.reason,
            attachment_url=data.attachment_url,
            status=LeaveStatus.PENDING.value,
        )
        self.db.add(leave)
        await self.db.commit()
        await self.db.refresh(leave)

        logger.info(f"Leave request {leave.id} created for employee {employee_id}")
        return leave

    async def list(self, filters: LeaveRequestFilter, page: int = 1, limit: int = 10) -> dict:
        query = apply_filters(select(LeaveRequest), build_leave_request_filters(filters))
        return await paginate(
            self.db, query, page, limit,
            order_by=[LeaveRequest.created_at.desc()],
        )

    async def my_requests(
        self,
        context: RequestContext,
        status: Optional[LeaveStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        if not context.employee_id:
            raise NotFoundError("Employee record not found for this user")
        filters = LeaveRequestFilter(employee_id=context.employee_id, status=status)
        return await self.list(filters, page, limit)

    async def update(self, leave_id: UUID, data: LeaveRequestUpdate, context: RequestContext) -> LeaveRequest:
        leave = await self.get(leave_id)
        self._ensure_owner(leave, context)
        ensure_editable("leave request", leave.status)

        update_data = data.model_dump(exclude_unset=True)
        start_date = update_data.get("start_date", leave.start_date)
        end_date = update_data.get("end_date", leave.end_date)
        validate_leave_dates(start_date, end_date)

        dates_changed = "start_date" in update_data or "end_date" in update_data
        if dates_changed:
            if await self.has_approved_overlap(leave.employee_id, start_date, end_date, exclude_id=leave.id):
                raise BadRequestError(OVERLAP_MESSAGE)
            if "total_days" not in update_data:
                update_data["total_days"] = count_leave_days(start_date, end_date)

        for field, value in update_data.items():
            setattr(leave, field, value.value if hasattr(value, "value") else value)

        await self.db.commit()
        await self.db.refresh(leave)
        return leave

    async def approve(self, leave_id: UUID, data: LeaveApproveRequest, context: RequestContext) -> LeaveRequest:
        """Approve or reject a pending request."""
        if data.status not in (LeaveStatus.APPROVED, LeaveStatus.REJECTED):
            raise BadRequestError("Status must be APPROVED or REJECTED")

        leave = await self.get(leave_id)
        validate_transition(LEAVE_TRANSITIONS, leave.status, data.status, "Leave request")

        if data.status == LeaveStatus.APPROVED and await self.has_approved_overlap(
            leave.employee_id, leave.start_date, leave.end_date, exclude_id=leave.id
        ):
            raise BadRequestError(OVERLAP_MESSAGE)

        leave.status = data.status.value
        leave.approved_by = context.user_id
        leave.approved_at = datetime.now(timezone.utc)
        leave.approver_comments = data.approver_comments

        await self.db.commit()
        await self.db.refresh(leave)

        logger.info(f"Leave request {leave.id} {leave.status.lower()} by {context.email}")
        return leave

    async def cancel(self, leave_id: UUID, context: RequestContext) -> LeaveRequest:
        leave = await self.get(leave_id)
        self._ensure_owner(leave, context)
        validate_transition(LEAVE_TRANSITIONS, leave.status, LeaveStatus.CANCELLED, "Leave request")

        leave.status = LeaveStatus.CANCELLED.value
        await self.db.commit()
        await self.db.refresh(leave)
        return leave

    async def remove(self, leave_id: UUID, context: RequestContext) -> None:
        leave = await self.get(leave_id)
        self._ensure_owner(leave, context)
        ensure_editable("leave request", leave.status)

        await self.db.delete(leave)
        await self.db.commit()

    async def balance(self, employee_id: UUID, year: Optional[int] = None) -> dict:
        """Annual entitlement minus approved days starting in ``year``."""
        year = year or date.today().year
        if not await self.db.get(Employee, employee_id):
            raise NotFoundError("Employee not found")

        result = await self.db.execute(
            select(LeaveRequest.leave_type, LeaveRequest.total_days).where(
                and_(
                    LeaveRequest.employee_id == employee_id,
                    LeaveRequest.status == LeaveStatus.APPROVED.value,
                    LeaveRequest.start_date >= date(year, 1, 1),
                    LeaveRequest.start_date <= date(year, 12, 31),
                )
            )
        )
        by_type: dict = {}
        taken = 0
        for leave_type, days in result.all():
            by_type[leave_type] = by_type.get(leave_type, 0) + days
            taken += days

        entitlement = settings.LEAVE_ENTITLEMENT_DAYS
        return {
            "employee_id": employee_id,
            "year": year,
            "entitlement": entitlement,
            "taken": taken,
            "remaining": max(0, entitlement - taken),
            "by_type": by_type,
        }
