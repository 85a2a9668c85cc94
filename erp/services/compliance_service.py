"""
Compliance tracking service.

Items start PENDING, are verified to COMPLETED or NOT_APPLICABLE, and
COMPLETED items whose expiry_date has passed are swept to EXPIRED.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import ERPError, NotFoundError, BadRequestError
from erp.core.permissions import RequestContext
from erp.models.hr import Employee, ComplianceTracking, ComplianceStatus
from erp.schemas.hr import ComplianceCreate, ComplianceUpdate, ComplianceVerify, ComplianceFilter
from erp.services.filters import build_compliance_filters
from erp.services.pagination import apply_filters, paginate
from erp.services.state_machine import COMPLIANCE_TRANSITIONS, validate_transition, ensure_editable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30


def compliance_rate(by_status: dict) -> float:
    """Share of applicable items that are COMPLETED, as a percentage."""
    applicable = sum(by_status.values()) - by_status.get(ComplianceStatus.NOT_APPLICABLE.value, 0)
    if applicable <= 0:
        return 0.0
    return round(by_status.get(ComplianceStatus.COMPLETED.value, 0) / applicable * 100, 2)


class ComplianceService:
    """Per-employee compliance obligations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, item_id: UUID) -> ComplianceTracking:
        item = await self.db.get(ComplianceTracking, item_id)
        if not item:
            raise NotFoundError("Compliance item not found")
        return item

    def _build(self, data: ComplianceCreate) -> ComplianceTracking:
        payload = data.model_dump()
        payload["compliance_type"] = data.compliance_type.value
        return ComplianceTracking(**payload, status=ComplianceStatus.PENDING.value)

    async def create(self, data: ComplianceCreate) -> ComplianceTracking:
        if not await self.db.get(Employee, data.employee_id):
            raise NotFoundError("Employee not found")
        item = self._build(data)
        self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def bulk_create(self, items: List[ComplianceCreate]) -> dict:
        """Create every item it can; failures are reported per index."""
        employee_ids = {item.employee_id for item in items}
        result = await self.db.execute(select(Employee.id).where(Employee.id.in_(employee_ids)))
        known = set(result.scalars().all())

        success, errors = 0, []
        for index, data in enumerate(items):
            try:
                if data.employee_id not in known:
                    raise NotFoundError("Employee not found")
                self.db.add(self._build(data))
                success += 1
            except ERPError as e:
                errors.append({"index": index, "error": e.message, "reference": data.title})

        await self.db.commit()
        logger.info(f"Bulk compliance create: {success} created, {len(errors)} failed")
        return {"success": success, "failed": len(errors), "errors": errors}

    async def list(self, filters: ComplianceFilter, page: int = 1, limit: int = 10) -> dict:
        query = apply_filters(select(ComplianceTracking), build_compliance_filters(filters))
        return await paginate(
            self.db, query, page, limit,
            order_by=[ComplianceTracking.due_date.asc()],
        )

    async def by_employee(self, employee_id: UUID, status: Optional[ComplianceStatus] = None) -> List[ComplianceTracking]:
        query = select(ComplianceTracking).where(ComplianceTracking.employee_id == employee_id)
        if status:
            query = query.where(ComplianceTracking.status == status.value)
        result = await self.db.execute(query.order_by(ComplianceTracking.due_date.asc()))
        return list(result.scalars().all())

    async def update(self, item_id: UUID, data: ComplianceUpdate) -> ComplianceTracking:
        item = await self.get(item_id)
        ensure_editable("compliance item", item.status)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(item, field, value)

        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def verify(self, item_id: UUID, data: ComplianceVerify, context: RequestContext) -> ComplianceTracking:
        item = await self.get(item_id)
        if data.status not in (ComplianceStatus.COMPLETED, ComplianceStatus.NOT_APPLICABLE):
            raise BadRequestError("Status must be COMPLETED or NOT_APPLICABLE")
        validate_transition(COMPLIANCE_TRANSITIONS, item.status, data.status, "Compliance item")

        item.status = data.status.value
        item.verified_by = context.user_id
        item.verified_at = datetime.now(timezone.utc)
        if data.status == ComplianceStatus.COMPLETED:
            item.completed_date = data.completed_date or date.today()
        for field in ("expiry_date", "certificate_url", "document_url", "notes"):
            value = getattr(data, field)
            if value is not None:
                setattr(item, field, value)

        await self.db.commit()
        await self.db.refresh(item)

        logger.info(f"Compliance item {item.id} verified as {item.status} by {context.email}")
        return item

    async def remove(self, item_id: UUID) -> None:
        item = await self.get(item_id)
        await self.db.delete(item)
        await self.db.commit()

    async def due_soon(self, days: int = DEFAULT_WINDOW_DAYS) -> List[ComplianceTracking]:
        today = date.today()
        result = await self.db.execute(
            select(ComplianceTracking).where(
                ComplianceTracking.status == ComplianceStatus.PENDING.value,
                ComplianceTracking.due_date >= today,
                ComplianceTracking.due_date <= today + timedelta(days=days),
            ).order_by(ComplianceTracking.due_date.asc())
        )
        return list(result.scalars().all())

    async def overdue(self) -> List[ComplianceTracking]:
        result = await self.db.execute(
            select(ComplianceTracking).where(
                ComplianceTracking.status == ComplianceStatus.PENDING.value,
                ComplianceTracking.due_date < date.today(),
            ).order_by(ComplianceTracking.due_date.asc())
        )
        return list(result.scalars().all())

    async def expiring(self, days: int = DEFAULT_WINDOW_DAYS) -> List[ComplianceTracking]:
        today = date.today()
        result = await self.db.execute(
            select(ComplianceTracking).where(
                ComplianceTracking.status == ComplianceStatus.COMPLETED.value,
                ComplianceTracking.expiry_date.is_not(None),
                ComplianceTracking.expiry_date >= today,
                ComplianceTracking.expiry_date <= today + timedelta(days=days),
            ).order_by(ComplianceTracking.expiry_date.asc())
        )
        return list(result.scalars().all())

    async def summary(self, employee_id: Optional[UUID] = None) -> dict:
        conditions = []
        if employee_id:
            conditions.append(ComplianceTracking.employee_id == employee_id)

        status_rows = await self.db.execute(
            apply_filters(
                select(ComplianceTracking.status, func.count(ComplianceTracking.id)), conditions
            ).group_by(ComplianceTracking.status)
        )
        by_status = {s: c for s, c in status_rows.all()}

        type_rows = await self.db.execute(
            apply_filters(
                select(ComplianceTracking.compliance_type, func.count(ComplianceTracking.id)), conditions
            ).group_by(ComplianceTracking.compliance_type)
        )

        overdue = (await self.db.execute(
            apply_filters(select(func.count(ComplianceTracking.id)), conditions + [
                ComplianceTracking.status == ComplianceStatus.PENDING.value,
                ComplianceTracking.due_date < date.today(),
            ])
        )).scalar() or 0

        return {
            "employee_id": employee_id,
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_type": {t: c for t, c in type_rows.all()},
            "overdue": overdue,
            "compliance_rate": compliance_rate(by_status),
        }

    async def mark_expired(self) -> int:
        """Sweep COMPLETED items whose expiry date has passed to EXPIRED."""
        result = await self.db.execute(
            update(ComplianceTracking)
            .where(
                ComplianceTracking.status == ComplianceStatus.COMPLETED.value,
                ComplianceTracking.expiry_date.is_not(None),
                ComplianceTracking.expiry_date < date.today(),
            )
            .values(status=ComplianceStatus.EXPIRED.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        count = result.rowcount or 0
        if count:
            logger.info(f"Marked {count} compliance items as expired")
        return count
