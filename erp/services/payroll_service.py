"""
Payroll service.

gross = basic + allowances + overtime + bonus + commission
net   = max(0, gross - deductions - tax - provident fund - insurance)

One payroll row per (employee, pay period).
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp.config import settings
from erp.core.exceptions import NotFoundError, BadRequestError
from erp.models.hr import Employee, EmployeeStatus, Payroll, PayrollStatus
from erp.schemas.hr import (
    PayrollCreate, PayrollUpdate, PayrollProcessRequest, PayrollBulkGenerateRequest, PayrollFilter,
)
from erp.services.filters import build_payroll_filters
from erp.services.pagination import apply_filters, paginate
from erp.services.state_machine import PAYROLL_TRANSITIONS, validate_transition, ensure_editable

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

EARNING_FIELDS = ("basic_salary", "allowances", "overtime", "bonus", "commission")
DEDUCTION_FIELDS = ("deductions", "tax_deduction", "provident_fund", "insurance")
MONEY_FIELDS = EARNING_FIELDS + DEDUCTION_FIELDS

DUPLICATE_MESSAGE = "Payroll already exists for this employee and period"


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_payroll_totals(
    basic_salary,
    allowances=0,
    overtime=0,
    bonus=0,
    commission=0,
    deductions=0,
    tax_deduction=0,
    provident_fund=0,
    insurance=0,
) -> Tuple[Decimal, Decimal]:
    """Return (gross_salary, net_salary). Net is floored at zero."""
    gross = _money(basic_salary) + _money(allowances) + _money(overtime) + _money(bonus) + _money(commission)
    total_deductions = (
        _money(deductions) + _money(tax_deduction) + _money(provident_fund) + _money(insurance)
    )
    net = gross - total_deductions
    if net < 0:
        net = Decimal("0.00")
    return gross, net


class PayrollService:
    """Monthly payroll rows and their processing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _exists(self, employee_id: UUID, pay_period: str) -> bool:
        result = await self.db.execute(
            select(Payroll.id).where(
                Payroll.employee_id == employee_id,
                Payroll.pay_period == pay_period,
            )
        )
        return result.scalar_one_or_none() is not None

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError(DUPLICATE_MESSAGE)

    async def get(self, payroll_id: UUID) -> Payroll:
        payroll = await self.db.get(Payroll, payroll_id)
        if not payroll:
            raise NotFoundError("Payroll not found")
        return payroll

    async def create(self, data: PayrollCreate) -> Payroll:
        if not await self.db.get(Employee, data.employee_id):
            raise NotFoundError("Employee not found")
        if await self._exists(data.employee_id, data.pay_period):
            raise BadRequestError(DUPLICATE_MESSAGE)

        payload = data.model_dump()
        gross, net = calculate_payroll_totals(**{f: payload[f] for f in MONEY_FIELDS})
        payroll = Payroll(
            **payload,
            gross_salary=gross,
            net_salary=net,
            status=PayrollStatus.DRAFT.value,
        )
        self.db.add(payroll)
        await self._commit()
        await self.db.refresh(payroll)

        logger.info(f"Payroll {payroll.pay_period} created for employee {payroll.employee_id}: net {net}")
        return payroll

    async def list(self, filters: PayrollFilter, page: int = 1, limit: int = 10) -> dict:
        query = apply_filters(select(Payroll), build_payroll_filters(filters))
        return await paginate(
            self.db, query, page, limit,
            order_by=[Payroll.pay_period.desc(), Payroll.created_at.desc()],
        )

    async def by_employee(self, employee_id: UUID, year: Optional[int] = None) -> List[Payroll]:
        query = select(Payroll).where(Payroll.employee_id == employee_id)
        if year:
            query = query.where(Payroll.pay_period.like(f"{year}-%"))
        result = await self.db.execute(query.order_by(Payroll.pay_period.desc()))
        return list(result.scalars().all())

    async def update(self, payroll_id: UUID, data: PayrollUpdate) -> Payroll:
        payroll = await self.get(payroll_id)
        ensure_editable("payroll", payroll.status)

        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(payroll, field, value)

        if any(f in update_data for f in MONEY_FIELDS):
            payroll.gross_salary, payroll.net_salary = calculate_payroll_totals(
                **{f: getattr(payroll, f) for f in MONEY_FIELDS}
            )

        await self.db.commit()
        await self.db.refresh(payroll)
        return payroll

    async def process(self, payroll_id: UUID, data: PayrollProcessRequest) -> Payroll:
        """Advance DRAFT -> PROCESSED -> PAID, or cancel."""
        payroll = await self.get(payroll_id)
        validate_transition(PAYROLL_TRANSITIONS, payroll.status, data.status, "Payroll")

        now = datetime.now(timezone.utc)
        if data.status == PayrollStatus.PROCESSED:
            payroll.processed_at = now
        elif data.status == PayrollStatus.PAID:
            if not payroll.processed_at:
                payroll.processed_at = now
            payroll.paid_at = now

        payroll.status = data.status.value
        if data.notes is not None:
            payroll.notes = data.notes

        await self.db.commit()
        await self.db.refresh(payroll)

        logger.info(f"Payroll {payroll.id} moved to {payroll.status}")
        return payroll

    async def remove(self, payroll_id: UUID) -> None:
        payroll = await self.get(payroll_id)
        if payroll.status == PayrollStatus.PAID.value:
            raise BadRequestError("Cannot delete paid payroll")
        await self.db.delete(payroll)
        await self.db.commit()

    async def bulk_generate(self, data: PayrollBulkGenerateRequest) -> dict:
        """
        Create DRAFT payroll for every selected employee that has none for the
        period yet. Basic salary is the employee's monthly salary.
        """
        query = select(Employee)
        if data.employee_ids:
            query = query.where(Employee.id.in_(data.employee_ids))
        else:
            query = query.where(Employee.status == EmployeeStatus.ACTIVE.value)
        employees = (await self.db.execute(query)).scalars().all()

        existing = await self.db.execute(
            select(Payroll.employee_id).where(Payroll.pay_period == data.pay_period)
        )
        already = set(existing.scalars().all())

        created: List[Payroll] = []
        skipped = 0
        for employee in employees:
            if employee.id in already:
                skipped += 1
                continue
            gross, net = calculate_payroll_totals(employee.salary)
            payroll = Payroll(
                employee_id=employee.id,
                pay_period=data.pay_period,
                basic_salary=_money(employee.salary),
                gross_salary=gross,
                net_salary=net,
                working_days=settings.DEFAULT_WORKING_DAYS,
                actual_working_days=settings.DEFAULT_WORKING_DAYS,
                status=PayrollStatus.DRAFT.value,
            )
            self.db.add(payroll)
            created.append(payroll)

        await self._commit()

        logger.info(f"Bulk payroll {data.pay_period}: {len(created)} created, {skipped} skipped")
        return {
            "pay_period": data.pay_period,
            "created": len(created),
            "skipped": skipped,
            "payroll_ids": [p.id for p in created],
        }

    async def summary(self, pay_period: str) -> dict:
        result = await self.db.execute(
            select(
                func.count(Payroll.id),
                func.coalesce(func.sum(Payroll.gross_salary), 0),
                func.coalesce(func.sum(Payroll.net_salary), 0),
                func.coalesce(func.sum(Payroll.deductions), 0),
                func.coalesce(func.sum(Payroll.tax_deduction), 0),
                func.coalesce(func.sum(Payroll.provident_fund), 0),
                func.coalesce(func.sum(Payroll.insurance), 0),
            ).where(Payroll.pay_period == pay_period)
        )
        count, gross, net, deductions, tax, pf, insurance = result.one()

        status_rows = await self.db.execute(
            select(Payroll.status, func.count(Payroll.id))
            .where(Payroll.pay_period == pay_period)
            .group_by(Payroll.status)
        )

        return {
            "pay_period": pay_period,
            "total_employees": count,
            "total_gross": _money(gross),
            "total_net": _money(net),
            "total_deductions": _money(deductions),
            "total_tax": _money(tax),
            "total_provident_fund": _money(pf),
            "total_insurance": _money(insurance),
            "by_status": {s: c for s, c in status_rows.all()},
        }
