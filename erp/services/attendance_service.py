"""
Attendance service.

hours_worked = (check_out - check_in) in hours, 2 dp
overtime     = max(0, hours_worked - STANDARD_WORKING_HOURS)
"""
import calendar
import logging
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp.config import settings
from erp.core.exceptions import NotFoundError, BadRequestError
from erp.core.permissions import RequestContext
from erp.models.hr import Employee, EmployeeStatus, Attendance, AttendanceStatus
from erp.schemas.hr import (
    AttendanceCreate, AttendanceUpdate, AttendanceCheckIn, AttendanceCheckOut, AttendanceFilter,
)
from erp.services.filters import build_attendance_filters
from erp.services.pagination import apply_filters, paginate

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")

# Statuses that count towards attendance percentage
ATTENDED_STATUSES = (
    AttendanceStatus.PRESENT.value,
    AttendanceStatus.LATE.value,
    AttendanceStatus.HALF_DAY.value,
    AttendanceStatus.WORK_FROM_HOME.value,
)


def calculate_hours(
    check_in: Optional[time],
    check_out: Optional[time],
    standard_hours: Optional[int] = None,
) -> Tuple[Optional[Decimal], Decimal]:
    """
    Return (hours_worked, overtime_hours) for a same-day check-in/out pair.

    hours_worked is None while either time is missing. A check-out before
    the check-in is rejected.
    """
    if check_in is None or check_out is None:
        return None, ZERO
    if check_out < check_in:
        raise BadRequestError("Check-out time cannot be earlier than check-in time")

    standard = Decimal(standard_hours if standard_hours is not None else settings.STANDARD_WORKING_HOURS)
    minutes = (check_out.hour * 60 + check_out.minute) - (check_in.hour * 60 + check_in.minute)
    hours = (Decimal(minutes) / Decimal(60)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    overtime = max(ZERO, hours - standard)
    return hours, overtime


def count_working_days(year: int, month: int) -> int:
    """Monday to Friday in the month."""
    _, days_in_month = calendar.monthrange(year, month)
    return sum(1 for day in range(1, days_in_month + 1) if date(year, month, day).weekday() < 5)


def attendance_percentage(counts: dict, working_days: int) -> int:
    if working_days <= 0:
        return 0
    attended = sum(counts.get(status, 0) for status in ATTENDED_STATUSES)
    return round(attended / working_days * 100)


def _now_time() -> time:
    return datetime.now().time().replace(second=0, microsecond=0)


class AttendanceService:
    """Daily attendance records and summaries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, attendance_id: UUID) -> Attendance:
        record = await self.db.get(Attendance, attendance_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        return record

    async def _for_date(self, employee_id: UUID, attendance_date: date) -> Optional[Attendance]:
        result = await self.db.execute(
            select(Attendance).where(
                Attendance.employee_id == employee_id,
                Attendance.attendance_date == attendance_date,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, data: AttendanceCreate) -> Attendance:
        if not await self.db.get(Employee, data.employee_id):
            raise NotFoundError("Employee not found")
        if await self._for_date(data.employee_id, data.attendance_date):
            raise BadRequestError("Attendance already recorded for this date")

        hours, overtime = calculate_hours(data.check_in_time, data.check_out_time)
        payload = data.model_dump()
        payload["status"] = data.status.value
        record = Attendance(**payload, hours_worked=hours, overtime_hours=overtime)
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("Attendance already recorded for this date")
        await self.db.refresh(record)
        return record

    async def list(self, filters: AttendanceFilter, page: int = 1, limit: int = 10) -> dict:
        query = apply_filters(select(Attendance), build_attendance_filters(filters))
        return await paginate(
            self.db, query, page, limit,
            order_by=[Attendance.attendance_date.desc()],
        )

    async def by_employee_and_date(self, employee_id: UUID, attendance_date: date) -> Attendance:
        record = await self._for_date(employee_id, attendance_date)
        if not record:
            raise NotFoundError("Attendance record not found")
        return record

    async def update(self, attendance_id: UUID, data: AttendanceUpdate) -> Attendance:
        record = await self.get(attendance_id)
        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(record, field, value.value if hasattr(value, "value") else value)

        if "check_in_time" in update_data or "check_out_time" in update_data:
            record.hours_worked, record.overtime_hours = calculate_hours(
                record.check_in_time, record.check_out_time
            )

        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def remove(self, attendance_id: UUID) -> None:
        record = await self.get(attendance_id)
        await self.db.delete(record)
        await self.db.commit()

    async def check_in(
        self,
        context: RequestContext,
        data: AttendanceCheckIn,
        ip_address: Optional[str] = None,
    ) -> Attendance:
        if not context.employee_id:
            raise NotFoundError("Employee record not found for this user")

        today = date.today()
        record = await self._for_date(context.employee_id, today)
        if record and record.check_in_time:
            raise BadRequestError("Already checked in today")

        if record is None:
            record = Attendance(
                employee_id=context.employee_id,
                attendance_date=today,
                status=AttendanceStatus.PRESENT.value,
            )
            self.db.add(record)

        record.check_in_time = _now_time()
        record.ip_address = ip_address
        if data.location is not None:
            record.location = data.location
        if data.remarks is not None:
            record.remarks = data.remarks

        await self.db.commit()
        await self.db.refresh(record)

        logger.info(f"Employee {context.employee_id} checked in at {record.check_in_time}")
        return record

    async def check_out(self, context: RequestContext, data: AttendanceCheckOut) -> Attendance:
        if not context.employee_id:
            raise NotFoundError("Employee record not found for this user")

        record = await self._for_date(context.employee_id, date.today())
        if not record or not record.check_in_time:
            raise BadRequestError("No check-in record found for today")
        if record.check_out_time:
            raise BadRequestError("Already checked out today")

        check_out = _now_time()
        record.hours_worked, record.overtime_hours = calculate_hours(record.check_in_time, check_out)
        record.check_out_time = check_out
        if data.remarks is not None:
            record.remarks = data.remarks

        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def monthly_summary(self, employee_id: UUID, month: int, year: int) -> dict:
        if not 1 <= month <= 12:
            raise BadRequestError("Month must be between 1 and 12")
        if not await self.db.get(Employee, employee_id):
            raise NotFoundError("Employee not found")

        _, last_day = calendar.monthrange(year, month)
        result = await self.db.execute(
            select(Attendance).where(
                Attendance.employee_id == employee_id,
                Attendance.attendance_date >= date(year, month, 1),
                Attendance.attendance_date <= date(year, month, last_day),
            )
        )
        records: List[Attendance] = list(result.scalars().all())

        counts: dict = {}
        total_hours = ZERO
        overtime = ZERO
        for record in records:
            counts[record.status] = counts.get(record.status, 0) + 1
            total_hours += Decimal(record.hours_worked or 0)
            overtime += Decimal(record.overtime_hours or 0)

        working_days = count_working_days(year, month)
        return {
            "employee_id": employee_id,
            "month": month,
            "year": year,
            "working_days": working_days,
            "present_days": counts.get(AttendanceStatus.PRESENT.value, 0),
            "absent_days": counts.get(AttendanceStatus.ABSENT.value, 0),
            "late_days": counts.get(AttendanceStatus.LATE.value, 0),
            "half_days": counts.get(AttendanceStatus.HALF_DAY.value, 0),
            "work_from_home_days": counts.get(AttendanceStatus.WORK_FROM_HOME.value, 0),
            "leave_days": counts.get(AttendanceStatus.ON_LEAVE.value, 0),
            "holidays": counts.get(AttendanceStatus.HOLIDAY.value, 0),
            "total_hours": total_hours.quantize(TWO_PLACES),
            "overtime_hours": overtime.quantize(TWO_PLACES),
            "attendance_percentage": attendance_percentage(counts, working_days),
        }

    async def team_summary(self, attendance_date: Optional[date] = None) -> dict:
        attendance_date = attendance_date or date.today()

        total = (await self.db.execute(
            select(func.count(Employee.id)).where(Employee.status == EmployeeStatus.ACTIVE.value)
        )).scalar() or 0

        rows = await self.db.execute(
            select(Attendance.status, func.count(Attendance.id))
            .where(Attendance.attendance_date == attendance_date)
            .group_by(Attendance.status)
        )
        by_status = {s: c for s, c in rows.all()}
        marked = sum(by_status.values())

        return {
            "date": attendance_date,
            "total_employees": total,
            "marked": marked,
            "not_marked": max(0, total - marked),
            "by_status": by_status,
        }
