"""HR services against an in-memory database."""

from datetime import date, time, timedelta
from decimal import Decimal

import pytest

from erp.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from erp.models.hr import (
    AttendanceStatus,
    ComplianceStatus,
    ComplianceType,
    LeaveStatus,
    LeaveType,
    PayrollStatus,
    ReviewStatus,
)
from erp.schemas.hr import (
    AttendanceCheckIn,
    AttendanceCheckOut,
    AttendanceCreate,
    AttendanceUpdate,
    ComplianceCreate,
    ComplianceVerify,
    LeaveApproveRequest,
    LeaveRequestCreate,
    LeaveRequestUpdate,
    PayrollBulkGenerateRequest,
    PayrollCreate,
    PayrollProcessRequest,
    PayrollUpdate,
    PerformanceReviewComplete,
    PerformanceReviewCreate,
)
from erp.services.attendance_service import AttendanceService
from erp.services.compliance_service import ComplianceService
from erp.services.leave_service import OVERLAP_MESSAGE, LeaveService
from erp.services.payroll_service import DUPLICATE_MESSAGE, PayrollService
from erp.services.performance_review_service import PerformanceReviewService
from tests.helpers import context_for


def _leave(start: date, end: date, **kwargs) -> LeaveRequestCreate:
    return LeaveRequestCreate(leave_type=LeaveType.ANNUAL, start_date=start, end_date=end, **kwargs)


class TestLeaveRequests:
    async def test_overlap_with_approved_leave_is_rejected(self, session, employee, manager):
        user, emp = employee
        ctx = context_for(user, emp)
        service = LeaveService(session)

        first = await service.create(_leave(date(2025, 3, 10), date(2025, 3, 12)), ctx)
        assert first.total_days == 3
        assert first.status == LeaveStatus.PENDING.value

        await service.approve(
            first.id,
            LeaveApproveRequest(status=LeaveStatus.APPROVED),
            context_for(*manager),
        )

        with pytest.raises(BadRequestError, match=OVERLAP_MESSAGE):
            await service.create(_leave(date(2025, 3, 11), date(2025, 3, 13)), ctx)

    async def test_pending_requests_may_overlap(self, session, employee):
        ctx = context_for(*employee)
        service = LeaveService(session)
        await service.create(_leave(date(2025, 4, 1), date(2025, 4, 3)), ctx)
        second = await service.create(_leave(date(2025, 4, 2), date(2025, 4, 4)), ctx)
        assert second.status == LeaveStatus.PENDING.value

    async def test_approving_second_overlapping_request_fails(self, session, employee, manager):
        ctx = context_for(*employee)
        approver = context_for(*manager)
        service = LeaveService(session)
        a = await service.create(_leave(date(2025, 5, 5), date(2025, 5, 7)), ctx)
        b = await service.create(_leave(date(2025, 5, 6), date(2025, 5, 8)), ctx)

        await service.approve(a.id, LeaveApproveRequest(status=LeaveStatus.APPROVED), approver)
        with pytest.raises(BadRequestError, match=OVERLAP_MESSAGE):
            await service.approve(b.id, LeaveApproveRequest(status=LeaveStatus.APPROVED), approver)

        rejected = await service.approve(
            b.id, LeaveApproveRequest(status=LeaveStatus.REJECTED, approver_comments="Clash"), approver
        )
        assert rejected.status == LeaveStatus.REJECTED.value
        assert rejected.approved_by == manager[0].id

    async def test_decided_request_cannot_change(self, session, employee, manager):
        ctx = context_for(*employee)
        service = LeaveService(session)
        leave = await service.create(_leave(date(2025, 6, 2), date(2025, 6, 2)), ctx)
        await service.approve(leave.id, LeaveApproveRequest(status=LeaveStatus.APPROVED), context_for(*manager))

        with pytest.raises(BadRequestError):
            await service.cancel(leave.id, ctx)
        with pytest.raises(BadRequestError):
            await service.update(leave.id, LeaveRequestUpdate(reason="changed"), ctx)

    async def test_pending_status_is_not_a_decision(self, session, employee, manager):
        service = LeaveService(session)
        leave = await service.create(_leave(date(2025, 6, 9), date(2025, 6, 9)), context_for(*employee))
        with pytest.raises(BadRequestError, match="APPROVED or REJECTED"):
            await service.approve(leave.id, LeaveApproveRequest(status=LeaveStatus.PENDING), context_for(*manager))

    async def test_only_owner_modifies(self, session, employee, make_user):
        service = LeaveService(session)
        leave = await service.create(_leave(date(2025, 7, 1), date(2025, 7, 2)), context_for(*employee))
        other = await make_user()

        with pytest.raises(ForbiddenError):
            await service.cancel(leave.id, context_for(*other))

    async def test_update_recounts_days(self, session, employee):
        ctx = context_for(*employee)
        service = LeaveService(session)
        leave = await service.create(_leave(date(2025, 8, 4), date(2025, 8, 5)), ctx)
        updated = await service.update(leave.id, LeaveRequestUpdate(end_date=date(2025, 8, 8)), ctx)
        assert updated.total_days == 5

    async def test_apply_for_someone_else_needs_hr(self, session, employee, make_user):
        _, other = await make_user()
        service = LeaveService(session)
        with pytest.raises(ForbiddenError):
            await service.create(
                _leave(date(2025, 9, 1), date(2025, 9, 1), employee_id=other.id),
                context_for(*employee),
            )

    async def test_user_without_employee_record(self, session, make_user):
        user, _ = await make_user(with_employee=False)
        with pytest.raises(NotFoundError):
            await LeaveService(session).create(_leave(date(2025, 9, 1), date(2025, 9, 1)), context_for(user))

    async def test_balance(self, session, employee, manager):
        ctx = context_for(*employee)
        service = LeaveService(session)
        leave = await service.create(_leave(date(2025, 2, 3), date(2025, 2, 7)), ctx)
        await service.approve(leave.id, LeaveApproveRequest(status=LeaveStatus.APPROVED), context_for(*manager))
        await service.create(_leave(date(2025, 3, 3), date(2025, 3, 4)), ctx)

        balance = await service.balance(employee[1].id, 2025)
        assert balance["entitlement"] == 21
        assert balance["taken"] == 5
        assert balance["remaining"] == 16
        assert balance["by_type"] == {LeaveType.ANNUAL.value: 5}


class TestPayroll:
    def _payroll(self, employee_id, period="2025-03", **amounts) -> PayrollCreate:
        return PayrollCreate(
            employee_id=employee_id,
            pay_period=period,
            basic_salary=amounts.pop("basic_salary", Decimal("50000")),
            **amounts,
        )

    async def test_create_computes_totals(self, session, employee):
        payroll = await PayrollService(session).create(self._payroll(
            employee[1].id,
            allowances=Decimal("5000"),
            tax_deduction=Decimal("2000"),
            provident_fund=Decimal("3000"),
        ))
        assert payroll.gross_salary == Decimal("55000")
        assert payroll.net_salary == Decimal("50000")
        assert payroll.status == PayrollStatus.DRAFT.value

    async def test_duplicate_period_rejected(self, session, employee):
        service = PayrollService(session)
        await service.create(self._payroll(employee[1].id))
        with pytest.raises(BadRequestError, match=DUPLICATE_MESSAGE):
            await service.create(self._payroll(employee[1].id))

    async def test_unknown_employee(self, session, random_id):
        with pytest.raises(NotFoundError):
            await PayrollService(session).create(self._payroll(random_id))

    async def test_update_recalculates(self, session, employee):
        service = PayrollService(session)
        payroll = await service.create(self._payroll(employee[1].id))
        updated = await service.update(payroll.id, PayrollUpdate(bonus=Decimal("2500"), insurance=Decimal("500")))
        assert updated.gross_salary == Decimal("52500")
        assert updated.net_salary == Decimal("52000")

    async def test_paid_payroll_is_locked(self, session, employee):
        service = PayrollService(session)
        payroll = await service.create(self._payroll(employee[1].id))

        processed = await service.process(payroll.id, PayrollProcessRequest(status=PayrollStatus.PROCESSED))
        assert processed.processed_at is not None
        paid = await service.process(payroll.id, PayrollProcessRequest(status=PayrollStatus.PAID))
        assert paid.paid_at is not None

        with pytest.raises(BadRequestError):
            await service.update(payroll.id, PayrollUpdate(bonus=Decimal("1")))
        with pytest.raises(BadRequestError, match="Cannot delete paid payroll"):
            await service.remove(payroll.id)

    async def test_bulk_generate_skips_existing(self, session, make_user):
        _, first = await make_user(salary=Decimal("40000"))
        _, second = await make_user(salary=Decimal("60000"))
        service = PayrollService(session)
        await service.create(self._payroll(first.id, period="2025-04"))

        result = await service.bulk_generate(PayrollBulkGenerateRequest(pay_period="2025-04"))
        assert result["created"] == 1
        assert result["skipped"] == 1

        summary = await service.summary("2025-04")
        assert summary["total_employees"] == 2
        assert summary["total_gross"] == Decimal("110000.00")
        assert summary["by_status"] == {PayrollStatus.DRAFT.value: 2}


class TestAttendance:
    async def test_create_computes_hours(self, session, employee):
        record = await AttendanceService(session).create(AttendanceCreate(
            employee_id=employee[1].id,
            attendance_date=date(2025, 3, 10),
            check_in_time=time(9, 0),
            check_out_time=time(18, 30),
        ))
        assert record.hours_worked == Decimal("9.50")
        assert record.overtime_hours == Decimal("1.50")

    async def test_one_record_per_day(self, session, employee):
        service = AttendanceService(session)
        data = AttendanceCreate(employee_id=employee[1].id, attendance_date=date(2025, 3, 11))
        await service.create(data)
        with pytest.raises(BadRequestError, match="already recorded"):
            await service.create(data)

    async def test_update_rejects_checkout_before_checkin(self, session, employee):
        service = AttendanceService(session)
        record = await service.create(AttendanceCreate(
            employee_id=employee[1].id,
            attendance_date=date(2025, 3, 12),
            check_in_time=time(10, 0),
        ))
        with pytest.raises(BadRequestError):
            await service.update(record.id, AttendanceUpdate(check_out_time=time(9, 0)))

    async def test_check_in_then_out(self, session, employee):
        ctx = context_for(*employee)
        service = AttendanceService(session)
        record = await service.check_in(ctx, AttendanceCheckIn(location="Office"), ip_address="10.0.0.5")
        assert record.check_in_time is not None
        assert record.ip_address == "10.0.0.5"

        with pytest.raises(BadRequestError, match="Already checked in"):
            await service.check_in(ctx, AttendanceCheckIn())

        record = await service.check_out(ctx, AttendanceCheckOut())
        assert record.check_out_time is not None
        assert record.hours_worked is not None

        with pytest.raises(BadRequestError, match="Already checked out"):
            await service.check_out(ctx, AttendanceCheckOut())

    async def test_check_out_without_check_in(self, session, employee):
        with pytest.raises(BadRequestError, match="No check-in"):
            await AttendanceService(session).check_out(context_for(*employee), AttendanceCheckOut())

    async def test_monthly_summary(self, session, employee):
        service = AttendanceService(session)
        emp_id = employee[1].id
        for day, status in ((3, AttendanceStatus.PRESENT), (4, AttendanceStatus.LATE), (5, AttendanceStatus.ABSENT)):
            await service.create(AttendanceCreate(
                employee_id=emp_id,
                attendance_date=date(2025, 3, day),
                check_in_time=time(9, 0) if status != AttendanceStatus.ABSENT else None,
                check_out_time=time(18, 0) if status != AttendanceStatus.ABSENT else None,
                status=status,
            ))

        summary = await service.monthly_summary(emp_id, 3, 2025)
        assert summary["working_days"] == 21
        assert summary["present_days"] == 1
        assert summary["late_days"] == 1
        assert summary["absent_days"] == 1
        assert summary["total_hours"] == Decimal("18.00")
        assert summary["overtime_hours"] == Decimal("2.00")
        assert summary["attendance_percentage"] == 10

        with pytest.raises(BadRequestError):
            await service.monthly_summary(emp_id, 13, 2025)


class TestPerformanceReviews:
    def _review(self, employee_id, period="2025-03", rating=4) -> PerformanceReviewCreate:
        return PerformanceReviewCreate(
            employee_id=employee_id,
            review_period=period,
            review_date=date(2025, 3, 31),
            overall_rating=rating,
            teamwork=5,
        )

    async def test_review_lifecycle(self, session, employee, manager):
        reviewer = context_for(*manager)
        reviewee = context_for(*employee)
        service = PerformanceReviewService(session)

        review = await service.create(self._review(employee[1].id), reviewer)
        assert review.reviewer_id == manager[1].id
        assert review.status == ReviewStatus.DRAFT.value

        with pytest.raises(ForbiddenError):
            await service.complete(review.id, PerformanceReviewComplete(status=ReviewStatus.COMPLETED), reviewer)

        completed = await service.complete(
            review.id,
            PerformanceReviewComplete(status=ReviewStatus.COMPLETED, employee_comments="Thanks"),
            reviewee,
        )
        assert completed.completed_at is not None

        with pytest.raises(ForbiddenError):
            await service.complete(review.id, PerformanceReviewComplete(status=ReviewStatus.APPROVED), reviewee)

        approved = await service.complete(review.id, PerformanceReviewComplete(status=ReviewStatus.APPROVED), reviewer)
        assert approved.status == ReviewStatus.APPROVED.value

        with pytest.raises(BadRequestError, match="approved review"):
            await service.remove(review.id, reviewer)

        summary = await service.employee_summary(employee[1].id, 2025)
        assert summary["total_reviews"] == 1
        assert summary["average_rating"] == 4.0
        assert summary["skill_averages"]["teamwork"] == 5.0
        assert summary["skill_averages"]["leadership"] is None

    async def test_one_review_per_period(self, session, employee, manager):
        service = PerformanceReviewService(session)
        await service.create(self._review(employee[1].id), context_for(*manager))
        with pytest.raises(BadRequestError, match="already exists"):
            await service.create(self._review(employee[1].id, rating=2), context_for(*manager))

    async def test_cannot_create_already_approved(self, session, employee, manager):
        service = PerformanceReviewService(session)
        data = self._review(employee[1].id).model_copy(update={"status": ReviewStatus.APPROVED})
        with pytest.raises(BadRequestError, match="complete endpoint"):
            await service.create(data, context_for(*manager))

        review = await service.create(
            self._review(employee[1].id).model_copy(update={"status": ReviewStatus.IN_PROGRESS}),
            context_for(*manager),
        )
        assert review.status == ReviewStatus.IN_PROGRESS.value

    async def test_team_summary(self, session, make_user, manager):
        service = PerformanceReviewService(session)
        for rating in (3, 5):
            _, emp = await make_user()
            await service.create(self._review(emp.id, rating=rating), context_for(*manager))

        summary = await service.team_summary(manager[1].id, "2025-03")
        assert summary["total_reviews"] == 2
        assert summary["average_rating"] == 4.0
        assert summary["rating_distribution"]["3"] == 1
        assert summary["rating_distribution"]["5"] == 1


class TestCompliance:
    def _item(self, employee_id, **kwargs) -> ComplianceCreate:
        return ComplianceCreate(
            employee_id=employee_id,
            compliance_type=kwargs.pop("compliance_type", ComplianceType.CERTIFICATION),
            title=kwargs.pop("title", "First aid certificate"),
            due_date=kwargs.pop("due_date", date.today() + timedelta(days=10)),
            **kwargs,
        )

    async def test_bulk_create_reports_failures(self, session, employee, random_id):
        result = await ComplianceService(session).bulk_create([
            self._item(employee[1].id),
            self._item(random_id, title="Orphan"),
            self._item(employee[1].id, compliance_type=ComplianceType.DATA_PRIVACY),
        ])
        assert result["success"] == 2
        assert result["failed"] == 1
        assert result["errors"] == [{"index": 1, "error": "Employee not found", "reference": "Orphan"}]

    async def test_verify_and_expire(self, session, employee, hr):
        service = ComplianceService(session)
        item = await service.create(self._item(employee[1].id))

        verified = await service.verify(
            item.id,
            ComplianceVerify(
                status=ComplianceStatus.COMPLETED,
                completed_date=date.today() - timedelta(days=400),
                expiry_date=date.today() - timedelta(days=1),
            ),
            context_for(*hr),
        )
        assert verified.verified_by == hr[0].id
        assert verified.status == ComplianceStatus.COMPLETED.value

        assert await service.mark_expired() == 1
        await session.refresh(item)
        assert item.status == ComplianceStatus.EXPIRED.value
        assert await service.mark_expired() == 0

    async def test_verify_rejects_pending(self, session, employee, hr):
        service = ComplianceService(session)
        item = await service.create(self._item(employee[1].id))
        with pytest.raises(BadRequestError):
            await service.verify(item.id, ComplianceVerify(status=ComplianceStatus.PENDING), context_for(*hr))

    async def test_due_soon_and_overdue(self, session, employee):
        service = ComplianceService(session)
        soon = await service.create(self._item(employee[1].id, due_date=date.today() + timedelta(days=5)))
        late = await service.create(self._item(employee[1].id, due_date=date.today() - timedelta(days=2)))
        await service.create(self._item(employee[1].id, due_date=date.today() + timedelta(days=90)))

        assert [i.id for i in await service.due_soon(30)] == [soon.id]
        assert [i.id for i in await service.overdue()] == [late.id]

        summary = await service.summary(employee[1].id)
        assert summary["total"] == 3
        assert summary["overdue"] == 1
        assert summary["compliance_rate"] == 0.0
