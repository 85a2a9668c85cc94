"""Pure calculation helpers: payroll totals, attendance hours, leave days and GST."""

from datetime import date, time
from decimal import Decimal

import pytest

from erp.core.exceptions import BadRequestError
from erp.models.hr import AttendanceStatus
from erp.services.attendance_service import (
    attendance_percentage,
    calculate_hours,
    count_working_days,
)
from erp.services.gst_service import (
    calculate_document,
    calculate_gst,
    get_state_code,
    is_intra_state,
    split_tax,
    validate_gst_override,
    validate_gstin,
)
from erp.services.leave_service import count_leave_days, ranges_overlap, validate_leave_dates
from erp.services.payroll_service import calculate_payroll_totals
from erp.schemas.billing import LineItemCreate


class TestPayrollTotals:
    def test_gross_and_net(self):
        gross, net = calculate_payroll_totals(
            Decimal("50000"),
            allowances=Decimal("5000"),
            tax_deduction=Decimal("2000"),
            provident_fund=Decimal("3000"),
        )
        assert gross == Decimal("55000.00")
        assert net == Decimal("50000.00")

    def test_all_components(self):
        gross, net = calculate_payroll_totals(
            "40000", "2000", "1500", "1000", "500", "250", "3000", "1800", "450"
        )
        assert gross == Decimal("45000.00")
        assert net == Decimal("39500.00")

    def test_net_is_floored_at_zero(self):
        gross, net = calculate_payroll_totals(Decimal("1000"), deductions=Decimal("5000"))
        assert gross == Decimal("1000.00")
        assert net == Decimal("0.00")


class TestAttendanceHours:
    def test_hours_and_overtime(self):
        hours, overtime = calculate_hours(time(9, 0), time(18, 30))
        assert hours == Decimal("9.50")
        assert overtime == Decimal("1.50")

    def test_short_day_has_no_overtime(self):
        hours, overtime = calculate_hours(time(9, 0), time(13, 15))
        assert hours == Decimal("4.25")
        assert overtime == Decimal("0")

    def test_custom_standard_hours(self):
        hours, overtime = calculate_hours(time(8, 0), time(16, 0), standard_hours=6)
        assert hours == Decimal("8.00")
        assert overtime == Decimal("2.00")

    def test_missing_checkout(self):
        hours, overtime = calculate_hours(time(9, 0), None)
        assert hours is None
        assert overtime == 0

    def test_checkout_before_checkin_rejected(self):
        with pytest.raises(BadRequestError, match="cannot be earlier"):
            calculate_hours(time(18, 0), time(9, 0))

    def test_working_days(self):
        # March 2025 starts on a Saturday: 21 weekdays
        assert count_working_days(2025, 3) == 21
        assert count_working_days(2024, 2) == 21

    def test_attendance_percentage(self):
        counts = {
            AttendanceStatus.PRESENT.value: 15,
            AttendanceStatus.LATE.value: 2,
            AttendanceStatus.HALF_DAY.value: 1,
            AttendanceStatus.ABSENT.value: 3,
        }
        assert attendance_percentage(counts, 21) == 86
        assert attendance_percentage(counts, 0) == 0


class TestLeaveDates:
    def test_inclusive_day_count(self):
        assert count_leave_days(date(2025, 3, 10), date(2025, 3, 12)) == 3
        assert count_leave_days(date(2025, 3, 10), date(2025, 3, 10)) == 1

    def test_end_before_start(self):
        with pytest.raises(BadRequestError, match="End date must be on or after start date"):
            validate_leave_dates(date(2025, 3, 12), date(2025, 3, 10))

    def test_overlap(self):
        assert ranges_overlap(date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 11), date(2025, 3, 13))
        assert ranges_overlap(date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 12), date(2025, 3, 12))
        assert not ranges_overlap(date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 13), date(2025, 3, 14))


class TestGST:
    def test_state_lookup_is_forgiving(self):
        assert get_state_code("karnataka ") == "29"
        assert get_state_code("Jammu and Kashmir") == "01"
        assert get_state_code("Atlantis") is None
        assert is_intra_state("Karnataka", "KARNATAKA")
        assert not is_intra_state("Karnataka", "Maharashtra")

    def test_intra_state_split_is_even(self):
        split = split_tax(Decimal("180.01"), intra_state=True)
        assert split.cgst == split.sgst == Decimal("90.01")
        assert split.igst == 0

    def test_inter_state_is_igst(self):
        split = split_tax(Decimal("180"), intra_state=False)
        assert split.igst == Decimal("180.00")
        assert split.cgst == split.sgst == 0

    def test_calculate_gst(self):
        result = calculate_gst(
            Decimal("1000"), Decimal("18"), "Karnataka", "Karnataka",
            shipping_charges=Decimal("100"), discount=Decimal("100"),
        )
        assert result["taxable_amount"] == Decimal("1000.00")
        assert result["is_intra_state"] is True
        assert result["split"].cgst == Decimal("90.00")
        assert result["grand_total"] == Decimal("1180.00")

    def test_calculate_document(self):
        items = [
            LineItemCreate(description="Widget", quantity=Decimal("2"), rate=Decimal("500"), gst_rate=Decimal("18")),
            LineItemCreate(description="Service", quantity=Decimal("1"), rate=Decimal("1000"), gst_rate=Decimal("5")),
        ]
        totals = calculate_document(items, "Karnataka", "Maharashtra", discount=Decimal("50"))
        assert totals.is_intra_state is False
        assert totals.subtotal == Decimal("2000.00")
        assert totals.igst == Decimal("230.00")
        assert totals.cgst == totals.sgst == 0
        assert totals.grand_total == Decimal("2180.00")

    def test_valid_gstin(self):
        result = validate_gstin("29abcde1234f1z5")
        assert result["is_valid"]
        assert result["state_code"] == "29"
        assert result["state_name"] == "Karnataka"
        assert result["pan"] == "ABCDE1234F"

    @pytest.mark.parametrize("gstin", ["", "29ABCDE1234F1Z", "29ABCDE1234F1X5", "99ABCDE1234F1Z5"])
    def test_invalid_gstin(self, gstin):
        result = validate_gstin(gstin)
        assert not result["is_valid"]
        assert result["errors"]

    def test_override_rules(self):
        ok = validate_gst_override(
            Decimal("1000"), Decimal("90"), Decimal("90"), Decimal("0"), "Karnataka", "Karnataka"
        )
        assert ok == {"is_valid": True, "errors": [], "warnings": []}

        bad = validate_gst_override(
            Decimal("1000"), Decimal("0"), Decimal("0"), Decimal("600"), "Karnataka", "Karnataka"
        )
        assert not bad["is_valid"]
        assert "Total GST cannot exceed 50% of the subtotal" in bad["errors"]
        assert "Intra-state supply cannot carry IGST" in bad["errors"]

        inter = validate_gst_override(
            Decimal("1000"), Decimal("10"), Decimal("0"), Decimal("0"), "Karnataka", "Kerala"
        )
        assert "Inter-state supply cannot carry CGST/SGST" in inter["errors"]

        uneven = validate_gst_override(
            Decimal("1000"), Decimal("80"), Decimal("90"), Decimal("0"), "Karnataka", "Karnataka"
        )
        assert uneven["is_valid"]
        assert uneven["warnings"]
