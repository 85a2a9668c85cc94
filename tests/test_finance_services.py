"""Invoices, bills and customer addresses against an in-memory database."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from erp.core.exceptions import BadRequestError, NotFoundError
from erp.models.billing import AddressType, BillStatus, Invoice, InvoiceStatus, PaymentMethod
from erp.models.operation_log import OperationType
from erp.models.user import UserRole
from erp.schemas.billing import (
    BillCreate,
    BillPaymentCreate,
    BillStatusUpdate,
    BillUpdate,
    CustomerAddressCreate,
    GSTOverrideRequest,
    GSTReconciliationPeriod,
    GSTReconciliationRequest,
    InvoiceBulkDelete,
    InvoiceBulkStatusUpdate,
    InvoiceCreate,
    InvoiceDuplicateRequest,
    InvoiceSearchFilter,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    LineItemCreate,
)
from erp.services.bill_service import BillService
from erp.services.customer_address_service import CustomerAddressService
from erp.services.gst_report_service import GSTReportService
from erp.services.invoice_service import InvoiceService
from tests.helpers import context_for


@pytest.fixture
async def finance(make_user):
    user, _ = await make_user(UserRole.MANAGER, with_employee=False)
    return context_for(user)


def _items(*rows) -> list:
    return [
        LineItemCreate(description=f"Item {n}", quantity=Decimal(q), rate=Decimal(r), gst_rate=Decimal(g))
        for n, (q, r, g) in enumerate(rows, start=1)
    ]


def _invoice(place="Karnataka", **kwargs) -> InvoiceCreate:
    return InvoiceCreate(
        client_name=kwargs.pop("client_name", "Acme Traders"),
        place_of_supply=place,
        due_date=kwargs.pop("due_date", date.today() + timedelta(days=30)),
        items=kwargs.pop("items", _items(("2", "500", "18"))),
        **kwargs,
    )


class TestInvoices:
    async def test_intra_state_invoice(self, session, finance):
        invoice = await InvoiceService(session).create(_invoice(), finance)

        assert invoice.invoice_number == f"INV-{date.today():%Y%m%d}-0001"
        assert invoice.status == InvoiceStatus.DRAFT.value
        assert invoice.subtotal == Decimal("1000")
        assert invoice.cgst_amount == invoice.sgst_amount == Decimal("90")
        assert invoice.igst_amount == 0
        assert invoice.total_amount == Decimal("1180")
        assert invoice.bill_to_name == "Acme Traders"
        assert len(invoice.items) == 1
        assert invoice.items[0].line_number == 1

    async def test_inter_state_invoice(self, session, finance):
        invoice = await InvoiceService(session).create(
            _invoice(
                place="Maharashtra",
                items=_items(("2", "500", "18"), ("1", "1000", "5")),
                shipping_charges=Decimal("100"),
                discount=Decimal("50"),
            ),
            finance,
        )
        assert invoice.cgst_amount == invoice.sgst_amount == 0
        assert invoice.igst_amount == Decimal("230")
        assert invoice.total_amount == Decimal("2280")

    async def test_numbers_are_sequential(self, session, finance):
        service = InvoiceService(session)
        await service.create(_invoice(), finance)
        second = await service.create(_invoice(), finance)
        assert second.invoice_number.endswith("-0002")

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"place": "Atlantis"}, "Unknown place of supply"),
            ({"bill_to_gstin": "NOT-A-GSTIN"}, "Invalid bill-to GSTIN"),
            ({"invoice_date": date(2025, 3, 10), "due_date": date(2025, 3, 1)}, "Due date cannot be before"),
        ],
    )
    async def test_create_validation(self, session, finance, kwargs, message):
        with pytest.raises(BadRequestError, match=message):
            await InvoiceService(session).create(_invoice(**kwargs), finance)

    async def test_status_flow(self, session, finance):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)

        with pytest.raises(BadRequestError, match="Allowed transitions"):
            await service.change_status(invoice.id, InvoiceStatusUpdate(status=InvoiceStatus.PAID))

        for status in (InvoiceStatus.PENDING, InvoiceStatus.APPROVED, InvoiceStatus.PAID):
            invoice = await service.change_status(invoice.id, InvoiceStatusUpdate(status=status))
        assert invoice.paid_at is not None

        with pytest.raises(BadRequestError, match="Cannot modify invoice"):
            await service.update(invoice.id, InvoiceUpdate(notes="late edit"))
        with pytest.raises(BadRequestError, match="Only draft invoices"):
            await service.remove(invoice.id)

    async def test_update_recalculates_on_place_change(self, session, finance):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)
        updated = await service.update(invoice.id, InvoiceUpdate(place_of_supply="Kerala"))
        assert updated.cgst_amount == 0
        assert updated.igst_amount == Decimal("180")
        assert updated.total_amount == Decimal("1180")

    async def test_gst_override(self, session, finance):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)

        with pytest.raises(BadRequestError, match="Intra-state supply cannot carry IGST"):
            await service.override_gst(
                invoice.id, GSTOverrideRequest(igst_amount=Decimal("180"), reason="Wrong head"), finance
            )

        overridden = await service.override_gst(
            invoice.id,
            GSTOverrideRequest(cgst_amount=Decimal("100"), sgst_amount=Decimal("100"), reason="Per vendor"),
            finance,
        )
        assert overridden.is_gst_override
        assert overridden.gst_override_by == finance.user_id
        assert overridden.total_tax == Decimal("200")
        assert overridden.total_amount == Decimal("1200")

        # New line items put the computed amounts back
        recalculated = await service.update(invoice.id, InvoiceUpdate(items=_items(("1", "1000", "18"))))
        assert not recalculated.is_gst_override
        assert recalculated.total_tax == Decimal("180")

    async def test_bulk_status(self, session, finance, random_id):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)

        result = await service.bulk_change_status(
            InvoiceBulkStatusUpdate(invoice_ids=[invoice.id, random_id], status=InvoiceStatus.PENDING)
        )
        assert result["success"] == 1
        assert result["failed"] == 1
        assert result["errors"][0]["index"] == 1
        assert result["errors"][0]["error"] == "Invoice not found"

    async def test_mark_overdue_and_summary(self, session, finance):
        service = InvoiceService(session)
        late = await service.create(
            _invoice(invoice_date=date.today() - timedelta(days=30), due_date=date.today() - timedelta(days=1)),
            finance,
        )
        for status in (InvoiceStatus.PENDING, InvoiceStatus.APPROVED):
            await service.change_status(late.id, InvoiceStatusUpdate(status=status))
        await service.create(_invoice(), finance)

        assert await service.mark_overdue() == 1
        assert (await service.get(late.id)).status == InvoiceStatus.OVERDUE.value

        summary = await service.financial_summary()
        assert summary["total_invoices"] == 2
        assert summary["total_revenue"] == Decimal("2360.00")
        assert summary["total_overdue"] == Decimal("1180.00")
        assert summary["total_outstanding"] == Decimal("1180.00")
        assert summary["total_gst"] == Decimal("360.00")
        assert summary["by_status"] == {InvoiceStatus.OVERDUE.value: 1, InvoiceStatus.DRAFT.value: 1}

    async def test_search(self, session, finance):
        service = InvoiceService(session)
        await service.create(_invoice(client_name="Acme Traders"), finance)
        await service.create(_invoice(client_name="Globex"), finance)

        result = await service.search(InvoiceSearchFilter(search="globex"))
        assert result["total"] == 1
        assert result["data"][0].client_name == "Globex"

        ordered = await service.search(InvoiceSearchFilter(), sort_by="client_name", sort_order="asc")
        assert [i.client_name for i in ordered["data"]] == ["Acme Traders", "Globex"]


def _bill(**kwargs) -> BillCreate:
    return BillCreate(
        vendor_name=kwargs.pop("vendor_name", "Steel Supplies"),
        vendor_state=kwargs.pop("vendor_state", "Maharashtra"),
        bill_date=kwargs.pop("bill_date", date.today()),
        due_date=kwargs.pop("due_date", date.today() + timedelta(days=15)),
        items=kwargs.pop("items", _items(("1", "10000", "18"))),
        **kwargs,
    )


def _payment(reference: str, amount: str) -> BillPaymentCreate:
    return BillPaymentCreate(
        payment_reference=reference,
        paid_amount=Decimal(amount),
        payment_date=date.today(),
        payment_method=PaymentMethod.BANK_TRANSFER,
    )


class TestBills:
    async def test_create(self, session, finance):
        bill = await BillService(session).create(_bill(tds_amount=Decimal("200")), finance)
        assert bill.bill_number.startswith(f"BILL-{date.today():%Y%m%d}-")
        assert bill.igst_amount == Decimal("1800")
        assert bill.total_amount == Decimal("11600")
        assert bill.status == BillStatus.DRAFT.value

    async def test_vendor_bill_number_must_be_unique(self, session, finance):
        service = BillService(session)
        await service.create(_bill(bill_number="V-001"), finance)
        with pytest.raises(BadRequestError, match="already exists"):
            await service.create(_bill(bill_number="V-001"), finance)

    async def test_discount_cannot_exceed_total(self, session, finance):
        with pytest.raises(BadRequestError, match="cannot exceed"):
            await BillService(session).create(_bill(discount_amount=Decimal("20000")), finance)

    async def test_payments(self, session, finance):
        service = BillService(session)
        bill = await service.create(_bill(), finance)

        with pytest.raises(BadRequestError, match="Cannot record payment"):
            await service.record_payment(bill.id, _payment("P-1", "5000"), finance)

        bill = await service.approve(bill.id, finance)
        assert bill.approved_by == finance.user_id

        bill = await service.record_payment(bill.id, _payment("P-1", "5000"), finance)
        assert bill.status == BillStatus.PARTIALLY_PAID.value
        assert bill.outstanding_amount == Decimal("6800")

        with pytest.raises(BadRequestError, match="exceeds outstanding"):
            await service.record_payment(bill.id, _payment("P-2", "7000"), finance)
        with pytest.raises(BadRequestError, match="already recorded"):
            await service.record_payment(bill.id, _payment("P-1", "100"), finance)

        bill = await service.record_payment(bill.id, _payment("P-2", "6800"), finance)
        assert bill.status == BillStatus.PAID.value
        assert sorted(p.payment_reference for p in await service.list_payments(bill.id)) == ["P-1", "P-2"]

    async def test_partial_status_is_not_manual(self, session, finance):
        service = BillService(session)
        bill = await service.create(_bill(), finance)
        with pytest.raises(BadRequestError, match="set by recording payments"):
            await service.change_status(bill.id, BillStatusUpdate(status=BillStatus.PARTIALLY_PAID), finance)

    async def test_update_recalculates(self, session, finance):
        service = BillService(session)
        bill = await service.create(_bill(), finance)
        bill = await service.update(bill.id, BillUpdate(vendor_state="Karnataka"))
        assert bill.igst_amount == 0
        assert bill.cgst_amount == bill.sgst_amount == Decimal("900")

    async def test_only_draft_deleted(self, session, finance):
        service = BillService(session)
        bill = await service.create(_bill(), finance)
        await service.approve(bill.id, finance)
        with pytest.raises(BadRequestError, match="Only draft bills"):
            await service.remove(bill.id)


class TestInvoiceOperations:
    async def test_audit_trail_records_changes(self, session, finance):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)
        await service.update(invoice.id, InvoiceUpdate(notes="Call before delivery"), finance)
        await service.change_status(invoice.id, InvoiceStatusUpdate(status=InvoiceStatus.PENDING), finance)
        await service.override_gst(
            invoice.id,
            GSTOverrideRequest(cgst_amount=Decimal("100"), sgst_amount=Decimal("100"), reason="Per vendor"),
            finance,
        )

        trail = await service.audit_trail(invoice.id)
        assert trail["total"] == 4
        entries = {entry.operation: entry for entry in trail["data"]}
        assert set(entries) == {
            OperationType.CREATE.value,
            OperationType.UPDATE.value,
            OperationType.STATUS_CHANGE.value,
            OperationType.GST_OVERRIDE.value,
        }
        assert all(entry.performed_by == finance.user_id for entry in trail["data"])

        assert entries["CREATE"].new_values["client_name"] == "Acme Traders"
        assert entries["UPDATE"].old_values == {"notes": None}
        assert entries["UPDATE"].new_values == {"notes": "Call before delivery"}
        assert entries["STATUS_CHANGE"].old_values == {"status": "DRAFT"}
        assert entries["STATUS_CHANGE"].new_values == {"status": "PENDING"}
        assert entries["GST_OVERRIDE"].new_values["total_tax"] == "200.00"
        assert entries["GST_OVERRIDE"].description == "Per vendor"

        updates = await service.audit_trail(invoice.id, OperationType.UPDATE)
        assert updates["total"] == 1

    async def test_update_without_changes_is_not_logged(self, session, finance):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)
        await service.update(invoice.id, InvoiceUpdate(client_name="Acme Traders"), finance)
        assert (await service.audit_trail(invoice.id, OperationType.UPDATE))["total"] == 0

    async def test_audit_trail_outlives_delete(self, session, finance, random_id):
        service = InvoiceService(session)
        invoice = await service.create(_invoice(), finance)
        await service.remove(invoice.id, finance)

        trail = await service.audit_trail(invoice.id)
        assert {entry.operation for entry in trail["data"]} == {"CREATE", "DELETE"}

        with pytest.raises(NotFoundError, match="Invoice not found"):
            await service.audit_trail(random_id)

    async def test_duplicate(self, session, finance):
        service = InvoiceService(session)
        source = await service.create(
            _invoice(invoice_date=date.today() - timedelta(days=10), due_date=date.today() + timedelta(days=20)),
            finance,
        )
        await service.override_gst(
            source.id,
            GSTOverrideRequest(cgst_amount=Decimal("100"), sgst_amount=Decimal("100"), reason="Per vendor"),
            finance,
        )
        await service.change_status(source.id, InvoiceStatusUpdate(status=InvoiceStatus.PENDING), finance)

        copy = await service.duplicate(source.id, InvoiceDuplicateRequest(new_client_name="Globex"), finance)

        assert copy.id != source.id
        assert copy.invoice_number.endswith("-0002")
        assert copy.status == InvoiceStatus.DRAFT.value
        assert copy.client_name == copy.bill_to_name == "Globex"
        assert copy.invoice_date == date.today()
        assert copy.due_date == date.today() + timedelta(days=30)
        assert not copy.is_gst_override
        assert copy.total_tax == Decimal("180")
        assert len(copy.items) == 1
        assert copy.created_by == finance.user_id

        trail = await service.audit_trail(copy.id)
        assert trail["data"][0].operation == OperationType.DUPLICATE.value
        assert trail["data"][0].new_values["source_invoice_number"] == source.invoice_number

    async def test_duplicate_keeps_dates(self, session, finance, random_id):
        service = InvoiceService(session)
        source = await service.create(_invoice(invoice_date=date(2025, 3, 1), due_date=date(2025, 3, 31)), finance)

        copy = await service.duplicate(source.id, InvoiceDuplicateRequest(reset_dates=False), finance)
        assert copy.invoice_date == date(2025, 3, 1)
        assert copy.due_date == date(2025, 3, 31)
        assert copy.client_name == "Acme Traders"

        with pytest.raises(NotFoundError):
            await service.duplicate(random_id, InvoiceDuplicateRequest(), finance)

    async def test_bulk_delete(self, session, finance, random_id):
        service = InvoiceService(session)
        first = await service.create(_invoice(), finance)
        second = await service.create(_invoice(), finance)
        pending = await service.create(_invoice(), finance)
        await service.change_status(pending.id, InvoiceStatusUpdate(status=InvoiceStatus.PENDING), finance)

        result = await service.bulk_remove(
            InvoiceBulkDelete(invoice_ids=[first.id, pending.id, second.id, random_id]), finance
        )
        assert result["success"] == 2
        assert result["failed"] == 2
        assert [(e["index"], e["error"]) for e in result["errors"]] == [
            (1, "Only draft invoices can be deleted"),
            (3, "Invoice not found"),
        ]

        for invoice_id in (first.id, second.id):
            with pytest.raises(NotFoundError):
                await service.get(invoice_id)
        assert (await service.get(pending.id)).status == InvoiceStatus.PENDING.value

        deleted = await service.audit_trail(first.id, OperationType.BULK_DELETE)
        assert deleted["total"] == 1
        assert deleted["data"][0].old_values["invoice_number"] == first.invoice_number

    async def test_overdue_sweep_is_logged_without_user(self, session, finance):
        service = InvoiceService(session)
        late = await service.create(
            _invoice(invoice_date=date.today() - timedelta(days=30), due_date=date.today() - timedelta(days=1)),
            finance,
        )
        for status in (InvoiceStatus.PENDING, InvoiceStatus.APPROVED):
            await service.change_status(late.id, InvoiceStatusUpdate(status=status), finance)

        assert await service.mark_overdue() == 1

        changes = (await service.audit_trail(late.id, OperationType.STATUS_CHANGE))["data"]
        sweep = [entry for entry in changes if entry.performed_by is None]
        assert len(sweep) == 1
        assert sweep[0].new_values == {"status": "OVERDUE"}
        assert sweep[0].description == "Past due date"


async def _approved(service: InvoiceService, invoice, context) -> None:
    for status in (InvoiceStatus.PENDING, InvoiceStatus.APPROVED):
        await service.change_status(invoice.id, InvoiceStatusUpdate(status=status), context)


async def _tamper(session, invoice_id, **values) -> None:
    await session.execute(update(Invoice).where(Invoice.id == invoice_id).values(**values))
    await session.commit()


class TestGSTSummaryReport:
    async def _setup(self, session, finance):
        invoices = InvoiceService(session)
        intra = await invoices.create(_invoice(), finance)
        await _approved(invoices, intra, finance)
        inter = await invoices.create(
            _invoice(place="Maharashtra", invoice_date=date.today() - timedelta(days=1), items=_items(("1", "1000", "5"))),
            finance,
        )
        await _approved(invoices, inter, finance)
        await invoices.create(_invoice(items=_items(("1", "99999", "28"))), finance)  # draft, left out

        bills = BillService(session)
        bill = await bills.create(_bill(), finance)
        await bills.approve(bill.id, finance)
        await bills.create(_bill(), finance)  # draft, left out

    async def test_totals(self, session, finance):
        await self._setup(session, finance)
        report = await GSTReportService(session).summary(date.today() - timedelta(days=7), date.today())

        assert report["invoice_count"] == 2
        assert report["bill_count"] == 1
        assert report["output_tax"]["taxable_value"] == Decimal("2000")
        assert report["output_tax"]["cgst"] == report["output_tax"]["sgst"] == Decimal("90")
        assert report["output_tax"]["igst"] == Decimal("50")
        assert report["output_tax"]["total_tax"] == Decimal("230")
        assert report["input_tax"]["igst"] == Decimal("1800")
        assert report["net_liability"] == Decimal("-1570")
        assert report["periods"] == []

        rates = {row["gst_rate"]: row for row in report["by_rate"]}
        assert set(rates) == {Decimal("5"), Decimal("18")}
        assert rates[Decimal("5")]["igst"] == Decimal("50")
        assert rates[Decimal("18")]["total_tax"] == Decimal("180")

    async def test_grouped_by_day(self, session, finance):
        await self._setup(session, finance)
        report = await GSTReportService(session).summary(
            date.today() - timedelta(days=7), date.today(), group_by="day"
        )

        periods = {row["period"]: row for row in report["periods"]}
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        assert list(periods) == [yesterday, date.today().isoformat()]
        assert periods[yesterday]["output_tax"]["igst"] == Decimal("50")
        assert periods[yesterday]["input_tax"]["total_tax"] == 0
        assert periods[date.today().isoformat()]["net_liability"] == Decimal("-1620")

    async def test_range_excludes_other_dates(self, session, finance):
        await self._setup(session, finance)
        report = await GSTReportService(session).summary(
            date.today() - timedelta(days=1), date.today() - timedelta(days=1)
        )
        assert report["invoice_count"] == 1
        assert report["bill_count"] == 0
        assert report["net_liability"] == Decimal("50")

    async def test_validation(self, session):
        service = GSTReportService(session)
        with pytest.raises(BadRequestError, match="Start date cannot be after end date"):
            await service.summary(date(2025, 4, 1), date(2025, 3, 1))
        with pytest.raises(BadRequestError, match="group_by must be one of"):
            await service.summary(date(2025, 3, 1), date(2025, 4, 1), group_by="year")


class TestGSTReconciliation:
    async def test_requires_ids_or_period(self, session):
        service = GSTReportService(session)
        with pytest.raises(BadRequestError, match="Either invoice_ids or period is required"):
            await service.reconcile(GSTReconciliationRequest())
        with pytest.raises(BadRequestError, match="Start date cannot be after end date"):
            await service.reconcile(GSTReconciliationRequest(
                period=GSTReconciliationPeriod(start_date=date(2025, 4, 1), end_date=date(2025, 3, 1))
            ))

    async def test_detects_mismatch(self, session, finance, random_id):
        invoices = InvoiceService(session)
        clean = await invoices.create(_invoice(), finance)
        broken = await invoices.create(_invoice(), finance)
        await _tamper(session, broken.id, cgst_amount=Decimal("100"))

        result = await GSTReportService(session).reconcile(
            GSTReconciliationRequest(invoice_ids=[clean.id, broken.id, random_id])
        )
        assert result["total"] == 2
        assert result["matched"] == 1
        assert result["mismatched"] == 1
        assert result["not_found"] == [random_id]

        by_id = {row["invoice_id"]: row for row in result["results"]}
        assert by_id[clean.id]["status"] == "MATCHED"
        assert by_id[broken.id]["status"] == "MISMATCH"
        assert set(by_id[broken.id]["differences"]) == {"cgst_amount"}
        assert by_id[broken.id]["differences"]["cgst_amount"]["stored"] == Decimal("100")
        assert by_id[broken.id]["differences"]["cgst_amount"]["calculated"] == Decimal("90")

        # Reporting alone changes nothing
        assert (await invoices.get(broken.id)).cgst_amount == Decimal("100")

    async def test_recalculate(self, session, finance):
        invoices = InvoiceService(session)
        draft = await invoices.create(_invoice(), finance)
        approved = await invoices.create(_invoice(), finance)
        await _approved(invoices, approved, finance)
        for invoice in (draft, approved):
            await _tamper(session, invoice.id, igst_amount=Decimal("5"), total_tax=Decimal("185"))

        result = await GSTReportService(session).reconcile(
            GSTReconciliationRequest(
                period=GSTReconciliationPeriod(start_date=date.today(), end_date=date.today()),
                recalculate=True,
            ),
            finance,
        )
        assert result["recalculated"] == 1
        assert result["mismatched"] == 1

        fixed = await invoices.get(draft.id)
        assert fixed.igst_amount == 0
        assert fixed.total_tax == Decimal("180")
        assert (await invoices.get(approved.id)).igst_amount == Decimal("5")

        logged = await invoices.audit_trail(draft.id, OperationType.GST_RECALCULATE)
        assert logged["total"] == 1
        assert logged["data"][0].performed_by == finance.user_id

    async def test_override_is_left_alone(self, session, finance):
        invoices = InvoiceService(session)
        invoice = await invoices.create(_invoice(), finance)
        await invoices.override_gst(
            invoice.id,
            GSTOverrideRequest(cgst_amount=Decimal("100"), sgst_amount=Decimal("100"), reason="Per vendor"),
            finance,
        )

        result = await GSTReportService(session).reconcile(
            GSTReconciliationRequest(invoice_ids=[invoice.id], recalculate=True), finance
        )
        assert result["overridden"] == 1
        assert result["results"][0]["status"] == "OVERRIDDEN"
        assert (await invoices.get(invoice.id)).total_tax == Decimal("200")


def _address(customer="CUST-1", **kwargs) -> CustomerAddressCreate:
    return CustomerAddressCreate(
        customer_id=customer,
        address_line1=kwargs.pop("address_line1", "12 MG Road"),
        city=kwargs.pop("city", "Bengaluru"),
        state=kwargs.pop("state", "Karnataka"),
        pincode=kwargs.pop("pincode", "560001"),
        **kwargs,
    )


class TestCustomerAddresses:
    async def test_first_address_becomes_default(self, session, finance):
        address = await CustomerAddressService(session).create(_address(), finance)
        assert address.is_default
        assert address.created_by == finance.user_id

    async def test_single_default_per_type(self, session, finance):
        service = CustomerAddressService(session)
        first = await service.create(_address(address_type=AddressType.BILLING), finance)
        second = await service.create(
            _address(address_type=AddressType.BILLING, city="Mysuru", is_default=True), finance
        )
        await session.refresh(first)
        assert not first.is_default
        assert second.is_default

        await service.set_default(first.id)
        await session.refresh(second)
        assert not second.is_default
        assert (await service.get_default("CUST-1", AddressType.BILLING)).id == first.id

    async def test_default_falls_back_to_both(self, session, finance):
        service = CustomerAddressService(session)
        both = await service.create(_address(address_type=AddressType.BOTH), finance)
        assert (await service.get_default("CUST-1", AddressType.SHIPPING)).id == both.id

        with pytest.raises(NotFoundError):
            await service.get_default("CUST-404", AddressType.SHIPPING)

    async def test_both_default_replaces_typed_defaults(self, session, finance):
        service = CustomerAddressService(session)
        billing = await service.create(_address(address_type=AddressType.BILLING), finance)
        shipping = await service.create(
            _address(address_type=AddressType.SHIPPING, city="Mysuru", is_default=True), finance
        )
        await session.refresh(billing)
        assert billing.is_default and shipping.is_default

        both = await service.create(
            _address(address_type=AddressType.BOTH, city="Mangaluru", is_default=True), finance
        )
        await session.refresh(billing)
        await session.refresh(shipping)
        assert not billing.is_default
        assert not shipping.is_default
        assert (await service.get_default("CUST-1", AddressType.BILLING)).id == both.id
        assert (await service.get_default("CUST-1", AddressType.SHIPPING)).id == both.id

    async def test_default_cannot_be_deleted(self, session, finance):
        service = CustomerAddressService(session)
        default = await service.create(_address(), finance)
        other = await service.create(_address(city="Hubli"), finance)

        with pytest.raises(BadRequestError, match="Cannot delete the default address"):
            await service.remove(default.id)
        await service.remove(other.id)
        assert [a.id for a in await service.list_by_customer("CUST-1")] == [default.id]

    async def test_validation(self, session, finance):
        service = CustomerAddressService(session)
        with pytest.raises(BadRequestError, match="Invalid state"):
            await service.create(_address(state="Atlantis"), finance)
        with pytest.raises(BadRequestError, match="Invalid GSTIN"):
            await service.create(_address(gstin="12345"), finance)

    async def test_bulk_import_and_statistics(self, session, finance):
        service = CustomerAddressService(session)
        result = await service.bulk_import([
            _address("CUST-1", gstin="29ABCDE1234F1Z5"),
            _address("CUST-2", state="Narnia"),
            _address("CUST-3", state="Kerala", city="Kochi", address_type=AddressType.SHIPPING),
        ], finance)
        assert result["success"] == 2
        assert result["failed"] == 1
        assert result["errors"][0]["reference"] == "CUST-2"
        assert result["errors"][0]["error"].startswith("Failed to create address for CUST-2")

        stats = await service.statistics()
        assert stats["total"] == 2
        assert stats["with_gstin"] == 1
        assert stats["by_type"][AddressType.SHIPPING.value] == 1
        assert stats["by_state"] == {"Karnataka": 1, "Kerala": 1}

        found = await service.search("kochi")
        assert [a.customer_id for a in found] == ["CUST-3"]
