"""
Invoice service.

GST is derived from the company state and the invoice's place of supply:
same state splits tax into CGST/SGST, otherwise everything is IGST.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.exceptions import ERPError, NotFoundError, BadRequestError
from erp.core.permissions import RequestContext
from erp.models.billing import Invoice, InvoiceItem, InvoiceStatus
from erp.models.operation_log import OperationEntity, OperationType
from erp.schemas.billing import (
    InvoiceCreate, InvoiceUpdate, InvoiceStatusUpdate, InvoiceBulkStatusUpdate,
    GSTOverrideRequest, InvoiceSearchFilter, LineItemCreate,
    InvoiceDuplicateRequest, InvoiceBulkDelete,
)
from erp.services import gst_service
from erp.services.filters import build_invoice_filters
from erp.services.operation_log_service import OperationLogService, snapshot, diff
from erp.services.pagination import apply_filters, paginate
from erp.services.state_machine import INVOICE_TRANSITIONS, validate_transition, ensure_editable

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

SORT_FIELDS = {
    "invoice_date": Invoice.invoice_date,
    "due_date": Invoice.due_date,
    "total_amount": Invoice.total_amount,
    "client_name": Invoice.client_name,
    "invoice_number": Invoice.invoice_number,
    "created_at": Invoice.created_at,
}

OUTSTANDING_STATUSES = (
    InvoiceStatus.PENDING.value,
    InvoiceStatus.APPROVED.value,
    InvoiceStatus.OVERDUE.value,
)


def _address(value) -> Optional[dict]:
    if value is None:
        return None
    return value.model_dump() if hasattr(value, "model_dump") else dict(value)


def apply_invoice_totals(
    invoice: Invoice,
    items: List[LineItemCreate],
    company_state: Optional[str] = None,
) -> None:
    """Recalculate line items and header amounts from scratch."""
    totals = gst_service.calculate_document(
        items,
        company_state or gst_service.company_state(),
        invoice.place_of_supply,
        invoice.shipping_charges or ZERO,
        invoice.discount or ZERO,
    )

    invoice.items = [
        InvoiceItem(
            line_number=index,
            description=line.description,
            hsn_code=item.hsn_code,
            quantity=line.quantity,
            unit=item.unit,
            rate=line.rate,
            gst_rate=line.gst_rate,
            amount=line.amount,
            tax_amount=line.tax_amount,
            cgst_amount=line.split.cgst,
            sgst_amount=line.split.sgst,
            igst_amount=line.split.igst,
            total_amount=line.total,
        )
        for index, (item, line) in enumerate(zip(items, totals.lines), start=1)
    ]
    invoice.subtotal = totals.subtotal
    invoice.shipping_charges = totals.shipping_charges
    invoice.discount = totals.discount
    invoice.cgst_amount = totals.cgst
    invoice.sgst_amount = totals.sgst
    invoice.igst_amount = totals.igst
    invoice.cess_amount = totals.cess
    invoice.total_tax = totals.total_tax
    invoice.total_amount = totals.grand_total
    invoice.is_gst_override = False
    invoice.gst_override_reason = None
    invoice.gst_override_by = None
    invoice.gst_override_at = None


def line_items(invoice: Invoice) -> List[LineItemCreate]:
    """Stored items as calculator input."""
    return [
        LineItemCreate(
            description=item.description,
            hsn_code=item.hsn_code,
            quantity=item.quantity,
            unit=item.unit,
            rate=item.rate,
            gst_rate=item.gst_rate,
        )
        for item in invoice.items
    ]


class InvoiceService:
    """Invoices with GST line items."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.operations = OperationLogService(db)

    async def _log(
        self,
        invoice_id: UUID,
        operation: OperationType,
        context: Optional[RequestContext] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        description: Optional[str] = None,
    ) -> None:
        await self.operations.log(
            OperationEntity.INVOICE, invoice_id, operation, context,
            old_values=old_values, new_values=new_values, description=description,
        )

    async def generate_invoice_number(self) -> str:
        """INV-YYYYMMDD-NNNN, sequence restarting daily."""
        prefix = f"INV-{date.today().strftime('%Y%m%d')}"
        result = await self.db.execute(
            select(func.max(Invoice.invoice_number)).where(Invoice.invoice_number.like(f"{prefix}%"))
        )
        max_number = result.scalar()
        seq = int(max_number.split("-")[-1]) + 1 if max_number else 1
        return f"{prefix}-{seq:04d}"

    async def get(self, invoice_id: UUID) -> Invoice:
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    async def exists(self, invoice_id: UUID) -> bool:
        result = await self.db.execute(select(Invoice.id).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none() is not None

    async def create(self, data: InvoiceCreate, context: RequestContext) -> Invoice:
        invoice_date = data.invoice_date or date.today()
        if data.due_date < invoice_date:
            raise BadRequestError("Due date cannot be before invoice date")
        if not gst_service.is_valid_state(data.place_of_supply):
            raise BadRequestError(f"Unknown place of supply '{data.place_of_supply}'")
        if data.bill_to_gstin and not gst_service.is_valid_gstin(data.bill_to_gstin):
            raise BadRequestError("Invalid bill-to GSTIN")

        invoice = Invoice(
            invoice_number=await self.generate_invoice_number(),
            customer_id=data.customer_id,
            client_name=data.client_name,
            client_email=data.client_email,
            bill_to_name=data.bill_to_name or data.client_name,
            bill_to_address=_address(data.bill_to_address),
            bill_to_gstin=data.bill_to_gstin,
            ship_to_address=_address(data.ship_to_address),
            place_of_supply=data.place_of_supply,
            invoice_date=invoice_date,
            due_date=data.due_date,
            shipping_charges=data.shipping_charges,
            discount=data.discount,
            status=InvoiceStatus.DRAFT.value,
            notes=data.notes,
            created_by=context.user_id,
        )
        apply_invoice_totals(invoice, data.items)

        self.db.add(invoice)
        await self.db.flush()
        await self._log(invoice.id, OperationType.CREATE, context, new_values=snapshot(invoice))
        await self.db.commit()

        logger.info(
            f"Invoice {invoice.invoice_number} created for {invoice.client_name}: "
            f"total {invoice.total_amount}"
        )
        return await self.get(invoice.id)

    async def search(
        self,
        filters: InvoiceSearchFilter,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "invoice_date",
        sort_order: str = "desc",
    ) -> dict:
        column = SORT_FIELDS.get(sort_by, Invoice.invoice_date)
        order = column.asc() if sort_order.lower() == "asc" else column.desc()
        query = apply_filters(
            select(Invoice).options(selectinload(Invoice.items)),
            build_invoice_filters(filters),
        )
        return await paginate(self.db, query, page, limit, order_by=[order, Invoice.invoice_number.desc()])

    async def update(
        self,
        invoice_id: UUID,
        data: InvoiceUpdate,
        context: Optional[RequestContext] = None,
    ) -> Invoice:
        invoice = await self.get(invoice_id)
        ensure_editable("invoice", invoice.status)
        before = snapshot(invoice)

        update_data = data.model_dump(exclude_unset=True, exclude={"items"})
        if "place_of_supply" in update_data and not gst_service.is_valid_state(update_data["place_of_supply"]):
            raise BadRequestError(f"Unknown place of supply '{update_data['place_of_supply']}'")
        if update_data.get("bill_to_gstin") and not gst_service.is_valid_gstin(update_data["bill_to_gstin"]):
            raise BadRequestError("Invalid bill-to GSTIN")

        for field in ("bill_to_address", "ship_to_address"):
            if field in update_data:
                update_data[field] = _address(getattr(data, field))
        for field, value in update_data.items():
            setattr(invoice, field, value)

        if invoice.due_date < invoice.invoice_date:
            raise BadRequestError("Due date cannot be before invoice date")

        recalc_fields = {"place_of_supply", "shipping_charges", "discount"}
        if data.items is not None:
            apply_invoice_totals(invoice, data.items)
        elif recalc_fields & update_data.keys():
            apply_invoice_totals(invoice, line_items(invoice))

        old_values, new_values = diff(before, snapshot(invoice))
        if data.items is not None:
            new_values["items"] = len(data.items)
        if new_values:
            await self._log(invoice.id, OperationType.UPDATE, context, old_values, new_values)

        await self.db.commit()
        return await self.get(invoice.id)

    async def change_status(
        self,
        invoice_id: UUID,
        data: InvoiceStatusUpdate,
        context: Optional[RequestContext] = None,
    ) -> Invoice:
        invoice = await self.get(invoice_id)
        old_status = invoice.status
        self._transition(invoice, data.status)
        await self._log(
            invoice.id, OperationType.STATUS_CHANGE, context,
            {"status": old_status}, {"status": invoice.status}, data.notes,
        )
        await self.db.commit()
        return await self.get(invoice.id)

    def _transition(self, invoice: Invoice, new_status: InvoiceStatus) -> None:
        validate_transition(INVOICE_TRANSITIONS, invoice.status, new_status, "Invoice")
        invoice.status = new_status.value
        if new_status == InvoiceStatus.PAID:
            invoice.paid_at = datetime.now(timezone.utc)
        logger.info(f"Invoice {invoice.invoice_number} moved to {invoice.status}")

    async def bulk_change_status(
        self,
        data: InvoiceBulkStatusUpdate,
        context: Optional[RequestContext] = None,
    ) -> dict:
        """Apply one status to many invoices; each failure is reported, none aborts."""
        result = await self.db.execute(select(Invoice).where(Invoice.id.in_(data.invoice_ids)))
        invoices = {invoice.id: invoice for invoice in result.scalars().all()}

        success, errors = 0, []
        for index, invoice_id in enumerate(data.invoice_ids):
            invoice = invoices.get(invoice_id)
            try:
                if invoice is None:
                    raise NotFoundError("Invoice not found")
                old_status = invoice.status
                self._transition(invoice, data.status)
                await self._log(
                    invoice.id, OperationType.BULK_STATUS_CHANGE, context,
                    {"status": old_status}, {"status": invoice.status},
                )
                success += 1
            except ERPError as e:
                errors.append({"index": index, "error": e.message, "reference": str(invoice_id)})

        await self.db.commit()
        return {"success": success, "failed": len(errors), "errors": errors}

    async def override_gst(self, invoice_id: UUID, data: GSTOverrideRequest, context: RequestContext) -> Invoice:
        """Replace computed GST with manually entered amounts."""
        invoice = await self.get(invoice_id)
        ensure_editable("invoice", invoice.status)

        check = gst_service.validate_gst_override(
            invoice.subtotal,
            data.cgst_amount,
            data.sgst_amount,
            data.igst_amount,
            gst_service.company_state(),
            invoice.place_of_supply,
        )
        if not check["is_valid"]:
            raise BadRequestError("; ".join(check["errors"]))

        tax_fields = ("cgst_amount", "sgst_amount", "igst_amount", "total_tax", "total_amount")
        before = snapshot(invoice, tax_fields)

        invoice.cgst_amount = gst_service.round_money(data.cgst_amount)
        invoice.sgst_amount = gst_service.round_money(data.sgst_amount)
        invoice.igst_amount = gst_service.round_money(data.igst_amount)
        invoice.total_tax = invoice.cgst_amount + invoice.sgst_amount + invoice.igst_amount
        invoice.total_amount = (
            invoice.subtotal + invoice.shipping_charges - invoice.discount
            + invoice.total_tax + invoice.cess_amount
        )
        invoice.is_gst_override = True
        invoice.gst_override_reason = data.reason
        invoice.gst_override_by = context.user_id
        invoice.gst_override_at = datetime.now(timezone.utc)

        await self._log(
            invoice.id, OperationType.GST_OVERRIDE, context,
            before, snapshot(invoice, tax_fields), data.reason,
        )
        await self.db.commit()
        logger.warning(f"GST overridden on invoice {invoice.invoice_number} by {context.email}: {data.reason}")
        return await self.get(invoice.id)

    async def duplicate(
        self,
        invoice_id: UUID,
        data: InvoiceDuplicateRequest,
        context: RequestContext,
    ) -> Invoice:
        """
        Copy an invoice into a new DRAFT.

        GST is recomputed from the copied items, so a manual override on the
        source does not carry over. With reset_dates the copy is dated today
        and keeps the source's payment term.
        """
        source = await self.get(invoice_id)

        if data.reset_dates:
            invoice_date = date.today()
            due_date = invoice_date + (source.due_date - source.invoice_date)
        else:
            invoice_date, due_date = source.invoice_date, source.due_date

        invoice = Invoice(
            invoice_number=await self.generate_invoice_number(),
            customer_id=source.customer_id,
            client_name=data.new_client_name or source.client_name,
            client_email=source.client_email,
            bill_to_name=data.new_client_name or source.bill_to_name,
            bill_to_address=_address(source.bill_to_address),
            bill_to_gstin=source.bill_to_gstin,
            ship_to_address=_address(source.ship_to_address),
            place_of_supply=source.place_of_supply,
            invoice_date=invoice_date,
            due_date=due_date,
            shipping_charges=source.shipping_charges,
            discount=source.discount,
            status=InvoiceStatus.DRAFT.value,
            notes=source.notes,
            created_by=context.user_id,
        )
        apply_invoice_totals(invoice, line_items(source))

        self.db.add(invoice)
        await self.db.flush()
        await self._log(
            invoice.id, OperationType.DUPLICATE, context,
            new_values={
                "source_invoice_id": str(source.id),
                "source_invoice_number": source.invoice_number,
            },
            description=f"Duplicated from {source.invoice_number}",
        )
        await self.db.commit()

        logger.info(f"Invoice {source.invoice_number} duplicated as {invoice.invoice_number}")
        return await self.get(invoice.id)

    async def remove(self, invoice_id: UUID, context: Optional[RequestContext] = None) -> None:
        invoice = await self.get(invoice_id)
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise BadRequestError("Only draft invoices can be deleted")
        await self._log(invoice.id, OperationType.DELETE, context, old_values=snapshot(invoice))
        await self.db.delete(invoice)
        await self.db.commit()
        logger.info(f"Deleted invoice {invoice.invoice_number}")

    async def bulk_remove(self, data: InvoiceBulkDelete, context: Optional[RequestContext] = None) -> dict:
        """Delete many DRAFT invoices; anything else is reported per id."""
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.id.in_(data.invoice_ids))
        )
        invoices = {invoice.id: invoice for invoice in result.scalars().all()}

        success, errors = 0, []
        for index, invoice_id in enumerate(data.invoice_ids):
            invoice = invoices.pop(invoice_id, None)
            try:
                if invoice is None:
                    raise NotFoundError("Invoice not found")
                if invoice.status != InvoiceStatus.DRAFT.value:
                    raise BadRequestError("Only draft invoices can be deleted")
                await self._log(invoice.id, OperationType.BULK_DELETE, context, old_values=snapshot(invoice))
                await self.db.delete(invoice)
                success += 1
            except ERPError as e:
                errors.append({"index": index, "error": e.message, "reference": str(invoice_id)})

        await self.db.commit()
        if success:
            logger.info(f"Bulk deleted {success} invoices")
        return {"success": success, "failed": len(errors), "errors": errors}

    async def audit_trail(
        self,
        invoice_id: UUID,
        operation: Optional[OperationType] = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        """Operation log of one invoice; still readable after the invoice is deleted."""
        trail = await self.operations.audit_trail(OperationEntity.INVOICE, invoice_id, operation, page, limit)
        if trail["total"] == 0 and not await self.exists(invoice_id):
            raise NotFoundError("Invoice not found")
        return trail

    async def financial_summary(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> dict:
        conditions = []
        if start_date:
            conditions.append(Invoice.invoice_date >= start_date)
        if end_date:
            conditions.append(Invoice.invoice_date <= end_date)

        rows = await self.db.execute(
            apply_filters(
                select(
                    Invoice.status,
                    func.count(Invoice.id),
                    func.coalesce(func.sum(Invoice.total_amount), 0),
                    func.coalesce(func.sum(Invoice.cgst_amount), 0),
                    func.coalesce(func.sum(Invoice.sgst_amount), 0),
                    func.coalesce(func.sum(Invoice.igst_amount), 0),
                ),
                conditions,
            ).group_by(Invoice.status)
        )

        by_status: dict = {}
        revenue = paid = outstanding = overdue = ZERO
        cgst = sgst = igst = ZERO
        for status, count, total, c, s, i in rows.all():
            by_status[status] = count
            if status == InvoiceStatus.CANCELLED.value:
                continue
            total = Decimal(str(total))
            revenue += total
            cgst += Decimal(str(c))
            sgst += Decimal(str(s))
            igst += Decimal(str(i))
            if status == InvoiceStatus.PAID.value:
                paid += total
            if status in OUTSTANDING_STATUSES:
                outstanding += total
            if status == InvoiceStatus.OVERDUE.value:
                overdue += total

        r = gst_service.round_money
        return {
            "total_invoices": sum(by_status.values()),
            "total_revenue": r(revenue),
            "total_paid": r(paid),
            "total_outstanding": r(outstanding),
            "total_overdue": r(overdue),
            "total_cgst": r(cgst),
            "total_sgst": r(sgst),
            "total_igst": r(igst),
            "total_gst": r(cgst + sgst + igst),
            "by_status": by_status,
        }

    async def mark_overdue(self) -> int:
        """APPROVED invoices past their due date become OVERDUE."""
        result = await self.db.execute(
            select(Invoice.id).where(
                Invoice.status == InvoiceStatus.APPROVED.value,
                Invoice.due_date < date.today(),
            )
        )
        invoice_ids = list(result.scalars().all())
        if not invoice_ids:
            return 0

        await self.db.execute(
            update(Invoice)
            .where(Invoice.id.in_(invoice_ids))
            .values(status=InvoiceStatus.OVERDUE.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        for invoice_id in invoice_ids:
            await self._log(
                invoice_id, OperationType.STATUS_CHANGE, None,
                {"status": InvoiceStatus.APPROVED.value}, {"status": InvoiceStatus.OVERDUE.value},
                "Past due date",
            )
        await self.db.commit()
        logger.info(f"Marked {len(invoice_ids)} invoices as overdue")
        return len(invoice_ids)
