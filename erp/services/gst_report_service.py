"""
GST reports: liability summary and invoice reconciliation.

Output tax comes from invoices, input tax from bills. DRAFT and CANCELLED
documents are not part of either.
"""
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.exceptions import BadRequestError
from erp.core.permissions import RequestContext
from erp.models.billing import Bill, BillStatus, Invoice, InvoiceStatus
from erp.models.operation_log import OperationEntity, OperationType
from erp.schemas.billing import GSTReconciliationRequest
from erp.services import gst_service
from erp.services.invoice_service import apply_invoice_totals, line_items
from erp.services.operation_log_service import OperationLogService, snapshot, diff
from erp.services.state_machine import can_edit

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

EXCLUDED_INVOICE_STATUSES = (InvoiceStatus.DRAFT.value, InvoiceStatus.CANCELLED.value)
EXCLUDED_BILL_STATUSES = (BillStatus.DRAFT.value, BillStatus.CANCELLED.value)

RECONCILED_FIELDS = ("subtotal", "cgst_amount", "sgst_amount", "igst_amount", "total_tax", "total_amount")


def period_key(day: date, group_by: str) -> str:
    """day: 2024-03-05, week: 2024-W10 (ISO week), month: 2024-03."""
    if group_by == "day":
        return day.isoformat()
    if group_by == "week":
        year, week, _ = day.isocalendar()
        return f"{year}-W{week:02d}"
    if group_by == "month":
        return day.strftime("%Y-%m")
    raise BadRequestError("group_by must be one of: day, week, month")


def _bucket() -> Dict[str, Decimal]:
    return {"taxable_value": ZERO, "cgst": ZERO, "sgst": ZERO, "igst": ZERO, "total_tax": ZERO}


def _add(bucket: Dict[str, Decimal], taxable, cgst, sgst, igst) -> None:
    bucket["taxable_value"] += taxable
    bucket["cgst"] += cgst
    bucket["sgst"] += sgst
    bucket["igst"] += igst
    bucket["total_tax"] += cgst + sgst + igst


def _rounded(bucket: Dict[str, Decimal]) -> Dict[str, Decimal]:
    return {key: gst_service.round_money(value) for key, value in bucket.items()}


class GSTReportService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def summary(self, start_date: date, end_date: date, group_by: Optional[str] = None) -> dict:
        """
        Output and input GST for a date range.

        Net liability is output tax minus input tax credit. by_rate breaks the
        output side down by the line items' GST rate; periods buckets both
        sides by invoice/bill date when group_by is given.
        """
        if start_date > end_date:
            raise BadRequestError("Start date cannot be after end date")
        if group_by:
            period_key(start_date, group_by)

        invoices = (await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(
                Invoice.invoice_date >= start_date,
                Invoice.invoice_date <= end_date,
                Invoice.status.not_in(EXCLUDED_INVOICE_STATUSES),
            )
            .execution_options(populate_existing=True)
        )).scalars().all()
        bills = (await self.db.execute(
            select(Bill).where(
                Bill.bill_date >= start_date,
                Bill.bill_date <= end_date,
                Bill.status.not_in(EXCLUDED_BILL_STATUSES),
            )
        )).scalars().all()

        output, credit = _bucket(), _bucket()
        by_rate: Dict[Decimal, Dict[str, Decimal]] = defaultdict(_bucket)
        periods: Dict[str, Dict[str, Dict[str, Decimal]]] = defaultdict(
            lambda: {"output": _bucket(), "input": _bucket()}
        )

        for invoice in invoices:
            taxable = invoice.subtotal + invoice.shipping_charges - invoice.discount
            amounts = (taxable, invoice.cgst_amount, invoice.sgst_amount, invoice.igst_amount)
            _add(output, *amounts)
            if group_by:
                _add(periods[period_key(invoice.invoice_date, group_by)]["output"], *amounts)
            for item in invoice.items:
                _add(by_rate[item.gst_rate], item.amount, item.cgst_amount, item.sgst_amount, item.igst_amount)

        for bill in bills:
            taxable = bill.subtotal - bill.discount_amount
            amounts = (taxable, bill.cgst_amount, bill.sgst_amount, bill.igst_amount)
            _add(credit, *amounts)
            if group_by:
                _add(periods[period_key(bill.bill_date, group_by)]["input"], *amounts)

        return {
            "start_date": start_date,
            "end_date": end_date,
            "group_by": group_by,
            "invoice_count": len(invoices),
            "bill_count": len(bills),
            "output_tax": _rounded(output),
            "input_tax": _rounded(credit),
            "net_liability": gst_service.round_money(output["total_tax"] - credit["total_tax"]),
            "by_rate": [
                {"gst_rate": rate, **_rounded(amounts)}
                for rate, amounts in sorted(by_rate.items())
            ],
            "periods": [
                {
                    "period": key,
                    "output_tax": _rounded(sides["output"]),
                    "input_tax": _rounded(sides["input"]),
                    "net_liability": gst_service.round_money(
                        sides["output"]["total_tax"] - sides["input"]["total_tax"]
                    ),
                }
                for key, sides in sorted(periods.items())
            ],
        }

    async def reconcile(self, data: GSTReconciliationRequest, context: Optional[RequestContext] = None) -> dict:
        """
        Compare stored invoice GST with a fresh calculation from the items.

        Manually overridden invoices are reported, never recalculated. With
        recalculate, mismatched invoices that are still editable get the
        calculated amounts and a GST_RECALCULATE entry in their audit trail.
        """
        if not data.invoice_ids and not data.period:
            raise BadRequestError("Either invoice_ids or period is required")

        query = select(Invoice).options(selectinload(Invoice.items))
        if data.invoice_ids:
            query = query.where(Invoice.id.in_(data.invoice_ids))
        if data.period:
            if data.period.start_date > data.period.end_date:
                raise BadRequestError("Start date cannot be after end date")
            query = query.where(
                Invoice.invoice_date >= data.period.start_date,
                Invoice.invoice_date <= data.period.end_date,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
        query = query.order_by(Invoice.invoice_number).execution_options(populate_existing=True)
        invoices = (await self.db.execute(query)).scalars().all()

        found = {invoice.id for invoice in invoices}
        not_found = [invoice_id for invoice_id in (data.invoice_ids or []) if invoice_id not in found]

        operations = OperationLogService(self.db)
        company = gst_service.company_state()
        results: List[dict] = []
        counts = defaultdict(int)

        for invoice in invoices:
            totals = gst_service.calculate_document(
                line_items(invoice), company, invoice.place_of_supply,
                invoice.shipping_charges, invoice.discount,
            )
            expected = {
                "subtotal": totals.subtotal,
                "cgst_amount": totals.cgst,
                "sgst_amount": totals.sgst,
                "igst_amount": totals.igst,
                "total_tax": totals.total_tax,
                "total_amount": totals.grand_total,
            }
            differences = {
                field: {"stored": getattr(invoice, field), "calculated": value}
                for field, value in expected.items()
                if getattr(invoice, field) != value
            }

            if not differences:
                status = "MATCHED"
            elif invoice.is_gst_override:
                status = "OVERRIDDEN"
            elif data.recalculate and can_edit("invoice", invoice.status):
                before = snapshot(invoice, RECONCILED_FIELDS)
                apply_invoice_totals(invoice, line_items(invoice), company)
                old_values, new_values = diff(before, snapshot(invoice, RECONCILED_FIELDS))
                await operations.log(
                    OperationEntity.INVOICE, invoice.id, OperationType.GST_RECALCULATE, context,
                    old_values, new_values, "GST reconciliation",
                )
                status = "RECALCULATED"
            else:
                status = "MISMATCH"

            counts[status] += 1
            results.append({
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "status": status,
                "differences": differences,
            })

        if counts["RECALCULATED"]:
            await self.db.commit()
            logger.info(f"GST reconciliation recalculated {counts['RECALCULATED']} invoices")
        if counts["MISMATCH"]:
            logger.warning(f"GST reconciliation found {counts['MISMATCH']} mismatched invoices")

        return {
            "total": len(results),
            "matched": counts["MATCHED"],
            "mismatched": counts["MISMATCH"],
            "overridden": counts["OVERRIDDEN"],
            "recalculated": counts["RECALCULATED"],
            "not_found": not_found,
            "results": results,
        }
