"""
Print service.

Renders invoices or bills to a single printable HTML document under
{UPLOAD_DIR}/prints. Files expire after PRINT_EXPIRY_HOURS.
"""
import html
import logging
import os
from datetime import timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.config import settings
from erp.core.exceptions import NotFoundError, BadRequestError, GoneError
from erp.core.permissions import RequestContext
from erp.models.billing import Invoice, Bill
from erp.models.export import PrintJob, PrintEntityType, JobStatus
from erp.schemas.export import PrintJobCreate
from erp.services.export_service import remove_file, text_value
from erp.services.job_lifecycle import (
    mark_started, mark_completed, mark_failed, mark_cancelled,
    is_expired, is_downloadable, is_active, utcnow,
)
from erp.services.pagination import paginate

logger = logging.getLogger(__name__)

PAGE_CSS = {
    "A4": "A4",
    "A3": "A3",
    "LETTER": "letter",
    "LEGAL": "legal",
}


def _e(value) -> str:
    return html.escape(text_value(value))


def _address_block(address: Optional[dict]) -> str:
    if not address:
        return ""
    parts = [address.get(k) for k in ("address_line1", "address_line2", "city", "state", "pincode", "country")]
    return "<br>".join(_e(p) for p in parts if p)


def _totals_rows(rows: List[Tuple[str, object]]) -> str:
    return "".join(
        f"<tr><td colspan=\"6\" class=\"r\">{_e(label)}</td><td class=\"r\">{_e(value)}</td></tr>"
        for label, value in rows
    )


def _item_rows(items) -> str:
    return "".join(
        "<tr>"
        f"<td>{item.line_number}</td><td>{_e(item.description)}</td><td>{_e(item.hsn_code)}</td>"
        f"<td class=\"r\">{_e(item.quantity)} {_e(item.unit)}</td><td class=\"r\">{_e(item.rate)}</td>"
        f"<td class=\"r\">{_e(item.gst_rate)}%</td><td class=\"r\">{_e(item.total_amount)}</td>"
        "</tr>"
        for item in items
    )


ITEM_HEADER = (
    "<tr><th>#</th><th>Description</th><th>HSN</th><th>Qty</th>"
    "<th>Rate</th><th>GST</th><th>Total</th></tr>"
)


def render_invoice(invoice: Invoice) -> str:
    totals = [
        ("Subtotal", invoice.subtotal),
        ("Shipping", invoice.shipping_charges),
        ("Discount", invoice.discount),
        ("CGST", invoice.cgst_amount),
        ("SGST", invoice.sgst_amount),
        ("IGST", invoice.igst_amount),
        ("Total", invoice.total_amount),
    ]
    return (
        "<section class=\"doc\">"
        f"<h1>Tax Invoice {_e(invoice.invoice_number)}</h1>"
        f"<p><strong>{_e(settings.COMPANY_NAME)}</strong> | GSTIN {_e(settings.COMPANY_GSTIN)} | "
        f"{_e(settings.COMPANY_STATE)}</p>"
        f"<p>Date: {_e(invoice.invoice_date)} | Due: {_e(invoice.due_date)} | "
        f"Place of supply: {_e(invoice.place_of_supply)}</p>"
        f"<p><strong>Bill to:</strong> {_e(invoice.bill_to_name or invoice.client_name)}<br>"
        f"{_address_block(invoice.bill_to_address)}"
        f"{'<br>GSTIN ' + _e(invoice.bill_to_gstin) if invoice.bill_to_gstin else ''}</p>"
        f"<table>{ITEM_HEADER}{_item_rows(invoice.items)}{_totals_rows(totals)}</table>"
        f"{'<p>' + _e(invoice.notes) + '</p>' if invoice.notes else ''}"
        "</section>"
    )


def render_bill(bill: Bill) -> str:
    totals = [
        ("Subtotal", bill.subtotal),
        ("CGST", bill.cgst_amount),
        ("SGST", bill.sgst_amount),
        ("IGST", bill.igst_amount),
        ("Discount", bill.discount_amount),
        ("TDS", bill.tds_amount),
        ("Total", bill.total_amount),
        ("Paid", bill.paid_amount),
    ]
    return (
        "<section class=\"doc\">"
        f"<h1>Bill {_e(bill.bill_number)}</h1>"
        f"<p><strong>Vendor:</strong> {_e(bill.vendor_name)}"
        f"{' | GSTIN ' + _e(bill.vendor_gstin) if bill.vendor_gstin else ''} | {_e(bill.vendor_state)}<br>"
        f"{_address_block(bill.vendor_address)}</p>"
        f"<p>Date: {_e(bill.bill_date)} | Due: {_e(bill.due_date)} | Status: {_e(bill.status)}</p>"
        f"<table>{ITEM_HEADER}{_item_rows(bill.items)}{_totals_rows(totals)}</table>"
        f"{'<p>' + _e(bill.terms_and_conditions) + '</p>' if bill.terms_and_conditions else ''}"
        "</section>"
    )


def render_document(sections: List[str], paper_size: str, orientation: str, copies: int) -> str:
    page = f"{PAGE_CSS.get(paper_size, 'A4')} {orientation.lower()}"
    body = "".join(sections * copies)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Print</title>"
        f"<style>@page{{size:{page};margin:12mm}}"
        "body{font-family:Arial,sans-serif;font-size:12px}"
        ".doc{page-break-after:always}"
        "table{border-collapse:collapse;width:100%}"
        "th,td{border:1px solid #999;padding:4px 6px}"
        ".r{text-align:right}</style></head>"
        f"<body>{body}</body></html>"
    )


def print_directory() -> str:
    path = os.path.join(settings.UPLOAD_DIR, "prints")
    os.makedirs(path, exist_ok=True)
    return path


class PrintService:
    """Print jobs for invoices and bills."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, job_id: UUID, context: Optional[RequestContext] = None) -> PrintJob:
        query = select(PrintJob).where(PrintJob.id == job_id)
        if context is not None:
            query = query.where(PrintJob.requested_by == context.user_id)
        job = (await self.db.execute(query)).scalar_one_or_none()
        if not job:
            raise NotFoundError("Print job not found")
        return job

    async def _load_sections(self, entity_type: str, ids: List[UUID]) -> List[str]:
        if entity_type == PrintEntityType.INVOICE.value:
            query = select(Invoice).options(selectinload(Invoice.items)).where(Invoice.id.in_(ids))
            renderer = render_invoice
        else:
            query = select(Bill).options(selectinload(Bill.items)).where(Bill.id.in_(ids))
            renderer = render_bill

        found = {record.id: record for record in (await self.db.execute(query)).scalars().all()}
        missing = [str(i) for i in ids if i not in found]
        if missing:
            raise NotFoundError(f"{entity_type.title()} not found: {', '.join(missing)}")
        return [renderer(found[i]) for i in ids]

    async def create(self, data: PrintJobCreate, context: RequestContext) -> PrintJob:
        job = PrintJob(
            entity_type=data.entity_type.value,
            entity_ids=[str(i) for i in data.entity_ids],
            paper_size=data.paper_size.value,
            orientation=data.orientation.value,
            copies=data.copies,
            status=JobStatus.PENDING.value,
            requested_by=context.user_id,
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)

        return await self.process(job, list(data.entity_ids))

    async def process(self, job: PrintJob, ids: List[UUID]) -> PrintJob:
        """Render now; failures are stored on the job."""
        mark_started(job)
        try:
            sections = await self._load_sections(job.entity_type, ids)
            document = render_document(sections, job.paper_size, job.orientation, job.copies)

            timestamp = utcnow().strftime("%Y%m%d%H%M%S%f")
            file_name = f"{job.entity_type.lower()}_{job.id}_{timestamp}.html"
            file_path = os.path.join(print_directory(), file_name)
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(document)

            mark_completed(
                job,
                file_path=file_path,
                file_name=file_name,
                file_size=os.path.getsize(file_path),
                expires_in=timedelta(hours=settings.PRINT_EXPIRY_HOURS),
            )
            logger.info(f"Print job {job.id} rendered {len(ids)} {job.entity_type.lower()}(s)")
        except (NotFoundError, OSError) as e:
            logger.error(f"Print job {job.id} failed: {e}")
            mark_failed(job, str(e))
        except Exception as e:
            logger.exception(f"Print job {job.id} failed unexpectedly")
            mark_failed(job, f"{type(e).__name__}: {e}")

        await self.db.commit()
        await self.db.refresh(job)
        return job

    async def list(self, context: RequestContext, page: int = 1, limit: int = 20) -> dict:
        query = select(PrintJob).where(PrintJob.requested_by == context.user_id)
        return await paginate(self.db, query, page, limit, order_by=[PrintJob.created_at.desc()])

    async def download(self, job_id: UUID, context: RequestContext) -> Tuple[str, str, str]:
        job = await self.get(job_id, context)
        if job.status == JobStatus.COMPLETED.value and is_expired(job):
            raise GoneError("Print file has expired")
        if not is_downloadable(job):
            raise BadRequestError("Print job is not available for download")

        job.download_count = (job.download_count or 0) + 1
        await self.db.commit()
        return job.file_path, job.file_name, "text/html"

    async def cancel_or_delete(self, job_id: UUID, context: RequestContext) -> Optional[PrintJob]:
        job = await self.get(job_id, context)
        if is_active(job):
            mark_cancelled(job)
            await self.db.commit()
            await self.db.refresh(job)
            return job

        remove_file(job.file_path)
        await self.db.delete(job)
        await self.db.commit()
        return None

    async def cleanup_expired(self) -> int:
        cutoff = utcnow() - timedelta(minutes=settings.STALE_JOB_MINUTES)
        stale = (await self.db.execute(
            select(PrintJob).where(
                PrintJob.status.in_([JobStatus.PENDING.value, JobStatus.PROCESSING.value]),
                PrintJob.created_at < cutoff,
            )
        )).scalars().all()
        for job in stale:
            mark_failed(job, "Print did not finish")

        result = await self.db.execute(
            select(PrintJob).where(
                PrintJob.status == JobStatus.COMPLETED.value,
                PrintJob.expires_at < utcnow(),
            )
        )
        removed = 0
        for job in result.scalars().all():
            try:
                remove_file(job.file_path)
            except OSError as e:
                logger.error(f"Failed to remove print file {job.file_path}: {e}")
                continue
            await self.db.delete(job)
            removed += 1

        await self.db.commit()
        if removed:
            logger.info(f"Cleaned up {removed} expired print jobs")
        return removed
