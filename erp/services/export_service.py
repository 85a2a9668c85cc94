"""
Export service.

An export snapshots its filters, is processed inside the request that
creates it, and leaves a file under {UPLOAD_DIR}/exports that the requester
can download until it expires:

- EXCEL -> .xlsx written with openpyxl
- CSV   -> .csv
- PDF   -> .html table (printable from the browser)
"""
import csv
import html
import logging
import os
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils.exceptions import IllegalCharacterError
from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.config import settings
from erp.core.exceptions import NotFoundError, BadRequestError, GoneError
from erp.core.permissions import RequestContext
from erp.models.billing import Invoice, Bill
from erp.models.export import ExportJob, ExportFormat, ExportType, JobStatus
from erp.schemas.billing import InvoiceSearchFilter, BillFilter
from erp.schemas.export import ExportCreate
from erp.services.filters import build_invoice_filters, build_bill_filters
from erp.services.job_lifecycle import (
    mark_started, update_progress, mark_completed, mark_failed, mark_cancelled,
    is_expired, is_downloadable, is_active, utcnow,
)
from erp.services.pagination import apply_filters, paginate

logger = logging.getLogger(__name__)

# Column key -> header label, in output order
INVOICE_COLUMNS: Dict[str, str] = {
    "invoice_number": "Invoice Number",
    "invoice_date": "Invoice Date",
    "due_date": "Due Date",
    "client_name": "Client",
    "bill_to_gstin": "GSTIN",
    "place_of_supply": "Place of Supply",
    "subtotal": "Subtotal",
    "cgst_amount": "CGST",
    "sgst_amount": "SGST",
    "igst_amount": "IGST",
    "total_tax": "Total Tax",
    "total_amount": "Total Amount",
    "status": "Status",
}

BILL_COLUMNS: Dict[str, str] = {
    "bill_number": "Bill Number",
    "bill_type": "Type",
    "bill_date": "Bill Date",
    "due_date": "Due Date",
    "vendor_name": "Vendor",
    "vendor_gstin": "GSTIN",
    "subtotal": "Subtotal",
    "cgst_amount": "CGST",
    "sgst_amount": "SGST",
    "igst_amount": "IGST",
    "tds_amount": "TDS",
    "total_amount": "Total Amount",
    "paid_amount": "Paid",
    "status": "Status",
}

EXTENSIONS = {
    ExportFormat.EXCEL.value: "xlsx",
    ExportFormat.CSV.value: "csv",
    ExportFormat.PDF.value: "html",
}

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
    "html": "text/html",
}


def columns_for(export_type: str) -> Dict[str, str]:
    return INVOICE_COLUMNS if export_type == ExportType.INVOICES.value else BILL_COLUMNS


def resolve_columns(export_type: str, requested: Optional[Sequence[str]]) -> List[str]:
    """Validate requested column keys; None means every column."""
    available = columns_for(export_type)
    if not requested:
        return list(available)
    unknown = [c for c in requested if c not in available]
    if unknown:
        raise BadRequestError(f"Unknown export columns: {', '.join(unknown)}")
    return list(requested)


def cell_value(value: Any) -> Any:
    """Spreadsheet-friendly representation; control characters are dropped."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    return value


def text_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def write_excel(path: str, title: str, headers: List[str], rows: List[List[Any]]) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append(headers)
    header_fill = PatternFill("solid", fgColor="DDEBF7")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill

    for row in rows:
        ws.append([cell_value(v) for v in row])

    # Width from the longest rendered value, clamped to 10..50
    for index, header in enumerate(headers, start=1):
        longest = max([len(header)] + [len(text_value(r[index - 1])) for r in rows])
        ws.column_dimensions[ws.cell(row=1, column=index).column_letter].width = min(max(longest + 2, 10), 50)

    wb.save(path)


def write_csv(path: str, headers: List[str], rows: List[List[Any]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        for row in rows:
            writer.writerow([text_value(v) for v in row])


def write_html(path: str, title: str, headers: List[str], rows: List[List[Any]]) -> None:
    head = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(text_value(v))}</td>" for v in row) + "</tr>"
        for row in rows
    )
    document = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title>"
        "<style>body{font-family:Arial,sans-serif;font-size:12px}"
        "table{border-collapse:collapse;width:100%}"
        "th,td{border:1px solid #999;padding:4px 6px;text-align:left}"
        "th{background:#ddebf7}</style></head><body>"
        f"<h2>{html.escape(title)}</h2>"
        f"<p>{html.escape(settings.COMPANY_NAME)} | Generated {utcnow().strftime('%Y-%m-%d %H:%M UTC')} | "
        f"{len(rows)} records</p>"
        f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"
        "</body></html>"
    )
    with open(path, "w", encoding="utf-8") as f:
        f.write(document)


def export_directory() -> str:
    path = os.path.join(settings.UPLOAD_DIR, "exports")
    os.makedirs(path, exist_ok=True)
    return path


def remove_file(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        os.remove(path)


class ExportService:
    """Create, process, download and clean up export jobs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, job_id: UUID, context: Optional[RequestContext] = None) -> ExportJob:
        """Fetch a job; with a context, only the requester's own job."""
        query = select(ExportJob).where(ExportJob.id == job_id)
        if context is not None:
            query = query.where(ExportJob.requested_by == context.user_id)
        job = (await self.db.execute(query)).scalar_one_or_none()
        if not job:
            raise NotFoundError("Export job not found")
        return job

    def _filter_conditions(self, export_type: str, filters: Dict[str, Any]) -> list:
        try:
            if export_type == ExportType.INVOICES.value:
                return build_invoice_filters(InvoiceSearchFilter(**filters))
            return build_bill_filters(BillFilter(**filters))
        except ValidationError as e:
            raise BadRequestError(f"Invalid export filters: {e.errors()[0].get('msg', 'invalid value')}")

    async def create(self, data: ExportCreate, context: RequestContext) -> ExportJob:
        export_type = data.export_type.value
        columns = resolve_columns(export_type, data.columns)
        conditions = self._filter_conditions(export_type, data.filters)

        job = ExportJob(
            export_type=export_type,
            format=data.format.value,
            filters=data.filters,
            columns=columns,
            status=JobStatus.PENDING.value,
            requested_by=context.user_id,
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)

        logger.info(f"Export job {job.id} ({export_type}/{job.format}) queued by {context.email}")
        await self.process(job, conditions)
        return job

    async def _fetch_rows(self, export_type: str, conditions: list) -> list:
        if export_type == ExportType.INVOICES.value:
            query = apply_filters(select(Invoice), conditions).order_by(Invoice.invoice_date.desc())
        else:
            query = apply_filters(select(Bill), conditions).order_by(Bill.bill_date.desc())
        return list((await self.db.execute(query)).scalars().all())

    async def process(self, job: ExportJob, conditions: list) -> ExportJob:
        """
        Run the export now. Once rows are fetched, any failure while writing
        the file is stored on the job (status FAILED) rather than raised.
        """
        records = await self._fetch_rows(job.export_type, conditions)
        mark_started(job, total_records=len(records))
        await self.db.commit()

        file_path = None
        try:
            labels = columns_for(job.export_type)
            headers = [labels[c] for c in job.columns]
            rows = []
            for index, record in enumerate(records, start=1):
                rows.append([getattr(record, c) for c in job.columns])
                update_progress(job, index)

            extension = EXTENSIONS[job.format]
            timestamp = utcnow().strftime("%Y%m%d%H%M%S%f")
            file_name = f"{job.export_type.lower()}_export_{timestamp}.{extension}"
            file_path = os.path.join(export_directory(), file_name)
            title = f"{job.export_type.title()} Export"

            if job.format == ExportFormat.EXCEL.value:
                write_excel(file_path, title, headers, rows)
            elif job.format == ExportFormat.CSV.value:
                write_csv(file_path, headers, rows)
            else:
                write_html(file_path, title, headers, rows)

            update_progress(job, len(records))
            mark_completed(
                job,
                file_path=file_path,
                file_name=file_name,
                file_size=os.path.getsize(file_path),
                expires_in=timedelta(days=settings.EXPORT_EXPIRY_DAYS),
            )
            logger.info(f"Export job {job.id} completed: {len(records)} records -> {file_name}")
        except (IllegalCharacterError, OSError, ValueError) as e:
            logger.error(f"Export job {job.id} failed: {e}")
            remove_file(file_path)
            mark_failed(job, str(e))
        except Exception as e:
            logger.exception(f"Export job {job.id} failed unexpectedly")
            remove_file(file_path)
            mark_failed(job, f"{type(e).__name__}: {e}")

        await self.db.commit()
        await self.db.refresh(job)
        return job

    async def list(
        self,
        context: RequestContext,
        status: Optional[JobStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        query = select(ExportJob).where(ExportJob.requested_by == context.user_id)
        if status:
            query = query.where(ExportJob.status == status.value)
        return await paginate(self.db, query, page, limit, order_by=[ExportJob.created_at.desc()])

    async def stats(self, context: RequestContext) -> dict:
        mine = ExportJob.requested_by == context.user_id
        by_status = dict((await self.db.execute(
            select(ExportJob.status, func.count(ExportJob.id)).where(mine).group_by(ExportJob.status)
        )).all())
        by_format = dict((await self.db.execute(
            select(ExportJob.format, func.count(ExportJob.id)).where(mine).group_by(ExportJob.format)
        )).all())
        downloads = (await self.db.execute(
            select(func.coalesce(func.sum(ExportJob.download_count), 0)).where(mine)
        )).scalar() or 0

        return {
            "total_jobs": sum(by_status.values()),
            "by_status": by_status,
            "by_format": by_format,
            "total_downloads": int(downloads),
        }

    async def download(self, job_id: UUID, context: RequestContext) -> Tuple[str, str, str]:
        """Return (file_path, file_name, media_type) and count the download."""
        job = await self.get(job_id, context)
        if job.status == JobStatus.COMPLETED.value and is_expired(job):
            raise GoneError("Export file has expired")
        if not is_downloadable(job):
            raise BadRequestError("Export job is not available for download")

        job.download_count = (job.download_count or 0) + 1
        await self.db.commit()

        extension = job.file_name.rsplit(".", 1)[-1]
        return job.file_path, job.file_name, MEDIA_TYPES.get(extension, "application/octet-stream")

    async def cancel_or_delete(self, job_id: UUID, context: RequestContext) -> Optional[ExportJob]:
        """
        Cancel a job that is still running; delete a finished one with its
        file. Returns the cancelled job, or None when deleted.
        """
        job = await self.get(job_id, context)
        if is_active(job):
            mark_cancelled(job)
            await self.db.commit()
            await self.db.refresh(job)
            logger.info(f"Export job {job.id} cancelled")
            return job

        remove_file(job.file_path)
        await self.db.delete(job)
        await self.db.commit()
        logger.info(f"Export job {job_id} deleted")
        return None

    async def _fail_stale(self) -> int:
        """Mark jobs that never left PENDING/PROCESSING as FAILED."""
        cutoff = utcnow() - timedelta(minutes=settings.STALE_JOB_MINUTES)
        result = await self.db.execute(
            select(ExportJob).where(
                ExportJob.status.in_([JobStatus.PENDING.value, JobStatus.PROCESSING.value]),
                ExportJob.created_at < cutoff,
            )
        )
        stale = result.scalars().all()
        for job in stale:
            mark_failed(job, "Export did not finish")
        if stale:
            logger.warning(f"Marked {len(stale)} stale export jobs as failed")
        return len(stale)

    async def cleanup_expired(self) -> int:
        """
        Delete completed jobs past expires_at together with their files.
        Jobs stuck in PENDING/PROCESSING are failed first so they stop
        showing as active.
        """
        await self._fail_stale()
        result = await self.db.execute(
            select(ExportJob).where(
                ExportJob.status == JobStatus.COMPLETED.value,
                ExportJob.expires_at < utcnow(),
            )
        )
        removed = 0
        for job in result.scalars().all():
            try:
                remove_file(job.file_path)
            except OSError as e:
                logger.error(f"Failed to remove export file {job.file_path}: {e}")
                continue
            await self.db.delete(job)
            removed += 1

        await self.db.commit()
        if removed:
            logger.info(f"Cleaned up {removed} expired export jobs")
        return removed
