"""Export and print job models.

Jobs are created by a request, processed, and leave a file under UPLOAD_DIR
that can be downloaded until expires_at.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Integer, BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from erp.database import Base
from erp.db_types import UUIDType, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Processing status shared by export and print jobs."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ExportFormat(str, Enum):
    """Output format of an export."""
    EXCEL = "EXCEL"
    CSV = "CSV"
    PDF = "PDF"


class ExportType(str, Enum):
    """Which records an export reads."""
    INVOICES = "INVOICES"
    BILLS = "BILLS"


class PrintEntityType(str, Enum):
    """Documents that can be printed."""
    INVOICE = "INVOICE"
    BILL = "BILL"


class PaperSize(str, Enum):
    A4 = "A4"
    A3 = "A3"
    LETTER = "LETTER"
    LEGAL = "LEGAL"


class PageOrientation(str, Enum):
    PORTRAIT = "PORTRAIT"
    LANDSCAPE = "LANDSCAPE"


class ExportJob(Base):
    """
    Export request with its filter snapshot, progress and output file.
    """
    __tablename__ = "export_jobs"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    export_type: Mapped[str] = mapped_column(
        String(50),
        default=ExportType.INVOICES.value,
        nullable=False,
        comment="INVOICES, BILLS"
    )
    format: Mapped[str] = mapped_column(String(20), nullable=False, comment="EXCEL, CSV, PDF")
    filters: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    columns: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    total_records: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_records: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="0-100")

    status: Mapped[str] = mapped_column(
        String(50),
        default=JobStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED"
    )

    file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    requested_by: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ExportJob(id={self.id}, format='{self.format}', status='{self.status}')>"


class PrintJob(Base):
    """
    Print request rendering one or more invoices or bills to a document.
    """
    __tablename__ = "print_jobs"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="INVOICE, BILL")
    entity_ids: Mapped[list] = mapped_column(JSONType, nullable=False)
    paper_size: Mapped[str] = mapped_column(String(20), default=PaperSize.A4.value, nullable=False)
    orientation: Mapped[str] = mapped_column(String(20), default=PageOrientation.PORTRAIT.value, nullable=False)
    copies: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=JobStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED"
    )

    file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    requested_by: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<PrintJob(id={self.id}, entity_type='{self.entity_type}', status='{self.status}')>"
