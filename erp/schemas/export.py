"""Pydantic schemas for export and print jobs."""
from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID
from pydantic import BaseModel, Field

from erp.schemas.base import BaseResponseSchema, BaseCreateSchema
from erp.models.export import ExportFormat, ExportType, PrintEntityType, PaperSize, PageOrientation


# ==================== Export Schemas ====================

class ExportCreate(BaseCreateSchema):
    """Request a file export of invoices or bills."""
    export_type: ExportType
    format: ExportFormat = ExportFormat.EXCEL
    filters: Dict[str, Any] = Field(default_factory=dict)
    columns: Optional[List[str]] = None  # Defaults to every column of the export type


class ExportJobResponse(BaseResponseSchema):
    """Response schema for an export job."""
    id: UUID
    export_type: str
    format: str
    filters: Optional[Dict[str, Any]] = None
    columns: Optional[List[str]] = None
    total_records: int
    processed_records: int
    progress: int
    status: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    download_count: int
    requested_by: Optional[UUID] = None
    is_downloadable: bool = False
    created_at: datetime
    updated_at: datetime


class ExportStatsResponse(BaseModel):
    """Export activity of the caller."""
    total_jobs: int
    by_status: Dict[str, int] = {}
    by_format: Dict[str, int] = {}
    total_downloads: int


class CleanupResponse(BaseModel):
    removed: int


# ==================== Print Schemas ====================

class PrintJobCreate(BaseCreateSchema):
    """Render one or more invoices or bills as a printable document."""
    entity_type: PrintEntityType
    entity_ids: List[UUID] = Field(..., min_length=1)
    paper_size: PaperSize = PaperSize.A4
    orientation: PageOrientation = PageOrientation.PORTRAIT
    copies: int = Field(1, ge=1, le=10)


class PrintJobResponse(BaseResponseSchema):
    """Response schema for a print job."""
    id: UUID
    entity_type: str
    entity_ids: List[UUID]
    paper_size: str
    orientation: str
    copies: int
    status: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    download_count: int
    requested_by: Optional[UUID] = None
    is_downloadable: bool = False
    created_at: datetime
    updated_at: datetime
