"""API endpoints for invoice and bill exports."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import FileResponse

from erp.api.deps import DB, require_roles
from erp.core.permissions import RequestContext, FINANCE_ROLES
from erp.models.export import ExportJob, JobStatus
from erp.models.user import UserRole
from erp.schemas.base import PaginatedResponse
from erp.schemas.export import ExportCreate, ExportJobResponse, ExportStatsResponse, CleanupResponse
from erp.services.export_service import ExportService
from erp.services.job_lifecycle import is_downloadable

router = APIRouter(tags=["Exports"])

finance_guard = require_roles(*FINANCE_ROLES)


def _job_response(job: ExportJob) -> ExportJobResponse:
    return ExportJobResponse.model_validate(job).model_copy(
        update={"is_downloadable": is_downloadable(job)}
    )


@router.post("", response_model=ExportJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_export(
    data: ExportCreate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """
    Export invoices or bills as EXCEL, CSV or PDF (HTML).

    The job is processed before the response returns; a failure is recorded
    on the job rather than raised.
    """
    job = await ExportService(db).create(data, context)
    return _job_response(job)


@router.get("", response_model=PaginatedResponse[ExportJobResponse])
async def list_exports(
    db: DB,
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    context: RequestContext = Depends(finance_guard),
):
    result = await ExportService(db).list(context, job_status, page, limit)
    result["data"] = [_job_response(job) for job in result["data"]]
    return result


@router.get("/stats", response_model=ExportStatsResponse)
async def export_stats(
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await ExportService(db).stats(context)


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_exports(
    db: DB,
    context: RequestContext = Depends(require_roles(UserRole.ADMIN)),
):
    """Remove expired export files and their jobs now."""
    return CleanupResponse(removed=await ExportService(db).cleanup_expired())


@router.get("/{job_id}", response_model=ExportJobResponse)
async def get_export(
    job_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return _job_response(await ExportService(db).get(job_id, context))


@router.get("/{job_id}/download")
async def download_export(
    job_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Stream the export file. Expired files answer 410."""
    file_path, file_name, media_type = await ExportService(db).download(job_id, context)
    return FileResponse(file_path, media_type=media_type, filename=file_name)


@router.delete("/{job_id}", response_model=Optional[ExportJobResponse])
async def cancel_or_delete_export(
    job_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Cancel a running job (returns it) or delete a finished one (204)."""
    job = await ExportService(db).cancel_or_delete(job_id, context)
    if job is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _job_response(job)
