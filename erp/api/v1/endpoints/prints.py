"""API endpoints for printable invoice and bill documents."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import FileResponse

from erp.api.deps import DB, require_roles
from erp.core.permissions import RequestContext, FINANCE_ROLES
from erp.models.export import PrintJob
from erp.models.user import UserRole
from erp.schemas.base import PaginatedResponse
from erp.schemas.export import PrintJobCreate, PrintJobResponse, CleanupResponse
from erp.services.job_lifecycle import is_downloadable
from erp.services.print_service import PrintService

router = APIRouter(tags=["Prints"])

finance_guard = require_roles(*FINANCE_ROLES)


def _job_response(job: PrintJob) -> PrintJobResponse:
    return PrintJobResponse.model_validate(job).model_copy(
        update={"is_downloadable": is_downloadable(job)}
    )


@router.post("", response_model=PrintJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_print_job(
    data: PrintJobCreate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Render the given invoices or bills into one HTML document."""
    return _job_response(await PrintService(db).create(data, context))


@router.get("", response_model=PaginatedResponse[PrintJobResponse])
async def list_print_jobs(
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    context: RequestContext = Depends(finance_guard),
):
    result = await PrintService(db).list(context, page, limit)
    result["data"] = [_job_response(job) for job in result["data"]]
    return result


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_print_jobs(
    db: DB,
    context: RequestContext = Depends(require_roles(UserRole.ADMIN)),
):
    return CleanupResponse(removed=await PrintService(db).cleanup_expired())


@router.get("/{job_id}", response_model=PrintJobResponse)
async def get_print_job(
    job_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return _job_response(await PrintService(db).get(job_id, context))


@router.get("/{job_id}/download")
async def download_print_job(
    job_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    file_path, file_name, media_type = await PrintService(db).download(job_id, context)
    return FileResponse(file_path, media_type=media_type, filename=file_name)


@router.delete("/{job_id}", response_model=Optional[PrintJobResponse])
async def cancel_or_delete_print_job(
    job_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    job = await PrintService(db).cancel_or_delete(job_id, context)
    if job is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _job_response(job)
