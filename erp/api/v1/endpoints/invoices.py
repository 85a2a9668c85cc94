"""API endpoints for GST invoices."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.permissions import RequestContext, FINANCE_ROLES
from erp.models.operation_log import OperationType
from erp.schemas.base import PaginatedResponse, BulkResult
from erp.schemas.billing import (
    InvoiceCreate, InvoiceUpdate, InvoiceStatusUpdate, InvoiceBulkStatusUpdate,
    GSTOverrideRequest, InvoiceSearchFilter, InvoiceResponse, InvoiceSummaryResponse,
    InvoiceDuplicateRequest, InvoiceBulkDelete, OperationLogResponse,
)
from erp.services.invoice_service import InvoiceService

router = APIRouter(tags=["Invoices"])

finance_guard = require_roles(*FINANCE_ROLES)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """
    Create a DRAFT invoice.

    Line amounts, the CGST/SGST or IGST split and the totals are computed from
    the items and the place of supply.
    """
    return await InvoiceService(db).create(data, context)


@router.get("", response_model=PaginatedResponse[InvoiceResponse])
async def search_invoices(
    db: DB,
    filters: InvoiceSearchFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("invoice_date"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    context: RequestContext = Depends(finance_guard),
):
    return await InvoiceService(db).search(filters, page, limit, sort_by, sort_order)


@router.get("/summary", response_model=InvoiceSummaryResponse)
async def invoice_summary(
    db: DB,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: RequestContext = Depends(finance_guard),
):
    """Revenue, outstanding and GST totals; cancelled invoices are excluded."""
    return await InvoiceService(db).financial_summary(start_date, end_date)


@router.post("/bulk-status", response_model=BulkResult)
async def bulk_update_status(
    data: InvoiceBulkStatusUpdate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await InvoiceService(db).bulk_change_status(data, context)


@router.post("/bulk-delete", response_model=BulkResult)
async def bulk_delete_invoices(
    data: InvoiceBulkDelete,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Delete DRAFT invoices; other ids are reported as failures."""
    return await InvoiceService(db).bulk_remove(data, context)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await InvoiceService(db).get(invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: UUID,
    data: InvoiceUpdate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Edit a DRAFT invoice. Supplying items replaces them and recomputes GST."""
    return await InvoiceService(db).update(invoice_id, data, context)


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: UUID,
    data: InvoiceStatusUpdate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await InvoiceService(db).change_status(invoice_id, data, context)


@router.patch("/{invoice_id}/gst-override", response_model=InvoiceResponse)
async def override_invoice_gst(
    invoice_id: UUID,
    data: GSTOverrideRequest,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Replace the computed GST with manual amounts; the reason is recorded."""
    return await InvoiceService(db).override_gst(invoice_id, data, context)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    await InvoiceService(db).remove(invoice_id, context)


@router.post("/{invoice_id}/duplicate", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_invoice(
    invoice_id: UUID,
    db: DB,
    data: Optional[InvoiceDuplicateRequest] = None,
    context: RequestContext = Depends(finance_guard),
):
    """Copy an invoice into a new DRAFT with a fresh number."""
    return await InvoiceService(db).duplicate(invoice_id, data or InvoiceDuplicateRequest(), context)


@router.get("/{invoice_id}/audit-trail", response_model=PaginatedResponse[OperationLogResponse])
async def invoice_audit_trail(
    invoice_id: UUID,
    db: DB,
    operation: Optional[OperationType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    context: RequestContext = Depends(finance_guard),
):
    return await InvoiceService(db).audit_trail(invoice_id, operation, page, limit)
