"""API endpoints for vendor bills and bill payments."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.permissions import RequestContext, FINANCE_ROLES
from erp.schemas.base import PaginatedResponse
from erp.schemas.billing import (
    BillCreate, BillUpdate, BillStatusUpdate, BillPaymentCreate, BillPaymentResponse,
    BillFilter, BillResponse,
)
from erp.services.bill_service import BillService

router = APIRouter(tags=["Bills"])

finance_guard = require_roles(*FINANCE_ROLES)


@router.post("", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def create_bill(
    data: BillCreate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """
    Record a vendor bill.

    Total = subtotal + tax + cess - discount - TDS and may not be negative.
    """
    return await BillService(db).create(data, context)


@router.get("", response_model=PaginatedResponse[BillResponse])
async def list_bills(
    db: DB,
    filters: BillFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: RequestContext = Depends(finance_guard),
):
    return await BillService(db).list(filters, page, limit)


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await BillService(db).get(bill_id)


@router.patch("/{bill_id}", response_model=BillResponse)
async def update_bill(
    bill_id: UUID,
    data: BillUpdate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await BillService(db).update(bill_id, data)


@router.patch("/{bill_id}/approve", response_model=BillResponse)
async def approve_bill(
    bill_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await BillService(db).approve(bill_id, context)


@router.patch("/{bill_id}/status", response_model=BillResponse)
async def update_bill_status(
    bill_id: UUID,
    data: BillStatusUpdate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await BillService(db).change_status(bill_id, data, context)


@router.post("/{bill_id}/payments", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def record_bill_payment(
    bill_id: UUID,
    data: BillPaymentCreate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Record a payment; the bill becomes PARTIALLY_PAID or PAID."""
    return await BillService(db).record_payment(bill_id, data, context)


@router.get("/{bill_id}/payments", response_model=List[BillPaymentResponse])
async def list_bill_payments(
    bill_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await BillService(db).list_payments(bill_id)


@router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bill(
    bill_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    await BillService(db).remove(bill_id)
