"""API endpoints for customer billing and shipping addresses."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from erp.api.deps import DB, require_roles
from erp.core.permissions import RequestContext, FINANCE_ROLES
from erp.models.billing import AddressType
from erp.schemas.base import BulkResult
from erp.schemas.billing import (
    CustomerAddressCreate, CustomerAddressUpdate, CustomerAddressBulkImport,
    CustomerAddressResponse, CustomerAddressStatistics,
)
from erp.services.customer_address_service import CustomerAddressService

router = APIRouter(tags=["Customer Addresses"])

finance_guard = require_roles(*FINANCE_ROLES)


@router.post("", response_model=CustomerAddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(
    data: CustomerAddressCreate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """
    Add an address. A customer's first address becomes the default, and a new
    default clears the previous one of the same type.
    """
    return await CustomerAddressService(db).create(data, context)


@router.post("/bulk-import", response_model=BulkResult)
async def bulk_import_addresses(
    data: CustomerAddressBulkImport,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).bulk_import(data.addresses, context)


@router.get("/search", response_model=List[CustomerAddressResponse])
async def search_addresses(
    db: DB,
    q: str = Query(..., min_length=1),
    customer_id: Optional[str] = None,
    address_type: Optional[AddressType] = None,
    limit: int = Query(50, ge=1, le=200),
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).search(q, customer_id, address_type, limit)


@router.get("/statistics", response_model=CustomerAddressStatistics)
async def address_statistics(
    db: DB,
    customer_id: Optional[str] = None,
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).statistics(customer_id)


@router.get("/customer/{customer_id}", response_model=List[CustomerAddressResponse])
async def list_customer_addresses(
    customer_id: str,
    db: DB,
    address_type: Optional[AddressType] = None,
    active_only: bool = True,
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).list_by_customer(customer_id, address_type, active_only)


@router.get("/customer/{customer_id}/default/{address_type}", response_model=CustomerAddressResponse)
async def get_default_address(
    customer_id: str,
    address_type: AddressType,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """Default address of the type, else the default BOTH address."""
    return await CustomerAddressService(db).get_default(customer_id, address_type)


@router.get("/{address_id}", response_model=CustomerAddressResponse)
async def get_address(
    address_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).get(address_id)


@router.patch("/{address_id}", response_model=CustomerAddressResponse)
async def update_address(
    address_id: UUID,
    data: CustomerAddressUpdate,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).update(address_id, data)


@router.patch("/{address_id}/set-default", response_model=CustomerAddressResponse)
async def set_default_address(
    address_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    return await CustomerAddressService(db).set_default(address_id)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(
    address_id: UUID,
    db: DB,
    context: RequestContext = Depends(finance_guard),
):
    """The default address cannot be deleted until another one is made default."""
    await CustomerAddressService(db).remove(address_id)
