"""
Customer address book.

A customer has at most one default address per address type; a BOTH
address serves as billing and shipping. The first address saved for a
customer becomes its default.
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import ERPError, NotFoundError, BadRequestError
from erp.core.permissions import RequestContext
from erp.models.billing import CustomerAddress, AddressType
from erp.schemas.billing import CustomerAddressCreate, CustomerAddressUpdate
from erp.services import gst_service
from erp.services.filters import build_address_search
from erp.services.pagination import apply_filters

logger = logging.getLogger(__name__)


def _type_or_both(address_type: str):
    return or_(
        CustomerAddress.address_type == address_type,
        CustomerAddress.address_type == AddressType.BOTH.value,
    )


def default_conflicts(address_type: str) -> list:
    """Defaults displaced by a new default of this type; a BOTH default displaces all."""
    if address_type == AddressType.BOTH.value:
        return []
    return [_type_or_both(address_type)]


def validate_address_fields(state: Optional[str], gstin: Optional[str]) -> None:
    if state is not None and not gst_service.is_valid_state(state):
        raise BadRequestError(f"Invalid state '{state}'")
    if gstin and not gst_service.GSTIN_PATTERN.match(gstin):
        raise BadRequestError("Invalid GSTIN format")


class CustomerAddressService:
    """Bill-to / ship-to addresses keyed by customer id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, address_id: UUID) -> CustomerAddress:
        address = await self.db.get(CustomerAddress, address_id)
        if not address:
            raise NotFoundError("Address not found")
        return address

    async def _unset_defaults(self, customer_id: str, address_type: str, exclude_id: Optional[UUID] = None) -> None:
        stmt = (
            update(CustomerAddress)
            .where(
                CustomerAddress.customer_id == customer_id,
                CustomerAddress.is_default.is_(True),
                *default_conflicts(address_type),
            )
            .values(is_default=False)
            .execution_options(synchronize_session=False)
        )
        if exclude_id:
            stmt = stmt.where(CustomerAddress.id != exclude_id)
        await self.db.execute(stmt)

    async def _has_addresses(self, customer_id: str) -> bool:
        result = await self.db.execute(
            select(func.count(CustomerAddress.id)).where(CustomerAddress.customer_id == customer_id)
        )
        return (result.scalar() or 0) > 0

    async def _add(self, data: CustomerAddressCreate, context: Optional[RequestContext]) -> CustomerAddress:
        validate_address_fields(data.state, data.gstin)

        is_default = data.is_default or not await self._has_addresses(data.customer_id)
        if is_default:
            await self._unset_defaults(data.customer_id, data.address_type.value)

        payload = data.model_dump()
        payload["address_type"] = data.address_type.value
        payload["is_default"] = is_default
        address = CustomerAddress(
            **payload,
            is_active=True,
            created_by=context.user_id if context else None,
        )
        self.db.add(address)
        await self.db.flush()
        return address

    async def create(self, data: CustomerAddressCreate, context: Optional[RequestContext] = None) -> CustomerAddress:
        address = await self._add(data, context)
        await self.db.commit()
        await self.db.refresh(address)
        logger.info(f"Address {address.id} added for customer {address.customer_id}")
        return address

    async def list_by_customer(
        self,
        customer_id: str,
        address_type: Optional[AddressType] = None,
        active_only: bool = True,
    ) -> List[CustomerAddress]:
        """Default first, then oldest first."""
        query = select(CustomerAddress).where(CustomerAddress.customer_id == customer_id)
        if address_type:
            query = query.where(_type_or_both(address_type.value))
        if active_only:
            query = query.where(CustomerAddress.is_active.is_(True))
        result = await self.db.execute(
            query.order_by(CustomerAddress.is_default.desc(), CustomerAddress.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_default(self, customer_id: str, address_type: AddressType) -> CustomerAddress:
        """Default of the exact type, falling back to the default BOTH address."""
        base = select(CustomerAddress).where(
            CustomerAddress.customer_id == customer_id,
            CustomerAddress.is_default.is_(True),
            CustomerAddress.is_active.is_(True),
        )
        for candidate in (address_type.value, AddressType.BOTH.value):
            result = await self.db.execute(base.where(CustomerAddress.address_type == candidate).limit(1))
            address = result.scalar_one_or_none()
            if address:
                return address
        raise NotFoundError("No default address found for this customer")

    async def search(
        self,
        term: str,
        customer_id: Optional[str] = None,
        address_type: Optional[AddressType] = None,
        limit: int = 50,
    ) -> List[CustomerAddress]:
        conditions = build_address_search(term)
        if customer_id:
            conditions.append(CustomerAddress.customer_id == customer_id)
        if address_type:
            conditions.append(_type_or_both(address_type.value))
        query = apply_filters(select(CustomerAddress), conditions)
        result = await self.db.execute(
            query.order_by(CustomerAddress.is_default.desc(), CustomerAddress.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def update(self, address_id: UUID, data: CustomerAddressUpdate) -> CustomerAddress:
        address = await self.get(address_id)
        update_data = data.model_dump(exclude_unset=True)
        validate_address_fields(update_data.get("state"), update_data.get("gstin"))

        for field, value in update_data.items():
            setattr(address, field, value.value if hasattr(value, "value") else value)

        if update_data.get("is_default"):
            await self._unset_defaults(address.customer_id, address.address_type, exclude_id=address.id)

        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def set_default(self, address_id: UUID) -> CustomerAddress:
        address = await self.get(address_id)
        if not address.is_active:
            raise BadRequestError("Inactive address cannot be the default")
        await self._unset_defaults(address.customer_id, address.address_type, exclude_id=address.id)
        address.is_default = True
        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def remove(self, address_id: UUID) -> None:
        address = await self.get(address_id)
        if address.is_default:
            raise BadRequestError("Cannot delete the default address. Set another address as default first")
        await self.db.delete(address)
        await self.db.commit()
        logger.info(f"Deleted address {address_id} of customer {address.customer_id}")

    async def bulk_import(self, addresses: List[CustomerAddressCreate], context: Optional[RequestContext] = None) -> dict:
        """Import rows independently; a bad row is reported and skipped."""
        success, errors = 0, []
        for index, data in enumerate(addresses):
            try:
                await self._add(data, context)
                success += 1
            except ERPError as e:
                errors.append({
                    "index": index,
                    "error": f"Failed to create address for {data.customer_id}: {e.message}",
                    "reference": data.customer_id,
                })
        await self.db.commit()
        logger.info(f"Address import: {success} created, {len(errors)} failed")
        return {"success": success, "failed": len(errors), "errors": errors}

    async def statistics(self, customer_id: Optional[str] = None) -> dict:
        query = select(CustomerAddress)
        if customer_id:
            query = query.where(CustomerAddress.customer_id == customer_id)
        addresses = list((await self.db.execute(query)).scalars().all())

        by_type: dict = {t.value: 0 for t in AddressType}
        by_state: dict = {}
        for address in addresses:
            by_type[address.address_type] = by_type.get(address.address_type, 0) + 1
            by_state[address.state] = by_state.get(address.state, 0) + 1

        active = sum(1 for a in addresses if a.is_active)
        return {
            "total": len(addresses),
            "active": active,
            "inactive": len(addresses) - active,
            "with_gstin": sum(1 for a in addresses if a.gstin),
            "by_type": by_type,
            "by_state": by_state,
        }
