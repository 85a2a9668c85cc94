"""
Operation log: who changed which finance document, and how.

Entries are added to the caller's session and flushed; they commit or roll
back together with the change they describe.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.permissions import RequestContext
from erp.models.operation_log import OperationLog, OperationEntity, OperationType
from erp.services.pagination import paginate

INVOICE_AUDIT_FIELDS = (
    "invoice_number", "client_name", "client_email", "bill_to_name", "bill_to_gstin",
    "place_of_supply", "invoice_date", "due_date", "subtotal", "shipping_charges",
    "discount", "cgst_amount", "sgst_amount", "igst_amount", "total_tax",
    "total_amount", "status", "is_gst_override", "gst_override_reason", "notes",
)


def json_value(value: Any) -> Any:
    """Make a column value storable in a JSON column."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def snapshot(record: Any, fields: Iterable[str] = INVOICE_AUDIT_FIELDS) -> Dict[str, Any]:
    return {field: json_value(getattr(record, field)) for field in fields}


def diff(old: Dict[str, Any], new: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    """Keep only the keys whose value changed; returns (old_values, new_values)."""
    changed = [key for key in new if old.get(key) != new[key]]
    return {key: old.get(key) for key in changed}, {key: new[key] for key in changed}


class OperationLogService:
    """Write and read the operation log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        entity_type: OperationEntity,
        entity_id: uuid.UUID,
        operation: OperationType,
        context: Optional[RequestContext] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
    ) -> OperationLog:
        entry = OperationLog(
            entity_type=entity_type.value,
            entity_id=entity_id,
            operation=operation.value,
            old_values=old_values,
            new_values=new_values,
            description=description,
            performed_by=context.user_id if context else None,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def audit_trail(
        self,
        entity_type: OperationEntity,
        entity_id: uuid.UUID,
        operation: Optional[OperationType] = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        """Newest first."""
        query = select(OperationLog).where(
            OperationLog.entity_type == entity_type.value,
            OperationLog.entity_id == entity_id,
        )
        if operation:
            query = query.where(OperationLog.operation == operation.value)
        return await paginate(self.db, query, page, limit, order_by=[OperationLog.performed_at.desc()])
