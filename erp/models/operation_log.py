import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from erp.database import Base
from erp.db_types import UUIDType, JSONType


class OperationEntity(str, Enum):
    """Records whose changes are logged."""
    INVOICE = "INVOICE"
    BILL = "BILL"


class OperationType(str, Enum):
    """What happened to the record."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    GST_OVERRIDE = "GST_OVERRIDE"
    GST_RECALCULATE = "GST_RECALCULATE"
    DUPLICATE = "DUPLICATE"
    BULK_STATUS_CHANGE = "BULK_STATUS_CHANGE"
    BULK_DELETE = "BULK_DELETE"
    PAYMENT_ADD = "PAYMENT_ADD"


class OperationLog(Base):
    """
    Audit trail of finance documents.

    entity_id is not a foreign key: entries outlive the deleted record.
    performed_by is NULL for scheduled sweeps.
    """
    __tablename__ = "operation_logs"
    __table_args__ = (
        Index("ix_operation_logs_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    entity_type: Mapped[str] = mapped_column(String(30), nullable=False, comment="INVOICE, BILL")
    entity_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False)
    operation: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="CREATE, UPDATE, DELETE, STATUS_CHANGE, GST_OVERRIDE, GST_RECALCULATE, "
                "DUPLICATE, BULK_STATUS_CHANGE, BULK_DELETE, PAYMENT_ADD"
    )

    # Change tracking
    old_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    performed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True, index=True)
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<OperationLog(operation='{self.operation}', entity='{self.entity_type}', id='{self.entity_id}')>"
