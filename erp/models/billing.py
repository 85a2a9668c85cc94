"""Finance models: invoices, bills, bill payments and customer addresses.

GST amounts are stored per line and rolled up on the header:
- Intra-state supply: CGST + SGST
- Inter-state supply: IGST
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Numeric, Date
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp.database import Base
from erp.db_types import UUIDType, JSONType, Money


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Enums ====================

class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class BillStatus(str, Enum):
    """Bill lifecycle status."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class BillType(str, Enum):
    """Kind of bill document."""
    PURCHASE_BILL = "PURCHASE_BILL"
    SALES_BILL = "SALES_BILL"
    SERVICE_BILL = "SERVICE_BILL"
    DEBIT_NOTE = "DEBIT_NOTE"
    CREDIT_NOTE = "CREDIT_NOTE"


class PaymentMethod(str, Enum):
    """How a bill payment was made."""
    CASH = "CASH"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"


class AddressType(str, Enum):
    """Customer address usage."""
    BILLING = "BILLING"
    SHIPPING = "SHIPPING"
    BOTH = "BOTH"


# ==================== Invoice ====================

class Invoice(Base):
    """
    Sales invoice raised to a customer.
    """
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    invoice_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="INV-YYYYMMDD-XXXX"
    )

    # Customer
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True, index=True)
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    bill_to_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bill_to_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    bill_to_gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True, index=True)
    ship_to_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    place_of_supply: Mapped[str] = mapped_column(String(100), nullable=False, comment="Customer state")

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    shipping_charges: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    cgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    sgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    cess_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_tax: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=InvoiceStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, PENDING, APPROVED, PAID, OVERDUE, CANCELLED"
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Manual GST override audit
    is_gst_override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    gst_override_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gst_override_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    gst_override_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    items: Mapped[List["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', total={self.total_amount}, status='{self.status}')>"


class InvoiceItem(Base):
    """Invoice line item."""
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(default=1, nullable=False)

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="NOS", nullable=False)
    rate: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("18"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False, comment="quantity x rate")
    tax_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    cgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    sgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(description='{self.description}', amount={self.amount})>"


# ==================== Bill ====================

class Bill(Base):
    """
    Bill received from (or issued to) a vendor. Owns its items and payments.
    """
    __tablename__ = "bills"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    bill_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    bill_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="PURCHASE_BILL, SALES_BILL, SERVICE_BILL, DEBIT_NOTE, CREDIT_NOTE"
    )

    # Vendor
    vendor_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    vendor_gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    vendor_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vendor_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vendor_state: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    bill_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    cgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    sgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    cess_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    tds_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=BillStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, PENDING, APPROVED, PAID, PARTIALLY_PAID, OVERDUE, CANCELLED"
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms_and_conditions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    items: Mapped[List["BillItem"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BillItem.line_number",
    )
    payments: Mapped[List["BillPayment"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BillPayment.payment_date",
    )

    @property
    def outstanding_amount(self) -> Decimal:
        return (self.total_amount or Decimal("0")) - (self.paid_amount or Decimal("0"))

    def __repr__(self) -> str:
        return f"<Bill(number='{self.bill_number}', vendor='{self.vendor_name}', status='{self.status}')>"


class BillItem(Base):
    """Bill line item."""
    __tablename__ = "bill_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(default=1, nullable=False)

    description: Mapped[str] = mapped_column(String(200), nullable=False)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="NOS", nullable=False)
    rate: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    cgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    sgst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    cess_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    bill: Mapped["Bill"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<BillItem(description='{self.description}', amount={self.amount})>"


class BillPayment(Base):
    """Payment recorded against a bill."""
    __tablename__ = "bill_payments"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    payment_reference: Mapped[str] = mapped_column(String(50), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="CASH, CHEQUE, BANK_TRANSFER, UPI, CREDIT_CARD, DEBIT_CARD"
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    bill: Mapped["Bill"] = relationship(back_populates="payments")

    __table_args__ = (
        UniqueConstraint("bill_id", "payment_reference", name="uq_bill_payment_reference"),
    )

    def __repr__(self) -> str:
        return f"<BillPayment(reference='{self.payment_reference}', amount={self.paid_amount})>"


# ==================== Customer Address ====================

class CustomerAddress(Base):
    """
    Bill-to / ship-to address book entry for a customer.
    """
    __tablename__ = "customer_addresses"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    customer_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    address_type: Mapped[str] = mapped_column(
        String(50),
        default=AddressType.BOTH.value,
        nullable=False,
        comment="BILLING, SHIPPING, BOTH"
    )

    contact_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    address_line1: Mapped[str] = mapped_column(Text, nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    country: Mapped[str] = mapped_column(String(100), default="India", nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_customer_addresses_customer_type", "customer_id", "address_type"),
    )

    def __repr__(self) -> str:
        return f"<CustomerAddress(customer_id='{self.customer_id}', type='{self.address_type}', city='{self.city}')>"
