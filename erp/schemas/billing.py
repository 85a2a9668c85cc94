"""Pydantic schemas for invoices, bills, customer addresses and GST."""
from datetime import datetime, date
from typing import Optional, List, Dict
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from erp.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from erp.models.billing import InvoiceStatus, BillStatus, BillType, PaymentMethod, AddressType


def _upper_or_none(v: Optional[str]) -> Optional[str]:
    return v.strip().upper() if v else v


class AddressSchema(BaseModel):
    """Schema for address fields stored as JSON."""
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: str = "India"


# ==================== Line Items ====================

class LineItemCreate(BaseModel):
    """Invoice/bill line item input."""
    description: str = Field(..., min_length=1, max_length=255)
    hsn_code: Optional[str] = Field(None, max_length=20)
    quantity: Decimal = Field(..., gt=0)
    unit: str = Field("NOS", max_length=20)
    rate: Decimal = Field(..., ge=0)
    gst_rate: Decimal = Field(Decimal("18"), ge=0, le=100)
    cess_amount: Decimal = Field(Decimal("0"), ge=0)


class InvoiceItemResponse(BaseResponseSchema):
    id: UUID
    line_number: int
    description: str
    hsn_code: Optional[str] = None
    quantity: Decimal
    unit: str
    rate: Decimal
    gst_rate: Decimal
    amount: Decimal
    tax_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    total_amount: Decimal


class BillItemResponse(BaseResponseSchema):
    id: UUID
    line_number: int
    description: str
    hsn_code: Optional[str] = None
    quantity: Decimal
    unit: str
    rate: Decimal
    gst_rate: Decimal
    amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    total_amount: Decimal


# ==================== Invoice Schemas ====================

class InvoiceCreate(BaseCreateSchema):
    """Schema for creating Invoice."""
    customer_id: Optional[UUID] = None
    client_name: str = Field(..., min_length=1, max_length=200)
    client_email: Optional[str] = Field(None, max_length=255)
    bill_to_name: Optional[str] = Field(None, max_length=200)
    bill_to_address: Optional[AddressSchema] = None
    bill_to_gstin: Optional[str] = Field(None, max_length=15)
    ship_to_address: Optional[AddressSchema] = None
    place_of_supply: str = Field(..., min_length=2, max_length=100)
    invoice_date: Optional[date] = None  # Defaults to today
    due_date: date
    shipping_charges: Decimal = Field(Decimal("0"), ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1)

    @field_validator("bill_to_gstin")
    @classmethod
    def normalize_gstin(cls, v: Optional[str]) -> Optional[str]:
        return _upper_or_none(v)


class InvoiceUpdate(BaseUpdateSchema):
    """Schema for updating a DRAFT or PENDING invoice."""
    client_name: Optional[str] = Field(None, min_length=1, max_length=200)
    client_email: Optional[str] = Field(None, max_length=255)
    bill_to_name: Optional[str] = Field(None, max_length=200)
    bill_to_address: Optional[AddressSchema] = None
    bill_to_gstin: Optional[str] = Field(None, max_length=15)
    ship_to_address: Optional[AddressSchema] = None
    place_of_supply: Optional[str] = Field(None, min_length=2, max_length=100)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    shipping_charges: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)

    @field_validator("bill_to_gstin")
    @classmethod
    def normalize_gstin(cls, v: Optional[str]) -> Optional[str]:
        return _upper_or_none(v)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    notes: Optional[str] = None


class InvoiceBulkStatusUpdate(BaseModel):
    invoice_ids: List[UUID] = Field(..., min_length=1)
    status: InvoiceStatus


class GSTOverrideRequest(BaseModel):
    """Manual GST amounts replacing the calculated split."""
    cgst_amount: Decimal = Field(Decimal("0"))
    sgst_amount: Decimal = Field(Decimal("0"))
    igst_amount: Decimal = Field(Decimal("0"))
    reason: str = Field(..., min_length=3)


class InvoiceSearchFilter(BaseModel):
    """Optional filters for searching invoices."""
    status: Optional[InvoiceStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    client_name: Optional[str] = None
    bill_to_gstin: Optional[str] = None
    customer_id: Optional[UUID] = None
    has_gst: Optional[bool] = None
    search: Optional[str] = None


class InvoiceResponse(BaseResponseSchema):
    """Response schema for Invoice."""
    id: UUID
    invoice_number: str
    customer_id: Optional[UUID] = None
    client_name: str
    client_email: Optional[str] = None
    bill_to_name: Optional[str] = None
    bill_to_address: Optional[dict] = None
    bill_to_gstin: Optional[str] = None
    ship_to_address: Optional[dict] = None
    place_of_supply: str
    invoice_date: date
    due_date: date
    subtotal: Decimal
    shipping_charges: Decimal
    discount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    total_tax: Decimal
    total_amount: Decimal
    status: str
    paid_at: Optional[datetime] = None
    is_gst_override: bool
    gst_override_reason: Optional[str] = None
    gst_override_by: Optional[UUID] = None
    gst_override_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    items: List[InvoiceItemResponse] = []
    created_at: datetime
    updated_at: datetime


class InvoiceSummaryResponse(BaseModel):
    """Invoice financial summary."""
    total_invoices: int
    total_revenue: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    total_overdue: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_gst: Decimal
    by_status: Dict[str, int] = {}


class InvoiceDuplicateRequest(BaseModel):
    """Options for copying an invoice into a new draft."""
    new_client_name: Optional[str] = Field(None, min_length=1, max_length=200)
    reset_dates: bool = True


class InvoiceBulkDelete(BaseModel):
    invoice_ids: List[UUID] = Field(..., min_length=1)


class OperationLogResponse(BaseResponseSchema):
    """One entry of a document's audit trail."""
    id: UUID
    entity_type: str
    entity_id: UUID
    operation: str
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None
    description: Optional[str] = None
    performed_by: Optional[UUID] = None
    performed_at: datetime


# ==================== Bill Schemas ====================

class BillCreate(BaseCreateSchema):
    """Schema for creating Bill."""
    bill_number: Optional[str] = Field(None, max_length=50)  # Auto-generated if omitted
    bill_type: BillType = BillType.PURCHASE_BILL
    vendor_name: str = Field(..., min_length=1, max_length=200)
    vendor_gstin: Optional[str] = Field(None, max_length=15)
    vendor_email: Optional[str] = Field(None, max_length=255)
    vendor_phone: Optional[str] = Field(None, max_length=20)
    vendor_state: str = Field(..., min_length=2, max_length=100)
    vendor_address: Optional[AddressSchema] = None
    bill_date: date
    due_date: date
    reference_number: Optional[str] = Field(None, max_length=50)
    tds_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1)

    @field_validator("vendor_gstin")
    @classmethod
    def normalize_gstin(cls, v: Optional[str]) -> Optional[str]:
        return _upper_or_none(v)


class BillUpdate(BaseUpdateSchema):
    """Schema for updating a DRAFT or PENDING bill."""
    vendor_name: Optional[str] = Field(None, min_length=1, max_length=200)
    vendor_gstin: Optional[str] = Field(None, max_length=15)
    vendor_email: Optional[str] = Field(None, max_length=255)
    vendor_phone: Optional[str] = Field(None, max_length=20)
    vendor_state: Optional[str] = Field(None, min_length=2, max_length=100)
    vendor_address: Optional[AddressSchema] = None
    bill_date: Optional[date] = None
    due_date: Optional[date] = None
    reference_number: Optional[str] = Field(None, max_length=50)
    tds_amount: Optional[Decimal] = Field(None, ge=0)
    discount_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)

    @field_validator("vendor_gstin")
    @classmethod
    def normalize_gstin(cls, v: Optional[str]) -> Optional[str]:
        return _upper_or_none(v)


class BillStatusUpdate(BaseModel):
    status: BillStatus


class BillPaymentCreate(BaseModel):
    """Record a payment against a bill."""
    payment_reference: str = Field(..., min_length=1, max_length=50)
    paid_amount: Decimal = Field(..., gt=0)
    payment_date: date
    payment_method: PaymentMethod
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class BillPaymentResponse(BaseResponseSchema):
    id: UUID
    bill_id: UUID
    payment_reference: str
    paid_amount: Decimal
    payment_date: date
    payment_method: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime


class BillFilter(BaseModel):
    """Optional filters for listing bills."""
    status: Optional[BillStatus] = None
    bill_type: Optional[BillType] = None
    vendor_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BillResponse(BaseResponseSchema):
    """Response schema for Bill."""
    id: UUID
    bill_number: str
    bill_type: str
    vendor_name: str
    vendor_gstin: Optional[str] = None
    vendor_email: Optional[str] = None
    vendor_phone: Optional[str] = None
    vendor_state: str
    vendor_address: Optional[dict] = None
    bill_date: date
    due_date: date
    reference_number: Optional[str] = None
    subtotal: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    tds_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: str
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    created_by: Optional[UUID] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    items: List[BillItemResponse] = []
    payments: List[BillPaymentResponse] = []
    created_at: datetime
    updated_at: datetime


# ==================== Customer Address Schemas ====================

class CustomerAddressCreate(BaseCreateSchema):
    """Schema for creating a customer address."""
    customer_id: str = Field(..., min_length=1, max_length=200)
    address_type: AddressType = AddressType.BOTH
    contact_name: Optional[str] = Field(None, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    address_line1: str = Field(..., min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    pincode: str = Field(..., pattern=r"^[0-9]{6}$")
    country: str = Field("India", max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    gstin: Optional[str] = Field(None, max_length=15)
    is_default: bool = False

    @field_validator("gstin")
    @classmethod
    def normalize_gstin(cls, v: Optional[str]) -> Optional[str]:
        return _upper_or_none(v)


class CustomerAddressUpdate(BaseUpdateSchema):
    """Schema for updating a customer address."""
    address_type: Optional[AddressType] = None
    contact_name: Optional[str] = Field(None, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    address_line1: Optional[str] = Field(None, min_length=1)
    address_line2: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^[0-9]{6}$")
    country: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    gstin: Optional[str] = Field(None, max_length=15)
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("gstin")
    @classmethod
    def normalize_gstin(cls, v: Optional[str]) -> Optional[str]:
        return _upper_or_none(v)


class CustomerAddressBulkImport(BaseModel):
    addresses: List[CustomerAddressCreate] = Field(..., min_length=1)


class CustomerAddressResponse(BaseResponseSchema):
    """Response schema for a customer address."""
    id: UUID
    customer_id: str
    address_type: str
    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    pincode: str
    country: str
    phone: Optional[str] = None
    email: Optional[str] = None
    gstin: Optional[str] = None
    is_default: bool
    is_active: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class CustomerAddressStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    with_gstin: int
    by_type: Dict[str, int] = {}
    by_state: Dict[str, int] = {}


# ==================== GST Schemas ====================

class GSTCalculationRequest(BaseModel):
    """Invoice-level GST calculation input."""
    subtotal: Decimal = Field(..., ge=0)
    shipping_charges: Decimal = Field(Decimal("0"), ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(Decimal("18"), ge=0, le=100)
    customer_state: str = Field(..., min_length=2)
    company_state: Optional[str] = None  # Defaults to configured company state


class GSTItemsCalculationRequest(BaseModel):
    """Line-item GST calculation input."""
    items: List[LineItemCreate] = Field(..., min_length=1)
    customer_state: str = Field(..., min_length=2)
    company_state: Optional[str] = None
    shipping_charges: Decimal = Field(Decimal("0"), ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)


class GSTBreakup(BaseModel):
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal


class GSTLineResult(BaseModel):
    description: str
    quantity: Decimal
    rate: Decimal
    gst_rate: Decimal
    amount: Decimal
    tax_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total: Decimal


class GSTCalculationResponse(BaseModel):
    """Result of a GST calculation."""
    subtotal: Decimal
    shipping_charges: Decimal
    discount: Decimal
    taxable_amount: Decimal
    is_intra_state: bool
    company_state: str
    customer_state: str
    gst: GSTBreakup
    cess: Decimal = Decimal("0")
    grand_total: Decimal
    items: List[GSTLineResult] = []


class GSTINValidationRequest(BaseModel):
    gstin: str


class GSTINValidationResponse(BaseModel):
    gstin: str
    is_valid: bool
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    pan: Optional[str] = None
    errors: List[str] = []


class GSTOverrideValidationRequest(BaseModel):
    subtotal: Decimal = Field(..., ge=0)
    cgst_amount: Decimal = Decimal("0")
    sgst_amount: Decimal = Decimal("0")
    igst_amount: Decimal = Decimal("0")
    customer_state: str
    company_state: Optional[str] = None


class GSTOverrideValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


class GSTTaxTotals(BaseModel):
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal


class GSTRateTotals(GSTTaxTotals):
    gst_rate: Decimal


class GSTPeriodTotals(BaseModel):
    period: str
    output_tax: GSTTaxTotals
    input_tax: GSTTaxTotals
    net_liability: Decimal


class GSTSummaryReport(BaseModel):
    """Output tax (invoices), input tax credit (bills) and what is payable."""
    start_date: date
    end_date: date
    group_by: Optional[str] = None
    invoice_count: int
    bill_count: int
    output_tax: GSTTaxTotals
    input_tax: GSTTaxTotals
    net_liability: Decimal
    by_rate: List[GSTRateTotals] = []
    periods: List[GSTPeriodTotals] = []


class GSTReconciliationPeriod(BaseModel):
    start_date: date
    end_date: date


class GSTReconciliationRequest(BaseModel):
    """Invoices to reconcile, by id and/or by invoice date."""
    invoice_ids: Optional[List[UUID]] = None
    period: Optional[GSTReconciliationPeriod] = None
    recalculate: bool = False


class GSTAmountDifference(BaseModel):
    stored: Decimal
    calculated: Decimal


class GSTReconciliationResult(BaseModel):
    invoice_id: UUID
    invoice_number: str
    status: str  # MATCHED, MISMATCH, OVERRIDDEN, RECALCULATED
    differences: Dict[str, GSTAmountDifference] = {}


class GSTReconciliationResponse(BaseModel):
    total: int
    matched: int
    mismatched: int
    overridden: int
    recalculated: int
    not_found: List[UUID] = []
    results: List[GSTReconciliationResult] = []
