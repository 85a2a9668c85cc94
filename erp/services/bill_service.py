"""
Bill (payables) service.

total = subtotal + CGST + SGST + IGST + cess - discount - TDS

Payments move an approved bill to PARTIALLY_PAID and finally PAID.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.exceptions import NotFoundError, BadRequestError
from erp.core.permissions import RequestContext
from erp.models.billing import Bill, BillItem, BillPayment, BillStatus
from erp.models.operation_log import OperationEntity, OperationType
from erp.schemas.billing import (
    BillCreate, BillUpdate, BillStatusUpdate, BillPaymentCreate, BillFilter, LineItemCreate,
)
from erp.services import gst_service
from erp.services.filters import build_bill_filters
from erp.services.operation_log_service import OperationLogService
from erp.services.pagination import apply_filters, paginate
from erp.services.state_machine import BILL_TRANSITIONS, validate_transition, ensure_editable

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

PAYABLE_STATUSES = (
    BillStatus.APPROVED.value,
    BillStatus.PARTIALLY_PAID.value,
    BillStatus.OVERDUE.value,
)


def _address(value) -> Optional[dict]:
    if value is None:
        return None
    return value.model_dump() if hasattr(value, "model_dump") else dict(value)


def apply_bill_totals(bill: Bill, items: List[LineItemCreate], company_state: Optional[str] = None) -> None:
    """Recalculate bill lines and header amounts; GST place is the vendor state."""
    totals = gst_service.calculate_document(
        items,
        company_state or gst_service.company_state(),
        bill.vendor_state,
    )
    bill.items = [
        BillItem(
            line_number=index,
            description=line.description,
            hsn_code=item.hsn_code,
            quantity=line.quantity,
            unit=item.unit,
            rate=line.rate,
            gst_rate=line.gst_rate,
            amount=line.amount,
            cgst_amount=line.split.cgst,
            sgst_amount=line.split.sgst,
            igst_amount=line.split.igst,
            cess_amount=line.cess,
            total_amount=line.total,
        )
        for index, (item, line) in enumerate(zip(items, totals.lines), start=1)
    ]
    bill.subtotal = totals.subtotal
    bill.cgst_amount = totals.cgst
    bill.sgst_amount = totals.sgst
    bill.igst_amount = totals.igst
    bill.cess_amount = totals.cess
    bill.total_amount = calculate_bill_total(
        totals.subtotal, totals.total_tax, totals.cess,
        bill.discount_amount or ZERO, bill.tds_amount or ZERO,
    )


def calculate_bill_total(subtotal, total_tax, cess, discount, tds) -> Decimal:
    total = gst_service.round_money(
        Decimal(subtotal) + Decimal(total_tax) + Decimal(cess) - Decimal(discount) - Decimal(tds)
    )
    if total < 0:
        raise BadRequestError("Discount and TDS cannot exceed the bill amount")
    return total


class BillService:
    """Vendor bills, approval and payments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def generate_bill_number(self) -> str:
        """BILL-YYYYMMDD-NNNN, sequence restarting daily."""
        prefix = f"BILL-{date.today().strftime('%Y%m%d')}"
        result = await self.db.execute(
            select(func.max(Bill.bill_number)).where(Bill.bill_number.like(f"{prefix}%"))
        )
        max_number = result.scalar()
        seq = int(max_number.split("-")[-1]) + 1 if max_number else 1
        return f"{prefix}-{seq:04d}"

    async def get(self, bill_id: UUID) -> Bill:
        result = await self.db.execute(
            select(Bill)
            .options(selectinload(Bill.items), selectinload(Bill.payments))
            .where(Bill.id == bill_id)
            .execution_options(populate_existing=True)
        )
        bill = result.scalar_one_or_none()
        if not bill:
            raise NotFoundError("Bill not found")
        return bill

    async def create(self, data: BillCreate, context: RequestContext) -> Bill:
        if data.due_date < data.bill_date:
            raise BadRequestError("Due date cannot be before bill date")
        if not gst_service.is_valid_state(data.vendor_state):
            raise BadRequestError(f"Unknown vendor state '{data.vendor_state}'")
        if data.vendor_gstin and not gst_service.is_valid_gstin(data.vendor_gstin):
            raise BadRequestError("Invalid vendor GSTIN")

        if data.bill_number:
            existing = await self.db.execute(select(Bill.id).where(Bill.bill_number == data.bill_number))
            if existing.scalar_one_or_none():
                raise BadRequestError("Bill number already exists")
        bill_number = data.bill_number or await self.generate_bill_number()

        bill = Bill(
            bill_number=bill_number,
            bill_type=data.bill_type.value,
            vendor_name=data.vendor_name,
            vendor_gstin=data.vendor_gstin,
            vendor_email=data.vendor_email,
            vendor_phone=data.vendor_phone,
            vendor_state=data.vendor_state,
            vendor_address=_address(data.vendor_address),
            bill_date=data.bill_date,
            due_date=data.due_date,
            reference_number=data.reference_number,
            tds_amount=data.tds_amount,
            discount_amount=data.discount_amount,
            paid_amount=ZERO,
            status=BillStatus.DRAFT.value,
            notes=data.notes,
            terms_and_conditions=data.terms_and_conditions,
            created_by=context.user_id,
        )
        apply_bill_totals(bill, data.items)

        self.db.add(bill)
        await self.db.commit()

        logger.info(f"Bill {bill.bill_number} from {bill.vendor_name} created: total {bill.total_amount}")
        return await self.get(bill.id)

    async def list(self, filters: BillFilter, page: int = 1, limit: int = 10) -> dict:
        query = apply_filters(
            select(Bill).options(selectinload(Bill.items), selectinload(Bill.payments)),
            build_bill_filters(filters),
        )
        return await paginate(self.db, query, page, limit, order_by=[Bill.bill_date.desc(), Bill.bill_number.desc()])

    async def update(self, bill_id: UUID, data: BillUpdate) -> Bill:
        bill = await self.get(bill_id)
        ensure_editable("bill", bill.status)

        update_data = data.model_dump(exclude_unset=True, exclude={"items"})
        if "vendor_state" in update_data and not gst_service.is_valid_state(update_data["vendor_state"]):
            raise BadRequestError(f"Unknown vendor state '{update_data['vendor_state']}'")
        if update_data.get("vendor_gstin") and not gst_service.is_valid_gstin(update_data["vendor_gstin"]):
            raise BadRequestError("Invalid vendor GSTIN")
        if "vendor_address" in update_data:
            update_data["vendor_address"] = _address(data.vendor_address)

        for field, value in update_data.items():
            setattr(bill, field, value)

        if bill.due_date < bill.bill_date:
            raise BadRequestError("Due date cannot be before bill date")

        if data.items is not None:
            apply_bill_totals(bill, data.items)
        elif {"vendor_state", "tds_amount", "discount_amount"} & update_data.keys():
            current = [
                LineItemCreate(
                    description=item.description,
                    hsn_code=item.hsn_code,
                    quantity=item.quantity,
                    unit=item.unit,
                    rate=item.rate,
                    gst_rate=item.gst_rate,
                    cess_amount=item.cess_amount,
                )
                for item in bill.items
            ]
            apply_bill_totals(bill, current)

        await self.db.commit()
        return await self.get(bill.id)

    async def approve(self, bill_id: UUID, context: RequestContext) -> Bill:
        bill = await self.get(bill_id)
        if bill.status not in (BillStatus.DRAFT.value, BillStatus.PENDING.value):
            raise BadRequestError(f"Cannot approve bill in '{bill.status}' status")
        validate_transition(BILL_TRANSITIONS, bill.status, BillStatus.APPROVED, "Bill")

        bill.status = BillStatus.APPROVED.value
        bill.approved_by = context.user_id
        bill.approved_at = datetime.now(timezone.utc)
        await self.db.commit()

        logger.info(f"Bill {bill.bill_number} approved by {context.email}")
        return await self.get(bill.id)

    async def change_status(self, bill_id: UUID, data: BillStatusUpdate, context: RequestContext) -> Bill:
        if data.status == BillStatus.PARTIALLY_PAID:
            raise BadRequestError("Partial payment status is set by recording payments")
        if data.status == BillStatus.APPROVED:
            return await self.approve(bill_id, context)

        bill = await self.get(bill_id)
        validate_transition(BILL_TRANSITIONS, bill.status, data.status, "Bill")
        bill.status = data.status.value
        if data.status == BillStatus.PAID:
            bill.paid_amount = bill.total_amount

        await self.db.commit()
        logger.info(f"Bill {bill.bill_number} moved to {bill.status}")
        return await self.get(bill.id)

    async def record_payment(self, bill_id: UUID, data: BillPaymentCreate, context: RequestContext) -> Bill:
        bill = await self.get(bill_id)
        if bill.status not in PAYABLE_STATUSES:
            raise BadRequestError(f"Cannot record payment for bill in '{bill.status}' status")

        amount = gst_service.round_money(data.paid_amount)
        if amount <= 0:
            raise BadRequestError("Payment amount must be greater than zero")
        outstanding = bill.outstanding_amount
        if amount > outstanding:
            raise BadRequestError(f"Payment amount exceeds outstanding amount of {outstanding}")
        if any(p.payment_reference == data.payment_reference for p in bill.payments):
            raise BadRequestError("Payment reference already recorded for this bill")

        bill.payments.append(BillPayment(
            payment_reference=data.payment_reference,
            paid_amount=amount,
            payment_date=data.payment_date,
            payment_method=data.payment_method.value,
            transaction_id=data.transaction_id,
            notes=data.notes,
            recorded_by=context.user_id,
        ))
        bill.paid_amount = (bill.paid_amount or ZERO) + amount
        new_status = BillStatus.PAID if bill.paid_amount >= bill.total_amount else BillStatus.PARTIALLY_PAID
        validate_transition(BILL_TRANSITIONS, bill.status, new_status, "Bill")
        old_status = bill.status
        bill.status = new_status.value

        await OperationLogService(self.db).log(
            OperationEntity.BILL, bill.id, OperationType.PAYMENT_ADD, context,
            old_values={"status": old_status},
            new_values={
                "payment_reference": data.payment_reference,
                "paid_amount": str(amount),
                "status": bill.status,
            },
        )

        await self.db.commit()
        logger.info(f"Payment {data.payment_reference} of {amount} recorded on bill {bill.bill_number}")
        return await self.get(bill.id)

    async def list_payments(self, bill_id: UUID) -> List[BillPayment]:
        bill = await self.get(bill_id)
        return list(bill.payments)

    async def remove(self, bill_id: UUID) -> None:
        bill = await self.get(bill_id)
        if bill.status != BillStatus.DRAFT.value:
            raise BadRequestError("Only draft bills can be deleted")
        await self.db.delete(bill)
        await self.db.commit()
        logger.info(f"Deleted bill {bill.bill_number}")

    async def mark_overdue(self) -> int:
        """Unpaid approved bills past their due date become OVERDUE."""
        result = await self.db.execute(
            update(Bill)
            .where(
                Bill.status.in_([BillStatus.APPROVED.value, BillStatus.PARTIALLY_PAID.value]),
                Bill.due_date < date.today(),
            )
            .values(status=BillStatus.OVERDUE.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        count = result.rowcount or 0
        if count:
            logger.info(f"Marked {count} bills as overdue")
        return count
