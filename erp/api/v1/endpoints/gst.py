"""API endpoints for GST calculation and validation."""
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from erp.api.deps import DB, require_roles
from erp.core.exceptions import BadRequestError
from erp.core.permissions import RequestContext, ALL_ROLES, FINANCE_ROLES
from erp.schemas.billing import (
    GSTCalculationRequest, GSTItemsCalculationRequest, GSTCalculationResponse,
    GSTBreakup, GSTLineResult, GSTINValidationRequest, GSTINValidationResponse,
    GSTOverrideValidationRequest, GSTOverrideValidationResponse,
    GSTSummaryReport, GSTReconciliationRequest, GSTReconciliationResponse,
)
from erp.services import gst_service
from erp.services.gst_report_service import GSTReportService

router = APIRouter(tags=["GST"])


def _resolve_states(company_state: Optional[str], customer_state: str) -> tuple[str, str]:
    company = company_state or gst_service.company_state()
    for label, state in (("company", company), ("customer", customer_state)):
        if not gst_service.is_valid_state(state):
            raise BadRequestError(f"Unknown {label} state '{state}'")
    return company, customer_state


def _breakup(split: gst_service.TaxSplit) -> GSTBreakup:
    return GSTBreakup(cgst=split.cgst, sgst=split.sgst, igst=split.igst, total_tax=split.total)


@router.post("/calculate", response_model=GSTCalculationResponse)
async def calculate_gst(
    data: GSTCalculationRequest,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """
    GST on (subtotal + shipping - discount) at one rate.

    Same state as the company: CGST + SGST. Otherwise IGST.
    """
    company, customer = _resolve_states(data.company_state, data.customer_state)
    result = gst_service.calculate_gst(
        data.subtotal, data.tax_rate, company, customer,
        shipping_charges=data.shipping_charges,
        discount=data.discount,
    )
    return GSTCalculationResponse(
        subtotal=result["subtotal"],
        shipping_charges=result["shipping_charges"],
        discount=result["discount"],
        taxable_amount=result["taxable_amount"],
        is_intra_state=result["is_intra_state"],
        company_state=company,
        customer_state=customer,
        gst=_breakup(result["split"]),
        grand_total=result["grand_total"],
    )


@router.post("/calculate-items", response_model=GSTCalculationResponse)
async def calculate_items_gst(
    data: GSTItemsCalculationRequest,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Per-line GST: amount = quantity x rate, tax = amount x gst_rate / 100."""
    company, customer = _resolve_states(data.company_state, data.customer_state)
    totals = gst_service.calculate_document(
        data.items, company, customer,
        shipping_charges=data.shipping_charges,
        discount=data.discount,
    )
    split = gst_service.TaxSplit(cgst=totals.cgst, sgst=totals.sgst, igst=totals.igst)
    return GSTCalculationResponse(
        subtotal=totals.subtotal,
        shipping_charges=totals.shipping_charges,
        discount=totals.discount,
        taxable_amount=totals.taxable_amount,
        is_intra_state=totals.is_intra_state,
        company_state=company,
        customer_state=customer,
        gst=_breakup(split),
        cess=totals.cess,
        grand_total=totals.grand_total,
        items=[
            GSTLineResult(
                description=line.description,
                quantity=line.quantity,
                rate=line.rate,
                gst_rate=line.gst_rate,
                amount=line.amount,
                tax_amount=line.tax_amount,
                cgst=line.split.cgst,
                sgst=line.split.sgst,
                igst=line.split.igst,
                total=line.total,
            )
            for line in totals.lines
        ],
    )


@router.post("/validate-gstin", response_model=GSTINValidationResponse)
async def validate_gstin(
    data: GSTINValidationRequest,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    return gst_service.validate_gstin(data.gstin)


@router.post("/validate-override", response_model=GSTOverrideValidationResponse)
async def validate_override(
    data: GSTOverrideValidationRequest,
    context: RequestContext = Depends(require_roles(*ALL_ROLES)),
):
    """Check manual GST amounts before applying them to an invoice."""
    company, customer = _resolve_states(data.company_state, data.customer_state)
    return gst_service.validate_gst_override(
        data.subtotal, data.cgst_amount, data.sgst_amount, data.igst_amount, company, customer,
    )


@router.get("/states", response_model=List[Dict])
async def list_states(context: RequestContext = Depends(require_roles(*ALL_ROLES))):
    return gst_service.list_states()


@router.get("/state-codes", response_model=Dict[str, str])
async def state_codes(context: RequestContext = Depends(require_roles(*ALL_ROLES))):
    return gst_service.GST_STATE_CODES


@router.get("/rates")
async def gst_rates(context: RequestContext = Depends(require_roles(*ALL_ROLES))):
    return {"rates": [str(rate) for rate in gst_service.STANDARD_GST_RATES]}


@router.get("/reports/summary", response_model=GSTSummaryReport)
async def gst_summary_report(
    db: DB,
    start_date: date,
    end_date: date,
    group_by: Optional[str] = Query(None, pattern="^(day|week|month)$"),
    context: RequestContext = Depends(require_roles(*FINANCE_ROLES)),
):
    """Output GST, input tax credit and net liability; DRAFT and CANCELLED documents are left out."""
    return await GSTReportService(db).summary(start_date, end_date, group_by)


@router.post("/reconcile", response_model=GSTReconciliationResponse)
async def reconcile_gst(
    data: GSTReconciliationRequest,
    db: DB,
    context: RequestContext = Depends(require_roles(*FINANCE_ROLES)),
):
    return await GSTReportService(db).reconcile(data, context)
