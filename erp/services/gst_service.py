"""GST calculation and validation.

Place of supply decides the split:
- Same state as the company (intra-state): CGST + SGST, half each
- Different state (inter-state): IGST for the full amount

Everything here is pure arithmetic on Decimal; amounts are rounded to paise.
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from erp.config import settings


TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")

# Maximum share of the subtotal a manual GST override may claim
MAX_OVERRIDE_RATIO = Decimal("0.5")

STANDARD_GST_RATES = [Decimal("0"), Decimal("0.25"), Decimal("3"), Decimal("5"),
                      Decimal("12"), Decimal("18"), Decimal("28")]

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")

# GST State Code mapping
GST_STATE_CODES = {
    "01": "Jammu & Kashmir", "02": "Himachal Pradesh", "03": "Punjab",
    "04": "Chandigarh", "05": "Uttarakhand", "06": "Haryana",
    "07": "Delhi", "08": "Rajasthan", "09": "Uttar Pradesh",
    "10": "Bihar", "11": "Sikkim", "12": "Arunachal Pradesh",
    "13": "Nagaland", "14": "Manipur", "15": "Mizoram",
    "16": "Tripura", "17": "Meghalaya", "18": "Assam",
    "19": "West Bengal", "20": "Jharkhand", "21": "Odisha",
    "22": "Chhattisgarh", "23": "Madhya Pradesh", "24": "Gujarat",
    "26": "Dadra & Nagar Haveli and Daman & Diu", "27": "Maharashtra",
    "29": "Karnataka", "30": "Goa",
    "31": "Lakshadweep", "32": "Kerala", "33": "Tamil Nadu",
    "34": "Puducherry", "35": "Andaman & Nicobar Islands",
    "36": "Telangana", "37": "Andhra Pradesh",
    "38": "Ladakh",
}

UNION_TERRITORY_CODES = {"04", "07", "26", "31", "34", "35", "38", "01"}


def normalize_state(state: Optional[str]) -> str:
    """Case, whitespace and '&'-insensitive key for a state name."""
    if not state:
        return ""
    text = state.strip().lower().replace("&", "and")
    return " ".join(text.split())


# Reverse mapping: normalized state name to code
STATE_TO_CODE = {normalize_state(name): code for code, name in GST_STATE_CODES.items()}
STATE_TO_CODE.update({
    "orissa": "21",
    "pondicherry": "34",
    "new delhi": "07",
    "nct of delhi": "07",
})


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def is_valid_state(state: Optional[str]) -> bool:
    return normalize_state(state) in STATE_TO_CODE


def get_state_code(state: Optional[str]) -> Optional[str]:
    """GST state code for a state name, None if unknown."""
    return STATE_TO_CODE.get(normalize_state(state))


def list_states() -> List[dict]:
    return [
        {"code": code, "name": name, "is_union_territory": code in UNION_TERRITORY_CODES}
        for code, name in sorted(GST_STATE_CODES.items())
    ]


def is_intra_state(company_state: Optional[str], customer_state: Optional[str]) -> bool:
    """True when both parties are in the same state."""
    return normalize_state(company_state) == normalize_state(customer_state)


@dataclass
class TaxSplit:
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


def split_tax(tax: Decimal, intra_state: bool) -> TaxSplit:
    """
    Assign a tax amount to CGST/SGST or IGST.

    Intra-state tax is halved and each half rounded to paise, so CGST and
    SGST are always equal.
    """
    tax = round_money(tax)
    if not intra_state:
        return TaxSplit(igst=tax)
    half = round_money(tax / 2)
    return TaxSplit(cgst=half, sgst=half)


@dataclass
class LineCalculation:
    description: str
    quantity: Decimal
    rate: Decimal
    gst_rate: Decimal
    amount: Decimal
    tax_amount: Decimal
    split: TaxSplit
    cess: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.amount + self.tax_amount + self.cess


def calculate_line(
    description: str,
    quantity: Decimal,
    rate: Decimal,
    gst_rate: Decimal,
    intra_state: bool,
    cess: Decimal = ZERO,
) -> LineCalculation:
    """amount = quantity x rate; tax = amount x gst_rate / 100."""
    amount = round_money(Decimal(quantity) * Decimal(rate))
    tax = round_money(amount * Decimal(gst_rate) / 100)
    return LineCalculation(
        description=description,
        quantity=Decimal(quantity),
        rate=Decimal(rate),
        gst_rate=Decimal(gst_rate),
        amount=amount,
        tax_amount=tax,
        split=split_tax(tax, intra_state),
        cess=round_money(cess),
    )


@dataclass
class DocumentTotals:
    """Roll-up of line calculations for an invoice or bill."""
    lines: List[LineCalculation] = field(default_factory=list)
    subtotal: Decimal = ZERO
    shipping_charges: Decimal = ZERO
    discount: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    cess: Decimal = ZERO
    is_intra_state: bool = True

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst

    @property
    def taxable_amount(self) -> Decimal:
        return self.subtotal + self.shipping_charges - self.discount

    @property
    def grand_total(self) -> Decimal:
        return self.taxable_amount + self.total_tax + self.cess


def calculate_document(
    items: Iterable,
    company_state: Optional[str],
    customer_state: Optional[str],
    shipping_charges: Decimal = ZERO,
    discount: Decimal = ZERO,
) -> DocumentTotals:
    """
    Calculate every line of a document and roll the amounts up.

    ``items`` are objects with description, quantity, rate, gst_rate and
    optionally cess_amount (the LineItemCreate schema fits).
    """
    intra = is_intra_state(company_state, customer_state)
    totals = DocumentTotals(
        shipping_charges=round_money(shipping_charges),
        discount=round_money(discount),
        is_intra_state=intra,
    )
    for item in items:
        line = calculate_line(
            item.description,
            item.quantity,
            item.rate,
            item.gst_rate,
            intra,
            getattr(item, "cess_amount", ZERO) or ZERO,
        )
        totals.lines.append(line)
        totals.subtotal += line.amount
        totals.cgst += line.split.cgst
        totals.sgst += line.split.sgst
        totals.igst += line.split.igst
        totals.cess += line.cess
    return totals


def calculate_gst(
    subtotal: Decimal,
    tax_rate: Decimal,
    company_state: Optional[str],
    customer_state: Optional[str],
    shipping_charges: Decimal = ZERO,
    discount: Decimal = ZERO,
) -> dict:
    """
    Invoice-level GST on (subtotal + shipping - discount) at a single rate.
    """
    taxable = round_money(Decimal(subtotal) + Decimal(shipping_charges) - Decimal(discount))
    if taxable < 0:
        taxable = ZERO
    intra = is_intra_state(company_state, customer_state)
    split = split_tax(taxable * Decimal(tax_rate) / 100, intra)
    return {
        "subtotal": round_money(subtotal),
        "shipping_charges": round_money(shipping_charges),
        "discount": round_money(discount),
        "taxable_amount": taxable,
        "is_intra_state": intra,
        "split": split,
        "grand_total": taxable + split.total,
    }


def validate_gstin(gstin: Optional[str]) -> dict:
    """
    Check format and embedded state code of a GSTIN.

    Returns a dict with is_valid, state_code, state_name, pan and errors.
    """
    errors: List[str] = []
    value = (gstin or "").strip().upper()
    if len(value) != 15:
        errors.append("GSTIN must be exactly 15 characters")
    elif not GSTIN_PATTERN.match(value):
        errors.append("GSTIN format is invalid")

    state_code = value[:2] if len(value) >= 2 else None
    state_name = GST_STATE_CODES.get(state_code) if state_code else None
    if state_code and not errors and state_name is None:
        errors.append(f"Unknown GST state code '{state_code}'")

    return {
        "gstin": value,
        "is_valid": not errors,
        "state_code": state_code if state_name else None,
        "state_name": state_name,
        "pan": value[2:12] if not errors else None,
        "errors": errors,
    }


def is_valid_gstin(gstin: Optional[str]) -> bool:
    return bool(gstin) and validate_gstin(gstin)["is_valid"]


def validate_gst_override(
    subtotal: Decimal,
    cgst: Decimal,
    sgst: Decimal,
    igst: Decimal,
    company_state: Optional[str],
    customer_state: Optional[str],
) -> dict:
    """
    Sanity checks for manually entered GST amounts.

    Errors block the override; warnings are informational.
    """
    errors: List[str] = []
    warnings: List[str] = []

    for name, amount in (("CGST", cgst), ("SGST", sgst), ("IGST", igst)):
        if amount < 0:
            errors.append(f"{name} amount cannot be negative")

    total = Decimal(cgst) + Decimal(sgst) + Decimal(igst)
    if subtotal > 0 and total > Decimal(subtotal) * MAX_OVERRIDE_RATIO:
        errors.append("Total GST cannot exceed 50% of the subtotal")

    intra = is_intra_state(company_state, customer_state)
    if intra and igst > 0:
        errors.append("Intra-state supply cannot carry IGST")
    if not intra and (cgst > 0 or sgst > 0):
        errors.append("Inter-state supply cannot carry CGST/SGST")
    if intra and cgst != sgst:
        warnings.append("CGST and SGST are usually equal for intra-state supply")

    return {"is_valid": not errors, "errors": errors, "warnings": warnings}


def company_state() -> str:
    """Configured seller state."""
    return settings.COMPANY_STATE
