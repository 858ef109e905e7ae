"""
Money & tax arithmetic for order lines, invoice lines and document totals.

All inputs are coerced to Decimal and every money result is quantized to
paise (0.01, ROUND_HALF_UP) at line level. Document totals are plain sums of
the quantized line values, so subtotal + total_gst == total_amount exactly.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
PAISE = Decimal("0.01")

PENDING = "pending"
PARTIAL = "partial"
PAID = "paid"


def money_q(v) -> Decimal:
    return (v or ZERO).quantize(PAISE, rounding=ROUND_HALF_UP)


def to_decimal(value, default=None, field="value") -> Decimal:
    """
    Parse user input into a Decimal. None / "" return `default`.
    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, Decimal):
        return value
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError({field: f"'{value}' is not a valid number."})
    if not parsed.is_finite():
        raise ValidationError({field: f"'{value}' is not a valid number."})
    return parsed


def default_gst_rate() -> Decimal:
    return Decimal(str(getattr(settings, "ERP_DEFAULT_GST_RATE", "18")))


def gst_rate_or_default(gst_rate) -> Decimal:
    # only an absent rate falls back; an explicit 0 is a zero-rated line
    rate = to_decimal(gst_rate, field="gst_rate")
    return default_gst_rate() if rate is None else rate


def is_home_state(state) -> bool:
    """True when a billing-address state names the home state (CGST+SGST)."""
    text = (state or "").strip().lower()
    if not text:
        return False
    names = getattr(settings, "ERP_HOME_STATE_NAMES", ("maharashtra", "mh"))
    full_names = [n for n in names if len(n) > 2]
    codes = [n for n in names if len(n) <= 2]
    return any(n in text for n in full_names) or text in codes


# --------------------------------
# Plain order lines (no jurisdiction split)
# --------------------------------
def order_line_amounts(quantity, rate, gst_rate=None):
    """Returns (amount, gst_amount) for a sales/purchase order line."""
    q = to_decimal(quantity, ZERO, field="quantity")
    r = to_decimal(rate, ZERO, field="rate")
    amount = money_q(q * r)
    gst_amount = money_q(amount * gst_rate_or_default(gst_rate) / HUNDRED)
    return amount, gst_amount


# --------------------------------
# Invoice lines (CGST+SGST vs IGST)
# --------------------------------
def invoice_line_amounts(quantity, rate, discount=None, gst_rate=None, within_home_state=False):
    q = to_decimal(quantity, ZERO, field="quantity")
    r = to_decimal(rate, ZERO, field="rate")
    disc = money_q(to_decimal(discount, ZERO, field="discount"))
    gst = gst_rate_or_default(gst_rate)

    total_value = money_q(q * r)
    taxable_value = total_value - disc

    if within_home_state:
        cgst_rate = sgst_rate = gst / 2
        igst_rate = Decimal("0")
        cgst_amount = money_q(taxable_value * cgst_rate / HUNDRED)
        sgst_amount = money_q(taxable_value * sgst_rate / HUNDRED)
        igst_amount = ZERO
    else:
        cgst_rate = sgst_rate = Decimal("0")
        igst_rate = gst
        cgst_amount = sgst_amount = ZERO
        igst_amount = money_q(taxable_value * igst_rate / HUNDRED)

    return {
        "quantity": q,
        "rate": r,
        "total_value": total_value,
        "discount": disc,
        "taxable_value": taxable_value,
        "gst_rate": gst,
        "cgst_rate": cgst_rate,
        "cgst_amount": cgst_amount,
        "sgst_rate": sgst_rate,
        "sgst_amount": sgst_amount,
        "igst_rate": igst_rate,
        "igst_amount": igst_amount,
    }


def line_tax(line) -> Decimal:
    """cgst + sgst + igst of an invoice line (dict or InvoiceItem)."""
    get = line.get if isinstance(line, dict) else lambda k: getattr(line, k)
    return (get("cgst_amount") or ZERO) + (get("sgst_amount") or ZERO) + (get("igst_amount") or ZERO)


def invoice_totals(lines):
    """Returns (subtotal, total_gst, total_amount) over invoice lines."""
    subtotal = ZERO
    total_gst = ZERO
    for line in lines:
        taxable = line["taxable_value"] if isinstance(line, dict) else line.taxable_value
        subtotal += taxable or ZERO
        total_gst += line_tax(line)
    return subtotal, total_gst, subtotal + total_gst


def order_totals(items):
    """
    Returns (subtotal, total_gst, total_amount) from the stored item values.
    An unset (None) amount counts as zero.
    """
    subtotal = ZERO
    total_gst = ZERO
    for it in items:
        subtotal += it.amount if it.amount is not None else ZERO
        total_gst += it.gst_amount if it.gst_amount is not None else ZERO
    return subtotal, total_gst, subtotal + total_gst


# --------------------------------
# Payment state
# --------------------------------
def outstanding_for(total, paid) -> Decimal:
    return max(ZERO, (total or ZERO) - (paid or ZERO))


def payment_status_for(total, paid) -> str:
    total = total or ZERO
    paid = paid or ZERO
    if total > 0 and paid >= total:
        return PAID
    if 0 < paid < total:
        return PARTIAL
    return PENDING
