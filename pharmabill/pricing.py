"""GST-inclusive line pricing and invoice totals.

Rates are GST-inclusive: the unit price printed on the bill already carries
CGST and SGST. Line tax is therefore extracted from the line total
(``gross = total / (1 + gst%)``) and never added on top of it. Every
intermediate amount is rounded half-up to 2 decimals as soon as it is
computed, so printed values always add up the same way they were derived.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable

from pharmabill import config
from pharmabill.exceptions import InvalidInputError
from pharmabill.models.invoice import InvoiceLine, InvoiceTotals, LineTax
from pharmabill.models.purchase import PurchaseLine, PurchaseTotals

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
UNIT = Decimal("1")


def to_decimal(value) -> Decimal:
    """Coerce ints, floats, strings and None into a Decimal."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except ArithmeticError as exc:
        raise InvalidInputError(f"Not a number: {value!r}") from exc


def round2(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_currency(value) -> Decimal:
    """Round to whole currency units, halves away from zero (1484.50 -> 1485)."""
    return to_decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def _non_negative(name: str, value) -> Decimal:
    amount = to_decimal(value)
    if amount < 0:
        raise InvalidInputError(f"{name} cannot be negative: {value}", {"field": name})
    return amount


def derive_rate(mrp, reference_selling_price) -> Decimal:
    """Return the unit rate for a batch from its MRP and reference selling price.

    The reference price is matched against the discount tiers in
    ``config.RATE_TIERS`` (12%, then 18%, then 5% off MRP). On a match the
    tier's further margin cut is applied to the tier price; with no match
    the reference price is used as is.
    """
    mrp = _non_negative("mrp", mrp)
    reference = _non_negative("reference_selling_price", reference_selling_price)

    for discount, margin in config.RATE_TIERS:
        candidate = round2(mrp * round2((HUNDRED - discount) / HUNDRED))
        if abs(reference - candidate) <= config.RATE_TOLERANCE:
            if not margin:
                return candidate
            return round2(candidate * round2((HUNDRED - margin) / HUNDRED))
    return round2(reference)


def compute_line_tax(quantity, rate, cgst_percent, sgst_percent) -> LineTax:
    qty = _non_negative("quantity", quantity)
    rate = _non_negative("rate", rate)
    cgst = _non_negative("cgst_percent", cgst_percent)
    sgst = _non_negative("sgst_percent", sgst_percent)

    total = round2(qty * rate)
    gst = cgst + sgst
    if gst == 0:
        return LineTax(gross_amt=total, cgst_amt=round2(ZERO), sgst_amt=round2(ZERO), total=total)

    gross = round2(total / (1 + gst / HUNDRED))
    return LineTax(
        gross_amt=gross,
        cgst_amt=round2(gross * cgst / HUNDRED),
        sgst_amt=round2(gross * sgst / HUNDRED),
        total=total,
    )


def recalculate_line(line: InvoiceLine) -> InvoiceLine:
    """Refresh the derived amounts of ``line`` in place and return it."""
    line.apply_tax(
        compute_line_tax(line.quantity, line.rate, line.cgst_percent, line.sgst_percent)
    )
    return line


def compute_invoice_totals(lines: Iterable[InvoiceLine], discount_percent=0) -> InvoiceTotals:
    pct = _non_negative("discount_percent", discount_percent)
    if pct > HUNDRED:
        raise InvalidInputError(
            f"discount_percent cannot exceed 100: {discount_percent}", {"field": "discount_percent"}
        )

    total_qty = 0
    gross = cgst = sgst = bill = saved = ZERO
    for line in lines:
        total_qty += line.quantity
        gross += line.gross_amt
        cgst += line.cgst_amt
        sgst += line.sgst_amt
        bill += line.total
        saved += max(ZERO, to_decimal(line.mrp) - to_decimal(line.rate)) * line.quantity

    bill = round2(bill)
    discount = round2(bill * pct / HUNDRED)
    after_discount = round2(bill - discount)
    final_amount = round_currency(after_discount)

    return InvoiceTotals(
        total_qty=total_qty,
        gross_total=round2(gross),
        total_cgst=round2(cgst),
        total_sgst=round2(sgst),
        total_tax=round2(cgst + sgst),
        bill_amount=bill,
        discount_amount=discount,
        after_discount=after_discount,
        round_off=round2(final_amount - after_discount),
        final_amount=final_amount,
        saved_from_mrp=round2(saved),
    )


@dataclass(frozen=True)
class GstSlab:
    taxable: Decimal = ZERO
    tax: Decimal = ZERO


def gst_summary(lines: Iterable[InvoiceLine]) -> Dict[Decimal, GstSlab]:
    """Taxable value and tax per combined GST slab, standard slabs always listed."""
    taxable: Dict[Decimal, Decimal] = {slab: ZERO for slab in config.GST_SLABS}
    tax: Dict[Decimal, Decimal] = {slab: ZERO for slab in config.GST_SLABS}
    for line in lines:
        slab = to_decimal(line.gst_percent)
        taxable[slab] = taxable.get(slab, ZERO) + line.gross_amt
        tax[slab] = tax.get(slab, ZERO) + line.cgst_amt + line.sgst_amt
    return {
        slab: GstSlab(taxable=round2(taxable[slab]), tax=round2(tax[slab]))
        for slab in sorted(taxable)
    }


def compute_purchase_line(line: PurchaseLine) -> PurchaseLine:
    """Refresh the amounts of a purchase line in place and return it.

    Purchase rates are cost before tax, so CGST and SGST are charged on top of
    ``quantity * rate`` less the line discount. Free units carry no cost.
    """
    qty = _non_negative("quantity", line.quantity)
    _non_negative("free", line.free)
    rate = _non_negative("rate", line.rate)
    discount_pct = _non_negative("discount_percent", line.discount_percent)
    cgst = _non_negative("cgst_percent", line.cgst_percent)
    sgst = _non_negative("sgst_percent", line.sgst_percent)

    gross = round2(qty * rate)
    taxable = round2(gross - round2(gross * discount_pct / HUNDRED))
    line.taxable_amt = taxable
    line.cgst_amt = round2(taxable * cgst / HUNDRED)
    line.sgst_amt = round2(taxable * sgst / HUNDRED)
    line.amount = round2(taxable + line.cgst_amt + line.sgst_amt)
    return line


def compute_purchase_totals(lines: Iterable[PurchaseLine]) -> PurchaseTotals:
    total_qty = total_free = 0
    taxable = cgst = sgst = amount = ZERO
    for line in lines:
        total_qty += line.quantity
        total_free += line.free
        taxable += line.taxable_amt
        cgst += line.cgst_amt
        sgst += line.sgst_amt
        amount += line.amount
    return PurchaseTotals(
        total_qty=total_qty,
        total_free=total_free,
        taxable=round2(taxable),
        total_cgst=round2(cgst),
        total_sgst=round2(sgst),
        total_tax=round2(cgst + sgst),
        grand_total=round2(amount),
    )
