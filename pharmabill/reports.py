"""Sales summaries over saved invoices."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pharmabill.models.invoice import InvoiceRecord
from pharmabill.pricing import round2

ZERO = Decimal("0")


@dataclass(frozen=True)
class SalesReport:
    date_from: Optional[date]
    date_to: Optional[date]
    total_bills: int = 0
    total_quantity: int = 0
    gross_sales: Decimal = ZERO
    total_cgst: Decimal = ZERO
    total_sgst: Decimal = ZERO
    total_tax: Decimal = ZERO
    net_sales: Decimal = ZERO
    taxable_bills: int = 0
    non_taxable_bills: int = 0
    taxable_sales: Decimal = ZERO
    non_taxable_sales: Decimal = ZERO
    average_bill_value: Decimal = ZERO


def _returned_share(invoice: InvoiceRecord) -> Decimal:
    """Fraction of the invoice's line value that has been returned."""
    total = sum((line.total for line in invoice.lines), ZERO)
    if not total:
        return ZERO
    returned = sum(
        (line.total * line.returned_qty / line.quantity for line in invoice.lines if line.quantity),
        ZERO,
    )
    return returned / total


def sales_report(
    invoices: Iterable[InvoiceRecord],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> SalesReport:
    """Summarise invoices dated within the inclusive range, net of returns."""
    bills = taxable_bills = quantity = 0
    gross = cgst = sgst = net = taxable_sales = ZERO

    for invoice in invoices:
        if date_from and invoice.invoice_date < date_from:
            continue
        if date_to and invoice.invoice_date > date_to:
            continue
        kept = 1 - _returned_share(invoice)
        if not kept:
            continue

        bills += 1
        quantity += sum(line.active_qty for line in invoice.lines)
        inv_gross = invoice.totals.gross_total * kept
        inv_cgst = invoice.totals.total_cgst * kept
        inv_sgst = invoice.totals.total_sgst * kept
        inv_net = invoice.totals.final_amount * kept

        gross += inv_gross
        cgst += inv_cgst
        sgst += inv_sgst
        net += inv_net
        if inv_cgst > 0 or inv_sgst > 0:
            taxable_bills += 1
            taxable_sales += inv_net

    return SalesReport(
        date_from=date_from,
        date_to=date_to,
        total_bills=bills,
        total_quantity=quantity,
        gross_sales=round2(gross),
        total_cgst=round2(cgst),
        total_sgst=round2(sgst),
        total_tax=round2(cgst + sgst),
        net_sales=round2(net),
        taxable_bills=taxable_bills,
        non_taxable_bills=bills - taxable_bills,
        taxable_sales=round2(taxable_sales),
        non_taxable_sales=round2(net - taxable_sales),
        average_bill_value=round2(net / bills) if bills else round2(ZERO),
    )
