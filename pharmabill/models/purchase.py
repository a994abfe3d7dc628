"""Supplier purchase invoices that bring stock in."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List

from pharmabill import config
from pharmabill.models.stock import StockUpdateResult

ZERO = Decimal("0")


@dataclass
class PurchaseLine:
    """One received batch. Tax is charged on top of the discounted cost."""

    item_code: str = ""
    item_name: str = ""
    batch: str = ""
    quantity: int = 0
    free: int = 0
    rate: Decimal = ZERO
    mrp: Decimal = ZERO
    discount_percent: Decimal = ZERO
    cgst_percent: Decimal = config.DEFAULT_CGST_PERCENT
    sgst_percent: Decimal = config.DEFAULT_SGST_PERCENT
    pack: int = 1
    expiry_date: str = ""
    hsn_code: str = ""
    taxable_amt: Decimal = ZERO
    cgst_amt: Decimal = ZERO
    sgst_amt: Decimal = ZERO
    amount: Decimal = ZERO

    @property
    def received_qty(self) -> int:
        return self.quantity + self.free

    @property
    def is_ready(self) -> bool:
        return bool(self.item_code.strip()) and self.quantity > 0


@dataclass
class PurchaseInvoice:
    invoice_no: str
    bill_date: date
    supplier: str = ""
    payment_mode: str = "Cash"
    lines: List[PurchaseLine] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def ready_lines(self) -> List[PurchaseLine]:
        return [line for line in self.lines if line.is_ready]


@dataclass(frozen=True)
class PurchaseTotals:
    total_qty: int = 0
    total_free: int = 0
    taxable: Decimal = ZERO
    total_cgst: Decimal = ZERO
    total_sgst: Decimal = ZERO
    total_tax: Decimal = ZERO
    grand_total: Decimal = ZERO


@dataclass
class PurchaseOutcome:
    invoice_no: str
    totals: PurchaseTotals
    stock_results: List[StockUpdateResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
