"""Invoice data models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Tuple

from pharmabill import config
from pharmabill.models.stock import StockUpdateResult

ZERO = Decimal("0")

STATUS_SAVED = "SAVED"
STATUS_PARTIAL = "PARTIAL"
STATUS_RETURNED = "RETURNED"


@dataclass(frozen=True)
class LineTax:
    gross_amt: Decimal
    cgst_amt: Decimal
    sgst_amt: Decimal
    total: Decimal


@dataclass
class InvoiceLine:
    """One row of an invoice. Derived amounts are set by the pricing engine."""

    item_code: str = ""
    item_name: str = ""
    batch: str = ""
    quantity: int = 0
    mrp: Decimal = ZERO
    rate: Decimal = ZERO
    cgst_percent: Decimal = config.DEFAULT_CGST_PERCENT
    sgst_percent: Decimal = config.DEFAULT_SGST_PERCENT
    pack: int = 1
    expiry_date: str = ""
    hsn_code: str = ""
    gross_amt: Decimal = ZERO
    cgst_amt: Decimal = ZERO
    sgst_amt: Decimal = ZERO
    total: Decimal = ZERO
    returned_qty: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        return (self.item_code, self.batch)

    @property
    def is_blank(self) -> bool:
        return not self.item_code.strip()

    @property
    def is_ready(self) -> bool:
        """True when the line can be saved: an item is set and quantity is positive."""
        return not self.is_blank and self.quantity > 0

    @property
    def gst_percent(self) -> Decimal:
        return self.cgst_percent + self.sgst_percent

    @property
    def active_qty(self) -> int:
        return self.quantity - self.returned_qty

    def apply_tax(self, tax: LineTax) -> None:
        self.gross_amt = tax.gross_amt
        self.cgst_amt = tax.cgst_amt
        self.sgst_amt = tax.sgst_amt
        self.total = tax.total

    def copy(self) -> "InvoiceLine":
        return replace(self)


@dataclass(frozen=True)
class PickedBatch:
    """A batch chosen in the product picker, ready to land on the draft."""

    item_code: str
    item_name: str
    batch: str
    quantity: int
    mrp: Decimal
    rate: Decimal
    cgst_percent: Decimal
    sgst_percent: Decimal
    pack: int = 1
    expiry_date: str = ""
    hsn_code: str = ""

    def to_line(self) -> InvoiceLine:
        return InvoiceLine(
            item_code=self.item_code,
            item_name=self.item_name,
            batch=self.batch,
            quantity=self.quantity,
            mrp=self.mrp,
            rate=self.rate,
            cgst_percent=self.cgst_percent,
            sgst_percent=self.sgst_percent,
            pack=self.pack,
            expiry_date=self.expiry_date,
            hsn_code=self.hsn_code,
        )


@dataclass(frozen=True)
class InvoiceTotals:
    total_qty: int = 0
    gross_total: Decimal = ZERO
    total_cgst: Decimal = ZERO
    total_sgst: Decimal = ZERO
    total_tax: Decimal = ZERO
    bill_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    after_discount: Decimal = ZERO
    round_off: Decimal = ZERO
    final_amount: Decimal = ZERO
    saved_from_mrp: Decimal = ZERO


@dataclass
class DraftInvoice:
    """In-memory invoice being edited. Starts with one blank line."""

    invoice_date: date = field(default_factory=date.today)
    customer_name: str = ""
    contact_no: str = ""
    doctor_name: str = ""
    sale_type: str = "B2C"
    payment_mode: str = "Cash"
    discount_percent: Decimal = ZERO
    lines: List[InvoiceLine] = field(default_factory=lambda: [InvoiceLine()])

    def ready_lines(self) -> List[InvoiceLine]:
        return [line for line in self.lines if line.is_ready]

    def total_qty(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass
class InvoiceRecord:
    """A finalized invoice as handed to, and read back from, the invoice store."""

    invoice_date: date
    lines: List[InvoiceLine]
    totals: InvoiceTotals
    invoice_no: str = ""
    customer_name: str = ""
    contact_no: str = ""
    doctor_name: str = ""
    sale_type: str = "B2C"
    payment_mode: str = "Cash"
    discount_percent: Decimal = ZERO
    status: str = STATUS_SAVED
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SavedInvoice:
    id: int
    invoice_no: str


@dataclass
class SaveOutcome:
    invoice: SavedInvoice
    stock_results: List[StockUpdateResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)


@dataclass
class ReturnOutcome:
    invoice_no: str
    returned: Dict[int, int] = field(default_factory=dict)
    status: str = STATUS_PARTIAL
    warnings: List[str] = field(default_factory=list)
