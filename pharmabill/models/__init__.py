"""Domain models for stock batches, sales invoices and purchases."""

from pharmabill.models.invoice import (
    STATUS_PARTIAL,
    STATUS_RETURNED,
    STATUS_SAVED,
    DraftInvoice,
    InvoiceLine,
    InvoiceRecord,
    InvoiceTotals,
    LineTax,
    PickedBatch,
    ReturnOutcome,
    SavedInvoice,
    SaveOutcome,
)
from pharmabill.models.purchase import PurchaseInvoice, PurchaseLine, PurchaseOutcome, PurchaseTotals
from pharmabill.models.stock import StockBatch, StockUpdateResult

__all__ = [
    "STATUS_PARTIAL",
    "STATUS_RETURNED",
    "STATUS_SAVED",
    "DraftInvoice",
    "InvoiceLine",
    "InvoiceRecord",
    "InvoiceTotals",
    "LineTax",
    "PickedBatch",
    "PurchaseInvoice",
    "PurchaseLine",
    "PurchaseOutcome",
    "PurchaseTotals",
    "ReturnOutcome",
    "SavedInvoice",
    "SaveOutcome",
    "StockBatch",
    "StockUpdateResult",
]
