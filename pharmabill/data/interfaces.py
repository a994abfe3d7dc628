"""Contracts for the inventory and invoice stores used by the billing services."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Protocol

from pharmabill.models.invoice import InvoiceRecord, SavedInvoice
from pharmabill.models.purchase import PurchaseInvoice
from pharmabill.models.stock import StockBatch, StockUpdateResult


class InventoryGateway(Protocol):
    def get_all(self) -> List[StockBatch]:
        ...

    def decrement_stock_by_code_batch(self, code: str, batch: str, qty: int) -> StockUpdateResult:
        ...

    def increment_stock_by_code_batch(self, code: str, batch: str, qty: int) -> StockUpdateResult:
        ...

    def receive_batch(self, incoming: StockBatch, qty: int) -> StockUpdateResult:
        """Add purchased stock, creating the batch when it is not known yet."""
        ...


class InvoiceStore(Protocol):
    def save_invoice(self, record: InvoiceRecord) -> SavedInvoice:
        """Persist ``record`` and hand out its invoice number."""
        ...

    def get_invoice(self, invoice_no: str) -> Optional[InvoiceRecord]:
        ...

    def list_invoices(
        self, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> List[InvoiceRecord]:
        ...

    def record_return(self, invoice_no: str, quantities: Dict[int, int], status: str) -> None:
        """Add returned quantities (keyed by 1-based line number) and set the status."""
        ...


class PurchaseStore(Protocol):
    def has_purchase(self, invoice_no: str, supplier: str) -> bool:
        ...

    def save_purchase(self, purchase: PurchaseInvoice) -> None:
        ...

    def list_purchases(
        self, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> List[PurchaseInvoice]:
        ...
