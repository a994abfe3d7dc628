"""Billing session: the draft sales invoice from first pick to saved bill."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Dict, List, Optional

from pharmabill.data.interfaces import InventoryGateway, InvoiceStore
from pharmabill.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    InventoryError,
    PersistenceError,
)
from pharmabill.models.invoice import (
    DraftInvoice,
    InvoiceLine,
    InvoiceRecord,
    InvoiceTotals,
    PickedBatch,
    SaveOutcome,
)
from pharmabill.models.stock import StockBatch, StockUpdateResult
from pharmabill.pricing import compute_invoice_totals, derive_rate, recalculate_line, to_decimal
from pharmabill.reservation import (
    BatchKey,
    available_stock,
    batch_key,
    clamp_quantity,
    merge_or_append_line,
    pending_quantities,
    pickable_batches,
    search_items,
)

logger = logging.getLogger(__name__)

HEADER_FIELDS = ("customer_name", "contact_no", "doctor_name", "sale_type", "payment_mode", "invoice_date")
LINE_FIELDS = (
    "item_code",
    "item_name",
    "batch",
    "quantity",
    "mrp",
    "rate",
    "cgst_percent",
    "sgst_percent",
    "pack",
    "expiry_date",
    "hsn_code",
)
MONEY_FIELDS = ("mrp", "rate", "cgst_percent", "sgst_percent")


class DraftState(str, Enum):
    EMPTY = "empty"
    EDITING = "editing"
    SAVED = "saved"


class BillingSession:
    """Owns one draft invoice and the catalog snapshot it is picked from.

    Every mutation recomputes the touched line's amounts straight away; the
    reserved stock per batch is always derived from the current lines.
    """

    def __init__(self, inventory: InventoryGateway, store: InvoiceStore) -> None:
        self.inventory = inventory
        self.store = store
        self.catalog: List[StockBatch] = []
        self.draft = DraftInvoice()
        self.state = DraftState.EMPTY

    def load_catalog(self) -> List[StockBatch]:
        try:
            self.catalog = list(self.inventory.get_all())
        except Exception as exc:
            logger.error("Failed to load inventory: %s", exc)
            raise InventoryError(f"Failed to load inventory: {exc}") from exc
        return self.catalog

    # Reservation view

    @property
    def pending(self) -> Dict[BatchKey, int]:
        return pending_quantities(self.draft.lines)

    def available_for(self, batch: StockBatch) -> int:
        return available_stock(batch, self.pending)

    def pickable(self, item_code: Optional[str] = None) -> List[StockBatch]:
        return pickable_batches(self.catalog, self.pending, item_code)

    def search(self, query: str = "") -> List[StockBatch]:
        return search_items(self.catalog, self.pending, query)

    def _catalog_batch(self, item_code: str, batch: str) -> Optional[StockBatch]:
        key = batch_key(item_code, batch)
        for row in self.catalog:
            if batch_key(row.item_code, row.batch) == key:
                return row
        return None

    # Draft editing

    def _touch(self) -> None:
        self.state = DraftState.EDITING

    def set_header(self, **fields) -> None:
        for name, value in fields.items():
            if name not in HEADER_FIELDS:
                raise InvalidInputError(f"Unknown header field: {name}")
            setattr(self.draft, name, value)
        self._touch()

    def set_discount(self, percent) -> None:
        pct = to_decimal(percent)
        if pct < 0 or pct > 100:
            raise InvalidInputError("Discount must be between 0 and 100.", {"field": "discount_percent"})
        self.draft.discount_percent = pct
        self._touch()

    def pick(self, batch: StockBatch, quantity: int = 1, index: Optional[int] = None) -> List[InvoiceLine]:
        """Put ``quantity`` units of ``batch`` on the draft, limited to what is still available."""
        if quantity < 1:
            raise InvalidInputError("Quantity must be at least 1.", {"field": "quantity"})
        available = self.available_for(batch)
        if available < 1:
            raise InsufficientStockError(batch.item_code, batch.batch, available)

        picked = PickedBatch(
            item_code=batch.item_code,
            item_name=batch.item_name,
            batch=batch.batch,
            quantity=clamp_quantity(quantity, available),
            mrp=batch.mrp,
            rate=derive_rate(batch.mrp, batch.selling_price_tab),
            cgst_percent=batch.cgst_rate,
            sgst_percent=batch.sgst_rate,
            pack=batch.pack,
            expiry_date=batch.expiry_date,
            hsn_code=batch.hsn_code,
        )
        if picked.quantity < quantity:
            logger.info(
                "Clamped %s [%s] from %d to %d", batch.item_code, batch.batch, quantity, picked.quantity
            )
        self.draft.lines = merge_or_append_line(self.draft.lines, picked, index)
        self._touch()
        return self.draft.lines

    def add_blank_line(self) -> InvoiceLine:
        line = InvoiceLine()
        self.draft.lines.append(line)
        return line

    def remove_line(self, index: int) -> None:
        if len(self.draft.lines) <= 1:
            return
        del self.draft.lines[index]
        self._touch()

    def update_line(self, index: int, **fields) -> InvoiceLine:
        """Change fields of one line, then recompute it.

        All fields are checked before any is applied, so a rejected edit
        leaves the line as it was. Raising the quantity of a catalog batch is
        clamped to what the rest of the draft leaves available.
        """
        changes = {}
        for name, value in fields.items():
            if name not in LINE_FIELDS:
                raise InvalidInputError(f"Unknown line field: {name}")
            if name in MONEY_FIELDS:
                value = to_decimal(value)
                if value < 0:
                    raise InvalidInputError(f"{name} cannot be negative.", {"field": name})
            if name == "quantity":
                try:
                    value = int(value)
                except (TypeError, ValueError) as exc:
                    raise InvalidInputError(f"Not a quantity: {value!r}", {"field": "quantity"}) from exc
                if value < 0:
                    raise InvalidInputError("Quantity cannot be negative.", {"field": "quantity"})
            changes[name] = value

        line = replace(self.draft.lines[index], **changes)
        batch = self._catalog_batch(line.item_code, line.batch)
        if batch is not None:
            line.item_code = batch.item_code
            line.batch = batch.batch
            if line.quantity > 0:
                others = pending_quantities(
                    other for pos, other in enumerate(self.draft.lines) if pos != index
                )
                limit = available_stock(batch, others)
                if line.quantity > limit:
                    logger.info(
                        "Clamped %s [%s] from %d to %d", line.item_code, line.batch, line.quantity, limit
                    )
                    line.quantity = clamp_quantity(line.quantity, limit)

        recalculate_line(line)
        self.draft.lines[index] = line
        self._touch()
        return line

    def totals(self) -> InvoiceTotals:
        return compute_invoice_totals(self.draft.ready_lines(), self.draft.discount_percent)

    def validate(self) -> List[str]:
        errors: List[str] = []
        ready = self.draft.ready_lines()
        if not ready:
            errors.append("Add at least one item")
        for pos, line in enumerate(self.draft.lines, start=1):
            amounts = (line.rate, line.mrp, line.cgst_percent, line.sgst_percent)
            if line.quantity < 0 or any(to_decimal(value) < 0 for value in amounts):
                errors.append(f"Line {pos}: amounts cannot be negative")
            if line.quantity > 0 and line.is_blank:
                errors.append(f"Line {pos}: item is missing")
        return errors

    # Save

    def save(self) -> SaveOutcome:
        """Persist the draft, then take its quantities off the inventory.

        Nothing is stored when a batch on the draft exceeds its catalog stock.
        The invoice is stored first. If that fails nothing else happens and
        the draft stays as it is. Stock is then decremented line by line;
        a failed line is reported in ``warnings`` and does not stop the rest
        or undo the saved invoice.
        """
        errors = self.validate()
        if errors:
            raise InvalidInputError("; ".join(errors), {"errors": errors})
        self._check_stock()

        lines = [recalculate_line(line.copy()) for line in self.draft.ready_lines()]
        record = InvoiceRecord(
            invoice_date=self.draft.invoice_date,
            lines=lines,
            totals=compute_invoice_totals(lines, self.draft.discount_percent),
            customer_name=self.draft.customer_name,
            contact_no=self.draft.contact_no,
            doctor_name=self.draft.doctor_name,
            sale_type=self.draft.sale_type,
            payment_mode=self.draft.payment_mode,
            discount_percent=to_decimal(self.draft.discount_percent),
        )

        try:
            saved = self.store.save_invoice(record)
        except Exception as exc:
            logger.error("Save error: %s", exc)
            raise PersistenceError(f"Failed to save invoice: {exc}") from exc
        self.state = DraftState.SAVED
        logger.info("Saved invoice #%s (%d lines)", saved.invoice_no, len(lines))

        outcome = SaveOutcome(invoice=saved)
        outcome.messages.append(f"Saved Invoice #{saved.invoice_no}")
        for line in lines:
            result = self._decrement(line, outcome)
            outcome.stock_results.append(result)

        try:
            self.load_catalog()
        except InventoryError as exc:
            outcome.warnings.append(str(exc))

        self.reset()
        return outcome

    def _check_stock(self) -> None:
        """Refuse to save when the draft holds more of a batch than the catalog has."""
        for (code, batch), qty in pending_quantities(self.draft.ready_lines()).items():
            row = self._catalog_batch(code, batch)
            if row is not None and qty > row.stock_quantity:
                logger.warning(
                    "Draft holds %d of %s [%s], only %d in stock", qty, row.item_code, row.batch, row.stock_quantity
                )
                raise InsufficientStockError(row.item_code, row.batch, row.stock_quantity)

    def _decrement(self, line: InvoiceLine, outcome: SaveOutcome) -> StockUpdateResult:
        try:
            result = self.inventory.decrement_stock_by_code_batch(
                line.item_code, line.batch, line.quantity
            )
        except Exception as exc:
            logger.warning("Stock decrement failed for %s [%s]: %s", line.item_code, line.batch, exc)
            outcome.warnings.append(f"Stock update failed: {line.item_code}/{line.batch}: {exc}")
            return StockUpdateResult(success=False)

        if result.success:
            outcome.messages.append(
                f"{line.quantity} reduced from {result.item_name} [{line.batch}] -> {result.new_stock}"
            )
        else:
            logger.warning("Stock batch not found: %s [%s]", line.item_code, line.batch)
            outcome.warnings.append(f"Not found: {line.item_code}/{line.batch}")
        return result

    def reset(self) -> None:
        """Start a fresh, empty draft."""
        self.draft = DraftInvoice()
        self.state = DraftState.EMPTY

    def discard(self) -> None:
        """Drop the draft; nothing was stored, so nothing is undone."""
        logger.debug("Draft discarded with %d lines", len(self.draft.ready_lines()))
        self.reset()
