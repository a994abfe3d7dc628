"""Supplier purchases: record the bill, then bring its stock in."""

from __future__ import annotations

import logging
from dataclasses import replace

from pharmabill import config
from pharmabill.data.interfaces import InventoryGateway, PurchaseStore
from pharmabill.exceptions import InvalidInputError, PersistenceError
from pharmabill.models.purchase import PurchaseInvoice, PurchaseLine, PurchaseOutcome
from pharmabill.models.stock import StockBatch, StockUpdateResult
from pharmabill.pricing import compute_purchase_line, compute_purchase_totals, round2

logger = logging.getLogger(__name__)


def _incoming_batch(line: PurchaseLine) -> StockBatch:
    return StockBatch(
        item_code=line.item_code.strip(),
        item_name=line.item_name.strip() or line.item_code.strip(),
        batch=line.batch.strip(),
        stock_quantity=0,
        mrp=line.mrp,
        selling_price_tab=round2(line.mrp * config.NEW_BATCH_SELLING_FACTOR),
        cgst_rate=line.cgst_percent,
        sgst_rate=line.sgst_percent,
        pack=line.pack,
        expiry_date=line.expiry_date,
        hsn_code=line.hsn_code,
    )


def receive_purchase(
    store: PurchaseStore, inventory: InventoryGateway, purchase: PurchaseInvoice
) -> PurchaseOutcome:
    """Store a supplier bill, then add each line's quantity plus free units to stock.

    Lines without an item or quantity are dropped. The bill is stored first;
    if that fails no stock moves. A batch that is not in the inventory yet is
    created. A failed stock update becomes a warning and the rest continue.
    """
    if not purchase.invoice_no.strip():
        raise InvalidInputError("Invoice number is required", {"field": "invoice_no"})

    lines = []
    for pos, line in enumerate(purchase.lines, start=1):
        if not line.is_ready:
            continue
        if not line.batch.strip():
            raise InvalidInputError(f"Line {pos}: batch is missing", {"line": pos})
        lines.append(compute_purchase_line(replace(line)))
    if not lines:
        raise InvalidInputError("Add at least one product with quantity")

    if store.has_purchase(purchase.invoice_no, purchase.supplier):
        raise InvalidInputError(
            f"Purchase {purchase.invoice_no} from {purchase.supplier or 'supplier'} is already recorded.",
            {"field": "invoice_no"},
        )

    record = replace(purchase, lines=lines)
    try:
        store.save_purchase(record)
    except Exception as exc:
        logger.error("Purchase save error: %s", exc)
        raise PersistenceError(f"Failed to save purchase: {exc}") from exc

    outcome = PurchaseOutcome(invoice_no=record.invoice_no, totals=compute_purchase_totals(lines))
    outcome.messages.append(f"Saved Purchase {record.invoice_no}")
    for line in lines:
        try:
            result = inventory.receive_batch(_incoming_batch(line), line.received_qty)
        except Exception as exc:
            logger.warning("Stock intake failed for %s [%s]: %s", line.item_code, line.batch, exc)
            outcome.warnings.append(f"Stock update failed: {line.item_code}/{line.batch}: {exc}")
            outcome.stock_results.append(StockUpdateResult(success=False))
            continue
        outcome.stock_results.append(result)
        note = " (new batch)" if result.created else ""
        outcome.messages.append(
            f"{line.received_qty} added to {result.item_name} [{line.batch}] -> {result.new_stock}{note}"
        )
    return outcome
