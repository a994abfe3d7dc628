"""Returns against saved sales invoices."""

from __future__ import annotations

import logging
from typing import Dict

from pharmabill.data.interfaces import InventoryGateway, InvoiceStore
from pharmabill.exceptions import InvalidInputError, NotFoundError
from pharmabill.models.invoice import STATUS_PARTIAL, STATUS_RETURNED, ReturnOutcome

logger = logging.getLogger(__name__)


def process_return(
    store: InvoiceStore,
    inventory: InventoryGateway,
    invoice_no: str,
    quantities: Dict[int, int],
) -> ReturnOutcome:
    """Take back items from a saved invoice.

    ``quantities`` maps 1-based line numbers to units coming back. Each is
    limited to what is still unreturned on that line. The return is recorded
    on the invoice first; stock is then put back line by line, and a failed
    stock update is reported as a warning.
    """
    invoice = store.get_invoice(invoice_no)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_no} not found.")

    accepted: Dict[int, int] = {}
    for line_no, qty in quantities.items():
        if qty < 0:
            raise InvalidInputError("Return quantity cannot be negative.", {"line": line_no})
        if not 1 <= line_no <= len(invoice.lines):
            raise InvalidInputError(f"Invoice {invoice_no} has no line {line_no}.", {"line": line_no})
        line = invoice.lines[line_no - 1]
        qty = max(0, min(qty, line.active_qty))
        if qty:
            accepted[line_no] = qty

    if not accepted:
        raise InvalidInputError("No items selected for return")

    fully_returned = all(
        line.returned_qty + accepted.get(line_no, 0) >= line.quantity
        for line_no, line in enumerate(invoice.lines, start=1)
    )
    status = STATUS_RETURNED if fully_returned else STATUS_PARTIAL
    store.record_return(invoice_no, accepted, status)

    outcome = ReturnOutcome(invoice_no=invoice_no, returned=accepted, status=status)
    for line_no, qty in accepted.items():
        line = invoice.lines[line_no - 1]
        try:
            result = inventory.increment_stock_by_code_batch(line.item_code, line.batch, qty)
        except Exception as exc:
            logger.warning("Stock increment failed for %s [%s]: %s", line.item_code, line.batch, exc)
            outcome.warnings.append(f"Stock update failed: {line.item_code}/{line.batch}: {exc}")
            continue
        if not result.success:
            outcome.warnings.append(f"Not found: {line.item_code}/{line.batch}")

    logger.info("Return on invoice %s: %s (%s)", invoice_no, accepted, status)
    return outcome
