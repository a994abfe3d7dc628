"""Configuration constants for the pharmacy billing core."""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Workbook holding batch-level stock.
INVENTORY_PATH: Path = Path(os.getenv("PHARMABILL_INVENTORY_PATH", "data/inventory.xlsx"))

# Sheet name inside the inventory workbook.
INVENTORY_SHEET_NAME: str = os.getenv("PHARMABILL_INVENTORY_SHEET", "Products")

# Workbook holding saved sales invoices.
LEDGER_PATH: Path = Path(os.getenv("PHARMABILL_LEDGER_PATH", "data/sales.xlsx"))

INVOICES_SHEET: str = "Invoices"
LINES_SHEET: str = "InvoiceLines"
META_SHEET: str = "Meta"
PURCHASES_SHEET: str = "Purchases"

# First number handed out by a fresh ledger.
INVOICE_SEQ_START: int = 1

LOG_LEVEL: str = os.getenv("PHARMABILL_LOG_LEVEL", "INFO")

# Tax split of a blank line on the entry screen.
DEFAULT_CGST_PERCENT: Decimal = Decimal("2.5")
DEFAULT_SGST_PERCENT: Decimal = Decimal("2.5")

# Combined GST slabs always listed in the per-slab summary.
GST_SLABS = (Decimal("5"), Decimal("12"), Decimal("18"), Decimal("28"))

# (discount off MRP, further margin cut) checked in this order.
RATE_TIERS = (
    (Decimal("12"), Decimal("7")),
    (Decimal("18"), Decimal("13")),
    (Decimal("5"), Decimal("0")),
)

# Max distance between a reference price and a tier candidate.
RATE_TOLERANCE: Decimal = Decimal("0.50")

# Stock at or below this level is reported as low when a batch has no Reorder_Level.
DEFAULT_REORDER_LEVEL: int = int(os.getenv("PHARMABILL_REORDER_LEVEL", "10"))

# Batches expiring within this many days are reported as expiring.
EXPIRY_WARNING_DAYS: int = int(os.getenv("PHARMABILL_EXPIRY_WARNING_DAYS", "30"))

# Reference selling price of a batch first seen on a purchase, as a share of MRP.
NEW_BATCH_SELLING_FACTOR: Decimal = Decimal("0.90")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
