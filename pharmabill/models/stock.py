"""Dataclasses representing stock batches and stock update results."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from pharmabill import config


@dataclass(frozen=True)
class StockBatch:
    item_code: str
    item_name: str
    batch: str
    stock_quantity: int
    mrp: Decimal = Decimal("0")
    selling_price_tab: Decimal = Decimal("0")
    cgst_rate: Decimal = Decimal("0")
    sgst_rate: Decimal = Decimal("0")
    pack: int = 1
    expiry_date: str = ""
    hsn_code: str = ""
    reorder_level: int = config.DEFAULT_REORDER_LEVEL

    @property
    def key(self) -> Tuple[str, str]:
        return (self.item_code, self.batch)


@dataclass(frozen=True)
class StockUpdateResult:
    """Outcome of one increment/decrement call against the inventory."""

    success: bool
    new_stock: int = 0
    item_name: str = ""
    created: bool = False
