"""Inventory alerts: low stock, out of stock, expiring and expired batches."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from pharmabill import config
from pharmabill.models.stock import StockBatch
from pharmabill.pricing import round2

_MONTH_YEAR = re.compile(r"^(\d{1,2})[/-](\d{2}|\d{4})$")


def parse_expiry(value: str) -> Optional[date]:
    """Read an expiry as an ISO date or as MM/YY(YY), the last day of that month.

    Blank or unreadable values give None.
    """
    text = (value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    match = _MONTH_YEAR.match(text)
    if not match:
        return None
    month, year = int(match.group(1)), int(match.group(2))
    if year < 100:
        year += 2000
    if not 1 <= month <= 12:
        return None
    return date(year, month, calendar.monthrange(year, month)[1])


def _by_code(batches: Iterable[StockBatch]) -> List[StockBatch]:
    return sorted(batches, key=lambda b: (b.item_code, b.batch))


def low_stock_batches(catalog: Iterable[StockBatch]) -> List[StockBatch]:
    """Batches still in stock but at or below their reorder level."""
    return _by_code(b for b in catalog if 0 < b.stock_quantity <= b.reorder_level)


def out_of_stock_batches(catalog: Iterable[StockBatch]) -> List[StockBatch]:
    return _by_code(b for b in catalog if b.stock_quantity <= 0)


def expired_batches(catalog: Iterable[StockBatch], today: Optional[date] = None) -> List[StockBatch]:
    today = today or date.today()
    rows = [b for b in catalog if (parse_expiry(b.expiry_date) or date.max) < today]
    return sorted(rows, key=lambda b: (parse_expiry(b.expiry_date), b.item_code, b.batch))


def expiring_batches(
    catalog: Iterable[StockBatch], days: Optional[int] = None, today: Optional[date] = None
) -> List[StockBatch]:
    """Batches expiring from today up to ``days`` ahead, soonest first."""
    today = today or date.today()
    limit = today + timedelta(days=config.EXPIRY_WARNING_DAYS if days is None else days)
    rows = []
    for batch in catalog:
        expiry = parse_expiry(batch.expiry_date)
        if expiry is not None and today <= expiry <= limit:
            rows.append(batch)
    return sorted(rows, key=lambda b: (parse_expiry(b.expiry_date), b.item_code, b.batch))


@dataclass(frozen=True)
class InventoryStats:
    total_batches: int
    total_items: int
    total_quantity: int
    total_mrp_value: Decimal
    low_stock_count: int
    out_of_stock_count: int
    expired_count: int
    expiring_count: int


def inventory_stats(catalog: Iterable[StockBatch], today: Optional[date] = None) -> InventoryStats:
    batches = list(catalog)
    return InventoryStats(
        total_batches=len(batches),
        total_items=len({b.item_code.strip().upper() for b in batches}),
        total_quantity=sum(max(0, b.stock_quantity) for b in batches),
        total_mrp_value=round2(sum((b.mrp * max(0, b.stock_quantity) for b in batches), Decimal("0"))),
        low_stock_count=len(low_stock_batches(batches)),
        out_of_stock_count=len(out_of_stock_batches(batches)),
        expired_count=len(expired_batches(batches, today)),
        expiring_count=len(expiring_batches(batches, today=today)),
    )
