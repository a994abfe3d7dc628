"""Batch stock committed to the draft invoice.

Nothing here keeps state: the pending map is derived from the draft lines
every time it is needed, and real stock only moves when an invoice is saved.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pharmabill.models.invoice import InvoiceLine, PickedBatch
from pharmabill.models.stock import StockBatch
from pharmabill.pricing import recalculate_line, to_decimal

BatchKey = Tuple[str, str]


def batch_key(item_code: str, batch: str) -> BatchKey:
    """Item codes compare case-insensitively, batches exactly once trimmed."""
    return (str(item_code or "").strip().upper(), str(batch or "").strip())


def pending_quantities(lines: Iterable[InvoiceLine]) -> Dict[BatchKey, int]:
    """Sum draft quantity per (item code, batch), skipping incomplete lines."""
    pending: Dict[BatchKey, int] = {}
    for line in lines:
        key = batch_key(line.item_code, line.batch)
        if not key[0] or not key[1] or not line.quantity:
            continue
        pending[key] = pending.get(key, 0) + line.quantity
    return pending


def available_stock(batch: StockBatch, pending: Dict[BatchKey, int]) -> int:
    return max(0, batch.stock_quantity - pending.get(batch_key(batch.item_code, batch.batch), 0))


def clamp_quantity(requested: int, available: int) -> int:
    return max(0, min(requested, available))


def pickable_batches(
    catalog: Iterable[StockBatch],
    pending: Dict[BatchKey, int],
    item_code: Optional[str] = None,
) -> List[StockBatch]:
    """Batches that still have stock once the draft is taken into account."""
    wanted = item_code.strip().upper() if item_code is not None else None
    rows = [
        batch
        for batch in catalog
        if (wanted is None or batch.item_code.strip().upper() == wanted)
        and available_stock(batch, pending) > 0
    ]
    return sorted(rows, key=lambda b: (b.item_code, b.batch))


def search_items(
    catalog: Iterable[StockBatch], pending: Dict[BatchKey, int], query: str = ""
) -> List[StockBatch]:
    """One entry per item whose code or name contains ``query`` and has stock left."""
    needle = query.strip().lower()
    heads: Dict[Tuple[str, str], StockBatch] = {}
    for batch in catalog:
        if available_stock(batch, pending) < 1:
            continue
        if needle and needle not in f"{batch.item_code} {batch.item_name}".lower():
            continue
        heads.setdefault((batch.item_code, batch.item_name), batch)
    return sorted(heads.values(), key=lambda b: b.item_code)


def _find_merge_target(lines: Sequence[InvoiceLine], picked: PickedBatch) -> Optional[int]:
    key = batch_key(picked.item_code, picked.batch)
    rate = to_decimal(picked.rate)
    for idx, line in enumerate(lines):
        if batch_key(line.item_code, line.batch) == key and to_decimal(line.rate) == rate:
            return idx
    return None


def merge_or_append_line(
    lines: Sequence[InvoiceLine], picked: PickedBatch, index: Optional[int] = None
) -> List[InvoiceLine]:
    """Land a picked batch on the draft and return the new list of lines.

    A line with the same item, batch and rate absorbs the picked quantity.
    Otherwise the picked batch fills the blank row at ``index`` (or the first
    blank row) or is appended. Lines at different rates are never merged.
    """
    result = [line.copy() for line in lines]

    target = _find_merge_target(result, picked)
    if target is not None:
        merged = result[target]
        merged.quantity += picked.quantity
        recalculate_line(merged)
        if (
            index is not None
            and index != target
            and 0 <= index < len(result)
            and result[index].is_blank
            and len(result) > 1
        ):
            del result[index]
        return result

    if index is None or not (0 <= index < len(result)) or not result[index].is_blank:
        index = next((i for i, line in enumerate(result) if line.is_blank), None)

    new_line = recalculate_line(picked.to_line())
    if index is None:
        result.append(new_line)
    else:
        result[index] = new_line
    return result
