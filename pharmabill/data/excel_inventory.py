"""Excel-backed batch inventory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from openpyxl import load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from pharmabill import config
from pharmabill.exceptions import InvalidInputError
from pharmabill.models.stock import StockBatch, StockUpdateResult

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [
    "Item_Code",
    "Item_Name",
    "Batch",
    "Stock",
    "MRP",
    "Selling_Price_Tab",
    "CGST_Rate",
    "SGST_Rate",
]

# Sheet column -> StockBatch attribute.
COLUMN_FIELDS = {
    "Item_Code": "item_code",
    "Item_Name": "item_name",
    "Batch": "batch",
    "Stock": "stock_quantity",
    "MRP": "mrp",
    "Selling_Price_Tab": "selling_price_tab",
    "CGST_Rate": "cgst_rate",
    "SGST_Rate": "sgst_rate",
    "Pack": "pack",
    "Expiry_Date": "expiry_date",
    "HSN_Code": "hsn_code",
    "Reorder_Level": "reorder_level",
}

# Kept from the sheet when a purchase tops up an existing batch.
IDENTITY_COLUMNS = ("Item_Code", "Item_Name", "Batch", "Reorder_Level")


def _cell_value(value):
    return float(value) if isinstance(value, Decimal) else value


def _lookup_key(code: str, batch: str) -> Tuple[str, str]:
    # Item codes match case-insensitively, batches exactly once trimmed.
    return (str(code or "").strip().lower(), str(batch or "").strip())


@dataclass
class _RowRef:
    row_index: int
    stock_cell_ref: str


class ExcelInventory:
    """Loads batch stock from an Excel sheet and applies stock movements to it."""

    def __init__(self, path: Path | str = None, sheet_name: str | None = None) -> None:
        self.path: Path = Path(path) if path else config.INVENTORY_PATH
        self.sheet_name = sheet_name or config.INVENTORY_SHEET_NAME
        self._workbook = None
        self._sheet: Optional[Worksheet] = None
        self._col_map: Dict[str, int] = {}
        self._batches: Dict[Tuple[str, str], StockBatch] = {}
        self._row_refs: Dict[Tuple[str, str], _RowRef] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"Inventory file not found: {self.path}")

        self._workbook = load_workbook(self.path)
        if self.sheet_name not in self._workbook.sheetnames:
            raise ValueError(f"Sheet '{self.sheet_name}' not found in inventory file.")

        self._sheet = self._workbook[self.sheet_name]
        self._col_map = self._detect_columns()
        self._read_rows()
        logger.info("Loaded %d stock batches from %s", len(self._batches), self.path)

    def reload(self) -> None:
        """Re-read the workbook from disk."""
        self._load()

    def _detect_columns(self) -> Dict[str, int]:
        headers: Dict[str, int] = {}
        for idx, cell in enumerate(self._sheet[1], start=1):
            if cell.value is not None:
                headers[str(cell.value).strip()] = idx

        missing = [col for col in REQUIRED_COLUMNS if col not in headers]
        if missing:
            raise ValueError(f"Missing required columns: {', '.join(missing)}")
        return headers

    def _cell(self, row, column: str):
        idx = self._col_map.get(column)
        if idx is None:
            return None
        return row[idx - 1].value

    def _read_rows(self) -> None:
        self._batches.clear()
        self._row_refs.clear()

        for row_idx, row in enumerate(self._sheet.iter_rows(min_row=2), start=2):
            code = self._cell(row, "Item_Code")
            if code in (None, ""):
                continue

            batch = StockBatch(
                item_code=str(code).strip(),
                item_name=str(self._cell(row, "Item_Name") or "").strip(),
                batch=str(self._cell(row, "Batch") or "").strip(),
                stock_quantity=self._to_int(self._cell(row, "Stock"), default=0),
                mrp=self._to_decimal(self._cell(row, "MRP")),
                selling_price_tab=self._to_decimal(self._cell(row, "Selling_Price_Tab")),
                cgst_rate=self._to_decimal(self._cell(row, "CGST_Rate")),
                sgst_rate=self._to_decimal(self._cell(row, "SGST_Rate")),
                pack=self._to_int(self._cell(row, "Pack"), default=1),
                expiry_date=self._to_text(self._cell(row, "Expiry_Date")),
                hsn_code=self._to_text(self._cell(row, "HSN_Code")),
                reorder_level=self._to_int(
                    self._cell(row, "Reorder_Level"), default=config.DEFAULT_REORDER_LEVEL
                ),
            )
            key = _lookup_key(batch.item_code, batch.batch)
            if key in self._batches:
                logger.warning(
                    "Duplicate batch %s [%s] on row %d ignored", batch.item_code, batch.batch, row_idx
                )
                continue
            self._batches[key] = batch
            stock_cell = row[self._col_map["Stock"] - 1].coordinate
            self._row_refs[key] = _RowRef(row_index=row_idx, stock_cell_ref=stock_cell)

    @staticmethod
    def _to_int(value, default: int) -> int:
        if value in (None, ""):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _to_decimal(value) -> Decimal:
        if value in (None, ""):
            return Decimal("0")
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            return Decimal("0")

    @staticmethod
    def _to_text(value) -> str:
        if value in (None, ""):
            return ""
        if isinstance(value, (datetime, date)):
            return value.strftime("%Y-%m-%d")
        return str(value).strip()

    def get_all(self) -> List[StockBatch]:
        """Return every batch in sheet order."""
        return list(self._batches.values())

    def get_batch(self, code: str, batch: str) -> Optional[StockBatch]:
        return self._batches.get(_lookup_key(code, batch))

    def decrement_stock_by_code_batch(self, code: str, batch: str, qty: int) -> StockUpdateResult:
        """Take ``qty`` units off a batch; stock never drops below zero."""
        return self._apply_delta(code, batch, qty, sign=-1)

    def increment_stock_by_code_batch(self, code: str, batch: str, qty: int) -> StockUpdateResult:
        """Put ``qty`` units back on a batch, used for returns."""
        return self._apply_delta(code, batch, qty, sign=1)

    def _apply_delta(self, code: str, batch: str, qty: int, sign: int) -> StockUpdateResult:
        if qty < 0:
            raise InvalidInputError("Quantity cannot be negative.", {"field": "qty"})
        key = _lookup_key(code, batch)
        record = self._batches.get(key)
        if record is None:
            logger.warning("Stock batch not found: %s [%s]", code, batch)
            return StockUpdateResult(success=False, new_stock=0, item_name="")

        new_stock = max(0, record.stock_quantity + sign * qty)
        self._sheet[self._row_refs[key].stock_cell_ref].value = new_stock
        self._commit()
        self._batches[key] = replace(record, stock_quantity=new_stock)
        logger.info(
            "Stock %s [%s]: %d -> %d", record.item_code, record.batch, record.stock_quantity, new_stock
        )
        return StockUpdateResult(success=True, new_stock=new_stock, item_name=record.item_name)

    def receive_batch(self, incoming: StockBatch, qty: int) -> StockUpdateResult:
        """Add ``qty`` units of a purchased batch, creating the row when it is new.

        An existing batch keeps its name and gets the incoming prices, tax
        rates, pack, expiry and HSN code.
        """
        if qty < 0:
            raise InvalidInputError("Quantity cannot be negative.", {"field": "qty"})
        key = _lookup_key(incoming.item_code, incoming.batch)
        if not key[0] or not key[1]:
            raise InvalidInputError("Item code and batch are required.", {"field": "item_code"})

        record = self._batches.get(key)
        if record is None:
            row_index = self._sheet.max_row + 1
            updated = replace(incoming, stock_quantity=qty)
            columns = COLUMN_FIELDS
        else:
            row_index = self._row_refs[key].row_index
            updated = replace(
                incoming,
                item_code=record.item_code,
                item_name=record.item_name,
                batch=record.batch,
                stock_quantity=record.stock_quantity + qty,
                reorder_level=record.reorder_level,
            )
            columns = {col: name for col, name in COLUMN_FIELDS.items() if col not in IDENTITY_COLUMNS}

        for column, attr in columns.items():
            idx = self._col_map.get(column)
            if idx is not None:
                self._sheet.cell(row=row_index, column=idx).value = _cell_value(getattr(updated, attr))
        self._commit()

        self._batches[key] = updated
        stock_cell = self._sheet.cell(row=row_index, column=self._col_map["Stock"]).coordinate
        self._row_refs[key] = _RowRef(row_index=row_index, stock_cell_ref=stock_cell)
        logger.info(
            "Received %d of %s [%s], stock now %d%s",
            qty, updated.item_code, updated.batch, updated.stock_quantity, " (new batch)" if record is None else "",
        )
        return StockUpdateResult(
            success=True, new_stock=updated.stock_quantity, item_name=updated.item_name, created=record is None
        )

    def _commit(self) -> None:
        """Save the workbook; on failure drop the unsaved edits by reloading from disk."""
        try:
            self.save()
        except Exception:
            logger.exception("Failed to save inventory %s, reloading", self.path)
            self._load()
            raise

    def save(self) -> None:
        """Persist changes to disk."""
        self._workbook.save(self.path)

    def self_check(self) -> bool:
        """Verify required columns exist; returns True when valid."""
        return all(col in self._col_map for col in REQUIRED_COLUMNS)
