"""Excel-backed store for saved sales invoices."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from pharmabill import config
from pharmabill.exceptions import NotFoundError
from pharmabill.models.invoice import InvoiceLine, InvoiceRecord, InvoiceTotals, SavedInvoice
from pharmabill.models.purchase import PurchaseInvoice, PurchaseLine

logger = logging.getLogger(__name__)

SEQ_KEY = "invoiceSeq"

INVOICE_COLUMNS = [
    "Invoice_No",
    "Invoice_Date",
    "Customer_Name",
    "Contact_No",
    "Doctor_Name",
    "Sale_Type",
    "Payment_Mode",
    "Discount_Percent",
    "Total_Qty",
    "Gross_Total",
    "Total_CGST",
    "Total_SGST",
    "Total_Tax",
    "Bill_Amount",
    "Discount_Amount",
    "After_Discount",
    "Round_Off",
    "Final_Amount",
    "Saved_From_MRP",
    "Status",
    "Created_At",
]

LINE_COLUMNS = [
    "Invoice_No",
    "Line_No",
    "Item_Code",
    "Item_Name",
    "HSN_Code",
    "Batch",
    "Expiry_Date",
    "Pack",
    "Quantity",
    "MRP",
    "Rate",
    "Gross_Amt",
    "CGST_Percent",
    "CGST_Amt",
    "SGST_Percent",
    "SGST_Amt",
    "Total",
    "Returned_Qty",
]

PURCHASE_COLUMNS = [
    "Invoice_No",
    "Bill_Date",
    "Supplier",
    "Payment_Mode",
    "Line_No",
    "Item_Code",
    "Item_Name",
    "Batch",
    "Expiry_Date",
    "HSN_Code",
    "Pack",
    "Quantity",
    "Free",
    "Rate",
    "MRP",
    "Discount_Percent",
    "CGST_Percent",
    "SGST_Percent",
    "Taxable_Amt",
    "CGST_Amt",
    "SGST_Amt",
    "Amount",
    "Created_At",
]

# InvoiceTotals field -> header column.
TOTALS_COLUMNS = {
    "total_qty": "Total_Qty",
    "gross_total": "Gross_Total",
    "total_cgst": "Total_CGST",
    "total_sgst": "Total_SGST",
    "total_tax": "Total_Tax",
    "bill_amount": "Bill_Amount",
    "discount_amount": "Discount_Amount",
    "after_discount": "After_Discount",
    "round_off": "Round_Off",
    "final_amount": "Final_Amount",
    "saved_from_mrp": "Saved_From_MRP",
}


def _money(value) -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    return Decimal(str(value))


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class ExcelInvoiceLedger:
    """Keeps invoices, their lines and the invoice number sequence in one workbook.

    The sequence lives in the ``Meta`` sheet and is only advanced inside
    :meth:`save_invoice`, in the same workbook write as the invoice rows, so a
    number is never handed out for an invoice that was not stored.
    """

    def __init__(self, path: Path | str = None) -> None:
        self.path: Path = Path(path) if path else config.LEDGER_PATH
        self._workbook = None
        self._load()

    def _load(self) -> None:
        if self.path.exists():
            self._workbook = load_workbook(self.path)
        else:
            self._workbook = self._new_workbook()
            logger.info("Created new invoice ledger at %s", self.path)

        for name in (config.INVOICES_SHEET, config.LINES_SHEET, config.META_SHEET):
            if name not in self._workbook.sheetnames:
                raise ValueError(f"Sheet '{name}' not found in ledger file.")

    @staticmethod
    def _new_workbook() -> Workbook:
        workbook = Workbook()
        workbook.remove(workbook.active)
        workbook.create_sheet(config.INVOICES_SHEET).append(INVOICE_COLUMNS)
        workbook.create_sheet(config.LINES_SHEET).append(LINE_COLUMNS)
        workbook.create_sheet(config.PURCHASES_SHEET).append(PURCHASE_COLUMNS)
        meta = workbook.create_sheet(config.META_SHEET)
        meta.append(["Key", "Value"])
        meta.append([SEQ_KEY, config.INVOICE_SEQ_START])
        return workbook

    @property
    def _invoices(self) -> Worksheet:
        return self._workbook[config.INVOICES_SHEET]

    @property
    def _lines(self) -> Worksheet:
        return self._workbook[config.LINES_SHEET]

    @property
    def _meta(self) -> Worksheet:
        return self._workbook[config.META_SHEET]

    def _seq_cell(self):
        for row in self._meta.iter_rows(min_row=2):
            if row[0].value == SEQ_KEY:
                return row[1]
        self._meta.append([SEQ_KEY, config.INVOICE_SEQ_START])
        return self._meta.cell(row=self._meta.max_row, column=2)

    def peek_next_number(self) -> str:
        """Number the next saved invoice will get. Informational only."""
        return str(int(self._seq_cell().value or config.INVOICE_SEQ_START))

    def save_invoice(self, record: InvoiceRecord) -> SavedInvoice:
        seq_cell = self._seq_cell()
        seq = int(seq_cell.value or config.INVOICE_SEQ_START)
        invoice_no = str(seq)

        header = {
            "Invoice_No": invoice_no,
            "Invoice_Date": record.invoice_date,
            "Customer_Name": record.customer_name,
            "Contact_No": record.contact_no,
            "Doctor_Name": record.doctor_name,
            "Sale_Type": record.sale_type,
            "Payment_Mode": record.payment_mode,
            "Discount_Percent": float(record.discount_percent),
            "Status": record.status,
            "Created_At": record.created_at,
        }
        for field_name, column in TOTALS_COLUMNS.items():
            value = getattr(record.totals, field_name)
            header[column] = value if isinstance(value, int) else float(value)

        try:
            self._invoices.append([header[col] for col in INVOICE_COLUMNS])
            for line_no, line in enumerate(record.lines, start=1):
                self._lines.append(self._line_row(invoice_no, line_no, line))
            seq_cell.value = seq + 1
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._workbook.save(self.path)
        except Exception:
            logger.exception("Failed to save invoice %s, discarding unsaved rows", invoice_no)
            self._load()
            raise

        record.invoice_no = invoice_no
        logger.info("Saved invoice %s with %d lines", invoice_no, len(record.lines))
        return SavedInvoice(id=seq, invoice_no=invoice_no)

    @staticmethod
    def _line_row(invoice_no: str, line_no: int, line: InvoiceLine) -> list:
        return [
            invoice_no,
            line_no,
            line.item_code,
            line.item_name,
            line.hsn_code,
            line.batch,
            line.expiry_date,
            line.pack,
            line.quantity,
            float(line.mrp),
            float(line.rate),
            float(line.gross_amt),
            float(line.cgst_percent),
            float(line.cgst_amt),
            float(line.sgst_percent),
            float(line.sgst_amt),
            float(line.total),
            line.returned_qty,
        ]

    def _read_lines(self) -> Dict[str, List[InvoiceLine]]:
        col = {name: idx for idx, name in enumerate(LINE_COLUMNS)}
        grouped: Dict[str, List[InvoiceLine]] = {}
        for values in self._lines.iter_rows(min_row=2, values_only=True):
            if values[col["Invoice_No"]] in (None, ""):
                continue
            line = InvoiceLine(
                item_code=str(values[col["Item_Code"]] or ""),
                item_name=str(values[col["Item_Name"]] or ""),
                hsn_code=str(values[col["HSN_Code"]] or ""),
                batch=str(values[col["Batch"]] or ""),
                expiry_date=str(values[col["Expiry_Date"]] or ""),
                pack=int(values[col["Pack"]] or 1),
                quantity=int(values[col["Quantity"]] or 0),
                mrp=_money(values[col["MRP"]]),
                rate=_money(values[col["Rate"]]),
                gross_amt=_money(values[col["Gross_Amt"]]),
                cgst_percent=_money(values[col["CGST_Percent"]]),
                cgst_amt=_money(values[col["CGST_Amt"]]),
                sgst_percent=_money(values[col["SGST_Percent"]]),
                sgst_amt=_money(values[col["SGST_Amt"]]),
                total=_money(values[col["Total"]]),
                returned_qty=int(values[col["Returned_Qty"]] or 0),
            )
            grouped.setdefault(str(values[col["Invoice_No"]]), []).append(line)
        return grouped

    def _to_record(self, values, lines: List[InvoiceLine]) -> InvoiceRecord:
        col = {name: idx for idx, name in enumerate(INVOICE_COLUMNS)}
        totals = {
            field_name: _money(values[col[column]])
            for field_name, column in TOTALS_COLUMNS.items()
        }
        totals["total_qty"] = int(values[col["Total_Qty"]] or 0)
        created_at = values[col["Created_At"]]
        return InvoiceRecord(
            invoice_no=str(values[col["Invoice_No"]]),
            invoice_date=_as_date(values[col["Invoice_Date"]]),
            customer_name=values[col["Customer_Name"]] or "",
            contact_no=str(values[col["Contact_No"]] or ""),
            doctor_name=values[col["Doctor_Name"]] or "",
            sale_type=values[col["Sale_Type"]] or "B2C",
            payment_mode=values[col["Payment_Mode"]] or "Cash",
            discount_percent=_money(values[col["Discount_Percent"]]),
            status=values[col["Status"]] or "",
            created_at=created_at if isinstance(created_at, datetime) else datetime.now(),
            lines=lines,
            totals=InvoiceTotals(**totals),
        )

    def list_invoices(
        self, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> List[InvoiceRecord]:
        """Invoices dated within the inclusive range, in the order they were saved."""
        lines = self._read_lines()
        records: List[InvoiceRecord] = []
        for values in self._invoices.iter_rows(min_row=2, values_only=True):
            if values[0] in (None, ""):
                continue
            record = self._to_record(values, lines.get(str(values[0]), []))
            if date_from and record.invoice_date < date_from:
                continue
            if date_to and record.invoice_date > date_to:
                continue
            records.append(record)
        return records

    def get_invoice(self, invoice_no: str) -> Optional[InvoiceRecord]:
        for values in self._invoices.iter_rows(min_row=2, values_only=True):
            if str(values[0]) == str(invoice_no):
                return self._to_record(values, self._read_lines().get(str(invoice_no), []))
        return None

    def record_return(self, invoice_no: str, quantities: Dict[int, int], status: str) -> None:
        header_row = None
        for row in self._invoices.iter_rows(min_row=2):
            if str(row[0].value) == str(invoice_no):
                header_row = row
                break
        if header_row is None:
            raise NotFoundError(f"Invoice {invoice_no} not found.")

        line_no_idx = LINE_COLUMNS.index("Line_No")
        returned_idx = LINE_COLUMNS.index("Returned_Qty")
        for row in self._lines.iter_rows(min_row=2):
            if str(row[0].value) != str(invoice_no):
                continue
            qty = quantities.get(int(row[line_no_idx].value or 0), 0)
            if qty:
                row[returned_idx].value = int(row[returned_idx].value or 0) + qty

        header_row[INVOICE_COLUMNS.index("Status")].value = status
        try:
            self._workbook.save(self.path)
        except Exception:
            logger.exception("Failed to record return on invoice %s, discarding unsaved changes", invoice_no)
            self._load()
            raise
        logger.info("Recorded return on invoice %s: %s", invoice_no, quantities)

    # Purchases

    @property
    def _purchases(self) -> Worksheet:
        # Ledgers written before purchases were tracked have no such sheet yet.
        if config.PURCHASES_SHEET not in self._workbook.sheetnames:
            self._workbook.create_sheet(config.PURCHASES_SHEET).append(PURCHASE_COLUMNS)
        return self._workbook[config.PURCHASES_SHEET]

    def has_purchase(self, invoice_no: str, supplier: str) -> bool:
        wanted = (str(invoice_no).strip().lower(), str(supplier or "").strip().lower())
        for values in self._purchases.iter_rows(min_row=2, values_only=True):
            if (str(values[0] or "").strip().lower(), str(values[2] or "").strip().lower()) == wanted:
                return True
        return False

    def save_purchase(self, purchase: PurchaseInvoice) -> None:
        """Append one row per purchase line and save."""
        try:
            for line_no, line in enumerate(purchase.lines, start=1):
                self._purchases.append([
                    purchase.invoice_no,
                    purchase.bill_date,
                    purchase.supplier,
                    purchase.payment_mode,
                    line_no,
                    line.item_code,
                    line.item_name,
                    line.batch,
                    line.expiry_date,
                    line.hsn_code,
                    line.pack,
                    line.quantity,
                    line.free,
                    float(line.rate),
                    float(line.mrp),
                    float(line.discount_percent),
                    float(line.cgst_percent),
                    float(line.sgst_percent),
                    float(line.taxable_amt),
                    float(line.cgst_amt),
                    float(line.sgst_amt),
                    float(line.amount),
                    purchase.created_at,
                ])
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._workbook.save(self.path)
        except Exception:
            logger.exception("Failed to save purchase %s, discarding unsaved rows", purchase.invoice_no)
            self._load()
            raise
        logger.info(
            "Saved purchase %s from %s with %d lines", purchase.invoice_no, purchase.supplier, len(purchase.lines)
        )

    def list_purchases(
        self, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> List[PurchaseInvoice]:
        """Purchases billed within the inclusive range, in the order they were saved."""
        col = {name: idx for idx, name in enumerate(PURCHASE_COLUMNS)}
        purchases: Dict[tuple, PurchaseInvoice] = {}
        for values in self._purchases.iter_rows(min_row=2, values_only=True):
            if values[col["Invoice_No"]] in (None, ""):
                continue
            bill_date = _as_date(values[col["Bill_Date"]])
            if date_from and bill_date < date_from:
                continue
            if date_to and bill_date > date_to:
                continue
            key = (str(values[col["Invoice_No"]]), str(values[col["Supplier"]] or ""))
            purchase = purchases.get(key)
            if purchase is None:
                created_at = values[col["Created_At"]]
                purchase = purchases[key] = PurchaseInvoice(
                    invoice_no=key[0],
                    bill_date=bill_date,
                    supplier=key[1],
                    payment_mode=values[col["Payment_Mode"]] or "Cash",
                    created_at=created_at if isinstance(created_at, datetime) else datetime.now(),
                )
            purchase.lines.append(PurchaseLine(
                item_code=str(values[col["Item_Code"]] or ""),
                item_name=str(values[col["Item_Name"]] or ""),
                batch=str(values[col["Batch"]] or ""),
                expiry_date=str(values[col["Expiry_Date"]] or ""),
                hsn_code=str(values[col["HSN_Code"]] or ""),
                pack=int(values[col["Pack"]] or 1),
                quantity=int(values[col["Quantity"]] or 0),
                free=int(values[col["Free"]] or 0),
                rate=_money(values[col["Rate"]]),
                mrp=_money(values[col["MRP"]]),
                discount_percent=_money(values[col["Discount_Percent"]]),
                cgst_percent=_money(values[col["CGST_Percent"]]),
                sgst_percent=_money(values[col["SGST_Percent"]]),
                taxable_amt=_money(values[col["Taxable_Amt"]]),
                cgst_amt=_money(values[col["CGST_Amt"]]),
                sgst_amt=_money(values[col["SGST_Amt"]]),
                amount=_money(values[col["Amount"]]),
            ))
        return list(purchases.values())
