import pytest
from dataclasses import replace
from decimal import Decimal
from openpyxl import Workbook

from pharmabill.data.excel_inventory import ExcelInventory
from pharmabill.data.excel_ledger import ExcelInvoiceLedger
from pharmabill.models import StockBatch, StockUpdateResult
from pharmabill.services.billing import BillingSession


INVENTORY_HEADER = [
    'Item_Code', 'Item_Name', 'Batch', 'Expiry_Date', 'Pack', 'MRP',
    'Selling_Price_Tab', 'CGST_Rate', 'SGST_Rate', 'Stock', 'HSN_Code',
]

INVENTORY_ROWS = [
    ['PCM500', 'Paracetamol 500', 'B1', '2027-06-30', 10, 100, 88, 6, 6, 20, '3004'],
    ['PCM500', 'Paracetamol 500', 'B2', '2027-12-31', 10, 100, 50, 6, 6, 5, '3004'],
    ['AMX250', 'Amoxicillin 250', 'A1', '2026-11-30', 10, 120, 114, 2.5, 2.5, 3, '3004'],
    ['ORS', 'ORS Sachet', 'O1', '', 1, 20, 20, 0, 0, 0, ''],
]


def write_inventory(path, header=INVENTORY_HEADER, rows=INVENTORY_ROWS, sheet_name='Products'):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    sheet.append(header)
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


class FakeInventory:
    """In-memory inventory; codes listed in ``failing`` raise on every stock movement."""

    def __init__(self, batches, failing=()):
        self.batches = {b.key: b for b in batches}
        self.failing = set(failing)
        self.calls = []

    def get_all(self):
        return list(self.batches.values())

    def _update(self, code, batch, qty, sign):
        self.calls.append((code, batch, sign * qty))
        if code in self.failing:
            raise RuntimeError('inventory offline')
        record = self.batches.get((code, batch))
        if record is None:
            return StockUpdateResult(success=False)
        new_stock = max(0, record.stock_quantity + sign * qty)
        self.batches[record.key] = replace(record, stock_quantity=new_stock)
        return StockUpdateResult(success=True, new_stock=new_stock, item_name=record.item_name)

    def decrement_stock_by_code_batch(self, code, batch, qty):
        return self._update(code, batch, qty, -1)

    def increment_stock_by_code_batch(self, code, batch, qty):
        return self._update(code, batch, qty, 1)

    def receive_batch(self, incoming, qty):
        self.calls.append((incoming.item_code, incoming.batch, qty))
        if incoming.item_code in self.failing:
            raise RuntimeError('inventory offline')
        record = self.batches.get(incoming.key)
        stock = qty + (record.stock_quantity if record else 0)
        self.batches[incoming.key] = replace(incoming, stock_quantity=stock)
        return StockUpdateResult(success=True, new_stock=stock, item_name=incoming.item_name, created=record is None)


class FailingStore:
    """Invoice store whose saves always fail."""

    def __init__(self):
        self.attempts = 0

    def save_invoice(self, record):
        self.attempts += 1
        raise OSError('disk full')

    def get_invoice(self, invoice_no):
        return None

    def list_invoices(self, date_from=None, date_to=None):
        return []

    def record_return(self, invoice_no, quantities, status):
        raise OSError('disk full')

    def has_purchase(self, invoice_no, supplier):
        return False

    def save_purchase(self, purchase):
        self.attempts += 1
        raise OSError('disk full')


@pytest.fixture
def inventory_path(tmp_path):
    """Workbook with four batches across three items."""
    return write_inventory(tmp_path / 'inventory.xlsx')


@pytest.fixture
def inventory(inventory_path):
    return ExcelInventory(inventory_path)


@pytest.fixture
def ledger(tmp_path):
    return ExcelInvoiceLedger(tmp_path / 'sales.xlsx')


@pytest.fixture
def session(inventory, ledger):
    """Billing session over the Excel inventory and ledger, catalog loaded."""
    billing = BillingSession(inventory, ledger)
    billing.load_catalog()
    return billing


@pytest.fixture
def paracetamol_b1():
    return StockBatch(
        item_code='PCM500', item_name='Paracetamol 500', batch='B1', stock_quantity=20,
        mrp=Decimal('100'), selling_price_tab=Decimal('88'),
        cgst_rate=Decimal('6'), sgst_rate=Decimal('6'), pack=10,
    )


@pytest.fixture
def amoxicillin_a1():
    return StockBatch(
        item_code='AMX250', item_name='Amoxicillin 250', batch='A1', stock_quantity=3,
        mrp=Decimal('120'), selling_price_tab=Decimal('114'),
        cgst_rate=Decimal('2.5'), sgst_rate=Decimal('2.5'), pack=10,
    )


@pytest.fixture
def make_fake_inventory(paracetamol_b1, amoxicillin_a1):
    """Build an in-memory inventory holding the two sample batches."""
    def _make(failing=()):
        return FakeInventory([paracetamol_b1, amoxicillin_a1], failing=failing)
    return _make


@pytest.fixture
def failing_store():
    return FailingStore()
