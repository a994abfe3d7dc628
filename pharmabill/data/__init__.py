"""Workbook-backed inventory and invoice stores."""

from pharmabill.data.excel_inventory import ExcelInventory
from pharmabill.data.excel_ledger import ExcelInvoiceLedger
from pharmabill.data.interfaces import InventoryGateway, InvoiceStore, PurchaseStore

__all__ = ["ExcelInventory", "ExcelInvoiceLedger", "InventoryGateway", "InvoiceStore", "PurchaseStore"]
