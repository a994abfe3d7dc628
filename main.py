"""Entry point for the pharmacy billing core: sales report and stock alerts."""

import argparse
import sys
from datetime import date

from pharmabill import config
from pharmabill.data.excel_inventory import ExcelInventory
from pharmabill.data.excel_ledger import ExcelInvoiceLedger
from pharmabill.reports import sales_report
from pharmabill.stock_alerts import expired_batches, expiring_batches, inventory_stats, low_stock_batches


def _parse_args(argv):
    parser = argparse.ArgumentParser(description="Pharmacy billing tools")
    commands = parser.add_subparsers(dest="command", required=True)

    report = commands.add_parser("report", help="Sales summary over the invoice ledger")
    report.add_argument("--ledger", default=str(config.LEDGER_PATH), help="Invoice ledger workbook")
    report.add_argument("--from", dest="date_from", type=date.fromisoformat, default=None)
    report.add_argument("--to", dest="date_to", type=date.fromisoformat, default=None)

    stock = commands.add_parser("stock", help="Low stock and expiry alerts")
    stock.add_argument("--inventory", default=str(config.INVENTORY_PATH), help="Inventory workbook")
    stock.add_argument("--days", type=int, default=config.EXPIRY_WARNING_DAYS, help="Expiry warning window")
    return parser.parse_args(argv)


def _print_rows(rows) -> None:
    for label, value in rows:
        print(f"{label:<18}{value:>14}")


def _report(args) -> int:
    ledger = ExcelInvoiceLedger(args.ledger)
    report = sales_report(ledger.list_invoices(args.date_from, args.date_to), args.date_from, args.date_to)
    _print_rows([
        ("Bills", report.total_bills),
        ("Quantity", report.total_quantity),
        ("Gross sales", f"{report.gross_sales:.2f}"),
        ("CGST", f"{report.total_cgst:.2f}"),
        ("SGST", f"{report.total_sgst:.2f}"),
        ("Total tax", f"{report.total_tax:.2f}"),
        ("Net sales", f"{report.net_sales:.2f}"),
        ("Taxable bills", report.taxable_bills),
        ("Non-taxable bills", report.non_taxable_bills),
        ("Average bill", f"{report.average_bill_value:.2f}"),
    ])
    return 0


def _stock(args) -> int:
    catalog = ExcelInventory(args.inventory).get_all()
    stats = inventory_stats(catalog)
    _print_rows([
        ("Batches", stats.total_batches),
        ("Items", stats.total_items),
        ("Units", stats.total_quantity),
        ("MRP value", f"{stats.total_mrp_value:.2f}"),
        ("Out of stock", stats.out_of_stock_count),
    ])
    sections = [
        ("Low stock", low_stock_batches(catalog)),
        (f"Expiring in {args.days} days", expiring_batches(catalog, args.days)),
        ("Expired", expired_batches(catalog)),
    ]
    for title, batches in sections:
        print(f"\n{title}:")
        for batch in batches:
            print(f"  {batch.item_code:<10}{batch.batch:<10}{batch.stock_quantity:>6}  {batch.expiry_date}")
    return 0


def main(argv=None) -> int:
    args = _parse_args(argv)
    config.configure_logging()
    if args.command == "stock":
        return _stock(args)
    return _report(args)


if __name__ == "__main__":
    sys.exit(main())
