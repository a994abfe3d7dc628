"""
Unit tests for low stock and expiry alerts.
"""

from datetime import date
from decimal import Decimal

from pharmabill.models import StockBatch
from pharmabill.stock_alerts import (
    expired_batches,
    expiring_batches,
    inventory_stats,
    low_stock_batches,
    out_of_stock_batches,
    parse_expiry,
)

TODAY = date(2026, 10, 19)


def stock(code, batch, qty, expiry='', reorder=10, mrp=0):
    return StockBatch(
        item_code=code, item_name=f'Item {code}', batch=batch, stock_quantity=qty,
        mrp=Decimal(str(mrp)), expiry_date=expiry, reorder_level=reorder,
    )


CATALOG = [
    stock('A', '1', 5, expiry='2026-10-25', mrp=10),
    stock('A', '2', 0, expiry='2027-01-31'),
    stock('B', '1', 50, expiry='2026-09-30'),
    stock('C', '1', 10, expiry='11/26'),
    stock('D', '1', 20),
]


def keys(batches):
    return [(b.item_code, b.batch) for b in batches]


class TestParseExpiry:
    """Tests for reading expiry dates."""

    def test_iso_date(self):
        assert parse_expiry('2027-06-30') == date(2027, 6, 30)

    def test_month_and_year_is_end_of_month(self):
        assert parse_expiry('06/27') == date(2027, 6, 30)
        assert parse_expiry('02/2028') == date(2028, 2, 29)

    def test_unreadable(self):
        assert parse_expiry('') is None
        assert parse_expiry('soon') is None
        assert parse_expiry('13/27') is None


class TestAlerts:
    """Tests for the batch lists behind inventory alerts."""

    def test_low_stock(self):
        assert keys(low_stock_batches(CATALOG)) == [('A', '1'), ('C', '1')]

    def test_out_of_stock(self):
        assert keys(out_of_stock_batches(CATALOG)) == [('A', '2')]

    def test_expired(self):
        assert keys(expired_batches(CATALOG, today=TODAY)) == [('B', '1')]

    def test_expiring_within_default_window(self):
        assert keys(expiring_batches(CATALOG, today=TODAY)) == [('A', '1')]

    def test_expiring_within_wider_window(self):
        assert keys(expiring_batches(CATALOG, days=60, today=TODAY)) == [('A', '1'), ('C', '1')]

    def test_stats(self):
        stats = inventory_stats(CATALOG, today=TODAY)

        assert stats.total_batches == 5
        assert stats.total_items == 4
        assert stats.total_quantity == 85
        assert stats.total_mrp_value == Decimal('50.00')
        assert (stats.low_stock_count, stats.out_of_stock_count) == (2, 1)
        assert (stats.expired_count, stats.expiring_count) == (1, 1)
