"""
Tests for the billing session: picking, editing and saving a draft invoice.
"""

import pytest
from decimal import Decimal

from pharmabill.data.excel_inventory import ExcelInventory
from pharmabill.data.excel_ledger import ExcelInvoiceLedger
from pharmabill.exceptions import InsufficientStockError, InvalidInputError, PersistenceError
from pharmabill.models import InvoiceLine
from pharmabill.services.billing import BillingSession, DraftState


def batch_of(session, code, batch):
    return next(b for b in session.catalog if b.item_code == code and b.batch == batch)


class TestPicking:
    """Tests for putting catalog batches on the draft."""

    def test_pick_fills_first_row(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 3)

        lines = session.draft.lines
        assert len(lines) == 1
        assert lines[0].rate == Decimal('81.84')
        assert lines[0].total == Decimal('245.52')
        assert lines[0].gross_amt == Decimal('219.21')
        assert lines[0].cgst_amt == Decimal('13.15')
        assert session.state == DraftState.EDITING

    def test_pick_reserves_stock(self, session):
        b1 = batch_of(session, 'PCM500', 'B1')
        session.pick(b1, 3)

        assert session.pending == {('PCM500', 'B1'): 3}
        assert session.available_for(b1) == 17

    def test_pick_clamps_to_available(self, session):
        session.pick(batch_of(session, 'AMX250', 'A1'), 10)
        assert session.draft.lines[0].quantity == 3

    def test_exhausted_batch_leaves_picker(self, session):
        a1 = batch_of(session, 'AMX250', 'A1')
        session.pick(a1, 3)

        assert a1 not in session.pickable()
        assert [b.item_code for b in session.search('amox')] == []
        with pytest.raises(InsufficientStockError):
            session.pick(a1, 1)

    def test_out_of_stock_batch_never_offered(self, session):
        assert 'ORS' not in {b.item_code for b in session.pickable()}

    def test_pick_same_batch_twice_merges(self, session):
        b1 = batch_of(session, 'PCM500', 'B1')
        session.pick(b1, 2)
        session.add_blank_line()
        session.pick(b1, 4, index=1)

        assert len(session.draft.lines) == 1
        assert session.draft.lines[0].quantity == 6

    def test_second_batch_gets_its_own_row(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 2)
        session.pick(batch_of(session, 'PCM500', 'B2'), 2)

        assert [(l.batch, l.rate) for l in session.draft.lines] == [
            ('B1', Decimal('81.84')), ('B2', Decimal('50.00')),
        ]

    def test_zero_quantity_pick_rejected(self, session):
        with pytest.raises(InvalidInputError):
            session.pick(batch_of(session, 'PCM500', 'B1'), 0)


class TestEditing:
    """Tests for editing lines after they are on the draft."""

    def test_update_recomputes(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)

        line = session.update_line(0, quantity=10, rate='115')

        assert line.total == Decimal('1150.00')
        assert line.gross_amt == Decimal('1026.79')

    def test_update_quantity_clamped_to_stock(self, session):
        session.pick(batch_of(session, 'PCM500', 'B2'), 1)
        line = session.update_line(0, quantity=50)
        assert line.quantity == 5

    def test_clamp_counts_other_rows_on_same_batch(self, session):
        b2 = batch_of(session, 'PCM500', 'B2')
        session.pick(b2, 2)
        session.update_line(0, rate='45')
        session.pick(b2, 1)

        line = session.update_line(1, quantity=9)

        assert line.quantity == 3
        assert session.pending == {('PCM500', 'B2'): 5}

    def test_negative_values_rejected(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        with pytest.raises(InvalidInputError):
            session.update_line(0, quantity=-1)
        with pytest.raises(InvalidInputError):
            session.update_line(0, rate='-5')

    def test_unknown_field_rejected(self, session):
        with pytest.raises(InvalidInputError):
            session.update_line(0, colour='red')

    def test_rejected_edit_leaves_line_unchanged(self, session):
        """A bad field anywhere in the edit means none of it is applied."""
        session.pick(batch_of(session, 'AMX250', 'A1'), 1)

        with pytest.raises(InvalidInputError):
            session.update_line(0, quantity=10, rate='-1')

        line = session.draft.lines[0]
        assert line.quantity == 1
        assert line.rate == Decimal('114.00')
        assert line.total == Decimal('114.00')

    def test_item_code_case_still_clamped(self, session):
        line = session.update_line(0, item_code='amx250', batch='A1 ', quantity=50, rate='100')

        assert line.quantity == 3
        assert (line.item_code, line.batch) == ('AMX250', 'A1')
        assert session.pending == {('AMX250', 'A1'): 3}

    def test_negative_tax_percent_reported(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        session.draft.lines[0].cgst_percent = Decimal('-6')

        assert 'Line 1: amounts cannot be negative' in session.validate()

    def test_last_row_is_kept(self, session):
        session.remove_line(0)
        assert len(session.draft.lines) == 1

    def test_totals_use_discount(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        session.update_line(0, quantity=10, rate='115')
        session.set_discount(10)

        totals = session.totals()

        assert totals.bill_amount == Decimal('1150.00')
        assert totals.after_discount == Decimal('1035.00')
        assert totals.final_amount == Decimal('1035')

    def test_discount_out_of_range(self, session):
        with pytest.raises(InvalidInputError):
            session.set_discount(120)

    def test_discard_resets(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        session.discard()

        assert session.state == DraftState.EMPTY
        assert session.draft.lines[0].is_blank
        assert session.pending == {}


class TestSave:
    """Tests for persisting the draft and moving stock."""

    def test_save_persists_then_decrements(self, session, ledger, inventory):
        session.set_header(customer_name='Asha', payment_mode='Card')
        session.pick(batch_of(session, 'PCM500', 'B1'), 3)
        session.pick(batch_of(session, 'AMX250', 'A1'), 5)

        outcome = session.save()

        assert outcome.invoice.invoice_no == '1'
        assert outcome.warnings == []
        assert [r.new_stock for r in outcome.stock_results] == [17, 0]
        assert inventory.get_batch('PCM500', 'B1').stock_quantity == 17

        stored = ledger.get_invoice('1')
        assert stored.customer_name == 'Asha'
        assert len(stored.lines) == 2
        assert stored.totals.bill_amount == Decimal('587.52')
        assert stored.totals.final_amount == Decimal('588')
        assert stored.totals.round_off == Decimal('0.48')

    def test_save_resets_draft_and_reloads_catalog(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 3)

        session.save()

        assert session.state == DraftState.EMPTY
        assert len(session.draft.lines) == 1
        assert session.draft.lines[0].is_blank
        assert batch_of(session, 'PCM500', 'B1').stock_quantity == 17

    def test_next_invoice_gets_next_number(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        session.save()
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)

        assert session.save().invoice.invoice_no == '2'

    def test_blank_rows_are_not_saved(self, session, ledger):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        session.add_blank_line()

        session.save()

        assert len(ledger.get_invoice('1').lines) == 1

    def test_empty_draft_blocked(self, session, ledger):
        with pytest.raises(InvalidInputError):
            session.save()
        assert ledger.list_invoices() == []

    def test_save_refuses_more_than_stock(self, session, ledger, inventory):
        """Lines written straight onto the draft are still checked against the catalog."""
        session.draft.lines[0] = InvoiceLine(item_code='amx250', batch='A1', quantity=50, rate=Decimal('100'))

        with pytest.raises(InsufficientStockError):
            session.save()

        assert ledger.list_invoices() == []
        assert inventory.get_batch('AMX250', 'A1').stock_quantity == 3

    def test_save_refuses_rows_that_add_up_past_stock(self, session, ledger):
        a1 = batch_of(session, 'AMX250', 'A1')
        session.pick(a1, 2)
        session.draft.lines.append(InvoiceLine(item_code='AMX250', batch='A1', quantity=2, rate=Decimal('90')))

        with pytest.raises(InsufficientStockError):
            session.save()
        assert ledger.list_invoices() == []

    def test_line_without_item_blocked(self, session):
        session.pick(batch_of(session, 'PCM500', 'B1'), 1)
        session.add_blank_line()
        session.update_line(1, quantity=2)

        with pytest.raises(InvalidInputError, match='item is missing'):
            session.save()

    def test_persistence_failure_touches_no_stock(self, make_fake_inventory, failing_store):
        inventory = make_fake_inventory()
        session = BillingSession(inventory, failing_store)
        session.load_catalog()
        session.pick(inventory.batches[('PCM500', 'B1')], 2)

        with pytest.raises(PersistenceError):
            session.save()

        assert inventory.calls == []
        assert session.draft.lines[0].quantity == 2
        assert session.state == DraftState.EDITING

    def test_stock_failure_is_a_warning(self, make_fake_inventory, ledger):
        inventory = make_fake_inventory(failing={'PCM500'})
        session = BillingSession(inventory, ledger)
        session.load_catalog()
        session.pick(inventory.batches[('PCM500', 'B1')], 2)
        session.pick(inventory.batches[('AMX250', 'A1')], 1)

        outcome = session.save()

        assert outcome.invoice.invoice_no == '1'
        assert len(outcome.warnings) == 1
        assert 'PCM500' in outcome.warnings[0]
        assert [c[0] for c in inventory.calls] == ['PCM500', 'AMX250']
        assert inventory.batches[('AMX250', 'A1')].stock_quantity == 2
        assert ledger.get_invoice('1') is not None

    def test_missing_batch_is_a_warning(self, make_fake_inventory, ledger):
        inventory = make_fake_inventory()
        session = BillingSession(inventory, ledger)
        session.load_catalog()
        session.pick(inventory.batches[('PCM500', 'B1')], 2)
        del inventory.batches[('PCM500', 'B1')]

        outcome = session.save()

        assert outcome.warnings == ['Not found: PCM500/B1']
        assert outcome.stock_results[0].success is False


class TestAgainstWorkbooks:
    """End-to-end run over workbooks on disk."""

    def test_two_sessions_share_the_ledger_sequence(self, inventory_path, tmp_path):
        first = BillingSession(ExcelInventory(inventory_path), ExcelInvoiceLedger(tmp_path / 'a.xlsx'))
        first.load_catalog()
        first.pick(batch_of(first, 'PCM500', 'B2'), 1)
        first.save()

        second = BillingSession(ExcelInventory(inventory_path), ExcelInvoiceLedger(tmp_path / 'a.xlsx'))
        second.load_catalog()
        second.pick(batch_of(second, 'PCM500', 'B2'), 1)

        assert batch_of(second, 'PCM500', 'B2').stock_quantity == 4
        assert second.save().invoice.invoice_no == '2'
