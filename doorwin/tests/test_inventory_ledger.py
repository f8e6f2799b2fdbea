import pytest
from sqlalchemy import update

from doorwin.core.errors import ConcurrencyConflict, InsufficientStock, LedgerImmutableError, ProductNotFound
from doorwin.models.database import Product, StockHistory
from doorwin.services.inventory_ledger import ChangeType, InventoryLedger


class TestApplyDelta:

    def test_decrement_writes_stock_and_history(self, test_db, door):
        ledger = InventoryLedger(test_db)

        change = ledger.apply_delta(door.id, -3, ChangeType.ORDER_APPROVED, notes="test", actor_id="admin-1")
        test_db.commit()

        assert change.previous_quantity == 5
        assert change.new_quantity == 2

        test_db.refresh(door)
        assert door.stock_quantity == 2
        assert door.version == 2

        entries = test_db.query(StockHistory).all()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.product_id == door.id
        assert entry.change_type == "order_approved"
        assert entry.quantity_change == -3
        assert entry.previous_quantity == 5
        assert entry.new_quantity == 2
        assert entry.created_by == "admin-1"

    def test_increment(self, test_db, door):
        change = InventoryLedger(test_db).apply_delta(door.id, 4, ChangeType.ADD)
        test_db.commit()

        assert change.new_quantity == 9
        test_db.refresh(door)
        assert door.stock_quantity == 9

    def test_drop_to_exactly_zero(self, test_db, door):
        change = InventoryLedger(test_db).apply_delta(door.id, -5, ChangeType.REMOVE)
        test_db.commit()
        assert change.new_quantity == 0

    def test_negative_stock_refused(self, test_db, door):
        ledger = InventoryLedger(test_db)

        with pytest.raises(InsufficientStock) as exc_info:
            ledger.apply_delta(door.id, -6, ChangeType.REMOVE)
        test_db.rollback()

        assert exc_info.value.available == 5
        assert exc_info.value.requested == 6
        assert exc_info.value.product_id == door.id

        test_db.refresh(door)
        assert door.stock_quantity == 5
        assert test_db.query(StockHistory).count() == 0

    def test_missing_product(self, test_db):
        with pytest.raises(ProductNotFound):
            InventoryLedger(test_db).apply_delta(99999, 1, ChangeType.ADD)

    def test_stale_version_is_a_conflict(self, test_db, session_factory, door):
        # Load the product in our session, then let another session bump it
        ledger = InventoryLedger(test_db)
        ledger.lock_products([door.id])

        other = session_factory()
        try:
            other.execute(
                update(Product).where(Product.id == door.id).values(stock_quantity=4, version=Product.version + 1)
            )
            other.commit()
        finally:
            other.close()

        with pytest.raises(ConcurrencyConflict):
            ledger.apply_delta(door.id, -1, ChangeType.REMOVE)
        test_db.rollback()

        test_db.refresh(door)
        assert door.stock_quantity == 4
        assert test_db.query(StockHistory).count() == 0


class TestLedgerIsAppendOnly:

    def test_update_refused(self, test_db, door):
        InventoryLedger(test_db).apply_delta(door.id, 1, ChangeType.ADD)
        test_db.commit()

        entry = test_db.query(StockHistory).one()
        entry.notes = "rewritten"
        with pytest.raises(LedgerImmutableError):
            test_db.flush()
        test_db.rollback()

        assert test_db.query(StockHistory).one().notes is None

    def test_delete_refused(self, test_db, door):
        InventoryLedger(test_db).apply_delta(door.id, 1, ChangeType.ADD)
        test_db.commit()

        test_db.delete(test_db.query(StockHistory).one())
        with pytest.raises(LedgerImmutableError):
            test_db.flush()
        test_db.rollback()

        assert test_db.query(StockHistory).count() == 1


def test_history_newest_first(test_db, door):
    ledger = InventoryLedger(test_db)
    ledger.apply_delta(door.id, 2, ChangeType.ADD)
    ledger.apply_delta(door.id, -1, ChangeType.REMOVE)
    ledger.apply_delta(door.id, 10, ChangeType.ADJUST)
    test_db.commit()

    history = ledger.history(door.id)
    assert [entry.change_type for entry in history] == ["adjust", "remove", "add"]
    assert [entry.new_quantity for entry in history] == [16, 6, 7]
    assert len(ledger.history(door.id, limit=2)) == 2


def test_lock_products_returns_fresh_rows(test_db, door, window):
    products = InventoryLedger(test_db).lock_products([window.id, door.id, door.id])
    assert sorted(products) == sorted([door.id, window.id])
    assert products[door.id].stock_quantity == 5
