"""
Stock ledger tests.

Verifies:
- stock == opening stock + sum(change_amount) and history[0].new_stock == stock
- Negative results are rejected without side effects
- History is newest first and capped at 100 entries (oldest dropped)
- Catalogue operations record the right history and audit entries
"""

import pytest

from stockledger.extensions import db
from stockledger.models import AuditLog, LogType, StockChangeReason, StockHistoryEntry, StockLocation
from stockledger.services import stock_service
from stockledger.services.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    StockError,
)
from stockledger.services.stock_service import HISTORY_LIMIT


class TestApplyChange:
    def test_register_records_single_initial_entry(self, hammer):
        history = stock_service.list_history(hammer.id)

        assert len(history) == 1
        assert history[0].reason == StockChangeReason.INITIAL
        assert history[0].change_amount == 15
        assert history[0].new_stock == 15
        assert history[0].user_name == "System"

    def test_stock_equals_opening_plus_deltas(self, db_session, hammer, cashier):
        deltas = [-3, 10, -7, 4, -1]
        for delta in deltas:
            stock_service.apply_change(hammer, delta, StockChangeReason.ADJUSTMENT, cashier)
        db_session.commit()

        history = stock_service.list_history(hammer.id)
        assert hammer.stock == 15 + sum(deltas)
        assert history[0].new_stock == hammer.stock
        assert sum(entry.change_amount for entry in history) == hammer.stock
        assert [entry.change_amount for entry in history[:5]] == list(reversed(deltas))
        assert history[0].user_id == cashier.id
        assert history[0].user_name == "Chipo Cashier"

    def test_negative_result_is_rejected(self, db_session, hammer):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.apply_change(hammer, -16, StockChangeReason.SALE)

        assert exc.value.details["items"][0]["on_hand"] == 15
        assert exc.value.http_status == 409
        db_session.rollback()

        assert stock_service.get_stock(hammer.id) == 15
        assert len(stock_service.list_history(hammer.id)) == 1

    def test_zero_crossing_to_exactly_zero_is_allowed(self, db_session, hammer):
        entry = stock_service.apply_change(hammer, -15, StockChangeReason.SALE)
        db_session.commit()

        assert entry.new_stock == 0
        assert stock_service.get_stock(hammer.id) == 0

    def test_non_integer_delta_is_rejected(self, hammer):
        with pytest.raises(InvalidQuantityError):
            stock_service.apply_change(hammer, 1.5, StockChangeReason.ADJUSTMENT)
        with pytest.raises(InvalidQuantityError):
            stock_service.apply_change(hammer, True, StockChangeReason.ADJUSTMENT)

    def test_history_capped_at_limit_oldest_dropped(self, db_session, hammer):
        for _ in range(HISTORY_LIMIT + 5):
            stock_service.apply_change(hammer, 1, StockChangeReason.RECEIPT)
        db_session.commit()

        history = stock_service.list_history(hammer.id)
        stored = db_session.query(StockHistoryEntry).filter_by(product_id=hammer.id).count()

        assert len(history) == HISTORY_LIMIT
        assert stored == HISTORY_LIMIT
        # The Initial entry and the first receipts were evicted
        assert all(entry.reason == StockChangeReason.RECEIPT for entry in history)
        assert history[0].new_stock == hammer.stock == 15 + HISTORY_LIMIT + 5
        ids = [entry.id for entry in history]
        assert ids == sorted(ids, reverse=True)

    def test_relationship_history_is_newest_first(self, db_session, hammer):
        stock_service.apply_change(hammer, -2, StockChangeReason.SALE, reference_id="S-000001")
        db_session.commit()

        data = hammer.to_dict(include_history=True)
        assert data["history"][0]["reason"] == "Sale"
        assert data["history"][0]["reference_id"] == "S-000001"
        assert data["history"][1]["reason"] == "Initial"


class TestCatalogue:
    def test_register_writes_create_audit_entry(self, hammer):
        entry = db.session.query(AuditLog).order_by(AuditLog.id.desc()).first()
        assert entry.type == LogType.CREATE
        assert entry.details == "New product Claw Hammer catalogued."

    def test_register_rejects_negative_initial_stock(self, db_session):
        with pytest.raises(InvalidQuantityError):
            stock_service.register_product(name="Spirit Level", stock=-1)

    def test_register_rejects_unknown_fields(self, db_session):
        with pytest.raises(StockError):
            stock_service.register_product(name="Spirit Level", colour="yellow")

    def test_update_product_cannot_touch_stock(self, hammer):
        with pytest.raises(StockError):
            stock_service.update_product(hammer.id, {"stock": 99})
        with pytest.raises(StockError):
            stock_service.update_product(hammer.id, {"location": "Warehouse"})

    def test_update_product_changes_catalogue_fields_only(self, hammer):
        updated = stock_service.update_product(hammer.id, {"price_cents": 1399, "name": "Claw Hammer 16oz"})

        assert updated.price_cents == 1399
        assert updated.name == "Claw Hammer 16oz"
        assert updated.stock == 15
        assert len(stock_service.list_history(hammer.id)) == 1

    def test_adjust_stock_records_delta(self, hammer, admin):
        entry = stock_service.adjust_stock(hammer.id, 20, actor=admin)

        assert entry.reason == StockChangeReason.ADJUSTMENT
        assert entry.change_amount == 5
        assert entry.new_stock == 20
        log = db.session.query(AuditLog).order_by(AuditLog.id.desc()).first()
        assert log.type == LogType.UPDATE
        assert log.details == "Stock adjusted manually for Claw Hammer: 15 -> 20"
        assert log.user_name == "Alex Admin"

    def test_adjust_stock_to_same_value_records_nothing(self, hammer):
        assert stock_service.adjust_stock(hammer.id, 15) is None
        assert len(stock_service.list_history(hammer.id)) == 1

    def test_adjust_stock_rejects_negative(self, hammer):
        with pytest.raises(InvalidQuantityError):
            stock_service.adjust_stock(hammer.id, -1)

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError) as exc:
            stock_service.get_product(9999)
        assert exc.value.http_status == 404


class TestQueries:
    def test_search_matches_name_sku_and_barcode(self, hammer, nails):
        assert [p.id for p in stock_service.list_products(search="hammer")] == [hammer.id]
        assert [p.id for p in stock_service.list_products(search="nai-")] == [nails.id]
        assert [p.id for p in stock_service.list_products(search="000024")] == [nails.id]

    def test_low_stock_uses_configured_threshold(self, hammer, nails):
        stock_service.adjust_stock(hammer.id, 9)

        low = stock_service.list_products(low_stock_only=True)
        assert [p.id for p in low] == [hammer.id]
        assert stock_service.list_products(low_stock_only=True, low_stock_threshold=50) == [hammer, nails]

    def test_location_and_category_filters(self, hammer, warehouse_cement):
        assert stock_service.list_products(location=StockLocation.WAREHOUSE) == [warehouse_cement]
        assert stock_service.list_products(category="Tools") == [hammer]
        assert len(stock_service.list_products(category="All")) == 2

    def test_find_by_barcode_prefers_lowest_id_unless_location_given(self, hammer):
        warehouse_row = stock_service.register_product(
            name="Claw Hammer",
            location=StockLocation.WAREHOUSE,
            stock=50,
            sku="HAM-001",
            barcode=hammer.barcode,
        )

        assert stock_service.find_by_barcode(hammer.barcode).id == hammer.id
        assert stock_service.find_by_barcode(hammer.barcode, "Warehouse").id == warehouse_row.id

    def test_find_by_barcode_unknown(self, hammer):
        with pytest.raises(ProductNotFoundError):
            stock_service.find_by_barcode("0000000000000")
