"""
Receiving processor tests.

Verifies:
- Box lines add quantity * box_quantity as one Receipt entry
- One INVENTORY_ADJ audit entry per batch, not per line
- A bad line rejects the whole batch
- Supplier deliveries book expected - broken units once
"""

from datetime import date

import pytest

from stockledger.extensions import db
from stockledger.models import AuditLog, IncomingStatus, LogSeverity, LogType, StockChangeReason
from stockledger.services import receive_service, stock_service
from stockledger.services.errors import (
    DeliveryStateError,
    EmptyBatchError,
    InvalidQuantityError,
    ProductNotFoundError,
)


class TestReceiveBatch:
    def test_box_line_adds_box_quantity_units(self, db_session, nails, clerk):
        entries = receive_service.receive_batch(
            [{"product_id": nails.id, "quantity": 3, "is_box": True}],
            actor=clerk,
        )

        assert stock_service.get_stock(nails.id) == 40 + 36
        assert len(entries) == 1
        assert entries[0].change_amount == 36
        assert entries[0].reason == StockChangeReason.RECEIPT
        assert entries[0].user_name == "Wes Warehouse"
        assert len(stock_service.list_history(nails.id)) == 2

    def test_unit_line(self, db_session, nails):
        receive_service.receive_batch([{"product_id": nails.id, "quantity": 3}])
        assert stock_service.get_stock(nails.id) == 43

    def test_one_audit_entry_for_the_batch(self, db_session, hammer, nails, clerk):
        logs_before = db.session.query(AuditLog).count()

        receive_service.receive_batch(
            [
                {"product_id": hammer.id, "quantity": 2, "is_box": True},
                {"product_id": nails.id, "quantity": 5},
            ],
            actor=clerk,
        )

        new_logs = db.session.query(AuditLog).order_by(AuditLog.id.desc()).all()
        assert len(new_logs) == logs_before + 1
        assert new_logs[0].type == LogType.INVENTORY_ADJ
        assert new_logs[0].target == "BULK_RECEIVE"
        assert new_logs[0].details == "Received 2 product lines via barcode scan."
        assert new_logs[0].severity == LogSeverity.SUCCESS

    def test_empty_batch(self, db_session):
        with pytest.raises(EmptyBatchError):
            receive_service.receive_batch([])

    def test_bad_line_rejects_whole_batch(self, db_session, hammer, nails):
        with pytest.raises(ProductNotFoundError):
            receive_service.receive_batch([
                {"product_id": hammer.id, "quantity": 2},
                {"product_id": 999999, "quantity": 1},
            ])
        assert stock_service.get_stock(hammer.id) == 15

        with pytest.raises(InvalidQuantityError):
            receive_service.receive_batch([
                {"product_id": hammer.id, "quantity": 2},
                {"product_id": nails.id, "quantity": -1},
            ])
        assert stock_service.get_stock(hammer.id) == 15
        assert stock_service.get_stock(nails.id) == 40

    def test_is_box_must_be_a_boolean(self, db_session, hammer, nails):
        with pytest.raises(InvalidQuantityError) as exc:
            receive_service.receive_batch([
                {"product_id": hammer.id, "quantity": 1},
                {"product_id": nails.id, "quantity": 3, "is_box": "false"},
            ])
        assert exc.value.details["is_box"] == "false"
        assert stock_service.get_stock(hammer.id) == 15
        assert stock_service.get_stock(nails.id) == 40

    def test_null_is_box_means_units(self, db_session, nails):
        receive_service.receive_batch([{"product_id": nails.id, "quantity": 3, "is_box": None}])
        assert stock_service.get_stock(nails.id) == 43


class TestScan:
    def test_scan_resolves_barcode_and_logs(self, db_session, hammer, clerk):
        product = receive_service.resolve_scan(hammer.barcode, actor=clerk)

        assert product.id == hammer.id
        log = db.session.query(AuditLog).order_by(AuditLog.id.desc()).first()
        assert log.type == LogType.SCAN
        assert log.target == hammer.barcode

    def test_unknown_barcode_is_reported(self, db_session, hammer):
        with pytest.raises(ProductNotFoundError) as exc:
            receive_service.resolve_scan("9999999999999")
        assert "not found" in exc.value.message


class TestIncomingDeliveries:
    def test_receive_with_breakage(self, db_session, warehouse_cement, nails, clerk):
        incoming = receive_service.create_incoming(
            supplier="PPC Zimbabwe",
            items=[
                {"product_id": warehouse_cement.id, "expected_qty": 40},
                {"product_id": nails.id, "expected_qty": 24},
            ],
            actor=clerk,
            expected_date=date(2024, 5, 1),
            driver_name="T. Ncube",
        )
        assert incoming.document_number == "INC-0001"
        assert incoming.status == IncomingStatus.EXPECTED

        received = receive_service.receive_incoming(incoming.id, {warehouse_cement.id: 3}, actor=clerk)

        assert received.status == IncomingStatus.PARTIALLY_BROKEN
        assert received.received_at is not None
        assert stock_service.get_stock(warehouse_cement.id) == 100 + 37
        assert stock_service.get_stock(nails.id) == 40 + 24

        entry = stock_service.list_history(warehouse_cement.id)[0]
        assert entry.reason == StockChangeReason.RECEIPT
        assert entry.reference_id == "INC-0001"

    def test_receive_without_breakage(self, db_session, nails):
        incoming = receive_service.create_incoming(
            supplier="Fasteners Ltd",
            items=[{"product_id": nails.id, "expected_qty": 12}],
        )
        received = receive_service.receive_incoming(incoming.id)
        assert received.status == IncomingStatus.RECEIVED

    def test_cannot_receive_twice(self, db_session, nails):
        incoming = receive_service.create_incoming(
            supplier="Fasteners Ltd",
            items=[{"product_id": nails.id, "expected_qty": 12}],
        )
        receive_service.receive_incoming(incoming.id)

        with pytest.raises(DeliveryStateError):
            receive_service.receive_incoming(incoming.id)
        assert stock_service.get_stock(nails.id) == 52

    def test_broken_above_expected_is_rejected(self, db_session, nails):
        incoming = receive_service.create_incoming(
            supplier="Fasteners Ltd",
            items=[{"product_id": nails.id, "expected_qty": 12}],
        )
        with pytest.raises(InvalidQuantityError):
            receive_service.receive_incoming(incoming.id, {nails.id: 13})

        assert receive_service.get_incoming(incoming.id).status == IncomingStatus.EXPECTED
        assert stock_service.get_stock(nails.id) == 40

    def test_incoming_requires_items(self, db_session):
        with pytest.raises(EmptyBatchError):
            receive_service.create_incoming(supplier="Nobody", items=[])

    def test_repeated_product_lines_are_merged(self, db_session, nails):
        incoming = receive_service.create_incoming(
            supplier="Fasteners Ltd",
            items=[
                {"product_id": nails.id, "expected_qty": 10},
                {"product_id": nails.id, "expected_qty": 5},
            ],
        )
        assert len(incoming.items) == 1
        assert incoming.items[0].expected_qty == 15

        received = receive_service.receive_incoming(incoming.id, {nails.id: 2})

        assert received.items[0].broken_qty == 2
        assert received.status == IncomingStatus.PARTIALLY_BROKEN
        assert stock_service.get_stock(nails.id) == 40 + 13
        assert len(stock_service.list_history(nails.id)) == 2
