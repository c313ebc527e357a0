"""
Transfer processor tests.

Warehouse stock leaves at authorization and reaches the branch shelf on
receipt, exactly once.
"""

import pytest

from stockledger.extensions import db
from stockledger.models import (
    AuditLog,
    DeliveryStatus,
    DeliveryType,
    LogType,
    Product,
    StockChangeReason,
    StockLocation,
)
from stockledger.services import sales_service, stock_service, transfer_service
from stockledger.services.errors import (
    DeliveryStateError,
    EmptyBatchError,
    InsufficientStockError,
    LocationMismatchError,
    NotFoundError,
)


def _branch_shop_rows(branch_id, sku):
    return db.session.query(Product).filter_by(
        branch_id=branch_id, sku=sku, location=StockLocation.SHOP
    ).all()


class TestCreateTransfer:
    def test_decrements_warehouse_and_records_manifest(self, db_session, warehouse_cement, branch, clerk):
        delivery = transfer_service.create_transfer(
            branch.id,
            [{"product_id": warehouse_cement.id, "quantity": 30}],
            actor=clerk,
        )

        assert delivery.document_number == "TRF-0001"
        assert delivery.type == DeliveryType.TRANSFER
        assert delivery.status == DeliveryStatus.PENDING
        assert delivery.origin == "Main Warehouse"
        assert delivery.destination == "Borrowdale Branch"
        assert [(i.sku, i.quantity) for i in delivery.items] == [("CEM-050", 30)]
        assert [t.status for t in delivery.timeline] == ["Transfer Authorized"]

        assert stock_service.get_stock(warehouse_cement.id) == 70
        entry = stock_service.list_history(warehouse_cement.id)[0]
        assert entry.reason == StockChangeReason.TRANSFER
        assert entry.change_amount == -30
        assert entry.reference_id == "TRF-0001"

        log = db.session.query(AuditLog).order_by(AuditLog.id.desc()).first()
        assert log.type == LogType.TRANSFER
        assert log.details == "Stock transfer initiated to Borrowdale Branch."

    def test_shop_rows_cannot_be_transferred(self, db_session, hammer, branch):
        with pytest.raises(LocationMismatchError):
            transfer_service.create_transfer(branch.id, [{"product_id": hammer.id, "quantity": 1}])
        assert stock_service.get_stock(hammer.id) == 15

    def test_insufficient_warehouse_stock(self, db_session, warehouse_cement, branch):
        with pytest.raises(InsufficientStockError):
            transfer_service.create_transfer(branch.id, [{"product_id": warehouse_cement.id, "quantity": 101}])
        assert stock_service.get_stock(warehouse_cement.id) == 100
        assert transfer_service.list_deliveries() == []

    def test_empty_manifest(self, db_session, branch):
        with pytest.raises(EmptyBatchError):
            transfer_service.create_transfer(branch.id, [])

    def test_unknown_branch(self, db_session, warehouse_cement):
        with pytest.raises(NotFoundError):
            transfer_service.create_transfer(999, [{"product_id": warehouse_cement.id, "quantity": 1}])
        assert stock_service.get_stock(warehouse_cement.id) == 100


class TestReceiveTransfer:
    def test_receive_creates_branch_row(self, db_session, warehouse_cement, branch, clerk):
        delivery = transfer_service.create_transfer(
            branch.id, [{"product_id": warehouse_cement.id, "quantity": 30}], actor=clerk
        )

        received = transfer_service.receive_transfer(delivery.id, actor=clerk)

        assert received.status == DeliveryStatus.DELIVERED
        assert received.received_at is not None
        assert received.timeline[-1].status == "Received at Branch"

        rows = _branch_shop_rows(branch.id, "CEM-050")
        assert len(rows) == 1
        assert rows[0].stock == 30
        reasons = [e.reason for e in stock_service.list_history(rows[0].id)]
        assert reasons == [StockChangeReason.TRANSFER, StockChangeReason.INITIAL]
        assert stock_service.get_stock(warehouse_cement.id) == 70

    def test_receive_adds_to_existing_branch_row(self, db_session, warehouse_cement, branch):
        existing = stock_service.register_product(
            name="Portland Cement 50kg",
            location=StockLocation.SHOP,
            stock=4,
            sku="CEM-050",
            branch_id=branch.id,
        )
        delivery = transfer_service.create_transfer(
            branch.id, [{"product_id": warehouse_cement.id, "quantity": 10}]
        )
        transfer_service.receive_transfer(delivery.id)

        assert stock_service.get_stock(existing.id) == 14
        assert len(_branch_shop_rows(branch.id, "CEM-050")) == 1

    def test_receive_only_once(self, db_session, warehouse_cement, branch):
        delivery = transfer_service.create_transfer(
            branch.id, [{"product_id": warehouse_cement.id, "quantity": 10}]
        )
        transfer_service.receive_transfer(delivery.id)

        with pytest.raises(DeliveryStateError):
            transfer_service.receive_transfer(delivery.id)
        assert _branch_shop_rows(branch.id, "CEM-050")[0].stock == 10


class TestStatus:
    def test_forward_transitions_and_delivered_receives(self, db_session, warehouse_cement, branch):
        delivery = transfer_service.create_transfer(
            branch.id, [{"product_id": warehouse_cement.id, "quantity": 5}]
        )

        transfer_service.advance_status(delivery.id, "Picked Up")
        transfer_service.advance_status(delivery.id, DeliveryStatus.OUT_FOR_DELIVERY)
        assert _branch_shop_rows(branch.id, "CEM-050") == []

        transfer_service.advance_status(delivery.id, "Delivered", note="Signed by manager")
        assert _branch_shop_rows(branch.id, "CEM-050")[0].stock == 5

    def test_backward_transition_rejected(self, db_session, warehouse_cement, branch):
        delivery = transfer_service.create_transfer(
            branch.id, [{"product_id": warehouse_cement.id, "quantity": 5}]
        )
        transfer_service.advance_status(delivery.id, "Out for Delivery")

        with pytest.raises(DeliveryStateError):
            transfer_service.advance_status(delivery.id, "Picked Up")
        with pytest.raises(DeliveryStateError):
            transfer_service.advance_status(delivery.id, "Teleported")


class TestCustomerDelivery:
    def test_schedule_delivery_for_sale(self, db_session, hammer, cashier):
        sale = sales_service.checkout([{"product_id": hammer.id, "quantity": 2}], actor=cashier)

        delivery = transfer_service.create_customer_delivery(sale.id, "12 Samora Machel Ave", actor=cashier)

        assert delivery.document_number == "DEL-0001"
        assert delivery.type == DeliveryType.CUSTOMER
        assert delivery.sale_id == sale.id
        assert [(i.name, i.quantity) for i in delivery.items] == [("Claw Hammer", 2)]
        assert stock_service.get_stock(hammer.id) == 13

        transfer_service.advance_status(delivery.id, "Delivered")
        assert stock_service.get_stock(hammer.id) == 13
        assert transfer_service.list_deliveries(delivery_type="Customer")[0].status == DeliveryStatus.DELIVERED

    def test_customer_delivery_is_not_receivable(self, db_session, hammer):
        sale = sales_service.checkout([{"product_id": hammer.id, "quantity": 1}])
        delivery = transfer_service.create_customer_delivery(sale.id, "Avondale")

        with pytest.raises(DeliveryStateError):
            transfer_service.receive_transfer(delivery.id)
