"""
End-to-end ledger flow on a product that starts with no history.

sell 3 -> receive 2 boxes -> count the shelf -> stock and history agree.
"""

from stockledger.models import LogType, StockChangeReason
from stockledger.services import audit_service, receive_service, sales_service, stock_service


def test_sale_receipt_adjustment_flow(db_session, bare_product, cashier, clerk):
    sale = sales_service.checkout([{"product_id": bare_product.id, "quantity": 3}], actor=cashier)
    assert stock_service.get_stock(bare_product.id) == 12

    receive_service.receive_batch(
        [{"product_id": bare_product.id, "quantity": 2, "is_box": True}],
        actor=clerk,
    )
    assert stock_service.get_stock(bare_product.id) == 22

    stock_service.adjust_stock(bare_product.id, 20, actor=clerk)
    assert stock_service.get_stock(bare_product.id) == 20

    history = stock_service.list_history(bare_product.id)
    assert [e.reason for e in history] == [
        StockChangeReason.ADJUSTMENT,
        StockChangeReason.RECEIPT,
        StockChangeReason.SALE,
    ]
    assert [(e.change_amount, e.new_stock) for e in history] == [(-2, 20), (10, 22), (-3, 12)]
    assert history[2].reference_id == sale.document_number
    assert [e.user_name for e in history] == ["Wes Warehouse", "Wes Warehouse", "Chipo Cashier"]

    types = [entry.type for entry in audit_service.list_logs()]
    assert types[:2] == [LogType.UPDATE, LogType.INVENTORY_ADJ]
    assert LogType.TRANSACTION in types


def test_history_is_capped_per_product(db_session, nails):
    for _ in range(stock_service.HISTORY_LIMIT + 5):
        receive_service.receive_batch([{"product_id": nails.id, "quantity": 1}])

    history = stock_service.list_history(nails.id, limit=1000)
    assert len(history) == stock_service.HISTORY_LIMIT
    assert history[0].new_stock == 40 + stock_service.HISTORY_LIMIT + 5
    assert all(e.reason == StockChangeReason.RECEIPT for e in history)
