"""
State snapshot tests.

export -> import -> export must be lossless, and a rejected import must
leave the existing data in place.
"""

import pytest

from stockledger.extensions import db
from stockledger.models import Product, SessionToken
from stockledger.services import (
    receive_service,
    sales_service,
    session_service,
    snapshot_service,
    transfer_service,
)
from stockledger.services.snapshot_service import SCHEMA_VERSION, SnapshotError


@pytest.fixture
def busy_ledger(db_session, hammer, nails, warehouse_cement, branch, cashier, clerk):
    """A ledger with sales, receipts, a received transfer and audit entries."""
    sales_service.checkout(
        [{"product_id": hammer.id, "quantity": 2}, {"product_id": nails.id, "quantity": 12}],
        actor=cashier,
        payment_method="Card",
    )
    receive_service.receive_batch([{"product_id": nails.id, "quantity": 1, "is_box": True}], actor=clerk)
    delivery = transfer_service.create_transfer(
        branch.id, [{"product_id": warehouse_cement.id, "quantity": 20}], actor=clerk
    )
    transfer_service.receive_transfer(delivery.id, actor=clerk)
    return db_session


class TestExport:
    def test_export_shape(self, busy_ledger):
        state = snapshot_service.export_state()

        assert state["schema_version"] == SCHEMA_VERSION
        assert {p["sku"] for p in state["products"]} == {"HAM-001", "NAI-050", "CEM-050"}
        assert len(state["products"]) == 4
        assert len(state["sales"]) == 1
        assert len(state["sales"][0]["items"]) == 2
        assert state["deliveries"][0]["document_number"] == "TRF-0001"
        assert state["config"]["tax_rate_bps"] == 1500

        hammer = next(p for p in state["products"] if p["sku"] == "HAM-001")
        assert [h["reason"] for h in hammer["history"]] == ["Sale", "Initial"]
        assert "version_id" not in hammer

        log_ids = [entry["id"] for entry in state["logs"]]
        assert log_ids == sorted(log_ids, reverse=True)

    def test_export_contains_no_sessions(self, busy_ledger, cashier):
        session_service.create_session(cashier)
        state = snapshot_service.export_state()
        assert "sessions" not in state
        assert all("token_hash" not in user for user in state["users"])


class TestImport:
    def test_round_trip_is_lossless(self, busy_ledger):
        first = snapshot_service.export_state()

        counts = snapshot_service.import_state(first)
        second = snapshot_service.export_state()

        assert counts["products"] == 4
        assert counts["logs"] == len(first["logs"])
        assert second == first

    def test_import_replaces_existing_data(self, busy_ledger):
        state = snapshot_service.export_state()
        snapshot_service.import_state({**state, "products": [], "sales": [], "deliveries": []})

        assert db.session.query(Product).count() == 0
        assert snapshot_service.export_state()["users"] == state["users"]

    def test_import_revokes_sessions(self, busy_ledger, cashier):
        _, token = session_service.create_session(cashier)
        snapshot_service.import_state(snapshot_service.export_state())

        assert db.session.query(SessionToken).count() == 0
        assert session_service.validate_session(token) is None

    def test_rejects_unknown_schema_version(self, busy_ledger):
        state = snapshot_service.export_state()

        with pytest.raises(SnapshotError):
            snapshot_service.import_state({**state, "schema_version": 99, "products": []})
        assert db.session.query(Product).count() == 4

    def test_incomplete_records_leave_data_untouched(self, busy_ledger):
        state = snapshot_service.export_state()
        broken = {**state, "products": [{"id": 1, "stock": 5}]}

        with pytest.raises(SnapshotError):
            snapshot_service.import_state(broken)
        assert snapshot_service.export_state() == state

    def test_rejects_bad_timestamps(self, busy_ledger):
        state = snapshot_service.export_state()
        bad_logs = [dict(state["logs"][0], timestamp="yesterday", created_at="yesterday")]

        with pytest.raises(SnapshotError):
            snapshot_service.import_state({**state, "logs": bad_logs})
        assert db.session.query(Product).count() == 4
