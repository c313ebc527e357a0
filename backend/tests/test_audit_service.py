"""Audit logger: attribution, ordering, retention and search."""

from stockledger.extensions import db
from stockledger.models import AuditLog, LogSeverity, LogType
from stockledger.services import audit_service
from stockledger.services.audit_service import AUDIT_LOG_LIMIT


class TestAddLog:
    def test_attributes_actor(self, db_session, cashier):
        entry = audit_service.add_log(LogType.TRANSACTION, "S-000001", "Sale completed.", actor=cashier)
        db_session.commit()

        assert entry.user_id == cashier.id
        assert entry.user_name == "Chipo Cashier"
        assert entry.severity == LogSeverity.INFO
        assert entry.created_at is not None

    def test_system_actor_when_anonymous(self, db_session):
        entry = audit_service.add_log("SYSTEM", "Settings", "Configuration updated.", "warning")
        db_session.commit()

        assert entry.user_id is None
        assert entry.user_name == "System"
        assert entry.type == LogType.SYSTEM
        assert entry.severity == LogSeverity.WARNING

    def test_add_log_does_not_commit(self, db_session):
        audit_service.add_log(LogType.SCAN, "123", "Scanned.")
        db_session.rollback()
        assert db_session.query(AuditLog).count() == 0


class TestRetention:
    def test_keeps_newest_entries(self, db_session):
        for i in range(AUDIT_LOG_LIMIT + 10):
            audit_service.add_log(LogType.SCAN, f"code-{i}", f"Scan {i}.")
        db_session.commit()

        assert db_session.query(AuditLog).count() == AUDIT_LOG_LIMIT
        entries = audit_service.list_logs()
        assert entries[0].target == f"code-{AUDIT_LOG_LIMIT + 9}"
        assert entries[-1].target == "code-10"


class TestListLogs:
    def _seed(self, admin):
        audit_service.add_log(LogType.LOGIN, "admin", "Alex Admin logged in.", actor=admin)
        audit_service.add_log(LogType.TRANSACTION, "S-000001", "Sale completed. Total: $12.50")
        audit_service.add_log(LogType.TRANSFER, "TRF-0001", "Stock transfer initiated to Borrowdale Branch.")
        db.session.commit()

    def test_newest_first(self, db_session, admin):
        self._seed(admin)
        targets = [e.target for e in audit_service.list_logs()]
        assert targets == ["TRF-0001", "S-000001", "admin"]

    def test_filter_by_type(self, db_session, admin):
        self._seed(admin)
        entries = audit_service.list_logs(log_type="TRANSACTION")
        assert [e.target for e in entries] == ["S-000001"]

    def test_search_is_case_insensitive(self, db_session, admin):
        self._seed(admin)
        assert [e.target for e in audit_service.list_logs(search="borrowdale")] == ["TRF-0001"]
        assert [e.target for e in audit_service.list_logs(search="ALEX")] == ["admin"]

    def test_limit(self, db_session, admin):
        self._seed(admin)
        assert len(audit_service.list_logs(limit=2)) == 2
