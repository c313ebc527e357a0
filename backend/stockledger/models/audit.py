from __future__ import annotations

import enum

from ..extensions import db
from stockledger.time_utils import to_utc_z, now_second
from .inventory import enum_column


class LogType(str, enum.Enum):
    SCAN = "SCAN"
    UPDATE = "UPDATE"
    CREATE = "CREATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    TRANSACTION = "TRANSACTION"
    INVENTORY_ADJ = "INVENTORY_ADJ"
    PAYROLL = "PAYROLL"
    TRANSFER = "TRANSFER"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"
    PROFILE = "PROFILE"
    BRANCH = "BRANCH"


class LogSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    DANGER = "danger"


class AuditLog(db.Model):
    """
    Append-only, user-attributed event log.

    INVARIANTS:
    - Rows are never updated.
    - Only the most recent AUDIT_LOG_LIMIT rows are retained (oldest trimmed).
    - Newest first is id descending.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_type", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, nullable=False, default=now_second)

    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(120), nullable=False)

    type = enum_column(LogType, nullable=False)
    target = db.Column(db.String(255), nullable=False)
    details = db.Column(db.Text, nullable=False)
    severity = enum_column(LogSeverity, nullable=False, default=LogSeverity.INFO)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.created_at),
            "user_id": self.user_id,
            "user_name": self.user_name,
            "type": self.type.value,
            "target": self.target,
            "details": self.details,
            "severity": self.severity.value,
        }
