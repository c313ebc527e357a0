# Overview: Process-wide append-only audit log with bounded retention.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import AuditLog, LogType, LogSeverity, User
"""
Audit Log Invariants (authoritative)

- Append-only: entries are never updated.
- Every entry is attributed to the acting user (or "System" when none).
- Only the most recent AUDIT_LOG_LIMIT entries are retained; older entries
  are deleted oldest-first when a new one is appended.
- Entries are written inside the same DB transaction as the mutation they
  describe; add_log never commits.
"""

AUDIT_LOG_LIMIT = 500
SYSTEM_ACTOR_NAME = "System"


def actor_fields(actor: User | None) -> tuple[int | None, str]:
    """(user_id, display name) pair stamped on audit and history rows."""
    if actor is None:
        return None, SYSTEM_ACTOR_NAME
    return actor.id, actor.name


def add_log(
    log_type: LogType | str,
    target: str,
    details: str,
    severity: LogSeverity | str = LogSeverity.INFO,
    *,
    actor: User | None = None,
) -> AuditLog:
    """Append an audit entry and trim retained entries to AUDIT_LOG_LIMIT."""
    user_id, user_name = actor_fields(actor)

    entry = AuditLog(
        user_id=user_id,
        user_name=user_name,
        type=LogType(log_type),
        target=str(target),
        details=details,
        severity=LogSeverity(severity),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing

    _trim_logs()
    return entry


def _trim_logs() -> int:
    stale_ids = [
        row.id
        for row in db.session.query(AuditLog.id)
        .order_by(AuditLog.id.desc())
        .offset(AUDIT_LOG_LIMIT)
        .all()
    ]
    if not stale_ids:
        return 0
    return (
        db.session.query(AuditLog)
        .filter(AuditLog.id.in_(stale_ids))
        .delete(synchronize_session=False)
    )


def list_logs(
    *,
    log_type: LogType | str | None = None,
    search: str | None = None,
    limit: int = AUDIT_LOG_LIMIT,
) -> list[AuditLog]:
    """Newest first. search is a case-insensitive substring over target, details and user."""
    q = db.session.query(AuditLog)
    if log_type:
        q = q.filter(AuditLog.type == LogType(log_type))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                AuditLog.target.ilike(pattern),
                AuditLog.details.ilike(pattern),
                AuditLog.user_name.ilike(pattern),
            )
        )
    return q.order_by(AuditLog.id.desc()).limit(limit).all()
