# Overview: Health and version endpoints.

"""
Liveness and build information for deployments.

/health runs three probes and answers 503 when any of them fails:
- database: the catalogue and staff tables answer queries
- ledger: every product's stock equals the new_stock of its latest
  history entry (rows with no history, e.g. imported seed data, are skipped)
- sessions: count of live bearer sessions
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy import func

from .. import __version__
from ..extensions import db
from ..models import Product, SessionToken, StockHistoryEntry, User
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def _probe(label: str, check) -> dict:
    """Run check() and wrap its details with status and timing."""
    started = time.perf_counter()
    try:
        details = check()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Health probe %s failed", label)
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": f"{label} probe error",
        }

    status = "unhealthy" if details.pop("_failed", False) else "healthy"
    return {
        "status": status,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": details,
    }


def _database_details() -> dict:
    return {
        "products": db.session.query(Product).count(),
        "users": db.session.query(User).count(),
    }


def _ledger_details() -> dict:
    latest = (
        db.session.query(
            StockHistoryEntry.product_id,
            func.max(StockHistoryEntry.id).label("entry_id"),
        )
        .group_by(StockHistoryEntry.product_id)
        .subquery()
    )
    drifted = [
        row.id
        for row in db.session.query(Product.id)
        .join(latest, latest.c.product_id == Product.id)
        .join(StockHistoryEntry, StockHistoryEntry.id == latest.c.entry_id)
        .filter(StockHistoryEntry.new_stock != Product.stock)
        .all()
    ]
    return {"drifted_product_ids": drifted, "_failed": bool(drifted)}


def _session_details() -> dict:
    live = db.session.query(SessionToken).filter(
        SessionToken.is_revoked.is_(False),
        SessionToken.expires_at >= utcnow(),
    ).count()
    return {"active_sessions": live}


@system_bp.get("/health")
def health():
    started = time.perf_counter()
    checks = {
        "database": _probe("database", _database_details),
        "ledger": _probe("ledger", _ledger_details),
        "sessions": _probe("sessions", _session_details),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "checks": checks,
    }, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Build and runtime versions. Never exposes configuration values."""
    return {
        "api_version": __version__,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
