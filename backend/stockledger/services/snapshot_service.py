# Overview: Whole-state JSON snapshot export and import.

"""
Snapshot Service

export_state() serializes every collection to plain JSON types;
import_state() replaces the database contents with a snapshot inside one
transaction. Ids, ordering and timestamps are preserved, so
export -> import -> export is identical.

FORMAT:
- schema_version: SCHEMA_VERSION; any other value is rejected.
- Child rows are nested under their parent (product history, sale items,
  delivery items and timeline, incoming items).
- Datetimes are ISO-8601 "Z" strings at whole seconds; dates are
  YYYY-MM-DD; enums are their stored values.
- version_id counters and session tokens are not exported. Import deletes
  all sessions, so every client has to log in again.
"""

from __future__ import annotations

import enum
import logging
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum as SAEnum
from sqlalchemy.exc import IntegrityError, StatementError

from ..extensions import db
from ..models import (
    AuditLog,
    Branch,
    Delivery,
    DeliveryItem,
    DeliveryTimelineEntry,
    DocumentSequence,
    Expense,
    IncomingDelivery,
    IncomingItem,
    Product,
    Sale,
    SaleItem,
    SessionToken,
    StockHistoryEntry,
    SystemConfig,
    User,
)
from ..time_utils import parse_iso_datetime, to_utc_z
from .errors import ServiceError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

EXCLUDED_COLUMNS = {"version_id"}


class SnapshotError(ServiceError):
    code = "INVALID_SNAPSHOT"


# (snapshot key, parent model, [(nested key, child model, parent fk, newest first)])
COLLECTIONS = (
    ("branches", Branch, ()),
    ("users", User, ()),
    ("products", Product, (("history", StockHistoryEntry, "product_id", True),)),
    ("sales", Sale, (("items", SaleItem, "sale_id", False),)),
    ("deliveries", Delivery, (
        ("items", DeliveryItem, "delivery_id", False),
        ("timeline", DeliveryTimelineEntry, "delivery_id", False),
    )),
    ("incoming_deliveries", IncomingDelivery, (("items", IncomingItem, "incoming_id", False),)),
    ("expenses", Expense, ()),
    ("document_sequences", DocumentSequence, ()),
)


def _columns(model):
    return [c for c in model.__table__.columns if c.key not in EXCLUDED_COLUMNS]


def _dump_value(value):
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _dump_row(row, model) -> dict:
    return {col.key: _dump_value(getattr(row, col.key)) for col in _columns(model)}


def _load_value(col, value):
    if value is None:
        return None
    coltype = col.type
    try:
        if isinstance(coltype, DateTime):
            return parse_iso_datetime(value)
        if isinstance(coltype, Date):
            return date.fromisoformat(value)
        if isinstance(coltype, SAEnum) and coltype.enum_class is not None:
            return coltype.enum_class(value)
    except (TypeError, ValueError):
        raise SnapshotError(
            f"Invalid value for {col.table.name}.{col.key}",
            details={"column": f"{col.table.name}.{col.key}", "value": value},
        )
    return value


def _load_row(record: dict, model) -> dict:
    if not isinstance(record, dict):
        raise SnapshotError(f"{model.__tablename__} records must be objects")
    return {
        col.key: _load_value(col, record[col.key])
        for col in _columns(model)
        if col.key in record
    }


def export_state() -> dict:
    """Every collection as JSON-ready data, plus config and the audit log."""
    state: dict = {"schema_version": SCHEMA_VERSION}

    for key, model, children in COLLECTIONS:
        records = []
        for row in db.session.query(model).order_by(model.id).all():
            record = _dump_row(row, model)
            for child_key, child_model, fk, newest_first in children:
                order = child_model.id.desc() if newest_first else child_model.id
                record[child_key] = [
                    _dump_row(child, child_model)
                    for child in db.session.query(child_model)
                    .filter(getattr(child_model, fk) == row.id)
                    .order_by(order)
                    .all()
                ]
            records.append(record)
        state[key] = records

    state["logs"] = [
        _dump_row(entry, AuditLog)
        for entry in db.session.query(AuditLog).order_by(AuditLog.id.desc()).all()
    ]

    config = db.session.get(SystemConfig, 1)
    state["config"] = _dump_row(config, SystemConfig) if config else None
    return state


def _delete_all() -> None:
    # Children before parents
    for model in (
        SessionToken,
        AuditLog,
        StockHistoryEntry,
        SaleItem,
        DeliveryTimelineEntry,
        DeliveryItem,
        IncomingItem,
        Delivery,
        IncomingDelivery,
        Sale,
        Expense,
        Product,
        User,
        Branch,
        DocumentSequence,
        SystemConfig,
    ):
        db.session.execute(model.__table__.delete())


def _insert(model, rows: list[dict]) -> None:
    if rows:
        db.session.execute(model.__table__.insert(), rows)


def import_state(data: dict) -> dict:
    """
    Replace all persisted state with a snapshot.

    Runs in one transaction: a malformed snapshot raises SnapshotError and
    leaves the existing data untouched. Returns per-collection counts.
    """
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    version = data.get("schema_version")
    if version != SCHEMA_VERSION:
        raise SnapshotError(
            f"Unsupported snapshot schema_version {version!r}",
            details={"expected": SCHEMA_VERSION, "found": version},
        )

    counts: dict[str, int] = {}
    try:
        _delete_all()

        config = data.get("config")
        if config:
            _insert(SystemConfig, [_load_row(config, SystemConfig)])

        for key, model, children in COLLECTIONS:
            records = data.get(key) or []
            if not isinstance(records, list):
                raise SnapshotError(f"{key} must be a list")

            parents = []
            nested: dict[str, list[dict]] = {child_key: [] for child_key, *_ in children}
            for record in records:
                parents.append(_load_row(record, model))
                for child_key, child_model, fk, _newest_first in children:
                    for child in record.get(child_key) or []:
                        row = _load_row(child, child_model)
                        row[fk] = record.get("id")
                        nested[child_key].append(row)

            _insert(model, parents)
            for child_key, child_model, _fk, _newest_first in children:
                _insert(child_model, sorted(nested[child_key], key=lambda r: r.get("id") or 0))
            counts[key] = len(parents)

        logs = data.get("logs") or []
        if not isinstance(logs, list):
            raise SnapshotError("logs must be a list")
        _insert(AuditLog, sorted((_load_row(entry, AuditLog) for entry in logs), key=lambda r: r.get("id") or 0))
        counts["logs"] = len(logs)

        db.session.commit()
    except (IntegrityError, StatementError) as exc:
        db.session.rollback()
        raise SnapshotError("Snapshot records conflict or are incomplete", details={"reason": str(exc.orig)})
    except Exception:
        db.session.rollback()
        raise

    logger.info("state imported: %s", counts)
    return counts
