# Overview: Business configuration (tax, payment methods, thresholds) and branches.

"""
Settings Service

The ledger processors only READ configuration: tax rate, low-stock
threshold, enabled payment methods and currency. Updates are validated here
and recorded in the audit log.
"""

from __future__ import annotations

from ..extensions import db
from ..models import SystemConfig, Branch, LogType, LogSeverity, User, DEFAULT_PAYMENT_METHODS
from ..money import percent_to_bps
from .audit_service import add_log
from .errors import SettingsValidationError, NotFoundError


CONFIG_ID = 1
MAX_TAX_RATE_BPS = 10_000

UPDATABLE_CONFIG_FIELDS = {
    "store_name",
    "currency",
    "low_stock_threshold",
    "tax_rate",
    "tax_rate_bps",
    "ai_enabled",
    "payment_methods",
}


def get_config() -> SystemConfig:
    """Return the configuration row, creating defaults on first use."""
    config = db.session.get(SystemConfig, CONFIG_ID)
    if config is None:
        config = SystemConfig(id=CONFIG_ID, payment_methods=list(DEFAULT_PAYMENT_METHODS))
        db.session.add(config)
        db.session.flush()
    return config


def resolve_payment_method(requested: str | None, config: SystemConfig | None = None) -> str:
    """
    Return requested if it is a configured method, otherwise the first
    configured method. An empty configuration falls back to "Cash".
    """
    config = config or get_config()
    methods = list(config.payment_methods or [])
    if requested and requested in methods:
        return requested
    return methods[0] if methods else "Cash"


def _clean_payment_methods(value) -> list[str]:
    if not isinstance(value, list):
        raise SettingsValidationError("payment_methods must be a list")
    cleaned: list[str] = []
    for method in value:
        label = str(method).strip()
        if label and label not in cleaned:
            cleaned.append(label)
    if not cleaned:
        raise SettingsValidationError("At least one payment method is required")
    return cleaned


def update_config(fields: dict, actor: User | None = None) -> SystemConfig:
    """
    Apply a partial settings update.

    Every field is validated before any attribute changes, so a rejected
    request leaves the configuration exactly as it was.
    """
    unknown = set(fields) - UPDATABLE_CONFIG_FIELDS
    if unknown:
        raise SettingsValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    updates = {}

    if "store_name" in fields:
        name = str(fields["store_name"] or "").strip()
        if not name:
            raise SettingsValidationError("store_name is required")
        updates["store_name"] = name

    if "currency" in fields:
        currency = str(fields["currency"] or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise SettingsValidationError("currency must be a 3-letter code")
        updates["currency"] = currency

    if "low_stock_threshold" in fields:
        threshold = fields["low_stock_threshold"]
        if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold < 0:
            raise SettingsValidationError("low_stock_threshold must be a non-negative integer")
        updates["low_stock_threshold"] = threshold

    if "tax_rate" in fields or "tax_rate_bps" in fields:
        try:
            bps = (
                int(fields["tax_rate_bps"])
                if "tax_rate_bps" in fields
                else percent_to_bps(fields["tax_rate"])
            )
        except (TypeError, ValueError, ArithmeticError):
            raise SettingsValidationError("tax_rate must be a number")
        if bps < 0 or bps > MAX_TAX_RATE_BPS:
            raise SettingsValidationError("tax_rate must be between 0 and 100 percent")
        updates["tax_rate_bps"] = bps

    if "ai_enabled" in fields:
        updates["ai_enabled"] = bool(fields["ai_enabled"])

    if "payment_methods" in fields:
        updates["payment_methods"] = _clean_payment_methods(fields["payment_methods"])

    config = get_config()
    for attr, value in updates.items():
        setattr(config, attr, value)

    if updates:
        changed = ["tax_rate" if attr == "tax_rate_bps" else attr for attr in updates]
        add_log(
            LogType.SYSTEM,
            "Settings",
            f"Configuration updated: {', '.join(changed)}.",
            LogSeverity.WARNING,
            actor=actor,
        )
    db.session.commit()
    return config


def list_branches() -> list[Branch]:
    return db.session.query(Branch).order_by(Branch.id).all()


def get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError(f"Branch {branch_id} not found")
    return branch


def create_branch(*, name: str, phone: str | None = None, email: str | None = None,
                  actor: User | None = None) -> Branch:
    name = (name or "").strip()
    if not name:
        raise SettingsValidationError("Branch name is required")
    if db.session.query(Branch).filter_by(name=name).first():
        raise SettingsValidationError(f"Branch {name!r} already exists")

    branch = Branch(name=name, phone=phone, email=email)
    db.session.add(branch)
    db.session.flush()

    add_log(LogType.BRANCH, name, f"Branch {name} registered.", LogSeverity.SUCCESS, actor=actor)
    db.session.commit()
    return branch


def update_branch(branch_id: int, fields: dict, actor: User | None = None) -> Branch:
    branch = get_branch(branch_id)
    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise SettingsValidationError("Branch name is required")
        clash = db.session.query(Branch).filter(Branch.name == name, Branch.id != branch.id).first()
        if clash:
            raise SettingsValidationError(f"Branch {name!r} already exists")
        branch.name = name
    if "phone" in fields:
        branch.phone = fields["phone"]
    if "email" in fields:
        branch.email = fields["email"]

    add_log(LogType.BRANCH, branch.name, f"Branch {branch.name} updated.", actor=actor)
    db.session.commit()
    return branch
