# Overview: Role to feature mapping used by route guards.

"""
Each role unlocks a fixed set of features. ADMIN unlocks everything.

Features:
- pos: checkout and cart checks
- inventory: catalogue edits, stock adjustments, receiving
- deliveries: transfers and customer deliveries
- dashboard: reports, audit log
- employees: staff accounts
- settings: business configuration, branches, state snapshots
- accounting: expenses, financial report
"""

from __future__ import annotations

from .models import UserRole

FEATURES = ("pos", "inventory", "deliveries", "dashboard", "employees", "settings", "accounting")

ROLE_FEATURES: dict[UserRole, frozenset[str]] = {
    UserRole.ADMIN: frozenset(FEATURES),
    UserRole.CASHIER: frozenset({"pos", "deliveries"}),
    UserRole.WAREHOUSE_CLERK: frozenset({"inventory", "deliveries"}),
    UserRole.DRIVER: frozenset({"deliveries"}),
    UserRole.HR: frozenset({"dashboard", "employees"}),
}


def features_for(role: UserRole | str) -> frozenset[str]:
    return ROLE_FEATURES.get(UserRole(role), frozenset())


def has_feature(user, feature: str) -> bool:
    if user is None:
        return False
    return feature in features_for(user.role)
