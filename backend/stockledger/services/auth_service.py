# Overview: Staff accounts; password hashing, account creation and credential checks.

"""
Authentication Service

WHY: Every stock change and audit entry is attributed to a staff account,
so accounts need real credentials. Uses bcrypt for password hashing and
validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, UserRole, LogType, LogSeverity
from .audit_service import add_log
from .errors import AuthError, NotFoundError, ServiceError
from .session_service import revoke_all_user_sessions


class PasswordValidationError(ServiceError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


class UserExistsError(ServiceError):
    code = "USER_EXISTS"
    http_status = 409


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash. Stored as str in the database."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Malformed hashes (for example a plaintext value left in an imported
    snapshot) never match.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    name: str,
    password: str,
    role: UserRole | str = UserRole.CASHIER,
    branch_id: int | None = None,
    actor: User | None = None,
) -> User:
    """
    Create a staff account.

    Raises:
        PasswordValidationError: password doesn't meet requirements
        UserExistsError: username already taken
        ServiceError: unknown role or empty username/name
    """
    username = (username or "").strip()
    name = (name or "").strip()
    if not username or not name:
        raise ServiceError("username and name are required")

    try:
        role = UserRole(role)
    except ValueError:
        raise ServiceError(f"Unknown role {role!r}", details={"roles": [r.value for r in UserRole]})

    if db.session.query(User).filter_by(username=username).first():
        raise UserExistsError(f"Username {username!r} already exists")

    user = User(
        username=username,
        name=name,
        password_hash=hash_password(password),
        role=role,
        branch_id=branch_id,
    )
    db.session.add(user)
    db.session.flush()

    add_log(
        LogType.EMPLOYEE,
        username,
        f"Account created for {name} ({role.value}).",
        LogSeverity.SUCCESS,
        actor=actor,
    )
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User:
    """
    Check credentials and record the login.

    Raises AuthError for unknown users, inactive accounts and wrong
    passwords alike, so callers cannot probe which usernames exist.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password or "", user.password_hash):
        raise AuthError("Invalid username or password")

    add_log(LogType.LOGIN, user.username, f"{user.name} logged in.", actor=user)
    db.session.commit()
    return user


def record_logout(user: User) -> None:
    add_log(LogType.LOGIN, user.username, f"{user.name} logged out.", actor=user)
    db.session.commit()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def set_user_active(user_id: int, active: bool, actor: User | None = None) -> User:
    """Enable or disable an account. Disabling revokes every open session."""
    user = get_user(user_id)
    user.is_active = active
    add_log(
        LogType.EMPLOYEE,
        user.username,
        f"Account {'enabled' if active else 'disabled'} for {user.name}.",
        LogSeverity.INFO if active else LogSeverity.WARNING,
        actor=actor,
    )
    if not active:
        revoke_all_user_sessions(user.id, reason="User account deactivated")
    db.session.commit()
    return user
