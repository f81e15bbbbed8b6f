# Overview: Service-layer operations for user provisioning; password hashing and account creation.

"""
User provisioning.

Accounts are created by operators (CLI), never self-registered. Passwords
are hashed with bcrypt and must meet the strength rules below. Interactive
login lives outside this backend; operators get tokens from
`flask tokens issue`, which checks the hash with verify_password.
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy import select

from ..errors import ValidationError
from ..extensions import db
from ..models import User
from ..permissions import FeaturePermissions, ROLES, STAFF, is_valid_role


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


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
    """Validate strength, then bcrypt-hash (cost from BCRYPT_ROUNDS)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    role: str = STAFF,
    email: str | None = None,
    display_name: str | None = None,
    feature_permissions: dict | None = None,
) -> User:
    """
    Create a new user.

    Raises ValidationError for an unknown role, a taken username, a weak
    password or an invalid feature permission tree.
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if not is_valid_role(role):
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.execute(select(User.id).where(User.username == username)).first()
    if existing:
        raise ValidationError(f"Username '{username}' already exists")

    perms = FeaturePermissions.from_mapping(feature_permissions)

    user = User(
        username=username,
        email=email,
        display_name=display_name,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
        feature_permissions=perms.to_dict(),
    )
    db.session.add(user)
    db.session.commit()
    return user
