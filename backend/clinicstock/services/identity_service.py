# Overview: Service-layer operations for identities; lookup for the auth gate and role/permission administration.

"""
Identity lookup and administration.

load_identity() is the Identity Cache loader: it reads only the columns the
authorization gate needs (never the password hash) and returns a frozen
Identity with a validated FeaturePermissions tree.

Every mutation here commits first, then drops the cache entry, so the next
request for that user sees the change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app
from sqlalchemy import select

from ..errors import IdentityResolutionFailed, UserNotFound, ValidationError
from ..extensions import db
from ..models import User
from ..permissions import FeaturePermissions, ROLES, get_role_template, is_valid_role
from .concurrency import store_operation
from .identity_cache import IdentityCache

logger = logging.getLogger(__name__)

CACHE_EXTENSION_KEY = "identity_cache"


@dataclass(frozen=True)
class Identity:
    id: int
    username: str
    role: str
    is_active: bool
    feature_permissions: FeaturePermissions = field(default_factory=FeaturePermissions)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "is_active": self.is_active,
            "feature_permissions": self.feature_permissions.to_dict(),
        }


def load_identity(user_id: int) -> Optional[Identity]:
    """Fetch an identity from the store; None when no such user exists."""
    with store_operation(f"identity:{user_id}"):
        row = db.session.execute(
            select(User.id, User.username, User.role, User.is_active, User.feature_permissions)
            .where(User.id == user_id)
        ).one_or_none()

    if row is None:
        return None

    try:
        perms = FeaturePermissions.from_mapping(row.feature_permissions)
    except ValidationError as exc:
        # A corrupt grant tree must not silently fall back to role defaults
        logger.error("Stored feature permissions for user %s are invalid: %s", row.id, exc)
        raise IdentityResolutionFailed(row.id, exc) from exc

    return Identity(
        id=int(row.id),
        username=row.username,
        role=row.role,
        is_active=bool(row.is_active),
        feature_permissions=perms,
    )


def create_identity_cache(ttl_seconds: float) -> IdentityCache:
    return IdentityCache(load_identity, ttl_seconds=ttl_seconds)


def get_identity_cache() -> IdentityCache:
    return current_app.extensions[CACHE_EXTENSION_KEY]


def _get_user(user_id: int) -> User:
    with store_operation(f"identity:{user_id}"):
        user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user


def _commit_and_invalidate(user: User) -> User:
    with store_operation(f"identity:{user.id}"):
        db.session.commit()
    get_identity_cache().invalidate(user.id)
    return user


def set_role(user_id: int, role: str) -> User:
    if not is_valid_role(role):
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    user = _get_user(user_id)
    user.role = role
    logger.info("User %s role set to %s", user_id, role)
    return _commit_and_invalidate(user)


def set_active(user_id: int, is_active: bool) -> User:
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be true or false")
    user = _get_user(user_id)
    user.is_active = is_active
    logger.info("User %s %s", user_id, "activated" if is_active else "deactivated")
    return _commit_and_invalidate(user)


def update_feature_permissions(user_id: int, permissions: dict, *, replace: bool = False) -> User:
    """
    Apply explicit permission values to a user.

    By default the given values are merged into the user's existing
    overrides; replace=True discards the existing overrides first.
    Unknown categories / capabilities are rejected before anything is written.
    """
    overrides = FeaturePermissions.from_mapping(permissions)
    user = _get_user(user_id)
    if replace:
        updated = overrides
    else:
        updated = FeaturePermissions.from_mapping(user.feature_permissions).merged(overrides)
    user.feature_permissions = updated.to_dict()
    return _commit_and_invalidate(user)


def apply_role_template(user_id: int, template_name: str) -> User:
    """Replace the user's overrides with a named role template."""
    template = get_role_template(template_name)
    if template is None:
        raise ValidationError(f"Role template '{template_name}' not found")
    user = _get_user(user_id)
    user.feature_permissions = template.permissions.to_dict()
    logger.info("Applied role template %s to user %s", template_name, user_id)
    return _commit_and_invalidate(user)


def bulk_update_permissions(user_ids: list[int], permissions: dict) -> int:
    """Replace the overrides of several users at once. Returns how many were updated."""
    overrides = FeaturePermissions.from_mapping(permissions).to_dict()
    with store_operation("identity:bulk-permissions"):
        users = db.session.execute(select(User).where(User.id.in_(user_ids))).scalars().all()
        for user in users:
            user.feature_permissions = overrides
        db.session.commit()
    cache = get_identity_cache()
    for user in users:
        cache.invalidate(user.id)
    return len(users)
