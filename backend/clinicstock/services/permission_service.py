# Overview: Service-layer operations for permission; feature-permission evaluation and security event logging.

"""
Feature Permission Evaluation and Security Event Logging

Evaluation is a pure function of (identity, category, capability):
- an explicit value on the identity wins, including an explicit False
- otherwise the role default applies (super_admin: every boolean capability)
- numeric capabilities with no value anywhere resolve to 0
- unknown categories / capabilities resolve to False; evaluation never raises

DESIGN PRINCIPLES:
- Fail closed: deny unless something grants
- Log denials only: grants are not logged
- No I/O in the evaluator; log_security_event is the only store write here
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import CATEGORY_RECORDS, FeaturePermissions, get_role_defaults
from ..time_utils import utcnow


@dataclass(frozen=True)
class PermissionCheck:
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason}


@dataclass(frozen=True)
class CompositeCheck:
    """Outcome of an AND/OR check; failed lists every pair that did not pass, in input order."""
    allowed: bool
    failed: tuple[tuple[str, str], ...]


def format_pair(pair: tuple[str, str]) -> str:
    return f"{pair[0]}.{pair[1]}"


def _overrides(identity) -> FeaturePermissions:
    perms = getattr(identity, "feature_permissions", None)
    return perms if isinstance(perms, FeaturePermissions) else FeaturePermissions()


def _resolve(identity, category: str, name: str):
    """Explicit value, else role default, else None. Unknown pairs are None."""
    record = CATEGORY_RECORDS.get(category)
    if identity is None or record is None or not record.knows(name):
        return None

    explicit = _overrides(identity).category(category).get(name)
    if explicit is not None:
        return explicit

    return get_role_defaults(getattr(identity, "role", None)).category(category).get(name)


def has_permission(identity, category: str, permission_name: str) -> bool:
    """
    Decide whether identity may perform category.permission_name.

    Never raises; anything unknown is a denial.
    """
    return bool(_resolve(identity, category, permission_name))


def get_limit(identity, category: str, name: str) -> float:
    """Numeric capability value; 0 when neither the identity nor its role grants one."""
    record = CATEGORY_RECORDS.get(category)
    if record is None or not record.is_numeric(name):
        return 0
    value = _resolve(identity, category, name)
    return value if value is not None else 0


def require_all(identity, pairs: Iterable[tuple[str, str]]) -> CompositeCheck:
    """AND over pairs. Every pair is evaluated so the failures are complete; no pairs is a denial."""
    pairs = list(pairs)
    failed = tuple(p for p in pairs if not has_permission(identity, p[0], p[1]))
    return CompositeCheck(allowed=bool(pairs) and not failed, failed=failed)


def require_any(identity, pairs: Iterable[tuple[str, str]]) -> CompositeCheck:
    """OR over pairs. Every pair is evaluated; failed holds the ones that did not pass."""
    pairs = list(pairs)
    failed = tuple(p for p in pairs if not has_permission(identity, p[0], p[1]))
    return CompositeCheck(allowed=len(failed) < len(pairs), failed=failed)


def check_discount_permission(
    identity,
    discount_percent: float = 0,
    discount_amount: float = 0,
    discount_type: str = "bill",
) -> PermissionCheck:
    """
    Check a discount against the identity's discount capabilities.

    discount_type is "product" or "bill". unlimitedDiscounts skips the
    percent / amount ceilings but not the type check.
    """
    if discount_type == "product":
        if not has_permission(identity, "discounts", "canApplyProductDiscounts"):
            return PermissionCheck(False, "No product discount permissions")
    elif discount_type == "bill":
        if not has_permission(identity, "discounts", "canApplyBillDiscounts"):
            return PermissionCheck(False, "No bill discount permissions")
    else:
        return PermissionCheck(False, f"Unknown discount type: {discount_type}")

    if has_permission(identity, "discounts", "unlimitedDiscounts"):
        return PermissionCheck(True)

    max_percent = get_limit(identity, "discounts", "maxDiscountPercent")
    if discount_percent > max_percent:
        return PermissionCheck(False, f"Discount percent exceeds limit of {max_percent:g}%")

    max_amount = get_limit(identity, "discounts", "maxDiscountAmount")
    if discount_amount > max_amount:
        return PermissionCheck(False, f"Discount amount exceeds limit of {max_amount:g}")

    return PermissionCheck(True)


def get_effective_permissions(identity) -> FeaturePermissions:
    """Role defaults with the identity's explicit values applied on top."""
    return get_role_defaults(getattr(identity, "role", None)).merged(_overrides(identity))


def get_permission_summary(identity) -> list[dict]:
    """Enabled boolean capabilities per category, skipping empty categories."""
    summary = []
    for category, perms in get_effective_permissions(identity).to_dict().items():
        enabled = [key for key, value in perms.items() if value is True]
        if enabled:
            summary.append({"category": category, "permissions": enabled})
    return summary


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - IDENTITY_INACTIVE
    - ROLE_CHANGED
    - PERMISSIONS_UPDATED
    - ROLE_TEMPLATE_APPLIED
    - USER_DEACTIVATED / USER_ACTIVATED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event
