# Overview: Request authentication and feature-permission decorators for API routes.

"""
Request gate.

require_auth walks a request through
UNAUTHENTICATED -> TOKEN_VERIFIED -> IDENTITY_RESOLVED, recording the state
on g.auth_state; the permission decorators then move it to AUTHORIZED or
DENIED. Every failure answers with JSON and never reaches the route.

Permission pairs are (category, capability), e.g.
("inventory", "canCreateRestockOrders").
"""

from functools import wraps

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .errors import (
    AuthenticationFailure,
    ClinicError,
    IdentityInactive,
    MissingToken,
    PermissionDenied,
)
from .extensions import db
from .services import permission_service, token_service
from .services.identity_service import get_identity_cache
from .services.permission_service import format_pair

UNAUTHENTICATED = "UNAUTHENTICATED"
TOKEN_VERIFIED = "TOKEN_VERIFIED"
IDENTITY_RESOLVED = "IDENTITY_RESOLVED"
AUTHORIZED = "AUTHORIZED"
DENIED = "DENIED"


def _is_authenticated() -> bool:
    return getattr(g, "auth_state", None) in (IDENTITY_RESOLVED, AUTHORIZED)


def _error_response(exc: ClinicError):
    return jsonify(exc.to_dict()), exc.status_code


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise MissingToken()
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise MissingToken()
    return token


def _log_denial(identity_id, event_type: str, action: str, reason: str) -> None:
    current_app.logger.warning(
        "%s user=%s %s %s: %s", event_type, identity_id, request.method, request.path, reason
    )
    try:
        permission_service.log_security_event(
            user_id=identity_id,
            event_type=event_type,
            success=False,
            resource=request.path,
            action=action,
            reason=reason,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    except SQLAlchemyError:
        # The denial stands even if the audit row cannot be written
        db.session.rollback()
        current_app.logger.exception("Failed to record security event %s", event_type)


def require_auth(f):
    """
    Require a valid bearer token for an active identity.

    Sets:
    - g.auth_state: gate state (see module docstring)
    - g.token_claims: verified token claims
    - g.current_identity: the resolved Identity (never carries the password hash)

    Responds 401 for a missing/invalid/expired token or unknown subject,
    403 for a deactivated account, 503 when the identity store is
    unreachable and 500 if verification itself breaks.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.auth_state = UNAUTHENTICATED

        try:
            claims = token_service.verify_token(_bearer_token())
        except ClinicError as exc:
            if isinstance(exc, AuthenticationFailure):
                current_app.logger.info("Authentication failed on %s: %s", request.path, exc.code)
            return _error_response(exc)

        g.auth_state = TOKEN_VERIFIED
        g.token_claims = claims

        try:
            identity = get_identity_cache().resolve(claims["sub"])
        except IdentityInactive as exc:
            _log_denial(exc.identity_id, "IDENTITY_INACTIVE", "AUTHENTICATE", "Account is deactivated")
            return _error_response(exc)
        except ClinicError as exc:
            return _error_response(exc)

        g.current_identity = identity
        g.auth_state = IDENTITY_RESOLVED

        return f(*args, **kwargs)

    return decorated_function


def _deny(pairs_required, failed, mode: str):
    identity = g.current_identity
    g.auth_state = DENIED
    exc = PermissionDenied(failed)
    _log_denial(
        identity.id,
        "PERMISSION_DENIED",
        f"{mode}:{','.join(format_pair(p) for p in pairs_required)}",
        f"Missing: {', '.join(exc.missing_names)}",
    )
    body = exc.to_dict(expose=current_app.config.get("EXPOSE_DENIED_PERMISSION", True))
    return jsonify(body), exc.status_code


def _permission_gate(pairs, mode: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "AUTHENTICATION_FAILED"}), 401

            if mode == "ALL_OF":
                check = permission_service.require_all(g.current_identity, pairs)
            else:
                check = permission_service.require_any(g.current_identity, pairs)

            if not check.allowed:
                return _deny(pairs, check.failed, mode)

            g.auth_state = AUTHORIZED
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_permission(category: str, permission: str):
    """Require one (category, permission) pair."""
    return _permission_gate(((category, permission),), "ALL_OF")


def require_all_permissions(*pairs):
    """Require every pair; denials name exactly the pairs that failed."""
    return _permission_gate(tuple(pairs), "ALL_OF")


def require_any_permission(*pairs):
    """Require at least one pair."""
    return _permission_gate(tuple(pairs), "ANY_OF")
