# Overview: Flask API routes for identity administration; parses input and returns JSON responses.

# backend/clinicstock/routes/users.py
"""
Identity administration routes.

Every mutation goes through identity_service, which commits and then drops
the user's Identity Cache entry, so the change is visible on the user's
next request.

All endpoints require authentication and a userManagement capability.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ValidationError
from ..services import identity_service, permission_service
from ..permissions import ROLE_TEMPLATES


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _audit(target, event_type: str, reason: str | None) -> None:
    """Record an administrative change against the acting identity."""
    permission_service.log_security_event(
        user_id=g.current_identity.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=f"USER:{target}",
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@users_bp.get("/templates")
@require_auth
@require_permission("userManagement", "canManagePermissions")
def list_templates_route():
    """List the role templates that apply-template accepts."""
    return jsonify({"templates": [t.to_dict() for t in ROLE_TEMPLATES.values()]})


@users_bp.patch("/<int:user_id>/permissions")
@require_auth
@require_permission("userManagement", "canManagePermissions")
def update_permissions_route(user_id: int):
    """
    Set explicit feature permissions for a user.

    Request body:
    - permissions: {category: {capability: value}} (required)
    - replace: bool (default false) - discard existing explicit values first
    """
    payload = _json_body()
    permissions = payload.get("permissions")
    if not isinstance(permissions, dict):
        raise ValidationError("permissions must be an object")
    replace = payload.get("replace", False)
    if not isinstance(replace, bool):
        raise ValidationError("replace must be true or false")

    user = identity_service.update_feature_permissions(user_id, permissions, replace=replace)
    _audit(user.id, "PERMISSIONS_UPDATED", ", ".join(sorted(permissions)))
    current_app.logger.info("User %s permissions updated by %s", user.id, g.current_identity.id)
    return jsonify({"user": user.to_dict()})


@users_bp.post("/permissions/bulk")
@require_auth
@require_permission("userManagement", "canManagePermissions")
def bulk_update_permissions_route():
    """
    Replace the explicit feature permissions of several users.

    Request body: {userIds: [int], permissions: {...}}
    """
    payload = _json_body()
    user_ids = payload.get("userIds")
    if (
        not isinstance(user_ids, list)
        or not user_ids
        or any(isinstance(u, bool) or not isinstance(u, int) for u in user_ids)
    ):
        raise ValidationError("userIds must be a non-empty list of integers")
    permissions = payload.get("permissions")
    if not isinstance(permissions, dict):
        raise ValidationError("permissions must be an object")

    updated = identity_service.bulk_update_permissions(user_ids, permissions)
    _audit(",".join(str(u) for u in user_ids), "PERMISSIONS_UPDATED", f"bulk:{updated}")
    return jsonify({"updated": updated})


@users_bp.patch("/<int:user_id>/role")
@require_auth
@require_permission("userManagement", "canAssignRoles")
def update_role_route(user_id: int):
    """Request body: {role: staff | manager | admin | super_admin}"""
    role = _json_body().get("role")
    if not isinstance(role, str):
        raise ValidationError("role is required")

    user = identity_service.set_role(user_id, role)
    _audit(user.id, "ROLE_CHANGED", role)
    return jsonify({"user": user.to_dict()})


@users_bp.patch("/<int:user_id>/status")
@require_auth
@require_permission("userManagement", "canEditUsers")
def update_status_route(user_id: int):
    """
    Activate or deactivate a user.

    Request body: {isActive: bool}

    A user cannot deactivate themselves.
    """
    is_active = _json_body().get("isActive")
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be true or false")
    if not is_active and user_id == g.current_identity.id:
        raise ValidationError("You cannot deactivate your own account")

    user = identity_service.set_active(user_id, is_active)
    _audit(user.id, "USER_ACTIVATED" if is_active else "USER_DEACTIVATED", None)
    return jsonify({"user": user.to_dict()})


@users_bp.post("/<int:user_id>/apply-template")
@require_auth
@require_permission("userManagement", "canManagePermissions")
def apply_template_route(user_id: int):
    """
    Replace a user's explicit permissions with a role template.

    Request body: {template: pharmacy_manager | sales_staff | financial_officer | it_administrator}
    """
    template = _json_body().get("template")
    if not isinstance(template, str):
        raise ValidationError("template is required")

    user = identity_service.apply_role_template(user_id, template)
    _audit(user.id, "ROLE_TEMPLATE_APPLIED", template)
    return jsonify({"user": user.to_dict()})
