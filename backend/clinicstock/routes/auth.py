# Overview: Flask API routes for the authenticated caller; returns JSON responses.

# backend/clinicstock/routes/auth.py
"""
Who-am-I endpoint.

Tokens are issued elsewhere (the credential flow, or `flask tokens issue`
for operators); this blueprint only reports what a verified token resolves to.
"""

from flask import Blueprint, g, jsonify

from ..decorators import require_auth
from ..services import permission_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Get the current identity with its effective permissions.

    Response:
    - user: id, username, role, is_active, explicit feature_permissions
    - effective_permissions: role defaults with explicit values applied
    - permission_summary: enabled capabilities grouped by category
    """
    identity = g.current_identity
    return jsonify({
        "user": identity.to_dict(),
        "effective_permissions": permission_service.get_effective_permissions(identity).to_dict(),
        "permission_summary": permission_service.get_permission_summary(identity),
    })
