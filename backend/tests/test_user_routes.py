"""
Identity administration API tests.

Verifies:
- Each endpoint is guarded by its own userManagement capability
- Role, status, permission and template changes are audited
- Invalid input and unknown users are rejected without side effects
"""

import pytest

from clinicstock.extensions import db
from clinicstock.models import SecurityEvent, User


def _events(event_type):
    return db.session.query(SecurityEvent).filter_by(event_type=event_type).all()


class TestTemplates:

    def test_list_templates(self, client, make_user, headers_for):
        resp = client.get("/api/users/templates", headers=headers_for(make_user("super_admin")))
        assert resp.status_code == 200
        names = {t["name"] for t in resp.json["templates"]}
        assert {"pharmacy_manager", "it_administrator"} <= names

    def test_admin_cannot_manage_permissions(self, client, make_user, headers_for):
        resp = client.get("/api/users/templates", headers=headers_for(make_user("admin")))
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "userManagement.canManagePermissions"

    def test_apply_template(self, client, make_user, headers_for):
        operator = make_user("staff", {"userManagement": {"canManagePermissions": True}})
        target = make_user("staff", {"security": {"canManageSecurity": True}})

        resp = client.post(
            f"/api/users/{target.id}/apply-template",
            json={"template": "pharmacy_manager"},
            headers=headers_for(operator),
        )

        assert resp.status_code == 200
        perms = resp.json["user"]["feature_permissions"]
        assert perms["inventory"]["canBulkOperations"] is True
        assert "security" not in perms

        [event] = _events("ROLE_TEMPLATE_APPLIED")
        assert event.user_id == operator.id
        assert event.action == f"USER:{target.id}"
        assert event.reason == "pharmacy_manager"

    def test_unknown_template(self, client, make_user, headers_for):
        target = make_user()
        resp = client.post(
            f"/api/users/{target.id}/apply-template",
            json={"template": "astronaut"},
            headers=headers_for(make_user("super_admin")),
        )
        assert resp.status_code == 400
        assert _events("ROLE_TEMPLATE_APPLIED") == []


class TestPermissionRoutes:

    def test_patch_merges_unless_replace(self, client, make_user, headers_for):
        admin_headers = headers_for(make_user("super_admin"))
        target = make_user("staff", {"inventory": {"canManageStock": True}})

        resp = client.patch(
            f"/api/users/{target.id}/permissions",
            json={"permissions": {"reports": {"canExportReports": True}}},
            headers=admin_headers,
        )
        assert resp.json["user"]["feature_permissions"] == {
            "inventory": {"canManageStock": True},
            "reports": {"canExportReports": True},
        }

        resp = client.patch(
            f"/api/users/{target.id}/permissions",
            json={"permissions": {"reports": {"canExportReports": False}}, "replace": True},
            headers=admin_headers,
        )
        assert resp.json["user"]["feature_permissions"] == {"reports": {"canExportReports": False}}
        assert len(_events("PERMISSIONS_UPDATED")) == 2

    @pytest.mark.parametrize(
        "body",
        [
            {"permissions": {"inventory": {"canTeleport": True}}},
            {"permissions": {"rockets": {}}},
            {"permissions": "all"},
            {"permissions": {}, "replace": "yes"},
        ],
    )
    def test_invalid_permissions(self, client, make_user, headers_for, body):
        target = make_user("staff", {"inventory": {"canManageStock": True}})
        resp = client.patch(
            f"/api/users/{target.id}/permissions", json=body, headers=headers_for(make_user("super_admin"))
        )
        assert resp.status_code == 400
        assert db.session.get(User, target.id).feature_permissions == {"inventory": {"canManageStock": True}}

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_limit(self, client, make_user, headers_for, literal):
        target = make_user("staff", {"inventory": {"canManageStock": True}})
        resp = client.patch(
            f"/api/users/{target.id}/permissions",
            data=f'{{"permissions": {{"discounts": {{"maxDiscountPercent": {literal}}}}}}}',
            content_type="application/json",
            headers=headers_for(make_user("super_admin")),
        )
        assert resp.status_code == 400
        assert db.session.get(User, target.id).feature_permissions == {"inventory": {"canManageStock": True}}

    def test_unknown_user(self, client, make_user, headers_for):
        resp = client.patch(
            "/api/users/9999/permissions",
            json={"permissions": {}},
            headers=headers_for(make_user("super_admin")),
        )
        assert resp.status_code == 404

    def test_bulk_update(self, client, make_user, headers_for):
        a = make_user()
        b = make_user()
        resp = client.post(
            "/api/users/permissions/bulk",
            json={"userIds": [a.id, b.id], "permissions": {"inventory": {"canCreateRestockOrders": True}}},
            headers=headers_for(make_user("super_admin")),
        )
        assert resp.status_code == 200
        assert resp.json["updated"] == 2
        [event] = _events("PERMISSIONS_UPDATED")
        assert event.action == f"USER:{a.id},{b.id}"

    @pytest.mark.parametrize("user_ids", [[], "1,2", [1, "2"], [True]])
    def test_bulk_update_bad_ids(self, client, make_user, headers_for, user_ids):
        resp = client.post(
            "/api/users/permissions/bulk",
            json={"userIds": user_ids, "permissions": {}},
            headers=headers_for(make_user("super_admin")),
        )
        assert resp.status_code == 400


class TestRoleRoutes:

    def test_admin_cannot_assign_roles(self, client, make_user, headers_for):
        target = make_user()
        resp = client.patch(
            f"/api/users/{target.id}/role", json={"role": "manager"}, headers=headers_for(make_user("admin"))
        )
        assert resp.status_code == 403
        assert db.session.get(User, target.id).role == "staff"

    def test_super_admin_assigns_role(self, client, make_user, headers_for):
        target = make_user()
        resp = client.patch(
            f"/api/users/{target.id}/role", json={"role": "manager"}, headers=headers_for(make_user("super_admin"))
        )
        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "manager"
        [event] = _events("ROLE_CHANGED")
        assert event.reason == "manager"

    @pytest.mark.parametrize("role", ["overlord", None, 3])
    def test_invalid_role(self, client, make_user, headers_for, role):
        target = make_user()
        resp = client.patch(
            f"/api/users/{target.id}/role", json={"role": role}, headers=headers_for(make_user("super_admin"))
        )
        assert resp.status_code == 400


class TestStatusRoutes:

    def test_admin_deactivates_and_reactivates(self, client, make_user, headers_for):
        admin_headers = headers_for(make_user("admin"))
        target = make_user()

        resp = client.patch(f"/api/users/{target.id}/status", json={"isActive": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["is_active"] is False

        resp = client.patch(f"/api/users/{target.id}/status", json={"isActive": True}, headers=admin_headers)
        assert resp.json["user"]["is_active"] is True

        assert len(_events("USER_DEACTIVATED")) == 1
        assert len(_events("USER_ACTIVATED")) == 1

    def test_cannot_deactivate_self(self, client, make_user, headers_for):
        admin = make_user("admin")
        resp = client.patch(f"/api/users/{admin.id}/status", json={"isActive": False}, headers=headers_for(admin))
        assert resp.status_code == 400
        assert db.session.get(User, admin.id).is_active is True

    def test_manager_cannot_edit_users(self, client, make_user, headers_for):
        target = make_user()
        resp = client.patch(
            f"/api/users/{target.id}/status", json={"isActive": False}, headers=headers_for(make_user("manager"))
        )
        assert resp.status_code == 403

    def test_status_must_be_boolean(self, client, make_user, headers_for):
        target = make_user()
        resp = client.patch(
            f"/api/users/{target.id}/status", json={"isActive": "no"}, headers=headers_for(make_user("admin"))
        )
        assert resp.status_code == 400
