"""
Feature permission evaluation tests.

Verifies:
- Explicit values win over role defaults (including explicit False)
- super_admin holds every boolean capability
- Unknown roles, categories and capabilities fail closed
- AND / OR composition reports exactly the failing pairs
- Discount limits and the stored tree's load-time validation
"""

import pytest

from clinicstock.errors import ValidationError
from clinicstock.permissions import (
    FeaturePermissions,
    ROLE_TEMPLATES,
    get_all_capability_pairs,
    get_all_categories,
    get_capabilities_by_category,
    get_role_defaults,
    is_numeric_capability,
    validate_capability,
)
from clinicstock.services import permission_service as ps
from clinicstock.services.identity_service import Identity


def identity(role="staff", permissions=None, user_id=1):
    return Identity(
        id=user_id,
        username=f"user{user_id}",
        role=role,
        is_active=True,
        feature_permissions=FeaturePermissions.from_mapping(permissions),
    )


class TestHasPermission:

    def test_role_default_applies_without_override(self):
        assert ps.has_permission(identity("staff"), "inventory", "canViewInventory")
        assert not ps.has_permission(identity("staff"), "inventory", "canCreateRestockOrders")

    def test_explicit_true_extends_role(self):
        user = identity("staff", {"inventory": {"canCreateRestockOrders": True}})
        assert ps.has_permission(user, "inventory", "canCreateRestockOrders")

    def test_explicit_false_beats_role_default(self):
        user = identity("admin", {"inventory": {"canViewInventory": False}})
        assert not ps.has_permission(user, "inventory", "canViewInventory")

    def test_explicit_false_beats_super_admin(self):
        user = identity("super_admin", {"security": {"canManageApiKeys": False}})
        assert not ps.has_permission(user, "security", "canManageApiKeys")
        assert ps.has_permission(user, "security", "canManageSecurity")

    def test_super_admin_has_every_boolean(self):
        user = identity("super_admin")
        for category, key in get_all_capability_pairs():
            if not is_numeric_capability(category, key):
                assert ps.has_permission(user, category, key), f"{category}.{key}"

    @pytest.mark.parametrize(
        "category,key",
        [("inventory", "canLaunchRockets"), ("rockets", "canViewInventory"), ("", "")],
    )
    def test_unknown_pairs_are_denied(self, category, key):
        assert not ps.has_permission(identity("super_admin"), category, key)

    def test_unknown_role_falls_back_to_staff(self):
        user = identity("night_watch")
        assert ps.has_permission(user, "inventory", "canViewInventory")
        assert not ps.has_permission(user, "inventory", "canManageStock")

    def test_no_identity_is_denied(self):
        assert not ps.has_permission(None, "inventory", "canViewInventory")


class TestLimits:

    def test_role_limits(self):
        assert ps.get_limit(identity("staff"), "discounts", "maxDiscountPercent") == 10
        assert ps.get_limit(identity("super_admin"), "discounts", "maxDiscountPercent") == 100

    def test_explicit_limit_overrides_role(self):
        user = identity("staff", {"discounts": {"maxDiscountPercent": 0}})
        assert ps.get_limit(user, "discounts", "maxDiscountPercent") == 0

    def test_boolean_or_unknown_capability_has_no_limit(self):
        assert ps.get_limit(identity("super_admin"), "inventory", "canViewInventory") == 0
        assert ps.get_limit(identity("super_admin"), "discounts", "maxRefund") == 0


class TestComposite:

    def test_require_all_reports_each_failure(self):
        pairs = [
            ("inventory", "canCreateRestockOrders"),
            ("inventory", "canBulkOperations"),
            ("inventory", "canManageStock"),
        ]
        check = ps.require_all(identity("manager"), pairs)
        assert not check.allowed
        assert check.failed == (("inventory", "canBulkOperations"),)

    def test_require_all_passes(self):
        check = ps.require_all(
            identity("admin"),
            [("inventory", "canCreateRestockOrders"), ("inventory", "canBulkOperations")],
        )
        assert check.allowed
        assert check.failed == ()

    def test_require_all_with_no_pairs_is_denied(self):
        assert not ps.require_all(identity("super_admin"), []).allowed

    def test_require_any(self):
        pairs = [("inventory", "canManageStock"), ("inventory", "canViewInventory")]
        assert ps.require_any(identity("staff"), pairs).allowed
        denied = ps.require_any(identity("staff", {"inventory": {"canViewInventory": False}}), pairs)
        assert not denied.allowed
        assert denied.failed == tuple(pairs)

    def test_format_pair(self):
        assert ps.format_pair(("inventory", "canManageStock")) == "inventory.canManageStock"


class TestDiscounts:

    def test_staff_cannot_apply_product_discounts(self):
        check = ps.check_discount_permission(identity("staff"), 5, 0, "product")
        assert check.to_dict() == {"allowed": False, "reason": "No product discount permissions"}

    def test_staff_bill_discount_within_limit(self):
        assert ps.check_discount_permission(identity("staff"), 10, 50, "bill").allowed

    def test_percent_over_limit(self):
        check = ps.check_discount_permission(identity("staff"), 15, 0, "bill")
        assert not check.allowed
        assert check.reason == "Discount percent exceeds limit of 10%"

    def test_amount_over_limit(self):
        check = ps.check_discount_permission(identity("manager"), 5, 750, "bill")
        assert check.reason == "Discount amount exceeds limit of 500"

    def test_unlimited_skips_ceilings(self):
        user = identity("staff", {"discounts": {"unlimitedDiscounts": True}})
        assert ps.check_discount_permission(user, 90, 10000, "bill").allowed

    def test_unknown_discount_type(self):
        check = ps.check_discount_permission(identity("super_admin"), 1, 1, "loyalty")
        assert check.reason == "Unknown discount type: loyalty"


class TestEffectivePermissions:

    def test_effective_tree_layers_overrides(self):
        user = identity("manager", {"inventory": {"canBulkOperations": True, "canViewInventory": False}})
        inventory = ps.get_effective_permissions(user).to_dict()["inventory"]
        assert inventory["canBulkOperations"] is True
        assert inventory["canViewInventory"] is False
        assert inventory["canCreateRestockOrders"] is True

    def test_summary_lists_enabled_capabilities_only(self):
        summary = {s["category"]: s["permissions"] for s in ps.get_permission_summary(identity("staff"))}
        assert summary["inventory"] == ["canViewInventory"]
        assert "userManagement" not in summary
        assert "canApplyProductDiscounts" not in summary["discounts"]


class TestPermissionTree:

    def test_nineteen_categories(self):
        assert len(get_all_categories()) == 19
        assert "dosageForms" in get_all_categories()

    def test_capability_lookups(self):
        assert "canCreateRestockOrders" in get_capabilities_by_category("inventory")
        assert get_capabilities_by_category("rockets") == []
        assert validate_capability("userManagement", "canAssignRoles")
        assert not validate_capability("userManagement", "canLaunchRockets")
        assert is_numeric_capability("discounts", "maxDiscountAmount")

    @pytest.mark.parametrize(
        "raw",
        [
            {"rockets": {"canLaunch": True}},
            {"inventory": {"canLaunch": True}},
            {"inventory": {"canViewInventory": "yes"}},
            {"discounts": {"maxDiscountPercent": True}},
            {"discounts": {"maxDiscountPercent": -1}},
            {"discounts": {"maxDiscountPercent": float("inf")}},
            {"discounts": {"maxDiscountAmount": float("nan")}},
            {"inventory": ["canViewInventory"]},
        ],
    )
    def test_invalid_trees_rejected(self, raw):
        with pytest.raises(ValidationError):
            FeaturePermissions.from_mapping(raw)

    def test_unset_values_are_none(self):
        perms = FeaturePermissions.from_mapping({"inventory": {"canViewInventory": True}})
        assert perms.category("inventory").get("canManageStock") is None
        assert perms.to_dict() == {"inventory": {"canViewInventory": True}}

    def test_role_defaults_are_valid_trees(self):
        assert get_role_defaults("admin").category("inventory").get("canBulkOperations") is True
        assert get_role_defaults(None) == get_role_defaults("staff")

    def test_templates_serialize(self):
        template = ROLE_TEMPLATES["it_administrator"].to_dict()
        assert template["display_name"] == "IT Administrator"
        assert template["permissions"]["userManagement"]["canManagePermissions"] is True
