# Overview: Role defaults and assignable role templates.
# Role defaults are consulted only when an identity carries no explicit value.

from __future__ import annotations

from dataclasses import dataclass

from .definitions import CATEGORY_RECORDS, FeaturePermissions


STAFF = "staff"
MANAGER = "manager"
ADMIN = "admin"
SUPER_ADMIN = "super_admin"

ROLES = (STAFF, MANAGER, ADMIN, SUPER_ADMIN)

# Role used when a stored role is not one of ROLES
FALLBACK_ROLE = STAFF


def _grant_everything(numeric: dict[str, dict[str, float]]) -> dict:
    tree: dict[str, dict] = {}
    for category, record in CATEGORY_RECORDS.items():
        tree[category] = {
            key: (numeric.get(category, {}).get(key, 0) if record.is_numeric(key) else True)
            for key in record.capability_keys()
        }
    return tree


_SUPER_ADMIN = _grant_everything({
    "discounts": {"maxDiscountPercent": 100, "maxDiscountAmount": 999999},
})

_ADMIN = {
    "discounts": {"canApplyProductDiscounts": True, "canApplyBillDiscounts": True, "maxDiscountPercent": 50, "maxDiscountAmount": 1000, "unlimitedDiscounts": False},
    "reports": {"canViewFinancialReports": True, "canViewInventoryReports": True, "canViewUserReports": True, "canViewSecurityMetrics": False, "canExportReports": True},
    # Cost prices stay with super_admin
    "inventory": {"canViewInventory": True, "canAddProducts": True, "canEditProducts": True, "canDeleteProducts": True, "canManageStock": True, "canCreateRestockOrders": True, "canBulkOperations": True, "canEditCostPrices": False},
    "userManagement": {"canViewUsers": True, "canCreateUsers": True, "canEditUsers": True, "canDeleteUsers": False, "canAssignRoles": False, "canChangeRoles": False, "canManagePermissions": False, "canResetPasswords": True, "canViewSecurityLogs": True, "canViewAuditLogs": True},
    "patients": {"canCreatePatients": True, "canEditPatients": True, "canDeletePatients": True, "canViewMedicalHistory": True, "canManagePrescriptions": True, "canAccessAllPatients": True},
    "transactions": {"canViewTransactions": True, "canCreateTransactions": True, "canEditTransactions": True, "canEditDrafts": True, "canDeleteTransactions": False, "canApplyDiscounts": True, "canRefundTransactions": True, "canViewFinancialDetails": True},
    "bundles": {"canViewBundles": True, "canCreateBundles": True, "canEditBundles": True, "canDeleteBundles": False, "canSetPricing": True},
    "suppliers": {"canManageSuppliers": False, "canCreateSuppliers": False, "canEditSuppliers": False, "canDeleteSuppliers": False},
    "blends": {"canCreateFixedBlends": False, "canEditFixedBlends": False, "canDeleteFixedBlends": False, "canViewFixedBlends": True, "canCreateCustomBlends": False},
    "prescriptions": {"canCreatePrescriptions": True, "canEditPrescriptions": True, "canDeletePrescriptions": False, "canViewAllPrescriptions": True, "canPrintPrescriptions": True, "canManageTemplates": False},
    "appointments": {"canCreateAppointments": True, "canEditAppointments": True, "canDeleteAppointments": False, "canViewAllAppointments": True, "canManageSchedules": True, "canOverrideBookings": False},
    "documents": {"canUploadDocuments": True, "canViewDocuments": True, "canDeleteDocuments": False, "canManageFolders": False},
    "security": {"canViewSecurityLogs": True, "canManageSecurity": False, "canViewAuditTrails": True, "canManageApiKeys": False},
}

_MANAGER = {
    "discounts": {"canApplyProductDiscounts": True, "canApplyBillDiscounts": True, "maxDiscountPercent": 25, "maxDiscountAmount": 500, "unlimitedDiscounts": False},
    "reports": {"canViewFinancialReports": True, "canViewInventoryReports": True, "canViewUserReports": False, "canViewSecurityMetrics": False, "canExportReports": True},
    "inventory": {"canViewInventory": True, "canAddProducts": True, "canEditProducts": True, "canDeleteProducts": False, "canManageStock": True, "canCreateRestockOrders": True, "canBulkOperations": False, "canEditCostPrices": False},
    "userManagement": {"canViewUsers": True},
    "patients": {"canCreatePatients": True, "canEditPatients": True, "canDeletePatients": False, "canViewMedicalHistory": True, "canManagePrescriptions": True, "canAccessAllPatients": True},
    "transactions": {"canViewTransactions": True, "canCreateTransactions": True, "canEditTransactions": True, "canEditDrafts": True, "canDeleteTransactions": False, "canApplyDiscounts": True, "canRefundTransactions": False, "canViewFinancialDetails": True},
    "bundles": {"canViewBundles": True},
    "suppliers": {"canManageSuppliers": True},
    "blends": {"canViewFixedBlends": True, "canCreateCustomBlends": True},
    "prescriptions": {"canCreatePrescriptions": True, "canEditPrescriptions": True, "canViewAllPrescriptions": True, "canPrintPrescriptions": True},
    "appointments": {"canCreateAppointments": True, "canEditAppointments": True},
    "documents": {"canViewDocuments": True},
    "settings": {"canManageIntegrations": True},
}

_STAFF = {
    "discounts": {"canApplyProductDiscounts": False, "canApplyBillDiscounts": True, "maxDiscountPercent": 10, "maxDiscountAmount": 100, "unlimitedDiscounts": False},
    "inventory": {"canViewInventory": True},
    "patients": {"canCreatePatients": True, "canAccessAllPatients": True},
    "transactions": {"canViewTransactions": True, "canCreateTransactions": True, "canEditDrafts": True, "canApplyDiscounts": True},
    "bundles": {"canViewBundles": True},
    "appointments": {"canCreateAppointments": True, "canEditAppointments": True},
    "documents": {"canViewDocuments": True},
}


DEFAULT_ROLE_PERMISSIONS: dict[str, FeaturePermissions] = {
    SUPER_ADMIN: FeaturePermissions.from_mapping(_SUPER_ADMIN),
    ADMIN: FeaturePermissions.from_mapping(_ADMIN),
    MANAGER: FeaturePermissions.from_mapping(_MANAGER),
    STAFF: FeaturePermissions.from_mapping(_STAFF),
}


def get_role_defaults(role: str | None) -> FeaturePermissions:
    """Role default tree; unknown roles get the least-privileged defaults."""
    return DEFAULT_ROLE_PERMISSIONS.get(role or FALLBACK_ROLE, DEFAULT_ROLE_PERMISSIONS[FALLBACK_ROLE])


def is_valid_role(role: str) -> bool:
    return role in ROLES


# =============================================================================
# ROLE TEMPLATES
# =============================================================================

@dataclass(frozen=True)
class RoleTemplate:
    name: str
    display_name: str
    description: str
    permissions: FeaturePermissions

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "permissions": self.permissions.to_dict(),
        }


ROLE_TEMPLATES: dict[str, RoleTemplate] = {
    t.name: t
    for t in (
        RoleTemplate(
            name="pharmacy_manager",
            display_name="Pharmacy Manager",
            description="Full inventory management with limited financial access",
            permissions=FeaturePermissions.from_mapping({
                "discounts": {"canApplyProductDiscounts": True, "canApplyBillDiscounts": True, "maxDiscountPercent": 25, "maxDiscountAmount": 500, "unlimitedDiscounts": False},
                "reports": {"canViewFinancialReports": False, "canViewInventoryReports": True, "canExportReports": True},
                "inventory": {"canViewInventory": True, "canAddProducts": True, "canEditProducts": True, "canDeleteProducts": False, "canManageStock": True, "canCreateRestockOrders": True, "canBulkOperations": True, "canEditCostPrices": True},
                "transactions": {"canViewTransactions": True, "canCreateTransactions": True, "canEditTransactions": True, "canEditDrafts": True, "canApplyDiscounts": True, "canRefundTransactions": False, "canViewFinancialDetails": True},
                "bundles": {"canViewBundles": True, "canCreateBundles": True, "canEditBundles": True, "canSetPricing": True},
            }),
        ),
        RoleTemplate(
            name="sales_staff",
            display_name="Sales Staff",
            description="Transaction processing with basic inventory access",
            permissions=FeaturePermissions.from_mapping({
                "discounts": {"canApplyProductDiscounts": False, "canApplyBillDiscounts": True, "maxDiscountPercent": 10, "maxDiscountAmount": 100, "unlimitedDiscounts": False},
                "inventory": {"canViewInventory": True, "canManageStock": False, "canCreateRestockOrders": False, "canBulkOperations": False},
                "transactions": {"canViewTransactions": True, "canCreateTransactions": True, "canEditTransactions": False, "canEditDrafts": True, "canApplyDiscounts": True, "canViewFinancialDetails": True},
            }),
        ),
        RoleTemplate(
            name="financial_officer",
            display_name="Financial Officer",
            description="All financial features with reporting access",
            permissions=FeaturePermissions.from_mapping({
                "discounts": {"canApplyProductDiscounts": True, "canApplyBillDiscounts": True, "maxDiscountPercent": 50, "maxDiscountAmount": 2000, "unlimitedDiscounts": False},
                "reports": {"canViewFinancialReports": True, "canViewInventoryReports": True, "canExportReports": True},
                "inventory": {"canViewInventory": True, "canManageStock": False, "canCreateRestockOrders": False},
                "transactions": {"canViewTransactions": True, "canCreateTransactions": True, "canEditTransactions": True, "canDeleteTransactions": True, "canRefundTransactions": True, "canViewFinancialDetails": True},
            }),
        ),
        RoleTemplate(
            name="it_administrator",
            display_name="IT Administrator",
            description="System administration and user management",
            permissions=FeaturePermissions.from_mapping({
                "discounts": {"canApplyProductDiscounts": False, "canApplyBillDiscounts": False, "maxDiscountPercent": 0, "maxDiscountAmount": 0},
                "reports": {"canViewUserReports": True, "canViewSecurityMetrics": True, "canExportReports": True},
                "inventory": {"canViewInventory": False, "canCreateRestockOrders": False},
                "userManagement": {"canViewUsers": True, "canCreateUsers": True, "canEditUsers": True, "canDeleteUsers": True, "canAssignRoles": True, "canChangeRoles": True, "canManagePermissions": True, "canResetPasswords": True, "canViewSecurityLogs": True, "canViewAuditLogs": True},
                "settings": {"canViewSettings": True, "canEditSettings": True, "canManageIntegrations": True, "canConfigureSystem": True},
            }),
        ),
    )
}


def get_role_template(name: str) -> RoleTemplate | None:
    return ROLE_TEMPLATES.get(name)
