# Overview: Capability records for every feature category, and the full permission tree.
# Each record lists the capabilities a category understands; anything else is rejected on load.

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Optional

from ..errors import ValidationError
from .categories import CapabilityRecord, FeatureCategory, flag, limit


# -- DISCOUNTS --

@dataclass(frozen=True)
class DiscountPermissions(CapabilityRecord):
    category = FeatureCategory.DISCOUNTS
    can_apply_product_discounts: Optional[bool] = flag("canApplyProductDiscounts")
    can_apply_bill_discounts: Optional[bool] = flag("canApplyBillDiscounts")
    max_discount_percent: Optional[float] = limit("maxDiscountPercent")
    max_discount_amount: Optional[float] = limit("maxDiscountAmount")
    unlimited_discounts: Optional[bool] = flag("unlimitedDiscounts")


# -- REPORTS --

@dataclass(frozen=True)
class ReportPermissions(CapabilityRecord):
    category = FeatureCategory.REPORTS
    can_view_financial_reports: Optional[bool] = flag("canViewFinancialReports")
    can_view_inventory_reports: Optional[bool] = flag("canViewInventoryReports")
    can_view_user_reports: Optional[bool] = flag("canViewUserReports")
    can_view_security_metrics: Optional[bool] = flag("canViewSecurityMetrics")
    can_export_reports: Optional[bool] = flag("canExportReports")


# -- INVENTORY --

@dataclass(frozen=True)
class InventoryPermissions(CapabilityRecord):
    category = FeatureCategory.INVENTORY
    can_view_inventory: Optional[bool] = flag("canViewInventory")
    can_add_products: Optional[bool] = flag("canAddProducts")
    can_edit_products: Optional[bool] = flag("canEditProducts")
    can_delete_products: Optional[bool] = flag("canDeleteProducts")
    can_manage_stock: Optional[bool] = flag("canManageStock")
    can_create_restock_orders: Optional[bool] = flag("canCreateRestockOrders")
    can_bulk_operations: Optional[bool] = flag("canBulkOperations")
    can_edit_cost_prices: Optional[bool] = flag("canEditCostPrices")


# -- USER MANAGEMENT --

@dataclass(frozen=True)
class UserManagementPermissions(CapabilityRecord):
    category = FeatureCategory.USER_MANAGEMENT
    can_view_users: Optional[bool] = flag("canViewUsers")
    can_create_users: Optional[bool] = flag("canCreateUsers")
    can_edit_users: Optional[bool] = flag("canEditUsers")
    can_delete_users: Optional[bool] = flag("canDeleteUsers")
    can_assign_roles: Optional[bool] = flag("canAssignRoles")
    can_change_roles: Optional[bool] = flag("canChangeRoles")
    can_manage_permissions: Optional[bool] = flag("canManagePermissions")
    can_reset_passwords: Optional[bool] = flag("canResetPasswords")
    can_view_security_logs: Optional[bool] = flag("canViewSecurityLogs")
    can_view_audit_logs: Optional[bool] = flag("canViewAuditLogs")


# -- PATIENTS --

@dataclass(frozen=True)
class PatientPermissions(CapabilityRecord):
    category = FeatureCategory.PATIENTS
    can_create_patients: Optional[bool] = flag("canCreatePatients")
    can_edit_patients: Optional[bool] = flag("canEditPatients")
    can_delete_patients: Optional[bool] = flag("canDeletePatients")
    can_view_medical_history: Optional[bool] = flag("canViewMedicalHistory")
    can_manage_prescriptions: Optional[bool] = flag("canManagePrescriptions")
    can_access_all_patients: Optional[bool] = flag("canAccessAllPatients")


# -- TRANSACTIONS --

@dataclass(frozen=True)
class TransactionPermissions(CapabilityRecord):
    category = FeatureCategory.TRANSACTIONS
    can_view_transactions: Optional[bool] = flag("canViewTransactions")
    can_create_transactions: Optional[bool] = flag("canCreateTransactions")
    can_edit_transactions: Optional[bool] = flag("canEditTransactions")
    can_edit_drafts: Optional[bool] = flag("canEditDrafts")
    can_delete_transactions: Optional[bool] = flag("canDeleteTransactions")
    can_apply_discounts: Optional[bool] = flag("canApplyDiscounts")
    can_refund_transactions: Optional[bool] = flag("canRefundTransactions")
    can_view_financial_details: Optional[bool] = flag("canViewFinancialDetails")


# -- BUNDLES --

@dataclass(frozen=True)
class BundlePermissions(CapabilityRecord):
    category = FeatureCategory.BUNDLES
    can_view_bundles: Optional[bool] = flag("canViewBundles")
    can_create_bundles: Optional[bool] = flag("canCreateBundles")
    can_edit_bundles: Optional[bool] = flag("canEditBundles")
    can_delete_bundles: Optional[bool] = flag("canDeleteBundles")
    can_set_pricing: Optional[bool] = flag("canSetPricing")


# -- SUPPLIERS --

@dataclass(frozen=True)
class SupplierPermissions(CapabilityRecord):
    category = FeatureCategory.SUPPLIERS
    can_manage_suppliers: Optional[bool] = flag("canManageSuppliers")
    can_create_suppliers: Optional[bool] = flag("canCreateSuppliers")
    can_edit_suppliers: Optional[bool] = flag("canEditSuppliers")
    can_delete_suppliers: Optional[bool] = flag("canDeleteSuppliers")


# -- BLENDS --

@dataclass(frozen=True)
class BlendPermissions(CapabilityRecord):
    category = FeatureCategory.BLENDS
    can_create_fixed_blends: Optional[bool] = flag("canCreateFixedBlends")
    can_edit_fixed_blends: Optional[bool] = flag("canEditFixedBlends")
    can_delete_fixed_blends: Optional[bool] = flag("canDeleteFixedBlends")
    can_view_fixed_blends: Optional[bool] = flag("canViewFixedBlends")
    can_create_custom_blends: Optional[bool] = flag("canCreateCustomBlends")


# -- PRESCRIPTIONS --

@dataclass(frozen=True)
class PrescriptionPermissions(CapabilityRecord):
    category = FeatureCategory.PRESCRIPTIONS
    can_create_prescriptions: Optional[bool] = flag("canCreatePrescriptions")
    can_edit_prescriptions: Optional[bool] = flag("canEditPrescriptions")
    can_delete_prescriptions: Optional[bool] = flag("canDeletePrescriptions")
    can_view_all_prescriptions: Optional[bool] = flag("canViewAllPrescriptions")
    can_print_prescriptions: Optional[bool] = flag("canPrintPrescriptions")
    can_manage_templates: Optional[bool] = flag("canManageTemplates")


# -- APPOINTMENTS --

@dataclass(frozen=True)
class AppointmentPermissions(CapabilityRecord):
    category = FeatureCategory.APPOINTMENTS
    can_create_appointments: Optional[bool] = flag("canCreateAppointments")
    can_edit_appointments: Optional[bool] = flag("canEditAppointments")
    can_delete_appointments: Optional[bool] = flag("canDeleteAppointments")
    can_view_all_appointments: Optional[bool] = flag("canViewAllAppointments")
    can_manage_schedules: Optional[bool] = flag("canManageSchedules")
    can_override_bookings: Optional[bool] = flag("canOverrideBookings")


# -- CONTAINERS --

@dataclass(frozen=True)
class ContainerPermissions(CapabilityRecord):
    category = FeatureCategory.CONTAINERS
    can_manage_container_types: Optional[bool] = flag("canManageContainerTypes")
    can_create_types: Optional[bool] = flag("canCreateTypes")
    can_edit_types: Optional[bool] = flag("canEditTypes")
    can_delete_types: Optional[bool] = flag("canDeleteTypes")


# -- BRANDS --

@dataclass(frozen=True)
class BrandPermissions(CapabilityRecord):
    category = FeatureCategory.BRANDS
    can_manage_brands: Optional[bool] = flag("canManageBrands")
    can_create_brands: Optional[bool] = flag("canCreateBrands")
    can_edit_brands: Optional[bool] = flag("canEditBrands")
    can_delete_brands: Optional[bool] = flag("canDeleteBrands")


# -- DOSAGE FORMS --

@dataclass(frozen=True)
class DosageFormPermissions(CapabilityRecord):
    category = FeatureCategory.DOSAGE_FORMS
    can_manage_dosage_forms: Optional[bool] = flag("canManageDosageForms")
    can_create_forms: Optional[bool] = flag("canCreateForms")
    can_edit_forms: Optional[bool] = flag("canEditForms")
    can_delete_forms: Optional[bool] = flag("canDeleteForms")


# -- CATEGORIES --

@dataclass(frozen=True)
class CategoryPermissions(CapabilityRecord):
    category = FeatureCategory.CATEGORIES
    can_manage_categories: Optional[bool] = flag("canManageCategories")
    can_create_categories: Optional[bool] = flag("canCreateCategories")
    can_edit_categories: Optional[bool] = flag("canEditCategories")
    can_delete_categories: Optional[bool] = flag("canDeleteCategories")


# -- UNITS --

@dataclass(frozen=True)
class UnitPermissions(CapabilityRecord):
    category = FeatureCategory.UNITS
    can_manage_units: Optional[bool] = flag("canManageUnits")
    can_create_units: Optional[bool] = flag("canCreateUnits")
    can_edit_units: Optional[bool] = flag("canEditUnits")
    can_delete_units: Optional[bool] = flag("canDeleteUnits")


# -- DOCUMENTS --

@dataclass(frozen=True)
class DocumentPermissions(CapabilityRecord):
    category = FeatureCategory.DOCUMENTS
    can_upload_documents: Optional[bool] = flag("canUploadDocuments")
    can_view_documents: Optional[bool] = flag("canViewDocuments")
    can_delete_documents: Optional[bool] = flag("canDeleteDocuments")
    can_manage_folders: Optional[bool] = flag("canManageFolders")


# -- SECURITY --

@dataclass(frozen=True)
class SecurityPermissions(CapabilityRecord):
    category = FeatureCategory.SECURITY
    can_view_security_logs: Optional[bool] = flag("canViewSecurityLogs")
    can_manage_security: Optional[bool] = flag("canManageSecurity")
    can_view_audit_trails: Optional[bool] = flag("canViewAuditTrails")
    can_manage_api_keys: Optional[bool] = flag("canManageApiKeys")


# -- SETTINGS --

@dataclass(frozen=True)
class SettingsPermissions(CapabilityRecord):
    category = FeatureCategory.SETTINGS
    can_view_settings: Optional[bool] = flag("canViewSettings")
    can_edit_settings: Optional[bool] = flag("canEditSettings")
    can_manage_integrations: Optional[bool] = flag("canManageIntegrations")
    can_configure_system: Optional[bool] = flag("canConfigureSystem")


CATEGORY_RECORDS: dict[str, type[CapabilityRecord]] = {
    record.category: record
    for record in (
        DiscountPermissions,
        ReportPermissions,
        InventoryPermissions,
        UserManagementPermissions,
        PatientPermissions,
        TransactionPermissions,
        BundlePermissions,
        SupplierPermissions,
        BlendPermissions,
        PrescriptionPermissions,
        AppointmentPermissions,
        ContainerPermissions,
        BrandPermissions,
        DosageFormPermissions,
        CategoryPermissions,
        UnitPermissions,
        DocumentPermissions,
        SecurityPermissions,
        SettingsPermissions,
    )
}


@dataclass(frozen=True)
class FeaturePermissions:
    """
    A complete permission tree: one capability record per feature category.

    Built with from_mapping() from the stored JSON. Unset capabilities are
    None, so a tree of overrides and a tree of role defaults share the type.
    """
    discounts: DiscountPermissions = field(default_factory=DiscountPermissions)
    reports: ReportPermissions = field(default_factory=ReportPermissions)
    inventory: InventoryPermissions = field(default_factory=InventoryPermissions)
    user_management: UserManagementPermissions = field(default_factory=UserManagementPermissions)
    patients: PatientPermissions = field(default_factory=PatientPermissions)
    transactions: TransactionPermissions = field(default_factory=TransactionPermissions)
    bundles: BundlePermissions = field(default_factory=BundlePermissions)
    suppliers: SupplierPermissions = field(default_factory=SupplierPermissions)
    blends: BlendPermissions = field(default_factory=BlendPermissions)
    prescriptions: PrescriptionPermissions = field(default_factory=PrescriptionPermissions)
    appointments: AppointmentPermissions = field(default_factory=AppointmentPermissions)
    containers: ContainerPermissions = field(default_factory=ContainerPermissions)
    brands: BrandPermissions = field(default_factory=BrandPermissions)
    dosage_forms: DosageFormPermissions = field(default_factory=DosageFormPermissions)
    categories: CategoryPermissions = field(default_factory=CategoryPermissions)
    units: UnitPermissions = field(default_factory=UnitPermissions)
    documents: DocumentPermissions = field(default_factory=DocumentPermissions)
    security: SecurityPermissions = field(default_factory=SecurityPermissions)
    settings: SettingsPermissions = field(default_factory=SettingsPermissions)

    @staticmethod
    def _attr(category: str) -> str | None:
        return _ATTR_BY_CATEGORY.get(category)

    @classmethod
    def from_mapping(cls, raw: Optional[dict]) -> "FeaturePermissions":
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise ValidationError("featurePermissions must be an object")
        values = {}
        for category, perms in raw.items():
            attr = cls._attr(category)
            if attr is None:
                raise ValidationError(f"Unknown permission category '{category}'")
            values[attr] = CATEGORY_RECORDS[category].from_mapping(perms)
        return cls(**values)

    def category(self, category: str) -> CapabilityRecord | None:
        attr = self._attr(category)
        return getattr(self, attr) if attr else None

    def merged(self, overrides: "FeaturePermissions") -> "FeaturePermissions":
        return FeaturePermissions(**{
            f.name: getattr(self, f.name).merged(getattr(overrides, f.name))
            for f in fields(self)
        })

    def to_dict(self, include_unset: bool = False) -> dict:
        out = {}
        for category, attr in _ATTR_BY_CATEGORY.items():
            perms = getattr(self, attr).to_dict(include_unset=include_unset)
            if perms or include_unset:
                out[category] = perms
        return out


_ATTR_BY_CATEGORY: dict[str, str] = {
    FeatureCategory.DISCOUNTS: "discounts",
    FeatureCategory.REPORTS: "reports",
    FeatureCategory.INVENTORY: "inventory",
    FeatureCategory.USER_MANAGEMENT: "user_management",
    FeatureCategory.PATIENTS: "patients",
    FeatureCategory.TRANSACTIONS: "transactions",
    FeatureCategory.BUNDLES: "bundles",
    FeatureCategory.SUPPLIERS: "suppliers",
    FeatureCategory.BLENDS: "blends",
    FeatureCategory.PRESCRIPTIONS: "prescriptions",
    FeatureCategory.APPOINTMENTS: "appointments",
    FeatureCategory.CONTAINERS: "containers",
    FeatureCategory.BRANDS: "brands",
    FeatureCategory.DOSAGE_FORMS: "dosage_forms",
    FeatureCategory.CATEGORIES: "categories",
    FeatureCategory.UNITS: "units",
    FeatureCategory.DOCUMENTS: "documents",
    FeatureCategory.SECURITY: "security",
    FeatureCategory.SETTINGS: "settings",
}
