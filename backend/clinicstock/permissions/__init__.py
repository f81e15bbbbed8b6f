# Overview: Feature permission package.
# Re-exports the typed permission tree, role defaults and lookup helpers.

from .categories import CapabilityRecord, FeatureCategory
from .definitions import CATEGORY_RECORDS, FeaturePermissions
from .roles import (
    ROLES,
    STAFF,
    MANAGER,
    ADMIN,
    SUPER_ADMIN,
    DEFAULT_ROLE_PERMISSIONS,
    ROLE_TEMPLATES,
    RoleTemplate,
    get_role_defaults,
    get_role_template,
    is_valid_role,
)
from .helpers import (
    get_all_categories,
    get_capabilities_by_category,
    get_all_capability_pairs,
    validate_capability,
    is_numeric_capability,
)

__all__ = [
    "CapabilityRecord",
    "FeatureCategory",
    "CATEGORY_RECORDS",
    "FeaturePermissions",
    "ROLES",
    "STAFF",
    "MANAGER",
    "ADMIN",
    "SUPER_ADMIN",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLE_TEMPLATES",
    "RoleTemplate",
    "get_role_defaults",
    "get_role_template",
    "is_valid_role",
    "get_all_categories",
    "get_capabilities_by_category",
    "get_all_capability_pairs",
    "validate_capability",
    "is_numeric_capability",
]
