# Overview: Feature category names and the typed capability record base.

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Optional

from ..errors import ValidationError


class FeatureCategory:
    """Feature categories, as they appear as keys in a permission tree."""
    DISCOUNTS = "discounts"
    REPORTS = "reports"
    INVENTORY = "inventory"
    USER_MANAGEMENT = "userManagement"
    PATIENTS = "patients"
    TRANSACTIONS = "transactions"
    BUNDLES = "bundles"
    SUPPLIERS = "suppliers"
    BLENDS = "blends"
    PRESCRIPTIONS = "prescriptions"
    APPOINTMENTS = "appointments"
    CONTAINERS = "containers"
    BRANDS = "brands"
    DOSAGE_FORMS = "dosageForms"
    CATEGORIES = "categories"
    UNITS = "units"
    DOCUMENTS = "documents"
    SECURITY = "security"
    SETTINGS = "settings"


def flag(key: str):
    """Boolean capability stored under `key`; None means not set."""
    return field(default=None, metadata={"key": key, "numeric": False})


def limit(key: str):
    """Numeric capability (e.g. a discount ceiling); None means not set."""
    return field(default=None, metadata={"key": key, "numeric": True})


@dataclass(frozen=True)
class CapabilityRecord:
    """
    Closed record of the named capabilities in one feature category.

    Subclasses declare one field per capability with flag()/limit(). The
    stored tree uses the camelCase key; attributes are snake_case.
    """
    category: ClassVar[str] = ""

    @classmethod
    def _fields_by_key(cls) -> dict[str, Any]:
        cache = cls.__dict__.get("_key_index")
        if cache is None:
            cache = {f.metadata["key"]: f for f in fields(cls)}
            setattr(cls, "_key_index", cache)
        return cache

    @classmethod
    def capability_keys(cls) -> list[str]:
        return list(cls._fields_by_key().keys())

    @classmethod
    def is_numeric(cls, key: str) -> bool:
        f = cls._fields_by_key().get(key)
        return bool(f and f.metadata["numeric"])

    @classmethod
    def knows(cls, key: str) -> bool:
        return key in cls._fields_by_key()

    @classmethod
    def from_mapping(cls, raw: Optional[dict]) -> "CapabilityRecord":
        """Build a record from a stored mapping, rejecting unknown keys and bad types."""
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ValidationError(f"{cls.category} permissions must be an object")

        index = cls._fields_by_key()
        values: dict[str, Any] = {}
        for key, value in raw.items():
            f = index.get(key)
            if f is None:
                raise ValidationError(f"Unknown permission '{key}' in category '{cls.category}'")
            if value is None:
                continue
            if f.metadata["numeric"]:
                if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                    raise ValidationError(f"{cls.category}.{key} must be a finite number")
                if value < 0:
                    raise ValidationError(f"{cls.category}.{key} must not be negative")
            elif not isinstance(value, bool):
                raise ValidationError(f"{cls.category}.{key} must be true or false")
            values[f.name] = value
        return cls(**values)

    def get(self, key: str) -> Any:
        """Explicit value for `key`, or None if unset or unknown."""
        f = self._fields_by_key().get(key)
        if f is None:
            return None
        return getattr(self, f.name)

    def merged(self, overrides: "CapabilityRecord") -> "CapabilityRecord":
        """This record with every explicitly-set value of `overrides` applied on top."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for f in fields(overrides):
            value = getattr(overrides, f.name)
            if value is not None:
                values[f.name] = value
        return type(self)(**values)

    def to_dict(self, include_unset: bool = False) -> dict:
        out = {}
        for key, f in self._fields_by_key().items():
            value = getattr(self, f.name)
            if value is None and not include_unset:
                continue
            out[key] = value
        return out
