# Overview: Pure unit conversion between compatible measurement units.

"""
Unit Conversion

Each unit belongs to one measurement type and carries a multiplier to that
type's base unit (g, ml, mm, piece). Converting goes source -> base -> target.

Names are matched case-insensitively after trimming. Converting across types
(e.g. g -> ml) or naming an unknown unit raises; nothing is coerced.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import UnitMismatch, UnknownUnit


WEIGHT = "weight"
VOLUME = "volume"
LENGTH = "length"
COUNT = "count"

UNIT_TYPES = (WEIGHT, VOLUME, LENGTH, COUNT)


@dataclass(frozen=True)
class UnitDefinition:
    name: str
    type: str
    base_multiplier: float
    base_unit: str


@dataclass(frozen=True)
class ConversionResult:
    value: float
    from_unit: str
    to_unit: str

    def to_dict(self) -> dict:
        return {"value": self.value, "from_unit": self.from_unit, "to_unit": self.to_unit}


UNITS: tuple[UnitDefinition, ...] = (
    # Weight (grams as base)
    UnitDefinition("mg", WEIGHT, 0.001, "g"),
    UnitDefinition("g", WEIGHT, 1, "g"),
    UnitDefinition("kg", WEIGHT, 1000, "g"),
    UnitDefinition("lb", WEIGHT, 453.592, "g"),
    UnitDefinition("oz", WEIGHT, 28.3495, "g"),
    # Volume (ml as base)
    UnitDefinition("ml", VOLUME, 1, "ml"),
    UnitDefinition("l", VOLUME, 1000, "ml"),
    UnitDefinition("fl oz", VOLUME, 29.5735, "ml"),
    UnitDefinition("cup", VOLUME, 236.588, "ml"),
    UnitDefinition("pint", VOLUME, 473.176, "ml"),
    UnitDefinition("quart", VOLUME, 946.353, "ml"),
    UnitDefinition("gallon", VOLUME, 3785.41, "ml"),
    # Length (mm as base)
    UnitDefinition("mm", LENGTH, 1, "mm"),
    UnitDefinition("cm", LENGTH, 10, "mm"),
    UnitDefinition("m", LENGTH, 1000, "mm"),
    UnitDefinition("in", LENGTH, 25.4, "mm"),
    UnitDefinition("ft", LENGTH, 304.8, "mm"),
    # Count
    UnitDefinition("piece", COUNT, 1, "piece"),
    UnitDefinition("pieces", COUNT, 1, "piece"),
    UnitDefinition("unit", COUNT, 1, "piece"),
    UnitDefinition("units", COUNT, 1, "piece"),
    UnitDefinition("dozen", COUNT, 12, "piece"),
)

_UNITS_BY_NAME = {u.name: u for u in UNITS}


def _key(unit_name: str) -> str:
    return (unit_name or "").strip().lower()


def _lookup(unit_name: str) -> UnitDefinition | None:
    return _UNITS_BY_NAME.get(_key(unit_name))


def normalize_unit(unit_name: str) -> str:
    """Canonical spelling of a known unit; unknown names come back unchanged."""
    unit = _lookup(unit_name)
    return unit.name if unit else unit_name


def is_valid_unit(unit_name: str) -> bool:
    return _lookup(unit_name) is not None


def get_unit_type(unit_name: str) -> str | None:
    unit = _lookup(unit_name)
    return unit.type if unit else None


def get_base_unit(unit_name: str) -> str | None:
    unit = _lookup(unit_name)
    return unit.base_unit if unit else None


def get_compatible_units(unit_type: str) -> list[str]:
    return [u.name for u in UNITS if u.type == unit_type]


def can_convert(from_unit: str, to_unit: str) -> bool:
    if _key(from_unit) == _key(to_unit):
        return True
    source = _lookup(from_unit)
    target = _lookup(to_unit)
    return bool(source and target and source.type == target.type)


def convert(value: float, from_unit: str, to_unit: str) -> ConversionResult:
    """
    Convert value from one unit to another of the same type.

    Raises UnknownUnit when either name is not in the table and
    UnitMismatch when the units measure different things.
    """
    if _key(from_unit) == _key(to_unit):
        return ConversionResult(value=value, from_unit=from_unit, to_unit=to_unit)

    source = _lookup(from_unit)
    if source is None:
        raise UnknownUnit(from_unit)
    target = _lookup(to_unit)
    if target is None:
        raise UnknownUnit(to_unit)

    if source.type != target.type:
        raise UnitMismatch(
            from_unit,
            to_unit,
            f"Cannot convert from {from_unit} ({source.type}) to {to_unit} ({target.type})",
        )

    base_value = value * source.base_multiplier
    return ConversionResult(
        value=base_value / target.base_multiplier,
        from_unit=from_unit,
        to_unit=to_unit,
    )


def list_units() -> list[dict]:
    return [
        {"name": u.name, "type": u.type, "base_unit": u.base_unit, "base_multiplier": u.base_multiplier}
        for u in UNITS
    ]
