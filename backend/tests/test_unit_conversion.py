"""
Unit conversion tests.

Verifies:
- Same-type conversions go through the base unit and come back intact
- Cross-type conversions and unknown units raise distinct errors
- Lookups are case-insensitive and never coerce
"""

import pytest

from clinicstock.errors import UnitMismatch, UnknownUnit
from clinicstock.services import unit_conversion as uc


class TestConvert:

    def test_kg_to_g(self):
        result = uc.convert(2, "kg", "g")
        assert result.value == pytest.approx(2000)
        assert result.from_unit == "kg"
        assert result.to_unit == "g"

    def test_dozen_to_piece(self):
        assert uc.convert(3, "dozen", "piece").value == pytest.approx(36)

    def test_same_unit_is_identity(self):
        assert uc.convert(7.5, "ml", "ML").value == 7.5

    @pytest.mark.parametrize(
        "value,a,b",
        [(1.25, "kg", "oz"), (330, "ml", "fl oz"), (12.7, "cm", "in"), (5, "dozen", "units")],
    )
    def test_round_trip_within_tolerance(self, value, a, b):
        there = uc.convert(value, a, b).value
        back = uc.convert(there, b, a).value
        assert back == pytest.approx(value, rel=1e-9)

    def test_cross_type_raises_mismatch(self):
        with pytest.raises(UnitMismatch) as exc_info:
            uc.convert(1, "g", "ml")
        assert "weight" in str(exc_info.value)
        assert exc_info.value.code == "UNIT_MISMATCH"

    def test_unknown_source_unit(self):
        with pytest.raises(UnknownUnit) as exc_info:
            uc.convert(1, "stone", "kg")
        assert exc_info.value.unit == "stone"

    def test_unknown_target_unit(self):
        with pytest.raises(UnknownUnit):
            uc.convert(1, "kg", "stone")


class TestLookups:

    def test_normalize_trims_and_lowercases(self):
        assert uc.normalize_unit("  KG ") == "kg"

    def test_normalize_leaves_unknown_untouched(self):
        assert uc.normalize_unit("Stone") == "Stone"

    def test_unit_type_and_base(self):
        assert uc.get_unit_type("Gallon") == uc.VOLUME
        assert uc.get_base_unit("gallon") == "ml"
        assert uc.get_unit_type("stone") is None

    def test_compatible_units(self):
        assert uc.get_compatible_units(uc.LENGTH) == ["mm", "cm", "m", "in", "ft"]
        assert uc.get_compatible_units("temperature") == []

    def test_can_convert(self):
        assert uc.can_convert("kg", "lb")
        assert not uc.can_convert("kg", "l")
        assert not uc.can_convert("kg", "stone")

    def test_is_valid_unit(self):
        assert uc.is_valid_unit("fl oz")
        assert not uc.is_valid_unit("")

    def test_list_units_covers_every_type(self):
        types = {u["type"] for u in uc.list_units()}
        assert types == set(uc.UNIT_TYPES)
