"""
Tests for bar unit conversions.
"""

import pytest

from catering_api.services.unit_conversion import (
    derive_conversions,
    fraction_to_decimal,
    normalize_amount,
    normalize_unit,
    to_number,
)


def test_one_ounce():
    conv = derive_conversions(1, "oz")
    assert conv["toOz"] == 1
    assert conv["toMl"] == pytest.approx(29.5735, abs=0.0001)
    assert conv["toGram"] == pytest.approx(28.3495, abs=0.0001)


def test_one_cup():
    assert derive_conversions(1, "Cup")["toOz"] == pytest.approx(8.1154, abs=0.0001)


def test_units_are_case_insensitive():
    assert derive_conversions(2, "tbsp") == derive_conversions(2, "Tbsp")
    assert derive_conversions(1, "CUP") == derive_conversions(1, "Cup")
    assert normalize_unit("Teaspoons") == "tsp"


def test_tsp_and_tbsp():
    assert derive_conversions(1, "tsp")["toOz"] == pytest.approx(0.166667)
    assert derive_conversions(2, "Tbsp")["toOz"] == pytest.approx(1.0000023233)


def test_ml_and_grams_assume_water():
    ml = derive_conversions(29.5735, "ml")
    assert ml["toOz"] == pytest.approx(1.0)
    assert ml["toGram"] == 29.5735

    grams = derive_conversions(28.3495231, "g")
    assert grams["toOz"] == pytest.approx(1.0)
    assert grams["toMl"] == 28.3495231


def test_unknown_unit_is_ounces():
    assert derive_conversions(3, "dash") == derive_conversions(3, "oz")


def test_non_numeric_amount_is_zero():
    assert derive_conversions("lots", "oz") == {"toOz": 0.0, "toMl": 0.0, "toGram": 0.0}


def test_to_number():
    assert to_number("1.5") == 1.5
    assert to_number(" ") is None
    assert to_number(True) is None
    assert to_number("nan") is None
    assert to_number(None) is None


def test_fraction_to_decimal():
    assert fraction_to_decimal({"whole": 1, "numerator": 1, "denominator": 2}) == 1.5
    assert fraction_to_decimal({"numerator": 3, "denominator": 4}) == 0.75
    assert fraction_to_decimal(None) == 0


def test_normalize_amount_prefers_value():
    amount = normalize_amount({"value": 0.75, "unit": "oz", "fraction": {"whole": 2}})
    assert amount["value"] == 0.75


def test_normalize_amount_falls_back_to_fraction():
    amount = normalize_amount({"value": 0, "fraction": {"whole": 1, "numerator": 1, "denominator": 3}})
    assert amount["unit"] == "oz"
    assert amount["value"] == 1.333
    assert amount["fraction"] == {"whole": 1, "numerator": 1, "denominator": 3}
