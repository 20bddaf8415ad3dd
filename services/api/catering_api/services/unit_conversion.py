"""
Bar unit conversions used by recipe costing.

Everything is expressed relative to the fluid ounce. The factors are fixed
constants, not configuration.
"""

import math
from typing import Optional, TypedDict

# --- Constants ---

ML_PER_OZ = 29.5735
GRAMS_PER_OZ = 28.3495231
OZ_PER_TSP = 0.166667
OZ_PER_TBSP = 0.50000116165
OZ_PER_CUP = 8.11538430287086

# Canonical unit -> ounces per unit (volume-style units only)
OZ_FACTORS = {
    "oz": 1.0,
    "tsp": OZ_PER_TSP,
    "Tbsp": OZ_PER_TBSP,
    "Cup": OZ_PER_CUP,
}

# Lower-cased spelling -> canonical unit
UNIT_ALIASES = {
    "oz": "oz",
    "ounce": "oz",
    "ounces": "oz",
    "fl oz": "oz",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "g": "g",
    "gram": "g",
    "grams": "g",
    "tsp": "tsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tbsp": "Tbsp",
    "tablespoon": "Tbsp",
    "tablespoons": "Tbsp",
    "cup": "Cup",
    "cups": "Cup",
}


class Conversions(TypedDict):
    toOz: float
    toMl: float
    toGram: float


# --- Core Functions ---

def to_number(value) -> Optional[float]:
    """Coerce to a finite float, or None. Booleans and blanks are not numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def normalize_unit(unit: Optional[str]) -> str:
    """Canonical unit spelling. Unknown units are returned trimmed, unchanged."""
    if not unit or not isinstance(unit, str):
        return "oz"
    raw = unit.strip().rstrip(".")
    return UNIT_ALIASES.get(raw.lower(), raw)


def derive_conversions(value, unit: Optional[str] = "oz") -> Conversions:
    """
    Convert an amount to oz / ml / g.

    ml and g are treated as interchangeable (water density). Units that are
    not recognized pass through as if they were already ounces.
    """
    qty = to_number(value) or 0.0
    canonical = normalize_unit(unit)

    if canonical == "ml":
        return {"toOz": qty / ML_PER_OZ, "toMl": qty, "toGram": qty}
    if canonical == "g":
        return {"toOz": qty / GRAMS_PER_OZ, "toMl": qty, "toGram": qty}

    oz = qty * OZ_FACTORS.get(canonical, 1.0)
    return {"toOz": oz, "toMl": oz * ML_PER_OZ, "toGram": oz * GRAMS_PER_OZ}


def fraction_to_decimal(fraction: Optional[dict]) -> float:
    fraction = fraction or {}
    whole = to_number(fraction.get("whole")) or 0.0
    numerator = to_number(fraction.get("numerator")) or 0.0
    denominator = to_number(fraction.get("denominator")) or 1.0
    if not denominator:
        return whole
    return whole + numerator / denominator


def normalize_amount(amount: Optional[dict]) -> dict:
    """Normalize an Amount payload.

    ``value`` wins when it is a non-zero number, otherwise the mixed
    fraction {whole, numerator, denominator} is used.
    """
    amount = amount or {}
    fraction_in = amount.get("fraction") or {}
    fraction = {
        "whole": to_number(fraction_in.get("whole")) or 0,
        "numerator": to_number(fraction_in.get("numerator")) or 0,
        "denominator": to_number(fraction_in.get("denominator")) or 1,
    }
    value = to_number(amount.get("value"))
    if not value:
        value = fraction_to_decimal(fraction)
    return {
        "unit": normalize_unit(amount.get("unit")) if amount.get("unit") else "oz",
        "value": round(value, 3),
        "fraction": fraction,
        "display": amount.get("display") or None,
    }
