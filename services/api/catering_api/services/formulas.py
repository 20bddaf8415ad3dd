"""Formula column evaluator.

Formula columns are derived from other columns of the same row and are
never written by clients. Supported kinds (``column.formula["type"]``):

- ``ratio``: numerator / denominator
- ``unitPerConvertedVolume``: numerator / (volumeKey / conversionFactor)
- ``unitPerSizeUnit``: numerator / ounces, where sizeKey is converted to
  ounces according to the unit selector column ("g", "ml", else ounces)
- ``multiplier``: sourceKey * factor

Invalid operands yield ``None`` rather than raising. Columns are evaluated
in declaration order, so a formula may read the output of an earlier one.
"""

import logging
import math
from typing import Any, Iterable, Optional

from .unit_conversion import to_number

logger = logging.getLogger("catering.formulas")

DEFAULT_PRECISION = 2
DEFAULT_GRAM_FACTOR = 28.3495
DEFAULT_ML_FACTOR = 29.5735

FORMULA_KINDS = ("ratio", "unitPerConvertedVolume", "unitPerSizeUnit", "multiplier")


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value


def ratio(values: dict, formula: dict) -> Optional[float]:
    numerator = to_number(values.get(formula.get("numerator")))
    denominator = to_number(values.get(formula.get("denominator")))
    if numerator is None or denominator is None or denominator == 0:
        return None
    return _finite(numerator / denominator)


def unit_per_converted_volume(values: dict, formula: dict) -> Optional[float]:
    numerator = to_number(values.get(formula.get("numerator")))
    volume = to_number(values.get(formula.get("volumeKey")))
    factor = to_number(formula.get("conversionFactor"))
    if numerator is None or volume is None or factor is None:
        return None
    if volume <= 0 or factor <= 0:
        return None
    converted = volume / factor
    if not converted:
        return None
    return _finite(numerator / converted)


def unit_per_size_unit(values: dict, formula: dict) -> Optional[float]:
    numerator = to_number(values.get(formula.get("numerator")))
    size = to_number(values.get(formula.get("sizeKey")))
    selector = values.get(formula.get("unitKey"))
    selector = selector.strip().lower() if isinstance(selector, str) else ""
    gram_factor = to_number(formula.get("gramFactor")) or DEFAULT_GRAM_FACTOR
    ml_factor = to_number(formula.get("milliliterFactor")) or DEFAULT_ML_FACTOR

    if numerator is None or size is None or size <= 0:
        return None

    if selector == "g":
        ounces = size / gram_factor
    elif selector == "ml":
        ounces = size / ml_factor
    else:
        # Any other selector (including blank) means the size is already in ounces.
        ounces = size

    if not math.isfinite(ounces) or ounces <= 0:
        return None
    return _finite(numerator / ounces)


def multiplier(values: dict, formula: dict) -> Optional[float]:
    source = values.get(formula.get("sourceKey"))
    if source is None:
        return None
    source_num = to_number(source)
    factor = to_number(formula.get("factor"))
    if source_num is None or factor is None:
        return None
    return _finite(source_num * factor)


_EVALUATORS = {
    "ratio": ratio,
    "unitPerConvertedVolume": unit_per_converted_volume,
    "unitPerSizeUnit": unit_per_size_unit,
    "multiplier": multiplier,
}


def compute(formula: Optional[dict], values: dict, precision: Optional[int] = None) -> Optional[float]:
    """Evaluate one formula definition against a row's values."""
    if not formula:
        return None
    evaluator = _EVALUATORS.get(formula.get("type"))
    if evaluator is None:
        logger.debug(f"Unknown formula kind {formula.get('type')!r}")
        return None
    result = evaluator(values, formula)
    if result is None:
        return None
    digits = precision if isinstance(precision, int) and not isinstance(precision, bool) else DEFAULT_PRECISION
    return round(result, digits)


def evaluate_values(columns: Iterable[Any], values: dict) -> dict:
    """Return a copy of ``values`` with every formula column recomputed.

    ``columns`` may be ORM columns or plain dicts with key/type/formula/precision.
    """
    out = dict(values or {})
    for column in columns:
        col_type = _attr(column, "type")
        if col_type != "formula":
            continue
        key = _attr(column, "key")
        out[key] = compute(_attr(column, "formula"), out, _attr(column, "precision"))
    return out


def evaluate(sheet, row) -> bool:
    """Recompute the formula columns of ``row`` in place. Returns True if anything changed."""
    current = dict(row.values or {})
    updated = evaluate_values(sheet.columns, current)
    if updated == current:
        return False
    row.values = updated
    return True


def _attr(column: Any, name: str):
    if isinstance(column, dict):
        return column.get(name)
    return getattr(column, name, None)
