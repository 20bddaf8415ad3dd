"""Typed row values.

A row's value map is ``column key -> RowValue`` where a RowValue is text,
a number, a boolean, a list of strings, or null. Writes go through
``apply_client_values``, which drops unknown keys, refuses formula and
system columns, and coerces each value to its column's type.
"""

import logging
from typing import Any, Optional, Union

from ..errors import ValidationError
from .unit_conversion import to_number

logger = logging.getLogger("catering.inventory")

RowValue = Union[str, int, float, bool, list[str], None]

NUMERIC_TYPES = ("number", "currency")

# Link columns maintained by the synchronizer only.
SYSTEM_COLUMN_KEYS = ("recipeId", "recipeType", "menuItemId")

ITEM_NUMBER_KEY = "itemNumber"


def is_client_writable(column) -> bool:
    return column.type != "formula" and column.key not in SYSTEM_COLUMN_KEYS


def coerce_value(column, raw: Any) -> RowValue:
    """Coerce a raw payload value to the column type. Raises ValueError when impossible."""
    if raw is None:
        return None

    if column.type in NUMERIC_TYPES:
        if isinstance(raw, str) and not raw.strip():
            return None
        num = to_number(raw)
        if num is None:
            raise ValueError(f"'{raw}' is not a number")
        if column.precision == 0 and float(num).is_integer():
            return int(num)
        return num

    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (list, tuple)):
        return [str(v).strip() for v in raw if v is not None and str(v).strip()]
    if isinstance(raw, (int, float)):
        return str(raw) if column.type == "dropdown" else raw
    if isinstance(raw, str):
        return raw.strip()
    raise ValueError(f"unsupported value type {type(raw).__name__}")


def is_blank(value: RowValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return len(value) == 0
    return False


def valid_item_number(value: Any) -> Optional[int]:
    """Positive integer item number, or None."""
    num = to_number(value)
    if num is None or num <= 0 or not float(num).is_integer():
        return None
    return int(num)


def apply_client_values(
    sheet,
    current: dict,
    incoming: Optional[dict],
    *,
    creating: bool = False,
    row_id: Optional[str] = None,
) -> dict:
    """Merge a client value patch into ``current`` and return the new map.

    Raises ValidationError listing every offending field.
    """
    columns = sheet.columns_by_key
    merged = dict(current or {})
    errors: list[dict] = []

    for key, raw in (incoming or {}).items():
        column = columns.get(key)
        if column is None:
            continue
        if not is_client_writable(column):
            logger.debug(f"Ignoring client write to derived column {sheet.sheet_key}.{key}")
            continue
        try:
            merged[key] = coerce_value(column, raw)
        except ValueError as e:
            errors.append(_field_error(key, str(e), row_id))

    for column in sheet.columns:
        if not column.required:
            continue
        touched = column.key in (incoming or {})
        if (creating or touched) and is_blank(merged.get(column.key)):
            errors.append(_field_error(column.key, f"{column.label} is required", row_id))

    if errors:
        raise ValidationError("Invalid row values", errors)
    return merged


def prune_values(sheet, values: dict) -> dict:
    """Drop keys that are not declared columns of the sheet."""
    declared = set(sheet.columns_by_key)
    return {k: v for k, v in (values or {}).items() if k in declared}


def ordered_values(sheet, values: dict) -> dict:
    """Values in column order, restricted to declared columns."""
    values = values or {}
    return {col.key: values[col.key] for col in sheet.columns if col.key in values}


def _field_error(field: str, message: str, row_id: Optional[str]) -> dict:
    entry = {"field": field, "message": message}
    if row_id:
        entry["rowId"] = row_id
    return entry
