"""Sheet schema reconciliation.

``reconcile`` diffs a sheet's stored columns against a declarative target
list and converges them: missing columns are inserted at their target
position, drifted properties are updated, and columns absent from the
target are removed together with their values in every row. The sheet
version is bumped only when something changed, so a second run with the
same target is a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationError
from ..models import InventorySheet, SheetColumn
from . import formulas
from .formulas import FORMULA_KINDS

logger = logging.getLogger("catering.schema")

COLUMN_TYPES = ("text", "number", "currency", "dropdown", "formula")
DEFAULT_PRECISION = 2

# target key -> ORM attribute
_COLUMN_PROPS = {
    "label": "label",
    "type": "type",
    "datasetId": "dataset_id",
    "unit": "unit",
    "precision": "precision",
    "required": "required",
    "hidden": "hidden",
    "formula": "formula",
    "helperText": "helper_text",
}


@dataclass
class ReconcileResult:
    sheet_key: str
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    version: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)

    def to_dict(self) -> dict:
        return {
            "sheetKey": self.sheet_key,
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "changed": self.changed,
            "version": self.version,
        }


def mark_changed(sheet: InventorySheet, updated_by: Optional[str] = None) -> None:
    """Bump the sheet's version for a structural or content mutation."""
    sheet.version = (sheet.version or 0) + 1
    if updated_by:
        sheet.updated_by = updated_by


def get_sheet(db: Session, sheet_key: str) -> InventorySheet:
    sheet = db.scalar(select(InventorySheet).where(InventorySheet.sheet_key == sheet_key))
    if sheet is None:
        raise NotFound(f'Sheet "{sheet_key}" not found.')
    return sheet


def normalize_column_spec(spec: dict) -> dict:
    """Fill defaults so stored and target columns compare field by field."""
    errors = []
    key = (spec.get("key") or "").strip()
    if not key:
        errors.append({"field": "key", "message": "Column key is required"})
    col_type = spec.get("type") or "text"
    if col_type not in COLUMN_TYPES:
        errors.append({"field": f"{key}.type", "message": f"Unknown column type '{col_type}'"})
    formula = spec.get("formula") if col_type == "formula" else None
    if col_type == "formula" and (not isinstance(formula, dict) or formula.get("type") not in FORMULA_KINDS):
        errors.append({"field": f"{key}.formula", "message": "Formula columns need a supported formula kind"})
    precision = spec.get("precision")
    if precision is not None:
        try:
            precision = int(precision)
        except (TypeError, ValueError):
            errors.append({"field": f"{key}.precision", "message": "Precision must be an integer"})
    if errors:
        raise ValidationError("Invalid column definition", errors)

    return {
        "key": key,
        "label": spec.get("label") or key,
        "type": col_type,
        "datasetId": spec.get("datasetId") or None,
        "unit": spec.get("unit") or None,
        "precision": DEFAULT_PRECISION if precision is None else precision,
        "required": bool(spec.get("required", False)),
        "hidden": bool(spec.get("hidden", False)),
        "formula": formula,
        "helperText": spec.get("helperText") or None,
    }


def column_to_dict(column: SheetColumn) -> dict[str, Any]:
    return {prop: getattr(column, attr) for prop, attr in _COLUMN_PROPS.items()} | {"key": column.key}


def _new_column(spec: dict) -> SheetColumn:
    return SheetColumn(key=spec["key"], **{attr: spec[prop] for prop, attr in _COLUMN_PROPS.items()})


def _insert_index(columns: list[SheetColumn], target_keys: list[str], target_index: int) -> int:
    for prev_key in reversed(target_keys[:target_index]):
        for idx, col in enumerate(columns):
            if col.key == prev_key:
                return idx + 1
    return 0


def reconcile_sheet(sheet: InventorySheet, target_columns: list[dict], updated_by: Optional[str] = None) -> ReconcileResult:
    """Converge ``sheet.columns`` to ``target_columns`` (see module docstring)."""
    targets = [normalize_column_spec(spec) for spec in target_columns]
    target_keys = [spec["key"] for spec in targets]
    if len(set(target_keys)) != len(target_keys):
        raise ValidationError("Duplicate column keys in target", [{"field": "columns", "message": "keys must be unique"}])

    result = ReconcileResult(sheet_key=sheet.sheet_key)
    formula_drift = False

    # 1. Remove columns that left the target, and their values.
    stale = [col for col in sheet.columns if col.key not in target_keys]
    for col in stale:
        sheet.columns.remove(col)
        result.removed.append(col.key)
    if stale:
        stale_keys = {col.key for col in stale}
        for row in sheet.rows:
            if stale_keys & set(row.values or {}):
                row.values = {k: v for k, v in row.values.items() if k not in stale_keys}

    # 2. Add missing columns at their target position, update drifted ones.
    for index, spec in enumerate(targets):
        existing = sheet.column(spec["key"])
        if existing is None:
            sheet.columns.insert(_insert_index(sheet.columns, target_keys, index), _new_column(spec))
            result.added.append(spec["key"])
            formula_drift = formula_drift or spec["type"] == "formula"
            continue

        drifted = False
        for prop, attr in _COLUMN_PROPS.items():
            if getattr(existing, attr) != spec[prop]:
                setattr(existing, attr, spec[prop])
                drifted = True
        if drifted:
            result.updated.append(spec["key"])
            formula_drift = formula_drift or spec["type"] == "formula"

    if not result.changed:
        result.version = sheet.version
        return result

    if formula_drift:
        for row in sheet.rows:
            formulas.evaluate(sheet, row)

    mark_changed(sheet, updated_by)
    result.version = sheet.version
    logger.info(
        f"Reconciled sheet {sheet.sheet_key}: +{result.added} ~{result.updated} -{result.removed} -> v{sheet.version}"
    )
    return result


def reconcile(db: Session, sheet_key: str, target_columns: list[dict], updated_by: Optional[str] = None) -> ReconcileResult:
    sheet = get_sheet(db, sheet_key)
    result = reconcile_sheet(sheet, target_columns, updated_by)
    if result.changed:
        db.flush()
    return result
