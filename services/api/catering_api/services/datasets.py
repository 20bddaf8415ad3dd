"""Dataset registry.

Datasets are global, named dropdown value lists shared by every column
bound to them. ``update`` is the single writer: it title-cases the new
value list and, when values were renamed, runs a one-shot fan-out that
rewrites matching row values in every bound sheet. The fan-out is not
atomic; a failing sheet is logged and skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.text import to_title_case
from ..errors import SyncWarning, ValidationError
from ..models import InventoryDataset, InventorySheet
from .sheet_schema import mark_changed

logger = logging.getLogger("catering.datasets")


@dataclass
class FanOutResult:
    renames: dict[str, str] = field(default_factory=dict)
    rows_updated: int = 0
    sheets_updated: list[str] = field(default_factory=list)
    sheets_failed: list[str] = field(default_factory=list)


def normalize_entry(entry: Any) -> Optional[dict]:
    """Accept a bare string or {value, label, isDefault}; return the title-cased entry."""
    if isinstance(entry, str):
        raw_value, raw_label, is_default = entry, entry, False
    elif isinstance(entry, dict):
        raw_value = entry.get("value") or entry.get("label")
        raw_label = entry.get("label") or raw_value
        is_default = bool(entry.get("isDefault", False))
    else:
        return None
    if not isinstance(raw_value, str) or not raw_value.strip():
        return None
    return {
        "value": to_title_case(raw_value),
        "label": to_title_case(raw_label) if isinstance(raw_label, str) else to_title_case(raw_value),
        "isDefault": is_default,
    }


def normalize_values(values: Iterable[Any]) -> list[dict]:
    out: list[dict] = []
    seen: set[str] = set()
    for entry in values or []:
        normalized = normalize_entry(entry)
        if normalized is None:
            continue
        marker = normalized["value"].lower()
        if marker in seen:
            continue
        seen.add(marker)
        out.append(normalized)
    return out


def get_dataset(db: Session, dataset_id: str) -> Optional[InventoryDataset]:
    return db.get(InventoryDataset, dataset_id)


def get_or_create(db: Session, dataset_id: str, label: Optional[str] = None) -> InventoryDataset:
    dataset = db.get(InventoryDataset, dataset_id)
    if dataset is None:
        dataset = InventoryDataset(id=dataset_id, label=label or dataset_id, values=[], linked_columns=[])
        db.add(dataset)
        db.flush()
        logger.info(f"Created dataset {dataset_id}")
    return dataset


def fetch_datasets(db: Session, dataset_ids: Iterable[str]) -> list[InventoryDataset]:
    ids = sorted({d for d in dataset_ids if d})
    if not ids:
        return []
    return list(db.scalars(select(InventoryDataset).where(InventoryDataset.id.in_(ids))))


def bound_columns(db: Session, dataset_id: str) -> list[tuple[InventorySheet, str]]:
    """Every (sheet, column key) bound to the dataset, from the stored schemas."""
    pairs = []
    for sheet in db.scalars(select(InventorySheet).order_by(InventorySheet.sheet_key)):
        for col in sheet.columns:
            if col.dataset_id == dataset_id:
                pairs.append((sheet, col.key))
    return pairs


def refresh_linked_columns(db: Session, dataset: InventoryDataset) -> bool:
    links = [{"sheetKey": sheet.sheet_key, "columnKey": key} for sheet, key in bound_columns(db, dataset.id)]
    if links == (dataset.linked_columns or []):
        return False
    dataset.linked_columns = links
    return True


def detect_renames(old_values: list[dict], new_values: list[dict], explicit: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Old value -> new value.

    Explicit renames win. Otherwise an old value whose case-insensitive form
    matches a new value but is spelled differently is a rename ("ipa" -> "Ipa").
    """
    new_by_lower = {entry["value"].lower(): entry["value"] for entry in new_values}
    renames: dict[str, str] = {}
    for source, target in (explicit or {}).items():
        if not isinstance(source, str) or not isinstance(target, str) or not source.strip():
            continue
        target_value = to_title_case(target)
        if target_value.lower() not in new_by_lower:
            raise ValidationError(
                "Rename target is not in the value list",
                [{"field": "renames", "message": f"'{target}' is not a value of this dataset"}],
            )
        renames[source.strip()] = new_by_lower[target_value.lower()]

    for entry in old_values or []:
        old = entry.get("value")
        if not isinstance(old, str) or old in renames:
            continue
        match = new_by_lower.get(old.strip().lower())
        if match is not None and match != old:
            renames[old] = match
    return renames


def fan_out_renames(db: Session, dataset_id: str, renames: dict[str, str], updated_by: Optional[str] = None) -> FanOutResult:
    """Rewrite row values of every bound sheet. Exact match first, then case-insensitive."""
    result = FanOutResult(renames=dict(renames))
    if not renames:
        return result
    lowered = {old.strip().lower(): new for old, new in renames.items()}

    by_sheet: dict[str, tuple[InventorySheet, list[str]]] = {}
    for sheet, column_key in bound_columns(db, dataset_id):
        by_sheet.setdefault(sheet.sheet_key, (sheet, []))[1].append(column_key)

    for sheet_key, (sheet, column_keys) in by_sheet.items():
        pending = []
        for row in sheet.live_rows:
            values = dict(row.values or {})
            touched = False
            for key in column_keys:
                current = values.get(key)
                if not isinstance(current, str):
                    continue
                replacement = renames.get(current) or lowered.get(current.strip().lower())
                if replacement is not None and replacement != current:
                    values[key] = replacement
                    touched = True
            if touched:
                pending.append((row, values))
        if not pending:
            continue

        # One SAVEPOINT per sheet: a failed sheet rolls back alone
        try:
            with db.begin_nested():
                mark_changed(sheet, updated_by)
                for row, values in pending:
                    row.values = values
                db.flush()
        except Exception as e:
            db.expire(sheet)
            for row, _ in pending:
                db.expire(row)
            result.sheets_failed.append(sheet_key)
            logger.warning(
                f"Dataset {dataset_id} rename fan-out failed for sheet {sheet_key}: {e}",
                extra={"category": SyncWarning.__name__},
            )
            continue
        result.rows_updated += len(pending)
        result.sheets_updated.append(sheet_key)

    logger.info(
        f"Dataset {dataset_id} renames {renames}: {result.rows_updated} row(s) in {result.sheets_updated}"
    )
    return result


def update(
    db: Session,
    dataset_id: str,
    *,
    label: Optional[str] = None,
    values: Optional[list[Any]] = None,
    renames: Optional[dict[str, str]] = None,
    updated_by: Optional[str] = None,
) -> tuple[InventoryDataset, FanOutResult]:
    """Replace the dataset's label/value list and fan out any renames."""
    dataset = get_or_create(db, dataset_id, label)
    if label:
        dataset.label = label

    fan_out = FanOutResult()
    if values is not None:
        old_values = list(dataset.values or [])
        new_values = normalize_values(values)
        found = detect_renames(old_values, new_values, renames)
        dataset.values = new_values
        dataset.updated_by = updated_by
        db.flush()
        fan_out = fan_out_renames(db, dataset_id, found, updated_by)

    refresh_linked_columns(db, dataset)
    return dataset, fan_out


def refresh_all_linked_columns(db: Session) -> int:
    """Recompute linkedColumns of every dataset. Returns how many changed."""
    changed = 0
    for dataset in db.scalars(select(InventoryDataset)):
        if refresh_linked_columns(db, dataset):
            changed += 1
    return changed
