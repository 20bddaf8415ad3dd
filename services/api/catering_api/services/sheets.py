"""Row store operations on inventory sheets.

Every mutation runs the formula evaluator before persisting, bumps the
sheet version, and hands the touched rows to the synchronizer. Bulk
patches are version-gated: the caller must present the version it last
read. Single-row patches are not (last writer wins per row).
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.text import same_text
from ..errors import ConcurrencyConflict, NotFound, ValidationError
from ..models import InventoryDataset, InventorySheet, SheetRow, generate_uuid
from . import datasets, formulas, item_numbers, sync
from .row_values import ITEM_NUMBER_KEY, apply_client_values, ordered_values, valid_item_number
from .sheet_schema import column_to_dict, get_sheet, mark_changed

logger = logging.getLogger("catering.inventory")


# --- Serialization ---

def dataset_to_dict(dataset: InventoryDataset) -> dict[str, Any]:
    return {
        "id": dataset.id,
        "label": dataset.label,
        "description": dataset.description,
        "values": dataset.values or [],
        "linkedColumns": dataset.linked_columns or [],
        "updatedBy": dataset.updated_by,
        "updatedAt": dataset.updated_at.isoformat() if dataset.updated_at else None,
    }


def row_to_dict(sheet: InventorySheet, row: SheetRow) -> dict[str, Any]:
    return {
        "id": row.id,
        "order": row.order,
        "values": ordered_values(sheet, row.values),
        "updatedBy": row.updated_by,
        "createdAt": row.created_at.isoformat() if row.created_at else None,
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }


def format_sheet(sheet: InventorySheet) -> dict[str, Any]:
    """Columns and live rows. Deleted rows are never returned."""
    return {
        "id": sheet.id,
        "sheetKey": sheet.sheet_key,
        "name": sheet.name,
        "description": sheet.description,
        "settings": sheet.settings or {},
        "version": sheet.version,
        "updatedBy": sheet.updated_by,
        "updatedAt": sheet.updated_at.isoformat() if sheet.updated_at else None,
        "columns": [column_to_dict(col) for col in sheet.columns],
        "rows": [row_to_dict(sheet, row) for row in sorted(sheet.live_rows, key=lambda r: r.order)],
    }


def sheet_response(db: Session, sheet: InventorySheet, **extra: Any) -> dict[str, Any]:
    """A sheet together with the datasets its columns reference."""
    dataset_ids = [col.dataset_id for col in sheet.columns if col.dataset_id]
    return {
        "sheet": format_sheet(sheet),
        "datasets": [dataset_to_dict(d) for d in datasets.fetch_datasets(db, dataset_ids)],
        **extra,
    }


def list_sheets(db: Session) -> list[dict[str, Any]]:
    out = []
    for sheet in db.scalars(select(InventorySheet).order_by(InventorySheet.sheet_key)):
        out.append({
            "sheetKey": sheet.sheet_key,
            "name": sheet.name,
            "description": sheet.description,
            "version": sheet.version,
            "columnCount": len(sheet.columns),
            "rowCount": len(sheet.live_rows),
            "updatedAt": sheet.updated_at.isoformat() if sheet.updated_at else None,
        })
    return out


# --- Lookups ---

def get_row(sheet: InventorySheet, row_id: str) -> SheetRow:
    row = sheet.find_row(row_id)
    if row is None or row.is_deleted:
        raise NotFound(f'Row "{row_id}" not found in sheet "{sheet.sheet_key}".')
    return row


def find_by_item_number(sheet: InventorySheet, item_number: int) -> SheetRow:
    for row in sheet.live_rows:
        if valid_item_number(row.get(ITEM_NUMBER_KEY)) == item_number:
            return row
    raise NotFound(f'No row with item# {item_number} in sheet "{sheet.sheet_key}".')


def find_by_name(sheet: InventorySheet, name: str) -> SheetRow:
    for row in sheet.live_rows:
        if same_text(row.get("name"), name):
            return row
    raise NotFound(f'No row named "{name}" in sheet "{sheet.sheet_key}".')


# --- Mutations ---

def _flush(db: Session, sheet: InventorySheet) -> None:
    """Flush, turning a lost version compare-and-swap into a 409."""
    try:
        db.flush()
    except StaleDataError:
        db.rollback()
        current = get_sheet(db, sheet.sheet_key)
        raise ConcurrencyConflict(current=format_sheet(current))


def _checked_values(
    db: Session,
    sheet: InventorySheet,
    current: dict,
    incoming: Optional[dict],
    *,
    creating: bool = False,
    row_id: Optional[str] = None,
    releasing: Iterable[str] = (),
) -> dict:
    values = apply_client_values(sheet, current, incoming, creating=creating, row_id=row_id)
    if incoming and ITEM_NUMBER_KEY in incoming:
        raw = values.get(ITEM_NUMBER_KEY)
        number = valid_item_number(raw)
        if raw is not None and number is None:
            raise ValidationError(
                "Invalid item number",
                [{"field": ITEM_NUMBER_KEY, "message": "Item# must be a positive integer", "rowId": row_id}],
            )
        if number is not None and number != valid_item_number(current.get(ITEM_NUMBER_KEY)):
            item_numbers.ensure_unique(db, number, row_id, releasing)
    return formulas.evaluate_values(sheet.columns, values)


def create_row(
    db: Session,
    sheet_key: str,
    values: Optional[dict],
    order: Optional[int] = None,
    updated_by: Optional[str] = None,
) -> tuple[InventorySheet, SheetRow]:
    sheet = get_sheet(db, sheet_key)
    new_values = _checked_values(db, sheet, {}, values, creating=True)

    if sheet.column(ITEM_NUMBER_KEY) is not None and valid_item_number(new_values.get(ITEM_NUMBER_KEY)) is None:
        new_values[ITEM_NUMBER_KEY] = item_numbers.next_item_number(db)

    if order is None:
        order = max((r.order for r in sheet.rows), default=-1) + 1
    row = SheetRow(id=generate_uuid(), order=order, values=new_values, updated_by=updated_by)
    sheet.rows.append(row)
    mark_changed(sheet, updated_by)
    _flush(db, sheet)

    sync.run_safely("inventory->menu", sync.push_row_to_menu, db, sheet, row)
    _flush(db, sheet)
    logger.info(f"Created row {row.id} in {sheet_key} (item# {row.get(ITEM_NUMBER_KEY)}) -> v{sheet.version}")
    return sheet, row


def _rows_releasing_item_numbers(sheet: InventorySheet, entries: list[dict]) -> set[str]:
    """Ids of rows whose current item number is deleted or replaced by ``entries``."""
    releasing = set()
    for entry in entries:
        row = sheet.find_row(entry.get("id") or "")
        if row is None:
            continue
        values = entry.get("values") or {}
        if entry.get("isDeleted") or (
            ITEM_NUMBER_KEY in values
            and valid_item_number(values[ITEM_NUMBER_KEY]) != valid_item_number(row.get(ITEM_NUMBER_KEY))
        ):
            releasing.add(row.id)
    return releasing


def _hard_delete(db: Session, sheet: InventorySheet, row: SheetRow) -> None:
    sync.run_safely("inventory->menu", sync.delete_row_links, db, sheet, row)
    sheet.rows.remove(row)


def delete_row(db: Session, sheet_key: str, row_id: str, updated_by: Optional[str] = None) -> InventorySheet:
    """Hard delete: the row is removed from the store, with its menu item and media."""
    sheet = get_sheet(db, sheet_key)
    row = get_row(sheet, row_id)
    _hard_delete(db, sheet, row)
    mark_changed(sheet, updated_by)
    _flush(db, sheet)
    logger.info(f"Deleted row {row_id} from {sheet_key} -> v{sheet.version}")
    return sheet


def patch_sheet(
    db: Session,
    sheet_key: str,
    version: Optional[int],
    rows: list[dict],
    updated_by: Optional[str] = None,
) -> InventorySheet:
    """Version-gated bulk row patch.

    Each entry is {id, values?, order?, isDeleted?}. Every entry is
    validated before anything is applied, so a rejected patch changes
    nothing.
    """
    sheet = get_sheet(db, sheet_key)
    if version is None:
        raise ValidationError("version is required", [{"field": "version", "message": "Send the version you last read"}])
    if version != sheet.version:
        logger.info(f"Rejected patch of {sheet_key}: client v{version}, current v{sheet.version}")
        raise ConcurrencyConflict(current=format_sheet(sheet))
    if not rows:
        raise ValidationError("rows payload is required", [{"field": "rows", "message": "At least one row is required"}])

    releasing = _rows_releasing_item_numbers(sheet, rows)
    errors = []
    planned = []
    claimed: dict[int, str] = {}
    for entry in rows:
        row_id = entry.get("id")
        if not row_id:
            errors.append({"rowId": None, "message": "Row id is required."})
            continue
        row = sheet.find_row(row_id)
        if row is None or row.is_deleted:
            errors.append({"rowId": row_id, "message": "Row not found."})
            continue
        if entry.get("isDeleted"):
            planned.append((row, None, None))
            continue
        try:
            new_values = _checked_values(
                db, sheet, row.values or {}, entry.get("values"), row_id=row_id, releasing=releasing
            )
        except ValidationError as e:
            errors.extend(e.errors)
            continue
        number = valid_item_number(new_values.get(ITEM_NUMBER_KEY))
        if number is not None and claimed.setdefault(number, row_id) != row_id:
            errors.append({
                "field": ITEM_NUMBER_KEY,
                "message": f"Item# {number} is assigned to more than one row",
                "rowId": row_id,
            })
            continue
        order = entry.get("order")
        planned.append((row, new_values, order if isinstance(order, int) and not isinstance(order, bool) else None))

    if errors:
        raise ValidationError("Some rows failed to update.", errors)

    updated = [(row, new_values, order) for row, new_values, order in planned if new_values is not None]
    for row, new_values, order in updated:
        row.values = new_values
        if order is not None:
            row.order = order
        row.updated_by = updated_by
    mark_changed(sheet, updated_by)
    _flush(db, sheet)

    # Deletes first, so their menu items release item numbers before the pushes
    for row, new_values, _ in planned:
        if new_values is None:
            _hard_delete(db, sheet, row)
    for row, _, _ in updated:
        sync.run_safely("inventory->menu", sync.push_row_to_menu, db, sheet, row)

    _flush(db, sheet)
    logger.info(f"Patched {len(planned)} row(s) in {sheet_key} -> v{sheet.version}")
    return sheet


def patch_row(
    db: Session,
    sheet_key: str,
    row_id: str,
    values: Optional[dict],
    updated_by: Optional[str] = None,
) -> tuple[InventorySheet, SheetRow]:
    """Single-row patch. Not version-gated; the sheet version still increments."""
    sheet = get_sheet(db, sheet_key)
    row = get_row(sheet, row_id)
    row.values = _checked_values(db, sheet, row.values or {}, values, row_id=row_id)
    row.updated_by = updated_by
    mark_changed(sheet, updated_by)
    _flush(db, sheet)
    sync.run_safely("inventory->menu", sync.push_row_to_menu, db, sheet, row)
    _flush(db, sheet)
    return sheet, row


def ingredient_rows(db: Session, sheet_keys: list[str]) -> list[dict[str, Any]]:
    """Picker entries for the recipe builder, formulas freshly applied."""
    out = []
    for sheet_key in sheet_keys:
        sheet = db.scalar(select(InventorySheet).where(InventorySheet.sheet_key == sheet_key))
        if sheet is None:
            continue
        for row in sorted(sheet.live_rows, key=lambda r: r.order):
            values = formulas.evaluate_values(sheet.columns, row.values or {})
            out.append({
                "sheetKey": sheet.sheet_key,
                "rowId": row.id,
                "inventoryKey": f"{sheet.sheet_key}:{row.id}",
                "name": values.get("name") or "",
                "values": ordered_values(sheet, values),
            })
    return out
