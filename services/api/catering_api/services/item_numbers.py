"""Item-number allocation.

An item number is the permanent integer join key between an inventory
row, its recipe and its menu item. Numbers are unique across every
sheet. Automation only ever fills rows that lack one.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import InventorySheet, MenuItem, SheetRow
from .row_values import ITEM_NUMBER_KEY, valid_item_number
from .sheet_schema import mark_changed

logger = logging.getLogger("catering.item_numbers")


def _live_rows(db: Session) -> Iterable[SheetRow]:
    return db.scalars(select(SheetRow).where(SheetRow.is_deleted.is_(False)))


def used_item_numbers(db: Session, exclude_row_id: Optional[str] = None) -> set[int]:
    """Every positive item number held by a live row or a menu item."""
    used: set[int] = set()
    for row in _live_rows(db):
        if row.id == exclude_row_id:
            continue
        num = valid_item_number(row.get(ITEM_NUMBER_KEY))
        if num is not None:
            used.add(num)
    for num in db.scalars(select(MenuItem.item_number).where(MenuItem.item_number.is_not(None))):
        if num and num > 0:
            used.add(num)
    return used


def max_row_item_number(db: Session) -> int:
    highest = 0
    for row in _live_rows(db):
        num = valid_item_number(row.get(ITEM_NUMBER_KEY))
        if num is not None and num > highest:
            highest = num
    return highest


def reserve_next(used: set[int], start: int) -> int:
    """Smallest number > start that is not in ``used``. Adds it to ``used``."""
    candidate = start + 1
    while candidate in used:
        candidate += 1
    used.add(candidate)
    return candidate


def next_item_number(db: Session) -> int:
    """(max over live rows) + 1, skipping numbers already in use. Starts at 1."""
    db.flush()
    used = used_item_numbers(db)
    return reserve_next(used, max_row_item_number(db))


def ensure_unique(
    db: Session, item_number: int, row_id: Optional[str] = None, releasing: Iterable[str] = ()
) -> None:
    """Raise when another live row already holds ``item_number``.

    Rows in ``releasing`` give up their current number in the same write
    and are skipped.
    """
    skip = {row_id, *releasing}
    for row in _live_rows(db):
        if row.id in skip:
            continue
        if valid_item_number(row.get(ITEM_NUMBER_KEY)) == item_number:
            raise ValidationError(
                "Item number already in use",
                [{"field": ITEM_NUMBER_KEY, "message": f"Item# {item_number} is already assigned", "rowId": row_id}],
            )


def backfill(db: Session, updated_by: Optional[str] = None) -> int:
    """Assign numbers to live rows of sheets with an itemNumber column that lack a valid one.

    Rows that already hold a valid number are never touched. Returns the
    number of rows filled.
    """
    db.flush()
    used = used_item_numbers(db)
    cursor = max_row_item_number(db)
    filled = 0
    for sheet in db.scalars(select(InventorySheet).order_by(InventorySheet.sheet_key)):
        if sheet.column(ITEM_NUMBER_KEY) is None:
            continue
        sheet_filled = 0
        for row in sheet.live_rows:
            if valid_item_number(row.get(ITEM_NUMBER_KEY)) is not None:
                continue
            cursor = reserve_next(used, cursor)
            row.values = {**(row.values or {}), ITEM_NUMBER_KEY: cursor}
            sheet_filled += 1
        if sheet_filled:
            mark_changed(sheet, updated_by)
            filled += sheet_filled
            logger.info(f"Backfilled {sheet_filled} item number(s) in sheet {sheet.sheet_key}")
    if filled:
        db.flush()
    return filled
