"""Cross-entity synchronizer.

One logical menu item lives in three places: an inventory row, a recipe
and a menu item. Field ownership is declared once in the tables below
and every save path calls into this module:

- inventory row create/patch  -> ``push_row_to_menu``
- recipe create/update        -> ``push_recipe_to_inventory``
- menu item delete            -> ``delete_menu_item`` (cascades to the row)
- inventory row delete        -> ``delete_row_links`` (cascades to the menu item)

Every direction compares before it writes, so a second run with the same
inputs performs no writes. ``run_safely`` isolates failures: a broken
direction is logged as a warning and never blocks the triggering save.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.text import same_text, split_list, to_title_case
from ..errors import SyncWarning
from ..models import InventorySheet, MenuItem, Recipe, SheetRow, generate_uuid
from . import formulas
from .media import media
from .row_values import ITEM_NUMBER_KEY, is_blank, valid_item_number
from .sheet_catalog import MENU_CATEGORY_BY_SHEET, SHEET_BY_MENU_CATEGORY, SHEET_BY_RECIPE_TYPE
from .sheet_schema import mark_changed

logger = logging.getLogger("catering.sync")


@dataclass
class SyncResult:
    direction: str
    target_id: Optional[str] = None
    writes: int = 0
    created: bool = False
    backlinked: bool = False
    skipped: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "targetId": self.target_id,
            "writes": self.writes,
            "created": self.created,
            "skipped": self.skipped,
        }


def _discard_pending(db: Session) -> None:
    for obj in list(db.new):
        db.expunge(obj)
    for obj in list(db.dirty):
        db.expire(obj)


def run_safely(direction: str, fn: Callable[..., Any], db: Session, *args, **kwargs) -> Optional[Any]:
    """Run one sync direction inside a SAVEPOINT; log and swallow any failure.

    The triggering save is flushed first, so a failed direction rolls back
    only its own writes and the save still commits.
    """
    db.flush()
    try:
        with db.begin_nested():
            result = fn(db, *args, **kwargs)
            db.flush()
        return result
    except StaleDataError:
        # Version conflicts abort the triggering save.
        raise
    except Exception as e:
        _discard_pending(db)
        logger.warning(f"{direction} sync failed: {e}", extra={"category": SyncWarning.__name__}, exc_info=True)
        return None


# ---------------------------------------------------------------------------
# Inventory -> Menu
# ---------------------------------------------------------------------------

def _regions(value: Any) -> list[str]:
    if isinstance(value, list):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
    else:
        parts = split_list(value)
    return [to_title_case(p) for p in parts]


def _text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value if v)
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class MenuField:
    attr: str
    sources: tuple[str, ...]
    transform: Callable[[Any], Any] = _text
    # When True an empty inventory value clears the menu value.
    clears: bool = False


INVENTORY_TO_MENU = (
    MenuField("name", ("name",), lambda v: to_title_case(_text(v))),
    MenuField("item_number", (ITEM_NUMBER_KEY,), valid_item_number),
    MenuField("regions", ("regions", "region"), _regions, clears=True),
    MenuField("style", ("style", "type", "spirit")),
    MenuField("ice", ("ice",)),
    MenuField("garnish", ("garnish",)),
    MenuField("ingredients", ("ingredients",)),
)

_MENU_DEFAULTS = {"regions": [], "item_number": None}


def _menu_values(row: SheetRow) -> dict[str, Any]:
    values = row.values or {}
    out = {}
    for field in INVENTORY_TO_MENU:
        raw = None
        for source in field.sources:
            if not is_blank(values.get(source)):
                raw = values.get(source)
                break
        out[field.attr] = field.transform(raw)
    return out


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def find_menu_item_for_row(db: Session, category: str, row: SheetRow, by_name: bool = True) -> Optional[MenuItem]:
    """Linked menu item: by menuItemId, then itemNumber+category, then name+category."""
    linked_id = row.get("menuItemId")
    if isinstance(linked_id, str) and linked_id:
        item = db.get(MenuItem, linked_id)
        if item is not None:
            return item

    item_number = valid_item_number(row.get(ITEM_NUMBER_KEY))
    if item_number is not None:
        item = db.scalar(
            select(MenuItem).where(MenuItem.item_number == item_number, MenuItem.category == category)
        )
        if item is not None:
            return item

    name = row.get("name")
    if by_name and isinstance(name, str) and name.strip():
        for item in db.scalars(select(MenuItem).where(MenuItem.category == category)):
            if same_text(item.name, name):
                return item
    return None


def _next_menu_order(db: Session, category: str) -> int:
    current = db.scalar(select(func.max(MenuItem.order)).where(MenuItem.category == category))
    return (current or 0) + 1


def _item_number_taken(db: Session, item_number: int, item_id: Optional[str]) -> bool:
    holder = db.scalar(select(MenuItem).where(MenuItem.item_number == item_number))
    return holder is not None and holder.id != item_id


def _free_item_id(db: Session, item_number: Optional[int], owner_id: Optional[str] = None) -> Optional[str]:
    """Media key item{n}, or None when another menu item already uses it."""
    if not item_number:
        return None
    candidate = f"item{item_number}"
    holder = db.scalar(select(MenuItem).where(MenuItem.item_id == candidate))
    if holder is not None and holder.id != owner_id:
        logger.warning(
            f"Media key {candidate} is held by menu item {holder.id}; leaving itemId unset",
            extra={"category": SyncWarning.__name__},
        )
        return None
    return candidate


def push_row_to_menu(db: Session, sheet: InventorySheet, row: SheetRow) -> SyncResult:
    result = SyncResult(direction="inventory->menu")
    category = MENU_CATEGORY_BY_SHEET.get(sheet.sheet_key)
    if category is None:
        result.skipped = "sheet has no menu category"
        return result
    if row.is_deleted:
        result.skipped = "row deleted"
        return result

    desired = _menu_values(row)
    if not desired["name"]:
        result.skipped = "row has no name"
        logger.debug(f"Row {row.id} in {sheet.sheet_key} has no name; menu sync skipped")
        return result

    item_number = desired["item_number"]
    item = find_menu_item_for_row(db, category, row)

    if item_number is not None and _item_number_taken(db, item_number, item.id if item else None):
        logger.warning(
            f"Item# {item_number} of row {row.id} is held by another menu item; leaving it unchanged",
            extra={"category": SyncWarning.__name__},
        )
        desired["item_number"] = None

    if item is None:
        item = MenuItem(
            id=generate_uuid(),
            category=category,
            status="active",
            is_active=True,
            order=_next_menu_order(db, category),
            item_id=_free_item_id(db, desired["item_number"]),
            concept="",
            narrative="",
            featured=False,
            video_file="",
            map_snapshot_file="",
            background_color="#e5e5e5",
        )
        for field in INVENTORY_TO_MENU:
            value = desired[field.attr]
            setattr(item, field.attr, _MENU_DEFAULTS.get(field.attr, "") if value is None else value)
        db.add(item)
        db.flush()
        result.created = True
        result.writes = 1
        logger.info(f"Created menu item {item.id} ({category}) for row {row.id}")
    else:
        changed = []
        for field in INVENTORY_TO_MENU:
            value = desired[field.attr]
            if _is_empty(value) and not field.clears:
                continue
            if field.clears and value is None:
                value = []
            if getattr(item, field.attr) != value:
                setattr(item, field.attr, value)
                changed.append(field.attr)
        if not item.item_id and item.item_number:
            media_key = _free_item_id(db, item.item_number, item.id)
            if media_key:
                item.item_id = media_key
                changed.append("item_id")
        if changed:
            result.writes = 1
            logger.info(f"Updated menu item {item.id} from row {row.id}: {changed}")
        else:
            logger.debug(f"Menu item {item.id} already matches row {row.id}")

    result.target_id = item.id
    if sheet.column("menuItemId") is not None and row.get("menuItemId") != item.id:
        row.values = {**(row.values or {}), "menuItemId": item.id}
        result.backlinked = True
    return result


def sync_sheet_to_menu(db: Session, sheet: InventorySheet, updated_by: Optional[str] = None) -> dict:
    """Re-push every live row of a sheet. Idempotent."""
    summary = {"sheetKey": sheet.sheet_key, "rows": 0, "writes": 0, "created": 0, "failed": 0}
    backlinked = False
    for row in sheet.live_rows:
        summary["rows"] += 1
        result = run_safely("inventory->menu", push_row_to_menu, db, sheet, row)
        if result is None:
            summary["failed"] += 1
            continue
        summary["writes"] += result.writes
        summary["created"] += int(result.created)
        backlinked = backlinked or result.backlinked
    if backlinked:
        mark_changed(sheet, updated_by)
    db.flush()
    summary["version"] = sheet.version
    return summary


# ---------------------------------------------------------------------------
# Recipe -> Inventory
# ---------------------------------------------------------------------------

def _meta(key: str) -> Callable[[Recipe], Optional[str]]:
    def read(recipe: Recipe) -> Optional[str]:
        value = (recipe.meta or {}).get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None
    return read


def _volume(recipe: Recipe) -> float:
    return round(recipe.total_volume_oz or 0.0, 2)


def _cost(recipe: Recipe) -> float:
    return round(recipe.total_cost_each or 0.0, 2)


def _ounce_cost(recipe: Recipe) -> float:
    volume = recipe.total_volume_oz or 0.0
    if volume <= 0:
        return 0.0
    return round((recipe.total_cost_each or 0.0) / volume, 2)


_DRINK_FIELDS = {
    "style": _meta("type"),
    "ice": _meta("ice"),
    "garnish": _meta("garnish"),
    "sumOz": _volume,
    "unitCost": _cost,
}

# recipe type -> {inventory column: reader}. None from a reader means "leave as is".
RECIPE_TO_INVENTORY: dict[str, dict[str, Callable[[Recipe], Any]]] = {
    "cocktail": _DRINK_FIELDS,
    "mocktail": _DRINK_FIELDS,
    "premix": {
        "type": _meta("type"),
        "cocktail": _meta("cocktail"),
        "ounceCost": _ounce_cost,
    },
    "beer": {},
    "wine": {},
    "spirit": {},
}


def _sheet(db: Session, sheet_key: str) -> Optional[InventorySheet]:
    return db.scalar(select(InventorySheet).where(InventorySheet.sheet_key == sheet_key))


def find_row_for_recipe(sheet: InventorySheet, recipe: Recipe) -> Optional[SheetRow]:
    rows = sheet.live_rows
    if recipe.item_number:
        for row in rows:
            if valid_item_number(row.get(ITEM_NUMBER_KEY)) == recipe.item_number:
                return row
    for row in rows:
        if same_text(row.get("name"), recipe.title):
            return row
    for row in rows:
        if row.get("recipeId") == recipe.id:
            return row
    return None


def push_recipe_to_inventory(db: Session, recipe: Recipe, updated_by: Optional[str] = None) -> SyncResult:
    result = SyncResult(direction="recipe->inventory")
    sheet_key = SHEET_BY_RECIPE_TYPE.get(recipe.type)
    sheet = _sheet(db, sheet_key) if sheet_key else None
    if sheet is None:
        result.skipped = f"no sheet for recipe type {recipe.type}"
        return result

    row = find_row_for_recipe(sheet, recipe)
    if row is None:
        result.skipped = "no matching inventory row"
        logger.info(f"No {sheet.sheet_key} row matches recipe {recipe.id} ({recipe.title}); nothing pushed")
        return result
    result.target_id = row.id

    row_number = valid_item_number(row.get(ITEM_NUMBER_KEY))
    if recipe.item_number is None and row_number is not None:
        recipe.item_number = row_number
        logger.info(f"Recipe {recipe.id} adopted item# {row_number} from row {row.id}")

    desired: dict[str, Any] = {"recipeId": recipe.id, "recipeType": recipe.type}
    for key, read in RECIPE_TO_INVENTORY.get(recipe.type, {}).items():
        value = read(recipe)
        if value is not None:
            desired[key] = value

    current = dict(row.values or {})
    changes = {
        key: value for key, value in desired.items()
        if sheet.column(key) is not None and current.get(key) != value
    }
    if not changes:
        logger.debug(f"Row {row.id} already matches recipe {recipe.id}")
        return result

    row.values = {**current, **changes}
    formulas.evaluate(sheet, row)
    if updated_by:
        row.updated_by = updated_by
    mark_changed(sheet, updated_by)
    result.writes = 1
    logger.info(f"Pushed recipe {recipe.id} into {sheet.sheet_key} row {row.id}: {sorted(changes)}")

    run_safely("inventory->menu", push_row_to_menu, db, sheet, row)
    return result


def sync_premix_references(
    db: Session,
    recipe: Recipe,
    *,
    clear: bool = False,
    previous_title: Optional[str] = None,
    updated_by: Optional[str] = None,
) -> int:
    """Point recipe-linked preMix rows used by a drink recipe at its title.

    Rows that carry the recipe's (current or previous) title but are no
    longer used by its lines are cleared. ``clear=True`` clears them all.
    Returns the number of rows written.
    """
    if recipe.type not in ("cocktail", "mocktail"):
        return 0
    sheet = _sheet(db, "preMix")
    if sheet is None or sheet.column("cocktail") is None:
        return 0

    used = set() if clear else {line.row_id for line in recipe.lines if line.sheet_key == "preMix" and line.row_id}
    titles = [t for t in (recipe.title, previous_title) if t]
    writes = 0
    for row in sheet.live_rows:
        if not row.get("recipeId"):
            continue
        current = row.get("cocktail")
        if row.id in used:
            target = recipe.title
        elif any(same_text(current, t) for t in titles):
            target = None
        else:
            continue
        if current != target:
            row.values = {**(row.values or {}), "cocktail": target}
            writes += 1
    if writes:
        mark_changed(sheet, updated_by)
        logger.info(f"Updated {writes} preMix reference(s) for recipe {recipe.id}")
    return writes


def unlink_recipe(db: Session, recipe: Recipe, updated_by: Optional[str] = None) -> int:
    """Drop recipeId/recipeType from rows that point at a deleted recipe."""
    sheet_key = SHEET_BY_RECIPE_TYPE.get(recipe.type)
    sheet = _sheet(db, sheet_key) if sheet_key else None
    if sheet is None:
        return 0
    writes = 0
    for row in sheet.live_rows:
        if row.get("recipeId") == recipe.id:
            row.values = {**(row.values or {}), "recipeId": None, "recipeType": None}
            writes += 1
    if writes:
        mark_changed(sheet, updated_by)
    return writes


# ---------------------------------------------------------------------------
# Deletion cascades
# ---------------------------------------------------------------------------

def _row_for_menu_item(sheet: InventorySheet, item: MenuItem) -> Optional[SheetRow]:
    for row in sheet.rows:
        if row.get("menuItemId") == item.id:
            return row
    if item.item_number:
        for row in sheet.rows:
            if valid_item_number(row.get(ITEM_NUMBER_KEY)) == item.item_number:
                return row
    return None


def delete_item_media(item: MenuItem) -> list[str]:
    deleted = media.delete_item_media(item.item_id, item.video_file or "", item.map_snapshot_file or "")
    if deleted:
        logger.info(f"Deleted media {deleted} of menu item {item.id}")
    return deleted


def delete_menu_item(db: Session, item: MenuItem, updated_by: Optional[str] = None) -> dict:
    """Hard-delete a menu item, its linked inventory row and its derived media."""
    summary = {"menuItemId": item.id, "rowId": None, "sheetKey": None, "media": []}

    def remove_row(db: Session):
        sheet_key = SHEET_BY_MENU_CATEGORY.get(item.category)
        sheet = _sheet(db, sheet_key) if sheet_key else None
        if sheet is None:
            return
        row = _row_for_menu_item(sheet, item)
        if row is None:
            return
        sheet.rows.remove(row)
        mark_changed(sheet, updated_by)
        summary["rowId"] = row.id
        summary["sheetKey"] = sheet.sheet_key
        logger.info(f"Deleted {sheet.sheet_key} row {row.id} linked to menu item {item.id}")

    run_safely("menu->inventory", remove_row, db)
    summary["media"] = delete_item_media(item)
    db.delete(item)
    db.flush()
    return summary


def delete_row_links(db: Session, sheet: InventorySheet, row: SheetRow) -> Optional[str]:
    """Delete the menu item linked to a row being hard-deleted. Returns its id."""
    category = MENU_CATEGORY_BY_SHEET.get(sheet.sheet_key)
    if category is None:
        return None
    item = find_menu_item_for_row(db, category, row, by_name=False)
    if item is None:
        return None
    delete_item_media(item)
    db.delete(item)
    logger.info(f"Deleted menu item {item.id} linked to {sheet.sheet_key} row {row.id}")
    return item.id
