"""
Recipe costing engine.

``hydrate`` resolves each ingredient line against its inventory row,
derives unit conversions and a pricing snapshot, and prices the line.
Totals are always recomputed from the lines; whatever the caller sent
as totals is ignored.
"""

import logging
import re
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import InventorySheet
from . import formulas
from .row_values import valid_item_number
from .unit_conversion import derive_conversions, normalize_amount, to_number

logger = logging.getLogger("catering.costing")

RECIPE_TYPES = ("cocktail", "mocktail", "premix", "beer", "wine", "spirit")
DEFAULT_BACKGROUND = "#e5e5e5"
HIGH_COST_THRESHOLD = 50.0

_HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


# --- Pricing ---

def derive_pricing(values: dict) -> dict:
    """Pricing snapshot from a resolved inventory row.

    ``ounceCost`` (spirits, wine) and ``gramCost`` (dry stock) are both
    dollars per ounce, so gramCost is an ounce fallback and never a
    per-gram price.
    """
    values = values or {}
    per_oz = to_number(values.get("ounceCost"))
    if per_oz is None:
        per_oz = to_number(values.get("gramCost"))
    return {
        "currency": "USD",
        "perUnit": to_number(values.get("unitCost")),
        "perOz": per_oz,
        "perGram": None,
        "perMl": to_number(values.get("mlCost")),
    }


def extended_cost(pricing: Optional[dict], conversions: dict, amount_value: float) -> float:
    """toOz x perOz, else toGram x perGram, else amount x perUnit, else 0."""
    pricing = pricing or {}
    per_oz = to_number(pricing.get("perOz"))
    per_gram = to_number(pricing.get("perGram"))
    per_unit = to_number(pricing.get("perUnit"))

    if per_oz and conversions.get("toOz"):
        cost = conversions["toOz"] * per_oz
        if cost > HIGH_COST_THRESHOLD:
            logger.warning(f"High perOz cost: {conversions['toOz']:.4f} oz x {per_oz} = {cost:.2f}")
        return cost
    if per_gram and conversions.get("toGram"):
        return conversions["toGram"] * per_gram
    if per_unit:
        cost = (amount_value or 0.0) * per_unit
        if cost > HIGH_COST_THRESHOLD and (amount_value or 0) > 1:
            logger.warning(f"High perUnit cost: {amount_value} x {per_unit} = {cost:.2f}")
        return cost
    return 0.0


# --- Line resolution ---

def parse_inventory_key(item: dict) -> tuple[Optional[str], Optional[str]]:
    """(sheetKey, rowId) from ``inventoryKey`` "sheet:row" or from the ingredient ref."""
    key = item.get("inventoryKey") or (item.get("ingredient") or {}).get("inventoryKey") or ""
    if isinstance(key, str) and ":" in key:
        sheet_key, row_id = key.split(":", 1)
        if sheet_key and row_id:
            return sheet_key, row_id
    ingredient = item.get("ingredient") or {}
    sheet_key = ingredient.get("sheetKey") or item.get("sheetKey")
    row_id = ingredient.get("rowId") or item.get("rowId")
    if sheet_key and row_id:
        return sheet_key, row_id
    return None, None


class RowResolver:
    """Per-hydration cache of sheets; resolves live rows with formulas applied."""

    def __init__(self, db: Session):
        self.db = db
        self._sheets: dict[str, Optional[InventorySheet]] = {}

    def sheet(self, sheet_key: str) -> Optional[InventorySheet]:
        if sheet_key not in self._sheets:
            self._sheets[sheet_key] = self.db.scalar(
                select(InventorySheet).where(InventorySheet.sheet_key == sheet_key)
            )
        return self._sheets[sheet_key]

    def resolve(self, sheet_key: str, row_id: str) -> Optional[tuple[str, dict]]:
        sheet = self.sheet(sheet_key)
        if sheet is None:
            return None
        row = sheet.find_row(row_id)
        if row is None or row.is_deleted:
            return None
        values = formulas.evaluate_values(sheet.columns, row.values or {})
        return values.get("name") or "", values


def _rounded(conversions: dict) -> dict:
    return {key: round(conversions.get(key) or 0.0, 4) for key in ("toOz", "toMl", "toGram")}


def hydrate(db: Session, items: list[dict]) -> tuple[list[dict], dict]:
    """Resolve, convert and price every line. Returns (lines, totals)."""
    resolver = RowResolver(db)
    lines = []
    total_oz = 0.0
    total_cost = 0.0

    for index, raw in enumerate(items or []):
        item = dict(raw or {})
        sheet_key, row_id = parse_inventory_key(item)
        resolved = None
        if sheet_key and row_id:
            resolved = resolver.resolve(sheet_key, row_id)
            if resolved is None:
                logger.info(f"Ingredient {sheet_key}:{row_id} not found; keeping cached pricing")

        amount = normalize_amount(item.get("amount"))
        conversions = derive_conversions(amount["value"], amount["unit"])
        if resolved is not None:
            pricing = derive_pricing(resolved[1])
        else:
            pricing = dict(item.get("pricing") or {})
        cost = extended_cost(pricing, conversions, amount["value"])

        ingredient = item.get("ingredient") or {}
        name = ingredient.get("name") or item.get("name") or (resolved[0] if resolved else "") or ""
        if cost > HIGH_COST_THRESHOLD:
            logger.warning(f"High ingredient cost for {name or 'Unknown'}: {cost:.2f} ({sheet_key}:{row_id})")

        total_oz += conversions["toOz"] or 0.0
        total_cost += cost or 0.0

        order = item.get("order")
        lines.append({
            "order": order if isinstance(order, int) and not isinstance(order, bool) else index,
            "sheetKey": sheet_key,
            "rowId": row_id,
            "name": name,
            "amount": amount,
            "conversions": _rounded(conversions),
            "pricing": pricing,
            "extendedCost": round(cost, 4),
            "notes": (item.get("notes") or "").strip(),
        })

    totals = {"volumeOz": round(total_oz, 3), "costEach": round(total_cost, 2)}
    if totals["costEach"] > HIGH_COST_THRESHOLD:
        per_oz = f"{totals['costEach'] / totals['volumeOz']:.2f}" if totals["volumeOz"] > 0 else "N/A"
        logger.warning(
            f"High recipe total cost: {totals['costEach']} for {totals['volumeOz']} oz ({per_oz}/oz, {len(lines)} lines)"
        )
    return lines, totals


# --- Payload normalization ---

def sanitize_metadata(metadata: Optional[dict]) -> dict:
    metadata = metadata or {}
    out: dict[str, Any] = {
        "priceSet": to_number(metadata.get("priceSet")),
        "priceMin": to_number(metadata.get("priceMin")),
    }
    for key in ("style", "glassware", "ice", "garnish", "type", "cocktail"):
        value = metadata.get(key)
        out[key] = value.strip() if isinstance(value, str) else ""
    return out


def sanitize_batch(batch: Optional[dict]) -> dict:
    batch = batch or {}
    return {
        "size": to_number(batch.get("size")) or 0,
        "unit": "ml" if batch.get("unit") == "ml" else "oz",
        "yieldCount": to_number(batch.get("yieldCount")) or 0,
    }


def normalize_background_color(value: Any) -> str:
    if value:
        color = str(value).strip()
        if _HEX_COLOR.match(color):
            return color
    return DEFAULT_BACKGROUND


def normalize_recipe_payload(db: Session, payload: dict) -> dict:
    """Validate a recipe payload and return it hydrated, with fresh totals."""
    title = str(payload.get("title") or "").strip()
    if not title:
        raise ValidationError("Recipe title is required", [{"field": "title", "message": "Title is required"}])

    recipe_type = payload.get("type")
    if recipe_type not in RECIPE_TYPES:
        recipe_type = "cocktail"

    items = payload.get("items")
    lines, totals = hydrate(db, items if isinstance(items, list) else [])
    return {
        "title": title,
        "type": recipe_type,
        "itemNumber": valid_item_number(payload.get("itemNumber")),
        "metadata": sanitize_metadata(payload.get("metadata")),
        "notes": str(payload.get("notes") or "").strip(),
        "batchNotes": str(payload.get("batchNotes") or "").strip(),
        "batch": sanitize_batch(payload.get("batch")),
        "backgroundColor": normalize_background_color(payload.get("backgroundColor")),
        "items": lines,
        "totals": totals,
    }
