"""Recipe persistence. Every save re-hydrates costing and pushes into inventory."""

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Recipe, RecipeLine, generate_uuid
from . import sync
from .recipe_costing import normalize_recipe_payload

logger = logging.getLogger("catering.recipes")


def line_to_dict(line: RecipeLine) -> dict[str, Any]:
    return {
        "id": line.id,
        "order": line.order,
        "inventoryKey": line.inventory_key,
        "ingredient": {"sheetKey": line.sheet_key or "", "rowId": line.row_id or "", "name": line.name or ""},
        "amount": line.amount or {},
        "conversions": line.conversions or {},
        "pricing": line.pricing or {},
        "extendedCost": line.extended_cost or 0.0,
        "notes": line.notes or "",
    }


def recipe_to_dict(recipe: Recipe) -> dict[str, Any]:
    return {
        "id": recipe.id,
        "title": recipe.title,
        "type": recipe.type,
        "itemNumber": recipe.item_number,
        "metadata": recipe.meta or {},
        "notes": recipe.notes or "",
        "batchNotes": recipe.batch_notes or "",
        "batch": recipe.batch or {},
        "backgroundColor": recipe.background_color,
        "items": [line_to_dict(line) for line in recipe.lines],
        "totals": recipe.totals,
        "createdAt": recipe.created_at.isoformat() if recipe.created_at else None,
        "updatedAt": recipe.updated_at.isoformat() if recipe.updated_at else None,
    }


def get_recipe(db: Session, recipe_id: str) -> Recipe:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found.")
    return recipe


def list_recipes(db: Session, recipe_type: Optional[str] = None, item_number: Optional[int] = None) -> list[Recipe]:
    stmt = select(Recipe)
    if recipe_type:
        stmt = stmt.where(Recipe.type == recipe_type)
    if item_number is not None:
        stmt = stmt.where(Recipe.item_number == item_number)
    return list(db.scalars(stmt.order_by(func.lower(Recipe.title))))


def _apply(recipe: Recipe, normalized: dict) -> None:
    recipe.title = normalized["title"]
    recipe.type = normalized["type"]
    if normalized["itemNumber"] is not None:
        recipe.item_number = normalized["itemNumber"]
    recipe.meta = normalized["metadata"]
    recipe.notes = normalized["notes"]
    recipe.batch_notes = normalized["batchNotes"]
    recipe.batch = normalized["batch"]
    recipe.background_color = normalized["backgroundColor"]
    recipe.total_volume_oz = normalized["totals"]["volumeOz"]
    recipe.total_cost_each = normalized["totals"]["costEach"]

    recipe.lines = [
        RecipeLine(
            id=generate_uuid(),
            order=line["order"],
            sheet_key=line["sheetKey"],
            row_id=line["rowId"],
            name=line["name"],
            amount=line["amount"],
            conversions=line["conversions"],
            pricing=line["pricing"],
            extended_cost=line["extendedCost"],
            notes=line["notes"],
        )
        for line in sorted(normalized["items"], key=lambda l: l["order"])
    ]


def _propagate(db: Session, recipe: Recipe, previous_title: Optional[str], updated_by: Optional[str]) -> None:
    sync.run_safely("recipe->inventory", sync.push_recipe_to_inventory, db, recipe, updated_by)
    sync.run_safely(
        "recipe->premix", sync.sync_premix_references, db, recipe,
        previous_title=previous_title, updated_by=updated_by,
    )


def create_recipe(db: Session, payload: dict, updated_by: Optional[str] = None) -> Recipe:
    normalized = normalize_recipe_payload(db, payload)
    recipe = Recipe(id=generate_uuid())
    _apply(recipe, normalized)
    db.add(recipe)
    db.flush()
    _propagate(db, recipe, None, updated_by)
    db.flush()
    logger.info(f"Created {recipe.type} recipe {recipe.id} ({recipe.title}) totals={recipe.totals}")
    return recipe


def update_recipe(db: Session, recipe_id: str, payload: dict, updated_by: Optional[str] = None) -> Recipe:
    recipe = get_recipe(db, recipe_id)
    previous_title = recipe.title
    normalized = normalize_recipe_payload(db, payload)
    _apply(recipe, normalized)
    db.flush()
    _propagate(db, recipe, previous_title, updated_by)
    db.flush()
    logger.info(f"Updated recipe {recipe.id} ({recipe.title}) totals={recipe.totals}")
    return recipe


def delete_recipe(db: Session, recipe_id: str, updated_by: Optional[str] = None) -> None:
    recipe = get_recipe(db, recipe_id)
    sync.run_safely("recipe->premix", sync.sync_premix_references, db, recipe, clear=True, updated_by=updated_by)
    sync.run_safely("recipe->inventory", sync.unlink_recipe, db, recipe, updated_by)
    db.delete(recipe)
    db.flush()
    logger.info(f"Deleted recipe {recipe_id}")
