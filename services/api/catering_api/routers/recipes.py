"""Recipes API router.

Endpoints:
- GET /api/recipes - List recipes (filter by type / itemNumber)
- GET /api/recipes/ingredients - Ingredient picker rows
- GET /api/recipes/{id} - Get recipe
- POST /api/recipes - Create recipe (costing recomputed, pushed to inventory)
- PUT /api/recipes/{id} - Update recipe
- DELETE /api/recipes/{id} - Delete recipe, clearing pre-mix references
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..core.text import split_list
from ..deps import get_actor, get_db
from ..infra.idempotency import idempotency_clear_key, idempotency_precheck, idempotency_store_result
from ..services import recipes, sheets
from ..services.sheet_catalog import DEFAULT_INGREDIENT_SHEETS

router = APIRouter()
logger = logging.getLogger("catering.recipes")


@router.get("/recipes")
def list_recipes(
    type: Optional[str] = None,
    item_number: Optional[int] = Query(None, alias="itemNumber"),
    db: Session = Depends(get_db),
):
    """List recipes, alphabetically."""
    return {"recipes": [recipes.recipe_to_dict(r) for r in recipes.list_recipes(db, type, item_number)]}


@router.get("/recipes/ingredients")
def list_ingredients(
    sheet_keys: Optional[str] = Query(None, alias="sheetKeys"),
    db: Session = Depends(get_db),
):
    keys = split_list(sheet_keys) or list(DEFAULT_INGREDIENT_SHEETS)
    return {"ingredients": sheets.ingredient_rows(db, keys)}


@router.get("/recipes/{recipe_id}")
def get_recipe(recipe_id: str, db: Session = Depends(get_db)):
    return {"recipe": recipes.recipe_to_dict(recipes.get_recipe(db, recipe_id))}


@router.post("/recipes", status_code=201)
async def create_recipe(
    request: Request,
    body: schemas.RecipeIn,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    pre = await idempotency_precheck(request, route_key="recipe_create")
    if isinstance(pre, JSONResponse):
        return pre

    try:
        recipe = recipes.create_recipe(db, body.model_dump(by_alias=True), updated_by=actor)
        db.commit()
        resp = {"recipe": recipes.recipe_to_dict(recipe)}
        if pre:
            await idempotency_store_result(pre[0], pre[1], status=201, body=resp)
        return resp
    except Exception:
        if pre:
            await idempotency_clear_key(pre[0])
        raise


@router.put("/recipes/{recipe_id}")
def update_recipe(
    recipe_id: str,
    body: schemas.RecipeIn,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    recipe = recipes.update_recipe(db, recipe_id, body.model_dump(by_alias=True), updated_by=actor)
    db.commit()
    return {"recipe": recipes.recipe_to_dict(recipe)}


@router.delete("/recipes/{recipe_id}")
def delete_recipe(recipe_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    recipes.delete_recipe(db, recipe_id, updated_by=actor)
    db.commit()
    return {"success": True}
