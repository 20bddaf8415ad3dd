"""Menu items API router.

Shared fields (name, item number, regions, style, ice, garnish,
ingredients) are owned by inventory; PUT only changes presentation
fields and silently ignores the rest.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..deps import get_actor, get_db
from ..services import menu

router = APIRouter()


@router.get("/", response_model=list[schemas.MenuItemOut])
def list_menu_items(
    category: Optional[str] = None,
    include_archived: bool = Query(False, alias="includeArchived"),
    db: Session = Depends(get_db),
):
    return menu.list_items(db, category, include_archived)


@router.get("/{item_id}", response_model=schemas.MenuItemOut)
def get_menu_item(item_id: str, db: Session = Depends(get_db)):
    return menu.get_item(db, item_id)


@router.put("/{item_id}", response_model=schemas.MenuItemOut)
def update_menu_item(item_id: str, body: schemas.MenuItemUpdate, db: Session = Depends(get_db)):
    item = menu.update_presentation(db, item_id, body.model_dump(by_alias=True, exclude_unset=True))
    db.commit()
    db.refresh(item)
    return item


@router.delete("/{item_id}")
def delete_menu_item(item_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    summary = menu.delete_item(db, item_id, updated_by=actor)
    db.commit()
    return {"success": True, **summary}


@router.post("/{item_id}/archive", response_model=schemas.MenuItemOut)
def archive_menu_item(item_id: str, db: Session = Depends(get_db)):
    item = menu.set_archived(db, item_id, True)
    db.commit()
    db.refresh(item)
    return item


@router.post("/{item_id}/restore", response_model=schemas.MenuItemOut)
def restore_menu_item(item_id: str, db: Session = Depends(get_db)):
    item = menu.set_archived(db, item_id, False)
    db.commit()
    db.refresh(item)
    return item
