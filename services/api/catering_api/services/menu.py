"""Menu/display items. Only presentation fields are editable here; shared
fields arrive from inventory through the synchronizer."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import MenuItem
from . import sync

logger = logging.getLogger("catering.menu")

MENU_CATEGORIES = ("cocktails", "mocktails", "beer", "wine", "spirits", "premix")

PRESENTATION_FIELDS = {
    "concept": "concept",
    "narrative": "narrative",
    "featured": "featured",
    "order": "order",
    "videoFile": "video_file",
    "mapSnapshotFile": "map_snapshot_file",
    "backgroundColor": "background_color",
}


def get_item(db: Session, item_id: str) -> MenuItem:
    item = db.get(MenuItem, item_id)
    if item is None:
        raise NotFound("Menu item not found.")
    return item


def list_items(db: Session, category: Optional[str] = None, include_archived: bool = False) -> list[MenuItem]:
    stmt = select(MenuItem)
    if category:
        stmt = stmt.where(MenuItem.category == category)
    if not include_archived:
        stmt = stmt.where(MenuItem.status != "archived")
    return list(db.scalars(stmt.order_by(MenuItem.category, MenuItem.order, MenuItem.name)))


def update_presentation(db: Session, item_id: str, changes: dict) -> MenuItem:
    item = get_item(db, item_id)
    touched = []
    for key, attr in PRESENTATION_FIELDS.items():
        if key not in changes or changes[key] is None:
            continue
        if getattr(item, attr) != changes[key]:
            setattr(item, attr, changes[key])
            touched.append(key)
    if touched:
        db.flush()
        logger.info(f"Updated menu item {item.id}: {touched}")
    return item


def set_archived(db: Session, item_id: str, archived: bool) -> MenuItem:
    item = get_item(db, item_id)
    item.status = "archived" if archived else "active"
    item.is_active = not archived
    item.archived_at = datetime.now(timezone.utc) if archived else None
    db.flush()
    return item


def delete_item(db: Session, item_id: str, updated_by: Optional[str] = None) -> dict:
    item = get_item(db, item_id)
    return sync.delete_menu_item(db, item, updated_by)
