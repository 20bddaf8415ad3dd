"""Startup seeding: datasets, sheets and their schemas, item numbers."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import InventoryDataset, InventorySheet, generate_uuid
from . import datasets, formulas, item_numbers
from .sheet_catalog import DATASET_DEFINITIONS, SHEET_DEFINITIONS
from .sheet_schema import mark_changed, reconcile_sheet

logger = logging.getLogger("catering.inventory")


def ensure_seeded(db: Session, updated_by: Optional[str] = "system") -> dict:
    """Idempotent. A second run on an unchanged database writes nothing."""
    summary = {"datasetsCreated": [], "sheetsCreated": [], "reconciled": [], "itemNumbers": 0, "formulaRows": 0}

    for definition in DATASET_DEFINITIONS:
        if db.get(InventoryDataset, definition["id"]) is not None:
            continue
        db.add(InventoryDataset(
            id=definition["id"],
            label=definition["label"],
            values=datasets.normalize_values(definition["values"]),
            linked_columns=[],
            updated_by=updated_by,
        ))
        summary["datasetsCreated"].append(definition["id"])
    db.flush()

    for definition in SHEET_DEFINITIONS:
        sheet = db.scalar(select(InventorySheet).where(InventorySheet.sheet_key == definition["sheetKey"]))
        if sheet is None:
            sheet = InventorySheet(
                id=generate_uuid(),
                sheet_key=definition["sheetKey"],
                name=definition["name"],
                description=definition.get("description"),
                settings={},
                version=1,
                updated_by=updated_by,
            )
            db.add(sheet)
            summary["sheetsCreated"].append(sheet.sheet_key)
        result = reconcile_sheet(sheet, definition["columns"], updated_by)
        if result.changed:
            summary["reconciled"].append(result.to_dict())

        drifted = 0
        for row in sheet.live_rows:
            if formulas.evaluate(sheet, row):
                drifted += 1
        if drifted:
            mark_changed(sheet, updated_by)
            summary["formulaRows"] += drifted
    db.flush()

    datasets.refresh_all_linked_columns(db)

    summary["itemNumbers"] = item_numbers.backfill(db, updated_by)
    db.flush()

    logger.info(
        f"Seed: datasets+{len(summary['datasetsCreated'])} sheets+{len(summary['sheetsCreated'])} "
        f"reconciled={len(summary['reconciled'])} itemNumbers={summary['itemNumbers']} formulaRows={summary['formulaRows']}"
    )
    return summary
