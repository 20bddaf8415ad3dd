"""Inventory sheets API router.

Endpoints:
- GET /api/inventory/sheets - Sheet summaries
- GET|PUT /api/inventory/datasets/{id} - Dataset registry (PUT fans out renames)
- GET /api/inventory/{sheetKey} - Sheet with columns, live rows and datasets
- PATCH /api/inventory/{sheetKey} - Version-gated bulk row patch (409 on stale version)
- POST /api/inventory/{sheetKey}/rows - Create row (auto item number)
- PATCH /api/inventory/{sheetKey}/rows/{rowId} - Single-row patch
- DELETE /api/inventory/{sheetKey}/rows/{rowId} - Hard delete + cascade
- GET /api/inventory/{sheetKey}/by-item-number/{n}, /by-name/{name}
- POST /api/inventory/{sheetKey}/sync-to-menu
- PUT /api/inventory/{sheetKey}/schema - Reconcile columns against a target
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..deps import get_actor, get_db
from ..infra.idempotency import idempotency_clear_key, idempotency_precheck, idempotency_store_result
from ..services import datasets, sheets, sync
from ..services.sheet_schema import get_sheet, reconcile

router = APIRouter()
logger = logging.getLogger("catering.inventory")


@router.get("/sheets")
def list_sheets(db: Session = Depends(get_db)):
    return {"sheets": sheets.list_sheets(db)}


@router.get("/datasets/{dataset_id}")
def get_dataset(dataset_id: str, db: Session = Depends(get_db)):
    dataset = datasets.get_or_create(db, dataset_id)
    db.commit()
    return {"dataset": sheets.dataset_to_dict(dataset)}


@router.put("/datasets/{dataset_id}")
def update_dataset(
    dataset_id: str,
    body: schemas.DatasetUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    dataset, fan_out = datasets.update(
        db,
        dataset_id,
        label=body.label,
        values=body.values_payload(),
        renames=body.renames_map(),
        updated_by=actor,
    )
    db.commit()
    return {
        "dataset": sheets.dataset_to_dict(dataset),
        "renames": fan_out.renames,
        "rowsUpdated": fan_out.rows_updated,
        "sheetsUpdated": fan_out.sheets_updated,
        "sheetsFailed": fan_out.sheets_failed,
    }


@router.get("/{sheet_key}")
def get_sheet_detail(sheet_key: str, db: Session = Depends(get_db)):
    return sheets.sheet_response(db, get_sheet(db, sheet_key))


@router.patch("/{sheet_key}")
def patch_sheet(
    sheet_key: str,
    body: schemas.SheetPatch,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    sheet = sheets.patch_sheet(
        db,
        sheet_key,
        body.version,
        [entry.as_entry() for entry in body.rows],
        updated_by=body.updated_by or actor,
    )
    db.commit()
    return sheets.sheet_response(db, sheet)


@router.post("/{sheet_key}/rows", status_code=201)
async def create_row(
    sheet_key: str,
    request: Request,
    body: schemas.RowCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    pre = await idempotency_precheck(request, route_key=f"rows_{sheet_key}")
    if isinstance(pre, JSONResponse):
        return pre

    try:
        sheet, row = sheets.create_row(db, sheet_key, body.values, order=body.order, updated_by=actor)
        db.commit()
        resp = sheets.sheet_response(db, sheet, row=sheets.row_to_dict(sheet, row))
        if pre:
            await idempotency_store_result(pre[0], pre[1], status=201, body=resp)
        return resp
    except Exception:
        if pre:
            await idempotency_clear_key(pre[0])
        raise


@router.patch("/{sheet_key}/rows/{row_id}")
def patch_row(
    sheet_key: str,
    row_id: str,
    body: schemas.RowValuesPatch,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    sheet, row = sheets.patch_row(db, sheet_key, row_id, body.values, updated_by=actor)
    db.commit()
    return {"row": sheets.row_to_dict(sheet, row), "version": sheet.version}


@router.delete("/{sheet_key}/rows/{row_id}")
def delete_row(
    sheet_key: str,
    row_id: str,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    sheet = sheets.delete_row(db, sheet_key, row_id, updated_by=actor)
    db.commit()
    return sheets.sheet_response(db, sheet)


@router.get("/{sheet_key}/by-item-number/{item_number}")
def get_row_by_item_number(sheet_key: str, item_number: int, db: Session = Depends(get_db)):
    sheet = get_sheet(db, sheet_key)
    return {"row": sheets.row_to_dict(sheet, sheets.find_by_item_number(sheet, item_number))}


@router.get("/{sheet_key}/by-name/{name}")
def get_row_by_name(sheet_key: str, name: str, db: Session = Depends(get_db)):
    sheet = get_sheet(db, sheet_key)
    return {"row": sheets.row_to_dict(sheet, sheets.find_by_name(sheet, name))}


@router.post("/{sheet_key}/sync-to-menu")
def sync_to_menu(sheet_key: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    summary = sync.sync_sheet_to_menu(db, get_sheet(db, sheet_key), updated_by=actor)
    db.commit()
    return summary


@router.put("/{sheet_key}/schema")
def update_schema(
    sheet_key: str,
    body: schemas.SchemaUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    result = reconcile(db, sheet_key, body.columns, updated_by=actor)
    if result.changed:
        datasets.refresh_all_linked_columns(db)
    db.commit()
    return result.to_dict()
