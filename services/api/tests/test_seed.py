from catering_api.models import InventoryDataset, InventorySheet, SheetRow, generate_uuid
from catering_api.services.seed import ensure_seeded
from catering_api.services.sheet_catalog import DATASET_DEFINITIONS, SHEET_DEFINITIONS
from catering_api.services.sheet_schema import get_sheet


def test_seed_creates_catalog(db_session, seeded):
    assert len(seeded["sheetsCreated"]) == len(SHEET_DEFINITIONS)
    assert len(seeded["datasetsCreated"]) == len(DATASET_DEFINITIONS)
    assert db_session.query(InventorySheet).count() == len(SHEET_DEFINITIONS)
    assert db_session.query(InventoryDataset).count() == len(DATASET_DEFINITIONS)


def test_seed_is_idempotent(db_session, seeded):
    versions = {s.sheet_key: s.version for s in db_session.query(InventorySheet)}

    again = ensure_seeded(db_session)

    assert again["datasetsCreated"] == []
    assert again["sheetsCreated"] == []
    assert again["reconciled"] == []
    assert again["itemNumbers"] == 0
    assert again["formulaRows"] == 0
    assert {s.sheet_key: s.version for s in db_session.query(InventorySheet)} == versions


def test_seed_links_dropdown_columns(db_session, seeded):
    dataset = db_session.get(InventoryDataset, "shared.distributor")
    sheet_keys = {link["sheetKey"] for link in dataset.linked_columns}
    assert {"wine", "spirits", "dryStock"} <= sheet_keys


def test_seed_backfills_item_numbers_and_formulas(db_session, seeded):
    sheet = get_sheet(db_session, "beer")
    sheet.rows.append(SheetRow(id=generate_uuid(), order=0, values={"name": "Lager", "packCost": 24, "numUnits": 12}))
    db_session.flush()

    summary = ensure_seeded(db_session)

    row = sheet.live_rows[0]
    assert summary["itemNumbers"] == 1
    assert summary["formulaRows"] == 1
    assert row.values["itemNumber"] == 1
    assert row.values["unitCost"] == 2.0
