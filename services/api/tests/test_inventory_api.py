"""
Tests for the inventory sheets API.
"""

import pytest

from catering_api.models import MenuItem


def _sheet(client, key):
    resp = client.get(f"/api/inventory/{key}")
    assert resp.status_code == 200, resp.text
    return resp.json()["sheet"]


def _create(client, key, values, headers=None):
    resp = client.post(f"/api/inventory/{key}/rows", json={"values": values}, headers=headers or {})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_list_sheets(client, seeded):
    resp = client.get("/api/inventory/sheets")
    assert resp.status_code == 200
    keys = {s["sheetKey"] for s in resp.json()["sheets"]}
    assert keys == {"cocktails", "mocktails", "wine", "spirits", "dryStock", "preMix", "beer"}


def test_get_sheet_includes_columns_and_datasets(client, seeded):
    resp = client.get("/api/inventory/wine")
    assert resp.status_code == 200
    body = resp.json()
    assert body["sheet"]["rows"] == []
    column_keys = [c["key"] for c in body["sheet"]["columns"]]
    assert column_keys[:3] == ["name", "style", "hue"]
    assert {d["id"] for d in body["datasets"]} >= {"wine.style", "wine.hue", "shared.distributor"}


def test_unknown_sheet_is_404(client, seeded):
    assert client.get("/api/inventory/cheese").status_code == 404


def test_create_row_computes_formulas_and_item_number(client, seeded):
    body = _create(client, "wine", {"name": "house red", "unitCost": 20, "sizeMl": "750", "ounceCost": 99, "bogus": 1})
    row = body["row"]
    assert row["values"]["itemNumber"] == 1
    assert row["values"]["ounceCost"] == pytest.approx(0.79, abs=0.01)
    assert row["values"]["glassCost"] == pytest.approx(3.95, abs=0.01)
    assert "bogus" not in row["values"]
    assert body["sheet"]["version"] > 1


def test_create_row_requires_name(client, seeded):
    resp = client.post("/api/inventory/wine/rows", json={"values": {"unitCost": 10}})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "name"


def test_non_numeric_value_is_rejected(client, seeded):
    resp = client.post("/api/inventory/wine/rows", json={"values": {"name": "Red", "unitCost": "cheap"}})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "unitCost"


def test_duplicate_item_number_is_rejected(client, seeded):
    _create(client, "wine", {"name": "Red", "itemNumber": 12})
    resp = client.post("/api/inventory/beer/rows", json={"values": {"name": "Lager", "itemNumber": 12}})
    assert resp.status_code == 400


def test_system_columns_are_not_client_writable(client, seeded):
    row = _create(client, "beer", {"name": "Lager", "recipeId": "r-1", "menuItemId": "m-1"})["row"]
    assert "recipeId" not in row["values"]
    # menuItemId is the synchronizer's backlink, not the client's value
    assert row["values"]["menuItemId"] != "m-1"


def test_patch_with_stale_version_is_rejected(client, seeded):
    body = _create(client, "beer", {"name": "Lager", "packCost": 24, "numUnits": 12})
    row_id = body["row"]["id"]
    version = body["sheet"]["version"]

    resp = client.patch("/api/inventory/beer", json={
        "version": version - 1,
        "rows": [{"id": row_id, "values": {"packCost": 48}}],
    })

    assert resp.status_code == 409
    assert resp.json()["sheet"]["version"] == version
    sheet = _sheet(client, "beer")
    assert sheet["version"] == version
    assert sheet["rows"][0]["values"]["packCost"] == 24


def test_patch_applies_values_and_formulas(client, seeded):
    body = _create(client, "beer", {"name": "Lager", "packCost": 24, "numUnits": 12})
    row_id = body["row"]["id"]
    version = body["sheet"]["version"]

    resp = client.patch("/api/inventory/beer", json={
        "version": version,
        "rows": [{"id": row_id, "values": {"packCost": 36, "unitCost": 1000}}],
    })

    assert resp.status_code == 200, resp.text
    sheet = resp.json()["sheet"]
    assert sheet["version"] == version + 1
    assert sheet["rows"][0]["values"]["unitCost"] == 3.0


def test_patch_requires_version(client, seeded):
    row_id = _create(client, "beer", {"name": "Lager"})["row"]["id"]
    resp = client.patch("/api/inventory/beer", json={"rows": [{"id": row_id, "values": {"region": "Mexico"}}]})
    assert resp.status_code == 400


def test_patch_with_unknown_row_changes_nothing(client, seeded):
    body = _create(client, "beer", {"name": "Lager"})
    version = body["sheet"]["version"]
    resp = client.patch("/api/inventory/beer", json={
        "version": version,
        "rows": [
            {"id": body["row"]["id"], "values": {"region": "Mexico"}},
            {"id": "missing", "values": {"region": "Peru"}},
        ],
    })
    assert resp.status_code == 400
    sheet = _sheet(client, "beer")
    assert sheet["version"] == version
    assert "region" not in sheet["rows"][0]["values"]


def test_patch_is_deleted_hard_deletes(client, seeded, db_session):
    body = _create(client, "beer", {"name": "Lager"})
    resp = client.patch("/api/inventory/beer", json={
        "version": body["sheet"]["version"],
        "rows": [{"_id": body["row"]["id"], "isDeleted": True}],
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["sheet"]["rows"] == []
    assert db_session.query(MenuItem).count() == 0


def test_single_row_patch_is_not_version_gated(client, seeded):
    body = _create(client, "beer", {"name": "Lager", "packCost": 24, "numUnits": 12})
    row_id = body["row"]["id"]
    version = body["sheet"]["version"]

    resp = client.patch(f"/api/inventory/beer/rows/{row_id}", json={"values": {"numUnits": 6}})

    assert resp.status_code == 200, resp.text
    assert resp.json()["row"]["values"]["unitCost"] == 4.0
    assert resp.json()["version"] == version + 1


def test_delete_row_is_absent_afterwards(client, seeded, db_session):
    body = _create(client, "wine", {"name": "Red"})
    row_id = body["row"]["id"]
    assert db_session.query(MenuItem).count() == 1

    resp = client.delete(f"/api/inventory/wine/rows/{row_id}")

    assert resp.status_code == 200
    assert _sheet(client, "wine")["rows"] == []
    assert client.delete(f"/api/inventory/wine/rows/{row_id}").status_code == 404
    db_session.expire_all()
    assert db_session.query(MenuItem).count() == 0


def test_lookup_by_item_number_and_name(client, seeded):
    _create(client, "spirits", {"name": "Plymouth Gin", "itemNumber": 30})
    resp = client.get("/api/inventory/spirits/by-item-number/30")
    assert resp.status_code == 200
    assert resp.json()["row"]["values"]["name"] == "Plymouth Gin"

    resp = client.get("/api/inventory/spirits/by-name/plymouth gin")
    assert resp.status_code == 200
    assert resp.json()["row"]["values"]["itemNumber"] == 30

    assert client.get("/api/inventory/spirits/by-item-number/31").status_code == 404


def test_sync_to_menu_is_idempotent(client, seeded):
    _create(client, "wine", {"name": "Red", "region": "rioja"})
    _create(client, "wine", {"name": "White"})

    first = client.post("/api/inventory/wine/sync-to-menu").json()
    second = client.post("/api/inventory/wine/sync-to-menu").json()

    assert first["rows"] == 2
    assert first["writes"] == 0
    assert second["writes"] == 0
    assert second["version"] == first["version"]


def test_schema_put_reconciles(client, seeded):
    sheet = _sheet(client, "dryStock")
    columns = sheet["columns"] + [{"key": "allergen", "label": "Allergen", "type": "text"}]

    resp = client.put("/api/inventory/dryStock/schema", json={"columns": columns})

    assert resp.status_code == 200, resp.text
    assert resp.json()["added"] == ["allergen"]
    again = client.put("/api/inventory/dryStock/schema", json={"columns": columns}).json()
    assert again["changed"] is False


def test_dataset_get_and_put(client, seeded):
    resp = client.get("/api/inventory/datasets/glassware")
    assert resp.status_code == 200
    assert resp.json()["dataset"]["values"] == []

    _create(client, "beer", {"name": "Hazy", "type": "ipa"})
    resp = client.put("/api/inventory/datasets/beer.type", json={
        "values": ["Ipa"],
        "renames": [{"from": "ipa", "to": "Ipa"}],
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["rowsUpdated"] == 1
    assert _sheet(client, "beer")["rows"][0]["values"]["type"] == "Ipa"


def test_create_row_idempotency_key_replays(client, seeded):
    headers = {"Idempotency-Key": "row-create-1"}
    first = _create(client, "beer", {"name": "Lager"}, headers=headers)
    second = _create(client, "beer", {"name": "Lager"}, headers=headers)

    assert first["row"]["id"] == second["row"]["id"]
    assert len(_sheet(client, "beer")["rows"]) == 1


@pytest.mark.parametrize("sheet_key", ["dryStock", "cocktails"])
def test_patch_rejects_duplicate_item_numbers_in_one_batch(client, seeded, sheet_key):
    first = _create(client, sheet_key, {"name": "Alpha", "itemNumber": 901})
    second = _create(client, sheet_key, {"name": "Bravo", "itemNumber": 902})
    version = second["sheet"]["version"]

    resp = client.patch(f"/api/inventory/{sheet_key}", json={
        "version": version,
        "rows": [
            {"id": first["row"]["id"], "values": {"itemNumber": 977}},
            {"id": second["row"]["id"], "values": {"itemNumber": 977}},
        ],
    })

    assert resp.status_code == 400, resp.text
    assert resp.json()["errors"][0]["field"] == "itemNumber"
    sheet = _sheet(client, sheet_key)
    assert sheet["version"] == version
    assert sorted(r["values"]["itemNumber"] for r in sheet["rows"]) == [901, 902]


def test_patch_can_swap_item_numbers(client, seeded):
    first = _create(client, "cocktails", {"name": "Alpha", "itemNumber": 911})
    second = _create(client, "cocktails", {"name": "Bravo", "itemNumber": 912})

    resp = client.patch("/api/inventory/cocktails", json={
        "version": second["sheet"]["version"],
        "rows": [
            {"id": first["row"]["id"], "values": {"itemNumber": 912}},
            {"id": second["row"]["id"], "values": {"itemNumber": 911}},
        ],
    })

    assert resp.status_code == 200, resp.text
    numbers = {r["values"]["name"]: r["values"]["itemNumber"] for r in resp.json()["sheet"]["rows"]}
    assert numbers == {"Alpha": 912, "Bravo": 911}


def test_reused_item_number_leaves_media_key_unset(client, seeded):
    cocktail = _create(client, "cocktails", {"name": "Alpha", "itemNumber": 921})
    resp = client.patch(
        f"/api/inventory/cocktails/rows/{cocktail['row']['id']}", json={"values": {"itemNumber": 950}}
    )
    assert resp.status_code == 200, resp.text

    mocktail = _create(client, "mocktails", {"name": "Bravo", "itemNumber": 921})

    items = {i["name"]: i for i in client.get("/api/menu-items/").json()}
    assert items["Alpha"]["itemNumber"] == 950
    assert items["Alpha"]["itemId"] == "item921"
    assert items["Bravo"]["itemNumber"] == 921
    assert items["Bravo"]["itemId"] is None
    assert items["Bravo"]["id"] == mocktail["row"]["values"]["menuItemId"]


def test_row_save_survives_failed_menu_flush(client, seeded, monkeypatch):
    from catering_api.services import sync

    _create(client, "cocktails", {"name": "Alpha", "itemNumber": 931})
    # Every new menu item now collides on the unique media key at flush time
    monkeypatch.setattr(sync, "_free_item_id", lambda db, item_number, owner_id=None: "item931")

    body = _create(client, "cocktails", {"name": "Bravo", "itemNumber": 932})

    assert not body["row"]["values"].get("menuItemId")
    names = [r["values"]["name"] for r in _sheet(client, "cocktails")["rows"]]
    assert names == ["Alpha", "Bravo"]
    assert [i["name"] for i in client.get("/api/menu-items/").json()] == ["Alpha"]


def test_schema_put_rejects_non_numeric_precision(client, seeded):
    sheet = _sheet(client, "wine")
    columns = sheet["columns"] + [{"key": "vintage", "label": "Vintage", "type": "number", "precision": "abc"}]

    resp = client.put("/api/inventory/wine/schema", json={"columns": columns})

    assert resp.status_code == 400, resp.text
    assert resp.json()["errors"][0]["field"] == "vintage.precision"
