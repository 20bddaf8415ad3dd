"""
Tests for the dataset registry and rename fan-out.
"""

import pytest
from sqlalchemy import text

from catering_api.errors import ValidationError
from catering_api.models import InventoryDataset, SheetRow, generate_uuid
from catering_api.services import datasets
from catering_api.services.sheet_schema import get_sheet


def _add_row(db, sheet_key, **values):
    sheet = get_sheet(db, sheet_key)
    row = SheetRow(id=generate_uuid(), order=len(sheet.rows), values=values)
    sheet.rows.append(row)
    db.flush()
    return row


def test_get_or_create(db_session):
    dataset = datasets.get_or_create(db_session, "bar.tools")
    assert dataset.values == []
    assert dataset.label == "bar.tools"
    assert datasets.get_or_create(db_session, "bar.tools") is dataset


def test_update_title_cases_values(db_session, seeded):
    dataset, _ = datasets.update(
        db_session, "cocktails.ice", values=["crushed ice", {"value": "big rock", "isDefault": True}, "crushed ICE"]
    )
    assert [v["value"] for v in dataset.values] == ["Crushed Ice", "Big Rock"]
    assert dataset.values[1]["isDefault"] is True


def test_linked_columns_lists_bound_sheets(db_session, seeded):
    dataset = db_session.get(InventoryDataset, "shared.distributor")
    links = {(l["sheetKey"], l["columnKey"]) for l in dataset.linked_columns}
    assert links == {("wine", "distributor"), ("spirits", "distributor"), ("dryStock", "distributor")}


def test_implicit_case_rename_propagates(db_session, seeded):
    dataset = db_session.get(InventoryDataset, "beer.type")
    dataset.values = [{"value": "ipa", "label": "ipa", "isDefault": False}]
    a = _add_row(db_session, "beer", name="Hazy", type="ipa")
    b = _add_row(db_session, "beer", name="West Coast", type="IPA")
    c = _add_row(db_session, "beer", name="Pils", type="Lager")
    version = get_sheet(db_session, "beer").version

    _, fan_out = datasets.update(db_session, "beer.type", values=["Ipa", "Lager"])

    assert fan_out.renames == {"ipa": "Ipa"}
    assert a.values["type"] == "Ipa"
    assert b.values["type"] == "Ipa"
    assert c.values["type"] == "Lager"
    assert fan_out.rows_updated == 2
    assert get_sheet(db_session, "beer").version == version + 1


def test_explicit_rename_reaches_every_bound_sheet(db_session, seeded):
    wine = _add_row(db_session, "wine", name="Red", distributor="southern glazers")
    spirit = _add_row(db_session, "spirits", name="Gin", distributor="SOUTHERN GLAZERS")
    dry = _add_row(db_session, "dryStock", name="Salt", distributor="Sysco")

    _, fan_out = datasets.update(
        db_session,
        "shared.distributor",
        values=["Southern Glazer's", "Sysco"],
        renames={"southern glazers": "southern glazer's"},
    )

    assert wine.values["distributor"] == "Southern Glazer's"
    assert spirit.values["distributor"] == "Southern Glazer's"
    assert dry.values["distributor"] == "Sysco"
    assert sorted(fan_out.sheets_updated) == ["spirits", "wine"]


def test_rename_target_must_exist(db_session, seeded):
    with pytest.raises(ValidationError):
        datasets.update(db_session, "shared.distributor", values=["Sysco"], renames={"a": "b"})


def test_failing_sheet_does_not_stop_fan_out(db_session, seeded, monkeypatch):
    _add_row(db_session, "wine", name="Red", distributor="acme")
    spirit = _add_row(db_session, "spirits", name="Gin", distributor="acme")

    real_mark_changed = datasets.mark_changed

    def flaky(sheet, updated_by=None):
        if sheet.sheet_key == "wine":
            raise RuntimeError("boom")
        real_mark_changed(sheet, updated_by)

    monkeypatch.setattr(datasets, "mark_changed", flaky)

    _, fan_out = datasets.update(db_session, "shared.distributor", values=["Acme Co"], renames={"acme": "Acme Co"})

    assert fan_out.sheets_failed == ["wine"]
    assert fan_out.sheets_updated == ["spirits"]
    assert spirit.values["distributor"] == "Acme Co"


def test_stale_sheet_rolls_back_alone(db_session, seeded):
    spirit = _add_row(db_session, "spirits", name="Gin", distributor="acme")
    wine = _add_row(db_session, "wine", name="Red", distributor="acme")
    # Another writer moved the spirits sheet on; its version check fails at flush time
    db_session.execute(text("UPDATE inventory_sheets SET version = version + 10 WHERE sheet_key = 'spirits'"))

    _, fan_out = datasets.update(db_session, "shared.distributor", values=["Acme Co"], renames={"acme": "Acme Co"})

    assert fan_out.sheets_failed == ["spirits"]
    assert fan_out.sheets_updated == ["wine"]
    assert wine.values["distributor"] == "Acme Co"
    assert spirit.values["distributor"] == "acme"
    db_session.commit()
    assert get_sheet(db_session, "wine").find_row(wine.id).values["distributor"] == "Acme Co"
