"""
Tests for sheet schema reconciliation.
"""

import copy

import pytest

from catering_api.errors import ValidationError
from catering_api.models import SheetRow, generate_uuid
from catering_api.services.sheet_catalog import sheet_definition
from catering_api.services.sheet_schema import get_sheet, reconcile


def _beer_target():
    return copy.deepcopy(sheet_definition("beer")["columns"])


def _add_row(db, sheet_key, **values):
    sheet = get_sheet(db, sheet_key)
    row = SheetRow(id=generate_uuid(), order=len(sheet.rows), values=values)
    sheet.rows.append(row)
    db.flush()
    return row


def test_seeded_schema_reconciles_to_noop(db_session, seeded):
    sheet = get_sheet(db_session, "beer")
    version = sheet.version
    result = reconcile(db_session, "beer", _beer_target())
    assert not result.changed
    assert sheet.version == version


def test_add_column_at_target_position(db_session, seeded):
    target = _beer_target()
    target.insert(2, {"key": "abv", "label": "ABV", "type": "number", "precision": 1})

    result = reconcile(db_session, "beer", target)
    sheet = get_sheet(db_session, "beer")

    assert result.added == ["abv"]
    assert [c.key for c in sheet.columns][:3] == ["name", "type", "abv"]
    assert [c.position for c in sheet.columns] == list(range(len(sheet.columns)))

    # Same target again is a no-op
    version = sheet.version
    assert not reconcile(db_session, "beer", target).changed
    assert sheet.version == version


def test_removed_column_is_pruned_from_rows(db_session, seeded):
    row = _add_row(db_session, "beer", name="Lager", region="Mexico", itemNumber=1)
    target = [c for c in _beer_target() if c["key"] != "region"]

    result = reconcile(db_session, "beer", target)

    assert result.removed == ["region"]
    assert "region" not in row.values
    assert row.values["name"] == "Lager"


def test_drifted_properties_bump_version_once(db_session, seeded):
    sheet = get_sheet(db_session, "beer")
    version = sheet.version
    target = _beer_target()
    for col in target:
        if col["key"] == "region":
            col["label"] = "Origin"
            col["required"] = True
        if col["key"] == "type":
            col["datasetId"] = "shared.distributor"

    result = reconcile(db_session, "beer", target)

    assert sorted(result.updated) == ["region", "type"]
    assert sheet.version == version + 1
    assert sheet.column("region").label == "Origin"
    assert sheet.column("region").required is True
    assert sheet.column("type").dataset_id == "shared.distributor"


def test_formula_drift_reevaluates_rows(db_session, seeded):
    row = _add_row(db_session, "beer", name="Stout", packCost=30, numUnits=6, unitCost=5.0)
    target = _beer_target()
    for col in target:
        if col["key"] == "unitCost":
            col["formula"] = {"type": "multiplier", "sourceKey": "packCost", "factor": 2}

    reconcile(db_session, "beer", target)

    assert row.values["unitCost"] == 60.0


def test_rejects_bad_definitions(db_session, seeded):
    with pytest.raises(ValidationError):
        reconcile(db_session, "beer", [{"key": "name", "type": "emoji"}])
    with pytest.raises(ValidationError):
        reconcile(db_session, "beer", [{"key": "x", "type": "formula", "formula": {"type": "sum"}}])
    with pytest.raises(ValidationError):
        reconcile(db_session, "beer", [{"key": "name"}, {"key": "name"}])
