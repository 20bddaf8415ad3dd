import pytest

from catering_api.errors import ValidationError
from catering_api.services.recipe_costing import (
    DEFAULT_BACKGROUND,
    derive_pricing,
    extended_cost,
    hydrate,
    normalize_background_color,
    normalize_recipe_payload,
    parse_inventory_key,
)
from catering_api.models import SheetRow, generate_uuid
from catering_api.services.sheet_schema import get_sheet


def test_pricing_prefers_ounce_cost():
    pricing = derive_pricing({"unitCost": 30, "ounceCost": 1.18, "gramCost": 0.5})
    assert pricing["perOz"] == 1.18
    assert pricing["perUnit"] == 30
    assert pricing["perGram"] is None


def test_gram_cost_is_an_ounce_fallback():
    pricing = derive_pricing({"unitCost": "12", "gramCost": "0.4"})
    assert pricing["perOz"] == 0.4
    assert pricing["perGram"] is None


def test_extended_cost_priority():
    conversions = {"toOz": 2.0, "toMl": 59.147, "toGram": 56.699}
    assert extended_cost({"perOz": 0.5, "perUnit": 3}, conversions, 2) == 1.0
    assert extended_cost({"perGram": 0.1}, conversions, 2) == pytest.approx(5.6699)
    assert extended_cost({"perUnit": 3}, {"toOz": 0, "toMl": 0, "toGram": 0}, 2) == 6
    assert extended_cost({}, conversions, 2) == 0.0
    assert extended_cost(None, conversions, 2) == 0.0


def test_parse_inventory_key():
    assert parse_inventory_key({"inventoryKey": "spirits:abc"}) == ("spirits", "abc")
    assert parse_inventory_key({"ingredient": {"sheetKey": "preMix", "rowId": "r1"}}) == ("preMix", "r1")
    assert parse_inventory_key({"inventoryKey": "broken"}) == (None, None)
    assert parse_inventory_key({}) == (None, None)


def test_hydrate_is_deterministic(db_session, seeded):
    sheet = get_sheet(db_session, "spirits")
    row = SheetRow(id=generate_uuid(), order=0, values={"name": "Rye", "unitCost": 45, "sizeOz": "750"})
    sheet.rows.append(row)
    db_session.flush()
    items = [
        {"inventoryKey": f"spirits:{row.id}", "amount": {"value": 2, "unit": "oz"}},
        {"ingredient": {"name": "Bitters"}, "amount": {"value": 2, "unit": "dash"}, "pricing": {"perUnit": 0.05}},
        {"ingredient": {"name": "Sugar"}, "amount": {"fraction": {"whole": 0, "numerator": 1, "denominator": 4}, "unit": "oz"}},
    ]

    first_lines, first_totals = hydrate(db_session, items)
    second_lines, second_totals = hydrate(db_session, first_lines)

    assert first_totals == second_totals
    assert [l["extendedCost"] for l in first_lines] == [l["extendedCost"] for l in second_lines]
    assert first_lines[0]["name"] == "Rye"
    assert first_lines[0]["pricing"]["perOz"] == 1.77
    assert first_lines[2]["amount"]["value"] == 0.25


def test_totals_ignore_client_values(db_session, seeded):
    normalized = normalize_recipe_payload(db_session, {
        "title": "Sour",
        "type": "nonsense",
        "totals": {"volumeOz": 100, "costEach": 100},
        "items": [{"amount": {"value": 1, "unit": "oz"}, "pricing": {"perOz": 2}}],
    })
    assert normalized["type"] == "cocktail"
    assert normalized["totals"] == {"volumeOz": 1.0, "costEach": 2.0}


def test_title_is_required(db_session, seeded):
    with pytest.raises(ValidationError):
        normalize_recipe_payload(db_session, {"title": ""})


def test_background_color():
    assert normalize_background_color("#abc") == "#abc"
    assert normalize_background_color("blue") == DEFAULT_BACKGROUND
    assert normalize_background_color(None) == DEFAULT_BACKGROUND
