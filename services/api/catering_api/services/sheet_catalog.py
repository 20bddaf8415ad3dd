"""Declarative sheet and dataset catalog.

Each sheet definition is the reconciliation target for its stored schema
(see ``sheet_schema.reconcile``). Column order here is display order.
"""

ML_PER_OZ_FACTOR = 29.5735

_LINK_COLUMNS = [
    {"key": "recipeId", "label": "Recipe", "type": "text", "hidden": True},
    {"key": "recipeType", "label": "Recipe Type", "type": "text", "hidden": True},
    {"key": "menuItemId", "label": "Menu Item", "type": "text", "hidden": True},
]


def _menu_tail(include_sales: bool = True) -> list[dict]:
    cols = []
    if include_sales:
        cols.append({"key": "salesPrice", "label": "$ Sales", "type": "currency", "unit": "USD", "precision": 2})
    cols += [
        {"key": "itemNumber", "label": "Item#", "type": "number", "precision": 0},
        {"key": "menu", "label": "Menu", "type": "text"},
        {"key": "ingredients", "label": "Ingredients", "type": "text", "hidden": True},
        {"key": "concept", "label": "Concept", "type": "text", "hidden": True},
        {"key": "page", "label": "Page", "type": "text", "hidden": True},
        {"key": "mapType", "label": "Map Type", "type": "dropdown", "datasetId": "shared.mapType", "hidden": True},
    ]
    return cols + [dict(c) for c in _LINK_COLUMNS]


def _drink_columns(garnish_dataset: str) -> list[dict]:
    return [
        {"key": "name", "label": "Name", "type": "text", "required": True},
        {"key": "region", "label": "Region", "type": "text"},
        {"key": "style", "label": "Type", "type": "dropdown", "datasetId": "cocktail.type"},
        {"key": "ice", "label": "Ice", "type": "dropdown", "datasetId": "cocktails.ice"},
        {"key": "garnish", "label": "Garnish", "type": "dropdown", "datasetId": garnish_dataset},
        {"key": "sumOz", "label": "Σ oz", "type": "number", "unit": "oz", "precision": 2},
        {"key": "unitCost", "label": "$ / Unit", "type": "currency", "unit": "USD", "precision": 2},
    ] + _menu_tail()


SHEET_DEFINITIONS = [
    {
        "sheetKey": "cocktails",
        "name": "Cocktails",
        "description": "Reference costs for finished cocktails.",
        "columns": _drink_columns("cocktails.garnish"),
    },
    {
        "sheetKey": "mocktails",
        "name": "Mocktails",
        "description": "Reference costs for finished mocktails.",
        "columns": _drink_columns("mocktails.garnish"),
    },
    {
        "sheetKey": "wine",
        "name": "Wine",
        "description": "Wine inventory with tasting and sourcing info.",
        "columns": [
            {"key": "name", "label": "Name", "type": "text", "required": True},
            {"key": "style", "label": "Style", "type": "dropdown", "datasetId": "wine.style"},
            {"key": "hue", "label": "Hue", "type": "dropdown", "datasetId": "wine.hue"},
            {"key": "region", "label": "Region", "type": "text"},
            {"key": "distributor", "label": "Distributor", "type": "dropdown", "datasetId": "shared.distributor"},
            {"key": "sizeMl", "label": "Size", "type": "number", "unit": "ml", "precision": 0},
            {"key": "unitCost", "label": "$ / Unit", "type": "currency", "unit": "USD", "precision": 2},
            {
                "key": "ounceCost",
                "label": "$ / oz",
                "type": "formula",
                "unit": "USD",
                "precision": 2,
                "formula": {
                    "type": "unitPerConvertedVolume",
                    "numerator": "unitCost",
                    "volumeKey": "sizeMl",
                    "conversionFactor": ML_PER_OZ_FACTOR,
                },
                "helperText": "Automatically calculated using ml → oz conversion (29.57 ml per oz).",
            },
            {
                "key": "glassCost",
                "label": "$ / Glass",
                "type": "formula",
                "unit": "USD",
                "precision": 2,
                "formula": {"type": "multiplier", "sourceKey": "ounceCost", "factor": 5},
                "helperText": "Calculated as $ / oz × 5.",
            },
        ] + _menu_tail(),
    },
    {
        "sheetKey": "spirits",
        "name": "Spirits",
        "description": "Base spirits with distributor pricing.",
        "columns": [
            {"key": "name", "label": "Name", "type": "text", "required": True},
            {"key": "spirit", "label": "Spirit", "type": "dropdown", "datasetId": "spirits.type"},
            {"key": "region", "label": "Region", "type": "text"},
            {"key": "distributor", "label": "Distributor", "type": "dropdown", "datasetId": "shared.distributor"},
            {"key": "sizeOz", "label": "Size", "type": "dropdown", "datasetId": "spirits.size"},
            {"key": "unitCost", "label": "$ / Unit", "type": "currency", "unit": "USD", "precision": 2},
            {
                "key": "ounceCost",
                "label": "$ / oz",
                "type": "formula",
                "unit": "USD",
                "precision": 2,
                "formula": {
                    "type": "unitPerConvertedVolume",
                    "numerator": "unitCost",
                    "volumeKey": "sizeOz",
                    "conversionFactor": ML_PER_OZ_FACTOR,
                },
                "helperText": "Automatically calculated using ml → oz conversion (29.57 ml per oz).",
            },
        ] + _menu_tail(),
    },
    {
        "sheetKey": "dryStock",
        "name": "Dry Stock",
        "description": "Non-liquid ingredients, acids, spices, syrups.",
        "columns": [
            {"key": "name", "label": "Name", "type": "text", "required": True},
            {"key": "type", "label": "Type", "type": "dropdown", "datasetId": "drystock.type"},
            {"key": "distributor", "label": "Distributor", "type": "dropdown", "datasetId": "shared.distributor"},
            {"key": "sizeG", "label": "Size", "type": "number", "precision": 2},
            {"key": "sizeUnit", "label": "ml / g", "type": "text"},
            {"key": "unitCost", "label": "$ / Unit", "type": "currency", "unit": "USD", "precision": 2},
            {
                "key": "gramCost",
                "label": "$ / oz",
                "type": "formula",
                "unit": "USD",
                "precision": 2,
                "formula": {
                    "type": "unitPerSizeUnit",
                    "numerator": "unitCost",
                    "sizeKey": "sizeG",
                    "unitKey": "sizeUnit",
                    "gramFactor": 28.3495,
                    "milliliterFactor": ML_PER_OZ_FACTOR,
                },
                "helperText": "Automatically converts ml/g to oz before dividing unit cost.",
            },
            {"key": "salesPrice", "label": "$ Sales", "type": "currency", "unit": "USD", "precision": 2},
            {"key": "itemNumber", "label": "Item#", "type": "number", "precision": 0},
        ],
    },
    {
        "sheetKey": "preMix",
        "name": "Pre-Mix",
        "description": "House syrups, acids, and batches.",
        "columns": [
            {"key": "name", "label": "Name", "type": "text", "required": True},
            {"key": "type", "label": "Type", "type": "dropdown", "datasetId": "premix.type"},
            {"key": "cocktail", "label": "Cocktail", "type": "dropdown", "datasetId": "cocktails.name"},
            {"key": "ounceCost", "label": "$ / oz", "type": "currency", "unit": "USD", "precision": 2},
            {"key": "salesPrice", "label": "$ Sales", "type": "currency", "unit": "USD", "precision": 2},
            {"key": "itemNumber", "label": "Item#", "type": "number", "precision": 0},
            {"key": "menu", "label": "Menu", "type": "text"},
        ] + [dict(c) for c in _LINK_COLUMNS],
    },
    {
        "sheetKey": "beer",
        "name": "Beer",
        "description": "Beer inventory with pack pricing.",
        "columns": [
            {"key": "name", "label": "Name", "type": "text", "required": True},
            {"key": "type", "label": "Type", "type": "dropdown", "datasetId": "beer.type"},
            {"key": "region", "label": "Region", "type": "text"},
            {"key": "packCost", "label": "$/Pack", "type": "currency", "unit": "USD", "precision": 2},
            {"key": "numUnits", "label": "#Units", "type": "number", "precision": 0},
            {
                "key": "unitCost",
                "label": "$/Unit",
                "type": "formula",
                "unit": "USD",
                "precision": 2,
                "formula": {"type": "ratio", "numerator": "packCost", "denominator": "numUnits"},
                "helperText": "Automatically calculated as $/Pack ÷ #Units.",
            },
        ] + _menu_tail(),
    },
]

DATASET_DEFINITIONS = [
    {"id": "cocktail.type", "label": "Cocktail Types", "values": []},
    {"id": "cocktails.ice", "label": "Ice Formats", "values": []},
    {"id": "cocktails.garnish", "label": "Garnishes", "values": []},
    {"id": "cocktails.name", "label": "Cocktail Names", "values": []},
    {"id": "mocktails.garnish", "label": "Garnishes", "values": []},
    {
        "id": "wine.style",
        "label": "Wine Styles",
        "values": [
            "Cabernet Sauvignon", "Merlot", "Pinot Noir", "Syrah/Shiraz", "Pinot Grigio",
            "Chenin Blanc", "Gewürztraminer", "Viognier", "Zinfandel", "Malbec",
            "Sangiovese", "Nebbiolo", "Muscat", "Semillon", "Torrontés",
            "Grüner Veltliner", "Grenache", "Barbera", "Petite Sirah", "Verdejo",
            "Fiano", "Albariño", "Prosecco",
        ],
    },
    {"id": "wine.hue", "label": "Wine Hues", "values": []},
    {"id": "spirits.type", "label": "Spirit Types", "values": []},
    {"id": "spirits.size", "label": "Spirit Sizes", "values": []},
    {"id": "drystock.type", "label": "Dry Stock Types", "values": []},
    {"id": "premix.type", "label": "Pre-mix Types", "values": []},
    {"id": "beer.type", "label": "Beer Types", "values": []},
    {"id": "shared.distributor", "label": "Distributors", "values": []},
    {"id": "shared.mapType", "label": "Map Types", "values": ["World", "US"]},
]

# Inventory sheet -> menu category. Sheets not listed never reach the menu.
MENU_CATEGORY_BY_SHEET = {
    "cocktails": "cocktails",
    "mocktails": "mocktails",
    "wine": "wine",
    "beer": "beer",
    "spirits": "spirits",
    "preMix": "premix",
}

SHEET_BY_MENU_CATEGORY = {v: k for k, v in MENU_CATEGORY_BY_SHEET.items()}

# Recipe type -> inventory sheet it pushes into.
SHEET_BY_RECIPE_TYPE = {
    "cocktail": "cocktails",
    "mocktail": "mocktails",
    "premix": "preMix",
    "beer": "beer",
    "wine": "wine",
    "spirit": "spirits",
}

DEFAULT_INGREDIENT_SHEETS = ("spirits", "dryStock", "preMix")


def sheet_definition(sheet_key: str):
    for definition in SHEET_DEFINITIONS:
        if definition["sheetKey"] == sheet_key:
            return definition
    return None


def column_links_by_dataset() -> dict[str, list[dict]]:
    links: dict[str, list[dict]] = {}
    for definition in SHEET_DEFINITIONS:
        for column in definition["columns"]:
            if column.get("datasetId"):
                links.setdefault(column["datasetId"], []).append(
                    {"sheetKey": definition["sheetKey"], "columnKey": column["key"]}
                )
    return links
