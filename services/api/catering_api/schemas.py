"""Pydantic schemas for the catering inventory API.

Request/response models for:
- Datasets
- Sheets and rows
- Recipes
- Menu items

Bodies use the camelCase field names of the admin UI. Sheet and recipe
responses are built by the services as plain dicts; only menu items are
serialized straight from the ORM.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel


# --- Datasets ---

class DatasetValueIn(BaseModel):
    value: str
    label: Optional[str] = None
    is_default: bool = Field(False, alias="isDefault")


class DatasetRename(BaseModel):
    source: str = Field(..., alias="from", min_length=1)
    target: str = Field(..., alias="to", min_length=1)


class DatasetUpdate(BaseModel):
    label: Optional[str] = Field(None, max_length=200)
    values: Optional[list[Union[str, DatasetValueIn]]] = None
    renames: list[DatasetRename] = []

    def values_payload(self) -> Optional[list[Any]]:
        if self.values is None:
            return None
        return [v if isinstance(v, str) else v.model_dump(by_alias=True) for v in self.values]

    def renames_map(self) -> dict[str, str]:
        return {r.source: r.target for r in self.renames}


# --- Rows ---

class RowCreate(BaseModel):
    values: dict[str, Any] = {}
    order: Optional[int] = None


class RowValuesPatch(BaseModel):
    values: dict[str, Any] = {}


class RowPatchEntry(BaseModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "_id"))
    values: Optional[dict[str, Any]] = None
    order: Optional[int] = None
    is_deleted: Optional[bool] = Field(None, validation_alias=AliasChoices("isDeleted", "is_deleted"))

    def as_entry(self) -> dict[str, Any]:
        return {"id": self.id, "values": self.values, "order": self.order, "isDeleted": bool(self.is_deleted)}


class SheetPatch(BaseModel):
    version: Optional[int] = None
    rows: list[RowPatchEntry] = []
    updated_by: Optional[str] = Field(None, validation_alias=AliasChoices("updatedBy", "updated_by"))


class SchemaUpdate(BaseModel):
    columns: list[dict[str, Any]] = Field(..., min_length=1)


# --- Recipes ---

class RecipeIn(BaseModel):
    """Loose on purpose: the costing engine normalizes and validates."""
    title: Optional[str] = None
    type: Optional[str] = None
    item_number: Optional[Any] = Field(None, alias="itemNumber")
    metadata: dict[str, Any] = {}
    notes: Optional[str] = None
    batch_notes: Optional[str] = Field(None, alias="batchNotes")
    batch: dict[str, Any] = {}
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    items: list[dict[str, Any]] = []

    class Config:
        populate_by_name = True


# --- Menu items ---

class MenuItemUpdate(BaseModel):
    concept: Optional[str] = Field(None, max_length=1000)
    narrative: Optional[str] = Field(None, max_length=1000)
    featured: Optional[bool] = None
    order: Optional[int] = None
    video_file: Optional[str] = Field(None, alias="videoFile")
    map_snapshot_file: Optional[str] = Field(None, alias="mapSnapshotFile")
    background_color: Optional[str] = Field(None, alias="backgroundColor", pattern=r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")

    class Config:
        populate_by_name = True


class MenuItemOut(BaseModel):
    id: str
    item_number: Optional[int]
    name: str
    category: str
    status: str
    is_active: bool
    regions: list[str]
    style: str
    ice: str
    garnish: str
    ingredients: str
    concept: str
    narrative: str
    featured: bool
    order: int
    item_id: Optional[str]
    video_file: str
    map_snapshot_file: str
    background_color: str
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
