"""SQLAlchemy ORM models for the catering inventory service.

Tables:
- inventory_datasets: shared dropdown value lists
- inventory_sheets: one sheet per inventory category, with a monotonic version
- sheet_columns: ordered, typed column definitions of a sheet
- sheet_rows: sparse column-key -> value maps of a sheet
- recipes / recipe_lines: recipes with hydrated (cached) ingredient costing
- menu_items: the display representation of a sellable item
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB

from .db import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class InventoryDataset(Base):
    """Named list of allowed dropdown values, shared by every bound column."""
    __tablename__ = "inventory_datasets"

    id: Mapped[str] = mapped_column(String(120), primary_key=True)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # [{"value": str, "label": str, "isDefault": bool}, ...]
    values: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    # [{"sheetKey": str, "columnKey": str}, ...]
    linked_columns: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    updated_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class InventorySheet(Base):
    """One inventory category.

    ``version`` is the optimistic-concurrency counter. SQLAlchemy adds
    ``WHERE version = <loaded>`` to every UPDATE of the sheet, so a bump
    from a concurrent writer surfaces as ``StaleDataError`` at flush.
    """
    __tablename__ = "inventory_sheets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    sheet_key: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    settings: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    columns: Mapped[list["SheetColumn"]] = relationship(
        "SheetColumn", back_populates="sheet", cascade="all, delete-orphan",
        order_by="SheetColumn.position", collection_class=ordering_list("position")
    )
    rows: Mapped[list["SheetRow"]] = relationship(
        "SheetRow", back_populates="sheet", cascade="all, delete-orphan",
        order_by="SheetRow.order"
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def column(self, key: str) -> Optional["SheetColumn"]:
        for col in self.columns:
            if col.key == key:
                return col
        return None

    @property
    def columns_by_key(self) -> dict[str, "SheetColumn"]:
        return {col.key: col for col in self.columns}

    @property
    def live_rows(self) -> list["SheetRow"]:
        return [row for row in self.rows if not row.is_deleted]

    def find_row(self, row_id: str) -> Optional["SheetRow"]:
        for row in self.rows:
            if row.id == row_id:
                return row
        return None


class SheetColumn(Base):
    """Typed column of a sheet: text | number | currency | dropdown | formula."""
    __tablename__ = "sheet_columns"
    __table_args__ = (
        UniqueConstraint("sheet_id", "key", name="uq_sheet_column_key"),
        Index("ix_sheet_columns_sheet_id", "sheet_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    sheet_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("inventory_sheets.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    key: Mapped[str] = mapped_column(String(80), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    dataset_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    precision: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=2)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    formula: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    helper_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sheet: Mapped["InventorySheet"] = relationship("InventorySheet", back_populates="columns")


class SheetRow(Base):
    """Sparse row of a sheet. ``values`` only holds declared column keys."""
    __tablename__ = "sheet_rows"
    __table_args__ = (
        Index("ix_sheet_rows_sheet_id", "sheet_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    sheet_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("inventory_sheets.id", ondelete="CASCADE"), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    values: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    sheet: Mapped["InventorySheet"] = relationship("InventorySheet", back_populates="rows")

    def get(self, key: str, default: Any = None) -> Any:
        return (self.values or {}).get(key, default)


class Recipe(Base):
    """Recipe with cached, always-recomputed costing totals."""
    __tablename__ = "recipes"
    __table_args__ = (
        Index("ix_recipes_item_number", "item_number"),
        Index("ix_recipes_type", "type"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="cocktail")
    item_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    meta: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    batch_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    batch: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    background_color: Mapped[str] = mapped_column(
        String(16), nullable=False, default="#e5e5e5", server_default=text("'#e5e5e5'")
    )

    total_volume_oz: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_cost_each: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    lines: Mapped[list["RecipeLine"]] = relationship(
        "RecipeLine", back_populates="recipe", cascade="all, delete-orphan",
        order_by="RecipeLine.order"
    )

    @property
    def totals(self) -> dict[str, float]:
        return {"volumeOz": self.total_volume_oz or 0.0, "costEach": self.total_cost_each or 0.0}


class RecipeLine(Base):
    """Ingredient line. conversions/pricing/extended_cost are a save-time cache."""
    __tablename__ = "recipe_lines"
    __table_args__ = (
        Index("ix_recipe_lines_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    sheet_key: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    row_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    amount: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    conversions: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    pricing: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    extended_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="lines")

    @property
    def inventory_key(self) -> Optional[str]:
        if self.sheet_key and self.row_id:
            return f"{self.sheet_key}:{self.row_id}"
        return None


class MenuItem(Base):
    """Display representation of a menu item.

    Shared fields (name, regions, style, ice, garnish, ingredients,
    item_number) are written by the synchronizer from the linked inventory
    row. Everything else is presentation-only and owned here.
    """
    __tablename__ = "menu_items"
    __table_args__ = (
        Index("ix_menu_items_category_order", "category", "order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    item_number: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="cocktails")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    regions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    style: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    ice: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    garnish: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    ingredients: Mapped[str] = mapped_column(String(1000), nullable=False, default="")

    concept: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    narrative: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    item_id: Mapped[Optional[str]] = mapped_column(String(80), unique=True, nullable=True)
    video_file: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    map_snapshot_file: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    background_color: Mapped[str] = mapped_column(String(16), nullable=False, default="#e5e5e5")

    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
