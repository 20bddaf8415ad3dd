"""Initial schema: datasets, sheets, columns, rows, recipes, recipe lines, menu items

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Shared dropdown datasets
    op.create_table(
        "inventory_datasets",
        sa.Column("id", sa.String(120), primary_key=True),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("values", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("linked_columns", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("updated_by", sa.String(120), nullable=True),
        *_timestamps(),
    )

    # Inventory sheets
    op.create_table(
        "inventory_sheets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sheet_key", sa.String(80), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("settings", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("updated_by", sa.String(120), nullable=True),
        *_timestamps(),
    )

    # Column definitions
    op.create_table(
        "sheet_columns",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sheet_id", sa.String(36), sa.ForeignKey("inventory_sheets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("key", sa.String(80), nullable=False),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("dataset_id", sa.String(120), nullable=True),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("precision", sa.Integer, nullable=True),
        sa.Column("required", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("hidden", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("formula", postgresql.JSONB, nullable=True),
        sa.Column("helper_text", sa.Text, nullable=True),
        sa.UniqueConstraint("sheet_id", "key", name="uq_sheet_column_key"),
    )
    op.create_index("ix_sheet_columns_sheet_id", "sheet_columns", ["sheet_id"])

    # Rows
    op.create_table(
        "sheet_rows",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sheet_id", sa.String(36), sa.ForeignKey("inventory_sheets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("values", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("updated_by", sa.String(120), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sheet_rows_sheet_id", "sheet_rows", ["sheet_id"])

    # Recipes
    op.create_table(
        "recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="cocktail"),
        sa.Column("item_number", sa.Integer, nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("batch_notes", sa.Text, nullable=True),
        sa.Column("batch", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("background_color", sa.String(16), nullable=False, server_default="#e5e5e5"),
        sa.Column("total_volume_oz", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_cost_each", sa.Float, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_recipes_item_number", "recipes", ["item_number"])
    op.create_index("ix_recipes_type", "recipes", ["type"])

    op.create_table(
        "recipe_lines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sheet_key", sa.String(80), nullable=True),
        sa.Column("row_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("amount", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("conversions", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("pricing", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("extended_cost", sa.Float, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text, nullable=True),
    )
    op.create_index("ix_recipe_lines_recipe_id", "recipe_lines", ["recipe_id"])

    # Menu items
    op.create_table(
        "menu_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("item_number", sa.Integer, unique=True, nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="cocktails"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("regions", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("style", sa.String(200), nullable=False, server_default=""),
        sa.Column("ice", sa.String(200), nullable=False, server_default=""),
        sa.Column("garnish", sa.String(500), nullable=False, server_default=""),
        sa.Column("ingredients", sa.String(1000), nullable=False, server_default=""),
        sa.Column("concept", sa.String(1000), nullable=False, server_default=""),
        sa.Column("narrative", sa.String(1000), nullable=False, server_default=""),
        sa.Column("featured", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("item_id", sa.String(80), unique=True, nullable=True),
        sa.Column("video_file", sa.String(255), nullable=False, server_default=""),
        sa.Column("map_snapshot_file", sa.String(255), nullable=False, server_default=""),
        sa.Column("background_color", sa.String(16), nullable=False, server_default="#e5e5e5"),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_menu_items_category_order", "menu_items", ["category", "order"])


def downgrade() -> None:
    op.drop_index("ix_menu_items_category_order", table_name="menu_items")
    op.drop_table("menu_items")
    op.drop_index("ix_recipe_lines_recipe_id", table_name="recipe_lines")
    op.drop_table("recipe_lines")
    op.drop_index("ix_recipes_type", table_name="recipes")
    op.drop_index("ix_recipes_item_number", table_name="recipes")
    op.drop_table("recipes")
    op.drop_index("ix_sheet_rows_sheet_id", table_name="sheet_rows")
    op.drop_table("sheet_rows")
    op.drop_index("ix_sheet_columns_sheet_id", table_name="sheet_columns")
    op.drop_table("sheet_columns")
    op.drop_table("inventory_sheets")
    op.drop_table("inventory_datasets")
