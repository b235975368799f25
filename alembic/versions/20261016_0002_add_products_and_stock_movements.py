"""add products and stock movements

Revision ID: 20261016_0002
Revises: 20261016_0001
Create Date: 2026-10-16 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261016_0002"
down_revision: Union[str, None] = "20261016_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QUANTITY = sa.Numeric(14, 3)


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("created_by_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("sku", sa.String(length=100), nullable=True),
            sa.Column("unit_of_measure", sa.String(length=20), server_default="PIECE", nullable=False),
            sa.Column("quantity", QUANTITY, server_default="0", nullable=False),
            sa.Column("reorder_threshold", QUANTITY, nullable=True),
            sa.Column("optimal_quantity", QUANTITY, nullable=True),
            sa.Column("is_consumable", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
            sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_products_business_id", "products", ["business_id"])
        op.create_index("ix_products_created_by_id", "products", ["created_by_id"])
        op.create_index("ux_products_business_name", "products", ["business_id", "name"], unique=True)
        op.create_index(
            "ix_products_business_active_quantity",
            "products",
            ["business_id", "is_active", "quantity"],
        )

    if not _table_exists(inspector, "stock_movements"):
        op.create_table(
            "stock_movements",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("created_by_id", sa.String(length=36), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("quantity", QUANTITY, nullable=False),
            sa.Column("previous_quantity", QUANTITY, nullable=False),
            sa.Column("new_quantity", QUANTITY, nullable=False),
            sa.Column("notes", sa.String(length=500), nullable=True),
            sa.Column("reference_id", sa.String(length=36), nullable=True),
            sa.Column("reference_type", sa.String(length=50), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
            sa.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
            sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
        op.create_index("ix_stock_movements_business_id", "stock_movements", ["business_id"])
        op.create_index("ix_stock_movements_created_by_id", "stock_movements", ["created_by_id"])
        op.create_index(
            "ix_stock_movements_business_created_at",
            "stock_movements",
            ["business_id", "created_at"],
        )
        op.create_index(
            "ix_stock_movements_product_created_at",
            "stock_movements",
            ["product_id", "created_at"],
        )
        op.create_index(
            "ix_stock_movements_reference",
            "stock_movements",
            ["reference_type", "reference_id"],
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if _table_exists(inspector, "stock_movements"):
        op.drop_table("stock_movements")
    if _table_exists(inspector, "products"):
        op.drop_table("products")
