"""
Create materials and inventory_logs tables.

Revision ID: 5e3a9c1d7b20
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5e3a9c1d7b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "materials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rack", sa.String(length=32), nullable=False),
        sa.Column("bin", sa.String(length=32), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("quantity >= 0", name="ck_materials_quantity_non_negative"),
    )
    op.create_index("ix_materials_id", "materials", ["id"])
    op.create_index("ix_materials_code", "materials", ["code"], unique=True)
    op.create_index("ix_materials_rack_bin", "materials", ["rack", "bin"])

    op.create_table(
        "inventory_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "material_id",
            sa.Integer(),
            sa.ForeignKey("materials.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("material_code", sa.String(length=64), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "entry",
                "issue",
                name="inventory_log_action_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("rack", sa.String(length=32), nullable=False),
        sa.Column("bin", sa.String(length=32), nullable=False),
        sa.Column("entered_by", sa.String(length=128), nullable=True),
        sa.Column("issued_by", sa.String(length=128), nullable=True),
        sa.Column("balance_qty", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_logs_quantity_positive"),
        sa.CheckConstraint("balance_qty >= 0", name="ck_inventory_logs_balance_non_negative"),
    )
    op.create_index("ix_inventory_logs_id", "inventory_logs", ["id"])
    op.create_index("ix_inventory_logs_material_id", "inventory_logs", ["material_id"])
    op.create_index("ix_inventory_logs_material_code", "inventory_logs", ["material_code"])
    op.create_index("ix_inventory_logs_timestamp", "inventory_logs", ["timestamp"])
    op.create_index("ix_inventory_logs_code_ts", "inventory_logs", ["material_code", "timestamp"])
    op.create_index("ix_inventory_logs_action_ts", "inventory_logs", ["action", "timestamp"])


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = set(inspector.get_table_names())

    if "inventory_logs" in tables:
        op.drop_table("inventory_logs")
    if "materials" in tables:
        op.drop_table("materials")
