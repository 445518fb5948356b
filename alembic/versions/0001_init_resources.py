"""init resource tables

Revision ID: 0001_init_resources
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init_resources"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("public_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        "contacts",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=40), nullable=False, server_default="customer"),
    )
    op.create_table(
        "orders",
        *_base_columns(),
        sa.Column("customer_uuid", postgresql.UUID(as_uuid=True), sa.ForeignKey("contacts.id"), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="created"),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_table(
        "dashboards",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
    )
    op.create_table(
        "dashboard_widgets",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("component", sa.String(length=200), nullable=False),
        sa.Column("grid_options", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("options", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("dashboard_uuid", postgresql.UUID(as_uuid=True), sa.ForeignKey("dashboards.id"), nullable=False),
    )
    for table in ("contacts", "orders", "dashboards", "dashboard_widgets"):
        op.create_index(f"ix_{table}_public_id", table, ["public_id"], unique=True)
    op.create_index("ix_orders_customer_uuid", "orders", ["customer_uuid"])
    op.create_index("ix_dashboard_widgets_dashboard_uuid", "dashboard_widgets", ["dashboard_uuid"])


def downgrade():
    op.drop_index("ix_dashboard_widgets_dashboard_uuid", table_name="dashboard_widgets")
    op.drop_index("ix_orders_customer_uuid", table_name="orders")
    for table in ("dashboard_widgets", "dashboards", "orders", "contacts"):
        op.drop_index(f"ix_{table}_public_id", table_name=table)
    op.drop_table("dashboard_widgets")
    op.drop_table("dashboards")
    op.drop_table("orders")
    op.drop_table("contacts")
