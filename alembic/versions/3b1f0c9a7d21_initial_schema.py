"""initial schema: workshops, catalog, projects, fittings, public orders

Revision ID: 3b1f0c9a7d21
Revises:
Create Date: 2026-10-19 10:12:41.508311

Idempotent: tables already created by Base.metadata.create_all() are skipped.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f0c9a7d21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name):
    bind = op.get_bind()
    return table_name in sa.inspect(bind).get_table_names()


def upgrade() -> None:
    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("phone", sa.String(), nullable=True),
            sa.Column("tax_id", sa.String(), nullable=True),
            sa.Column("tax_percentage", sa.Float(), nullable=True),
            sa.Column("logo_url", sa.String(), nullable=True),
            sa.Column("qr_code_url", sa.String(), nullable=True),
            sa.Column("conditions", sa.Text(), nullable=True),
            sa.Column("plan", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("email_sender_name", sa.String(), nullable=True),
            sa.Column("email_reply_to", sa.String(), nullable=True),
            sa.Column("notify_workshop_on_new_order", sa.Boolean(), nullable=True),
            sa.Column("send_confirmation_to_customer", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_users_id", "users", ["id"])

    if not _table_exists("auth_tokens"):
        op.create_table(
            "auth_tokens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("token_hash", sa.String(), nullable=False),
            sa.Column("token_type", sa.String(), nullable=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_auth_tokens_id", "auth_tokens", ["id"])

    if not _table_exists("catalog_materials"):
        op.create_table(
            "catalog_materials",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("category", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("price", sa.Float(), nullable=True),
            sa.Column("unit", sa.String(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_catalog_materials_id", "catalog_materials", ["id"])
        op.create_index("ix_catalog_materials_user_id", "catalog_materials", ["user_id"])

    if not _table_exists("projects"):
        op.create_table(
            "projects",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("client_name", sa.String(), nullable=False),
            sa.Column("project_name", sa.String(), nullable=False),
            sa.Column("quote_mode", sa.String(), nullable=False),
            sa.Column("line_items", sa.JSON(), nullable=True),
            sa.Column("specific_conditions", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("total_fabric_length", sa.Float(), nullable=True),
            sa.Column("total_fabric_cost", sa.Float(), nullable=True),
            sa.Column("fittings_revision", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("version_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_projects_user_id", "projects", ["user_id"])

    if not _table_exists("fittings"):
        op.create_table(
            "fittings",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("project_id", sa.String(), sa.ForeignKey("projects.id"), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("person_name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("sizes", sa.JSON(), nullable=True),
            sa.Column("confirmed", sa.Boolean(), nullable=True),
            sa.Column("confirmed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_fittings_project_id", "fittings", ["project_id"])

    if not _table_exists("public_orders"):
        op.create_table(
            "public_orders",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("customer_name", sa.String(), nullable=False),
            sa.Column("customer_email", sa.String(), nullable=False),
            sa.Column("customer_phone", sa.String(), nullable=False),
            sa.Column("college", sa.String(), nullable=False),
            sa.Column("items", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("total_amount", sa.Float(), nullable=True),
            sa.Column("payment_proof_url", sa.String(), nullable=False),
            sa.Column("admin_notes", sa.Text(), nullable=True),
            sa.Column("payment_verified_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_public_orders_user_id", "public_orders", ["user_id"])
        op.create_index("ix_public_orders_status", "public_orders", ["status"])


def downgrade() -> None:
    for table in ("public_orders", "fittings", "projects", "catalog_materials", "auth_tokens", "users"):
        if _table_exists(table):
            op.drop_table(table)
