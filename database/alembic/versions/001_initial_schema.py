"""Initial schema: catalog, mappings, sales reports, sales lines, monthly metrics

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Tables:
  - menu_groups, products                      catalog
  - product_allies, product_mappings           name → product overrides
  - sales_reports, sales_lines                 ingested POS exports
  - monthly_product_summaries,
    monthly_category_summaries                 derived aggregates (stable ids)
"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── Catalog ───────────────────────────────────────────────────────────
    op.create_table(
        "menu_groups",
        sa.Column("id",           sa.String(64),  primary_key=True),
        sa.Column("workspace_id", sa.String(64),  nullable=False),
        sa.Column("label",        sa.String(200), nullable=False),
        sa.Column("color",        sa.String(20)),
        sa.Column("created_at",   sa.DateTime(),  server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_menu_groups_workspace_id", "menu_groups", ["workspace_id"])

    op.create_table(
        "products",
        sa.Column("id",                 sa.String(64),  primary_key=True),
        sa.Column("workspace_id",       sa.String(64),  nullable=False),
        sa.Column("name",               sa.String(500), nullable=False),
        sa.Column("category_id",        sa.String(64)),
        sa.Column("subcategory_id",     sa.String(64)),
        sa.Column("is_extra",           sa.Boolean(),   nullable=False, server_default=sa.false()),
        sa.Column("pos_code",           sa.String(100)),
        sa.Column("default_unit_price", sa.Float()),
        sa.Column("active",             sa.Boolean(),   nullable=False, server_default=sa.true()),
        sa.Column("active_from",        sa.Date()),
        sa.Column("active_to",          sa.Date()),
        sa.Column("created_at",         sa.DateTime(),  server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at",         sa.DateTime()),
    )
    op.create_index("ix_products_workspace_id", "products", ["workspace_id"])

    # ── Name overrides ────────────────────────────────────────────────────
    op.create_table(
        "product_allies",
        sa.Column("id",              sa.String(64),  primary_key=True),
        sa.Column("sales_name",      sa.String(500), nullable=False),
        sa.Column("normalized_name", sa.String(500), nullable=False, unique=True),
        sa.Column("product_id",      sa.String(64),  nullable=False),
        sa.Column("created_at",      sa.DateTime(),  server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at",      sa.DateTime()),
    )

    op.create_table(
        "product_mappings",
        sa.Column("id",                    sa.String(64),  primary_key=True),
        sa.Column("workspace_id",          sa.String(64),  nullable=False),
        sa.Column("unmapped_product_name", sa.String(500), nullable=False),
        sa.Column("product_id",            sa.String(64),  nullable=False),
        sa.Column("created_at",            sa.DateTime(),  server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at",            sa.DateTime()),
        sa.UniqueConstraint("workspace_id", "unmapped_product_name"),
    )

    # ── Reports ───────────────────────────────────────────────────────────
    op.create_table(
        "sales_reports",
        sa.Column("id",                sa.String(64),  primary_key=True),
        sa.Column("workspace_id",      sa.String(64),  nullable=False),
        sa.Column("report_date",       sa.Date(),      nullable=False),
        sa.Column("period_key",        sa.String(7)),
        sa.Column("source",            sa.String(20),  nullable=False, server_default="excel_upload"),
        sa.Column("status",            sa.String(20),  nullable=False, server_default="uploaded"),
        sa.Column("source_file_path",  sa.String(500), nullable=False),
        sa.Column("original_filename", sa.String(500)),
        sa.Column("column_mapping",    sa.JSON()),
        sa.Column("product_mapping",   sa.JSON()),
        sa.Column("unmapped_products", sa.JSON()),
        sa.Column("total_amount",      sa.Float()),
        sa.Column("total_quantity",    sa.Float()),
        sa.Column("error_message",     sa.Text()),
        sa.Column("created_at",        sa.DateTime(),  server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at",        sa.DateTime()),
        sa.Column("processed_at",      sa.DateTime()),
    )
    op.create_index("ix_sales_reports_workspace_id", "sales_reports", ["workspace_id"])
    op.create_index("ix_sales_reports_status",       "sales_reports", ["status"])

    op.create_table(
        "sales_lines",
        sa.Column("id",                   sa.String(64),  primary_key=True),
        sa.Column("report_id",            sa.String(64),
                  sa.ForeignKey("sales_reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("workspace_id",         sa.String(64),  nullable=False),
        sa.Column("product_id",           sa.String(64),  nullable=False),
        sa.Column("product_name_raw",     sa.String(500), nullable=False),
        sa.Column("quantity",             sa.Float(),     nullable=False, server_default="0"),
        sa.Column("amount",               sa.Float(),     nullable=False, server_default="0"),
        sa.Column("unit_price",           sa.Float(),     nullable=False, server_default="0"),
        sa.Column("product_name_at_sale", sa.String(500)),
        sa.Column("category_at_sale",     sa.String(64)),
        sa.Column("subcategory_at_sale",  sa.String(64)),
        sa.Column("is_extra_at_sale",     sa.Boolean(),   nullable=False, server_default=sa.false()),
        sa.Column("period_key",           sa.String(7),   nullable=False),
        sa.Column("report_date",          sa.Date(),      nullable=False),
    )
    op.create_index("ix_sales_lines_report_id",  "sales_lines", ["report_id"])
    op.create_index("ix_sales_lines_product_id", "sales_lines", ["product_id"])
    op.create_index("ix_sales_lines_period_key", "sales_lines", ["period_key"])

    # ── Monthly metrics ───────────────────────────────────────────────────
    op.create_table(
        "monthly_product_summaries",
        sa.Column("id",                    sa.String(200), primary_key=True),
        sa.Column("workspace_id",          sa.String(64),  primary_key=True),
        sa.Column("period_key",            sa.String(7),   nullable=False),
        sa.Column("product_id",            sa.String(64),  nullable=False),
        sa.Column("product_name_snapshot", sa.String(500)),
        sa.Column("category_snapshot",     sa.String(64)),
        sa.Column("subcategory_snapshot",  sa.String(64)),
        sa.Column("total_qty",             sa.Float(),     nullable=False, server_default="0"),
        sa.Column("total_amount",          sa.Float(),     nullable=False, server_default="0"),
        sa.Column("avg_unit_price",        sa.Float(),     nullable=False, server_default="0"),
        sa.Column("updated_at",            sa.DateTime(),  server_default=sa.func.now()),
    )
    op.create_index("ix_monthly_product_summaries_period_key", "monthly_product_summaries", ["period_key"])

    op.create_table(
        "monthly_category_summaries",
        sa.Column("id",                      sa.String(200), primary_key=True),
        sa.Column("workspace_id",            sa.String(64),  primary_key=True),
        sa.Column("period_key",              sa.String(7),   nullable=False),
        sa.Column("category_id",             sa.String(64),  nullable=False),
        sa.Column("category_label_snapshot", sa.String(200)),
        sa.Column("total_qty",               sa.Float(),     nullable=False, server_default="0"),
        sa.Column("total_amount",            sa.Float(),     nullable=False, server_default="0"),
        sa.Column("share_of_total",          sa.Float(),     nullable=False, server_default="0"),
        sa.Column("updated_at",              sa.DateTime(),  server_default=sa.func.now()),
    )
    op.create_index("ix_monthly_category_summaries_period_key", "monthly_category_summaries", ["period_key"])


def downgrade() -> None:
    op.drop_table("monthly_category_summaries")
    op.drop_table("monthly_product_summaries")
    op.drop_table("sales_lines")
    op.drop_table("sales_reports")
    op.drop_table("product_mappings")
    op.drop_table("product_allies")
    op.drop_table("products")
    op.drop_table("menu_groups")
