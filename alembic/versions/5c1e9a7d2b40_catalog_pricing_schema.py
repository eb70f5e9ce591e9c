"""catalog pricing schema

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e9a7d2b40"
down_revision = None
branch_labels = None
depends_on = None


def _row_columns():
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(100), nullable=False, index=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime),
        sa.Column("deleted_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("created_by", sa.String(100)),
        sa.Column("modified_at", sa.DateTime),
        sa.Column("modified_by", sa.String(100)),
    ]


def upgrade():
    op.create_table(
        "price_lists",
        *_row_columns(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(50), index=True),
        sa.Column("description", sa.String(500)),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("direction", sa.String(40), nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("valid_from", sa.DateTime),
        sa.Column("valid_to", sa.DateTime),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_generated_from_documents", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("generation_metadata", sa.Text),
        sa.Column("last_synced_at", sa.DateTime),
        sa.Column("last_synced_by", sa.String(100)),
    )

    op.create_table(
        "products",
        *_row_columns(),
        sa.Column("code", sa.String(50), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("default_price", sa.Numeric(18, 4)),
        sa.Column("category_id", sa.String(36), index=True),
        sa.Column("brand_id", sa.String(36), index=True),
    )

    op.create_table(
        "business_parties",
        *_row_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("party_type", sa.String(40), nullable=False),
        sa.Column("default_sales_price_list_id", sa.String(36), sa.ForeignKey("price_lists.id")),
        sa.Column("default_purchase_price_list_id", sa.String(36), sa.ForeignKey("price_lists.id")),
        sa.Column("default_price_application_mode", sa.String(40)),
        sa.Column("forced_price_list_id", sa.String(36), sa.ForeignKey("price_lists.id")),
    )

    op.create_table(
        "price_list_entries",
        *_row_columns(),
        sa.Column("price_list_id", sa.String(36), sa.ForeignKey("price_lists.id"), nullable=False, index=True),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False, index=True),
        sa.Column("price", sa.Numeric(18, 4), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("min_quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("max_quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lead_time_days", sa.Integer),
        sa.Column("minimum_order_quantity", sa.Integer),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("notes", sa.String(500)),
    )
    op.create_index(
        "ux_price_list_entries_list_product_live",
        "price_list_entries",
        ["price_list_id", "product_id"],
        unique=True,
        sqlite_where=sa.text("is_deleted = 0"),
        postgresql_where=sa.text("is_deleted = false"),
    )

    op.create_table(
        "price_list_business_parties",
        *_row_columns(),
        sa.Column("price_list_id", sa.String(36), sa.ForeignKey("price_lists.id"), nullable=False, index=True),
        sa.Column(
            "business_party_id", sa.String(36), sa.ForeignKey("business_parties.id"), nullable=False, index=True
        ),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("override_priority", sa.Integer),
        sa.Column("specific_valid_from", sa.DateTime),
        sa.Column("specific_valid_to", sa.DateTime),
        sa.Column("global_discount_percentage", sa.Numeric(5, 2)),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("notes", sa.String(500)),
    )
    op.create_index(
        "ux_price_list_business_parties_live",
        "price_list_business_parties",
        ["price_list_id", "business_party_id"],
        unique=True,
        sqlite_where=sa.text("is_deleted = 0"),
        postgresql_where=sa.text("is_deleted = false"),
    )

    op.create_table(
        "product_suppliers",
        *_row_columns(),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False, index=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("business_parties.id"), nullable=False, index=True),
        sa.Column("supplier_product_code", sa.String(100)),
        sa.Column("unit_cost", sa.Numeric(18, 4)),
        sa.Column("currency", sa.String(3)),
        sa.Column("lead_time_days", sa.Integer),
        sa.Column("min_order_qty", sa.Integer),
        sa.Column("preferred", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text),
        sa.Column("last_purchase_price", sa.Numeric(18, 4)),
        sa.Column("last_purchase_date", sa.DateTime),
    )

    op.create_table(
        "supplier_product_price_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(100), nullable=False, index=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("business_parties.id"), nullable=False, index=True),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False, index=True),
        sa.Column("product_supplier_id", sa.String(36), sa.ForeignKey("product_suppliers.id")),
        sa.Column("old_unit_cost", sa.Numeric(18, 4)),
        sa.Column("new_unit_cost", sa.Numeric(18, 4), nullable=False),
        sa.Column("currency", sa.String(3)),
        sa.Column("change_source", sa.String(50), nullable=False),
        sa.Column("changed_at", sa.DateTime, nullable=False, index=True),
        sa.Column("changed_by", sa.String(100)),
        sa.Column("notes", sa.Text),
    )

    op.create_table(
        "document_types",
        *_row_columns(),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_stock_increase", sa.Boolean, nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "document_headers",
        *_row_columns(),
        sa.Column("document_type_id", sa.String(36), sa.ForeignKey("document_types.id"), nullable=False),
        sa.Column("business_party_id", sa.String(36), sa.ForeignKey("business_parties.id"), index=True),
        sa.Column("price_list_id", sa.String(36), sa.ForeignKey("price_lists.id")),
        sa.Column("number", sa.String(30), nullable=False),
        sa.Column("date", sa.DateTime, nullable=False, index=True),
    )

    op.create_table(
        "document_rows",
        *_row_columns(),
        sa.Column(
            "document_header_id", sa.String(36), sa.ForeignKey("document_headers.id"), nullable=False, index=True
        ),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), index=True),
        sa.Column("description", sa.String(200)),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit_price", sa.Numeric(18, 4), nullable=False),
    )

    op.create_table(
        "supplier_price_alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(100), nullable=False, index=True),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False, index=True),
        sa.Column("current_supplier_id", sa.String(36), sa.ForeignKey("business_parties.id")),
        sa.Column("recommended_supplier_id", sa.String(36), sa.ForeignKey("business_parties.id"), nullable=False),
        sa.Column("current_score", sa.Numeric(6, 2)),
        sa.Column("recommended_score", sa.Numeric(6, 2), nullable=False),
        sa.Column("potential_savings", sa.Numeric(18, 4)),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("audit_id", sa.String(80), nullable=False, unique=True),
        sa.Column("tenant_id", sa.String(100), nullable=False, index=True),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("actor", sa.String(100), nullable=False),
        sa.Column("target_type", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=False, index=True),
        sa.Column("old_value", sa.JSON),
        sa.Column("new_value", sa.JSON),
        sa.Column("meta", sa.JSON),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )


def downgrade():
    op.drop_table("audit_events")
    op.drop_table("supplier_price_alerts")
    op.drop_table("document_rows")
    op.drop_table("document_headers")
    op.drop_table("document_types")
    op.drop_table("supplier_product_price_history")
    op.drop_table("product_suppliers")
    op.drop_index("ux_price_list_business_parties_live", table_name="price_list_business_parties")
    op.drop_table("price_list_business_parties")
    op.drop_index("ux_price_list_entries_list_product_live", table_name="price_list_entries")
    op.drop_table("price_list_entries")
    op.drop_table("business_parties")
    op.drop_table("products")
    op.drop_table("price_lists")
