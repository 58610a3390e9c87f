from datetime import datetime
from decimal import Decimal

from alembic import op
import sqlalchemy as sa


revision = "0001_tenants_shifts"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "business_profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("business_type", sa.String(100), nullable=True),
        sa.Column("stage", sa.String(100), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("capital", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("owner_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("owner_id", "name", name="uq_business_profiles_owner_name"),
        sa.UniqueConstraint("owner_id", "request_id", name="uq_business_profiles_owner_request"),
    )
    op.create_table(
        "tenant_quotas",
        sa.Column("owner_id", sa.String(64), primary_key=True),
        sa.Column("tenant_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("billing_period", sa.String(20), nullable=False, server_default="monthly"),
        sa.Column("max_tenants", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    plans = sa.table(
        "subscription_plans",
        sa.column("id", sa.String),
        sa.column("name", sa.String),
        sa.column("description", sa.String),
        sa.column("price", sa.Numeric),
        sa.column("currency", sa.String),
        sa.column("billing_period", sa.String),
        sa.column("max_tenants", sa.Integer),
        sa.column("is_active", sa.Boolean),
        sa.column("display_order", sa.Integer),
        sa.column("created_at", sa.DateTime),
    )
    seeded_at = datetime.utcnow()
    op.bulk_insert(plans, [
        {"id": "8f0c7a52-1b1e-4c53-9d7e-000000000001", "name": "Free", "description": "Basic features for small businesses",
         "price": Decimal("0.00"), "currency": "USD", "billing_period": "monthly", "max_tenants": 1,
         "is_active": True, "display_order": 1, "created_at": seeded_at},
        {"id": "8f0c7a52-1b1e-4c53-9d7e-000000000002", "name": "Starter", "description": "Essential features for growing businesses",
         "price": Decimal("9.99"), "currency": "USD", "billing_period": "monthly", "max_tenants": 3,
         "is_active": True, "display_order": 2, "created_at": seeded_at},
        {"id": "8f0c7a52-1b1e-4c53-9d7e-000000000003", "name": "Professional", "description": "Advanced features for established businesses",
         "price": Decimal("29.99"), "currency": "USD", "billing_period": "monthly", "max_tenants": 10,
         "is_active": True, "display_order": 3, "created_at": seeded_at},
        {"id": "8f0c7a52-1b1e-4c53-9d7e-000000000004", "name": "Enterprise", "description": "Full feature access for large businesses",
         "price": Decimal("99.99"), "currency": "USD", "billing_period": "monthly", "max_tenants": -1,
         "is_active": True, "display_order": 4, "created_at": seeded_at},
    ])
    op.create_table(
        "user_subscriptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("plan_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"], ondelete="RESTRICT"),
    )
    op.create_table(
        "premium_trials",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("plan_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"], ondelete="RESTRICT"),
    )

    op.create_table(
        "pos_shifts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("shift_date", sa.Date(), nullable=False, index=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="open"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("opening_cash", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("opened_by", sa.String(64), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=False),
        sa.Column("current_employee_id", sa.String(64), nullable=True),
        sa.Column("closed_by", sa.String(64), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("total_sales", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("cash_sales", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("card_sales", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("mobile_money_sales", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("bank_transfer_sales", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("other_sales", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_discounts", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("total_refunds", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("cash_refunds", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("expected_cash", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("actual_cash", sa.Numeric(15, 2), nullable=True),
        sa.Column("cash_discrepancy", sa.Numeric(15, 2), nullable=True),
        sa.Column("discrepancy_notes", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["business_profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "shift_date", name="uq_pos_shifts_tenant_date"),
    )

    op.create_table(
        "sale_documents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("doc_date", sa.Date(), nullable=False),
        sa.Column("kind", sa.String(10), nullable=False, server_default="sale"),
        sa.Column("status", sa.String(10), nullable=False, server_default="paid"),
        sa.Column("total", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(50), nullable=False, server_default="cash"),
        sa.Column("discount_amount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("recorded_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["business_profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_sale_documents_tenant_date_status", "sale_documents", ["tenant_id", "doc_date", "status"])


def downgrade() -> None:
    op.drop_index("ix_sale_documents_tenant_date_status", table_name="sale_documents")
    op.drop_table("sale_documents")
    op.drop_table("pos_shifts")
    op.drop_table("premium_trials")
    op.drop_table("user_subscriptions")
    op.drop_table("subscription_plans")
    op.drop_table("tenant_quotas")
    op.drop_table("business_profiles")
