"""Initial billing tables

Revision ID: 0001_initial_billing
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_billing"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns() -> list:
    return [
        sa.Column("id", postgresql.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "plan",
        *_base_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("interval", sa.String(length=10), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("max_products", sa.Integer(), nullable=True),
        sa.Column("max_emails", sa.Integer(), nullable=True),
        sa.Column("max_sms", sa.Integer(), nullable=True),
        sa.Column("max_ai_generations", sa.Integer(), nullable=True),
        sa.Column("is_popular", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("trial_period_days", sa.Integer(), nullable=True),
        sa.Column("provider_price_id", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_price_id"),
    )

    op.create_table(
        "billing_customer",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(), nullable=False),
        sa.Column("provider_customer_id", sa.String(length=255), nullable=False),
        sa.Column("billing_email", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_customer_id"),
        sa.UniqueConstraint("account_id", name="uq_billing_customer_account"),
    )
    op.create_index("ix_billing_customer_account_id", "billing_customer", ["account_id"])

    op.create_table(
        "subscription",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(), nullable=False),
        sa.Column("plan_id", postgresql.UUID(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("current_period_start", sa.DateTime(), nullable=False),
        sa.Column("current_period_end", sa.DateTime(), nullable=False),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("canceled_at", sa.DateTime(), nullable=True),
        sa.Column("provider_subscription_id", sa.String(length=255), nullable=False),
        sa.Column("provider_customer_id", sa.String(length=255), nullable=False),
        sa.Column("last_event_id", sa.String(length=255), nullable=True),
        sa.Column("last_event_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["plan_id"], ["plan.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_subscription_id"),
        sa.CheckConstraint(
            "current_period_end > current_period_start", name="ck_subscription_period_order"
        ),
    )
    op.create_index("ix_subscription_account_id", "subscription", ["account_id"])
    # At most one non-canceled subscription per account
    op.create_index(
        "uq_subscription_live_account",
        "subscription",
        ["account_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'canceled'"),
    )

    op.create_table(
        "invoice",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(), nullable=False),
        sa.Column("subscription_id", postgresql.UUID(), nullable=False),
        sa.Column("provider_invoice_id", sa.String(length=255), nullable=False),
        sa.Column("invoice_number", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("hosted_invoice_url", sa.String(), nullable=True),
        sa.Column("pdf_url", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscription.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_invoice_id"),
    )
    op.create_index("ix_invoice_account_id", "invoice", ["account_id"])
    op.create_index(
        "idx_invoice_subscription_issued", "invoice", ["subscription_id", "issued_at"]
    )

    op.create_table(
        "payment_method",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(), nullable=False),
        sa.Column("provider_payment_method_id", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("card_brand", sa.String(length=50), nullable=True),
        sa.Column("card_last4", sa.String(length=4), nullable=True),
        sa.Column("card_exp_month", sa.Integer(), nullable=True),
        sa.Column("card_exp_year", sa.Integer(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_payment_method_id"),
    )
    op.create_index("ix_payment_method_account_id", "payment_method", ["account_id"])
    op.create_index(
        "uq_payment_method_default_account",
        "payment_method",
        ["account_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )

    op.create_table(
        "billing_event",
        *_base_columns(),
        sa.Column("provider_event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("account_id", postgresql.UUID(), nullable=True),
        sa.Column("subscription_id", postgresql.UUID(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("outcome", sa.String(length=20), nullable=False),
        sa.Column("event_data", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscription.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_event_id"),
    )
    op.create_index("idx_billing_events_account", "billing_event", ["account_id"])
    op.create_index("idx_billing_events_type", "billing_event", ["event_type"])


def downgrade() -> None:
    op.drop_index("idx_billing_events_type", "billing_event")
    op.drop_index("idx_billing_events_account", "billing_event")
    op.drop_table("billing_event")

    op.drop_index("uq_payment_method_default_account", "payment_method")
    op.drop_index("ix_payment_method_account_id", "payment_method")
    op.drop_table("payment_method")

    op.drop_index("idx_invoice_subscription_issued", "invoice")
    op.drop_index("ix_invoice_account_id", "invoice")
    op.drop_table("invoice")

    op.drop_index("uq_subscription_live_account", "subscription")
    op.drop_index("ix_subscription_account_id", "subscription")
    op.drop_table("subscription")

    op.drop_index("ix_billing_customer_account_id", "billing_customer")
    op.drop_table("billing_customer")

    op.drop_table("plan")
