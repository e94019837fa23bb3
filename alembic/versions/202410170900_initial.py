"""initial schema

Revision ID: 202410170900
Revises:
Create Date: 2024-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202410170900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("institution", sa.String(length=120), nullable=False),
        sa.Column(
            "type",
            sa.Enum("checking", "savings", "credit", "brokerage", name="accounttype"),
            nullable=False,
        ),
        *_timestamps(),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("parent_id", sa.String(length=36), sa.ForeignKey("categories.id")),
        sa.Column("is_income", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_categories_parent", "categories", ["parent_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "account_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("normalized_merchant", sa.String(length=200)),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.String(length=36), sa.ForeignKey("categories.id")),
        sa.Column(
            "category_source",
            sa.Enum("rule", "ai", "manual", name="categorysource"),
        ),
        sa.Column("category_confidence", sa.Float()),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurring_id", sa.String(length=36)),
        sa.Column("notes", sa.Text()),
        sa.Column("raw_csv_row", sa.Text()),
        sa.Column("import_hash", sa.String(length=16), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_transactions_date", "transactions", ["date"])
    op.create_index(
        "ix_transactions_category_date", "transactions", ["category_id", "date"]
    )
    op.create_index(
        "ix_transactions_account_hash", "transactions", ["account_id", "import_hash"]
    )
    op.create_index("ix_transactions_merchant", "transactions", ["normalized_merchant"])

    op.create_table(
        "categorization_rules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("pattern", sa.String(length=200), nullable=False),
        sa.Column(
            "match_type",
            sa.Enum("contains", "regex", "exact", name="rulematchtype"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(length=36),
            sa.ForeignKey("categories.id"),
            nullable=False,
        ),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_rules_active_priority", "categorization_rules", ["is_active", "priority"]
    )

    op.create_table(
        "imports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("bank_profile", sa.String(length=60)),
        sa.Column("account_id", sa.String(length=36), sa.ForeignKey("accounts.id")),
        sa.Column("row_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("imported_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "period_type",
            sa.Enum("monthly", "weekly", "yearly", name="periodtype"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "budget_allocations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "budget_id",
            sa.String(length=36),
            sa.ForeignKey("budgets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(length=36),
            sa.ForeignKey("categories.id"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("rollover", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint(
            "budget_id", "category_id", name="uq_allocation_budget_category"
        ),
        sa.CheckConstraint("amount_cents >= 0", name="ck_allocation_amount_positive"),
    )
    op.create_index("ix_allocations_budget", "budget_allocations", ["budget_id"])

    op.create_table(
        "budget_periods",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "budget_id",
            sa.String(length=36),
            sa.ForeignKey("budgets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("open", "closed", name="periodstatus"),
            nullable=False,
            server_default="open",
        ),
        sa.UniqueConstraint("budget_id", "start_date", name="uq_period_budget_start"),
        sa.CheckConstraint("end_date >= start_date", name="ck_period_dates_ordered"),
    )

    op.create_table(
        "balance_snapshots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "account_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("balance_cents", sa.Integer(), nullable=False),
        sa.Column(
            "source",
            sa.Enum("import", "manual", "calculated", name="snapshotsource"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("account_id", "date", name="uq_snapshot_account_date"),
    )


def downgrade():
    op.drop_table("balance_snapshots")
    op.drop_table("budget_periods")
    op.drop_index("ix_allocations_budget", table_name="budget_allocations")
    op.drop_table("budget_allocations")
    op.drop_table("budgets")
    op.drop_table("imports")
    op.drop_index("ix_rules_active_priority", table_name="categorization_rules")
    op.drop_table("categorization_rules")
    op.drop_index("ix_transactions_merchant", table_name="transactions")
    op.drop_index("ix_transactions_account_hash", table_name="transactions")
    op.drop_index("ix_transactions_category_date", table_name="transactions")
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_categories_parent", table_name="categories")
    op.drop_table("categories")
    op.drop_table("accounts")
