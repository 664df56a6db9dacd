"""Create tenants, categories, classification_rules, rule_keywords and transactions.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("tenant_id", sa.String(64), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_categories_tenant_id", "categories", ["tenant_id"])

    op.create_table(
        "classification_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("category_id", sa.String(64), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("min_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("max_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("transaction_type", sa.String(20), server_default="ALL", nullable=False),
        sa.Column("priority", sa.Integer(), server_default="1", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "idx_classification_rules_tenant_active",
        "classification_rules",
        ["tenant_id", "is_active"],
    )

    op.create_table(
        "rule_keywords",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("rule_id", sa.Integer(), sa.ForeignKey("classification_rules.id"), nullable=False),
        sa.Column("keyword", sa.String(255), nullable=False),
        sa.Column("keyword_type", sa.String(10), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_rule_keywords_rule_id", "rule_keywords", ["rule_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("category_id", sa.String(64), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(15, 2), server_default="0", nullable=False),
        sa.Column("withdrawal_amount", sa.Numeric(15, 2), server_default="0", nullable=False),
        sa.Column("balance_after", sa.Numeric(15, 2), nullable=True),
        sa.Column("branch", sa.String(255), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_transactions_tenant_date", "transactions", ["tenant_id", "transaction_date"])


def downgrade() -> None:
    op.drop_index("idx_transactions_tenant_date")
    op.drop_table("transactions")
    op.drop_index("ix_rule_keywords_rule_id")
    op.drop_table("rule_keywords")
    op.drop_index("idx_classification_rules_tenant_active")
    op.drop_table("classification_rules")
    op.drop_index("ix_categories_tenant_id")
    op.drop_table("categories")
    op.drop_table("tenants")
