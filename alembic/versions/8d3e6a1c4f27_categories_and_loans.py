"""categories_and_loans

Revision ID: 8d3e6a1c4f27
Revises: 5b1f0c2d9e41
Create Date: 2026-10-17 15:40:08.902113
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d3e6a1c4f27'
down_revision: Union[str, Sequence[str], None] = '5b1f0c2d9e41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PAYMENT_STATUSES = "'PENDING', 'PARTIALLY_PAID', 'COMPLETED', 'CANCELLED', 'REFUNDED', 'OVERDUE'"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""

    # CATEGORIES
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_index("ix_categories_id", "categories", ["id"])

    # Batch mode so SQLite can add the foreign key
    with op.batch_alter_table("products") as batch_op:
        batch_op.add_column(sa.Column("category_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_products_category_id",
            "categories",
            ["category_id"],
            ["id"],
            ondelete="SET NULL",
        )
        batch_op.create_index("ix_products_category_id", ["category_id"])

    # LOANS
    op.create_table(
        "loans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("person_name", sa.String(), nullable=False),
        sa.Column("product_name", sa.String(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount_due", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("loan_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_loan_quantity_positive"),
        sa.CheckConstraint("amount_due > 0", name="ck_loan_amount_due_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_loan_amount_paid_non_negative"),
        sa.CheckConstraint("amount_paid <= amount_due", name="ck_loan_paid_within_due"),
        sa.CheckConstraint(f"status IN ({PAYMENT_STATUSES})", name="ck_loan_status_valid"),
    )
    op.create_index("ix_loans_id", "loans", ["id"])
    op.create_index("ix_loans_user_id", "loans", ["user_id"])
    op.create_index("ix_loans_person_name", "loans", ["person_name"])
    op.create_index("ix_loans_loan_date", "loans", ["loan_date"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("loans")

    with op.batch_alter_table("products") as batch_op:
        batch_op.drop_index("ix_products_category_id")
        batch_op.drop_constraint("fk_products_category_id", type_="foreignkey")
        batch_op.drop_column("category_id")

    op.drop_table("categories")
