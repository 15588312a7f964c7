"""initial_ledger_schema

Revision ID: 5b1f0c2d9e41
Revises:
Create Date: 2026-10-17 09:12:44.318207
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1f0c2d9e41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PAYMENT_STATUSES = "'PENDING', 'PARTIALLY_PAID', 'COMPLETED', 'CANCELLED', 'REFUNDED', 'OVERDUE'"
PAYMENT_METHODS = "'CASH', 'ZAAD', 'EDAHAB', 'CREDIT'"
EXPENSE_TYPES = (
    "'RENT', 'ELECTRICITY', 'SALARIES_AND_WAGES', 'SECURITY', 'REPAIRS_AND_MAINTENANCE', "
    "'MOBILE_MONEY', 'BANK_CHARGE_FEES', 'MARKETING_AND_BRANDING', 'TAXES', 'INTERNET', "
    "'WATER', 'OTHERS'"
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""

    # USERS
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('ADMIN', 'EMPLOYEE', 'USER')", name="ck_user_role_valid"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # PRODUCTS
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("barcode", sa.String(64), nullable=True, unique=True),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        sa.CheckConstraint("cost >= 0", name="ck_product_cost_non_negative"),
        sa.CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
        sa.CheckConstraint("low_stock_threshold >= 0", name="ck_low_stock_non_negative"),
    )
    op.create_index("ix_products_id", "products", ["id"])
    op.create_index("ix_products_name", "products", ["name"])

    # SALES
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_number", sa.String(40), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("grand_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_due", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("remaining_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("change_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "request_id", name="uq_sale_user_request_id"),
        sa.CheckConstraint("amount_due > 0", name="ck_sale_amount_due_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_sale_amount_paid_non_negative"),
        sa.CheckConstraint("amount_paid <= amount_due", name="ck_sale_paid_within_due"),
        sa.CheckConstraint("remaining_balance >= 0", name="ck_sale_remaining_non_negative"),
        sa.CheckConstraint(f"status IN ({PAYMENT_STATUSES})", name="ck_sale_status_valid"),
        sa.CheckConstraint(f"payment_method IN ({PAYMENT_METHODS})", name="ck_sale_payment_method_valid"),
    )
    op.create_index("ix_sales_id", "sales", ["id"])
    op.create_index("ix_sales_sale_number", "sales", ["sale_number"], unique=True)
    op.create_index("ix_sales_user_id", "sales", ["user_id"])
    op.create_index("ix_sales_status", "sales", ["status"])
    op.create_index("ix_sales_created_at", "sales", ["created_at"])
    op.create_index("ix_sales_user_created", "sales", ["user_id", "created_at"])

    # SALE ITEMS
    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(5, 2), nullable=False),
        sa.Column("item_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("item_discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("item_net", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_sale_item_quantity_positive"),
    )
    op.create_index("ix_sale_items_id", "sale_items", ["id"])
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"])
    op.create_index("ix_sale_items_product_id", "sale_items", ["product_id"])

    # PAYMENT HISTORY
    op.create_table(
        "payment_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False),
        sa.Column("collected_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
    )
    op.create_index("ix_payment_history_id", "payment_history", ["id"])
    op.create_index("ix_payment_history_sale_id", "payment_history", ["sale_id"])

    # VENDORS
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("total_purchases", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_purchases >= 0", name="ck_vendor_total_purchases_non_negative"),
    )
    op.create_index("ix_vendors_id", "vendors", ["id"])
    op.create_index("ix_vendors_name", "vendors", ["name"])

    # PURCHASES
    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_due", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("remaining_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("amount_due > 0", name="ck_purchase_amount_due_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_purchase_amount_paid_non_negative"),
        sa.CheckConstraint("amount_paid <= amount_due", name="ck_purchase_paid_within_due"),
        sa.CheckConstraint(f"status IN ({PAYMENT_STATUSES})", name="ck_purchase_status_valid"),
        sa.CheckConstraint(f"payment_method IN ({PAYMENT_METHODS})", name="ck_purchase_payment_method_valid"),
    )
    op.create_index("ix_purchases_id", "purchases", ["id"])
    op.create_index("ix_purchases_vendor_id", "purchases", ["vendor_id"])
    op.create_index("ix_purchases_user_id", "purchases", ["user_id"])
    op.create_index("ix_purchases_purchase_date", "purchases", ["purchase_date"])
    op.create_index("ix_purchases_vendor_date", "purchases", ["vendor_id", "purchase_date"])

    # PURCHASE ITEMS
    op.create_table(
        "purchase_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("purchase_id", sa.Integer(), sa.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_purchase_item_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_purchase_item_price_non_negative"),
    )
    op.create_index("ix_purchase_items_id", "purchase_items", ["id"])
    op.create_index("ix_purchase_items_purchase_id", "purchase_items", ["purchase_id"])
    op.create_index("ix_purchase_items_product_id", "purchase_items", ["product_id"])

    # EXPENSES
    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("client_name", sa.String(), nullable=True),
        sa.Column("client_phone", sa.String(32), nullable=True),
        sa.Column("expense_type", sa.String(40), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount_due", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_due > 0", name="ck_expense_amount_due_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_expense_amount_paid_non_negative"),
        sa.CheckConstraint("amount_paid <= amount_due", name="ck_expense_paid_within_due"),
        sa.CheckConstraint(f"expense_type IN ({EXPENSE_TYPES})", name="ck_expense_type_valid"),
        sa.CheckConstraint(f"status IN ({PAYMENT_STATUSES})", name="ck_expense_status_valid"),
    )
    op.create_index("ix_expenses_id", "expenses", ["id"])
    op.create_index("ix_expenses_user_id", "expenses", ["user_id"])
    op.create_index("ix_expenses_created_at", "expenses", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("expenses")
    op.drop_table("purchase_items")
    op.drop_table("purchases")
    op.drop_table("vendors")
    op.drop_table("payment_history")
    op.drop_table("sale_items")
    op.drop_table("sales")
    op.drop_table("products")
    op.drop_table("users")
