"""Kiosk storefront schema

Revision ID: 20261019_kiosk_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_kiosk_initial"
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def _timestamps(updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False))
    return cols


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=False)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_is_revoked", ["is_revoked"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    # Catalog
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("special_page", sa.String(64), nullable=True),
        sa.Column("text_color", sa.String(16), nullable=False, server_default="#000000"),
        sa.Column("image", sa.String(512), nullable=True),
        sa.Column("image_path", sa.String(512), nullable=True),
        sa.Column("background_image", sa.String(512), nullable=True),
        sa.Column("background_image_path", sa.String(512), nullable=True),
        sa.Column("background_fit", sa.String(16), nullable=False, server_default="contain"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_code", name="uq_categories_code"),
    )
    op.create_index("ix_categories_active", "categories", ["is_active"], unique=False)

    op.create_table(
        "subcategories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("subcategory_code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("text_color", sa.String(16), nullable=False, server_default="#000000"),
        sa.Column("image", sa.String(512), nullable=True),
        sa.Column("image_path", sa.String(512), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subcategory_code", name="uq_subcategories_code"),
    )
    with op.batch_alter_table("subcategories", schema=None) as batch_op:
        batch_op.create_index("ix_subcategories_category_id", ["category_id"], unique=False)
        batch_op.create_index("ix_subcategories_category_sort", ["category_id", "sort_order"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_code", sa.String(32), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("subcategory_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("member_price_cents", sa.Integer(), nullable=True),
        sa.Column("has_variants", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("variants", sa.JSON(), nullable=True),
        sa.Column("cashback_enabled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("cashback_type", sa.String(16), nullable=False, server_default="percentage"),
        sa.Column("cashback_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cashback_min_purchase_cents", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("alert_kiosk_level", sa.Integer(), nullable=True),
        sa.Column("pos_item_id", sa.String(64), nullable=True),
        sa.Column("main_image", sa.String(512), nullable=True),
        sa.Column("main_image_path", sa.String(512), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["subcategory_id"], ["subcategories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_code", name="uq_products_code"),
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_category_id", ["category_id"], unique=False)
        batch_op.create_index("ix_products_subcategory_id", ["subcategory_id"], unique=False)
        batch_op.create_index("ix_products_category_active", ["category_id", "is_active"], unique=False)
        batch_op.create_index("ix_products_subcategory_active", ["subcategory_id", "is_active"], unique=False)

    op.create_table(
        "cashback_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("rate_bps", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_id", name="uq_cashback_rules_category"),
    )
    op.create_index("ix_cashback_rules_category_id", "cashback_rules", ["category_id"], unique=False)

    # Customers and loyalty
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_code", sa.String(32), nullable=False),
        sa.Column("member_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=True),
        sa.Column("nickname", sa.String(128), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("cell", sa.String(32), nullable=True),
        sa.Column("nationality", sa.String(64), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("allowed_categories", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_spent_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("visit_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_visit_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_code", name="uq_customers_code"),
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_member_id", ["member_id"], unique=False)
        batch_op.create_index("ix_customers_active", ["is_active"], unique=False)

    op.create_table(
        "customer_point_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("transaction_code", sa.String(64), nullable=True),
        sa.Column("payment_method", sa.String(16), nullable=True),
        sa.Column("purchase_amount_cents", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("is_manual_adjustment", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("adjusted_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["adjusted_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("customer_point_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_customer_point_transactions_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_customer_point_transactions_transaction_code", ["transaction_code"], unique=False)
        batch_op.create_index("ix_point_tx_customer_created", ["customer_id", "created_at"], unique=False)

    op.create_table(
        "pending_points",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("points_amount", sa.Integer(), nullable=False),
        sa.Column("transaction_code", sa.String(64), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("source", sa.String(32), nullable=False, server_default="kiosk"),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("pending_points", schema=None) as batch_op:
        batch_op.create_index("ix_pending_points_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_pending_points_transaction_code", ["transaction_code"], unique=False)
        batch_op.create_index("ix_pending_points_status", ["status"], unique=False)
        batch_op.create_index("ix_pending_points_status_created", ["status", "created_at"], unique=False)

    # Sales
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_code", sa.String(64), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False, server_default="No Member"),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default=""),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("transaction_type", sa.String(16), nullable=False, server_default="sale"),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("cashier", sa.String(64), nullable=False, server_default="kiosk"),
        sa.Column("location", sa.String(128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cashback_earned_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("point_details", sa.JSON(), nullable=True),
        sa.Column("points_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_used_value_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_usage_percentage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("crypto_details", sa.JSON(), nullable=True),
        sa.Column("original_transaction_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["original_transaction_id"], ["transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_code", name="uq_transactions_code"),
    )
    with op.batch_alter_table("transactions", schema=None) as batch_op:
        batch_op.create_index("ix_transactions_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_transactions_status", ["status"], unique=False)
        batch_op.create_index("ix_transactions_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_transactions_original_transaction_id", ["original_transaction_id"], unique=False)
        batch_op.create_index("ix_transactions_customer_created", ["customer_id", "created_at"], unique=False)
        batch_op.create_index("ix_transactions_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "counters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_counters_name"),
    )

    # Kiosk sessions
    op.create_table(
        "kiosk_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("kiosk_id", sa.String(64), nullable=False),
        sa.Column("state", sa.String(16), nullable=False, server_default="ACTIVE"),
        sa.Column("resume_state", sa.String(16), nullable=True),
        sa.Column("deadline_epoch", sa.Float(), nullable=True),
        sa.Column("idle_timeout_override", sa.Float(), nullable=True),
        sa.Column("expired_reason", sa.String(16), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("is_no_member", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(16), nullable=True),
        sa.Column("language", sa.String(8), nullable=False, server_default="en"),
        sa.Column("cart", sa.JSON(), nullable=False),
        sa.Column("points_usage_percentage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_transaction_code", sa.String(64), nullable=True),
        *_timestamps(),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash", name="uq_kiosk_sessions_token_hash"),
    )
    with op.batch_alter_table("kiosk_sessions", schema=None) as batch_op:
        batch_op.create_index("ix_kiosk_sessions_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_kiosk_sessions_state", ["state"], unique=False)

    op.create_table(
        "crypto_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.String(64), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="waiting"),
        sa.Column("pay_address", sa.String(255), nullable=True),
        sa.Column("pay_amount", sa.String(64), nullable=True),
        sa.Column("pay_currency", sa.String(16), nullable=False),
        sa.Column("price_amount", sa.String(64), nullable=False),
        sa.Column("price_currency", sa.String(16), nullable=False),
        sa.Column("actually_paid", sa.String(64), nullable=True),
        sa.Column("raw", sa.JSON(), nullable=True),
        sa.Column("order_snapshot", sa.JSON(), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["session_id"], ["kiosk_sessions.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id", name="uq_crypto_payments_payment_id"),
    )
    with op.batch_alter_table("crypto_payments", schema=None) as batch_op:
        batch_op.create_index("ix_crypto_payments_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_crypto_payments_session_id", ["session_id"], unique=False)
        batch_op.create_index("ix_crypto_payments_status", ["payment_status"], unique=False)

    # Stock
    op.create_table(
        "stock_purchasings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("variant_id", sa.String(64), nullable=False, server_default=""),
        sa.Column("variant_name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("purchase_order_id", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["stock_purchasings.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_movements_purchase_order_id", ["purchase_order_id"], unique=False)
        batch_op.create_index("ix_stock_movements_product_variant", ["product_id", "variant_id"], unique=False)
        batch_op.create_index("ix_stock_movements_status_occurred", ["status", "occurred_at"], unique=False)

    # Settings and traffic
    op.create_table(
        "kiosk_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["updated_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key", name="uq_kiosk_settings_key"),
    )

    op.create_table(
        "daily_visits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("visit_date", sa.String(10), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sessions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("order_starts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_visit", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_order_start", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("visit_date", name="uq_daily_visits_date"),
    )

    # Joint builder and prerolls
    op.create_table(
        "joint_options",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("option_type", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("price_per_gram_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("capacity_dg", sa.Integer(), nullable=True),
        sa.Column("image", sa.String(512), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_joint_options_kind_sort", "joint_options", ["kind", "sort_order"], unique=False)

    op.create_table(
        "preroll_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("type_key", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("color", sa.String(16), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kind", "type_key", name="uq_preroll_types_kind_key"),
    )

    op.create_table(
        "preroll_sizes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("size_key", sa.String(32), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("10000")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("size_key", name="uq_preroll_sizes_key"),
    )

    op.create_table(
        "preroll_variants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("quality_key", sa.String(64), nullable=False),
        sa.Column("strain_key", sa.String(64), nullable=False),
        sa.Column("size_key", sa.String(32), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("image", sa.String(512), nullable=True),
        sa.Column("image_path", sa.String(512), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quality_key", "strain_key", "size_key", name="uq_preroll_variants_combo"),
    )


def downgrade():
    for table in (
        "preroll_variants",
        "preroll_sizes",
        "preroll_types",
        "joint_options",
        "daily_visits",
        "kiosk_settings",
        "stock_movements",
        "stock_purchasings",
        "crypto_payments",
        "kiosk_sessions",
        "counters",
        "transactions",
        "pending_points",
        "customer_point_transactions",
        "customers",
        "cashback_rules",
        "products",
        "subcategories",
        "categories",
        "session_tokens",
        "users",
    ):
        op.drop_table(table)
