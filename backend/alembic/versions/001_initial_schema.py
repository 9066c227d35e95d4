"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _money(name, precision=12, nullable=False):
    return sa.Column(name, sa.Numeric(precision, 2), nullable=nullable, server_default=None if nullable else "0")


def upgrade() -> None:
    # Users table (franchise FK added once franchises exists)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="franchisee", index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("nationality", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("franchise_id", sa.Integer(), nullable=True, index=True),
        sa.Column("profile_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "franchises",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("franchisor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("brand_name", sa.String(255), nullable=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("logo", sa.String(500), nullable=True),
        sa.Column("business_registration_number", sa.String(100), unique=True, nullable=False),
        sa.Column("tax_id", sa.String(100), nullable=True),
        sa.Column("business_type", sa.String(30), nullable=False, server_default="corporation"),
        sa.Column("established_date", sa.Date(), nullable=True),
        sa.Column("headquarters_country", sa.String(100), nullable=True),
        sa.Column("headquarters_city", sa.String(100), nullable=True),
        sa.Column("headquarters_address", sa.Text(), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        _money("franchise_fee", nullable=True),
        sa.Column("royalty_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("marketing_fee_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("total_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(30), nullable=False, server_default="active", index=True),
        sa.Column("plan", sa.String(50), nullable=True),
        sa.Column("is_marketplace_listed", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    with op.batch_alter_table("users") as batch_op:
        batch_op.create_foreign_key(
            "fk_users_franchise_id", "franchises", ["franchise_id"], ["id"], ondelete="SET NULL"
        )

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("franchisee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("unit_name", sa.String(255), nullable=False),
        sa.Column("unit_code", sa.String(50), unique=True, nullable=False),
        sa.Column("unit_type", sa.String(20), nullable=False, server_default="store"),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(100), nullable=True, index=True),
        sa.Column("state_province", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("nationality", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("size_sqft", sa.Numeric(10, 2), nullable=True),
        _money("monthly_rent", nullable=True),
        _money("monthly_revenue", nullable=True),
        _money("monthly_expenses", nullable=True),
        sa.Column("employee_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("opening_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="planning", index=True),
        sa.Column("operating_hours", sa.JSON(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_extension", sa.String(20), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mime_type", sa.String(100), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("is_confidential", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True, index=True),
        _money("unit_price"),
        _money("cost_price", nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("minimum_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sku", sa.String(100), unique=True, nullable=True),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "unit_inventory",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("unit_id", "product_id", name="uq_unit_inventory_product"),
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("job_title", sa.String(100), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        _money("salary", nullable=True),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("shift_start", sa.Time(), nullable=True),
        sa.Column("shift_end", sa.Time(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="working"),
        sa.Column("employment_type", sa.String(20), nullable=False, server_default="full_time"),
        *_timestamps(),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("franchisee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("review_source", sa.String(20), nullable=False, server_default="in_person"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("sentiment", sa.String(20), nullable=False, server_default="neutral"),
        sa.Column("review_date", sa.Date(), nullable=False),
        sa.Column("verified_purchase", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "unit_performances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("period_type", sa.String(10), nullable=False),
        sa.Column("period_date", sa.Date(), nullable=False),
        _money("revenue", 14),
        _money("expenses", 14),
        _money("royalties", 14),
        _money("profit", 14),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("customer_rating", sa.Numeric(3, 2), nullable=True),
        sa.Column("customer_reviews_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("growth_rate", sa.Numeric(8, 2), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("unit_id", "period_type", "period_date", name="uq_unit_performance_period"),
    )

    op.create_table(
        "leads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("job_title", sa.String(100), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("lead_source", sa.String(20), nullable=False, server_default="website"),
        sa.Column("status", sa.String(20), nullable=False, server_default="new", index=True),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        _money("estimated_investment", 14, nullable=True),
        _money("franchise_fee_quoted", nullable=True),
        sa.Column("expected_decision_date", sa.Date(), nullable=True),
        sa.Column("last_contact_date", sa.Date(), nullable=True),
        sa.Column("next_follow_up_date", sa.Date(), nullable=True),
        sa.Column("contact_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("lost_reason", sa.Text(), nullable=True),
        sa.Column("communication_log", sa.JSON(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(30), nullable=False, server_default="other"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("leads.id", ondelete="SET NULL"), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("actual_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("checklist", sa.JSON(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_type", sa.String(20), nullable=True),
        sa.Column("recurrence_interval", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("recurrence_end_date", sa.Date(), nullable=True),
        sa.Column("parent_task_id", sa.Integer(), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "technical_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_number", sa.String(20), unique=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="other"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open", index=True),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="SET NULL"), nullable=True),
        sa.Column("affected_system", sa.String(255), nullable=True),
        sa.Column("steps_to_reproduce", sa.Text(), nullable=True),
        sa.Column("expected_behavior", sa.Text(), nullable=True),
        sa.Column("actual_behavior", sa.Text(), nullable=True),
        sa.Column("browser_version", sa.String(100), nullable=True),
        sa.Column("operating_system", sa.String(100), nullable=True),
        sa.Column("device_type", sa.String(100), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("first_response_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_time_hours", sa.Numeric(10, 2), nullable=True),
        sa.Column("resolution_time_hours", sa.Numeric(10, 2), nullable=True),
        sa.Column("satisfaction_rating", sa.Integer(), nullable=True),
        sa.Column("satisfaction_feedback", sa.Text(), nullable=True),
        sa.Column("is_escalated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_number", sa.String(20), unique=True, nullable=False),
        sa.Column("type", sa.String(20), nullable=False, index=True),
        sa.Column("category", sa.String(20), nullable=False, server_default="other"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="SAR"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False, index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("reference_number", sa.String(100), nullable=True),
        sa.Column("vendor_customer", sa.String(255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_type", sa.String(20), nullable=True),
        sa.Column("recurrence_interval", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("recurrence_end_date", sa.Date(), nullable=True),
        sa.Column("parent_transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "revenues",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("revenue_number", sa.String(20), unique=True, nullable=False),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="sales", index=True),
        sa.Column("category", sa.String(20), nullable=False, server_default="product_sales"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="SAR"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("revenue_date", sa.Date(), nullable=False, index=True),
        sa.Column("period_year", sa.Integer(), nullable=False),
        sa.Column("period_month", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(100), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="completed"),
        _money("discount_amount"),
        _money("tax_amount"),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_items", sa.JSON(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="verified", index=True),
        sa.Column("verified_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_type", sa.String(20), nullable=True),
        sa.Column("parent_revenue_id", sa.Integer(), sa.ForeignKey("revenues.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "royalties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("royalty_number", sa.String(20), unique=True, nullable=False),
        sa.Column("franchise_id", sa.Integer(), sa.ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("franchisee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="royalty"),
        sa.Column("period_year", sa.Integer(), nullable=False),
        sa.Column("period_month", sa.Integer(), nullable=False),
        sa.Column("period_start_date", sa.Date(), nullable=False, index=True),
        sa.Column("period_end_date", sa.Date(), nullable=False),
        _money("gross_revenue", 14),
        sa.Column("royalty_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        _money("royalty_amount"),
        sa.Column("marketing_fee_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        _money("marketing_fee_amount"),
        _money("technology_fee_amount"),
        _money("other_fees"),
        _money("adjustments"),
        sa.Column("adjustment_notes", sa.Text(), nullable=True),
        _money("total_amount"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        _money("late_fee"),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        "notifications", "royalties", "revenues", "transactions", "technical_requests",
        "tasks", "notes", "leads", "unit_performances", "reviews", "staff",
        "unit_inventory", "products", "documents", "units",
    ):
        op.drop_table(table)
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_constraint("fk_users_franchise_id", type_="foreignkey")
    op.drop_table("franchises")
    op.drop_table("users")
