"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _existing_tables() -> set[str]:
    return set(sa.inspect(op.get_bind()).get_table_names())


def upgrade() -> None:
    # databases created by the previous bot already have these tables
    existing = _existing_tables()

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("user_id", sa.BigInteger(), primary_key=True, autoincrement=False),
            sa.Column("username", sa.String(length=64), nullable=True),
            sa.Column("balance", sa.Numeric(12, 2), server_default="0", nullable=False),
            sa.Column("referrer_id", sa.BigInteger(), nullable=True),
            sa.Column("join_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("last_active", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_users_referrer_id", "users", ["referrer_id"], unique=False)

    if "stats" not in existing:
        op.create_table(
            "stats",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("total_users", sa.Integer(), server_default="0", nullable=False),
            sa.Column("today_users", sa.Integer(), server_default="0", nullable=False),
            sa.Column("total_paid", sa.Numeric(14, 2), server_default="0", nullable=False),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        )

    if "payment_requests" not in existing:
        op.create_table(
            "payment_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.user_id"), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
            sa.Column("request_date", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_payment_requests_user_id", "payment_requests", ["user_id"], unique=False)

    if "channels" not in existing:
        op.create_table(
            "channels",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("channel_id", sa.Text(), nullable=False),
            sa.Column("channel_name", sa.Text(), nullable=False),
        )


def downgrade() -> None:
    op.drop_table("channels")
    op.drop_index("ix_payment_requests_user_id", table_name="payment_requests")
    op.drop_table("payment_requests")
    op.drop_table("stats")
    op.drop_index("ix_users_referrer_id", table_name="users")
    op.drop_table("users")
