"""card number, decision time and counters day

Revision ID: 0002_payout_card_and_counters
Revises: 0001_initial
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_payout_card_and_counters"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def _columns(table: str) -> set[str]:
    return {c["name"] for c in sa.inspect(op.get_bind()).get_columns(table)}


def upgrade() -> None:
    cols = _columns("payment_requests")
    if "card_number" not in cols:
        op.add_column("payment_requests", sa.Column("card_number", sa.Text(), nullable=True))
    if "processed_at" not in cols:
        op.add_column("payment_requests", sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True))

    if "counters_date" not in _columns("stats"):
        op.add_column("stats", sa.Column("counters_date", sa.Date(), nullable=True))


def downgrade() -> None:
    op.drop_column("stats", "counters_date")
    op.drop_column("payment_requests", "processed_at")
    op.drop_column("payment_requests", "card_number")
