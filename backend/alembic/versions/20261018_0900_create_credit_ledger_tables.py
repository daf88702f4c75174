"""Create accounts, ledger, reservation and generation tables.

Revision ID: 20261018_0900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers
revision: str = "20261018_0900"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum values are the Python member names, as stored by sa.Enum(PyEnum)
ledger_category = postgresql.ENUM(
    "PURCHASE", "USAGE", "BONUS", "REFUND", name="ledgercategory", create_type=False
)
generation_kind = postgresql.ENUM(
    "HEADSHOT", "IMAGE_EDIT", name="generationkind", create_type=False
)
generation_status = postgresql.ENUM(
    "COMPLETED", "FAILED", name="generationstatus", create_type=False
)
reservation_status = postgresql.ENUM(
    "PENDING", "CAPTURED", "REFUNDED", name="reservationstatus", create_type=False
)

ENUMS = (ledger_category, generation_kind, generation_status, reservation_status)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "total_credits_purchased",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        sa.CheckConstraint(
            "total_credits_purchased >= 0",
            name="ck_accounts_total_purchased_non_negative",
        ),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("category", ledger_category, nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("external_ref", sa.String(255), nullable=True, unique=True),
        sa.Column("reservation_id", sa.String(36), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_ledger_entries_account_id", "ledger_entries", ["account_id"])
    op.create_index("ix_ledger_entries_category", "ledger_entries", ["category"])
    op.create_index("ix_ledger_entries_reservation_id", "ledger_entries", ["reservation_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("kind", generation_kind, nullable=False),
        sa.Column("parameters", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", reservation_status, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_reservations_account_id", "reservations", ["account_id"])
    op.create_index("ix_reservations_status", "reservations", ["status"])
    op.create_index("ix_reservations_created_at", "reservations", ["created_at"])

    op.create_table(
        "generation_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "reservation_id",
            sa.String(36),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("kind", generation_kind, nullable=False),
        sa.Column("parameters", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("result_url", sa.Text(), nullable=True),
        sa.Column("credits_charged", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", generation_status, nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_generation_records_account_id", "generation_records", ["account_id"])
    op.create_index("ix_generation_records_status", "generation_records", ["status"])
    op.create_index("ix_generation_records_created_at", "generation_records", ["created_at"])


def downgrade() -> None:
    op.drop_table("generation_records")
    op.drop_table("reservations")
    op.drop_table("ledger_entries")
    op.drop_table("accounts")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
