"""create_offers_appointments_and_weather_alerts

Revision ID: 3b9d41c7e2a0
Revises:
Create Date: 2026-10-19 09:12:47.581630

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3b9d41c7e2a0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

offer_status = sa.Enum(
    "PENDING",
    "AWAITING_RESPONSE",
    "ACCEPTED",
    "REJECTED",
    "EXPIRED",
    name="offerstatus",
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "offers",
        sa.Column("branch_id", sa.String(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("customer_email", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column(
            "currency",
            sa.Enum("DKK", "SEK", "NOK", "EUR", name="currency"),
            nullable=False,
        ),
        sa.Column(
            "pricing", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column("status", offer_status, nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("valid_until", sa.DateTime(), nullable=False),
        sa.Column("follow_up_attempts", sa.Integer(), nullable=False),
        sa.Column("last_notified_at", sa.DateTime(), nullable=True),
        sa.Column("escalated_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_offers_branch_id"), "offers", ["branch_id"])
    op.create_index(op.f("ix_offers_status"), "offers", ["status"])
    op.create_table(
        "offer_status_history",
        sa.Column("offer_id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(name="offerstatus", create_type=False),
            nullable=False,
        ),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("changed_by", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["offer_id"],
            ["offers.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_offer_status_history_offer_id"), "offer_status_history", ["offer_id"]
    )
    op.create_table(
        "appointments",
        sa.Column("resource_id", sa.String(), nullable=False),
        sa.Column("branch_id", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("customer_address", sa.String(), nullable=True),
        sa.Column("start", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "SCHEDULED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                "NO_SHOW",
                name="appointmentstatus",
            ),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancel_reason", sa.String(), nullable=True),
        sa.Column("inspector_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_resource_id"), "appointments", ["resource_id"])
    op.create_index(op.f("ix_appointments_start"), "appointments", ["start"])
    op.create_table(
        "weather_alerts",
        sa.Column("inspector_id", sa.String(), nullable=False),
        sa.Column("last_sent_at", sa.DateTime(), nullable=False),
        sa.Column("last_condition", sa.String(), nullable=False),
        sa.Column("last_severe", sa.Boolean(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inspector_id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("weather_alerts")
    op.drop_index(op.f("ix_appointments_start"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_resource_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(
        op.f("ix_offer_status_history_offer_id"), table_name="offer_status_history"
    )
    op.drop_table("offer_status_history")
    op.drop_index(op.f("ix_offers_status"), table_name="offers")
    op.drop_index(op.f("ix_offers_branch_id"), table_name="offers")
    op.drop_table("offers")
    sa.Enum(name="appointmentstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="currency").drop(op.get_bind(), checkfirst=True)
    offer_status.drop(op.get_bind(), checkfirst=True)
