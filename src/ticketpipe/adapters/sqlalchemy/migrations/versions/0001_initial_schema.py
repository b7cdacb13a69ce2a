"""Initial ticket store schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from ticketpipe.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "atom",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("pipeline_id", sa.String(), nullable=False),
        sa.Column("position_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("secret", sa.String(), nullable=True),
        sa.Column("is_consumed", sa.Boolean(), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False),
        sa.Column("provider_checkin_at", UTCDateTime(), nullable=True),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_atom")),
        sa.UniqueConstraint("pipeline_id", "position_id", name=op.f("uq_atom_pipeline_id")),
    )
    op.create_index("ix_atom_pipeline_email", "atom", ["pipeline_id", "email"])
    op.create_index("ix_atom_pipeline_event", "atom", ["pipeline_id", "event_id"])

    op.create_table(
        "redacted_atom",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("pipeline_id", sa.String(), nullable=False),
        sa.Column("position_id", sa.String(), nullable=False),
        sa.Column("hashed_email", sa.String(64), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("secret", sa.String(), nullable=True),
        sa.Column("is_consumed", sa.Boolean(), nullable=False),
        sa.Column("provider_checkin_at", UTCDateTime(), nullable=True),
        sa.Column("redacted_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_redacted_atom")),
    )
    op.create_index(
        op.f("ix_redacted_atom_pipeline_id"), "redacted_atom", ["pipeline_id"]
    )
    op.create_index(
        op.f("ix_redacted_atom_hashed_email"), "redacted_atom", ["hashed_email"]
    )

    op.create_table(
        "checkin",
        sa.Column("atom_id", sa.String(36), nullable=False),
        sa.Column("pipeline_id", sa.String(), nullable=False),
        sa.Column("checker_email", sa.String(), nullable=False),
        sa.Column("checked_in_at", UTCDateTime(), nullable=False),
        sa.Column("offline", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("atom_id", name=op.f("pk_checkin")),
    )
    op.create_index(op.f("ix_checkin_pipeline_id"), "checkin", ["pipeline_id"])

    op.create_table(
        "principal",
        sa.Column("commitment", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("commitment", name=op.f("pk_principal")),
    )
    op.create_index(op.f("ix_principal_email"), "principal", ["email"])

    op.create_table(
        "artifact_cache",
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("stored_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("key", name=op.f("pk_artifact_cache")),
    )
    op.create_index(op.f("ix_artifact_cache_stored_at"), "artifact_cache", ["stored_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_artifact_cache_stored_at"), table_name="artifact_cache")
    op.drop_table("artifact_cache")
    op.drop_index(op.f("ix_principal_email"), table_name="principal")
    op.drop_table("principal")
    op.drop_index(op.f("ix_checkin_pipeline_id"), table_name="checkin")
    op.drop_table("checkin")
    op.drop_index(op.f("ix_redacted_atom_hashed_email"), table_name="redacted_atom")
    op.drop_index(op.f("ix_redacted_atom_pipeline_id"), table_name="redacted_atom")
    op.drop_table("redacted_atom")
    op.drop_index("ix_atom_pipeline_event", table_name="atom")
    op.drop_index("ix_atom_pipeline_email", table_name="atom")
    op.drop_table("atom")
