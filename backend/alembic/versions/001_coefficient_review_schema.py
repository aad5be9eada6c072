"""Coefficient review schema: proposals and append-only audit log

Revision ID: 001_coefficient_review
Revises:
Create Date: 2026-10-18

The audit log references proposals without ON DELETE CASCADE. Proposals are
tombstoned (deleted_at) rather than removed, so every audit row stays resolvable.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ENUM as PgENUM, UUID

revision: str = "001_coefficient_review"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Enum types ──
    op.execute("CREATE TYPE proposal_status AS ENUM ('pending', 'approved', 'rejected')")
    op.execute("""
        CREATE TYPE audit_action AS ENUM (
            'create', 'update', 'approve', 'reject', 'delete', 'revert'
        )
    """)

    # ── Proposals ──
    op.create_table(
        "crop_coefficient_proposals",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("subject_id", sa.String(200), nullable=False),
        sa.Column("kc_initial", sa.Float, nullable=False),
        sa.Column("kc_development", sa.Float, nullable=False),
        sa.Column("kc_mid", sa.Float, nullable=False),
        sa.Column("kc_late", sa.Float, nullable=False),
        sa.Column("initial_stage_days", sa.Integer, nullable=False),
        sa.Column("development_stage_days", sa.Integer, nullable=False),
        sa.Column("mid_stage_days", sa.Integer, nullable=False),
        sa.Column("late_stage_days", sa.Integer, nullable=False),
        sa.Column("source", sa.String(500), nullable=True),
        sa.Column("submitted_by_name", sa.String(200), nullable=True),
        sa.Column("submitted_by_email", sa.String(320), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "status",
            PgENUM("pending", "approved", "rejected", name="proposal_status", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("version >= 1", name="ck_proposal_version_positive"),
        sa.CheckConstraint(
            "initial_stage_days >= 0 AND development_stage_days >= 0 "
            "AND mid_stage_days >= 0 AND late_stage_days >= 0",
            name="ck_proposal_durations_non_negative",
        ),
    )
    op.create_index("ix_crop_coefficient_proposals_subject_id", "crop_coefficient_proposals", ["subject_id"])
    op.create_index("ix_crop_coefficient_proposals_status", "crop_coefficient_proposals", ["status"])

    # ── Audit log ──
    op.create_table(
        "coefficient_audit_log",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "proposal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("crop_coefficient_proposals.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("proposal_version", sa.Integer, nullable=False),
        sa.Column(
            "action_type",
            PgENUM(
                "create", "update", "approve", "reject", "delete", "revert",
                name="audit_action", create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("before_snapshot", sa.Text, nullable=True),
        sa.Column("after_snapshot", sa.Text, nullable=True),
        sa.Column("actor", sa.String(200), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("source_entry_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("proposal_id", "proposal_version", name="uq_audit_proposal_version"),
    )
    op.create_index("ix_audit_proposal_id", "coefficient_audit_log", ["proposal_id"])
    op.create_index("ix_audit_created_at", "coefficient_audit_log", ["created_at"])
    op.create_index("ix_audit_action_type", "coefficient_audit_log", ["action_type"])

    # Append-only at the database level as well as in the ORM
    op.execute("""
        CREATE FUNCTION coefficient_audit_log_immutable() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'coefficient_audit_log is append-only';
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER coefficient_audit_log_no_update_delete
        BEFORE UPDATE OR DELETE ON coefficient_audit_log
        FOR EACH ROW EXECUTE FUNCTION coefficient_audit_log_immutable()
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS coefficient_audit_log_no_update_delete ON coefficient_audit_log")
    op.execute("DROP FUNCTION IF EXISTS coefficient_audit_log_immutable()")
    op.drop_index("ix_audit_action_type", table_name="coefficient_audit_log")
    op.drop_index("ix_audit_created_at", table_name="coefficient_audit_log")
    op.drop_index("ix_audit_proposal_id", table_name="coefficient_audit_log")
    op.drop_table("coefficient_audit_log")
    op.drop_index("ix_crop_coefficient_proposals_status", table_name="crop_coefficient_proposals")
    op.drop_index("ix_crop_coefficient_proposals_subject_id", table_name="crop_coefficient_proposals")
    op.drop_table("crop_coefficient_proposals")
    op.execute("DROP TYPE IF EXISTS audit_action")
    op.execute("DROP TYPE IF EXISTS proposal_status")
