"""create content import tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "content_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identity_code", sa.String(length=64), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("micro_skill_id", sa.Integer(), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("attributes", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("lifecycle_state", sa.String(length=32), nullable=False),
        sa.Column("created_by", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identity_code", name="uq_content_records_identity_code"),
    )
    op.create_index(
        "ix_content_records_classification",
        "content_records",
        ["module_id", "micro_skill_id"],
        unique=False,
    )
    op.create_index("ix_content_records_lifecycle_state", "content_records", ["lifecycle_state"], unique=False)

    op.create_table(
        "import_batches",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("actor_id", sa.String(length=120), nullable=False),
        sa.Column("actor_name", sa.String(length=255), nullable=False),
        sa.Column("file_name", sa.String(length=500), nullable=False),
        sa.Column("file_kind", sa.String(length=16), nullable=False, comment="csv, excel, json"),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("processed_rows", sa.Integer(), nullable=False),
        sa.Column("successful", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("skipped", sa.Integer(), nullable=False, comment="Reserved; no skip path exists yet"),
        sa.Column(
            "validation_summary",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="{valid, invalid, warnings} counts written once after validation",
        ),
        sa.Column("errors", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("warnings", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "created_record_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Ids of content records created by this batch, in creation order",
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rolled_back_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rolled_back_by", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_import_batches_actor_created_at",
        "import_batches",
        ["actor_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_import_batches_status_created_at",
        "import_batches",
        ["status", "created_at"],
        unique=False,
    )

    op.create_table(
        "record_audit_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("record_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("record_code", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("actor_id", sa.String(length=120), nullable=False),
        sa.Column("actor_name", sa.String(length=255), nullable=False),
        sa.Column(
            "changes",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="[{field, old_value, new_value}]; empty for bulk create",
        ),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "context",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Request context such as ip_address and user_agent",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_record_audit_entries_record_created",
        "record_audit_entries",
        ["record_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_record_audit_entries_actor_created",
        "record_audit_entries",
        ["actor_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_record_audit_entries_batch_id", "record_audit_entries", ["batch_id"], unique=False)
    op.create_index("ix_record_audit_entries_action", "record_audit_entries", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_record_audit_entries_action", table_name="record_audit_entries")
    op.drop_index("ix_record_audit_entries_batch_id", table_name="record_audit_entries")
    op.drop_index("ix_record_audit_entries_actor_created", table_name="record_audit_entries")
    op.drop_index("ix_record_audit_entries_record_created", table_name="record_audit_entries")
    op.drop_table("record_audit_entries")

    op.drop_index("ix_import_batches_status_created_at", table_name="import_batches")
    op.drop_index("ix_import_batches_actor_created_at", table_name="import_batches")
    op.drop_table("import_batches")

    op.drop_index("ix_content_records_lifecycle_state", table_name="content_records")
    op.drop_index("ix_content_records_classification", table_name="content_records")
    op.drop_table("content_records")
