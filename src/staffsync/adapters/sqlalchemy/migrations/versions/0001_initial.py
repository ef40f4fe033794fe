"""Initial synchronization schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from staffsync.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001_initial"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_SESSION_STATUS = ("RUNNING", "COMPLETED", "PARTIAL", "FAILED")


def _session_status() -> sa.Enum:
    return sa.Enum(*_SESSION_STATUS, name="sessionstatus", native_enum=False)


def upgrade() -> None:
    op.create_table(
        "sync_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_type", sa.String(), nullable=False),
        sa.Column("mode", sa.String(), nullable=False),
        sa.Column("started_at", UTCDateTime(), nullable=False),
        sa.Column("completed_at", UTCDateTime(), nullable=True),
        sa.Column("status", _session_status(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("successful", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("no_data", sa.Integer(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_sync_session"),
    )
    op.create_index("ix_sync_session_started_at", "sync_session", ["started_at"])

    op.create_table(
        "reconstruction_run",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("mode", sa.String(), nullable=False),
        sa.Column("dry_run", sa.Boolean(), nullable=False),
        sa.Column("started_at", UTCDateTime(), nullable=False),
        sa.Column("completed_at", UTCDateTime(), nullable=True),
        sa.Column("status", _session_status(), nullable=False),
        sa.Column("events_processed", sa.Integer(), nullable=False),
        sa.Column("events_completed", sa.Integer(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_reconstruction_run"),
    )

    op.create_table(
        "snapshot_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("endpoint", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("collected_at", UTCDateTime(), nullable=False),
        sa.Column("last_verified_at", UTCDateTime(), nullable=False),
        sa.Column("effective_from", UTCDateTime(), nullable=False),
        sa.Column("effective_to", UTCDateTime(), nullable=True),
        sa.Column("is_latest", sa.Boolean(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("is_partial", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("sync_session_id", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(
            ["sync_session_id"],
            ["sync_session.id"],
            name="fk_snapshot_record_sync_session_id_sync_session",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_snapshot_record"),
    )
    op.create_index(
        "uq_snapshot_record_latest",
        "snapshot_record",
        ["entity_id", "endpoint"],
        unique=True,
        sqlite_where=sa.text("is_latest"),
        postgresql_where=sa.text("is_latest"),
    )
    op.create_index(
        "ix_snapshot_record_history",
        "snapshot_record",
        ["entity_id", "endpoint", "effective_from"],
    )

    op.create_table(
        "change_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("endpoint", sa.String(), nullable=False),
        sa.Column("field_path", sa.String(), nullable=False),
        sa.Column("old_value", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("new_value", sa.JSON(none_as_null=True), nullable=True),
        sa.Column(
            "change_type",
            sa.Enum("CREATED", "UPDATED", name="changetype", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "category",
            sa.Enum(
                "PERSONAL",
                "SALARY",
                "HOURS",
                "CONTRACT",
                "ROLE",
                "STATUS",
                name="fieldcategory",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("is_significant", sa.Boolean(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("detected_at", UTCDateTime(), nullable=False),
        sa.Column("effective_date", UTCDateTime(), nullable=True),
        sa.Column("snapshot_id", sa.Uuid(), nullable=True),
        sa.Column("previous_snapshot_id", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(
            ["snapshot_id"],
            ["snapshot_record.id"],
            name="fk_change_record_snapshot_id_snapshot_record",
        ),
        sa.ForeignKeyConstraint(
            ["previous_snapshot_id"],
            ["snapshot_record.id"],
            name="fk_change_record_previous_snapshot_id_snapshot_record",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_change_record"),
    )
    op.create_index("ix_change_record_entity", "change_record", ["entity_id", "detected_at"])

    op.create_table(
        "timeline_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column(
            "event_type",
            sa.Enum(
                "ENTITY_ADDED",
                "SALARY_CHANGE",
                "HOURS_CHANGE",
                "CONTRACT_CHANGE",
                "STATUS_CHANGE",
                "DATA_UPDATE",
                name="eventtype",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("event_date", UTCDateTime(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("event_data", sa.JSON(), nullable=False),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("change_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["change_id"],
            ["change_record.id"],
            name="fk_timeline_event_change_id_change_record",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_timeline_event"),
    )
    op.create_index(
        "ix_timeline_event_ordering",
        "timeline_event",
        ["entity_id", "event_date", "sequence_order"],
    )

    op.create_table(
        "reconstructed_state",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("state_version", sa.Integer(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False),
        sa.Column("computed_at", UTCDateTime(), nullable=False),
        sa.Column("superseded_at", UTCDateTime(), nullable=True),
        sa.Column("change_source", sa.String(), nullable=False),
        sa.Column("change_confidence", sa.Float(), nullable=False),
        sa.Column("fields_changed", sa.JSON(), nullable=False),
        sa.Column("employee_number_at_event", sa.String(), nullable=True),
        sa.Column("email_at_event", sa.String(), nullable=True),
        sa.Column("first_name_at_event", sa.String(), nullable=True),
        sa.Column("last_name_at_event", sa.String(), nullable=True),
        sa.Column("birth_date_at_event", sa.String(), nullable=True),
        sa.Column("phone_number_at_event", sa.String(), nullable=True),
        sa.Column("month_wage_at_event", sa.Float(), nullable=True),
        sa.Column("hour_wage_at_event", sa.Float(), nullable=True),
        sa.Column("annual_salary_at_event", sa.Float(), nullable=True),
        sa.Column("net_monthly_at_event", sa.Float(), nullable=True),
        sa.Column("hours_per_week_at_event", sa.Float(), nullable=True),
        sa.Column("days_per_week_at_event", sa.Float(), nullable=True),
        sa.Column("contract_id_at_event", sa.String(), nullable=True),
        sa.Column("contract_type_at_event", sa.String(), nullable=True),
        sa.Column("employment_type_at_event", sa.String(), nullable=True),
        sa.Column("contract_start_date_at_event", sa.String(), nullable=True),
        sa.Column("contract_end_date_at_event", sa.String(), nullable=True),
        sa.Column("phase_at_event", sa.String(), nullable=True),
        sa.Column("function_name_at_event", sa.String(), nullable=True),
        sa.Column("cost_center_name_at_event", sa.String(), nullable=True),
        sa.Column("cost_center_code_at_event", sa.String(), nullable=True),
        sa.Column("manager_name_at_event", sa.String(), nullable=True),
        sa.Column("status_at_event", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["timeline_event.id"],
            name="fk_reconstructed_state_event_id_timeline_event",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_reconstructed_state"),
        sa.UniqueConstraint("event_id", "revision", name="uq_reconstructed_state_event_revision"),
    )
    op.create_index(
        "ix_reconstructed_state_version",
        "reconstructed_state",
        ["entity_id", "state_version"],
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("employes_id", sa.String(), nullable=True),
        sa.Column("employee_number", sa.String(), nullable=True),
        sa.Column("hourly_wage", sa.Float(), nullable=True),
        sa.Column("hours_per_week", sa.Float(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("last_sync_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_staff"),
        sa.UniqueConstraint("employes_id", name="uq_staff_employes_id"),
    )

    op.create_table(
        "sync_conflict",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("staff_id", sa.Uuid(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("conflicts", sa.JSON(), nullable=False),
        sa.Column("detected_at", UTCDateTime(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("OPEN", "RESOLVED", name="conflictstatus", native_enum=False),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["staff_id"],
            ["staff.id"],
            name="fk_sync_conflict_staff_id_staff",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_sync_conflict"),
    )


def downgrade() -> None:
    op.drop_table("sync_conflict")
    op.drop_table("staff")
    op.drop_index("ix_reconstructed_state_version", table_name="reconstructed_state")
    op.drop_table("reconstructed_state")
    op.drop_index("ix_timeline_event_ordering", table_name="timeline_event")
    op.drop_table("timeline_event")
    op.drop_index("ix_change_record_entity", table_name="change_record")
    op.drop_table("change_record")
    op.drop_index("ix_snapshot_record_history", table_name="snapshot_record")
    op.drop_index("uq_snapshot_record_latest", table_name="snapshot_record")
    op.drop_table("snapshot_record")
    op.drop_table("reconstruction_run")
    op.drop_index("ix_sync_session_started_at", table_name="sync_session")
    op.drop_table("sync_session")
