"""Back-office records, approvals, activity log and asset cleanup queue.

Revision ID: a1b2c3d4e501
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "a1b2c3d4e501"
down_revision = None
branch_labels = None
depends_on = None


def _reviewable_columns():
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("current_approval_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade():
    # ── Records ──
    op.create_table(
        "work_programs",
        *_reviewable_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("schedule", sa.String(255), nullable=True),
        sa.Column("funds", sa.Float, nullable=False, server_default="0"),
        sa.Column("used_funds", sa.Float, nullable=False, server_default="0"),
        sa.Column("remaining_funds", sa.Float, nullable=False, server_default="0"),
        sa.Column("goal", sa.Text, nullable=True),
        sa.Column("period_id", sa.String(36), nullable=True, index=True),
        sa.Column("responsible_id", sa.String(64), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True, index=True),
    )

    op.create_table(
        "events",
        *_reviewable_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("goal", sa.Text, nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("responsible_id", sa.String(64), nullable=True),
        sa.Column("work_program_id", sa.String(36),
                  sa.ForeignKey("work_programs.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("category_id", sa.String(36), nullable=True),
        sa.Column("period_id", sa.String(36), nullable=True, index=True),
        sa.Column("schedules", sa.JSON, nullable=True),
        sa.Column("thumbnail", sa.String(500), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True, index=True),
    )

    op.create_table(
        "finances",
        *_reviewable_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("amount", sa.Float, nullable=False, server_default="0"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("category_id", sa.String(36), nullable=True),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("period_id", sa.String(36), nullable=True, index=True),
        sa.Column("event_id", sa.String(36),
                  sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("proof", sa.String(500), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True, index=True),
    )

    op.create_table(
        "letters",
        *_reviewable_columns(),
        sa.Column("number", sa.String(100), nullable=False),
        sa.Column("regarding", sa.String(500), nullable=False),
        sa.Column("origin", sa.String(255), nullable=True),
        sa.Column("destination", sa.String(255), nullable=True),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="NORMAL"),
        sa.Column("body", sa.Text, nullable=True),
        sa.Column("letter", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("approved_by_id", sa.String(64), nullable=True),
        sa.Column("period_id", sa.String(36), nullable=True, index=True),
        sa.Column("event_id", sa.String(36),
                  sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("created_by_id", sa.String(64), nullable=True, index=True),
    )

    op.create_table(
        "documents",
        *_reviewable_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("document", sa.String(500), nullable=False),
        sa.Column("document_type_id", sa.String(36), nullable=True),
        sa.Column("event_id", sa.String(36),
                  sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("letter_id", sa.String(36),
                  sa.ForeignKey("letters.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("user_id", sa.String(64), nullable=True, index=True),
    )

    op.create_table(
        "structures",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("period_id", sa.String(36), nullable=True, index=True),
        sa.Column("decree", sa.String(500), nullable=True),
        sa.Column("structure", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ── Approvals ──
    op.create_table(
        "approvals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("entity_type", sa.String(40), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_approval_entity", "approvals", ["entity_type", "entity_id"])
    op.create_index("idx_approval_status", "approvals", ["status"])
    op.create_index("idx_approval_created", "approvals", ["created_at"])

    op.create_table(
        "approval_history",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("approval_id", sa.String(36), nullable=False),
        sa.Column("entity_type", sa.String(40), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(20), nullable=False, server_default="status_changed"),
        sa.Column("from_status", sa.String(20), nullable=True),
        sa.Column("to_status", sa.String(20), nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_approval_history_approval", "approval_history", ["approval_id"])
    op.create_index("idx_approval_history_entity", "approval_history", ["entity_type", "entity_id"])

    # ── Activity Log ──
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("activity_type", sa.String(20), nullable=False),
        sa.Column("entity_type", sa.String(40), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_activity_entity", "activity_logs", ["entity_type", "entity_id"])
    op.create_index("idx_activity_user", "activity_logs", ["user_id"])
    op.create_index("idx_activity_type", "activity_logs", ["activity_type"])
    op.create_index("idx_activity_created", "activity_logs", ["created_at"])

    # ── Drive Cleanup Queue + Scheduler ──
    op.create_table(
        "asset_cleanup_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("object_id", sa.String(255), nullable=False),
        sa.Column("asset_class", sa.String(40), nullable=False),
        sa.Column("reason", sa.String(20), nullable=False, server_default="replaced"),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default="3"),
        sa.Column("not_before", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_asset_cleanup_due", "asset_cleanup_tasks", ["status", "not_before"])

    op.create_table(
        "scheduled_jobs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("job_name", sa.String(100), unique=True, nullable=False),
        sa.Column("description", sa.String(500), server_default=""),
        sa.Column("schedule_type", sa.String(30), server_default="interval"),
        sa.Column("schedule_config", sa.JSON, nullable=True),
        sa.Column("status", sa.String(20), server_default="active"),
        sa.Column("is_enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_run_status", sa.String(20), nullable=True),
        sa.Column("last_run_duration_ms", sa.Integer, nullable=True),
        sa.Column("last_run_result", sa.JSON, nullable=True),
        sa.Column("run_count", sa.Integer, server_default="0"),
        sa.Column("error_count", sa.Integer, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("scheduled_jobs")
    op.drop_index("idx_asset_cleanup_due", table_name="asset_cleanup_tasks")
    op.drop_table("asset_cleanup_tasks")
    op.drop_table("activity_logs")
    op.drop_table("approval_history")
    op.drop_table("approvals")
    op.drop_table("structures")
    op.drop_table("documents")
    op.drop_table("letters")
    op.drop_table("finances")
    op.drop_table("events")
    op.drop_table("work_programs")
