"""Query records, sub-queries, remarks, chat, update log, branches, users"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_query_workflow_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("branch", sa.String(length=64), nullable=True),
        sa.Column("assigned_branches", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("permissions", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", name="uq_users_employee_id"),
        sa.CheckConstraint("role IN ('admin', 'operations', 'sales', 'credit')", name="ck_users_role"),
    )

    op.create_table(
        "branches",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("region", sa.String(length=64), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("city", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_branches_code"),
    )

    # Legacy routing columns (team, send_to_*) are folded into visible_to by 0002.
    op.create_table(
        "query_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("app_no", sa.String(length=64), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
        sa.Column("branch", sa.String(length=255), nullable=True),
        sa.Column("branch_code", sa.String(length=32), nullable=True),
        sa.Column("assigned_to_branch", sa.String(length=32), nullable=True),
        sa.Column("marked_for_team", sa.String(length=10), nullable=False),
        sa.Column("visible_to", postgresql.JSONB(), nullable=True),
        sa.Column("team", sa.String(length=32), nullable=True),
        sa.Column("send_to_sales", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("send_to_credit", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("submitted_by", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "marked_for_team IN ('sales', 'credit', 'both')",
            name="ck_query_records_marked_for_team",
        ),
    )
    op.create_index("ix_query_records_app_no", "query_records", ["app_no"])
    op.create_index("ix_query_records_branch_code", "query_records", ["branch_code"])
    op.create_index("ix_query_records_status_created", "query_records", ["status", "created_at"])

    op.create_table(
        "sub_queries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("record_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("proposed_action", sa.String(length=20), nullable=True),
        sa.Column("proposed_by", sa.String(length=255), nullable=True),
        sa.Column("proposed_by_team", sa.String(length=32), nullable=True),
        sa.Column("proposed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("resolved_by", sa.String(length=255), nullable=True),
        sa.Column("resolved_by_team", sa.String(length=32), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_reason", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to_branch", sa.String(length=32), nullable=True),
        sa.Column("reverted_by", sa.String(length=255), nullable=True),
        sa.Column("reverted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revert_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["record_id"], ["query_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'resolved', 'approved', 'deferred', 'otc', "
            "'waiting for approval', 'waived', 'reverted')",
            name="ck_sub_queries_status",
        ),
    )
    op.create_index("ix_sub_queries_record_position", "sub_queries", ["record_id", "position"])

    op.create_table(
        "query_remarks",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("record_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("author_role", sa.String(length=32), nullable=False),
        sa.Column("author_team", sa.String(length=32), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["record_id"], ["query_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_query_remarks_record_id", "query_remarks", ["record_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("query_id", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("sender", sa.String(length=255), nullable=False),
        sa.Column("sender_role", sa.String(length=32), nullable=False),
        sa.Column("team", sa.String(length=32), nullable=False),
        sa.Column("action_type", sa.String(length=32), nullable=False, server_default="message"),
        sa.Column("is_system_message", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chat_messages_query_timestamp", "chat_messages", ["query_id", "timestamp"])
    op.create_index("ix_chat_messages_query_sender", "chat_messages", ["query_id", "sender", "timestamp"])

    op.create_table(
        "query_updates",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("query_id", sa.String(length=64), nullable=False),
        sa.Column("app_no", sa.String(length=64), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("branch", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("action", sa.String(length=40), nullable=False),
        sa.Column("team", sa.String(length=32), nullable=True),
        sa.Column("marked_for_team", sa.String(length=10), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_query_updates_query_id", "query_updates", ["query_id"])
    op.create_index("ix_query_updates_timestamp", "query_updates", ["timestamp"])

    op.create_table(
        "sanctioned_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("app_no", sa.String(length=64), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("branch_code", sa.String(length=32), nullable=True),
        sa.Column("sanctioned_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("sanctioned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("app_no", name="uq_sanctioned_applications_app_no"),
    )
    op.create_index("ix_sanctioned_applications_branch_code", "sanctioned_applications", ["branch_code"])


def downgrade() -> None:
    op.drop_index("ix_sanctioned_applications_branch_code", table_name="sanctioned_applications")
    op.drop_table("sanctioned_applications")
    op.drop_index("ix_query_updates_timestamp", table_name="query_updates")
    op.drop_index("ix_query_updates_query_id", table_name="query_updates")
    op.drop_table("query_updates")
    op.drop_index("ix_chat_messages_query_sender", table_name="chat_messages")
    op.drop_index("ix_chat_messages_query_timestamp", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("ix_query_remarks_record_id", table_name="query_remarks")
    op.drop_table("query_remarks")
    op.drop_index("ix_sub_queries_record_position", table_name="sub_queries")
    op.drop_table("sub_queries")
    op.drop_index("ix_query_records_status_created", table_name="query_records")
    op.drop_index("ix_query_records_branch_code", table_name="query_records")
    op.drop_index("ix_query_records_app_no", table_name="query_records")
    op.drop_table("query_records")
    op.drop_table("branches")
    op.drop_table("users")
