"""board_review_tables

Creates the board review tables:
  - board_threads      board meetings with status and run lease
  - board_messages     user submissions and formatted role reviews
  - board_attachments  files uploaded with user messages
  - board_agents       per-workspace board role definitions
  - knowledge_items    text ingested from attachments
  - knowledge_links    workspace/agent visibility of knowledge items

Tables are created conditionally so the migration also runs against
databases that already received them via db.create_all().

Revision ID: 5e1b9c0d7a21
Revises:
Create Date: 2026-10-19 10:12:31.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1b9c0d7a21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Board threads ─────────────────────────────────────────────────────
    if "board_threads" not in existing:
        op.create_table(
            "board_threads",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workspace_id", sa.String(length=64), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("last_status", sa.String(length=20), nullable=False, server_default="Done"),
            sa.Column("run_token", sa.String(length=32), nullable=True),
            sa.Column("run_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("last_status IN ('Done','Running','Error')", name="ck_board_thread_status"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_board_threads_workspace_id", "board_threads", ["workspace_id"])
        op.create_index("ix_board_threads_workspace_updated_at", "board_threads",
                        ["workspace_id", "updated_at"])

    # ── Board messages ────────────────────────────────────────────────────
    if "board_messages" not in existing:
        op.create_table(
            "board_messages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workspace_id", sa.String(length=64), nullable=False),
            sa.Column("thread_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False,
                      comment="user | ceo | cto | cfo | chair"),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("attachments_json", sa.Text(), nullable=True, comment="Ordered attachment chips"),
            sa.Column("is_error", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("role IN ('user','ceo','cto','cfo','chair')", name="ck_board_message_role"),
            sa.ForeignKeyConstraint(["thread_id"], ["board_threads.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_board_messages_workspace_id", "board_messages", ["workspace_id"])
        op.create_index("ix_board_messages_thread_id", "board_messages", ["thread_id"])

    # ── Board attachments ─────────────────────────────────────────────────
    if "board_attachments" not in existing:
        op.create_table(
            "board_attachments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workspace_id", sa.String(length=64), nullable=False),
            sa.Column("thread_id", sa.Integer(), nullable=False),
            sa.Column("message_id", sa.Integer(), nullable=False),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("mime", sa.String(length=120), nullable=False),
            sa.Column("size", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("storage_path", sa.String(length=500), nullable=False,
                      comment="Relative storage locator"),
            sa.Column("extracted_text", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["thread_id"], ["board_threads.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["message_id"], ["board_messages.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_board_attachments_workspace_id", "board_attachments", ["workspace_id"])
        op.create_index("ix_board_attachments_thread_id", "board_attachments", ["thread_id"])
        op.create_index("ix_board_attachments_message_id", "board_attachments", ["message_id"])

    # ── Board agents ──────────────────────────────────────────────────────
    if "board_agents" not in existing:
        op.create_table(
            "board_agents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workspace_id", sa.String(length=64), nullable=False),
            sa.Column("agent_key", sa.String(length=80), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("display_name", sa.String(length=120), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("system_prompt", sa.Text(), nullable=True),
            sa.Column("output_schema_json", sa.Text(), nullable=True),
            sa.Column("model", sa.String(length=80), nullable=True),
            sa.Column("config_json", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("workspace_id", "agent_key", name="uq_board_agent_key"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_board_agents_workspace_id", "board_agents", ["workspace_id"])

    # ── Knowledge ─────────────────────────────────────────────────────────
    if "knowledge_items" not in existing:
        op.create_table(
            "knowledge_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workspace_id", sa.String(length=64), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("source_type", sa.String(length=40), nullable=False),
            sa.Column("source_url", sa.String(length=500), nullable=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("search_text", sa.Text(), nullable=True,
                      comment="Whitespace-collapsed title + content"),
            sa.Column("content_hash", sa.String(length=40), nullable=False,
                      comment="sha1 of stripped content"),
            sa.Column("tokens", sa.Integer(), nullable=True),
            sa.Column("meta_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_knowledge_items_workspace_id", "knowledge_items", ["workspace_id"])
        op.create_index("ix_knowledge_items_workspace_content_hash", "knowledge_items",
                        ["workspace_id", "content_hash"])

    if "knowledge_links" not in existing:
        op.create_table(
            "knowledge_links",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workspace_id", sa.String(length=64), nullable=False),
            sa.Column("knowledge_id", sa.Integer(), nullable=False),
            sa.Column("scope", sa.String(length=20), nullable=False, server_default="workspace"),
            sa.Column("agent_key", sa.String(length=80), nullable=False, server_default=""),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("scope IN ('workspace','agent')", name="ck_knowledge_link_scope"),
            sa.ForeignKeyConstraint(["knowledge_id"], ["knowledge_items.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("workspace_id", "knowledge_id", "agent_key", "scope",
                                name="uq_knowledge_link"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_knowledge_links_workspace_id", "knowledge_links", ["workspace_id"])
        op.create_index("ix_knowledge_links_knowledge_id", "knowledge_links", ["knowledge_id"])


def downgrade():
    for table in ("knowledge_links", "knowledge_items", "board_agents",
                  "board_attachments", "board_messages", "board_threads"):
        op.drop_table(table)
