"""
Boardroom Idea Review Service
Board domain models.

Models:
    - BoardThread: One board meeting (conversation) about an idea
    - BoardMessage: User submission or a role's formatted review
    - BoardAttachment: File uploaded with a user message
    - BoardAgent: Per-workspace definition of a board role agent
"""

import json
from datetime import datetime, timezone

from boardroom.models import db
from boardroom.models.base import WorkspaceModel


# ── Constants ────────────────────────────────────────────────────────────────

THREAD_STATUSES = ("Done", "Running", "Error")
MESSAGE_ROLES = ("user", "ceo", "cto", "cfo", "chair")


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class BoardThread(WorkspaceModel):
    """
    A board meeting. Created on first submission or explicitly; never
    deleted by the service. last_status mirrors the most recent run.
    """

    __tablename__ = "board_threads"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False, default="New board meeting")
    last_status = db.Column(db.String(20), nullable=False, default="Done")

    # Run lease: set while a run holds the thread, cleared by the final status update
    run_token = db.Column(db.String(32), nullable=True)
    run_started_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    messages = db.relationship("BoardMessage", backref="thread",
                               cascade="all, delete-orphan", order_by="BoardMessage.id",
                               lazy="dynamic")

    __table_args__ = (
        db.CheckConstraint(
            "last_status IN ('Done','Running','Error')",
            name="ck_board_thread_status",
        ),
        WorkspaceModel.workspace_composite_index("board_threads", "updated_at"),
    )

    def to_dict(self, include_messages=False):
        d = {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.title,
            "last_status": self.last_status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_messages:
            d["messages"] = [m.to_dict() for m in self.messages.all()]
        return d

    def __repr__(self):
        return f"<BoardThread {self.id} [{self.last_status}] ws={self.workspace_id}>"


class BoardMessage(WorkspaceModel):
    """User submission or one role's formatted review."""

    __tablename__ = "board_messages"

    id = db.Column(db.Integer, primary_key=True)
    thread_id = db.Column(db.Integer, db.ForeignKey("board_threads.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, comment="user | ceo | cto | cfo | chair")
    content = db.Column(db.Text, nullable=False, default="")
    attachments_json = db.Column(db.Text, default="[]", comment="Ordered attachment chips")
    is_error = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    attachments = db.relationship("BoardAttachment", backref="message",
                                  cascade="all, delete-orphan", order_by="BoardAttachment.id")

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('user','ceo','cto','cfo','chair')",
            name="ck_board_message_role",
        ),
    )

    @property
    def attachment_chips(self):
        try:
            chips = json.loads(self.attachments_json or "[]")
        except (TypeError, ValueError):
            return []
        return chips if isinstance(chips, list) else []

    def to_dict(self):
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "role": self.role,
            "content": self.content,
            "attachments": self.attachment_chips,
            "is_error": bool(self.is_error),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<BoardMessage {self.id} thread={self.thread_id} [{self.role}]>"


class BoardAttachment(WorkspaceModel):
    """File uploaded with a user message. extracted_text is set for text-like files only."""

    __tablename__ = "board_attachments"

    id = db.Column(db.Integer, primary_key=True)
    thread_id = db.Column(db.Integer, db.ForeignKey("board_threads.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    message_id = db.Column(db.Integer, db.ForeignKey("board_messages.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    file_name = db.Column(db.String(255), nullable=False)
    mime = db.Column(db.String(120), nullable=False, default="application/octet-stream")
    size = db.Column(db.Integer, nullable=False, default=0)
    storage_path = db.Column(db.String(500), nullable=False, comment="Relative storage locator")
    extracted_text = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_chip(self):
        return {
            "id": self.id,
            "filename": self.file_name,
            "mime": self.mime,
            "size": self.size,
        }

    def to_dict(self):
        d = self.to_chip()
        d.update({
            "thread_id": self.thread_id,
            "message_id": self.message_id,
            "storage_path": self.storage_path,
            "has_text": bool(self.extracted_text),
            "created_at": _iso(self.created_at),
        })
        return d

    def __repr__(self):
        return f"<BoardAttachment {self.id} {self.file_name!r} msg={self.message_id}>"


class BoardAgent(WorkspaceModel):
    """Per-workspace definition of a board role agent, kept in sync with the role registry."""

    __tablename__ = "board_agents"

    id = db.Column(db.Integer, primary_key=True)
    agent_key = db.Column(db.String(80), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, default="")
    system_prompt = db.Column(db.Text, default="")
    output_schema_json = db.Column(db.Text, default="{}")
    model = db.Column(db.String(80), default="")
    config_json = db.Column(db.Text, default="{}")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "agent_key", name="uq_board_agent_key"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "agent_key": self.agent_key,
            "role": self.role,
            "display_name": self.display_name,
            "description": self.description,
            "model": self.model,
            "is_active": bool(self.is_active),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<BoardAgent {self.agent_key} ws={self.workspace_id}>"
