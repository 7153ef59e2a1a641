"""
Boardroom Idea Review Service
Knowledge models.

Models:
    - KnowledgeItem: Text ingested from board attachments (deduplicated by hash + source)
    - KnowledgeLink: Makes an item visible to the whole workspace or to one agent
"""

import json
from datetime import datetime, timezone

from boardroom.models import db
from boardroom.models.base import WorkspaceModel

KNOWLEDGE_SCOPES = ("workspace", "agent")


def _utcnow():
    return datetime.now(timezone.utc)


class KnowledgeItem(WorkspaceModel):
    """Ingested knowledge text. (workspace_id, content_hash, source_url) identifies an item."""

    __tablename__ = "knowledge_items"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    source_type = db.Column(db.String(40), nullable=False, default="file")
    source_url = db.Column(db.String(500), nullable=True)
    content = db.Column(db.Text, nullable=False)
    search_text = db.Column(db.Text, default="", comment="Whitespace-collapsed title + content")
    content_hash = db.Column(db.String(40), nullable=False, comment="sha1 of stripped content")
    tokens = db.Column(db.Integer, default=0)
    meta_json = db.Column(db.Text, default="{}")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    links = db.relationship("KnowledgeLink", backref="item",
                            cascade="all, delete-orphan", lazy="dynamic")

    __table_args__ = (
        WorkspaceModel.workspace_composite_index("knowledge_items", "content_hash"),
    )

    @property
    def meta(self):
        try:
            return json.loads(self.meta_json or "{}")
        except (TypeError, ValueError):
            return {}

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.title,
            "source_type": self.source_type,
            "source_url": self.source_url,
            "content_hash": self.content_hash,
            "tokens": self.tokens,
            "meta": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<KnowledgeItem {self.id} {self.title!r}>"


class KnowledgeLink(WorkspaceModel):
    """
    Visibility link. agent_key is "" for workspace scope so the unique
    constraint also covers workspace-wide links.
    """

    __tablename__ = "knowledge_links"

    id = db.Column(db.Integer, primary_key=True)
    knowledge_id = db.Column(db.Integer, db.ForeignKey("knowledge_items.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    scope = db.Column(db.String(20), nullable=False, default="workspace")
    agent_key = db.Column(db.String(80), nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "knowledge_id", "agent_key", "scope",
                            name="uq_knowledge_link"),
        db.CheckConstraint("scope IN ('workspace','agent')", name="ck_knowledge_link_scope"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "knowledge_id": self.knowledge_id,
            "scope": self.scope,
            "agent_key": self.agent_key or None,
        }
