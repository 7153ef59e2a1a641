"""Knowledge service: attachment ingestion and keyword retrieval for board runs.

Ingestion idempotency:
  An attachment maps to one KnowledgeItem per (workspace, content_hash,
  source_url). Re-ingesting the same file finds the existing row instead of
  creating a new one. Links are unique on (workspace, item, agent_key,
  scope); a concurrent duplicate insert is caught and the existing link is
  returned.

Retrieval:
  Token-overlap ranking over the items linked into a workspace (agent-scoped
  links first), deduplicated by content hash, rendered into a context block
  of at most ~1500 tokens.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from boardroom.models import db
from boardroom.models.knowledge import KnowledgeItem, KnowledgeLink
from boardroom.services.board_context import MAX_EXTRACTED_TEXT, human_size, sanitize_text

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Text utilities
# ---------------------------------------------------------------------------

CONTEXT_MAX_TOKENS = 1500
SNIPPET_MAX_CHARS = 400
DEFAULT_TOP_K = 6

STOP_WORDS = frozenset({
    # English
    "the", "and", "or", "but", "for", "with", "without", "from", "into", "about",
    "above", "below", "over", "under", "to", "of", "in", "on", "at", "by", "as",
    "is", "are", "was", "were", "be", "been", "being", "it", "this", "that",
    "these", "those", "we", "you", "they", "he", "she", "an",
    # Russian
    "и", "в", "во", "на", "но", "как", "ко", "от", "до", "по", "за", "из", "об",
    "про", "для", "без", "при", "над", "под", "надо", "если", "то", "же", "ли",
    "бы", "это", "эти", "этот", "эта", "эту", "мы", "вы", "они", "он", "она",
    "оно", "ты", "есть", "будет", "быть", "что", "где", "когда", "почему",
    "зачем", "уже", "еще", "ещё", "со", "или",
})


def estimate_tokens(text: str) -> int:
    """Whitespace word count; good enough for budgeting context blocks."""
    return len((text or "").split())


def hash_content(text: str) -> str:
    return hashlib.sha1((text or "").strip().encode("utf-8")).hexdigest()


def build_search_text(title: str, content: str) -> str:
    return re.sub(r"\s+", " ", f"{title or ''}\n{content or ''}").strip()


def tokenize(text: str) -> list[str]:
    words = re.findall(r"\w+", (text or "").lower())
    return [w for w in words if len(w) > 1 and w not in STOP_WORDS]


def _score(doc_tokens: list[str], query_set: set[str]) -> float:
    if not doc_tokens or not query_set:
        return 0.0
    overlap = sum(1 for token in doc_tokens if token in query_set)
    if not overlap:
        return 0.0
    return overlap / (1 + math.log(1 + len(doc_tokens)))


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


def _find_link(filters: dict) -> KnowledgeLink | None:
    return KnowledgeLink.query.filter_by(**filters).first()


def ensure_link(workspace_id: str, knowledge_id: int, scope: str = "workspace",
                agent_key: str | None = None) -> KnowledgeLink:
    """Return the link for (item, scope, agent), creating it if missing."""
    key = (agent_key or "") if scope == "agent" else ""
    filters = dict(workspace_id=workspace_id, knowledge_id=knowledge_id, scope=scope, agent_key=key)

    link = _find_link(filters)
    if link:
        return link
    try:
        with db.session.begin_nested():
            link = KnowledgeLink(**filters)
            db.session.add(link)
    except IntegrityError:
        # inserted concurrently since the lookup
        link = _find_link(filters)
    return link


def _attachment_content(attachment) -> tuple[str, str]:
    title = sanitize_text(attachment.file_name, 220) or "File"
    extracted = sanitize_text(attachment.extracted_text or "", MAX_EXTRACTED_TEXT)
    fallback = f"File: {title}. Type: {attachment.mime or 'unknown'}. Size: {human_size(attachment.size)}."
    return title, extracted or fallback


def ingest_attachments(workspace_id: str, attachments, scope: str = "workspace") -> dict:
    """Store attachments as knowledge items linked to the workspace.

    Returns:
        {"added": <attachments processed>, "created": <new items>}
    Caller commits.
    """
    added = created = 0
    for attachment in attachments or []:
        title, content = _attachment_content(attachment)
        source_url = sanitize_text(attachment.storage_path or "", 500) or title
        content_hash = hash_content(content)

        item = db.session.execute(
            select(KnowledgeItem).where(
                KnowledgeItem.workspace_id == workspace_id,
                KnowledgeItem.content_hash == content_hash,
                KnowledgeItem.source_url == source_url,
            )
        ).scalars().first()

        if item is None:
            search_text = build_search_text(title, content)
            item = KnowledgeItem(
                workspace_id=workspace_id,
                title=title,
                source_type="file",
                source_url=source_url,
                content=content,
                search_text=search_text,
                content_hash=content_hash,
                tokens=estimate_tokens(search_text),
                meta_json=json.dumps({"attachment_id": attachment.id, "mime": attachment.mime}),
            )
            db.session.add(item)
            db.session.flush()
            created += 1

        ensure_link(workspace_id, item.id, scope=scope)
        added += 1

    logger.info("Knowledge ingestion: %d attachments, %d new items", added, created,
                extra={"workspace_id": workspace_id})
    return {"added": added, "created": created}


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


def _rank(items: list[tuple[KnowledgeItem, str]], query_set: set[str]) -> list[tuple[float, KnowledgeItem, str]]:
    ranked = []
    for item, scope in items:
        tokens = tokenize(item.search_text or build_search_text(item.title, item.content))
        score = _score(tokens, query_set)
        if score > 0:
            ranked.append((score, item, scope))
    ranked.sort(key=lambda entry: entry[0], reverse=True)
    return ranked


def build_knowledge_context(results: list[dict], max_tokens: int = CONTEXT_MAX_TOKENS,
                            snippet_chars: int = SNIPPET_MAX_CHARS) -> tuple[str, list[str]]:
    blocks, snippets = [], []
    used_tokens = 0
    for index, result in enumerate(results, start=1):
        snippet = re.sub(r"\s+", " ", result["content"] or result["title"] or "").strip()[:snippet_chars]
        source = " | ".join(p for p in (result["source_type"], result["source_url"]) if p) or "unknown"
        block = "\n".join([
            f"{index}. title: {result['title']}",
            f"source: {source}",
            f"id: {result['id']}",
            f"snippet: {snippet}",
        ])
        block_tokens = estimate_tokens(block)
        if used_tokens + block_tokens > max_tokens:
            break
        used_tokens += block_tokens
        blocks.append(block)
        snippets.append(snippet)
    if not blocks:
        return "", []
    return "KNOWLEDGE_CONTEXT:\n" + "\n\n".join(blocks), snippets


def retrieve_knowledge(workspace_id: str, query: str, top_k: int = DEFAULT_TOP_K,
                       agent_key: str | None = None) -> dict:
    """Rank linked knowledge against ``query``.

    Returns:
        {"results": [...], "used": {...}, "context": str, "snippets": [...]}
    """
    empty = {"results": [], "used": {"workspace_items": 0, "agent_items": 0, "top_ids": []},
             "context": "", "snippets": []}
    query_set = set(tokenize(query))
    if not workspace_id or not query_set:
        return empty

    def linked(scope: str, key: str) -> list[tuple[KnowledgeItem, str]]:
        rows = db.session.execute(
            select(KnowledgeItem)
            .join(KnowledgeLink, KnowledgeLink.knowledge_id == KnowledgeItem.id)
            .where(
                KnowledgeLink.workspace_id == workspace_id,
                KnowledgeLink.scope == scope,
                KnowledgeLink.agent_key == key,
            )
        ).scalars().all()
        return [(item, scope) for item in rows]

    agent_items = linked("agent", agent_key) if agent_key else []
    ranked = _rank(agent_items, query_set) + _rank(linked("workspace", ""), query_set)

    results, seen = [], set()
    for score, item, scope in ranked:
        if len(results) >= top_k:
            break
        if item.content_hash in seen:
            continue
        seen.add(item.content_hash)
        results.append({
            "id": item.id,
            "title": item.title,
            "source_type": item.source_type,
            "source_url": item.source_url,
            "content": item.content,
            "content_hash": item.content_hash,
            "scope": scope,
            "score": round(score, 4),
        })

    context, snippets = build_knowledge_context(results)
    return {
        "results": results,
        "used": {
            "workspace_items": sum(1 for r in results if r["scope"] == "workspace"),
            "agent_items": sum(1 for r in results if r["scope"] == "agent"),
            "top_ids": [r["id"] for r in results],
        },
        "context": context,
        "snippets": snippets,
    }
