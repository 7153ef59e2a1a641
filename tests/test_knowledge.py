"""
Tests for knowledge ingestion and retrieval.

Covers:
  - tokenization with English and Russian stop words
  - idempotent ingestion (one item per content hash + source, one link)
  - fallback content for files without extracted text
  - ranking, workspace isolation, agent-scoped links, hash dedupe
  - context block rendering and the empty-query shape
"""

import json

from boardroom.models import db
from boardroom.models.board import BoardAttachment
from boardroom.models.knowledge import KnowledgeItem, KnowledgeLink
from boardroom.services import knowledge_service
from boardroom.services.knowledge_service import (
    build_knowledge_context,
    ensure_link,
    hash_content,
    ingest_attachments,
    retrieve_knowledge,
    tokenize,
)

PRICING = "Pilot pricing for the Spain launch. Pricing tiers and discounts."
HIRING = "Hiring plan for two backend engineers."


def _attachment(att_id, name, text, path=None, mime="text/plain", size=100):
    return BoardAttachment(
        id=att_id,
        file_name=name,
        mime=mime,
        size=size,
        storage_path=path or f"1/{att_id}-{name}",
        extracted_text=text,
    )


def _ingest(workspace_id, *attachments):
    result = ingest_attachments(workspace_id, list(attachments))
    db.session.commit()
    return result


class TestTokenize:
    def test_stop_words_and_short_tokens_removed(self):
        assert tokenize("The pricing of a Pilot") == ["pricing", "pilot"]

    def test_russian(self):
        assert tokenize("Рост продаж и выручки на 20%") == ["рост", "продаж", "выручки", "20"]

    def test_hash_ignores_surrounding_whitespace(self):
        assert hash_content("  text \n") == hash_content("text")


class TestIngestion:
    def test_creates_item_and_workspace_link(self, workspace_id):
        result = _ingest(workspace_id, _attachment(1, "pricing.txt", PRICING))

        assert result == {"added": 1, "created": 1}
        item = KnowledgeItem.query.one()
        assert item.workspace_id == workspace_id
        assert item.source_type == "file"
        assert item.title == "pricing.txt"
        assert item.content == PRICING
        assert item.content_hash == hash_content(PRICING)
        assert json.loads(item.meta_json)["attachment_id"] == 1
        link = KnowledgeLink.query.one()
        assert (link.scope, link.agent_key, link.knowledge_id) == ("workspace", "", item.id)

    def test_reingest_is_idempotent(self, workspace_id):
        att = _attachment(1, "pricing.txt", PRICING)
        _ingest(workspace_id, att)
        second = _ingest(workspace_id, att)

        assert second == {"added": 1, "created": 0}
        assert KnowledgeItem.query.count() == 1
        assert KnowledgeLink.query.count() == 1

    def test_file_without_text_gets_descriptor(self, workspace_id):
        _ingest(workspace_id, _attachment(2, "deck.pdf", None, mime="application/pdf", size=2048))
        item = KnowledgeItem.query.one()
        assert item.content == "File: deck.pdf. Type: application/pdf. Size: 2 KB."

    def test_ensure_link_returns_existing(self, workspace_id):
        _ingest(workspace_id, _attachment(1, "pricing.txt", PRICING))
        item = KnowledgeItem.query.one()

        first = ensure_link(workspace_id, item.id, scope="agent", agent_key="board-cfo")
        again = ensure_link(workspace_id, item.id, scope="agent", agent_key="board-cfo")
        db.session.commit()

        assert first.id == again.id
        assert KnowledgeLink.query.filter_by(scope="agent").count() == 1

    def test_link_conflict_returns_existing_row(self, workspace_id, monkeypatch):
        _ingest(workspace_id, _attachment(1, "pricing.txt", PRICING))
        item = KnowledgeItem.query.one()
        existing = ensure_link(workspace_id, item.id, scope="agent", agent_key="board-cto")
        db.session.commit()
        existing_id = existing.id

        # The lookup before the insert misses, as if another request inserted the row meanwhile
        real_find = knowledge_service._find_link
        calls = []

        def find_link(filters):
            calls.append(filters)
            return None if len(calls) == 1 else real_find(filters)

        monkeypatch.setattr(knowledge_service, "_find_link", find_link)

        link = ensure_link(workspace_id, item.id, scope="agent", agent_key="board-cto")
        db.session.commit()

        assert link is not None
        assert len(calls) == 2
        assert link.id == existing_id
        assert KnowledgeLink.query.filter_by(scope="agent").count() == 1

    def test_workspace_scope_ignores_agent_key(self, workspace_id):
        _ingest(workspace_id, _attachment(1, "pricing.txt", PRICING))
        item = KnowledgeItem.query.one()
        link = ensure_link(workspace_id, item.id, scope="workspace", agent_key="board-ceo")
        assert link.agent_key == ""
        assert KnowledgeLink.query.count() == 1


class TestRetrieval:
    def test_ranks_matching_items(self, workspace_id):
        _ingest(workspace_id,
                _attachment(1, "pricing.txt", PRICING),
                _attachment(2, "hiring.txt", HIRING))

        result = retrieve_knowledge(workspace_id, "pricing pilot in Spain")

        assert [r["title"] for r in result["results"]] == ["pricing.txt"]
        assert result["used"]["workspace_items"] == 1
        assert result["used"]["top_ids"] == [result["results"][0]["id"]]
        assert result["context"].startswith("KNOWLEDGE_CONTEXT:\n1. title: pricing.txt")
        assert result["snippets"] == [PRICING]

    def test_other_workspace_invisible(self, workspace_id):
        _ingest("ws-other", _attachment(1, "pricing.txt", PRICING))
        assert retrieve_knowledge(workspace_id, "pricing pilot")["results"] == []

    def test_duplicate_content_returned_once(self, workspace_id):
        _ingest(workspace_id,
                _attachment(1, "pricing.txt", PRICING, path="1/a-pricing.txt"),
                _attachment(2, "pricing-copy.txt", PRICING, path="2/b-pricing-copy.txt"))

        assert KnowledgeItem.query.count() == 2
        assert len(retrieve_knowledge(workspace_id, "pricing")["results"]) == 1

    def test_agent_scope_first(self, workspace_id):
        _ingest(workspace_id,
                _attachment(1, "pricing.txt", PRICING),
                _attachment(2, "hiring.txt", HIRING + " Pricing of hires."))
        hiring = KnowledgeItem.query.filter_by(title="hiring.txt").one()
        ensure_link(workspace_id, hiring.id, scope="agent", agent_key="board-cfo")
        db.session.commit()

        result = retrieve_knowledge(workspace_id, "pricing", agent_key="board-cfo")

        assert result["results"][0]["title"] == "hiring.txt"
        assert result["results"][0]["scope"] == "agent"
        assert result["used"]["agent_items"] == 1
        assert result["used"]["workspace_items"] == 1

    def test_top_k(self, workspace_id):
        _ingest(workspace_id, *[
            _attachment(i, f"note{i}.txt", f"pricing note number {i}") for i in range(1, 5)
        ])
        assert len(retrieve_knowledge(workspace_id, "pricing", top_k=2)["results"]) == 2

    def test_stop_word_query_is_empty(self, workspace_id):
        _ingest(workspace_id, _attachment(1, "pricing.txt", PRICING))
        result = retrieve_knowledge(workspace_id, "и в на the")
        assert result == {
            "results": [],
            "used": {"workspace_items": 0, "agent_items": 0, "top_ids": []},
            "context": "",
            "snippets": [],
        }


class TestContextBlock:
    def _result(self, i, content):
        return {"id": i, "title": f"doc{i}", "source_type": "file", "source_url": f"1/doc{i}",
                "content": content}

    def test_block_format(self):
        context, snippets = build_knowledge_context([self._result(7, "line one\n\nline two")])
        assert context == (
            "KNOWLEDGE_CONTEXT:\n"
            "1. title: doc7\n"
            "source: file | 1/doc7\n"
            "id: 7\n"
            "snippet: line one line two"
        )
        assert snippets == ["line one line two"]

    def test_token_budget_stops_adding_blocks(self):
        results = [self._result(i, "word " * 80) for i in range(1, 6)]
        context, snippets = build_knowledge_context(results, max_tokens=200)
        assert len(snippets) == 2
        assert "3. title" not in context

    def test_empty(self):
        assert build_knowledge_context([]) == ("", [])
