"""
Tests for per-workspace maintenance: the TTL cache, board agent sync and
participant cards.

Covers:
  - MaintenanceCache freshness, expiry at the TTL boundary, invalidation
  - ensure_board_agents: create, no-op resync, update of changed rows,
    reactivation, model overrides from config
  - build_participant_cards: status per role, run errors, in-progress runs
"""

import json

import pytest

from boardroom.models import db
from boardroom.models.board import BoardAgent
from boardroom.services.agent_sync import ensure_board_agents
from boardroom.services.maintenance_cache import MaintenanceCache
from boardroom.services.participants import (
    STATUS_DONE,
    STATUS_ERROR,
    STATUS_IN_PROGRESS,
    STATUS_NO_DATA,
    build_participant_cards,
    short_error,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


# ═════════════════════════════════════════════════════════════════════════
# MaintenanceCache
# ═════════════════════════════════════════════════════════════════════════


class TestMaintenanceCache:
    def test_unknown_workspace_is_stale(self):
        assert MaintenanceCache().is_fresh("ws") is False

    def test_fresh_until_ttl(self):
        clock = FakeClock()
        cache = MaintenanceCache(ttl_seconds=60, clock=clock)
        cache.mark("ws")

        clock.now += 59
        assert cache.is_fresh("ws") is True

        clock.now += 1
        assert cache.is_fresh("ws") is False
        assert len(cache) == 0

    def test_workspaces_independent(self):
        cache = MaintenanceCache(clock=FakeClock())
        cache.mark("ws-a")
        assert cache.is_fresh("ws-a")
        assert not cache.is_fresh("ws-b")

    def test_invalidate_one_and_all(self):
        cache = MaintenanceCache(clock=FakeClock())
        cache.mark("ws-a")
        cache.mark("ws-b")

        cache.invalidate("ws-a")
        assert not cache.is_fresh("ws-a")
        assert cache.is_fresh("ws-b")

        cache.invalidate()
        assert len(cache) == 0


# ═════════════════════════════════════════════════════════════════════════
# Agent sync
# ═════════════════════════════════════════════════════════════════════════


class TestAgentSync:
    def test_creates_four_agents(self, app, workspace_id):
        result = ensure_board_agents(workspace_id)

        assert result == {"created": 4, "updated": 0, "total": 4}
        agents = {a.agent_key: a for a in BoardAgent.query.filter_by(workspace_id=workspace_id)}
        assert set(agents) == {"board-ceo", "board-cto", "board-cfo", "board-chair"}
        assert agents["board-chair"].role == "chair"
        assert json.loads(agents["board-ceo"].config_json)["temperature"] == 0.3
        assert agents["board-ceo"].model == (app.config["BOARD_MODEL_CEO"] or app.config["LLM_DEFAULT_MODEL"])

    def test_resync_is_noop(self, workspace_id):
        ensure_board_agents(workspace_id)
        assert ensure_board_agents(workspace_id) == {"created": 0, "updated": 0, "total": 4}

    def test_changed_and_inactive_rows_updated(self, workspace_id):
        ensure_board_agents(workspace_id)
        cto = BoardAgent.query.filter_by(workspace_id=workspace_id, agent_key="board-cto").one()
        cto.description = "edited by hand"
        cfo = BoardAgent.query.filter_by(workspace_id=workspace_id, agent_key="board-cfo").one()
        cfo.is_active = False
        db.session.commit()

        result = ensure_board_agents(workspace_id)

        assert result["updated"] == 2
        db.session.refresh(cto)
        db.session.refresh(cfo)
        assert cto.description != "edited by hand"
        assert cfo.is_active is True

    def test_model_override(self, app, workspace_id, monkeypatch):
        monkeypatch.setitem(app.config, "BOARD_MODEL_CFO", "finance-model")
        ensure_board_agents(workspace_id)
        cfo = BoardAgent.query.filter_by(workspace_id=workspace_id, agent_key="board-cfo").one()
        assert cfo.model == "finance-model"

    def test_workspaces_isolated(self, workspace_id):
        ensure_board_agents(workspace_id)
        ensure_board_agents("ws-other")
        assert BoardAgent.query.count() == 8

    def test_empty_workspace_id_writes_nothing(self):
        assert ensure_board_agents("") == {"created": 0, "updated": 0, "total": 4}
        assert BoardAgent.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════
# Participant cards
# ═════════════════════════════════════════════════════════════════════════


def _msg(msg_id, role, content="ok", is_error=False):
    return {"id": msg_id, "role": role, "content": content, "is_error": is_error,
            "created_at": f"2026-10-19T10:00:0{msg_id % 10}+00:00"}


class TestParticipants:
    def test_no_messages(self):
        cards = build_participant_cards([])
        assert [c["role"] for c in cards] == ["ceo", "cto", "cfo", "chair"]
        assert all(c["status"] == STATUS_NO_DATA for c in cards)
        assert cards[3]["title"] == "Chairman (Summary)"

    def test_latest_message_per_role_decides(self):
        messages = [
            _msg(1, "user"),
            _msg(2, "ceo", "Error: no position could be formed.", is_error=True),
            _msg(3, "ceo", "Position: for"),
            _msg(4, "cto", "error - timeout\nsecond line"),
            _msg(5, "chair", "Decision: HOLD"),
        ]
        cards = {c["role"]: c for c in build_participant_cards(messages)}

        assert cards["ceo"]["status"] == STATUS_DONE
        assert cards["ceo"]["last_message_id"] == 3
        assert cards["cto"]["status"] == STATUS_ERROR
        assert cards["cto"]["error"] == "error - timeout"
        assert cards["cfo"]["status"] == STATUS_NO_DATA
        assert cards["chair"]["updated_at"] == "2026-10-19T10:00:05+00:00"

    def test_run_error_marks_roles_without_messages(self):
        cards = {c["role"]: c for c in build_participant_cards([_msg(1, "chair")], run_error="Boom\ntrace")}
        assert cards["ceo"]["status"] == STATUS_ERROR
        assert cards["ceo"]["error"] == "Boom"
        assert cards["chair"]["status"] == STATUS_DONE

    def test_sending_marks_all_in_progress(self):
        cards = build_participant_cards([_msg(1, "ceo")], sending=True)
        assert all(c["status"] == STATUS_IN_PROGRESS for c in cards)

    def test_errorless_prefix_not_an_error(self):
        cards = {c["role"]: c for c in build_participant_cards([_msg(1, "cfo", "Errors in forecasts are likely")])}
        assert cards["cfo"]["status"] == STATUS_DONE

    @pytest.mark.parametrize("value, expected", [
        ("\n\n  first  \nsecond", "first"),
        ("x" * 200, "x" * 140),
        (None, ""),
    ])
    def test_short_error(self, value, expected):
        assert short_error(value) == expected
