"""
Boardroom Idea Review Service
Plan Executor.

Runs a goal as a fixed sequence of role steps and collects each role's
review under data.final. Goals are dispatched through an explicit table
keyed by the Goal enum.

    board_review: CEO → CTO → CFO → Chair (the chair sees the other three reviews)

A failing role step is recorded with status "failed" and contributes an
empty review, so the caller can still show the other roles. Only an
unknown goal or a failure outside the role steps raises.

Usage:
    executor = PlanExecutor(provider=get_provider(), models={BoardRole.CEO: "gpt-5-mini"})
    result = executor.run("board_review", inputs={"idea": "..."}, budget={"max_words": 900})
    result["data"]["final"]["cfo"]
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from boardroom.ai.envelope import unwrap
from boardroom.ai.provider import LLMProvider
from boardroom.ai.review_payloads import BoardRole
from boardroom.ai.roles import get_agent

logger = logging.getLogger(__name__)


class Goal(str, Enum):
    BOARD_REVIEW = "board_review"


class PlanExecutionError(Exception):
    """Raised when a plan cannot run at all (unknown goal, broken input)."""


# Roles that speak before the chair, in order
_ADVISOR_ROLES = (BoardRole.CEO, BoardRole.CTO, BoardRole.CFO)


class PlanExecutor:
    """
    Executes goal plans against a structured-output provider.

    Args:
        provider: LLMProvider used by every role step.
        models: Optional per-role model override (BoardRole → model name).
    """

    def __init__(self, provider: LLMProvider, models: dict | None = None):
        self.provider = provider
        self.models = {BoardRole(k): v for k, v in (models or {}).items() if v}
        self._handlers: dict[Goal, Callable[[dict, dict], dict]] = {
            Goal.BOARD_REVIEW: self._run_board_review,
        }

    def run(self, goal: str | Goal, inputs: dict | None = None, budget: dict | None = None) -> dict:
        """
        Execute ``goal`` synchronously.

        Returns:
            {"data": {"final": {role: review, ...}, "steps": [...]},
             "meta": {goal, run_id, started_at, duration_ms, failed_steps}}

        Raises:
            PlanExecutionError: unknown goal.
        """
        try:
            goal_key = Goal(goal)
        except ValueError as exc:
            raise PlanExecutionError(f"Unknown goal: {goal}") from exc
        handler = self._handlers[goal_key]

        run_id = uuid.uuid4().hex
        started = time.perf_counter()
        started_at = datetime.now(timezone.utc).isoformat()

        data = handler(dict(inputs or {}), dict(budget or {}))

        duration_ms = int((time.perf_counter() - started) * 1000)
        failed = [s["role"] for s in data["steps"] if s["status"] == "failed"]
        logger.info("Plan %s finished in %dms (failed steps: %s)",
                    goal_key.value, duration_ms, ", ".join(failed) or "none",
                    extra={"run_id": run_id, "duration_ms": duration_ms})
        return {
            "data": data,
            "meta": {
                "goal": goal_key.value,
                "run_id": run_id,
                "started_at": started_at,
                "duration_ms": duration_ms,
                "failed_steps": failed,
            },
        }

    # ── Goals ──────────────────────────────────────────────────────────

    def _run_board_review(self, inputs: dict, budget: dict) -> dict:
        role_input = dict(inputs)
        if budget:
            role_input["budget"] = budget

        final: dict[str, dict] = {}
        steps: list[dict] = []

        for index, role in enumerate(_ADVISOR_ROLES, start=1):
            final[role.value] = self._run_step(index, role, role_input, steps)

        chair_input = dict(role_input)
        chair_input.update({
            "ceo_review": final[BoardRole.CEO.value],
            "cto_review": final[BoardRole.CTO.value],
            "cfo_review": final[BoardRole.CFO.value],
        })
        final[BoardRole.CHAIR.value] = self._run_step(len(_ADVISOR_ROLES) + 1, BoardRole.CHAIR,
                                                      chair_input, steps)
        return {"final": final, "steps": steps}

    # ── Helpers ────────────────────────────────────────────────────────

    def _run_step(self, index: int, role: BoardRole, role_input: dict, steps: list) -> dict:
        agent = get_agent(role)
        try:
            envelope = agent.run(role_input, self.provider, model=self.models.get(role))
        except Exception as exc:
            logger.warning("Plan step %d (%s) failed: %s", index, agent.agent_id, exc,
                           extra={"agent_id": agent.agent_id, "role": role.value})
            steps.append({
                "step": index,
                "role": role.value,
                "agent_id": agent.agent_id,
                "status": "failed",
                "error": str(exc),
            })
            return {}

        review = self._review_from(envelope)
        steps.append({
            "step": index,
            "role": role.value,
            "agent_id": agent.agent_id,
            "status": "completed",
            "meta": envelope.get("meta", {}),
        })
        return review

    @staticmethod
    def _review_from(envelope: Any) -> dict:
        data = unwrap(envelope)
        review = data.get("review") if isinstance(data, dict) else None
        return review if isinstance(review, dict) else {}
