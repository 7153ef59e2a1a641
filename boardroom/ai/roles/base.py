"""
Board role agent base.

A role agent turns the board input into one structured review:

    normalize_input → build_prompt → provider.generate_json → shape_review → envelope

shape_review() is where untrusted model output becomes a complete review:
enum fields fall back to their cautious value and lists are padded with
numbered filler, so the formatter always receives every field.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from boardroom.ai.envelope import wrap_agent_output
from boardroom.ai.provider import LLMProvider
from boardroom.ai.review_payloads import BoardRole

logger = logging.getLogger(__name__)

RUN_MODE = "board_review"

GOALS = ("growth", "sales", "product", "operations", "investment")
DEFAULT_GOAL = "growth"
# Russian goal names accepted from the chat form
GOAL_ALIASES = {
    "рост": "growth",
    "продажи": "sales",
    "продукт": "product",
    "операционка": "operations",
    "инвестиции": "investment",
}
CRITIQUE_LEVELS = ("soft", "normal", "hard")
DEFAULT_CRITIQUE_LEVEL = "hard"
STANCES = ("for", "against", "conditional")
DEFAULT_STANCE = "conditional"

MAX_WORDS_MIN, MAX_WORDS_MAX, MAX_WORDS_DEFAULT = 120, 1200, 480

# Envelope data shape shared by all board roles
OUTPUT_SCHEMA = {
    "type": "object",
    "required": ["review", "meta"],
    "properties": {
        "review": {"type": "object"},
        "meta": {"type": "object"},
    },
}


def to_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if value != value:  # NaN
        return fallback
    return int(min(high, max(low, round(value))))


def pad_list(value: Any, min_items: int, prefix: str) -> list[str]:
    """Non-empty strings from ``value``, padded to ``min_items`` with "<prefix> N"."""
    items = [to_text(v) for v in value] if isinstance(value, list) else []
    items = [v for v in items if v]
    while len(items) < min_items:
        items.append(f"{prefix} {len(items) + 1}")
    return items


def count_words(value: Any) -> int:
    if isinstance(value, str):
        return len(value.split())
    if isinstance(value, list):
        return sum(count_words(v) for v in value)
    if isinstance(value, dict):
        return sum(count_words(v) for v in value.values())
    return 0


def resolve_goal(value: Any) -> str:
    """Map a free-text goal onto GOALS; anything unrecognized is DEFAULT_GOAL."""
    goal = to_text(value).lower()
    goal = GOAL_ALIASES.get(goal, goal)
    return goal if goal in GOALS else DEFAULT_GOAL


def normalize_board_input(raw: Any) -> dict:
    """Coerce an arbitrary dict into the board input every role expects."""
    safe = raw if isinstance(raw, dict) else {}
    budget = safe.get("budget") if isinstance(safe.get("budget"), dict) else {}
    constraints = safe.get("constraints")
    constraint_opts = constraints if isinstance(constraints, dict) else {}

    max_words = budget.get("max_words", constraint_opts.get("max_words", safe.get("max_words")))
    level = to_text(safe.get("critique_level")).lower()

    return {
        "idea": to_text(safe.get("idea") or safe.get("question") or safe.get("topic")),
        "goal": resolve_goal(safe.get("goal")),
        "constraints": to_text(safe.get("constraints_text")) or to_text(constraints),
        "context": to_text(safe.get("context")),
        "attachments_summary": to_text(safe.get("attachments_summary")),
        "critique_level": level if level in CRITIQUE_LEVELS else DEFAULT_CRITIQUE_LEVEL,
        "critique_mode": "hard_truth",
        "max_words": clamp_int(max_words, MAX_WORDS_MIN, MAX_WORDS_MAX, MAX_WORDS_DEFAULT),
        "model": to_text(safe.get("model")),
    }


class BoardRoleAgent(ABC):
    """One seat at the board. Subclasses define prompt, schema and shaping."""

    agent_id = ""
    role: BoardRole
    display_name = ""
    role_label = ""
    description = ""
    system_prompt = ""
    response_schema: dict = {}
    output_schema: dict = OUTPUT_SCHEMA
    temperature = 0.2
    max_tokens = 900
    prompt_instruction = ""

    def normalize_input(self, raw: Any) -> dict:
        return normalize_board_input(raw)

    def context_lines(self, inp: dict) -> list[str]:
        return [
            f"Idea / question: {inp.get('idea') or 'not specified'}",
            f"Goal: {inp.get('goal')}",
            f"Constraints: {inp.get('constraints') or 'none'}",
            f"Context: {inp.get('context') or 'none'}",
            f"Attachments (summary): {inp.get('attachments_summary') or 'none'}",
            f"Critique level: {inp.get('critique_level')}",
            f"Critique mode: {inp.get('critique_mode') or 'hard_truth'}",
            f"Word limit: {inp.get('max_words')}",
        ]

    def build_prompt(self, inp: dict) -> str:
        return "\n".join(self.context_lines(inp) + [self.prompt_instruction])

    @abstractmethod
    def shape_review(self, generated: dict, inp: dict) -> dict:
        """Turn raw model output into a complete review dict for this role."""

    def definition(self) -> dict:
        """Serializable definition used to sync the agent into a workspace."""
        return {
            "agent_key": self.agent_id,
            "role": self.role.value,
            "display_name": self.display_name,
            "description": self.description,
            "system_prompt": self.system_prompt,
            "output_schema": self.output_schema,
            "config": {
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
                "response_schema": self.response_schema,
            },
        }

    def run(self, raw_input: Any, provider: LLMProvider, model: str | None = None) -> dict:
        """Generate, shape and wrap this role's review.

        Raises:
            LLMProviderError: propagated from the provider.
        """
        inp = self.normalize_input(raw_input)
        model_used = to_text(model) or inp.get("model") or None

        generated = provider.generate_json(
            self.system_prompt,
            self.build_prompt(inp),
            self.response_schema,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            meta={"agent_id": self.agent_id, "model": model_used},
        )
        payload = generated.get("review") if isinstance(generated.get("review"), dict) else generated
        review = self.shape_review(payload, inp)

        legacy_output = {
            "review": review,
            "meta": {
                "role": review.get("role") or self.display_name,
                "model_used": model_used or "",
                "limitations": [],
                "warnings": [],
                "within_max_words": count_words(review) <= inp["max_words"],
            },
        }
        logger.info("Board role %s produced a review", self.agent_id,
                    extra={"agent_id": self.agent_id, "role": self.role.value,
                           "provider": provider.name, "model": model_used})
        return wrap_agent_output(
            self.agent_id,
            input_echo=inp,
            mode=RUN_MODE,
            legacy_output=legacy_output,
            output_schema=self.output_schema,
            provider_name=provider.name,
        )
