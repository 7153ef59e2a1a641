"""
Review Formatter.

Turns each role's review into one fixed-shape chat message. The shape never
depends on how complete the model output was: lists are padded with
numbered filler and cut to the template size.

    format_role_message(role, payload) -> str
    format_role_messages(final)        -> [RoleMessage(ceo), (cto), (cfo), (chair)]

A role with no usable payload gets an error-flagged placeholder instead of
the template. total_failure_messages() is the single chair message used
when the whole plan failed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from boardroom.ai.review_payloads import (
    ROLE_ORDER,
    BoardRole,
    CeoReview,
    CfoReview,
    ChairReview,
    CtoReview,
    parse_review,
)

PLACEHOLDER_TEXT = (
    "Error: no position could be formed. "
    "What to do: rerun the board and check the inputs."
)
TOTAL_FAILURE_TEXT = (
    "Error: the board run failed. "
    "What to do: check the inputs and run again."
)

# Upstream decision → label shown to the user. Anything else is VERIFY FIRST.
DECISION_LABELS = {
    "GO": "YES",
    "NO_GO": "NO",
}
CAUTIOUS_DECISION_LABEL = "VERIFY FIRST"

_ITEM_CHARS = 240
_LINE_CHARS = 700


@dataclass(frozen=True)
class RoleMessage:
    role: str
    content: str
    is_error: bool = False


def _clip(value: str, limit: int) -> str:
    text = re.sub(r"\s+", " ", (value or "").replace("\x00", "")).strip()
    return text[:limit]


def ensure_list(items: list[str] | None, min_items: int, prefix: str, max_items: int | None = None) -> list[str]:
    """Pad to ``min_items`` with "<prefix> N" filler, then cut to ``max_items``."""
    result = [t for t in (_clip(i, _ITEM_CHARS) for i in items or []) if t]
    while len(result) < min_items:
        result.append(f"{prefix} {len(result) + 1}")
    return result[:max_items] if max_items else result


def derive_questions(facts: list[str] | None, prefix: str) -> list[str]:
    """Turn up to three facts into "What would prove that ...?" questions."""
    questions = [
        f"What would prove that {text[0].lower() + text[1:]}?"
        for text in (_clip(f, 140) for f in (facts or [])[:3])
        if text
    ]
    return ensure_list(questions, 3, prefix, 3)


def decision_label(decision: Any) -> str:
    key = str(decision or "").strip().upper()
    return DECISION_LABELS.get(key, CAUTIOUS_DECISION_LABEL)


def _bullets(items: list[str]) -> list[str]:
    return [f"- {item}" for item in items]


def _template(position: str, verdict: str, questions: list[str], risks: list[str],
              closing_title: str, closing: list[str]) -> str:
    return "\n".join([
        f"Position: {position}.",
        f"What to do: {verdict}",
        "",
        "3 difficult questions:",
        *_bullets(questions),
        "",
        "3 risks:",
        *_bullets(risks),
        "",
        closing_title,
        *_bullets(closing),
    ])


# ── Per-role formatters ─────────────────────────────────────────────────────

def _format_ceo(review: CeoReview) -> str:
    questions = review.uncomfortable_questions or derive_questions(review.key_arguments, "Question")
    risks = review.risks or review.key_arguments
    return _template(
        _clip(review.stance or "conditional", 60),
        _clip(review.verdict or "Test the hypothesis first.", _LINE_CHARS),
        ensure_list(questions, 3, "Question", 3),
        ensure_list(risks, 3, "Risk", 3),
        "Do right now:",
        ensure_list(review.next_actions, 3, "Action", 3),
    )


def _format_cto(review: CtoReview) -> str:
    questions = review.uncomfortable_questions or derive_questions(review.dependencies, "Question")
    return _template(
        _clip(review.feasibility or "medium", 80),
        _clip(review.verdict or "Implementation needs its constraints checked.", _LINE_CHARS),
        ensure_list(questions, 3, "Question", 3),
        ensure_list(review.implementation_risks, 3, "Tech risk", 3),
        "First implementation steps:",
        ensure_list(review.execution_plan, 3, "Step", 3),
    )


def _format_cfo(review: CfoReview) -> str:
    questions = review.uncomfortable_questions or derive_questions(review.financial_risks, "Question")
    return _template(
        _clip(review.recommendation or "conditional", 80),
        _clip(review.unit_economics_view or "The economics are not confirmed.", _LINE_CHARS),
        ensure_list(questions, 3, "Question", 3),
        ensure_list(review.financial_risks, 3, "Financial risk", 3),
        "Budget guardrails:",
        ensure_list(review.budget_guardrails, 3, "Budget guardrail", 3),
    )


def _format_chair(review: ChairReview) -> str:
    summary = _clip(review.final_summary or "Not enough data for a final GO.", _LINE_CHARS)
    return "\n".join([
        f"Debate in short: {summary}",
        f"Final decision: {decision_label(review.decision)}",
        "",
        "7-day plan:",
        *_bullets(ensure_list(review.seven_day_plan, 7, "Day", 7)),
        "",
        "What to measure:",
        *_bullets(ensure_list(review.metrics_to_track, 3, "Metric", 5)),
    ])


_FORMATTERS: dict[BoardRole, Callable[[Any], str]] = {
    BoardRole.CEO: _format_ceo,
    BoardRole.CTO: _format_cto,
    BoardRole.CFO: _format_cfo,
    BoardRole.CHAIR: _format_chair,
}


# ── Public API ─────────────────────────────────────────────────────────────

def format_role_message(role: BoardRole | str, payload: Any) -> str:
    """Formatted text for one role, or the placeholder when the payload is empty."""
    review = parse_review(role, payload)
    if review is None:
        return PLACEHOLDER_TEXT
    return _FORMATTERS[BoardRole(role)](review)


def format_role_messages(final: Any) -> list[RoleMessage]:
    """Exactly one message per role, in ROLE_ORDER.

    ``final`` maps role ids to payloads; the chair payload may also come
    under the legacy key "chairman".
    """
    final = final if isinstance(final, dict) else {}
    messages = []
    for role in ROLE_ORDER:
        payload = final.get(role.value)
        if role is BoardRole.CHAIR and not payload:
            payload = final.get("chairman")
        review = parse_review(role, payload)
        if review is None:
            messages.append(RoleMessage(role.value, PLACEHOLDER_TEXT, is_error=True))
        else:
            messages.append(RoleMessage(role.value, _FORMATTERS[role](review)))
    return messages


def total_failure_messages() -> list[RoleMessage]:
    """The single error-flagged chair message used when the whole plan failed."""
    return [RoleMessage(BoardRole.CHAIR.value, TOTAL_FAILURE_TEXT, is_error=True)]
