"""
Board review payloads.

A role's raw result is an untrusted dict (model output, fixture, or a
partial object from a failed step). parse_review() turns it into one of
four explicit variants so the formatter never probes unknown keys:

    CeoReview | CtoReview | CfoReview | ChairReview

Wrong-typed fields degrade to empty values; a missing or key-less payload
yields None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class BoardRole(str, Enum):
    """Stable role identifiers used by every dispatch table."""
    CEO = "ceo"
    CTO = "cto"
    CFO = "cfo"
    CHAIR = "chair"


# Order in which roles speak and in which their messages are stored
ROLE_ORDER = (BoardRole.CEO, BoardRole.CTO, BoardRole.CFO, BoardRole.CHAIR)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if isinstance(item, (int, float)) and not isinstance(item, bool):
            item = str(item)
        text = _text(item)
        if text:
            items.append(text)
    return items


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


@dataclass
class CeoReview:
    stance: str = ""
    verdict: str = ""
    key_arguments: list[str] = field(default_factory=list)
    next_actions: list[str] = field(default_factory=list)
    what_to_measure: list[str] = field(default_factory=list)
    uncomfortable_questions: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    confidence_0_10: float | None = None

    role = BoardRole.CEO

    @classmethod
    def from_payload(cls, payload: dict) -> CeoReview:
        return cls(
            stance=_text(payload.get("stance")),
            verdict=_text(payload.get("verdict")),
            key_arguments=_text_list(payload.get("key_arguments")),
            next_actions=_text_list(payload.get("next_actions")),
            what_to_measure=_text_list(payload.get("what_to_measure")),
            uncomfortable_questions=_text_list(payload.get("uncomfortable_questions")),
            risks=_text_list(payload.get("risks")),
            confidence_0_10=_number(payload.get("confidence_0_10")),
        )


@dataclass
class CtoReview:
    feasibility: str = ""
    verdict: str = ""
    implementation_risks: list[str] = field(default_factory=list)
    execution_plan: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    uncomfortable_questions: list[str] = field(default_factory=list)

    role = BoardRole.CTO

    @classmethod
    def from_payload(cls, payload: dict) -> CtoReview:
        return cls(
            feasibility=_text(payload.get("feasibility")),
            verdict=_text(payload.get("verdict")),
            # older payloads used a generic "risks" key
            implementation_risks=_text_list(payload.get("implementation_risks"))
            or _text_list(payload.get("risks")),
            execution_plan=_text_list(payload.get("execution_plan")),
            dependencies=_text_list(payload.get("dependencies")),
            uncomfortable_questions=_text_list(payload.get("uncomfortable_questions")),
        )


@dataclass
class CfoReview:
    recommendation: str = ""
    unit_economics_view: str = ""
    financial_risks: list[str] = field(default_factory=list)
    budget_guardrails: list[str] = field(default_factory=list)
    uncomfortable_questions: list[str] = field(default_factory=list)
    cash_note: str = ""

    role = BoardRole.CFO

    @classmethod
    def from_payload(cls, payload: dict) -> CfoReview:
        return cls(
            recommendation=_text(payload.get("recommendation")),
            unit_economics_view=_text(payload.get("unit_economics_view")),
            financial_risks=_text_list(payload.get("financial_risks"))
            or _text_list(payload.get("risks")),
            budget_guardrails=_text_list(payload.get("budget_guardrails")),
            uncomfortable_questions=_text_list(payload.get("uncomfortable_questions")),
            cash_note=_text(payload.get("cash_note")),
        )


@dataclass
class ChairReview:
    decision: str = ""
    final_summary: str = ""
    seven_day_plan: list[str] = field(default_factory=list)
    metrics_to_track: list[str] = field(default_factory=list)
    references: dict[str, list[str]] = field(default_factory=dict)

    role = BoardRole.CHAIR

    @classmethod
    def from_payload(cls, payload: dict) -> ChairReview:
        raw_refs = payload.get("references")
        refs = {}
        if isinstance(raw_refs, dict):
            for key in ("ceo", "cto", "cfo"):
                refs[key] = _text_list(raw_refs.get(key))
        return cls(
            decision=_text(payload.get("decision")).upper(),
            final_summary=_text(payload.get("final_summary")),
            seven_day_plan=_text_list(payload.get("seven_day_plan")),
            metrics_to_track=_text_list(payload.get("metrics_to_track")),
            references=refs,
        )


ReviewPayload = Union[CeoReview, CtoReview, CfoReview, ChairReview]

_VARIANTS = {
    BoardRole.CEO: CeoReview,
    BoardRole.CTO: CtoReview,
    BoardRole.CFO: CfoReview,
    BoardRole.CHAIR: ChairReview,
}


def _populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return bool(value.strip() if isinstance(value, str) else value)
    return True


def parse_review(role: BoardRole | str, payload: Any) -> ReviewPayload | None:
    """Build the variant for ``role``; None when there is nothing to format."""
    if not isinstance(payload, dict) or not any(_populated(v) for v in payload.values()):
        return None
    return _VARIANTS[BoardRole(role)].from_payload(payload)

