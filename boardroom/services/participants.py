"""Participant cards: the per-role status strip shown next to a board thread."""

from __future__ import annotations

import re

from boardroom.ai.review_payloads import ROLE_ORDER

STATUS_NO_DATA = "No data"
STATUS_IN_PROGRESS = "In progress"
STATUS_ERROR = "Error"
STATUS_DONE = "Done"

PARTICIPANTS = {
    "ceo": {"title": "CEO (Growth)", "description": "market, offer, growth, GTM"},
    "cto": {"title": "CTO (Tech)", "description": "implementation, architecture, risks"},
    "cfo": {"title": "CFO (Risk)", "description": "unit economics, money, constraints"},
    "chair": {"title": "Chairman (Summary)", "description": "summary, decision, 7-day plan"},
}

_ERROR_TEXT_RE = re.compile(r"^error[:\s-]", re.IGNORECASE)


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def short_error(value) -> str:
    """First non-empty line, capped at 140 chars."""
    for line in _text(value).split("\n"):
        if line.strip():
            return line.strip()[:140]
    return ""


def _is_error(message: dict) -> bool:
    return bool(message.get("is_error")) or bool(_ERROR_TEXT_RE.match(_text(message.get("content"))))


def _last_by_role(messages: list[dict], role: str) -> dict | None:
    for message in reversed(messages):
        if message.get("role") == role:
            return message
    return None


def build_participant_cards(messages, sending: bool = False, run_error: str = "") -> list[dict]:
    """One card per board role, in role order.

    ``messages`` are serialized BoardMessage dicts in thread order. While a
    run is in flight every card reads "In progress"; otherwise the role's
    latest message decides, and a run-level error marks roles with no message.
    """
    messages = list(messages or [])
    run_error = _text(run_error)
    cards = []
    for role in ROLE_ORDER:
        last = _last_by_role(messages, role.value)
        status, error = STATUS_NO_DATA, ""
        if sending:
            status = STATUS_IN_PROGRESS
        elif last and _is_error(last):
            status, error = STATUS_ERROR, short_error(last.get("content"))
        elif last:
            status = STATUS_DONE
        elif run_error:
            status, error = STATUS_ERROR, short_error(run_error)

        cards.append({
            "role": role.value,
            **PARTICIPANTS[role.value],
            "status": status,
            "error": error,
            "updated_at": (last or {}).get("created_at") or "",
            "last_message_id": (last or {}).get("id"),
        })
    return cards
