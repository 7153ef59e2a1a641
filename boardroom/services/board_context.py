"""
Board context assembly.

Pure helpers that turn stored thread state into the board input:
recent-message context, attachment summaries, a heuristic constraints
field, and the thread title.
"""

from __future__ import annotations

import re
from typing import Iterable

MAX_EXTRACTED_TEXT = 50_000
MAX_ATTACHMENT_SNIPPET = 900
MAX_CONTEXT_MESSAGES = 8
MAX_CONTEXT_MESSAGE_CHARS = 600
MAX_SUMMARY_ATTACHMENTS = 8
MAX_IDEA_CHARS = 3000
MAX_CONSTRAINTS_CHARS = 1000

DEFAULT_THREAD_TITLE = "New board meeting"
DEFAULT_GOAL = "growth"

ROLE_LABELS = {
    "user": "User",
    "ceo": "CEO",
    "cto": "CTO",
    "cfo": "CFO",
    "chair": "Chairman",
}

# English and Russian stems for constraint-like lines
_CONSTRAINT_LINE_RE = re.compile(
    r"^(constraint|limitation|limit|budget|deadline|timeline|resource|"
    r"огранич|бюджет|срок|ресурс)",
    re.IGNORECASE,
)
_CONSTRAINT_INLINE_RE = re.compile(
    r"(constraints?|limitations?|budget|deadlines?|timelines?|resources?|"
    r"ограничения?|бюджет|сроки?|ресурсы?)\s*[:\-]\s*([^\n.]{5,240})",
    re.IGNORECASE,
)


def sanitize_text(value, max_chars: int = MAX_EXTRACTED_TEXT) -> str:
    """Drop NUL bytes, normalize CRLF and lone CR, strip, cap length. Non-strings become ""."""
    if not isinstance(value, str):
        return ""
    text = value.replace("\x00", "").replace("\r\n", "\n").replace("\r", "\n")
    return text.strip()[:max_chars]


def human_size(size) -> str:
    try:
        numeric = float(size)
    except (TypeError, ValueError):
        return "0 B"
    if numeric <= 0:
        return "0 B"
    if numeric < 1024:
        return f"{int(numeric)} B"
    if numeric < 1024 * 1024:
        return f"{round(numeric / 1024)} KB"
    return f"{numeric / (1024 * 1024):.1f} MB"


def role_label(role: str) -> str:
    return ROLE_LABELS.get(role, role)


def build_thread_title(content: str) -> str:
    words = sanitize_text(content, 400).split()
    return " ".join(words[:8]) or DEFAULT_THREAD_TITLE


def build_context_from_messages(messages: Iterable) -> str:
    """Last MAX_CONTEXT_MESSAGES messages as "<RoleLabel>: <content>" lines."""
    tail = list(messages)[-MAX_CONTEXT_MESSAGES:]
    lines = []
    for message in tail:
        content = sanitize_text(message.content, MAX_CONTEXT_MESSAGE_CHARS)
        if content:
            lines.append(f"{role_label(message.role)}: {content}")
    return "\n".join(lines)


def derive_constraints_from_text(content: str) -> str:
    """Pull constraints out of free text when the user gave none explicitly."""
    source = sanitize_text(content, 2500)
    if not source:
        return ""

    lines = [line.strip() for line in source.split("\n") if line.strip()]
    picked = [line for line in lines if _CONSTRAINT_LINE_RE.match(line)]
    if picked:
        return sanitize_text("; ".join(picked), MAX_CONSTRAINTS_CHARS)

    match = _CONSTRAINT_INLINE_RE.search(source)
    if match:
        return sanitize_text(match.group(2), MAX_CONSTRAINTS_CHARS)
    return ""


def summarize_attachment(attachment) -> str:
    base = f"{attachment.file_name} ({attachment.mime or 'unknown'}, {human_size(attachment.size)})"
    if attachment.extracted_text:
        snippet = re.sub(r"\n+", " ", sanitize_text(attachment.extracted_text, MAX_ATTACHMENT_SNIPPET))
        return f"{base}: {snippet}"
    if (attachment.mime or "").startswith("image/"):
        return f"{base}: image attached"
    return f"{base}: available to review"


def build_attachment_summary(attachments) -> str:
    items = list(attachments or [])[:MAX_SUMMARY_ATTACHMENTS]
    return "\n".join(f"{i}. {summarize_attachment(a)}" for i, a in enumerate(items, start=1))


def build_board_input(idea: str, goal: str | None, constraints: str | None, context: str,
                      attachments_summary: str) -> dict:
    """Structured input handed to the plan executor."""
    return {
        "idea": sanitize_text(idea, MAX_IDEA_CHARS),
        "goal": sanitize_text(goal, 50) or DEFAULT_GOAL,
        "constraints": sanitize_text(constraints, MAX_CONSTRAINTS_CHARS)
        or derive_constraints_from_text(idea),
        "context": context,
        "critique_level": "hard",
        "critique_mode": "hard_truth",
        "attachments_summary": attachments_summary,
    }


def merge_context(*parts: str) -> str:
    return "\n\n".join(p for p in parts if p)
