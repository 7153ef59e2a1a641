"""CEO (Growth): should we go for the idea, and how fast can it pay off."""

from boardroom.ai.review_payloads import BoardRole
from boardroom.ai.roles.base import (
    DEFAULT_STANCE,
    STANCES,
    BoardRoleAgent,
    pad_list,
    to_text,
)

_CONFIDENCE_DEFAULT = 6


def clamp_confidence(value) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return _CONFIDENCE_DEFAULT
    if number != number or number in (float("inf"), float("-inf")):
        return _CONFIDENCE_DEFAULT
    return int(max(0, min(10, round(number))))


class CeoAgent(BoardRoleAgent):
    agent_id = "board-ceo"
    role = BoardRole.CEO
    display_name = "Board of Directors: CEO"
    role_label = "CEO (Growth)"
    description = "Growth position: is the idea worth pursuing and how fast will it pay off."
    temperature = 0.3
    max_tokens = 900

    system_prompt = (
        "You are the CEO (Growth) on a board of directors.\n"
        "Give a position on the idea: for, against or conditionally for. Short and to the point.\n"
        "Default style: hard and direct, no filler and no compliments.\n"
        "Tell the uncomfortable truth about the idea and the process, never insult the person.\n"
        "Focus: growth, revenue, market window, speed to impact.\n"
        "Answer with JSON only."
    )

    response_schema = {
        "type": "object",
        "additionalProperties": False,
        "required": [
            "stance",
            "verdict",
            "key_arguments",
            "next_actions",
            "what_to_measure",
            "uncomfortable_questions",
            "risks",
        ],
        "properties": {
            "stance": {"type": "string", "enum": list(STANCES)},
            "verdict": {"type": "string"},
            "key_arguments": {"type": "array", "items": {"type": "string"}},
            "next_actions": {"type": "array", "items": {"type": "string"}},
            "what_to_measure": {"type": "array", "items": {"type": "string"}},
            "uncomfortable_questions": {"type": "array", "items": {"type": "string"}},
            "risks": {"type": "array", "items": {"type": "string"}},
            "confidence_0_10": {"type": "number"},
        },
    }

    prompt_instruction = (
        "Produce: stance, verdict, key_arguments (3-5), next_actions (3-5), "
        "what_to_measure (2-4), uncomfortable_questions (exactly 3), risks (exactly 3), "
        "confidence_0_10."
    )

    def shape_review(self, generated, inp):
        generated = generated or {}
        stance = generated.get("stance")
        return {
            "role": self.role_label,
            "stance": stance if stance in STANCES else DEFAULT_STANCE,
            "verdict": to_text(generated.get("verdict")) or "Test the idea at a small scale first.",
            "key_arguments": pad_list(generated.get("key_arguments"), 3, "Argument"),
            "next_actions": pad_list(generated.get("next_actions"), 3, "Action"),
            "what_to_measure": pad_list(generated.get("what_to_measure"), 2, "Metric"),
            "uncomfortable_questions": pad_list(
                generated.get("uncomfortable_questions"), 3, "Difficult question"
            )[:3],
            "risks": pad_list(generated.get("risks"), 3, "Risk")[:3],
            "confidence_0_10": clamp_confidence(generated.get("confidence_0_10")),
        }
