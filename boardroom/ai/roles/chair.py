"""
Chairman: final decision built only from the CEO, CTO and CFO positions.

The chair receives the three reviews as input (ceo_review, cto_review,
cfo_review) and returns a GO / HOLD / NO_GO decision, a 7-day plan and
metrics. Unknown decisions become HOLD.
"""

import json
import re

from boardroom.ai.review_payloads import BoardRole
from boardroom.ai.roles.base import BoardRoleAgent, normalize_board_input, pad_list, to_text

DECISIONS = ("GO", "HOLD", "NO_GO")
DEFAULT_DECISION = "HOLD"
PLAN_DAYS = 7

_DAY_PREFIX_RE = re.compile(r"^day\s*\d+\s*[:.\-]?\s*", re.IGNORECASE)


def collect_role_arguments(review, fallback_prefix: str) -> list[str]:
    """Up to 4 headline arguments from whichever list the role produced."""
    review = review if isinstance(review, dict) else {}
    source = (
        review.get("key_arguments")
        or review.get("implementation_risks")
        or review.get("financial_risks")
        or review.get("next_actions")
        or []
    )
    return pad_list(source, 2, fallback_prefix)[:4]


class ChairAgent(BoardRoleAgent):
    agent_id = "board-chair"
    role = BoardRole.CHAIR
    display_name = "Board of Directors: Chairman"
    role_label = "Chairman (Summary)"
    description = "Final board decision plus a 7-day plan with metrics."
    temperature = 0.1
    max_tokens = 1100

    system_prompt = (
        "You are the Chairman of a board of directors.\n"
        "Your job: reach the final decision using only the CEO, CTO and CFO arguments.\n"
        "Do not introduce facts that are absent from those three positions.\n"
        "Style: hard and direct, no filler; state the uncomfortable truth on substance, never personally.\n"
        "Answer with JSON only."
    )

    response_schema = {
        "type": "object",
        "additionalProperties": False,
        "required": ["decision", "final_summary", "seven_day_plan", "metrics_to_track", "references"],
        "properties": {
            "decision": {"type": "string", "enum": list(DECISIONS)},
            "final_summary": {"type": "string"},
            "seven_day_plan": {"type": "array", "items": {"type": "string"}},
            "metrics_to_track": {"type": "array", "items": {"type": "string"}},
            "references": {
                "type": "object",
                "required": ["ceo", "cto", "cfo"],
                "properties": {
                    "ceo": {"type": "array", "items": {"type": "string"}},
                    "cto": {"type": "array", "items": {"type": "string"}},
                    "cfo": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
    }

    prompt_instruction = (
        "Return decision, final_summary, seven_day_plan (exactly 7 short steps), "
        "metrics_to_track (3-5), references.ceo/cto/cfo."
    )

    def normalize_input(self, raw):
        inp = normalize_board_input(raw)
        safe = raw if isinstance(raw, dict) else {}
        for key in ("ceo_review", "cto_review", "cfo_review"):
            inp[key] = safe.get(key) if isinstance(safe.get(key), dict) else {}
        return inp

    def build_prompt(self, inp):
        ceo, cto, cfo = inp["ceo_review"], inp["cto_review"], inp["cfo_review"]
        positions = [
            ("CEO position:", {
                "verdict": to_text(ceo.get("verdict")),
                "stance": to_text(ceo.get("stance")),
                "key_arguments": collect_role_arguments(ceo, "CEO argument"),
            }),
            ("CTO position:", {
                "verdict": to_text(cto.get("verdict")),
                "feasibility": to_text(cto.get("feasibility")),
                "key_arguments": collect_role_arguments(cto, "CTO argument"),
            }),
            ("CFO position:", {
                "recommendation": to_text(cfo.get("recommendation")),
                "unit_economics_view": to_text(cfo.get("unit_economics_view")),
                "key_arguments": collect_role_arguments(cfo, "CFO argument"),
            }),
        ]
        lines = self.context_lines(inp)
        for title, body in positions:
            lines.append(title)
            lines.append(json.dumps(body, ensure_ascii=False, indent=2))
        lines.append(self.prompt_instruction)
        return "\n".join(lines)

    @staticmethod
    def _references(generated, inp):
        refs = generated.get("references") if isinstance(generated.get("references"), dict) else {}
        result = {}
        for key, review_key, label in (
            ("ceo", "ceo_review", "CEO argument"),
            ("cto", "cto_review", "CTO argument"),
            ("cfo", "cfo_review", "CFO argument"),
        ):
            fallback = collect_role_arguments(inp.get(review_key), label)[0]
            result[key] = pad_list(refs.get(key), 0, "")[:3] or [fallback]
        return result

    def shape_review(self, generated, inp):
        generated = generated or {}
        decision = to_text(generated.get("decision")).upper()

        plan = []
        for index, item in enumerate(pad_list(generated.get("seven_day_plan"), PLAN_DAYS, "Day")[:PLAN_DAYS]):
            clean = _DAY_PREFIX_RE.sub("", item).strip()
            plan.append(f"Day {index + 1}: {clean or 'run the next validation step'}")

        return {
            "role": self.role_label,
            "decision": decision if decision in DECISIONS else DEFAULT_DECISION,
            "final_summary": to_text(generated.get("final_summary"))
            or "Run a limited pilot and take the final decision on metrics in 7 days.",
            "seven_day_plan": plan,
            "metrics_to_track": pad_list(generated.get("metrics_to_track"), 3, "Metric"),
            "references": self._references(generated, inp),
        }
