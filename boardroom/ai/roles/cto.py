"""CTO (Tech): feasibility, implementation risks and a realistic plan."""

from boardroom.ai.review_payloads import BoardRole
from boardroom.ai.roles.base import BoardRoleAgent, pad_list, to_text

FEASIBILITY_LEVELS = ("high", "medium", "low")
DEFAULT_FEASIBILITY = "medium"


class CtoAgent(BoardRoleAgent):
    agent_id = "board-cto"
    role = BoardRole.CTO
    display_name = "Board of Directors: CTO"
    role_label = "CTO (Tech)"
    description = "Technical assessment: implementation risks and a realistic plan."
    temperature = 0.2
    max_tokens = 900

    system_prompt = (
        "You are the CTO (Tech) on a board of directors.\n"
        "Give a pragmatic technical assessment: feasibility, risks, rollout plan.\n"
        "Default style: hard and direct, no filler and no compliments.\n"
        "Tell the uncomfortable truth about technical risk and limits, never insult the person.\n"
        "Focus: architecture, integrations, timelines, team, technical debt.\n"
        "Answer with JSON only."
    )

    response_schema = {
        "type": "object",
        "additionalProperties": False,
        "required": [
            "feasibility",
            "verdict",
            "implementation_risks",
            "execution_plan",
            "dependencies",
            "uncomfortable_questions",
        ],
        "properties": {
            "feasibility": {"type": "string", "enum": list(FEASIBILITY_LEVELS)},
            "verdict": {"type": "string"},
            "implementation_risks": {"type": "array", "items": {"type": "string"}},
            "execution_plan": {"type": "array", "items": {"type": "string"}},
            "dependencies": {"type": "array", "items": {"type": "string"}},
            "uncomfortable_questions": {"type": "array", "items": {"type": "string"}},
        },
    }

    prompt_instruction = (
        "Produce: feasibility, verdict, implementation_risks (3-5), execution_plan (3-6), "
        "dependencies (2-4), uncomfortable_questions (exactly 3)."
    )

    def shape_review(self, generated, inp):
        generated = generated or {}
        feasibility = generated.get("feasibility")
        return {
            "role": self.role_label,
            "feasibility": feasibility if feasibility in FEASIBILITY_LEVELS else DEFAULT_FEASIBILITY,
            "verdict": to_text(generated.get("verdict"))
            or "Feasible after a short technical spike.",
            "implementation_risks": pad_list(generated.get("implementation_risks"), 3, "Tech risk"),
            "execution_plan": pad_list(generated.get("execution_plan"), 3, "Implementation step"),
            "dependencies": pad_list(generated.get("dependencies"), 2, "Dependency"),
            "uncomfortable_questions": pad_list(
                generated.get("uncomfortable_questions"), 3, "Difficult question"
            )[:3],
        }
