"""CFO (Risk): unit economics, financial risks and budget guardrails."""

from boardroom.ai.review_payloads import BoardRole
from boardroom.ai.roles.base import DEFAULT_STANCE, STANCES, BoardRoleAgent, pad_list, to_text


class CfoAgent(BoardRoleAgent):
    agent_id = "board-cfo"
    role = BoardRole.CFO
    display_name = "Board of Directors: CFO"
    role_label = "CFO (Risk)"
    description = "Financial assessment: unit economics, risks and budget limits."
    temperature = 0.2
    max_tokens = 900

    system_prompt = (
        "You are the CFO (Risk) on a board of directors.\n"
        "Assess the idea in terms of economics and risk.\n"
        "Default style: hard and direct, no filler and no compliments.\n"
        "Tell the uncomfortable truth about money and cash gaps, never insult the person.\n"
        "Focus: cash flow, payback, sensitivity to risk.\n"
        "Answer with JSON only."
    )

    response_schema = {
        "type": "object",
        "additionalProperties": False,
        "required": [
            "recommendation",
            "unit_economics_view",
            "financial_risks",
            "budget_guardrails",
            "uncomfortable_questions",
        ],
        "properties": {
            "recommendation": {"type": "string", "enum": list(STANCES)},
            "unit_economics_view": {"type": "string"},
            "financial_risks": {"type": "array", "items": {"type": "string"}},
            "budget_guardrails": {"type": "array", "items": {"type": "string"}},
            "uncomfortable_questions": {"type": "array", "items": {"type": "string"}},
            "cash_note": {"type": "string"},
        },
    }

    prompt_instruction = (
        "Produce: recommendation, unit_economics_view, financial_risks (3-5), "
        "budget_guardrails (2-4), uncomfortable_questions (exactly 3), cash_note."
    )

    def shape_review(self, generated, inp):
        generated = generated or {}
        recommendation = generated.get("recommendation")
        return {
            "role": self.role_label,
            "recommendation": recommendation if recommendation in STANCES else DEFAULT_STANCE,
            "unit_economics_view": to_text(generated.get("unit_economics_view"))
            or "Validate the monetization hypothesis and acquisition cost first.",
            "financial_risks": pad_list(generated.get("financial_risks"), 3, "Financial risk"),
            "budget_guardrails": pad_list(generated.get("budget_guardrails"), 2, "Budget guardrail"),
            "uncomfortable_questions": pad_list(
                generated.get("uncomfortable_questions"), 3, "Difficult question"
            )[:3],
            "cash_note": to_text(generated.get("cash_note")) or "Launch in stages with a spending cap.",
        }
