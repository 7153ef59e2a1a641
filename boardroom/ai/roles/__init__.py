"""
Board role registry.

Maps each BoardRole to its agent. Lookups go through the enum, never
through display names.
"""

from boardroom.ai.review_payloads import ROLE_ORDER, BoardRole
from boardroom.ai.roles.base import BoardRoleAgent
from boardroom.ai.roles.ceo import CeoAgent
from boardroom.ai.roles.cfo import CfoAgent
from boardroom.ai.roles.chair import ChairAgent
from boardroom.ai.roles.cto import CtoAgent

BOARD_AGENTS: dict[BoardRole, BoardRoleAgent] = {
    BoardRole.CEO: CeoAgent(),
    BoardRole.CTO: CtoAgent(),
    BoardRole.CFO: CfoAgent(),
    BoardRole.CHAIR: ChairAgent(),
}


def get_agent(role) -> BoardRoleAgent:
    return BOARD_AGENTS[BoardRole(role)]


def board_agents() -> list[BoardRoleAgent]:
    """Agents in speaking order."""
    return [BOARD_AGENTS[role] for role in ROLE_ORDER]
