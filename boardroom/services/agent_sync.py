"""
Board agent sync.

Keeps the per-workspace BoardAgent rows in line with the role registry:
missing agents are created, changed ones updated, identical ones left alone.
"""

import json
import logging

from flask import current_app
from sqlalchemy import select

from boardroom.ai.roles import board_agents
from boardroom.models import db
from boardroom.models.board import BoardAgent

logger = logging.getLogger(__name__)

_SYNCED_FIELDS = ("role", "display_name", "description", "system_prompt",
                  "output_schema_json", "model", "config_json")


def _model_for(role: str) -> str:
    cfg = current_app.config
    return cfg.get(f"BOARD_MODEL_{role.upper()}") or cfg.get("LLM_DEFAULT_MODEL") or ""


def _row_values(definition: dict) -> dict:
    return {
        "role": definition["role"],
        "display_name": definition["display_name"],
        "description": definition["description"],
        "system_prompt": definition["system_prompt"],
        "output_schema_json": json.dumps(definition["output_schema"], ensure_ascii=False, sort_keys=True),
        "model": _model_for(definition["role"]),
        "config_json": json.dumps(definition["config"], ensure_ascii=False, sort_keys=True),
    }


def ensure_board_agents(workspace_id: str) -> dict:
    """Upsert the four board role agents for a workspace and commit.

    Returns:
        {"created": int, "updated": int, "total": int}
    """
    definitions = [agent.definition() for agent in board_agents()]
    if not workspace_id:
        return {"created": 0, "updated": 0, "total": len(definitions)}

    existing = {
        row.agent_key: row
        for row in db.session.execute(
            select(BoardAgent).where(BoardAgent.workspace_id == workspace_id)
        ).scalars()
    }

    created = updated = 0
    for definition in definitions:
        values = _row_values(definition)
        row = existing.get(definition["agent_key"])
        if row is None:
            db.session.add(BoardAgent(workspace_id=workspace_id,
                                      agent_key=definition["agent_key"], **values))
            created += 1
            continue
        changed = [f for f in _SYNCED_FIELDS if getattr(row, f) != values[f]]
        if changed or not row.is_active:
            for field in changed:
                setattr(row, field, values[field])
            row.is_active = True
            updated += 1

    if created or updated:
        db.session.commit()
        logger.info("Board agents synced: %d created, %d updated", created, updated,
                    extra={"workspace_id": workspace_id})
    return {"created": created, "updated": updated, "total": len(definitions)}
