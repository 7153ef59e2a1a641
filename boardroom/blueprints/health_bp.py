"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready : simple 200 for load balancers
    GET /api/v1/health/live  : database and LLM provider status
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from boardroom.ai.provider import FixtureProvider, get_provider, has_fixture
from boardroom.ai.roles import board_agents
from boardroom.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe, always 200 while the app is up."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    # ── LLM provider ─────────────────────────────────────────────────
    try:
        provider = get_provider()
        checks["llm_provider"] = {
            "status": "ok",
            "mode": provider.name,
            "model": current_app.config.get("LLM_DEFAULT_MODEL"),
        }
        if isinstance(provider, FixtureProvider):
            # Roles without a fixture are served schema stubs
            checks["llm_provider"]["fixtures"] = {
                agent.agent_id: has_fixture(agent.agent_id, provider.fixtures_root)
                for agent in board_agents()
            }
    except Exception as exc:
        checks["llm_provider"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: provider init failed: %s", exc)

    checks["app"] = {
        "name": "Boardroom",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
