"""Board review blueprint.

REST API for board threads and review runs.

Endpoint groups:
  Threads        GET/POST /api/v1/board/threads
                 GET      /api/v1/board/threads/<id>
  Submission     POST     /api/v1/board/messages          (JSON or multipart with files)
  Rerun          POST     /api/v1/board/threads/<id>/run

workspace_id comes from the X-Workspace-Id header; it is the tenant scope for
every query. Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from boardroom.core.exceptions import BadRequestError, ConflictError, NotFoundError, ValidationError
from boardroom.services.attachment_service import DEFAULT_MIME, UploadedFile
from boardroom.services.board_service import get_board_service

logger = logging.getLogger(__name__)

board_bp = Blueprint("board", __name__, url_prefix="/api/v1/board")

# ── Rate limiting ─────────────────────────────────────────────────────────
from boardroom import limiter  # noqa: E402

_board_run_limit = limiter.shared_limit(
    lambda: current_app.config.get("BOARD_RUN_RATE_LIMIT", "10/minute"),
    scope="board_run",
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


# ── Workspace helpers ─────────────────────────────────────────────────────────


def _workspace_required() -> tuple[str | None, tuple | None]:
    workspace_id = (request.headers.get("X-Workspace-Id") or "").strip()[:64]
    if not workspace_id:
        return None, (jsonify({"error": "X-Workspace-Id header is required"}), 400)
    return workspace_id, None


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def _as_thread_id(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("thread_id must be an integer", details={"thread_id": str(value)})


def _uploaded_files() -> list[UploadedFile]:
    uploads = []
    for storage in request.files.getlist("files"):
        if not storage or not storage.filename:
            continue
        data = storage.read()
        uploads.append(UploadedFile(
            filename=storage.filename,
            data=data,
            mime=storage.mimetype or DEFAULT_MIME,
            size=len(data),
        ))
    return uploads


def _submission() -> tuple[dict, list[UploadedFile]]:
    """Fields and files from either a multipart form or a JSON body."""
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict(), _uploaded_files()
    return request.get_json(silent=True) or {}, []


# ── Error handlers ────────────────────────────────────────────────────────────


@board_bp.errorhandler(BadRequestError)
def _handle_bad_request(error: BadRequestError):
    return jsonify({"error": str(error), "details": error.details}), 400


@board_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return jsonify({"error": f"{error.resource} not found"}), 404


@board_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    logger.info("Board conflict: %s", error)
    return jsonify({"error": "A board run is already in progress for this thread"}), 409


@board_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return jsonify({"error": str(error), "details": error.details}), 422


@board_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return jsonify({"error": error.description}), error.code
    logger.exception("Unexpected error in board_bp endpoint=%s", request.endpoint)
    return jsonify({"error": "Internal server error"}), 500


# ═════════════════════════════════════════════════════════════════════════
# Threads
# ═════════════════════════════════════════════════════════════════════════


@board_bp.route("/threads", methods=["GET"])
def list_threads():
    """Threads of the workspace, most recently updated first."""
    workspace_id, err = _workspace_required()
    if err:
        return err
    items = get_board_service().list_threads(workspace_id)
    return jsonify({"items": items, "total": len(items)}), 200


@board_bp.route("/threads", methods=["POST"])
def create_thread():
    """Body: {title?}. Returns the created thread (201)."""
    workspace_id, err = _workspace_required()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    thread = get_board_service().create_thread(workspace_id, data.get("title"))
    return jsonify(thread), 201


@board_bp.route("/threads/<int:thread_id>", methods=["GET"])
def get_thread(thread_id):
    workspace_id, err = _workspace_required()
    if err:
        return err
    return jsonify(get_board_service().get_thread(workspace_id, thread_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Runs
# ═════════════════════════════════════════════════════════════════════════


@board_bp.route("/messages", methods=["POST"])
@_board_run_limit
def post_message():
    """Submit an idea and run the board on it.

    Body (JSON or multipart/form-data): {
        content, thread_id?, goal?, constraints?, context?, save_to_knowledge?,
        files? (multipart only)
    }
    Returns: {ok, status, error, messages, thread, user_message}
    """
    workspace_id, err = _workspace_required()
    if err:
        return err
    data, files = _submission()

    result = get_board_service().create_message_and_run(
        workspace_id,
        data.get("content") or "",
        thread_id=_as_thread_id(data.get("thread_id")),
        files=files,
        goal=data.get("goal") or None,
        constraints=data.get("constraints") or None,
        context=data.get("context") or None,
        save_to_knowledge=_as_bool(data.get("save_to_knowledge")),
    )
    return jsonify(result), 200


@board_bp.route("/threads/<int:thread_id>/run", methods=["POST"])
@_board_run_limit
def rerun_thread(thread_id):
    """Body: {goal?, constraints?, context?}. Runs the board again on the latest user message."""
    workspace_id, err = _workspace_required()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    result = get_board_service().rerun_thread(
        workspace_id,
        thread_id,
        goal=data.get("goal") or None,
        constraints=data.get("constraints") or None,
        context=data.get("context") or None,
    )
    return jsonify(result), 200
