"""
Board Service: orchestration of board review runs.

Thread state machine (per thread, one run at a time):

    Done ──submit/rerun──► Running ──► Done   (all four role messages usable)
                                   └──► Error  (any role placeholder, or the plan failed)

A run holds a lease on the thread (run_token + run_started_at). The lease
is taken with one conditional UPDATE, so a second submission while a run is
in flight gets ConflictError (409) and writes nothing. A lease older than
``lease_seconds`` counts as abandoned and can be taken over. The final
status update releases the lease.

Run steps:
    1. Thread → Running (lease acquired)
    2. Context: recent messages, attachment summaries, knowledge retrieval
       (retrieval failures are logged and the slice is omitted)
    3. PlanExecutor.run("board_review", board_input, {"max_words": 900})
    4. Executor raised → one error-flagged chair message, thread → Error
    5. Otherwise format four role messages; any placeholder → Error, else Done
    6. Messages are committed before the status update
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import or_, select, update

from boardroom.ai.plan_executor import Goal, PlanExecutor
from boardroom.ai.provider import get_provider
from boardroom.core.exceptions import BadRequestError, ConflictError, NotFoundError
from boardroom.models import db
from boardroom.models.board import BoardAttachment, BoardMessage, BoardThread
from boardroom.services.agent_sync import ensure_board_agents
from boardroom.services.attachment_service import (
    chips_json,
    persist_attachment,
    remove_stored_files,
    validate_uploads,
)
from boardroom.services.board_context import (
    DEFAULT_THREAD_TITLE,
    build_attachment_summary,
    build_board_input,
    build_context_from_messages,
    build_thread_title,
    merge_context,
    sanitize_text,
)
from boardroom.services.knowledge_service import ingest_attachments, retrieve_knowledge
from boardroom.services.maintenance_cache import MaintenanceCache
from boardroom.services.participants import build_participant_cards
from boardroom.services.review_formatter import format_role_messages, total_failure_messages

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 4000
MAX_USER_CONTEXT_CHARS = 2500
MAX_KNOWLEDGE_QUERY_CHARS = 4000
MAX_KNOWLEDGE_CONTEXT_CHARS = 4000
KNOWLEDGE_TOP_K = 5
RUN_BUDGET = {"max_words": 900}

STATUS_DONE = "Done"
STATUS_RUNNING = "Running"
STATUS_ERROR = "Error"


def _utcnow():
    return datetime.now(timezone.utc)


class BoardService:
    """
    Runs board reviews for threads.

    Args:
        plan_executor: Object with ``run(goal, inputs, budget)``; may raise.
        retriever: ``retriever(workspace_id, query, top_k=...) -> {"context": str}``.
        maintenance_cache: MaintenanceCache gating per-workspace agent sync.
        upload_root: Directory attachments are written under.
        lease_seconds: Age after which a held run lease counts as abandoned.
    """

    def __init__(self, plan_executor, retriever=retrieve_knowledge,
                 maintenance_cache: MaintenanceCache | None = None,
                 upload_root: str = "uploads/board", lease_seconds: int = 600):
        self.plan_executor = plan_executor
        self.retriever = retriever
        self.maintenance_cache = maintenance_cache or MaintenanceCache()
        self.upload_root = upload_root
        self.lease_seconds = lease_seconds

    # ── Threads ────────────────────────────────────────────────────────

    def create_thread(self, workspace_id: str, title: str | None = None) -> dict:
        thread = BoardThread(
            workspace_id=workspace_id,
            title=sanitize_text(title, 300) or DEFAULT_THREAD_TITLE,
            last_status=STATUS_DONE,
        )
        db.session.add(thread)
        db.session.commit()
        logger.info("Board thread created", extra={"workspace_id": workspace_id, "thread_id": thread.id})
        return thread.to_dict()

    def list_threads(self, workspace_id: str) -> list[dict]:
        threads = (
            BoardThread.query_for_workspace(workspace_id)
            .order_by(BoardThread.updated_at.desc(), BoardThread.id.desc())
            .all()
        )
        return [t.to_dict() for t in threads]

    def get_thread(self, workspace_id: str, thread_id: int) -> dict:
        """Thread with messages (attachment chips included) and participant cards.

        Raises:
            NotFoundError: unknown thread or thread of another workspace.
        """
        thread = self._get_thread(workspace_id, thread_id)
        data = thread.to_dict(include_messages=True)
        data["participants"] = build_participant_cards(
            data["messages"], sending=thread.last_status == STATUS_RUNNING,
        )
        return data

    # ── Runs ───────────────────────────────────────────────────────────

    def create_message_and_run(self, workspace_id: str, content: str, thread_id: int | None = None,
                               files=(), goal: str | None = None, constraints: str | None = None,
                               context: str | None = None, save_to_knowledge: bool = False) -> dict:
        """Store a user submission (with attachments) and run the board on it.

        Everything that can be rejected (empty content, unsupported file,
        unknown thread, held lease) is rejected before the first write.

        Raises:
            BadRequestError / UnsupportedAttachmentError: 400
            NotFoundError: thread_id given but not found
            ConflictError: a run already holds the thread
        """
        content = sanitize_text(content, MAX_CONTENT_CHARS)
        if not content:
            raise BadRequestError("content is required")
        files = list(files or [])
        validate_uploads(files)

        if thread_id is not None:
            thread = self._get_thread(workspace_id, thread_id)
            token = self.acquire_run_lease(workspace_id, thread.id)
        else:
            token = uuid.uuid4().hex
            thread = BoardThread(
                workspace_id=workspace_id,
                title=build_thread_title(content),
                last_status=STATUS_RUNNING,
                run_token=token,
                run_started_at=_utcnow(),
            )
            db.session.add(thread)
            db.session.commit()
        thread_id = thread.id

        attachments = []
        try:
            message = BoardMessage(workspace_id=workspace_id, thread_id=thread_id,
                                   role="user", content=content, attachments_json="[]")
            db.session.add(message)
            db.session.flush()

            for upload in files:
                attachments.append(
                    persist_attachment(workspace_id, thread_id, message.id, upload, self.upload_root)
                )
            message.attachments_json = chips_json(attachments)
            db.session.commit()
        except Exception:
            remove_stored_files(attachments, self.upload_root)
            db.session.rollback()
            self._finish(workspace_id, thread_id, STATUS_ERROR, token)
            raise

        logger.info("Board message stored (%d attachments)", len(attachments),
                    extra={"workspace_id": workspace_id, "thread_id": thread_id, "message_id": message.id})

        if save_to_knowledge and attachments:
            self._ingest(workspace_id, attachments)

        result = self.run_for_thread(workspace_id, thread_id, goal=goal, constraints=constraints,
                                     context=context, run_token=token)
        result["thread"] = db.session.get(BoardThread, thread_id).to_dict()
        result["user_message"] = message.to_dict()
        return result

    def rerun_thread(self, workspace_id: str, thread_id: int, goal: str | None = None,
                     constraints: str | None = None, context: str | None = None) -> dict:
        """Run the board again on the thread's latest user message."""
        result = self.run_for_thread(workspace_id, thread_id, goal=goal,
                                     constraints=constraints, context=context)
        result["thread"] = db.session.get(BoardThread, thread_id).to_dict()
        return result

    def run_for_thread(self, workspace_id: str, thread_id: int, goal: str | None = None,
                       constraints: str | None = None, context: str | None = None,
                       run_token: str | None = None) -> dict:
        """
        Run the board review for the thread's latest user message.

        Without ``run_token`` the lease is acquired here; with one, the caller
        already holds it.

        Returns:
            {"ok": bool, "status": "Done"|"Error", "error": str, "messages": [...]}
        """
        thread = self._get_thread(workspace_id, thread_id)
        history = thread.messages.all()
        latest = self._latest_user_message(history)
        if latest is None:
            if run_token:
                self._finish(workspace_id, thread_id, STATUS_ERROR, run_token)
            raise BadRequestError("thread has no user message to review")

        token = run_token or self.acquire_run_lease(workspace_id, thread_id)
        try:
            self._maintain(workspace_id)
            board_input = self._assemble_input(workspace_id, thread_id, history, latest,
                                               goal, constraints, context)

            error = ""
            try:
                result = self.plan_executor.run(Goal.BOARD_REVIEW, board_input, dict(RUN_BUDGET))
            except Exception as exc:
                logger.error("Board run failed: %s", exc, exc_info=True,
                             extra={"workspace_id": workspace_id, "thread_id": thread_id})
                error = str(exc) or exc.__class__.__name__
                role_messages = total_failure_messages()
            else:
                data = result.get("data") if isinstance(result, dict) else None
                role_messages = format_role_messages(data.get("final") if isinstance(data, dict) else None)

            saved = []
            for role_message in role_messages:
                row = BoardMessage(
                    workspace_id=workspace_id,
                    thread_id=thread_id,
                    role=role_message.role,
                    content=role_message.content,
                    attachments_json="[]",
                    is_error=role_message.is_error,
                )
                db.session.add(row)
                saved.append(row)
            db.session.commit()

            status = STATUS_ERROR if any(m.is_error for m in role_messages) else STATUS_DONE
            self._finish(workspace_id, thread_id, status, token)
        except Exception:
            db.session.rollback()
            self._finish(workspace_id, thread_id, STATUS_ERROR, token)
            raise

        if status == STATUS_ERROR and not error:
            error = "Some board members could not form a position"
        logger.info("Board run finished: %s", status,
                    extra={"workspace_id": workspace_id, "thread_id": thread_id})
        return {
            "ok": status == STATUS_DONE,
            "status": status,
            "error": error,
            "messages": [m.to_dict() for m in saved],
        }

    # ── Run lease ──────────────────────────────────────────────────────

    def acquire_run_lease(self, workspace_id: str, thread_id: int) -> str:
        """Take the thread's run lease and set it Running. Commits.

        Raises:
            ConflictError: another run holds a live lease.
        """
        now = _utcnow()
        token = uuid.uuid4().hex
        stmt = (
            update(BoardThread)
            .where(
                BoardThread.id == thread_id,
                BoardThread.workspace_id == workspace_id,
                or_(
                    BoardThread.run_token.is_(None),
                    BoardThread.run_started_at < now - timedelta(seconds=self.lease_seconds),
                ),
            )
            .values(run_token=token, run_started_at=now, last_status=STATUS_RUNNING, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            db.session.rollback()
            logger.warning("Board run rejected: thread is busy",
                           extra={"workspace_id": workspace_id, "thread_id": thread_id})
            raise ConflictError(resource="BoardThread", field="run", value=str(thread_id))
        db.session.commit()
        return token

    def _finish(self, workspace_id: str, thread_id: int, status: str, token: str) -> None:
        """Final status update; releases the lease only if ``token`` still holds it."""
        now = _utcnow()
        stmt = (
            update(BoardThread)
            .where(
                BoardThread.id == thread_id,
                BoardThread.workspace_id == workspace_id,
                BoardThread.run_token == token,
            )
            .values(last_status=status, run_token=None, run_started_at=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        db.session.commit()
        if result.rowcount != 1:
            logger.warning("Run lease was lost before the status update",
                           extra={"workspace_id": workspace_id, "thread_id": thread_id})
        db.session.expire_all()

    # ── Helpers ────────────────────────────────────────────────────────

    def _get_thread(self, workspace_id: str, thread_id: int) -> BoardThread:
        thread = db.session.execute(
            select(BoardThread).where(
                BoardThread.id == thread_id,
                BoardThread.workspace_id == workspace_id,
            )
        ).scalar_one_or_none()
        if thread is None:
            raise NotFoundError(resource="BoardThread", resource_id=thread_id, workspace_id=workspace_id)
        return thread

    @staticmethod
    def _latest_user_message(history: list[BoardMessage]) -> BoardMessage | None:
        for message in reversed(history):
            if message.role == "user":
                return message
        return None

    def _assemble_input(self, workspace_id: str, thread_id: int, history: list[BoardMessage],
                        latest: BoardMessage, goal, constraints, context) -> dict:
        attachments = db.session.execute(
            select(BoardAttachment)
            .where(BoardAttachment.message_id == latest.id)
            .order_by(BoardAttachment.id)
        ).scalars().all()
        attachments_summary = build_attachment_summary(attachments)

        earlier = [m for m in history if m.id < latest.id]
        thread_context = build_context_from_messages(earlier)
        merged = merge_context(
            sanitize_text(context, MAX_USER_CONTEXT_CHARS),
            f"Thread history:\n{thread_context}" if thread_context else "",
            f"Attachments:\n{attachments_summary}" if attachments_summary else "",
        )
        board_input = build_board_input(latest.content, goal, constraints, merged, attachments_summary)

        query = " ".join(
            board_input[k] for k in ("idea", "goal", "constraints", "context", "attachments_summary")
            if board_input.get(k)
        )[:MAX_KNOWLEDGE_QUERY_CHARS]
        try:
            knowledge = self.retriever(workspace_id, query, top_k=KNOWLEDGE_TOP_K) or {}
            knowledge_context = sanitize_text(knowledge.get("context"), MAX_KNOWLEDGE_CONTEXT_CHARS)
        except Exception as exc:
            logger.warning("Knowledge retrieval failed, continuing without it: %s", exc,
                           extra={"workspace_id": workspace_id, "thread_id": thread_id})
            db.session.rollback()
            knowledge_context = ""
        if knowledge_context:
            board_input["context"] = merge_context(board_input["context"], knowledge_context)
        return board_input

    def _ingest(self, workspace_id: str, attachments) -> None:
        try:
            ingest_attachments(workspace_id, attachments)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            logger.warning("Knowledge ingestion failed, continuing: %s", exc,
                           extra={"workspace_id": workspace_id})

    def _maintain(self, workspace_id: str) -> None:
        if self.maintenance_cache.is_fresh(workspace_id):
            return
        try:
            ensure_board_agents(workspace_id)
        except Exception as exc:
            db.session.rollback()
            logger.warning("Board agent sync failed: %s", exc, extra={"workspace_id": workspace_id})
            return
        self.maintenance_cache.mark(workspace_id)


def _role_models(cfg) -> dict:
    return {
        role: cfg.get(f"BOARD_MODEL_{role.upper()}") or cfg.get("LLM_DEFAULT_MODEL")
        for role in ("ceo", "cto", "cfo", "chair")
    }


def get_board_service(app=None) -> BoardService:
    """Return the per-application BoardService singleton."""
    if app is None:
        app = current_app._get_current_object()
    if not hasattr(app, "_board_service"):
        cfg = app.config
        app._board_service = BoardService(
            plan_executor=PlanExecutor(get_provider(app), models=_role_models(cfg)),
            retriever=retrieve_knowledge,
            maintenance_cache=MaintenanceCache(ttl_seconds=cfg.get("BOARD_MAINTENANCE_TTL_SECONDS", 3600)),
            upload_root=cfg["BOARD_UPLOAD_ROOT"],
            lease_seconds=cfg.get("BOARD_RUN_LEASE_SECONDS", 600),
        )
    return app._board_service
