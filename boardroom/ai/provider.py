"""
Boardroom Idea Review Service
Structured-Output Provider.

Every board role asks a provider for ONE JSON object shaped by the role's
response schema. Two interchangeable implementations:

    - FixtureProvider: deterministic. Loads <fixtures_root>/<agent_id>/output.json,
      normalizes volatile fields, and falls back to a schema stub when an
      agent has no fixture. No network, safe for parallel tests.
    - OpenAIChatProvider: live OpenAI-compatible /chat/completions client over
      requests. Strict json_schema response mode with json_object fallback,
      per-role credential chain, one compatibility retry per unsupported
      parameter, bounded token-budget escalation on truncated output.

Usage:
    from boardroom.ai.provider import get_provider
    provider = get_provider()
    data = provider.generate_json(system, prompt, schema, meta={"agent_id": "board-ceo"})

Testability: pass a fake `session` (anything with .post()) and a
`credentials` mapping to OpenAIChatProvider() instead of touching os.environ
or the network.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Mapping

import requests

from boardroom.ai.errors import (
    LLMProviderError,
    ProviderConfigError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from boardroom.ai.schema_stub import EPOCH_ISO, synthesize

logger = logging.getLogger(__name__)

# ── Agent identifiers ──────────────────────────────────────────────────────

# Short and legacy forms → canonical agent id (fixture directory name)
AGENT_ID_ALIASES = {
    "ceo": "board-ceo",
    "board-ceo-ru": "board-ceo",
    "cto": "board-cto",
    "board-cto-ru": "board-cto",
    "cfo": "board-cfo",
    "board-cfo-ru": "board-cfo",
    "chair": "board-chair",
    "chairman": "board-chair",
    "board-chairman": "board-chair",
    "board-chair-ru": "board-chair",
}

# Canonical agent id → credential suffix
_ROLE_BY_AGENT = {
    "board-ceo": "CEO",
    "board-cto": "CTO",
    "board-cfo": "CFO",
    "board-chair": "CHAIR",
}

# ── Volatile fixture fields ────────────────────────────────────────────────
STUB_RUN_ID = "stub-run"
_VOLATILE_FIELDS = {
    "generated_at": EPOCH_ISO,
    "run_id": STUB_RUN_ID,
    "trace_id": STUB_RUN_ID,
    "duration_ms": 0,
}

# ── Live provider constants ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 45              # seconds
_DEFAULT_MODEL = "gpt-5-mini"
_DEFAULT_BASE_URL = "https://api.openai.com/v1"
_TEMPERATURE_MIN, _TEMPERATURE_MAX, _TEMPERATURE_DEFAULT = 0.0, 1.5, 0.2
_TOKENS_MIN, _TOKENS_MAX, _TOKENS_DEFAULT = 200, 6000, 1800
_TOKENS_CEILING = 12000            # hard ceiling for truncation escalation
_ESCALATION_FACTOR = 2
_PREVIEW_CHARS = 200

# Parameters a backend may reject: renamed to the sibling form, or dropped
_PARAM_ALIASES = {
    "max_tokens": "max_completion_tokens",
    "max_completion_tokens": "max_tokens",
}
_DROPPABLE_PARAMS = frozenset({"temperature", "top_p"})
_UNSUPPORTED_PARAM_RE = re.compile(r"Unsupported (?:parameter|value):\s*'([A-Za-z_]+)'")
_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")

_DEFAULT_SYSTEM = "You are a strict JSON assistant."


# ── Helpers ────────────────────────────────────────────────────────────────

def canonical_agent_id(agent_id: Any) -> str:
    """Resolve short/legacy agent ids to the canonical fixture id."""
    if not agent_id:
        return ""
    normalized = str(agent_id).strip()
    return AGENT_ID_ALIASES.get(normalized.lower(), normalized)


def resolve_fixture_path(agent_id: Any, fixtures_root: str) -> str:
    canonical = canonical_agent_id(agent_id)
    # Agent ids are directory names; anything path-like never maps to a fixture
    if not canonical or "/" in canonical or "\\" in canonical or canonical.startswith("."):
        return ""
    return os.path.join(fixtures_root, canonical, "output.json")


def has_fixture(agent_id: Any, fixtures_root: str) -> bool:
    path = resolve_fixture_path(agent_id, fixtures_root)
    return bool(path) and os.path.isfile(path)


def strip_volatile(value: Any) -> Any:
    """Return a copy with timestamps, run ids and durations pinned to fixed values."""
    if isinstance(value, list):
        return [strip_volatile(item) for item in value]
    if not isinstance(value, dict):
        return value
    result = {}
    for key, val in value.items():
        if key in _VOLATILE_FIELDS:
            result[key] = _VOLATILE_FIELDS[key]
        else:
            result[key] = strip_volatile(val)
    return result


def empty_usage() -> dict:
    return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


def _add_usage(total: dict, usage: Any) -> None:
    if not isinstance(usage, dict):
        return
    for key in total:
        value = usage.get(key)
        if isinstance(value, (int, float)):
            total[key] += int(value)


def _as_number(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if number != number or number in (float("inf"), float("-inf")):
        return fallback
    return number


def clamp_temperature(value: Any) -> float:
    return min(max(_as_number(value, _TEMPERATURE_DEFAULT), _TEMPERATURE_MIN), _TEMPERATURE_MAX)


def clamp_max_tokens(value: Any) -> int:
    return int(min(max(_as_number(value, _TOKENS_DEFAULT), _TOKENS_MIN), _TOKENS_MAX))


def sanitize_schema_name(name: Any) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_-]", "_", str(name or "").strip())[:64]
    return cleaned or "agent_output"


def extract_message_text(body: dict) -> tuple[str, str | None]:
    """Return (text, finish_reason) of the first choice.

    ``message.content`` may be a plain string or a list of parts; textual
    parts are concatenated.
    """
    choices = body.get("choices") if isinstance(body, dict) else None
    first = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(first, dict):
        first = {}
    finish_reason = first.get("finish_reason")
    message = first.get("message") if isinstance(first.get("message"), dict) else {}
    content = message.get("content")

    if isinstance(content, str):
        return content, finish_reason
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
                continue
            if not isinstance(part, dict):
                continue
            text = part.get("text")
            if isinstance(text, dict):
                text = text.get("value")
            if not isinstance(text, str):
                text = part.get("content")
            if isinstance(text, str):
                parts.append(text)
        return "".join(parts).strip(), finish_reason
    return "", finish_reason


def parse_json_text(text: str) -> Any:
    """Parse model output, tolerating surrounding ```json fences.

    Raises:
        ValueError: empty text or text that is not valid JSON.
    """
    stripped = _CODE_FENCE_RE.sub("", (text or "").strip()).strip()
    if not stripped:
        raise ValueError("empty model output")
    return json.loads(stripped)


# ── Provider Abstract Base ─────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for structured-output providers."""

    name = "base"

    @abstractmethod
    def generate_json_with_usage(
        self,
        system: str,
        prompt: str,
        schema: dict | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        meta: dict | None = None,
    ) -> dict:
        """
        Produce one JSON object.

        Args:
            system: System instructions.
            prompt: User prompt.
            schema: JSON-Schema the object should follow.
            temperature / max_tokens: Sampling hints (clamped by live providers).
            meta: {"agent_id": ..., "model": ...}.

        Returns:
            {"data": dict, "usage": {prompt_tokens, completion_tokens, total_tokens}}

        Raises:
            LLMProviderError (or a subclass). Never returns a non-object.
        """
        ...

    def generate_json(
        self,
        system: str,
        prompt: str,
        schema: dict | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        meta: dict | None = None,
    ) -> dict:
        return self.generate_json_with_usage(
            system, prompt, schema,
            temperature=temperature, max_tokens=max_tokens, meta=meta,
        )["data"]


# ── Fixture Provider ───────────────────────────────────────────────────────

class FixtureProvider(LLMProvider):
    """
    Deterministic provider for tests and offline runs.
    No API key required; repeated calls return identical objects.
    """

    name = "fixture"

    def __init__(self, fixtures_root: str):
        self.fixtures_root = fixtures_root

    def load_fixture(self, agent_id: Any) -> Any:
        """Return the normalized fixture for ``agent_id``, or None if there is none."""
        path = resolve_fixture_path(agent_id, self.fixtures_root)
        if not path or not os.path.isfile(path):
            return None
        try:
            with open(path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable fixture %s: %s, using schema stub", path, exc,
                           extra={"agent_id": canonical_agent_id(agent_id)})
            return None
        return strip_volatile(raw)

    def generate_json_with_usage(self, system, prompt, schema=None,
                                 temperature=None, max_tokens=None, meta=None):
        agent_id = (meta or {}).get("agent_id")
        fixture = self.load_fixture(agent_id)

        if fixture is None:
            data = synthesize(schema or {})
            source = "schema"
        elif isinstance(fixture, dict) and "data" in fixture:
            data = copy.deepcopy(fixture["data"])
            source = "fixture"
        else:
            data = fixture
            source = "fixture"

        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"{source} output for agent {agent_id!r} is not a JSON object"
            )
        logger.debug("Fixture provider served %s from %s", agent_id, source,
                     extra={"agent_id": canonical_agent_id(agent_id), "provider": self.name})
        return {"data": data, "usage": empty_usage()}


# ── OpenAI-compatible Provider ─────────────────────────────────────────────

class OpenAIChatProvider(LLMProvider):
    """
    Live provider for any OpenAI-compatible chat completions endpoint.

    Pass a custom `session` in tests to intercept HTTP calls, and a
    `credentials` mapping to stand in for os.environ.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = _DEFAULT_BASE_URL,
        model: str = _DEFAULT_MODEL,
        timeout_seconds: float = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
        credentials: Mapping[str, str] | None = None,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = (base_url or _DEFAULT_BASE_URL).rstrip("/")
        self.model = model or _DEFAULT_MODEL
        self.timeout_seconds = timeout_seconds
        self._session: requests.Session | None = session
        self._credentials = credentials if credentials is not None else os.environ

    # ── HTTP session ─────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Credentials ──────────────────────────────────────────────────────

    def credential_chain(self, agent_id: Any) -> list[str]:
        """Environment keys consulted, most specific first."""
        chain = []
        role = _ROLE_BY_AGENT.get(canonical_agent_id(agent_id))
        if role:
            chain.append(f"OPENAI_API_KEY_BOARD_{role}")
        chain += ["OPENAI_API_KEY_BOARD", "OPENAI_API_KEY"]
        return chain

    def resolve_api_key(self, agent_id: Any) -> str:
        for key in self.credential_chain(agent_id):
            value = str(self._credentials.get(key) or "").strip()
            if value:
                return value
        return self.api_key.strip()

    # ── Request building ─────────────────────────────────────────────────

    @staticmethod
    def build_messages(system: str, prompt: str, schema: dict | None) -> list[dict]:
        base_system = system.strip() if isinstance(system, str) and system.strip() else _DEFAULT_SYSTEM
        if isinstance(schema, dict) and schema:
            hint = "Return only JSON that matches this schema:\n" + json.dumps(schema, ensure_ascii=False)
        else:
            hint = "Return only valid JSON."
        user_prompt = prompt.strip() if isinstance(prompt, str) and prompt.strip() else "{}"
        return [
            {"role": "system", "content": f"{base_system}\n\n{hint}"},
            {"role": "user", "content": user_prompt},
        ]

    @staticmethod
    def _response_format(agent_id: Any, schema: dict | None) -> dict:
        if isinstance(schema, dict) and schema:
            return {
                "type": "json_schema",
                "json_schema": {
                    "name": sanitize_schema_name(agent_id),
                    "strict": True,
                    "schema": schema,
                },
            }
        return {"type": "json_object"}

    # ── Transport ────────────────────────────────────────────────────────

    def _post(self, payload: dict, api_key: str) -> dict:
        url = f"{self.base_url}/chat/completions"
        try:
            resp = self.session.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {api_key}",
                },
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise ProviderTimeoutError(
                f"LLM request timed out after {self.timeout_seconds}s"
            ) from exc
        except requests.RequestException as exc:
            raise LLMProviderError(f"LLM request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise ProviderHTTPError(resp.status_code, self._error_message(resp))

        try:
            body = resp.json()
        except ValueError as exc:
            raise ProviderResponseError(
                "LLM response body is not JSON", preview=(resp.text or "")[:_PREVIEW_CHARS]
            ) from exc
        if not isinstance(body, dict):
            raise ProviderResponseError("LLM response body is not a JSON object")
        return body

    @staticmethod
    def _error_message(resp) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and (error.get("message") or error.get("code")):
                return str(error.get("message") or error.get("code"))
            if isinstance(error, str) and error:
                return error
        text = (resp.text or "")[:300]
        return text or f"HTTP {resp.status_code}"

    def _post_with_compat(self, payload: dict, api_key: str, adjusted: set[str]) -> dict:
        """POST, repairing the payload for backends that reject parts of it.

        - ``Unsupported parameter: 'x'`` → rename x to its sibling or drop it,
          once per parameter name per call chain.
        - json_schema response mode rejected → json_object mode, once.
        """
        while True:
            try:
                return self._post(payload, api_key)
            except ProviderHTTPError as exc:
                if exc.status_code not in (400, 422):
                    raise
                match = _UNSUPPORTED_PARAM_RE.search(exc.message)
                param = match.group(1) if match else None

                if param and param != "response_format":
                    if param in adjusted or not self._adjust_param(payload, param):
                        raise
                    adjusted.add(param)
                    logger.info("LLM backend rejected '%s'; retrying with adjusted request", param)
                    continue

                if payload.get("response_format", {}).get("type") == "json_schema":
                    payload["response_format"] = {"type": "json_object"}
                    logger.info("LLM backend rejected json_schema mode; retrying with json_object")
                    continue
                raise

    @staticmethod
    def _adjust_param(payload: dict, param: str) -> bool:
        if param in _PARAM_ALIASES and param in payload:
            payload[_PARAM_ALIASES[param]] = payload.pop(param)
            return True
        if param in _DROPPABLE_PARAMS and param in payload:
            payload.pop(param)
            return True
        return False

    @staticmethod
    def _token_key(payload: dict) -> str:
        return "max_completion_tokens" if "max_completion_tokens" in payload else "max_tokens"

    # ── Public API ───────────────────────────────────────────────────────

    def generate_json_with_usage(self, system, prompt, schema=None,
                                 temperature=None, max_tokens=None, meta=None):
        meta = meta or {}
        agent_id = canonical_agent_id(meta.get("agent_id"))
        api_key = self.resolve_api_key(agent_id)
        if not api_key:
            raise ProviderConfigError(
                "No API key configured: set one of "
                + ", ".join(self.credential_chain(agent_id))
            )

        requested_model = meta.get("model")
        model = requested_model.strip() if isinstance(requested_model, str) and requested_model.strip() else self.model
        budget = clamp_max_tokens(max_tokens)
        payload = {
            "model": model,
            "messages": self.build_messages(system, prompt, schema),
            "temperature": clamp_temperature(temperature),
            "max_tokens": budget,
            "response_format": self._response_format(agent_id, schema),
        }

        usage = empty_usage()
        adjusted: set[str] = set()
        attempt = 0
        while True:
            attempt += 1
            body = self._post_with_compat(payload, api_key, adjusted)
            _add_usage(usage, body.get("usage"))
            text, finish_reason = extract_message_text(body)

            try:
                data = parse_json_text(text)
            except ValueError:
                data = None
            else:
                if not isinstance(data, dict):
                    raise ProviderResponseError(
                        "LLM returned JSON that is not an object",
                        finish_reason=finish_reason,
                        preview=text[:_PREVIEW_CHARS],
                    )
                logger.debug("LLM call ok agent=%s model=%s attempts=%d", agent_id, model, attempt,
                             extra={"agent_id": agent_id, "model": model, "attempt": attempt})
                return {"data": data, "usage": usage}

            if finish_reason != "length":
                raise ProviderResponseError(
                    "LLM returned non-JSON output",
                    finish_reason=finish_reason,
                    preview=text[:_PREVIEW_CHARS],
                )

            token_key = self._token_key(payload)
            current = int(payload.get(token_key) or budget)
            escalated = min(current * _ESCALATION_FACTOR, _TOKENS_CEILING)
            if escalated <= current:
                raise ProviderResponseError(
                    f"LLM output truncated at token ceiling {current}",
                    finish_reason=finish_reason,
                    preview=text[:_PREVIEW_CHARS],
                )
            logger.info("LLM output truncated at %d tokens; retrying with %d", current, escalated,
                        extra={"agent_id": agent_id, "model": model, "attempt": attempt})
            payload[token_key] = escalated


# ── Factory ────────────────────────────────────────────────────────────────

LIVE_PROVIDER_NAMES = frozenset({"openai", "real", "live"})


def create_provider(mode: str | None = None, *, fixtures_root: str | None = None,
                    api_key: str = "", base_url: str = _DEFAULT_BASE_URL,
                    model: str = _DEFAULT_MODEL, timeout_seconds: float = _DEFAULT_TIMEOUT,
                    session: requests.Session | None = None) -> LLMProvider:
    """Build a provider. Unknown modes fall back to the fixture provider."""
    normalized = str(mode or "").strip().lower()
    if normalized in LIVE_PROVIDER_NAMES:
        return OpenAIChatProvider(
            api_key=api_key,
            base_url=base_url,
            model=model,
            timeout_seconds=timeout_seconds,
            session=session,
        )
    if fixtures_root is None:
        fixtures_root = os.path.join(os.path.dirname(os.path.dirname(__file__)), "fixtures", "agents")
    return FixtureProvider(fixtures_root)


def get_provider(app=None) -> LLMProvider:
    """Return the per-application provider singleton."""
    if app is None:
        from flask import current_app
        app = current_app._get_current_object()
    if not hasattr(app, "_board_llm_provider"):
        cfg = app.config
        app._board_llm_provider = create_provider(
            cfg.get("LLM_PROVIDER"),
            fixtures_root=cfg.get("LLM_FIXTURES_ROOT"),
            api_key=cfg.get("OPENAI_API_KEY", ""),
            base_url=cfg.get("OPENAI_BASE_URL", _DEFAULT_BASE_URL),
            model=cfg.get("LLM_DEFAULT_MODEL", _DEFAULT_MODEL),
            timeout_seconds=cfg.get("OPENAI_TIMEOUT_SECONDS", _DEFAULT_TIMEOUT),
        )
        logger.info("LLM provider initialised: %s", app._board_llm_provider.name)
    return app._board_llm_provider
