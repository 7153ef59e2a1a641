"""
Structured-output provider errors.

Every failure a provider can raise derives from LLMProviderError, so the
plan executor can record a failed role step with a single except clause.
"""


class LLMProviderError(Exception):
    """Base class for provider failures."""


class ProviderConfigError(LLMProviderError):
    """No credential (or other mandatory setting) could be resolved.

    Raised before any network call is made.
    """


class ProviderHTTPError(LLMProviderError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"LLM HTTP {status_code}: {message}")


class ProviderTimeoutError(LLMProviderError):
    """Request exceeded the configured timeout and was aborted."""


class ProviderResponseError(LLMProviderError):
    """Backend answered 2xx but the body is unusable.

    Args:
        message: What went wrong (non-JSON text, non-object JSON, truncation).
        finish_reason: Last finish_reason reported by the backend, if any.
        preview: First characters of the returned text, for diagnostics.
    """

    def __init__(self, message: str, finish_reason: str | None = None, preview: str = "") -> None:
        self.finish_reason = finish_reason
        self.preview = preview
        details = message
        if finish_reason:
            details += f" (finish_reason={finish_reason})"
        if preview:
            details += f" preview={preview!r}"
        super().__init__(details)
