"""
Service-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from boardroom.core.exceptions import NotFoundError, BadRequestError

    raise NotFoundError(resource="BoardThread", resource_id=thread_id)
    raise BadRequestError("content is required")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given workspace.

    Used for BOTH genuinely missing records AND cross-workspace lookups, so a
    caller cannot learn whether a thread exists in someone else's workspace.

    Args:
        resource: Human-readable model/entity name (e.g. "BoardThread").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        workspace_id: Optional. The scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        workspace_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.workspace_id = workspace_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if workspace_id is not None:
            msg += f" (workspace={workspace_id})"
        super().__init__(msg)


class BadRequestError(Exception):
    """Raised when the request itself is unusable (empty content, missing header).

    Maps to HTTP 400.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class UnsupportedAttachmentError(BadRequestError):
    """Raised when an uploaded file has an extension outside the allow-list.

    Raised before any thread, message or file is written.
    """

    def __init__(self, filename: str, extension: str) -> None:
        self.filename = filename
        self.extension = extension
        super().__init__(
            f"Unsupported file type: {extension or '(none)'}",
            details={"filename": filename, "extension": extension},
        )


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input): the data was well-formed but
    violated a rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with existing state.

    Maps to HTTP 409. For board runs: a second run on a thread whose run
    lease is still held.

    Args:
        resource: Model name.
        field: The contended field.
        value: The conflicting value (truncated in HTTP response; full in logs).
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} is already in use"
        super().__init__(msg)
