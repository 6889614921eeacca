"""Core exceptions for xpfetch.

Every error that can end a content fetch carries a ``code`` and a ``message`` so
the top-level fetcher can turn it into the uniform ``{code, message}`` shape
without inspecting transport internals.
"""

from __future__ import annotations

from typing import Any


class XpFetchError(Exception):
    """Base exception for all xpfetch errors."""


class ConfigError(XpFetchError):
    """Raised when settings are missing or invalid."""

    def __init__(self, missing: list[str] | None = None, detail: str | None = None) -> None:
        self.missing = missing or []
        if detail is None:
            detail = ", ".join(f"Config value '{key}' is missing" for key in self.missing)
        super().__init__(detail or "Invalid configuration")


class FetchError(XpFetchError):
    """Base exception for errors that end up in a FetchContentResult."""

    default_code = "500"

    def __init__(self, message: str, code: str | int | None = None) -> None:
        self.code = str(code if code is not None else self.default_code)
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class InvalidInputError(FetchError):
    """Raised when a content path or a query body is malformed."""

    default_code = "400"


class RegistryError(InvalidInputError):
    """Raised when a registered query contract is malformed."""


class TransportFailureError(FetchError):
    """Raised when the API could not be reached at all."""

    default_code = "API"


class ApiResponseError(FetchError):
    """Raised when the API answered with a non-success status or unusable body."""


class BackendError(FetchError):
    """Raised when Guillotine answered with an ``errors`` collection."""

    def __init__(self, error_count: int) -> None:
        self.error_count = error_count
        super().__init__(
            f"Server responded with {error_count} error(s), probably from guillotine - see log."
        )


class MissingContentError(FetchError):
    """Raised when no metadata exists for the requested path."""

    default_code = "404"

    def __init__(self, message: str = "No meta data found for content, most likely content does not exist") -> None:
        super().__init__(message)


class IncompleteMetadataError(FetchError):
    """Raised when metadata lacks the content type."""

    def __init__(self, message: str = "Server responded with incomplete meta data: missing content 'type' attribute.") -> None:
        super().__init__(message)


class ForbiddenInContextError(FetchError):
    """Raised when a content type may not be rendered in the current render mode."""

    default_code = "404"

    def __init__(self, content_type: str, render_mode: str) -> None:
        self.content_type = content_type
        self.render_mode = render_mode
        super().__init__(f"Content type [{content_type}] is not accessible in {render_mode} mode")


class MissingQueryError(FetchError):
    """Raised when no usable query could be assembled for a content type."""

    default_code = "400"

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"Missing or empty query override for content type {content_type}")


class StructuralInconsistencyError(FetchError):
    """Raised when component paths do not agree with the declared components."""

    default_code = "Local"


class ComponentProcessingError(XpFetchError):
    """Wraps a failed component processor. Never leaves the processor runner."""

    def __init__(self, component_path: str | None, reason: str) -> None:
        self.component_path = component_path
        self.reason = reason
        super().__init__(f"Processor failed for component [{component_path}]: {reason}")
