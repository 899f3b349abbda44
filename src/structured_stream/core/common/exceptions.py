"""
Common exception classes for structured stream extraction.

Every terminal or recoverable failure of an extraction session is expressed
as a subclass of :class:`StructuredStreamError` carrying an :class:`ErrorKind`
so consumers can tell "failed" from "cancelled" without string matching.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Error taxonomy of an extraction session."""

    TRANSIENT_PARSE_GAP = "transient_parse_gap"
    ITEM_TRANSFORM_FAILURE = "item_transform_failure"
    FINAL_VALIDATION_FAILURE = "final_validation_failure"
    UPSTREAM_TRANSPORT_FAILURE = "upstream_transport_failure"
    CANCELLATION_REQUESTED = "cancellation_requested"


class StructuredStreamError(Exception):
    """Base exception class for all structured stream errors."""

    kind: ErrorKind | None = None

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        **kwargs,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # Attach any extra attributes provided for compatibility with callers/tests
        for key, value in (kwargs or {}).items():
            setattr(self, key, value)

    def to_dict(self) -> dict:
        error_dict = {
            "message": self.message,
            "type": self.__class__.__name__,
            "kind": self.kind.value if self.kind is not None else None,
            "details": self.details,
        }

        for attr_name in vars(self):
            if attr_name.startswith("_") or attr_name in ("message", "details"):
                continue
            value = getattr(self, attr_name)
            if not callable(value):
                error_dict[attr_name] = value

        return {"error": error_dict}


class ConfigurationError(StructuredStreamError):
    """Raised when an extraction configuration or schema is unusable."""

    def __init__(
        self,
        message: str = "Configuration error",
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)


class ItemTransformError(StructuredStreamError):
    """Recorded when a completed item could not be transformed cleanly.

    The pipeline never lets this escape; it is collected into the session
    diagnostics and the item is delivered with placeholder values.
    """

    kind = ErrorKind.ITEM_TRANSFORM_FAILURE

    def __init__(
        self,
        message: str = "Item transformation failed",
        index: int | None = None,
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)
        self.index = index


class FinalValidationError(StructuredStreamError):
    """Raised when the full response fails the strict end-of-stream parse."""

    kind = ErrorKind.FINAL_VALIDATION_FAILURE

    def __init__(
        self,
        message: str = "Final document validation failed",
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)


class UpstreamTransportError(StructuredStreamError):
    """Raised when the upstream fragment producer fails."""

    kind = ErrorKind.UPSTREAM_TRANSPORT_FAILURE

    def __init__(
        self,
        message: str = "Upstream stream failed",
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)


class StreamTimeoutError(UpstreamTransportError):
    """Raised when the session or inter-fragment timeout expires."""

    def __init__(
        self,
        message: str = "Upstream stream timed out",
        timeout_seconds: float | None = None,
        details: dict | None = None,
        **kwargs,
    ):
        super().__init__(message, details, **kwargs)
        self.timeout_seconds = timeout_seconds
