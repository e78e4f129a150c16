"""Error taxonomy for query streaming.

Every error carries a stable ``reason_code`` so callers can branch on the
failure class without matching message text.
"""

from typing import Optional

CONFIG_INVALID = "CONFIG_INVALID"
GATEWAY_ERROR = "GATEWAY_ERROR"
QUERY_TIMEOUT = "QUERY_TIMEOUT"
FORMAT_INVALID = "FORMAT_INVALID"
STATE_INVALID = "STATE_INVALID"


class QueryStreamError(Exception):
    """Base class for athena_stream failures."""

    reason_code = "QUERY_STREAM_ERROR"

    def __init__(self, message: str, *, reason_code: Optional[str] = None) -> None:
        """Attach a stable reason code to the error instance."""
        super().__init__(message)
        if reason_code is not None:
            self.reason_code = reason_code


class ConfigError(QueryStreamError, ValueError):
    """Raised synchronously when client configuration is unusable."""

    reason_code = CONFIG_INVALID


class FormatError(QueryStreamError, ValueError):
    """Raised when a page is decoded with an unrecognized output format."""

    reason_code = FORMAT_INVALID

    def __init__(self, output_format: object) -> None:
        """Record the rejected format value."""
        self.output_format = output_format
        super().__init__(f"invalid format {output_format!r}; expected 'array' or 'raw'.")


class GatewayError(QueryStreamError):
    """A submit/poll/fetch/cancel call against the remote service failed."""

    reason_code = GATEWAY_ERROR

    def __init__(self, operation: str, message: str, handle: Optional[str] = None) -> None:
        """Initialize with the failing gateway operation and query handle."""
        self.operation = operation
        self.handle = handle
        prefix = f"{operation} failed"
        if handle:
            prefix = f"{operation} failed for query {handle}"
        super().__init__(f"{prefix}: {message}")


class QueryTimeoutError(QueryStreamError, TimeoutError):
    """The query did not complete before its deadline and was cancelled."""

    reason_code = QUERY_TIMEOUT

    def __init__(self, handle: Optional[str], timeout_seconds: float) -> None:
        """Initialize timeout details with the query handle."""
        self.handle = handle
        self.timeout_seconds = timeout_seconds
        super().__init__(f"query {handle} timed out after {float(timeout_seconds):g}s.")


class InvalidTransitionError(QueryStreamError, RuntimeError):
    """Raised when the execution state machine is driven through an illegal edge."""

    reason_code = STATE_INVALID
