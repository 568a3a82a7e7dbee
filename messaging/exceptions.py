"""Gateway error taxonomy."""

from typing import Any


class GatewayError(Exception):
    """Base error carrying the HTTP status and error type it maps to."""

    status_code: int = 500
    error_type: str = "gateway_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> dict[str, Any]:
        return {"ok": False, "error": self.message, "type": self.error_type}


class InvalidRequestError(GatewayError):
    """Bad address, empty body or file, missing fields. Never enqueued."""

    status_code = 400
    error_type = "invalid_request_error"


class SessionNotReadyError(GatewayError):
    """No live transport session."""

    status_code = 503
    error_type = "session_not_ready"

    def __init__(self, message: str = "session not ready"):
        super().__init__(message)


class SendTimeoutError(GatewayError):
    status_code = 504
    error_type = "send_timeout"


class SendFailedError(GatewayError):
    """The transport raised while sending."""

    status_code = 502
    error_type = "send_failed"
