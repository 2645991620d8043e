"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

UNSUPPORTED_ENVIRONMENT = "UNSUPPORTED_ENVIRONMENT"
PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_TRANSIENT = "NETWORK_TRANSIENT"
RECONNECT_EXHAUSTED = "RECONNECT_EXHAUSTED"
MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
CLIPBOARD_FAILURE = "CLIPBOARD_FAILURE"

ERROR_MESSAGES = {
    UNSUPPORTED_ENVIRONMENT: "Speech recognition is not available in this environment.",
    PERMISSION_DENIED: "Microphone access is not allowed.",
    NETWORK_TRANSIENT: "Network is unstable, reconnecting...",
    RECONNECT_EXHAUSTED: "Stopped after repeated connection errors.",
    MISSING_CREDENTIAL: "API key is not set.",
    INVALID_CREDENTIAL: "API key is invalid or lacks permission, check your settings.",
    TRANSIENT_FAILURE: "AI processing failed, please retry.",
    CLIPBOARD_FAILURE: "Copy to clipboard failed.",
}


class UnsupportedEnvironmentError(RuntimeError):
    """Raised when no speech recognition capability can be created."""


class TransformError(Exception):
    code = TRANSIENT_FAILURE

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])
        self.message = message or ERROR_MESSAGES[self.code]


class MissingCredential(TransformError):
    code = MISSING_CREDENTIAL


class InvalidCredential(TransformError):
    code = INVALID_CREDENTIAL

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"AI service rejected the API key ({status_code})")
        self.status_code = status_code


class TransientFailure(TransformError):
    code = TRANSIENT_FAILURE

    def __init__(self, message: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
