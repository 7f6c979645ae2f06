"""Exceptions for the Levee LLM client.

Public API (the "studs"):
    LLMError: Base exception for all LLM errors
    ConnectError: Address resolution or channel creation failed
    CallError: One-shot chat call failed
    SessionError: Streaming session failed (backend error, abort, protocol misuse)
    SessionClosedError: Operation attempted on a closed session
"""


class LLMError(Exception):
    """Base exception for all LLM errors."""

    pass


class ConnectError(LLMError):
    """Could not resolve the backend address or open the channel."""

    pass


class CallError(LLMError):
    """One-shot chat request failed. Never retried internally."""

    pass


class SessionError(LLMError):
    """Streaming session failure.

    Attributes:
        code: Backend or local error code (e.g. "aborted", "stream_error")
        message: Human readable message
        retryable: Backend hint whether repeating the turn may succeed
    """

    def __init__(self, message: str, code: str = "session_error", retryable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable


class SessionClosedError(SessionError):
    """The session was closed; no further send or abort is possible."""

    def __init__(self, message: str = "session is closed") -> None:
        super().__init__(message, code="session_closed")


__all__ = [
    "LLMError",
    "ConnectError",
    "CallError",
    "SessionError",
    "SessionClosedError",
]
