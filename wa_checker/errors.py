"""Exception taxonomy for sessions, lookups, and job submission."""

from __future__ import annotations


class CheckerError(Exception):
    """Base class for all checker errors."""


# ── Connection attempts ──────────────────────────────────────────────────────


class ConnectionAttemptError(CheckerError):
    """Terminal failure of one connect attempt. Call connect() again to retry."""


class ConnectTimeout(ConnectionAttemptError):
    def __init__(self, seconds: float):
        super().__init__(f"Client initialization timeout after {seconds:g}s")
        self.seconds = seconds


class AuthenticationFailed(ConnectionAttemptError):
    def __init__(self, reason: str):
        super().__init__(f"Authentication failed: {reason}")
        self.reason = reason


class StoppedByOperator(ConnectionAttemptError):
    def __init__(self, message: str = "QR generation stopped by user"):
        super().__init__(message)


class SessionDisconnected(ConnectionAttemptError):
    def __init__(self, reason: str):
        super().__init__(f"Session disconnected: {reason}")
        self.reason = reason


# ── Lookups ──────────────────────────────────────────────────────────────────


class LookupUnavailableError(CheckerError):
    """No ready session to run lookups against."""


class ContactNotFoundError(CheckerError):
    """The number has no account on the network."""


class LookupFailed(CheckerError):
    """The page never settled, so the number's status is unknown."""


# ── Jobs ─────────────────────────────────────────────────────────────────────


class SubmissionRejected(CheckerError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
