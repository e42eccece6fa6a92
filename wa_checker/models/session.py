"""Pydantic models for session state."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"  # challenge pending
    AUTHENTICATED = "authenticated"
    READY = "ready"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class QRChallenge(BaseModel):
    """Scannable code for the live connect attempt."""

    code: str
    generation: int = 0


class SessionStatus(BaseModel):
    """Current state of the messaging session."""

    state: SessionState = SessionState.UNINITIALIZED
    is_ready: bool = False
    is_stopping: bool = False
    challenge_code: Optional[str] = None
    last_error: Optional[str] = None
