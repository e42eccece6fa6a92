"""Transport contract between the session manager and the messaging network.

A transport is started once, then reports its lifecycle as a stream of
named events (challenge shown, authenticated, ready, auth failure,
disconnected). Lookups are only valid after READY.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from pydantic import BaseModel


class TransportEventKind(str, Enum):
    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    AUTH_FAILURE = "auth_failure"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class TransportEvent:
    kind: TransportEventKind
    detail: str = ""  # QR payload, failure or disconnect reason


class Contact(BaseModel):
    """Public profile metadata of a registered account."""

    id: str
    name: Optional[str] = None
    pushname: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.pushname or None


class Transport(ABC):
    """One connection to the messaging network."""

    @abstractmethod
    async def start(self) -> None:
        """Begin the authentication flow."""

    @abstractmethod
    def events(self) -> AsyncIterator[TransportEvent]:
        """Yield lifecycle events until the connection ends."""

    @abstractmethod
    async def get_contact(self, contact_id: str) -> Optional[Contact]:
        """Return the contact, None if unknown.

        Raises ContactNotFoundError when the network confirms the number
        has no account.
        """

    @abstractmethod
    async def get_profile_pic_url(self, contact_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def destroy(self) -> None:
        ...
