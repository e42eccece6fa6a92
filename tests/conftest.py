"""Shared fixtures: an in-memory transport and helpers to drive sessions."""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import pytest

from wa_checker.session_manager.session import SessionManager
from wa_checker.session_manager.transport import (
    Contact,
    Transport,
    TransportEvent,
    TransportEventKind,
)

PICTURE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


class FakeTransport(Transport):
    """Scripted transport. Events are pushed by the test with emit()."""

    def __init__(
        self,
        contacts: Optional[dict[str, Contact]] = None,
        errors: Optional[dict[str, Exception]] = None,
        pictures: Optional[dict[str, str]] = None,
        picture_errors: Optional[dict[str, Exception]] = None,
    ):
        self.contacts = contacts or {}
        self.errors = errors or {}
        self.pictures = pictures or {}
        self.picture_errors = picture_errors or {}
        self.started = False
        self.destroyed = 0
        self.lookups: list[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.on_lookup = None
        self._queue: Optional[asyncio.Queue] = None

    @property
    def queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue

    def emit(self, kind: TransportEventKind, detail: str = "") -> None:
        self.queue.put_nowait(TransportEvent(kind, detail))

    def end(self) -> None:
        self.queue.put_nowait(None)

    async def start(self) -> None:
        self.started = True

    async def events(self):
        while True:
            event = await self.queue.get()
            if event is None:
                return
            yield event

    async def get_contact(self, contact_id: str) -> Optional[Contact]:
        self.lookups.append(contact_id)
        if self.on_lookup is not None:
            self.on_lookup(contact_id)
        if self.gate is not None:
            await self.gate.wait()
        if contact_id in self.errors:
            raise self.errors[contact_id]
        return self.contacts.get(contact_id)

    async def get_profile_pic_url(self, contact_id: str) -> Optional[str]:
        if contact_id in self.picture_errors:
            raise self.picture_errors[contact_id]
        return self.pictures.get(contact_id)

    async def destroy(self) -> None:
        self.destroyed += 1


async def settle(seconds: float = 0.02) -> None:
    """Let background tasks consume pending events."""
    await asyncio.sleep(seconds)


async def make_ready_session(transport: FakeTransport, **kwargs) -> SessionManager:
    session = SessionManager(lambda: transport, echo_qr=False, **kwargs)
    outcome = await session.connect()
    transport.emit(TransportEventKind.READY)
    await outcome
    return session


def picture_client(status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=PICTURE_BYTES if status_code == 200 else b"")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
