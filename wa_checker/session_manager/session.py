"""Lifecycle of the single messaging session.

One attempt at a time is driven by a background task that consumes the
transport's event stream:

    connecting --qr--> connecting --authenticated--> authenticated --ready--> ready
        |                                                                      |
        +--auth_failure / timeout / stop--> failed | disconnected <--disconnected+

Every attempt gets a generation number. State updates from an attempt
that has been superseded by a newer connect() are dropped, so a stale
challenge is never served.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable, Optional

import qrcode

from ..config import CONNECT_TIMEOUT_SECONDS
from ..errors import (
    AuthenticationFailed,
    ConnectionAttemptError,
    ConnectTimeout,
    LookupUnavailableError,
    SessionDisconnected,
    StoppedByOperator,
)
from ..models.session import QRChallenge, SessionState, SessionStatus
from .transport import Transport, TransportEventKind

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

TransportFactory = Callable[[], Transport]


def _consume_outcome(future: asyncio.Future) -> None:
    # Outcomes nobody awaited must not warn at garbage collection
    if not future.cancelled():
        future.exception()


class SessionManager:
    """Owns the one live transport and its connect attempt."""

    def __init__(
        self,
        transport_factory: TransportFactory,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        echo_qr: bool = True,
    ):
        self._transport_factory = transport_factory
        self._connect_timeout = connect_timeout
        self._echo_qr = echo_qr
        self._transport: Optional[Transport] = None
        self._state = SessionState.UNINITIALIZED
        self._challenge: Optional[QRChallenge] = None
        self._stopping = False
        self._last_error: Optional[str] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._outcome: Optional[asyncio.Future] = None
        self._connect_lock = asyncio.Lock()

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == SessionState.READY

    @property
    def is_stopping(self) -> bool:
        return self._stopping

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def latest_challenge(self) -> Optional[str]:
        """Challenge of the live attempt; None while stopping."""
        if self._stopping or self._challenge is None:
            return None
        if self._challenge.generation != self._generation:
            return None
        return self._challenge.code

    @property
    def transport(self) -> Transport:
        """The ready transport. Raises LookupUnavailableError otherwise."""
        if not self.is_ready or self._transport is None:
            raise LookupUnavailableError("WhatsApp client is not ready.")
        return self._transport

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self._state,
            is_ready=self.is_ready,
            is_stopping=self._stopping,
            challenge_code=self.latest_challenge,
            last_error=self._last_error,
        )

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ── Operations ───────────────────────────────────────────────────────────

    async def connect(self) -> asyncio.Future:
        """Start a new connect attempt unless the session is already ready.

        Returns a future that resolves when the session becomes ready, or
        fails with a ConnectionAttemptError. The attempt itself runs in
        the background, so callers may ignore the future and poll status().
        """
        loop = asyncio.get_running_loop()
        async with self._connect_lock:
            if self.is_ready:
                logger.info("Client is already initialized and ready")
                done = loop.create_future()
                done.set_result(None)
                return done

            await self._supersede("Superseded by a new connection attempt")

            self._generation += 1
            generation = self._generation
            self._stopping = False
            self._challenge = None
            self._last_error = None
            self._state = SessionState.CONNECTING

            logger.info("Initializing new WhatsApp client...")
            transport = self._transport_factory()
            self._transport = transport
            outcome = loop.create_future()
            outcome.add_done_callback(_consume_outcome)
            self._outcome = outcome
            self._task = asyncio.create_task(self._run_attempt(generation, transport, outcome))
            return outcome

    async def wait_ready(self) -> None:
        """Wait for the current attempt. Raises its ConnectionAttemptError."""
        if self.is_ready:
            return
        if self._outcome is None:
            raise LookupUnavailableError("No connection attempt in progress.")
        await asyncio.shield(self._outcome)

    async def stop(self) -> None:
        """Abort the pending connect attempt. Idempotent; no-op once ready."""
        if self.is_ready:
            logger.info("Stop ignored: client is already ready")
            return

        logger.info("Stopping WhatsApp client initialization...")
        self._stopping = True
        self._challenge = None
        if self._state in (SessionState.CONNECTING, SessionState.AUTHENTICATED):
            self._state = SessionState.DISCONNECTED

        if self._transport is not None:
            await self._destroy_transport(self._transport)

    async def disconnect(self) -> None:
        """Tear down the session, ready or not (operator logout)."""
        logger.info("Cleaning up WhatsApp client...")
        await self._supersede("Session disconnected by operator")
        self._generation += 1
        self._stopping = True
        self._challenge = None
        if self._state != SessionState.UNINITIALIZED:
            self._state = SessionState.DISCONNECTED

    async def close(self) -> None:
        await self._supersede("Session manager closed")
        self._generation += 1
        self._challenge = None
        if self._state != SessionState.UNINITIALIZED:
            self._state = SessionState.DISCONNECTED

    # ── Internals ────────────────────────────────────────────────────────────

    async def _supersede(self, reason: str) -> None:
        """Cancel the running attempt and destroy its transport."""
        task, transport, outcome = self._task, self._transport, self._outcome
        self._task = None
        self._transport = None

        if outcome is not None and not outcome.done():
            outcome.set_exception(StoppedByOperator(reason))

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if transport is not None:
            await self._destroy_transport(transport)

    async def _destroy_transport(self, transport: Transport) -> None:
        try:
            await transport.destroy()
            logger.info("Client destroyed successfully")
        except Exception as e:
            logger.warning(f"Error destroying client: {e}")

    def _echo_challenge(self, code: str) -> None:
        if not self._echo_qr:
            return
        qr = qrcode.QRCode(border=1)
        qr.add_data(code)
        qr.make(fit=True)
        qr.print_ascii(out=sys.stderr)

    async def _run_attempt(self, generation: int, transport: Transport, outcome: asyncio.Future) -> None:
        events = transport.events()
        try:
            try:
                await asyncio.wait_for(
                    self._await_ready(generation, transport, events),
                    timeout=self._connect_timeout,
                )
            except asyncio.TimeoutError:
                if self._stopping:
                    self._fail(generation, outcome, StoppedByOperator())
                    return
                if self._is_current(generation):
                    logger.info("Auto-stopping client initialization due to timeout")
                    self._stopping = True
                    self._challenge = None
                    await self._destroy_transport(transport)
                self._fail(generation, outcome, ConnectTimeout(self._connect_timeout))
                return
            except ConnectionAttemptError as e:
                self._fail(generation, outcome, e)
                return
            except Exception as e:
                logger.error(f"Error initializing WhatsApp client: {e}", exc_info=True)
                await self._destroy_transport(transport)
                self._fail(generation, outcome, e)
                return

            if not outcome.done():
                outcome.set_result(None)
            await self._watch(generation, transport, events)
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.debug(f"Error closing event stream: {e}")

    async def _await_ready(self, generation: int, transport: Transport, events) -> None:
        await transport.start()

        async for event in events:
            if not self._is_current(generation):
                raise StoppedByOperator("Superseded by a new connection attempt")

            if event.kind == TransportEventKind.QR:
                if self._stopping:
                    logger.info("QR generation stopped by user")
                    await self._destroy_transport(transport)
                    raise StoppedByOperator()
                logger.info("QR RECEIVED. QR code is now available for web interface.")
                self._challenge = QRChallenge(code=event.detail, generation=generation)
                self._state = SessionState.CONNECTING
                self._echo_challenge(event.detail)

            elif event.kind == TransportEventKind.AUTHENTICATED:
                logger.info("WhatsApp client authenticated!")
                self._challenge = None
                self._stopping = False
                self._state = SessionState.AUTHENTICATED

            elif event.kind == TransportEventKind.READY:
                logger.info("WhatsApp client is ready!")
                self._challenge = None
                self._stopping = False
                self._state = SessionState.READY
                return

            elif event.kind == TransportEventKind.AUTH_FAILURE:
                logger.error(f"Authentication failed: {event.detail}")
                self._challenge = None
                raise AuthenticationFailed(event.detail)

            elif event.kind == TransportEventKind.DISCONNECTED:
                logger.info(f"Client was disconnected: {event.detail}")
                self._challenge = None
                if self._stopping:
                    raise StoppedByOperator()
                raise SessionDisconnected(event.detail)

        if self._stopping:
            raise StoppedByOperator()
        raise SessionDisconnected("event stream ended before ready")

    async def _watch(self, generation: int, transport: Transport, events) -> None:
        """Follow a ready session until it drops, then release its transport."""
        async for event in events:
            if not self._is_current(generation):
                return
            if event.kind == TransportEventKind.DISCONNECTED:
                logger.info(f"Client was disconnected: {event.detail}")
                self._state = SessionState.DISCONNECTED
                self._challenge = None
                self._last_error = str(SessionDisconnected(event.detail))
                await self._release(transport)
                return
            if event.kind == TransportEventKind.AUTH_FAILURE:
                logger.error(f"Authentication failed: {event.detail}")
                self._state = SessionState.FAILED
                self._challenge = None
                self._last_error = str(AuthenticationFailed(event.detail))
                await self._release(transport)
                return

        if self._is_current(generation) and self._state == SessionState.READY:
            logger.info("Client event stream ended")
            self._state = SessionState.DISCONNECTED
            self._challenge = None
            await self._release(transport)

    async def _release(self, transport: Transport) -> None:
        if self._transport is transport:
            self._transport = None
        await self._destroy_transport(transport)

    def _fail(self, generation: int, outcome: asyncio.Future, error: Exception) -> None:
        logger.error(f"Client initialization failed: {error}")
        if self._is_current(generation):
            self._challenge = None
            self._last_error = str(error)
            if isinstance(error, StoppedByOperator):
                self._state = SessionState.DISCONNECTED
            else:
                self._state = SessionState.FAILED
        if not outcome.done():
            outcome.set_exception(error)
