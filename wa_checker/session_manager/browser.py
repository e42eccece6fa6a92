"""Camoufox browser automation: drive WhatsApp Web as a Transport."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import AsyncIterator, Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import BrowserContext, Page

from ..config import BROWSER_HEADLESS, BROWSER_PROFILE_DIR, BROWSER_TIMEOUT, STATE_POLL_INTERVAL
from ..constants import CONTACT_SUFFIX, SELECTORS, WHATSAPP_SEND_URL, WHATSAPP_WEB_URL
from ..errors import ContactNotFoundError, LookupFailed, LookupUnavailableError
from .parser import LoginState, detect_invalid_number, detect_login_state, parse_contact_header
from .transport import Contact, Transport, TransportEvent, TransportEventKind

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class WhatsAppWebTransport(Transport):
    """Links a device to WhatsApp Web through a persistent Camoufox profile.

    Lifecycle events are produced by polling the rendered page; lookups
    open the conversation for a number and read its header.
    """

    def __init__(
        self,
        profile_dir: Path = BROWSER_PROFILE_DIR,
        headless: Optional[bool] = None,
        poll_interval: float = STATE_POLL_INTERVAL,
    ):
        self._profile_dir = profile_dir
        self._headless = headless if headless is not None else BROWSER_HEADLESS
        self._poll_interval = poll_interval
        self._camoufox = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._page_lock = asyncio.Lock()
        self._headers: dict[str, Optional[str]] = {}  # contact id -> avatar url

    @property
    def is_running(self) -> bool:
        return self._page is not None and not self._page.is_closed()

    async def start(self) -> None:
        """Launch the browser and open WhatsApp Web."""
        if self.is_running:
            return

        logger.info(f"Launching Camoufox (headless={self._headless}, profile={self._profile_dir})...")
        self._profile_dir.mkdir(parents=True, exist_ok=True)
        self._camoufox = AsyncCamoufox(
            headless=self._headless,
            humanize=True,
            persistent_context=True,
            user_data_dir=str(self._profile_dir),
            i_know_what_im_doing=True,
        )
        # A persistent context is returned directly instead of a browser
        self._context = await self._camoufox.__aenter__()
        self._page = self._context.pages[0] if self._context.pages else await self._context.new_page()
        self._page.set_default_timeout(BROWSER_TIMEOUT)

        logger.info("Navigating to WhatsApp Web...")
        try:
            await self._page.goto(WHATSAPP_WEB_URL, wait_until="domcontentloaded", timeout=BROWSER_TIMEOUT)
        except Exception as e:
            logger.warning(f"Navigation timeout, trying with longer wait: {e}")
            await self._page.goto(WHATSAPP_WEB_URL, wait_until="commit", timeout=BROWSER_TIMEOUT * 2)

    async def _page_html(self) -> str:
        async with self._page_lock:
            return await self._page.content()

    async def events(self) -> AsyncIterator[TransportEvent]:
        """Poll the page and translate what it shows into lifecycle events."""
        last_qr: Optional[str] = None
        authenticated = False
        ready = False

        while self.is_running:
            try:
                html = await self._page_html()
            except Exception as e:
                logger.warning(f"Could not read page content: {e}")
                break

            page_state = detect_login_state(html)

            if page_state.state == LoginState.FAILED:
                yield TransportEvent(TransportEventKind.AUTH_FAILURE, page_state.message)
                return

            if not ready:
                if page_state.state == LoginState.QR and page_state.qr_code != last_qr:
                    last_qr = page_state.qr_code
                    yield TransportEvent(TransportEventKind.QR, last_qr)
                elif page_state.state == LoginState.LOADING and last_qr and not authenticated:
                    # Code was scanned; the app is syncing
                    authenticated = True
                    yield TransportEvent(TransportEventKind.AUTHENTICATED)
                elif page_state.state == LoginState.READY:
                    if not authenticated:
                        authenticated = True
                        yield TransportEvent(TransportEventKind.AUTHENTICATED)
                    ready = True
                    yield TransportEvent(TransportEventKind.READY)
            elif page_state.state == LoginState.QR:
                # Device was unlinked from the phone
                yield TransportEvent(TransportEventKind.DISCONNECTED, "LOGOUT")
                return

            await asyncio.sleep(self._poll_interval)

        yield TransportEvent(TransportEventKind.DISCONNECTED, "browser closed")

    async def _open_chat(self, contact_id: str) -> str:
        """Open the conversation for a contact id and return the settled page HTML."""
        if not self.is_running:
            raise LookupUnavailableError("Browser is not running.")

        digits = contact_id.removesuffix(CONTACT_SUFFIX)
        url = f"{WHATSAPP_SEND_URL}{digits}"
        async with self._page_lock:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=BROWSER_TIMEOUT)
            try:
                await self._page.wait_for_selector(
                    f"{SELECTORS['chat_header']}, {SELECTORS['popup']}",
                    timeout=BROWSER_TIMEOUT,
                )
            except Exception as e:
                logger.warning(f"Neither chat header nor popup appeared for {digits}: {e}")
                raise LookupFailed(f"Chat for {digits} did not load: {e}") from e
            return await self._page.content()

    async def get_contact(self, contact_id: str) -> Optional[Contact]:
        """Contact shown in the chat header.

        Raises ContactNotFoundError on the invalid-number popup and
        LookupFailed when the page shows neither.
        """
        html = await self._open_chat(contact_id)

        if detect_invalid_number(html):
            raise ContactNotFoundError(f"404: {contact_id} is not on WhatsApp")

        header = parse_contact_header(html)
        if header is None:
            raise LookupFailed(f"Unrecognized chat page for {contact_id}")

        self._headers[contact_id] = header.avatar_url
        return Contact(id=contact_id, pushname=header.name)

    async def get_profile_pic_url(self, contact_id: str) -> Optional[str]:
        if contact_id not in self._headers:
            await self.get_contact(contact_id)
        return self._headers.get(contact_id)

    async def destroy(self) -> None:
        """Close the browser. The linked device stays in the profile directory."""
        logger.info("Stopping browser session...")
        self._headers.clear()

        try:
            if self._context:
                await self._context.close()
        except Exception as e:
            logger.warning(f"Error closing context: {e}")
        finally:
            self._context = None
            self._page = None

        try:
            if self._camoufox:
                await self._camoufox.__aexit__(None, None, None)
        except Exception as e:
            logger.warning(f"Error closing camoufox: {e}")
        finally:
            self._camoufox = None

        logger.info("Browser session stopped.")
