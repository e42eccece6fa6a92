"""Per-number lookups against the ready session, plus profile picture download."""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Optional

import httpx

from ..config import DOWNLOAD_TIMEOUT, PROFILE_PICS_DIR
from ..constants import CONTACT_SUFFIX, ERROR_LABEL, NOT_AVAILABLE, PROFILE_PIC_SUFFIX
from ..errors import ContactNotFoundError
from ..models.lookup import LookupResult
from .session import SessionManager
from .transport import Transport

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def _digits(phone_number: str) -> str:
    return re.sub(r"\D", "", phone_number)


def format_contact_id(phone_number: str) -> str:
    """'+1 555-0001' -> '15550001@c.us'"""
    return f"{_digits(phone_number)}{CONTACT_SUFFIX}"


def _is_not_found(error: Exception) -> bool:
    if isinstance(error, ContactNotFoundError):
        return True
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 404


class LookupClient:
    """Checks one number at a time. lookup() never raises."""

    def __init__(
        self,
        session: SessionManager,
        pictures_dir: Path = PROFILE_PICS_DIR,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._session = session
        self._pictures_dir = pictures_dir
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
        return self._client

    async def lookup(self, phone_number: str) -> LookupResult:
        """Check registration and fetch name and picture for one number.

        Failures are folded into the result:
        - not found (ContactNotFoundError or an HTTP 404) -> is_registered=False
        - anything else -> is_registered="error", error text in profile_pic_url
        A missing picture never fails the lookup.
        """
        contact_id = format_contact_id(phone_number)
        try:
            transport = self._session.transport
            contact = await transport.get_contact(contact_id)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.info(f"Error checking number {phone_number}: {message}")
            if _is_not_found(e):
                return LookupResult(
                    phone_number=phone_number,
                    is_registered=False,
                    profile_pic_url=message,
                    error=message,
                )
            return LookupResult(
                phone_number=phone_number,
                is_registered="error",
                name=ERROR_LABEL,
                profile_pic_url=message,
                error=message,
            )

        if contact is None:
            return LookupResult(phone_number=phone_number, is_registered=False)

        profile_pic_url, profile_pic_path = await self._fetch_profile_picture(
            transport, contact_id, phone_number
        )
        return LookupResult(
            phone_number=phone_number,
            is_registered=True,
            name=contact.display_name or NOT_AVAILABLE,
            profile_pic_url=profile_pic_url,
            profile_pic_path=str(profile_pic_path) if profile_pic_path else None,
        )

    async def _fetch_profile_picture(
        self, transport: Transport, contact_id: str, phone_number: str
    ) -> tuple[Optional[str], Optional[Path]]:
        try:
            url = await transport.get_profile_pic_url(contact_id)
        except Exception as e:
            logger.info(f"Could not retrieve profile picture for {phone_number}: {e}")
            return None, None

        if not url:
            return None, None
        return url, await self.download_profile_picture(url, phone_number)

    async def download_profile_picture(self, url: str, phone_number: str) -> Optional[Path]:
        """Stream the picture to <pictures_dir>/<digits>.jpg. Last write wins."""
        file_path = self._pictures_dir / f"{_digits(phone_number) or phone_number}{PROFILE_PIC_SUFFIX}"
        try:
            self._pictures_dir.mkdir(parents=True, exist_ok=True)
            async with self._http().stream("GET", url) as response:
                response.raise_for_status()
                with file_path.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.error(f"Error downloading profile picture: {e}")
            file_path.unlink(missing_ok=True)
            return None

        logger.info(f"Profile picture saved to: {file_path}")
        return file_path
