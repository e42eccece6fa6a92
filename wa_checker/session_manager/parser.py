"""Parse WhatsApp Web page HTML.

Covers the three things the transport needs to know from a rendered page:
1. Linking screen: the QR payload and whether linking failed
2. App shell: whether the chat list (ready state) is present
3. Open conversation: contact name and avatar, or the invalid-number popup
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bs4 import BeautifulSoup

from ..constants import AUTH_FAILURE_MESSAGES, INVALID_NUMBER_MESSAGES, SELECTORS


class LoginState(str, Enum):
    QR = "qr"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PageState:
    state: LoginState
    qr_code: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class ContactHeader:
    name: Optional[str] = None
    avatar_url: Optional[str] = None


def _clean_text(text: str | None) -> str:
    """Strip whitespace and normalize text."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def extract_qr_code(html: str) -> Optional[str]:
    """Return the linking payload carried by the QR container, if shown."""
    soup = BeautifulSoup(html, "html.parser")
    container = soup.select_one(SELECTORS["qr_container"])
    if container is None:
        return None
    code = container.get("data-ref")
    return code or None


def detect_login_state(html: str) -> PageState:
    """Classify a WhatsApp Web page.

    Order matters: a failure message can be rendered on top of the
    linking screen, and the chat list wins over any leftover spinner.
    """
    soup = BeautifulSoup(html, "html.parser")
    text = _clean_text(soup.get_text(" "))

    for message in AUTH_FAILURE_MESSAGES:
        if message in text:
            return PageState(LoginState.FAILED, message=message)

    if soup.select_one(SELECTORS["chat_list"]) or soup.select_one(SELECTORS["side_panel"]):
        return PageState(LoginState.READY)

    container = soup.select_one(SELECTORS["qr_container"])
    if container is not None and container.get("data-ref"):
        return PageState(LoginState.QR, qr_code=container.get("data-ref"))

    if soup.select_one(SELECTORS["startup_progress"]) or soup.select_one(SELECTORS["loading_screen"]):
        return PageState(LoginState.LOADING)

    return PageState(LoginState.UNKNOWN)


def detect_invalid_number(html: str) -> bool:
    """True if the invalid-number popup is shown after opening a chat by URL."""
    soup = BeautifulSoup(html, "html.parser")
    popup = soup.select_one(SELECTORS["popup"])
    if popup is None:
        return False
    text = _clean_text(popup.get_text(" "))
    return any(message.lower() in text.lower() for message in INVALID_NUMBER_MESSAGES)


def parse_contact_header(html: str) -> Optional[ContactHeader]:
    """Extract name and avatar from the open conversation header."""
    soup = BeautifulSoup(html, "html.parser")
    header = soup.select_one(SELECTORS["chat_header"])
    if header is None:
        return None

    name = None
    name_el = header.select_one(SELECTORS["chat_header_name"])
    if name_el is not None:
        name = _clean_text(name_el.get("title") or name_el.get_text()) or None

    avatar_url = None
    img = header.select_one(SELECTORS["chat_header_avatar"])
    if img is not None:
        src = img.get("src") or ""
        if src.startswith("http"):
            avatar_url = src

    return ContactHeader(name=name, avatar_url=avatar_url)
