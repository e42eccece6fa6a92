"""WhatsApp Web URLs, DOM selectors, sentinels, and export column labels."""

# ── URLs ─────────────────────────────────────────────────────────────────────

WHATSAPP_WEB_URL = "https://web.whatsapp.com/"
WHATSAPP_SEND_URL = f"{WHATSAPP_WEB_URL}send?phone="  # append digits

# Contact addresses are "<digits>@c.us"
CONTACT_SUFFIX = "@c.us"

# ── CSS Selectors ────────────────────────────────────────────────────────────

SELECTORS = {
    # Linking screen
    "qr_container": "div[data-ref]",
    "startup_progress": "progress",
    "loading_screen": "[data-testid='intro-md-beta-logo-dark'], [data-testid='startup']",

    # Logged-in app shell
    "chat_list": "#pane-side",
    "side_panel": "[data-testid='chat-list']",

    # Open conversation
    "chat_header": "#main header",
    "chat_header_name": "span[dir='auto']",
    "chat_header_avatar": "img",

    # Popups (e.g. invalid number)
    "popup": "div[data-animate-modal-popup='true']",
}

# ── Page Messages ────────────────────────────────────────────────────────────

INVALID_NUMBER_MESSAGES = [
    "Phone number shared via url is invalid",
    "phone number shared via url is invalid",
]

AUTH_FAILURE_MESSAGES = [
    "Couldn't link device",
    "Can't link new devices at this time",
    "Try again later",
]

# ── Export ───────────────────────────────────────────────────────────────────

NOT_AVAILABLE = "Not available"
ERROR_LABEL = "Error"

RESULT_FILE_PREFIX = "whatsapp_check_results_"
RESULT_FILE_SUFFIX = ".xlsx"
RESULT_SHEET_NAME = "Results"
PROFILE_PIC_SUFFIX = ".jpg"

# (header, width)
RESULT_COLUMNS = [
    ("Phone Number", 18),
    ("Registered on WhatsApp", 22),
    ("Name", 28),
    ("Profile Picture URL", 60),
    ("Profile Picture Path", 40),
]
