"""Application configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
DATA_DIR = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
RESULTS_DIR = DATA_DIR / "results"
PROFILE_PICS_DIR = DATA_DIR / "profile_pics"
UPLOADS_DIR = DATA_DIR / "uploads"
BROWSER_PROFILE_DIR = DATA_DIR / "browser_profile"
LOG_DIR = DATA_DIR / "logs"

# Control surface
CHECKER_HOST = os.getenv("CHECKER_HOST", "127.0.0.1")
CHECKER_PORT = int(os.getenv("CHECKER_PORT", "3000"))
CHECKER_URL = f"http://{CHECKER_HOST}:{CHECKER_PORT}"

# Browser
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "true").lower() == "true"
BROWSER_TIMEOUT = int(os.getenv("BROWSER_TIMEOUT", "60000"))
STATE_POLL_INTERVAL = float(os.getenv("STATE_POLL_INTERVAL", "1.0"))

# Session / jobs
CONNECT_TIMEOUT_SECONDS = float(os.getenv("CONNECT_TIMEOUT_SECONDS", "120"))  # 2 minutes
LOOKUP_DELAY_SECONDS = float(os.getenv("LOOKUP_DELAY_SECONDS", "1.0"))
DOWNLOAD_TIMEOUT = float(os.getenv("DOWNLOAD_TIMEOUT", "30"))


def ensure_dirs():
    """Create required data directories if they don't exist."""
    for directory in (DATA_DIR, RESULTS_DIR, PROFILE_PICS_DIR, UPLOADS_DIR, BROWSER_PROFILE_DIR, LOG_DIR):
        directory.mkdir(parents=True, exist_ok=True)
