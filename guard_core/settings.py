"""
settings.py - runtime configuration for the guard core.

Plain module-level constants; the path/URL/timing ones can be overridden
with STEAM_GUARD_* environment variables before the first import.
"""

import logging
import os

# --- Paths -----------------------------------------------------------------
ACCOUNTS_DIR = os.environ.get(
    "STEAM_GUARD_ACCOUNTS_DIR",
    os.path.join(os.path.expanduser("~"), ".steam_guard", "maFiles"),
)
BUNDLE_DIR = os.environ.get(
    "STEAM_GUARD_BUNDLE_DIR",
    os.path.join(os.path.dirname(__file__), "bundled"),
)
BUNDLE_EXTENSION = ".maFile"

# --- Steam mobileconf protocol ---------------------------------------------
BASE_URL = os.environ.get("STEAM_GUARD_BASE_URL", "https://steamcommunity.com/mobileconf")
CONFIRMATION_TAG = "conf"
CLIENT_PLATFORM = "ios"
SESSION_MARKER_COOKIE = "steamLoginSecure"
REFRESH_DELAY = float(os.environ.get("STEAM_GUARD_REFRESH_DELAY", "1.0"))

# --- Logging ---------------------------------------------------------------
LOG_LEVEL = os.environ.get("STEAM_GUARD_LOG_LEVEL", "INFO")
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once for the CLI / Flask entry points."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
