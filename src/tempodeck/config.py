"""Runtime configuration: profile file location and logging setup."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from . import PRODUCT_NAME

PROFILES_FILE_ENV = "TEMPODECK_PROFILES_FILE"
PROFILES_FILENAME = "profiles.xml"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def user_data_dir() -> Path:
    """Return the XDG user data directory."""
    xdg = os.getenv("XDG_DATA_HOME", "").strip()
    if xdg:
        return Path(xdg)
    return Path.home() / ".local" / "share"


def default_profiles_file() -> Path:
    """Return the profiles file path, honoring `TEMPODECK_PROFILES_FILE`."""
    override = os.getenv(PROFILES_FILE_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return user_data_dir() / PRODUCT_NAME / PROFILES_FILENAME


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)
