"""Scraper version stamped onto results files and mirrored objects."""

from __future__ import annotations

import os
from importlib import metadata

SCRIPT_NAME = "adlib"
DISTRIBUTION = "adlib-scraper"
# Used when running from a source checkout that was never installed.
FALLBACK_VERSION = "0+unknown"
VERSION_ENV = "ADLIB_SCRAPER_VERSION"


def package_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return FALLBACK_VERSION


def get_scraper_version(script_name: str = SCRIPT_NAME) -> str:
    """``<script>:<installed version>``, unless ``ADLIB_SCRAPER_VERSION`` is set."""

    return os.getenv(VERSION_ENV) or f"{script_name}:{package_version()}"


__all__ = ["DISTRIBUTION", "SCRIPT_NAME", "get_scraper_version", "package_version"]
