#!/usr/bin/env python3
"""CLI shim for the ad-library scraper (same as the ``adlib-scraper`` console script)."""
from __future__ import annotations

import sys

from adlib_scraper.cli import main

if __name__ == "__main__":
    sys.exit(main())
