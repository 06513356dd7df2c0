"""URL helpers for ad-library listing and detail pages."""

from __future__ import annotations

import os
import re
import urllib.parse

DETAIL_ID_RE = re.compile(r"detail/(\d+)")
DETAIL_LINK_PATTERN = "/ad-library/detail/"
GROUP_KEY_PARAM = "companyIds"

ASSET_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")
DEFAULT_ASSET_EXTENSION = ".jpg"


def parse_detail_id(url: str | None) -> str | None:
    """Return the numeric detail id embedded in ``.../detail/<digits>``."""

    if not url:
        return None
    match = DETAIL_ID_RE.search(url)
    return match.group(1) if match else None


def parse_group_key(target_url: str | None) -> str | None:
    """Return the ``companyIds`` query value of a listing URL, if any."""

    if not target_url:
        return None
    try:
        qs = urllib.parse.parse_qs(urllib.parse.urlparse(target_url).query)
    except ValueError:
        return None
    values = qs.get(GROUP_KEY_PARAM)
    if not values or not values[0]:
        return None
    return values[0]


def asset_extension(url: str) -> str:
    """Pick a file extension from the URL path, defaulting to ``.jpg``."""

    try:
        path = urllib.parse.urlparse(url).path
    except ValueError:
        return DEFAULT_ASSET_EXTENSION
    ext = os.path.splitext(path)[1].lower()
    if ext in ASSET_EXTENSIONS:
        return ext
    return DEFAULT_ASSET_EXTENSION


__all__ = [
    "ASSET_EXTENSIONS",
    "DEFAULT_ASSET_EXTENSION",
    "DETAIL_ID_RE",
    "DETAIL_LINK_PATTERN",
    "GROUP_KEY_PARAM",
    "asset_extension",
    "parse_detail_id",
    "parse_group_key",
]
