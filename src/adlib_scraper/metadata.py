"""Metadata helpers for mirrored bucket objects."""

from __future__ import annotations

from collections import OrderedDict
from typing import OrderedDict as OrderedDictType


def build_gcs_metadata(
    *,
    kind: str,
    group_key: str | None,
    scraper_version: str,
    ad_id: str | None = None,
    source_url: str | None = None,
    sha256: str | None = None,
    width: int | None = None,
    height: int | None = None,
) -> OrderedDictType[str, str]:
    """Return metadata with deterministic ordering for auditability."""

    md: OrderedDictType[str, str] = OrderedDict()
    md["kind"] = kind
    md["group_key"] = group_key or ""
    md["scraper_version"] = scraper_version
    if ad_id:
        md["ad_id"] = ad_id
    if sha256:
        md["sha256"] = sha256
    if width is not None and height is not None:
        md["width"] = str(width)
        md["height"] = str(height)
    if source_url:
        md["source_url"] = source_url
    return md


__all__ = ["build_gcs_metadata"]
