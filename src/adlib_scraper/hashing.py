"""Fingerprints for downloaded assets."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

_CHUNK = 64 * 1024


@dataclass(frozen=True, slots=True)
class AssetFingerprint:
    sha256: str
    width: Optional[int]
    height: Optional[int]


def sha256_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def image_dimensions(path: str) -> tuple[Optional[int], Optional[int]]:
    """Pixel size for raster images Pillow can read; ``(None, None)`` otherwise.

    SVGs, truncated files and images past Pillow's pixel limit all land in
    the ``(None, None)`` branch.
    """

    try:
        with Image.open(path) as im:
            width, height = im.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return None, None
    return width, height


def fingerprint_asset(path: str) -> AssetFingerprint:
    width, height = image_dimensions(path)
    return AssetFingerprint(sha256=sha256_file(path), width=width, height=height)


__all__ = ["AssetFingerprint", "fingerprint_asset", "image_dimensions", "sha256_file"]
