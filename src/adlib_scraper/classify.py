"""Predicates that flag record variants the pipeline should not process."""

from __future__ import annotations

from typing import Callable, Optional

from .models import Record

VIDEO_MARKER = "video"


def is_video_format(ad_format: Optional[str]) -> bool:
    return bool(ad_format) and VIDEO_MARKER in ad_format.lower()


def is_non_processable(record: Record) -> bool:
    """True for video placements; unknown formats stay processable."""

    return is_video_format(record.ad_format)


Classifier = Callable[[Record], bool]

__all__ = ["Classifier", "VIDEO_MARKER", "is_non_processable", "is_video_format"]
