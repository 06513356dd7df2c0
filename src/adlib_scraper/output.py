"""Local output surface: run directory naming and results files."""

from __future__ import annotations

import json
import os
import re
import time
from datetime import date, datetime, timezone
from typing import Any, Optional

from .logging import jlog
from .models import CandidateRef, Record, RunResult

UTC = getattr(datetime, "UTC", timezone.utc)
RESULTS_PREFIX = "scraping_results"
MAX_DIR_NAME_CHARS = 50


def sanitize_directory_name(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s-]", "", name)
    cleaned = re.sub(r"\s+", "_", cleaned)
    return cleaned[:MAX_DIR_NAME_CHARS].lower()


def date_stamp(today: date | None = None) -> str:
    return (today or datetime.now(UTC).date()).strftime("%Y%m%d")


class OutputTarget:
    """Where a run writes its files.

    A run starts in a provisional directory named after the group key and is
    relocated at most once, when the first successful record reveals the
    company name. Targets created with :meth:`fixed` never move.
    """

    def __init__(self, path: str, *, relocatable: bool = False, today: date | None = None):
        self.path = path
        self.relocatable = relocatable
        self._stamp = date_stamp(today)
        self._relocated = False

    @classmethod
    def provisional(cls, group_key: Optional[str], *, base_dir: str = ".", today: date | None = None) -> "OutputTarget":
        prefix = f"company_{group_key}" if group_key else "company_unknown"
        path = os.path.join(base_dir, f"{prefix}_{date_stamp(today)}")
        os.makedirs(path, exist_ok=True)
        jlog("info", event="output_dir_created", path=path)
        return cls(path, relocatable=True, today=today)

    @classmethod
    def fixed(cls, path: str) -> "OutputTarget":
        os.makedirs(path, exist_ok=True)
        return cls(path, relocatable=False)

    def relocate(self, company_name: Optional[str]) -> Optional[str]:
        """Rename the provisional directory after ``company_name``; returns the new path."""

        if not self.relocatable or self._relocated or not company_name:
            return None
        self._relocated = True
        sanitized = sanitize_directory_name(company_name)
        if not sanitized:
            return None
        new_path = os.path.join(os.path.dirname(self.path), f"{sanitized}_{self._stamp}")
        if os.path.abspath(new_path) == os.path.abspath(self.path):
            return None
        if os.path.exists(new_path):
            jlog("warning", event="output_dir_rename_skipped", path=self.path, target=new_path, reason="target exists")
            return None
        try:
            os.rename(self.path, new_path)
        except OSError as exc:
            jlog("error", event="output_dir_rename_failed", path=self.path, target=new_path, error=str(exc))
            return None
        jlog("info", event="output_dir_renamed", path=self.path, target=new_path)
        self.path = new_path
        return new_path


def write_results(result: RunResult, directory: str, *, prefix: str = RESULTS_PREFIX) -> str:
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"{prefix}_{int(time.time() * 1000)}.json")
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(result.to_dict(), fh, ensure_ascii=False, indent=2)
    jlog("info", event="results_saved", path=path)
    return path


def load_results(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def failed_candidates_from(data: dict[str, Any]) -> list[CandidateRef]:
    out: list[CandidateRef] = []
    for raw in data.get("failed_candidates") or []:
        url = raw.get("url")
        if url:
            out.append(CandidateRef(ad_id=raw.get("ad_id") or "", url=url))
    return out


def records_from(data: dict[str, Any]) -> list[Record]:
    return [Record.from_dict(raw) for raw in data.get("records") or [] if raw.get("source_url")]


__all__ = [
    "OutputTarget",
    "RESULTS_PREFIX",
    "date_stamp",
    "failed_candidates_from",
    "load_results",
    "records_from",
    "sanitize_directory_name",
    "write_results",
]
