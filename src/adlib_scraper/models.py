"""Typed records passed between the discovery, detail and asset stages."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

UTC = getattr(datetime, "UTC", timezone.utc)

ASSET_KIND_MAIN = "main"
ASSET_KIND_COMPANION = "companion"


@dataclass(frozen=True, slots=True)
class CandidateRef:
    """A discovered detail page that has not been fetched yet."""

    ad_id: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"ad_id": self.ad_id, "url": self.url}


@dataclass(frozen=True, slots=True)
class Record:
    """One extracted ad. Every field except ``source_url`` may be ``None``."""

    source_url: str
    ad_id: Optional[str] = None
    headline: Optional[str] = None
    company: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    target_url: Optional[str] = None
    logo_url: Optional[str] = None
    ad_format: Optional[str] = None
    call_to_action: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True, slots=True)
class AssetFetchOutcome:
    """Result of one attempted asset fetch; ``error`` is set on failure."""

    kind: str
    url: str
    ad_id: Optional[str] = None
    local_name: Optional[str] = None
    byte_size: Optional[int] = None
    sha256: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True, slots=True)
class FailedCandidate:
    ad_id: Optional[str]
    url: str
    reason: str

    def to_dict(self) -> dict[str, Optional[str]]:
        return asdict(self)


_COUNTERS = (
    "total_found",
    "total_processed",
    "successful_details",
    "failed_details",
    "classified_skipped",
    "successful_asset_fetches",
    "failed_asset_fetches",
)


@dataclass
class RunSummary:
    """Aggregate counters for a run. Frozen once :meth:`finalize` is called."""

    total_found: int = 0
    total_processed: int = 0
    successful_details: int = 0
    failed_details: int = 0
    classified_skipped: int = 0
    successful_asset_fetches: int = 0
    failed_asset_fetches: int = 0
    start_time: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    end_time: Optional[str] = None
    duration_ms: Optional[int] = None
    _started: float = field(default_factory=time.monotonic, repr=False, compare=False)

    @property
    def finalized(self) -> bool:
        return self.end_time is not None

    def increment(self, counter: str, amount: int = 1) -> None:
        if counter not in _COUNTERS:
            raise KeyError(f"unknown counter: {counter}")
        if self.finalized:
            raise RuntimeError("run summary is already finalized")
        setattr(self, counter, getattr(self, counter) + amount)

    def record_asset_outcomes(self, outcomes: list[AssetFetchOutcome]) -> None:
        for outcome in outcomes:
            self.increment("successful_asset_fetches" if outcome.ok else "failed_asset_fetches")

    def finalize(self) -> "RunSummary":
        if not self.finalized:
            self.end_time = datetime.now(UTC).isoformat()
            self.duration_ms = int((time.monotonic() - self._started) * 1000)
        return self

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: getattr(self, name) for name in _COUNTERS}
        out["start_time"] = self.start_time
        out["end_time"] = self.end_time
        out["duration_ms"] = self.duration_ms
        return out


@dataclass
class RunResult:
    """Structured output of one run, handed to the output surface."""

    target_url: str
    group_key: Optional[str]
    depth: int
    summary: RunSummary
    candidates: list[CandidateRef] = field(default_factory=list)
    records: list[Record] = field(default_factory=list)
    failed_candidates: list[FailedCandidate] = field(default_factory=list)
    asset_outcomes: list[AssetFetchOutcome] = field(default_factory=list)
    company_name: Optional[str] = None
    scraper_version: Optional[str] = None
    output_dir: Optional[str] = None
    results_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_url": self.target_url,
            "group_key": self.group_key,
            "depth": self.depth,
            "company_name": self.company_name,
            "scraper_version": self.scraper_version,
            "output_dir": self.output_dir,
            "summary": self.summary.to_dict(),
            "candidates": [c.to_dict() for c in self.candidates],
            "records": [r.to_dict() for r in self.records],
            "failed_candidates": [f.to_dict() for f in self.failed_candidates],
            "asset_outcomes": [o.to_dict() for o in self.asset_outcomes],
        }


__all__ = [
    "ASSET_KIND_COMPANION",
    "ASSET_KIND_MAIN",
    "AssetFetchOutcome",
    "CandidateRef",
    "FailedCandidate",
    "Record",
    "RunResult",
    "RunSummary",
]
