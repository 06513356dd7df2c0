"""Exception types raised across the scraper stages."""

from __future__ import annotations


class ScraperError(RuntimeError):
    """Base class for scraper failures."""


class MissingCredential(ScraperError):
    """A required credential is absent; fatal before any network activity."""


class SessionUnavailable(ScraperError):
    """The render session could not be acquired or stopped responding."""


class FetchError(ScraperError):
    """A single text or asset retrieval failed."""


__all__ = ["FetchError", "MissingCredential", "ScraperError", "SessionUnavailable"]
