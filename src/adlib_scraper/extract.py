"""Field extraction for ad-library detail pages.

Detail pages render the same field under several markup shapes depending on
the ad variant and on which server template produced the page. Each field is
therefore resolved by an ordered chain of small recognizers; the first one
that yields a non-empty value (after cleaning) wins and later recognizers are
never consulted. Recognizers are plain ``markup -> str | None`` callables so
they can be exercised one at a time.

The extractor never raises for malformed or partial markup: a field that no
recognizer matches is simply ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .models import Record
from .text import clean_text, cut_at_truncation_label, decode_url, truncate
from .urls import parse_detail_id

Recognizer = Callable[[str], Optional[str]]
Finisher = Callable[[Optional[str]], Optional[str]]

ADVERTISER_LOGO_ALT = "advertiser logo"

# Checked in this order; the first label present anywhere in the page wins.
FORMAT_VOCABULARY: tuple[str, ...] = (
    "Single Image Ad",
    "Video Ad",
    "Carousel Ad",
    "Collection Ad",
    "SPONSORED_STATUS_UPDATE",
)


def pattern(regex: str, *, flags: int = re.S) -> Recognizer:
    """Build a recognizer returning the first capture group of ``regex``."""

    compiled = re.compile(regex, flags)

    def recognize(markup: str) -> Optional[str]:
        match = compiled.search(markup)
        return match.group(1) if match else None

    recognize.__name__ = f"pattern<{regex[:40]}>"
    return recognize


# -- headline ---------------------------------------------------------------
headline_heading = pattern(r'class="sponsored-content-headline[^>]*>.*?<h2[^>]*>(.*?)</h2')
headline_link = pattern(r'class="sponsored-content-headline[^>]*>.*?<a[^>]*>(.*?)</a')

# -- company ----------------------------------------------------------------
company_advertiser_nested = pattern(
    r'data-tracking-control-name="ad_library_ad_preview_advertiser"[^>]*>\s*<[^>]*>\s*<[^>]*>(.*?)</'
)
company_org_label = pattern(r'aria-label="View organization page[^"]*"[^>]*>(.*?)<')
company_advertiser_bare = pattern(r'data-tracking-control-name="ad_library_ad_preview_advertiser"[^>]*>(.*?)<')

# -- image ------------------------------------------------------------------
image_delayed_url = pattern(r'class="ad-preview__dynamic-dimensions-image[^>]*data-delayed-url="([^"]+)"')
image_alt_before_class = pattern(r'alt="([^"]+)"[^>]*class="ad-preview__dynamic-dimensions-image')
image_alt_after_class = pattern(r'class="ad-preview__dynamic-dimensions-image[^>]*alt="([^"]+)"')

_ANY_ALT_RE = re.compile(r'alt="([^"]+)"')


def image_alt_any(markup: str) -> Optional[str]:
    """First alt text in the document that is not the advertiser logo's."""

    for match in _ANY_ALT_RE.finditer(markup):
        if match.group(1) != ADVERTISER_LOGO_ALT:
            return match.group(1)
    return None


# -- target -----------------------------------------------------------------
target_content_image = pattern(r'data-tracking-control-name="ad_library_ad_preview_content_image".*?href="([^"]+)"')
target_headline_content = pattern(r'data-tracking-control-name="ad_library_ad_preview_headline_content".*?href="([^"]+)"')

# -- description --------------------------------------------------------------
description_commentary = pattern(r'class="commentary__content[^>]*>(.*?)</p>')

# -- logo -------------------------------------------------------------------
logo_delayed_after_alt = pattern(r'alt="advertiser logo"[^>]*data-delayed-url="([^"]+)"')
logo_delayed_before_alt = pattern(r'data-delayed-url="([^"]+)"[^>]*alt="advertiser logo"')
logo_src = pattern(r'alt="advertiser logo"[^>]*src="([^"]+)"')


def format_label(markup: str) -> Optional[str]:
    for label in FORMAT_VOCABULARY:
        if label in markup:
            return label
    return None


# -- call to action ---------------------------------------------------------
cta_button = pattern(r'data-tracking-control-name="ad_library_ad_detail_cta".*?>(.*?)</button')


def _finish_company(raw: Optional[str]) -> Optional[str]:
    return truncate(clean_text(raw))


def _finish_description(raw: Optional[str]) -> Optional[str]:
    return cut_at_truncation_label(clean_text(raw))


@dataclass(frozen=True)
class FieldRule:
    name: str
    recognizers: tuple[Recognizer, ...]
    finish: Finisher = clean_text


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("headline", (headline_heading, headline_link)),
    FieldRule("company", (company_advertiser_nested, company_org_label, company_advertiser_bare), _finish_company),
    FieldRule("image_url", (image_delayed_url,), decode_url),
    FieldRule("image_alt", (image_alt_before_class, image_alt_after_class, image_alt_any)),
    FieldRule("target_url", (target_content_image, target_headline_content), decode_url),
    FieldRule("description", (description_commentary,), _finish_description),
    FieldRule("logo_url", (logo_delayed_after_alt, logo_delayed_before_alt, logo_src), decode_url),
    FieldRule("ad_format", (format_label,)),
    FieldRule("call_to_action", (cta_button,)),
)


def resolve_field(markup: str, rule: FieldRule) -> Optional[str]:
    """Try ``rule``'s recognizers in order and return the first usable value."""

    for recognize in rule.recognizers:
        value = rule.finish(recognize(markup))
        if value:
            return value
    return None


def extract(raw_markup: Optional[str], source_url: str) -> Record:
    """Build a :class:`Record` from a detail page's raw markup."""

    markup = raw_markup or ""
    fields = {rule.name: resolve_field(markup, rule) for rule in FIELD_RULES}
    return Record(source_url=source_url, ad_id=parse_detail_id(source_url), **fields)


__all__ = [
    "ADVERTISER_LOGO_ALT",
    "FIELD_RULES",
    "FORMAT_VOCABULARY",
    "FieldRule",
    "Recognizer",
    "extract",
    "pattern",
    "resolve_field",
]
