from adlib_scraper.text import clean_text, cut_at_truncation_label, decode_entities, decode_url, truncate


def test_clean_text_strips_tags_and_decodes_entities():
    assert clean_text("  <b>Acme</b> &amp; &quot;Co&quot; &#x27;s  ") == "Acme & \"Co\" 's"


def test_clean_text_collapses_blank_lines():
    assert clean_text("first\n\n   \nsecond\n\nthird") == "first\nsecond\nthird"


def test_clean_text_returns_none_when_empty_after_cleaning():
    assert clean_text("   <span> </span> ") is None
    assert clean_text(None) is None


def test_decode_entities_applies_escapes_in_order():
    assert decode_entities("&#34;quoted&#34;") == '"quoted"'
    # &amp;quot; decodes only one level
    assert decode_entities("&amp;quot;") == "&quot;"


def test_decode_url_only_touches_ampersands():
    assert decode_url("https://x.example/a?b=1&amp;c=%20") == "https://x.example/a?b=1&c=%20"
    assert decode_url("") is None


def test_cut_at_truncation_label():
    assert cut_at_truncation_label("Short copy See more hidden tail") == "Short copy"
    assert cut_at_truncation_label("No label here") == "No label here"
    assert cut_at_truncation_label("See more") is None


def test_truncate_is_silent():
    value = "x" * 150
    assert truncate(value) == "x" * 100
    assert truncate("short") == "short"
