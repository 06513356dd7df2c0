from adlib_scraper.metadata import build_gcs_metadata


def test_build_gcs_metadata_includes_optional_fields_when_provided():
    md = build_gcs_metadata(
        kind="main",
        group_key="89771",
        scraper_version="adlib:2025-10-22.1",
        ad_id="7012345678",
        source_url="https://media.licdn.com/a.jpg",
        sha256="a" * 64,
        width=1200,
        height=627,
    )
    assert list(md) == ["kind", "group_key", "scraper_version", "ad_id", "sha256", "width", "height", "source_url"]
    assert md["width"] == "1200"


def test_build_gcs_metadata_omits_optional_fields_when_absent():
    md = build_gcs_metadata(kind="results", group_key=None, scraper_version="adlib:test", width=10)
    assert md == {"kind": "results", "group_key": "", "scraper_version": "adlib:test"}
