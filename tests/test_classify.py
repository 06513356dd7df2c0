from adlib_scraper.classify import is_non_processable, is_video_format
from adlib_scraper.models import Record


def test_video_formats_are_non_processable():
    assert is_non_processable(Record(source_url="u", ad_format="Video Ad"))
    assert is_video_format("SPONSORED_VIDEO")


def test_other_formats_are_processable():
    assert not is_non_processable(Record(source_url="u", ad_format="Single Image Ad"))
    assert not is_non_processable(Record(source_url="u", ad_format="Carousel Ad"))


def test_unknown_format_is_processable():
    assert not is_non_processable(Record(source_url="u"))
