import pytest

from adlib_scraper.models import AssetFetchOutcome, RunSummary


def test_summary_rejects_unknown_counter():
    with pytest.raises(KeyError):
        RunSummary().increment("bogus")


def test_summary_is_frozen_after_finalize():
    summary = RunSummary()
    summary.increment("total_processed")
    summary.finalize()
    assert summary.duration_ms is not None
    with pytest.raises(RuntimeError):
        summary.increment("total_processed")
    end = summary.end_time
    assert summary.finalize().end_time == end


def test_record_asset_outcomes():
    summary = RunSummary()
    summary.record_asset_outcomes(
        [
            AssetFetchOutcome(kind="main", url="a", local_name="a.jpg"),
            AssetFetchOutcome(kind="companion", url="b", error="HTTP 404: Not Found"),
        ]
    )
    assert summary.successful_asset_fetches == 1
    assert summary.failed_asset_fetches == 1


def test_outcome_to_dict_drops_empty_fields():
    outcome = AssetFetchOutcome(kind="main", url="a", error="timeout")
    assert outcome.to_dict() == {"kind": "main", "url": "a", "error": "timeout"}
    assert not outcome.ok
