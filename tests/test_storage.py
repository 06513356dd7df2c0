from adlib_scraper.models import AssetFetchOutcome, RunResult, RunSummary
from adlib_scraper.storage import mirror_run, run_prefix, upload_file


class _Blob:
    def __init__(self, name):
        self.name = name
        self.metadata = None
        self.uploaded = None

    def upload_from_filename(self, path, content_type=None):
        self.uploaded = (path, content_type)


class _Bucket:
    def __init__(self):
        self.blobs = {}

    def blob(self, name):
        return self.blobs.setdefault(name, _Blob(name))


class _Client:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        return self.buckets.setdefault(name, _Bucket())


def test_run_prefix():
    assert run_prefix("bucket", "89771", "/tmp/out/acme_20251022/") == "gs://bucket/runs/89771/acme_20251022"
    assert run_prefix("bucket", None, "out") == "gs://bucket/runs/unknown/out"


def test_upload_file_sets_metadata_and_content_type(tmp_path):
    local = tmp_path / "1_main_image_1.png"
    local.write_bytes(b"x")
    client = _Client()
    upload_file(client, "bucket", "gs://bucket/runs/1/a/1_main_image_1.png", str(local), {"kind": "main"})
    blob = client.buckets["bucket"].blobs["runs/1/a/1_main_image_1.png"]
    assert blob.metadata == {"kind": "main"}
    assert blob.uploaded == (str(local), "image/png")


def test_mirror_run_uploads_successful_assets_and_results(tmp_path):
    (tmp_path / "1_main_image_1.jpg").write_bytes(b"x")
    results = tmp_path / "scraping_results_1.json"
    results.write_text("{}", encoding="utf-8")
    result = RunResult(
        target_url="https://www.linkedin.com/ad-library/search?companyIds=1",
        group_key="1",
        depth=3,
        summary=RunSummary(),
        scraper_version="adlib:test",
        asset_outcomes=[
            AssetFetchOutcome(kind="main", url="https://x/a.jpg", ad_id="1", local_name="1_main_image_1.jpg", sha256="a" * 64),
            AssetFetchOutcome(kind="companion", url="https://x/logo.png", error="HTTP 403: Forbidden"),
        ],
    )
    client = _Client()
    uploaded = mirror_run(client, "bucket", result, str(tmp_path), str(results))
    prefix = f"gs://bucket/runs/1/{tmp_path.name}"
    assert uploaded == [f"{prefix}/assets/1_main_image_1.jpg", f"{prefix}/scraping_results_1.json"]
    blobs = client.buckets["bucket"].blobs
    assert blobs[f"runs/1/{tmp_path.name}/assets/1_main_image_1.jpg"].metadata["sha256"] == "a" * 64


def test_mirror_run_dry_run_needs_no_client(tmp_path):
    results = tmp_path / "scraping_results_1.json"
    results.write_text("{}", encoding="utf-8")
    result = RunResult(target_url="u", group_key=None, depth=1, summary=RunSummary())
    uploaded = mirror_run(None, "bucket", result, str(tmp_path), str(results), dry_run=True)
    assert uploaded == [f"gs://bucket/runs/unknown/{tmp_path.name}/scraping_results_1.json"]
