"""Google Cloud Storage mirroring of run artefacts."""

from __future__ import annotations

import mimetypes
import os

from google.cloud import storage  # type: ignore[attr-defined]

from .logging import jlog
from .metadata import build_gcs_metadata
from .models import RunResult


def make_storage_client(project: str | None = None) -> storage.Client:
    return storage.Client(project=project)


def run_prefix(bucket: str, group_key: str | None, run_dir: str) -> str:
    return f"gs://{bucket}/runs/{group_key or 'unknown'}/{os.path.basename(os.path.normpath(run_dir))}"


def upload_file(
    storage_client: storage.Client | None,
    bucket_name: str,
    blob_path: str,
    local_path: str,
    metadata: dict[str, str],
    *,
    dry_run: bool = False,
) -> None:
    assert blob_path.startswith(f"gs://{bucket_name}/"), "blob_path must start with gs://<bucket>/"
    if dry_run:
        jlog("info", event="dry_run_upload", path=blob_path, local_path=local_path)
        return
    if storage_client is None:
        raise ValueError("storage_client is required unless dry_run is set")
    bucket = storage_client.bucket(bucket_name)
    name = blob_path.split(f"gs://{bucket_name}/", 1)[1]
    blob = bucket.blob(name)
    blob.metadata = dict(metadata or {})
    content_type = mimetypes.guess_type(local_path)[0] or "application/octet-stream"
    blob.upload_from_filename(local_path, content_type=content_type)


def mirror_run(
    storage_client: storage.Client | None,
    bucket_name: str,
    result: RunResult,
    run_dir: str,
    results_path: str | None,
    *,
    dry_run: bool = False,
) -> list[str]:
    """Upload the results file and every fetched asset; returns the blob paths."""

    prefix = run_prefix(bucket_name, result.group_key, run_dir)
    version = result.scraper_version or ""
    uploaded: list[str] = []
    for outcome in result.asset_outcomes:
        if not outcome.ok or not outcome.local_name:
            continue
        local_path = os.path.join(run_dir, outcome.local_name)
        if not os.path.exists(local_path):
            continue
        blob_path = f"{prefix}/assets/{outcome.local_name}"
        md = build_gcs_metadata(
            kind=outcome.kind,
            group_key=result.group_key,
            scraper_version=version,
            ad_id=outcome.ad_id,
            source_url=outcome.url,
            sha256=outcome.sha256,
            width=outcome.width,
            height=outcome.height,
        )
        upload_file(storage_client, bucket_name, blob_path, local_path, md, dry_run=dry_run)
        uploaded.append(blob_path)
    if results_path:
        blob_path = f"{prefix}/{os.path.basename(results_path)}"
        md = build_gcs_metadata(kind="results", group_key=result.group_key, scraper_version=version, source_url=result.target_url)
        upload_file(storage_client, bucket_name, blob_path, results_path, md, dry_run=dry_run)
        uploaded.append(blob_path)
    jlog("info", event="run_mirrored", bucket=bucket_name, objects=len(uploaded), dry_run=dry_run)
    return uploaded


__all__ = ["make_storage_client", "mirror_run", "run_prefix", "upload_file"]
