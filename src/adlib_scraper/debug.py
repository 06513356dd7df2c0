"""Raw markup dumps for diagnosing extraction misses."""

from __future__ import annotations

import os

from .logging import jlog

DEBUG_DIR = "media/debug"


def ensure_debug_dir(directory: str = DEBUG_DIR) -> str:
    os.makedirs(directory, exist_ok=True)
    return directory


def dump_markup(name: str, markup: str, *, directory: str = DEBUG_DIR) -> str | None:
    """Write ``markup`` to ``<directory>/<name>.html``; returns the path or ``None`` on failure.

    Dumps are diagnostics only, so a failed write is logged and never fails the candidate.
    """

    path = os.path.join(directory, f"{name}.html")
    try:
        ensure_debug_dir(directory)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(markup)
    except OSError as exc:
        jlog("error", event="debug_save_html_error", name=name, error=str(exc))
        return None
    jlog("debug", event="debug_html_saved", path=path)
    return path


__all__ = ["DEBUG_DIR", "dump_markup", "ensure_debug_dir"]
