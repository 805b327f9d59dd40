# src/lychrel/resume.py
from __future__ import annotations

from pathlib import Path

from lychrel import checkpoint as ckpt
from lychrel.hunt import HuntSummary, RecordHunter
from lychrel.search import SearchProgress, SearchSummary, resume_search
from lychrel.verify import ProgressConfig, VerifyOutcome, resume_verify


def resume(
    path: str | Path,
    *,
    interval: int | None = None,
    progress: ProgressConfig | SearchProgress | None = None,
    **hunt_overrides,
) -> VerifyOutcome | SearchSummary | HuntSummary:
    """
    Continue whatever computation the checkpoint at `path` holds.

    `progress` is a ProgressConfig for verify runs and a (tested, total)
    callable for searches; hunt runs take `on_stats` / `on_record` hooks and
    config overrides through `hunt_overrides`. Raises FileNotFoundError or
    CorruptCheckpoint.
    """
    p = Path(path)
    record = ckpt.load(p)

    if record.kind == "verify":
        prog = progress if isinstance(progress, ProgressConfig) else None
        return resume_verify(record, path=p, interval=interval, progress=prog)

    if record.kind == "search":
        prog = progress if callable(progress) and not isinstance(progress, ProgressConfig) else None
        return resume_search(record, path=p, interval=interval, progress=prog)

    overrides = dict(hunt_overrides)
    overrides["checkpoint_path"] = str(p)
    if interval is not None:
        overrides["checkpoint_interval"] = interval
    return RecordHunter.from_checkpoint(record, **overrides).run()
