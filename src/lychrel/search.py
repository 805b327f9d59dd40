# src/lychrel/search.py
"""
Range search: classify every integer in [start, end].

Parallel mode splits the range into contiguous chunks for a process pool and
reduces the partial summaries at the end. Only the sequential mode can
checkpoint; its cursor is "next number to test" plus the running totals.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gmpy2 import mpz

from lychrel import checkpoint as ckpt
from lychrel.checkpoint import CheckpointConfig, CheckpointRecord, ResumeDecision, should_resume
from lychrel.classify import Classification, check_max_iterations, run_test
from lychrel.utility import CorruptCheckpoint, InvalidConfiguration, UserInputError, to_mpz

logger = logging.getLogger(__name__)

# Below this many numbers the pool start-up costs more than it saves.
PARALLEL_MIN = 2_000
CHUNKS_PER_WORKER = 4

SearchProgress = Callable[[int, int], None]   # (tested, total)


@dataclass
class SearchSummary:
    start: mpz
    end: mpz
    max_iterations: int
    tested: int = 0
    palindromes_found: int = 0        # reached a palindrome after >= 1 step
    already_palindromes: int = 0      # palindromes at step 0
    lychrel_candidates: list[str] = field(default_factory=list)
    most_delayed: str | None = None   # slowest number that did reach a palindrome
    most_delayed_iterations: int = 0
    elapsed_s: float = 0.0

    def absorb(self, c: Classification) -> None:
        self.tested += 1
        if c.lychrel_candidate:
            self.lychrel_candidates.append(c.number.digits(10))
            return
        if c.already_palindrome:
            self.already_palindromes += 1
        else:
            self.palindromes_found += 1
        if c.iterations > self.most_delayed_iterations:
            self.most_delayed = c.number.digits(10)
            self.most_delayed_iterations = c.iterations

    def merge(self, other: SearchSummary) -> None:
        """Fold the summary of the next contiguous chunk into this one."""
        self.tested += other.tested
        self.palindromes_found += other.palindromes_found
        self.already_palindromes += other.already_palindromes
        self.lychrel_candidates.extend(other.lychrel_candidates)
        # ties keep the earlier (smaller) number
        if other.most_delayed is not None and other.most_delayed_iterations > self.most_delayed_iterations:
            self.most_delayed = other.most_delayed
            self.most_delayed_iterations = other.most_delayed_iterations

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.digits(10),
            "end": self.end.digits(10),
            "max_iterations": self.max_iterations,
            "tested": self.tested,
            "palindromes_found": self.palindromes_found,
            "already_palindromes": self.already_palindromes,
            "lychrel_candidates": list(self.lychrel_candidates),
            "most_delayed": self.most_delayed,
            "most_delayed_iterations": self.most_delayed_iterations,
            "elapsed_s": round(self.elapsed_s, 3),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SearchSummary:
        return cls(
            start=mpz(str(raw["start"]), 10),
            end=mpz(str(raw["end"]), 10),
            max_iterations=int(raw["max_iterations"]),
            tested=int(raw.get("tested", 0)),
            palindromes_found=int(raw.get("palindromes_found", 0)),
            already_palindromes=int(raw.get("already_palindromes", 0)),
            lychrel_candidates=[str(x) for x in raw.get("lychrel_candidates", [])],
            most_delayed=raw.get("most_delayed"),
            most_delayed_iterations=int(raw.get("most_delayed_iterations", 0)),
            elapsed_s=float(raw.get("elapsed_s", 0.0)),
        )


def _search_chunk(lo: str, hi: str, max_iter: int) -> dict[str, Any]:
    # worker entry point; strings cross the process boundary
    a, b = mpz(lo, 10), mpz(hi, 10)
    part = SearchSummary(start=a, end=b, max_iterations=max_iter)
    n = a
    while n <= b:
        part.absorb(run_test(n, max_iter))
        n += 1
    return part.to_dict()


def _chunks(start: mpz, end: mpz, count: int) -> list[tuple[mpz, mpz]]:
    total = int(end - start + 1)
    size = max(1, -(-total // count))
    out = []
    lo = start
    while lo <= end:
        hi = min(end, lo + size - 1)
        out.append((lo, hi))
        lo = hi + 1
    return out


def _search_parallel(summary: SearchSummary, workers: int | None, progress: SearchProgress | None) -> None:
    workers = workers or os.cpu_count() or 1
    spans = _chunks(summary.start, summary.end, workers * CHUNKS_PER_WORKER)
    total = int(summary.end - summary.start + 1)
    parts: dict[int, dict[str, Any]] = {}
    done = 0
    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(_search_chunk, lo.digits(10), hi.digits(10), summary.max_iterations): i
            for i, (lo, hi) in enumerate(spans)
        }
        for fut in as_completed(futures):
            part = fut.result()
            parts[futures[fut]] = part
            done += part["tested"]
            if progress is not None:
                progress(done, total)
    for i in range(len(spans)):
        summary.merge(SearchSummary.from_dict(parts[i]))


def _search_sequential(
    summary: SearchSummary,
    first: mpz,
    *,
    writer: ckpt.CheckpointWriter,
    params: dict[str, Any],
    progress: SearchProgress | None,
    base_elapsed: float,
    created_at: str | None,
) -> None:
    t0 = time.perf_counter()
    total = int(summary.end - summary.start + 1)
    n = first

    def record() -> CheckpointRecord:
        summary.elapsed_s = base_elapsed + (time.perf_counter() - t0)
        rec = CheckpointRecord(
            kind="search",
            start_value=summary.start,
            current_value=n,               # next number to test
            iterations_done=summary.tested,
            max_iterations=summary.max_iterations,
            checkpoint_interval=writer.interval,
            params=params,
            statistics=summary.to_dict(),
            elapsed_s=summary.elapsed_s,
        )
        if created_at:
            rec.created_at = created_at
        return rec

    writer.mark(summary.tested)
    try:
        while n <= summary.end:
            summary.absorb(run_test(n, summary.max_iterations))
            n += 1
            if writer.due(summary.tested):
                writer.write(record(), count=summary.tested)
            if progress is not None:
                progress(summary.tested, total)
    except KeyboardInterrupt:
        if writer.enabled:
            writer.write(record(), count=summary.tested)
        raise

    summary.elapsed_s = base_elapsed + (time.perf_counter() - t0)
    writer.discard()


def run_search(
    start,
    end,
    max_iter: int,
    parallel: bool = True,
    checkpoint: CheckpointConfig | None = None,
    workers: int | None = None,
    progress: SearchProgress | None = None,
) -> SearchSummary:
    a, b = to_mpz(start), to_mpz(end)
    max_iter = check_max_iterations(max_iter)
    if a > b:
        raise InvalidConfiguration(f"start ({a}) is greater than end ({b})")
    if workers is not None and workers < 1:
        raise InvalidConfiguration("workers must be at least 1")
    checkpoint = checkpoint or CheckpointConfig()
    if checkpoint.interval < 0:
        raise InvalidConfiguration("checkpoint interval must be >= 0")
    if parallel and checkpoint.interval > 0:
        raise InvalidConfiguration("checkpointing is only available for sequential search (use --sequential)")

    summary = SearchSummary(start=a, end=b, max_iterations=max_iter)

    if parallel:
        t0 = time.perf_counter()
        if int(b - a + 1) < PARALLEL_MIN or workers == 1:
            _search_sequential(summary, a, writer=ckpt.CheckpointWriter(None), params={},
                               progress=progress, base_elapsed=0.0, created_at=None)
        else:
            _search_parallel(summary, workers, progress)
        summary.elapsed_s = time.perf_counter() - t0
        return summary

    path = checkpoint.resolve("search")
    params = {"start": a.digits(10), "end": b.digits(10), "max_iterations": max_iter}
    if path is not None and ckpt.exists(path):
        existing = None if checkpoint.force_restart else ckpt.load(path)
        decision = should_resume(existing, checkpoint.force_restart,
                                 expected_kind="search", expected_params=params)
        if decision is ResumeDecision.RESUME:
            return resume_search(existing, path=path, interval=checkpoint.interval, progress=progress)
        if decision is ResumeDecision.CONFLICT:
            raise UserInputError(
                f"{path} holds a checkpoint for a different computation; "
                "resume it, pass --restart, or choose another checkpoint path."
            )
        ckpt.delete(path)

    writer = ckpt.CheckpointWriter(path, checkpoint.interval)
    _search_sequential(summary, a, writer=writer, params=params, progress=progress,
                       base_elapsed=0.0, created_at=None)
    return summary


def resume_search(
    record: CheckpointRecord,
    *,
    path: str | Path | None = None,
    interval: int | None = None,
    progress: SearchProgress | None = None,
) -> SearchSummary:
    """Continue a sequential "search" checkpoint from its next number."""
    where = path or "<checkpoint>"
    if record.kind != "search":
        raise CorruptCheckpoint(where, f"expected a search checkpoint, found '{record.kind}'")
    if record.current_value is None or record.statistics is None:
        raise CorruptCheckpoint(where, "search checkpoint without cursor or totals")
    try:
        summary = SearchSummary.from_dict(record.statistics)
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptCheckpoint(where, f"bad search totals ({e})") from None
    if not (summary.start <= record.current_value <= summary.end + 1):
        raise CorruptCheckpoint(where, "next number lies outside the search range")

    interval = record.checkpoint_interval if interval is None else int(interval)
    writer = ckpt.CheckpointWriter(path, interval)
    logger.info("resuming search at %s (%d tested)", record.current_value, summary.tested)
    params = dict(record.params) or {
        "start": summary.start.digits(10),
        "end": summary.end.digits(10),
        "max_iterations": summary.max_iterations,
    }
    _search_sequential(summary, record.current_value, writer=writer, params=params,
                       progress=progress, base_elapsed=summary.elapsed_s, created_at=record.created_at)
    return summary
