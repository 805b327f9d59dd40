# src/lychrel/verify.py
"""
Long-running verification of a single number.

The chain is driven through engine.iterate(); a hook fires on a common
multiple of the progress and checkpoint cadences. Elapsed time adds up
across resumes, and the checkpoint file is removed once the run finishes.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from gmpy2 import mpz

from lychrel import checkpoint as ckpt
from lychrel.checkpoint import CheckpointConfig, CheckpointRecord, ResumeDecision, should_resume
from lychrel.engine import IterationState, iterate
from lychrel.utility import CorruptCheckpoint, InvalidConfiguration, UserInputError, dec_digits, to_mpz

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[IterationState, float, bool], None]


@dataclass
class ProgressConfig:
    interval: int = 10_000
    callback: ProgressCallback | None = None


@dataclass
class VerifyOutcome:
    start_value: mpz
    reached_palindrome: bool
    iterations: int
    final_value: mpz
    max_iterations: int | None
    elapsed_s: float
    resumed: bool = False
    checkpoint_failures: int = 0

    @property
    def lychrel_candidate(self) -> bool:
        return not self.reached_palindrome

    @property
    def final_digits(self) -> int:
        return dec_digits(self.final_value)


def _check_bound(max_iter) -> int | None:
    if max_iter is None:
        return None
    if not isinstance(max_iter, int) or isinstance(max_iter, bool) or max_iter < 0:
        raise InvalidConfiguration(f"max_iterations must be a non-negative integer, got {max_iter!r}")
    return max_iter


def _params(start: mpz, max_iter: int | None, progress_interval: int) -> dict:
    return {"number": start.digits(10), "max_iterations": max_iter, "progress_interval": progress_interval}


def _drive(
    state: IterationState,
    *,
    writer: ckpt.CheckpointWriter,
    progress: ProgressConfig,
    params: dict,
    base_elapsed: float,
    created_at: str | None,
    resumed: bool,
) -> VerifyOutcome:
    t0 = time.perf_counter()

    def elapsed() -> float:
        return base_elapsed + (time.perf_counter() - t0)

    def record() -> CheckpointRecord:
        rec = CheckpointRecord(
            kind="verify",
            start_value=state.start_value,
            current_value=state.current_value,
            iterations_done=state.iterations_done,
            max_iterations=state.max_iterations,
            checkpoint_interval=writer.interval,
            params=params,
            elapsed_s=elapsed(),
        )
        if created_at:
            rec.created_at = created_at
        return rec

    def hook(st: IterationState) -> None:
        saved = False
        if writer.due(st.iterations_done):
            saved = writer.write(record(), count=st.iterations_done)
        if progress.callback is not None:
            if saved or (progress.interval and st.iterations_done % progress.interval == 0):
                progress.callback(st, elapsed(), saved)

    cadences = [c for c in (progress.interval if progress.callback else 0,
                            writer.interval if writer.enabled else 0) if c > 0]
    every = math.gcd(*cadences) if cadences else 0

    writer.mark(state.iterations_done)
    try:
        reached = iterate(state, every=every, hook=hook if every else None)
    except KeyboardInterrupt:
        if writer.enabled:
            writer.write(record(), count=state.iterations_done)
        raise

    if progress.callback is not None:
        progress.callback(state, elapsed(), False)
    writer.discard()
    return VerifyOutcome(
        start_value=state.start_value,
        reached_palindrome=reached,
        iterations=state.iterations_done,
        final_value=state.current_value,
        max_iterations=state.max_iterations,
        elapsed_s=elapsed(),
        resumed=resumed,
        checkpoint_failures=writer.failures,
    )


def run_verify(
    n,
    max_iter: int | None,
    progress: ProgressConfig | None = None,
    checkpoint: CheckpointConfig | None = None,
) -> VerifyOutcome:
    """
    Iterate n until a palindrome appears or max_iter steps are used up
    (max_iter=None: no bound).

    With checkpointing enabled, a matching checkpoint at the configured path
    is resumed; one for a different computation raises UserInputError unless
    `force_restart` is set.
    """
    max_iter = _check_bound(max_iter)
    start = to_mpz(n)
    progress = progress or ProgressConfig(interval=0)
    checkpoint = checkpoint or CheckpointConfig()
    if checkpoint.interval < 0:
        raise InvalidConfiguration("checkpoint interval must be >= 0")
    path = checkpoint.resolve("verify")
    params = _params(start, max_iter, progress.interval)

    if path is not None and ckpt.exists(path):
        existing = None if checkpoint.force_restart else ckpt.load(path)
        decision = should_resume(
            existing,
            checkpoint.force_restart,
            expected_kind="verify",
            expected_params={"number": params["number"], "max_iterations": max_iter},
        )
        if decision is ResumeDecision.RESUME:
            return resume_verify(existing, path=path, interval=checkpoint.interval, progress=progress)
        if decision is ResumeDecision.CONFLICT:
            raise UserInputError(
                f"{path} holds a checkpoint for a different computation; "
                "resume it, pass --restart, or choose another checkpoint path."
            )
        ckpt.delete(path)

    writer = ckpt.CheckpointWriter(path, checkpoint.interval)
    state = IterationState.begin(start, max_iter)
    return _drive(state, writer=writer, progress=progress, params=params,
                  base_elapsed=0.0, created_at=None, resumed=False)


def resume_verify(
    record: CheckpointRecord,
    *,
    path: str | Path | None = None,
    interval: int | None = None,
    progress: ProgressConfig | None = None,
) -> VerifyOutcome:
    """Continue a "verify" checkpoint; results match an uninterrupted run."""
    if record.kind != "verify":
        raise CorruptCheckpoint(path or "<checkpoint>", f"expected a verify checkpoint, found '{record.kind}'")
    if record.start_value is None or record.current_value is None:
        raise CorruptCheckpoint(path or "<checkpoint>", "verify checkpoint without start/current value")
    if record.max_iterations is not None and record.iterations_done > record.max_iterations:
        raise CorruptCheckpoint(path or "<checkpoint>", "iterations_done exceeds max_iterations")

    interval = record.checkpoint_interval if interval is None else int(interval)
    if progress is None:
        progress = ProgressConfig(interval=int(record.params.get("progress_interval") or 0))
    writer = ckpt.CheckpointWriter(path, interval)
    state = IterationState(
        start_value=record.start_value,
        current_value=record.current_value,
        iterations_done=record.iterations_done,
        max_iterations=record.max_iterations,
    )
    logger.info("resuming verify of %s digits at iteration %d",
                dec_digits(state.start_value), state.iterations_done)
    params = dict(record.params)
    params.setdefault("number", record.start_value.digits(10))
    params.setdefault("max_iterations", record.max_iterations)
    return _drive(state, writer=writer, progress=progress, params=params,
                  base_elapsed=record.elapsed_s, created_at=record.created_at, resumed=True)
