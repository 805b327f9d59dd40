# src/lychrel/checkpoint.py
"""
Durable checkpoints for long computations.

One JSON file holds one logical computation (a verify run, a sequential
search range, or a hunt session). Writes go to "<file>.tmp" in the same
directory and are renamed into place with os.replace(), so a reader sees
either the previous complete file or the new one.

Big integers are stored as decimal strings.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from gmpy2 import mpz

from lychrel.utility import CorruptCheckpoint

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
KINDS = ("verify", "search", "hunt")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class CheckpointRecord:
    kind: str
    start_value: mpz | None = None
    current_value: mpz | None = None
    iterations_done: int = 0
    max_iterations: int | None = None
    checkpoint_interval: int = 0
    params: dict[str, Any] = field(default_factory=dict)      # originating command parameters
    statistics: dict[str, Any] | None = None
    generator_state: dict[str, Any] | None = None
    elapsed_s: float = 0.0
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    version: int = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "kind": self.kind,
            "start_value": None if self.start_value is None else str(self.start_value),
            "current_value": None if self.current_value is None else str(self.current_value),
            "iterations_done": int(self.iterations_done),
            "max_iterations": self.max_iterations,
            "checkpoint_interval": int(self.checkpoint_interval),
            "params": self.params,
            "statistics": self.statistics,
            "generator_state": self.generator_state,
            "elapsed_s": round(float(self.elapsed_s), 3),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: Any, path: str | Path = "<memory>") -> CheckpointRecord:
        """Validate a decoded JSON document; anything off raises CorruptCheckpoint."""
        if not isinstance(raw, dict):
            raise CorruptCheckpoint(path, "top level is not a JSON object")

        def _req(key: str):
            if key not in raw:
                raise CorruptCheckpoint(path, f"missing field '{key}'")
            return raw[key]

        version = _req("version")
        if version != SCHEMA_VERSION:
            raise CorruptCheckpoint(path, f"unsupported schema version {version!r}")

        kind = _req("kind")
        if kind not in KINDS:
            raise CorruptCheckpoint(path, f"unknown kind {kind!r}")

        def _big(key: str) -> mpz | None:
            v = raw.get(key)
            if v is None:
                return None
            if not isinstance(v, str) or not v.isdigit():
                raise CorruptCheckpoint(path, f"'{key}' is not a decimal string")
            return mpz(v, 10)

        def _count(key: str, *, optional: bool = False) -> int | None:
            v = raw.get(key)
            if v is None and optional:
                return None
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise CorruptCheckpoint(path, f"'{key}' must be a non-negative integer")
            return v

        def _table(key: str, *, optional: bool = True) -> dict | None:
            v = raw.get(key)
            if v is None and optional:
                return None
            if not isinstance(v, dict):
                raise CorruptCheckpoint(path, f"'{key}' must be an object")
            return v

        elapsed = raw.get("elapsed_s", 0.0)
        if not isinstance(elapsed, (int, float)) or isinstance(elapsed, bool):
            raise CorruptCheckpoint(path, "'elapsed_s' must be a number")

        rec = cls(
            kind=kind,
            start_value=_big("start_value"),
            current_value=_big("current_value"),
            iterations_done=_count("iterations_done"),
            max_iterations=_count("max_iterations", optional=True),
            checkpoint_interval=_count("checkpoint_interval"),
            params=_table("params", optional=False),
            statistics=_table("statistics"),
            generator_state=_table("generator_state"),
            elapsed_s=float(elapsed),
            created_at=str(raw.get("created_at") or _now()),
            updated_at=str(raw.get("updated_at") or _now()),
            version=version,
        )
        if kind == "verify" and (rec.start_value is None or rec.current_value is None):
            raise CorruptCheckpoint(path, "verify checkpoint without start/current value")
        if kind == "hunt" and rec.generator_state is None:
            raise CorruptCheckpoint(path, "hunt checkpoint without generator_state")
        return rec


# --- Store ------------------------------------------------------------------

def save(record: CheckpointRecord, path: str | Path) -> None:
    """Atomically persist `record`; OSError propagates to the caller."""
    p = Path(path)
    if p.parent and not p.parent.exists():
        p.parent.mkdir(parents=True, exist_ok=True)
    record.updated_at = _now()
    tmp = p.with_name(p.name + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(record.to_dict(), fh, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, p)
    except OSError:
        try:
            tmp.unlink()
        except OSError:
            pass
        raise


def load(path: str | Path) -> CheckpointRecord:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as e:
        raise CorruptCheckpoint(p, f"cannot read file ({e.__class__.__name__}: {e})") from None
    if not text.strip():
        raise CorruptCheckpoint(p, "file is empty")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptCheckpoint(p, f"invalid JSON at line {e.lineno}, column {e.colno}") from None
    return CheckpointRecord.from_dict(raw, p)


def exists(path: str | Path | None) -> bool:
    return bool(path) and Path(path).is_file()


def delete(path: str | Path | None) -> None:
    if not path:
        return
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass


@dataclass
class CheckpointConfig:
    """Where and how often verify / sequential search persist their state."""
    path: str | Path | None = None     # None -> <workspace>/checkpoints/<kind>_checkpoint.json
    interval: int = 0                  # 0 disables checkpointing
    force_restart: bool = False

    def resolve(self, kind: str) -> Path | None:
        if self.interval <= 0:
            return None
        if self.path:
            return Path(self.path).expanduser()
        from lychrel.workspace import default_checkpoint_path
        return default_checkpoint_path(kind)


class CheckpointWriter:
    """
    Cadence + failure policy for periodic saves.

    interval == 0 (or no path) disables persistence. A failed save is logged
    once per occurrence and counted; it never interrupts the computation.
    """

    def __init__(self, path: str | Path | None, interval: int = 0):
        if interval < 0:
            raise ValueError("checkpoint interval must be >= 0")
        self.path = Path(path) if path else None
        self.interval = int(interval)
        self.failures = 0
        self.saves = 0
        self._last_count = 0

    @property
    def enabled(self) -> bool:
        return self.path is not None and self.interval > 0

    def mark(self, count: int) -> None:
        """Set the baseline, e.g. the count stored in a resumed checkpoint."""
        self._last_count = count

    def due(self, count: int) -> bool:
        return self.enabled and count - self._last_count >= self.interval

    def write(self, record: CheckpointRecord, count: int | None = None) -> bool:
        if self.path is None:
            return False
        try:
            save(record, self.path)
        except OSError as e:
            self.failures += 1
            logger.warning("Failed to save checkpoint %s: %s (failure #%d)", self.path, e, self.failures)
            return False
        self.saves += 1
        if count is not None:
            self._last_count = count
        logger.debug("checkpoint saved to %s", self.path)
        return True

    def discard(self) -> None:
        delete(self.path)


# --- Resume decision -----------------------------------------------------------

class ResumeDecision(Enum):
    FRESH = "fresh"          # nothing to resume
    RESUME = "resume"        # continue from the existing checkpoint
    RESTART = "restart"      # discard the existing checkpoint and start over
    CONFLICT = "conflict"    # checkpoint belongs to a different computation


def should_resume(
    existing: CheckpointRecord | None,
    force_restart: bool = False,
    *,
    expected_kind: str | None = None,
    expected_params: dict[str, Any] | None = None,
) -> ResumeDecision:
    """
    Decide what to do with a checkpoint found at the configured path.

    Pure function; the CLI layer asks the user (or honours --restart) and
    then acts on the answer. A checkpoint for another kind of run, or for the
    same kind with different parameters, is a CONFLICT unless a restart is
    forced.
    """
    if existing is None:
        return ResumeDecision.FRESH
    if force_restart:
        return ResumeDecision.RESTART
    if expected_kind is not None and existing.kind != expected_kind:
        return ResumeDecision.CONFLICT
    if expected_params:
        for k, v in expected_params.items():
            if k in existing.params and existing.params[k] != v:
                return ResumeDecision.CONFLICT
    return ResumeDecision.RESUME
