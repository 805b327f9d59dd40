# src/lychrel/hunt.py
"""
Record hunting: run reverse-and-add chains over filtered seeds and keep the
ones that take unusually long to reach a palindrome.

Every chain is classified, in this order:

  LYCHREL    no palindrome within max_iterations
  QUICK      palindrome in fewer than target_iterations steps
  RECORD     target_iterations <= k <= max_iterations and the palindrome has
             at least target_final_digits digits
  CANDIDATE  anything else (long delay, small palindrome)

Chains share a ConvergenceCache; every visited value is consulted, so two
seeds that merge after a few steps are only iterated once past the merge.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from gmpy2 import mpz

from lychrel import checkpoint as ckpt
from lychrel.cache import CacheStats, ConvergenceCache, ExceedsBound, ReachesPalindrome
from lychrel.seeds import GeneratorMode, SeedGenerator
from lychrel.utility import CorruptCheckpoint, InvalidConfiguration, to_mpz
from lychrel.workspace import default_checkpoint_path

logger = logging.getLogger(__name__)


# --- Configuration -------------------------------------------------------------

_INT_FIELDS = (
    "min_digits", "target_iterations", "max_iterations", "target_final_digits",
    "cache_capacity", "pattern_fill_limit", "checkpoint_interval", "warmup_limit",
    "stats_interval",
)
_OPTIONAL_INT_FIELDS = ("max_digits", "random_seed", "max_seeds")


@dataclass
class HuntConfig:
    min_digits: int = 23
    max_digits: int | None = None
    target_iterations: int = 289
    max_iterations: int = 300
    target_final_digits: int = 142
    cache_capacity: int = 1_000_000
    generator_mode: str = "sequential"
    random_seed: int | None = None
    pattern_fill_limit: int = 10_000
    checkpoint_interval: int = 1_000_000
    checkpoint_path: str | None = None     # None -> <workspace>/checkpoints/hunt_checkpoint.json
    warmup: bool = False
    warmup_limit: int = 1_000_000
    max_seeds: int | None = None           # None -> until the generator runs dry
    stats_interval: int = 100_000
    save_records: bool = True

    def validate(self) -> HuntConfig:
        for name in _INT_FIELDS:
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise InvalidConfiguration(f"{name} must be an integer, got {v!r}")
            if v < 0:
                raise InvalidConfiguration(f"{name} must be >= 0, got {v}")
        for name in _OPTIONAL_INT_FIELDS:
            v = getattr(self, name)
            if v is None:
                continue
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise InvalidConfiguration(f"{name} must be a non-negative integer, got {v!r}")
        for name in ("warmup", "save_records"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidConfiguration(f"{name} must be true or false")

        if self.min_digits < 1:
            raise InvalidConfiguration("min_digits must be at least 1")
        if self.max_digits is not None and self.max_digits < self.min_digits:
            raise InvalidConfiguration(
                f"max_digits ({self.max_digits}) is below min_digits ({self.min_digits})"
            )
        if self.target_iterations > self.max_iterations:
            raise InvalidConfiguration(
                f"target_iterations ({self.target_iterations}) exceeds max_iterations ({self.max_iterations})"
            )
        if self.pattern_fill_limit < 1:
            raise InvalidConfiguration("pattern_fill_limit must be at least 1")
        self.generator_mode = GeneratorMode.parse(self.generator_mode).value
        return self

    def resolved_checkpoint_path(self) -> Path | None:
        if self.checkpoint_interval == 0:
            return None
        if self.checkpoint_path:
            return Path(self.checkpoint_path).expanduser()
        return default_checkpoint_path("hunt")

    def to_params(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_params(cls, params: dict[str, Any], **overrides) -> HuntConfig:
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in params.items() if k in known}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values).validate()


# --- Single chain ---------------------------------------------------------------

@dataclass
class ChainResult:
    start: mpz
    reached: bool
    iterations: int
    final_digits: int | None = None
    final_value: mpz | None = None     # None when the cache settled the chain
    cache_hit: bool = False


def run_chain(start, max_iterations: int, cache: ConvergenceCache | None = None) -> ChainResult:
    """
    Iterate `start` for at most `max_iterations` steps, consulting `cache`
    at every visited value.

    On a hit the remaining steps come from the cache (or the bound is known
    to be exceeded). Misses never end the chain early. Once the outcome is
    known every value visited before it is back-filled into the cache.
    """
    start = to_mpz(start)
    value = start
    path: list[str] = []
    i = 0
    while True:
        s = value.digits(10)

        if cache is not None:
            hit = cache.lookup(s, budget=max_iterations - i)
            if hit is not None:
                cache.backfill(path, hit)
                if isinstance(hit, ReachesPalindrome) and i + hit.steps <= max_iterations:
                    return ChainResult(start, True, i + hit.steps, hit.final_digits, None, True)
                return ChainResult(start, False, max_iterations, None, None, True)

        r = s[::-1]
        if s == r:
            if cache is not None:
                out = ReachesPalindrome(0, len(s))
                cache.insert(s, out)
                cache.backfill(path, out)
            return ChainResult(start, True, i, len(s), value)

        if i >= max_iterations:
            if cache is not None:
                out = ExceedsBound(0)
                cache.insert(s, out)
                cache.backfill(path, out)
            return ChainResult(start, False, i, None, value)

        if cache is not None:
            path.append(s)
        value = value + mpz(r, 10)
        i += 1


# --- Classification ---------------------------------------------------------------

class ChainKind(str, Enum):
    LYCHREL = "lychrel"
    QUICK = "quick"
    RECORD = "record"
    CANDIDATE = "candidate"


def classify_chain(result: ChainResult, config: HuntConfig) -> ChainKind:
    if not result.reached:
        return ChainKind.LYCHREL
    k = result.iterations
    if k < config.target_iterations:
        return ChainKind.QUICK
    if k <= config.max_iterations and (result.final_digits or 0) >= config.target_final_digits:
        return ChainKind.RECORD
    return ChainKind.CANDIDATE


# --- Statistics -------------------------------------------------------------------

@dataclass
class RecordCandidate:
    number: str
    iterations: int
    final_digits: int
    found_at: str

    @classmethod
    def from_chain(cls, result: ChainResult) -> RecordCandidate:
        return cls(
            number=result.start.digits(10),
            iterations=result.iterations,
            final_digits=int(result.final_digits or 0),
            found_at=datetime.now().astimezone().isoformat(timespec="seconds"),
        )


@dataclass
class HuntStatistics:
    numbers_tested: int = 0      # raw candidates drawn from the generator
    seeds_tested: int = 0        # chains actually run (after seed filtering)
    cache_hits: int = 0
    cache_misses: int = 0
    best_iterations: int = 0
    best_final_digits: int = 0
    best_number: str | None = None
    records_found: int = 0
    candidates_found: int = 0
    lychrel_found: int = 0
    quick_found: int = 0
    elapsed_s: float = 0.0
    records: list[RecordCandidate] = field(default_factory=list)
    candidates: list[RecordCandidate] = field(default_factory=list)

    @property
    def skip_rate(self) -> float:
        if not self.numbers_tested:
            return 0.0
        return (self.numbers_tested - self.seeds_tested) / self.numbers_tested

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total else 0.0

    def note(self, result: ChainResult, kind: ChainKind) -> RecordCandidate | None:
        """Count one classified chain; return the RecordCandidate kept for it, if any."""
        if kind is ChainKind.LYCHREL:
            self.lychrel_found += 1
            return None

        pair = (result.iterations, int(result.final_digits or 0))
        if pair > (self.best_iterations, self.best_final_digits):
            self.best_iterations, self.best_final_digits = pair
            self.best_number = result.start.digits(10)

        if kind is ChainKind.QUICK:
            self.quick_found += 1
            return None
        cand = RecordCandidate.from_chain(result)
        if kind is ChainKind.RECORD:
            self.records_found += 1
            self.records.append(cand)
        else:
            self.candidates_found += 1
            self.candidates.append(cand)
        return cand

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["elapsed_s"] = round(self.elapsed_s, 3)
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> HuntStatistics:
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in raw.items() if k in known}
        values["records"] = [RecordCandidate(**r) for r in raw.get("records", [])]
        values["candidates"] = [RecordCandidate(**c) for c in raw.get("candidates", [])]
        return cls(**values)


@dataclass
class HuntSummary:
    statistics: HuntStatistics
    stop_reason: str                    # "exhausted" | "max_seeds"
    cache: CacheStats
    checkpoint_path: Path | None = None
    checkpoint_failures: int = 0

    @property
    def completed(self) -> bool:
        return self.stop_reason == "exhausted"


# --- Orchestrator -------------------------------------------------------------------

StatsHook = Callable[["RecordHunter"], None]
RecordHook = Callable[[RecordCandidate, ChainKind], None]


def _log_stats(hunter: RecordHunter) -> None:
    st = hunter.stats
    logger.info(
        "tested %d | seeds %d | cache %.1f%% hit | best %d iter (%d digits) | skip %.1f%%",
        st.numbers_tested, st.seeds_tested, st.cache_hit_rate * 100,
        st.best_iterations, st.best_final_digits, st.skip_rate * 100,
    )


class RecordHunter:
    def __init__(
        self,
        config: HuntConfig,
        cache: ConvergenceCache | None = None,
        generator: SeedGenerator | None = None,
        stats: HuntStatistics | None = None,
        *,
        on_stats: StatsHook | None = None,
        on_record: RecordHook | None = None,
    ):
        self.config = config.validate()
        self.cache = cache if cache is not None else ConvergenceCache(config.cache_capacity)
        self.generator = generator if generator is not None else SeedGenerator(
            config.min_digits,
            config.generator_mode,
            max_digits=config.max_digits,
            random_seed=config.random_seed,
            pattern_fill_limit=config.pattern_fill_limit,
        )
        self.stats = stats if stats is not None else HuntStatistics()
        self.writer = ckpt.CheckpointWriter(config.resolved_checkpoint_path(), config.checkpoint_interval)
        self.writer.mark(self.stats.numbers_tested)
        self.on_stats = on_stats or _log_stats
        self.on_record = on_record
        self.created_at: str | None = None
        self._clock_base = self.stats.elapsed_s
        self._clock_start: float | None = None
        self._pending: mpz | None = None   # seed drawn but not yet counted

    # --- cache warmup ---------------------------------------------------------

    def warmup(self, limit: int | None = None) -> int:
        """Run chains over 1..limit into the cache only; hunt statistics stay untouched."""
        limit = self.config.warmup_limit if limit is None else int(limit)
        t0 = time.perf_counter()
        for n in range(1, limit + 1):
            run_chain(n, self.config.max_iterations, self.cache)
        self.cache.reset_stats()
        logger.info("cache warmup: %d entries from 1..%d in %.1fs",
                    len(self.cache), limit, time.perf_counter() - t0)
        return len(self.cache)

    # --- one seed -------------------------------------------------------------

    def process_seed(self, seed) -> tuple[ChainResult, ChainKind]:
        """
        Chain and classify one seed, then count it. Statistics change only
        after the chain is finished, so an interrupted seed is not counted.
        """
        hits, misses = self.cache.hits, self.cache.misses
        result = run_chain(seed, self.config.max_iterations, self.cache)
        kind = classify_chain(result, self.config)

        self.stats.cache_hits += self.cache.hits - hits
        self.stats.cache_misses += self.cache.misses - misses
        self.stats.seeds_tested += 1
        self.stats.numbers_tested += 1
        cand = self.stats.note(result, kind)
        self._pending = None

        if cand is not None:
            if kind is ChainKind.RECORD and self.config.save_records:
                from lychrel.dataio import write_record_file
                try:
                    write_record_file(cand)
                except OSError as e:
                    logger.warning("Could not write record file for %s: %s", cand.number, e)
            if self.on_record is not None:
                self.on_record(cand, kind)
        return result, kind

    # --- main loop ------------------------------------------------------------

    def _elapsed(self) -> float:
        if self._clock_start is None:
            return self._clock_base
        return self._clock_base + (time.perf_counter() - self._clock_start)

    def _tick(self) -> None:
        tested = self.stats.numbers_tested
        if self.writer.due(tested):
            self.save_checkpoint()
        if self.config.stats_interval and tested % self.config.stats_interval == 0:
            self.stats.elapsed_s = self._elapsed()
            self.on_stats(self)

    def _skip(self, candidate) -> None:
        self.stats.numbers_tested += 1
        self._tick()

    def run(self) -> HuntSummary:
        cfg = self.config
        self._clock_start = time.perf_counter()
        if cfg.warmup and len(self.cache) == 0:
            self.warmup()

        stop_reason = "exhausted"
        try:
            while True:
                if cfg.max_seeds is not None and self.stats.seeds_tested >= cfg.max_seeds:
                    stop_reason = "max_seeds"
                    break
                # a seed drawn but not finished before an interrupt goes first
                if self._pending is None:
                    self._pending = self.generator.next(on_skip=self._skip)
                    if self._pending is None:
                        break
                self.process_seed(self._pending)
                self._tick()
        except KeyboardInterrupt:
            self.save_checkpoint()
            raise

        self.stats.elapsed_s = self._elapsed()
        if stop_reason == "exhausted":
            self.writer.discard()
        else:
            self.save_checkpoint()
        return HuntSummary(
            statistics=self.stats,
            stop_reason=stop_reason,
            cache=self.cache.stats(),
            checkpoint_path=self.writer.path if stop_reason != "exhausted" and self.writer.enabled else None,
            checkpoint_failures=self.writer.failures,
        )

    # --- checkpoints ----------------------------------------------------------

    def checkpoint_record(self) -> ckpt.CheckpointRecord:
        """
        Snapshot for resuming. `current_value` holds a seed that was drawn
        but not finished (None between seeds); it is chained first on resume.
        """
        self.stats.elapsed_s = self._elapsed()
        rec = ckpt.CheckpointRecord(
            kind="hunt",
            current_value=self._pending,
            iterations_done=self.stats.numbers_tested,
            max_iterations=self.config.max_iterations,
            checkpoint_interval=self.config.checkpoint_interval,
            params=self.config.to_params(),
            statistics=self.stats.to_dict(),
            generator_state=self.generator.state(),
            elapsed_s=self.stats.elapsed_s,
        )
        if self.created_at:
            rec.created_at = self.created_at
        else:
            self.created_at = rec.created_at
        return rec

    def save_checkpoint(self) -> bool:
        if not self.writer.enabled:
            return False
        ok = self.writer.write(self.checkpoint_record(), count=self.stats.numbers_tested)
        if ok:
            logger.info("checkpoint saved at %d numbers tested", self.stats.numbers_tested)
        return ok

    @classmethod
    def from_checkpoint(cls, record: ckpt.CheckpointRecord, **overrides) -> RecordHunter:
        """
        Rebuild a hunter from a "hunt" checkpoint. `overrides` replace single
        config fields (e.g. max_seeds, checkpoint_path); the cache starts empty.
        """
        if record.kind != "hunt":
            raise CorruptCheckpoint(overrides.get("checkpoint_path") or "<checkpoint>",
                                    f"expected a hunt checkpoint, found '{record.kind}'")
        hooks = {k: overrides.pop(k) for k in ("on_stats", "on_record") if k in overrides}
        where = overrides.get("checkpoint_path") or record.params.get("checkpoint_path") or "<checkpoint>"
        try:
            config = HuntConfig.from_params(record.params, **overrides)
            generator = SeedGenerator.from_state(record.generator_state or {})
            stats = HuntStatistics.from_dict(record.statistics or {})
        except InvalidConfiguration as e:
            raise CorruptCheckpoint(where, f"stored parameters are invalid ({e})") from None
        except (TypeError, ValueError) as e:
            raise CorruptCheckpoint(where, str(e)) from None
        # stats.elapsed_s is authoritative; record.elapsed_s mirrors it
        hunter = cls(config, generator=generator, stats=stats, **hooks)
        hunter.created_at = record.created_at
        hunter._pending = record.current_value
        # saving may be off for this session, but the file still goes once the hunt completes
        if hunter.writer.path is None and config.checkpoint_path:
            hunter.writer.path = Path(config.checkpoint_path).expanduser()
        return hunter


def run_hunt(config: HuntConfig, **hooks) -> HuntSummary:
    return RecordHunter(config, **hooks).run()
