# src/lychrel/cache.py
"""
Convergence cache for reverse-and-add chains.

Two seeds whose chains meet at a common value share every later step and the
final outcome. The cache maps such mid-chain values (canonical decimal digit
strings) to what happens next:

  ReachesPalindrome(steps, final_digits)  a palindrome appears `steps`
                                          further iterations on
  ExceedsBound(bound)                     no palindrome within `bound`
                                          further iterations

Capacity is a hard entry count; overflow drops the oldest *inserted* entry
(FIFO), which keeps hit/miss behaviour reproducible in tests.
"""

from __future__ import annotations

import json
import os
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from gmpy2 import mpz


@dataclass(frozen=True, slots=True)
class ReachesPalindrome:
    steps: int
    final_digits: int

    def shifted(self, k: int) -> ReachesPalindrome:
        return ReachesPalindrome(self.steps + k, self.final_digits)


@dataclass(frozen=True, slots=True)
class ExceedsBound:
    bound: int

    def shifted(self, k: int) -> ExceedsBound:
        return ExceedsBound(self.bound + k)


Outcome = ReachesPalindrome | ExceedsBound


@dataclass
class CacheStats:
    entries: int
    capacity: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def canonical_key(value) -> str:
    """Decimal digits without leading zeros; '0' for zero."""
    if isinstance(value, str):
        s = value.strip().lstrip("0")
        return s or "0"
    return mpz(value).digits(10)


def _merge(old: Outcome, new: Outcome) -> Outcome:
    # A reached palindrome is definitive; otherwise keep the stronger bound.
    if isinstance(old, ReachesPalindrome):
        return old
    if isinstance(new, ReachesPalindrome):
        return new
    return old if old.bound >= new.bound else new


class ConvergenceCache:
    def __init__(self, capacity: int = 1_000_000):
        if capacity < 0:
            raise ValueError("cache capacity must be >= 0")
        self.capacity = int(capacity)
        self._entries: OrderedDict[str, Outcome] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key) -> bool:
        return canonical_key(key) in self._entries

    def peek(self, key) -> Outcome | None:
        """Lookup without touching hit/miss counters."""
        return self._entries.get(canonical_key(key))

    def lookup(self, key, budget: int | None = None) -> Outcome | None:
        """
        Return the recorded outcome for `key`, or None.

        With a `budget` (iterations the caller may still spend), an
        ExceedsBound entry recorded under a smaller bound cannot settle the
        query and counts as a miss.
        """
        out = self._entries.get(key if isinstance(key, str) else canonical_key(key))
        if out is not None and isinstance(out, ExceedsBound) and budget is not None and out.bound < budget:
            out = None
        if out is None:
            self.misses += 1
        else:
            self.hits += 1
        return out

    def insert(self, key, outcome: Outcome) -> None:
        if self.capacity == 0:
            return
        k = key if isinstance(key, str) else canonical_key(key)
        old = self._entries.get(k)
        if old is not None:
            # Updating keeps the original FIFO position.
            self._entries[k] = _merge(old, outcome)
            return
        self._entries[k] = outcome
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)
            self.evictions += 1

    def backfill(self, path: Iterable[str], outcome: Outcome) -> None:
        """
        Record every value of `path` given the outcome of the value that
        follows the last one: path[-1] gets outcome shifted by one step,
        path[0] by len(path) steps.
        """
        keys = list(path)
        n = len(keys)
        for j, k in enumerate(keys):
            self.insert(k, outcome.shifted(n - j))

    def clear(self) -> None:
        self._entries.clear()

    def reset_stats(self) -> None:
        self.hits = self.misses = self.evictions = 0

    def stats(self) -> CacheStats:
        return CacheStats(len(self._entries), self.capacity, self.hits, self.misses, self.evictions)

    def merge(self, other: ConvergenceCache) -> None:
        """Fold another cache's entries (in its insertion order) and counters into this one."""
        for k, v in other._entries.items():
            self.insert(k, v)
        self.hits += other.hits
        self.misses += other.misses

    # --- optional snapshot to disk ----------------------------------------

    def export(self, path: str | Path) -> None:
        rows = []
        for k, v in self._entries.items():
            if isinstance(v, ReachesPalindrome):
                rows.append([k, "P", v.steps, v.final_digits])
            else:
                rows.append([k, "X", v.bound])
        p = Path(path)
        tmp = p.with_name(p.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump({"capacity": self.capacity, "entries": rows}, fh)
        os.replace(tmp, p)

    @classmethod
    def from_file(cls, path: str | Path, capacity: int | None = None) -> ConvergenceCache:
        with open(path, encoding="utf-8") as fh:
            doc = json.load(fh)
        cache = cls(int(capacity if capacity is not None else doc.get("capacity", 1_000_000)))
        for row in doc.get("entries", []):
            if row[1] == "P":
                cache.insert(row[0], ReachesPalindrome(int(row[2]), int(row[3])))
            elif row[1] == "X":
                cache.insert(row[0], ExceedsBound(int(row[2])))
            else:
                raise ValueError(f"unknown cache entry tag {row[1]!r} in {path}")
        return cache
