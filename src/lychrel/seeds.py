# src/lychrel/seeds.py
from __future__ import annotations

import random
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

from gmpy2 import mpz

from lychrel.utility import InvalidConfiguration

# Seeds with famously long delays; used as fixed prefixes by the pattern mode.
KNOWN_DELAYED_SEEDS = (
    "12000700000025339936491",   # 288 iterations, 142-digit palindrome
    "1186060307891929990",       # 261 iterations
    "10911",                     # 55 iterations
    "187",                       # 23 iterations
    "89",                        # 24 iterations
)

# Above this many values per digit window, random mode stops tracking repeats.
RANDOM_TRACK_LIMIT = 10_000_000


class GeneratorMode(str, Enum):
    SEQUENTIAL = "sequential"
    RANDOM = "random"
    PATTERN = "pattern"

    @classmethod
    def parse(cls, value) -> GeneratorMode:
        if isinstance(value, cls):
            return value
        s = str(value).strip().lower().replace("-", "_")
        aliases = {"smart_random": "random", "smartrandom": "random", "pattern_based": "pattern", "patternbased": "pattern"}
        s = aliases.get(s, s)
        try:
            return cls(s)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise InvalidConfiguration(f"unknown generator mode '{value}' (choose from {choices})") from None


def is_redundant_seed(n) -> bool:
    """
    True when n need not be chained: reverse(n) < n and n is no palindrome.

    n and reverse(n) produce the same first sum, so the smaller of the pair
    covers both.
    """
    s = mpz(n).digits(10)
    r = s[::-1].lstrip("0") or "0"
    # compare as numbers: shorter digit string is smaller
    if len(r) != len(s):
        return True
    return r < s


@dataclass
class GeneratorStats:
    generated: int = 0
    skipped: int = 0

    @property
    def skip_rate(self) -> float:
        total = self.generated + self.skipped
        return self.skipped / total if total else 0.0


# --- Pattern templates ----------------------------------------------------------

@dataclass(frozen=True)
class _Template:
    name: str
    count: Callable[[int], int]
    build: Callable[[int, int], str]


def _block_template() -> _Template:
    # blocks 10..999 repeated and cut to the requested length
    def count(d: int) -> int:
        return 990

    def build(d: int, k: int) -> str:
        block = str(10 + k)
        reps = d // len(block) + 1
        return (block * reps)[:d]

    return _Template("repeat", count, build)


def _prefix_template(prefix: str, fill_limit: int) -> _Template:
    def count(d: int) -> int:
        free = d - len(prefix)
        if free < 0:
            return 0
        return min(10 ** free, fill_limit)

    def build(d: int, k: int) -> str:
        free = d - len(prefix)
        return prefix + (str(k).zfill(free) if free else "")

    return _Template(f"prefix:{prefix}", count, build)


def pattern_templates(fill_limit: int = 10_000) -> list[_Template]:
    return [_block_template()] + [_prefix_template(p, fill_limit) for p in KNOWN_DELAYED_SEEDS]


class SeedGenerator:
    """
    Candidate starting numbers for record hunting.

    next_candidate() returns raw candidates (None when exhausted); next() and
    iteration return only non-redundant seeds. state()/from_state() give a
    JSON-safe cursor for checkpoints.
    """

    def __init__(
        self,
        min_digits: int,
        mode: GeneratorMode | str = GeneratorMode.SEQUENTIAL,
        *,
        max_digits: int | None = None,
        random_seed: int | None = None,
        pattern_fill_limit: int = 10_000,
    ):
        if min_digits < 1:
            raise InvalidConfiguration("min_digits must be at least 1")
        if max_digits is not None and max_digits < min_digits:
            raise InvalidConfiguration(f"max_digits ({max_digits}) is below min_digits ({min_digits})")
        self.mode = GeneratorMode.parse(mode)
        self.min_digits = int(min_digits)
        self.max_digits = max_digits
        self.stats = GeneratorStats()

        # sequential cursor
        self.next_value = mpz(10) ** (self.min_digits - 1)
        self._end = mpz(10) ** max_digits if max_digits is not None else None

        # random cursor
        self.random_seed = random_seed if random_seed is not None else random.SystemRandom().randrange(2**63)
        self._rng = random.Random(self.random_seed)
        self.draws = 0
        self._seen: set[int] = set()
        hi_digits = max_digits if max_digits is not None else min_digits
        self._space = 10 ** hi_digits - 10 ** (min_digits - 1)
        self._track = self._space <= RANDOM_TRACK_LIMIT

        # pattern cursor
        self.pattern_fill_limit = int(pattern_fill_limit)
        self._templates = pattern_templates(self.pattern_fill_limit)
        self.pattern_digits = self.min_digits
        self.pattern_template = 0
        self.pattern_offset = 0

    # --- raw candidates ---------------------------------------------------

    def next_candidate(self) -> mpz | None:
        if self.mode is GeneratorMode.SEQUENTIAL:
            return self._next_sequential()
        if self.mode is GeneratorMode.RANDOM:
            return self._next_random()
        return self._next_pattern()

    def _next_sequential(self) -> mpz | None:
        if self._end is not None and self.next_value >= self._end:
            return None
        out = self.next_value
        self.next_value = out + 1
        return out

    def _next_random(self) -> mpz | None:
        hi_digits = self.max_digits if self.max_digits is not None else self.min_digits
        while True:
            if self._track and len(self._seen) >= self._space:
                return None
            d = self._rng.randint(self.min_digits, hi_digits)
            v = self._rng.randrange(10 ** (d - 1), 10 ** d)
            self.draws += 1
            if self._track:
                if v in self._seen:
                    continue
                self._seen.add(v)
            return mpz(v)

    def _next_pattern(self) -> mpz | None:
        while True:
            d = self.pattern_digits
            if self.max_digits is not None and d > self.max_digits:
                return None
            if self.pattern_template >= len(self._templates):
                self.pattern_digits += 1
                self.pattern_template = 0
                self.pattern_offset = 0
                continue
            tpl = self._templates[self.pattern_template]
            if self.pattern_offset >= tpl.count(d):
                self.pattern_template += 1
                self.pattern_offset = 0
                continue
            s = tpl.build(d, self.pattern_offset)
            self.pattern_offset += 1
            return mpz(s, 10)

    # --- filtered seeds ---------------------------------------------------

    def next(self, on_skip: Callable[[mpz], None] | None = None) -> mpz | None:
        """Next non-redundant seed; `on_skip(candidate)` sees every skipped one."""
        while True:
            c = self.next_candidate()
            if c is None:
                return None
            if is_redundant_seed(c):
                self.stats.skipped += 1
                if on_skip is not None:
                    on_skip(c)
                continue
            self.stats.generated += 1
            return c

    def __iter__(self) -> Iterator[mpz]:
        return self

    def __next__(self) -> mpz:
        c = self.next()
        if c is None:
            raise StopIteration
        return c

    # --- checkpoint cursor ------------------------------------------------

    def state(self) -> dict:
        st: dict = {
            "mode": self.mode.value,
            "min_digits": self.min_digits,
            "max_digits": self.max_digits,
        }
        if self.mode is GeneratorMode.SEQUENTIAL:
            st["next_value"] = str(self.next_value)
        elif self.mode is GeneratorMode.RANDOM:
            version, internal, gauss = self._rng.getstate()
            st["random_seed"] = self.random_seed
            st["rng_state"] = [version, list(internal), gauss]
            st["draws"] = self.draws
        else:
            st["pattern_fill_limit"] = self.pattern_fill_limit
            st["digits"] = self.pattern_digits
            st["template"] = self.pattern_template
            st["offset"] = self.pattern_offset
        return st

    @classmethod
    def from_state(cls, st: dict) -> SeedGenerator:
        try:
            gen = cls(
                int(st["min_digits"]),
                st["mode"],
                max_digits=None if st.get("max_digits") is None else int(st["max_digits"]),
                random_seed=st.get("random_seed"),
                pattern_fill_limit=int(st.get("pattern_fill_limit", 10_000)),
            )
            if gen.mode is GeneratorMode.SEQUENTIAL:
                nv = str(st["next_value"])
                if not nv.isdigit():
                    raise ValueError(f"next_value {nv!r} is not a decimal string")
                gen.next_value = mpz(nv, 10)
            elif gen.mode is GeneratorMode.RANDOM:
                version, internal, gauss = st["rng_state"]
                gen._rng.setstate((version, tuple(internal), gauss))
                gen.draws = int(st.get("draws", 0))
            else:
                gen.pattern_digits = int(st["digits"])
                gen.pattern_template = int(st["template"])
                gen.pattern_offset = int(st["offset"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"bad generator state: {e}") from None
        return gen
