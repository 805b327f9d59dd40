# src/lychrel/progress.py
from __future__ import annotations

import sys
import time

from lychrel.fmt import format_duration

BAR_LEN = 24
THROTTLE = 0.1


class Progress:
    """
    One-line range progress: spinner, bar, count, rate and ETA.

    Instances are callable as `(tested, total)` so they plug straight into
    run_search(progress=...). Redraws are throttled; the final count always
    draws.
    """

    def __init__(self, total: int, *, enabled: bool = True, stream=None):
        self.total = max(1, int(total))
        self.enabled = enabled
        self.stream = stream or sys.stdout
        self.t0 = time.perf_counter()
        self._last = 0.0
        self._tick = 0
        self._drawn = False

    def __call__(self, done: int, total: int | None = None) -> None:
        if total is not None:
            self.total = max(1, int(total))
        self.update(done)

    def update(self, done: int) -> None:
        if not self.enabled:
            return
        now = time.perf_counter()
        if now - self._last < THROTTLE and done < self.total:
            return
        self._last = now
        self._tick += 1
        self.stream.write("\r" + self._line(done, now - self.t0))
        self.stream.flush()
        self._drawn = True

    def _line(self, done: int, elapsed: float) -> str:
        frac = min(max(done / self.total, 0.0), 1.0)
        fill = int(frac * BAR_LEN)
        spin = "|/-\\"[self._tick % 4]
        eta = ""
        if 0 < done < self.total and elapsed > 0:
            eta = f"  eta {format_duration((self.total - done) * elapsed / done)}"
        return (f"[{spin}] [{'#' * fill}{'-' * (BAR_LEN - fill)}] {int(frac * 100):3d}%  "
                f"{done:,}/{self.total:,}{eta}")

    def done(self) -> None:
        if not (self.enabled and self._drawn):
            return
        self.stream.write("\r" + " " * 80 + "\r")
        self.stream.flush()
        self._drawn = False
