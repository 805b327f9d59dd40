# src/lychrel/fmt.py
from __future__ import annotations

from gmpy2 import mpz

from lychrel.runtime import current


def abbr_digits(s: str, head: int = 10, tail: int = 10, threshold: int = 35, ellipsis: str = "…") -> str:
    """Abbreviate a long digit string as first<head>…last<tail>."""
    if len(s) <= threshold or head + tail >= len(s):
        return s
    return f"{s[:head]}{ellipsis}{s[-tail:]}"


def abbr_int(n) -> str:
    """Decimal form of n, abbreviated per the [DISPLAY] profile settings."""
    s = n if isinstance(n, str) else mpz(n).digits(10)
    disp = current().section("DISPLAY")
    if not disp.get("NUM_ABBR_ENABLED", True):
        return s
    return abbr_digits(
        s,
        head=int(disp.get("NUM_ABBR_HEAD", 10)),
        tail=int(disp.get("NUM_ABBR_TAIL", 10)),
        threshold=int(disp.get("NUM_ABBR_THRESHOLD", 35)),
        ellipsis=str(disp.get("ELLIPSIS", "…")),
    )


def format_duration(seconds: float) -> str:
    """ms if <1s; s with millis if <60s; else mm:ss.mmm (and hh:mm:ss.mmm if ≥1h)."""
    MAX_SECONDS = 60
    if seconds < 1:
        ms = round(seconds * 1000)
        return f"{ms} ms"
    if seconds < MAX_SECONDS:
        return f"{seconds:.3f} s"
    m, s = divmod(seconds, MAX_SECONDS)
    if m < MAX_SECONDS:
        return f"{int(m)}:{s:06.3f}"               # mm:ss.mmm
    h, m = divmod(int(m), MAX_SECONDS)
    return f"{h}:{m:02d}:{s:06.3f}"                # hh:mm:ss.mmm


def format_rate(count: int, seconds: float, unit: str = "/s") -> str:
    if seconds <= 0:
        return f"– {unit}"
    rate = count / seconds
    for factor, suffix in ((1e9, "G"), (1e6, "M"), (1e3, "k")):
        if rate >= factor:
            return f"{rate / factor:.1f}{suffix}{unit}"
    return f"{rate:.0f}{unit}"

