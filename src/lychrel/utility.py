# -----------------------------------------------------------------------------
#  Utility functions
# -----------------------------------------------------------------------------

from __future__ import annotations

from pathlib import Path

from gmpy2 import mpz


class UserInputError(Exception):
    pass


class InvalidConfiguration(UserInputError):
    """Contradictory or out-of-range settings, rejected before any work starts."""


class CorruptCheckpoint(UserInputError):
    """A checkpoint file exists but cannot be turned back into a valid state."""

    def __init__(self, path: str | Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"checkpoint {self.path.name} is unusable: {reason}")


def to_mpz(n) -> mpz:
    """
    Coerce int / mpz / decimal string to a non-negative mpz.
    Strings must be plain decimal digits (no sign, no underscores).
    """
    if isinstance(n, str):
        s = n.strip()
        if not s.isdigit():
            raise UserInputError(f"Invalid input: '{n}' is not a non-negative decimal integer.")
        return mpz(s, 10)
    if isinstance(n, bool):
        raise UserInputError(f"Invalid input: {n!r} is not an integer.")
    try:
        value = mpz(n)
    except (TypeError, ValueError):
        raise UserInputError(f"Invalid input: {n!r} is not an integer.") from None
    if value < 0:
        raise UserInputError(f"Invalid input: {n} is negative; only n >= 0 is supported.")
    return value


def dec_digits(n) -> int:
    """Exact decimal digit count for n >= 0 (mpz.num_digits may overshoot by one)."""
    n = mpz(n)
    if n == 0:
        return 1
    est = n.num_digits(10)
    # num_digits is exact or one too large
    if n < mpz(10) ** (est - 1):
        est -= 1
    return est


def typename(v: object) -> str:
    return type(v).__name__


def flatten_dotted(d: dict, prefix: str = "") -> dict[str, object]:
    out: dict[str, object] = {}
    for k, v in (d or {}).items():
        key = f"{prefix}.{k}" if prefix else str(k)
        if isinstance(v, dict):
            out.update(flatten_dotted(v, key))
        else:
            out[key] = v
    return out
