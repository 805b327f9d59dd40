# src/lychrel/engine.py
"""
Reverse-and-add iteration engine.

All values are gmpy2 ``mpz``; plain ints are accepted and converted. Digit
access goes through ``mpz.digits(10)`` so numbers with hundreds of thousands
of digits never hit CPython's int/str conversion guard.

Convention: a start value that is already a palindrome is solved in 0
iterations. The palindrome test always runs on the current value before the
next step is taken, and the value reached after exactly ``max_iterations``
steps is still tested. ``run_test``, ``run_search``, ``run_verify`` and the
record hunter all share this convention through ``iterate``/``step``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from gmpy2 import mpz

from lychrel.utility import to_mpz


def reverse_digits(n) -> mpz:
    """Reverse the decimal digits of n; leading zeros vanish (120 -> 21)."""
    s = mpz(n).digits(10)
    return mpz(s[::-1], 10)


def is_palindrome(n) -> bool:
    s = mpz(n).digits(10)
    return s == s[::-1]


def step(value) -> tuple[mpz, bool]:
    """
    One reverse-add step.

    Returns (value + reverse_digits(value), is_palindrome(value)) with a single
    digit extraction. The flag describes the *input*, not the result.
    """
    value = mpz(value)
    s = value.digits(10)
    r = s[::-1]
    return value + mpz(r, 10), s == r


@dataclass
class IterationState:
    """
    Resumable unit of single-chain work.

    current_value is start_value after exactly iterations_done reverse-add
    steps; max_iterations=None means "run until a palindrome turns up".
    """
    start_value: mpz
    current_value: mpz
    iterations_done: int = 0
    max_iterations: int | None = None

    @classmethod
    def begin(cls, n, max_iterations: int | None = None) -> IterationState:
        v = to_mpz(n)
        return cls(start_value=v, current_value=v, iterations_done=0, max_iterations=max_iterations)

    @property
    def exhausted(self) -> bool:
        return self.max_iterations is not None and self.iterations_done >= self.max_iterations

    def advance(self, nxt: mpz | None = None) -> None:
        """Apply one step in place. `nxt` is the successor when the caller already has it."""
        if nxt is None:
            nxt, _ = step(self.current_value)
        # single statement: value and count never disagree, even under Ctrl+C
        self.current_value, self.iterations_done = nxt, self.iterations_done + 1


def iterate(
    state: IterationState,
    *,
    every: int = 0,
    hook: Callable[[IterationState], None] | None = None,
) -> bool:
    """
    Drive `state` until its current value is a palindrome (returns True) or
    the iteration bound is used up without one (returns False).

    `hook(state)` fires after every `every`-th completed iteration (0 = never);
    verify uses it for progress lines and checkpoints.
    """
    while True:
        nxt, pal = step(state.current_value)
        if pal:
            return True
        if state.exhausted:
            return False
        state.advance(nxt)
        if hook is not None and every and state.iterations_done % every == 0:
            hook(state)
