# src/lychrel/classify.py
from __future__ import annotations

from dataclasses import dataclass

from gmpy2 import mpz

from lychrel.engine import IterationState, iterate
from lychrel.utility import InvalidConfiguration, dec_digits


@dataclass(frozen=True)
class Classification:
    """Outcome of one bounded reverse-and-add run."""
    number: mpz
    max_iterations: int
    reached_palindrome: bool
    iterations: int
    final_value: mpz

    @property
    def already_palindrome(self) -> bool:
        return self.reached_palindrome and self.iterations == 0

    @property
    def lychrel_candidate(self) -> bool:
        return not self.reached_palindrome

    @property
    def final_digits(self) -> int:
        return dec_digits(self.final_value)

    @property
    def label(self) -> str:
        if self.already_palindrome:
            return "Already a palindrome"
        if self.reached_palindrome:
            return "Reaches a palindrome"
        return "Lychrel candidate"


def check_max_iterations(max_iter) -> int:
    if not isinstance(max_iter, int) or isinstance(max_iter, bool) or max_iter < 0:
        raise InvalidConfiguration(f"max_iterations must be a non-negative integer, got {max_iter!r}")
    return max_iter


def run_test(n, max_iter: int) -> Classification:
    """Classify n with at most max_iter reverse-and-add steps."""
    max_iter = check_max_iterations(max_iter)
    state = IterationState.begin(n, max_iter)
    reached = iterate(state)
    return Classification(
        number=state.start_value,
        max_iterations=max_iter,
        reached_palindrome=reached,
        iterations=state.iterations_done,
        final_value=state.current_value,
    )
