# src/lychrel/display.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from colorama import Fore, Style

from lychrel.config import list_profiles_with_descriptions
from lychrel.fmt import abbr_int, format_duration, format_rate
from lychrel.runtime import CFG

if TYPE_CHECKING:
    from lychrel.checkpoint import CheckpointRecord
    from lychrel.classify import Classification
    from lychrel.engine import IterationState
    from lychrel.hunt import ChainKind, HuntSummary, RecordCandidate, RecordHunter
    from lychrel.search import SearchSummary
    from lychrel.verify import VerifyOutcome

ALIGN_WIDTH = 22


def _row(label: str, value: str) -> str:
    return f"  {label + ':':<{ALIGN_WIDTH}}{value}"


def _header(title: str) -> None:
    print(f"\n{Fore.CYAN + Style.BRIGHT}{title}{Style.RESET_ALL}")


def _verdict(reached: bool, iterations: int) -> str:
    if reached and iterations == 0:
        return f"{Fore.GREEN}{Style.BRIGHT}already a palindrome{Style.RESET_ALL}"
    if reached:
        return f"{Fore.GREEN}{Style.BRIGHT}palindrome after {iterations} iteration(s){Style.RESET_ALL}"
    return (f"{Fore.YELLOW}{Style.BRIGHT}no palindrome within {iterations} iterations "
            f"(Lychrel candidate){Style.RESET_ALL}")


# --- test ----------------------------------------------------------------------

def print_classification(c: Classification) -> None:
    _header("Reverse-and-add test:")
    print(_row("Number", f"{Fore.YELLOW}{Style.BRIGHT}{abbr_int(c.number)}{Style.RESET_ALL}"))
    print(_row("Result", _verdict(c.reached_palindrome, c.iterations)))
    if c.reached_palindrome:
        print(_row("Palindrome", f"{abbr_int(c.final_value)} {Style.DIM}({c.final_digits} digits){Style.RESET_ALL}"))
    else:
        print(_row("Last value", f"{abbr_int(c.final_value)} {Style.DIM}({c.final_digits} digits){Style.RESET_ALL}"))


# --- verify --------------------------------------------------------------------

def print_verify_progress(state: IterationState, elapsed: float, saved: bool) -> None:
    digits = len(state.current_value.digits(10))
    mark = f" {Fore.GREEN}✓ checkpoint{Style.RESET_ALL}" if saved else ""
    bound = f"/{state.max_iterations:,}" if state.max_iterations is not None else ""
    print(f"  iteration {state.iterations_done:,}{bound}  {digits:,} digits  "
          f"{format_rate(state.iterations_done, elapsed, ' it/s')}  {format_duration(elapsed)}{mark}")


def print_verify_outcome(o: VerifyOutcome) -> None:
    _header("Verification:")
    print(_row("Number", f"{Fore.YELLOW}{Style.BRIGHT}{abbr_int(o.start_value)}{Style.RESET_ALL}"))
    if o.resumed:
        print(_row("Resumed", "yes (from checkpoint)"))
    print(_row("Result", _verdict(o.reached_palindrome, o.iterations)))
    print(_row("Final value", f"{abbr_int(o.final_value)} {Style.DIM}({o.final_digits:,} digits){Style.RESET_ALL}"))
    print(_row("Elapsed", format_duration(o.elapsed_s)))
    if o.checkpoint_failures:
        print(_row("Checkpoint errors", f"{Fore.RED}{o.checkpoint_failures}{Style.RESET_ALL}"))


# --- search --------------------------------------------------------------------

def print_search_summary(s: SearchSummary, *, show_candidates: int | None = None) -> None:
    limit = int(CFG("DISPLAY.MAX_CANDIDATES_SHOWN", 20)) if show_candidates is None else show_candidates
    _header("Range search:")
    print(_row("Range", f"{abbr_int(s.start)} .. {abbr_int(s.end)}"))
    print(_row("Max iterations", f"{s.max_iterations:,}"))
    print(_row("Tested", f"{s.tested:,}"))
    print(_row("Reach palindrome", f"{s.palindromes_found:,}"))
    print(_row("Already palindromes", f"{s.already_palindromes:,}"))
    n_cand = len(s.lychrel_candidates)
    colour = Fore.YELLOW if n_cand else Fore.GREEN
    print(_row("Lychrel candidates", f"{colour}{Style.BRIGHT}{n_cand:,}{Style.RESET_ALL}"))
    if s.most_delayed is not None:
        print(_row("Most delayed", f"{abbr_int(s.most_delayed)} ({s.most_delayed_iterations} iterations)"))
    print(_row("Elapsed", f"{format_duration(s.elapsed_s)} {Style.DIM}"
                          f"({format_rate(s.tested, s.elapsed_s)}){Style.RESET_ALL}"))
    if n_cand and limit:
        shown = s.lychrel_candidates[:limit]
        more = f" {Style.DIM}… (+{n_cand - len(shown)} more){Style.RESET_ALL}" if n_cand > len(shown) else ""
        print(_row("Candidates", ", ".join(abbr_int(x) for x in shown) + more))


# --- hunt ------------------------------------------------------------------------

def print_hunt_stats(hunter: RecordHunter) -> None:
    st = hunter.stats
    print(
        f"{Fore.CYAN}[hunt]{Style.RESET_ALL} tested {st.numbers_tested:,} | seeds {st.seeds_tested:,} | "
        f"cache {st.cache_hit_rate * 100:.1f}% hit | {format_rate(st.numbers_tested, st.elapsed_s)} | "
        f"best {st.best_iterations} iter ({st.best_final_digits} digits) | skip {st.skip_rate * 100:.1f}%"
    )


def print_record_found(cand: RecordCandidate, kind: ChainKind) -> None:
    if kind.value == "record":
        print(f"\n{Fore.MAGENTA}{Style.BRIGHT}RECORD PALINDROME FOUND{Style.RESET_ALL}")
    else:
        print(f"\n{Fore.YELLOW}Long-delay candidate{Style.RESET_ALL}")
    print(_row("Number", cand.number))
    print(_row("Iterations", str(cand.iterations)))
    print(_row("Final digits", str(cand.final_digits)))
    print(_row("Found at", cand.found_at))


def print_hunt_summary(h: HuntSummary) -> None:
    st = h.statistics
    title = "Hunt complete:" if h.completed else "Hunt stopped (max seeds reached):"
    _header(title)
    print(_row("Numbers tested", f"{st.numbers_tested:,}"))
    print(_row("Seeds tested", f"{st.seeds_tested:,} {Style.DIM}(skip rate {st.skip_rate * 100:.1f}%){Style.RESET_ALL}"))
    print(_row("Quick / Lychrel", f"{st.quick_found:,} / {st.lychrel_found:,}"))
    print(_row("Candidates", f"{st.candidates_found:,}"))
    colour = Fore.MAGENTA if st.records_found else Fore.WHITE
    print(_row("Records", f"{colour}{Style.BRIGHT}{st.records_found:,}{Style.RESET_ALL}"))
    if st.best_number is not None:
        print(_row("Best", f"{st.best_number} ({st.best_iterations} iterations, "
                           f"{st.best_final_digits} digits)"))
    print(_row("Cache", f"{h.cache.entries:,}/{h.cache.capacity:,} entries, "
                        f"{h.cache.hit_rate * 100:.1f}% hit, {h.cache.evictions:,} evicted"))
    print(_row("Elapsed", format_duration(st.elapsed_s)))
    if h.checkpoint_path is not None:
        print(_row("Checkpoint", str(h.checkpoint_path)))
    if h.checkpoint_failures:
        print(_row("Checkpoint errors", f"{Fore.RED}{h.checkpoint_failures}{Style.RESET_ALL}"))


# --- checkpoints / profiles ---------------------------------------------------------

def print_checkpoint_info(record: CheckpointRecord, path: str | Path) -> None:
    print(f"{Fore.YELLOW}Found {record.kind} checkpoint:{Style.RESET_ALL} {path}", file=sys.stderr)
    if record.start_value is not None:
        print(_row("Start", abbr_int(record.start_value)), file=sys.stderr)
    print(_row("Progress", f"{record.iterations_done:,}"), file=sys.stderr)
    print(_row("Elapsed", format_duration(record.elapsed_s)), file=sys.stderr)
    print(_row("Last saved", record.updated_at), file=sys.stderr)


def print_profiles_with_descriptions() -> None:
    try:
        pairs = list_profiles_with_descriptions()
    except Exception:
        pairs = []

    if not pairs:
        print("\nAvailable profiles: (none)")
        return

    lines = [f"{name:13} — {desc}" for name, desc in pairs]
    print("\nAvailable profiles:\n  " + "\n  ".join(lines))
