# src/lychrel/cli.py

"""
Lychrel - reverse-and-add search, verification and record hunting

Description:
    Tests numbers under the "196 algorithm" (add a number to its digit
    reversal until a palindrome appears), searches ranges for Lychrel
    candidates, verifies single numbers over millions of iterations with
    resumable checkpoints, and hunts for record-delay palindromes.

usage: see lychrel -h
"""

from __future__ import annotations

import argparse
import faulthandler
import logging
import os
import platform
import sys
import textwrap
import traceback
from importlib.resources import files as pkg_files
from pathlib import Path

from colorama import Fore, Style
from colorama import init as colorama_init

from lychrel import __version__ as _ver
from lychrel import checkpoint as ckpt
from lychrel.checkpoint import CheckpointConfig, ResumeDecision, should_resume
from lychrel.classify import run_test
from lychrel.dataio import export_search_results
from lychrel.display import (
    print_checkpoint_info,
    print_classification,
    print_hunt_stats,
    print_hunt_summary,
    print_profiles_with_descriptions,
    print_record_found,
    print_search_summary,
    print_verify_outcome,
    print_verify_progress,
)
from lychrel.hunt import HuntSummary, RecordHunter
from lychrel.progress import Progress
from lychrel.resume import resume
from lychrel.runtime import APPLY, ensure_runtime_deps
from lychrel.runtime import current as _rt_current
from lychrel.search import SearchSummary, run_search
from lychrel.utility import CorruptCheckpoint, UserInputError, flatten_dotted, to_mpz, typename
from lychrel.verify import ProgressConfig, VerifyOutcome, run_verify
from lychrel.workspace import checkpoints_dir, ensure_workspace_seeded, seed_workspace, workspace_dir

DEFAULT_MAX_ITER = 10_000
VERIFY_MAX_ITER = 1_000_000

# hunt options whose checkpoint must match before it is resumed
_HUNT_IDENTITY = ("min_digits", "max_digits", "target_iterations", "max_iterations",
                  "target_final_digits", "generator_mode")


# ---- logging ----------------------------------------------------------------------

class _ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: Style.DIM,
        logging.INFO: Fore.CYAN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        return f"{self.COLORS.get(record.levelno, '')}{msg}{Style.RESET_ALL}"


def _setup_logging(debug: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ColorFormatter("[%(levelname)s] %(name)s: %(message)s"))
    logger = logging.getLogger("lychrel")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.propagate = False


def _install_loud_error_handlers(debug: bool) -> None:
    if not debug:
        return
    # Always show full Python tracebacks
    faulthandler.enable()

    def _excepthook(exc_type, exc, tb):
        sys.stderr.write("\n[UNCAUGHT EXCEPTION]\n")
        traceback.print_exception(exc_type, exc, tb, file=sys.stderr)
        sys.stderr.flush()
    sys.excepthook = _excepthook


def _print_user_error(msg: str) -> None:
    """Uniform, one-line friendly error."""
    prefix = f"{Fore.RED}Error:{Style.RESET_ALL}"
    if not (msg.startswith("Invalid input:") or msg.startswith("Error:")):
        msg = f"{prefix} {msg}"
    print(msg, file=sys.stderr)


# ---- interactive checkpoint handling -------------------------------------------------

def _ask(question: str, *, default: bool, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        return default
    hint = "[Y/n]" if default else "[y/N]"
    try:
        ans = input(f"{question} {hint} ").strip().lower()
    except EOFError:
        return default
    if not ans:
        return default
    return ans in {"y", "yes"}


def _resolve_existing(
    path: Path | None,
    kind: str,
    expected_params: dict,
    args,
) -> tuple[bool, ckpt.CheckpointRecord | None]:
    """
    Look at the checkpoint already sitting at `path` and settle what to do.

    Returns (force_restart, record_to_resume). Raises UserInputError when the
    user declines to discard a conflicting or corrupt checkpoint.
    """
    if path is None or not ckpt.exists(path):
        return False, None
    if args.restart:
        return True, None

    try:
        existing = ckpt.load(path)
    except CorruptCheckpoint as e:
        print(f"{Fore.YELLOW}Warning:{Style.RESET_ALL} {e}", file=sys.stderr)
        if _ask("Discard it and start over?", default=False, assume_yes=args.yes):
            return True, None
        raise UserInputError(f"left {path} untouched; fix or remove it, or pass --restart.") from None

    decision = should_resume(existing, False, expected_kind=kind, expected_params=expected_params)
    print_checkpoint_info(existing, path)
    if decision is ResumeDecision.CONFLICT:
        print(f"{Fore.YELLOW}It belongs to a different {existing.kind} run.{Style.RESET_ALL}", file=sys.stderr)
        if _ask("Discard it and start over?", default=False, assume_yes=args.yes):
            return True, None
        raise UserInputError(f"left {path} untouched; use 'lychrel resume {path}' or pass --restart.")
    if _ask("Resume from this checkpoint?", default=True, assume_yes=args.yes):
        return False, existing
    return True, None


def _note_interrupt(path: Path | None) -> None:
    if path is not None and ckpt.exists(path):
        print(f"\n{Fore.YELLOW}Progress saved to {path}{Style.RESET_ALL}", file=sys.stderr)
        print(f"Continue with: lychrel resume {path}", file=sys.stderr)


# ---- command handlers --------------------------------------------------------------

def _cmd_test(args) -> int:
    c = run_test(args.number, args.max_iter)
    print_classification(c)
    return 0


def _cmd_search(args) -> int:
    parallel = not args.sequential
    interval = args.checkpoint_interval or 0
    if args.checkpoint and not interval:
        interval = 10_000
    cfg = CheckpointConfig(path=args.checkpoint, interval=interval)
    path = cfg.resolve("search")

    if not parallel and path is not None:
        params = {"start": to_mpz(args.start).digits(10), "end": to_mpz(args.end).digits(10),
                  "max_iterations": args.max_iter}
        cfg.force_restart, _ = _resolve_existing(path, "search", params, args)

    bar = Progress(1, enabled=not args.quiet)
    try:
        summary = run_search(args.start, args.end, args.max_iter, parallel=parallel,
                             checkpoint=cfg, workers=args.workers, progress=bar)
    except KeyboardInterrupt:
        bar.done()
        _note_interrupt(path if not parallel else None)
        raise
    bar.done()
    _finish_search(summary, args)
    return 0


def _finish_search(summary: SearchSummary, args) -> None:
    if not args.quiet:
        print_search_summary(summary)
    if args.output:
        out = export_search_results(summary, args.output)
        print(f"Results written to {out}")


def _cmd_verify(args) -> int:
    max_iter = None if args.unbounded else args.max_iter
    cfg = CheckpointConfig(path=args.checkpoint, interval=args.checkpoint_interval)
    path = cfg.resolve("verify")
    params = {"number": to_mpz(args.number).digits(10), "max_iterations": max_iter}
    cfg.force_restart, _ = _resolve_existing(path, "verify", params, args)

    progress = ProgressConfig(
        interval=args.progress_interval,
        callback=None if args.quiet else print_verify_progress,
    )
    try:
        outcome = run_verify(args.number, max_iter, progress=progress, checkpoint=cfg)
    except KeyboardInterrupt:
        _note_interrupt(path)
        raise
    print_verify_outcome(outcome)
    return 0


def _hunt_hooks(args) -> dict:
    return {
        "on_stats": None if args.quiet else print_hunt_stats,
        "on_record": print_record_found,
    }


def _hunt_overrides(args) -> dict:
    names = ("min_digits", "max_digits", "target_iterations", "max_iterations", "target_final_digits",
             "cache_capacity", "generator_mode", "random_seed", "pattern_fill_limit",
             "checkpoint_interval", "checkpoint_path", "warmup", "warmup_limit", "max_seeds",
             "stats_interval", "save_records")
    return {k: getattr(args, k, None) for k in names}


def _cmd_hunt(args) -> int:
    from lychrel.config import hunt_config_from

    config = hunt_config_from(_rt_current().settings, _hunt_overrides(args))
    path = config.resolved_checkpoint_path()
    params = {k: getattr(config, k) for k in _HUNT_IDENTITY}
    force_restart, existing = _resolve_existing(path, "hunt", params, args)

    if existing is not None:
        keep = {k: v for k, v in _hunt_overrides(args).items()
                if k not in _HUNT_IDENTITY and v is not None}
        keep["checkpoint_path"] = str(path)
        hunter = RecordHunter.from_checkpoint(existing, **keep, **_hunt_hooks(args))
    else:
        if force_restart:
            ckpt.delete(path)
        hunter = RecordHunter(config, **_hunt_hooks(args))

    try:
        summary = hunter.run()
    except KeyboardInterrupt:
        _note_interrupt(path)
        raise
    print_hunt_summary(summary)
    return 0


def _default_resume_path() -> Path:
    found = sorted(checkpoints_dir().glob("*_checkpoint.json")) if checkpoints_dir().exists() else []
    if not found:
        raise UserInputError(f"no checkpoints in {checkpoints_dir()}; pass a checkpoint file.")
    if len(found) > 1:
        names = ", ".join(p.name for p in found)
        raise UserInputError(f"several checkpoints found ({names}); pass the one to resume.")
    return found[0]


def _cmd_resume(args) -> int:
    path = Path(args.path).expanduser() if args.path else _default_resume_path()
    if not path.exists():
        raise UserInputError(f"checkpoint {path} does not exist.")
    record = ckpt.load(path)
    print_checkpoint_info(record, path)

    if record.kind == "verify":
        progress = ProgressConfig(
            interval=int(record.params.get("progress_interval") or 10_000),
            callback=None if args.quiet else print_verify_progress,
        )
    elif record.kind == "search":
        progress = Progress(1, enabled=not args.quiet)
    else:
        progress = None

    hunt_kw = {}
    if record.kind == "hunt":
        hunt_kw = _hunt_hooks(args)
        if args.max_seeds is not None:
            hunt_kw["max_seeds"] = args.max_seeds

    try:
        result = resume(path, interval=args.checkpoint_interval, progress=progress, **hunt_kw)
    except KeyboardInterrupt:
        if isinstance(progress, Progress):
            progress.done()
        _note_interrupt(path)
        raise

    if isinstance(result, VerifyOutcome):
        print_verify_outcome(result)
    elif isinstance(result, SearchSummary):
        progress.done()
        _finish_search(result, args)
    elif isinstance(result, HuntSummary):
        print_hunt_summary(result)
    return 0


def _cmd_init(args) -> int:
    if args.overwrite:
        if os.environ.get("LYCHREL_DEV") != "1":
            print("Refusing to overwrite: set LYCHREL_DEV=1 to enable developer overwrite.")
            return 2
        ws, copied = seed_workspace(overwrite=True)
        print(f"Workspace ready at: {ws} (overwrote existing files)")
    else:
        ws, copied = seed_workspace(overwrite=False)
        print(f"Workspace ready at: {ws}")
    print(f"Copied -> profiles: {copied}")
    return 0


def _cmd_where(args) -> int:
    print(f"Workspace: {workspace_dir()}")
    print(f"Package:   {pkg_files('lychrel').joinpath('..').resolve()}")
    return 0


def _cmd_profiles(args) -> int:
    print_profiles_with_descriptions()
    return 0


# ---- argparse ----------------------------------------------------------------------

def _add_checkpoint_opts(p: argparse.ArgumentParser, *, interval_default: int | None) -> None:
    p.add_argument("--checkpoint", default=None, metavar="FILE",
                   help="checkpoint file (default: <workspace>/checkpoints/<kind>_checkpoint.json)")
    p.add_argument("--checkpoint-interval", type=int, default=interval_default, metavar="N",
                   help="save a checkpoint every N units of work (0 = never)")
    p.add_argument("--restart", action="store_true", help="discard an existing checkpoint and start over")
    p.add_argument("-y", "--yes", action="store_true", help="answer yes to resume/discard questions")


def _build_parser() -> argparse.ArgumentParser:

    epilog = textwrap.dedent("""\
    examples:
      lychrel test 89
      lychrel search 1 100000 --max-iter 500 --output results.json
      lychrel verify 196 --max-iter 1000000 --checkpoint-interval 100000
      lychrel resume
      lychrel hunt --min-digits 23 --generator-mode pattern

    Press Ctrl+C to stop a long run; a checkpoint is written first where one
    is configured.
    """)

    p = argparse.ArgumentParser(
        prog="lychrel",
        description="Reverse-and-add (196 algorithm) search, verification and record hunting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {_ver}")
    p.add_argument("--profile", default=None, help="profile name or path to a .toml file (default: 'default')")
    p.add_argument("--quiet", action="store_true", help="Suppress live progress and periodic statistics")
    p.add_argument("--debug", action="store_true", help="Show debug logging and full tracebacks")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    t = sub.add_parser("test", help="test one number")
    t.add_argument("number")
    t.add_argument("-m", "--max-iter", type=int, default=DEFAULT_MAX_ITER)
    t.set_defaults(func=_cmd_test)

    s = sub.add_parser("search", help="classify every number in a range")
    s.add_argument("start")
    s.add_argument("end")
    s.add_argument("-m", "--max-iter", type=int, default=DEFAULT_MAX_ITER)
    s.add_argument("--sequential", action="store_true", help="single process (required for checkpoints)")
    s.add_argument("--workers", type=int, default=None, help="worker processes (default: CPU count)")
    s.add_argument("-o", "--output", default=None, help="write results as JSON")
    _add_checkpoint_opts(s, interval_default=None)
    s.set_defaults(func=_cmd_search)

    v = sub.add_parser("verify", help="iterate one number for a long time, with checkpoints")
    v.add_argument("number")
    v.add_argument("-m", "--max-iter", type=int, default=VERIFY_MAX_ITER)
    v.add_argument("--unbounded", action="store_true", help="no iteration bound; stop with Ctrl+C")
    v.add_argument("--progress-interval", type=int, default=10_000, metavar="N")
    _add_checkpoint_opts(v, interval_default=100_000)
    v.set_defaults(func=_cmd_verify)

    r = sub.add_parser("resume", help="continue the run stored in a checkpoint")
    r.add_argument("path", nargs="?", default=None)
    r.add_argument("--checkpoint-interval", type=int, default=None, metavar="N")
    r.add_argument("--max-seeds", type=int, default=None, help="hunt only: new total seed limit")
    r.add_argument("-o", "--output", default=None, help="search only: write results as JSON")
    r.set_defaults(func=_cmd_resume)

    h = sub.add_parser("hunt", help="hunt for record-delay palindromes")
    h.add_argument("--min-digits", type=int, default=None)
    h.add_argument("--max-digits", type=int, default=None)
    h.add_argument("--target-iterations", type=int, default=None)
    h.add_argument("--max-iterations", type=int, default=None)
    h.add_argument("--target-final-digits", type=int, default=None)
    h.add_argument("--cache-capacity", type=int, default=None)
    h.add_argument("--generator-mode", default=None, choices=["sequential", "random", "pattern"])
    h.add_argument("--random-seed", type=int, default=None)
    h.add_argument("--pattern-fill-limit", type=int, default=None)
    h.add_argument("--warmup", action=argparse.BooleanOptionalAction, default=None,
                   help="pre-populate the cache over 1..warmup-limit")
    h.add_argument("--warmup-limit", type=int, default=None)
    h.add_argument("--max-seeds", type=int, default=None)
    h.add_argument("--stats-interval", type=int, default=None)
    h.add_argument("--save-records", action=argparse.BooleanOptionalAction, default=None)
    h.add_argument("--checkpoint", dest="checkpoint_path", default=None, metavar="FILE")
    h.add_argument("--checkpoint-interval", type=int, default=None, metavar="N")
    h.add_argument("--restart", action="store_true", help="discard an existing checkpoint and start over")
    h.add_argument("-y", "--yes", action="store_true", help="answer yes to resume/discard questions")
    h.set_defaults(func=_cmd_hunt)

    i = sub.add_parser("init", help="create the workspace and copy sample profiles")
    i.add_argument("--overwrite", action="store_true", help="developer use; requires LYCHREL_DEV=1")
    i.set_defaults(func=_cmd_init)

    w = sub.add_parser("where", help="show workspace and package paths")
    w.set_defaults(func=_cmd_where)

    pr = sub.add_parser("profiles", help="list available profiles")
    pr.set_defaults(func=_cmd_profiles)

    return p


def main(argv=None) -> int:
    """Thin wrapper: catch friendly errors, hide tracebacks unless debug."""
    try:
        return _main_impl(argv)
    except UserInputError as e:
        _print_user_error(str(e))
        return 2
    except KeyboardInterrupt:
        print("Aborted by user.", file=sys.stderr)
        return 130
    except Exception as e:
        debug = ("--debug" in (argv or sys.argv))
        if debug:
            raise
        print(f"Unexpected error: {e.__class__.__name__}: {e}", file=sys.stderr)
        print("Run with --debug for a full traceback.", file=sys.stderr)
        return 1


def _configure_text_streams() -> None:
    if os.environ.get("PYTHONIOENCODING"):
        return
    try:
        # Only touch redirected output (pipes/files), leave TTY as-is
        if not sys.stdout.isatty():
            enc = (sys.stdout.encoding or "").lower()
            if platform.system() == "Windows" or enc in ("", "ascii", "us-ascii"):
                sys.stdout.reconfigure(encoding="utf-8", errors="replace")
                sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        # never crash because of reconfigure
        pass


def _apply_profile(args) -> None:
    from lychrel.config import has_profile, load_settings

    name = args.profile or "default"
    if args.profile is None and not has_profile(name):
        return
    selected = load_settings(name)
    APPLY(selected)
    if args.debug:
        print(f"[debug] active profile: {selected.name}", file=sys.stderr)
        if selected._source:
            print(f"[debug] profile file: {selected._source}", file=sys.stderr)
        flat = flatten_dotted(selected.as_dict())
        for k in sorted(flat.keys(), key=str.lower):
            v = flat[k]
            print(f"        {k:.<40} {v!r} ({typename(v)})", file=sys.stderr)


def _main_impl(argv=None) -> int:
    colorama_init(autoreset=True)
    _configure_text_streams()

    parser = _build_parser()
    args = parser.parse_args(argv)
    rt = _rt_current()
    rt.debug = bool(args.debug)
    _setup_logging(args.debug)
    _install_loud_error_handlers(args.debug)

    if not ensure_runtime_deps(strict=True):
        return 1

    # first-run workspace seed, silently
    ensure_workspace_seeded()
    _apply_profile(args)
    if rt.debug:
        logging.getLogger("lychrel").setLevel(logging.DEBUG)

    return int(args.func(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
