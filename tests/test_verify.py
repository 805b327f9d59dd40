# tests/test_verify.py
"""
Long-running verification with checkpoints and resume.

Run: pytest -v
"""

from __future__ import annotations

import pytest

from lychrel import checkpoint as ckpt
from lychrel.checkpoint import CheckpointConfig
from lychrel.resume import resume
from lychrel.utility import InvalidConfiguration, UserInputError
from lychrel.verify import ProgressConfig, VerifyOutcome, resume_verify, run_verify

# ---------- helpers -----------------------------------------------------------


def _interrupt_at(stop: int):
    def cb(state, elapsed, saved):
        if state.iterations_done >= stop:
            raise KeyboardInterrupt
    return ProgressConfig(interval=50, callback=cb)


# ---------- plain runs -----------------------------------------------------------

def test_196_thousand_iterations():
    out = run_verify(196, 1000)
    assert isinstance(out, VerifyOutcome)
    assert out.lychrel_candidate
    assert out.iterations == 1000
    assert not out.resumed


@pytest.mark.parametrize("n, iterations, final", [
    (1, 0, 1),
    (10, 1, 11),
    (89, 24, 8813200023188),
])
def test_reaches_palindrome(n, iterations, final):
    out = run_verify(n, 1000)
    assert out.reached_palindrome
    assert out.iterations == iterations
    assert out.final_value == final


def test_unbounded_until_palindrome():
    out = run_verify(89, None)
    assert out.reached_palindrome and out.iterations == 24 and out.max_iterations is None


def test_progress_callback_cadence():
    seen = []
    run_verify(196, 300, progress=ProgressConfig(100, lambda s, e, saved: seen.append((s.iterations_done, saved))))
    assert seen == [(100, False), (200, False), (300, False), (300, False)]


def test_rejects_bad_bound():
    with pytest.raises(InvalidConfiguration):
        run_verify(196, -5)


# ---------- checkpoints ----------------------------------------------------------

def test_checkpoint_deleted_on_completion(tmp_path):
    p = tmp_path / "v.json"
    out = run_verify(196, 300, checkpoint=CheckpointConfig(path=p, interval=100))
    assert out.iterations == 300
    assert not ckpt.exists(p)


def test_interrupt_then_resume_matches_uninterrupted(tmp_path):
    p = tmp_path / "v.json"
    with pytest.raises(KeyboardInterrupt):
        run_verify(196, 500, progress=_interrupt_at(250), checkpoint=CheckpointConfig(path=p, interval=100))
    rec = ckpt.load(p)
    assert rec.kind == "verify"
    assert rec.iterations_done == 250
    assert rec.start_value == 196

    resumed = resume_verify(rec, path=p)
    straight = run_verify(196, 500)
    assert resumed.resumed
    assert resumed.iterations == straight.iterations == 500
    assert resumed.final_value == straight.final_value
    assert resumed.elapsed_s >= rec.elapsed_s
    assert not ckpt.exists(p)


def test_matching_checkpoint_is_resumed_automatically(tmp_path):
    p = tmp_path / "v.json"
    cfg = CheckpointConfig(path=p, interval=100)
    with pytest.raises(KeyboardInterrupt):
        run_verify(196, 400, progress=_interrupt_at(200), checkpoint=cfg)
    out = run_verify(196, 400, checkpoint=cfg)
    assert out.resumed and out.iterations == 400


def test_conflicting_checkpoint(tmp_path):
    p = tmp_path / "v.json"
    cfg = CheckpointConfig(path=p, interval=100)
    with pytest.raises(KeyboardInterrupt):
        run_verify(196, 400, progress=_interrupt_at(200), checkpoint=cfg)

    with pytest.raises(UserInputError):
        run_verify(89, 400, checkpoint=cfg)

    cfg.force_restart = True
    out = run_verify(89, 400, checkpoint=cfg)
    assert not out.resumed and out.iterations == 24


def test_force_restart_ignores_corrupt_file(tmp_path):
    p = tmp_path / "v.json"
    p.write_text("{ truncated", encoding="utf-8")
    out = run_verify(10, 10, checkpoint=CheckpointConfig(path=p, interval=5, force_restart=True))
    assert out.iterations == 1


def test_resume_dispatch(tmp_path):
    p = tmp_path / "v.json"
    with pytest.raises(KeyboardInterrupt):
        run_verify(196, 300, progress=_interrupt_at(150), checkpoint=CheckpointConfig(path=p, interval=50))
    out = resume(p)
    assert isinstance(out, VerifyOutcome)
    assert out.iterations == 300 and out.resumed


def test_resume_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        resume(tmp_path / "none.json")
