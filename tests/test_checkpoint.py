# tests/test_checkpoint.py
"""
Checkpoint store: atomic saves, strict loading, resume decisions.

Run: pytest -v
"""

from __future__ import annotations

import json
import logging

import pytest
from gmpy2 import mpz

from lychrel import checkpoint as ckpt
from lychrel.checkpoint import CheckpointRecord, CheckpointWriter, ResumeDecision, should_resume
from lychrel.utility import CorruptCheckpoint

# ---------- helpers -----------------------------------------------------------


def _verify_record(**kw) -> CheckpointRecord:
    base = dict(
        kind="verify",
        start_value=mpz(196),
        current_value=mpz(10) ** 50 + 7,
        iterations_done=1200,
        max_iterations=None,
        checkpoint_interval=100,
        params={"number": "196", "max_iterations": None},
        elapsed_s=3.25,
    )
    base.update(kw)
    return CheckpointRecord(**base)


# ---------- save / load --------------------------------------------------------

def test_round_trip(tmp_path):
    p = tmp_path / "v.json"
    rec = _verify_record()
    ckpt.save(rec, p)
    assert ckpt.exists(p)
    assert not (tmp_path / "v.json.tmp").exists()

    back = ckpt.load(p)
    assert back.kind == "verify"
    assert back.start_value == 196
    assert back.current_value == mpz(10) ** 50 + 7
    assert back.iterations_done == 1200
    assert back.max_iterations is None
    assert back.elapsed_s == pytest.approx(3.25)
    assert back.created_at == rec.created_at


def test_big_values_stored_as_strings(tmp_path):
    p = tmp_path / "v.json"
    ckpt.save(_verify_record(), p)
    raw = json.loads(p.read_text(encoding="utf-8"))
    assert raw["start_value"] == "196"
    assert raw["current_value"] == str(mpz(10) ** 50 + 7)
    assert raw["version"] == 1


def test_save_creates_parent_dirs(tmp_path):
    p = tmp_path / "a" / "b" / "v.json"
    ckpt.save(_verify_record(), p)
    assert p.is_file()


def test_missing_file_is_not_corrupt(tmp_path):
    with pytest.raises(FileNotFoundError):
        ckpt.load(tmp_path / "nope.json")


CORRUPT_CASES = [
    ("",                                    "empty"),
    ("{ \"version\": 1, \"kind\": ",        "invalid JSON"),
    ("[1, 2, 3]",                           "not a JSON object"),
    ('{"version": 2, "kind": "verify"}',   "schema version"),
    ('{"version": 1, "kind": "bake"}',     "unknown kind"),
]


@pytest.mark.parametrize("text, reason", CORRUPT_CASES)
def test_corrupt_files(tmp_path, text, reason):
    p = tmp_path / "bad.json"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(CorruptCheckpoint) as ei:
        ckpt.load(p)
    assert reason in ei.value.reason
    assert ei.value.path == p


@pytest.mark.parametrize("field, value", [
    ("current_value", "12x"),
    ("current_value", 12),
    ("iterations_done", -1),
    ("iterations_done", "5"),
    ("params", None),
    ("elapsed_s", "soon"),
])
def test_invalid_fields(tmp_path, field, value):
    p = tmp_path / "v.json"
    ckpt.save(_verify_record(), p)
    raw = json.loads(p.read_text(encoding="utf-8"))
    raw[field] = value
    p.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(CorruptCheckpoint):
        ckpt.load(p)


def test_hunt_record_needs_generator_state():
    raw = CheckpointRecord(kind="hunt", params={}).to_dict()
    with pytest.raises(CorruptCheckpoint):
        CheckpointRecord.from_dict(raw)


def test_delete_is_idempotent(tmp_path):
    p = tmp_path / "v.json"
    ckpt.save(_verify_record(), p)
    ckpt.delete(p)
    ckpt.delete(p)
    assert not ckpt.exists(p)


# ---------- writer -------------------------------------------------------------

def test_writer_cadence(tmp_path):
    w = CheckpointWriter(tmp_path / "v.json", interval=100)
    assert w.enabled
    assert not w.due(99)
    assert w.due(100)
    assert w.write(_verify_record(), count=100)
    assert not w.due(150)
    assert w.due(200)


def test_writer_disabled():
    assert not CheckpointWriter(None, 100).enabled
    assert not CheckpointWriter("x.json", 0).enabled
    with pytest.raises(ValueError):
        CheckpointWriter("x.json", -1)


def test_writer_failure_is_logged_not_raised(tmp_path, caplog):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory", encoding="utf-8")
    w = CheckpointWriter(blocker / "v.json", interval=10)
    with caplog.at_level(logging.WARNING, logger="lychrel"):
        assert w.write(_verify_record()) is False
        assert w.write(_verify_record()) is False
    assert w.failures == 2
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 2


# ---------- resume decision ------------------------------------------------------

def test_should_resume():
    rec = _verify_record()
    assert should_resume(None) is ResumeDecision.FRESH
    assert should_resume(None, True) is ResumeDecision.FRESH
    assert should_resume(rec) is ResumeDecision.RESUME
    assert should_resume(rec, True) is ResumeDecision.RESTART
    assert should_resume(rec, expected_kind="search") is ResumeDecision.CONFLICT
    assert should_resume(rec, expected_kind="verify",
                         expected_params={"number": "196"}) is ResumeDecision.RESUME
    assert should_resume(rec, expected_kind="verify",
                         expected_params={"number": "89"}) is ResumeDecision.CONFLICT
