# tests/test_hunt.py
"""
Record hunt orchestration: classification buckets, statistics,
checkpoint / resume and record files.

Run: pytest -v
"""

from __future__ import annotations

import json

import pytest

from lychrel import checkpoint as ckpt
from lychrel import hunt
from lychrel.cache import ConvergenceCache
from lychrel.hunt import (
    ChainKind,
    HuntConfig,
    HuntStatistics,
    RecordHunter,
    classify_chain,
    run_chain,
    run_hunt,
)
from lychrel.resume import resume
from lychrel.utility import CorruptCheckpoint, InvalidConfiguration

# ---------- helpers -----------------------------------------------------------


def _two_digit_config(tmp_path, **kw) -> HuntConfig:
    base = dict(
        min_digits=2,
        max_digits=2,
        target_iterations=20,
        max_iterations=30,
        target_final_digits=13,
        checkpoint_interval=0,
        checkpoint_path=str(tmp_path / "hunt.json"),
        stats_interval=0,
        save_records=False,
    )
    base.update(kw)
    return HuntConfig(**base)


# ---------- config -------------------------------------------------------------

def test_defaults_validate():
    cfg = HuntConfig().validate()
    assert cfg.min_digits == 23
    assert (cfg.target_iterations, cfg.max_iterations, cfg.target_final_digits) == (289, 300, 142)


@pytest.mark.parametrize("kw", [
    {"target_iterations": 301},
    {"min_digits": 0},
    {"min_digits": 5, "max_digits": 4},
    {"checkpoint_interval": -1},
    {"cache_capacity": -5},
    {"generator_mode": "zigzag"},
    {"max_iterations": "300"},
    {"warmup": "yes"},
    {"max_seeds": -1},
])
def test_invalid_configs(kw):
    with pytest.raises(InvalidConfiguration):
        HuntConfig(**kw).validate()


def test_checkpoint_path_defaults_to_workspace(workspace):
    cfg = HuntConfig().validate()
    assert cfg.resolved_checkpoint_path() == workspace.resolve() / "checkpoints" / "hunt_checkpoint.json"
    assert HuntConfig(checkpoint_interval=0).resolved_checkpoint_path() is None


# ---------- classification -----------------------------------------------------

CLASSIFY_CASES = [
    # seed,   target, max, final digits, expected
    (89,      20,     30,  13,           ChainKind.RECORD),
    (89,      20,     30,  14,           ChainKind.CANDIDATE),
    (59,      20,     30,  13,           ChainKind.QUICK),
    (10911,   20,     30,  13,           ChainKind.LYCHREL),
    (89,      24,     24,  13,           ChainKind.RECORD),
    (89,      25,     30,  1,            ChainKind.QUICK),
]


@pytest.mark.parametrize("seed, target, max_it, final_digits, expected", CLASSIFY_CASES)
def test_classify_chain(seed, target, max_it, final_digits, expected):
    cfg = HuntConfig(min_digits=1, target_iterations=target, max_iterations=max_it,
                     target_final_digits=final_digits).validate()
    assert classify_chain(run_chain(seed, max_it), cfg) is expected


# ---------- hunting -------------------------------------------------------------

def test_two_digit_hunt(tmp_path):
    summary = run_hunt(_two_digit_config(tmp_path))
    st = summary.statistics
    assert summary.stop_reason == "exhausted" and summary.completed
    assert st.numbers_tested == 90
    assert st.seeds_tested == 45
    assert st.records_found == 1
    assert st.records[0].number == "89"
    assert (st.records[0].iterations, st.records[0].final_digits) == (24, 13)
    assert st.quick_found == 44
    assert st.lychrel_found == 0 and st.candidates_found == 0
    assert (st.best_iterations, st.best_final_digits, st.best_number) == (24, 13, "89")
    assert st.skip_rate == pytest.approx(0.5)
    assert st.cache_hits + st.cache_misses > 0


def test_fresh_state_per_hunter(tmp_path):
    a = run_hunt(_two_digit_config(tmp_path))
    b = run_hunt(_two_digit_config(tmp_path))
    assert a.statistics.numbers_tested == b.statistics.numbers_tested == 90


def test_explicit_collaborators(tmp_path):
    cache = ConvergenceCache(capacity=10)
    stats = HuntStatistics()
    hunter = RecordHunter(_two_digit_config(tmp_path), cache=cache, stats=stats)
    hunter.run()
    assert hunter.stats is stats and stats.seeds_tested == 45
    assert len(cache) <= 10


def test_callbacks(tmp_path):
    seen_records, ticks = [], []
    cfg = _two_digit_config(tmp_path, stats_interval=30)
    run_hunt(cfg, on_record=lambda c, k: seen_records.append((c.number, k)),
             on_stats=lambda h: ticks.append(h.stats.numbers_tested))
    assert seen_records == [("89", ChainKind.RECORD)]
    assert ticks == [30, 60, 90]


def test_record_file_written(tmp_path, workspace):
    run_hunt(_two_digit_config(tmp_path, save_records=True))
    p = workspace / "records" / "record_24_iter.json"
    doc = json.loads(p.read_text(encoding="utf-8"))
    assert doc["number"] == "89"
    assert doc["iterations"] == 24 and doc["final_digits"] == 13


def test_warmup_fills_cache_only(tmp_path):
    hunter = RecordHunter(_two_digit_config(tmp_path, warmup_limit=200))
    entries = hunter.warmup()
    assert entries == len(hunter.cache) > 0
    assert hunter.cache.hits == hunter.cache.misses == 0
    assert hunter.stats.numbers_tested == 0


# ---------- checkpoints ----------------------------------------------------------

def test_max_seeds_keeps_checkpoint_and_resume_matches(tmp_path):
    path = tmp_path / "hunt.json"
    cfg = _two_digit_config(tmp_path, max_seeds=10, checkpoint_interval=7)
    first = run_hunt(cfg)
    assert first.stop_reason == "max_seeds"
    assert first.statistics.seeds_tested == 10
    assert first.checkpoint_path == path and ckpt.exists(path)

    rec = ckpt.load(path)
    assert rec.kind == "hunt"
    assert rec.statistics["seeds_tested"] == 10
    assert rec.generator_state["mode"] == "sequential"

    hunter = RecordHunter.from_checkpoint(rec, max_seeds=1000)
    done = hunter.run()
    st = done.statistics
    assert done.stop_reason == "exhausted"
    assert (st.numbers_tested, st.seeds_tested, st.records_found, st.quick_found) == (90, 45, 1, 44)
    assert not ckpt.exists(path)


def test_interrupt_writes_checkpoint(tmp_path):
    path = tmp_path / "hunt.json"
    cfg = _two_digit_config(tmp_path, checkpoint_interval=1000)

    def boom(hunter):
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        run_hunt(_two_digit_config(tmp_path, checkpoint_interval=1000, stats_interval=40), on_stats=boom)
    rec = ckpt.load(path)
    assert rec.iterations_done == 40

    resumed = RecordHunter.from_checkpoint(rec).run()
    uninterrupted = run_hunt(cfg)
    a, b = resumed.statistics, uninterrupted.statistics
    assert (a.numbers_tested, a.seeds_tested, a.records_found, a.best_number) == \
           (b.numbers_tested, b.seeds_tested, b.records_found, b.best_number)


def test_from_checkpoint_rejects_other_kinds(tmp_path):
    rec = ckpt.CheckpointRecord(kind="search", params={})
    with pytest.raises(CorruptCheckpoint):
        RecordHunter.from_checkpoint(rec)


def test_from_checkpoint_bad_generator_state(tmp_path):
    rec = ckpt.CheckpointRecord(kind="hunt", params={"min_digits": 3, "max_iterations": 30,
                                                     "target_iterations": 20},
                                generator_state={"mode": "sequential", "min_digits": 3})
    with pytest.raises(CorruptCheckpoint):
        RecordHunter.from_checkpoint(rec)


def test_statistics_round_trip():
    st = HuntStatistics(numbers_tested=5, seeds_tested=3, best_iterations=24, best_final_digits=13)
    st.note(run_chain(89, 30), ChainKind.RECORD)
    back = HuntStatistics.from_dict(json.loads(json.dumps(st.to_dict())))
    assert back == st


def test_interrupt_inside_chain_keeps_the_seed(tmp_path, monkeypatch):
    path = tmp_path / "hunt.json"
    real_chain = hunt.run_chain
    fired = []

    def chain_once_interrupted(start, *args, **kwargs):
        if start == 89 and not fired:
            fired.append(start)
            raise KeyboardInterrupt
        return real_chain(start, *args, **kwargs)

    monkeypatch.setattr(hunt, "run_chain", chain_once_interrupted)
    with pytest.raises(KeyboardInterrupt):
        run_hunt(_two_digit_config(tmp_path, checkpoint_interval=1000))

    rec = ckpt.load(path)
    assert rec.current_value == 89
    assert rec.iterations_done == 79           # 10..88
    assert rec.statistics["records_found"] == 0

    resumed = RecordHunter.from_checkpoint(rec).run().statistics
    assert (resumed.numbers_tested, resumed.seeds_tested, resumed.records_found, resumed.quick_found) == \
           (90, 45, 1, 44)
    assert resumed.best_number == "89"


def test_resume_without_saving_still_removes_checkpoint(tmp_path):
    path = tmp_path / "hunt.json"
    run_hunt(_two_digit_config(tmp_path, max_seeds=10, checkpoint_interval=5))
    assert ckpt.exists(path)

    done = resume(path, interval=0, max_seeds=1000)
    assert done.completed
    assert done.statistics.seeds_tested == 45
    assert not ckpt.exists(path)


def test_between_seeds_checkpoint_has_no_pending_seed(tmp_path):
    path = tmp_path / "hunt.json"
    run_hunt(_two_digit_config(tmp_path, max_seeds=10, checkpoint_interval=5))
    assert ckpt.load(path).current_value is None
