# tests/test_config.py
"""
Workspace seeding, TOML profiles and hunt-setting precedence.

Run: pytest -v
"""

from __future__ import annotations

import pytest

from lychrel.config import hunt_config_from, list_profiles_with_descriptions, load_settings
from lychrel.fmt import abbr_digits, abbr_int, format_duration
from lychrel.runtime import APPLY, CFG
from lychrel.utility import InvalidConfiguration, UserInputError
from lychrel.workspace import ensure_workspace_seeded, seed_workspace

# ---------- workspace ------------------------------------------------------------


def test_seed_workspace(workspace):
    root, copied = seed_workspace()
    assert root == workspace.resolve()
    assert copied >= 1
    for sub in ("profiles", "checkpoints", "records"):
        assert (workspace / sub).is_dir()
    assert (workspace / "profiles" / "default.toml").is_file()
    _, again = ensure_workspace_seeded()
    assert again is False


def test_user_edits_survive_reseed(workspace):
    seed_workspace()
    p = workspace / "profiles" / "default.toml"
    p.write_text('[HUNT]\nmin_digits = 7\n', encoding="utf-8")
    seed_workspace()
    assert "min_digits = 7" in p.read_text(encoding="utf-8")


# ---------- profiles -------------------------------------------------------------

def test_default_profile():
    seed_workspace()
    s = load_settings()
    assert s.name == "default"
    assert "PROFILE" not in s.as_dict()
    cfg = hunt_config_from(s)
    assert (cfg.min_digits, cfg.target_iterations, cfg.max_iterations) == (23, 289, 300)


def test_profile_listing():
    names = [n for n, _ in list_profiles_with_descriptions()]
    assert "default" in names and "quick" in names


def test_unknown_profile():
    seed_workspace()
    with pytest.raises(UserInputError):
        load_settings("no-such-profile")


def test_bad_toml_reports_location(tmp_path):
    p = tmp_path / "broken.toml"
    p.write_text("[HUNT]\nmin_digits = = 3\n", encoding="utf-8")
    with pytest.raises(UserInputError) as ei:
        load_settings(str(p))
    assert "broken.toml" in str(ei.value)
    assert "line 2" in str(ei.value)


# ---------- precedence -----------------------------------------------------------

def _profile(tmp_path, body: str):
    p = tmp_path / "custom.toml"
    p.write_text(body, encoding="utf-8")
    return load_settings(str(p))


def test_file_overrides_defaults_and_cli_overrides_file(tmp_path):
    s = _profile(tmp_path, "[HUNT]\nmin_digits = 8\nmax_iterations = 120\ntarget_iterations = 100\n")
    cfg = hunt_config_from(s, {"max_iterations": 150, "min_digits": None})
    assert cfg.min_digits == 8                 # from file (override not given)
    assert cfg.max_iterations == 150           # from overrides
    assert cfg.target_iterations == 100        # from file
    assert cfg.target_final_digits == 142      # default


def test_upper_case_keys_accepted(tmp_path):
    s = _profile(tmp_path, "[HUNT]\nMIN_DIGITS = 4\n")
    assert hunt_config_from(s).min_digits == 4


def test_unknown_hunt_key(tmp_path):
    s = _profile(tmp_path, "[HUNT]\nmin_digit = 4\n")
    with pytest.raises(InvalidConfiguration):
        hunt_config_from(s)


def test_contradiction_after_merge(tmp_path):
    s = _profile(tmp_path, "[HUNT]\ntarget_iterations = 250\n")
    with pytest.raises(InvalidConfiguration):
        hunt_config_from(s, {"max_iterations": 200})


def test_runtime_settings_dict():
    APPLY({"HUNT": {"min_digits": 3}, "DISPLAY": {"NUM_ABBR_HEAD": 4}})
    assert CFG("DISPLAY.NUM_ABBR_HEAD") == 4
    assert CFG("DISPLAY.MISSING", "x") == "x"
    assert hunt_config_from({"HUNT": {"min_digits": 3}}).min_digits == 3
    assert hunt_config_from({"DISPLAY": {}}).min_digits == 23


# ---------- formatting -------------------------------------------------------------

def test_abbreviation():
    s = "1" * 50
    assert abbr_digits(s, head=3, tail=2, threshold=10) == "111…11"
    assert abbr_digits("12345", threshold=10) == "12345"
    APPLY({"DISPLAY": {"NUM_ABBR_HEAD": 2, "NUM_ABBR_TAIL": 2, "NUM_ABBR_THRESHOLD": 5, "ELLIPSIS": ".."}})
    assert abbr_int(1234567) == "12..67"


@pytest.mark.parametrize("seconds, expected", [
    (0.25, "250 ms"),
    (1.5, "1.500 s"),
    (75, "1:15.000"),
    (3725, "1:02:05.000"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
