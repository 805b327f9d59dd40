# tests/conftest.py
from __future__ import annotations

import logging

import pytest

from lychrel import runtime


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Every test gets its own workspace and a fresh runtime."""
    ws = tmp_path / "ws"
    monkeypatch.setenv("LYCHREL_HOME", str(ws))
    runtime.reset()
    yield ws
    runtime.reset()
    # the CLI installs its own handler; hand the logger back to caplog
    log = logging.getLogger("lychrel")
    log.handlers[:] = []
    log.propagate = True
    log.setLevel(logging.NOTSET)
