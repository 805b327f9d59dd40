# src/lychrel/dataio.py
from __future__ import annotations

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING

from lychrel.workspace import records_dir

if TYPE_CHECKING:
    from lychrel.hunt import RecordCandidate
    from lychrel.search import SearchSummary


def _write_json(path: Path, doc) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as fh:
        json.dump(doc, fh, indent=2)
        fh.write("\n")
    os.replace(tmp, path)


def export_search_results(summary: SearchSummary, path: str | Path) -> Path:
    """
    Write a finished search as JSON:

      { "range": {"start": "...", "end": "..."}, "max_iterations": 300,
        "tested": ..., "palindromes_found": ..., "already_palindromes": ...,
        "most_delayed": {"number": "...", "iterations": ...} | null,
        "lychrel_candidates": ["196", ...], "elapsed_s": ... }
    """
    d = summary.to_dict()
    doc = {
        "range": {"start": d["start"], "end": d["end"]},
        "max_iterations": d["max_iterations"],
        "tested": d["tested"],
        "palindromes_found": d["palindromes_found"],
        "already_palindromes": d["already_palindromes"],
        "most_delayed": (
            {"number": d["most_delayed"], "iterations": d["most_delayed_iterations"]}
            if d["most_delayed"] is not None else None
        ),
        "lychrel_candidates": d["lychrel_candidates"],
        "elapsed_s": d["elapsed_s"],
    }
    p = Path(path).expanduser()
    _write_json(p, doc)
    return p


def record_file_path(iterations: int, directory: str | Path | None = None) -> Path:
    base = Path(directory) if directory else records_dir()
    return base / f"record_{iterations}_iter.json"


def write_record_file(record: RecordCandidate, directory: str | Path | None = None) -> Path:
    """Save one record hunt hit as records/record_<iterations>_iter.json (same delay overwrites)."""
    p = record_file_path(record.iterations, directory)
    _write_json(p, asdict(record))
    return p
