from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

# Version
try:
    __version__ = _pkg_version("lychrel")
except PackageNotFoundError:
    __version__ = "0+unknown"

# Public API re-exports
from .classify import Classification, run_test
from .config import has_profile, hunt_config_from, load_settings
from .hunt import HuntConfig, HuntSummary, RecordHunter, run_hunt
from .resume import resume
from .runtime import APPLY, CFG
from .search import SearchSummary, run_search
from .verify import VerifyOutcome, run_verify
from .workspace import workspace_dir

__all__ = [
    "APPLY",
    "CFG",
    "Classification",
    "HuntConfig",
    "HuntSummary",
    "RecordHunter",
    "SearchSummary",
    "VerifyOutcome",
    "__version__",
    "has_profile",
    "hunt_config_from",
    "load_settings",
    "resume",
    "run_hunt",
    "run_search",
    "run_test",
    "run_verify",
    "workspace_dir"
]
