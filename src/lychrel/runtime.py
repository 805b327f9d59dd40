# src/lychrel/runtime.py
from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from importlib.util import find_spec
from typing import Any

from colorama import Fore, Style

REQUIRED_MODULES = ("gmpy2",)


@dataclass
class Runtime:
    """Settings of the active profile plus process-wide flags."""
    profile_name: str = "default"
    settings: dict[str, Any] = field(default_factory=dict)
    debug: bool = False  # --debug or [BEHAVIOUR] DEBUG = true

    def apply(self, settings: Any) -> None:
        # Settings object (config.load_settings) or a plain nested dict
        if hasattr(settings, "as_dict"):
            self.settings = dict(settings.as_dict())
            self.profile_name = getattr(settings, "name", None) or "default"
        else:
            self.settings = dict(settings or {})
            self.profile_name = "default"

        # a profile can switch debug on, never off again
        if self.get("BEHAVIOUR.DEBUG") is True:
            self.debug = True

    def section(self, name: str) -> dict[str, Any]:
        value = self.settings.get(name)
        return value if isinstance(value, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        """Dotted lookup, e.g. 'DISPLAY.NUM_ABBR_HEAD'."""
        if not key:
            return default
        cur: Any = self.settings
        for part in key.split("."):
            if not isinstance(cur, dict) or part not in cur:
                return default
            cur = cur[part]
        return cur


# --- Context management ---

_current_runtime: ContextVar[Runtime | None] = ContextVar("lychrel_runtime", default=None)


def current() -> Runtime:
    rt = _current_runtime.get()
    if rt is None:
        rt = Runtime()
        _current_runtime.set(rt)
    return rt


def APPLY(settings: Any) -> None:
    current().apply(settings)


def CFG(key: str, default: Any = None) -> Any:
    return current().get(key, default)


def reset() -> None:
    _current_runtime.set(None)


# ---- Dependency check --------------------------------------------------------

def ensure_runtime_deps(strict: bool = True) -> bool:
    """
    Report missing compiled dependencies before any command runs.
    With strict=True a missing module makes this return False.
    """
    missing = [name for name in REQUIRED_MODULES if find_spec(name) is None]
    if not missing:
        return True

    print(
        f"{Fore.RED}{Style.BRIGHT}\nMissing dependencies:{Style.RESET_ALL} {', '.join(missing)}\n"
        f"Install with: {Fore.YELLOW}pip install {' '.join(missing)}{Style.RESET_ALL}"
    )
    return not strict
