from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

try:
    import tomllib as toml
except Exception:
    import tomli as toml  # type: ignore

from lychrel.hunt import HuntConfig
from lychrel.utility import InvalidConfiguration, UserInputError
from lychrel.workspace import ensure_workspace_seeded, workspace_dir


@dataclass
class Settings:
    """
    Wrap the full TOML dict (without the [PROFILE] section).
    .as_dict() feeds runtime.apply().

    Added fields:
      - name:        resolved profile name (FILE.stem if not provided in [PROFILE])
      - description: one-line description from [PROFILE] or "(no description)"
    """
    data: dict[str, Any]
    name: str
    description: str
    _source: Path | None = None

    def as_dict(self) -> dict[str, Any]:
        return self.data

    @property
    def hunt(self) -> dict[str, Any]:
        return dict(self.data.get("HUNT", {}) or {})


# --- Paths -----------------------------------------------------------------

def _profiles_dir() -> Path:
    return workspace_dir() / "profiles"


def _profile_path(name: str) -> Path:
    return _profiles_dir() / f"{name}.toml"


# --- I/O -------------------------------------------------------------------


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return toml.load(f)
    except Exception as e:
        lineno = getattr(e, "lineno", None)
        colno = getattr(e, "colno", None)
        msg = getattr(e, "msg", str(e))
        where = []
        if lineno is not None:
            where.append(f"line {lineno}")
        if colno is not None:
            where.append(f"column {colno}")
        loc = f" (at {', '.join(where)})" if where else ""
        # No traceback chaining
        raise UserInputError(f"reading {path.name}: {msg}{loc}.") from None


def _sanitize_oneline(s: str) -> str:
    return " ".join(str(s).split()) or "(no description)"


def _split_profile_data(raw: dict[str, Any], fallback_name: str) -> tuple[dict[str, Any], str, str]:
    """
    Extract [PROFILE] meta (name, description) and return:
      (settings_without_profile, resolved_name, resolved_description)
    """
    meta = raw.get("PROFILE") or {}
    data = {k: v for k, v in raw.items() if k != "PROFILE"}
    name = str(meta.get("name") or fallback_name)
    description = _sanitize_oneline(str(meta.get("description") or ""))
    return data, name, description


# --- Public API ------------------------------------------------------------


def list_profiles_with_descriptions() -> list[tuple[str, str]]:
    """
    Return [(name, description), ...] for all profiles.
    Profiles lacking [PROFILE] get "(no description)".
    """
    ensure_workspace_seeded()
    items: list[tuple[str, str]] = []
    for p in _profiles_dir().glob("*.toml"):
        try:
            raw = _load_toml(p)
            _, nm, desc = _split_profile_data(raw, p.stem)
            items.append((nm, desc))
        except UserInputError:
            # Best-effort listing; fall back to filename
            items.append((p.stem, "(no description)"))
    return sorted(items, key=lambda t: t[0].lower())


def has_profile(name: str) -> bool:
    return _profile_path(name).exists()


def load_settings(name: str | None = None) -> Settings:
    """
    Load a profile by name (default 'default') or by path to a .toml file,
    strip the [PROFILE] metadata and return Settings.
    """
    if not name:
        name = "default"

    candidate = Path(name).expanduser()
    if candidate.suffix.lower() == ".toml" and candidate.is_file():
        path = candidate
    else:
        path = _profile_path(name)
        if not path.exists():
            raise UserInputError(f"Profile '{name}' not found at {path}")

    raw = _load_toml(path)
    data, resolved_name, description = _split_profile_data(raw, path.stem)
    return Settings(data=data, name=resolved_name, description=description, _source=path)


# --- Hunt configuration ----------------------------------------------------

_HUNT_FIELDS = {f.name for f in fields(HuntConfig)}


def hunt_config_from(
    settings: Settings | dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> HuntConfig:
    """
    Build a validated HuntConfig.

    Precedence, per field: dataclass defaults < profile [HUNT] values <
    overrides. Only overrides that are not None count as given, so argparse
    namespaces can be passed through without filtering. Every field is a
    scalar, so nothing is deep-merged.
    """
    if isinstance(settings, Settings):
        file_values = settings.hunt
    elif isinstance(settings, dict):
        file_values = dict(settings.get("HUNT") or {})
    else:
        file_values = {}

    merged: dict[str, Any] = {}
    for key, value in file_values.items():
        k = str(key).lower()
        if k not in _HUNT_FIELDS:
            raise InvalidConfiguration(f"unknown [HUNT] setting '{key}'")
        merged[k] = value

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in _HUNT_FIELDS:
            raise InvalidConfiguration(f"unknown hunt option '{key}'")
        merged[key] = value

    try:
        cfg = HuntConfig(**merged)
    except TypeError as e:
        raise InvalidConfiguration(str(e)) from None
    cfg.validate()
    return cfg
