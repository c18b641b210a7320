from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib as toml
except ModuleNotFoundError:
    import tomli as toml  # type: ignore

from fibhex.utility import UserInputError
from fibhex.workspace import ensure_workspace_seeded, workspace_dir

# Section.KEY -> default; anything else in a profile is kept as-is.
DEFAULTS: dict[str, dict[str, Any]] = {
    "BEHAVIOUR": {"DEBUG": False},
    "LIMITS": {"MAX_INDEX": 50_000, "MAX_LIMBS": 0},
    "OUTPUT": {
        "OUTPUT_FILE": "",
        "ABBREVIATE": True,
        "ABBR_HEAD": 16,
        "ABBR_TAIL": 16,
        "ABBR_THRESHOLD": 80,
    },
    "VERIFY": {"CROSS_CHECK": False},
}


@dataclass
class Settings:
    """
    Wrap the full TOML dict (without the [_PROFILE_] section), merged over
    DEFAULTS. .as_dict() feeds runtime.apply().

      - name:        resolved profile name (file stem if not given in [_PROFILE_])
      - description: one-line description from [_PROFILE_] or "(no description)"
    """
    data: dict[str, Any]
    name: str
    description: str
    _source: Path | None = None

    def as_dict(self) -> dict[str, Any]:
        return self.data


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
    except toml.TOMLDecodeError as e:
        lineno = getattr(e, "lineno", None)
        loc = f" (at line {lineno})" if lineno is not None else ""
        msg = getattr(e, "msg", str(e))
        raise UserInputError(f"reading {path.name}: {msg}{loc}.") from None


# --- Metadata / validation -------------------------------------------------

def _sanitize_oneline(s: str) -> str:
    return " ".join(str(s).split()) or "(no description)"


def _split_profile_data(raw: dict[str, Any], fallback_name: str) -> tuple[dict[str, Any], str, str]:
    meta = raw.get("_PROFILE_") or {}
    data = {k: v for k, v in raw.items() if k != "_PROFILE_"}
    name = str(meta.get("name") or fallback_name)
    description = _sanitize_oneline(str(meta.get("description") or ""))
    return data, name, description


def _merge_defaults(data: dict[str, Any], source: str) -> dict[str, Any]:
    """Overlay profile values on DEFAULTS, type-checking the known keys."""
    merged: dict[str, Any] = {k: dict(v) for k, v in DEFAULTS.items()}
    for section, values in data.items():
        if not isinstance(values, dict):
            merged[section] = values
            continue
        known = merged.setdefault(section, {})
        for key, val in values.items():
            default = DEFAULTS.get(section, {}).get(key)
            if default is not None and type(val) is not type(default):
                raise UserInputError(
                    f"{source}: {section}.{key} must be {type(default).__name__}, "
                    f"got {type(val).__name__}."
                )
            if isinstance(val, int) and not isinstance(val, bool) and val < 0:
                raise UserInputError(f"{source}: {section}.{key} must be >= 0.")
            known[key] = val
    return merged


# --- Public API ------------------------------------------------------------

def list_all_profiles() -> list[str]:
    ensure_workspace_seeded()
    pdir = _profiles_dir()
    if not pdir.exists():
        return []
    return sorted(p.stem for p in pdir.glob("*.toml"))


def list_profiles_with_descriptions() -> list[tuple[str, str]]:
    """Return [(name, description), ...]; unreadable profiles fall back to the file name."""
    items: list[tuple[str, str]] = []
    for p in _profiles_dir().glob("*.toml"):
        try:
            _, nm, desc = _split_profile_data(_load_toml(p), p.stem)
            items.append((nm, desc))
        except UserInputError:
            items.append((p.stem, "(unreadable)"))
    return sorted(items, key=lambda t: t[0].lower())


def has_profile(name: str) -> bool:
    return _profile_path(name).exists()


def default_settings() -> Settings:
    return Settings(data=_merge_defaults({}, "defaults"), name="default", description="built-in defaults")


def load_settings(name: str | None) -> Settings:
    """Load a profile by name (default 'default') and merge it over DEFAULTS."""
    if not name:
        name = "default"

    path = _profile_path(name)
    if not path.exists():
        raise FileNotFoundError(f"Profile '{name}' not found at {path}")

    raw = _load_toml(path)
    data, resolved_name, description = _split_profile_data(raw, path.stem)
    return Settings(
        data=_merge_defaults(data, path.name),
        name=resolved_name,
        description=description,
        _source=path,
    )


def _current_profile_path() -> Path:
    p = _profiles_dir()
    p.mkdir(parents=True, exist_ok=True)
    return p / ".current"


def read_current_profile() -> str | None:
    try:
        s = _current_profile_path().read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return s[:-5] if s.lower().endswith(".toml") else (s or None)


def write_current_profile(name: str) -> None:
    nm = (name or "").strip()
    if nm.lower().endswith(".toml"):
        nm = nm[:-5]
    _current_profile_path().write_text(nm, encoding="utf-8")
