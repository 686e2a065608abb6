"""Shared TOML configuration helpers for study_smarts commands.

Command-specific loaders keep a defaults table, merge the user's TOML file on
top of it, then apply environment and CLI overrides. The helpers here cover
the generic parts of that flow.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

try:  # Python >= 3.11 ships ``tomllib`` in the stdlib.
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - defensive guard
    raise RuntimeError("Python 3.11+ is required for tomllib support.") from exc

__all__ = [
    "TomlConfigError",
    "load_toml",
    "merge_defaults",
    "write_toml_template",
    "env_value",
    "pick_first",
    "require_choice",
    "require_float_range",
    "require_positive_int",
    "require_string",
]


class TomlConfigError(RuntimeError):
    """Raised when TOML config IO or validation fails."""


def load_toml(path: Path) -> Mapping[str, Any]:
    """Load a TOML document from ``path``.

    Errors are surfaced as :class:`TomlConfigError` instances so callers can
    translate them into domain-specific exceptions.
    """

    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Failed to parse config TOML: {exc}") from exc
    return data


def merge_defaults(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Recursively merge ``override`` into ``base``; unknown keys are errors."""

    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        current = base[key]
        if isinstance(current, MutableMapping):
            if not isinstance(value, Mapping):
                raise TomlConfigError(
                    f"Expected table for '{dotted}', found "
                    f"{type(value).__name__}."
                )
            merge_defaults(current, value, path=f"{dotted}.")
        else:
            base[key] = value


def write_toml_template(
    path: Path,
    *,
    template: str,
    overwrite: bool = False,
    mode: int = 0o600,
) -> Path:
    """Write ``template`` to ``path`` honouring ``overwrite`` semantics."""

    if path.exists() and not overwrite:
        raise TomlConfigError(f"Config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(template, encoding="utf-8")
    try:
        path.chmod(mode)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


def env_value(
    env: Mapping[str, str], prefix: str, key: str
) -> Optional[str]:
    """Return the stripped ``{prefix}{key}`` variable, ``None`` when blank."""

    raw = env.get(f"{prefix}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def pick_first(*candidates: object) -> object:
    """Return the first candidate that is not ``None``."""

    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TomlConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise TomlConfigError(f"'{field}' must be a positive integer.")
    return value


def require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TomlConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not min_value <= number <= max_value:
        raise TomlConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def require_choice(value: Any, *, field: str, choices: tuple[str, ...]) -> str:
    text = require_string(value, field=field).lower()
    if text not in choices:
        expected = ", ".join(choices)
        raise TomlConfigError(f"'{field}' must be one of: {expected}.")
    return text
