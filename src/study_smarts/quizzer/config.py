"""Configuration loader for the quizzer commands."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from study_smarts.core import config as core_config
from study_smarts.core import workspace as workspace_mod

from .engine import SessionMode

CONFIG_FILENAME = "quizzer.toml"
CONFIG_ENV = "STUDY_SMARTS_QUIZZER_CONFIG"
ENV_PREFIX = "STUDY_SMARTS_QUIZZER_"

_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class QuizzerConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class QuizzerConfig:
    """Fully resolved settings for quizzer commands."""

    model: str
    temperature: float
    max_tokens: int
    hint_max_tokens: int
    mode: SessionMode
    subject_id: Optional[str]
    num_questions: int
    attempts_path: Path
    log_level: str


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of file/env options."""

    model: Optional[str] = None
    mode: Optional[str] = None
    subject_id: Optional[str] = None
    log_level: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    config: QuizzerConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "ai": {
        "model": "gpt-4o-mini",
        "temperature": 0.2,
        "max_tokens": 1500,
        "hint_max_tokens": 150,
    },
    "session": {
        "mode": "display",
        "subject_id": "",
        "num_questions": 5,
    },
    "storage": {
        "attempts_file": "attempts.jsonl",
    },
    "logging": {
        "level": "INFO",
    },
}


_CONFIG_TEMPLATE = """
# Study Smarts quizzer configuration

[ai]
# Chat completion model used for quizzes, summaries and hints
model = "gpt-4o-mini"
# Sampling temperature (0.0-2.0)
temperature = 0.2
max_tokens = 1500
# Hints are short; keep their budget small
hint_max_tokens = 150

[session]
# "display" locks answers after a single submission and records the score;
# "edit" allows editing question text and shows results once all answered
mode = "display"
# Identity stored with submitted attempts (required to submit)
subject_id = ""
# Default question count for `quizzer generate`
num_questions = 5

[storage]
# Attempts log, relative to the workspace attempts/ directory
attempts_file = "attempts.jsonl"

[logging]
level = "INFO"
"""


def config_template() -> str:
    """Return the TOML template recommended for new installs."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(path: Path, *, overwrite: bool = False) -> Path:
    try:
        return core_config.write_toml_template(
            path, template=config_template(), overwrite=overwrite
        )
    except core_config.TomlConfigError as exc:
        raise QuizzerConfigError(str(exc)) from exc


def default_config_path(layout: workspace_mod.WorkspaceLayout) -> Path:
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML > defaults."""

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env

    layout = workspace_mod.ensure_workspace(env=env_map, path=workspace_path)
    explicit = config_path is not None or bool(
        (env_map.get(CONFIG_ENV) or "").strip()
    )
    requested = _resolve_config_path(config_path, env_map, layout)

    tree = copy.deepcopy(_DEFAULTS)
    loaded_path: Optional[Path] = None
    if requested.exists():
        try:
            core_config.merge_defaults(tree, core_config.load_toml(requested))
        except core_config.TomlConfigError as exc:
            raise QuizzerConfigError(str(exc)) from exc
        loaded_path = requested
    elif explicit:
        raise QuizzerConfigError(f"Config file not found: {requested}")

    try:
        config = _build_config(tree, overrides, env_map, layout)
    except core_config.TomlConfigError as exc:
        raise QuizzerConfigError(str(exc)) from exc
    return LoadResult(config=config, layout=layout, config_path=loaded_path)


def _resolve_config_path(
    config_path: Optional[Path],
    env_map: Mapping[str, str],
    layout: workspace_mod.WorkspaceLayout,
) -> Path:
    if config_path is not None:
        return config_path.expanduser()
    env_candidate = (env_map.get(CONFIG_ENV) or "").strip()
    if env_candidate:
        return Path(env_candidate).expanduser()
    return default_config_path(layout)


def _build_config(
    tree: Mapping[str, Mapping[str, Any]],
    overrides: ConfigOverrides,
    env_map: Mapping[str, str],
    layout: workspace_mod.WorkspaceLayout,
) -> QuizzerConfig:
    ai = tree["ai"]
    session = tree["session"]

    def env(key: str) -> Optional[str]:
        return core_config.env_value(env_map, ENV_PREFIX, key)

    model = core_config.require_string(
        core_config.pick_first(overrides.model, env("MODEL"), ai["model"]),
        field="ai.model",
    )
    temperature = core_config.require_float_range(
        ai["temperature"], field="ai.temperature", min_value=0.0, max_value=2.0
    )
    max_tokens = core_config.require_positive_int(
        ai["max_tokens"], field="ai.max_tokens"
    )
    hint_max_tokens = core_config.require_positive_int(
        ai["hint_max_tokens"], field="ai.hint_max_tokens"
    )
    mode_value = core_config.require_choice(
        core_config.pick_first(overrides.mode, env("MODE"), session["mode"]),
        field="session.mode",
        choices=tuple(member.value for member in SessionMode),
    )
    subject_raw = core_config.pick_first(
        overrides.subject_id, env("SUBJECT_ID"), session["subject_id"]
    )
    if subject_raw is not None and not isinstance(subject_raw, str):
        raise QuizzerConfigError("'session.subject_id' must be a string.")
    num_questions = core_config.require_positive_int(
        session["num_questions"], field="session.num_questions"
    )
    attempts_file = core_config.require_string(
        tree["storage"]["attempts_file"], field="storage.attempts_file"
    )
    log_level = core_config.require_choice(
        core_config.pick_first(
            overrides.log_level, env("LOG_LEVEL"), tree["logging"]["level"]
        ),
        field="logging.level",
        choices=_LOG_LEVELS,
    )

    attempts_path = Path(attempts_file).expanduser()
    if not attempts_path.is_absolute():
        attempts_path = layout.path_for("attempts") / attempts_path

    return QuizzerConfig(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        hint_max_tokens=hint_max_tokens,
        mode=SessionMode.from_value(mode_value),
        subject_id=(subject_raw or "").strip() or None,
        num_questions=num_questions,
        attempts_path=attempts_path,
        log_level=log_level.upper(),
    )
