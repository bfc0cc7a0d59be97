"""Playback settings stored in ``.gitreplay/settings.json``."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, cast

from gitreplay.reveal import GRANULARITIES, HUNK


class ConfigError(ValueError):
    """Settings file or playback parameter is invalid."""


class EndPolicy(Enum):
    LOOP = "loop"
    STOP = "stop"


@dataclass(frozen=True)
class PlaybackConfig:
    speed: float = 1.0
    end_policy: EndPolicy = EndPolicy.STOP
    tick_interval_ms: float = 50.0
    span_seconds: float = 50.0
    overview_dwell_ms: float = 3000.0
    operation_dwell_ms: float = 3000.0
    content_interval_ms: float = 30.0
    content_target_steps: int | None = 50
    diff_granularity: str = HUNK
    diff_hunk_interval_ms: float = 300.0
    diff_line_interval_ms: float = 50.0
    animate: bool = True

    def __post_init__(self) -> None:
        validate_speed(self.speed)
        positive = {
            "tick_interval_ms": self.tick_interval_ms,
            "span_seconds": self.span_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigError(f"{name} must be > 0, got {value}")
        non_negative = {
            "overview_dwell_ms": self.overview_dwell_ms,
            "operation_dwell_ms": self.operation_dwell_ms,
            "content_interval_ms": self.content_interval_ms,
            "diff_hunk_interval_ms": self.diff_hunk_interval_ms,
            "diff_line_interval_ms": self.diff_line_interval_ms,
        }
        for name, value in non_negative.items():
            if value < 0:
                raise ConfigError(f"{name} must be >= 0, got {value}")
        if self.content_target_steps is not None and self.content_target_steps < 1:
            raise ConfigError("content_target_steps must be >= 1")
        if self.diff_granularity not in GRANULARITIES:
            raise ConfigError(f"diff_granularity must be one of {', '.join(GRANULARITIES)}")

    @property
    def diff_interval_ms(self) -> float:
        if self.diff_granularity == HUNK:
            return self.diff_hunk_interval_ms
        return self.diff_line_interval_ms

    def replace(self, **changes: Any) -> PlaybackConfig:
        """Copy with the non-``None`` values of ``changes`` applied."""
        return dataclasses.replace(self, **{k: v for k, v in changes.items() if v is not None})


def validate_speed(speed: float) -> float:
    if isinstance(speed, bool) or not isinstance(speed, (int, float)) or speed <= 0:
        raise ConfigError(f"speed must be a positive number, got {speed!r}")
    return float(speed)


def _settings_path(repo_root: Path) -> Path:
    return repo_root / ".gitreplay" / "settings.json"


def _load_settings(repo_root: Path) -> dict[str, object]:
    path = _settings_path(repo_root)
    if not path.is_file():
        return {}

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid settings format in {path}")
    return raw


def _save_settings(repo_root: Path, settings: dict[str, object]) -> None:
    path = _settings_path(repo_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")


def _expect_object_dict(value: object, section: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid {section} section in settings.")
    return cast(dict[str, object], value)


def _coerce(name: str, value: object, default: object) -> object:
    if name == "end_policy":
        try:
            return EndPolicy(value)
        except ValueError as exc:
            raise ConfigError(f"end_policy must be 'loop' or 'stop', got {value!r}") from exc
    if name == "content_target_steps":
        if value is None or (isinstance(value, int) and not isinstance(value, bool)):
            return value
        raise ConfigError("content_target_steps must be an integer or null")
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be true or false")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{name} must be a number")
        return float(value)
    if isinstance(default, str):
        if not isinstance(value, str):
            raise ConfigError(f"{name} must be a string")
        return value
    return value


def config_from_dict(data: dict[str, object]) -> PlaybackConfig:
    defaults = PlaybackConfig()
    known = {f.name for f in dataclasses.fields(PlaybackConfig)}
    values: dict[str, Any] = {}
    for name, value in data.items():
        if name not in known:
            raise ConfigError(f"Unknown playback setting: {name}")
        values[name] = _coerce(name, value, getattr(defaults, name))
    return PlaybackConfig(**values)


def load_config(repo_root: Path) -> PlaybackConfig:
    """Read the playback section of the repository settings, if any."""
    settings = _load_settings(repo_root)
    section = settings.get("playback")
    if section is None:
        return PlaybackConfig()
    return config_from_dict(_expect_object_dict(section, "playback"))


def save_config(repo_root: Path, config: PlaybackConfig) -> None:
    """Write ``config`` into the playback section, keeping other sections."""
    settings = _load_settings(repo_root)
    section: dict[str, object] = {}
    for f in dataclasses.fields(PlaybackConfig):
        value = getattr(config, f.name)
        section[f.name] = value.value if isinstance(value, EndPolicy) else value
    settings["playback"] = section
    _save_settings(repo_root, settings)
