"""
Runtime configuration.

Options recognized when the runtime is initialized:
- source_path: story script file or directory; when set, it is compiled,
  validated and saved to compiled_path on every load
- compiled_path: compiled story artifact
- bookmark_path: persisted progression state
- default_passage: where new bookmarks start, and the fallback when a
  bookmark names a passage the story no longer has
- poll_interval: seconds between hot-reload checks
- watch / watch_mode: files to watch and how (polling or watchdog)
- verbosity: 0 quiet, 1 log loads and reloads, 2 also echo the bookmark
  after every step
- step_budget: max control lines per step and max steps per
  run_until_stable (0 disables both limits)
- save_on_jump: persist the bookmark after every jump
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from runtime.errors import ConfigError
from story.parser import STORY_EXTENSION


class RuntimeConfig(BaseModel):
    """Validated runtime options. Use create() or load() to get ConfigError on bad input."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    source_path: Optional[Path] = None
    compiled_path: Path
    bookmark_path: Path
    default_passage: str = "Main"
    poll_interval: float = Field(default=1.0, ge=0.0)
    watch: Optional[str] = None
    watch_mode: Literal["poll", "watchdog"] = "poll"
    verbosity: int = Field(default=0, ge=0, le=2)
    step_budget: int = Field(default=10000, ge=0)
    save_on_jump: bool = True

    @field_validator('default_passage')
    @classmethod
    def _passage_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("default_passage must not be empty")
        return value

    @classmethod
    def create(cls, **options: Any) -> RuntimeConfig:
        """
        Build a config from keyword options.

        Raises:
            ConfigError: If an option is missing or invalid
        """
        try:
            return cls(**options)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigError(f"Invalid runtime config: {problems}") from e

    @classmethod
    def coerce(cls, config: RuntimeConfig | dict[str, Any]) -> RuntimeConfig:
        """Accept either a config or a dict of options."""
        if isinstance(config, RuntimeConfig):
            return config
        if isinstance(config, dict):
            return cls.create(**config)
        raise ConfigError(f"Expected RuntimeConfig or dict, got {type(config).__name__}")

    @classmethod
    def load(cls, path: str | Path) -> RuntimeConfig:
        """
        Load a config from a JSON file.

        Relative paths inside the file are resolved against the file's directory.
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read runtime config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Runtime config {path} must be a JSON object")

        for key in ('source_path', 'compiled_path', 'bookmark_path', 'watch'):
            value = data.get(key)
            if isinstance(value, str) and value and not Path(value).is_absolute():
                data[key] = str(path.parent / value)

        return cls.create(**data)

    @property
    def watch_pattern(self) -> str:
        """Glob pattern of the files whose changes trigger a reload."""
        if self.watch:
            return self.watch
        if self.source_path is not None:
            if self.source_path.is_dir():
                return str(self.source_path / "**" / f"*{STORY_EXTENSION}")
            return str(self.source_path)
        return str(self.compiled_path)
