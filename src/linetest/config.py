"""Settings for a line-test invocation.

Settings come from an optional ``line-test.yaml`` next to the workspace and
are overridden by command-line flags.  Validation is handled by pydantic so
unknown keys and wrongly typed values fail early with a readable message.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "line-test.yaml"
DEFAULT_STORE_PATH = Path("line-test.db")


def _default_cargo() -> str:
    return os.environ.get("CARGO") or "cargo"


class LineTestConfig(BaseModel):
    """Options shared by the build, refresh and run commands."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    store: Path = DEFAULT_STORE_PATH
    cargo: str = Field(default_factory=_default_cargo)
    deny_warnings: bool = False
    show_commands: bool = False
    no_run: bool = False
    verbose: bool = False
    test_args: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _no_run_shows_commands(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("no_run"):
            data = {**data, "show_commands": True}
        return data

    def merged(self, **overrides: Any) -> "LineTestConfig":
        """Return a copy with every non-``None`` override applied."""
        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return LineTestConfig.model_validate(data)
        except ValidationError as error:
            raise ConfigError(f"Invalid options: {error}") from error


def load_config(config_path: Optional[Path] = None) -> LineTestConfig:
    """Load settings from ``config_path`` or the default file when present."""
    explicit = config_path is not None
    path = Path(config_path) if explicit else Path(DEFAULT_CONFIG_NAME)
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return LineTestConfig()

    try:
        with path.open("r", encoding="utf-8") as handle:
            data: Dict[str, Any] = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping at the top level.")

    try:
        return LineTestConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration in {path}: {error}") from error


__all__ = ["DEFAULT_CONFIG_NAME", "DEFAULT_STORE_PATH", "LineTestConfig", "load_config"]
