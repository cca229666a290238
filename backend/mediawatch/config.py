"""
MediaWatch configuration.

Loaded once at startup from a JSON file. The path rules are fixed for the
life of the process.
"""

import json
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .liveness import DEFAULT_TIMEOUT_SECONDS
from .watcher.errors import ConfigError
from .watcher.models import PathRule, RuleAction
from .watcher.service import DEFAULT_TRIGGER_QUEUE_SIZE


DEFAULT_CONFIG_PATH = Path.home() / ".mediawatch" / "config.json"
DEFAULT_DATA_DIR = Path.home() / ".mediawatch"


def _absolute(v: str, what: str) -> str:
    p = Path(v).expanduser()
    if not p.is_absolute():
        raise ValueError(f"{what} must be absolute: {v}")
    return str(p)


class DirectoryIndexConfig(BaseModel):
    """Media index built by scanning local directories."""

    model_config = {"extra": "forbid"}

    type: Literal["directory"] = "directory"
    roots: List[str] = Field(..., min_length=1, description="Directories to watch")
    recursive: bool = True
    follow_symlinks: bool = False

    @field_validator("roots")
    @classmethod
    def validate_roots(cls, v: List[str]) -> List[str]:
        return [_absolute(root, "Media root") for root in v]


class SQLiteIndexConfig(BaseModel):
    """Media index read from an external SQLite catalogue."""

    model_config = {"extra": "forbid"}

    type: Literal["sqlite"] = "sqlite"
    db_path: str
    table: str = "media"
    path_column: str = "path"
    mime_column: str = "mime_type"
    added_column: str = "date_added"

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: str) -> str:
        return _absolute(v, "Media index database path")


class WatcherConfig(BaseModel):
    """Complete MediaWatch configuration."""

    model_config = {"extra": "forbid"}

    db_path: str = Field(
        default=str(DEFAULT_DATA_DIR / "mediawatch.db"),
        description="SQLite database for settings, ledger and dispatch queue",
    )
    output_root: str = Field(
        default=str(DEFAULT_DATA_DIR / "captured"),
        description="Directory the capture worker writes into; never ingested",
    )
    index: Union[DirectoryIndexConfig, SQLiteIndexConfig]
    source_uri: str = "media:images"

    rules: List[PathRule] = Field(default_factory=list)
    default_action: RuleAction = RuleAction.INCLUDE

    liveness_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    liveness_backend: Literal["auto", "systemd", "caffeinate", "none"] = "auto"

    trigger_queue_size: int = Field(default=DEFAULT_TRIGGER_QUEUE_SIZE, ge=1)
    poll_seconds: Optional[float] = Field(default=30.0, gt=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    monitor_host: str = "127.0.0.1"
    monitor_port: Optional[int] = Field(default=None, ge=1, le=65535)

    @field_validator("db_path", "output_root")
    @classmethod
    def validate_absolute_path(cls, v: str) -> str:
        return _absolute(v, "Path")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def output_root_not_a_media_root(self) -> "WatcherConfig":
        if isinstance(self.index, DirectoryIndexConfig):
            output = Path(self.output_root)
            for root in self.index.roots:
                if Path(root) == output:
                    raise ValueError(f"output_root cannot be a watched media root: {root}")
        return self


def load_config(path: Union[str, Path]) -> WatcherConfig:
    """
    Load configuration from a JSON file.

    Raises:
        ConfigError: File missing, not valid JSON, or failing validation
    """
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    try:
        return WatcherConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e
