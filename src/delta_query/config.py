"""Client configuration.

Settings are resolved from, in increasing priority:

1. a YAML file (keys at the top level or under ``delta_query:``)
2. environment variables ``DELTA_QUERY_<KEY>`` (e.g. ``DELTA_QUERY_ENDPOINT``)
3. keyword overrides passed to :func:`load_config`

Required keys: ``endpoint``, ``bearer_token``, ``share``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from delta_query.errors import ConfigError

ENV_PREFIX = "DELTA_QUERY_"
DEFAULT_SCHEMA = "public"
DEFAULT_TIMEOUT_SEC = 60.0

_REQUIRED = ("endpoint", "bearer_token", "share")


@dataclass(frozen=True)
class Config:
    """Connection settings for one sharing server and share.

    Attributes:
        endpoint: Base URL of the sharing server.
        bearer_token: Token sent as ``Authorization: Bearer ...``.
        share: Share that holds the tables.
        schema: Schema inside the share.
        timeout_sec: HTTP timeout for catalog and file requests.
        max_workers: Files fetched in parallel; 1 means sequential.
        show_progress: Show a progress bar while files are fetched.
    """

    endpoint: str
    bearer_token: str
    share: str
    schema: str = DEFAULT_SCHEMA
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    max_workers: int = 1
    show_progress: bool = False

    def __post_init__(self) -> None:
        for key in _REQUIRED:
            if not getattr(self, key):
                raise ConfigError(f"{key} is required")
        if not self.schema:
            object.__setattr__(self, "schema", DEFAULT_SCHEMA)
        if int(self.max_workers) < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Config":
        """Build a config from a mapping, ignoring unknown keys and None values."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        for key in _REQUIRED:
            kwargs.setdefault(key, "")
        try:
            if "timeout_sec" in kwargs:
                kwargs["timeout_sec"] = float(kwargs["timeout_sec"])
            if "max_workers" in kwargs:
                kwargs["max_workers"] = int(kwargs["max_workers"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e
        if "show_progress" in kwargs and isinstance(kwargs["show_progress"], str):
            kwargs["show_progress"] = kwargs["show_progress"].strip().lower() in ("1", "true", "yes")
        return cls(**kwargs)


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    section = data.get("delta_query")
    return dict(section) if isinstance(section, dict) else data


def _read_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(Config):
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value:
            out[f.name] = value
    return out


def load_config(
    path: Optional[Union[str, Path]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Config:
    """Resolve a :class:`Config` from file, environment and overrides.

    Raises:
        ConfigError: A required key is missing or empty, or the file is unreadable.

    Examples:
        >>> load_config(endpoint="https://sharing.example.com/delta-sharing",
        ...             bearer_token="token", share="my_share").schema
        'public'
    """
    merged: Dict[str, Any] = {}
    if path is not None:
        merged.update(_read_yaml(Path(path)))
    merged.update(_read_env(os.environ if environ is None else environ))
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return Config.from_mapping(merged)


__all__ = ["Config", "load_config", "ENV_PREFIX", "DEFAULT_SCHEMA", "DEFAULT_TIMEOUT_SEC"]
