"""
Configuration for the RETS poller.

Two layers, both on Pydantic Settings:

- `Settings`: process-wide knobs (logging, HTTP timeout, config file path)
  read from environment variables or `.env`.
- `PollerConfig`: the poller itself (server, credentials, queries, schedule),
  loaded from a TOML or JSON file by `load_config`. Any option missing from
  the file may come from a `RETS_`-prefixed environment variable, which keeps
  passwords out of config files.
"""
from __future__ import annotations

import json
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from rets_poller.domain.errors import ConfigurationError

DEFAULT_PROTOCOL_VERSION = "RETS/1.7.2"
DEFAULT_METADATA_TARGET = "@metadata"


class Settings(BaseSettings):
    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    poller_config: str = Field("rets.toml", alias="POLLER_CONFIG")

    # Session client
    http_timeout_seconds: float = Field(30.0, alias="HTTP_TIMEOUT_SECONDS")
    login_retry_attempts: int = Field(3, alias="LOGIN_RETRY_ATTEMPTS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class PollerConfig(BaseSettings):
    """
    Options of one poller instance.

    `schedule` and `queries` are kept raw here; they are validated by
    `parse_trigger` and `register_queries` so the error messages match the
    rest of the startup checks.
    """

    # The login endpoint of the MLS RETS server
    url: str
    username: str
    password: str
    user_agent: str
    user_agent_password: Optional[str] = None
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    auth_method: Literal["digest", "basic"] = "digest"

    queries: Dict[str, Any]
    schedule: Dict[str, Any]

    # Field holding each record; records go to the event root when unset
    target: Optional[str] = None
    # Empty string disables metadata entirely
    metadata_target: Optional[str] = DEFAULT_METADATA_TARGET
    collect_stats: bool = False

    # Decoration applied to every record event
    type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_prefix="RETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def redacted(self) -> Dict[str, Any]:
        """Config dump safe for logs and `info` output."""
        payload = self.model_dump()
        for secret in ("password", "user_agent_password"):
            if payload.get(secret):
                payload[secret] = "***"
        return payload


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read poller config '{path}': {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(raw.decode("utf-8"))
        else:
            data = tomllib.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot parse poller config '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Poller config '{path}' must be a table/object at top level")
    # A `[rets]` table mirrors the input block of a pipeline definition.
    if isinstance(data.get("rets"), dict):
        data = data["rets"]
    return data


def load_config(path: Path | str | None = None, **overrides: Any) -> PollerConfig:
    """
    Load and validate a PollerConfig from a TOML or JSON file.

    When `path` is None only environment variables and `overrides` are used.

    Raises
    ------
    ConfigurationError
        If the file is unreadable or a required option is missing/invalid.
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_config_file(Path(path)))
    values.update(overrides)
    try:
        return PollerConfig(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid poller config: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = [
    "DEFAULT_METADATA_TARGET",
    "DEFAULT_PROTOCOL_VERSION",
    "PollerConfig",
    "Settings",
    "get_settings",
    "load_config",
]
