"""
Settings for the strata engine itself, using pydantic-settings.

These control defaults applied when sources don't specify their own
values, and the CLI's logging. Loaded from:
1. Constructor arguments (highest precedence)
2. Environment variables with STRATA_ prefix
3. .env file named by STRATA_ENV_FILE (if it exists)

Examples:
  STRATA_DEFAULT_TIMEOUT=10
  STRATA_DEFAULT_RELOAD_SECONDS=300
  STRATA_LOG_LEVEL=DEBUG
"""

import datetime as _datetime
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

LogLevel = _typing.Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _get_env_file() -> str | None:
    """Return STRATA_ENV_FILE if it names an existing file."""
    if env_file := _os.environ.get("STRATA_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """Engine-wide defaults."""

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="STRATA_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    default_timeout: float | None = _pydantic.Field(
        default=None,
        gt=0,
        description="Seconds a source may take to load before it counts as failed.",
    )
    default_reload_seconds: float | None = _pydantic.Field(
        default=None,
        gt=0,
        description="Reload interval for remote sources that don't set one.",
    )
    log_level: LogLevel = "WARNING"

    @_pydantic.field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: _typing.Any) -> _typing.Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def default_reload_interval(self) -> _datetime.timedelta | None:
        if self.default_reload_seconds is None:
            return None
        return _datetime.timedelta(seconds=self.default_reload_seconds)
