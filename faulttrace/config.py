"""
Configuration: trace settings loaded from environment/.env.

Uses pydantic-settings so a process can switch tracing on, pick the threshold
and size the in-memory retention window without code changes:

    FAULTTRACE_SOURCE_NAME=myclient.ServiceClient
    FAULTTRACE_TRACE_LEVEL=warning
    FAULTTRACE_RETENTION_ENABLED=true
    FAULTTRACE_RETENTION_MINUTES=10

Settings are read once, at construction; TraceSource.from_settings and
TraceLogger.from_settings turn them into live objects.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .severity import SourceLevel

DEFAULT_SOURCE_NAME = "faulttrace.ServiceClient"


class TraceSettings(BaseSettings):
    """
    Trace source and logger settings.

    Load order (highest priority first):
      1. Keyword arguments
      2. Environment variables prefixed FAULTTRACE_
      3. .env file in the working directory
      4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="FAULTTRACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    source_name: str = Field(
        default=DEFAULT_SOURCE_NAME,
        min_length=1,
        description="Name of the trace source (and of its stdlib logger)",
    )
    trace_level: SourceLevel = Field(
        default=SourceLevel.OFF,
        description="Minimum severity passed to registered listeners",
    )
    retention_enabled: bool = Field(
        default=False,
        description="Keep recent log lines in memory",
    )
    retention_minutes: float = Field(
        default=5.0,
        gt=0,
        description="Maximum age of a retained log line, in minutes",
    )
    synchronize_last_error: bool = Field(
        default=False,
        description="Update last error text and exception under one lock",
    )

    @field_validator("trace_level", mode="before")
    @classmethod
    def normalize_trace_level(cls, value: object) -> object:
        """Accept level names in any case, e.g. ``WARNING`` or ``Warning``."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def retention_window(self) -> timedelta:
        return timedelta(minutes=self.retention_minutes)
