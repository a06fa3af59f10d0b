"""
Configuration types for the pie tracker.

Provides immutable, validated configuration dataclasses for the remote source,
the refresh engine and the persistence layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pietracker.errors.errors import ConfigurationError


class Environment(str, Enum):
    """Trading 212 API environments."""

    LIVE = "live"
    DEMO = "demo"


TRADING212_ENDPOINTS: dict[Environment, str] = {
    Environment.LIVE: "https://live.trading212.com/api/v0",
    Environment.DEMO: "https://demo.trading212.com/api/v0",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class RemoteConfig:
    """Configuration for the portfolio API client."""

    base_url: str = TRADING212_ENDPOINTS[Environment.LIVE]

    # Upper bound for a single request, connect to last byte
    request_timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                "base_url must be an http(s) URL",
                field="base_url",
                value=self.base_url,
            )
        if self.request_timeout_s <= 0:
            raise ConfigurationError(
                "request_timeout_s must be positive",
                field="request_timeout_s",
                value=self.request_timeout_s,
            )

    @classmethod
    def for_environment(cls, env: Environment, request_timeout_s: float = 10.0) -> RemoteConfig:
        return cls(base_url=TRADING212_ENDPOINTS[env], request_timeout_s=request_timeout_s)


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the refresh loop."""

    refresh_interval_s: float = 2.0
    stop_timeout_s: float = 5.0  # Cancel the loop if it has not wound down by then

    def __post_init__(self) -> None:
        if self.refresh_interval_s <= 0:
            raise ConfigurationError(
                "refresh_interval_s must be positive",
                field="refresh_interval_s",
                value=self.refresh_interval_s,
            )
        if self.stop_timeout_s <= 0:
            raise ConfigurationError(
                "stop_timeout_s must be positive",
                field="stop_timeout_s",
                value=self.stop_timeout_s,
            )


@dataclass(frozen=True)
class PersistenceConfig:
    """Configuration for the state file."""

    state_path: Path = field(default_factory=lambda: Path("pies.json"))
    save_interval_s: float = 30.0

    def __post_init__(self) -> None:
        if not isinstance(self.state_path, Path):
            object.__setattr__(self, "state_path", Path(self.state_path))
        if self.save_interval_s <= 0:
            raise ConfigurationError(
                "save_interval_s must be positive",
                field="save_interval_s",
                value=self.save_interval_s,
            )


@dataclass(frozen=True)
class TrackerConfig:
    """
    Immutable top-level configuration.

    Example:
        config = TrackerConfig(
            remote=RemoteConfig.for_environment(Environment.DEMO),
            engine=EngineConfig(refresh_interval_s=5.0),
        )
    """

    remote: RemoteConfig = field(default_factory=RemoteConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        level = self.log_level.upper()
        if level not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}",
                field="log_level",
                value=self.log_level,
            )
        object.__setattr__(self, "log_level", level)
