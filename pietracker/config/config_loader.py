"""
Purpose:
    - Load a tracker config file (TOML)
    - Validate the file layout (unknown sections and keys are rejected)
    - Turn its sections into validated config dataclasses

Layout:
    [general]      log_level
    [remote]       environment ("live" | "demo") or base_url, request_timeout_s
    [engine]       refresh_interval_s, stop_timeout_s
    [persistence]  state_path, save_interval_s
"""

import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pietracker.config.configs import (
    EngineConfig,
    Environment,
    PersistenceConfig,
    RemoteConfig,
    TrackerConfig,
)
from pietracker.errors.errors import ConfigurationError


class GeneralSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    log_level: str = Field(default="INFO", description="Root log level")


class RemoteSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    environment: Environment = Field(default=Environment.LIVE, description="live or demo")
    base_url: Optional[str] = Field(default=None, description="Overrides environment")
    request_timeout_s: float = Field(default=10.0, description="Per-request timeout")


class EngineSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    refresh_interval_s: float = Field(default=2.0, description="Seconds between cycles")
    stop_timeout_s: float = Field(default=5.0, description="Grace period on stop")


class PersistenceSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    state_path: str = Field(default="pies.json", description="State file location")
    save_interval_s: float = Field(default=30.0, description="Seconds between saves")


class ConfigFile(BaseModel):
    model_config = ConfigDict(extra="forbid")
    general: GeneralSection = Field(default_factory=GeneralSection)
    remote: RemoteSection = Field(default_factory=RemoteSection)
    engine: EngineSection = Field(default_factory=EngineSection)
    persistence: PersistenceSection = Field(default_factory=PersistenceSection)


def validation_error_parser(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "path": ".".join(map(str, err["loc"])),
            "message": err["msg"],
            "error_type": err["type"],
        }
        for err in error.errors()
    ]


class ConfigLoader:
    """
    Config-loader; loading toml file.
    """

    def __init__(self, base_dir: str = ".") -> None:
        self._base_dir = base_dir

    def _resolve(self, file_name: str | Path) -> Path:
        path = Path(file_name)
        if not path.is_absolute():
            path = Path(self._base_dir) / path
        return path

    def load(self, file_name: str | Path) -> dict[str, Any]:
        path = self._resolve(file_name)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("rb") as f:
            try:
                return tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc

    def parse(self, data: dict[str, Any]) -> ConfigFile:
        try:
            return ConfigFile(**data)
        except ValidationError as exc:
            issues = validation_error_parser(exc)
            first = issues[0]
            raise ConfigurationError(
                f"Invalid config at '{first['path']}': {first['message']}",
                field=first["path"],
                details={"issues": issues},
            ) from exc

    def load_tracker_config(self, file_name: Optional[str | Path] = None) -> TrackerConfig:
        """Build a TrackerConfig; without a file every section takes its defaults."""
        data = self.load(file_name) if file_name is not None else {}
        file_cfg = self.parse(data)

        state_path = Path(file_cfg.persistence.state_path)
        if not state_path.is_absolute():
            state_path = Path(self._base_dir) / state_path

        return TrackerConfig(
            remote=self._build_remote(file_cfg.remote),
            engine=EngineConfig(
                refresh_interval_s=file_cfg.engine.refresh_interval_s,
                stop_timeout_s=file_cfg.engine.stop_timeout_s,
            ),
            persistence=PersistenceConfig(
                state_path=state_path,
                save_interval_s=file_cfg.persistence.save_interval_s,
            ),
            log_level=file_cfg.general.log_level,
        )

    @staticmethod
    def _build_remote(section: RemoteSection) -> RemoteConfig:
        # An explicit base_url wins over the environment shorthand
        if section.base_url is not None:
            return RemoteConfig(
                base_url=section.base_url,
                request_timeout_s=section.request_timeout_s,
            )
        return RemoteConfig.for_environment(
            section.environment, request_timeout_s=section.request_timeout_s
        )
