"""
Unit tests for the config dataclasses.
"""

from pathlib import Path

import pytest

from pietracker.config.configs import (
    EngineConfig,
    Environment,
    PersistenceConfig,
    RemoteConfig,
    TrackerConfig,
    TRADING212_ENDPOINTS,
)
from pietracker.errors.errors import ConfigurationError


class TestRemoteConfig:
    def test_defaults(self) -> None:
        config = RemoteConfig()
        assert config.base_url == "https://live.trading212.com/api/v0"
        assert config.request_timeout_s == 10.0

    def test_for_environment(self) -> None:
        config = RemoteConfig.for_environment(Environment.DEMO, request_timeout_s=4.0)
        assert config.base_url == TRADING212_ENDPOINTS[Environment.DEMO]
        assert config.request_timeout_s == 4.0

    def test_rejects_non_http_url(self) -> None:
        with pytest.raises(ConfigurationError) as exc:
            RemoteConfig(base_url="ftp://example.test")
        assert exc.value.field == "base_url"

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigurationError):
            RemoteConfig(request_timeout_s=0)


class TestEngineConfig:
    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.refresh_interval_s == 2.0
        assert config.stop_timeout_s == 5.0

    @pytest.mark.parametrize("field", ["refresh_interval_s", "stop_timeout_s"])
    def test_rejects_non_positive(self, field: str) -> None:
        with pytest.raises(ConfigurationError) as exc:
            EngineConfig(**{field: -1.0})
        assert exc.value.field == field


class TestPersistenceConfig:
    def test_path_coerced(self) -> None:
        config = PersistenceConfig(state_path="state/pies.json")  # type: ignore[arg-type]
        assert config.state_path == Path("state/pies.json")

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ConfigurationError):
            PersistenceConfig(save_interval_s=0)


class TestTrackerConfig:
    def test_log_level_normalized(self) -> None:
        assert TrackerConfig(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ConfigurationError, match="log_level"):
            TrackerConfig(log_level="chatty")

    def test_immutable(self) -> None:
        config = TrackerConfig()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"  # type: ignore[misc]
