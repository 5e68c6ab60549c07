"""
Tests for configuration values and environment loading
"""

import os

import pytest

from profiling_relay.config import (
    SUBJECT_KINDS,
    DatabaseBufferConfig,
    FileBufferConfig,
    RelayConfig,
    SendingConfig,
    SendingMode,
)
from profiling_relay.errors import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("PROFILING_RELAY_"):
            monkeypatch.delenv(key)
    return monkeypatch


class TestDefaults:
    def test_disabled_by_default(self):
        config = RelayConfig()
        assert config.enabled is False
        assert config.sample_rate == 1.0
        assert config.sending.mode is SendingMode.SYNC
        assert config.log_errors is True
        assert config.debug is False

    def test_default_patterns(self):
        config = RelayConfig()
        for kind in SUBJECT_KINDS:
            assert config.includes_for(kind) == (".*",)
        assert config.excludes_for("console") == ("queue:work",)
        assert config.excludes_for("http") == ()

    def test_unknown_kind_has_no_patterns(self):
        assert RelayConfig().includes_for("websocket") == ()

    def test_configs_are_immutable(self):
        config = RelayConfig()
        with pytest.raises(AttributeError):
            config.enabled = True


class TestValidation:
    @pytest.mark.parametrize("rate", [-0.5, 1.01, "half", None])
    def test_invalid_sample_rate(self, rate):
        with pytest.raises(ConfigurationError):
            RelayConfig(sample_rate=rate)

    def test_mode_is_parsed(self):
        assert SendingConfig(mode="FILE").mode is SendingMode.FILE
        assert SendingConfig(mode=SendingMode.DATABASE).mode is SendingMode.DATABASE

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError, match="Unknown sending mode"):
            SendingConfig(mode="redis")

    @pytest.mark.parametrize("timeout", [0, -1, "10", True])
    def test_invalid_timeout(self, timeout):
        with pytest.raises(ConfigurationError):
            SendingConfig(timeout=timeout)

    @pytest.mark.parametrize("chunk_size", [0, -5, 2.5, False])
    def test_invalid_chunk_size(self, chunk_size):
        with pytest.raises(ConfigurationError):
            SendingConfig(chunk_size=chunk_size)

    def test_patterns_are_frozen(self):
        config = RelayConfig(include={"http": ["GET /*"]})
        assert config.includes_for("http") == ("GET /*",)

    @pytest.mark.parametrize(
        "include",
        [["GET /*"], {"http": "GET /*"}, {"http": ["GET /*", 3]}, {"http": None}],
    )
    def test_invalid_pattern_maps(self, include):
        with pytest.raises(ConfigurationError):
            RelayConfig(include=include)


class TestFromEnv:
    def test_defaults(self, clean_env):
        config = RelayConfig.from_env()
        assert config == RelayConfig()

    def test_reads_environment(self, clean_env):
        clean_env.setenv("PROFILING_RELAY_ENABLED", "true")
        clean_env.setenv("PROFILING_RELAY_SAMPLE_RATE", "0.25")
        clean_env.setenv("PROFILING_RELAY_SENDING_MODE", "database")
        clean_env.setenv("PROFILING_RELAY_SENDING_TIMEOUT", "2.5")
        clean_env.setenv("PROFILING_RELAY_SENDING_URL", "https://collector.internal/v1")
        clean_env.setenv("PROFILING_RELAY_API_KEY", "secret")
        clean_env.setenv("PROFILING_RELAY_CHUNK_SIZE", "50")
        clean_env.setenv("PROFILING_RELAY_DATABASE_URL", "sqlite://")
        clean_env.setenv("PROFILING_RELAY_DATABASE_TABLE", "traces")
        clean_env.setenv("PROFILING_RELAY_FILE_DIRECTORY", "/var/spool/traces")
        clean_env.setenv("PROFILING_RELAY_ENVIRONMENT", "production")
        clean_env.setenv("PROFILING_RELAY_APP_VERSION", "2.0.0")
        clean_env.setenv("PROFILING_RELAY_LOG_ERRORS", "no")
        clean_env.setenv("PROFILING_RELAY_DEBUG", "1")

        config = RelayConfig.from_env()
        assert config.enabled is True
        assert config.sample_rate == 0.25
        assert config.sending == SendingConfig(
            mode="database",
            timeout=2.5,
            url="https://collector.internal/v1",
            api_key="secret",
            chunk_size=50,
        )
        assert config.database == DatabaseBufferConfig(url="sqlite://", table="traces")
        assert config.file == FileBufferConfig(directory="/var/spool/traces")
        assert config.environment == "production"
        assert config.app_version == "2.0.0"
        assert config.log_errors is False
        assert config.debug is True

    def test_pattern_lists(self, clean_env):
        clean_env.setenv("PROFILING_RELAY_INCLUDE_HTTP", "GET /api/*, POST /api/*")
        clean_env.setenv("PROFILING_RELAY_EXCLUDE_CONSOLE", "")

        config = RelayConfig.from_env()
        assert config.includes_for("http") == ("GET /api/*", "POST /api/*")
        assert config.includes_for("queue") == (".*",)
        assert config.excludes_for("console") == ()

    @pytest.mark.parametrize(
        "key,value",
        [
            ("PROFILING_RELAY_SAMPLE_RATE", "lots"),
            ("PROFILING_RELAY_SAMPLE_RATE", "2"),
            ("PROFILING_RELAY_CHUNK_SIZE", "1.5"),
            ("PROFILING_RELAY_SENDING_TIMEOUT", "soon"),
            ("PROFILING_RELAY_SENDING_MODE", "carrier-pigeon"),
        ],
    )
    def test_invalid_values(self, clean_env, key, value):
        clean_env.setenv(key, value)
        with pytest.raises(ConfigurationError):
            RelayConfig.from_env()
