"""Tests for configuration module."""

import json
import os
import pytest
from unittest.mock import patch

from stagegate.infrastructure.config import (
    AutoscaleConfig,
    ProbeConfig,
    RolloutConfig,
    StagegateConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env():
    keep = {k: v for k, v in os.environ.items() if not k.startswith("STAGEGATE_")}
    with patch.dict(os.environ, keep, clear=True):
        yield


class TestDefaultConfig:
    def test_defaults(self):
        config = load_config(path="/nonexistent/stagegate.json")
        assert config.log_level == "WARNING"
        assert config.log_json is False
        assert config.rollout.default_timeout is None
        assert config.probe.initial_interval == 1.0
        assert config.probe.max_interval == 10.0
        assert config.autoscale.cooldown_seconds == 300
        assert config.storage.db_path == "stagegate.db"
        assert config.platform.simulate is False
        assert config.telemetry.endpoint == ""

    def test_all_sections_present(self):
        config = load_config(path="/nonexistent/stagegate.json")
        assert isinstance(config, StagegateConfig)
        assert isinstance(config.rollout, RolloutConfig)
        assert isinstance(config.probe, ProbeConfig)
        assert isinstance(config.autoscale, AutoscaleConfig)


class TestFileConfig:
    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "stagegate.json"
        config_file.write_text(json.dumps({
            "rollout": {"default_timeout_seconds": 90, "namespace": "shop"},
            "probe": {"max_interval": 5},
            "log_level": "info",
        }))

        config = load_config(path=str(config_file))

        assert config.rollout.default_timeout == 90
        assert config.rollout.namespace == "shop"
        assert config.probe.max_interval == 5
        assert config.log_level == "INFO"

    def test_unknown_keys_ignored(self, tmp_path):
        config_file = tmp_path / "stagegate.json"
        config_file.write_text(json.dumps({"probe": {"jitter": True}, "extra": {}}))
        config = load_config(path=str(config_file))
        assert config.probe == ProbeConfig()

    def test_invalid_json_falls_back_to_defaults(self, tmp_path):
        config_file = tmp_path / "stagegate.json"
        config_file.write_text("{not json")
        config = load_config(path=str(config_file))
        assert config == StagegateConfig()


class TestEnvOverride:
    def test_section_values_are_coerced(self):
        with patch.dict(os.environ, {
            "STAGEGATE_PROBE_MAX_INTERVAL": "2.5",
            "STAGEGATE_AUTOSCALE_COOLDOWN_SECONDS": "60",
            "STAGEGATE_PLATFORM_SIMULATE": "true",
        }):
            config = load_config(path="/nonexistent/stagegate.json")
        assert config.probe.max_interval == 2.5
        assert config.autoscale.cooldown_seconds == 60
        assert config.platform.simulate is True

    def test_root_values(self):
        with patch.dict(os.environ, {
            "STAGEGATE_LOG_LEVEL": "debug",
            "STAGEGATE_LOG_JSON": "1",
        }):
            config = load_config(path="/nonexistent/stagegate.json")
        assert config.log_level == "DEBUG"
        assert config.log_json is True

    def test_env_beats_file(self, tmp_path):
        config_file = tmp_path / "stagegate.json"
        config_file.write_text(json.dumps({"storage": {"db_path": "file.db"}}))
        with patch.dict(os.environ, {"STAGEGATE_STORAGE_DB_PATH": "env.db"}):
            config = load_config(path=str(config_file))
        assert config.storage.db_path == "env.db"


class TestImmutability:
    def test_frozen(self):
        config = StagegateConfig()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"
