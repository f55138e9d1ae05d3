"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all stagegate settings
- Falls back to sensible defaults when the config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- A rollout default timeout of 0 means "none": every resource must then
  declare its own readiness timeout
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RolloutConfig:
    """Rollout defaults."""
    default_timeout_seconds: float = 0.0
    namespace: str = "default"

    @property
    def default_timeout(self) -> Optional[float]:
        return self.default_timeout_seconds if self.default_timeout_seconds > 0 else None


@dataclass(frozen=True)
class ProbeConfig:
    """Readiness polling backoff."""
    initial_interval: float = 1.0
    max_interval: float = 10.0
    multiplier: float = 2.0


@dataclass(frozen=True)
class AutoscaleConfig:
    """Autoscale control loop configuration."""
    interval_seconds: float = 15.0
    cooldown_seconds: int = 300
    tolerance: float = 0.0


@dataclass(frozen=True)
class PlatformConfig:
    """Platform adapter configuration."""
    kubectl_path: str = "kubectl"
    context: str = ""
    command_timeout: int = 60
    simulate: bool = False


@dataclass(frozen=True)
class StorageConfig:
    """Rollout history storage."""
    db_path: str = "stagegate.db"


@dataclass(frozen=True)
class DashboardConfig:
    """TUI dashboard configuration."""
    refresh_interval: float = 5.0


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration. An empty endpoint disables export."""
    endpoint: str = ""
    service_name: str = "stagegate"
    environment: str = "development"
    insecure: bool = False


@dataclass(frozen=True)
class StagegateConfig:
    """Root configuration for the stagegate application."""
    rollout: RolloutConfig = field(default_factory=RolloutConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    autoscale: AutoscaleConfig = field(default_factory=AutoscaleConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"
    log_json: bool = False


_SECTIONS = {
    "rollout": RolloutConfig,
    "probe": ProbeConfig,
    "autoscale": AutoscaleConfig,
    "platform": PlatformConfig,
    "storage": StorageConfig,
    "dashboard": DashboardConfig,
    "telemetry": TelemetryConfig,
}


def _env_override(data: dict, prefix: str = "STAGEGATE") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern STAGEGATE_SECTION_KEY.
    For example: STAGEGATE_PROBE_MAX_INTERVAL=5, STAGEGATE_LOG_LEVEL=DEBUG
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        parts = name.split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            data.setdefault(section, {})[field_name] = value
        else:
            data[name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _coerce(value, type_name: str):
    if not isinstance(value, str):
        return value
    if type_name == "int":
        return int(value)
    if type_name == "float":
        return float(value)
    if type_name == "bool":
        return value.lower() in ("true", "1", "yes")
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid = {f.name: f.type for f in dataclasses.fields(cls)}
    filtered = {k: _coerce(v, valid[k]) for k, v in data.items() if k in valid}
    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "STAGEGATE",
) -> StagegateConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (STAGEGATE_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to stagegate.json in CWD.
        env_prefix: Environment variable prefix. Defaults to STAGEGATE.
    """
    config_path = Path(path) if path else Path("stagegate.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name, {}))
        for name, cls in _SECTIONS.items()
    }
    return StagegateConfig(
        **sections,
        log_level=str(data.get("log_level", "WARNING")).upper(),
        log_json=_coerce(data.get("log_json", False), "bool"),
    )
