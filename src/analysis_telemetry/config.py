"""Configuration for the analysis telemetry service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any


CONFIG_ENV_VAR = "ANALYSIS_TELEMETRY_CONFIG"


class ConfigError(ValueError):
    """Raised when a configuration value is out of range."""
    pass


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060
    reload: bool = False


@dataclass
class TelemetryConfig:
    """Telemetry configuration."""
    enabled: bool = True
    sink_type: str = "console"  # console | file | zmq
    sink_config: dict[str, Any] = field(default_factory=dict)

    # Batching
    batch_size: int = 500
    flush_interval_seconds: float = 1.0

    # Queue
    max_queue_size: int = 10000


@dataclass
class SamplingConfig:
    """Throttling for high-frequency events."""
    # One computedError event is sent per this many computed errors
    computed_error_sample_rate: int = 100

    def __post_init__(self):
        if self.computed_error_sample_rate < 1:
            raise ConfigError(
                f"computed_error_sample_rate must be >= 1, got {self.computed_error_sample_rate}"
            )


@dataclass
class RetentionConfig:
    """Bounds on correlation state."""
    max_pending_requests: int = 10000
    pending_request_ttl_seconds: float = 300.0  # 0 = never expire
    max_tracked_files: int = 10000
    max_open_sessions: int = 1000

    def __post_init__(self):
        for name in ("max_pending_requests", "max_tracked_files", "max_open_sessions"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1")
        if self.pending_request_ttl_seconds < 0:
            raise ConfigError("pending_request_ttl_seconds must be >= 0")


@dataclass
class SelectionConfig:
    """Which completion sessions are tracked."""
    tracked_extensions: list[str] = field(default_factory=lambda: [".dart"])


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            server=ServerConfig(**data.get("server", {})),
            telemetry=TelemetryConfig(**data.get("telemetry", {})),
            sampling=SamplingConfig(**data.get("sampling", {})),
            retention=RetentionConfig(**data.get("retention", {})),
            selection=SelectionConfig(**data.get("selection", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


def load_config() -> Config:
    """Load config from the file named by ANALYSIS_TELEMETRY_CONFIG, else defaults."""
    path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Config()
    if path.endswith(".json"):
        return Config.from_json(path)
    return Config.from_yaml(path)
