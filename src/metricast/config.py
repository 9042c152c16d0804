"""Layered configuration: .metricast/config.toml -> METRICAST_* env vars -> defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib  # 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

# Fixed sampling cadence, not read from the config file.
BROADCAST_INTERVAL_SECONDS = 1.0

_TRUTHY = {"1", "true", "yes", "on"}


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """HTTP listener settings."""

    host: str = "0.0.0.0"
    port: int = 8082


@dataclass(frozen=True, slots=True)
class BroadcastConfig:
    """Broadcast loop settings."""

    send_timeout_seconds: float = 2.0
    skip_when_idle: bool = True


@dataclass(frozen=True, slots=True)
class MetricsConfig:
    """Metric collection settings."""

    disk_path: str = "/"


@dataclass(frozen=True, slots=True)
class Pm2Config:
    """pm2 process manager integration."""

    enabled: bool = True
    command: str = "pm2"
    timeout_seconds: float = 5.0


@dataclass(frozen=True, slots=True)
class MetricastConfig:
    """Top-level configuration container."""

    project_path: Path = field(default_factory=Path.cwd)
    server: ServerConfig = field(default_factory=ServerConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    pm2: Pm2Config = field(default_factory=Pm2Config)

    @property
    def metricast_dir(self) -> Path:
        return self.project_path / ".metricast"

    @property
    def config_path(self) -> Path:
        return self.metricast_dir / "config.toml"

    @classmethod
    def load(cls, project_path: Path | None = None) -> MetricastConfig:
        """Load config with layering: TOML file -> env vars -> defaults."""
        project = Path(project_path) if project_path else Path.cwd()
        toml_path = project / ".metricast" / "config.toml"

        toml_data: dict = {}
        if toml_path.is_file():
            with open(toml_path, "rb") as f:
                toml_data = tomllib.load(f)

        server_data = toml_data.get("server", {})
        broadcast_data = toml_data.get("broadcast", {})
        metrics_data = toml_data.get("metrics", {})
        pm2_data = toml_data.get("pm2", {})

        # Use literal defaults (slots=True prevents class-level attribute access)
        _server_defaults = ServerConfig()
        _broadcast_defaults = BroadcastConfig()
        _metrics_defaults = MetricsConfig()
        _pm2_defaults = Pm2Config()

        server = ServerConfig(
            host=os.environ.get(
                "METRICAST_HOST",
                server_data.get("host", _server_defaults.host),
            ),
            port=int(
                os.environ.get(
                    "METRICAST_PORT",
                    server_data.get("port", _server_defaults.port),
                )
            ),
        )

        broadcast = BroadcastConfig(
            send_timeout_seconds=float(
                os.environ.get(
                    "METRICAST_SEND_TIMEOUT",
                    broadcast_data.get(
                        "send_timeout_seconds",
                        _broadcast_defaults.send_timeout_seconds,
                    ),
                )
            ),
            skip_when_idle=_as_bool(
                os.environ.get(
                    "METRICAST_SKIP_WHEN_IDLE",
                    broadcast_data.get(
                        "skip_when_idle", _broadcast_defaults.skip_when_idle
                    ),
                )
            ),
        )

        metrics = MetricsConfig(
            disk_path=os.environ.get(
                "METRICAST_DISK_PATH",
                metrics_data.get("disk_path", _metrics_defaults.disk_path),
            ),
        )

        pm2 = Pm2Config(
            enabled=_as_bool(
                os.environ.get(
                    "METRICAST_PM2_ENABLED",
                    pm2_data.get("enabled", _pm2_defaults.enabled),
                )
            ),
            command=os.environ.get(
                "METRICAST_PM2_COMMAND",
                pm2_data.get("command", _pm2_defaults.command),
            ),
            timeout_seconds=float(
                os.environ.get(
                    "METRICAST_PM2_TIMEOUT",
                    pm2_data.get("timeout_seconds", _pm2_defaults.timeout_seconds),
                )
            ),
        )

        return cls(
            project_path=project,
            server=server,
            broadcast=broadcast,
            metrics=metrics,
            pm2=pm2,
        )
