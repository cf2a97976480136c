"""Node configuration: JSON file, environment, then CLI overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

from kube_swarm.network.credentials import SERVICE_ACCOUNT_PATH
from kube_swarm.network.errors import ConfigError

KUBERNETES_API_URL = "https://kubernetes.default.svc.cluster.local"
DEFAULT_PORT = 8470
POLL_INTERVAL = 5.0

# Environment variable → (config key, converter)
ENV_OVERRIDES: dict[str, tuple[str, Any]] = {
    "SWARM_NODE_BASENAME": ("node_basename", str),
    "SWARM_SELECTOR": ("selector", str),
    "SWARM_API_URL": ("api_url", str),
    "SWARM_POLL_INTERVAL": ("poll_interval", float),
    "SWARM_PORT": ("port", int),
    "POD_IP": ("node_address", str),
}

# Numeric fields, which a JSON file may give as strings
NUMERIC_FIELDS: dict[str, Any] = {
    "poll_interval": float,
    "initial_delay": float,
    "request_timeout": float,
    "port": int,
    "peer_port": int,
}


def _default_address() -> str:
    return os.environ.get("POD_IP", "127.0.0.1")


@dataclass
class ClusterConfig:
    """Configuration for a swarm node and its Kubernetes discovery."""

    node_basename: str
    selector: str = ""
    api_url: str = KUBERNETES_API_URL
    service_account_path: str = SERVICE_ACCOUNT_PATH
    poll_interval: float = POLL_INTERVAL
    initial_delay: float = 0.0
    request_timeout: float | None = None  # None = aiohttp default
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    peer_port: int = DEFAULT_PORT
    node_address: str = field(default_factory=_default_address)

    def __post_init__(self) -> None:
        if not self.node_basename:
            raise ConfigError("node_basename is required")
        for name, convert in NUMERIC_FIELDS.items():
            value = getattr(self, name)
            if value is None:
                continue
            try:
                setattr(self, name, convert(value))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {name}: {value!r}") from e
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.initial_delay < 0:
            raise ConfigError(f"initial_delay must be >= 0, got {self.initial_delay}")

    @property
    def node_name(self) -> str:
        """Our own node name, as peers see it."""
        return f"{self.node_basename}@{self.node_address}"

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ClusterConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in raw.items() if k in known and v is not None}
        if "node_basename" not in kwargs:
            raise ConfigError("node_basename is required")
        return cls(**kwargs)


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect config values set through environment variables."""
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for var, (key, convert) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            try:
                overrides[key] = convert(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {var}: {value!r}") from e
    return overrides


def load_config(
    config_path: str | None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ClusterConfig:
    """Load node configuration.

    Precedence, lowest first: JSON file, environment, explicit overrides.

    Raises:
        ConfigError: if the file is missing or unreadable, or the merged
            configuration is invalid.
    """
    raw: dict[str, Any] = {}
    if config_path:
        path = Path(config_path).resolve()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must contain a JSON object: {path}")

    raw.update(env_overrides(environ))
    raw.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return ClusterConfig.from_dict(raw)
