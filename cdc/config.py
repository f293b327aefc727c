from __future__ import annotations
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from shared.log import get_logger
from shared.utils import is_port

from .connection import DEFAULT_TIMEOUT, Connection

logger = get_logger(__name__)

# Environment variable → config field
_ENV_OVERRIDES = {
    "CDC_HOST": "host",
    "CDC_PORT": "port",
    "CDC_USER": "user",
    "CDC_PASSWORD": "password",
    "CDC_TIMEOUT": "timeout",
}


class ConfigError(ValueError):
    """Raised when connector settings are missing or malformed."""
    pass


@dataclass(frozen=True)
class ConnectorConfig:
    host: str = "127.0.0.1"
    port: int = 4001
    user: str = "maxscale"
    password: str = ""
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if not is_port(self.port):
            raise ConfigError(f"port must be between 1 and 65535, got {self.port!r}")
        if not self.timeout > 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout!r}")

    def __repr__(self) -> str:
        return f"ConnectorConfig(host={self.host!r}, port={self.port}, user={self.user!r}, timeout={self.timeout})"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConnectorConfig":
        """Build a config from a mapping, ignoring unknown keys and coercing types"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**_coerce({k: v for k, v in data.items() if k in known}))

    def with_overrides(self, **overrides: Any) -> "ConnectorConfig":
        """Copy with every non-None override applied"""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **_coerce(values))

    def build_connection(self) -> Connection:
        """Build an unconnected Connection from these settings"""
        return Connection(self.host, self.port, self.user, self.password, self.timeout)


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(values)
    try:
        if "port" in result:
            result["port"] = int(result["port"])
        if "timeout" in result:
            result["timeout"] = float(result["timeout"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config value: {e}")
    for key in ("host", "user", "password"):
        if key in result:
            result[key] = str(result[key])
    return result


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load connector settings from YAML, accepting a top-level mapping or a 'cdc:' section."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    section = data.get("cdc", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'cdc' section in {path} must be a mapping")
    return section


def load_config(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None, **overrides: Any) -> ConnectorConfig:
    """
    Resolve connector settings.

    Precedence, lowest first: defaults, YAML file, CDC_* environment
    variables, explicit keyword overrides.
    """
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    if path is not None:
        values.update(_load_yaml(Path(path)))
        logger.debug("Loaded config from %s", path)

    for var, key in _ENV_OVERRIDES.items():
        if env.get(var):
            values[key] = env[var]

    config = ConnectorConfig.from_mapping(values)
    return config.with_overrides(**overrides)
