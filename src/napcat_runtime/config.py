"""Runtime configuration.

Loaded from a YAML file:

    napcat:                 # one endpoint, or use a "connections" list
      host: localhost
      port: 3333
      token: secret
    owners: [10001]
    admins: [10002]
    plugins: [hi]
    plugins_dir: plugins
    prefix: "#"
    log_level: INFO

``NAPCAT_TOKEN`` in the environment replaces the token of every endpoint
that does not set one.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "NAPCAT_TOKEN"


@dataclass
class ConnectionConfig:
    """One bridge endpoint."""

    protocol: str = "ws"
    host: str = "localhost"
    port: int = 3333
    token: str = ""
    name: str = ""

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def label(self) -> str:
        return self.name or f"{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConnectionConfig:
        return cls(
            protocol=data.get("protocol", "ws"),
            host=data.get("host", "localhost"),
            port=int(data.get("port", 3333)),
            token=data.get("token") or data.get("access_token") or "",
            name=data.get("name", ""),
        )


# Anything carrying a user id: a bare id, an event with user_id, or a message with sender
Principal = int | Mapping[str, Any]


def user_id_of(principal: Principal) -> int | None:
    if isinstance(principal, int):
        return principal
    sender = principal.get("sender")
    if isinstance(sender, Mapping) and "user_id" in sender:
        return int(sender["user_id"])
    user_id = principal.get("user_id")
    return int(user_id) if user_id is not None else None


@dataclass
class BotConfig:
    """Top-level runtime configuration."""

    connections: list[ConnectionConfig] = field(default_factory=list)
    owners: list[int] = field(default_factory=list)
    admins: list[int] = field(default_factory=list)
    plugins: list[str] = field(default_factory=list)
    plugins_dir: str = "plugins"
    prefix: str = "#"
    log_level: str = "INFO"
    online_push: bool = True
    dedup_capacity: int = 1000

    # Where this config was loaded from; save_config writes back here
    source: Path | None = None

    @property
    def main_owner(self) -> int | None:
        return self.owners[0] if self.owners else None

    def is_owner(self, principal: Principal) -> bool:
        """Whether the principal is a configured owner."""
        return user_id_of(principal) in self.owners

    def is_admin(self, principal: Principal) -> bool:
        """Whether the principal is a configured admin. Owners are not admins."""
        return user_id_of(principal) in self.admins

    def has_right(self, principal: Principal) -> bool:
        """Whether the principal is an owner or an admin."""
        return self.is_owner(principal) or self.is_admin(principal)

    def plugins_path(self, base: Path | None = None) -> Path:
        """Absolute plugins directory, relative to the config file if any."""
        path = Path(self.plugins_dir)
        if path.is_absolute():
            return path
        root = base or (self.source.parent if self.source else Path.cwd())
        return root / path

    def to_dict(self) -> dict[str, Any]:
        return {
            "connections": [
                {
                    "protocol": c.protocol,
                    "host": c.host,
                    "port": c.port,
                    "token": c.token,
                    "name": c.name,
                }
                for c in self.connections
            ],
            "owners": list(self.owners),
            "admins": list(self.admins),
            "plugins": list(self.plugins),
            "plugins_dir": self.plugins_dir,
            "prefix": self.prefix,
            "log_level": self.log_level,
            "online_push": self.online_push,
            "dedup_capacity": self.dedup_capacity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BotConfig:
        """Build a config from parsed YAML.

        Raises:
            ValueError: If no endpoint is configured
        """
        raw_connections = data.get("connections")
        if raw_connections is None and "napcat" in data:
            raw_connections = [data["napcat"]]
        if not raw_connections:
            raise ValueError("No bridge endpoint configured (expected 'napcat' or 'connections')")

        env_token = os.environ.get(TOKEN_ENV_VAR, "")
        connections = []
        for raw in raw_connections:
            connection = ConnectionConfig.from_dict(raw or {})
            if not connection.token and env_token:
                connection.token = env_token
            connections.append(connection)

        return cls(
            connections=connections,
            owners=[int(uid) for uid in data.get("owners") or []],
            admins=[int(uid) for uid in data.get("admins") or []],
            plugins=[str(name) for name in data.get("plugins") or []],
            plugins_dir=data.get("plugins_dir", "plugins"),
            prefix=data.get("prefix", "#"),
            log_level=str(data.get("log_level", "INFO")).upper(),
            online_push=bool(data.get("online_push", True)),
            dedup_capacity=int(data.get("dedup_capacity", 1000)),
        )


def load_config(path: str | Path) -> BotConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        The parsed configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping or has no endpoint
    """
    import yaml

    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(data).__name__}")

    config = BotConfig.from_dict(data)
    config.source = path.resolve()
    logger.debug(f"Loaded config from {path} ({len(config.connections)} endpoint(s))")
    return config


def save_config(config: BotConfig, path: str | Path | None = None) -> Path:
    """Write the configuration back to YAML.

    Plugin and admin lists are de-duplicated and sorted on the way out.

    Raises:
        ValueError: If no path is given and the config has no source file
    """
    import yaml

    target = Path(path) if path else config.source
    if target is None:
        raise ValueError("No path to save config to")

    config.plugins = sorted(set(config.plugins))
    config.admins = sorted(set(config.admins))

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved config to {target}")
    return target
