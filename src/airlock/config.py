# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Local ship config file (``ship_config.yaml``)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from airlock.persistence import atomic_write
from airlock.session.http import HttpShipSession

_log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("ship_config.yaml")

BAREBONES_SHIP_CONFIG_YAML = """\
# IP address of your Urbit ship (default is local)
ship_ip: "0.0.0.0"
# Port that the ship is on
ship_port: "8080"
# The `+code` of your ship
ship_code: "lidlut-tabwed-pillex-ridrup"
"""

_REQUIRED_KEYS = ("ship_ip", "ship_port", "ship_code")


class ConfigError(Exception):
    """The ship config file is missing, unreadable or incomplete."""


@dataclass(frozen=True)
class ShipConfig:
    """Where the ship is and how to log in."""

    ip: str
    port: str
    code: str

    @property
    def url(self) -> str:
        return f"http://{self.ip}:{self.port}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShipConfig:
        missing = [k for k in _REQUIRED_KEYS if data.get(k) in (None, "")]
        if missing:
            raise ConfigError(f"ship config missing keys: {', '.join(missing)}")
        return cls(
            ip=str(data["ship_ip"]),
            port=str(data["ship_port"]),
            code=str(data["ship_code"]),
        )


def create_new_ship_config_file(path: Path = DEFAULT_CONFIG_FILE) -> bool:
    """Write the barebones config template. False if the file already exists."""
    created = atomic_write(path, BAREBONES_SHIP_CONFIG_YAML.encode(), overwrite=False)
    if created:
        _log.info("wrote ship config template to %s", path)
    return created


def load_ship_config(path: Path = DEFAULT_CONFIG_FILE) -> ShipConfig:
    """Parse a ship config file. Raises ConfigError on any problem."""
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"ship config not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"ship config {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"ship config {path} must be a mapping")
    return ShipConfig.from_dict(data)


async def session_from_config(
    path: Path = DEFAULT_CONFIG_FILE,
    **kwargs: Any,
) -> HttpShipSession:
    """Load the config and log in. Extra kwargs go to HttpShipSession.login."""
    config = load_ship_config(path)
    return await HttpShipSession.login(config.url, config.code, **kwargs)
