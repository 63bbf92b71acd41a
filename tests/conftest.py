# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Shared test configuration."""

import os
from pathlib import Path

import pytest

from airlock.config import DEFAULT_CONFIG_FILE, ConfigError, ShipConfig, load_ship_config


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests against a live ship (see ship_config.yaml).",
    )
    parser.addoption(
        "--run-stress",
        action="store_true",
        default=False,
        help="Run long-running stress tests.",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    skip_e2e = not config.getoption("--run-e2e")
    skip_stress = not config.getoption("--run-stress")
    for item in items:
        if skip_e2e and "e2e" in item.keywords:
            item.add_marker(pytest.mark.skip(reason="needs --run-e2e flag"))
        if skip_stress and "stress" in item.keywords:
            item.add_marker(pytest.mark.skip(reason="needs --run-stress flag"))


@pytest.fixture(scope="session")
def ship_config() -> ShipConfig:
    """Live ship settings. AIRLOCK_SHIP_CONFIG overrides the default path."""
    path = Path(os.environ.get("AIRLOCK_SHIP_CONFIG", DEFAULT_CONFIG_FILE))
    try:
        return load_ship_config(path)
    except ConfigError as exc:
        pytest.skip(f"no usable ship config: {exc}")
