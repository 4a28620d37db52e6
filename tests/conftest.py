"""
Pytest configuration and fixtures for gateway tests.
"""

import shutil
from pathlib import Path

import pytest

from gateway.catalog.parser import CatalogParser
from gateway.catalog.schema import ConfigSnapshot
from gateway.catalog.store import SnapshotStore
from gateway.config import GatewaySettings, reset_settings

SHIPPED_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@pytest.fixture(autouse=True)
def _reset_settings():
    """Clear cached settings around every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Copy of the shipped configuration documents in a temp directory."""
    target = tmp_path / "config"
    shutil.copytree(SHIPPED_CONFIG_DIR, target)
    return target


@pytest.fixture
def test_settings(config_dir: Path) -> GatewaySettings:
    """Settings pointing at the temp configuration, with no LLM configured."""
    return GatewaySettings(
        config_dir=str(config_dir),
        llm_api_key=None,
        classifier_enabled=False,
        admin_token=None,
    )


@pytest.fixture
def parser(config_dir: Path, test_settings: GatewaySettings) -> CatalogParser:
    """Parser for the temp configuration directory."""
    return CatalogParser(
        config_dir,
        plans=test_settings.plans,
        default_plan=test_settings.default_plan,
        default_agent=test_settings.default_agent,
        fallback_agents=test_settings.fallback_agents,
    )


@pytest.fixture
def snapshot(parser: CatalogParser) -> ConfigSnapshot:
    """Snapshot of the shipped configuration."""
    return parser.load()


@pytest.fixture
def snapshot_store(parser: CatalogParser) -> SnapshotStore:
    """Snapshot store over the temp configuration."""
    return SnapshotStore(parser)
