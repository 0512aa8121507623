"""Shared fixtures."""

import pytest

from pc_optimizer import config as config_module
from pc_optimizer.config import ENV_BACKEND, ENV_HOME, ENV_TAG

from .mocks import make_adapters, make_engine, make_snapshot_manager


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep user config files and PC_OPTIMIZER_* variables out of tests."""
    monkeypatch.setattr(config_module, "CONFIG_SEARCH_PATHS", [])
    for name in (ENV_HOME, ENV_BACKEND, ENV_TAG):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def snapshots_dir(tmp_path):
    return tmp_path / "snapshots"


@pytest.fixture
def adapters():
    return make_adapters()


@pytest.fixture
def manager(snapshots_dir, adapters):
    return make_snapshot_manager(snapshots_dir, adapters)


@pytest.fixture
def engine(snapshots_dir, adapters):
    return make_engine(snapshots_dir, adapters)
