"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Keep a developer's environment from leaking into test settings
for _key in [k for k in os.environ if k.startswith("NETBATCH_")]:
    del os.environ[_key]

import pytest
import structlog

from netbatch.config import ClientSettings, DataSettings, Settings
from netbatch.models.device import Device
from netbatch.services.worker import WorkerContext
from tests.mock_gateway import MockGateway


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def mock_gateway():
    """Provide a fresh MockGateway."""
    return MockGateway()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing input/output folders at a temp directory."""
    (tmp_path / "input").mkdir()
    (tmp_path / "output").mkdir()
    return Settings(
        client=ClientSettings(ssh_timeout=1),
        data=DataSettings(
            input_folder=tmp_path / "input",
            output_folder=tmp_path / "output",
        ),
    )


@pytest.fixture
def make_device():
    def _make(hostname="r1", configure=True, cmd_file="cmds.txt", platform="ios"):
        return Device(
            hostname=hostname,
            login="admin",
            password="secret",
            platform=platform,
            configure=configure,
            cmd_file=cmd_file,
        )

    return _make


@pytest.fixture
def make_context(settings, mock_gateway):
    """Build a WorkerContext from an in-memory command mapping."""

    def _make(commands, gateway=None):
        return WorkerContext(
            settings=settings,
            gateway=gateway or mock_gateway,
            commands={name: tuple(cmds) for name, cmds in commands.items()},
        )

    return _make
