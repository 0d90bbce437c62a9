from __future__ import annotations

from pathlib import Path

import pytest

from pilaf import InMemoryBackend, StateManager


@pytest.fixture()
def artifact_dir(tmp_path: Path) -> Path:
    path = tmp_path / "artifacts"
    path.mkdir()
    return path


@pytest.fixture()
def backend() -> InMemoryBackend:
    server = InMemoryBackend()
    server.initialize()
    server.connect_player("Steve")
    return server


@pytest.fixture()
def state() -> StateManager:
    return StateManager()
