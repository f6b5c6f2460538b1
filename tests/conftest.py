"""Shared fixtures for taskit tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskit.store import SaveFile


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real config and data directories."""
    monkeypatch.setenv("TASKIT_CONFIG", str(tmp_path / "config" / "taskit.toml"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("TASKIT_FILE", raising=False)


@pytest.fixture
def save_path(tmp_path) -> Path:
    return tmp_path / "save.json"


@pytest.fixture
def save(save_path) -> SaveFile:
    return SaveFile(save_path)
