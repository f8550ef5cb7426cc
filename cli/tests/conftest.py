"""Shared fixtures for robotctl CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def db(tmp_path: Path) -> Path:
    """Path of a fresh local state database for one test."""
    return tmp_path / "state.db"
