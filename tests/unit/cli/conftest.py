"""CLI-specific test fixtures.

This module provides fixtures for testing CLI commands using Click's
CliRunner inside a temporary project directory.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner.

    Returns:
        CliRunner: CLI runner.
    """
    return CliRunner()


@pytest.fixture
def cli_project(project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from inside a temporary project directory.

    Returns:
        Path: Project root containing an empty ``original`` directory.
    """
    monkeypatch.chdir(project_dir)
    return project_dir


@pytest.fixture
def write_config(cli_project: Path) -> Callable[..., Path]:
    """Provide a factory that writes ``.imagerc`` into the project.

    The default settings avoid AVIF so tests do not depend on the codec
    build, and disable retry delays.

    Returns:
        Callable accepting camelCase settings that override the defaults.
    """

    def factory(**settings: object) -> Path:
        data: dict[str, object] = {
            "formats": ["webp", "original"],
            "errorRecovery": {"retryDelay": 0},
        }
        data.update(settings)
        path = cli_project / ".imagerc"
        path.write_text(json.dumps(data))
        return path

    return factory
