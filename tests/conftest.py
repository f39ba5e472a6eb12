"""Shared pytest configuration for estate3."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable
from pathlib import Path

import pytest


def _insert_repo_root() -> None:
    """Make the repository root importable without an editable install."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    root = Path.cwd()
    log_level = os.environ.get("ESTATE_LOG_LEVEL", "INFO")
    return [f"estate3 repo: {root}", f"ESTATE_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_verbose_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin the default log level to INFO for readable test output."""

    monkeypatch.setenv("ESTATE_LOG_LEVEL", "INFO")
    monkeypatch.setenv("ESTATE_JSON_LOGS", "0")


@pytest.fixture
def config_root() -> Path:
    return Path(__file__).resolve().parents[1] / "configs"
