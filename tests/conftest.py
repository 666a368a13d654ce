from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable source tree builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _propagate_extracodec_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    """Undo configure_logging() side effects so caplog sees every record."""
    logger = logging.getLogger("extracodec")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    monkeypatch.delenv("SOURCE_DATE_EPOCH", raising=False)
