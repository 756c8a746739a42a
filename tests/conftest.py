from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest

from vmprep.logging_utils import reset_logging


@pytest.fixture
def features_dir(tmp_path: Path) -> Path:
    d = tmp_path / "features"
    d.mkdir()
    return d


@pytest.fixture
def write_feature(features_dir: Path):
    """Write a feature unit file into the features directory and return its path."""

    def _write(filename: str, source: str) -> Path:
        p = features_dir / filename
        p.write_text(textwrap.dedent(source), encoding="utf-8")
        return p

    return _write


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()
    logging.getLogger().setLevel(logging.WARNING)
