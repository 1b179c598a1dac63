from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

import pytest

from apiscan.config import ScanConfig
from tests._fixtures.classfile_builder import ArtifactBuilder


@pytest.fixture
def artifacts(tmp_path: Path) -> ArtifactBuilder:
    """Provide a jar/class-directory builder rooted at the pytest tmp_path."""
    return ArtifactBuilder(tmp_path)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ScanConfig]:
    """Build a ScanConfig writing into ``tmp_path/api`` unless overridden."""

    def _make(**overrides: object) -> ScanConfig:
        overrides.setdefault("output_dir", tmp_path / "api")
        return ScanConfig(root=tmp_path, **overrides)  # type: ignore[arg-type]

    return _make


@pytest.fixture(autouse=True)
def _reset_apiscan_logger() -> Iterator[None]:
    """Undo configure_logging so caplog sees records in every test."""
    yield
    logger = logging.getLogger("apiscan")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
