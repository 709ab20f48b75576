"""Shared test fixtures for Squire."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from loguru import logger

from squire.download import ArtifactFetcher, MirrorScheduler
from squire.models import ArtifactDescriptor

from fakes import FakeSession


@pytest.fixture(autouse=True)
def reset_logger():
    """Keep loguru writing to stderr between tests."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Provide an empty mirror output root."""
    root = tmp_path / "mirror"
    root.mkdir()
    return root


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fetcher(session: FakeSession) -> ArtifactFetcher:
    return ArtifactFetcher(session=session, chunk_size=4)


@pytest.fixture
def scheduler(fetcher: ArtifactFetcher) -> MirrorScheduler:
    return MirrorScheduler(fetcher, concurrency_limit=2)


@pytest.fixture
def descriptor_for(output_dir: Path):
    """Build descriptors rooted in the test output directory."""

    def make(remote_path: str, checksum=None) -> ArtifactDescriptor:
        return ArtifactDescriptor.for_path(str(output_dir), remote_path, checksum)

    return make
