"""Shared pytest fixtures for org-diary tests."""

import tempfile
from pathlib import Path

import pytest

from org_diary.config import DiaryConfig
from org_diary.engine import DiaryEngine


@pytest.fixture
def temp_project():
    """Create a temporary diary root."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return DiaryConfig(root=temp_project)


@pytest.fixture
def engine(config):
    """Create a test engine with proper cleanup."""
    eng = DiaryEngine(config)
    yield eng
    # Close the index database before the temp directory goes away
    eng.close()


@pytest.fixture
def engine_factory(temp_project):
    """Factory fixture that creates engines and ensures cleanup.

    Usage:
        def test_example(engine_factory, temp_project):
            config = DiaryConfig(root=temp_project, late_threshold_hours=4)
            engine = engine_factory(config)
    """
    engines = []

    def _create(config):
        eng = DiaryEngine(config)
        engines.append(eng)
        return eng

    yield _create

    for eng in engines:
        eng.close()
