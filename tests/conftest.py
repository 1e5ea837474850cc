from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.catalog import FakeCatalogFetcher, FakeClock
from tests._fixtures.project_builder import ProjectBuilder


@pytest.fixture
def project_builder(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture
def guidelines_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "guidelines"
    directory.mkdir()
    return directory


@pytest.fixture
def fake_fetcher() -> FakeCatalogFetcher:
    return FakeCatalogFetcher()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
