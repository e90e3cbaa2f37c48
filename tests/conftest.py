"""Shared fixtures: settings rooted in a temporary directory and services built from them."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from savings_jars.core.settings import Settings
from savings_jars.services.jar_service import JarService
from savings_jars.services.snapshot_sync import SnapshotPublisher, SnapshotReader


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings whose every file lives under ``tmp_path``."""
    return Settings(
        data_dir=tmp_path / "data",
        shared_dir=tmp_path / "shared",
        defaults_database_url=f"sqlite:///{tmp_path / 'data' / 'defaults.db'}",
        refresh_poll_interval=0.05,
        log_file=None,
    )


@pytest.fixture
def service(settings: Settings) -> Iterator[JarService]:
    """A JarService using the mirrored store in ``tmp_path``."""
    svc = JarService.from_settings(settings)
    yield svc
    svc.defaults.close()


@pytest.fixture
def publisher(settings: Settings) -> SnapshotPublisher:
    """Owner-side snapshot publisher."""
    return SnapshotPublisher.from_settings(settings)


@pytest.fixture
def reader(settings: Settings) -> SnapshotReader:
    """Widget-side snapshot reader."""
    return SnapshotReader.from_settings(settings)
