"""Tests for the background refresh watcher."""

import threading
import time
from collections.abc import Callable

import pytest

from savings_jars.services.jar_service import JarService
from savings_jars.services.snapshot_sync import SnapshotReader
from savings_jars.workers.refresh_watcher import RefreshWatcher


def test_run_once_republishes_on_request(service: JarService, reader: SnapshotReader) -> None:
    """A pending request is consumed and the snapshot written again."""
    watcher = RefreshWatcher(service, service.publisher)
    if watcher.run_once():
        msg = "Expected nothing to do without a request"
        raise AssertionError(msg)
    service.create_jar("Watched", 100)
    service.publisher.snapshot_path.unlink()
    reader.request_refresh()
    if not watcher.run_once():
        msg = "Expected the request to be handled"
        raise AssertionError(msg)
    if [j.name for j in reader.all_jars()] != ["Watched"]:
        msg = "Expected the snapshot to be republished"
        raise AssertionError(msg)


def test_background_thread_handles_requests(service: JarService, reader: SnapshotReader) -> None:
    """The started watcher picks up requests on its own and stops cleanly."""
    watcher = RefreshWatcher(service, service.publisher, interval=0.01)
    watcher.start()
    try:
        service.publisher.snapshot_path.unlink()
        reader.request_refresh()
        deadline = time.monotonic() + 5
        while reader.read_snapshot() is None and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        watcher.stop(timeout=1)
    if reader.read_snapshot() is None:
        msg = "Expected the watcher to republish the snapshot"
        raise AssertionError(msg)
    if watcher.running:
        msg = "Expected the watcher thread to have stopped"
        raise AssertionError(msg)


def _wait_for(condition: Callable[[], bool], timeout: float = 5) -> bool:
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        time.sleep(0.01)
    return condition()


def test_unexpected_error_keeps_thread_alive(
    service: JarService, reader: SnapshotReader, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failing republish is logged and the next request is still handled."""
    calls: list[int] = []

    def flaky_republish() -> None:
        calls.append(1)
        if len(calls) == 1:
            msg = "snapshot projection failed"
            raise RuntimeError(msg)

    monkeypatch.setattr(service, "republish", flaky_republish)
    watcher = RefreshWatcher(service, service.publisher, interval=0.01)
    watcher.start()
    try:
        reader.request_refresh()
        _wait_for(lambda: len(calls) >= 1)
        reader.request_refresh()
        if not _wait_for(lambda: len(calls) >= 2):  # noqa: PLR2004
            msg = "Expected the watcher to handle a request after an unexpected error"
            raise AssertionError(msg)
    finally:
        watcher.stop(timeout=1)


def test_stop_timeout_keeps_thread_reference(
    service: JarService, reader: SnapshotReader, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A thread still busy when stop() times out is reported as running until it finishes."""
    entered = threading.Event()
    release = threading.Event()

    def slow_republish() -> None:
        entered.set()
        release.wait(5)

    monkeypatch.setattr(service, "republish", slow_republish)
    watcher = RefreshWatcher(service, service.publisher, interval=0.01)
    watcher.start()
    try:
        reader.request_refresh()
        entered.wait(5)
        watcher.stop(timeout=0.01)
        if not watcher.running:
            msg = "Expected the busy thread to still be tracked"
            raise AssertionError(msg)
    finally:
        release.set()
        watcher.stop(timeout=1)
    if watcher.running:
        msg = "Expected the watcher thread to have stopped"
        raise AssertionError(msg)
