"""Shared-container sync between the owning process and the read-only widget reader.

The publisher writes a ``WidgetSnapshot`` into the shared directory with an atomic replace, so a
concurrent reader sees either the previous or the new document in full. The reader never touches
jar data; the only thing it may write is a refresh-request marker, which the publisher consumes.
"""

import json
from collections.abc import Iterable
from pathlib import Path
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from savings_jars.core.codec import upgrade_snapshot_record
from savings_jars.core.errors import NotFoundError
from savings_jars.core.models import Jar, WidgetJar, WidgetSnapshot
from savings_jars.core.settings import Settings
from savings_jars.core.utils import atomic_write_bytes, get_logger, utcnow_iso

logger = get_logger("savings-jars.sync")


class SnapshotPublisher:
    """Owner-side writer of the widget snapshot."""

    def __init__(self, snapshot_path: str | Path, refresh_request_path: str | Path) -> None:
        """Initialise the publisher with the snapshot and refresh-marker locations."""
        self.snapshot_path = Path(snapshot_path)
        self.refresh_request_path = Path(refresh_request_path)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SnapshotPublisher":
        """Build the publisher from application settings."""
        return cls(settings.snapshot_path, settings.refresh_request_path)

    def publish_snapshot(self, jars: Iterable[Jar], selected_jar_id: UUID | None = None) -> WidgetSnapshot:
        """Project ``jars`` and atomically replace the published snapshot."""
        snapshot = WidgetSnapshot.from_jars(jars, selected_jar_id)
        atomic_write_bytes(self.snapshot_path, snapshot.model_dump_json(by_alias=True, indent=2).encode("utf-8"))
        logger.info(f"Published widget snapshot with {len(snapshot.all_jars)} jars to {self.snapshot_path}")
        return snapshot

    def consume_refresh_request(self) -> bool:
        """Remove a pending refresh request; return whether one was pending."""
        try:
            self.refresh_request_path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Widget requested a refresh")
        return True


class SnapshotReader:
    """Read-only access to the published snapshot, as used by the widget."""

    def __init__(self, snapshot_path: str | Path, refresh_request_path: str | Path) -> None:
        """Initialise the reader with the snapshot and refresh-marker locations."""
        self.snapshot_path = Path(snapshot_path)
        self.refresh_request_path = Path(refresh_request_path)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SnapshotReader":
        """Build the reader from application settings."""
        return cls(settings.snapshot_path, settings.refresh_request_path)

    def read_snapshot(self) -> WidgetSnapshot | None:
        """Return the published snapshot with a validated selection, or None if there is none usable."""
        try:
            data = self.snapshot_path.read_bytes()
        except FileNotFoundError:
            logger.info(f"Widget snapshot not found at {self.snapshot_path}")
            return None
        except OSError as exc:
            logger.warning(f"Could not read widget snapshot: {exc}")
            return None
        try:
            record = json.loads(data)
            snapshot = WidgetSnapshot.model_validate(upgrade_snapshot_record(record))
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError, PydanticValidationError) as exc:
            logger.warning(f"Ignoring undecodable widget snapshot: {exc}")
            return None
        return snapshot.resolve_selection()

    def all_jars(self) -> list[WidgetJar]:
        """Return every published jar."""
        snapshot = self.read_snapshot()
        return list(snapshot.all_jars) if snapshot else []

    def jar_by_id(self, jar_id: UUID) -> WidgetJar:
        """Return one published jar or raise NotFoundError."""
        snapshot = self.read_snapshot()
        jar = snapshot.jar_by_id(jar_id) if snapshot else None
        if jar is None:
            msg = f"Jar {jar_id} not found"
            raise NotFoundError(msg)
        return jar

    def request_refresh(self) -> None:
        """Ask the owning process to publish again."""
        atomic_write_bytes(self.refresh_request_path, json.dumps({"requestedAt": utcnow_iso()}).encode("utf-8"))
        logger.info("Requested widget snapshot refresh")
