"""JSON file store: the primary on-disk home of the jar collection."""

from collections.abc import Sequence
from pathlib import Path

from savings_jars.core.codec import decode_csv_records, decode_json_records, encode_jars_json, parse_jar_records
from savings_jars.core.errors import PersistenceError
from savings_jars.core.models import Jar
from savings_jars.core.settings import Settings
from savings_jars.core.utils import atomic_write_bytes, get_logger
from savings_jars.stores.base import BaseJarStore

logger = get_logger("savings-jars.store.file")


class JsonFileJarStore(BaseJarStore):
    """Stores jars as a JSON array, replacing the file atomically on every save."""

    name = "file"

    def __init__(self, path: str | Path, legacy_csv_path: str | Path | None = None) -> None:
        """Initialise the store with the JSON path and an optional legacy CSV to migrate from."""
        self.path = Path(path)
        self.legacy_csv_path = Path(legacy_csv_path) if legacy_csv_path else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "JsonFileJarStore":
        """Build the store from application settings."""
        return cls(settings.jars_path, settings.legacy_csv_path)

    def read(self) -> list[Jar] | None:
        """Decode the JSON file, dropping individual records that fail validation."""
        if not self.path.exists():
            return self._read_legacy_csv()
        try:
            records = decode_json_records(self.path.read_bytes())
        except (OSError, ValueError) as exc:
            msg = f"Could not decode {self.path}: {exc}"
            raise PersistenceError(msg) from exc
        jars, errors = parse_jar_records(records)
        for error in errors:
            logger.warning(f"Dropped unreadable jar from {self.path.name}: {error}")
        logger.info(f"Loaded {len(jars)} jars from {self.path}")
        return jars

    def save(self, jars: Sequence[Jar]) -> None:
        """Write the collection to disk atomically."""
        atomic_write_bytes(self.path, encode_jars_json(jars))
        logger.debug(f"Saved {len(jars)} jars to {self.path}")

    def _read_legacy_csv(self) -> list[Jar] | None:
        if self.legacy_csv_path is None or not self.legacy_csv_path.exists():
            return None
        try:
            records = decode_csv_records(self.legacy_csv_path.read_bytes())
        except (OSError, ValueError) as exc:
            msg = f"Could not decode legacy file {self.legacy_csv_path}: {exc}"
            raise PersistenceError(msg) from exc
        jars, errors = parse_jar_records(records)
        for error in errors:
            logger.warning(f"Dropped unreadable jar from {self.legacy_csv_path.name}: {error}")
        logger.info(f"Migrating {len(jars)} jars from legacy CSV {self.legacy_csv_path}")
        return jars
