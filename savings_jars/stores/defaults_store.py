"""Defaults-database store and the mirrored store that pairs it with the JSON file."""

from collections.abc import Sequence

from savings_jars.core.codec import decode_json_records, encode_jars_json, parse_jar_records
from savings_jars.core.db import JARS_KEY, DefaultsStore
from savings_jars.core.errors import PersistenceError
from savings_jars.core.models import Jar
from savings_jars.core.settings import Settings
from savings_jars.core.utils import get_logger
from savings_jars.stores.base import BaseJarStore
from savings_jars.stores.file_store import JsonFileJarStore

logger = get_logger("savings-jars.store.defaults")


class DefaultsJarStore(BaseJarStore):
    """Keeps the encoded collection as a single value in the defaults database."""

    name = "defaults"

    def __init__(self, defaults: DefaultsStore, key: str = JARS_KEY) -> None:
        """Initialise the store on top of a DefaultsStore."""
        self.defaults = defaults
        self.key = key

    @classmethod
    def from_settings(cls, settings: Settings) -> "DefaultsJarStore":
        """Build the store from application settings."""
        return cls(DefaultsStore.from_url(settings.defaults_database_url))

    def read(self) -> list[Jar] | None:
        """Decode the stored value, dropping individual records that fail validation."""
        blob = self.defaults.get(self.key)
        if blob is None:
            return None
        try:
            records = decode_json_records(blob)
        except ValueError as exc:
            msg = f"Could not decode defaults value {self.key!r}: {exc}"
            raise PersistenceError(msg) from exc
        jars, errors = parse_jar_records(records)
        for error in errors:
            logger.warning(f"Dropped unreadable jar from defaults: {error}")
        return jars

    def save(self, jars: Sequence[Jar]) -> None:
        """Replace the stored value."""
        self.defaults.set(self.key, encode_jars_json(jars).decode("utf-8"))


class MirroredJarStore(BaseJarStore):
    """Writes to a primary and a mirror store; reads the mirror when the primary is empty or damaged."""

    name = "mirrored"

    def __init__(self, primary: BaseJarStore, mirror: BaseJarStore) -> None:
        """Initialise with the primary store and its last-known-good mirror."""
        self.primary = primary
        self.mirror = mirror

    @classmethod
    def from_settings(cls, settings: Settings) -> "MirroredJarStore":
        """Build a JSON file store mirrored into the defaults database."""
        return cls(JsonFileJarStore.from_settings(settings), DefaultsJarStore.from_settings(settings))

    def read(self) -> list[Jar] | None:
        """Read the primary, falling back to the mirror."""
        try:
            jars = self.primary.read()
        except PersistenceError as exc:
            logger.warning(f"Primary store unreadable, using last known good copy: {exc}")
            return self.mirror.read()
        if jars is None:
            return self.mirror.read()
        return jars

    def save(self, jars: Sequence[Jar]) -> None:
        """Save to both stores; a primary failure is raised after the mirror has been attempted."""
        primary_error: PersistenceError | None = None
        try:
            self.primary.save(jars)
        except PersistenceError as exc:
            primary_error = exc
        try:
            self.mirror.save(jars)
        except PersistenceError as exc:
            logger.warning(f"Mirror store save failed: {exc}")
        if primary_error is not None:
            raise primary_error
