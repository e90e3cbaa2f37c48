"""JarService: the owning process's view of the jar collection.

The service holds the active collection and the featured-jar selection, applies every domain
operation, and after each mutation saves the full collection through the injected store and then
publishes a fresh widget snapshot. The store, publisher and defaults database are passed in, so
tests can substitute their own.
"""

import threading
from collections.abc import Sequence
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from savings_jars.core.db import SELECTED_JAR_KEY, DefaultsStore
from savings_jars.core.errors import InsufficientFundsError, NotFoundError, PersistenceError, ValidationError
from savings_jars.core.models import (
    BALANCE_TOLERANCE,
    Jar,
    Transaction,
    total_progress,
    total_saved,
    total_target,
)
from savings_jars.core.settings import Settings
from savings_jars.core.utils import get_logger
from savings_jars.services.snapshot_sync import SnapshotPublisher
from savings_jars.services.transfer import (
    ExportFormat,
    ImportStrategy,
    ImportSummary,
    export_all,
    export_jar_transactions,
    import_all,
    import_jar_transactions,
)
from savings_jars.stores import StoreRegistry
from savings_jars.stores.base import BaseJarStore

logger = get_logger("savings-jars.service")

JarRef = Jar | UUID


def _jar_id(jar: JarRef) -> UUID:
    return jar.id if isinstance(jar, Jar) else jar


def _require_positive(amount: float, field: str) -> None:
    if not amount > 0:
        msg = f"{field} must be greater than zero"
        raise ValidationError(msg)


def _validation_message(exc: PydanticValidationError) -> str:
    return "; ".join(err["msg"] for err in exc.errors())


class JarService:
    """Applies jar operations and keeps storage and the widget snapshot in step."""

    def __init__(
        self,
        store: BaseJarStore,
        publisher: SnapshotPublisher,
        defaults: DefaultsStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialise the service and load the stored collection."""
        self.store = store
        self.publisher = publisher
        self.defaults = defaults
        self.settings = settings or Settings()
        self._lock = threading.RLock()
        self._jars: list[Jar] = []
        self._selected_jar_id: UUID | None = None
        self._dirty = False
        self.become_active()

    @classmethod
    def from_settings(cls, settings: Settings) -> "JarService":
        """Wire the service with the configured store backend, publisher and defaults database."""
        return cls(
            store=StoreRegistry.create(settings),
            publisher=SnapshotPublisher.from_settings(settings),
            defaults=DefaultsStore.from_url(settings.defaults_database_url),
            settings=settings,
        )

    # --- Queries ---

    @property
    def jars(self) -> list[Jar]:
        """A copy of the active collection in stored order."""
        with self._lock:
            return list(self._jars)

    @property
    def has_unsaved_changes(self) -> bool:
        """Whether the last save failed and the stored collection is behind the in-memory one."""
        return self._dirty

    @property
    def featured_jar_id(self) -> UUID | None:
        """Id of the jar featured in the widget, if any."""
        return self._selected_jar_id

    def get_jar(self, jar: JarRef) -> Jar:
        """Return the jar with the given id or raise NotFoundError."""
        with self._lock:
            return self._jars[self._index_of(_jar_id(jar))]

    def total_saved(self) -> float:
        """Sum of all balances."""
        return total_saved(self.jars)

    def total_target(self) -> float:
        """Sum of all targets."""
        return total_target(self.jars)

    def total_progress(self) -> float:
        """Overall progress, clamped to ``[0, 1]``."""
        return total_progress(self.jars)

    # --- Mutations ---

    def create_jar(
        self,
        name: str,
        target_amount: float | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Jar:
        """Create an empty jar, filling unspecified fields from the configured defaults."""
        target = self.settings.default_target if target_amount is None else target_amount
        _require_positive(target, "targetAmount")
        try:
            jar = Jar(
                name=name,
                target_amount=target,
                color=color or self.settings.default_color,
                icon=icon or self.settings.default_icon,
            )
        except PydanticValidationError as exc:
            raise ValidationError(_validation_message(exc)) from exc
        with self._lock:
            self._commit([*self._jars, jar])
        logger.info(f"Created jar {jar.name!r} ({jar.id})")
        return jar

    def add_transaction(self, jar: JarRef, transaction: Transaction) -> Jar:
        """Append ``transaction`` to the jar and move its balance by the transaction amount."""
        with self._lock:
            index = self._index_of(_jar_id(jar))
            updated = self._jars[index].with_transaction(transaction, self.settings.transaction_history_limit)
            self._replace_at(index, updated)
        return updated

    def deposit(self, jar: JarRef, amount: float, note: str = "") -> Jar:
        """Add money to a jar."""
        _require_positive(amount, "amount")
        return self.add_transaction(jar, Transaction(amount=amount, note=note))

    def withdraw(self, jar: JarRef, amount: float, note: str = "") -> Jar:
        """Take money out of a jar; the balance may not go below zero."""
        _require_positive(amount, "amount")
        with self._lock:
            current = self.get_jar(jar)
            if amount - current.current_amount > BALANCE_TOLERANCE:
                msg = f"Cannot withdraw {amount:.2f} from {current.name!r}; balance is {current.current_amount:.2f}"
                raise InsufficientFundsError(msg)
            return self.add_transaction(current, Transaction(amount=-amount, note=note))

    def update_jar_metadata(
        self,
        jar: JarRef,
        name: str | None = None,
        target_amount: float | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Jar:
        """Replace the given display fields; balance and history are kept as they are."""
        if target_amount is not None:
            _require_positive(target_amount, "targetAmount")
        with self._lock:
            index = self._index_of(_jar_id(jar))
            try:
                updated = self._jars[index].with_metadata(name, target_amount, color, icon)
            except PydanticValidationError as exc:
                raise ValidationError(_validation_message(exc)) from exc
            self._replace_at(index, updated)
        return updated

    def delete_jar(self, jar: JarRef) -> None:
        """Remove a jar and its history; the featured selection is cleared once no jar carries its id."""
        jar_id = _jar_id(jar)
        with self._lock:
            index = self._index_of(jar_id)
            remaining = [*self._jars[:index], *self._jars[index + 1 :]]
            self._drop_stale_selection(remaining)
            self._commit(remaining)
        logger.info(f"Deleted jar {jar_id}")

    def select_featured_jar(self, jar: JarRef | None) -> None:
        """Feature a jar in the widget, or clear the selection with None."""
        with self._lock:
            jar_id = None if jar is None else self.get_jar(jar).id
            self._set_selection(jar_id)
            self._publish()

    # --- Import / export ---

    def export_all(self, fmt: ExportFormat = ExportFormat.JSON) -> bytes:
        """Serialise the whole collection."""
        return export_all(self.jars, fmt)

    def import_all(
        self,
        data: bytes | str,
        strategy: ImportStrategy = ImportStrategy.APPEND,
        fmt: ExportFormat = ExportFormat.JSON,
    ) -> ImportSummary:
        """Import jars, appending to or replacing the collection, and persist the result."""
        with self._lock:
            merged, summary = import_all(data, strategy, self._jars, fmt)
            if summary.imported:
                self._drop_stale_selection(merged)
                self._commit(merged)
        return summary

    def export_jar_transactions(self, jar: JarRef) -> bytes:
        """Serialise one jar's transaction history as CSV."""
        return export_jar_transactions(self.get_jar(jar))

    def import_jar_transactions(self, jar: JarRef | None, data: bytes | str) -> Jar:
        """Replace one jar's history with the transactions in a CSV file.

        With ``jar=None`` a new "Imported Jar" holding those transactions is added instead.
        """
        with self._lock:
            if jar is None:
                created = import_jar_transactions(data)
                self._commit([*self._jars, created])
                return created
            index = self._index_of(_jar_id(jar))
            updated = import_jar_transactions(data, self._jars[index])
            self._replace_at(index, updated)
        return updated

    # --- Lifecycle ---

    def enter_background(self) -> None:
        """Flush the active collection before the process is suspended or stopped."""
        with self._lock:
            self.store.save(self._jars)
            self._dirty = False
        logger.info(f"Flushed {len(self._jars)} jars on entering background")

    def become_active(self) -> None:
        """Reload state from storage and republish the widget snapshot.

        Unsaved changes are flushed first. If that save fails again, the in-memory collection is
        kept and stays marked unsaved.
        """
        with self._lock:
            if self._dirty:
                try:
                    self.store.save(self._jars)
                except PersistenceError:
                    logger.exception("Saving jars failed on resume; keeping in-memory state")
                    self._publish()
                    return
                self._dirty = False
            self._jars = self.store.load()
            self._selected_jar_id = self._load_selection()
            self._publish()

    def republish(self) -> None:
        """Publish the widget snapshot again without changing anything."""
        with self._lock:
            self._publish()

    # --- Internals ---

    def _index_of(self, jar_id: UUID) -> int:
        for index, jar in enumerate(self._jars):
            if jar.id == jar_id:
                return index
        msg = f"Jar {jar_id} not found"
        raise NotFoundError(msg)

    def _replace_at(self, index: int, jar: Jar) -> None:
        jars = list(self._jars)
        jars[index] = jar
        self._commit(jars)

    def _commit(self, jars: Sequence[Jar]) -> None:
        # In-memory state is authoritative; a failed save is retried with the next mutation.
        self._jars = list(jars)
        try:
            self.store.save(self._jars)
        except PersistenceError:
            self._dirty = True
            logger.exception("Saving jars failed; keeping in-memory state")
            raise
        self._dirty = False
        self._publish()

    def _publish(self) -> None:
        try:
            self.publisher.publish_snapshot(self._jars, self._selected_jar_id)
        except PersistenceError:
            logger.exception("Publishing widget snapshot failed")

    def _load_selection(self) -> UUID | None:
        if self.defaults is None:
            return self._selected_jar_id
        try:
            value = self.defaults.get(SELECTED_JAR_KEY)
        except PersistenceError as exc:
            logger.warning(f"Could not read featured jar selection: {exc}")
            return None
        try:
            return UUID(value) if value else None
        except ValueError:
            logger.warning(f"Ignoring malformed featured jar id {value!r}")
            return None

    def _drop_stale_selection(self, jars: Sequence[Jar]) -> None:
        if self._selected_jar_id is None:
            return
        if not any(jar.id == self._selected_jar_id for jar in jars):
            self._set_selection(None)

    def _set_selection(self, jar_id: UUID | None) -> None:
        self._selected_jar_id = jar_id
        if self.defaults is None:
            return
        try:
            if jar_id is None:
                self.defaults.delete(SELECTED_JAR_KEY)
            else:
                self.defaults.set(SELECTED_JAR_KEY, str(jar_id))
        except PersistenceError as exc:
            logger.warning(f"Could not store featured jar selection: {exc}")
