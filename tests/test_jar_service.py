"""Tests for JarService operations, persistence and snapshot publishing."""

import math
from uuid import uuid4

import pytest

from savings_jars.core.errors import InsufficientFundsError, NotFoundError, PersistenceError, ValidationError
from savings_jars.core.settings import Settings
from savings_jars.services.jar_service import JarService
from savings_jars.services.snapshot_sync import SnapshotReader
from savings_jars.services.transfer import ExportFormat, ImportStrategy


def test_vacation_scenario_persists_and_publishes(service: JarService, settings: Settings) -> None:
    """Create, deposit twice, and find the same state after a restart and in the snapshot."""
    jar = service.create_jar("Vacation", target_amount=2000)
    service.deposit(jar, 500)
    updated = service.deposit(jar, 150, note="bonus")
    if updated.current_amount != 650 or not math.isclose(updated.progress_percentage, 0.325):  # noqa: PLR2004
        msg = f"Unexpected jar state: {updated.current_amount}, {updated.progress_percentage}"
        raise AssertionError(msg)

    restarted = JarService.from_settings(settings)
    try:
        reloaded = restarted.get_jar(jar.id)
    finally:
        restarted.defaults.close()
    if reloaded != updated:
        msg = f"Expected the reloaded jar to equal the saved one, got {reloaded}"
        raise AssertionError(msg)

    published = SnapshotReader.from_settings(settings).jar_by_id(jar.id)
    if published.current_amount != 650 or not math.isclose(published.progress_percentage, 0.325):  # noqa: PLR2004
        msg = f"Unexpected published jar: {published}"
        raise AssertionError(msg)


def test_create_jar_uses_defaults(service: JarService, settings: Settings) -> None:
    """Unspecified fields come from settings."""
    jar = service.create_jar("Rainy Day")
    expected = (settings.default_target, settings.default_color, settings.default_icon)
    if (jar.target_amount, jar.color, jar.icon) != expected:
        msg = f"Expected configured defaults, got {jar}"
        raise AssertionError(msg)
    if jar.current_amount != 0 or jar.transactions:
        msg = "Expected a new jar to be empty"
        raise AssertionError(msg)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": ""},
        {"name": "Bike", "target_amount": 0},
        {"name": "Bike", "target_amount": -5},
        {"name": "Bike", "color": "pink"},
    ],
)
def test_create_jar_rejects_invalid_fields(service: JarService, kwargs: dict) -> None:
    """Blank names, non-positive targets and unknown colours are rejected without saving."""
    with pytest.raises(ValidationError):
        service.create_jar(**kwargs)
    if service.jars:
        msg = "Expected no jar to be created"
        raise AssertionError(msg)


def test_rejected_withdrawal_leaves_jar_unchanged(service: JarService) -> None:
    """Withdrawing more than the balance raises and changes nothing."""
    jar = service.deposit(service.create_jar("Phone", 1000), 100)
    with pytest.raises(InsufficientFundsError):
        service.withdraw(jar, 150)
    if service.get_jar(jar.id) != jar:
        msg = "Expected the jar to be unchanged after a rejected withdrawal"
        raise AssertionError(msg)


def test_withdraw_records_negative_transaction(service: JarService) -> None:
    """A withdrawal is stored as a negative amount."""
    jar = service.deposit(service.create_jar("Phone", 1000), 100)
    updated = service.withdraw(jar, 40, note="case")
    if updated.current_amount != 60 or updated.transactions[-1].amount != -40:  # noqa: PLR2004
        msg = f"Unexpected state after withdrawal: {updated}"
        raise AssertionError(msg)
    if updated.transactions[-1].is_deposit:
        msg = "Expected the withdrawal not to count as a deposit"
        raise AssertionError(msg)


@pytest.mark.parametrize("amount", [0, -10])
def test_non_positive_amounts_rejected(service: JarService, amount: float) -> None:
    """Deposits and withdrawals need a positive amount."""
    jar = service.create_jar("Gift", 100)
    with pytest.raises(ValidationError):
        service.deposit(jar, amount)
    with pytest.raises(ValidationError):
        service.withdraw(jar, amount)


def test_unknown_jar_raises_not_found(service: JarService) -> None:
    """Operations on a jar that is not in the collection raise NotFoundError."""
    missing = uuid4()
    with pytest.raises(NotFoundError):
        service.get_jar(missing)
    with pytest.raises(NotFoundError):
        service.deposit(missing, 10)
    with pytest.raises(NotFoundError):
        service.delete_jar(missing)


def test_update_metadata_preserves_balance(service: JarService) -> None:
    """Metadata edits keep the history; invalid edits leave the jar as it was."""
    jar = service.deposit(service.create_jar("Laptop", 1500), 300)
    edited = service.update_jar_metadata(jar, name="Work Laptop", target_amount=1800, color="purple")
    if edited.current_amount != 300 or edited.transactions != jar.transactions:  # noqa: PLR2004
        msg = "Expected balance and transactions to be preserved"
        raise AssertionError(msg)
    with pytest.raises(ValidationError):
        service.update_jar_metadata(jar, target_amount=0)
    with pytest.raises(ValidationError):
        service.update_jar_metadata(jar, name="  ")
    if service.get_jar(jar.id) != edited:
        msg = "Expected rejected edits to leave the jar unchanged"
        raise AssertionError(msg)


def test_deleting_featured_jar_clears_selection(service: JarService, reader: SnapshotReader) -> None:
    """The widget falls back to the first jar once the featured one is gone."""
    first = service.create_jar("First", 100)
    featured = service.create_jar("Featured", 100)
    service.select_featured_jar(featured)
    if reader.read_snapshot().selected_jar_id != featured.id:
        msg = "Expected the featured jar to be published as selected"
        raise AssertionError(msg)
    service.delete_jar(featured)
    if service.featured_jar_id is not None:
        msg = "Expected the selection to be cleared"
        raise AssertionError(msg)
    snapshot = reader.read_snapshot()
    if snapshot.selected_jar_id != first.id:
        msg = f"Expected fallback to the first jar, got {snapshot.selected_jar_id}"
        raise AssertionError(msg)
    service.delete_jar(first)
    if reader.read_snapshot().selected_jar_id is not None:
        msg = "Expected no selection once all jars are deleted"
        raise AssertionError(msg)


def test_featured_selection_survives_restart(service: JarService, settings: Settings) -> None:
    """The selection is kept in the defaults database."""
    jar = service.create_jar("Keep", 100)
    service.select_featured_jar(jar)
    restarted = JarService.from_settings(settings)
    try:
        if restarted.featured_jar_id != jar.id:
            msg = f"Expected featured jar {jar.id}, got {restarted.featured_jar_id}"
            raise AssertionError(msg)
    finally:
        restarted.defaults.close()


def test_totals(service: JarService) -> None:
    """Totals aggregate every jar and clamp overall progress."""
    service.deposit(service.create_jar("A", 100), 150)
    service.deposit(service.create_jar("B", 300), 50)
    if service.total_saved() != 200 or service.total_target() != 400:  # noqa: PLR2004
        msg = f"Unexpected totals: {service.total_saved()} / {service.total_target()}"
        raise AssertionError(msg)
    if service.total_progress() != 0.5:  # noqa: PLR2004
        msg = f"Expected overall progress 0.5, got {service.total_progress()}"
        raise AssertionError(msg)


def test_save_failure_keeps_memory_state(service: JarService, monkeypatch: pytest.MonkeyPatch) -> None:
    """A failed save raises PersistenceError, keeps the change in memory and is retried later."""
    jar = service.create_jar("Flaky", 100)

    def failing_save(jars: object) -> None:
        _ = jars
        msg = "disk full"
        raise PersistenceError(msg)

    monkeypatch.setattr(service.store, "save", failing_save)
    with pytest.raises(PersistenceError):
        service.deposit(jar, 20)
    if service.get_jar(jar.id).current_amount != 20 or not service.has_unsaved_changes:  # noqa: PLR2004
        msg = "Expected the in-memory deposit to stand and be marked unsaved"
        raise AssertionError(msg)

    monkeypatch.undo()
    service.enter_background()
    if service.has_unsaved_changes:
        msg = "Expected the flush to clear the unsaved flag"
        raise AssertionError(msg)
    service.become_active()
    if service.get_jar(jar.id).current_amount != 20:  # noqa: PLR2004
        msg = "Expected the flushed deposit to be reloaded"
        raise AssertionError(msg)


def test_history_limit_setting(settings: Settings) -> None:
    """With a history limit the service folds old transactions."""
    capped = JarService.from_settings(settings.model_copy(update={"transaction_history_limit": 3}))
    try:
        jar = capped.create_jar("Capped", 100)
        for _ in range(6):
            jar = capped.deposit(jar, 5)
    finally:
        capped.defaults.close()
    if len(jar.transactions) != 3 or jar.current_amount != 30:  # noqa: PLR2004
        msg = f"Expected 3 transactions totalling 30, got {len(jar.transactions)} / {jar.current_amount}"
        raise AssertionError(msg)


def test_import_replace_and_append(service: JarService) -> None:
    """Replace swaps the collection; Append keeps existing jars first."""
    source = service.deposit(service.create_jar("Exported", 100), 25)
    exported = service.export_all(ExportFormat.JSON)
    service.create_jar("Extra", 50)

    summary = service.import_all(exported, ImportStrategy.REPLACE)
    if summary.imported != 1 or service.jars != [source]:
        msg = f"Expected replace to restore the exported collection, got {service.jars}"
        raise AssertionError(msg)

    service.import_all(exported, ImportStrategy.APPEND)
    if [j.id for j in service.jars] != [source.id, source.id]:
        msg = "Expected append to keep duplicates after the existing jars"
        raise AssertionError(msg)


def test_import_transactions_into_new_jar(service: JarService) -> None:
    """A transaction CSV without a target jar becomes a new imported jar."""
    data = "Date,Amount,Note,Type\n2024-02-01,100.00,Salary,Deposit\n2024-02-03,30.00,,Withdrawal\n"
    jar = service.import_jar_transactions(None, data)
    if jar.name != "Imported Jar" or jar.current_amount != 70:  # noqa: PLR2004
        msg = f"Unexpected imported jar: {jar}"
        raise AssertionError(msg)
    if service.get_jar(jar.id) != jar:
        msg = "Expected the imported jar to be added to the collection"
        raise AssertionError(msg)


def test_withdraw_full_fractional_balance(service: JarService) -> None:
    """The balance shown to the user can always be withdrawn in full."""
    jar = service.deposit(service.create_jar("Change", 10), 0.7)
    jar = service.withdraw(jar, 0.4)
    jar = service.withdraw(jar, 0.3)
    if not math.isclose(jar.current_amount, 0.0, abs_tol=1e-9) or len(jar.transactions) != 3:  # noqa: PLR2004
        msg = f"Expected an emptied jar with 3 transactions, got {jar}"
        raise AssertionError(msg)


def test_resume_keeps_unsaved_changes(service: JarService, monkeypatch: pytest.MonkeyPatch) -> None:
    """Becoming active after a failed save neither reloads over nor forgets the pending change."""
    jar = service.create_jar("Pending", 100)

    def failing_save(jars: object) -> None:
        _ = jars
        msg = "disk full"
        raise PersistenceError(msg)

    monkeypatch.setattr(service.store, "save", failing_save)
    with pytest.raises(PersistenceError):
        service.deposit(jar, 20)
    service.become_active()
    if service.get_jar(jar.id).current_amount != 20 or not service.has_unsaved_changes:  # noqa: PLR2004
        msg = "Expected the unsaved deposit to survive a resume while saving still fails"
        raise AssertionError(msg)

    monkeypatch.undo()
    service.become_active()
    if service.has_unsaved_changes:
        msg = "Expected the resume to flush the pending change"
        raise AssertionError(msg)
    if service.store.load()[0].current_amount != 20:  # noqa: PLR2004
        msg = "Expected the flushed deposit to be stored"
        raise AssertionError(msg)


def test_deleting_one_duplicate_keeps_selection(service: JarService) -> None:
    """A featured id stays selected while an appended copy of that jar remains."""
    jar = service.create_jar("Twin", 100)
    service.import_all(service.export_all(ExportFormat.JSON), ImportStrategy.APPEND)
    service.select_featured_jar(jar)
    service.delete_jar(jar)
    if service.featured_jar_id != jar.id or len(service.jars) != 1:
        msg = f"Expected the remaining copy to stay featured, got {service.featured_jar_id}"
        raise AssertionError(msg)


def test_replace_import_clears_missing_selection(service: JarService) -> None:
    """After a replace, a featured id that no imported jar carries is dropped."""
    service.create_jar("Kept", 100)
    exported = service.export_all(ExportFormat.JSON)
    featured = service.create_jar("Dropped", 100)
    service.select_featured_jar(featured)
    service.import_all(exported, ImportStrategy.REPLACE)
    if service.featured_jar_id is not None:
        msg = f"Expected the stale selection to be cleared, got {service.featured_jar_id}"
        raise AssertionError(msg)
