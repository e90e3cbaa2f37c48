"""Pydantic models for savings jars, their transactions, and the published widget snapshot.

This is the single canonical model module: the owning service persists ``Jar`` collections and the
read-only widget reader consumes ``WidgetSnapshot`` documents, both defined here. All models are
frozen; operations that change a jar return a new instance. Wire names are camelCase.
"""

import math
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from savings_jars.core.utils import utcnow

BALANCE_TOLERANCE = 1e-6
CARRIED_FORWARD_NOTE = "Balance carried forward"
DEFAULT_ICON = "banknote.fill"


class JarColor(str, Enum):
    """Closed set of jar colour tags."""

    BLUE = "blue"
    PURPLE = "purple"
    RED = "red"
    GREEN = "green"
    ORANGE = "orange"
    YELLOW = "yellow"


def clamp_progress(current: float, target: float) -> float:
    """Return ``current / target`` limited to ``[0, 1]``; zero when there is no target."""
    if target <= 0:
        return 0.0
    return max(0.0, min(current / target, 1.0))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        use_enum_values=True,
    )


class Transaction(_WireModel):
    """A signed, immutable balance change recorded against a jar."""

    id: UUID = Field(default_factory=uuid4)
    amount: float = Field(allow_inf_nan=False)
    date: datetime = Field(default_factory=utcnow)
    note: str = ""

    @field_validator("note", mode="before")
    @classmethod
    def _note_default(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("date")
    @classmethod
    def _date_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_deposit(self) -> bool:
        """Whether the transaction adds money to the jar."""
        return self.amount > 0


class Jar(_WireModel):
    """A named savings goal with a running balance and its transaction history.

    ``current_amount`` always equals the sum of ``transactions``; instances that break this are
    rejected at validation time.
    """

    id: UUID = Field(default_factory=uuid4)
    name: str
    target_amount: float = Field(ge=0, allow_inf_nan=False)
    current_amount: float = Field(default=0.0, allow_inf_nan=False)
    color: JarColor = JarColor.BLUE.value
    icon: str = Field(default=DEFAULT_ICON, min_length=1)
    creation_date: datetime = Field(default_factory=utcnow)
    transactions: tuple[Transaction, ...] = ()

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "name must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("creation_date")
    @classmethod
    def _creation_date_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _balance_matches_history(self) -> "Jar":
        recorded = math.fsum(t.amount for t in self.transactions)
        if not math.isclose(self.current_amount, recorded, rel_tol=1e-9, abs_tol=BALANCE_TOLERANCE):
            msg = f"currentAmount {self.current_amount} does not match transaction total {recorded}"
            raise ValueError(msg)
        return self

    @property
    def progress_percentage(self) -> float:
        """Fraction of the target reached, clamped to ``[0, 1]``."""
        return clamp_progress(self.current_amount, self.target_amount)

    @property
    def remaining_amount(self) -> float:
        """Amount still missing to reach the target."""
        return max(self.target_amount - self.current_amount, 0.0)

    def with_transaction(self, transaction: Transaction, history_limit: int | None = None) -> "Jar":
        """Return a copy with ``transaction`` appended and the balance moved by its amount."""
        transactions = (*self.transactions, transaction)
        if history_limit is not None and len(transactions) > history_limit:
            transactions = fold_history(transactions, history_limit)
        return self.model_copy(
            update={"transactions": transactions, "current_amount": self.current_amount + transaction.amount},
        )

    def with_metadata(
        self,
        name: str | None = None,
        target_amount: float | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> "Jar":
        """Return a validated copy with the given display fields replaced.

        Balance and history are carried over untouched. Raises ``pydantic.ValidationError`` when a
        replacement value is invalid.
        """
        changes = {
            key: value
            for key, value in {"name": name, "target_amount": target_amount, "color": color, "icon": icon}.items()
            if value is not None
        }
        return Jar.model_validate({**self.model_dump(), **changes})


def fold_history(transactions: tuple[Transaction, ...], limit: int) -> tuple[Transaction, ...]:
    """Keep the newest entries and merge the rest into one carried-forward transaction.

    The result has at most ``limit`` entries and the same total amount as the input.
    """
    keep = limit - 1
    cut = len(transactions) - keep
    trimmed, kept = transactions[:cut], transactions[cut:]
    carried = Transaction(
        amount=math.fsum(t.amount for t in trimmed),
        date=trimmed[-1].date,
        note=CARRIED_FORWARD_NOTE,
    )
    return (carried, *kept)


def total_saved(jars: Iterable["Jar | WidgetJar"]) -> float:
    """Sum of current balances."""
    return math.fsum(jar.current_amount for jar in jars)


def total_target(jars: Iterable["Jar | WidgetJar"]) -> float:
    """Sum of target amounts."""
    return math.fsum(jar.target_amount for jar in jars)


def total_progress(jars: Iterable["Jar | WidgetJar"]) -> float:
    """Overall progress across jars, clamped to ``[0, 1]``."""
    jars = list(jars)
    return clamp_progress(total_saved(jars), total_target(jars))


class WidgetJar(_WireModel):
    """Reduced projection of a jar published to the widget."""

    id: UUID
    name: str
    target_amount: float
    current_amount: float
    color: str
    icon: str

    @computed_field(alias="progressPercentage")
    @property
    def progress_percentage(self) -> float:
        """Fraction of the target reached, clamped to ``[0, 1]``."""
        return clamp_progress(self.current_amount, self.target_amount)

    @classmethod
    def from_jar(cls, jar: Jar) -> "WidgetJar":
        """Project a full jar down to its widget view."""
        return cls(
            id=jar.id,
            name=jar.name,
            target_amount=jar.target_amount,
            current_amount=jar.current_amount,
            color=jar.color,
            icon=jar.icon,
        )


class WidgetSnapshot(_WireModel):
    """The document shared with the widget: every jar plus the featured selection."""

    selected_jar_id: UUID | None = Field(default=None, alias="selectedJarID")
    all_jars: tuple[WidgetJar, ...] = ()
    last_updated: datetime = Field(default_factory=utcnow)

    @field_validator("selected_jar_id", mode="before")
    @classmethod
    def _blank_selection(cls, value: object) -> object:
        # Unparseable ids select nothing, so the first jar is featured instead.
        if value is None or isinstance(value, UUID):
            return value
        if value == "":
            return None
        try:
            return UUID(str(value))
        except ValueError:
            return None

    @field_validator("last_updated")
    @classmethod
    def _last_updated_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_jars(cls, jars: Iterable[Jar], selected_jar_id: UUID | None = None) -> "WidgetSnapshot":
        """Build a snapshot from the live collection."""
        return cls(selected_jar_id=selected_jar_id, all_jars=tuple(WidgetJar.from_jar(jar) for jar in jars))

    def jar_by_id(self, jar_id: UUID) -> WidgetJar | None:
        """Return the first jar with ``jar_id``, if any."""
        return next((jar for jar in self.all_jars if jar.id == jar_id), None)

    @property
    def selected_jar(self) -> WidgetJar | None:
        """The featured jar, falling back to the first jar when the selection is stale or unset."""
        if self.selected_jar_id is not None:
            selected = self.jar_by_id(self.selected_jar_id)
            if selected is not None:
                return selected
        return self.all_jars[0] if self.all_jars else None

    def resolve_selection(self) -> "WidgetSnapshot":
        """Return a copy whose ``selected_jar_id`` names a jar that exists, or is None."""
        selected = self.selected_jar
        resolved = selected.id if selected else None
        if resolved == self.selected_jar_id:
            return self
        return self.model_copy(update={"selected_jar_id": resolved})

    @property
    def total_saved(self) -> float:
        """Sum of published balances."""
        return total_saved(self.all_jars)

    @property
    def total_target(self) -> float:
        """Sum of published targets."""
        return total_target(self.all_jars)

    @property
    def total_progress(self) -> float:
        """Overall published progress."""
        return total_progress(self.all_jars)


JarListAdapter = TypeAdapter(list[Jar])
