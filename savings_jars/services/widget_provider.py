"""Widget display entries computed from the published snapshot."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from savings_jars.core.models import WidgetJar, WidgetSnapshot
from savings_jars.core.settings import Settings
from savings_jars.core.utils import utcnow
from savings_jars.services.snapshot_sync import SnapshotReader

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "CAD": "$", "AUD": "$"}


def format_currency(amount: float, currency_code: str = "USD", show_cents: bool = True) -> str:  # noqa: FBT001, FBT002
    """Format an amount with the currency symbol, thousands separators and optional cents."""
    symbol = CURRENCY_SYMBOLS.get(currency_code, "$")
    digits = 2 if show_cents else 0
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.{digits}f}"


SAMPLE_JARS = [
    ("Vacation", 2000.0, 750.0, "blue", "airplane"),
    ("New Phone", 1000.0, 350.0, "purple", "iphone"),
    ("Emergency Fund", 5000.0, 2000.0, "red", "heart.circle"),
]


def sample_snapshot() -> WidgetSnapshot:
    """Placeholder content shown before the app has published anything."""
    return WidgetSnapshot(
        all_jars=tuple(
            WidgetJar(
                id=f"00000000-0000-0000-0000-{index:012d}",
                name=name,
                target_amount=target,
                current_amount=current,
                color=color,
                icon=icon,
            )
            for index, (name, target, current, color, icon) in enumerate(SAMPLE_JARS, start=1)
        ),
    )


class WidgetEntry(BaseModel):
    """Everything the widget needs to render one timeline entry."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: datetime = Field(default_factory=utcnow)
    is_placeholder: bool = False
    snapshot: WidgetSnapshot
    featured_jar: WidgetJar | None = None
    total_saved: float
    total_target: float
    total_progress: float
    formatted_total_saved: str
    formatted_total_target: str
    formatted_featured_amount: str | None = None


class WidgetProvider:
    """Builds widget entries from the snapshot reader, falling back to placeholder content."""

    def __init__(
        self,
        reader: SnapshotReader,
        currency_code: str = "USD",
        show_cents: bool = True,  # noqa: FBT001, FBT002
    ) -> None:
        """Initialise the provider with a reader and display preferences."""
        self.reader = reader
        self.currency_code = currency_code
        self.show_cents = show_cents

    @classmethod
    def from_settings(cls, settings: Settings, reader: SnapshotReader | None = None) -> "WidgetProvider":
        """Build the provider from application settings."""
        return cls(reader or SnapshotReader.from_settings(settings), settings.currency_code, settings.show_cents)

    def placeholder(self) -> WidgetEntry:
        """Entry built from the bundled sample jars."""
        return self._build(sample_snapshot(), is_placeholder=True)

    def entry(self) -> WidgetEntry:
        """Entry for the current snapshot, or the placeholder if nothing has been published."""
        snapshot = self.reader.read_snapshot()
        if snapshot is None:
            return self.placeholder()
        return self._build(snapshot, is_placeholder=False)

    def _format(self, amount: float) -> str:
        return format_currency(amount, self.currency_code, self.show_cents)

    def _build(self, snapshot: WidgetSnapshot, *, is_placeholder: bool) -> WidgetEntry:
        featured = snapshot.selected_jar
        featured_amount = (
            f"{self._format(featured.current_amount)} of {self._format(featured.target_amount)}" if featured else None
        )
        return WidgetEntry(
            is_placeholder=is_placeholder,
            snapshot=snapshot,
            featured_jar=featured,
            total_saved=snapshot.total_saved,
            total_target=snapshot.total_target,
            total_progress=snapshot.total_progress,
            formatted_total_saved=self._format(snapshot.total_saved),
            formatted_total_target=self._format(snapshot.total_target),
            formatted_featured_amount=featured_amount,
        )
