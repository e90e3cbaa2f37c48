"""Import and export of jar collections.

JSON is the trusted interchange format: ``import_all(export_all(jars), REPLACE)`` reproduces the
collection exactly. CSV follows the layout of older releases and is best effort, since it carries
neither transaction ids nor notes. A single jar's history can also be exchanged as a
``Date,Amount,Note,Type`` CSV.
"""

import io
import math
from collections.abc import Sequence
from datetime import UTC, datetime
from enum import Enum
from pathlib import PurePath

import pandas as pd
from pandas.errors import EmptyDataError, ParserError
from pydantic import BaseModel

from savings_jars.core.codec import (
    decode_csv_records,
    decode_json_records,
    encode_jars_csv,
    encode_jars_json,
    parse_jar_records,
)
from savings_jars.core.errors import ImportFormatError
from savings_jars.core.models import Jar, Transaction
from savings_jars.core.utils import get_logger

logger = get_logger("savings-jars.transfer")

TRANSACTION_CSV_COLUMNS = ["Date", "Amount", "Note", "Type"]
TRANSACTION_DATE_FORMAT = "%Y-%m-%d"
DEPOSIT = "Deposit"
WITHDRAWAL = "Withdrawal"
IMPORTED_JAR_NAME = "Imported Jar"
IMPORTED_JAR_ICON = "banknote"


class ExportFormat(str, Enum):
    """Supported interchange formats."""

    JSON = "json"
    CSV = "csv"

    @classmethod
    def from_filename(cls, filename: str) -> "ExportFormat":
        """Pick the format from a file extension."""
        suffix = PurePath(filename).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            msg = f"Unsupported import file {filename!r}; expected .json or .csv"
            raise ImportFormatError(msg) from None

    @property
    def media_type(self) -> str:
        """MIME type used when serving an export."""
        return "application/json" if self is ExportFormat.JSON else "text/csv"


class ImportStrategy(str, Enum):
    """How imported jars combine with the existing collection."""

    APPEND = "append"
    REPLACE = "replace"


class ImportSummary(BaseModel):
    """Outcome of an import."""

    strategy: ImportStrategy
    format: ExportFormat
    imported: int
    skipped: int
    errors: list[str] = []


def export_all(jars: Sequence[Jar], fmt: ExportFormat = ExportFormat.JSON) -> bytes:
    """Serialise the whole collection, including every transaction."""
    if fmt is ExportFormat.CSV:
        return encode_jars_csv(jars)
    return encode_jars_json(jars)


def parse_import(data: bytes | str, fmt: ExportFormat = ExportFormat.JSON) -> tuple[list[Jar], list[str]]:
    """Decode and validate an import payload.

    Invalid records are skipped and described in the returned error list. Raises
    ImportFormatError when the payload has the wrong shape or when records were present but none
    of them was valid.
    """
    try:
        records = decode_csv_records(data) if fmt is ExportFormat.CSV else decode_json_records(data)
    except ValueError as exc:
        msg = f"Unrecognised {fmt.value} import: {exc}"
        raise ImportFormatError(msg) from exc
    jars, errors = parse_jar_records(records)
    if records and not jars:
        msg = f"No valid jars found; all {len(errors)} records were rejected"
        raise ImportFormatError(msg)
    return jars, errors


def import_all(
    data: bytes | str,
    strategy: ImportStrategy,
    existing: Sequence[Jar] = (),
    fmt: ExportFormat = ExportFormat.JSON,
) -> tuple[list[Jar], ImportSummary]:
    """Merge an import payload into ``existing`` and return the new collection with a summary.

    An empty payload leaves the collection unchanged under either strategy.
    """
    jars, errors = parse_import(data, fmt)
    for error in errors:
        logger.warning(f"Skipped invalid jar during import: {error}")
    if not jars:
        merged = list(existing)
    elif strategy is ImportStrategy.APPEND:
        merged = [*existing, *jars]
    else:
        merged = jars
    summary = ImportSummary(strategy=strategy, format=fmt, imported=len(jars), skipped=len(errors), errors=errors)
    logger.info(f"Imported {summary.imported} jars ({summary.skipped} skipped) using {strategy.value}")
    return merged, summary


def export_jar_transactions(jar: Jar) -> bytes:
    """Serialise one jar's history as ``Date,Amount,Note,Type`` rows."""
    rows = [
        {
            "Date": t.date.strftime(TRANSACTION_DATE_FORMAT),
            "Amount": f"{abs(t.amount):.2f}",
            "Note": t.note,
            "Type": DEPOSIT if t.amount >= 0 else WITHDRAWAL,
        }
        for t in jar.transactions
    ]
    return pd.DataFrame(rows, columns=TRANSACTION_CSV_COLUMNS).to_csv(index=False).encode("utf-8")


def _parse_transaction_row(row: dict[str, str]) -> Transaction:
    date = datetime.strptime(row["Date"].strip(), TRANSACTION_DATE_FORMAT).replace(tzinfo=UTC)
    amount = abs(float(row["Amount"]))
    if not math.isfinite(amount):
        msg = f"amount {row['Amount']!r} is not finite"
        raise ValueError(msg)
    kind = row["Type"].strip()
    if kind not in (DEPOSIT, WITHDRAWAL):
        msg = f"unknown type {kind!r}"
        raise ValueError(msg)
    return Transaction(amount=amount if kind == DEPOSIT else -amount, date=date, note=row["Note"])


def import_jar_transactions(data: bytes | str, existing_jar: Jar | None = None) -> Jar:
    """Rebuild a jar from a transaction CSV.

    With ``existing_jar`` its history is replaced and its balance recomputed; otherwise a new
    "Imported Jar" without a target is created. Rows that cannot be parsed are skipped.
    """
    raw = data.encode("utf-8") if isinstance(data, str) else data
    try:
        frame = pd.read_csv(io.BytesIO(raw), dtype=str, keep_default_na=False)
    except (EmptyDataError, ParserError, UnicodeDecodeError) as exc:
        msg = f"Invalid transaction CSV: {exc}"
        raise ImportFormatError(msg) from exc
    if list(frame.columns) != TRANSACTION_CSV_COLUMNS:
        msg = f"Invalid transaction CSV header: expected {','.join(TRANSACTION_CSV_COLUMNS)}"
        raise ImportFormatError(msg)
    transactions: list[Transaction] = []
    for line, row in enumerate(frame.to_dict(orient="records"), start=2):
        try:
            transactions.append(_parse_transaction_row(row))
        except ValueError as exc:
            logger.warning(f"Skipping transaction CSV line {line}: {exc}")
    if len(frame) and not transactions:
        msg = "No valid transactions found"
        raise ImportFormatError(msg)
    balance = math.fsum(t.amount for t in transactions)
    if existing_jar is not None:
        return existing_jar.model_copy(update={"transactions": tuple(transactions), "current_amount": balance})
    return Jar(
        name=IMPORTED_JAR_NAME,
        target_amount=0,
        current_amount=balance,
        icon=IMPORTED_JAR_ICON,
        transactions=tuple(transactions),
    )
