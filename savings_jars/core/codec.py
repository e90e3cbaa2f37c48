"""Serialisation of jar collections: canonical JSON, legacy-compatible CSV, and legacy decoding.

Everything that reads stored or imported bytes goes through ``parse_jar_records``, which first
upgrades older record shapes (epoch-second dates, ``isDeposit`` flags) and then validates each
record on its own so one bad record never poisons the rest.
"""

import io
import json
import math
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import pandas as pd
from pandas.errors import EmptyDataError, ParserError
from pydantic import ValidationError as PydanticValidationError

from savings_jars.core.models import Jar, JarListAdapter

CSV_REQUIRED_COLUMNS = ["id", "name", "targetAmount", "currentAmount", "color", "icon", "creationDate"]
CSV_COLUMNS = [*CSV_REQUIRED_COLUMNS, "transactions"]
CSV_TRANSACTION_SEPARATOR = ";"
CSV_PAIR_SEPARATOR = "|"


def upgrade_timestamp(value: object) -> object:
    """Turn epoch-second numbers (or numeric strings) into aware datetimes; pass anything else through."""
    if isinstance(value, bool):
        return value
    seconds = value
    if isinstance(value, str):
        try:
            seconds = float(value.strip())
        except ValueError:
            return value.strip()
    if not isinstance(seconds, int | float) or not math.isfinite(seconds):
        return value
    try:
        return datetime.fromtimestamp(seconds, UTC)
    except (OverflowError, OSError, ValueError):
        # Out of range; left for model validation to reject.
        return value


def upgrade_transaction_record(record: object) -> object:
    """Normalise a stored transaction dict to the current shape."""
    if not isinstance(record, dict):
        return record
    upgraded = dict(record)
    if "date" in upgraded:
        upgraded["date"] = upgrade_timestamp(upgraded["date"])
    is_deposit = upgraded.pop("isDeposit", None)
    amount = upgraded.get("amount")
    # Older builds stored an unsigned amount next to an isDeposit flag.
    if is_deposit is False and isinstance(amount, int | float) and amount > 0:
        upgraded["amount"] = -amount
    return upgraded


def upgrade_jar_record(record: object) -> object:
    """Normalise a stored jar dict, including its transactions, to the current shape."""
    if not isinstance(record, dict):
        return record
    upgraded = dict(record)
    if "creationDate" in upgraded:
        upgraded["creationDate"] = upgrade_timestamp(upgraded["creationDate"])
    transactions = upgraded.get("transactions")
    if transactions is None:
        upgraded.pop("transactions", None)
    elif isinstance(transactions, list):
        upgraded["transactions"] = [upgrade_transaction_record(t) for t in transactions]
    return upgraded


def upgrade_snapshot_record(record: object) -> object:
    """Normalise a stored widget snapshot dict to the current shape."""
    if not isinstance(record, dict):
        return record
    upgraded = dict(record)
    if "lastUpdated" in upgraded:
        upgraded["lastUpdated"] = upgrade_timestamp(upgraded["lastUpdated"])
    return upgraded


def _describe(exc: PydanticValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}" for err in exc.errors())


def parse_jar_records(records: Iterable[object]) -> tuple[list[Jar], list[str]]:
    """Validate raw jar records one by one.

    Returns the valid jars in input order and a message for every rejected record.
    """
    jars: list[Jar] = []
    errors: list[str] = []
    for index, record in enumerate(records):
        try:
            jars.append(Jar.model_validate(upgrade_jar_record(record)))
        except PydanticValidationError as exc:
            errors.append(f"record {index}: {_describe(exc)}")
    return jars, errors


def encode_jars_json(jars: Iterable[Jar]) -> bytes:
    """Serialise jars to the canonical JSON array."""
    return JarListAdapter.dump_json(list(jars), by_alias=True, indent=2)


def decode_json_records(data: bytes | str) -> list[Any]:
    """Parse a JSON array of jar records without validating the records themselves."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
        msg = f"Invalid JSON: {exc}"
        raise ValueError(msg) from exc
    if not isinstance(payload, list):
        msg = f"Expected a JSON array of jars, got {type(payload).__name__}"
        raise ValueError(msg)
    return payload


def _format_transactions_cell(jar: Jar) -> str:
    return CSV_TRANSACTION_SEPARATOR.join(
        f"{t.amount!r}{CSV_PAIR_SEPARATOR}{t.date.isoformat()}" for t in jar.transactions
    )


def encode_jars_csv(jars: Iterable[Jar]) -> bytes:
    """Serialise jars to the legacy CSV layout with quoted-CSV escaping.

    Transaction ids and notes are not part of this layout.
    """
    rows = [
        {
            "id": str(jar.id),
            "name": jar.name,
            "targetAmount": repr(jar.target_amount),
            "currentAmount": repr(jar.current_amount),
            "color": jar.color,
            "icon": jar.icon,
            "creationDate": jar.creation_date.isoformat(),
            "transactions": _format_transactions_cell(jar),
        }
        for jar in jars
    ]
    return pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(index=False).encode("utf-8")


def _parse_transactions_cell(cell: str) -> list[dict[str, object]]:
    transactions = []
    for pair in filter(None, (part.strip() for part in cell.split(CSV_TRANSACTION_SEPARATOR))):
        parts = pair.split(CSV_PAIR_SEPARATOR)
        if len(parts) != 2:  # noqa: PLR2004
            msg = f"malformed transaction entry {pair!r}"
            raise ValueError(msg)
        amount, date = parts
        transactions.append({"amount": amount, "date": upgrade_timestamp(date)})
    return transactions


def decode_csv_records(data: bytes | str) -> list[object]:
    """Parse the legacy CSV layout into raw jar records.

    Rows whose transaction cell cannot be split are returned as ``None`` so that they are counted
    as invalid by ``parse_jar_records``.
    """
    raw = data.encode("utf-8") if isinstance(data, str) else data
    try:
        frame = pd.read_csv(io.BytesIO(raw), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (EmptyDataError, ParserError, UnicodeDecodeError) as exc:
        msg = f"Invalid CSV: {exc}"
        raise ValueError(msg) from exc
    missing = [column for column in CSV_REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        msg = f"CSV header is missing columns: {', '.join(missing)}"
        raise ValueError(msg)
    records: list[object] = []
    for row in frame.to_dict(orient="records"):
        record = {column: row[column] for column in CSV_REQUIRED_COLUMNS}
        try:
            record["transactions"] = _parse_transactions_cell(row.get("transactions", ""))
        except ValueError:
            records.append(None)
            continue
        records.append(record)
    return records
