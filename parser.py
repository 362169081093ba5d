"""Streaming CSV reader for transaction records.

The first non-blank row must be a header naming the ``type``, ``client``,
``tx`` and ``amount`` columns. Column order is taken from the header and
unknown columns are ignored. Whitespace around any field is tolerated.

Rows are read one at a time so the input never has to fit in memory. A
row that does not describe a valid transaction is logged and skipped; a
source that cannot be read as CSV at all raises ``IngestionError``.
"""

import csv
from typing import Dict, Iterator, List, Optional, Sequence, TextIO

import structlog
from pydantic import ValidationError

from models import Transaction
from errors import IngestionError, RowParseError

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("type", "client", "tx", "amount")


def discover_columns(header: Sequence[str]) -> Dict[str, int]:
    """Map each required column name to its position in the header row."""
    names = [name.strip().lstrip("\ufeff").lower() for name in header]
    missing = [column for column in REQUIRED_COLUMNS if column not in names]
    if missing:
        raise IngestionError(
            f"Unrecognized header {list(header)!r}: missing column(s) {', '.join(missing)}"
        )
    return {column: names.index(column) for column in REQUIRED_COLUMNS}


def describe_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        message = detail["msg"]
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def parse_row(row: Sequence[str], columns: Dict[str, int], line: Optional[int] = None) -> Transaction:
    """Turn one raw row into a Transaction or raise RowParseError."""
    fields: List[str] = [field.strip() for field in row]

    # The amount column may be missing entirely on dispute-family rows
    required = max(columns["type"], columns["client"], columns["tx"])
    if len(fields) <= required:
        raise RowParseError(f"expected at least {required + 1} fields, got {len(fields)}", line, row)

    amount_idx = columns["amount"]
    amount = fields[amount_idx] if amount_idx < len(fields) else ""

    try:
        return Transaction(
            type=fields[columns["type"]],
            client=fields[columns["client"]],
            tx=fields[columns["tx"]],
            amount=amount or None,
        )
    except ValidationError as e:
        raise RowParseError(describe_validation_error(e), line, row) from e


class TransactionReader:
    """Lazily yields validated transactions from a CSV text stream.

    Counts data rows and skipped rows as it goes; the counters are final
    once iteration is exhausted.
    """

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.columns: Optional[Dict[str, int]] = None
        self.rows_read = 0
        self.parse_errors = 0

    def __iter__(self) -> Iterator[Transaction]:
        reader = csv.reader(self.stream)
        try:
            self.columns = discover_columns(self._read_header(reader))

            for row in reader:
                if not any(field.strip() for field in row):
                    continue
                self.rows_read += 1
                try:
                    yield parse_row(row, self.columns, reader.line_num)
                except RowParseError as e:
                    self.parse_errors += 1
                    logger.warning(
                        "Skipping malformed row",
                        line=e.line,
                        reason=e.reason,
                        row=e.row
                    )
        except csv.Error as e:
            raise IngestionError(f"Malformed CSV near line {reader.line_num}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise IngestionError(f"Cannot read input: {e}") from e

    @staticmethod
    def _read_header(reader) -> List[str]:
        for row in reader:
            if any(field.strip() for field in row):
                return row
        raise IngestionError("Input is empty: missing header row")


def iter_transactions(stream: TextIO) -> Iterator[Transaction]:
    """Yield transactions from stream, skipping malformed rows."""
    yield from TransactionReader(stream)
