import csv
from decimal import Decimal
from typing import Iterable, Iterator, List, TextIO

from models import LEDGER_CONTEXT, Account

REPORT_COLUMNS = ["client", "available", "held", "total", "locked"]


def format_amount(value: Decimal) -> str:
    """Format an amount with up to 4 decimal places, trailing zeros removed."""
    if value.is_zero():
        return "0"
    return f"{value.normalize(LEDGER_CONTEXT):f}"


def report_rows(accounts: Iterable[Account]) -> Iterator[List[str]]:
    """Yield one row per account in ascending client id order."""
    for account in sorted(accounts, key=lambda a: a.client):
        yield [
            str(account.client),
            format_amount(account.available),
            format_amount(account.held),
            format_amount(account.total),
            str(account.locked).lower(),
        ]


def write_report(accounts: Iterable[Account], sink: TextIO) -> None:
    csvwriter = csv.writer(sink, lineterminator="\n")
    csvwriter.writerow(REPORT_COLUMNS)
    csvwriter.writerows(report_rows(accounts))
