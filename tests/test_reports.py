import io
import pytest
from decimal import Decimal

from models import Account
from reports import REPORT_COLUMNS, format_amount, report_rows, write_report


class TestFormatAmount:
    """Test amount rendering."""

    @pytest.mark.parametrize("value,expected", [
        ("1.5000", "1.5"),
        ("2.0000", "2"),
        ("0.0000", "0"),
        ("0", "0"),
        ("100.0000", "100"),
        ("0.0001", "0.0001"),
        ("-3.2500", "-3.25"),
        ("12345678901234.5678", "12345678901234.5678"),
    ])
    def test_trailing_zeros_trimmed(self, value, expected):
        assert format_amount(Decimal(value)) == expected


class TestReport:
    """Test the final report layout."""

    def test_rows_sorted_by_client(self):
        accounts = [
            Account(client=16, available=Decimal("1.89"), locked=True),
            Account(client=2, available=Decimal("1.01")),
            Account(client=1, available=Decimal("199.6234"), held=Decimal("0.5")),
        ]

        rows = list(report_rows(accounts))

        assert [row[0] for row in rows] == ["1", "2", "16"]
        assert rows[0] == ["1", "199.6234", "0.5", "200.1234", "false"]
        assert rows[2] == ["16", "1.89", "0", "1.89", "true"]

    def test_write_report(self):
        """Test header and rows are written as CSV with plain newlines."""
        sink = io.StringIO()
        write_report([
            Account(client=2, available=Decimal("2.0000")),
            Account(client=1, available=Decimal("1.5000")),
        ], sink)

        assert sink.getvalue() == (
            "client,available,held,total,locked\n"
            "1,1.5,0,1.5,false\n"
            "2,2,0,2,false\n"
        )

    def test_empty_report_has_header(self):
        sink = io.StringIO()
        write_report([], sink)

        assert sink.getvalue() == ",".join(REPORT_COLUMNS) + "\n"
