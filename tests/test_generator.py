import io
import pytest

from generator import HEADER, generate_rows, main, write_csv
from parser import TransactionReader


class TestGenerator:
    """Test synthetic transaction streams."""

    def test_seed_is_deterministic(self):
        first = list(generate_rows(num_clients=10, num_transactions=200, seed=5))
        second = list(generate_rows(num_clients=10, num_transactions=200, seed=5))

        assert first == second
        assert first != list(generate_rows(num_clients=10, num_transactions=200, seed=6))

    def test_rows_are_well_formed(self):
        """Test every generated row parses as a transaction."""
        source = io.StringIO()
        count = write_csv(source, generate_rows(num_clients=10, num_transactions=500, seed=1))
        source.seek(0)

        reader = TransactionReader(source)
        transactions = list(reader)

        assert source.getvalue().startswith(",".join(HEADER) + "\n")
        assert len(transactions) == count
        assert reader.parse_errors == 0
        assert all(0 <= t.client < 10 for t in transactions)

    def test_dispute_family_references_own_history(self):
        """Test without noise, disputes only point at the client's own transactions."""
        owners = {}
        for kind, client, tx, amount in generate_rows(num_clients=5, num_transactions=1000, seed=3, noise=0):
            if kind in ("deposit", "withdrawal"):
                assert amount
                owners[tx] = client
            else:
                assert amount == ""
                assert owners[tx] == client

    def test_invalid_client_count(self):
        with pytest.raises(ValueError):
            list(generate_rows(num_clients=0))

    def test_main_writes_file(self, tmp_path, capsys):
        output = tmp_path / "generated.csv"

        assert main([str(output), "--clients", "3", "--transactions", "50", "--seed", "1"]) == 0

        lines = output.read_text().splitlines()
        assert lines[0] == "type,client,tx,amount"
        assert 1 < len(lines) <= 51
        assert "Generated" in capsys.readouterr().err
