"""Synthetic transaction streams for load and property testing.

Run as ``python -m generator OUTPUT.csv`` to write a CSV the engine can
consume. Most generated rows are plausible; disputes, resolves and
chargebacks reference the client's own earlier deposits and withdrawals,
and a small share of rows is deliberately wrong (unknown tx ids, reused
ids, withdrawals larger than the balance) so rejections get exercised.
"""

import argparse
import csv
import random
import sys
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, TextIO

from models import AMOUNT_QUANTUM, MAX_CLIENT_ID

HEADER = ["type", "client", "tx", "amount"]

# (deposit, withdrawal, dispute, resolve, chargeback)
TRANSACTION_WEIGHTS = [60, 25, 8, 5, 2]
TRANSACTION_TYPES = ["deposit", "withdrawal", "dispute", "resolve", "chargeback"]


def random_amount(rng: random.Random, low: float = 0.0001, high: float = 10000.0) -> Decimal:
    return Decimal(str(rng.uniform(low, high))).quantize(AMOUNT_QUANTUM)


def generate_rows(
    num_clients: int = 100,
    num_transactions: int = 10000,
    seed: Optional[int] = None,
    noise: float = 0.05,
) -> Iterator[List[str]]:
    """Yield CSV rows (without header) for a random transaction stream."""
    if not 1 <= num_clients <= MAX_CLIENT_ID + 1:
        raise ValueError("num_clients must be between 1 and 65536")

    rng = random.Random(seed)
    funds_txs: Dict[int, List[int]] = {}
    open_disputes: Dict[int, List[int]] = {}
    next_tx = 1

    for _ in range(num_transactions):
        kind = rng.choices(TRANSACTION_TYPES, weights=TRANSACTION_WEIGHTS, k=1)[0]
        client = rng.randrange(num_clients)
        history = funds_txs.setdefault(client, [])
        disputes = open_disputes.setdefault(client, [])
        noisy = rng.random() < noise

        if kind in ("deposit", "withdrawal"):
            tx = next_tx
            if noisy and next_tx > 1:
                tx = rng.randrange(1, next_tx)  # reused id
            else:
                next_tx += 1
            amount = random_amount(rng)
            if kind == "withdrawal" and not noisy:
                amount = (amount / 4).quantize(AMOUNT_QUANTUM)
            history.append(tx)
            yield [kind, str(client), str(tx), str(amount)]

        elif kind == "dispute":
            if noisy:
                # Unknown at this point in the stream
                yield [kind, str(client), str(next_tx + rng.randrange(1, 1000)), ""]
            elif history:
                tx = rng.choice(history)
                disputes.append(tx)
                yield [kind, str(client), str(tx), ""]

        elif disputes:
            tx = disputes.pop(rng.randrange(len(disputes)))
            yield [kind, str(client), str(tx), ""]

        elif history:
            # Nothing under dispute: rejected as not disputed
            yield [kind, str(client), str(rng.choice(history)), ""]


def write_csv(stream: TextIO, rows: Iterator[List[str]]) -> int:
    """Write header and rows to stream; returns the number of data rows."""
    csvwriter = csv.writer(stream, lineterminator="\n")
    csvwriter.writerow(HEADER)
    count = 0
    for row in rows:
        csvwriter.writerow(row)
        count += 1
    return count


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate a synthetic transactions CSV.")
    parser.add_argument("output", help="Output CSV path, or - for stdout")
    parser.add_argument("--clients", type=int, default=1000)
    parser.add_argument("--transactions", type=int, default=500000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--noise", type=float, default=0.05, help="Share of deliberately invalid rows")
    args = parser.parse_args(argv)

    rows = generate_rows(args.clients, args.transactions, args.seed, args.noise)
    if args.output == "-":
        count = write_csv(sys.stdout, rows)
    else:
        with open(args.output, "w", newline="", encoding="utf-8") as f:
            count = write_csv(f, rows)

    print(f"Generated {count} transactions for {args.clients} clients", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
