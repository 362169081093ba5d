import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from config import configure_logging, get_settings
from errors import IngestionError
from pipeline import Pipeline
from reports import write_report

logger = structlog.get_logger()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-engine",
        description="Apply a CSV stream of transactions and print final client balances as CSV."
    )
    parser.add_argument("input", help="Path to the transactions CSV file")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of client shards processed concurrently (default: PAYMENTS_WORKERS or 1)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.workers is not None:
        if args.workers < 1:
            parser.error("--workers must be at least 1")
        settings = settings.model_copy(update={"workers": args.workers})

    configure_logging(settings)
    logger.info("Starting", app=settings.app_name, version=settings.app_version, input=args.input)

    try:
        with open(args.input, newline="", encoding="utf-8-sig") as stream:
            accounts, _ = asyncio.run(Pipeline.from_settings(settings).run(stream))
    except OSError as e:
        logger.error("Cannot open input", path=args.input, error=str(e))
        print(f"error: cannot open {args.input}: {e.strerror or e}", file=sys.stderr)
        return 1
    except IngestionError as e:
        # No partial report: either every row was consumed or nothing is printed
        logger.error("Ingestion failed", path=args.input, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1

    write_report(accounts, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
