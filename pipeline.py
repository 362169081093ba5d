"""Streaming pipeline from raw CSV rows to final account states.

With a single worker every transaction is applied in input order. With
more workers, transactions are sharded by client id into bounded queues,
one consumer per shard. Each shard owns its accounts outright; the
transaction history and dispute states are shared because transaction
ids are global. Per-client order is preserved either way, so both modes
produce the same accounts.
"""

import asyncio
from typing import Dict, List, Optional, TextIO, Tuple

import structlog

from config import Settings, get_settings
from models import Account, RunSummary, Transaction
from parser import TransactionReader
from repositories import InMemoryAccountRepository, InMemoryDisputeRepository, InMemoryTransactionHistory
from services import LedgerService
from errors import LedgerRejection

logger = structlog.get_logger()


class Pipeline:
    def __init__(self, workers: int = 1, queue_size: int = 1024, log_rejections: bool = True):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self.queue_size = queue_size
        self.log_rejections = log_rejections
        self.history = InMemoryTransactionHistory()
        self.dispute_repo = InMemoryDisputeRepository()
        self.shards: List[LedgerService] = [
            LedgerService(InMemoryAccountRepository(), self.history, self.dispute_repo)
            for _ in range(workers)
        ]
        self.summary = RunSummary()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Pipeline":
        return cls(
            workers=settings.workers,
            queue_size=settings.queue_size,
            log_rejections=settings.log_rejections,
        )

    def shard_for(self, client_id: int) -> int:
        return client_id % len(self.shards)

    async def run(self, stream: TextIO) -> Tuple[List[Account], RunSummary]:
        """Consume the whole stream and return accounts in client id order.

        Raises IngestionError if the stream cannot be read; nothing is
        returned in that case.
        """
        reader = TransactionReader(stream)

        logger.info("Processing started", workers=len(self.shards), queue_size=self.queue_size)

        if len(self.shards) == 1:
            for transaction in reader:
                await self._apply(self.shards[0], transaction)
        else:
            await self._run_sharded(reader)

        accounts = await self.accounts()

        self.summary.rows_read = reader.rows_read
        self.summary.parse_errors = reader.parse_errors
        self.summary.accounts_count = sum(
            [await ledger.account_repo.get_accounts_count() for ledger in self.shards]
        )

        logger.info(
            "Processing complete",
            transactions_rejected=self.summary.transactions_rejected,
            transactions_recorded=await self.history.get_transactions_count(),
            disputes_opened=await self.dispute_repo.get_disputes_count(),
            **self.summary.model_dump()
        )

        return accounts, self.summary

    async def accounts(self) -> List[Account]:
        merged: List[Account] = []
        for ledger in self.shards:
            merged.extend(await ledger.account_repo.list_accounts())
        return sorted(merged, key=lambda account: account.client)

    async def _apply(self, ledger: LedgerService, transaction: Transaction) -> None:
        try:
            await ledger.apply(transaction)
        except LedgerRejection as e:
            self.summary.record_rejection(e.reason)
            log = logger.warning if self.log_rejections else logger.debug
            log(
                "Transaction rejected",
                type=transaction.type.value,
                client=transaction.client,
                tx=transaction.tx,
                reason=e.reason,
                detail=e.detail
            )
        else:
            self.summary.transactions_applied += 1

    async def _run_sharded(self, reader: TransactionReader) -> None:
        queues: List[asyncio.Queue] = [asyncio.Queue(maxsize=self.queue_size) for _ in self.shards]
        workers = [
            asyncio.create_task(self._consume(ledger, queue))
            for ledger, queue in zip(self.shards, queues)
        ]
        producer = asyncio.create_task(self._dispatch(reader, queues))
        tasks = [producer, *workers]

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                error = task.exception()
                if error is not None:
                    raise error
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _dispatch(self, reader: TransactionReader, queues: List[asyncio.Queue]) -> None:
        # tx id -> shard that last received a deposit/withdrawal with that id
        claimed: Dict[int, int] = {}

        for transaction in reader:
            shard = self.shard_for(transaction.client)

            if transaction.type.moves_funds:
                previous: Optional[int] = claimed.get(transaction.tx)
                if previous is not None and previous != shard:
                    # Whether this one is a duplicate depends on how the
                    # earlier one, owned by another shard, turned out.
                    await asyncio.gather(*(queue.join() for queue in queues))
                claimed[transaction.tx] = shard

            await queues[shard].put(transaction)

        for queue in queues:
            await queue.put(None)

    async def _consume(self, ledger: LedgerService, queue: asyncio.Queue) -> None:
        while True:
            transaction = await queue.get()
            try:
                if transaction is None:
                    return
                await self._apply(ledger, transaction)
            finally:
                queue.task_done()


async def run_pipeline(stream: TextIO, settings: Optional[Settings] = None) -> Tuple[List[Account], RunSummary]:
    """Process a transaction stream with the configured pipeline."""
    settings = settings or get_settings()
    return await Pipeline.from_settings(settings).run(stream)
