from decimal import localcontext
from typing import Optional
import structlog

from config import ensure_logging
from models import LEDGER_CONTEXT, Account, DisputeState, HistoryEntry, Transaction, TransactionType
from repositories import (
    AccountRepository,
    DisputeRepository,
    InMemoryAccountRepository,
    InMemoryDisputeRepository,
    InMemoryTransactionHistory,
    TransactionHistory,
)
from disputes import DisputeTracker
from errors import (
    AccountLockedError,
    ClientMismatchError,
    DuplicateTransactionError,
    InsufficientFundsError,
    UnknownTransactionError,
)

logger = structlog.get_logger()


class LedgerService:
    """Applies transactions to client accounts.

    Every rejected transaction raises a ``LedgerRejection`` subclass before
    any state is touched, so a rejection is always a no-op.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        history: TransactionHistory,
        dispute_repo: DisputeRepository,
    ):
        self.account_repo = account_repo
        self.history = history
        self.disputes = DisputeTracker(dispute_repo)
        ensure_logging()

    async def apply(self, transaction: Transaction) -> Account:
        """Apply one transaction to its client's account and return the account."""

        logger.debug(
            "Applying transaction",
            type=transaction.type.value,
            client=transaction.client,
            tx=transaction.tx,
            amount=str(transaction.amount) if transaction.amount is not None else None
        )

        # Accounts exist from the first reference on, even if the transaction is rejected
        account = await self.account_repo.get_or_create(transaction.client)

        async with self.account_repo.get_lock(transaction.client):
            with localcontext(LEDGER_CONTEXT):
                if transaction.type == TransactionType.deposit:
                    await self._process_deposit(account, transaction)
                elif transaction.type == TransactionType.withdrawal:
                    await self._process_withdrawal(account, transaction)
                elif transaction.type == TransactionType.dispute:
                    await self._process_dispute(account, transaction)
                elif transaction.type == TransactionType.resolve:
                    await self._process_resolve(account, transaction)
                elif transaction.type == TransactionType.chargeback:
                    await self._process_chargeback(account, transaction)
                else:
                    raise ValueError(f"Unsupported transaction type: {transaction.type!r}")

        return account

    async def _check_new_tx_id(self, transaction: Transaction) -> None:
        if await self.history.lookup(transaction.tx) is not None:
            raise DuplicateTransactionError(transaction, "tx id already recorded")

    async def _referenced_entry(self, transaction: Transaction) -> HistoryEntry:
        entry = await self.history.lookup(transaction.tx)
        if entry is None:
            raise UnknownTransactionError(transaction, "tx not found")
        if entry.client != transaction.client:
            raise ClientMismatchError(transaction, f"tx belongs to client {entry.client}")
        return entry

    async def _process_deposit(self, account: Account, transaction: Transaction) -> None:
        if account.locked:
            raise AccountLockedError(transaction)
        await self._check_new_tx_id(transaction)

        await self.history.record(HistoryEntry.from_transaction(transaction))
        account.available += transaction.amount

        logger.debug(
            "Deposit processed",
            client=account.client,
            tx=transaction.tx,
            amount=str(transaction.amount),
            available=str(account.available)
        )

    async def _process_withdrawal(self, account: Account, transaction: Transaction) -> None:
        if account.locked:
            raise AccountLockedError(transaction)
        await self._check_new_tx_id(transaction)
        if account.available < transaction.amount:
            raise InsufficientFundsError(
                transaction,
                f"available {account.available} is less than {transaction.amount}"
            )

        await self.history.record(HistoryEntry.from_transaction(transaction))
        account.available -= transaction.amount

        logger.debug(
            "Withdrawal processed",
            client=account.client,
            tx=transaction.tx,
            amount=str(transaction.amount),
            available=str(account.available)
        )

    async def _process_dispute(self, account: Account, transaction: Transaction) -> None:
        entry = await self._referenced_entry(transaction)
        await self.disputes.transition(transaction, DisputeState.disputed)

        # Always the recorded amount, never one supplied by the dispute row.
        # For a withdrawal this can push available below zero.
        account.available -= entry.amount
        account.held += entry.amount

        logger.debug(
            "Dispute processed",
            client=account.client,
            tx=transaction.tx,
            disputed_type=entry.type.value,
            amount=str(entry.amount),
            available=str(account.available),
            held=str(account.held)
        )

    async def _process_resolve(self, account: Account, transaction: Transaction) -> None:
        entry = await self._referenced_entry(transaction)
        await self.disputes.transition(transaction, DisputeState.resolved)

        account.held -= entry.amount
        account.available += entry.amount

        logger.debug(
            "Resolve processed",
            client=account.client,
            tx=transaction.tx,
            amount=str(entry.amount),
            available=str(account.available),
            held=str(account.held)
        )

    async def _process_chargeback(self, account: Account, transaction: Transaction) -> None:
        entry = await self._referenced_entry(transaction)
        await self.disputes.transition(transaction, DisputeState.charged_back)

        account.held -= entry.amount
        account.locked = True

        logger.info(
            "Account locked by chargeback",
            client=account.client,
            tx=transaction.tx,
            amount=str(entry.amount),
            available=str(account.available),
            held=str(account.held)
        )


# Factory function for dependency injection
def get_ledger_service(
    account_repo: Optional[AccountRepository] = None,
    history: Optional[TransactionHistory] = None,
    dispute_repo: Optional[DisputeRepository] = None,
) -> LedgerService:
    return LedgerService(
        account_repo if account_repo is not None else InMemoryAccountRepository(),
        history if history is not None else InMemoryTransactionHistory(),
        dispute_repo if dispute_repo is not None else InMemoryDisputeRepository(),
    )
