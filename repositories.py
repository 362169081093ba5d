from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import asyncio
from collections import defaultdict

from models import Account, DisputeState, HistoryEntry
from errors import DuplicateTransactionError


class AccountRepository(ABC):
    @abstractmethod
    async def get(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if the client was never seen."""
        pass

    @abstractmethod
    async def get_or_create(self, client_id: int) -> Account:
        """Get account, creating an empty one on first reference."""
        pass

    @abstractmethod
    async def list_accounts(self) -> List[Account]:
        """All accounts in ascending client id order."""
        pass

    @abstractmethod
    async def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass

    @abstractmethod
    def get_lock(self, client_id: int) -> asyncio.Lock:
        """Get the lock serializing updates to one client's account."""
        pass


class TransactionHistory(ABC):
    @abstractmethod
    async def record(self, entry: HistoryEntry) -> None:
        """Append an accepted deposit or withdrawal. Tx ids are write-once."""
        pass

    @abstractmethod
    async def lookup(self, tx_id: int) -> Optional[HistoryEntry]:
        """Get recorded entry by tx id."""
        pass

    @abstractmethod
    async def get_transactions_count(self) -> int:
        """Get total number of recorded transactions."""
        pass


class DisputeRepository(ABC):
    @abstractmethod
    async def get_state(self, tx_id: int) -> Optional[DisputeState]:
        """Get dispute state. Returns None if the tx was never disputed."""
        pass

    @abstractmethod
    async def set_state(self, tx_id: int, state: DisputeState) -> None:
        """Store dispute state for a tx."""
        pass

    @abstractmethod
    async def get_disputes_count(self) -> int:
        """Get number of transactions that were ever disputed."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}
        self.locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    async def get_or_create(self, client_id: int) -> Account:
        account = self.accounts.get(client_id)
        if account is None:
            account = Account(client=client_id)
            self.accounts[client_id] = account
        return account

    async def list_accounts(self) -> List[Account]:
        return [self.accounts[client_id] for client_id in sorted(self.accounts)]

    async def get_accounts_count(self) -> int:
        return len(self.accounts)

    def get_lock(self, client_id: int) -> asyncio.Lock:
        """Get lock for specific client."""
        return self.locks[client_id]


class InMemoryTransactionHistory(TransactionHistory):
    def __init__(self):
        self.entries: Dict[int, HistoryEntry] = {}

    async def record(self, entry: HistoryEntry) -> None:
        if entry.tx in self.entries:
            raise DuplicateTransactionError(entry, "tx id already recorded")
        self.entries[entry.tx] = entry

    async def lookup(self, tx_id: int) -> Optional[HistoryEntry]:
        return self.entries.get(tx_id)

    async def get_transactions_count(self) -> int:
        return len(self.entries)


class InMemoryDisputeRepository(DisputeRepository):
    def __init__(self):
        self.states: Dict[int, DisputeState] = {}

    async def get_state(self, tx_id: int) -> Optional[DisputeState]:
        return self.states.get(tx_id)

    async def set_state(self, tx_id: int, state: DisputeState) -> None:
        self.states[tx_id] = state

    async def get_disputes_count(self) -> int:
        return len(self.states)
