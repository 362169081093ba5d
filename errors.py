from typing import Optional, Sequence


class PaymentsError(Exception):
    """Base class for all payments engine errors."""


class IngestionError(PaymentsError):
    """Fatal: the input source cannot be read as a transaction stream."""


class RowParseError(PaymentsError):
    """A single input row could not be turned into a transaction."""

    def __init__(self, reason: str, line: Optional[int] = None, row: Optional[Sequence[str]] = None):
        self.reason = reason
        self.line = line
        self.row = list(row) if row is not None else None
        super().__init__(reason)


class LedgerRejection(PaymentsError):
    """A valid transaction that the ledger refused to apply.

    Rejections never mutate state. They are informational: the caller logs
    them and moves on to the next transaction.
    """

    reason = "rejected"

    def __init__(self, transaction, detail: Optional[str] = None):
        self.transaction = transaction
        self.detail = detail or self.reason.replace("_", " ")
        super().__init__(self.detail)


class AccountLockedError(LedgerRejection):
    reason = "account_locked"


class InsufficientFundsError(LedgerRejection):
    reason = "insufficient_funds"


class DuplicateTransactionError(LedgerRejection):
    reason = "duplicate_tx"


class UnknownTransactionError(LedgerRejection):
    reason = "unknown_tx"


class ClientMismatchError(LedgerRejection):
    reason = "client_mismatch"


class InvalidDisputeStateError(LedgerRejection):
    reason = "invalid_dispute_state"
