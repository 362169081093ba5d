from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from enum import Enum
from typing import Any, Dict, Optional
from decimal import Context, Decimal, Inexact, InvalidOperation, Overflow
import re


# Every amount is carried with exactly four fractional digits.
AMOUNT_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0.0000")

# Largest amount a signed 64-bit count of ten-thousandths can hold
MAX_AMOUNT = Decimal(2 ** 63 - 1).scaleb(-4)

# Balances are sums of at most 2**32 capped amounts: 29 significant digits.
# Any rounding would raise Inexact instead of silently losing a digit.
LEDGER_CONTEXT = Context(prec=38, traps=[InvalidOperation, Inexact, Overflow])

MAX_CLIENT_ID = 2 ** 16 - 1
MAX_TX_ID = 2 ** 32 - 1

ID_PATTERN = re.compile(r"\+?[0-9]+")
AMOUNT_PATTERN = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)")


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def moves_funds(self) -> bool:
        return self in FUNDS_TRANSACTION_TYPES


FUNDS_TRANSACTION_TYPES = frozenset({TransactionType.deposit, TransactionType.withdrawal})
DISPUTE_TRANSACTION_TYPES = frozenset({
    TransactionType.dispute,
    TransactionType.resolve,
    TransactionType.chargeback,
})


def quantize_amount(value: Decimal) -> Decimal:
    """Return value with exactly four fractional digits, refusing to round."""
    if not value.is_finite():
        raise ValueError("Amount must be a finite number")
    if abs(value) > MAX_AMOUNT:
        raise ValueError(f"Amount must not exceed {MAX_AMOUNT}")
    try:
        quantized = value.quantize(AMOUNT_QUANTUM)
    except InvalidOperation:
        raise ValueError("Amount is out of range") from None
    if quantized != value:
        raise ValueError("Amount must have at most 4 decimal places")
    # "-0" is a valid decimal literal but not a meaningful amount
    return quantized.copy_abs() if quantized.is_zero() else quantized


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction kind")
    client: int = Field(
        ...,
        ge=0,
        le=MAX_CLIENT_ID,
        description="Client identifier (unsigned 16-bit)"
    )
    tx: int = Field(
        ...,
        ge=0,
        le=MAX_TX_ID,
        description="Transaction identifier (unsigned 32-bit)"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Amount for deposits and withdrawals, ignored for the dispute family"
    )

    @model_validator(mode="before")
    @classmethod
    def drop_amount_for_dispute_family(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        kind = data.get("type")
        if isinstance(kind, TransactionType):
            kind = kind.value
        if isinstance(kind, str) and kind.strip() in {t.value for t in DISPUTE_TRANSACTION_TYPES}:
            return {**data, "amount": None}
        return data

    @field_validator("type", mode="before")
    @classmethod
    def strip_type(cls, v):
        if isinstance(v, str) and not isinstance(v, TransactionType):
            return v.strip()
        return v

    @field_validator("client", "tx", mode="before")
    @classmethod
    def validate_id_syntax(cls, v):
        # Plain unsigned digits only: no "1_0", "1.0" or "1e3"
        if isinstance(v, str):
            if not ID_PATTERN.fullmatch(v.strip()):
                raise ValueError("Id must be an unsigned integer")
            return int(v)
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount_syntax(cls, v):
        if isinstance(v, str) and v.strip():
            if not AMOUNT_PATTERN.fullmatch(v.strip()):
                raise ValueError("Amount must be a plain decimal number")
            return Decimal(v.strip())
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount_precision(cls, v):
        if v is None:
            return v
        return quantize_amount(v)

    @model_validator(mode="after")
    def validate_amount_presence(self) -> "Transaction":
        if self.type.moves_funds and self.amount is None:
            raise ValueError(f"{self.type.value} requires an amount")
        return self


class HistoryEntry(BaseModel):
    """An accepted deposit or withdrawal, kept for later dispute lookups."""

    model_config = ConfigDict(frozen=True)

    tx: int
    client: int
    type: TransactionType
    amount: Decimal

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if not v.moves_funds:
            raise ValueError("Only deposits and withdrawals are recorded in history")
        return v

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "HistoryEntry":
        return cls(
            tx=transaction.tx,
            client=transaction.client,
            type=transaction.type,
            amount=transaction.amount,
        )


class DisputeState(str, Enum):
    normal = "normal"
    disputed = "disputed"
    resolved = "resolved"
    charged_back = "charged_back"


class Account(BaseModel):
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID)
    available: Decimal = Field(default=ZERO, description="Funds free to withdraw")
    held: Decimal = Field(default=ZERO, description="Funds held by open disputes")
    locked: bool = Field(default=False, description="Set by a chargeback, never cleared")

    @computed_field
    @property
    def total(self) -> Decimal:
        return LEDGER_CONTEXT.add(self.available, self.held)


class RunSummary(BaseModel):
    rows_read: int = Field(default=0, description="Data rows read from the source")
    parse_errors: int = Field(default=0, description="Rows skipped as malformed")
    transactions_applied: int = Field(default=0, description="Transactions with a ledger effect")
    rejections: Dict[str, int] = Field(default_factory=dict, description="Ledger rejections by reason")
    accounts_count: int = Field(default=0, description="Accounts in the final report")

    @property
    def transactions_rejected(self) -> int:
        return sum(self.rejections.values())

    def record_rejection(self, reason: str) -> None:
        self.rejections[reason] = self.rejections.get(reason, 0) + 1
