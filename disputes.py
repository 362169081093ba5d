"""
Dispute lifecycle state machine.

Every deposit or withdrawal starts out ``normal``. A dispute moves it to
``disputed``; from there it is either resolved (funds released) or charged
back (funds removed, account locked). Both outcomes are terminal: a
transaction that was resolved or charged back cannot be disputed again.

States are tracked per transaction id. Ids with no recorded state are
implicitly ``normal``.
"""

from __future__ import annotations

from models import DisputeState, Transaction
from errors import InvalidDisputeStateError
from repositories import DisputeRepository

DISPUTE_TERMINAL_STATES: frozenset[DisputeState] = frozenset(
    {
        DisputeState.resolved,
        DisputeState.charged_back,
    }
)


# Allowed dispute state transitions.
#
# Key   : current state
# Value : set of allowed next states
DISPUTE_ALLOWED_TRANSITIONS: dict[DisputeState, frozenset[DisputeState]] = {
    DisputeState.normal: frozenset({DisputeState.disputed}),

    DisputeState.disputed: frozenset(
        {
            DisputeState.resolved,
            DisputeState.charged_back,
        }
    ),
}


def is_terminal_state(state: DisputeState) -> bool:
    """Return True if the given state is terminal."""
    return state in DISPUTE_TERMINAL_STATES


def is_valid_transition(prev_state: DisputeState, next_state: DisputeState) -> bool:
    """Return True if the transition prev_state -> next_state is allowed."""
    allowed = DISPUTE_ALLOWED_TRANSITIONS.get(prev_state)
    if allowed is None:
        return False
    return next_state in allowed


class DisputeTracker:
    """Applies dispute transitions on top of a dispute repository."""

    def __init__(self, repo: DisputeRepository):
        self.repo = repo

    async def state_of(self, tx_id: int) -> DisputeState:
        state = await self.repo.get_state(tx_id)
        return state if state is not None else DisputeState.normal

    async def check_transition(self, transaction: Transaction, next_state: DisputeState) -> DisputeState:
        """Raise InvalidDisputeStateError unless the referenced tx may move to next_state."""
        current = await self.state_of(transaction.tx)
        if not is_valid_transition(current, next_state):
            if is_terminal_state(current):
                detail = f"tx is already {current.value.replace('_', ' ')}"
            elif current == DisputeState.disputed:
                detail = "tx is already disputed"
            else:
                detail = "tx is not disputed"
            raise InvalidDisputeStateError(transaction, detail)
        return current

    async def transition(self, transaction: Transaction, next_state: DisputeState) -> None:
        await self.check_transition(transaction, next_state)
        await self.repo.set_state(transaction.tx, next_state)
