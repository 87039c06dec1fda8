"""Per-client session state: anonymous identity and vote ledger."""

from amalive.session.identity import SessionIdentityStore
from amalive.session.ledger import ToggleResult, VoteKind, VoteLedger

__all__ = [
    "SessionIdentityStore",
    "ToggleResult",
    "VoteKind",
    "VoteLedger",
]
