"""External collaborators consumed by the pool, with in-memory implementations.

The pool never owns balances, nullifiers or note records itself. It talks to:

    AuthorityRegistry   is this caller allowed to operate the pool?
    Ledger              move fungible value between accounts
    NullifierSet        reserve a spent-note identifier exactly once
    CommitmentStore     record a new note commitment exactly once
    PoolHost            bundles the above and provides an all-or-nothing scope

Nullifiers and commitments are opaque 32-byte values. Ledger accounts are
plain string ids.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, Optional, Protocol, Set

from zkpool.exceptions import (
    CommitmentAlreadyExistsError,
    InsufficientFundsError,
    NullifierAlreadyReservedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitmentRecord:
    """A note commitment as stored after a successful transaction."""

    commitment: bytes
    encrypted_output: bytes
    index: int


class AuthorityRegistry(Protocol):
    def is_authorized(self, authority: str) -> bool: ...


class Ledger(Protocol):
    def transfer(self, source: str, destination: str, amount: int) -> None: ...
    def balance_of(self, account: str) -> int: ...


class NullifierSet(Protocol):
    def reserve(self, nullifier: bytes) -> None: ...
    def is_reserved(self, nullifier: bytes) -> bool: ...
    def __len__(self) -> int: ...


class CommitmentStore(Protocol):
    def create(self, commitment: bytes, encrypted_output: bytes, index: int) -> CommitmentRecord: ...
    def get(self, commitment: bytes) -> Optional[CommitmentRecord]: ...


class PoolHost(Protocol):
    authorities: AuthorityRegistry
    ledger: Ledger
    nullifiers: NullifierSet
    commitments: CommitmentStore

    def atomic(self): ...
    def save_tree(self, pool_id: str, data: bytes) -> None: ...
    def load_tree(self, pool_id: str) -> Optional[bytes]: ...


class InMemoryAuthorityRegistry:
    """Fixed set of authorized operator ids."""

    def __init__(self, authorities: Iterable[str] = ()):
        self._authorities: Set[str] = set(authorities)

    def add(self, authority: str) -> None:
        self._authorities.add(authority)

    def is_authorized(self, authority: str) -> bool:
        return authority in self._authorities


class InMemoryLedger:
    """Dictionary of account balances. Unknown accounts hold zero."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self.balances: Dict[str, int] = dict(balances or {})

    def credit(self, account: str, amount: int) -> None:
        """Create value out of thin air (funding accounts in tests and demos)."""
        if amount < 0:
            raise ValueError("Credit amount must be non-negative")
        self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def transfer(self, source: str, destination: str, amount: int) -> None:
        """
        Move ``amount`` from ``source`` to ``destination``.

        Raises:
            ValueError: If amount is negative
            InsufficientFundsError: If source balance is below amount
        """
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative")
        if amount == 0:
            return
        available = self.balance_of(source)
        if available < amount:
            raise InsufficientFundsError(
                f"Account {source} holds {available}, needs {amount}"
            )
        self.balances[source] = available - amount
        self.balances[destination] = self.balance_of(destination) + amount


class InMemoryNullifierSet:
    """
    Set of reserved nullifiers.

    Grows monotonically: a nullifier, once reserved, is never released.
    The check-and-insert in ``reserve`` runs under a lock so two concurrent
    reservations of the same value cannot both succeed.
    """

    def __init__(self):
        self._nullifiers: Set[bytes] = set()
        self._lock = threading.Lock()

    def reserve(self, nullifier: bytes) -> None:
        """
        Reserve a nullifier.

        Raises:
            NullifierAlreadyReservedError: If the nullifier was reserved before
        """
        with self._lock:
            if nullifier in self._nullifiers:
                raise NullifierAlreadyReservedError(
                    f"Nullifier {nullifier.hex()[:16]}... already reserved"
                )
            self._nullifiers.add(nullifier)

    def is_reserved(self, nullifier: bytes) -> bool:
        return nullifier in self._nullifiers

    def __len__(self) -> int:
        return len(self._nullifiers)

    def snapshot(self) -> FrozenSet[bytes]:
        """Capture the reserved set for a later ``restore``."""
        with self._lock:
            return frozenset(self._nullifiers)

    def restore(self, snapshot: FrozenSet[bytes]) -> None:
        """Reset the reserved set to a ``snapshot`` (rollback of an uncommitted scope)."""
        with self._lock:
            self._nullifiers = set(snapshot)


class InMemoryCommitmentStore:
    """Commitment records keyed by commitment value."""

    def __init__(self):
        self.records: Dict[bytes, CommitmentRecord] = {}

    def create(self, commitment: bytes, encrypted_output: bytes, index: int) -> CommitmentRecord:
        """
        Store a new commitment record.

        Raises:
            CommitmentAlreadyExistsError: If the commitment is already stored
        """
        if commitment in self.records:
            raise CommitmentAlreadyExistsError(
                f"Commitment {commitment.hex()[:16]}... already exists"
            )
        record = CommitmentRecord(commitment=commitment, encrypted_output=encrypted_output, index=index)
        self.records[commitment] = record
        return record

    def get(self, commitment: bytes) -> Optional[CommitmentRecord]:
        return self.records.get(commitment)

    def __len__(self) -> int:
        return len(self.records)


class InMemoryHost:
    """
    Reference host keeping every collaborator in process memory.

    ``atomic()`` snapshots the ledger, nullifier set, commitment store and
    saved trees, and puts them back if the block raises, so a rejected
    transaction leaves no trace.
    """

    def __init__(
        self,
        authorities: Iterable[str] = (),
        balances: Optional[Dict[str, int]] = None,
    ):
        self.authorities = InMemoryAuthorityRegistry(authorities)
        self.ledger = InMemoryLedger(balances)
        self.nullifiers = InMemoryNullifierSet()
        self.commitments = InMemoryCommitmentStore()
        self.trees: Dict[str, bytes] = {}

    def save_tree(self, pool_id: str, data: bytes) -> None:
        self.trees[pool_id] = data

    def load_tree(self, pool_id: str) -> Optional[bytes]:
        return self.trees.get(pool_id)

    @contextmanager
    def atomic(self) -> Iterator["InMemoryHost"]:
        balances = dict(self.ledger.balances)
        nullifiers = self.nullifiers.snapshot()
        records = copy.copy(self.commitments.records)
        trees = dict(self.trees)
        try:
            yield self
        except Exception:
            logger.debug("Rolling back in-memory host state")
            self.ledger.balances = balances
            self.nullifiers.restore(nullifiers)
            self.commitments.records = records
            self.trees = trees
            raise
