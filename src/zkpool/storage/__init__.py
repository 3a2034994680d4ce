"""Storage layer for persistent data."""

from zkpool.storage.database import (
    Base,
    Commitment,
    DatabaseManager,
    LedgerAccount,
    Nullifier,
    SqlCommitmentStore,
    SqlHost,
    SqlLedger,
    SqlNullifierSet,
    TreeState,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "Base",
    "Commitment",
    "DatabaseManager",
    "LedgerAccount",
    "Nullifier",
    "SqlCommitmentStore",
    "SqlHost",
    "SqlLedger",
    "SqlNullifierSet",
    "TreeState",
    "get_db_manager",
    "reset_db_manager",
]
