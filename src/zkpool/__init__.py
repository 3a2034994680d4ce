"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ZK Shielded Pool Team"
__description__ = "Groth16 verification core for a two-in / two-out shielded pool"

from .core.merkle_tree import MerkleAccumulator
from .core.transaction import ExtData, Proof, compute_ext_data_hash
from .core.pool import ShieldedPool, TransactReceipt, TransactState, PoolState
from .crypto.groth16 import Groth16Verifier, verify_proof
from .crypto.keys import VerifyingKey, load_verifying_key

__all__ = [
    "MerkleAccumulator",
    "ExtData",
    "Proof",
    "compute_ext_data_hash",
    "ShieldedPool",
    "TransactReceipt",
    "TransactState",
    "PoolState",
    "Groth16Verifier",
    "verify_proof",
    "VerifyingKey",
    "load_verifying_key",
]
