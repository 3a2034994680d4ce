"""Shielded pool: orchestration of one private transaction.

A transaction spends two input notes (revealed only through their
nullifiers) and creates two output notes (revealed only as commitments),
optionally moving value in or out of the pool. Every check runs before any
state is touched:

    START                  authority, asset and amount range checks
      -> ROOT_CHECKED        proof.root is a recent accumulator root
      -> DATA_BOUND          ext_data hashes to proof.ext_data_hash
      -> AMOUNT_RECONCILED   ext_amount and fee match proof.public_amount
      -> PROOF_VERIFIED      Groth16 pairing check passes
      -> VALUE_MOVED         deposit / withdrawal / fee transfers done
      -> TREE_UPDATED        both output commitments appended
      -> COMMITTED           both input nullifiers reserved

Any failure ends in REJECTED with nothing retained: the tree is restored from
its snapshot and the host's ``atomic()`` scope rolls back the collaborators.

A pool instance is not thread-safe. Callers serialize ``transact`` per pool;
the nullifier reservation is the only step that must be atomic across pools
sharing a host.
"""

import logging
from enum import Enum
from typing import List, Optional

from zkpool.core.amount import check_public_amount, validate_amounts
from zkpool.core.collaborators import InMemoryHost
from zkpool.core.merkle_tree import DEFAULT_HEIGHT, ROOT_HISTORY_SIZE, MerkleAccumulator
from zkpool.core.transaction import MINT_SIZE, ExtData, Proof, ext_data_hash_matches
from zkpool.crypto.groth16 import verify_proof
from zkpool.utils.encoding import bytes_to_hex
from zkpool.utils.hash import HashFn, merkle_hash
from zkpool.exceptions import (
    ExtDataHashMismatchError,
    InsufficientFundsError,
    InsufficientFundsForDepositError,
    InsufficientFundsForFeeError,
    InsufficientFundsForWithdrawalError,
    InvalidPublicAmountDataError,
    PoolAlreadyInitializedError,
    PoolNotInitializedError,
    TokenMintMismatchError,
    UnauthorizedError,
    UnknownRootError,
)

logger = logging.getLogger(__name__)

DEFAULT_POOL_ID = "default"
DEFAULT_VAULT = "pool-vault"


class TransactState(str, Enum):
    """Progress of a single ``transact`` call."""

    START = "start"
    ROOT_CHECKED = "root_checked"
    DATA_BOUND = "data_bound"
    AMOUNT_RECONCILED = "amount_reconciled"
    PROOF_VERIFIED = "proof_verified"
    VALUE_MOVED = "value_moved"
    TREE_UPDATED = "tree_updated"
    COMMITTED = "committed"
    REJECTED = "rejected"


class TransactReceipt:
    """Receipt for a committed transaction."""

    def __init__(
        self,
        state: TransactState,
        commitment_indices: List[int],
        merkle_root: bytes,
        next_index: int,
        nullifiers: List[bytes],
        ext_amount: int,
        fee: int,
    ):
        self.state = state
        self.commitment_indices = commitment_indices
        self.merkle_root = merkle_root
        self.next_index = next_index
        self.nullifiers = nullifiers
        self.ext_amount = ext_amount
        self.fee = fee

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "commitment_indices": list(self.commitment_indices),
            "merkle_root": bytes_to_hex(self.merkle_root),
            "next_index": self.next_index,
            "nullifiers": [bytes_to_hex(n) for n in self.nullifiers],
            "ext_amount": self.ext_amount,
            "fee": self.fee,
        }


class PoolState:
    """State of the pool."""

    def __init__(
        self,
        initialized: bool,
        merkle_root: Optional[bytes],
        tree_height: int,
        next_index: int,
        root_index: int,
        num_nullifiers: int,
    ):
        self.initialized = initialized
        self.merkle_root = merkle_root
        self.tree_height = tree_height
        self.next_index = next_index
        self.root_index = root_index
        self.num_nullifiers = num_nullifiers

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "initialized": self.initialized,
            "merkle_root": bytes_to_hex(self.merkle_root) if self.merkle_root else None,
            "tree_height": self.tree_height,
            "next_index": self.next_index,
            "root_index": self.root_index,
            "num_nullifiers": self.num_nullifiers,
        }


class ShieldedPool:
    """
    Verification core of a shielded pool.

    Attributes:
        authority: Operator id allowed to initialize the pool and submit transactions
        mint: 32-byte asset id this pool holds (None for the native asset)
        host: Collaborators (authority registry, ledger, nullifiers, commitments)
        verifying_key: Groth16 key (process-wide key when None)
        vault: Ledger account holding the pool's funds
        fee_recipient: Ledger account receiving relayer fees
        merkle_tree: Commitment accumulator (None until initialized)
        last_state: Final state of the most recent ``transact`` call
    """

    def __init__(
        self,
        authority: str,
        mint: Optional[bytes] = None,
        host=None,
        verifying_key=None,
        tree_height: int = DEFAULT_HEIGHT,
        hash_fn: HashFn = merkle_hash,
        root_history_size: int = ROOT_HISTORY_SIZE,
        pool_id: str = DEFAULT_POOL_ID,
        vault: str = DEFAULT_VAULT,
        fee_recipient: Optional[str] = None,
    ):
        if mint is not None and len(mint) != MINT_SIZE:
            raise ValueError(f"Mint must be {MINT_SIZE} bytes")

        self.authority = authority
        self.mint = mint
        self.host = host if host is not None else InMemoryHost(authorities=[authority])
        self.verifying_key = verifying_key
        self.tree_height = tree_height
        self.hash_fn = hash_fn
        self.root_history_size = root_history_size
        self.pool_id = pool_id
        self.vault = vault
        self.fee_recipient = fee_recipient if fee_recipient is not None else authority
        self.last_state: Optional[TransactState] = None

        self.merkle_tree: Optional[MerkleAccumulator] = None
        stored = self.host.load_tree(pool_id)
        if stored is not None:
            self.merkle_tree = MerkleAccumulator.from_bytes(stored, hash_fn=hash_fn)
            logger.info("Resumed pool %s at %d leaves", pool_id, len(self.merkle_tree))

    @property
    def is_initialized(self) -> bool:
        return self.merkle_tree is not None

    def initialize_pool(self, authority: Optional[str] = None) -> PoolState:
        """
        Create an empty accumulator for this pool.

        Raises:
            UnauthorizedError: If the caller is not an authorized operator
            PoolAlreadyInitializedError: If the pool already has a tree
        """
        self._check_authority(authority if authority is not None else self.authority)
        if self.merkle_tree is not None:
            raise PoolAlreadyInitializedError(f"Pool {self.pool_id} is already initialized")

        tree = MerkleAccumulator(
            height=self.tree_height,
            hash_fn=self.hash_fn,
            root_history_size=self.root_history_size,
        )
        with self.host.atomic():
            self.host.save_tree(self.pool_id, tree.to_bytes())
        self.merkle_tree = tree

        logger.info("Initialized pool %s with tree height %d", self.pool_id, self.tree_height)
        return self.get_pool_state()

    def transact(
        self,
        proof: Proof,
        ext_data: ExtData,
        authority: Optional[str] = None,
        signer: Optional[str] = None,
    ) -> TransactReceipt:
        """
        Verify and apply one shielded transaction.

        Args:
            proof: Groth16 proof with its public inputs (``proof_a`` negated)
            ext_data: Plaintext transfer parameters bound by ``proof.ext_data_hash``
            authority: Operator submitting the transaction (defaults to the pool authority)
            signer: Ledger account funding a deposit (defaults to the authority)

        Returns:
            TransactReceipt: Indices of the new commitments and the new root

        Raises:
            ZKPoolException: Subclass naming the failed check; nothing is retained
        """
        tree = self._require_tree()
        authority = authority if authority is not None else self.authority
        signer = signer if signer is not None else authority

        state = TransactState.START
        snapshot = tree.snapshot()
        try:
            with self.host.atomic():
                self._check_authority(authority)
                self._check_mint(ext_data)
                validate_amounts(ext_data.ext_amount, ext_data.fee)

                if not tree.is_known_root(proof.root):
                    raise UnknownRootError("Proof root is not in the recent root history")
                state = self._advance(state, TransactState.ROOT_CHECKED)

                if not ext_data_hash_matches(ext_data, proof.ext_data_hash):
                    raise ExtDataHashMismatchError("External data does not match the proof")
                state = self._advance(state, TransactState.DATA_BOUND)

                if not check_public_amount(ext_data.ext_amount, ext_data.fee, proof.public_amount):
                    raise InvalidPublicAmountDataError(
                        "Public amount does not match ext_amount and fee"
                    )
                state = self._advance(state, TransactState.AMOUNT_RECONCILED)

                verify_proof(proof, self.verifying_key)
                state = self._advance(state, TransactState.PROOF_VERIFIED)

                self._move_value(ext_data, signer)
                state = self._advance(state, TransactState.VALUE_MOVED)

                indices = self._append_outputs(tree, proof, ext_data)
                state = self._advance(state, TransactState.TREE_UPDATED)

                for nullifier in proof.input_nullifiers:
                    self.host.nullifiers.reserve(nullifier)
                self.host.save_tree(self.pool_id, tree.to_bytes())
                state = self._advance(state, TransactState.COMMITTED)
        except Exception as e:
            tree.restore(snapshot)
            self.last_state = TransactState.REJECTED
            logger.warning(
                "Transaction rejected after %s: %s",
                state.value,
                getattr(e, "code", type(e).__name__),
            )
            raise

        self.last_state = state
        logger.info(
            "Committed transaction: ext_amount=%d fee=%d leaves=%s",
            ext_data.ext_amount,
            ext_data.fee,
            indices,
        )
        return TransactReceipt(
            state=state,
            commitment_indices=indices,
            merkle_root=tree.root,
            next_index=tree.next_index,
            nullifiers=list(proof.input_nullifiers),
            ext_amount=ext_data.ext_amount,
            fee=ext_data.fee,
        )

    def is_known_root(self, root: bytes) -> bool:
        return self._require_tree().is_known_root(root)

    def get_pool_state(self) -> PoolState:
        """Get the current pool state."""
        tree = self.merkle_tree
        return PoolState(
            initialized=tree is not None,
            merkle_root=tree.root if tree is not None else None,
            tree_height=tree.height if tree is not None else self.tree_height,
            next_index=tree.next_index if tree is not None else 0,
            root_index=tree.root_index if tree is not None else 0,
            num_nullifiers=len(self.host.nullifiers),
        )

    def _require_tree(self) -> MerkleAccumulator:
        if self.merkle_tree is None:
            raise PoolNotInitializedError(f"Pool {self.pool_id} is not initialized")
        return self.merkle_tree

    def _advance(self, current: TransactState, target: TransactState) -> TransactState:
        logger.debug("Transaction %s -> %s", current.value, target.value)
        return target

    def _check_authority(self, authority: str) -> None:
        if authority != self.authority or not self.host.authorities.is_authorized(authority):
            raise UnauthorizedError(f"{authority} is not authorized for pool {self.pool_id}")

    def _check_mint(self, ext_data: ExtData) -> None:
        if ext_data.mint is not None and ext_data.mint != self.mint:
            raise TokenMintMismatchError("Transaction asset does not match the pool asset")

    def _move_value(self, ext_data: ExtData, signer: str) -> None:
        ledger = self.host.ledger
        ext_amount = ext_data.ext_amount

        if ext_amount > 0:
            try:
                ledger.transfer(signer, self.vault, ext_amount)
            except InsufficientFundsError as e:
                raise InsufficientFundsForDepositError(str(e)) from e
        elif ext_amount < 0:
            try:
                ledger.transfer(self.vault, bytes_to_hex(ext_data.recipient), -ext_amount)
            except InsufficientFundsError as e:
                raise InsufficientFundsForWithdrawalError(str(e)) from e

        if ext_data.fee > 0:
            try:
                ledger.transfer(self.vault, self.fee_recipient, ext_data.fee)
            except InsufficientFundsError as e:
                raise InsufficientFundsForFeeError(str(e)) from e

    def _append_outputs(
        self, tree: MerkleAccumulator, proof: Proof, ext_data: ExtData
    ) -> List[int]:
        indices = []
        outputs = (ext_data.encrypted_output1, ext_data.encrypted_output2)
        for commitment, encrypted_output in zip(proof.output_commitments, outputs):
            tree.append(commitment)
            index = tree.next_index - 1
            self.host.commitments.create(commitment, encrypted_output, index)
            indices.append(index)
        return indices
