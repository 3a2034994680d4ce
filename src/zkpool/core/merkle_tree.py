"""Incremental Merkle accumulator for output commitments.

Append-only binary tree that only keeps the right frontier (``subtrees``)
plus a bounded ring buffer of recent roots. Proofs may be built against any
root still inside that window; older roots are intentionally unverifiable.

The accumulator is not thread-safe. Callers must hold exclusive access for
the duration of each mutating call (one ``append`` at a time per tree).
"""

import struct
from typing import List, Optional

from zkpool.utils.hash import HashFn, ZERO_LEAF, merkle_hash, zero_hashes
from zkpool.exceptions import (
    ArithmeticOverflowError,
    DeserializationError,
    InvalidLeafError,
    TreeFullError,
)

DEFAULT_HEIGHT = 26
ROOT_HISTORY_SIZE = 100
MAX_NEXT_INDEX = 2**64 - 1

# Serialized layout: magic, version, height, history size, next_index, root_index
_HEADER = struct.Struct(">4sBBHQQ")
_MAGIC = b"ZKMT"
_LAYOUT_VERSION = 1
_NODE_SIZE = 32


class MerkleAccumulator:
    """
    Append-only Merkle tree with a root history window.

    Invariants:
    - ``root_history[root_index] == root`` at all times
    - ``next_index`` never wraps; an overflowing append fails and changes nothing
    """

    def __init__(
        self,
        height: int = DEFAULT_HEIGHT,
        hash_fn: HashFn = merkle_hash,
        root_history_size: int = ROOT_HISTORY_SIZE,
    ):
        """
        Create and initialize an empty accumulator.

        Args:
            height: Tree height (1..64)
            hash_fn: Two-input node hash
            root_history_size: Number of recent roots kept for proof checks

        Raises:
            ValueError: If height or history size is invalid
        """
        if height < 1 or height > 64:
            raise ValueError("Tree height must be between 1 and 64")
        if root_history_size < 1 or root_history_size > 0xFFFF:
            raise ValueError("Root history size must be between 1 and 65535")

        self.height = height
        self.hash_fn = hash_fn
        self.root_history_size = root_history_size
        self.initialize()

    def initialize(self) -> None:
        """Reset to the empty tree and seed the root history with the empty root."""
        zeros = zero_hashes(self.height, self.hash_fn)
        self.subtrees: List[bytes] = zeros[: self.height]
        self.root: bytes = zeros[self.height]
        self.root_history: List[bytes] = [ZERO_LEAF] * self.root_history_size
        self.root_history[0] = self.root
        self.root_index = 0
        self.next_index = 0

    @property
    def max_leaves(self) -> int:
        return 2**self.height

    def append(self, leaf: bytes) -> List[bytes]:
        """
        Insert a leaf at ``next_index`` and record the new root.

        Args:
            leaf: 32-byte commitment

        Returns:
            List[bytes]: Sibling hash per level (inclusion path for the leaf)

        Raises:
            InvalidLeafError: If leaf is not 32 bytes
            TreeFullError: If every slot is used
            ArithmeticOverflowError: If next_index would wrap
        """
        if not isinstance(leaf, bytes) or len(leaf) != _NODE_SIZE:
            raise InvalidLeafError("Leaf must be 32 bytes")
        if self.next_index >= MAX_NEXT_INDEX:
            raise ArithmeticOverflowError("next_index would overflow")
        if self.next_index >= self.max_leaves:
            raise TreeFullError(f"Tree is full (max {self.max_leaves} leaves)")

        zeros = zero_hashes(self.height, self.hash_fn)
        subtrees = list(self.subtrees)
        path: List[bytes] = []
        current_index = self.next_index
        current = leaf

        for level in range(self.height):
            if current_index % 2 == 0:
                left, right = current, zeros[level]
                subtrees[level] = current
                path.append(right)
            else:
                left, right = subtrees[level], current
                path.append(left)
            current = self.hash_fn(left, right)
            current_index //= 2

        new_root_index = (self.root_index + 1) % self.root_history_size

        self.subtrees = subtrees
        self.root = current
        self.next_index += 1
        self.root_index = new_root_index
        self.root_history[new_root_index] = current
        return path

    def is_known_root(self, root: bytes) -> bool:
        """
        Check whether ``root`` is one of the last ``root_history_size`` roots.

        The all-zero value is the placeholder default and never a valid root.
        """
        if root == ZERO_LEAF:
            return False

        i = self.root_index
        for _ in range(self.root_history_size):
            if self.root_history[i] == root:
                return True
            i = (i - 1) % self.root_history_size
        return False

    def verify_path(
        self, leaf: bytes, path: List[bytes], leaf_index: int, root: Optional[bytes] = None
    ) -> bool:
        """
        Recompute a root from a leaf and its sibling path.

        Args:
            leaf: Leaf value (32 bytes)
            path: Sibling hashes returned by ``append``
            leaf_index: Position of the leaf
            root: Expected root (defaults to the current root)

        Returns:
            bool: True if the path leads to the expected root
        """
        if len(path) != self.height or leaf_index < 0 or leaf_index >= self.max_leaves:
            return False

        current = leaf
        position = leaf_index
        for sibling in path:
            if position % 2 == 0:
                current = self.hash_fn(current, sibling)
            else:
                current = self.hash_fn(sibling, current)
            position >>= 1

        return current == (self.root if root is None else root)

    def snapshot(self) -> dict:
        """Capture the mutable state so a failed transaction can put it back."""
        return {
            "subtrees": list(self.subtrees),
            "root": self.root,
            "root_history": list(self.root_history),
            "root_index": self.root_index,
            "next_index": self.next_index,
        }

    def restore(self, snapshot: dict) -> None:
        """Restore state captured by ``snapshot``."""
        self.subtrees = list(snapshot["subtrees"])
        self.root = snapshot["root"]
        self.root_history = list(snapshot["root_history"])
        self.root_index = snapshot["root_index"]
        self.next_index = snapshot["next_index"]

    def to_bytes(self) -> bytes:
        """
        Serialize to the fixed version-1 layout.

        Header (big-endian): magic "ZKMT", version u8, height u8,
        history size u16, next_index u64, root_index u64; followed by
        ``subtrees[height]``, ``root`` and ``root_history[history size]``,
        32 bytes each.
        """
        header = _HEADER.pack(
            _MAGIC,
            _LAYOUT_VERSION,
            self.height,
            self.root_history_size,
            self.next_index,
            self.root_index,
        )
        return header + b"".join(self.subtrees) + self.root + b"".join(self.root_history)

    @classmethod
    def from_bytes(cls, data: bytes, hash_fn: HashFn = merkle_hash) -> "MerkleAccumulator":
        """
        Rebuild an accumulator from ``to_bytes`` output.

        Raises:
            DeserializationError: If the layout is not recognised or inconsistent
        """
        if len(data) < _HEADER.size:
            raise DeserializationError("Tree state is shorter than its header")

        magic, version, height, history_size, next_index, root_index = _HEADER.unpack_from(data)
        if magic != _MAGIC:
            raise DeserializationError("Tree state has an unknown magic value")
        if version != _LAYOUT_VERSION:
            raise DeserializationError(f"Unsupported tree state version: {version}")

        expected = _HEADER.size + _NODE_SIZE * (height + 1 + history_size)
        if len(data) != expected:
            raise DeserializationError(f"Tree state must be {expected} bytes, got {len(data)}")
        if history_size == 0 or root_index >= history_size:
            raise DeserializationError("root_index is outside the root history")

        try:
            tree = cls(height=height, hash_fn=hash_fn, root_history_size=history_size)
        except ValueError as e:
            raise DeserializationError(str(e)) from e
        if next_index > tree.max_leaves:
            raise DeserializationError(
                f"next_index {next_index} exceeds capacity {tree.max_leaves}"
            )
        # Every append advances both counters by one
        if root_index != next_index % history_size:
            raise DeserializationError("root_index does not match next_index")

        nodes = [
            data[offset:offset + _NODE_SIZE]
            for offset in range(_HEADER.size, len(data), _NODE_SIZE)
        ]
        tree.subtrees = nodes[:height]
        tree.root = nodes[height]
        tree.root_history = nodes[height + 1:]
        tree.next_index = next_index
        tree.root_index = root_index

        if tree.root_history[root_index] != tree.root:
            raise DeserializationError("Current root is missing from the root history")
        return tree

    def get_state(self) -> dict:
        """
        Get the current state of the tree for reporting.

        Returns:
            dict: Height, counters and current root
        """
        return {
            "height": self.height,
            "next_index": self.next_index,
            "root_index": self.root_index,
            "root_history_size": self.root_history_size,
            "root": self.root.hex(),
        }

    def __len__(self) -> int:
        """Return the number of leaves inserted so far."""
        return self.next_index

    def __repr__(self) -> str:
        return (
            f"MerkleAccumulator(height={self.height}, "
            f"leaves={self.next_index}, "
            f"root={self.root.hex()[:16]}...)"
        )
