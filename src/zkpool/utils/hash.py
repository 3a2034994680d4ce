"""Cryptographic hash utilities."""

import hashlib
from typing import Callable, Dict, List, Tuple, Union

from zkpool.utils.field import FIELD_SIZE, FIELD_ELEMENT_SIZE, int_to_be_bytes

# Two-input compression function used for tree nodes
HashFn = Callable[[bytes, bytes], bytes]

ZERO_LEAF = b"\x00" * FIELD_ELEMENT_SIZE


def sha256(data: Union[bytes, str]) -> bytes:
    """
    Compute SHA-256 hash of data.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte SHA-256 hash
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def merkle_hash(left: bytes, right: bytes) -> bytes:
    """
    Compute Merkle tree hash of two siblings.

    SHA-256(left || right), read big-endian and reduced modulo the scalar
    field so that every node is itself a valid field element.

    Args:
        left: Left child hash (32 bytes)
        right: Right child hash (32 bytes)

    Returns:
        bytes: Parent hash (32 bytes, big-endian field element)
    """
    if not isinstance(left, bytes) or len(left) != 32:
        raise ValueError("Left hash must be 32 bytes")
    if not isinstance(right, bytes) or len(right) != 32:
        raise ValueError("Right hash must be 32 bytes")

    digest = sha256(left + right)
    return int_to_be_bytes(int.from_bytes(digest, "big") % FIELD_SIZE)


_ZERO_HASH_CACHE: Dict[Tuple[HashFn, int], Tuple[bytes, ...]] = {}


def zero_hashes(height: int, hash_fn: HashFn = merkle_hash) -> List[bytes]:
    """
    Empty-subtree roots for depths 0..height.

    ``zero_hashes(h)[i]`` is the root of an empty subtree of depth ``i``;
    depth 0 is the all-zero leaf. Results are computed once per
    ``(hash_fn, height)`` and shared read-only afterwards.
    """
    key = (hash_fn, height)
    cached = _ZERO_HASH_CACHE.get(key)
    if cached is None:
        levels = [ZERO_LEAF]
        for _ in range(height):
            levels.append(hash_fn(levels[-1], levels[-1]))
        cached = tuple(levels)
        _ZERO_HASH_CACHE[key] = cached
    return list(cached)
