"""Tests for the Merkle accumulator."""

import os

import pytest
from hypothesis import given, settings, HealthCheck, strategies as st

from zkpool.core.merkle_tree import (
    DEFAULT_HEIGHT,
    MAX_NEXT_INDEX,
    ROOT_HISTORY_SIZE,
    MerkleAccumulator,
)
from zkpool.utils.hash import ZERO_LEAF, merkle_hash, zero_hashes
from zkpool.exceptions import (
    ArithmeticOverflowError,
    DeserializationError,
    InvalidLeafError,
    TreeFullError,
)


@pytest.fixture
def merkle_tree():
    """Create a test Merkle tree."""
    return MerkleAccumulator(height=8)


@pytest.fixture
def sample_commitment():
    """Create a sample commitment."""
    return os.urandom(32)


def _full_root(leaves, height):
    """Root of a tree with ``leaves`` packed to the left, computed level by level."""
    level = list(leaves) + [ZERO_LEAF] * (2**height - len(leaves))
    for _ in range(height):
        level = [merkle_hash(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


class TestMerkleTreeInitialization:
    """Tests for tree initialization."""

    def test_tree_creation_default(self):
        """Test creating tree with default height."""
        tree = MerkleAccumulator()
        assert tree.height == DEFAULT_HEIGHT
        assert tree.root_history_size == ROOT_HISTORY_SIZE
        assert len(tree) == 0

    def test_empty_root_is_zero_subtree(self, merkle_tree):
        """Empty root equals the depth-H zero hash and sits at history slot 0."""
        assert merkle_tree.root == zero_hashes(8)[8]
        assert merkle_tree.root_history[0] == merkle_tree.root
        assert merkle_tree.root_index == 0
        assert merkle_tree.subtrees == zero_hashes(8)[:8]

    def test_tree_invalid_height(self):
        """Test that invalid heights raise errors."""
        with pytest.raises(ValueError):
            MerkleAccumulator(height=0)
        with pytest.raises(ValueError):
            MerkleAccumulator(height=65)
        with pytest.raises(ValueError):
            MerkleAccumulator(height=8, root_history_size=0)

    def test_zero_hashes_are_cached(self):
        assert zero_hashes(8) == zero_hashes(8)
        assert zero_hashes(8)[0] == ZERO_LEAF


class TestMerkleTreeAppend:
    """Tests for leaf insertion."""

    def test_append_updates_counters(self, merkle_tree, sample_commitment):
        merkle_tree.append(sample_commitment)
        assert merkle_tree.next_index == 1
        assert merkle_tree.root_index == 1
        assert merkle_tree.root_history[1] == merkle_tree.root

    def test_root_matches_full_tree(self):
        """Incremental root equals the root of the fully materialized tree."""
        tree = MerkleAccumulator(height=4)
        leaves = [bytes([i + 1]) * 32 for i in range(7)]
        for leaf in leaves:
            tree.append(leaf)
        assert tree.root == _full_root(leaves, 4)

    def test_path_verifies_against_root_at_append(self, merkle_tree):
        leaves = [os.urandom(32) for _ in range(5)]
        for index, leaf in enumerate(leaves):
            path = merkle_tree.append(leaf)
            assert len(path) == 8
            assert merkle_tree.verify_path(leaf, path, index)

    def test_path_rejects_wrong_leaf(self, merkle_tree, sample_commitment):
        path = merkle_tree.append(sample_commitment)
        assert not merkle_tree.verify_path(os.urandom(32), path, 0)
        assert not merkle_tree.verify_path(sample_commitment, path, 1)

    def test_invalid_leaf(self, merkle_tree):
        with pytest.raises(InvalidLeafError):
            merkle_tree.append(b"short")
        with pytest.raises(InvalidLeafError):
            merkle_tree.append("0" * 32)
        assert merkle_tree.next_index == 0

    def test_tree_full(self):
        tree = MerkleAccumulator(height=2)
        for _ in range(4):
            tree.append(os.urandom(32))
        root = tree.root
        with pytest.raises(TreeFullError):
            tree.append(os.urandom(32))
        assert tree.root == root
        assert tree.next_index == 4

    def test_next_index_overflow_leaves_state_unchanged(self):
        tree = MerkleAccumulator(height=64)
        tree.next_index = MAX_NEXT_INDEX
        before = tree.snapshot()
        with pytest.raises(ArithmeticOverflowError):
            tree.append(os.urandom(32))
        assert tree.snapshot() == before


class TestRootHistory:
    """Tests for the recent-root window."""

    def test_zero_root_never_known(self, merkle_tree):
        assert not merkle_tree.is_known_root(ZERO_LEAF)

    def test_initial_root_known(self, merkle_tree):
        assert merkle_tree.is_known_root(merkle_tree.root)

    def test_unknown_root(self, merkle_tree):
        assert not merkle_tree.is_known_root(os.urandom(32))

    def test_history_window_of_one_hundred(self, merkle_tree):
        """After 101 appends the oldest roots have rotated out."""
        initial_root = merkle_tree.root
        roots = []
        for _ in range(101):
            merkle_tree.append(os.urandom(32))
            roots.append(merkle_tree.root)

        assert not merkle_tree.is_known_root(initial_root)
        assert not merkle_tree.is_known_root(roots[0])
        for root in roots[1:]:
            assert merkle_tree.is_known_root(root)

    def test_circular_overwrite(self, merkle_tree):
        """The 100th and 101st appends overwrite slots 0 and 1."""
        roots = []
        for _ in range(101):
            merkle_tree.append(os.urandom(32))
            roots.append(merkle_tree.root)

        assert merkle_tree.root_index == 1
        assert merkle_tree.root_history[0] == roots[99]
        assert merkle_tree.root_history[1] == roots[100]
        assert merkle_tree.root_history[2] == roots[1]

    def test_all_roots_known_after_one_hundred_appends(self):
        """With the default window every root since creation, the empty root included, is accepted."""
        tree = MerkleAccumulator(height=8)
        roots = [tree.root]
        for _ in range(ROOT_HISTORY_SIZE - 1):
            tree.append(os.urandom(32))
            roots.append(tree.root)

        assert tree.root_index == ROOT_HISTORY_SIZE - 1
        for root in roots:
            assert tree.is_known_root(root)

        tree.append(os.urandom(32))
        roots.append(tree.root)
        assert len(roots) == ROOT_HISTORY_SIZE + 1
        assert not tree.is_known_root(roots[0])
        for root in roots[1:]:
            assert tree.is_known_root(root)

    def test_wraparound_scan(self):
        """Roots just behind the write position are found across the wrap."""
        tree = MerkleAccumulator(height=8, root_history_size=5)
        roots = []
        for _ in range(7):
            tree.append(os.urandom(32))
            roots.append(tree.root)
        assert tree.root_index == 2
        for root in roots[-5:]:
            assert tree.is_known_root(root)
        for root in roots[:2]:
            assert not tree.is_known_root(root)

    def test_root_history_invariant(self, merkle_tree):
        for _ in range(10):
            merkle_tree.append(os.urandom(32))
            assert merkle_tree.root_history[merkle_tree.root_index] == merkle_tree.root


class TestSnapshotAndSerialization:
    """Tests for rollback snapshots and the persisted layout."""

    def test_restore_snapshot(self, merkle_tree):
        merkle_tree.append(os.urandom(32))
        snapshot = merkle_tree.snapshot()
        root = merkle_tree.root
        merkle_tree.append(os.urandom(32))
        merkle_tree.restore(snapshot)
        assert merkle_tree.root == root
        assert merkle_tree.next_index == 1

    def test_serialized_size(self, merkle_tree):
        data = merkle_tree.to_bytes()
        assert len(data) == 24 + 32 * (8 + 1 + ROOT_HISTORY_SIZE)
        assert data[:4] == b"ZKMT"

    def test_from_bytes_restores_state(self, merkle_tree):
        for _ in range(3):
            merkle_tree.append(os.urandom(32))
        restored = MerkleAccumulator.from_bytes(merkle_tree.to_bytes())
        assert restored.snapshot() == merkle_tree.snapshot()

        leaf = os.urandom(32)
        merkle_tree.append(leaf)
        restored.append(leaf)
        assert restored.root == merkle_tree.root

    def test_from_bytes_rejects_bad_magic(self, merkle_tree):
        data = b"XXXX" + merkle_tree.to_bytes()[4:]
        with pytest.raises(DeserializationError):
            MerkleAccumulator.from_bytes(data)

    def test_from_bytes_rejects_truncated(self, merkle_tree):
        with pytest.raises(DeserializationError):
            MerkleAccumulator.from_bytes(merkle_tree.to_bytes()[:-1])
        with pytest.raises(DeserializationError):
            MerkleAccumulator.from_bytes(b"ZK")

    def test_from_bytes_rejects_next_index_beyond_capacity(self):
        tree = MerkleAccumulator(height=4, root_history_size=10)
        data = bytearray(tree.to_bytes())
        # next_index = 17 > 2**4, root_index kept consistent at 17 % 10
        data[8:16] = (17).to_bytes(8, "big")
        data[16:24] = (7).to_bytes(8, "big")
        with pytest.raises(DeserializationError):
            MerkleAccumulator.from_bytes(bytes(data))

    def test_from_bytes_accepts_full_tree(self):
        tree = MerkleAccumulator(height=2, root_history_size=10)
        for _ in range(4):
            tree.append(os.urandom(32))
        restored = MerkleAccumulator.from_bytes(tree.to_bytes())
        assert restored.next_index == 4
        with pytest.raises(TreeFullError):
            restored.append(os.urandom(32))

    def test_from_bytes_rejects_mismatched_counters(self, merkle_tree):
        merkle_tree.append(os.urandom(32))
        data = bytearray(merkle_tree.to_bytes())
        data[8:16] = (5).to_bytes(8, "big")
        with pytest.raises(DeserializationError):
            MerkleAccumulator.from_bytes(bytes(data))

    def test_from_bytes_rejects_inconsistent_root(self, merkle_tree):
        data = bytearray(merkle_tree.to_bytes())
        root_offset = 24 + 32 * 8
        data[root_offset] ^= 0xFF
        with pytest.raises(DeserializationError):
            MerkleAccumulator.from_bytes(bytes(data))


class TestMerkleProperties:
    """Property-based tests for the accumulator."""

    @given(st.lists(st.binary(min_size=32, max_size=32), min_size=1, max_size=20))
    @settings(max_examples=25, suppress_health_check=[HealthCheck.too_slow])
    def test_same_leaves_same_root(self, leaves):
        """Property: appending the same leaves in the same order gives the same root."""
        tree1 = MerkleAccumulator(height=6)
        tree2 = MerkleAccumulator(height=6)
        for leaf in leaves:
            tree1.append(leaf)
            tree2.append(leaf)
        assert tree1.root == tree2.root
        assert tree1.subtrees == tree2.subtrees
        assert tree1.root_history == tree2.root_history
        assert tree1.root == _full_root(leaves, 6)

    @given(st.lists(st.binary(min_size=32, max_size=32), min_size=1, max_size=20))
    @settings(max_examples=25, suppress_health_check=[HealthCheck.too_slow])
    def test_every_recent_root_known(self, leaves):
        """Property: each root produced by the last appends stays in the window."""
        tree = MerkleAccumulator(height=6, root_history_size=8)
        roots = []
        for leaf in leaves:
            tree.append(leaf)
            roots.append(tree.root)
        for root in roots[-8:]:
            assert tree.is_known_root(root)
