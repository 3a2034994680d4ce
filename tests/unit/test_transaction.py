"""Tests for proof and external data records."""

import hashlib
import os

import pytest
from hypothesis import given, strategies as st

from zkpool.core.transaction import (
    PROOF_SIZE,
    ExtData,
    Proof,
    compute_ext_data_hash,
    ext_data_hash_matches,
)
from zkpool.utils.field import FIELD_SIZE, int_to_be_bytes, is_less_than_field_size_be
from zkpool.exceptions import DeserializationError, SerializationError


@pytest.fixture
def ext_data():
    return ExtData(
        recipient=b"\x01" * 32,
        ext_amount=-500,
        fee=7,
        encrypted_output1=b"note-one",
        encrypted_output2=b"note-two",
    )


@pytest.fixture
def proof():
    return Proof(
        proof_a=os.urandom(64),
        proof_b=os.urandom(128),
        proof_c=os.urandom(64),
        root=os.urandom(32),
        public_amount=os.urandom(32),
        ext_data_hash=os.urandom(32),
        input_nullifiers=[os.urandom(32), os.urandom(32)],
        output_commitments=[os.urandom(32), os.urandom(32)],
    )


class TestProof:
    """Tests for the fixed proof layout."""

    def test_public_inputs_order(self, proof):
        assert proof.public_inputs() == [
            proof.root,
            proof.public_amount,
            proof.ext_data_hash,
            proof.input_nullifiers[0],
            proof.input_nullifiers[1],
            proof.output_commitments[0],
            proof.output_commitments[1],
        ]

    def test_lists_normalized_to_tuples(self, proof):
        assert isinstance(proof.input_nullifiers, tuple)
        assert isinstance(proof.output_commitments, tuple)

    def test_wire_layout(self, proof):
        data = proof.to_bytes()
        assert len(data) == PROOF_SIZE == 480
        assert data[:64] == proof.proof_a
        assert data[256:288] == proof.root
        assert Proof.from_bytes(data) == proof

    def test_requires_two_nullifiers(self):
        with pytest.raises(ValueError):
            Proof(
                proof_a=b"", proof_b=b"", proof_c=b"", root=b"", public_amount=b"",
                ext_data_hash=b"", input_nullifiers=[b"\x00" * 32],
                output_commitments=[b"\x00" * 32, b"\x00" * 32],
            )

    def test_serialize_wrong_width(self, proof):
        bad = Proof(
            proof_a=proof.proof_a[:10],
            proof_b=proof.proof_b,
            proof_c=proof.proof_c,
            root=proof.root,
            public_amount=proof.public_amount,
            ext_data_hash=proof.ext_data_hash,
            input_nullifiers=proof.input_nullifiers,
            output_commitments=proof.output_commitments,
        )
        with pytest.raises(SerializationError):
            bad.to_bytes()

    def test_parse_wrong_length(self):
        with pytest.raises(DeserializationError):
            Proof.from_bytes(b"\x00" * 479)


class TestExtDataEncoding:
    """Tests for the canonical external data encoding."""

    def test_layout(self, ext_data):
        data = ext_data.to_bytes()
        assert data[:32] == ext_data.recipient
        assert data[32:40] == (-500).to_bytes(8, "big", signed=True)
        assert data[40:48] == (7).to_bytes(8, "big")
        assert data[48:52] == (8).to_bytes(4, "big")
        assert data[-1:] == b"\x00"

    def test_parse_inverse(self, ext_data):
        assert ExtData.from_bytes(ext_data.to_bytes()) == ext_data

    def test_parse_with_mint(self, ext_data):
        with_mint = ExtData(
            recipient=ext_data.recipient,
            ext_amount=ext_data.ext_amount,
            fee=ext_data.fee,
            mint=b"\x09" * 32,
        )
        assert ExtData.from_bytes(with_mint.to_bytes()) == with_mint

    def test_parse_trailing_bytes(self, ext_data):
        with pytest.raises(DeserializationError):
            ExtData.from_bytes(ext_data.to_bytes() + b"\x00")

    def test_parse_truncated(self, ext_data):
        with pytest.raises(DeserializationError):
            ExtData.from_bytes(ext_data.to_bytes()[:45])

    def test_parse_bad_mint_flag(self, ext_data):
        data = ext_data.to_bytes()[:-1] + b"\x02"
        with pytest.raises(DeserializationError):
            ExtData.from_bytes(data)

    def test_encode_bad_recipient(self):
        with pytest.raises(SerializationError):
            ExtData(recipient=b"\x01", ext_amount=1, fee=0).to_bytes()

    def test_encode_out_of_range_amount(self):
        with pytest.raises(SerializationError):
            ExtData(recipient=b"\x01" * 32, ext_amount=2**63, fee=0).to_bytes()


class TestExtDataHash:
    """Tests for the binding hash."""

    def test_hash_is_field_element(self, ext_data):
        digest = compute_ext_data_hash(ext_data)
        assert len(digest) == 32
        assert is_less_than_field_size_be(digest)

    def test_digest_read_little_endian(self, ext_data):
        raw = hashlib.sha256(ext_data.to_bytes()).digest()
        expected = int.from_bytes(raw, "little") % FIELD_SIZE
        assert compute_ext_data_hash(ext_data) == int_to_be_bytes(expected)
        if raw != raw[::-1]:
            assert compute_ext_data_hash(ext_data) != int_to_be_bytes(int.from_bytes(raw, "big") % FIELD_SIZE)

    def test_hash_matches_itself(self, ext_data):
        assert ext_data_hash_matches(ext_data, compute_ext_data_hash(ext_data))

    def test_unreduced_hash_accepted(self, ext_data):
        digest = compute_ext_data_hash(ext_data)
        shifted = int.from_bytes(digest, "big") + FIELD_SIZE
        assert ext_data_hash_matches(ext_data, int_to_be_bytes(shifted))

    @pytest.mark.parametrize(
        "field, value",
        [
            ("recipient", b"\x02" * 32),
            ("ext_amount", -501),
            ("fee", 8),
            ("encrypted_output1", b"note-onf"),
            ("encrypted_output2", b""),
            ("mint", b"\x03" * 32),
        ],
    )
    def test_any_mutation_changes_hash(self, ext_data, field, value):
        """Every field is bound: changing one breaks the match."""
        original = compute_ext_data_hash(ext_data)
        fields = {
            "recipient": ext_data.recipient,
            "ext_amount": ext_data.ext_amount,
            "fee": ext_data.fee,
            "encrypted_output1": ext_data.encrypted_output1,
            "encrypted_output2": ext_data.encrypted_output2,
            "mint": ext_data.mint,
        }
        fields[field] = value
        assert not ext_data_hash_matches(ExtData(**fields), original)

    def test_output_boundary_is_unambiguous(self):
        """Moving bytes between the two ciphertexts changes the hash."""
        a = ExtData(recipient=b"\x01" * 32, ext_amount=1, fee=0,
                    encrypted_output1=b"ab", encrypted_output2=b"c")
        b = ExtData(recipient=b"\x01" * 32, ext_amount=1, fee=0,
                    encrypted_output1=b"a", encrypted_output2=b"bc")
        assert compute_ext_data_hash(a) != compute_ext_data_hash(b)

    @given(st.integers(min_value=-(2**63) + 1, max_value=2**63 - 1))
    def test_hash_deterministic(self, ext_amount):
        data = ExtData(recipient=b"\x05" * 32, ext_amount=ext_amount, fee=0)
        assert compute_ext_data_hash(data) == compute_ext_data_hash(data)
