"""Proof and external-data records exchanged with the pool.

All multi-byte integers are big-endian. The proof layout is fixed-width:

    proof_a (64) | proof_b (128) | proof_c (64) | root (32) | public_amount (32)
    | ext_data_hash (32) | input_nullifiers (2 x 32) | output_commitments (2 x 32)

``proof_a`` is carried already negated; see ``zkpool.crypto.groth16``.
"""

import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

from zkpool.utils.field import FIELD_ELEMENT_SIZE, int_to_be_bytes, reduce_be_bytes, reduce_le_bytes
from zkpool.utils.hash import sha256
from zkpool.exceptions import DeserializationError, SerializationError

G1_SIZE = 64
G2_SIZE = 128
RECIPIENT_SIZE = 32
MINT_SIZE = 32
PROOF_SIZE = 2 * G1_SIZE + G2_SIZE + 7 * FIELD_ELEMENT_SIZE

EXT_DATA_VERSION = 1
_EXT_DATA_AMOUNTS = struct.Struct(">qQ")
_LENGTH_PREFIX = struct.Struct(">I")


@dataclass(frozen=True)
class Proof:
    """
    Groth16 proof together with its seven public inputs.

    Public inputs are 32-byte big-endian field elements.
    """

    proof_a: bytes
    proof_b: bytes
    proof_c: bytes
    root: bytes
    public_amount: bytes
    ext_data_hash: bytes
    input_nullifiers: Tuple[bytes, bytes]
    output_commitments: Tuple[bytes, bytes]

    def __post_init__(self):
        object.__setattr__(self, "input_nullifiers", tuple(self.input_nullifiers))
        object.__setattr__(self, "output_commitments", tuple(self.output_commitments))
        if len(self.input_nullifiers) != 2:
            raise ValueError("Proof must carry exactly two input nullifiers")
        if len(self.output_commitments) != 2:
            raise ValueError("Proof must carry exactly two output commitments")

    def public_inputs(self) -> List[bytes]:
        """Public inputs in circuit order."""
        return [
            self.root,
            self.public_amount,
            self.ext_data_hash,
            self.input_nullifiers[0],
            self.input_nullifiers[1],
            self.output_commitments[0],
            self.output_commitments[1],
        ]

    def to_bytes(self) -> bytes:
        """Serialize to the fixed 480-byte layout."""
        fields = [
            (self.proof_a, G1_SIZE),
            (self.proof_b, G2_SIZE),
            (self.proof_c, G1_SIZE),
        ] + [(value, FIELD_ELEMENT_SIZE) for value in self.public_inputs()]
        for value, size in fields:
            if len(value) != size:
                raise SerializationError(f"Proof field must be {size} bytes, got {len(value)}")
        return b"".join(value for value, _ in fields)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        """Parse the fixed 480-byte layout."""
        if len(data) != PROOF_SIZE:
            raise DeserializationError(f"Proof must be {PROOF_SIZE} bytes, got {len(data)}")

        proof_a = data[0:64]
        proof_b = data[64:192]
        proof_c = data[192:256]
        inputs = [data[offset:offset + 32] for offset in range(256, PROOF_SIZE, 32)]
        return cls(
            proof_a=proof_a,
            proof_b=proof_b,
            proof_c=proof_c,
            root=inputs[0],
            public_amount=inputs[1],
            ext_data_hash=inputs[2],
            input_nullifiers=(inputs[3], inputs[4]),
            output_commitments=(inputs[5], inputs[6]),
        )


@dataclass(frozen=True)
class ExtData:
    """
    Plaintext transfer parameters bound to a proof through ``ext_data_hash``.

    Attributes:
        recipient: 32-byte recipient account id (withdrawals)
        ext_amount: Positive for deposit, negative for withdrawal
        fee: Relayer fee paid out of the pool
        encrypted_output1: Ciphertext for the first new note (opaque)
        encrypted_output2: Ciphertext for the second new note (opaque)
        mint: Optional 32-byte asset identifier
    """

    recipient: bytes
    ext_amount: int
    fee: int
    encrypted_output1: bytes = b""
    encrypted_output2: bytes = b""
    mint: Optional[bytes] = None

    def to_bytes(self) -> bytes:
        """
        Canonical version-1 encoding used for hashing.

        recipient (32) | ext_amount i64 | fee u64 | u32 len | encrypted_output1
        | u32 len | encrypted_output2 | u8 has_mint | mint (32, if present)
        """
        if len(self.recipient) != RECIPIENT_SIZE:
            raise SerializationError("Recipient must be 32 bytes")
        if self.mint is not None and len(self.mint) != MINT_SIZE:
            raise SerializationError("Mint must be 32 bytes")
        try:
            amounts = _EXT_DATA_AMOUNTS.pack(self.ext_amount, self.fee)
            out1 = _LENGTH_PREFIX.pack(len(self.encrypted_output1)) + self.encrypted_output1
            out2 = _LENGTH_PREFIX.pack(len(self.encrypted_output2)) + self.encrypted_output2
        except struct.error as e:
            raise SerializationError(f"Cannot encode external data: {e}") from e

        mint = b"\x00" if self.mint is None else b"\x01" + self.mint
        return self.recipient + amounts + out1 + out2 + mint

    @classmethod
    def from_bytes(cls, data: bytes) -> "ExtData":
        """Parse the canonical encoding."""
        try:
            offset = 0
            recipient = data[offset:offset + RECIPIENT_SIZE]
            offset += RECIPIENT_SIZE
            ext_amount, fee = _EXT_DATA_AMOUNTS.unpack_from(data, offset)
            offset += _EXT_DATA_AMOUNTS.size

            outputs = []
            for _ in range(2):
                (length,) = _LENGTH_PREFIX.unpack_from(data, offset)
                offset += _LENGTH_PREFIX.size
                payload = data[offset:offset + length]
                if len(payload) != length:
                    raise DeserializationError("Encrypted output is truncated")
                outputs.append(payload)
                offset += length

            flag = data[offset]
            offset += 1
        except (struct.error, IndexError) as e:
            raise DeserializationError(f"External data is truncated: {e}") from e

        mint = None
        if flag == 1:
            mint = data[offset:offset + MINT_SIZE]
            if len(mint) != MINT_SIZE:
                raise DeserializationError("Mint is truncated")
            offset += MINT_SIZE
        elif flag != 0:
            raise DeserializationError(f"Invalid mint flag: {flag}")

        if offset != len(data) or len(recipient) != RECIPIENT_SIZE:
            raise DeserializationError("External data has an invalid length")

        return cls(
            recipient=recipient,
            ext_amount=ext_amount,
            fee=fee,
            encrypted_output1=outputs[0],
            encrypted_output2=outputs[1],
            mint=mint,
        )


def compute_ext_data_hash(ext_data: ExtData) -> bytes:
    """
    Hash external data into a scalar field element.

    SHA-256 of the canonical encoding, read little-endian and reduced modulo
    the field size, then encoded big-endian like every other public input.
    This is the value the prover places in the ``ext_data_hash`` public input.
    """
    digest = sha256(ext_data.to_bytes())
    return int_to_be_bytes(reduce_le_bytes(digest))


def ext_data_hash_matches(ext_data: ExtData, ext_data_hash: bytes) -> bool:
    """Compare the recomputed hash with a proof's ``ext_data_hash`` as field elements."""
    return reduce_be_bytes(compute_ext_data_hash(ext_data)) == reduce_be_bytes(ext_data_hash)
