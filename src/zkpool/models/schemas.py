"""Pydantic data models for the shielded pool HTTP surface.

Binary values travel as ``0x``-prefixed hex strings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from zkpool.core.transaction import ExtData, Proof
from zkpool.utils.encoding import hex_to_bytes


def _check_hex(value: str, length: Optional[int]) -> str:
    try:
        hex_to_bytes(value, expected_length=length)
    except ValueError as e:
        raise ValueError(f"invalid hex value: {e}") from e
    return value


class ProofModel(BaseModel):
    """Groth16 proof and public inputs (``proof_a`` already negated)."""
    proof_a: str = Field(..., description="Negated A, G1 (64 bytes hex)")
    proof_b: str = Field(..., description="B, G2 (128 bytes hex)")
    proof_c: str = Field(..., description="C, G1 (64 bytes hex)")
    root: str = Field(..., description="Merkle root the proof was built against")
    public_amount: str = Field(..., description="Public amount field element")
    ext_data_hash: str = Field(..., description="Hash binding the external data")
    input_nullifiers: List[str] = Field(..., min_length=2, max_length=2)
    output_commitments: List[str] = Field(..., min_length=2, max_length=2)

    @field_validator("proof_a", "proof_c")
    @classmethod
    def _g1(cls, value: str) -> str:
        return _check_hex(value, 64)

    @field_validator("proof_b")
    @classmethod
    def _g2(cls, value: str) -> str:
        return _check_hex(value, 128)

    @field_validator("root", "public_amount", "ext_data_hash")
    @classmethod
    def _scalar(cls, value: str) -> str:
        return _check_hex(value, 32)

    @field_validator("input_nullifiers", "output_commitments")
    @classmethod
    def _scalars(cls, values: List[str]) -> List[str]:
        return [_check_hex(value, 32) for value in values]

    def to_proof(self) -> Proof:
        return Proof(
            proof_a=hex_to_bytes(self.proof_a),
            proof_b=hex_to_bytes(self.proof_b),
            proof_c=hex_to_bytes(self.proof_c),
            root=hex_to_bytes(self.root),
            public_amount=hex_to_bytes(self.public_amount),
            ext_data_hash=hex_to_bytes(self.ext_data_hash),
            input_nullifiers=[hex_to_bytes(n) for n in self.input_nullifiers],
            output_commitments=[hex_to_bytes(c) for c in self.output_commitments],
        )


class ExtDataModel(BaseModel):
    """Plaintext transfer parameters."""
    recipient: str = Field(..., description="Recipient account id (32 bytes hex)")
    ext_amount: int = Field(..., description="Positive deposit, negative withdrawal")
    fee: int = Field(default=0, ge=0, description="Relayer fee")
    encrypted_output1: str = Field(default="0x", description="First output ciphertext (hex)")
    encrypted_output2: str = Field(default="0x", description="Second output ciphertext (hex)")
    mint: Optional[str] = Field(default=None, description="Asset id (32 bytes hex)")

    @field_validator("recipient")
    @classmethod
    def _recipient(cls, value: str) -> str:
        return _check_hex(value, 32)

    @field_validator("encrypted_output1", "encrypted_output2")
    @classmethod
    def _ciphertext(cls, value: str) -> str:
        return _check_hex(value, None)

    @field_validator("mint")
    @classmethod
    def _mint(cls, value: Optional[str]) -> Optional[str]:
        return _check_hex(value, 32) if value is not None else None

    def to_ext_data(self) -> ExtData:
        return ExtData(
            recipient=hex_to_bytes(self.recipient),
            ext_amount=self.ext_amount,
            fee=self.fee,
            encrypted_output1=hex_to_bytes(self.encrypted_output1),
            encrypted_output2=hex_to_bytes(self.encrypted_output2),
            mint=hex_to_bytes(self.mint) if self.mint is not None else None,
        )


class TransactRequest(BaseModel):
    """Request model for a shielded transaction."""
    proof: ProofModel
    ext_data: ExtDataModel
    authority: Optional[str] = Field(default=None, description="Submitting operator")
    signer: Optional[str] = Field(default=None, description="Account funding a deposit")


class TransactResponse(BaseModel):
    """Response model for a committed transaction."""
    state: str
    commitment_indices: List[int] = Field(..., description="Tree indices of the new notes")
    merkle_root: str = Field(..., description="New Merkle root (hex)")
    next_index: int
    nullifiers: List[str]
    ext_amount: int
    fee: int


class PoolStateResponse(BaseModel):
    """Response model for pool state."""
    initialized: bool
    merkle_root: Optional[str] = Field(default=None, description="Current Merkle root (hex)")
    tree_height: int = Field(..., description="Merkle tree height")
    next_index: int = Field(..., description="Number of commitments")
    root_index: int = Field(..., description="Position of the current root in the history")
    num_nullifiers: int = Field(..., description="Number of reserved nullifiers")
    last_update: datetime = Field(default_factory=datetime.now)


class RootStatusResponse(BaseModel):
    """Whether a root is accepted for new proofs."""
    root: str
    known: bool


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
