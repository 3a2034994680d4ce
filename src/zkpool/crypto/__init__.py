"""Groth16 verification over BN254."""

from zkpool.crypto.groth16 import (
    Groth16Verifier,
    decode_g1,
    decode_g2,
    encode_g1,
    encode_g2,
    negate_g1,
    verify_proof,
)
from zkpool.crypto.keys import VerifyingKey, get_verifying_key, load_verifying_key

__all__ = [
    "Groth16Verifier",
    "decode_g1",
    "decode_g2",
    "encode_g1",
    "encode_g2",
    "negate_g1",
    "verify_proof",
    "VerifyingKey",
    "get_verifying_key",
    "load_verifying_key",
]
