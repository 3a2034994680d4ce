"""Groth16 proof verification over BN254.

Point encodings follow the alt_bn128 (EIP-197) layout, every coordinate a
32-byte big-endian base-field element:

    G1: x || y                              (64 bytes)
    G2: x.c1 || x.c0 || y.c1 || y.c0        (128 bytes)

The all-zero encoding is the point at infinity.

Convention: ``proof_a`` is supplied already negated. The verifier checks

    e(proof_a, B) * e(alpha, beta) * e(vk_x, gamma) * e(C, delta) == 1

and never negates ``proof_a`` itself; use ``negate_g1`` on the prover side
when converting a proof produced with a positive ``A``.

Verification is pure and deterministic. A failed pairing check is always
reported as ``ProofVerificationFailedError`` without saying which component
was wrong.
"""

import logging
from typing import Sequence, Tuple

from py_ecc import optimized_bn128 as bn128

from zkpool.utils.field import (
    BASE_FIELD_SIZE,
    FIELD_ELEMENT_SIZE,
    be_bytes_to_int,
    int_to_be_bytes,
    is_less_than_field_size_be,
)
from zkpool.exceptions import (
    InvalidG1LengthError,
    InvalidG2LengthError,
    InvalidPointError,
    InvalidPublicInputsLengthError,
    PreparingInputsG1AdditionFailedError,
    PreparingInputsG1MulFailedError,
    ProofVerificationFailedError,
    PublicInputGreaterThanFieldSizeError,
)

logger = logging.getLogger(__name__)

G1_SIZE = 64
G2_SIZE = 128

G1Point = Tuple[bn128.FQ, bn128.FQ, bn128.FQ]
G2Point = Tuple[bn128.FQ2, bn128.FQ2, bn128.FQ2]


def _coordinate(data: bytes, index: int) -> int:
    value = be_bytes_to_int(data[index * 32:(index + 1) * 32])
    if value >= BASE_FIELD_SIZE:
        raise InvalidPointError("Coordinate is not a canonical base field element")
    return value


def _coeff_int(coeff) -> int:
    return coeff.n if hasattr(coeff, "n") else int(coeff)


def decode_g1(data: bytes) -> G1Point:
    """
    Decode a 64-byte G1 point.

    Raises:
        InvalidG1LengthError: If data is not 64 bytes
        InvalidPointError: If the point is not on the curve
    """
    if len(data) != G1_SIZE:
        raise InvalidG1LengthError(f"G1 point must be {G1_SIZE} bytes, got {len(data)}")

    x, y = _coordinate(data, 0), _coordinate(data, 1)
    if x == 0 and y == 0:
        return bn128.Z1

    point = (bn128.FQ(x), bn128.FQ(y), bn128.FQ.one())
    if not bn128.is_on_curve(point, bn128.b):
        raise InvalidPointError("G1 point is not on the curve")
    return point


def decode_g2(data: bytes) -> G2Point:
    """
    Decode a 128-byte G2 point (imaginary coefficient first).

    Raises:
        InvalidG2LengthError: If data is not 128 bytes
        InvalidPointError: If the point is off the curve or outside the subgroup
    """
    if len(data) != G2_SIZE:
        raise InvalidG2LengthError(f"G2 point must be {G2_SIZE} bytes, got {len(data)}")

    x_im, x_re, y_im, y_re = (_coordinate(data, i) for i in range(4))
    if x_im == x_re == y_im == y_re == 0:
        return bn128.Z2

    point = (bn128.FQ2([x_re, x_im]), bn128.FQ2([y_re, y_im]), bn128.FQ2.one())
    if not bn128.is_on_curve(point, bn128.b2):
        raise InvalidPointError("G2 point is not on the curve")
    if not bn128.is_inf(bn128.multiply(point, bn128.curve_order)):
        raise InvalidPointError("G2 point is not in the prime-order subgroup")
    return point


def encode_g1(point: G1Point) -> bytes:
    """Encode a G1 point as 64 bytes."""
    if bn128.is_inf(point):
        return b"\x00" * G1_SIZE
    x, y = bn128.normalize(point)
    return int_to_be_bytes(x.n) + int_to_be_bytes(y.n)


def encode_g2(point: G2Point) -> bytes:
    """Encode a G2 point as 128 bytes."""
    if bn128.is_inf(point):
        return b"\x00" * G2_SIZE
    x, y = bn128.normalize(point)
    x_re, x_im = (_coeff_int(c) for c in x.coeffs)
    y_re, y_im = (_coeff_int(c) for c in y.coeffs)
    return b"".join(int_to_be_bytes(v) for v in (x_im, x_re, y_im, y_re))


def negate_g1(data: bytes) -> bytes:
    """Negate an encoded G1 point (used to put ``proof_a`` in wire form)."""
    return encode_g1(bn128.neg(decode_g1(data)))


class Groth16Verifier:
    """
    Verifier for one proof against one verifying key.

    Attributes:
        proof_a: Negated A (G1, 64 bytes)
        proof_b: B (G2, 128 bytes)
        proof_c: C (G1, 64 bytes)
        public_inputs: 32-byte big-endian scalars, one per ``ic[1:]`` entry
        verifying_key: ``zkpool.crypto.keys.VerifyingKey``
    """

    def __init__(
        self,
        proof_a: bytes,
        proof_b: bytes,
        proof_c: bytes,
        public_inputs: Sequence[bytes],
        verifying_key,
    ):
        if len(proof_a) != G1_SIZE or len(proof_c) != G1_SIZE:
            raise InvalidG1LengthError(f"G1 proof elements must be {G1_SIZE} bytes")
        if len(proof_b) != G2_SIZE:
            raise InvalidG2LengthError(f"G2 proof element must be {G2_SIZE} bytes")
        if len(public_inputs) != verifying_key.nr_public_inputs:
            raise InvalidPublicInputsLengthError(
                f"Expected {verifying_key.nr_public_inputs} public inputs, "
                f"got {len(public_inputs)}"
            )
        if any(len(value) != FIELD_ELEMENT_SIZE for value in public_inputs):
            raise InvalidPublicInputsLengthError("Public inputs must be 32 bytes each")

        self.proof_a = proof_a
        self.proof_b = proof_b
        self.proof_c = proof_c
        self.public_inputs = list(public_inputs)
        self.verifying_key = verifying_key

    def prepare_inputs(self) -> G1Point:
        """
        Compute ``vk_x = ic[0] + sum(public_input[j] * ic[j + 1])``.

        Raises:
            PreparingInputsG1MulFailedError: If a scalar multiplication fails
            PreparingInputsG1AdditionFailedError: If a point addition fails
        """
        ic = self.verifying_key.ic_points
        prepared = ic[0]
        for value, base in zip(self.public_inputs, ic[1:]):
            try:
                term = bn128.multiply(base, be_bytes_to_int(value))
            except (TypeError, ValueError, ArithmeticError, AssertionError) as e:
                raise PreparingInputsG1MulFailedError("G1 multiplication failed") from e
            try:
                prepared = bn128.add(prepared, term)
            except (TypeError, ValueError, ArithmeticError, AssertionError) as e:
                raise PreparingInputsG1AdditionFailedError("G1 addition failed") from e
        return prepared

    def verify(self) -> None:
        """
        Range-check the public inputs, then run the pairing check.

        Raises:
            PublicInputGreaterThanFieldSizeError: If any input is >= the field modulus
            ProofVerificationFailedError: If the proof does not verify
        """
        for value in self.public_inputs:
            if not is_less_than_field_size_be(value):
                raise PublicInputGreaterThanFieldSizeError(
                    "Public input is greater than or equal to the field size"
                )
        self.verify_unchecked()

    def verify_unchecked(self) -> None:
        """
        Run the pairing check without the public input range check.

        Only for callers that have already range-checked the inputs.

        Raises:
            ProofVerificationFailedError: If the proof does not verify
        """
        prepared = self.prepare_inputs()
        vk = self.verifying_key

        try:
            proof_a = decode_g1(self.proof_a)
            proof_b = decode_g2(self.proof_b)
            proof_c = decode_g1(self.proof_c)
        except InvalidPointError as e:
            logger.debug("Groth16 proof rejected")
            raise ProofVerificationFailedError("Proof verification failed") from e

        pairs = [
            (proof_b, proof_a),
            (vk.beta_g2_point, vk.alpha_g1_point),
            (vk.gamma_g2_point, prepared),
            (vk.delta_g2_point, proof_c),
        ]

        try:
            product = bn128.FQ12.one()
            for g2_point, g1_point in pairs:
                if bn128.is_inf(g2_point) or bn128.is_inf(g1_point):
                    continue
                product = product * bn128.pairing(g2_point, g1_point, final_exponentiate=False)
            accepted = bn128.final_exponentiate(product) == bn128.FQ12.one()
        except (TypeError, ValueError, ArithmeticError, AssertionError) as e:
            logger.debug("Groth16 proof rejected")
            raise ProofVerificationFailedError("Proof verification failed") from e

        if not accepted:
            logger.debug("Groth16 proof rejected")
            raise ProofVerificationFailedError("Proof verification failed")


def verify_proof(proof, verifying_key=None, check_inputs: bool = True) -> None:
    """
    Verify a transaction ``Proof`` against a verifying key.

    Args:
        proof: ``zkpool.core.transaction.Proof``
        verifying_key: Key to check against (defaults to the process-wide key)
        check_inputs: Range-check public inputs before the pairing check

    Raises:
        Groth16Error: Subclass describing the failure
    """
    if verifying_key is None:
        from zkpool.crypto.keys import get_verifying_key

        verifying_key = get_verifying_key()

    verifier = Groth16Verifier(
        proof.proof_a,
        proof.proof_b,
        proof.proof_c,
        proof.public_inputs(),
        verifying_key,
    )
    if check_inputs:
        verifier.verify()
    else:
        verifier.verify_unchecked()
