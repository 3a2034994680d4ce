"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from py_ecc import optimized_bn128 as bn128  # noqa: E402

from zkpool.core.collaborators import InMemoryHost  # noqa: E402
from zkpool.core.pool import ShieldedPool  # noqa: E402
from zkpool.core.transaction import ExtData, Proof, compute_ext_data_hash  # noqa: E402
from zkpool.crypto.groth16 import encode_g1, encode_g2  # noqa: E402
from zkpool.crypto.keys import VerifyingKey  # noqa: E402
from zkpool.utils.field import FIELD_SIZE, be_bytes_to_int, field_neg, int_to_be_bytes  # noqa: E402

AUTHORITY = "pool-authority"
DEPOSITOR = "alice"
TEST_TREE_HEIGHT = 8


class SyntheticGroth16:
    """
    Groth16 verifying key whose trapdoor is known, so tests can forge valid proofs.

    With alpha, beta, gamma, delta and the IC exponents fixed, a proof
    (A, B, C) = (a*G1, b*G2, c*G1) passes the pairing check exactly when

        a*b == alpha*beta + gamma*(u0 + sum(x_j * u_j)) + delta*c   (mod r)

    so ``c`` can be solved for any public inputs x_j.
    """

    ALPHA = 11
    BETA = 13
    GAMMA = 17
    DELTA = 19
    IC = (23, 29, 31, 37, 41, 43, 47, 53)

    def __init__(self):
        r = bn128.curve_order
        self.verifying_key = VerifyingKey(
            alpha_g1=encode_g1(bn128.multiply(bn128.G1, self.ALPHA)),
            beta_g2=encode_g2(bn128.multiply(bn128.G2, self.BETA)),
            gamma_g2=encode_g2(bn128.multiply(bn128.G2, self.GAMMA)),
            delta_g2=encode_g2(bn128.multiply(bn128.G2, self.DELTA)),
            ic=[encode_g1(bn128.multiply(bn128.G1, u)) for u in self.IC],
        )
        self._delta_inv = pow(self.DELTA, r - 2, r)

    def prove(self, public_inputs, a: int = 5, b: int = 7):
        """Return (negated proof_a, proof_b, proof_c) for the given 32-byte inputs."""
        r = bn128.curve_order
        s = self.IC[0]
        for value, u in zip(public_inputs, self.IC[1:]):
            s += be_bytes_to_int(value) * u
        c = (a * b - self.ALPHA * self.BETA - self.GAMMA * s) * self._delta_inv % r

        proof_a = encode_g1(bn128.neg(bn128.multiply(bn128.G1, a)))
        proof_b = encode_g2(bn128.multiply(bn128.G2, b))
        proof_c = encode_g1(bn128.multiply(bn128.G1, c))
        return proof_a, proof_b, proof_c


@pytest.fixture(scope="session")
def groth16_setup():
    """Fixture providing the synthetic Groth16 setup."""
    return SyntheticGroth16()


def public_amount_for(ext_amount: int, fee: int) -> bytes:
    """Field encoding of the public amount matching ext_amount and fee."""
    if ext_amount >= 0:
        return int_to_be_bytes((ext_amount - fee) % FIELD_SIZE)
    return int_to_be_bytes(field_neg(-ext_amount + fee))


def field_bytes(value: int) -> bytes:
    return int_to_be_bytes(value % FIELD_SIZE)


def build_transaction(setup, root: bytes, ext_data: ExtData, nullifiers=None, commitments=None,
                      public_amount=None):
    """Assemble a proof that verifies against ``setup`` for the given root and ext data."""
    nullifiers = nullifiers or (field_bytes(be_bytes_to_int(os.urandom(31))),
                                field_bytes(be_bytes_to_int(os.urandom(31))))
    commitments = commitments or (field_bytes(be_bytes_to_int(os.urandom(31))),
                                  field_bytes(be_bytes_to_int(os.urandom(31))))
    if public_amount is None:
        public_amount = public_amount_for(ext_data.ext_amount, ext_data.fee)
    ext_data_hash = compute_ext_data_hash(ext_data)

    inputs = [root, public_amount, ext_data_hash, *nullifiers, *commitments]
    proof_a, proof_b, proof_c = setup.prove(inputs)
    return Proof(
        proof_a=proof_a,
        proof_b=proof_b,
        proof_c=proof_c,
        root=root,
        public_amount=public_amount,
        ext_data_hash=ext_data_hash,
        input_nullifiers=nullifiers,
        output_commitments=commitments,
    )


@pytest.fixture
def make_transaction(groth16_setup):
    """Fixture providing ``build_transaction`` bound to the synthetic setup."""
    def _make(root, ext_data, **kwargs):
        return build_transaction(groth16_setup, root, ext_data, **kwargs)
    return _make


@pytest.fixture
def host():
    """Fixture providing an in-memory host with a funded depositor."""
    return InMemoryHost(authorities=[AUTHORITY], balances={DEPOSITOR: 10_000_000})


@pytest.fixture
def pool(host, groth16_setup):
    """Fixture providing an initialized pool using the synthetic key."""
    shielded_pool = ShieldedPool(
        authority=AUTHORITY,
        host=host,
        verifying_key=groth16_setup.verifying_key,
        tree_height=TEST_TREE_HEIGHT,
    )
    shielded_pool.initialize_pool()
    return shielded_pool


@pytest.fixture
def recipient():
    """Fixture providing a recipient account id."""
    return b"\x42" * 32


@pytest.fixture
def temp_db(tmp_path):
    """Fixture providing a temporary database path."""
    return tmp_path / "test.db"
