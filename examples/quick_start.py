#!/usr/bin/env python3
"""
Quick start guide for the shielded pool verification core.

Verifies a withdrawal proof produced by the deployed circuit against the
bundled verifying key, then shows how a pool rejects a transaction whose
public inputs do not match its state.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zkpool.core.collaborators import InMemoryHost
from zkpool.core.pool import ShieldedPool
from zkpool.core.transaction import ExtData, Proof
from zkpool.crypto.groth16 import negate_g1, verify_proof
from zkpool.crypto.keys import load_verifying_key
from zkpool.exceptions import ZKPoolException

# Withdrawal of 1e9 units; proof_a as produced by the prover, before negation
PROOF_A = "09654f31958d673ab03eabdd3a4b9de1b4fd5bcb1102ddf13edc223a0269aea71a15763b05671328d42d4a8b28b01d49d2276f81ed3520fff258df5a3beeae20"
PROOF_B = (
    "11306114bdc36b8109479b093f8617b66f1de785aac17e499b5a97a7cefe150f"
    "22c93a5290cc557e74835463d31709d8a851aa15e57406125d72a601f66cc651"
    "1fc30a8dda94fb2a3bf773cb7e9f44e72ec86820229bb93d867fa3c88fbccd97"
    "264d715f39de0d6de3b2b5ff44150ff3d3064f0c7b4c055b5522df235d094426"
)
PROOF_C = "279be37a48e60528123062f00330f221f59d194038d4c56e6adbaea1c09bea5f03cfab5def5984d4f4ea834b671b7bcc1fde774e272903e69b370ab050d87428"
PUBLIC_INPUTS = [
    "23a112833826bc1b65e39f34fea0ba828964ab4058ad060b528bf00174bb9ceb",
    "30644e72e131a029b85045b68181585d2833e84879b9709143e1f593b4653601",
    "30323c2b6392d6b045491a77c40b475489abd8178549d2eb80c9a0c9e8147458",
    "055c19e605a28685a670419bb660d02ecd8ba391c5b14e15f7f12f6096c28762",
    "1a4f4aee6d4a36399ee5d62490a09882185c1819216ca29f039d1b1279bda1fa",
    "1e9822bc46a71ee9e4fc0be66048f4c1554bacb89c2deabc2c173f7d97f8f592",
    "14faddfa02d5b83a01616515dea54d4543db0dd5902f76b06325f6c532daeeb3",
]


def main():
    """Run a simple example of the verification core."""

    print("=" * 70)
    print("SHIELDED POOL QUICK START")
    print("=" * 70)
    print()

    print("Step 1: Load the bundled verifying key")
    print("-" * 70)
    key = load_verifying_key()
    print(f"  Public inputs: {key.nr_public_inputs}")
    print()

    inputs = [bytes.fromhex(value) for value in PUBLIC_INPUTS]
    proof = Proof(
        proof_a=negate_g1(bytes.fromhex(PROOF_A)),
        proof_b=bytes.fromhex(PROOF_B),
        proof_c=bytes.fromhex(PROOF_C),
        root=inputs[0],
        public_amount=inputs[1],
        ext_data_hash=inputs[2],
        input_nullifiers=inputs[3:5],
        output_commitments=inputs[5:7],
    )

    print("Step 2: Verify a withdrawal proof (pairing check, takes a few seconds)")
    print("-" * 70)
    verify_proof(proof, key)
    print("  Proof verified")
    print()

    print("Step 3: Submit it to a fresh pool")
    print("-" * 70)
    pool = ShieldedPool(authority="operator", host=InMemoryHost(authorities=["operator"]),
                        verifying_key=key, tree_height=26)
    pool.initialize_pool()
    ext_data = ExtData(recipient=b"\x42" * 32, ext_amount=-1_000_000_000, fee=0)
    try:
        pool.transact(proof, ext_data)
    except ZKPoolException as e:
        # The proof was built against another tree, so its root is unknown here
        print(f"  Rejected with {e.code}: {e}")
    print(f"  Pool state unchanged: {pool.get_pool_state().to_dict()}")


if __name__ == "__main__":
    main()
