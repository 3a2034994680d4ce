"""Verifying key model and loader.

The verifying key is trusted-setup output. It is loaded once per process,
never supplied by callers, and never mutated. The package ships the key for
the two-input / two-output transaction circuit (seven public inputs); a
different audited key can be configured with ``ZKPOOL_VERIFYING_KEY_PATH``.
"""

import json
import logging
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import List, Optional, Tuple, Union

from zkpool.crypto.groth16 import G1_SIZE, G2_SIZE, decode_g1, decode_g2
from zkpool.utils.encoding import bytes_to_hex, hex_to_bytes
from zkpool.exceptions import Groth16Error, VerifyingKeyError

logger = logging.getLogger(__name__)

BUNDLED_KEY_PATH = Path(__file__).parent / "data" / "verifying_key.json"


@dataclass(frozen=True)
class VerifyingKey:
    """Groth16 verifying key in encoded (EIP-197) form."""

    alpha_g1: bytes
    beta_g2: bytes
    gamma_g2: bytes
    delta_g2: bytes
    ic: Tuple[bytes, ...]

    def __post_init__(self):
        object.__setattr__(self, "ic", tuple(self.ic))
        if len(self.ic) < 1:
            raise VerifyingKeyError("Verifying key needs at least one IC point")
        for name, value, size in [
            ("alpha_g1", self.alpha_g1, G1_SIZE),
            ("beta_g2", self.beta_g2, G2_SIZE),
            ("gamma_g2", self.gamma_g2, G2_SIZE),
            ("delta_g2", self.delta_g2, G2_SIZE),
        ] + [(f"ic[{i}]", point, G1_SIZE) for i, point in enumerate(self.ic)]:
            if len(value) != size:
                raise VerifyingKeyError(f"{name} must be {size} bytes, got {len(value)}")

    @property
    def nr_public_inputs(self) -> int:
        return len(self.ic) - 1

    @cached_property
    def alpha_g1_point(self):
        return self._decode(decode_g1, self.alpha_g1, "alpha_g1")

    @cached_property
    def beta_g2_point(self):
        return self._decode(decode_g2, self.beta_g2, "beta_g2")

    @cached_property
    def gamma_g2_point(self):
        return self._decode(decode_g2, self.gamma_g2, "gamma_g2")

    @cached_property
    def delta_g2_point(self):
        return self._decode(decode_g2, self.delta_g2, "delta_g2")

    @cached_property
    def ic_points(self) -> List:
        return [
            self._decode(decode_g1, point, f"ic[{i}]") for i, point in enumerate(self.ic)
        ]

    @staticmethod
    def _decode(decoder, data: bytes, name: str):
        try:
            return decoder(data)
        except Groth16Error as e:
            raise VerifyingKeyError(f"Verifying key {name} is not a valid point: {e}") from e

    def validate(self) -> None:
        """Decode every point, raising ``VerifyingKeyError`` on the first bad one."""
        self.alpha_g1_point
        self.beta_g2_point
        self.gamma_g2_point
        self.delta_g2_point
        self.ic_points

    @classmethod
    def from_dict(cls, data: dict) -> "VerifyingKey":
        """Build a key from its hex-encoded dictionary form."""
        try:
            key = cls(
                alpha_g1=hex_to_bytes(data["alpha_g1"]),
                beta_g2=hex_to_bytes(data["beta_g2"]),
                gamma_g2=hex_to_bytes(data["gamma_g2"]),
                delta_g2=hex_to_bytes(data["delta_g2"]),
                ic=[hex_to_bytes(point) for point in data["ic"]],
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise VerifyingKeyError(f"Malformed verifying key: {e}") from e

        declared = data.get("nr_public_inputs")
        if declared is not None and declared != key.nr_public_inputs:
            raise VerifyingKeyError(
                f"Key declares {declared} public inputs but has {len(key.ic)} IC points"
            )
        return key

    def to_dict(self) -> dict:
        """Hex-encoded dictionary form."""
        return {
            "protocol": "groth16",
            "curve": "bn254",
            "nr_public_inputs": self.nr_public_inputs,
            "alpha_g1": bytes_to_hex(self.alpha_g1),
            "beta_g2": bytes_to_hex(self.beta_g2),
            "gamma_g2": bytes_to_hex(self.gamma_g2),
            "delta_g2": bytes_to_hex(self.delta_g2),
            "ic": [bytes_to_hex(point) for point in self.ic],
        }


def load_verifying_key(path: Optional[Union[str, Path]] = None) -> VerifyingKey:
    """
    Load and validate a verifying key from a JSON file.

    Args:
        path: Key file (defaults to the bundled transaction circuit key)

    Raises:
        VerifyingKeyError: If the file is missing or malformed
    """
    key_path = Path(path) if path is not None else BUNDLED_KEY_PATH
    try:
        data = json.loads(key_path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise VerifyingKeyError(f"Cannot read verifying key {key_path}: {e}") from e

    key = VerifyingKey.from_dict(data)
    key.validate()
    logger.info("Loaded verifying key from %s (%d public inputs)", key_path, key.nr_public_inputs)
    return key


_verifying_key: Optional[VerifyingKey] = None


def get_verifying_key() -> VerifyingKey:
    """Get or load the process-wide verifying key."""
    global _verifying_key
    if _verifying_key is None:
        from zkpool.config import get_settings

        _verifying_key = load_verifying_key(get_settings().verifying_key_path)
    return _verifying_key


def reset_verifying_key() -> None:
    """Forget the process-wide key (for testing)."""
    global _verifying_key
    _verifying_key = None
