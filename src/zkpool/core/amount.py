"""Reconciliation of the plaintext external amount with the proved public amount.

The circuit proves ``sum(inputs) + public_amount == sum(outputs)`` inside the
scalar field. The pool only sees ``ext_amount`` (signed, positive for a
deposit, negative for a withdrawal) and ``fee`` in the clear, so it must check
that the proved delta is exactly what is about to move on the ledger:

    deposit:     public_amount == ext_amount - fee            (mod p)
    withdrawal:  public_amount == -(|ext_amount| + fee)       (mod p)
    no-op:       public_amount is not constrained
"""

import logging

from zkpool.utils.field import FIELD_SIZE, MAX_ALLOWED_VAL, be_bytes_to_int, field_neg
from zkpool.exceptions import InvalidExtAmountError, InvalidFeeError

logger = logging.getLogger(__name__)

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1
U64_MAX = 2**64 - 1


def validate_amounts(ext_amount: int, fee: int) -> None:
    """
    Range-check ext_amount (i64) and fee (u64).

    Raises:
        InvalidExtAmountError: If ext_amount is not a valid i64 or too large
        InvalidFeeError: If fee is not a valid u64 or too large
    """
    if not isinstance(ext_amount, int) or not I64_MIN <= ext_amount <= I64_MAX:
        raise InvalidExtAmountError("ext_amount must be a signed 64-bit integer")
    if abs(ext_amount) >= MAX_ALLOWED_VAL:
        raise InvalidExtAmountError("absolute ext_amount must be less than 2^248")
    if not isinstance(fee, int) or not 0 <= fee <= U64_MAX:
        raise InvalidFeeError("fee must be an unsigned 64-bit integer")
    if fee >= MAX_ALLOWED_VAL:
        raise InvalidFeeError("fee must be less than 2^248")


def check_public_amount(ext_amount: int, fee: int, public_amount: bytes) -> bool:
    """
    Check that the proved public amount matches ext_amount and fee.

    Args:
        ext_amount: Signed external amount (positive deposit, negative withdrawal)
        fee: Relayer fee
        public_amount: 32-byte big-endian field element from the proof

    Returns:
        bool: True if the amounts reconcile
    """
    if ext_amount == I64_MIN:
        logger.debug("Rejecting ext_amount with no signed counterpart")
        return False
    if len(public_amount) != 32:
        return False

    proved = be_bytes_to_int(public_amount) % FIELD_SIZE
    fee_element = fee % FIELD_SIZE

    if ext_amount > 0:
        if ext_amount <= fee:
            logger.debug("Deposit of %d does not exceed its fee %d", ext_amount, fee)
            return False
        expected = (ext_amount % FIELD_SIZE - fee_element) % FIELD_SIZE
    elif ext_amount < 0:
        expected = field_neg((-ext_amount) % FIELD_SIZE + fee_element)
    else:
        return True

    if proved != expected:
        logger.debug("Public amount mismatch for ext_amount=%d fee=%d", ext_amount, fee)
        return False
    return True
