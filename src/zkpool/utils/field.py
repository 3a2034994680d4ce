"""BN254 scalar field helpers shared by the amount check and the verifier."""

from py_ecc.optimized_bn128 import curve_order, field_modulus

# Scalar field modulus p: every public input and amount lives in Z_p
FIELD_SIZE = curve_order

# Base field modulus q: curve point coordinates live in F_q
BASE_FIELD_SIZE = field_modulus

FIELD_ELEMENT_SIZE = 32

# Upper bound (exclusive) on |ext_amount| and fee
MAX_ALLOWED_VAL = 2**248


def be_bytes_to_int(data: bytes) -> int:
    """Interpret bytes as an unsigned big-endian integer."""
    return int.from_bytes(data, "big")


def int_to_be_bytes(value: int, length: int = FIELD_ELEMENT_SIZE) -> bytes:
    """
    Encode a non-negative integer as fixed-width big-endian bytes.

    Raises:
        ValueError: If value is negative or does not fit in ``length`` bytes
    """
    if value < 0:
        raise ValueError("Cannot encode a negative integer")
    try:
        return value.to_bytes(length, "big")
    except OverflowError as e:
        raise ValueError(f"Value does not fit in {length} bytes") from e


def is_less_than_field_size_be(data: bytes) -> bool:
    """Check that a 32-byte big-endian value is a canonical scalar field element."""
    if len(data) != FIELD_ELEMENT_SIZE:
        return False
    return be_bytes_to_int(data) < FIELD_SIZE


def reduce_be_bytes(data: bytes) -> int:
    """Read big-endian bytes and reduce modulo the scalar field."""
    return be_bytes_to_int(data) % FIELD_SIZE


def reduce_le_bytes(data: bytes) -> int:
    """Read little-endian bytes and reduce modulo the scalar field."""
    return int.from_bytes(data, "little") % FIELD_SIZE


def field_neg(value: int) -> int:
    """Additive inverse modulo the scalar field."""
    return (-value) % FIELD_SIZE


def to_field_bytes(value: int) -> bytes:
    """Reduce an integer (possibly negative) into the field and encode it big-endian."""
    return int_to_be_bytes(value % FIELD_SIZE)


def change_endianness(data: bytes) -> bytes:
    """
    Reverse byte order within every 32-byte chunk.

    Converts between the big-endian wire layout and little-endian
    serializations of field elements and point coordinates. A trailing
    partial chunk is reversed on its own.
    """
    out = bytearray()
    for start in range(0, len(data), FIELD_ELEMENT_SIZE):
        out.extend(reversed(data[start:start + FIELD_ELEMENT_SIZE]))
    return bytes(out)
