"""Encoding and decoding utilities."""

from typing import Optional


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str, expected_length: Optional[int] = None) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)
        expected_length: Required decoded length in bytes, if any

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid or has the wrong length
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    data = bytes.fromhex(hex_str)
    if expected_length is not None and len(data) != expected_length:
        raise ValueError(f"Expected {expected_length} bytes, got {len(data)}")
    return data
