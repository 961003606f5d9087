"""
Fixed-size hex encoding for keys, signatures and messages.

Key layout: all blocks of row 0 followed by all blocks of row 1,
each block 32 bytes, most significant bit first.
"""

from typing import List

from lamport_forge.crypto import (
    BLOCK_SIZE,
    DEFAULT_HASH_ALGORITHM,
    DEFAULT_MESSAGE_BITS,
    FormatError,
    validate_message_bits,
)
from lamport_forge.models import PublicKey, SecretKey, Signature


def _decode_blocks(hex_text: str, count: int, what: str) -> List[bytes]:
    """Decode exactly count blocks, or raise FormatError without partial output."""
    text = hex_text.strip()
    expected = count * BLOCK_SIZE * 2
    if len(text) != expected:
        raise FormatError(f"{what}: expected {expected} hex characters, got {len(text)}")

    try:
        raw = bytes.fromhex(text)
    except ValueError as e:
        raise FormatError(f"{what}: invalid hex: {e}") from e

    # fromhex skips embedded whitespace
    if len(raw) != count * BLOCK_SIZE:
        raise FormatError(f"{what}: decoded {len(raw)} bytes, expected {count * BLOCK_SIZE}")

    return [raw[i:i + BLOCK_SIZE] for i in range(0, len(raw), BLOCK_SIZE)]


def public_key_from_hex(
    hex_text: str,
    bits: int = DEFAULT_MESSAGE_BITS,
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
) -> PublicKey:
    """
    Decode a hex-encoded public key.

    Args:
        hex_text: 2 * bits blocks as hex (32768 characters at full width)
        bits: Message width the key signs
        hash_algorithm: Hash that produced the commitments

    Raises:
        FormatError: On any length mismatch or non-hex input
    """
    validate_message_bits(bits)
    blocks = _decode_blocks(hex_text, 2 * bits, "public key")
    return PublicKey(row0=tuple(blocks[:bits]), row1=tuple(blocks[bits:]), hash_algorithm=hash_algorithm)


def secret_key_from_hex(
    hex_text: str,
    bits: int = DEFAULT_MESSAGE_BITS,
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
) -> SecretKey:
    """Decode a hex-encoded secret key (same layout as a public key)."""
    validate_message_bits(bits)
    blocks = _decode_blocks(hex_text, 2 * bits, "secret key")
    return SecretKey(row0=tuple(blocks[:bits]), row1=tuple(blocks[bits:]), hash_algorithm=hash_algorithm)


def signature_from_hex(hex_text: str, bits: int = DEFAULT_MESSAGE_BITS) -> Signature:
    """
    Decode a hex-encoded signature.

    Raises:
        FormatError: Unless the input is exactly bits blocks of hex
    """
    validate_message_bits(bits)
    return Signature(preimages=tuple(_decode_blocks(hex_text, bits, "signature")))


def message_from_hex(hex_text: str, bits: int = DEFAULT_MESSAGE_BITS) -> bytes:
    validate_message_bits(bits)
    text = hex_text.strip()
    if len(text) != bits // 4:
        raise FormatError(f"message: expected {bits // 4} hex characters, got {len(text)}")
    try:
        raw = bytes.fromhex(text)
    except ValueError as e:
        raise FormatError(f"message: invalid hex: {e}") from e
    if len(raw) * 8 != bits:
        raise FormatError(f"message: decoded {len(raw)} bytes, expected {bits // 8}")
    return raw


def key_to_hex(key) -> str:
    """Encode a PublicKey or SecretKey, row 0 first."""
    return b''.join(key.blocks).hex()


def signature_to_hex(signature: Signature) -> str:
    return b''.join(signature.preimages).hex()


def message_to_hex(message: bytes) -> str:
    return message.hex()
