"""
Test fixtures and configuration for pytest.
"""

from typing import List, Tuple

import pytest

from lamport_forge.config import get_settings
from lamport_forge.crypto import digest_message, generate_keypair, sign_message
from lamport_forge.models import PublicKey, SecretKey, Signature

# Reduced width: 8-bit messages, 8 slots per key row
TOY_BITS = 8

KNOWN_TEXTS = ["1", "2", "3", "4"]


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment changes in a test take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def keypair() -> Tuple[SecretKey, PublicKey]:
    """Full-width 256-bit Lamport key pair."""
    return generate_keypair()


@pytest.fixture
def toy_keypair() -> Tuple[SecretKey, PublicKey]:
    """8-bit Lamport key pair for deterministic forgery tests."""
    return generate_keypair(bits=TOY_BITS)


@pytest.fixture
def sample_message() -> bytes:
    """Digest of a sample message."""
    return digest_message("transfer 100 coins to bob")


@pytest.fixture
def known_pairs(keypair) -> List[Tuple[bytes, Signature]]:
    """Signatures on "1".."4" under one reused full-width key."""
    secret_key, _ = keypair
    pairs = []
    for text in KNOWN_TEXTS:
        message = digest_message(text)
        pairs.append((message, sign_message(message, secret_key)))
    return pairs


@pytest.fixture
def toy_known_pairs(toy_keypair) -> List[Tuple[bytes, Signature]]:
    """Signatures on "1".."4" under one reused 8-bit key."""
    secret_key, _ = toy_keypair
    pairs = []
    for text in KNOWN_TEXTS:
        message = digest_message(text, bits=TOY_BITS)
        pairs.append((message, sign_message(message, secret_key)))
    return pairs


def complementary_pairs(secret_key: SecretKey) -> List[Tuple[bytes, Signature]]:
    """Two signatures on all-zero and all-one messages, leaking every slot."""
    width = secret_key.bits // 8
    pairs = []
    for message in (b'\x00' * width, b'\xff' * width):
        pairs.append((message, sign_message(message, secret_key)))
    return pairs


@pytest.fixture
def full_leak_pairs(keypair) -> List[Tuple[bytes, Signature]]:
    secret_key, _ = keypair
    return complementary_pairs(secret_key)


@pytest.fixture
def toy_full_leak_pairs(toy_keypair) -> List[Tuple[bytes, Signature]]:
    secret_key, _ = toy_keypair
    return complementary_pairs(secret_key)
