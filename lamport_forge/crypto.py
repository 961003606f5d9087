"""
Cryptographic primitives: block hashing, message digests, bit addressing,
secure randomness, and honest Lamport key generation / signing.
"""

import random
import secrets
from typing import Callable, Optional, Tuple

from cryptography.hazmat.primitives import hashes


BLOCK_SIZE = 32
DEFAULT_MESSAGE_BITS = 256
DEFAULT_HASH_ALGORITHM = "sha256"

# Nonce alphabet for forged message suffixes
SUFFIX_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-"

_HASH_ALGORITHMS = {
    "sha256": hashes.SHA256,
    "sha3-256": hashes.SHA3_256,
    "blake2s": lambda: hashes.BLAKE2s(BLOCK_SIZE),
}

RandomSource = Callable[[int], bytes]


class CryptoError(Exception):
    """Base exception for cryptographic operations."""
    pass


class FormatError(CryptoError):
    """Raised when encoded key or signature material is malformed."""
    pass


class InconsistencyError(CryptoError):
    """Raised when known signatures disagree about a secret key slot."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class RandomSourceError(CryptoError):
    """Raised when the secure random source cannot deliver the requested bytes."""
    pass


class ForgeError(CryptoError):
    """Base exception for forgery search outcomes."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class ForgeExhausted(ForgeError):
    """Raised when the search reaches its iteration cap without a valid forgery."""
    pass


class ForgeCancelled(ForgeError):
    """Raised when the search is stopped by a cancellation token or deadline."""
    pass


def supported_hash_algorithms() -> Tuple[str, ...]:
    """Names accepted wherever a hash algorithm is configured."""
    return tuple(_HASH_ALGORITHMS)


def validate_hash_algorithm(algorithm: str) -> str:
    if algorithm not in _HASH_ALGORITHMS:
        raise ValueError(
            f"Unsupported hash algorithm '{algorithm}', "
            f"expected one of {', '.join(_HASH_ALGORITHMS)}"
        )
    return algorithm


def validate_message_bits(bits: int) -> int:
    """Message width must be whole bytes and fit in one 256-bit digest."""
    if bits % 8 != 0 or not 8 <= bits <= DEFAULT_MESSAGE_BITS:
        raise ValueError(f"Message width must be a multiple of 8 in 8..256, got {bits}")
    return bits


def compute_hash(data: bytes, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Compute a 32-byte digest of data with the named algorithm."""
    try:
        factory = _HASH_ALGORITHMS[algorithm]
    except KeyError:
        raise CryptoError(f"Unsupported hash algorithm: {algorithm}")

    digest = hashes.Hash(factory())
    digest.update(data)
    return digest.finalize()


def hash_block(block: bytes, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Hash one 32-byte block into its public commitment."""
    return compute_hash(block, algorithm)


def digest_message(
    data,
    bits: int = DEFAULT_MESSAGE_BITS,
    algorithm: str = DEFAULT_HASH_ALGORITHM
) -> bytes:
    """
    Hash an arbitrary input into a message digest.

    Strings are UTF-8 encoded first. For widths below 256 bits the
    leading ``bits // 8`` bytes of the digest are kept.

    Args:
        data: Input string or bytes
        bits: Message width in bits
        algorithm: Hash algorithm name

    Returns:
        The message digest, ``bits // 8`` bytes long
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return compute_hash(bytes(data), algorithm)[:bits // 8]


def bit_at(buffer: bytes, i: int) -> int:
    """Return bit i of buffer, bit 0 being the most significant bit of byte 0."""
    return (buffer[i // 8] >> (7 - i % 8)) & 1


def slot_index(i: int, bit: int, bits: int = DEFAULT_MESSAGE_BITS) -> int:
    """Map bit position i and its value onto a secret key slot."""
    return i if bit == 0 else i + bits


def generate_random_bytes(length: int = BLOCK_SIZE, source: Optional[RandomSource] = None) -> bytes:
    """
    Generate cryptographically secure random bytes.

    Args:
        length: Number of bytes to draw
        source: Optional replacement byte source (defaults to ``secrets``)

    Raises:
        RandomSourceError: If the source fails or returns a short read
    """
    draw = source or secrets.token_bytes
    try:
        data = draw(length)
    except OSError as e:
        raise RandomSourceError(f"Secure random source failed: {e}") from e

    if data is None or len(data) != length:
        got = 0 if data is None else len(data)
        raise RandomSourceError(f"Secure random source returned {got} of {length} bytes")
    return bytes(data)


class SeededSource:
    """
    Reproducible byte source for tests and replays. NOT cryptographically secure.

    ``for_worker`` derives an independent stream per search worker, so
    parallel workers never walk the same candidates.
    """

    def __init__(self, seed: int, stream: int = 0):
        self.seed = seed
        self.stream = stream
        self._rng = random.Random(f"{seed}:{stream}")

    def __call__(self, length: int) -> bytes:
        return self._rng.randbytes(length)

    def for_worker(self, worker_id: int) -> "SeededSource":
        return SeededSource(self.seed, worker_id)


def generate_random_string(length: int = 8, source: Optional[RandomSource] = None) -> str:
    """Generate a random nonce string over SUFFIX_ALPHABET."""
    raw = generate_random_bytes(length, source)
    return ''.join(SUFFIX_ALPHABET[b % len(SUFFIX_ALPHABET)] for b in raw)


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in constant time."""
    return secrets.compare_digest(a, b)


def generate_keypair(
    bits: int = DEFAULT_MESSAGE_BITS,
    algorithm: str = DEFAULT_HASH_ALGORITHM
):
    """
    Generate a new Lamport key pair.

    Args:
        bits: Message width the key signs (256 for the full scheme)
        algorithm: Hash algorithm used for the public commitments

    Returns:
        Tuple of (SecretKey, PublicKey)
    """
    from lamport_forge.models import SecretKey

    validate_message_bits(bits)
    secret_key = SecretKey(
        row0=tuple(generate_random_bytes(BLOCK_SIZE) for _ in range(bits)),
        row1=tuple(generate_random_bytes(BLOCK_SIZE) for _ in range(bits)),
        hash_algorithm=algorithm,
    )
    return secret_key, secret_key.public_key()


def sign_message(message: bytes, secret_key):
    """
    Sign a message digest by revealing one secret block per message bit.

    A Lamport key must sign only once; every extra signature leaks
    further slots of the secret key.

    Args:
        message: Message digest, ``secret_key.bits // 8`` bytes long
        secret_key: The signer's SecretKey

    Returns:
        Signature over the message
    """
    from lamport_forge.models import Signature

    bits = secret_key.bits
    if len(message) * 8 != bits:
        raise CryptoError(f"Expected a {bits}-bit message, got {len(message) * 8} bits")

    rows = (secret_key.row0, secret_key.row1)
    return Signature(preimages=tuple(rows[bit_at(message, i)][i] for i in range(bits)))
