"""
Signature verification service.

Recomputes the commitment of every revealed preimage and checks it
against the public key row selected by the message bit. Returns only
True/False and never raises.
"""

import logging
from typing import Iterable, List, Tuple

from lamport_forge.crypto import bit_at, constant_time_compare, hash_block
from lamport_forge.models import PublicKey, Signature

logger = logging.getLogger(__name__)


def verify(message: bytes, public_key: PublicKey, signature: Signature) -> bool:
    """
    Verify a Lamport signature on a message digest.

    Args:
        message: Message digest, ``public_key.bits // 8`` bytes long
        public_key: The signer's public key
        signature: Revealed preimages, one per message bit

    Returns:
        True if every preimage hashes to its selected commitment, False otherwise
    """
    try:
        bits = public_key.bits
        if len(message) * 8 != bits or signature.bits != bits:
            logger.debug(
                f"Shape mismatch: {len(message) * 8}-bit message, "
                f"{signature.bits}-block signature, {bits}-bit key"
            )
            return False

        rows = (public_key.row0, public_key.row1)
        algorithm = public_key.hash_algorithm
        for i, preimage in enumerate(signature.preimages):
            expected = rows[bit_at(message, i)][i]
            if not constant_time_compare(hash_block(preimage, algorithm), expected):
                return False
        return True

    except Exception as e:
        # Malformed input is a rejection, not an error
        logger.debug(f"Lamport verification error: {e}")
        return False


def verify_pairs(
    pairs: Iterable[Tuple[bytes, Signature]],
    public_key: PublicKey
) -> List[bool]:
    """Verify a batch of (message, signature) pairs against one public key."""
    results = []
    for index, (message, signature) in enumerate(pairs, start=1):
        ok = verify(message, public_key, signature)
        logger.info(f"ok {index}: {ok}")
        results.append(ok)
    return results
