"""
Leak aggregation service.

Every signature under a Lamport key reveals one secret block per bit
position. Merging signatures on different messages rebuilds part of
the secret key, which is what makes key reuse forgeable.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from lamport_forge.crypto import (
    DEFAULT_MESSAGE_BITS,
    InconsistencyError,
    bit_at,
    slot_index,
)
from lamport_forge.models import (
    Inconsistency,
    LeakReport,
    PartialSecretKey,
    PublicKey,
    Signature,
)
from lamport_forge.services.verifier import verify

logger = logging.getLogger(__name__)


def aggregate_leaks(
    pairs: Iterable[Tuple[bytes, Signature]],
    public_key: Optional[PublicKey] = None,
    strict: bool = False
) -> LeakReport:
    """
    Merge known (message, signature) pairs into a partial secret key.

    For bit i of a message, the revealed block belongs to slot i when the
    bit is 0 and to slot i + bits when it is 1. A slot claimed with two
    different blocks keeps the first-seen value and is recorded as an
    inconsistency.

    Args:
        pairs: Known (message digest, signature) pairs under one key
        public_key: If given, pairs that fail verification are skipped
        strict: Raise instead of reporting inconsistencies

    Returns:
        LeakReport with the partial key, inconsistencies and rejected pairs

    Raises:
        InconsistencyError: If strict and any slot was claimed twice
    """
    pairs = list(pairs)
    if public_key is not None:
        bits = public_key.bits
    elif pairs:
        bits = pairs[0][1].bits
    else:
        bits = DEFAULT_MESSAGE_BITS

    blocks: Dict[int, bytes] = {}
    inconsistencies: List[Inconsistency] = []
    rejected: List[int] = []

    for index, (message, signature) in enumerate(pairs):
        if len(message) * 8 != bits or signature.bits != bits:
            logger.warning(f"Known pair {index} does not match the {bits}-bit key width, skipping")
            rejected.append(index)
            continue

        if public_key is not None and not verify(message, public_key, signature):
            logger.warning(f"Known signature {index} does not verify, skipping")
            rejected.append(index)
            continue

        for i, block in enumerate(signature.preimages):
            slot = slot_index(i, bit_at(message, i), bits)
            recorded = blocks.get(slot)
            if recorded is None:
                blocks[slot] = block
            elif recorded != block:
                logger.warning(f"Known signatures are not consistent at slot {slot} (pair {index})")
                inconsistencies.append(Inconsistency(
                    slot=slot,
                    pair_index=index,
                    recorded=recorded,
                    claimed=block,
                ))

    report = LeakReport(
        partial_key=PartialSecretKey(bits=bits, blocks=blocks),
        inconsistencies=inconsistencies,
        rejected=rejected,
    )

    logger.info(f"There are {report.coverage} out of {2 * bits} secret key blocks known")

    if strict and inconsistencies:
        raise InconsistencyError(
            f"{len(inconsistencies)} conflicting block(s) across known signatures",
            report=report,
        )

    return report


def estimate_success_probability(partial_key: PartialSecretKey) -> float:
    """
    Probability that one random candidate message is fully covered.

    Each bit position contributes (leaked rows at that position) / 2.
    """
    bits = partial_key.bits
    probability = 1.0
    for i in range(bits):
        leaked = (i in partial_key) + (i + bits in partial_key)
        probability *= leaked / 2
        if probability == 0.0:
            break
    return probability
