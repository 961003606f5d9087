"""
Pydantic models for key material, signatures and forgery results.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lamport_forge.crypto import (
    BLOCK_SIZE,
    DEFAULT_HASH_ALGORITHM,
    bit_at,
    hash_block,
    slot_index,
    validate_hash_algorithm,
    validate_message_bits,
)


def _check_blocks(blocks: Tuple[bytes, ...]) -> Tuple[bytes, ...]:
    for index, block in enumerate(blocks):
        if len(block) != BLOCK_SIZE:
            raise ValueError(f"Block {index} is {len(block)} bytes, expected {BLOCK_SIZE}")
    return blocks


# ============================================================================
# Key Material
# ============================================================================

class KeyMaterial(BaseModel):
    """Two rows of blocks: row 0 answers 0-bits, row 1 answers 1-bits."""

    model_config = ConfigDict(frozen=True)

    row0: Tuple[bytes, ...]
    row1: Tuple[bytes, ...]
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM

    @field_validator('row0', 'row1')
    @classmethod
    def validate_row(cls, v: Tuple[bytes, ...]) -> Tuple[bytes, ...]:
        return _check_blocks(v)

    @field_validator('hash_algorithm')
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        return validate_hash_algorithm(v)

    @model_validator(mode='after')
    def validate_rows_match(self):
        if len(self.row0) != len(self.row1):
            raise ValueError(
                f"Rows differ in length: {len(self.row0)} vs {len(self.row1)}"
            )
        validate_message_bits(len(self.row0))
        return self

    @property
    def bits(self) -> int:
        return len(self.row0)

    def row(self, bit: int) -> Tuple[bytes, ...]:
        return self.row1 if bit else self.row0

    def slot(self, index: int) -> bytes:
        """Block at slot index: row 0 first, then row 1."""
        if index < self.bits:
            return self.row0[index]
        return self.row1[index - self.bits]

    @property
    def blocks(self) -> Tuple[bytes, ...]:
        return self.row0 + self.row1


class PublicKey(KeyMaterial):
    """Lamport public key: the hash of every secret key block."""
    pass


class SecretKey(KeyMaterial):
    """Lamport secret key."""

    def public_key(self) -> PublicKey:
        return PublicKey(
            row0=tuple(hash_block(b, self.hash_algorithm) for b in self.row0),
            row1=tuple(hash_block(b, self.hash_algorithm) for b in self.row1),
            hash_algorithm=self.hash_algorithm,
        )


class Signature(BaseModel):
    """One revealed preimage per message bit."""

    model_config = ConfigDict(frozen=True)

    preimages: Tuple[bytes, ...]

    @field_validator('preimages')
    @classmethod
    def validate_preimages(cls, v: Tuple[bytes, ...]) -> Tuple[bytes, ...]:
        validate_message_bits(len(v))
        return _check_blocks(v)

    @property
    def bits(self) -> int:
        return len(self.preimages)


# ============================================================================
# Leak Aggregation
# ============================================================================

class PartialSecretKey(BaseModel):
    """
    Secret key blocks recovered from observed signatures.

    Maps slot index (0..bits-1 for row 0, bits..2*bits-1 for row 1)
    to the revealed block. Only leaked slots are present.
    """

    model_config = ConfigDict(frozen=True)

    bits: int = 256
    blocks: Dict[int, bytes] = Field(default_factory=dict)

    @field_validator('bits')
    @classmethod
    def validate_bits(cls, v: int) -> int:
        return validate_message_bits(v)

    @model_validator(mode='after')
    def validate_slots(self):
        for slot, block in self.blocks.items():
            if not 0 <= slot < 2 * self.bits:
                raise ValueError(f"Slot {slot} out of range for a {self.bits}-bit key")
            if len(block) != BLOCK_SIZE:
                raise ValueError(f"Slot {slot} holds {len(block)} bytes, expected {BLOCK_SIZE}")
        return self

    def __contains__(self, slot: int) -> bool:
        return slot in self.blocks

    def get(self, slot: int) -> Optional[bytes]:
        return self.blocks.get(slot)

    @property
    def coverage(self) -> int:
        return len(self.blocks)

    @property
    def coverage_ratio(self) -> float:
        return len(self.blocks) / (2 * self.bits)

    def required_slots(self, message: bytes) -> List[int]:
        """Slots a signature on message must reveal."""
        return [slot_index(i, bit_at(message, i), self.bits) for i in range(self.bits)]

    def missing_slots(self, message: bytes) -> List[int]:
        return [slot for slot in self.required_slots(message) if slot not in self.blocks]

    def covers(self, message: bytes) -> bool:
        """True if every slot required by message has leaked."""
        return not self.missing_slots(message)


class Inconsistency(BaseModel):
    """Two known signatures claiming different blocks for one slot."""

    slot: int
    pair_index: int = Field(..., description="Index of the known pair carrying the conflicting block")
    recorded: bytes
    claimed: bytes


class LeakReport(BaseModel):
    """Result of merging known signatures into a partial secret key."""

    partial_key: PartialSecretKey
    inconsistencies: List[Inconsistency] = Field(default_factory=list)
    rejected: List[int] = Field(
        default_factory=list,
        description="Indices of known pairs skipped because they failed verification"
    )

    @property
    def coverage(self) -> int:
        return self.partial_key.coverage

    @property
    def consistent(self) -> bool:
        return not self.inconsistencies


# ============================================================================
# Forgery
# ============================================================================

class ForgeResult(BaseModel):
    """A forged message together with a signature the public key accepts."""

    message: str
    digest: bytes
    signature: Signature
    iterations: int = Field(..., ge=1, description="Attempts made by the winning worker")
    worker_id: int = 0
    elapsed_seconds: float = 0.0
    coverage: int = Field(..., ge=0, description="Leaked slots available to the search")
