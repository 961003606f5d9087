"""
Tests for the verifier service.
"""

import pytest

from lamport_forge.crypto import digest_message, generate_keypair, sign_message
from lamport_forge.models import Signature
from lamport_forge.services.verifier import verify, verify_pairs


def _replace_block(signature: Signature, index: int, block: bytes) -> Signature:
    preimages = list(signature.preimages)
    preimages[index] = block
    return Signature(preimages=tuple(preimages))


class TestVerify:
    """Tests for Lamport signature verification."""

    def test_valid_signature(self, keypair, sample_message):
        """Test that an honest signature verifies."""
        secret_key, public_key = keypair
        signature = sign_message(sample_message, secret_key)

        assert verify(sample_message, public_key, signature) is True

    @pytest.mark.parametrize("index", [0, 1, 127, 128, 254, 255])
    def test_single_block_mutation(self, keypair, sample_message, index):
        """Test that altering any one block is rejected."""
        secret_key, public_key = keypair
        signature = sign_message(sample_message, secret_key)
        tampered = _replace_block(signature, index, b'\x00' * 32)

        assert verify(sample_message, public_key, tampered) is False

    def test_single_bit_flip_in_block(self, keypair, sample_message):
        """Test that flipping one bit of one preimage is rejected."""
        secret_key, public_key = keypair
        signature = sign_message(sample_message, secret_key)
        block = bytearray(signature.preimages[42])
        block[31] ^= 0x01

        assert verify(sample_message, public_key, _replace_block(signature, 42, bytes(block))) is False

    def test_other_row_block_rejected(self, keypair):
        """Test that revealing the wrong row for a bit is rejected."""
        secret_key, public_key = keypair
        message = b'\x00' * 32
        signature = sign_message(message, secret_key)
        wrong_row = _replace_block(signature, 0, secret_key.row1[0])

        assert verify(message, public_key, wrong_row) is False

    def test_wrong_message(self, keypair, sample_message):
        """Test that a signature does not carry over to another message."""
        secret_key, public_key = keypair
        signature = sign_message(sample_message, secret_key)

        assert verify(digest_message("something else"), public_key, signature) is False

    def test_wrong_key(self, sample_message):
        """Test that another key's signature is rejected."""
        secret_key1, _ = generate_keypair()
        _, public_key2 = generate_keypair()
        signature = sign_message(sample_message, secret_key1)

        assert verify(sample_message, public_key2, signature) is False

    def test_message_width_mismatch(self, keypair, sample_message):
        """Test that a short message is a rejection, not an error."""
        secret_key, public_key = keypair
        signature = sign_message(sample_message, secret_key)

        assert verify(sample_message[:16], public_key, signature) is False

    def test_signature_width_mismatch(self, keypair, toy_keypair):
        """Test that a narrow signature against a wide key is rejected."""
        _, public_key = keypair
        toy_secret, _ = toy_keypair
        toy_signature = sign_message(b'\x5a', toy_secret)

        assert verify(b'\x5a' * 32, public_key, toy_signature) is False

    def test_malformed_message_type(self, keypair, sample_message):
        """Test that verify never raises on odd input."""
        secret_key, public_key = keypair
        signature = sign_message(sample_message, secret_key)

        assert verify("x" * 32, public_key, signature) is False

    def test_toy_width(self, toy_keypair):
        """Test verification on an 8-bit key."""
        secret_key, public_key = toy_keypair
        for value in range(256):
            message = bytes([value])
            assert verify(message, public_key, sign_message(message, secret_key))

    def test_sha3_key(self):
        """Test that verification uses the key's own hash."""
        secret_key, public_key = generate_keypair(bits=16, algorithm="sha3-256")
        message = b'\xbe\xef'

        assert verify(message, public_key, sign_message(message, secret_key))


class TestVerifyPairs:
    """Tests for batch verification of known signatures."""

    def test_all_known_signatures_verify(self, keypair, known_pairs):
        _, public_key = keypair
        assert verify_pairs(known_pairs, public_key) == [True, True, True, True]

    def test_mixed_batch(self, keypair, known_pairs):
        _, public_key = keypair
        message, signature = known_pairs[1]
        pairs = [known_pairs[0], (message, _replace_block(signature, 0, b'\x11' * 32))]

        assert verify_pairs(pairs, public_key) == [True, False]
