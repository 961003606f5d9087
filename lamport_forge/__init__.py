"""
Lamport Forge
=============

Lamport one-time signatures and the forgery that key reuse enables:
- SHA-256 (or SHA3-256 / BLAKE2s) block commitments
- Verification of externally supplied keys and signatures
- Secret key recovery from signatures on different messages
- Randomized, multi-process search for a fully covered forged message
"""

__version__ = "1.0.0"
__author__ = "Lamport Forge Team"
