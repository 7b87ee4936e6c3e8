"""
Domain Tags for the STARK Proof System

All hashing is domain-separated to prevent cross-protocol collisions.
These tags are PINNED - changing them breaks compatibility with
existing proofs.
"""

from enum import IntEnum


class StarkTag(IntEnum):
    """Domain separation tags."""

    # Transcript
    DOMAIN = 0x50        # Protocol domain separator
    PARAMS = 0x51        # Parameter digest
    PUBLIC_INPUT = 0x52  # Public input scalar
    COMMITMENT = 0x53    # Merkle root absorbed into the transcript
    CHALLENGE = 0x54     # Derived challenge, absorbed back
    QUERY = 0x55         # Query index draw
    SEED = 0x56          # Public-coin seed
    FINAL_POLY = 0x57    # Final FRI polynomial coefficient

    # Merkle commitments
    MERKLE_LEAF = 0x60
    MERKLE_NODE = 0x61

    # Proof structure
    PROOF_HEADER = 0xA0
    PROOF_DIGEST = 0xA1


def tag_bytes(tag: StarkTag) -> bytes:
    """Convert tag to canonical bytes (2 bytes, big-endian)."""
    return tag.to_bytes(2, 'big')
