"""
Fiat-Shamir Transcript

Append-only accumulator of (value, tag) pairs. Every challenge is a pure
function of everything absorbed before it and is absorbed back, so the
verifier rebuilds the identical challenge sequence by absorbing the same
public values and commitments in the same order. Challenges are never
read from a proof.

A transcript is owned by the single generate/verify call that created it.
"""

from __future__ import annotations
from typing import List, Optional, Tuple, Type, TYPE_CHECKING

from .field import FieldElement
from .hashing import Hasher, encode_int
from .tags import StarkTag, tag_bytes

if TYPE_CHECKING:
    from .air import PublicInput


DOMAIN_SEPARATOR = b'SIGSTARK_V1'


class Transcript:
    """
    Fiat-Shamir transcript for non-interactive proofs.

    Accumulates commitments and derives challenges deterministically.
    """

    def __init__(self, hasher: Hasher, field: Type[FieldElement]):
        self.hasher = hasher
        self.field = field
        self.elements: List[Tuple[int, StarkTag]] = []
        self.round = 0
        self._encoded: List[bytes] = []

    @classmethod
    def init(
        cls,
        public_input: PublicInput,
        hasher: Hasher,
        field: Type[FieldElement],
        params_digest: Optional[int] = None
    ) -> Transcript:
        """Start a transcript bound to the protocol, parameters and public input."""
        transcript = cls(hasher, field)
        transcript.absorb(int.from_bytes(DOMAIN_SEPARATOR, 'big'), StarkTag.DOMAIN)
        if params_digest is not None:
            transcript.absorb(params_digest, StarkTag.PARAMS)
        for scalar in public_input.field_scalars(field):
            transcript.absorb(scalar, StarkTag.PUBLIC_INPUT)
        return transcript

    def absorb(self, value, tag: StarkTag):
        """Append a value (non-negative int or field element) under a tag."""
        if isinstance(value, FieldElement):
            value = value.to_int()
        self._encoded.append(tag_bytes(tag) + encode_int(value))
        self.elements.append((value, tag))

    def absorb_commitment(self, root: int):
        """Absorb a Merkle root and advance the round counter."""
        self.absorb(root, StarkTag.COMMITMENT)
        self.round += 1

    def _squeeze(self) -> int:
        """Hash of the round counter, element count and every element."""
        return self.hasher.digest(
            StarkTag.CHALLENGE,
            self.round.to_bytes(8, 'big'),
            len(self.elements).to_bytes(8, 'big'),
            *self._encoded
        )

    def challenge(self) -> FieldElement:
        """Derive a field element challenge and absorb it back."""
        value = self.field(self._squeeze())
        self.absorb(value, StarkTag.CHALLENGE)
        return value

    def sample_indices(self, count: int, bound: int) -> List[int]:
        """Derive `count` pseudorandom indices in [0, bound)."""
        if bound < 1:
            raise ValueError(f"Index bound must be positive, got {bound}")

        indices = []
        for _ in range(count):
            draw = self._squeeze()
            self.absorb(draw, StarkTag.QUERY)
            indices.append(draw % bound)
        return indices

    def __len__(self) -> int:
        return len(self.elements)


def derive_public_coin_seed(
    hasher: Hasher,
    field: Type[FieldElement],
    public_input: PublicInput,
    trace_commitment: int
) -> int:
    """
    Public-coin seed: H(SEED ‖ separator ‖ public scalars ‖ trace root).

    Recomputable by anyone holding the public input and the commitment.
    """
    return hasher.digest(
        StarkTag.SEED,
        DOMAIN_SEPARATOR,
        *[encode_int(s.to_int()) for s in public_input.field_scalars(field)],
        encode_int(trace_commitment),
    )
