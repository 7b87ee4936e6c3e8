"""
STARK Proof Container and Wire Format

A proof carries commitments, authenticated openings and the public-coin
seed. It never carries challenges: the verifier re-derives them.

Binary layout (all integers big-endian):

    PROOF_HEADER(2) || version(2) || element_width(2)
    trace_commitment(32) || public_coin_seed(32)
    u32 n_roots     || root(32) * n_roots
    u32 n_coeffs    || element * n_coeffs                       (final polynomial)
    u32 n_openings  || (u32 position || u8 n_proofs || merkle_proof * n_proofs) * n_openings
    u32 n_low       || element * n_low                          (low_degree_proof)
    u32 n_trails    || (u8 n_layers || fri_query * n_layers) * n_trails

    merkle_proof = u64 index || u8 n_leaf || element * n_leaf || u8 n_path || digest(32) * n_path
    fri_query    = u8 layer_index || u64 position || element value || element sibling_value ||
                   merkle_proof || merkle_proof
"""

from dataclasses import dataclass
from typing import List, Tuple, Type

from .errors import DecodingError
from .field import FieldElement
from .fri import FRIQuery
from .hashing import DIGEST_SIZE, Hasher
from .merkle import MerkleProof
from .tags import StarkTag, tag_bytes


PROOF_VERSION = 1

_DIGEST_BOUND = 1 << (8 * DIGEST_SIZE)


@dataclass(frozen=True)
class TraceOpening:
    """Authenticated trace rows at a query position and at position + B."""
    position: int
    proofs: Tuple[MerkleProof, ...]


@dataclass(frozen=True)
class STARKProof:
    """
    Complete STARK proof.

    Immutable; discarded after verification.
    """
    trace_commitment: int
    trace_evaluations: Tuple[TraceOpening, ...]
    fri_layer_roots: Tuple[int, ...]
    final_polynomial: Tuple[FieldElement, ...]
    fri_queries: Tuple[Tuple[FRIQuery, ...], ...]
    low_degree_proof: Tuple[FieldElement, ...]
    public_coin_seed: int
    version: int = PROOF_VERSION

    @property
    def layer_count(self) -> int:
        return len(self.fri_layer_roots)

    @property
    def num_queries(self) -> int:
        return len(self.fri_queries)

    def serialize(self) -> bytes:
        """Serialize proof to bytes."""
        field = _element_type(self)
        width = field.byte_length()
        parts = [
            tag_bytes(StarkTag.PROOF_HEADER),
            self.version.to_bytes(2, 'big'),
            width.to_bytes(2, 'big'),
            _digest_bytes(self.trace_commitment),
            _digest_bytes(self.public_coin_seed),
        ]

        parts.append(len(self.fri_layer_roots).to_bytes(4, 'big'))
        parts.extend(_digest_bytes(root) for root in self.fri_layer_roots)

        parts.append(len(self.final_polynomial).to_bytes(4, 'big'))
        parts.extend(c.to_bytes() for c in self.final_polynomial)

        parts.append(len(self.trace_evaluations).to_bytes(4, 'big'))
        for opening in self.trace_evaluations:
            parts.append(opening.position.to_bytes(4, 'big'))
            parts.append(len(opening.proofs).to_bytes(1, 'big'))
            parts.extend(_merkle_proof_bytes(p) for p in opening.proofs)

        parts.append(len(self.low_degree_proof).to_bytes(4, 'big'))
        parts.extend(v.to_bytes() for v in self.low_degree_proof)

        parts.append(len(self.fri_queries).to_bytes(4, 'big'))
        for trail in self.fri_queries:
            parts.append(len(trail).to_bytes(1, 'big'))
            for query in trail:
                parts.append(query.layer_index.to_bytes(1, 'big'))
                parts.append(query.position.to_bytes(8, 'big'))
                parts.append(query.value.to_bytes())
                parts.append(query.sibling_value.to_bytes())
                parts.append(_merkle_proof_bytes(query.proof))
                parts.append(_merkle_proof_bytes(query.sibling_proof))

        return b''.join(parts)

    @classmethod
    def deserialize(cls, data: bytes, field: Type[FieldElement] = FieldElement) -> 'STARKProof':
        """
        Decode a proof.

        Raises:
            DecodingError: truncated or trailing bytes, wrong header, version or
                element width, out-of-range element or index
        """
        reader = _Reader(data, field)
        if reader.take(2) != tag_bytes(StarkTag.PROOF_HEADER):
            raise DecodingError("Not a STARK proof (bad header)")
        version = reader.uint(2)
        if version != PROOF_VERSION:
            raise DecodingError(f"Unsupported proof version {version}")
        width = reader.uint(2)
        if width != field.byte_length():
            raise DecodingError(f"Element width {width} does not match field width {field.byte_length()}")

        trace_commitment = reader.digest()
        public_coin_seed = reader.digest()

        roots = tuple(reader.digest() for _ in range(reader.uint(4)))
        final_polynomial = tuple(reader.element() for _ in range(reader.uint(4)))

        openings = []
        for _ in range(reader.uint(4)):
            position = reader.uint(4)
            proofs = tuple(reader.merkle_proof() for _ in range(reader.uint(1)))
            openings.append(TraceOpening(position=position, proofs=proofs))

        low_degree_proof = tuple(reader.element() for _ in range(reader.uint(4)))

        trails = []
        for _ in range(reader.uint(4)):
            trail = []
            for expected_index in range(reader.uint(1)):
                layer_index = reader.uint(1)
                if layer_index != expected_index:
                    raise DecodingError(f"FRI layer index {layer_index} out of order")
                trail.append(FRIQuery(
                    layer_index=layer_index,
                    position=reader.uint(8),
                    value=reader.element(),
                    sibling_value=reader.element(),
                    proof=reader.merkle_proof(),
                    sibling_proof=reader.merkle_proof(),
                ))
            trails.append(tuple(trail))

        reader.finish()

        return cls(
            trace_commitment=trace_commitment,
            trace_evaluations=tuple(openings),
            fri_layer_roots=roots,
            final_polynomial=final_polynomial,
            fri_queries=tuple(trails),
            low_degree_proof=low_degree_proof,
            public_coin_seed=public_coin_seed,
            version=version,
        )

    @property
    def size(self) -> int:
        """Proof size in bytes."""
        return len(self.serialize())


def proof_hash(proof: STARKProof, hasher: Hasher) -> int:
    """Digest of the proof encoding."""
    return hasher.digest(StarkTag.PROOF_DIGEST, proof.serialize())


# =============================================================================
# Encoding Helpers
# =============================================================================

def _element_type(proof: STARKProof) -> Type[FieldElement]:
    for values in (proof.final_polynomial, proof.low_degree_proof):
        if values:
            return type(values[0])
    return FieldElement


def _digest_bytes(value: int) -> bytes:
    return value.to_bytes(DIGEST_SIZE, 'big')


def _merkle_proof_bytes(proof: MerkleProof) -> bytes:
    parts = [
        proof.index.to_bytes(8, 'big'),
        len(proof.leaf).to_bytes(1, 'big'),
    ]
    parts.extend(v.to_bytes() for v in proof.leaf)
    parts.append(len(proof.path).to_bytes(1, 'big'))
    parts.extend(_digest_bytes(s) for s in proof.path)
    return b''.join(parts)


class _Reader:
    """Bounds-checked cursor over proof bytes."""

    def __init__(self, data: bytes, field: Type[FieldElement]):
        self.data = bytes(data)
        self.offset = 0
        self.field = field
        self.width = field.byte_length()

    def take(self, n: int) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise DecodingError(f"Truncated proof: need {n} bytes at offset {self.offset}")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def uint(self, n: int) -> int:
        return int.from_bytes(self.take(n), 'big')

    def digest(self) -> int:
        return self.uint(DIGEST_SIZE)

    def element(self) -> FieldElement:
        value = self.uint(self.width)
        if value >= self.field.MODULUS:
            raise DecodingError(f"Field element {value:#x} is not reduced")
        return self.field(value)

    def merkle_proof(self) -> MerkleProof:
        index = self.uint(8)
        leaf = tuple(self.element() for _ in range(self.uint(1)))
        path = tuple(self.digest() for _ in range(self.uint(1)))
        if index >= 1 << len(path):
            raise DecodingError(f"Merkle index {index} outside a path of length {len(path)}")
        return MerkleProof(index=index, leaf=leaf, path=path)

    def finish(self):
        if self.offset != len(self.data):
            raise DecodingError(f"{len(self.data) - self.offset} trailing bytes after proof")
