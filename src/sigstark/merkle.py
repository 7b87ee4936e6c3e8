"""
Merkle Tree Commitments

Domain-separated, binary Merkle tree over rows of field elements.
Supports:
- Building trees from power-of-two leaf vectors
- Generating authentication paths (proofs)
- Verifying inclusion proofs (fail-closed)

Sibling order is implied by index parity: an even index hashes
self-then-sibling, an odd index hashes sibling-then-self.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import DomainError
from .field import FieldElement
from .hashing import DIGEST_SIZE, Hasher
from .tags import StarkTag


Leaf = Tuple[FieldElement, ...]

_DIGEST_BOUND = 1 << (8 * DIGEST_SIZE)


def leaf_hash(hasher: Hasher, index: int, leaf: Sequence[FieldElement]) -> int:
    """Hash a leaf: H(LEAF ‖ index ‖ elements)"""
    return hasher.digest(
        StarkTag.MERKLE_LEAF,
        index.to_bytes(8, 'big'),
        b''.join(v.to_bytes() for v in leaf),
    )


def node_hash(hasher: Hasher, left: int, right: int) -> int:
    """Hash an internal node: H(NODE ‖ left ‖ right)"""
    return hasher.digest(
        StarkTag.MERKLE_NODE,
        left.to_bytes(DIGEST_SIZE, 'big'),
        right.to_bytes(DIGEST_SIZE, 'big'),
    )


@dataclass(frozen=True)
class MerkleProof:
    """Authentication path for Merkle tree inclusion."""
    index: int
    leaf: Leaf
    path: Tuple[int, ...]  # one sibling digest per level, leaf level first

    def verify(self, root: int, hasher: Hasher, height: Optional[int] = None) -> bool:
        """Verify this proof against a root."""
        return verify_merkle_proof(self, root, hasher, height)


class MerkleTree:
    """
    Binary Merkle tree with domain-separated hashing.

    Properties:
    - Deterministic construction
    - O(log n) proof generation
    - O(log n) verification
    """

    def __init__(self, leaves: Sequence[Sequence[FieldElement]], hasher: Hasher):
        """
        Build a Merkle tree from leaf rows.

        Args:
            leaves: Power-of-two number of rows of field elements
            hasher: Hash primitive for leaves and nodes

        Raises:
            DomainError: leaf count is zero or not a power of two
        """
        n = len(leaves)
        if n == 0 or n & (n - 1):
            raise DomainError(f"Merkle leaf count must be a power of 2, got {n}")

        self.hasher = hasher
        self.leaf_count = n
        self.leaves: List[Leaf] = [tuple(leaf) for leaf in leaves]

        # Build tree bottom-up
        self.levels: List[List[int]] = [
            [leaf_hash(hasher, i, leaf) for i, leaf in enumerate(self.leaves)]
        ]
        self._build_tree()

        self.root: int = self.levels[-1][0]

    def _build_tree(self):
        """Build internal levels of the tree."""
        current = self.levels[0]

        while len(current) > 1:
            next_level = []
            for i in range(0, len(current), 2):
                left = current[i]
                # Duplicate a lone trailing node
                right = current[i + 1] if i + 1 < len(current) else left
                next_level.append(node_hash(self.hasher, left, right))
            self.levels.append(next_level)
            current = next_level

    @property
    def height(self) -> int:
        """Number of levels above the leaves (authentication path length)."""
        return len(self.levels) - 1

    def prove(self, index: int) -> MerkleProof:
        """
        Generate authentication path for leaf at index.

        Args:
            index: Leaf index (0-based)

        Returns:
            MerkleProof that can verify inclusion
        """
        if index < 0 or index >= self.leaf_count:
            raise IndexError(f"Index {index} out of range [0, {self.leaf_count})")

        path = []
        current = index

        for level in self.levels[:-1]:  # Exclude root level
            sibling = current + 1 if current % 2 == 0 else current - 1
            path.append(level[sibling] if sibling < len(level) else level[current])
            current //= 2

        return MerkleProof(index=index, leaf=self.leaves[index], path=tuple(path))


def build_merkle_tree(leaves: Sequence[Sequence[FieldElement]], hasher: Hasher) -> MerkleTree:
    """Commit to a power-of-two vector of leaf rows."""
    return MerkleTree(leaves, hasher)


def verify_merkle_proof(
    proof: MerkleProof,
    root: int,
    hasher: Hasher,
    height: Optional[int] = None
) -> bool:
    """
    Recompute the chain of pair-hashes from the leaf and compare to root.

    Fails closed: a path of the wrong length, an index outside the tree,
    a malformed leaf or an out-of-range sibling digest all return False.
    """
    path = proof.path
    if height is not None and len(path) != height:
        return False
    if not isinstance(proof.index, int) or not 0 <= proof.index < (1 << len(path)):
        return False
    if not proof.leaf or not all(isinstance(v, FieldElement) for v in proof.leaf):
        return False

    current = leaf_hash(hasher, proof.index, proof.leaf)
    index = proof.index

    for sibling in path:
        if not isinstance(sibling, int) or not 0 <= sibling < _DIGEST_BOUND:
            return False
        if index % 2 == 0:
            current = node_hash(hasher, current, sibling)
        else:
            current = node_hash(hasher, sibling, current)
        index //= 2

    return current == root
