"""
FRI Protocol (Fast Reed-Solomon Interactive Oracle Proofs)

Commits to successive folds of an evaluation vector and checks random
query trails through them.

The fold below pairs v[i] with v[i + n/2] directly instead of splitting
the even and odd parts, so a folded vector is not of lower degree than
its parent and the final layer always fits the degree bound. These
layers bind the prover to committed values and consistent folds; they
do not test the degree of the input. The prover's constraint self-check
is what keeps a proof from being produced for an unsatisfied AIR.

Protocol:
1. Prover commits to the evaluations via a Merkle tree
2. For each round:
   a. The transcript yields a folding challenge c (Fiat-Shamir)
   b. Prover folds the two halves: v'[i] = v[i] + c·v[i + n/2]
   c. Prover commits to the folded vector on the squared domain
3. Folding stops at the round budget or at the terminal length; the last
   folded vector is sent as polynomial coefficients
4. Verifier checks random query trails through all layers
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .errors import DomainError, FoldingTerminal, VerificationFailure
from .field import FieldElement
from .hashing import Hasher
from .merkle import MerkleProof, MerkleTree, build_merkle_tree
from .observability import get_logger
from .poly import EvaluationDomain, Polynomial
from .tags import StarkTag
from .transcript import Transcript


logger = get_logger(__name__)

T = TypeVar('T')
R = TypeVar('R')

TERMINAL_LENGTH = 2


def fold(values: Sequence[FieldElement], challenge: FieldElement) -> List[FieldElement]:
    """
    Fold evaluations using random challenge.

    v'[i] = v[i] + c · v[i + n/2]

    Pure function of (values, challenge); the result has half the length.
    """
    n = len(values)
    if n < 2 or n % 2:
        raise DomainError(f"Cannot fold a vector of length {n}")

    half = n // 2
    return [values[i] + challenge * values[i + half] for i in range(half)]


def expected_layer_count(domain_size: int, round_budget: int) -> int:
    """Committed layers for a vector of `domain_size`: min(R + 1, log2 N - 1)."""
    log_size = domain_size.bit_length() - 1
    return max(1, min(round_budget + 1, log_size - 1))


def sibling_position(position: int, size: int) -> int:
    half = size // 2
    return position + half if position < half else position - half


def map_queries(check: Callable[[T], R], items: Sequence[T], max_workers: Optional[int] = None) -> List[R]:
    """
    Apply `check` to independent query items, in parallel when worthwhile.

    Results come back in input order; the first exception (in input order)
    propagates.
    """
    if max_workers == 1 or len(items) <= 1:
        return [check(item) for item in items]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(check, items))


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class FRILayer:
    """One committed round: evaluations, their Merkle tree and domain."""
    tree: MerkleTree
    evaluations: Tuple[FieldElement, ...]
    domain: EvaluationDomain

    @property
    def root(self) -> int:
        return self.tree.root

    @property
    def size(self) -> int:
        return len(self.evaluations)


@dataclass(frozen=True)
class FRIQuery:
    """Opening of one layer at one position, with its folding sibling."""
    layer_index: int
    position: int
    value: FieldElement
    sibling_value: FieldElement
    proof: MerkleProof
    sibling_proof: MerkleProof


@dataclass
class FRICommitment:
    """Prover-side result of the commit phase."""
    layers: List[FRILayer]
    challenges: List[FieldElement]
    final_polynomial: Tuple[FieldElement, ...]
    final_domain: EvaluationDomain

    @property
    def layer_roots(self) -> Tuple[int, ...]:
        return tuple(layer.root for layer in self.layers)


# =============================================================================
# Prover
# =============================================================================

class FRIProver:
    """
    FRI prover.

    Commits to successive folds of an evaluation vector and opens query
    trails through every committed layer.
    """

    def __init__(self, round_budget: int, hasher: Hasher, terminal_length: int = TERMINAL_LENGTH):
        """
        Args:
            round_budget: Maximum number of folds after the initial layer
            hasher: Hash primitive for layer commitments
            terminal_length: Folding stops once a vector is this short
        """
        self.round_budget = round_budget
        self.hasher = hasher
        self.terminal_length = terminal_length

    def _check_continue(self, layer_count: int, length: int):
        """Raise FoldingTerminal when no further layer should be committed."""
        if length <= self.terminal_length:
            raise FoldingTerminal('terminal_length', length)
        if layer_count > self.round_budget:
            raise FoldingTerminal('round_budget', length)

    def commit(
        self,
        evaluations: Sequence[FieldElement],
        domain: EvaluationDomain,
        transcript: Transcript
    ) -> FRICommitment:
        """
        Commit phase.

        Args:
            evaluations: Evaluations on `domain` (power-of-two length)
            domain: Domain of the initial layer
            transcript: Transcript to absorb roots into and draw challenges from

        Raises:
            DomainError: length is not a power of two or does not match the domain
        """
        n = len(evaluations)
        if n < 2 or n & (n - 1):
            raise DomainError(f"FRI input length must be a power of 2, got {n}")
        if n != domain.size:
            raise DomainError(f"Expected {domain.size} evaluations, got {n}")

        layers: List[FRILayer] = []
        challenges: List[FieldElement] = []
        current = list(evaluations)
        current_domain = domain

        while True:
            tree = build_merkle_tree([(v,) for v in current], self.hasher)
            transcript.absorb_commitment(tree.root)
            layers.append(FRILayer(tree=tree, evaluations=tuple(current), domain=current_domain))

            challenge = transcript.challenge()
            challenges.append(challenge)

            current = fold(current, challenge)
            current_domain = current_domain.square()
            try:
                self._check_continue(len(layers), len(current))
            except FoldingTerminal as terminal:
                logger.debug(
                    "fri_folding_terminal",
                    reason=terminal.reason,
                    layers=len(layers),
                    final_length=terminal.length,
                )
                break

        final_polynomial = tuple(current_domain.interpolate(current).padded(len(current)))
        for coeff in final_polynomial:
            transcript.absorb(coeff, StarkTag.FINAL_POLY)

        return FRICommitment(
            layers=layers,
            challenges=challenges,
            final_polynomial=final_polynomial,
            final_domain=current_domain,
        )

    def query(self, commitment: FRICommitment, positions: Sequence[int]) -> List[Tuple[FRIQuery, ...]]:
        """
        Query phase: one trail of FRIQuery openings per start position.

        The position in layer k+1 is the position in layer k modulo half
        the layer size.
        """
        trails = []
        for start in positions:
            position = start
            trail = []
            for index, layer in enumerate(commitment.layers):
                sibling = sibling_position(position, layer.size)
                trail.append(FRIQuery(
                    layer_index=index,
                    position=position,
                    value=layer.evaluations[position],
                    sibling_value=layer.evaluations[sibling],
                    proof=layer.tree.prove(position),
                    sibling_proof=layer.tree.prove(sibling),
                ))
                position %= layer.size // 2
            trails.append(tuple(trail))
        return trails


# =============================================================================
# Verifier
# =============================================================================

class FRIVerifier:
    """
    FRI verifier: layer authentication and fold consistency.

    Challenges are re-derived from the verifier's own transcript replay,
    never read from the proof.
    """

    def __init__(
        self,
        round_budget: int,
        blowup_factor: int,
        hasher: Hasher,
        max_workers: Optional[int] = None
    ):
        self.round_budget = round_budget
        self.blowup_factor = blowup_factor
        self.hasher = hasher
        self.max_workers = max_workers

    @property
    def degree_bound(self) -> int:
        return self.round_budget * self.blowup_factor

    def replay(
        self,
        layer_roots: Sequence[int],
        final_polynomial: Sequence[FieldElement],
        transcript: Transcript
    ) -> List[FieldElement]:
        """Absorb the layer roots and final polynomial; return the folding challenges."""
        challenges = []
        for root in layer_roots:
            transcript.absorb_commitment(root)
            challenges.append(transcript.challenge())
        for coeff in final_polynomial:
            transcript.absorb(coeff, StarkTag.FINAL_POLY)
        return challenges

    def verify_queries(
        self,
        layer_roots: Sequence[int],
        final_polynomial: Sequence[FieldElement],
        trails: Sequence[Sequence[FRIQuery]],
        challenges: Sequence[FieldElement],
        positions: Sequence[int],
        domain: EvaluationDomain,
        initial_values: Optional[Sequence[FieldElement]] = None
    ):
        """
        Check every query trail against its re-derived start position.

        Args:
            layer_roots: Committed root per layer
            final_polynomial: Coefficients of the final layer
            trails: One trail of openings per start position
            challenges: Folding challenges from the transcript replay
            positions: Start positions from the transcript replay
            domain: Domain of the initial layer
            initial_values: Expected layer-0 value per trail, if bound elsewhere

        Raises:
            VerificationFailure: any check fails
        """
        if len(trails) != len(positions):
            raise VerificationFailure('fri_query_count')
        if initial_values is not None and len(initial_values) != len(positions):
            raise VerificationFailure('fri_query_count')

        final_domain = domain
        for _ in layer_roots:
            final_domain = final_domain.square()
        if len(final_polynomial) != final_domain.size:
            raise VerificationFailure('fri_final_length')
        final_poly = Polynomial(final_polynomial, domain.field)

        expected = initial_values if initial_values is not None else [None] * len(positions)
        items = list(zip(trails, positions, expected))

        def check(item):
            trail, start, initial = item
            self._verify_trail(trail, start, initial, layer_roots, challenges,
                               final_poly, final_domain, domain.size)

        map_queries(check, items, self.max_workers)

    def _verify_trail(
        self,
        trail: Sequence[FRIQuery],
        start: int,
        initial: Optional[FieldElement],
        layer_roots: Sequence[int],
        challenges: Sequence[FieldElement],
        final_poly: Polynomial,
        final_domain: EvaluationDomain,
        size: int
    ):
        if len(trail) != len(layer_roots):
            raise VerificationFailure('fri_trail_length')

        position = start
        for index, query in enumerate(trail):
            half = size // 2
            sibling = sibling_position(position, size)
            height = size.bit_length() - 1

            if query.layer_index != index or query.position != position:
                raise VerificationFailure('fri_query_position')
            if initial is not None and index == 0 and query.value != initial:
                raise VerificationFailure('fri_initial_value')

            root = layer_roots[index]
            if not self._authenticated(query.proof, position, query.value, root, height):
                raise VerificationFailure('fri_merkle_authentication')
            if not self._authenticated(query.sibling_proof, sibling, query.sibling_value, root, height):
                raise VerificationFailure('fri_merkle_authentication')

            c = challenges[index]
            if position < half:
                folded = query.value + c * query.sibling_value
            else:
                folded = query.sibling_value + c * query.value

            position %= half
            if index + 1 < len(trail):
                expected = trail[index + 1].value
            else:
                expected = final_poly.evaluate(final_domain.element(position))
            if folded != expected:
                raise VerificationFailure('fri_fold_consistency')
            size = half

    def _authenticated(self, proof: MerkleProof, position: int, value, root: int, height: int) -> bool:
        return (
            proof.index == position
            and tuple(proof.leaf) == (value,)
            and proof.verify(root, self.hasher, height)
        )

    def check_degree(self, final_polynomial: Sequence[FieldElement], field) -> None:
        """Require deg(final polynomial) <= round budget × blow-up factor."""
        degree = Polynomial(final_polynomial, field).degree
        if degree > self.degree_bound:
            raise VerificationFailure('final_degree_overflow')
