"""
STARK Prover and Verifier

Proof generation:
    build trace → derive constraints → extend → commit trace →
    FRI commit phase → sample queries → evaluate constraints →
    FRI query phase → assemble proof

Verification:
    seed check → transcript replay → FRI checks → constraint checks →
    degree check → accept | reject

The prover refuses to emit a proof for a witness that does not satisfy
the AIR. The verifier never raises for a well-formed but invalid proof;
it returns False and logs the failing check.
"""

from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .air import ExecutionTrace, PrivateWitness, PublicInput, SignatureBindingAIR
from .errors import MalformedInput, UnsoundWitness, VerificationFailure
from .field import FieldElement
from .fri import FRIProver, FRIVerifier, expected_layer_count, map_queries
from .merkle import MerkleTree, build_merkle_tree
from .observability import StageHook, StageReporter, get_logger
from .params import StarkParams, check_compatibility
from .poly import EvaluationDomain, low_degree_extend
from .proof import STARKProof, TraceOpening, proof_hash
from .settings import get_params
from .tags import StarkTag
from .transcript import Transcript, derive_public_coin_seed


logger = get_logger(__name__)

PublicInputLike = Union[PublicInput, Mapping[str, int]]
WitnessLike = Union[PrivateWitness, Sequence[int]]

# Trace rows opened per query, in trace steps: x and x·ω
FRAME_OFFSETS = (0, 1)

_DIGEST_BOUND = 1 << 256


class GenerationStage(Enum):
    INIT = 'init'
    TRACE_BUILT = 'trace_built'
    COMMITTED = 'committed'
    FOLDING = 'folding'
    QUERIES_SAMPLED = 'queries_sampled'
    CONSTRAINTS_EVALUATED = 'constraints_evaluated'
    FINALIZED = 'finalized'


class VerificationStage(Enum):
    INIT = 'init'
    SEED_CHECKED = 'seed_checked'
    FRI_CHECKED = 'fri_checked'
    CONSTRAINTS_CHECKED = 'constraints_checked'
    DEGREE_CHECKED = 'degree_checked'
    ACCEPT = 'accept'
    REJECT = 'reject'


def coerce_public_input(public_input: PublicInputLike) -> PublicInput:
    if isinstance(public_input, PublicInput):
        return public_input
    if isinstance(public_input, Mapping):
        return PublicInput.from_mapping(public_input)
    raise MalformedInput(f"Unsupported public input type {type(public_input).__name__}")


def coerce_witness(witness: WitnessLike) -> PrivateWitness:
    if isinstance(witness, PrivateWitness):
        return witness
    if isinstance(witness, (str, bytes)) or not isinstance(witness, Sequence):
        raise MalformedInput(f"Unsupported witness type {type(witness).__name__}")
    return PrivateWitness(tuple(witness))


class _StarkConfig:
    """Parameters, AIR and domains shared by prover and verifier."""

    def __init__(
        self,
        params: Optional[StarkParams] = None,
        air: Optional[SignatureBindingAIR] = None,
        hooks: Iterable[StageHook] = ()
    ):
        self.params = params if params is not None else get_params()
        self.field = self.params.field
        self.hasher = self.params.hasher
        self.air = air if air is not None else SignatureBindingAIR(self.field)
        check_compatibility(self.params, self.air)

        self.blowup = self.params.blowup_factor
        self.trace_domain = self.air.trace_domain
        self.extended_domain = EvaluationDomain.create(
            self.field,
            self.air.trace_length * self.blowup,
            self.params.offset,
        )
        self.layer_count = expected_layer_count(self.extended_domain.size, self.params.fri_round_budget)
        self.hooks = tuple(hooks)

    def _transcript(self, public_input: PublicInput) -> Transcript:
        return Transcript.init(public_input, self.hasher, self.field, self.params.digest())

    def _next_row(self, position: int, offset: int) -> int:
        return (position + offset * self.blowup) % self.extended_domain.size


class STARKProver(_StarkConfig):
    """
    STARK prover.

    Configuration is validated once, at construction.
    """

    def prove(self, public_input: PublicInputLike, private_witness: WitnessLike) -> STARKProof:
        """
        Generate a proof.

        Raises:
            MalformedInput: public input or witness does not fit the AIR
            UnsoundWitness: the witness does not satisfy the constraints
        """
        public_input = coerce_public_input(public_input)
        witness = coerce_witness(private_witness)

        stages = StageReporter(logger, self.hooks, role='prover')
        stages.enter(GenerationStage.INIT)

        trace = self.air.build_trace(public_input, witness)
        stages.enter(GenerationStage.TRACE_BUILT, rows=trace.length, width=trace.width)

        return self.prove_trace(public_input, trace, stages)

    def prove_trace(
        self,
        public_input: PublicInputLike,
        trace: ExecutionTrace,
        stages: Optional[StageReporter] = None
    ) -> STARKProof:
        """Generate a proof for an already-built trace."""
        public_input = coerce_public_input(public_input)
        if stages is None:
            stages = StageReporter(logger, self.hooks, role='prover')
        if trace.length != self.air.trace_length or trace.columns != self.air.COLUMNS:
            raise MalformedInput(
                f"Trace is {trace.length}x{trace.width}, expected "
                f"{self.air.trace_length}x{self.air.width}"
            )

        constraints = self.air.constraints(public_input)
        transcript = self._transcript(public_input)

        # Extend and commit the trace
        lde_rows = self._extend(trace)
        trace_tree = build_merkle_tree(lde_rows, self.hasher)
        transcript.absorb_commitment(trace_tree.root)
        seed = derive_public_coin_seed(self.hasher, self.field, public_input, trace_tree.root)
        transcript.absorb(seed, StarkTag.SEED)
        stages.enter(GenerationStage.COMMITTED, trace_commitment=hex(trace_tree.root))

        alpha = transcript.challenge()
        self._self_check(constraints, trace, alpha)

        # Composition quotient on the extended domain
        n = self.extended_domain.size
        frames = [
            (self._row(lde_rows, p, 0), self._row(lde_rows, p, 1))
            for p in range(n)
        ]
        quotient = constraints.quotient_over(frames, self.extended_domain.elements(), alpha)

        stages.enter(GenerationStage.FOLDING, layers=self.layer_count)
        fri = FRIProver(self.params.fri_round_budget, self.hasher)
        commitment = fri.commit(
            quotient, self.extended_domain, transcript
        )

        positions = transcript.sample_indices(self.params.num_queries, n)
        stages.enter(GenerationStage.QUERIES_SAMPLED, queries=len(positions))

        openings = tuple(self._open(trace_tree, p) for p in positions)
        low_degree_proof = tuple(quotient[p] for p in positions)
        stages.enter(GenerationStage.CONSTRAINTS_EVALUATED, points=len(positions))

        trails = fri.query(commitment, positions)

        proof = STARKProof(
            trace_commitment=trace_tree.root,
            trace_evaluations=openings,
            fri_layer_roots=commitment.layer_roots,
            final_polynomial=commitment.final_polynomial,
            fri_queries=tuple(trails),
            low_degree_proof=low_degree_proof,
            public_coin_seed=seed,
        )
        stages.enter(GenerationStage.FINALIZED, layers=proof.layer_count)

        logger.info(
            "proof_generated",
            proof_hash=hex(proof_hash(proof, self.hasher)),
            layers=proof.layer_count,
            queries=proof.num_queries,
        )
        return proof

    def _extend(self, trace: ExecutionTrace) -> List[Tuple[FieldElement, ...]]:
        """Low-degree extension of every column, returned row-wise."""
        columns = [
            low_degree_extend(trace.get_column(name), self.trace_domain, self.extended_domain)
            for name in trace.columns
        ]
        return list(zip(*columns))

    def _row(self, lde_rows, position: int, offset: int):
        return dict(zip(self.air.COLUMNS, lde_rows[self._next_row(position, offset)]))

    def _open(self, tree: MerkleTree, position: int) -> TraceOpening:
        return TraceOpening(
            position=position,
            proofs=tuple(tree.prove(self._next_row(position, k)) for k in FRAME_OFFSETS),
        )

    def _self_check(self, constraints, trace: ExecutionTrace, alpha: FieldElement):
        """Refuse to continue unless the composition vanishes on every trace row."""
        composition = constraints.composition_on_trace(trace, alpha)
        nonzero = sum(1 for value in composition if not value.is_zero())
        if nonzero:
            violations = constraints.violations(trace)
            logger.warning(
                "unsound_witness",
                rows=nonzero,
                constraints=sorted({name for name, _ in violations}),
            )
            raise UnsoundWitness(
                f"Constraint composition is nonzero on {nonzero} trace rows",
                violations,
            )


class STARKVerifier(_StarkConfig):
    """
    STARK verifier.

    Every check is a short-circuit AND: the first failure rejects.
    """

    def verify(self, public_input: PublicInputLike, proof: STARKProof) -> bool:
        return self.verify_with_reason(public_input, proof)[0]

    def verify_with_reason(
        self,
        public_input: PublicInputLike,
        proof: STARKProof
    ) -> Tuple[bool, Optional[str]]:
        """
        Verify a proof.

        Returns:
            (accepted, reason); reason names the failing check on rejection

        Raises:
            MalformedInput: the public input is malformed or a scalar is outside [0, p)
        """
        public_input = coerce_public_input(public_input)
        public_input.field_scalars(self.field)
        stages = StageReporter(logger, self.hooks, role='verifier')
        stages.enter(VerificationStage.INIT)

        try:
            self._verify(public_input, proof, stages)
        except VerificationFailure as failure:
            stages.enter(VerificationStage.REJECT, reason=failure.reason)
            logger.info("proof_rejected", reason=failure.reason)
            return False, failure.reason

        stages.enter(VerificationStage.ACCEPT)
        logger.info("proof_verified", result=True, layers=proof.layer_count)
        return True, None

    def _verify(self, public_input: PublicInput, proof: STARKProof, stages: StageReporter):
        self._check_shape(proof)

        # Seed
        seed = derive_public_coin_seed(self.hasher, self.field, public_input, proof.trace_commitment)
        if seed != proof.public_coin_seed:
            raise VerificationFailure('seed_mismatch')
        stages.enter(VerificationStage.SEED_CHECKED)

        # Transcript replay
        fri = FRIVerifier(
            self.params.fri_round_budget,
            self.blowup,
            self.hasher,
            self.params.max_workers,
        )
        transcript = self._transcript(public_input)
        transcript.absorb_commitment(proof.trace_commitment)
        transcript.absorb(proof.public_coin_seed, StarkTag.SEED)
        alpha = transcript.challenge()
        challenges = fri.replay(proof.fri_layer_roots, proof.final_polynomial, transcript)
        positions = transcript.sample_indices(self.params.num_queries, self.extended_domain.size)

        # FRI
        fri.verify_queries(
            proof.fri_layer_roots,
            proof.final_polynomial,
            proof.fri_queries,
            challenges,
            positions,
            self.extended_domain,
            initial_values=proof.low_degree_proof,
        )
        stages.enter(VerificationStage.FRI_CHECKED)

        # Constraints at the sampled points
        constraints = self.air.constraints(public_input)
        items = list(zip(positions, proof.trace_evaluations, proof.low_degree_proof))

        def check(item):
            position, opening, claimed = item
            self._check_constraints(constraints, alpha, proof.trace_commitment, position, opening, claimed)

        map_queries(check, items, self.params.max_workers)
        stages.enter(VerificationStage.CONSTRAINTS_CHECKED)

        # Degree
        fri.check_degree(proof.final_polynomial, self.field)
        stages.enter(VerificationStage.DEGREE_CHECKED)

    def _check_shape(self, proof: STARKProof):
        """Structural checks, so that later checks only see well-typed values."""
        if not isinstance(proof, STARKProof):
            raise VerificationFailure('malformed_proof')

        for digest in (proof.trace_commitment, proof.public_coin_seed, *proof.fri_layer_roots):
            if not isinstance(digest, int) or not 0 <= digest < _DIGEST_BOUND:
                raise VerificationFailure('digest_out_of_range')

        if len(proof.fri_layer_roots) != self.layer_count:
            raise VerificationFailure('fri_layer_count')
        if len(proof.final_polynomial) != self.extended_domain.size >> self.layer_count:
            raise VerificationFailure('fri_final_length')

        q = self.params.num_queries
        if not len(proof.fri_queries) == len(proof.trace_evaluations) == len(proof.low_degree_proof) == q:
            raise VerificationFailure('query_count')

        elements = list(proof.final_polynomial) + list(proof.low_degree_proof)
        for trail in proof.fri_queries:
            for query in trail:
                elements.append(query.value)
                elements.append(query.sibling_value)
        for element in elements:
            if not isinstance(element, FieldElement) or element.MODULUS != self.field.MODULUS:
                raise VerificationFailure('foreign_field_element')

    def _check_constraints(
        self,
        constraints,
        alpha: FieldElement,
        trace_commitment: int,
        position: int,
        opening: TraceOpening,
        claimed: FieldElement
    ):
        if opening.position != position:
            raise VerificationFailure('trace_opening_position')
        if len(opening.proofs) != len(FRAME_OFFSETS):
            raise VerificationFailure('trace_opening_shape')

        height = self.extended_domain.log_size
        rows = []
        for offset, merkle_proof in zip(FRAME_OFFSETS, opening.proofs):
            if merkle_proof.index != self._next_row(position, offset):
                raise VerificationFailure('trace_opening_position')
            if len(merkle_proof.leaf) != self.air.width:
                raise VerificationFailure('trace_opening_shape')
            if not merkle_proof.verify(trace_commitment, self.hasher, height):
                raise VerificationFailure('trace_merkle_authentication')
            rows.append(dict(zip(self.air.COLUMNS, merkle_proof.leaf)))

        x = self.extended_domain.element(position)
        if constraints.quotient_at(rows[0], rows[1], x, alpha) != claimed:
            raise VerificationFailure('constraint_nonzero')


# =============================================================================
# Entry Points
# =============================================================================

@lru_cache(maxsize=8)
def _prover_for(params: StarkParams) -> STARKProver:
    return STARKProver(params)


@lru_cache(maxsize=8)
def _verifier_for(params: StarkParams) -> STARKVerifier:
    return STARKVerifier(params)


def generate_proof(
    public_input: PublicInputLike,
    private_witness: WitnessLike,
    params: Optional[StarkParams] = None
) -> STARKProof:
    """
    Prove that `private_witness` satisfies the AIR for `public_input`.

    Raises:
        ConfigurationError: parameters incompatible with the AIR
        MalformedInput: input does not fit the AIR
        UnsoundWitness: witness does not satisfy the constraints
    """
    return _prover_for(params if params is not None else get_params()).prove(public_input, private_witness)


def verify_proof(
    public_input: PublicInputLike,
    proof: STARKProof,
    params: Optional[StarkParams] = None
) -> bool:
    """Verify a proof. Returns False for any invalid proof."""
    return _verifier_for(params if params is not None else get_params()).verify(public_input, proof)
