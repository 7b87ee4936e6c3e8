"""
SigSTARK: STARK Proofs for Signature Statements

Succinct, non-interactive proofs that a private witness satisfies a
public set of algebraic constraints, using FRI folding commitments over a
prime field with Fiat-Shamir randomness.

Usage:
    from sigstark import generate_proof, verify_proof

    public_input = {'message_hash': 123, 'public_key': 456, 'signature': 789}
    proof = generate_proof(public_input, [10, 20])
    assert verify_proof(public_input, proof)

    # Wire format
    from sigstark import STARKProof
    data = proof.serialize()
    assert STARKProof.deserialize(data) == proof
"""

# Field and polynomials
from .field import (
    FieldElement,
    STARK_PRIME,
    GOLDILOCKS_PRIME,
    prime_field,
    batch_inverse,
)
from .poly import Polynomial, EvaluationDomain, fft, ifft, low_degree_extend

# Commitments and transcript
from .hashing import Hasher, Shake256Hasher, Blake3Hasher, get_hasher
from .merkle import MerkleTree, MerkleProof, build_merkle_tree, verify_merkle_proof
from .transcript import Transcript, derive_public_coin_seed

# AIR
from .air import (
    PublicInput,
    PrivateWitness,
    ExecutionTrace,
    AIRConstraintSet,
    SignatureBindingAIR,
)

# FRI
from .fri import fold, FRILayer, FRIQuery, FRIProver, FRIVerifier

# Proofs
from .proof import STARKProof, TraceOpening, proof_hash
from .stark import (
    STARKProver,
    STARKVerifier,
    GenerationStage,
    VerificationStage,
    generate_proof,
    verify_proof,
)

# Configuration
from .params import (
    StarkParams,
    PARAMS_TEST,
    PARAMS_STANDARD,
    PARAMS_GOLDILOCKS,
    check_compatibility,
)
from .settings import StarkSettings, get_params

# Errors
from .errors import (
    StarkError,
    ConfigurationError,
    DomainError,
    GenerationError,
    MalformedInput,
    UnsoundWitness,
    DecodingError,
    VerificationFailure,
    FoldingTerminal,
)

# Logging
from .observability import setup_logging, get_logger

__version__ = '0.1.0'

__all__ = [
    # Field and polynomials
    'FieldElement',
    'STARK_PRIME',
    'GOLDILOCKS_PRIME',
    'prime_field',
    'batch_inverse',
    'Polynomial',
    'EvaluationDomain',
    'fft',
    'ifft',
    'low_degree_extend',

    # Commitments and transcript
    'Hasher',
    'Shake256Hasher',
    'Blake3Hasher',
    'get_hasher',
    'MerkleTree',
    'MerkleProof',
    'build_merkle_tree',
    'verify_merkle_proof',
    'Transcript',
    'derive_public_coin_seed',

    # AIR
    'PublicInput',
    'PrivateWitness',
    'ExecutionTrace',
    'AIRConstraintSet',
    'SignatureBindingAIR',

    # FRI
    'fold',
    'FRILayer',
    'FRIQuery',
    'FRIProver',
    'FRIVerifier',

    # Proofs
    'STARKProof',
    'TraceOpening',
    'proof_hash',
    'STARKProver',
    'STARKVerifier',
    'GenerationStage',
    'VerificationStage',
    'generate_proof',
    'verify_proof',

    # Configuration
    'StarkParams',
    'PARAMS_TEST',
    'PARAMS_STANDARD',
    'PARAMS_GOLDILOCKS',
    'check_compatibility',
    'StarkSettings',
    'get_params',

    # Errors
    'StarkError',
    'ConfigurationError',
    'DomainError',
    'GenerationError',
    'MalformedInput',
    'UnsoundWitness',
    'DecodingError',
    'VerificationFailure',
    'FoldingTerminal',

    # Logging
    'setup_logging',
    'get_logger',
]
