"""
Public Parameters for the STARK Proof System

StarkParams defines every externally supplied setting: field prime,
domain generator, blow-up factor, FRI round budget, query count and
hash primitive. Parameters are validated once at construction; a
malformed configuration is a ConfigurationError, never a per-proof
error. The parameter digest is absorbed into every transcript,
binding proofs to the configuration that produced them.
"""

from dataclasses import dataclass
from typing import Optional, Type
import math

from .errors import ConfigurationError
from .field import (
    FieldElement,
    GOLDILOCKS_GENERATOR,
    GOLDILOCKS_PRIME,
    STARK_GENERATOR,
    STARK_PRIME,
    prime_field,
)
from .fri import expected_layer_count
from .hashing import Hasher, get_hasher
from .tags import StarkTag, tag_bytes


@dataclass(frozen=True)
class StarkParams:
    """
    Public parameters for proof generation and verification.

    All parameters are immutable and hashable.
    """

    # ==========================================================================
    # Field
    # ==========================================================================

    field_prime: int = STARK_PRIME
    """Prime modulus of the base field."""

    field_generator: int = STARK_GENERATOR
    """Multiplicative generator; roots of unity are derived from it."""

    # ==========================================================================
    # Low-Degree Extension / FRI
    # ==========================================================================

    blowup_factor: int = 4
    """Ratio between extended domain and trace length (power of two)."""

    fri_round_budget: int = 3
    """Maximum number of folding rounds after the initial layer."""

    num_queries: int = 8
    """Number of FRI query positions sampled from the transcript."""

    domain_offset: Optional[int] = None
    """Coset shift of the extended domain (defaults to the generator)."""

    # ==========================================================================
    # Primitives / Execution
    # ==========================================================================

    hash_name: str = 'shake256'
    """Hash primitive for Merkle pairing and challenge derivation."""

    max_workers: Optional[int] = None
    """Thread pool size for query verification (None = executor default)."""

    version: int = 1
    """Protocol version."""

    def __post_init__(self):
        # Raises ConfigurationError for a bad prime or generator
        field = prime_field(self.field_prime, self.field_generator)
        get_hasher(self.hash_name)

        if self.blowup_factor < 2 or self.blowup_factor & (self.blowup_factor - 1):
            raise ConfigurationError(
                f"Blow-up factor must be a power of two >= 2, got {self.blowup_factor}"
            )
        if self.fri_round_budget < 1:
            raise ConfigurationError(f"FRI round budget must be >= 1, got {self.fri_round_budget}")
        if self.num_queries < 1:
            raise ConfigurationError(f"Query count must be >= 1, got {self.num_queries}")
        if self.domain_offset is not None and field(self.domain_offset).is_zero():
            raise ConfigurationError("Domain offset must be nonzero")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")
        if not 1 <= self.version < 1 << 16:
            raise ConfigurationError(f"Unsupported protocol version {self.version}")

    # ==========================================================================
    # Derived Objects
    # ==========================================================================

    @property
    def field(self) -> Type[FieldElement]:
        return prime_field(self.field_prime, self.field_generator)

    @property
    def hasher(self) -> Hasher:
        return get_hasher(self.hash_name)

    @property
    def offset(self) -> FieldElement:
        """Coset shift of the extended evaluation domain."""
        field = self.field
        if self.domain_offset is None:
            return field.generator()
        return field(self.domain_offset)

    # ==========================================================================
    # Serialization
    # ==========================================================================

    def serialize(self) -> bytes:
        """
        Canonical serialization for binding in challenges.

        Format:
            TAG(2) || version(2) || prime_len(2) || prime || generator_len(2) || generator ||
            blowup_factor(2) || fri_round_budget(2) || num_queries(2) ||
            offset_len(2) || offset || hash_name_len(2) || hash_name
        """
        prime = self.field_prime.to_bytes((self.field_prime.bit_length() + 7) // 8, 'big')
        generator = self.field_generator.to_bytes(len(prime), 'big')
        offset = self.offset.to_bytes()
        hash_name = self.hash_name.encode('utf-8')
        return b''.join([
            tag_bytes(StarkTag.PARAMS),
            self.version.to_bytes(2, 'big'),
            len(prime).to_bytes(2, 'big'),
            prime,
            len(generator).to_bytes(2, 'big'),
            generator,
            self.blowup_factor.to_bytes(2, 'big'),
            self.fri_round_budget.to_bytes(2, 'big'),
            self.num_queries.to_bytes(2, 'big'),
            len(offset).to_bytes(2, 'big'),
            offset,
            len(hash_name).to_bytes(2, 'big'),
            hash_name,
        ])

    def digest(self) -> int:
        """Digest of parameters for transcript binding."""
        return self.hasher.digest(StarkTag.PARAMS, self.serialize())

    # ==========================================================================
    # Soundness Estimate
    # ==========================================================================

    def conjectured_security_bits(self) -> float:
        """
        Textbook FRI query estimate q · log2(B).

        Reported for comparison only: the half-pairing fold does not test
        degree, so this is not a soundness bound for these proofs.
        """
        return self.num_queries * math.log2(self.blowup_factor)


def check_compatibility(params: StarkParams, air) -> None:
    """
    Check that an AIR can be proven under these parameters.

    Raises:
        ConfigurationError: the extended domain does not fit the field, the
            composition degree does not fit the extended domain, the coset
            offset meets the trace domain, or an honest final FRI layer could
            not satisfy the degree bound
    """
    field = params.field
    if air.field is not field:
        raise ConfigurationError("AIR and parameters use different fields")

    size = air.trace_length * params.blowup_factor
    if size < 4:
        raise ConfigurationError(f"Extended domain of size {size} is too small for FRI")
    if size.bit_length() - 1 > field.TWO_ADICITY:
        raise ConfigurationError(
            f"Extended domain of size {size} exceeds field two-adicity {field.TWO_ADICITY}"
        )
    if air.composition_degree_bound >= size:
        raise ConfigurationError(
            f"Composition degree {air.composition_degree_bound} does not fit "
            f"extended domain of size {size}; increase the blow-up factor"
        )
    if (params.offset ** size).is_one():
        raise ConfigurationError("Domain offset lies inside the extended subgroup")

    final_length = size >> expected_layer_count(size, params.fri_round_budget)
    if final_length - 1 > params.fri_round_budget * params.blowup_factor:
        raise ConfigurationError(
            f"Final FRI layer of length {final_length} exceeds degree bound "
            f"{params.fri_round_budget * params.blowup_factor}; increase the round budget"
        )


# =============================================================================
# Preset Configurations
# =============================================================================

# Test: small and fast
PARAMS_TEST = StarkParams()

# Standard: wider blow-up, more queries
PARAMS_STANDARD = StarkParams(
    blowup_factor=8,
    fri_round_budget=8,
    num_queries=32,
)

# Goldilocks: 64-bit field
PARAMS_GOLDILOCKS = StarkParams(
    field_prime=GOLDILOCKS_PRIME,
    field_generator=GOLDILOCKS_GENERATOR,
)
