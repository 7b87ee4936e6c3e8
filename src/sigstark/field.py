"""
Prime Field Arithmetic

Default field: F_p where p = 2^251 + 17 * 2^192 + 1 (the 252-bit STARK prime).

This prime has special structure enabling:
- FFT-friendly evaluation domains (p - 1 is divisible by 2^192)
- 32-byte canonical encodings
- Room for 251-bit digests and public scalars without wrap-around

Other primes are supported through prime_field(), which returns a
FieldElement subclass bound to that modulus. Python integers never
overflow, so every operation reduces exactly modulo p.
"""

from __future__ import annotations
from functools import lru_cache, total_ordering
from typing import List, Type

from .errors import ConfigurationError


# STARK prime: p = 2^251 + 17 * 2^192 + 1
STARK_PRIME = (1 << 251) + 17 * (1 << 192) + 1
STARK_GENERATOR = 3

# Goldilocks prime: p = 2^64 - 2^32 + 1
GOLDILOCKS_PRIME = (1 << 64) - (1 << 32) + 1
GOLDILOCKS_GENERATOR = 7

_MILLER_RABIN_BASES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71)


def two_adicity(modulus: int) -> int:
    """Largest k such that 2^k divides modulus - 1."""
    n = modulus - 1
    return (n & -n).bit_length() - 1


@total_ordering
class FieldElement:
    """
    Element of a prime field.

    Holds the canonical residue in [0, p). The class attributes bind the
    field; subclasses produced by prime_field() rebind them.

    Ordering compares canonical residues and is the only order defined on
    field elements.
    """

    __slots__ = ('value',)

    MODULUS: int = STARK_PRIME
    GENERATOR: int = STARK_GENERATOR
    TWO_ADICITY: int = two_adicity(STARK_PRIME)

    def __init__(self, value: int):
        """Create field element from integer (reduced mod p)."""
        if isinstance(value, FieldElement):
            value = value.value
        self.value = value % self.MODULUS

    def _lift(self, other):
        """Residue of `other` if it belongs to this field, else NotImplemented."""
        if isinstance(other, FieldElement):
            if other.MODULUS != self.MODULUS:
                raise ValueError("Cannot combine elements of different fields")
            return other.value
        if isinstance(other, int):
            return other
        return NotImplemented

    # =========================================================================
    # Arithmetic Operations
    # =========================================================================

    def __add__(self, other) -> FieldElement:
        """Addition in F_p."""
        v = self._lift(other)
        if v is NotImplemented:
            return NotImplemented
        return type(self)(self.value + v)

    __radd__ = __add__

    def __sub__(self, other) -> FieldElement:
        """Subtraction in F_p."""
        v = self._lift(other)
        if v is NotImplemented:
            return NotImplemented
        return type(self)(self.value - v)

    def __rsub__(self, other) -> FieldElement:
        v = self._lift(other)
        if v is NotImplemented:
            return NotImplemented
        return type(self)(v - self.value)

    def __mul__(self, other) -> FieldElement:
        """Multiplication in F_p."""
        v = self._lift(other)
        if v is NotImplemented:
            return NotImplemented
        return type(self)(self.value * v)

    __rmul__ = __mul__

    def __neg__(self) -> FieldElement:
        """Negation in F_p."""
        return type(self)(-self.value)

    def __truediv__(self, other) -> FieldElement:
        """Division in F_p (multiplication by inverse)."""
        v = self._lift(other)
        if v is NotImplemented:
            return NotImplemented
        return self * type(self)(v).inverse()

    def __pow__(self, exp: int) -> FieldElement:
        """Exponentiation using square-and-multiply."""
        if exp < 0:
            return self.inverse() ** (-exp)
        return type(self)(pow(self.value, exp, self.MODULUS))

    def inverse(self) -> FieldElement:
        """
        Multiplicative inverse using Fermat's little theorem.

        a^-1 = a^(p-2) mod p
        """
        if self.value == 0:
            raise ZeroDivisionError("Cannot invert zero")
        return type(self)(pow(self.value, self.MODULUS - 2, self.MODULUS))

    # =========================================================================
    # Comparison Operations
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FieldElement):
            return self.MODULUS == other.MODULUS and self.value == other.value
        if isinstance(other, int):
            return self.value == (other % self.MODULUS)
        return False

    def __lt__(self, other: FieldElement) -> bool:
        v = self._lift(other)
        if v is NotImplemented:
            return NotImplemented
        return self.value < v % self.MODULUS

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"FieldElement({self.value})"

    def __str__(self) -> str:
        return str(self.value)

    # =========================================================================
    # Serialization
    # =========================================================================

    @classmethod
    def byte_length(cls) -> int:
        """Width of the canonical encoding in bytes."""
        return (cls.MODULUS.bit_length() + 7) // 8

    def to_bytes(self) -> bytes:
        """Serialize to fixed-width big-endian bytes."""
        return self.value.to_bytes(self.byte_length(), 'big')

    @classmethod
    def from_bytes(cls, data: bytes) -> FieldElement:
        """Deserialize from big-endian bytes (reduces mod p)."""
        return cls(int.from_bytes(data, 'big'))

    def to_int(self) -> int:
        """Canonical residue in [0, p)."""
        return self.value

    # =========================================================================
    # Predicates
    # =========================================================================

    def is_zero(self) -> bool:
        return self.value == 0

    def is_one(self) -> bool:
        return self.value == 1

    # =========================================================================
    # Class Methods
    # =========================================================================

    @classmethod
    def zero(cls) -> FieldElement:
        """Additive identity."""
        return cls(0)

    @classmethod
    def one(cls) -> FieldElement:
        """Multiplicative identity."""
        return cls(1)

    @classmethod
    def generator(cls) -> FieldElement:
        """Multiplicative generator used for roots of unity and coset offsets."""
        return cls(cls.GENERATOR)

    @classmethod
    def root_of_unity(cls, size: int) -> FieldElement:
        """
        Primitive root of unity of order `size` (a power of two).

        Requires size <= 2^TWO_ADICITY.
        """
        if size < 1 or size & (size - 1):
            raise ValueError(f"Root of unity order must be a power of two, got {size}")
        if size.bit_length() - 1 > cls.TWO_ADICITY:
            raise ValueError(f"Order {size} exceeds two-adicity {cls.TWO_ADICITY}")
        return cls(pow(cls.GENERATOR, (cls.MODULUS - 1) // size, cls.MODULUS))


# =============================================================================
# Field Construction
# =============================================================================

def is_probable_prime(n: int) -> bool:
    """Miller-Rabin test over a fixed base set."""
    if n < 2:
        return False
    for p in _MILLER_RABIN_BASES:
        if n % p == 0:
            return n == p

    d = n - 1
    s = 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for a in _MILLER_RABIN_BASES:
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


@lru_cache(maxsize=None)
def prime_field(modulus: int, generator: int) -> Type[FieldElement]:
    """
    Field element type for F_modulus.

    The generator must be a quadratic non-residue so that its powers reach
    every power-of-two root of unity the field supports.

    Raises:
        ConfigurationError: modulus is not an odd prime or generator is unusable
    """
    if modulus == STARK_PRIME and generator == STARK_GENERATOR:
        return FieldElement
    if modulus <= 3 or not is_probable_prime(modulus):
        raise ConfigurationError(f"Field modulus {modulus} is not an odd prime")
    if not 1 < generator < modulus:
        raise ConfigurationError(f"Generator {generator} outside (1, {modulus})")
    if pow(generator, (modulus - 1) // 2, modulus) != modulus - 1:
        raise ConfigurationError(f"Generator {generator} is a quadratic residue mod {modulus}")

    return type(
        f"FieldElement_{modulus:x}",
        (FieldElement,),
        {
            '__slots__': (),
            'MODULUS': modulus,
            'GENERATOR': generator,
            'TWO_ADICITY': two_adicity(modulus),
        },
    )


# =============================================================================
# Helper Functions
# =============================================================================

def batch_inverse(elements: List[FieldElement]) -> List[FieldElement]:
    """
    Batch inversion using Montgomery's trick.

    Computes inverses of n elements using 3(n-1) multiplications + 1 inversion.
    Much faster than n individual inversions.
    """
    n = len(elements)
    if n == 0:
        return []
    if n == 1:
        return [elements[0].inverse()]

    # Forward pass: compute prefix products
    prefix = [elements[0]] * n
    for i in range(1, n):
        prefix[i] = prefix[i-1] * elements[i]

    # Single inversion of the total product
    inv_total = prefix[-1].inverse()

    # Backward pass: compute individual inverses
    inverses = [inv_total] * n
    for i in range(n - 1, 0, -1):
        inverses[i] = inv_total * prefix[i-1]
        inv_total = inv_total * elements[i]
    inverses[0] = inv_total

    return inverses
