"""
Polynomial Operations and FFT

Provides:
- Polynomials over a prime field (coefficient form)
- Fast Fourier Transform (FFT) and inverse FFT
- Evaluation domains: multiplicative subgroups and their cosets
- Low-degree extension for STARK
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Type

from .errors import DomainError
from .field import FieldElement


class Polynomial:
    """
    Polynomial over a prime field.

    Represented as coefficient list where coeffs[i] is the coefficient of x^i.
    """

    def __init__(self, coeffs: Sequence[FieldElement], field: Optional[Type[FieldElement]] = None):
        """
        Create polynomial from coefficients.

        Args:
            coeffs: Coefficient list [a_0, a_1, ..., a_n] for a_0 + a_1*x + ... + a_n*x^n
            field: Element type, required only when coeffs is empty
        """
        if field is None:
            if not coeffs:
                raise ValueError("Empty coefficient list needs an explicit field")
            field = type(coeffs[0])
        self.field = field

        coeffs = list(coeffs)
        # Remove trailing zeros
        while coeffs and coeffs[-1].is_zero():
            coeffs.pop()
        self.coeffs = coeffs if coeffs else [field.zero()]

    @property
    def degree(self) -> int:
        """Index of the highest nonzero coefficient (-1 for zero polynomial)."""
        if len(self.coeffs) == 1 and self.coeffs[0].is_zero():
            return -1
        return len(self.coeffs) - 1

    def is_zero(self) -> bool:
        return self.degree == -1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Polynomial):
            return False
        return self.coeffs == other.coeffs

    def __repr__(self) -> str:
        return f"Polynomial(degree={self.degree})"

    def evaluate(self, x: FieldElement) -> FieldElement:
        """
        Evaluate polynomial at a point using Horner's method.

        Time complexity: O(n)
        """
        result = self.coeffs[-1]
        for i in range(len(self.coeffs) - 2, -1, -1):
            result = result * x + self.coeffs[i]
        return result

    def padded(self, length: int) -> List[FieldElement]:
        """Coefficients zero-padded to `length`."""
        if self.degree >= length:
            raise ValueError(f"Degree {self.degree} does not fit in {length} coefficients")
        zero = self.field.zero()
        return self.coeffs[:length] + [zero] * (length - len(self.coeffs))


# =============================================================================
# FFT Operations
# =============================================================================

def fft(values: List[FieldElement], omega: FieldElement) -> List[FieldElement]:
    """
    Fast Fourier Transform over finite field.

    Computes DFT: Y[k] = Σ_{j=0}^{n-1} x[j] * ω^{jk}

    Args:
        values: Input values (length must be power of 2)
        omega: Primitive n-th root of unity

    Returns:
        FFT result (evaluations at [1, ω, ω^2, ..., ω^{n-1}])

    Time complexity: O(n log n)
    """
    n = len(values)
    if n == 1:
        return values[:]

    if n & (n - 1) != 0:
        raise DomainError(f"FFT length must be power of 2, got {n}")

    # Bit-reversal permutation
    result = _bit_reverse_copy(values)
    one = type(omega).one()

    # Cooley-Tukey iterative FFT
    m = 1
    while m < n:
        wm = omega ** (n // (2 * m))  # Principal 2m-th root
        for k in range(0, n, 2 * m):
            w = one
            for j in range(m):
                t = w * result[k + j + m]
                u = result[k + j]
                result[k + j] = u + t
                result[k + j + m] = u - t
                w = w * wm
        m *= 2

    return result


def ifft(values: List[FieldElement], omega: FieldElement) -> List[FieldElement]:
    """
    Inverse Fast Fourier Transform.

    Computes inverse DFT: x[j] = (1/n) * Σ_{k=0}^{n-1} Y[k] * ω^{-jk}

    Args:
        values: FFT values (length must be power of 2)
        omega: Primitive n-th root of unity used in forward FFT

    Returns:
        Inverse FFT result (original polynomial coefficients)
    """
    n = len(values)
    result = fft(values, omega.inverse())

    # Scale by 1/n
    n_inv = type(omega)(n).inverse()
    return [v * n_inv for v in result]


def _bit_reverse_copy(values: List[FieldElement]) -> List[FieldElement]:
    """Copy with bit-reversal permutation."""
    n = len(values)
    log_n = (n - 1).bit_length()
    result = list(values)

    for i in range(n):
        result[_bit_reverse(i, log_n)] = values[i]

    return result


def _bit_reverse(x: int, bits: int) -> int:
    """Reverse bits of x."""
    result = 0
    for _ in range(bits):
        result = (result << 1) | (x & 1)
        x >>= 1
    return result


# =============================================================================
# Evaluation Domains
# =============================================================================

@dataclass(frozen=True)
class EvaluationDomain:
    """
    Coset {offset · g^i : 0 <= i < size} of the multiplicative subgroup
    generated by g, a primitive size-th root of unity.

    Invariant: size is a power of two.
    """

    size: int
    generator: FieldElement
    offset: FieldElement

    def __post_init__(self):
        if self.size < 1 or self.size & (self.size - 1):
            raise DomainError(f"Domain size must be a power of 2, got {self.size}")

    @classmethod
    def create(
        cls,
        field: Type[FieldElement],
        size: int,
        offset: Optional[FieldElement] = None
    ) -> 'EvaluationDomain':
        """Domain of `size` points over `field`, optionally shifted by `offset`."""
        if size < 1 or size & (size - 1):
            raise DomainError(f"Domain size must be a power of 2, got {size}")
        try:
            generator = field.root_of_unity(size)
        except ValueError as exc:
            raise DomainError(str(exc)) from exc
        return cls(
            size=size,
            generator=generator,
            offset=field.one() if offset is None else field(offset),
        )

    @property
    def field(self) -> Type[FieldElement]:
        return type(self.generator)

    @property
    def log_size(self) -> int:
        return self.size.bit_length() - 1

    def element(self, index: int) -> FieldElement:
        """The index-th point: offset · g^index."""
        return self.offset * self.generator ** index

    def elements(self) -> List[FieldElement]:
        """All points, generator raised to successive powers."""
        points = [self.offset]
        for _ in range(self.size - 1):
            points.append(points[-1] * self.generator)
        return points

    def square(self) -> 'EvaluationDomain':
        """Image of this domain under x -> x^2 (half the size)."""
        if self.size < 2:
            raise DomainError("Cannot square a domain of size 1")
        return EvaluationDomain(
            size=self.size // 2,
            generator=self.generator * self.generator,
            offset=self.offset * self.offset,
        )

    def interpolate(self, values: Sequence[FieldElement]) -> Polynomial:
        """Unique polynomial of degree < size through (element(i), values[i])."""
        if len(values) != self.size:
            raise DomainError(f"Expected {self.size} values, got {len(values)}")
        coeffs = ifft(list(values), self.generator)

        if not self.offset.is_one():
            # p(offset·y) has coefficients c_k·offset^k; undo the shift
            offset_inv = self.offset.inverse()
            power = self.field.one()
            for k in range(len(coeffs)):
                coeffs[k] = coeffs[k] * power
                power = power * offset_inv

        return Polynomial(coeffs, self.field)

    def evaluate(self, poly: Polynomial) -> List[FieldElement]:
        """Evaluations of `poly` at every point of the domain."""
        coeffs = poly.padded(self.size)

        if not self.offset.is_one():
            power = self.field.one()
            for k in range(len(coeffs)):
                coeffs[k] = coeffs[k] * power
                power = power * self.offset

        return fft(coeffs, self.generator)


# =============================================================================
# Low-Degree Extension
# =============================================================================

def low_degree_extend(
    values: Sequence[FieldElement],
    trace_domain: EvaluationDomain,
    extended_domain: EvaluationDomain
) -> List[FieldElement]:
    """
    Perform low-degree extension (Reed-Solomon encoding).

    Given evaluations on the trace domain of size n, interpolate the
    unique polynomial of degree < n and evaluate it on the extended
    domain of size n * blowup_factor.

    Args:
        values: Evaluations on trace domain
        trace_domain: Domain the values are given on
        extended_domain: Larger (usually shifted) domain to evaluate on

    Returns:
        Evaluations on extended domain
    """
    if extended_domain.size % trace_domain.size != 0:
        raise DomainError(
            f"Extended size {extended_domain.size} is not a multiple of {trace_domain.size}"
        )
    return extended_domain.evaluate(trace_domain.interpolate(values))
