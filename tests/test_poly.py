"""
Tests for polynomials, FFT, evaluation domains and low-degree extension.
"""

import pytest
from hypothesis import given, settings, strategies as st

from sigstark.errors import DomainError
from sigstark.field import FieldElement, STARK_PRIME
from sigstark.poly import EvaluationDomain, Polynomial, fft, ifft, low_degree_extend


def F(values):
    return [FieldElement(v) for v in values]


coefficients = st.lists(
    st.integers(min_value=0, max_value=STARK_PRIME - 1),
    min_size=1,
    max_size=8,
).map(F)


class TestPolynomial:
    """Coefficient-form polynomials."""

    def test_trailing_zeros_trimmed(self):
        p = Polynomial(F([1, 2, 0, 0]))
        assert p.degree == 1
        assert p.coeffs == F([1, 2])

    def test_zero_polynomial(self):
        p = Polynomial(F([0, 0]))
        assert p.is_zero()
        assert p.degree == -1
        assert Polynomial([], FieldElement).is_zero()

    def test_empty_needs_field(self):
        with pytest.raises(ValueError):
            Polynomial([])

    def test_evaluate(self):
        # 3 + 2x + x^2 at x = 5
        p = Polynomial(F([3, 2, 1]))
        assert p.evaluate(FieldElement(5)) == 38

    def test_padded(self):
        assert Polynomial(F([1, 2])).padded(4) == F([1, 2, 0, 0])
        with pytest.raises(ValueError):
            Polynomial(F([1, 2, 3])).padded(2)


class TestFFT:
    """Forward and inverse transforms."""

    @given(st.lists(st.integers(min_value=0, max_value=STARK_PRIME - 1), min_size=8, max_size=8))
    def test_roundtrip(self, values):
        omega = FieldElement.root_of_unity(8)
        values = F(values)
        assert ifft(fft(values, omega), omega) == values

    def test_fft_is_evaluation(self):
        """fft(coeffs)[k] = p(ω^k)"""
        omega = FieldElement.root_of_unity(4)
        coeffs = F([7, 0, 3, 1])
        p = Polynomial(coeffs)
        assert fft(coeffs, omega) == [p.evaluate(omega ** k) for k in range(4)]

    def test_rejects_non_power_of_two(self):
        with pytest.raises(DomainError):
            fft(F([1, 2, 3]), FieldElement.root_of_unity(4))


class TestEvaluationDomain:
    """Subgroups and cosets."""

    def test_create(self):
        domain = EvaluationDomain.create(FieldElement, 8)
        assert domain.size == 8
        assert domain.log_size == 3
        assert domain.element(0).is_one()
        assert len(set(domain.elements())) == 8

    def test_coset_elements(self):
        offset = FieldElement.generator()
        domain = EvaluationDomain.create(FieldElement, 8, offset)
        assert domain.elements() == [offset * domain.generator ** i for i in range(8)]
        assert domain.element(5) == domain.elements()[5]

    def test_rejects_non_power_of_two(self):
        with pytest.raises(DomainError):
            EvaluationDomain.create(FieldElement, 12)

    def test_square(self):
        domain = EvaluationDomain.create(FieldElement, 16, FieldElement(5))
        squared = domain.square()
        assert squared.size == 8
        assert squared.elements() == [x * x for x in domain.elements()[:8]]

    @settings(max_examples=25)
    @given(coefficients)
    def test_interpolate_evaluate_on_coset(self, coeffs):
        domain = EvaluationDomain.create(FieldElement, 8, FieldElement.generator())
        p = Polynomial(coeffs)
        values = domain.evaluate(p)
        assert values == [p.evaluate(x) for x in domain.elements()]
        assert domain.interpolate(values) == p

    def test_interpolate_length_mismatch(self):
        domain = EvaluationDomain.create(FieldElement, 4)
        with pytest.raises(DomainError):
            domain.interpolate(F([1, 2]))


class TestLowDegreeExtension:
    """Reed-Solomon encoding of trace columns."""

    def test_extension_agrees_on_subgroup(self):
        """Without a shift, every B-th extended point is a trace point."""
        trace = EvaluationDomain.create(FieldElement, 8)
        extended = EvaluationDomain.create(FieldElement, 32)
        values = F([3, 1, 4, 1, 5, 9, 2, 6])
        lde = low_degree_extend(values, trace, extended)
        assert len(lde) == 32
        assert [lde[4 * i] for i in range(8)] == values

    def test_extension_on_coset_has_low_degree(self):
        trace = EvaluationDomain.create(FieldElement, 8)
        extended = EvaluationDomain.create(FieldElement, 32, FieldElement.generator())
        values = F([3, 1, 4, 1, 5, 9, 2, 6])
        lde = low_degree_extend(values, trace, extended)
        assert extended.interpolate(lde).degree < 8
        assert extended.interpolate(lde) == trace.interpolate(values)
