"""
AIR Constraints (Algebraic Intermediate Representation)

Defines the constraint system binding a private witness to the public
signature statement (message hash, public key, signature).

The execution trace has T = 8 rows and five columns:
- pub[t]: Public scalars m, pk, s in rows 0-2, zero elsewhere
- wit[t]: Private witness scalars in rows 0..k-1, zero elsewhere
- inv[t]: Inverse of wit[t] (zero where wit[t] is zero)
- sel[t]: 1 on witness rows, 0 on padding rows
- acc[t]: Binding accumulator, acc[t+1] = (acc[t] + pub[t] + wit[t])^3

Constraints enforce:
1. Boundary: pub[0..2] = public scalars, acc[0] = 0, sel[0] = 1
2. Transition: accumulator update, selector never turns back on
3. Range (every row): sel is boolean, padding rows carry no witness,
   witness rows carry a nonzero scalar (wit · inv = sel)

Each constraint c_k is divided by its zerofier Z_k and the quotients are
combined with powers of a transcript challenge:

    Q(x) = Σ α^k · c_k(x) / Z_k(x)

A valid trace makes every c_k vanish on its rows, so Q is a polynomial of
degree at most max_k(deg_k · (T - 1) - deg Z_k).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field as dataclass_field
from typing import ClassVar, Dict, List, Mapping, Sequence, Tuple, Type

from .errors import ConfigurationError, MalformedInput
from .field import FieldElement, batch_inverse
from .poly import EvaluationDomain


Row = Dict[str, FieldElement]


def _require_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedInput(f"{name} must be an integer, got {type(value).__name__}")
    return value


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class PublicInput:
    """The public statement: message hash, public key and signature scalars."""

    message_hash: int
    public_key: int
    signature: int

    FIELDS: ClassVar[Tuple[str, ...]] = ('message_hash', 'public_key', 'signature')

    def __post_init__(self):
        for name in self.FIELDS:
            _require_int(name, getattr(self, name))

    def scalars(self) -> Tuple[int, int, int]:
        return (self.message_hash, self.public_key, self.signature)

    def field_scalars(self, field: Type[FieldElement]) -> Tuple[FieldElement, ...]:
        """
        Scalars as elements of `field`.

        Raises:
            MalformedInput: a scalar is not a canonical residue in [0, p)
        """
        for name, value in zip(self.FIELDS, self.scalars()):
            if not 0 <= value < field.MODULUS:
                raise MalformedInput(f"{name} = {value} is outside [0, {field.MODULUS:#x})")
        return tuple(field(s) for s in self.scalars())

    def to_dict(self) -> Dict[str, int]:
        return dict(zip(self.FIELDS, self.scalars()))

    @classmethod
    def from_mapping(cls, data: Mapping) -> 'PublicInput':
        """Build from a mapping holding exactly the three scalar keys."""
        missing = [name for name in cls.FIELDS if name not in data]
        if missing:
            raise MalformedInput(f"Public input is missing {', '.join(missing)}")
        extra = sorted(set(data) - set(cls.FIELDS))
        if extra:
            raise MalformedInput(f"Unexpected public input keys: {', '.join(extra)}")
        return cls(**{name: data[name] for name in cls.FIELDS})


@dataclass(frozen=True)
class PrivateWitness:
    """Private witness scalars. Never logged, never serialized."""

    values: Tuple[int, ...] = dataclass_field(repr=False)

    def __post_init__(self):
        values = tuple(self.values)
        for i, value in enumerate(values):
            _require_int(f"witness[{i}]", value)
        object.__setattr__(self, 'values', values)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"PrivateWitness(<{len(self.values)} scalars>)"


# =============================================================================
# Execution Trace
# =============================================================================

@dataclass(frozen=True)
class ExecutionTrace:
    """
    Immutable table of field elements, one tuple per row.

    Invariant: every row has one entry per column.
    """

    columns: Tuple[str, ...]
    rows: Tuple[Tuple[FieldElement, ...], ...]

    def __post_init__(self):
        width = len(self.columns)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise MalformedInput(f"Row {i} has {len(row)} cells, expected {width}")

    @property
    def length(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return len(self.columns)

    def get_column(self, name: str) -> List[FieldElement]:
        """Get column values by name."""
        index = self.columns.index(name)
        return [row[index] for row in self.rows]

    def row(self, index: int) -> Row:
        """Row as a column-name mapping."""
        return dict(zip(self.columns, self.rows[index]))


# =============================================================================
# Constraints
# =============================================================================

class Constraint(ABC):
    """
    Polynomial relation over the current row and the next row.

    The relation must vanish on every row it applies to. Its zerofier is
    returned as a (numerator, denominator) pair so that the caller can
    batch the inversions.
    """

    kind: ClassVar[str] = ''

    def __init__(self, name: str, degree: int):
        self.name = name
        self.degree = degree

    @abstractmethod
    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        """Evaluate the constraint. Returns 0 if satisfied."""

    @abstractmethod
    def applies_to(self, row: int, trace_length: int) -> bool:
        """Whether the constraint is enforced on this row."""

    @abstractmethod
    def zerofier(self, x: FieldElement, trace_domain: EvaluationDomain) -> Tuple[FieldElement, FieldElement]:
        """Z(x) as (numerator, denominator)."""

    @abstractmethod
    def zerofier_degree(self, trace_length: int) -> int:
        """Degree of Z."""

    def quotient_degree(self, trace_length: int) -> int:
        """Degree of c(x) / Z(x) when the trace columns have degree T - 1."""
        return self.degree * (trace_length - 1) - self.zerofier_degree(trace_length)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class BoundaryConstraint(Constraint):
    """Constraint: column[row] = value"""

    kind = 'boundary'

    def __init__(self, column: str, row: int, value: FieldElement):
        super().__init__(name=f"{column}[{row}]", degree=1)
        self.column = column
        self.row = row
        self.value = value

    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        return current[self.column] - self.value

    def applies_to(self, row: int, trace_length: int) -> bool:
        return row == self.row

    def zerofier(self, x, trace_domain):
        # x - ω^row
        return x - trace_domain.element(self.row), x.one()

    def zerofier_degree(self, trace_length: int) -> int:
        return 1


class TransitionConstraint(Constraint):
    """
    Constraint relating current row to next row.

    Enforced on rows 0..T-2; the last row wraps around and is exempt.
    """

    kind = 'transition'

    def applies_to(self, row: int, trace_length: int) -> bool:
        return row < trace_length - 1

    def zerofier(self, x, trace_domain):
        # (x^T - 1) / (x - ω^(T-1))
        last = trace_domain.element(trace_domain.size - 1)
        return x ** trace_domain.size - 1, x - last

    def zerofier_degree(self, trace_length: int) -> int:
        return trace_length - 1


class RangeConstraint(Constraint):
    """Constraint on a single row, enforced on every row."""

    kind = 'range'

    def applies_to(self, row: int, trace_length: int) -> bool:
        return True

    def zerofier(self, x, trace_domain):
        # x^T - 1
        return x ** trace_domain.size - 1, x.one()

    def zerofier_degree(self, trace_length: int) -> int:
        return trace_length


class AccumulatorConstraint(TransitionConstraint):
    """Constraint: acc[i+1] = (acc[i] + pub[i] + wit[i])^3"""

    def __init__(self):
        super().__init__(name="accumulator_update", degree=3)

    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        return next_row['acc'] - (current['acc'] + current['pub'] + current['wit']) ** 3


class SelectorMonotoneConstraint(TransitionConstraint):
    """Constraint: sel[i+1] · (1 - sel[i]) = 0 (witness rows are a prefix)"""

    def __init__(self):
        super().__init__(name="selector_monotone", degree=2)

    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        return next_row['sel'] * (1 - current['sel'])


class SelectorBooleanConstraint(RangeConstraint):
    """Constraint: sel · (sel - 1) = 0"""

    def __init__(self):
        super().__init__(name="selector_boolean", degree=2)

    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        return current['sel'] * (current['sel'] - 1)


class WitnessPaddingConstraint(RangeConstraint):
    """Constraint: wit · (1 - sel) = 0"""

    def __init__(self):
        super().__init__(name="witness_padding", degree=2)

    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        return current['wit'] * (1 - current['sel'])


class NonZeroWitnessConstraint(RangeConstraint):
    """Constraint: wit · inv - sel = 0 (witness rows hold invertible scalars)"""

    def __init__(self):
        super().__init__(name="witness_nonzero", degree=2)

    def evaluate(self, current: Row, next_row: Row) -> FieldElement:
        return current['wit'] * current['inv'] - current['sel']


# =============================================================================
# Constraint Set
# =============================================================================

class AIRConstraintSet:
    """
    Boundary, transition and range constraints of one statement.

    Constraint k carries weight α^k in the composition, in the order
    boundary, transition, range.
    """

    def __init__(
        self,
        boundary: Sequence[BoundaryConstraint],
        transition: Sequence[TransitionConstraint],
        range_constraints: Sequence[RangeConstraint],
        trace_domain: EvaluationDomain
    ):
        self.boundary = list(boundary)
        self.transition = list(transition)
        self.range = list(range_constraints)
        self.trace_domain = trace_domain

    @property
    def constraints(self) -> List[Constraint]:
        return self.boundary + self.transition + self.range

    def __len__(self) -> int:
        return len(self.constraints)

    @property
    def composition_degree_bound(self) -> int:
        """Degree bound of the composition quotient Q."""
        t = self.trace_domain.size
        return max(c.quotient_degree(t) for c in self.constraints)

    def _weights(self, alpha: FieldElement) -> List[FieldElement]:
        weights = [alpha.one()]
        for _ in range(len(self.constraints) - 1):
            weights.append(weights[-1] * alpha)
        return weights

    def _trace_frames(self, trace) -> List[Tuple[Row, Row]]:
        n = trace.length
        return [(trace.row(i), trace.row((i + 1) % n)) for i in range(n)]

    def composition_on_trace(self, trace: ExecutionTrace, alpha: FieldElement) -> List[FieldElement]:
        """
        Σ α^k · c_k over the constraints enforced on each trace row.

        All zeros exactly when the trace satisfies the AIR (with
        overwhelming probability over α).
        """
        weights = self._weights(alpha)
        result = []
        for i, (current, next_row) in enumerate(self._trace_frames(trace)):
            total = alpha.zero()
            for weight, constraint in zip(weights, self.constraints):
                if constraint.applies_to(i, trace.length):
                    total = total + weight * constraint.evaluate(current, next_row)
            result.append(total)
        return result

    def violations(self, trace: ExecutionTrace) -> List[Tuple[str, int]]:
        """Every (constraint name, row) pair that does not vanish."""
        found = []
        for i, (current, next_row) in enumerate(self._trace_frames(trace)):
            for constraint in self.constraints:
                if not constraint.applies_to(i, trace.length):
                    continue
                if not constraint.evaluate(current, next_row).is_zero():
                    found.append((constraint.name, i))
        return found

    def quotient_over(
        self,
        frames: Sequence[Tuple[Row, Row]],
        points: Sequence[FieldElement],
        alpha: FieldElement
    ) -> List[FieldElement]:
        """
        Evaluate Q at many points outside the trace domain.

        frames[i] holds the (current, next) trace rows at points[i].
        All zerofier numerators are inverted in one batch.
        """
        if len(frames) != len(points):
            raise ValueError(f"{len(frames)} frames for {len(points)} points")

        weights = self._weights(alpha)
        constraints = self.constraints
        numerators, terms = [], []
        for (current, next_row), x in zip(frames, points):
            for weight, constraint in zip(weights, constraints):
                num, den = constraint.zerofier(x, self.trace_domain)
                numerators.append(num)
                terms.append(weight * constraint.evaluate(current, next_row) * den)

        inverses = batch_inverse(numerators)
        width = len(constraints)
        result = []
        for i in range(len(points)):
            total = alpha.zero()
            for j in range(i * width, (i + 1) * width):
                total = total + terms[j] * inverses[j]
            result.append(total)
        return result

    def quotient_at(self, current: Row, next_row: Row, x: FieldElement, alpha: FieldElement) -> FieldElement:
        """Q(x) from the trace rows opened at x and x·ω."""
        return self.quotient_over([(current, next_row)], [x], alpha)[0]


# =============================================================================
# Signature Binding AIR
# =============================================================================

class SignatureBindingAIR:
    """
    Algebraic Intermediate Representation for the signature statement.

    Binds up to T - 1 nonzero private scalars and the three public scalars
    into one accumulator chain.
    """

    COLUMNS: ClassVar[Tuple[str, ...]] = ('pub', 'wit', 'inv', 'sel', 'acc')
    TRACE_LENGTH: ClassVar[int] = 8
    NUM_PUBLIC: ClassVar[int] = 3

    def __init__(self, field: Type[FieldElement] = FieldElement, trace_length: int = TRACE_LENGTH):
        if trace_length < 4 or trace_length & (trace_length - 1):
            raise ConfigurationError(f"Trace length must be a power of 2 >= 4, got {trace_length}")
        self.field = field
        self.trace_length = trace_length
        self.trace_domain = EvaluationDomain.create(field, trace_length)

    @property
    def width(self) -> int:
        return len(self.COLUMNS)

    @property
    def witness_capacity(self) -> int:
        """Largest witness the trace can hold."""
        return self.trace_length - 1

    @property
    def composition_degree_bound(self) -> int:
        placeholder = PublicInput(0, 0, 0)
        return self.constraints(placeholder).composition_degree_bound

    def build_trace(self, public_input: PublicInput, witness: PrivateWitness) -> ExecutionTrace:
        """
        Generate execution trace from the statement and witness.

        Raises:
            MalformedInput: empty witness or more scalars than the trace holds
        """
        k = len(witness)
        if k == 0:
            raise MalformedInput("Witness is empty")
        if k > self.witness_capacity:
            raise MalformedInput(
                f"Witness has {k} scalars; the trace holds at most {self.witness_capacity}"
            )

        F = self.field
        t = self.trace_length
        padding = [F.zero()] * t

        pub = (list(public_input.field_scalars(F)) + padding)[:t]
        wit = ([F(w) for w in witness.values] + padding)[:t]
        inv = [F.zero() if w.is_zero() else w.inverse() for w in wit]
        sel = ([F.one()] * k + padding)[:t]

        acc = [F.zero()]
        for i in range(t - 1):
            acc.append((acc[i] + pub[i] + wit[i]) ** 3)

        return ExecutionTrace(columns=self.COLUMNS, rows=tuple(zip(pub, wit, inv, sel, acc)))

    def constraints(self, public_input: PublicInput) -> AIRConstraintSet:
        """Constraint set for one public statement."""
        F = self.field
        boundary = [
            BoundaryConstraint(column='pub', row=i, value=s)
            for i, s in enumerate(public_input.field_scalars(F))
        ]
        boundary.append(BoundaryConstraint(column='acc', row=0, value=F.zero()))
        boundary.append(BoundaryConstraint(column='sel', row=0, value=F.one()))

        transition = [
            AccumulatorConstraint(),
            SelectorMonotoneConstraint(),
        ]
        range_constraints = [
            SelectorBooleanConstraint(),
            WitnessPaddingConstraint(),
            NonZeroWitnessConstraint(),
        ]
        return AIRConstraintSet(boundary, transition, range_constraints, self.trace_domain)
