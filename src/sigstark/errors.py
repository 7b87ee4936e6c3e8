"""
Error Taxonomy

Configuration and malformed-input errors abort immediately. Verification
failures never escape the verifier: they are turned into a boolean reject
with a diagnostic reason.

    StarkError
    ├── ConfigurationError   (fatal, raised before any proof work)
    ├── DomainError          (vector length is not a power of two)
    ├── GenerationError
    │   ├── MalformedInput   (trace/witness shape violates declared widths)
    │   └── UnsoundWitness   (prover self-check found a nonzero composition)
    ├── DecodingError        (malformed proof encoding)
    └── VerificationFailure  (internal; caught by the verifier)

FoldingTerminal is not an error: it signals the end of FRI folding rounds.
"""

from typing import List, Optional, Tuple


class StarkError(Exception):
    """Base class for every error raised by the proof system."""


class ConfigurationError(StarkError, ValueError):
    """Invalid prime, generator, blow-up factor, round budget or query count."""


class DomainError(StarkError, ValueError):
    """An evaluation vector or leaf vector whose length is not a power of two."""


class GenerationError(StarkError):
    """Proof generation refused to emit a proof."""


class MalformedInput(GenerationError, ValueError):
    """Public input or witness does not fit the AIR's declared shape."""


class UnsoundWitness(GenerationError):
    """
    The constraint composition is nonzero somewhere on the trace domain.

    Carries the individual (constraint name, row) violations for diagnostics.
    """

    def __init__(self, message: str, violations: Optional[List[Tuple[str, int]]] = None):
        super().__init__(message)
        self.violations = violations or []


class DecodingError(StarkError, ValueError):
    """Malformed proof bytes: truncation, bad counts or out-of-range values."""


class VerificationFailure(StarkError):
    """A single verification check failed. `reason` names the check."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class FoldingTerminal(Exception):
    """
    Expected end of the FRI commit phase.

    Raised by a folding round when the round budget is exhausted or the
    folded vector has reached the terminal length.
    """

    def __init__(self, reason: str, length: int):
        super().__init__(f"{reason} (length {length})")
        self.reason = reason
        self.length = length
