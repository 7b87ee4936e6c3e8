"""
Hash / Compression Primitives

The proof system consumes a pluggable collision-resistant hash for
Merkle pairing, transcript challenges and the public-coin seed.

    H(tag ‖ len(p_1) ‖ p_1 ‖ ... ‖ len(p_n) ‖ p_n)

Every part is length-prefixed so that distinct part lists never
produce the same hash input.
"""

from abc import ABC, abstractmethod
from typing import Dict, Type
import hashlib

import blake3

from .errors import ConfigurationError
from .tags import StarkTag, tag_bytes


DIGEST_SIZE = 32


def encode_int(value: int) -> bytes:
    """Minimal big-endian encoding of a non-negative integer."""
    if value < 0:
        raise ValueError(f"Cannot encode negative integer {value}")
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), 'big')


class Hasher(ABC):
    """Domain-separated hash producing 32-byte digests."""

    name: str = ''

    @abstractmethod
    def _new(self):
        """Fresh hashlib-style state with update()."""

    @abstractmethod
    def _finalize(self, state) -> bytes:
        """Finalize state into DIGEST_SIZE bytes."""

    def hash(self, tag: StarkTag, *parts: bytes) -> bytes:
        """Hash a tag followed by length-prefixed parts."""
        state = self._new()
        state.update(tag_bytes(tag))
        for part in parts:
            state.update(len(part).to_bytes(8, 'big'))
            state.update(part)
        return self._finalize(state)

    def digest(self, tag: StarkTag, *parts: bytes) -> int:
        """hash() interpreted as a 256-bit big-endian integer."""
        return int.from_bytes(self.hash(tag, *parts), 'big')

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Shake256Hasher(Hasher):
    """SHAKE256 with 32-byte output (hashlib)."""

    name = 'shake256'

    def _new(self):
        return hashlib.shake_256()

    def _finalize(self, state) -> bytes:
        return state.digest(DIGEST_SIZE)


class Blake3Hasher(Hasher):
    """BLAKE3 with 32-byte output."""

    name = 'blake3'

    def _new(self):
        return blake3.blake3()

    def _finalize(self, state) -> bytes:
        return state.digest(length=DIGEST_SIZE)


HASHERS: Dict[str, Type[Hasher]] = {
    Shake256Hasher.name: Shake256Hasher,
    Blake3Hasher.name: Blake3Hasher,
}


def get_hasher(name: str) -> Hasher:
    """
    Look up a hasher by name.

    Raises:
        ConfigurationError: unknown hasher name
    """
    try:
        return HASHERS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown hash primitive {name!r}; expected one of {sorted(HASHERS)}"
        ) from None
