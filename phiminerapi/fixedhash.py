"""Fixed-size byte strings used for hashes, with big-endian integer semantics."""

from __future__ import annotations

import secrets
from enum import Enum
from typing import ClassVar, Iterable, TypeVar

from .commondata import HexPrefix, from_big_endian, from_hex, to_big_endian, to_hex

__all__ = [
    "Align",
    "FixedHash",
    "H64",
    "H128",
    "H160",
    "H256",
    "H512",
    "hashes_to_string",
]

ELLIPSIS = "\u2026"

_T = TypeVar("_T", bound="FixedHash")


class Align(Enum):
    """How bytes of a differently sized source are placed into a hash."""

    LEFT = "left"
    RIGHT = "right"
    FAIL_IF_DIFFERENT = "fail_if_different"


def _place(source: bytes, size: int, align: Align) -> bytes:
    if len(source) == size:
        return source
    if align is Align.FAIL_IF_DIFFERENT:
        return bytes(size)
    count = min(len(source), size)
    padding = bytes(size - count)
    if align is Align.RIGHT:
        return padding + source[len(source) - count :]
    return source[:count] + padding


class FixedHash:
    """An immutable byte string of a fixed size, ordered as a big-endian number.

    Concrete sizes are subclasses declared with ``class H(FixedHash, size=N)``.
    """

    __slots__ = ("_data",)
    size: ClassVar[int] = 0

    def __init_subclass__(cls, size: int | None = None, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        if size is not None:
            if size <= 0:
                raise ValueError("size must be positive")
            cls.size = size

    def __init__(
        self, data: bytes | Iterable[int] = b"", align: Align = Align.FAIL_IF_DIFFERENT
    ) -> None:
        if self.size <= 0:
            raise TypeError("FixedHash needs a sized subclass such as H256")
        self._data = _place(bytes(data), self.size, align)

    @classmethod
    def from_hex(cls: type[_T], text: str) -> _T:
        """Parse hex; a result of the wrong length gives the zero hash."""
        return cls(from_hex(text, strict=True), Align.FAIL_IF_DIFFERENT)

    @classmethod
    def from_int(cls: type[_T], value: int) -> _T:
        """Encode an unsigned integer big-endian, dropping bytes that do not fit."""
        return cls(to_big_endian(value, cls.size))

    @classmethod
    def from_hash(cls: type[_T], other: FixedHash, align: Align = Align.LEFT) -> _T:
        """Build from a hash of another size, cropping or zero-filling."""
        if align is Align.FAIL_IF_DIFFERENT:
            align = Align.LEFT
        return cls(bytes(other), align)

    @classmethod
    def random(cls: type[_T]) -> _T:
        """Return a hash filled with random bytes."""
        return cls(secrets.token_bytes(cls.size))

    def hex(self, prefix: HexPrefix = HexPrefix.DONT_ADD) -> str:
        return to_hex(self._data, 2, prefix)

    def abridged(self) -> str:
        """The first four bytes in hex followed by an ellipsis."""
        return to_hex(self._data[:4]) + ELLIPSIS

    def incremented(self: _T) -> _T:
        """The next hash in big-endian order, wrapping to zero after the maximum."""
        return type(self).from_int((int(self) + 1) % (1 << (8 * self.size)))

    def __int__(self) -> int:
        return from_big_endian(self._data)

    def __bool__(self) -> bool:
        return any(self._data)

    def _compatible(self, other: object) -> bool:
        return isinstance(other, FixedHash) and other.size == self.size

    def _require(self, other: object) -> FixedHash:
        if not self._compatible(other):
            raise TypeError("operands must be hashes of the same size")
        return other  # type: ignore[return-value]

    def __eq__(self, other: object) -> bool:
        if not self._compatible(other):
            return NotImplemented
        return self._data == other._data  # type: ignore[union-attr]

    def __lt__(self, other: FixedHash) -> bool:
        return self._data < self._require(other)._data

    def __le__(self, other: FixedHash) -> bool:
        return self._data <= self._require(other)._data

    def __gt__(self, other: FixedHash) -> bool:
        return self._data > self._require(other)._data

    def __ge__(self, other: FixedHash) -> bool:
        return self._data >= self._require(other)._data

    def __hash__(self) -> int:
        return hash((self.size, self._data))

    def _combine(self: _T, other: FixedHash, op) -> _T:
        other = self._require(other)
        return type(self)(bytes(op(a, b) for a, b in zip(self._data, other._data)))

    def __xor__(self: _T, other: FixedHash) -> _T:
        return self._combine(other, lambda a, b: a ^ b)

    def __or__(self: _T, other: FixedHash) -> _T:
        return self._combine(other, lambda a, b: a | b)

    def __and__(self: _T, other: FixedHash) -> _T:
        return self._combine(other, lambda a, b: a & b)

    def __invert__(self: _T) -> _T:
        return type(self)(bytes(~b & 0xFF for b in self._data))

    def __getitem__(self, index):
        return self._data[index]

    def __len__(self) -> int:
        return self.size

    def __bytes__(self) -> bytes:
        return self._data

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.hex()}')"


class H64(FixedHash, size=8):
    """A 64-bit hash."""

    __slots__ = ()


class H128(FixedHash, size=16):
    """A 128-bit hash."""

    __slots__ = ()


class H160(FixedHash, size=20):
    """A 160-bit hash."""

    __slots__ = ()


class H256(FixedHash, size=32):
    """A 256-bit hash."""

    __slots__ = ()


class H512(FixedHash, size=64):
    """A 512-bit hash."""

    __slots__ = ()


def hashes_to_string(hashes: Iterable[FixedHash]) -> str:
    """Render a list of hashes in abridged form, e.g. ``[ 01020304…, ]``."""
    return "[ " + "".join(f"{h.abridged()}, " for h in hashes) + "]"