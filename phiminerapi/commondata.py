"""Hex, big-endian and human-readable formatting helpers shared across the package."""

from __future__ import annotations

import os
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

__all__ = [
    "HexPrefix",
    "ScaleSuffix",
    "DevError",
    "BadHexCharacter",
    "ExternalFunctionFailure",
    "from_hex_char",
    "from_hex",
    "to_hex",
    "to_hex_int",
    "to_compact_hex",
    "to_big_endian",
    "from_big_endian",
    "to_compact_big_endian",
    "bytes_required",
    "set_env",
    "get_target_from_diff",
    "get_hashes_to_target",
    "get_scaled_size",
    "get_formatted_hashes",
    "get_formatted_memory",
    "get_formatted_elapsed",
    "pad_left",
    "pad_right",
]


class HexPrefix(Enum):
    """Whether a hex string gets a leading ``0x``."""

    DONT_ADD = 0
    ADD = 1


class ScaleSuffix(Enum):
    """Whether a scaled value gets its unit suffix."""

    DONT_ADD = 0
    ADD = 1


class DevError(Exception):
    """Base class for all errors raised by this package's core helpers."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message or type(self).__name__


class BadHexCharacter(DevError):
    """A character that is not a hex digit was found where one was required."""

    def __init__(self, symbol: str | None = None) -> None:
        super().__init__("BadHexCharacter")
        self.symbol = symbol


class ExternalFunctionFailure(DevError):
    """A call into an external facility failed."""

    def __init__(self, function: str) -> None:
        super().__init__(f"Function {function}() failed.")
        self.function = function


_BASE_TARGET = 0x00000000FFFF0000000000000000000000000000000000000000000000000000
_MAX_TARGET = (1 << 256) - 1
_HASHES_DIVIDEND = 0xFFFF000000000000000000000000000000000000000000000000000000000000

_HASH_SUFFIXES = ("h", "Kh", "Mh", "Gh")
_MEMORY_SUFFIXES = ("B", "KB", "MB", "GB")
_ELAPSED_SUFFIXES = ("ms", "sec")


def _prefixed(text: str, prefix: HexPrefix) -> str:
    return "0x" + text if prefix is HexPrefix.ADD else text


def from_hex_char(char: str, strict: bool = False) -> int:
    """Return the value of one hex digit, or -1 (or raise if ``strict``) when invalid."""
    if len(char) == 1 and char in "0123456789abcdefABCDEF":
        return int(char, 16)
    if strict:
        raise BadHexCharacter(char)
    return -1


def from_hex(text: str, strict: bool = False) -> bytes:
    """Decode a hex string (optionally ``0x``-prefixed) into bytes.

    An odd number of digits makes the first digit a byte by itself.  On a bad
    digit an empty result is returned, or BadHexCharacter raised if ``strict``.
    """
    digits = text[2:] if text.startswith("0x") else text
    out = bytearray()

    def fail() -> bytes:
        if strict:
            raise BadHexCharacter()
        return b""

    if len(text) % 2:
        first = from_hex_char(digits[0]) if digits else -1
        if first == -1:
            return fail()
        out.append(first)
        digits = digits[1:]

    pairs = iter(digits)
    for high_char, low_char in zip(pairs, pairs):
        high = from_hex_char(high_char)
        low = from_hex_char(low_char)
        if high == -1 or low == -1:
            return fail()
        out.append(high * 16 + low)
    return bytes(out)


def to_hex(data: Iterable[int], width: int = 2, prefix: HexPrefix = HexPrefix.DONT_ADD) -> str:
    """Encode bytes as hex duplets; the first element is padded to ``width`` digits."""
    parts = [
        format(byte & 0xFF, f"0{width if position == 0 else 2}x")
        for position, byte in enumerate(data)
    ]
    return _prefixed("".join(parts), prefix)


def to_hex_int(value: int, prefix: HexPrefix = HexPrefix.DONT_ADD, digits: int = 16) -> str:
    """Format a non-negative integer as hex, zero-padded to at least ``digits`` digits."""
    if value < 0:
        raise ValueError("value must be non-negative")
    return _prefixed(format(value, f"0{digits}x"), prefix)


def to_compact_hex(value: int, prefix: HexPrefix = HexPrefix.DONT_ADD) -> str:
    """Format a non-negative integer as hex without padding."""
    if value < 0:
        raise ValueError("value must be non-negative")
    return _prefixed(format(value, "x"), prefix)


def to_big_endian(value: int, size: int = 32) -> bytes:
    """Encode ``value`` into exactly ``size`` big-endian bytes, dropping higher bytes."""
    if value < 0:
        raise ValueError("only unsigned values are supported")
    return (value & ((1 << (8 * size)) - 1)).to_bytes(size, "big")


def from_big_endian(data: bytes | Sequence[int]) -> int:
    """Decode big-endian bytes into an integer."""
    return int.from_bytes(bytes(data), "big")


def bytes_required(value: int) -> int:
    """Number of bytes needed to hold ``value``; zero for zero."""
    if value < 0:
        raise ValueError("only unsigned values are supported")
    return (value.bit_length() + 7) // 8


def to_compact_big_endian(value: int, minimum: int = 0) -> bytes:
    """Encode ``value`` in as few big-endian bytes as possible, but at least ``minimum``."""
    return to_big_endian(value, max(minimum, bytes_required(value)))


def set_env(name: str, value: str, override: bool = False) -> None:
    """Set an environment variable; an existing one is kept unless ``override``."""
    if not override and name in os.environ:
        return
    os.environ[name] = value


def get_target_from_diff(diff: float, prefix: HexPrefix = HexPrefix.ADD) -> str:
    """Return the 256-bit boundary for a pool difficulty as lower-case hex."""
    if diff == 0:
        product = _MAX_TARGET
    else:
        inverse = 1 / diff
        product = _BASE_TARGET * int(inverse)
        sign, digit_tuple, exponent = Decimal(format(inverse, ".17g")).as_tuple()
        if isinstance(exponent, int) and exponent < 0:
            precision = -exponent
            fractional = "".join(map(str, digit_tuple))[-precision:] if digit_tuple else "0"
            multiplier = int(fractional) if fractional else 0
            product += (_BASE_TARGET * multiplier) // (10**precision)
    return _prefixed(format(product, "064x"), prefix)


def _parse_big_integer(text: str) -> int:
    if text[:2] in ("0x", "0X"):
        return int(text[2:], 16)
    if len(text) > 1 and text.startswith("0"):
        return int(text[1:], 8)
    return int(text, 10)


def get_hashes_to_target(target: str) -> float:
    """Return the expected number of hashes needed to meet ``target``."""
    divisor = _parse_big_integer(target)
    if divisor == 0:
        raise ZeroDivisionError("target must not be zero")
    return float(_HASHES_DIVIDEND // divisor)


def get_scaled_size(
    value: float,
    divisor: float,
    precision: int,
    sizes: Sequence[str],
    suffix: ScaleSuffix = ScaleSuffix.ADD,
) -> str:
    """Divide ``value`` down by ``divisor`` and label it with the matching unit."""
    if not sizes:
        raise ValueError("at least one size label is required")
    scaled = value
    index = 0
    while scaled > divisor and index < len(sizes) - 1:
        scaled /= divisor
        index += 1
    text = f"{scaled:.{precision}f}"
    if suffix is ScaleSuffix.ADD:
        text += " " + sizes[index]
    return text


def get_formatted_hashes(
    hashrate: float, suffix: ScaleSuffix = ScaleSuffix.ADD, precision: int = 2
) -> str:
    """Format a hash rate with h/Kh/Mh/Gh units."""
    return get_scaled_size(hashrate, 1000.0, precision, _HASH_SUFFIXES, suffix)


def get_formatted_memory(
    memory: float, suffix: ScaleSuffix = ScaleSuffix.ADD, precision: int = 2
) -> str:
    """Format a byte count with B/KB/MB/GB units."""
    return get_scaled_size(memory, 1024.0, precision, _MEMORY_SUFFIXES, suffix)


def get_formatted_elapsed(
    elapsed: float, suffix: ScaleSuffix = ScaleSuffix.ADD, precision: int = 2
) -> str:
    """Format a duration given in milliseconds with ms/sec units."""
    return get_scaled_size(elapsed, 1000.0, precision, _ELAPSED_SUFFIXES, suffix)


def pad_left(value: str, length: int, fill_char: str) -> str:
    """Pad ``value`` on the left with ``fill_char`` up to ``length``."""
    return value.rjust(length, fill_char)


def pad_right(value: str, length: int, fill_char: str) -> str:
    """Pad ``value`` on the right with ``fill_char`` up to ``length``."""
    return value.ljust(length, fill_char)