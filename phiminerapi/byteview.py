"""Bounds-checked views, copies and wiping of raw byte buffers."""

from __future__ import annotations

from typing import Tuple, Union

__all__ = ["cropped", "copy_into", "populate", "cleanse", "overlaps"]

_EMPTY = memoryview(b"")
_cleanse_counter = 0

Span = Union[range, Tuple[int, int]]


def _view(data) -> memoryview:
    view = memoryview(data)
    if view.format != "B" or view.ndim != 1:
        view = view.cast("B")
    return view


def cropped(data, begin: int, count: int | None = None) -> memoryview:
    """Return a view of ``count`` bytes of ``data`` starting at ``begin``.

    With ``count`` left out the view runs to the end.  Anything out of
    bounds yields an empty view instead of an error.
    """
    if begin < 0 or (count is not None and count < 0):
        raise ValueError("begin and count must be non-negative")
    view = _view(data)
    size = len(view)
    if count is None:
        return view[begin:] if begin <= size else _EMPTY
    if begin <= size and count <= size and begin + count <= size:
        return view[begin : begin + count]
    return _EMPTY


def copy_into(source, target) -> int:
    """Copy as much of ``source`` as fits into the writable ``target``.

    Overlapping buffers are handled correctly.  Returns the number of bytes copied.
    """
    src = _view(source)
    dst = _view(target)
    count = min(len(src), len(dst))
    dst[:count] = bytes(src[:count])
    return count


def populate(source, target) -> None:
    """Copy ``source`` into ``target`` and zero whatever of ``target`` is left over."""
    src_len = len(_view(source))
    copy_into(source, target)
    dst = _view(target)
    if len(dst) > src_len:
        dst[src_len:] = bytes(len(dst) - src_len)


def cleanse(buffer) -> None:
    """Overwrite a writable buffer with a scrambled pattern, then with zeros."""
    global _cleanse_counter
    dst = _view(buffer)
    count = _cleanse_counter
    pattern = bytearray()
    for position in range(1, len(dst) + 1):
        pattern.append(count & 0xFF)
        count += 17 + (position & 0xF)
    dst[:] = pattern
    marker = count & 0xFF
    if marker in pattern:
        count += 63 + pattern.index(marker)
    _cleanse_counter = count & 0xFF
    dst[:] = bytes(len(dst))


def _bounds(span: Span) -> Tuple[int, int]:
    if isinstance(span, range):
        return span.start, span.stop
    start, stop = span
    return start, stop


def overlaps(first: Span, second: Span) -> bool:
    """Tell whether two ``[start, stop)`` spans over the same buffer overlap."""
    first_start, first_stop = _bounds(first)
    second_start, second_stop = _bounds(second)
    return first_start < second_stop and first_stop > second_start