"""Line boundary detection over mapping buffers.

Works on anything exposing ``find(sub, start, end)`` and slicing (``bytes``,
``bytearray``, ``mmap.mmap``). ``\\r\\n``, ``\\n`` and a lone ``\\r`` each end
a line. Blank lines are yielded as empty spans; skipping them is left to the
record stream.
"""
from __future__ import annotations

from collections.abc import Iterator
from typing import Any

LF = b"\n"
CR = b"\r"


def _find(buf: Any, term: bytes, pos: int, end: int) -> int:
    hit = buf.find(term, pos, end)
    return end if hit == -1 else hit


def iter_line_spans(
    buf: Any, start: int = 0, end: int | None = None,
) -> Iterator[tuple[int, int]]:
    """Yield ``(line_start, line_end)`` offsets for each line in ``buf[start:end]``.

    ``line_end`` excludes the terminator. A terminator at the very end of the
    window does not produce a trailing empty line.
    """
    if end is None:
        end = len(buf)
    pos = start
    # next known terminator offsets, ``end`` when none remain
    next_lf = _find(buf, LF, pos, end)
    next_cr = _find(buf, CR, pos, end)
    while pos < end:
        if next_lf < pos:
            next_lf = _find(buf, LF, pos, end)
        if next_cr < pos:
            next_cr = _find(buf, CR, pos, end)
        brk = min(next_lf, next_cr)
        yield pos, brk
        pos = skip_terminator(buf, brk, end)


def split_lines(buf: Any, start: int = 0, end: int | None = None) -> Iterator[bytes]:
    """Yield each line of ``buf[start:end]`` as bytes, terminators removed."""
    for line_start, line_end in iter_line_spans(buf, start, end):
        yield bytes(buf[line_start:line_end])


def skip_terminator(buf: Any, pos: int, end: int | None = None) -> int:
    """Return the offset just past one ``\\r\\n``, ``\\n`` or ``\\r`` at ``pos``."""
    if end is None:
        end = len(buf)
    if pos < end and buf[pos:pos + 1] == CR:
        pos += 1
        if pos < end and buf[pos:pos + 1] == LF:
            pos += 1
    elif pos < end and buf[pos:pos + 1] == LF:
        pos += 1
    return pos
