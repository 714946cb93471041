"""Record stream over a whole mapping document."""
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator
from typing import Any

from pgmap.grammar import classify, parse_record
from pgmap.lines import iter_line_spans
from pgmap.records import (
    RECORD_KINDS,
    MappingRecord,
    MethodRecord,
    UnparsableLine,
    record_kind,
)

log = logging.getLogger(__name__)


def iter_records_with_offsets(
    buf: Any,
    start: int = 0,
    end: int | None = None,
    *,
    strict: bool = False,
) -> Iterator[tuple[int, MappingRecord | UnparsableLine]]:
    """Yield ``(line_offset, record)`` for every non-empty line in the window.

    Unparsable lines are yielded as ``UnparsableLine`` and scanning goes on;
    with ``strict=True`` the first one raises ``MappingParseError`` instead.
    """
    for line_start, line_end in iter_line_spans(buf, start, end):
        if line_start == line_end:
            continue
        raw = bytes(buf[line_start:line_end])
        if strict:
            yield line_start, parse_record(raw, line_start)
            continue
        record = classify(raw)
        if isinstance(record, UnparsableLine):
            log.debug("Unparsable mapping line at offset %d: %r", line_start, raw)
        yield line_start, record


def iter_records(
    buf: Any,
    start: int = 0,
    end: int | None = None,
    *,
    strict: bool = False,
) -> Iterator[MappingRecord | UnparsableLine]:
    """Yield one classified record per non-empty line of ``buf[start:end]``.

    Restart by calling again on the same buffer; the iterator itself is not
    resumable.
    """
    for _, record in iter_records_with_offsets(buf, start, end, strict=strict):
        yield record


def has_line_info(buf: Any) -> bool:
    """True if any method line carries an obfuscated-side line range."""
    for record in iter_records(buf):
        if isinstance(record, MethodRecord) and record.line_mapping is not None:
            return True
    return False


def count_records(buf: Any) -> dict[str, int]:
    """Count records per kind (``header``, ``class``, ... ``unparsable``)."""
    counts: Counter[str] = Counter(record_kind(r) for r in iter_records(buf))
    return {kind: counts.get(kind, 0) for kind in RECORD_KINDS}
