"""Point lookups over a mapping document.

``MappingView`` wraps an immutable buffer and answers sparse queries without
building an index: ``find_class`` scans class declaration lines for an alias
and returns a ``ClassView`` whose body is the byte window up to the next class
declaration; field and method lookups then scan only that window.

Usage::

    with MappingView.from_path("mapping.txt") as mapping:
        cls = mapping.find_class("a.b.c")
        if cls is not None:
            for method in cls.get_methods("a", 1848):
                print(cls.class_name, method)
"""
from __future__ import annotations

import logging
import mmap
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Any
from uuid import UUID

from pgmap.grammar import match_class_line
from pgmap.identity import mapping_uuid
from pgmap.io_utils import map_mapping_file, read_mapping_bytes
from pgmap.lines import iter_line_spans, skip_terminator
from pgmap.records import (
    ClassRecord,
    FieldRecord,
    MappingRecord,
    MethodRecord,
    UnparsableLine,
)
from pgmap.stream import count_records, has_line_info, iter_records

log = logging.getLogger(__name__)

_NEVER_CLASS_LEAD = (b" ", b"#")


def _matches_line(method: MethodRecord, lineno: int) -> bool:
    if lineno == 0 or method.line_mapping is None:
        return True
    lm = method.line_mapping
    return lm.endline == 0 or lm.startline <= lineno <= lm.endline


def _line_distance(method: MethodRecord, lineno: int) -> int:
    return abs(method.first_line - lineno)


@dataclass(frozen=True, slots=True)
class ResolvedFrame:
    """One original frame for an obfuscated ``class.method:line`` triple."""

    class_name: str
    method: MethodRecord

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}.{self.method.original}"

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True, slots=True)
class ClassView:
    """A class declaration plus the byte window of its member lines."""

    original: str
    obfuscated: str
    body_start: int
    body_end: int
    buffer: Any = field(repr=False, compare=False)

    @property
    def class_name(self) -> str:
        return self.original

    @property
    def alias(self) -> str:
        return self.obfuscated

    @property
    def body(self) -> bytes:
        return bytes(self.buffer[self.body_start:self.body_end])

    def members(self) -> Iterator[MappingRecord | UnparsableLine]:
        """Classified records of the class body, in document order."""
        return iter_records(self.buffer, self.body_start, self.body_end)

    def get_field(self, alias: str) -> FieldRecord | None:
        """Return the first field whose obfuscated name is ``alias``."""
        for record in self.members():
            if isinstance(record, FieldRecord) and record.obfuscated == alias:
                return record
        return None

    def get_methods(self, alias: str, lineno: int | None = None) -> list[MethodRecord]:
        """Return methods obfuscated to ``alias``, best line match first.

        With a line number, methods whose range excludes it are dropped;
        methods without a known range always stay. Several results usually
        mean an inlined call chain, outermost frame last.
        """
        query = lineno or 0
        matches = [
            record
            for record in self.members()
            if isinstance(record, MethodRecord)
            and record.obfuscated == alias
            and _matches_line(record, query)
        ]
        matches.sort(key=lambda m: _line_distance(m, query))
        return matches

    def __str__(self) -> str:
        return self.original


class MappingView:
    """Read-only view over the bytes of one mapping file."""

    def __init__(self, buffer: Any) -> None:
        if isinstance(buffer, (bytearray, memoryview)):
            buffer = bytes(buffer)
        if not isinstance(buffer, (bytes, mmap.mmap)):
            raise TypeError(
                f"MappingView needs bytes-like data or an mmap, got {type(buffer).__name__}"
            )
        self._buffer = buffer

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> MappingView:
        return cls(data)

    @classmethod
    def from_path(cls, path: str | Path, *, use_mmap: bool = True) -> MappingView:
        """Open a mapping file, memory-mapped unless ``use_mmap`` is false."""
        path = Path(path)
        if use_mmap:
            return cls(map_mapping_file(path))
        return cls(read_mapping_bytes(path))

    @property
    def buffer(self) -> Any:
        return self._buffer

    def close(self) -> None:
        if isinstance(self._buffer, mmap.mmap):
            self._buffer.close()

    def __enter__(self) -> MappingView:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __iter__(self) -> Iterator[MappingRecord | UnparsableLine]:
        return self.records()

    def records(self, *, strict: bool = False) -> Iterator[MappingRecord | UnparsableLine]:
        """Classified records for every non-empty line of the document."""
        return iter_records(self._buffer, strict=strict)

    @property
    def uuid(self) -> UUID:
        return mapping_uuid(self._buffer)

    def has_line_info(self) -> bool:
        return has_line_info(self._buffer)

    def summary(self) -> dict[str, Any]:
        return {
            "uuid": str(self.uuid),
            "has_line_info": self.has_line_info(),
            "counts": count_records(self._buffer),
        }

    def _iter_class_lines(self, start: int = 0) -> Iterator[tuple[int, int, ClassRecord]]:
        buf = self._buffer
        for line_start, line_end in iter_line_spans(buf, start):
            if line_start == line_end or buf[line_start:line_start + 1] in _NEVER_CLASS_LEAD:
                continue
            record = match_class_line(bytes(buf[line_start:line_end]))
            if record is not None:
                yield line_start, line_end, record

    def _view_for(self, line_end: int, record: ClassRecord) -> ClassView:
        buf = self._buffer
        body_start = skip_terminator(buf, line_end)
        body_end = len(buf)
        for next_start, _, _ in self._iter_class_lines(body_start):
            body_end = next_start
            break
        return ClassView(
            original=record.original,
            obfuscated=record.obfuscated,
            body_start=body_start,
            body_end=body_end,
            buffer=buf,
        )

    def find_class(self, alias: str) -> ClassView | None:
        """Locate the first class declaration obfuscated to ``alias``."""
        for _, line_end, record in self._iter_class_lines():
            if record.obfuscated == alias:
                return self._view_for(line_end, record)
        log.debug("No class with alias %r", alias)
        return None

    def classes(self) -> Iterator[ClassView]:
        """Every class declaration with its body window, in document order."""
        pending: tuple[int, ClassRecord] | None = None
        buf = self._buffer
        for line_start, line_end, record in self._iter_class_lines():
            if pending is not None:
                prev_end, prev = pending
                yield ClassView(
                    original=prev.original,
                    obfuscated=prev.obfuscated,
                    body_start=skip_terminator(buf, prev_end),
                    body_end=line_start,
                    buffer=buf,
                )
            pending = (line_end, record)
        if pending is not None:
            prev_end, prev = pending
            yield ClassView(
                original=prev.original,
                obfuscated=prev.obfuscated,
                body_start=skip_terminator(buf, prev_end),
                body_end=len(buf),
                buffer=buf,
            )

    def resolve_frame(
        self, class_alias: str, method_alias: str, lineno: int | None = None,
    ) -> list[ResolvedFrame]:
        """Resolve one obfuscated frame to its original frame(s).

        Inlined frames report the class they were borrowed from; others report
        the enclosing class.
        """
        cls = self.find_class(class_alias)
        if cls is None:
            return []
        return [
            ResolvedFrame(
                class_name=method.original_class or cls.class_name,
                method=method,
            )
            for method in cls.get_methods(method_alias, lineno)
        ]
