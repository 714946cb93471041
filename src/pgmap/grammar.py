"""Line grammar for obfuscation mapping files.

Every line classifies to exactly one outcome:

- ``# key[: value]``                                        header
- ``original -> obfuscated:``                               class
- ``    type name -> obfuscated``                           field
- ``    [s:e:]type [cls.]name(args)[:os[:oe]] -> obfuscated`` method
- anything else                                             UnparsableLine

The grammar is a plain token splitter; it never repairs a line and never
returns a partially filled record.
"""
from __future__ import annotations

from pgmap.records import (
    ARROW,
    MEMBER_INDENT,
    ClassRecord,
    FieldRecord,
    HeaderRecord,
    LineMapping,
    MappingRecord,
    MethodRecord,
    UnparsableLine,
)


class MappingParseError(ValueError):
    """Raised by strict parsing entry points for a line of unknown shape."""

    def __init__(self, raw: bytes, offset: int | None = None) -> None:
        self.raw = raw
        self.offset = offset
        where = f" at offset {offset}" if offset is not None else ""
        super().__init__(f"Unparsable mapping line{where}: {raw!r}")


def _parse_uint(text: str) -> int | None:
    if not text or not text.isascii() or not text.isdigit():
        return None
    return int(text)


def _parse_header(line: str) -> HeaderRecord:
    key, sep, value = line[1:].partition(":")
    return HeaderRecord(key=key.strip(), value=value.strip() if sep else None)


def _parse_class(line: str) -> ClassRecord | None:
    # `original -> obfuscated:`
    parts = line.split(" ", 2)
    if len(parts) != 3 or parts[1] != ARROW or not line.endswith(":"):
        return None
    original, _, obfuscated = parts
    obfuscated = obfuscated[:-1]
    if not original or not obfuscated:
        return None
    return ClassRecord(original=original, obfuscated=obfuscated)


def _parse_member(line: str) -> FieldRecord | MethodRecord | None:
    line = line[len(MEMBER_INDENT):]
    startline = endline = 0

    if line[:1].isascii() and line[:1].isdigit():
        nums = line.split(":", 2)
        if len(nums) != 3:
            return None
        start = _parse_uint(nums[0])
        end = _parse_uint(nums[1])
        if start is None or end is None:
            return None
        startline, endline = start, end
        line = nums[2]

    parts = line.split(" ", 3)
    if len(parts) != 4 or parts[2] != ARROW:
        return None
    ty, name_part, _, obfuscated = parts
    if not ty or not name_part or not obfuscated:
        return None

    # trailing `:original_start[:original_end]`
    pieces = name_part.split(":", 2)
    original = pieces[0]
    original_startline = original_endline = None
    if len(pieces) > 1:
        original_startline = _parse_uint(pieces[1])
        if original_startline is None:
            return None
    if len(pieces) > 2:
        original_endline = _parse_uint(pieces[2])
        if original_endline is None:
            return None

    qualified, paren, args = original.partition("(")
    if not paren:
        if not original:
            return None
        return FieldRecord(type=ty, original=original, obfuscated=obfuscated)

    if not args.endswith(")"):
        return None
    arguments = args[:-1]

    original_class, dot, method_name = qualified.rpartition(".")
    if not method_name:
        return None

    line_mapping = None
    if startline > 0:
        line_mapping = LineMapping(
            startline=startline,
            endline=endline,
            original_startline=original_startline,
            original_endline=original_endline,
        )
    return MethodRecord(
        return_type=ty,
        original=method_name,
        obfuscated=obfuscated,
        arguments=arguments,
        original_class=original_class if dot else None,
        line_mapping=line_mapping,
    )


def parse_line(line: str) -> MappingRecord | None:
    """Parse one decoded line (without terminator); ``None`` if unparsable."""
    if line.startswith("#"):
        return _parse_header(line)
    if not line.startswith(MEMBER_INDENT):
        return _parse_class(line)
    return _parse_member(line)


def try_parse(raw: bytes) -> MappingRecord | None:
    """Parse one raw line; ``None`` for invalid UTF-8 or an unknown shape.

    >>> try_parse(b"# compiler: R8")
    HeaderRecord(key='compiler', value='R8')
    >>> try_parse(b"android.arch.core.executor.ArchTaskExecutor -> a.a.a.a.c:")
    ClassRecord(original='android.arch.core.executor.ArchTaskExecutor', obfuscated='a.a.a.a.c')
    """
    try:
        line = bytes(raw).decode("utf-8")
    except UnicodeDecodeError:
        return None
    return parse_line(line)


def classify(raw: bytes) -> MappingRecord | UnparsableLine:
    """Classify one raw line, echoing the bytes back when nothing matches."""
    record = try_parse(raw)
    if record is None:
        return UnparsableLine(raw=bytes(raw))
    return record


def parse_record(raw: bytes, offset: int | None = None) -> MappingRecord:
    """Strict variant of :func:`classify`; raises ``MappingParseError``."""
    record = try_parse(raw)
    if record is None:
        raise MappingParseError(bytes(raw), offset)
    return record


def match_class_line(raw: bytes) -> ClassRecord | None:
    """Return the ``ClassRecord`` if ``raw`` is a class declaration line."""
    if raw[:1] in (b"#", b"") or raw.startswith(MEMBER_INDENT.encode()):
        return None
    record = try_parse(raw)
    return record if isinstance(record, ClassRecord) else None
