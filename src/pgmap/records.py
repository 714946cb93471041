"""Record types produced by the mapping line grammar.

One record per non-empty line of a mapping file::

    # compiler: R8                                              -> HeaderRecord
    com.example.Foo -> a.b:                                     -> ClassRecord
        int count -> a                                          -> FieldRecord
        12:14:void run(int):40:42 -> b                          -> MethodRecord

Records copy the few tokens they need out of the document; positions inside
the document are tracked separately by ``pgmap.view``.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, TypeAlias

MEMBER_INDENT = "    "
ARROW = "->"


@dataclass(frozen=True, slots=True)
class LineMapping:
    """Obfuscated-side line range and, optionally, the original-side range."""

    startline: int = 0
    endline: int = 0
    original_startline: int | None = None
    original_endline: int | None = None


@dataclass(frozen=True, slots=True)
class HeaderRecord:
    """A ``# key: value`` metadata line."""

    key: str
    value: str | None = None

    def to_line(self) -> str:
        if self.value is None:
            return f"# {self.key}"
        return f"# {self.key}: {self.value}"


@dataclass(frozen=True, slots=True)
class ClassRecord:
    original: str
    obfuscated: str

    def to_line(self) -> str:
        return f"{self.original} {ARROW} {self.obfuscated}:"

    def __str__(self) -> str:
        return self.original


@dataclass(frozen=True, slots=True)
class FieldRecord:
    type: str
    original: str
    obfuscated: str

    def to_line(self) -> str:
        return f"{MEMBER_INDENT}{self.type} {self.original} {ARROW} {self.obfuscated}"

    def __str__(self) -> str:
        return f"{self.type} {self.original}"


@dataclass(frozen=True, slots=True)
class MethodRecord:
    """A method line, possibly describing one frame of an inlined call chain.

    ``original_class`` is set only when the line names a method borrowed from
    another class; ``line_mapping`` only when the line starts with a
    ``start:end:`` prefix.
    """

    return_type: str
    original: str
    obfuscated: str
    arguments: str = ""
    original_class: str | None = None
    line_mapping: LineMapping | None = None

    @property
    def full_name(self) -> str:
        if self.original_class is None:
            return self.original
        return f"{self.original_class}.{self.original}"

    @property
    def first_line(self) -> int:
        """Obfuscated-side start line, or 0 if not known."""
        return self.line_mapping.startline if self.line_mapping is not None else 0

    @property
    def last_line(self) -> int:
        """Obfuscated-side end line, or 0 if not known."""
        return self.line_mapping.endline if self.line_mapping is not None else 0

    def args(self) -> Iterator[str]:
        """Iterate argument types; an empty argument list yields nothing."""
        if not self.arguments:
            return iter(())
        return iter(self.arguments.split(","))

    def to_line(self) -> str:
        prefix = ""
        suffix = ""
        lm = self.line_mapping
        if lm is not None:
            prefix = f"{lm.startline}:{lm.endline}:"
            if lm.original_startline is not None:
                suffix = f":{lm.original_startline}"
                if lm.original_endline is not None:
                    suffix += f":{lm.original_endline}"
        return (
            f"{MEMBER_INDENT}{prefix}{self.return_type} "
            f"{self.full_name}({self.arguments}){suffix} {ARROW} {self.obfuscated}"
        )

    def __str__(self) -> str:
        return f"{self.return_type} {self.original}({', '.join(self.args())})"


MappingRecord: TypeAlias = HeaderRecord | ClassRecord | FieldRecord | MethodRecord


@dataclass(frozen=True, slots=True)
class UnparsableLine:
    """A line that matched no record shape; ``raw`` is the line unchanged."""

    raw: bytes

    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")


_KIND_BY_TYPE: dict[type, str] = {
    HeaderRecord: "header",
    ClassRecord: "class",
    FieldRecord: "field",
    MethodRecord: "method",
    UnparsableLine: "unparsable",
}

RECORD_KINDS: tuple[str, ...] = tuple(_KIND_BY_TYPE.values())


def record_kind(record: MappingRecord | UnparsableLine) -> str:
    """Return ``header|class|field|method|unparsable`` for a record."""
    return _KIND_BY_TYPE[type(record)]


def record_to_dict(record: MappingRecord | UnparsableLine) -> dict[str, Any]:
    """Serialize a record to a JSON-ready dict with a ``kind`` discriminator."""
    kind = record_kind(record)
    if isinstance(record, UnparsableLine):
        return {"kind": kind, "raw": record.text()}
    if isinstance(record, HeaderRecord):
        return {"kind": kind, "key": record.key, "value": record.value}
    if isinstance(record, ClassRecord):
        return {"kind": kind, "original": record.original, "obfuscated": record.obfuscated}
    if isinstance(record, FieldRecord):
        return {
            "kind": kind,
            "type": record.type,
            "original": record.original,
            "obfuscated": record.obfuscated,
        }
    lm = record.line_mapping
    return {
        "kind": kind,
        "return_type": record.return_type,
        "original": record.original,
        "obfuscated": record.obfuscated,
        "arguments": list(record.args()),
        "original_class": record.original_class,
        "line_mapping": None if lm is None else {
            "startline": lm.startline,
            "endline": lm.endline,
            "original_startline": lm.original_startline,
            "original_endline": lm.original_endline,
        },
    }
