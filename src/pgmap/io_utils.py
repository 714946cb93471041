"""I/O utilities for mapping files and JSON / JSONL output.

Mapping files are memory-mapped read-only when possible; JSON goes through
orjson.
"""
from __future__ import annotations

import mmap
from collections.abc import Iterable
from pathlib import Path
from typing import Any, BinaryIO

import orjson


def read_mapping_bytes(path: Path) -> bytes:
    """Read a whole mapping file into memory."""
    return Path(path).read_bytes()


def map_mapping_file(path: Path) -> mmap.mmap | bytes:
    """Memory-map a mapping file read-only.

    Empty files cannot be mapped and are returned as ``b""``.
    """
    with open(path, "rb") as f:
        try:
            return mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
        except ValueError:
            # zero-length file
            return b""


def dumps_json(obj: Any, *, pretty: bool = True) -> bytes:
    """Encode an object as JSON bytes with sorted keys."""
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, option=opts)


def write_json(obj: Any, stream: BinaryIO, *, pretty: bool = True) -> None:
    """Write one JSON document plus a newline to a binary stream."""
    stream.write(dumps_json(obj, pretty=pretty))
    stream.write(b"\n")


def write_jsonl(rows: Iterable[dict[str, Any]], stream: BinaryIO) -> int:
    """Write rows as JSON Lines to a binary stream. Returns rows written."""
    count = 0
    for row in rows:
        stream.write(orjson.dumps(row, option=orjson.OPT_SORT_KEYS))
        stream.write(b"\n")
        count += 1
    return count


def save_jsonl(rows: Iterable[dict[str, Any]], path: Path) -> int:
    """Save rows as a JSON Lines file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        return write_jsonl(rows, f)


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a JSON Lines file (one JSON object per line). Blank lines skipped."""
    records: list[dict[str, Any]] = []
    for line in path.read_bytes().split(b"\n"):
        line = line.strip()
        if line:
            records.append(orjson.loads(line))
    return records
