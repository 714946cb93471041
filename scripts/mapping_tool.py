#!/usr/bin/env python3
"""Inspect and query obfuscation mapping files.

Usage:
    python3 scripts/mapping_tool.py --mapping mapping.txt info
    python3 scripts/mapping_tool.py --mapping mapping.txt records --kind method
    python3 scripts/mapping_tool.py --mapping mapping.txt class a.b.c
    python3 scripts/mapping_tool.py --mapping mapping.txt field a.b.c a
    python3 scripts/mapping_tool.py --mapping mapping.txt methods a.b.c a --line 1848
    python3 scripts/mapping_tool.py --mapping mapping.txt frame a.b.c a --line 1848

``--mapping`` defaults to $PGMAP_MAPPING. Structured JSON output goes to
stdout; human messages go to stderr. Exit status is 1 when a lookup finds
nothing and 2 when the mapping file cannot be opened.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from pgmap.io_utils import save_jsonl, write_json, write_jsonl
from pgmap.records import RECORD_KINDS, record_kind, record_to_dict
from pgmap.view import ClassView, MappingView

log = logging.getLogger("mapping_tool")

MAPPING_ENV = "PGMAP_MAPPING"


def dump_json(obj: Any) -> None:
    write_json(obj, sys.stdout.buffer)
    sys.stdout.buffer.flush()


def _class_payload(cls: ClassView) -> dict[str, Any]:
    return {
        "original": cls.class_name,
        "obfuscated": cls.alias,
        "body_start": cls.body_start,
        "body_end": cls.body_end,
    }


def cmd_info(mapping: MappingView, args: argparse.Namespace) -> int:
    summary = mapping.summary()
    log.info(
        "%d classes, %d unparsable lines",
        summary["counts"]["class"],
        summary["counts"]["unparsable"],
    )
    dump_json(summary)
    return 0


def cmd_records(mapping: MappingView, args: argparse.Namespace) -> int:
    kinds = set(args.kind) if args.kind else set(RECORD_KINDS)
    rows = (
        record_to_dict(record)
        for record in mapping.records()
        if record_kind(record) in kinds
    )
    if args.output is not None:
        written = save_jsonl(rows, args.output)
        log.info("Wrote %d records to %s", written, args.output)
    else:
        written = write_jsonl(rows, sys.stdout.buffer)
        sys.stdout.buffer.flush()
        log.debug("Wrote %d records", written)
    return 0


def cmd_class(mapping: MappingView, args: argparse.Namespace) -> int:
    cls = mapping.find_class(args.class_alias)
    if cls is None:
        log.warning("Class %s not found", args.class_alias)
        dump_json({"query": args.class_alias, "class": None})
        return 1
    dump_json({"query": args.class_alias, "class": _class_payload(cls)})
    return 0


def cmd_field(mapping: MappingView, args: argparse.Namespace) -> int:
    cls = mapping.find_class(args.class_alias)
    field = cls.get_field(args.member_alias) if cls is not None else None
    payload = {
        "query": {"class": args.class_alias, "field": args.member_alias},
        "class": _class_payload(cls) if cls is not None else None,
        "field": record_to_dict(field) if field is not None else None,
        "display": str(field) if field is not None else None,
    }
    dump_json(payload)
    if field is None:
        log.warning("Field %s.%s not found", args.class_alias, args.member_alias)
        return 1
    return 0


def cmd_methods(mapping: MappingView, args: argparse.Namespace) -> int:
    cls = mapping.find_class(args.class_alias)
    methods = cls.get_methods(args.member_alias, args.line) if cls is not None else []
    dump_json(
        {
            "query": {
                "class": args.class_alias,
                "method": args.member_alias,
                "line": args.line,
            },
            "class": _class_payload(cls) if cls is not None else None,
            "methods": [
                {**record_to_dict(m), "display": str(m)} for m in methods
            ],
        }
    )
    if not methods:
        log.warning("No method %s.%s matches", args.class_alias, args.member_alias)
        return 1
    return 0


def cmd_frame(mapping: MappingView, args: argparse.Namespace) -> int:
    frames = mapping.resolve_frame(args.class_alias, args.member_alias, args.line)
    dump_json(
        {
            "query": {
                "class": args.class_alias,
                "method": args.member_alias,
                "line": args.line,
            },
            "frames": [
                {
                    "class_name": frame.class_name,
                    "method": frame.method.original,
                    "qualified_name": frame.qualified_name,
                    "signature": str(frame.method),
                    "line_mapping": record_to_dict(frame.method)["line_mapping"],
                }
                for frame in frames
            ],
        }
    )
    return 0 if frames else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query obfuscation mapping files.")
    parser.add_argument(
        "--mapping",
        type=Path,
        default=os.environ.get(MAPPING_ENV) or None,
        help=f"Path to the mapping file (default: ${MAPPING_ENV}).",
    )
    parser.add_argument(
        "--no-mmap",
        action="store_true",
        help="Read the mapping into memory instead of memory-mapping it.",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    p_info = sub.add_parser("info", help="UUID, line-info flag and record counts.")
    p_info.set_defaults(func=cmd_info)

    p_records = sub.add_parser("records", help="Dump classified records as JSON Lines.")
    p_records.add_argument(
        "--kind",
        action="append",
        choices=RECORD_KINDS,
        help="Only emit records of this kind (repeatable).",
    )
    p_records.add_argument("--output", type=Path, default=None, help="Write JSONL here.")
    p_records.set_defaults(func=cmd_records)

    p_class = sub.add_parser("class", help="Look up a class by obfuscated name.")
    p_class.add_argument("class_alias")
    p_class.set_defaults(func=cmd_class)

    for name, func, help_text in (
        ("field", cmd_field, "Look up a field of a class."),
        ("methods", cmd_methods, "Look up ranked method candidates of a class."),
        ("frame", cmd_frame, "Resolve one obfuscated stack frame."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("class_alias")
        p.add_argument("member_alias")
        if name != "field":
            p.add_argument("--line", type=int, default=None, help="Obfuscated line number.")
        p.set_defaults(func=func)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.mapping is None:
        parser.error(f"--mapping is required when ${MAPPING_ENV} is not set")

    try:
        mapping = MappingView.from_path(args.mapping, use_mmap=not args.no_mmap)
    except OSError as exc:
        log.error("Cannot open mapping %s: %s", args.mapping, exc)
        dump_json({"error": str(exc), "mapping": str(args.mapping)})
        return 2

    with mapping:
        log.debug("Loaded mapping %s", args.mapping)
        return args.func(mapping, args)


if __name__ == "__main__":
    sys.exit(main())
