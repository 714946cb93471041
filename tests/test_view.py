"""Tests for pgmap.view class lookup and member resolution."""
from __future__ import annotations

from pathlib import Path

import pytest

from pgmap.identity import mapping_uuid
from pgmap.records import ClassRecord, FieldRecord, MethodRecord
from pgmap.view import ClassView, MappingView

MAPPING = """\
# compiler: R8
# compiler_version: 1.3.49
# min_api: 15
android.support.constraint.ConstraintLayout -> android.support.constraint.ConstraintLayout:
    java.util.ArrayList mConstraintHelpers -> a
    1:1:void <init>(android.content.Context):100:100 -> <init>
android.support.constraint.ConstraintLayout$LayoutParams -> android.support.constraint.ConstraintLayout$a:
    int guideBegin -> a
    int guideEnd -> b
    float guidePercent -> c
    1848:1860:void validate() -> a
    1870:1872:void resolveLayoutDirection(int) -> a
android.support.constraint.solver.ArrayLinkedVariables -> android.support.constraint.a.a:
    int currentSize -> a
    180:220:void put(android.support.constraint.solver.SolverVariable,float) -> a
    300:330:float remove(android.support.constraint.solver.SolverVariable,boolean) -> a
android.support.constraint.solver.LinearSystem -> android.support.constraint.a.e:
    android.support.constraint.solver.ArrayRow getRow(int) -> a
    int getMemoryUsed() -> b
com.example1.domain.MyBean -> com.example1.domain.MyBean:
    java.lang.String name -> a
com.example.MainActivity -> com.example.a:
    1016:1016:void com.example1.domain.MyBean.doWork():16:16 -> buttonClicked
    1016:1016:void onClick(android.view.View):45 -> buttonClicked
    1017:1020:void onClick(android.view.View):46:49 -> buttonClicked
com.example.Ranked -> com.example.b:
    10:20:void alpha() -> x
    void beta() -> x
    30:40:void gamma() -> x
    void delta() -> x
    5:0:void epsilon() -> y
com.example.Duplicate -> com.example.b:
    void shadowed() -> x
"""

MAPPING_BYTES = MAPPING.encode()
MAPPING_WIN = MAPPING.replace("\n", "\r\n").encode()


@pytest.fixture(params=["unix", "windows"])
def mapping(request: pytest.FixtureRequest) -> MappingView:
    return MappingView.from_bytes(MAPPING_BYTES if request.param == "unix" else MAPPING_WIN)


def _names(methods: list[MethodRecord]) -> list[str]:
    return [m.original for m in methods]


class TestFindClass:
    def test_basic(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.ConstraintLayout$a")
        assert cls is not None
        assert cls.class_name == "android.support.constraint.ConstraintLayout$LayoutParams"
        assert cls.alias == "android.support.constraint.ConstraintLayout$a"
        assert str(cls) == cls.class_name
        field = cls.get_field("b")
        assert field is not None
        assert str(field) == "int guideEnd"

    def test_missing_class(self, mapping: MappingView) -> None:
        assert mapping.find_class("does.not.Exist") is None

    def test_original_name_is_not_an_alias(self, mapping: MappingView) -> None:
        assert mapping.find_class("com.example.MainActivity") is None

    def test_span_covers_only_own_members(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.a.e")
        assert cls is not None
        members = list(cls.members())
        assert members == [
            MethodRecord(
                return_type="android.support.constraint.solver.ArrayRow",
                original="getRow",
                obfuscated="a",
                arguments="int",
            ),
            MethodRecord(return_type="int", original="getMemoryUsed", obfuscated="b"),
        ]

    def test_span_starts_after_declaration_terminator(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example1.domain.MyBean")
        assert cls is not None
        assert cls.body.startswith(b"    java.lang.String name -> a")
        assert cls.body.rstrip(b"\r\n").endswith(b"name -> a")

    def test_last_class_runs_to_end(self, mapping: MappingView) -> None:
        classes = list(mapping.classes())
        assert classes[-1].body_end == len(mapping.buffer)

    def test_duplicate_alias_returns_first(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert cls.class_name == "com.example.Ranked"
        assert _names(cls.get_methods("x")) != ["shadowed"]

    def test_idempotent(self, mapping: MappingView) -> None:
        first = mapping.find_class("com.example.a")
        second = mapping.find_class("com.example.a")
        assert first == second
        assert first is not None and second is not None
        assert first.get_methods("buttonClicked", 1016) == second.get_methods(
            "buttonClicked", 1016
        )

    def test_member_lines_before_any_class_are_unreachable(self) -> None:
        view = MappingView.from_bytes(b"    int orphan -> z\na.B -> c:\n    int x -> y\n")
        cls = view.find_class("c")
        assert cls is not None
        assert cls.get_field("z") is None
        assert cls.get_field("y") == FieldRecord(type="int", original="x", obfuscated="y")

    def test_declaration_without_terminator(self) -> None:
        view = MappingView.from_bytes(b"a.B -> c:")
        cls = view.find_class("c")
        assert cls is not None
        assert cls.body == b""
        assert list(cls.members()) == []


class TestClasses:
    def test_all_classes_in_order(self, mapping: MappingView) -> None:
        aliases = [c.alias for c in mapping.classes()]
        assert aliases == [
            "android.support.constraint.ConstraintLayout",
            "android.support.constraint.ConstraintLayout$a",
            "android.support.constraint.a.a",
            "android.support.constraint.a.e",
            "com.example1.domain.MyBean",
            "com.example.a",
            "com.example.b",
            "com.example.b",
        ]

    def test_matches_find_class(self, mapping: MappingView) -> None:
        by_alias = {c.alias: c for c in reversed(list(mapping.classes()))}
        for alias, view in by_alias.items():
            assert mapping.find_class(alias) == view


class TestGetField:
    def test_first_match(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.a.a")
        assert cls is not None
        assert cls.get_field("a") == FieldRecord(
            type="int", original="currentSize", obfuscated="a",
        )

    def test_method_alias_is_not_a_field(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.a.e")
        assert cls is not None
        assert cls.get_field("a") is None


class TestGetMethods:
    def test_methods(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.ConstraintLayout$a")
        assert cls is not None
        methods = cls.get_methods("a", 1848)
        assert len(methods) == 1
        assert str(methods[0]) == "void validate()"

    def test_methods_without_line_info(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.a.e")
        assert cls is not None
        methods = cls.get_methods("a", 261)
        assert len(methods) == 1
        assert str(methods[0]) == "android.support.constraint.solver.ArrayRow getRow(int)"

    def test_line_disambiguates(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.a.a")
        assert cls is not None
        assert _names(cls.get_methods("a", 320)) == ["remove"]
        assert _names(cls.get_methods("a", 200)) == ["put"]
        assert cls.get_methods("a", 250) == []

    def test_no_line_returns_all(self, mapping: MappingView) -> None:
        cls = mapping.find_class("android.support.constraint.a.a")
        assert cls is not None
        assert _names(cls.get_methods("a")) == ["put", "remove"]

    def test_inlined_chain(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.a")
        assert cls is not None
        methods = cls.get_methods("buttonClicked", 1016)
        assert _names(methods) == ["doWork", "onClick"]
        assert methods[0].original_class == "com.example1.domain.MyBean"
        assert methods[1].original_class is None
        assert methods[1].line_mapping is not None
        assert methods[1].line_mapping.original_startline == 45

    def test_inlined_chain_other_line(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.a")
        assert cls is not None
        methods = cls.get_methods("buttonClicked", 1018)
        assert _names(methods) == ["onClick"]
        assert methods[0].first_line == 1017

    def test_rangeless_candidates_always_match(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert _names(cls.get_methods("x", 25)) == ["beta", "delta"]

    def test_ranked_by_distance_to_start(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert _names(cls.get_methods("x", 35)) == ["gamma", "beta", "delta"]
        assert _names(cls.get_methods("x", 15)) == ["alpha", "beta", "delta"]

    def test_no_line_ranks_rangeless_first(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert _names(cls.get_methods("x")) == ["beta", "delta", "alpha", "gamma"]

    def test_zero_line_is_unknown(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert cls.get_methods("x", 0) == cls.get_methods("x")

    def test_open_ended_range_matches_any_line(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert _names(cls.get_methods("y", 999)) == ["epsilon"]

    def test_unknown_alias(self, mapping: MappingView) -> None:
        cls = mapping.find_class("com.example.b")
        assert cls is not None
        assert cls.get_methods("nope", 10) == []


class TestResolveFrame:
    def test_inlined_frames_report_origin_class(self, mapping: MappingView) -> None:
        frames = mapping.resolve_frame("com.example.a", "buttonClicked", 1016)
        assert [str(f) for f in frames] == [
            "com.example1.domain.MyBean.doWork",
            "com.example.MainActivity.onClick",
        ]

    def test_missing_class(self, mapping: MappingView) -> None:
        assert mapping.resolve_frame("x.y", "a", 1) == []


class TestMappingView:
    def test_has_line_info(self, mapping: MappingView) -> None:
        assert mapping.has_line_info() is True

    def test_no_line_info(self) -> None:
        view = MappingView.from_bytes(b"a -> b:\n    void run() -> a\n")
        assert view.has_line_info() is False

    def test_uuid(self) -> None:
        view = MappingView.from_bytes(MAPPING_BYTES)
        assert view.uuid == mapping_uuid(MAPPING_BYTES)
        assert view.uuid != MappingView.from_bytes(MAPPING_WIN).uuid

    def test_iterates_records(self, mapping: MappingView) -> None:
        records = list(mapping)
        assert records == list(mapping.records())
        assert sum(isinstance(r, ClassRecord) for r in records) == 8

    def test_summary(self, mapping: MappingView) -> None:
        summary = mapping.summary()
        assert summary["has_line_info"] is True
        assert summary["counts"]["class"] == 8
        assert summary["counts"]["unparsable"] == 0

    def test_accepts_bytearray_and_memoryview(self) -> None:
        for data in (bytearray(MAPPING_BYTES), memoryview(MAPPING_BYTES)):
            view = MappingView.from_bytes(data)
            assert view.find_class("com.example.a") is not None

    def test_rejects_text(self) -> None:
        with pytest.raises(TypeError):
            MappingView(MAPPING)  # type: ignore[arg-type]

    @pytest.mark.parametrize("use_mmap", [True, False])
    def test_from_path(self, tmp_path: Path, use_mmap: bool) -> None:
        path = tmp_path / "mapping.txt"
        path.write_bytes(MAPPING_WIN)
        with MappingView.from_path(path, use_mmap=use_mmap) as view:
            cls = view.find_class("android.support.constraint.a.a")
            assert isinstance(cls, ClassView)
            assert _names(cls.get_methods("a", 320)) == ["remove"]
            assert view.uuid == mapping_uuid(MAPPING_WIN)

    def test_from_empty_path(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")
        with MappingView.from_path(path) as view:
            assert list(view.records()) == []
            assert view.find_class("a") is None

    def test_from_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            MappingView.from_path(tmp_path / "missing.txt")
