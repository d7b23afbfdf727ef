"""Tests for the annotation passes over the semantics layer."""

from __future__ import annotations

from pathlib import Path

from ontogen.annotations import AnnotationAnalyzer, build_summary, max_brace_depth
from ontogen.config import AnnotationThresholds
from ontogen.models import (
    ClassEntry,
    FunctionEntry,
    ImportEntry,
    MxAnnotation,
    Param,
    SemanticFile,
    SemanticsLayer,
    SymbolEntry,
)
from ontogen.semantics import build_symbol_index


def _layer(files: list[SemanticFile]) -> SemanticsLayer:
    return SemanticsLayer(files=files, symbols=build_symbol_index(files))


def _declaring_file() -> SemanticFile:
    return SemanticFile(
        path="src/core.ts",
        language="typescript",
        exports=[SymbolEntry(name="Core", kind="class", line=3, exported=True)],
    )


def _importer(path: str) -> SemanticFile:
    return SemanticFile(
        path=path,
        language="typescript",
        imports=[ImportEntry(source="./core", specifiers=["Core"])],
    )


def test_anchor_requires_three_importing_files() -> None:
    layer = _layer([_declaring_file(), _importer("src/a.ts"), _importer("src/b.ts"), _importer("src/c.ts")])

    anchors = AnnotationAnalyzer().analyze_fan_in(layer)

    (anchor,) = anchors
    assert anchor.tag == "ANCHOR"
    assert anchor.symbol_name == "Core"
    assert anchor.line == 3
    assert anchor.metadata == {"fanIn": 3, "declarationFile": "src/core.ts"}


def test_two_importers_are_not_an_anchor() -> None:
    layer = _layer([_declaring_file(), _importer("src/a.ts"), _importer("src/b.ts")])

    assert AnnotationAnalyzer().analyze_fan_in(layer) == []


def test_declaring_file_does_not_count_towards_fan_in() -> None:
    declaring = _declaring_file()
    declaring.imports = [ImportEntry(source="./other", specifiers=["Core"])]
    layer = _layer([declaring, _importer("src/a.ts"), _importer("src/b.ts")])

    assert AnnotationAnalyzer().analyze_fan_in(layer) == []


def test_anchor_threshold_is_configurable() -> None:
    layer = _layer([_declaring_file(), _importer("src/a.ts")])

    anchors = AnnotationAnalyzer(AnnotationThresholds(anchor_fan_in=1)).analyze_fan_in(layer)

    assert [anchor.metadata["fanIn"] for anchor in anchors] == [1]


def test_signature_warnings_for_param_count_and_any() -> None:
    many = FunctionEntry(
        name="configure",
        kind="function",
        line=1,
        params=[Param(name=f"p{index}") for index in range(5)],
    )
    loose = FunctionEntry(
        name="parse", kind="function", line=10, params=[Param(name="raw", type="any")]
    )
    fine = FunctionEntry(
        name="ok", kind="function", line=20, params=[Param(name=f"p{index}") for index in range(4)]
    )
    semantic_file = SemanticFile(path="src/api.ts", language="typescript", functions=[many, loose, fine])

    warnings = AnnotationAnalyzer().analyze_signatures([semantic_file])

    assert [(warning.symbol_name, warning.message) for warning in warnings] == [
        ("configure", "5 parameters"),
        ("parse", "uses any type"),
    ]
    assert warnings[0].metadata == {"file": "src/api.ts", "paramCount": 5, "hasAnyType": False}


def test_generate_flags_long_functions_and_deep_nesting(tmp_path: Path) -> None:
    body = "\n".join(["  step();"] * 55)
    content = (
        "export function long() {\n"
        f"{body}\n"
        "}\n"
        "export function nested() {\n"
        "  if (a) {\n"
        "    for (const x of xs) {\n"
        "      call();\n"
        "    }\n"
        "  }\n"
        "}\n"
    )
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "work.ts").write_text(content, encoding="utf-8")
    semantic_file = SemanticFile(
        path="src/work.ts",
        language="typescript",
        functions=[
            FunctionEntry(name="long", kind="function", line=1, exported=True),
            FunctionEntry(name="nested", kind="function", line=58, exported=True),
        ],
    )

    result = AnnotationAnalyzer().generate(_layer([semantic_file]), tmp_path)

    messages = [(annotation.symbol_name, annotation.message) for annotation in result.by_file["src/work.ts"]]
    assert ("long", "Function length 57 lines") in messages
    assert ("nested", "Nesting depth 3") in messages
    assert result.summary.by_tag == {"WARN": 2}


def test_python_files_skip_brace_nesting(tmp_path: Path) -> None:
    (tmp_path / "mod.py").write_text("data = {'a': {'b': {'c': 1}}}\n", encoding="utf-8")
    semantic_file = SemanticFile(path="mod.py", language="python")

    result = AnnotationAnalyzer().generate(_layer([semantic_file]), tmp_path)

    assert result.by_file == {}


def test_generate_collects_notes_and_todos(tmp_path: Path) -> None:
    (tmp_path / "app.py").write_text(
        "# @MX:NOTE keep in sync with the billing schema\n"
        "value = 1  # FIXME: rounding\n"
        "label = 'TODO is not a comment here'\n",
        encoding="utf-8",
    )
    semantic_file = SemanticFile(path="app.py", language="python")

    result = AnnotationAnalyzer().generate(_layer([semantic_file]), tmp_path)

    annotations = result.by_file["app.py"]
    assert [(annotation.tag, annotation.message, annotation.line) for annotation in annotations] == [
        ("NOTE", "keep in sync with the billing schema", 1),
        ("TODO", "[FIXME] rounding", 2),
    ]


def test_apply_attaches_annotations_to_exports() -> None:
    semantic_file = SemanticFile(
        path="src/api.ts",
        language="typescript",
        exports=[SymbolEntry(name="configure", kind="function", line=1, exported=True)],
    )
    layer = _layer([semantic_file])
    warning = MxAnnotation(
        tag="WARN", message="5 parameters", line=1, symbol_name="configure", metadata={"file": "src/api.ts"}
    )
    analyzer = AnnotationAnalyzer()
    result = analyzer.generate(layer, Path("/nonexistent"))
    result.by_file = {"src/api.ts": [warning]}
    result.summary = build_summary([warning])

    analyzer.apply(layer, result)
    analyzer.apply(layer, result)

    assert semantic_file.annotations == [warning]
    assert semantic_file.exports[0].annotations == [warning]
    assert layer.annotation_summary is not None
    assert layer.annotation_summary.warnings[0].reason == "5 parameters"


def test_method_warning_does_not_land_on_same_named_export() -> None:
    params = [Param(name=f"p{index}") for index in range(6)]
    semantic_file = SemanticFile(
        path="src/repo.ts",
        language="typescript",
        exports=[
            SymbolEntry(name="load", kind="function", line=1, exported=True),
            SymbolEntry(name="Repo", kind="class", line=4, exported=True),
        ],
        functions=[FunctionEntry(name="load", kind="function", line=1, exported=True)],
        classes=[
            ClassEntry(
                name="Repo",
                kind="class",
                line=4,
                exported=True,
                methods=[FunctionEntry(name="load", kind="method", line=5, params=params)],
            )
        ],
    )
    layer = _layer([semantic_file])
    analyzer = AnnotationAnalyzer()

    analyzer.apply(layer, analyzer.generate(layer, Path("/nonexistent")))

    assert [(item.tag, item.line) for item in semantic_file.annotations] == [("WARN", 5)]
    assert semantic_file.exports[0].annotations == []
    assert semantic_file.exports[1].annotations == []


def test_build_summary_orders_anchors_by_fan_in() -> None:
    annotations = [
        MxAnnotation(tag="ANCHOR", message="", symbol_name="low", metadata={"fanIn": 3, "declarationFile": "a"}),
        MxAnnotation(tag="ANCHOR", message="", symbol_name="high", metadata={"fanIn": 9, "declarationFile": "b"}),
        MxAnnotation(tag="TODO", message="[TODO] x", metadata={"file": "c"}),
    ]

    summary = build_summary(annotations)

    assert summary.total == 3
    assert summary.by_tag == {"ANCHOR": 2, "TODO": 1}
    assert [anchor.symbol for anchor in summary.top_anchors] == ["high", "low"]


def test_max_brace_depth_reports_first_deepest_line() -> None:
    assert max_brace_depth(["a {", "  b {", "  }", "  c {", "  }", "}"]) == (2, 2)
    assert max_brace_depth([]) == (0, 0)
