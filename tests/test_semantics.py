"""Tests for the semantics layer builder."""

from __future__ import annotations

from ontogen.analyzers import LanguagePlugin, PluginRegistry
from ontogen.models import (
    FunctionEntry,
    IncrementalChange,
    ImportEntry,
    ModuleRelation,
    SemanticFile,
    SymbolEntry,
)
from ontogen.semantics import (
    SemanticsBuilder,
    build_dependency_graph,
    build_symbol_index,
    is_relative_specifier,
    package_name,
)


def _registry() -> PluginRegistry:
    return PluginRegistry.create_default(prefer_ast=False, discover=False)


def _write_sample(project_builder) -> None:
    project_builder.write(
        {
            "package.json": """
                {"dependencies": {"express": "^4.18.0", "@scope/kit": "1.2.0"}}
            """,
            "src/index.ts": """
                import express from 'express';
                import { tool } from '@scope/kit/tools';
                import { readFile } from 'node:fs';
                import { helper } from './util';
                export const app = express();
            """,
            "src/util.ts": """
                import express from 'express';
                export function helper(): void {}
                export interface Options { verbose: boolean }
            """,
            "scripts/job.py": """
                import os
                import requests
                from .shared import thing

                def run():
                    pass
            """,
            "README.md": "# Sample\n",
        }
    )


def test_build_analyses_supported_files(project_builder) -> None:
    _write_sample(project_builder)
    structure = project_builder.scan()

    layer, result = SemanticsBuilder(_registry()).build(
        project_builder.path(), structure, ["typescript", "javascript", "python"]
    )

    assert result.success is True
    assert result.layer == "semantics"
    assert result.file_count == 3
    assert [semantic_file.path for semantic_file in layer.files] == [
        "scripts/job.py",
        "src/index.ts",
        "src/util.ts",
    ]
    assert layer.symbols.by_name["helper"][0].file == "src/util.ts"
    assert layer.symbols.by_name["run"][0].kind == "function"
    assert layer.symbols.total_count == 4
    assert layer.symbols.exported_count == 4


def test_build_groups_external_dependencies(project_builder) -> None:
    _write_sample(project_builder)
    structure = project_builder.scan()

    layer, _ = SemanticsBuilder(_registry()).build(
        project_builder.path(), structure, ["typescript", "python"]
    )

    external = {dep.name: dep for dep in layer.dependencies.external}
    assert set(external) == {"express", "@scope/kit", "requests"}
    assert external["express"].version == "^4.18.0"
    assert external["express"].used_by == ["src/index.ts", "src/util.ts"]
    assert external["@scope/kit"].version == "1.2.0"
    assert external["requests"].version == "unknown"
    internal = [(relation.source, relation.target) for relation in layer.dependencies.internal]
    assert ("src/index.ts", "./util") in internal
    assert ("scripts/job.py", ".shared") in internal
    assert all(is_relative_specifier(target) for _, target in internal)


def test_build_filters_by_language(project_builder) -> None:
    _write_sample(project_builder)
    structure = project_builder.scan()

    layer, _ = SemanticsBuilder(_registry()).build(project_builder.path(), structure, ["python"])

    assert [semantic_file.path for semantic_file in layer.files] == ["scripts/job.py"]


def test_build_attaches_annotation_summary(project_builder) -> None:
    project_builder.write({"src/a.ts": "// TODO: split this module\nexport const a = 1;\n"})
    structure = project_builder.scan()

    layer, _ = SemanticsBuilder(_registry()).build(project_builder.path(), structure, ["typescript"])

    assert layer.annotation_summary is not None
    assert layer.annotation_summary.by_tag == {"TODO": 1}
    assert layer.files[0].annotations[0].message == "[TODO] split this module"


class _ExplodingPlugin(LanguagePlugin):
    name = "exploding"
    language = "typescript"
    extensions = (".ts",)

    def analyze_file(self, path: str, content: str) -> SemanticFile:
        if path.endswith("bad.ts"):
            raise RuntimeError("kaboom")
        return SemanticFile(path=path, language=self.language)


def test_failing_file_becomes_a_warning(project_builder) -> None:
    project_builder.write({"src/bad.ts": "x", "src/good.ts": "y"})
    structure = project_builder.scan()
    registry = PluginRegistry()
    registry.register(_ExplodingPlugin())

    layer, result = SemanticsBuilder(registry).build(project_builder.path(), structure, ["typescript"])

    assert [semantic_file.path for semantic_file in layer.files] == ["src/good.ts"]
    assert result.success is True
    assert result.warnings == ["Failed to analyse src/bad.ts: kaboom"]


def test_update_incremental_reanalyses_changed_files_only(project_builder) -> None:
    project_builder.write(
        {
            "src/a.ts": "export function alpha() {}\n",
            "src/b.ts": "export function beta() {}\n",
            "src/c.ts": "export function gamma() {}\n",
        }
    )
    builder = SemanticsBuilder(_registry())
    existing, _ = builder.build(project_builder.path(), project_builder.scan(), ["typescript"])

    project_builder.write(
        {"src/b.ts": "export function betaTwo() {}\n", "src/d.ts": "export const delta = 4;\n"}
    )
    project_builder.remove(["src/c.ts"])
    changes = IncrementalChange(added=["src/d.ts"], modified=["src/b.ts"], deleted=["src/c.ts"])

    updated, result = builder.update_incremental(
        project_builder.path(), existing, changes, ["typescript"], structure=project_builder.scan()
    )

    assert [semantic_file.path for semantic_file in updated.files] == [
        "src/a.ts",
        "src/b.ts",
        "src/d.ts",
    ]
    assert set(updated.symbols.by_name) == {"alpha", "betaTwo", "delta"}
    assert result.file_count == 3


def test_update_incremental_skips_unlisted_languages(project_builder) -> None:
    project_builder.write({"src/a.ts": "export const a = 1;\n"})
    builder = SemanticsBuilder(_registry())
    existing, _ = builder.build(project_builder.path(), project_builder.scan(), ["typescript"])

    project_builder.write({"tool.py": "def helper():\n    pass\n"})
    updated, _ = builder.update_incremental(
        project_builder.path(), existing, IncrementalChange(added=["tool.py"]), ["typescript"]
    )

    assert [semantic_file.path for semantic_file in updated.files] == ["src/a.ts"]


def test_symbol_index_counts_each_declaration_once() -> None:
    semantic_file = SemanticFile(path="a.py", language="python")
    semantic_file.functions = [
        FunctionEntry(name="public", kind="function", line=1, exported=True),
        FunctionEntry(name="_hidden", kind="function", line=5),
    ]
    semantic_file.exports = [SymbolEntry(name="public", kind="function", line=1, exported=True)]

    index = build_symbol_index([semantic_file])

    assert index.total_count == 2
    assert index.exported_count == 1
    assert set(index.by_name) == {"public", "_hidden"}


def test_dependency_graph_ignores_stdlib_and_node_builtins() -> None:
    files = [
        SemanticFile(
            path="app.py",
            language="python",
            imports=[ImportEntry(source="os.path"), ImportEntry(source="yaml")],
        ),
        SemanticFile(
            path="main.ts",
            language="typescript",
            imports=[ImportEntry(source="node:path"), ImportEntry(source="lodash/fp")],
        ),
    ]
    modules = [
        ModuleRelation(source="main.ts", target="./x", kind="import"),
        ModuleRelation(source="main.ts", target="lodash/fp", kind="import"),
    ]

    graph = build_dependency_graph(files, modules, {"lodash": "4.17.21"})

    assert [(dep.name, dep.version) for dep in graph.external] == [
        ("yaml", "unknown"),
        ("lodash", "4.17.21"),
    ]
    assert [relation.target for relation in graph.internal] == ["./x"]


def test_package_name_rules() -> None:
    assert package_name("@scope/pkg/sub") == "@scope/pkg"
    assert package_name("lodash/fp") == "lodash"
    assert package_name("google.protobuf", "python") == "google"
