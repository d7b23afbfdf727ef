"""Tests for the structure layer scanner."""

from __future__ import annotations

from pathlib import Path

import pytest

from ontogen.models import IncrementalChange
from ontogen.structure_scanner import (
    StructureScanner,
    detect_language,
    extract_module_relations,
    is_excluded,
    iter_files,
    load_ignore_patterns,
    merge_exclude_patterns,
)


def _file_paths(layer) -> list[str]:
    return [node.path for node in iter_files(layer.tree)]


def test_scan_collects_files_stats_and_relations(project_builder) -> None:
    project_builder.write(
        {
            "src/index.ts": """
                import { helper } from './util';
                export { thing } from './thing';
                const lazy = import('./lazy');
            """,
            "src/util.ts": "export function helper() {}\n",
            "src/thing.ts": "export const thing = 1;\n",
            "README.md": "# Demo\n",
        }
    )

    layer = project_builder.scan()

    assert layer.stats.total_files == 4
    assert layer.stats.total_dirs == 1
    assert layer.stats.by_language == {"typescript": 3, "markdown": 1}
    assert layer.stats.by_extension == {".ts": 3, ".md": 1}
    kinds = {(relation.target, relation.kind) for relation in layer.modules}
    assert kinds == {
        ("./util", "import"),
        ("./thing", "reexport"),
        ("./lazy", "dynamic-import"),
    }
    assert all(relation.source == "src/index.ts" for relation in layer.modules)


def test_scan_orders_children_by_name(project_builder) -> None:
    project_builder.write({"b.py": "", "a.py": "", "lib/c.py": ""})

    layer = project_builder.scan()

    assert [child.name for child in layer.tree.children] == ["a.py", "b.py", "lib"]
    assert layer.tree.path == "."
    assert _file_paths(layer) == ["a.py", "b.py", "lib/c.py"]


def test_scan_applies_exclude_patterns_by_prefix(project_builder) -> None:
    project_builder.write(
        {
            "node_modules/pkg/index.js": "",
            "node_modules_backup/x.js": "",
            "src/app.js": "",
            ".git/HEAD": "ref",
        }
    )

    layer = project_builder.scan()

    assert _file_paths(layer) == ["src/app.js"]


def test_scan_merges_ignore_file_patterns(project_builder) -> None:
    project_builder.write(
        {
            ".gitignore": "generated/\n*.log\n!keep\nsecrets\n",
            "generated/out.ts": "",
            "secrets/key.txt": "",
            "src/main.py": "",
        }
    )

    layer = project_builder.scan()

    assert _file_paths(layer) == ["src/main.py"]


def test_scan_respects_max_depth(project_builder) -> None:
    project_builder.write({"a/b/c/deep.py": "", "a/top.py": ""})

    layer = StructureScanner().scan(project_builder.path(), max_depth=2)

    assert _file_paths(layer) == ["a/top.py"]
    b_dir = layer.tree.children[0].children[0]
    assert b_dir.name == "b"
    assert b_dir.children == []


def test_scan_skips_output_directory(project_builder) -> None:
    project_builder.write({"reports/ontology/ONTOLOGY-INDEX.md": "", "src/a.py": ""})

    layer = StructureScanner().scan(project_builder.path(), skip_paths=["reports/ontology"])

    assert _file_paths(layer) == ["src/a.py"]


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        StructureScanner().scan(tmp_path / "missing")


def test_scan_of_empty_project_is_valid(project_builder) -> None:
    layer = project_builder.scan()

    assert layer.stats.total_files == 0
    assert layer.stats.total_dirs == 0
    assert layer.modules == []
    assert layer.tree.children == []


def test_file_info_reports_size_and_lines(project_builder) -> None:
    project_builder.write({"notes.txt": "one\ntwo\n"})

    layer = project_builder.scan()
    info = layer.tree.children[0].file_info

    assert info is not None
    assert info.size_bytes == 8
    assert info.line_count == 3
    assert info.extension == ".txt"
    assert info.language is None


def test_python_relations_cover_from_and_plain_imports() -> None:
    content = (
        "from .models import Thing\n"
        "from pkg.sub import *\n"
        "import os, json as j\n"
        "mod = importlib.import_module('plugins.extra')\n"
    )

    relations = extract_module_relations("app/main.py", content, "python")

    assert [(relation.target, relation.kind) for relation in relations] == [
        (".models", "import"),
        ("pkg.sub", "reexport"),
        ("os", "import"),
        ("json", "import"),
        ("plugins.extra", "dynamic-import"),
    ]


def test_relations_are_not_extracted_for_other_languages() -> None:
    assert extract_module_relations("main.go", 'import "fmt"', "go") == []


def test_update_incremental_reextracts_changed_files(project_builder) -> None:
    project_builder.write(
        {
            "src/a.ts": "import { b } from './b';\n",
            "src/b.ts": "export const b = 1;\n",
        }
    )
    scanner = StructureScanner()
    existing = project_builder.scan()

    project_builder.write(
        {
            "src/a.ts": "import { c } from './c';\n",
            "src/c.ts": "import { b } from './b';\nexport const c = b;\n",
        }
    )
    changes = IncrementalChange(added=["src/c.ts"], modified=["src/a.ts"])
    updated = scanner.update_incremental(project_builder.path(), existing, changes)

    edges = sorted((relation.source, relation.target) for relation in updated.modules)
    assert edges == [("src/a.ts", "./c"), ("src/c.ts", "./b")]
    assert updated.stats.total_files == 3


def test_update_incremental_drops_relations_of_deleted_files(project_builder) -> None:
    project_builder.write(
        {
            "src/a.ts": "import { b } from './b';\n",
            "src/b.ts": "import { a } from './a';\n",
        }
    )
    scanner = StructureScanner()
    existing = project_builder.scan()
    project_builder.remove(["src/a.ts"])

    updated = scanner.update_incremental(
        project_builder.path(), existing, IncrementalChange(deleted=["src/a.ts"])
    )

    assert [(relation.source, relation.target) for relation in updated.modules] == [
        ("src/b.ts", "./a")
    ]
    assert _file_paths(updated) == ["src/b.ts"]


def test_update_incremental_falls_back_to_full_scan_past_threshold(project_builder) -> None:
    project_builder.write({"a.py": "import os\n", "b.py": "import sys\n"})
    existing = project_builder.scan()
    existing.modules = []

    changes = IncrementalChange(modified=["a.py", "b.py"])
    updated = StructureScanner(rescan_threshold=1).update_incremental(
        project_builder.path(), existing, changes
    )

    assert sorted(relation.target for relation in updated.modules) == ["os", "sys"]


def test_helpers() -> None:
    assert detect_language("src/App.TSX") == "typescript"
    assert detect_language("Makefile") is None
    assert is_excluded("distribution", ["dist"]) is True
    assert is_excluded("src", ["dist"]) is False
    assert merge_exclude_patterns(["a", "b"], ["b", "c", ""]) == ["a", "b", "c"]


def test_load_ignore_patterns_keeps_simple_names(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text(
        "# comment\n\nlogs/\n/root-only\n*.pyc\n!important\ncache\n", encoding="utf-8"
    )

    assert load_ignore_patterns(tmp_path) == ["logs", "cache"]
    assert load_ignore_patterns(tmp_path / "missing") == []
