"""Tests for the local documentation index."""

from __future__ import annotations

from pathlib import Path

from ontogen.domain.docs import (
    build_cross_references,
    build_documentation_index,
    collect_doc_files,
    extract_code_languages,
    extract_headings,
    extract_title,
    infer_doc_type,
)
from ontogen.models import SymbolIndex, SymbolLocation


def _symbols(*names: str) -> SymbolIndex:
    return SymbolIndex(
        by_name={
            name: [SymbolLocation(file=f"src/{name.lower()}.ts", line=1, kind="class")]
            for name in names
        },
        total_count=len(names),
    )


def test_infer_doc_type_heuristics() -> None:
    assert infer_doc_type("docs/db.md", "CREATE TABLE users (id int);") == "schema"
    assert infer_doc_type("docs/api.yaml", "openapi: 3.0.0\n") == "api-spec"
    assert infer_doc_type("docs/adr/0001-use-postgres.md", "# Use Postgres") == "adr"
    assert infer_doc_type("docs/adr-002.md", "text") == "adr"
    assert infer_doc_type("docs/notes.md", "# Title\n## Status\nAccepted\n") == "adr"
    assert infer_doc_type("docs/incident-runbook.md", "") == "runbook"
    assert infer_doc_type("docs/ops.md", "## Rollback\nsteps") == "runbook"
    assert infer_doc_type("docs/getting-started.md", "") == "guide"
    assert infer_doc_type("docs/api-reference.md", "") == "reference"
    assert infer_doc_type("docs/settings.yml", "debug: true\n") == "config"
    assert infer_doc_type("docs/roadmap.md", "# Roadmap") == "other"


def test_headings_and_code_languages_skip_fenced_blocks() -> None:
    content = (
        "# Title\n"
        "Intro\n"
        "```bash\n"
        "# not a heading\n"
        "```\n"
        "## Usage\n"
        "```ts\n"
        "const a = 1;\n"
        "```\n"
        "```bash\n"
        "echo hi\n"
        "```\n"
    )

    assert extract_headings(content) == ["Title", "Usage"]
    assert extract_code_languages(content) == ["bash", "ts"]
    assert extract_title(content, "docs/x.md") == "Title"
    assert extract_title("no heading", "docs/setup-notes.md") == "setup-notes"


def test_cross_reference_confidence_levels() -> None:
    documents = {
        "docs/a.md": "Use `UserService` to load users. UserService is cached.",
        "docs/b.md": "The Invoice model and the Invoice table.",
        "docs/c.md": "An Order is created. Orders are kept. Ab is short.",
    }

    references = build_cross_references(documents, _symbols("UserService", "Invoice", "Order", "Ab"))

    summary = {(ref.doc_path, ref.symbol_name): ref.confidence for ref in references}
    assert summary == {
        ("docs/a.md", "UserService"): "high",
        ("docs/b.md", "Invoice"): "medium",
        ("docs/c.md", "Order"): "low",
    }
    assert references[0].symbol_file == "src/userservice.ts"


def test_collect_doc_files_limits_depth_and_type(tmp_path: Path) -> None:
    docs = tmp_path / "docs"
    for relative in ("a.md", "b.txt", "img.png", ".hidden.md", "x/y/z.md", "x/y/z/deep.md"):
        path = docs / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("text", encoding="utf-8")

    files = collect_doc_files(docs)

    assert [path.relative_to(docs).as_posix() for path in files] == ["a.md", "b.txt", "x/y/z.md"]
    assert len(collect_doc_files(docs, limit=1)) == 1


def test_build_documentation_index_without_docs(tmp_path: Path) -> None:
    assert build_documentation_index(tmp_path) is None


def test_build_documentation_index_with_summaries(project_builder) -> None:
    project_builder.write(
        {
            "docs/guide.md": """
                # Getting Started

                Call `Billing` to charge customers.

                ## Install
            """,
            "docs/config.yaml": "# comment\nport: 8080\n",
            "docs/broken.md": "# Broken\n",
        }
    )
    calls: list[tuple[str, str]] = []

    def summarize(path: str, body: str):
        calls.append((path, body))
        if path.endswith("broken.md"):
            raise RuntimeError("AI offline")
        return "Summary of " + path, ["billing"], ["Billing", "Billing", "Ledger"]

    index = build_documentation_index(project_builder.path(), _symbols("Billing"), summarize)

    assert index is not None
    assert index.docs_root == "docs"
    assert index.total_files == 3
    documents = {document.path: document for document in index.documents}
    guide = documents["docs/guide.md"]
    assert guide.title == "Getting Started"
    assert guide.headings == ["Getting Started", "Install"]
    assert guide.summary == "Summary of docs/guide.md"
    assert guide.related_symbols == ["Billing", "Ledger"]
    config = documents["docs/config.yaml"]
    assert config.doc_type == "config"
    assert config.title == "config"
    assert config.headings == []
    broken = documents["docs/broken.md"]
    assert broken.summary == ""
    assert [path for path, _ in calls] == ["docs/broken.md", "docs/config.yaml", "docs/guide.md"]
    assert [(ref.doc_path, ref.confidence) for ref in index.cross_references] == [
        ("docs/guide.md", "high")
    ]
