"""Markdown rendering for the ontology documents."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Sequence, Tuple

from ..models import (
    AgentFileInfo,
    DirectoryNode,
    DomainLayer,
    OntologyData,
    OntologyIndexData,
    OntologyMetadata,
    SemanticsLayer,
    StructureLayer,
    SymbolLocation,
)

STRUCTURE_DOCUMENT = "ONTOLOGY-STRUCTURE.md"
SEMANTICS_DOCUMENT = "ONTOLOGY-SEMANTICS.md"
DOMAIN_DOCUMENT = "ONTOLOGY-DOMAIN.md"
INDEX_DOCUMENT = "ONTOLOGY-INDEX.md"

MODULE_ROW_LIMIT = 50
GRAPH_EDGE_LIMIT = 50
INTERFACE_ROW_LIMIT = 30
FUNCTION_ROW_LIMIT = 30
CONSTANT_ROW_LIMIT = 20
IMPORT_ROW_LIMIT = 30

_NODE_ID_RE = re.compile(r"[^A-Za-z0-9_]")

QUICK_REFERENCE: Tuple[Tuple[str, str], ...] = (
    ("Work plan", "plan.md"),
    ("TODO tracking", "todo.md"),
    ("Decisions and context", "context.md"),
    ("Team memory", "memory.md"),
)


def render_meta_header(generated_at: str, version: str) -> str:
    return f"> Generated: {generated_at} | ontogen v{version}"


def render_directory_tree(node: DirectoryNode, depth: int = 0) -> List[str]:
    suffix = "/" if node.type == "directory" else ""
    lines = [f"{'  ' * depth}{node.name}{suffix}"]
    for child in node.children:
        lines.extend(render_directory_tree(child, depth + 1))
    return lines


def render_structure(layer: StructureLayer, metadata: OntologyMetadata) -> str:
    lines = _document_header("ONTOLOGY-STRUCTURE", metadata)

    lines += ["## Overview", ""]
    lines += _table(
        ("Item", "Value"),
        [
            ("Root directory", f"`{layer.root_dir}`"),
            ("Total files", _num(layer.stats.total_files)),
            ("Total directories", _num(layer.stats.total_dirs)),
            ("Module relations", _num(len(layer.modules))),
        ],
    )
    lines.append("")

    lines += ["## Statistics", "", "### Files by language", ""]
    lines += _table(
        ("Language", "Files"),
        [(language, _num(count)) for language, count in _by_count(layer.stats.by_language)],
    )
    lines += ["", "### Files by extension", ""]
    lines += _table(
        ("Extension", "Files"),
        [(f"`{extension}`", _num(count)) for extension, count in _by_count(layer.stats.by_extension)],
    )
    lines.append("")

    lines += ["## Directory Tree", "", "```"]
    lines += render_directory_tree(layer.tree)
    lines += ["```", ""]

    lines += ["## Module Relations", ""]
    if not layer.modules:
        lines.append("_(no module relations)_")
    else:
        lines += _table(
            ("Source", "Target", "Type"),
            [
                (f"`{relation.source}`", f"`{relation.target}`", relation.kind)
                for relation in layer.modules[:MODULE_ROW_LIMIT]
            ],
        )
        if len(layer.modules) > MODULE_ROW_LIMIT:
            lines += ["", f"_Showing {MODULE_ROW_LIMIT} of {_num(len(layer.modules))} relations_"]
    lines.append("")
    return "\n".join(lines)


def render_semantics(layer: SemanticsLayer, metadata: OntologyMetadata) -> str:
    lines = _document_header("ONTOLOGY-SEMANTICS", metadata)

    lines += ["## Overview", ""]
    lines += _table(
        ("Item", "Value"),
        [
            ("Analysed files", _num(len(layer.files))),
            ("Total symbols", _num(layer.symbols.total_count)),
            ("Exported symbols", _num(layer.symbols.exported_count)),
            ("Internal dependencies", _num(len(layer.dependencies.internal))),
            ("External packages", _num(len(layer.dependencies.external))),
        ],
    )
    lines.append("")

    for title, kind, limit in (
        ("Interfaces", "interface", INTERFACE_ROW_LIMIT),
        ("Functions", "function", FUNCTION_ROW_LIMIT),
        ("Constants", "constant", CONSTANT_ROW_LIMIT),
    ):
        rows = _symbols_of_kind(layer.symbols.by_name, kind)[:limit]
        if not rows:
            continue
        lines += [f"## Symbol Index \u2014 {title}", ""]
        lines += _table(
            ("Name", "File", "Line"),
            [(f"`{name}`", f"`{location.file}`", str(location.line)) for name, location in rows],
        )
        lines.append("")

    lines += ["## Dependency Graph", ""]
    lines += _dependency_graph(layer)
    lines.append("")

    lines += ["## Import Summary", ""]
    lines += _table(
        ("Package", "Version", "Used by"),
        [
            (f"`{dep.name}`", dep.version, _num(len(dep.used_by)))
            for dep in layer.dependencies.external[:IMPORT_ROW_LIMIT]
        ],
    )
    lines.append("")

    lines += ["## Annotations", ""]
    summary = layer.annotation_summary
    if summary is None or summary.total == 0:
        lines.append("_(no annotations)_")
    else:
        lines += _table(
            ("Tag", "Count"),
            [(f"@MX:{tag}", _num(count)) for tag, count in sorted(summary.by_tag.items())],
        )
        if summary.top_anchors:
            lines += ["", "### Top anchors", ""]
            lines += _table(
                ("Symbol", "File", "Fan-in"),
                [
                    (f"`{anchor.symbol}`", f"`{anchor.file}`", str(anchor.fan_in))
                    for anchor in summary.top_anchors
                ],
            )
        if summary.warnings:
            lines += ["", "### Warnings", ""]
            lines += _table(
                ("Symbol", "File", "Reason"),
                [
                    (f"`{warning.symbol}`", f"`{warning.file}`", warning.reason)
                    for warning in summary.warnings
                ],
            )
    lines.append("")
    return "\n".join(lines)


def render_domain(layer: DomainLayer, metadata: OntologyMetadata) -> str:
    lines = _document_header("ONTOLOGY-DOMAIN", metadata)

    lines += ["## Project Summary", "", layer.project_summary or "_(no summary)_", ""]

    architecture = layer.architecture
    lines += ["## Architecture", "", f"**Style**: {architecture.style}", ""]
    lines += _bullets("**Layers**:", architecture.layers)
    lines += _bullets("**Key decisions**:", architecture.key_decisions)
    lines += _bullets("**Entry points**:", [f"`{entry}`" for entry in architecture.entry_points])

    lines += ["## Detected Patterns", ""]
    if not layer.patterns:
        lines += ["_(no patterns detected)_", ""]
    for pattern in layer.patterns:
        lines += [f"### {pattern.name}", ""]
        if pattern.description:
            lines += [pattern.description, ""]
        lines += _bullets("**Files**:", [f"`{path}`" for path in pattern.files])
        if pattern.example:
            lines += ["**Example**:", "```", pattern.example, "```", ""]

    lines += ["## Coding Conventions", ""]
    if not layer.conventions:
        lines.append("_(no conventions)_")
    else:
        lines += _table(
            ("Category", "Rule", "Evidence"),
            [
                (convention.category, convention.rule, ", ".join(convention.evidence))
                for convention in layer.conventions
            ],
        )
    lines.append("")

    lines += ["## Glossary", ""]
    if not layer.glossary:
        lines.append("_(no glossary)_")
    else:
        lines += _table(
            ("Term", "Definition", "Context"),
            [(f"**{entry.term}**", entry.definition, entry.context) for entry in layer.glossary],
        )
    lines.append("")

    if layer.ddd is not None:
        ddd = layer.ddd
        lines += ["## Domain-Driven Design", ""]
        if ddd.bounded_contexts:
            lines += ["### Bounded Contexts", ""]
            lines += _table(
                ("Context", "Modules", "Description"),
                [
                    (context.name, ", ".join(f"`{module}`" for module in context.modules), context.description)
                    for context in ddd.bounded_contexts
                ],
            )
            lines.append("")
        if ddd.aggregate_roots:
            lines += ["### Aggregate Roots", ""]
            lines += _table(
                ("Aggregate", "File", "Entities", "Value Objects"),
                [
                    (
                        root.name,
                        f"`{root.file}`" if root.file else "",
                        ", ".join(root.entities),
                        ", ".join(root.value_objects),
                    )
                    for root in ddd.aggregate_roots
                ],
            )
            lines.append("")
        lines += _bullets("**Domain services**:", ddd.domain_services)
        lines += _bullets("**Repositories**:", ddd.repositories)
        lines += _bullets("**Value objects**:", ddd.value_objects)
        lines += _bullets("**Domain events**:", ddd.domain_events)

    if layer.test_maturity is not None:
        maturity = layer.test_maturity
        lines += ["## Test Maturity", ""]
        lines += _table(
            ("Item", "Value"),
            [
                ("Overall level", maturity.overall_level),
                ("Framework", maturity.test_framework or "unknown"),
                ("Coverage estimate", maturity.coverage.ratio),
            ],
        )
        lines.append("")
        lines += _bullets("**Test patterns**:", maturity.test_patterns)
        lines += _bullets(
            "**Untested modules**:", [f"`{module}`" for module in maturity.coverage.untested_modules]
        )
        if maturity.gaps:
            lines += ["### Gaps", ""]
            lines += _table(
                ("Area", "Priority", "Description"),
                [(gap.area, gap.priority, gap.description) for gap in maturity.gaps],
            )
            lines.append("")
        lines += _bullets("**Recommendations**:", maturity.recommendations)

    if layer.schema_consistency is not None:
        schema = layer.schema_consistency
        lines += ["## Schema Consistency", "", f"**Type strategy**: {schema.type_strategy}", ""]
        lines += _bullets("**Shared types**:", [f"`{name}`" for name in schema.shared_types])
        if schema.inconsistencies:
            lines += ["### Inconsistencies", ""]
            lines += _table(
                ("Type", "Severity", "Description", "Files"),
                [
                    (
                        issue.type,
                        issue.severity,
                        issue.description,
                        ", ".join(f"`{path}`" for path in issue.files),
                    )
                    for issue in schema.inconsistencies
                ],
            )
            lines.append("")
        lines += _bullets("**Recommendations**:", schema.recommendations)

    if layer.documentation_index is not None:
        index = layer.documentation_index
        lines += [
            "## Documentation",
            "",
            f"**Docs root**: `{index.docs_root}` ({_num(index.total_files)} files)",
            "",
        ]
        if index.documents:
            lines += _table(
                ("Document", "Type", "Title", "Summary"),
                [
                    (f"`{document.path}`", document.doc_type, document.title, document.summary)
                    for document in index.documents
                ],
            )
            lines.append("")
        if index.cross_references:
            lines += ["### Cross References", ""]
            lines += _table(
                ("Document", "Symbol", "Defined in", "Confidence"),
                [
                    (
                        f"`{reference.doc_path}`",
                        f"`{reference.symbol_name}`",
                        f"`{reference.symbol_file}`",
                        reference.confidence,
                    )
                    for reference in index.cross_references
                ],
            )
            lines.append("")

    return "\n".join(lines)


def render_ontology(data: OntologyData) -> Dict[str, str]:
    """Render the three layer documents, with a placeholder for missing layers."""
    metadata = data.metadata
    return {
        STRUCTURE_DOCUMENT: render_structure(data.structure, metadata)
        if data.structure is not None
        else _placeholder("ONTOLOGY-STRUCTURE"),
        SEMANTICS_DOCUMENT: render_semantics(data.semantics, metadata)
        if data.semantics is not None
        else _placeholder("ONTOLOGY-SEMANTICS"),
        DOMAIN_DOCUMENT: render_domain(data.domain, metadata)
        if data.domain is not None
        else _placeholder("ONTOLOGY-DOMAIN"),
    }


def render_index(data: OntologyIndexData) -> str:
    lines = [
        "# ONTOLOGY-INDEX",
        "",
        render_meta_header(data.generated_at, data.tool_version),
        "",
        "Index of the agent knowledge files for this project.",
        "",
    ]
    lines += ["## Agent Files (manually edited)", ""]
    lines += _file_table(data.agent_files)
    lines += ["", "## Ontology Files (generated)", ""]
    lines += _file_table(data.ontology_files)
    lines += ["", "## Quick Reference", ""]
    lines += _table(
        ("Purpose", "File"),
        [(purpose, f"`{file.path}`") for purpose, file in _quick_reference(data)],
    )
    lines.append("")
    return "\n".join(lines)


def _quick_reference(data: OntologyIndexData) -> List[Tuple[str, AgentFileInfo]]:
    entries: List[Tuple[str, AgentFileInfo]] = []
    by_name = {file.path.rsplit("/", 1)[-1]: file for file in data.agent_files}
    for purpose, name in QUICK_REFERENCE:
        if name in by_name:
            entries.append((purpose, by_name[name]))
    for file in data.ontology_files:
        if not file.path.endswith(INDEX_DOCUMENT):
            entries.append((file.description, file))
    return entries


def _document_header(title: str, metadata: OntologyMetadata) -> List[str]:
    return [f"# {title}", "", render_meta_header(metadata.generated_at, metadata.tool_version), ""]


def _placeholder(title: str) -> str:
    return f"# {title}\n\n_(layer disabled or build failed)_\n"


def _file_table(files: Sequence[AgentFileInfo]) -> List[str]:
    return _table(
        ("File", "Status", "Managed", "Description"),
        [(f"`{file.path}`", file.status, file.managed, file.description) for file in files],
    )


def _dependency_graph(layer: SemanticsLayer) -> List[str]:
    internal = layer.dependencies.internal
    if not internal:
        return ["_(no internal dependencies)_"]
    lines = ["```mermaid", "graph LR"]
    seen = set()
    for relation in internal[:GRAPH_EDGE_LIMIT]:
        source_id = _NODE_ID_RE.sub("_", relation.source)
        target_id = _NODE_ID_RE.sub("_", relation.target)
        for node_id, label in ((source_id, relation.source), (target_id, relation.target)):
            if node_id not in seen:
                seen.add(node_id)
                lines.append(f'  {node_id}["{label.rsplit("/", 1)[-1]}"]')
        lines.append(f"  {source_id} --> {target_id}")
    if len(internal) > GRAPH_EDGE_LIMIT:
        lines.append(f"  %% showing {GRAPH_EDGE_LIMIT} of {_num(len(internal))} edges")
    lines.append("```")
    return lines


def _symbols_of_kind(
    by_name: Dict[str, List[SymbolLocation]], kind: str
) -> List[Tuple[str, SymbolLocation]]:
    rows: List[Tuple[str, SymbolLocation]] = []
    for name, locations in by_name.items():
        match = next((location for location in locations if location.kind == kind), None)
        if match is not None:
            rows.append((name, match))
    return rows


def _bullets(title: str, items: Sequence[str]) -> List[str]:
    if not items:
        return []
    return [title, *[f"- {item}" for item in items], ""]


def _table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> List[str]:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("-" * (len(header) + 2) for header in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_cell(value) for value in row) + " |")
    return lines


def _cell(value: str) -> str:
    return " ".join(str(value).split()).replace("|", "\\|")


def _by_count(counts: Dict[str, int]) -> List[Tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def _num(value: int) -> str:
    return f"{value:,}"


__all__ = [
    "DOMAIN_DOCUMENT",
    "INDEX_DOCUMENT",
    "SEMANTICS_DOCUMENT",
    "STRUCTURE_DOCUMENT",
    "render_directory_tree",
    "render_domain",
    "render_index",
    "render_meta_header",
    "render_ontology",
    "render_semantics",
    "render_structure",
]
