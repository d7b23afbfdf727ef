"""Prompt templates and response coercion for the domain analysis steps.

Each step asks for a JSON object. The ``coerce_*`` helpers accept whatever
:func:`ontogen.llm.parse_json_response` produced (possibly ``None``) and keep
only well-formed entries, so a malformed reply degrades a single field.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models import (
    AggregateRootInsight,
    ArchitectureInsight,
    BoundedContextInsight,
    ConventionInsight,
    DDDInsight,
    GlossaryEntry,
    PatternInsight,
    SchemaConsistencyInsight,
    SchemaInconsistency,
    TestCoverageEstimate,
    TestGap,
    TestMaturityInsight,
)

NONE_MARKER = "(none)"
SUMMARY_FALLBACK_CHARS = 500

CONVENTION_CATEGORIES = ("naming", "structure", "error-handling", "testing", "other")
MATURITY_LEVELS = ("none", "minimal", "basic", "moderate", "comprehensive")
GAP_PRIORITIES = ("high", "medium", "low")
SEVERITIES = ("error", "warning", "info")
TYPE_STRATEGIES = ("centralized", "distributed", "mixed", "unknown")

PROJECT_SUMMARY_PROMPT = """\
Below are the directory structure and the package manifest of a software project.
Summarise what the project does in one to three sentences.
Respond with JSON shaped as {{"summary": "..."}}.

## Directory tree
{tree}

## Manifest
{manifest}"""

ARCHITECTURE_PROMPT = """\
Below are the entry point files and the external dependencies of a project.
Describe the architecture style, its layers and the key design decisions.
Respond with JSON:
{{
  "style": "architecture style (layered, modular, microservices, ...)",
  "layers": ["layer"],
  "keyDecisions": ["decision"],
  "entryPoints": ["file"]
}}

## Entry points
{entry_points}

## External dependencies
{dependencies}"""

PATTERNS_PROMPT = """\
Below is a sample of exported symbol signatures from a project.
Identify recurring design patterns and coding conventions.
Respond with JSON:
{{
  "patterns": [
    {{"name": "pattern", "description": "...", "files": ["file"], "example": "..."}}
  ],
  "conventions": [
    {{"category": "naming|structure|error-handling|testing|other", "rule": "...", "evidence": ["..."]}}
  ]
}}

## Symbol samples
{symbols}"""

GLOSSARY_PROMPT = """\
Below is the directory structure of a project.
Extract the key domain terms and concepts it uses.
Respond with JSON:
{{
  "glossary": [
    {{"term": "...", "definition": "...", "context": "where it is used"}}
  ]
}}

## Directory tree
{tree}"""

DDD_PROMPT = """\
Below are class and interface signatures and module relations from a project.
Analyse it from a domain-driven design perspective.
Respond with JSON:
{{
  "boundedContexts": [{{"name": "...", "modules": ["path"], "description": "..."}}],
  "aggregateRoots": [{{"name": "...", "file": "path", "entities": ["..."], "valueObjects": ["..."]}}],
  "domainServices": ["..."],
  "repositories": ["..."],
  "valueObjects": ["..."],
  "domainEvents": ["..."]
}}

## Classes
{classes}

## Interfaces
{interfaces}

## Module relations
{relations}"""

TEST_MATURITY_PROMPT = """\
Below are the test files, the package manifest and symbols declared in test files.
Assess the maturity of the test suite.
Respond with JSON:
{{
  "overallLevel": "none|minimal|basic|moderate|comprehensive",
  "testFramework": "framework name or null",
  "testPatterns": ["..."],
  "coverage": {{"testedModules": ["..."], "untestedModules": ["..."], "ratio": "tested/total"}},
  "gaps": [{{"area": "...", "description": "...", "priority": "high|medium|low"}}],
  "recommendations": ["..."]
}}

## Test files
{test_files}

## Manifest
{manifest}

## Test symbols
{test_symbols}"""

SCHEMA_PROMPT = """\
Below are interface and type alias signatures plus the external dependencies of a project.
Evaluate how consistently types and schemas are defined.
Respond with JSON:
{{
  "typeStrategy": "centralized|distributed|mixed|unknown",
  "sharedTypes": ["..."],
  "inconsistencies": [{{"type": "...", "description": "...", "files": ["path"], "severity": "error|warning|info"}}],
  "recommendations": ["..."]
}}

## Types
{types}

## External dependencies
{dependencies}"""

DOCUMENT_PROMPT = """\
Below is a project document ({path}).
Summarise it and list the concepts and code symbols it talks about.
Respond with JSON:
{{"summary": "...", "keyConcepts": ["..."], "relatedSymbols": ["..."]}}

## Document
{body}"""


def project_summary_prompt(tree: str, manifest: str) -> str:
    return PROJECT_SUMMARY_PROMPT.format(tree=tree, manifest=manifest or "{}")


def architecture_prompt(entry_points: Sequence[str], dependencies: Sequence[str]) -> str:
    return ARCHITECTURE_PROMPT.format(
        entry_points=_lines(entry_points), dependencies=", ".join(dependencies) or NONE_MARKER
    )


def patterns_prompt(symbols: str) -> str:
    return PATTERNS_PROMPT.format(symbols=symbols or NONE_MARKER)


def glossary_prompt(tree: str) -> str:
    return GLOSSARY_PROMPT.format(tree=tree)


def ddd_prompt(classes: str, interfaces: str, relations: str) -> str:
    return DDD_PROMPT.format(
        classes=classes or NONE_MARKER,
        interfaces=interfaces or NONE_MARKER,
        relations=relations or NONE_MARKER,
    )


def test_maturity_prompt(test_files: Sequence[str], manifest: str, test_symbols: str) -> str:
    return TEST_MATURITY_PROMPT.format(
        test_files=_lines(test_files),
        manifest=manifest or "{}",
        test_symbols=test_symbols or NONE_MARKER,
    )


def schema_prompt(types: str, dependencies: Sequence[str]) -> str:
    return SCHEMA_PROMPT.format(
        types=types or NONE_MARKER, dependencies=", ".join(dependencies) or NONE_MARKER
    )


def document_prompt(path: str, body: str) -> str:
    return DOCUMENT_PROMPT.format(path=path, body=body)


def coerce_summary(parsed: Any, raw: str) -> str:
    if isinstance(parsed, dict) and isinstance(parsed.get("summary"), str):
        return parsed["summary"].strip()
    return raw.strip()[:SUMMARY_FALLBACK_CHARS]


def coerce_architecture(parsed: Any, entry_points: Sequence[str]) -> ArchitectureInsight:
    data = _mapping(parsed)
    return ArchitectureInsight(
        style=_text(data.get("style")) or "unknown",
        layers=_str_list(data.get("layers")),
        key_decisions=_str_list(data.get("keyDecisions")),
        entry_points=_str_list(data.get("entryPoints")) or list(entry_points),
    )


def coerce_patterns(parsed: Any) -> Tuple[List[PatternInsight], List[ConventionInsight]]:
    data = _mapping(parsed)
    patterns: List[PatternInsight] = []
    for item in _dicts(data.get("patterns")):
        name = _text(item.get("name"))
        if not name:
            continue
        patterns.append(
            PatternInsight(
                name=name,
                description=_text(item.get("description")) or "",
                files=_str_list(item.get("files")),
                example=_text(item.get("example")),
            )
        )
    conventions: List[ConventionInsight] = []
    for item in _dicts(data.get("conventions")):
        rule = _text(item.get("rule"))
        if not rule:
            continue
        category = _text(item.get("category")) or "other"
        conventions.append(
            ConventionInsight(
                category=category if category in CONVENTION_CATEGORIES else "other",
                rule=rule,
                evidence=_str_list(item.get("evidence")),
            )
        )
    return patterns, conventions


def coerce_glossary(parsed: Any) -> List[GlossaryEntry]:
    entries: List[GlossaryEntry] = []
    for item in _dicts(_mapping(parsed).get("glossary")):
        term = _text(item.get("term"))
        if not term:
            continue
        entries.append(
            GlossaryEntry(
                term=term,
                definition=_text(item.get("definition")) or "",
                context=_text(item.get("context")) or "",
            )
        )
    return entries


def coerce_ddd(parsed: Any) -> DDDInsight:
    data = _mapping(parsed)
    contexts = [
        BoundedContextInsight(
            name=name,
            modules=_str_list(item.get("modules")),
            description=_text(item.get("description")) or "",
        )
        for item in _dicts(data.get("boundedContexts"))
        if (name := _text(item.get("name")))
    ]
    roots = [
        AggregateRootInsight(
            name=name,
            file=_text(item.get("file")) or "",
            entities=_str_list(item.get("entities")),
            value_objects=_str_list(item.get("valueObjects")),
        )
        for item in _dicts(data.get("aggregateRoots"))
        if (name := _text(item.get("name")))
    ]
    return DDDInsight(
        bounded_contexts=contexts,
        aggregate_roots=roots,
        domain_services=_str_list(data.get("domainServices")),
        repositories=_str_list(data.get("repositories")),
        value_objects=_str_list(data.get("valueObjects")),
        domain_events=_str_list(data.get("domainEvents")),
    )


def coerce_test_maturity(parsed: Any) -> TestMaturityInsight:
    data = _mapping(parsed)
    level = _text(data.get("overallLevel")) or "none"
    coverage_data = _mapping(data.get("coverage"))
    coverage = TestCoverageEstimate(
        tested_modules=_str_list(coverage_data.get("testedModules")),
        untested_modules=_str_list(coverage_data.get("untestedModules")),
        ratio=_text(coverage_data.get("ratio")) or "0/0",
    )
    gaps: List[TestGap] = []
    for item in _dicts(data.get("gaps")):
        area = _text(item.get("area"))
        if not area:
            continue
        priority = _text(item.get("priority")) or "medium"
        gaps.append(
            TestGap(
                area=area,
                description=_text(item.get("description")) or "",
                priority=priority if priority in GAP_PRIORITIES else "medium",
            )
        )
    return TestMaturityInsight(
        overall_level=level if level in MATURITY_LEVELS else "none",
        test_framework=_text(data.get("testFramework")),
        test_patterns=_str_list(data.get("testPatterns")),
        coverage=coverage,
        gaps=gaps,
        recommendations=_str_list(data.get("recommendations")),
    )


def coerce_schema_consistency(parsed: Any) -> SchemaConsistencyInsight:
    data = _mapping(parsed)
    strategy = _text(data.get("typeStrategy")) or "unknown"
    inconsistencies: List[SchemaInconsistency] = []
    for item in _dicts(data.get("inconsistencies")):
        kind = _text(item.get("type"))
        if not kind:
            continue
        severity = _text(item.get("severity")) or "info"
        inconsistencies.append(
            SchemaInconsistency(
                type=kind,
                description=_text(item.get("description")) or "",
                files=_str_list(item.get("files")),
                severity=severity if severity in SEVERITIES else "info",
            )
        )
    return SchemaConsistencyInsight(
        type_strategy=strategy if strategy in TYPE_STRATEGIES else "unknown",
        shared_types=_str_list(data.get("sharedTypes")),
        inconsistencies=inconsistencies,
        recommendations=_str_list(data.get("recommendations")),
    )


def coerce_document(parsed: Any) -> Tuple[str, List[str], List[str]]:
    """Return ``(summary, key_concepts, related_symbols)`` for one document."""
    data = _mapping(parsed)
    return (
        _text(data.get("summary")) or "",
        _str_list(data.get("keyConcepts")),
        _str_list(data.get("relatedSymbols")),
    )


def _lines(values: Sequence[str]) -> str:
    return "\n".join(values) or NONE_MARKER


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]
