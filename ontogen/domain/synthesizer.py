"""AI-assisted synthesis of the domain layer."""

from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Set, Tuple

from ..config import AIConfig
from ..llm import AIClient, AIRequestError, parse_json_response
from ..logging import get_logger, record_warning
from ..manifests import read_manifest_text
from ..models import (
    BuildResult,
    DirectoryNode,
    DomainBuildContext,
    DomainLayer,
    SemanticsLayer,
    StructureLayer,
    to_dict,
)
from ..stores import DomainCacheStore
from ..structure_scanner import iter_files
from . import prompts
from .docs import build_documentation_index, collect_doc_files, find_docs_root

logger = get_logger("domain")

TREE_ENTRY_LIMIT = 50
ENTRY_POINT_LIMIT = 10
SYMBOL_SAMPLE_LIMIT = 30
EXPORTS_PER_FILE = 3
CLASS_SAMPLE_LIMIT = 40
INTERFACE_SAMPLE_LIMIT = 40
RELATION_SAMPLE_LIMIT = 30
TEST_FILE_LIMIT = 100

ENTRY_POINT_MARKERS = ("index", "main", "cli")
TEST_NAME_MARKERS = (".test.", ".spec.", "_test.", "_spec.")
TEST_NAME_PREFIXES = ("test_", "test.")

# Per-step token budgets, capped by ``max_tokens_per_request``.
SUMMARY_TOKENS = 1024
ANALYSIS_TOKENS = 2048

ClientFactory = Callable[[AIConfig], AIClient]


def compute_input_hash(structure: StructureLayer, semantics: Optional[SemanticsLayer]) -> str:
    payload = json.dumps(
        {
            "structureStats": to_dict(structure.stats),
            "moduleCount": len(structure.modules),
            "semanticsFileCount": len(semantics.files) if semantics else 0,
            "symbolCount": semantics.symbols.total_count if semantics else 0,
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def summarize_directory_tree(tree: DirectoryNode, limit: int = TREE_ENTRY_LIMIT) -> str:
    """Render at most ``limit`` tree entries as an indented listing."""
    lines: List[str] = []

    def _walk(node: DirectoryNode, depth: int) -> None:
        if len(lines) >= limit:
            return
        suffix = "/" if node.type == "directory" else ""
        lines.append(f"{'  ' * depth}{node.name}{suffix}")
        for child in node.children:
            _walk(child, depth + 1)

    _walk(tree, 0)
    if len(lines) >= limit:
        lines.append("  ... (truncated)")
    return "\n".join(lines)


def is_test_file(path: str) -> bool:
    name = PurePosixPath(path).name
    return any(marker in name for marker in TEST_NAME_MARKERS) or name.startswith(
        TEST_NAME_PREFIXES
    )


def find_entry_points(structure: StructureLayer) -> List[str]:
    found: List[str] = []
    for relation in structure.modules:
        source = relation.source
        if source in found:
            continue
        if any(marker in source for marker in ENTRY_POINT_MARKERS):
            found.append(source)
        if len(found) >= ENTRY_POINT_LIMIT:
            break
    return found


def find_test_files(structure: StructureLayer) -> List[str]:
    paths = [node.path for node in iter_files(structure.tree) if is_test_file(node.path)]
    return paths[:TEST_FILE_LIMIT]


def external_dependency_names(semantics: Optional[SemanticsLayer]) -> List[str]:
    if semantics is None:
        return []
    return [f"{dep.name}@{dep.version}" for dep in semantics.dependencies.external]


def collect_test_file_names(structure: StructureLayer) -> Set[str]:
    return {
        PurePosixPath(node.path).name
        for node in iter_files(structure.tree)
        if is_test_file(node.path)
    }


def symbol_samples(
    semantics: Optional[SemanticsLayer], names: Optional[Set[str]] = None
) -> str:
    """Sample exported symbols, optionally only from files whose basename is in ``names``."""
    if semantics is None:
        return ""
    lines: List[str] = []
    for semantic_file in semantics.files:
        if names is not None and PurePosixPath(semantic_file.path).name not in names:
            continue
        for symbol in semantic_file.exports[:EXPORTS_PER_FILE]:
            lines.append(f"{semantic_file.path}:{symbol.line} {symbol.kind} {symbol.name}")
    return "\n".join(lines[:SYMBOL_SAMPLE_LIMIT])


def class_samples(semantics: Optional[SemanticsLayer]) -> str:
    if semantics is None:
        return ""
    lines: List[str] = []
    for semantic_file in semantics.files:
        for entry in semantic_file.classes:
            signature = f"{semantic_file.path}:{entry.line} class {entry.name}"
            if entry.extends:
                signature += f" extends {entry.extends}"
            if entry.implements:
                signature += f" implements {', '.join(entry.implements)}"
            methods = [method.name for method in entry.methods]
            if methods:
                signature += f" {{ {', '.join(methods)} }}"
            lines.append(signature)
    return "\n".join(lines[:CLASS_SAMPLE_LIMIT])


def interface_samples(semantics: Optional[SemanticsLayer], include_types: bool = False) -> str:
    if semantics is None:
        return ""
    lines: List[str] = []
    for semantic_file in semantics.files:
        for entry in semantic_file.interfaces:
            props = ", ".join(
                f"{prop.name}{'?' if prop.optional else ''}: {prop.type}" for prop in entry.properties
            )
            lines.append(f"{semantic_file.path}:{entry.line} interface {entry.name} {{ {props} }}")
        if include_types:
            for alias in semantic_file.types:
                lines.append(f"{semantic_file.path}:{alias.line} type {alias.name} = {alias.definition}")
    return "\n".join(lines[:INTERFACE_SAMPLE_LIMIT])


def relation_samples(structure: StructureLayer) -> str:
    return "\n".join(
        f"{relation.source} -> {relation.target} ({relation.kind})"
        for relation in structure.modules[:RELATION_SAMPLE_LIMIT]
    )


def collect_domain_context(
    root: Path, structure: StructureLayer, semantics: Optional[SemanticsLayer]
) -> DomainBuildContext:
    """Gather the inputs of every analysis step without calling an AI backend."""
    root = Path(root)
    docs_root = find_docs_root(root)
    doc_files = (
        [path.relative_to(root).as_posix() for path in collect_doc_files(docs_root)]
        if docs_root is not None
        else []
    )
    return DomainBuildContext(
        directory_tree=summarize_directory_tree(structure.tree),
        package_json=read_manifest_text(root) or "{}",
        symbol_samples=symbol_samples(semantics),
        entry_points=find_entry_points(structure),
        external_deps=external_dependency_names(semantics),
        class_samples=class_samples(semantics),
        test_file_paths=find_test_files(structure),
        interface_samples=interface_samples(semantics, include_types=True),
        doc_files=doc_files,
    )


class DomainSynthesizer:
    """Runs the eight domain analysis steps against an AI backend.

    Every step is isolated: a failed call or a malformed reply leaves that
    step's field at its default. The result is cached under ``cache_dir``
    keyed by a hash of the structure and semantics shape, and a cache hit
    skips every AI call.
    """

    def __init__(
        self,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client_factory = client_factory or AIClient
        self.sleep = sleep

    def build(
        self,
        root: Path,
        structure: StructureLayer,
        semantics: Optional[SemanticsLayer],
        ai_config: Optional[AIConfig],
        cache_dir: Path,
        force: bool = False,
    ) -> Tuple[DomainLayer, BuildResult]:
        started = time.perf_counter()
        root = Path(root)
        result = BuildResult(layer="domain")

        if ai_config is None:
            record_warning(logger, result.warnings, "AI configuration missing; domain layer skipped")
            return DomainLayer(), result

        client = self.client_factory(ai_config)
        if not client.has_credentials():
            record_warning(
                logger,
                result.warnings,
                f"API key environment variable '{ai_config.api_key_env}' is not set; domain layer skipped",
            )
            return DomainLayer(), result

        store = DomainCacheStore.in_directory(cache_dir)
        input_hash = compute_input_hash(structure, semantics)
        if not force:
            cached = store.get(input_hash)
            if cached is not None:
                logger.info("Domain cache hit; skipping AI analysis")
                result.duration = _elapsed_ms(started)
                return cached, result

        run = _StepRunner(client, ai_config, self.sleep, result.warnings)
        domain = DomainLayer()
        tree_text = summarize_directory_tree(structure.tree)
        manifest = read_manifest_text(root) or "{}"
        entry_points = find_entry_points(structure)
        dependencies = external_dependency_names(semantics)

        logger.debug("Step 1/8: project summary")
        raw = run("project summary", prompts.project_summary_prompt(tree_text, manifest), SUMMARY_TOKENS)
        if raw is not None:
            domain.project_summary = prompts.coerce_summary(parse_json_response(raw), raw)

        logger.debug("Step 2/8: architecture")
        raw = run("architecture", prompts.architecture_prompt(entry_points, dependencies), ANALYSIS_TOKENS)
        domain.architecture = prompts.coerce_architecture(
            parse_json_response(raw) if raw is not None else None, entry_points
        )

        logger.debug("Step 3/8: patterns and conventions")
        samples = symbol_samples(semantics)
        if samples:
            raw = run("patterns", prompts.patterns_prompt(samples), ANALYSIS_TOKENS)
            if raw is not None:
                domain.patterns, domain.conventions = prompts.coerce_patterns(parse_json_response(raw))

        logger.debug("Step 4/8: glossary")
        raw = run("glossary", prompts.glossary_prompt(tree_text), SUMMARY_TOKENS)
        if raw is not None:
            domain.glossary = prompts.coerce_glossary(parse_json_response(raw))

        logger.debug("Step 5/8: domain-driven design")
        classes = class_samples(semantics)
        interfaces = interface_samples(semantics)
        if classes or interfaces:
            raw = run(
                "domain model",
                prompts.ddd_prompt(classes, interfaces, relation_samples(structure)),
                ANALYSIS_TOKENS,
            )
            if raw is not None:
                domain.ddd = prompts.coerce_ddd(parse_json_response(raw))

        logger.debug("Step 6/8: test maturity")
        test_files = find_test_files(structure)
        test_symbols = symbol_samples(semantics, collect_test_file_names(structure))
        raw = run(
            "test maturity",
            prompts.test_maturity_prompt(test_files, manifest, test_symbols),
            ANALYSIS_TOKENS,
        )
        if raw is not None:
            domain.test_maturity = prompts.coerce_test_maturity(parse_json_response(raw))

        logger.debug("Step 7/8: schema consistency")
        types = interface_samples(semantics, include_types=True)
        if types:
            raw = run("schema consistency", prompts.schema_prompt(types, dependencies), ANALYSIS_TOKENS)
            if raw is not None:
                domain.schema_consistency = prompts.coerce_schema_consistency(
                    parse_json_response(raw)
                )

        logger.debug("Step 8/8: documentation index")
        domain.documentation_index = build_documentation_index(
            root,
            semantics.symbols if semantics else None,
            summarize=run.document_summarizer(),
        )

        store.store(input_hash, domain)
        result.duration = _elapsed_ms(started)
        logger.info(
            "Domain layer built: %d patterns, %d glossary terms",
            len(domain.patterns),
            len(domain.glossary),
        )
        return domain, result


class _StepRunner:
    """Calls the client for one step, pacing calls by the configured rate limit."""

    def __init__(
        self,
        client: AIClient,
        config: AIConfig,
        sleep: Callable[[float], None],
        warnings: List[str],
    ) -> None:
        self.client = client
        self.config = config
        self.sleep = sleep
        self.warnings = warnings
        self.calls = 0

    def __call__(self, step: str, prompt: str, max_tokens: int) -> Optional[str]:
        if self.calls and self.config.rate_limit_ms:
            self.sleep(self.config.rate_limit_ms / 1000)
        self.calls += 1
        try:
            return self.client.complete(
                prompt, min(max_tokens, self.config.max_tokens_per_request)
            )
        except AIRequestError as exc:
            record_warning(logger, self.warnings, f"Domain step '{step}' failed: {exc}")
            return None

    def document_summarizer(self) -> Callable[[str, str], Tuple[str, List[str], List[str]]]:
        def _summarize(path: str, body: str) -> Tuple[str, List[str], List[str]]:
            raw = self(f"document {path}", prompts.document_prompt(path, body), SUMMARY_TOKENS)
            if raw is None:
                return "", [], []
            return prompts.coerce_document(parse_json_response(raw))

        return _summarize


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = [
    "DomainSynthesizer",
    "collect_domain_context",
    "compute_input_hash",
    "find_entry_points",
    "find_test_files",
    "is_test_file",
    "summarize_directory_tree",
    "symbol_samples",
    "collect_test_file_names",
]
