"""Semantics layer construction: per-file analysis, symbol index and dependency graph."""

from __future__ import annotations

import sys
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .analyzers import PluginRegistry
from .annotations import AnnotationAnalyzer
from .logging import get_logger, record_warning
from .manifests import read_dependency_versions
from .models import (
    BuildResult,
    DependencyGraph,
    ExternalDependency,
    IncrementalChange,
    ModuleRelation,
    SemanticFile,
    SemanticsLayer,
    StructureLayer,
    SymbolIndex,
    SymbolLocation,
)
from .structure_scanner import detect_language, iter_files

logger = get_logger("semantics")

_STDLIB_MODULES = frozenset(getattr(sys, "stdlib_module_names", ()))


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith(".") or specifier.startswith("/")


def package_name(specifier: str, language: Optional[str] = None) -> str:
    """Return the installable package a bare import specifier belongs to."""
    if language == "python":
        return specifier.split(".")[0]
    if specifier.startswith("@"):
        return "/".join(specifier.split("/")[:2])
    return specifier.split("/")[0]


def build_symbol_index(files: Iterable[SemanticFile]) -> SymbolIndex:
    """Index exports and non-exported declarations by name."""
    index = SymbolIndex()
    for semantic_file in files:
        for symbol in semantic_file.declared_symbols():
            index.total_count += 1
            if symbol.exported:
                index.exported_count += 1
            index.by_name.setdefault(symbol.name, []).append(
                SymbolLocation(file=semantic_file.path, line=symbol.line, kind=symbol.kind)
            )
    return index


def build_dependency_graph(
    files: Iterable[SemanticFile],
    modules: Sequence[ModuleRelation],
    versions: Mapping[str, str],
) -> DependencyGraph:
    """Split import usage into internal edges and external packages.

    Internal edges are the structure relations with a relative target.
    External packages are grouped by package name with every consuming file,
    and carry the manifest version or ``"unknown"``.
    """
    internal = [relation for relation in modules if is_relative_specifier(relation.target)]

    usage: Dict[str, List[str]] = {}
    for semantic_file in files:
        for entry in semantic_file.imports:
            if not entry.source or is_relative_specifier(entry.source):
                continue
            name = package_name(entry.source, semantic_file.language)
            if semantic_file.language == "python" and name in _STDLIB_MODULES:
                continue
            if entry.source.startswith("node:"):
                continue
            consumers = usage.setdefault(name, [])
            if semantic_file.path not in consumers:
                consumers.append(semantic_file.path)

    external = [
        ExternalDependency(name=name, version=versions.get(name, "unknown"), used_by=used_by)
        for name, used_by in usage.items()
    ]
    return DependencyGraph(internal=internal, external=external)


class SemanticsBuilder:
    """Runs language plugins over the project and assembles the semantics layer."""

    def __init__(
        self,
        registry: PluginRegistry,
        annotations: Optional[AnnotationAnalyzer] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.registry = registry
        self.annotations = annotations or AnnotationAnalyzer()
        self.max_workers = max_workers

    def build(
        self, root: Path, structure: StructureLayer, languages: Sequence[str]
    ) -> Tuple[SemanticsLayer, BuildResult]:
        started = time.perf_counter()
        root_path = Path(root).resolve()
        result = BuildResult(layer="semantics")
        wanted = {language.lower() for language in languages}

        paths = [
            node.path
            for node in iter_files(structure.tree)
            if node.file_info is not None and node.file_info.language in wanted
        ]
        logger.info("Analysing %d source files", len(paths))
        files = self._analyze_all(root_path, paths, result.warnings)

        layer = self._assemble(root_path, files, structure.modules)
        result.file_count = len(layer.files)
        result.duration = _elapsed_ms(started)
        logger.info(
            "Semantics layer built: %d files, %d symbols, %d annotations",
            len(layer.files),
            layer.symbols.total_count,
            layer.annotation_summary.total if layer.annotation_summary else 0,
        )
        return layer, result

    def update_incremental(
        self,
        root: Path,
        existing: SemanticsLayer,
        changes: IncrementalChange,
        languages: Optional[Sequence[str]] = None,
        structure: Optional[StructureLayer] = None,
    ) -> Tuple[SemanticsLayer, BuildResult]:
        """Re-analyse only added and modified files, then rebuild every index in full."""
        started = time.perf_counter()
        root_path = Path(root).resolve()
        result = BuildResult(layer="semantics")
        logger.info(
            "Semantics incremental update: %d added, %d modified, %d deleted",
            len(changes.added),
            len(changes.modified),
            len(changes.deleted),
        )

        removed = set(changes.deleted) | set(changes.modified)
        kept = [semantic_file for semantic_file in existing.files if semantic_file.path not in removed]

        wanted = {language.lower() for language in languages} if languages else None
        targets = [
            path
            for path in [*changes.added, *changes.modified]
            if wanted is None or detect_language(path) in wanted
        ]
        fresh = self._analyze_all(root_path, targets, result.warnings)

        if structure is not None:
            modules = structure.modules
        else:
            modules = [
                relation
                for relation in existing.dependencies.internal
                if relation.source not in removed
            ]
        layer = self._assemble(root_path, [*kept, *fresh], modules)
        result.file_count = len(layer.files)
        result.duration = _elapsed_ms(started)
        return layer, result

    def _assemble(
        self, root: Path, files: List[SemanticFile], modules: Sequence[ModuleRelation]
    ) -> SemanticsLayer:
        files = sorted(files, key=lambda semantic_file: semantic_file.path)
        layer = SemanticsLayer(
            files=files,
            symbols=build_symbol_index(files),
            dependencies=build_dependency_graph(files, modules, read_dependency_versions(root)),
        )
        self.annotations.apply(layer, self.annotations.generate(layer, root))
        return layer

    def _analyze_all(
        self, root: Path, paths: Sequence[str], warnings: List[str]
    ) -> List[SemanticFile]:
        if not paths:
            return []
        files: List[SemanticFile] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: List[Tuple[str, Future]] = [
                (path, executor.submit(self._analyze_path, root, path)) for path in paths
            ]
            for path, future in futures:
                try:
                    semantic_file = future.result()
                except Exception as exc:
                    record_warning(logger, warnings, f"Failed to analyse {path}: {exc}")
                    continue
                if semantic_file is not None:
                    files.append(semantic_file)
        return files

    def _analyze_path(self, root: Path, path: str) -> Optional[SemanticFile]:
        plugin = self.registry.plugin_for(path)
        if plugin is None:
            return None
        content = (root / path).read_text(encoding="utf-8")
        return plugin.analyze_file(path, content)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = [
    "SemanticsBuilder",
    "build_dependency_graph",
    "build_symbol_index",
    "is_relative_specifier",
    "package_name",
]
