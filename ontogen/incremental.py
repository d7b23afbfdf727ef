"""Change detection and the incremental update policy."""

from __future__ import annotations

import hashlib
import os
import time
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .analyzers import PluginRegistry
from .annotations import AnnotationAnalyzer
from .config import OntologyConfig
from .domain import DomainSynthesizer
from .failsafe import safe_layer_build
from .logging import get_logger, record_warning
from .models import (
    BuildReport,
    BuildResult,
    IncrementalChange,
    OntologyCache,
    OntologyData,
    StructureLayer,
)
from .semantics import SemanticsBuilder
from .structure_scanner import (
    StructureScanner,
    is_excluded,
    load_ignore_patterns,
    merge_exclude_patterns,
)

logger = get_logger("incremental")

_CHUNK_SIZE = 64 * 1024


def hash_file(path: Path) -> str:
    """Return the SHA-256 hex digest of ``path``, or an empty string when unreadable."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as handle:
            for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as exc:
        logger.debug("Unable to hash %s: %s", path, exc)
        return ""
    return digest.hexdigest()


def scan_file_hashes(
    root: Path,
    exclude_patterns: Sequence[str] = (),
    skip_paths: Sequence[str] = (),
    max_depth: Optional[int] = None,
) -> Dict[str, str]:
    """Hash every file the structure scanner would track, keyed by relative path."""
    root_path = Path(root).resolve()
    excludes = merge_exclude_patterns(exclude_patterns, load_ignore_patterns(root_path))
    skipped = {path.strip("/") for path in skip_paths if path}
    hashes: Dict[str, str] = {}

    def _walk(directory: Path, rel_dir: str, depth: int) -> None:
        if max_depth is not None and depth >= max_depth:
            return
        try:
            with os.scandir(directory) as iterator:
                entries = list(iterator)
        except OSError as exc:
            logger.debug("Unable to read %s: %s", directory, exc)
            return
        for entry in entries:
            if is_excluded(entry.name, excludes):
                continue
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            try:
                if entry.is_dir(follow_symlinks=False):
                    if rel_path not in skipped:
                        _walk(Path(entry.path), rel_path, depth + 1)
                elif entry.is_file(follow_symlinks=False):
                    hashes[rel_path] = hash_file(Path(entry.path))
            except OSError:
                continue

    _walk(root_path, "", 0)
    return hashes


def diff_hashes(current: Mapping[str, str], cached: Mapping[str, str]) -> IncrementalChange:
    changes = IncrementalChange(
        added=sorted(path for path in current if path not in cached),
        modified=sorted(
            path for path, digest in current.items() if path in cached and cached[path] != digest
        ),
        deleted=sorted(path for path in cached if path not in current),
    )
    logger.debug(
        "Detected changes: %d added, %d modified, %d deleted",
        len(changes.added),
        len(changes.modified),
        len(changes.deleted),
    )
    return changes


def compute_changes(
    root: Path,
    cache: OntologyCache,
    exclude_patterns: Sequence[str] = (),
    skip_paths: Sequence[str] = (),
    max_depth: Optional[int] = None,
) -> IncrementalChange:
    current = scan_file_hashes(root, exclude_patterns, skip_paths, max_depth)
    return diff_hashes(current, cache.file_hashes)


def apply_update(
    root: Path,
    data: OntologyData,
    changes: IncrementalChange,
    config: OntologyConfig,
    registry: Optional[PluginRegistry] = None,
    *,
    synthesizer: Optional[DomainSynthesizer] = None,
    skip_paths: Sequence[str] = (),
) -> BuildReport:
    """Bring ``data`` up to date with ``changes`` in place and report per layer.

    Structure and semantics are always refreshed. The domain layer gets a
    fresh AI pass only when the share of changed files exceeds
    ``incremental.domain_change_ratio``; otherwise the previous analysis is
    kept.
    """
    started = time.perf_counter()
    root = Path(root).resolve()
    report = BuildReport()
    registry = registry or PluginRegistry.create_default()
    scanner = StructureScanner(config.incremental.structure_rescan_threshold)
    builder = SemanticsBuilder(registry, AnnotationAnalyzer(config.annotations))

    if config.structure.enabled:

        def _structure():
            layer_started = time.perf_counter()
            warnings: List[str] = []
            if data.structure is None:
                layer = scanner.scan(
                    root,
                    config.structure.exclude_patterns,
                    config.structure.max_depth,
                    skip_paths=skip_paths,
                    warnings=warnings,
                )
            else:
                layer = scanner.update_incremental(
                    root,
                    data.structure,
                    changes,
                    config.structure.exclude_patterns,
                    config.structure.max_depth,
                    skip_paths=skip_paths,
                    warnings=warnings,
                )
            return layer, BuildResult(
                layer="structure",
                duration=int((time.perf_counter() - layer_started) * 1000),
                file_count=layer.stats.total_files,
                warnings=warnings,
            )

        structure, result = safe_layer_build("structure", _structure)
        report.results.append(result)
        if structure is not None:
            data.structure = structure

    if config.semantics.enabled and data.structure is not None:
        structure_layer = data.structure
        languages = config.semantics.languages

        def _semantics():
            if data.semantics is None:
                return builder.build(root, structure_layer, languages)
            return builder.update_incremental(
                root, data.semantics, changes, languages, structure=structure_layer
            )

        semantics, result = safe_layer_build("semantics", _semantics)
        report.results.append(result)
        if semantics is not None:
            data.semantics = semantics

    if config.domain.enabled and config.ai is not None and data.structure is not None:
        report.results.append(
            _update_domain(
                root, data, data.structure, changes, config, synthesizer or DomainSynthesizer()
            )
        )

    report.total_duration = int((time.perf_counter() - started) * 1000)
    report.annotation_summary = data.semantics.annotation_summary if data.semantics else None
    return report


def _update_domain(
    root: Path,
    data: OntologyData,
    structure: StructureLayer,
    changes: IncrementalChange,
    config: OntologyConfig,
    synthesizer: DomainSynthesizer,
) -> BuildResult:
    total_files = max(structure.stats.total_files, 1)
    ratio = changes.total / total_files
    threshold = config.incremental.domain_change_ratio
    percent = round(ratio * 100)

    if config.ai is not None and config.ai.provider == "claude-code":
        result = BuildResult(layer="domain")
        record_warning(
            logger,
            result.warnings,
            "claude-code provider: run the domain analysis on the host and store it with write_domain",
        )
        return result

    if ratio <= threshold:
        logger.info(
            "%d%% of files changed (threshold %d%%); keeping the cached domain layer",
            percent,
            round(threshold * 100),
        )
        return BuildResult(
            layer="domain", warnings=[f"Domain cache retained ({percent}% of files changed)"]
        )

    logger.info(
        "%d%% of files changed (threshold %d%%); rebuilding the domain layer",
        percent,
        round(threshold * 100),
    )
    domain, result = safe_layer_build(
        "domain",
        lambda: synthesizer.build(
            root,
            structure,
            data.semantics,
            config.ai,
            config.cache_dir(root),
            force=True,
        ),
    )
    if domain is not None:
        data.domain = domain
    return result


__all__ = [
    "apply_update",
    "compute_changes",
    "diff_hashes",
    "hash_file",
    "scan_file_hashes",
]
