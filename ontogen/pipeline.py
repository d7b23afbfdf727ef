"""Pipeline orchestration for build, refresh and status flows."""

from __future__ import annotations

import time
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from . import __version__
from .analyzers import PluginRegistry
from .annotations import AnnotationAnalyzer
from .config import CONFIG_FILENAME, ConfigError, OntologyConfig, load_config
from .domain import DomainSynthesizer, collect_domain_context, compute_input_hash
from .domain.synthesizer import ClientFactory
from .failsafe import safe_layer_build
from .incremental import apply_update, diff_hashes, scan_file_hashes
from .logging import get_logger, record_warning
from .models import (
    LAYER_NAMES,
    AgentFileInfo,
    BuildReport,
    BuildResult,
    DomainLayer,
    LayerData,
    LayerStatus,
    OntologyCache,
    OntologyData,
    OntologyIndexData,
    OntologyMetadata,
    from_dict,
)
from .render import (
    DOMAIN_DOCUMENT,
    INDEX_DOCUMENT,
    SEMANTICS_DOCUMENT,
    STRUCTURE_DOCUMENT,
    render_domain,
    render_index,
    render_ontology,
)
from .semantics import SemanticsBuilder
from .stores import DomainCacheStore, OntologyCacheStore, utc_timestamp
from .structure_scanner import StructureScanner

AGENT_FILES = (
    ("plan.md", "Work plan", "manual"),
    ("todo.md", "TODO checklist", "manual"),
    ("context.md", "Decisions and trade-offs", "manual"),
    ("memory.md", "Team memory", "semi-auto"),
)

ONTOLOGY_FILES = (
    (STRUCTURE_DOCUMENT, "Directory structure map"),
    (SEMANTICS_DOCUMENT, "Code symbol index"),
    (DOMAIN_DOCUMENT, "Domain knowledge"),
    (INDEX_DOCUMENT, "Knowledge index (this file)"),
)

CLAUDE_CODE_WARNING = (
    "claude-code provider: run the domain analysis on the host and store it with write_domain"
)


class OntologyPipeline:
    """Coordinates the structure, semantics and domain layers for a project."""

    def __init__(
        self,
        registry: Optional[PluginRegistry] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        version: str = __version__,
    ) -> None:
        self._registry = registry
        self.synthesizer = DomainSynthesizer(client_factory, sleep)
        self.version = version
        self.logger = get_logger("pipeline")

    @property
    def registry(self) -> PluginRegistry:
        if self._registry is None:
            self._registry = PluginRegistry.create_default()
        return self._registry

    def build(self, root: Union[str, Path], config: Optional[OntologyConfig] = None) -> BuildReport:
        """Build every enabled layer from scratch, write the documents and the cache."""
        started = time.perf_counter()
        root_path = _resolve_root(root)
        pending: List[str] = []
        config = config or self._load_config(root_path, pending)
        self.logger.info("Building ontology for %s", root_path)

        metadata = self._new_metadata(root_path, config)
        data = OntologyData(metadata=metadata)
        report = BuildReport()
        skip_paths = [config.output_dir]

        if config.structure.enabled:
            scanner = StructureScanner(config.incremental.structure_rescan_threshold)

            def _structure():
                layer_started = time.perf_counter()
                warnings: List[str] = []
                layer = scanner.scan(
                    root_path,
                    config.structure.exclude_patterns,
                    config.structure.max_depth,
                    skip_paths=skip_paths,
                    warnings=warnings,
                )
                return layer, BuildResult(
                    layer="structure",
                    duration=_elapsed_ms(layer_started),
                    file_count=layer.stats.total_files,
                    warnings=warnings,
                )

            data.structure, result = safe_layer_build("structure", _structure)
            report.results.append(result)

        if config.semantics.enabled and data.structure is not None:
            builder = SemanticsBuilder(self.registry, AnnotationAnalyzer(config.annotations))
            structure = data.structure
            data.semantics, result = safe_layer_build(
                "semantics",
                lambda: builder.build(root_path, structure, config.semantics.languages),
            )
            report.results.append(result)

        if config.domain.enabled and data.structure is not None:
            structure = data.structure
            if config.ai is not None and config.ai.provider == "claude-code":
                self.logger.info("Collecting domain context for the claude-code provider")
                report.domain_context = collect_domain_context(root_path, structure, data.semantics)
                result = BuildResult(layer="domain")
                record_warning(self.logger, result.warnings, CLAUDE_CODE_WARNING)
                data.domain = self._previous_domain(root_path, config)
            else:
                data.domain, result = safe_layer_build(
                    "domain",
                    lambda: self.synthesizer.build(
                        root_path,
                        structure,
                        data.semantics,
                        config.ai,
                        config.cache_dir(root_path),
                    ),
                )
            report.results.append(result)

        _attach_pending(report, pending)
        _update_layer_status(metadata, report)
        report.output_files = self._write_documents(root_path, data, config)

        if data.structure is not None:
            hashes = scan_file_hashes(
                root_path,
                config.structure.exclude_patterns,
                skip_paths,
                config.structure.max_depth,
            )
            self._cache_store(root_path, config).save(
                OntologyCache(
                    version=self.version,
                    built_at=metadata.generated_at,
                    file_hashes=hashes,
                    layer_data=LayerData(
                        structure=data.structure, semantics=data.semantics, domain=data.domain
                    ),
                )
            )

        report.annotation_summary = data.semantics.annotation_summary if data.semantics else None
        report.total_duration = _elapsed_ms(started)
        self.logger.info("Ontology build finished in %d ms", report.total_duration)
        return report

    def refresh(self, root: Union[str, Path], config: Optional[OntologyConfig] = None) -> BuildReport:
        """Update the ontology for files changed since the cached build.

        Without a usable cache this falls back to :meth:`build`.
        """
        started = time.perf_counter()
        root_path = _resolve_root(root)
        pending: List[str] = []
        config = config or self._load_config(root_path, pending)
        store = self._cache_store(root_path, config)
        cache = store.load()
        if cache is None:
            self.logger.info("No ontology cache found; running a full build")
            report = self.build(root_path, config)
            _attach_pending(report, pending)
            return report

        self.logger.info("Refreshing ontology for %s", root_path)
        skip_paths = [config.output_dir]
        hashes = scan_file_hashes(
            root_path,
            config.structure.exclude_patterns,
            skip_paths,
            config.structure.max_depth,
        )
        changes = diff_hashes(hashes, cache.file_hashes)
        metadata = self._new_metadata(root_path, config)
        data = OntologyData(
            metadata=metadata,
            structure=cache.layer_data.structure,
            semantics=cache.layer_data.semantics,
            domain=cache.layer_data.domain,
        )

        report = apply_update(
            root_path,
            data,
            changes,
            config,
            self.registry,
            synthesizer=self.synthesizer,
            skip_paths=skip_paths,
        )
        if (
            config.domain.enabled
            and config.ai is not None
            and config.ai.provider == "claude-code"
            and data.structure is not None
        ):
            report.domain_context = collect_domain_context(root_path, data.structure, data.semantics)

        _attach_pending(report, pending)
        _update_layer_status(metadata, report)
        report.output_files = self._write_documents(root_path, data, config)
        store.save(
            OntologyCache(
                version=self.version,
                built_at=metadata.generated_at,
                file_hashes=hashes,
                layer_data=LayerData(
                    structure=data.structure, semantics=data.semantics, domain=data.domain
                ),
            )
        )
        report.total_duration = _elapsed_ms(started)
        self.logger.info(
            "Ontology refresh finished in %d ms (%d changed files)",
            report.total_duration,
            changes.total,
        )
        return report

    def status(
        self, root: Union[str, Path], config: Optional[OntologyConfig] = None
    ) -> Optional[OntologyMetadata]:
        """Return metadata describing the cached ontology, or None when nothing is cached."""
        root_path = _resolve_root(root)
        config = config or self._load_config(root_path, [])
        cache = self._cache_store(root_path, config).load()
        if cache is None:
            return None
        layers = cache.layer_data
        counts = {
            "structure": layers.structure.stats.total_files if layers.structure else 0,
            "semantics": len(layers.semantics.files) if layers.semantics else 0,
            "domain": 0,
        }
        status: Dict[str, LayerStatus] = {}
        for name in LAYER_NAMES:
            present = getattr(layers, name) is not None
            status[name] = LayerStatus(
                enabled=present,
                last_built=cache.built_at if present else None,
                file_count=counts[name],
            )
        return OntologyMetadata(
            project_name=root_path.name or "project",
            generated_at=cache.built_at,
            tool_version=cache.version,
            layer_status=status,
        )

    def write_domain(
        self,
        root: Union[str, Path],
        domain: Union[DomainLayer, Mapping[str, Any]],
        config: Optional[OntologyConfig] = None,
    ) -> List[str]:
        """Store a domain analysis performed outside the pipeline.

        The analysis lands in the ontology cache, the domain cache and
        ``ONTOLOGY-DOMAIN.md``. A missing ontology cache triggers a build first.
        """
        root_path = _resolve_root(root)
        config = config or self._load_config(root_path, [])
        layer = domain if isinstance(domain, DomainLayer) else from_dict(DomainLayer, dict(domain))

        store = self._cache_store(root_path, config)
        cache = store.load()
        if cache is None:
            self.build(root_path, config)
            cache = store.load()
        if cache is None:
            cache = OntologyCache(version=self.version, built_at=utc_timestamp())
        cache.layer_data.domain = layer
        store.save(cache)

        if cache.layer_data.structure is not None:
            DomainCacheStore.in_directory(config.cache_dir(root_path)).store(
                compute_input_hash(cache.layer_data.structure, cache.layer_data.semantics), layer
            )

        metadata = self._new_metadata(root_path, config)
        metadata.generated_at = cache.built_at
        output_dir = config.output_path(root_path)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / DOMAIN_DOCUMENT
        path.write_text(render_domain(layer, metadata), encoding="utf-8")
        self.logger.info("Stored domain analysis in %s", path)
        return [str(path)]

    # ------------------------------------------------------------------
    # Internal helpers

    def _load_config(self, root: Path, pending: List[str]) -> OntologyConfig:
        try:
            return load_config(root)
        except ConfigError as exc:
            record_warning(
                self.logger, pending, f"Invalid {CONFIG_FILENAME}; using defaults: {exc}"
            )
            return OntologyConfig()

    def _cache_store(self, root: Path, config: OntologyConfig) -> OntologyCacheStore:
        return OntologyCacheStore.in_directory(config.cache_dir(root), self.version)

    def _previous_domain(self, root: Path, config: OntologyConfig) -> Optional[DomainLayer]:
        cache = self._cache_store(root, config).load()
        return cache.layer_data.domain if cache is not None else None

    def _new_metadata(self, root: Path, config: OntologyConfig) -> OntologyMetadata:
        return OntologyMetadata(
            project_name=root.name or "project",
            generated_at=utc_timestamp(),
            tool_version=self.version,
            layer_status={
                "structure": LayerStatus(enabled=config.structure.enabled),
                "semantics": LayerStatus(enabled=config.semantics.enabled),
                "domain": LayerStatus(enabled=config.domain.enabled),
            },
        )

    def _write_documents(self, root: Path, data: OntologyData, config: OntologyConfig) -> List[str]:
        output_dir = config.output_path(root)
        written: List[str] = []
        documents = render_ontology(data)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self.logger.warning("Unable to create output directory %s: %s", output_dir, exc)
            return written

        for name, content in documents.items():
            path = output_dir / name
            try:
                path.write_text(content, encoding="utf-8")
            except OSError as exc:
                self.logger.warning("Failed to write %s: %s", path, exc)
                continue
            written.append(str(path))
            self.logger.debug("Wrote %s", path)

        index_path = output_dir / INDEX_DOCUMENT
        try:
            index = collect_index_data(root, config.output_dir, data.metadata.tool_version)
            index_path.write_text(render_index(index), encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Failed to write %s: %s", index_path, exc)
        else:
            written.append(str(index_path))
        return written


def collect_index_data(root: Path, output_dir: str, version: str) -> OntologyIndexData:
    """Describe the agent knowledge files next to the output directory and the ontology documents."""
    root = Path(root)
    ontology_dir = PurePosixPath(output_dir)
    agent_dir = ontology_dir.parent

    def _info(relative: PurePosixPath, description: str, managed: str) -> AgentFileInfo:
        status = "exists" if (root / relative).exists() else "missing"
        return AgentFileInfo(
            path=relative.as_posix(), status=status, description=description, managed=managed
        )

    return OntologyIndexData(
        generated_at=utc_timestamp(),
        tool_version=version,
        agent_files=[
            _info(agent_dir / name, description, managed)
            for name, description, managed in AGENT_FILES
        ],
        ontology_files=[
            _info(ontology_dir / name, description, "auto") for name, description in ONTOLOGY_FILES
        ],
    )


def _resolve_root(root: Union[str, Path]) -> Path:
    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        raise NotADirectoryError(f"Project path is not a directory: {root}")
    return root_path


def _attach_pending(report: BuildReport, pending: List[str]) -> None:
    if not pending:
        return
    if report.results:
        report.results[0].warnings[:0] = pending
    else:
        report.results.append(BuildResult(layer="structure", warnings=list(pending)))


def _update_layer_status(metadata: OntologyMetadata, report: BuildReport) -> None:
    for result in report.results:
        status = metadata.layer_status.setdefault(result.layer, LayerStatus(enabled=True))
        if result.success:
            status.last_built = metadata.generated_at
            status.last_error = None
            status.file_count = result.file_count
        else:
            status.last_error = result.error or "unknown error"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = ["OntologyPipeline", "collect_index_data"]
