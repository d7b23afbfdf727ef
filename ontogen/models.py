"""Core data models shared across the ontology layers.

Every model is a plain dataclass. ``to_dict`` and ``from_dict`` convert models
to and from the JSON shape used by the on-disk cache, where field names are
camelCase (``file_hashes`` is stored as ``fileHashes``).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from functools import lru_cache
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

LAYER_NAMES = ("structure", "semantics", "domain")

T = TypeVar("T")


# Layer 1: structure


@dataclass
class FileInfo:
    """Metadata for a single scanned file."""

    extension: str
    size_bytes: int = 0
    line_count: int = 0
    language: Optional[str] = None


@dataclass
class DirectoryNode:
    """A file or directory in the scanned tree."""

    name: str
    path: str
    type: str
    children: List[DirectoryNode] = field(default_factory=list)
    file_info: Optional[FileInfo] = None


@dataclass
class ModuleRelation:
    """An import edge between a source file and a module specifier."""

    source: str
    target: str
    kind: str


@dataclass
class StructureStats:
    total_files: int = 0
    total_dirs: int = 0
    by_language: Dict[str, int] = field(default_factory=dict)
    by_extension: Dict[str, int] = field(default_factory=dict)


@dataclass
class StructureLayer:
    root_dir: str
    tree: DirectoryNode
    modules: List[ModuleRelation] = field(default_factory=list)
    stats: StructureStats = field(default_factory=StructureStats)


# Layer 2: semantics


@dataclass
class MxAnnotation:
    """A cross-cutting fact attached to a file or a symbol."""

    tag: str
    message: str
    line: Optional[int] = None
    symbol_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImportEntry:
    source: str
    specifiers: List[str] = field(default_factory=list)
    is_type_only: bool = False
    is_default: bool = False


@dataclass
class Param:
    name: str
    type: str = "unknown"
    optional: bool = False


@dataclass
class SymbolEntry:
    """A declared symbol. Variants are distinguished by ``kind``."""

    name: str
    kind: str
    line: int
    exported: bool = False
    signature: Optional[str] = None
    doc: Optional[str] = None
    annotations: List[MxAnnotation] = field(default_factory=list)


@dataclass
class FunctionEntry(SymbolEntry):
    params: List[Param] = field(default_factory=list)
    return_type: str = "void"
    is_async: bool = False


@dataclass
class ClassEntry(SymbolEntry):
    methods: List[FunctionEntry] = field(default_factory=list)
    properties: List[SymbolEntry] = field(default_factory=list)
    extends: Optional[str] = None
    implements: List[str] = field(default_factory=list)


@dataclass
class InterfaceEntry(SymbolEntry):
    properties: List[Param] = field(default_factory=list)
    extends: List[str] = field(default_factory=list)


@dataclass
class TypeAliasEntry(SymbolEntry):
    definition: str = ""


@dataclass
class SemanticFile:
    """Per-file analysis result produced by a language plugin."""

    path: str
    language: str
    exports: List[SymbolEntry] = field(default_factory=list)
    imports: List[ImportEntry] = field(default_factory=list)
    classes: List[ClassEntry] = field(default_factory=list)
    functions: List[FunctionEntry] = field(default_factory=list)
    interfaces: List[InterfaceEntry] = field(default_factory=list)
    types: List[TypeAliasEntry] = field(default_factory=list)
    annotations: List[MxAnnotation] = field(default_factory=list)

    def declared_symbols(self) -> List[SymbolEntry]:
        """Return exports plus non-exported classes, functions, interfaces and types."""
        symbols: List[SymbolEntry] = list(self.exports)
        for group in (self.classes, self.functions, self.interfaces, self.types):
            symbols.extend(entry for entry in group if not entry.exported)
        return symbols


@dataclass
class SymbolLocation:
    file: str
    line: int
    kind: str


@dataclass
class SymbolIndex:
    by_name: Dict[str, List[SymbolLocation]] = field(default_factory=dict)
    exported_count: int = 0
    total_count: int = 0


@dataclass
class ExternalDependency:
    name: str
    version: str = "unknown"
    used_by: List[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    internal: List[ModuleRelation] = field(default_factory=list)
    external: List[ExternalDependency] = field(default_factory=list)


@dataclass
class AnchorSummary:
    symbol: str
    file: str
    fan_in: int


@dataclass
class WarningSummary:
    symbol: str
    file: str
    reason: str


@dataclass
class AnnotationSummary:
    total: int = 0
    by_tag: Dict[str, int] = field(default_factory=dict)
    top_anchors: List[AnchorSummary] = field(default_factory=list)
    warnings: List[WarningSummary] = field(default_factory=list)


@dataclass
class SemanticsLayer:
    files: List[SemanticFile] = field(default_factory=list)
    symbols: SymbolIndex = field(default_factory=SymbolIndex)
    dependencies: DependencyGraph = field(default_factory=DependencyGraph)
    annotation_summary: Optional[AnnotationSummary] = None


# Layer 3: domain


@dataclass
class ArchitectureInsight:
    style: str = "unknown"
    layers: List[str] = field(default_factory=list)
    key_decisions: List[str] = field(default_factory=list)
    entry_points: List[str] = field(default_factory=list)


@dataclass
class PatternInsight:
    name: str
    description: str = ""
    files: List[str] = field(default_factory=list)
    example: Optional[str] = None


@dataclass
class ConventionInsight:
    category: str
    rule: str
    evidence: List[str] = field(default_factory=list)


@dataclass
class GlossaryEntry:
    term: str
    definition: str = ""
    context: str = ""


@dataclass
class BoundedContextInsight:
    name: str
    modules: List[str] = field(default_factory=list)
    description: str = ""


@dataclass
class AggregateRootInsight:
    name: str
    file: str = ""
    entities: List[str] = field(default_factory=list)
    value_objects: List[str] = field(default_factory=list)


@dataclass
class DDDInsight:
    bounded_contexts: List[BoundedContextInsight] = field(default_factory=list)
    aggregate_roots: List[AggregateRootInsight] = field(default_factory=list)
    domain_services: List[str] = field(default_factory=list)
    repositories: List[str] = field(default_factory=list)
    value_objects: List[str] = field(default_factory=list)
    domain_events: List[str] = field(default_factory=list)


@dataclass
class TestCoverageEstimate:
    tested_modules: List[str] = field(default_factory=list)
    untested_modules: List[str] = field(default_factory=list)
    ratio: str = "0/0"


@dataclass
class TestGap:
    area: str
    description: str = ""
    priority: str = "medium"


@dataclass
class TestMaturityInsight:
    overall_level: str = "none"
    test_framework: Optional[str] = None
    test_patterns: List[str] = field(default_factory=list)
    coverage: TestCoverageEstimate = field(default_factory=TestCoverageEstimate)
    gaps: List[TestGap] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class SchemaInconsistency:
    type: str
    description: str = ""
    files: List[str] = field(default_factory=list)
    severity: str = "info"


@dataclass
class SchemaConsistencyInsight:
    type_strategy: str = "unknown"
    shared_types: List[str] = field(default_factory=list)
    inconsistencies: List[SchemaInconsistency] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class DocumentInsight:
    path: str
    title: str
    doc_type: str = "other"
    summary: str = ""
    key_concepts: List[str] = field(default_factory=list)
    related_symbols: List[str] = field(default_factory=list)
    code_block_languages: List[str] = field(default_factory=list)
    headings: List[str] = field(default_factory=list)


@dataclass
class DocCrossReference:
    doc_path: str
    symbol_name: str
    symbol_file: str
    confidence: str = "low"


@dataclass
class DocumentationIndex:
    docs_root: str
    total_files: int = 0
    documents: List[DocumentInsight] = field(default_factory=list)
    cross_references: List[DocCrossReference] = field(default_factory=list)


@dataclass
class DomainLayer:
    """AI-derived insight. ``None`` on an optional field means "not computed"."""

    project_summary: str = ""
    architecture: ArchitectureInsight = field(default_factory=ArchitectureInsight)
    patterns: List[PatternInsight] = field(default_factory=list)
    conventions: List[ConventionInsight] = field(default_factory=list)
    glossary: List[GlossaryEntry] = field(default_factory=list)
    ddd: Optional[DDDInsight] = None
    test_maturity: Optional[TestMaturityInsight] = None
    schema_consistency: Optional[SchemaConsistencyInsight] = None
    documentation_index: Optional[DocumentationIndex] = None


@dataclass
class DomainBuildContext:
    """Inputs of the domain steps, handed to a host that performs the analysis itself."""

    directory_tree: str = ""
    package_json: str = ""
    symbol_samples: str = ""
    entry_points: List[str] = field(default_factory=list)
    external_deps: List[str] = field(default_factory=list)
    class_samples: str = ""
    test_file_paths: List[str] = field(default_factory=list)
    interface_samples: str = ""
    doc_files: List[str] = field(default_factory=list)


# Pipeline state and reports


@dataclass
class LayerStatus:
    enabled: bool = False
    last_built: Optional[str] = None
    last_error: Optional[str] = None
    file_count: int = 0


@dataclass
class OntologyMetadata:
    project_name: str
    generated_at: str
    tool_version: str
    layer_status: Dict[str, LayerStatus] = field(default_factory=dict)


@dataclass
class OntologyData:
    metadata: OntologyMetadata
    structure: Optional[StructureLayer] = None
    semantics: Optional[SemanticsLayer] = None
    domain: Optional[DomainLayer] = None


@dataclass
class IncrementalChange:
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    def is_empty(self) -> bool:
        return self.total == 0


@dataclass
class LayerData:
    structure: Optional[StructureLayer] = None
    semantics: Optional[SemanticsLayer] = None
    domain: Optional[DomainLayer] = None


@dataclass
class OntologyCache:
    """The persisted pipeline state. ``file_hashes`` covers every tracked file."""

    version: str
    built_at: str
    file_hashes: Dict[str, str] = field(default_factory=dict)
    layer_data: LayerData = field(default_factory=LayerData)


@dataclass
class BuildResult:
    layer: str
    success: bool = True
    duration: int = 0
    file_count: int = 0
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BuildReport:
    results: List[BuildResult] = field(default_factory=list)
    total_duration: int = 0
    output_files: List[str] = field(default_factory=list)
    domain_context: Optional[DomainBuildContext] = None
    annotation_summary: Optional[AnnotationSummary] = None

    def result_for(self, layer: str) -> Optional[BuildResult]:
        for result in self.results:
            if result.layer == layer:
                return result
        return None


@dataclass
class AgentFileInfo:
    path: str
    status: str
    description: str
    managed: str


@dataclass
class OntologyIndexData:
    generated_at: str
    tool_version: str
    agent_files: List[AgentFileInfo] = field(default_factory=list)
    ontology_files: List[AgentFileInfo] = field(default_factory=list)


# Serialisation helpers


def to_dict(value: Any) -> Any:
    """Convert a model (or nested containers of models) into JSON-compatible data."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            _camel(item.name): to_dict(getattr(value, item.name))
            for item in dataclasses.fields(value)
        }
    if isinstance(value, (list, tuple)):
        return [to_dict(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_dict(item) for key, item in value.items()}
    return value


def from_dict(cls: Type[T], payload: Any) -> T:
    """Rebuild ``cls`` from data produced by :func:`to_dict`.

    Unknown keys are ignored. Missing required fields raise ``TypeError`` and
    payloads of the wrong shape raise ``ValueError``.
    """
    return _coerce(cls, payload)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@lru_cache(maxsize=None)
def _hints(cls: type) -> Dict[str, Any]:
    return get_type_hints(cls)


def _coerce(annotation: Any, value: Any) -> Any:
    if annotation is Any:
        return value
    origin = get_origin(annotation)
    if origin is Union:
        if value is None:
            return None
        candidates = [arg for arg in get_args(annotation) if arg is not type(None)]
        return _coerce(candidates[0], value)
    if origin is list:
        (item_type,) = get_args(annotation) or (Any,)
        if not isinstance(value, list):
            raise ValueError(f"Expected a list, got {type(value).__name__}")
        return [_coerce(item_type, item) for item in value]
    if origin is dict:
        args = get_args(annotation)
        value_type = args[1] if len(args) == 2 else Any
        if not isinstance(value, dict):
            raise ValueError(f"Expected a mapping, got {type(value).__name__}")
        return {str(key): _coerce(value_type, item) for key, item in value.items()}
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        if not isinstance(value, dict):
            raise ValueError(f"Expected a mapping for {annotation.__name__}")
        hints = _hints(annotation)
        kwargs: Dict[str, Any] = {}
        for item in dataclasses.fields(annotation):
            key = _camel(item.name)
            if key in value:
                kwargs[item.name] = _coerce(hints[item.name], value[key])
        return annotation(**kwargs)
    return value


__all__ = [
    "AgentFileInfo",
    "AggregateRootInsight",
    "AnchorSummary",
    "AnnotationSummary",
    "ArchitectureInsight",
    "BoundedContextInsight",
    "BuildReport",
    "BuildResult",
    "ClassEntry",
    "ConventionInsight",
    "DDDInsight",
    "DependencyGraph",
    "DirectoryNode",
    "DocCrossReference",
    "DocumentInsight",
    "DocumentationIndex",
    "DomainBuildContext",
    "DomainLayer",
    "ExternalDependency",
    "FileInfo",
    "FunctionEntry",
    "GlossaryEntry",
    "ImportEntry",
    "IncrementalChange",
    "InterfaceEntry",
    "LAYER_NAMES",
    "LayerData",
    "LayerStatus",
    "ModuleRelation",
    "MxAnnotation",
    "OntologyCache",
    "OntologyData",
    "OntologyIndexData",
    "OntologyMetadata",
    "Param",
    "PatternInsight",
    "SchemaConsistencyInsight",
    "SchemaInconsistency",
    "SemanticFile",
    "SemanticsLayer",
    "StructureLayer",
    "StructureStats",
    "SymbolEntry",
    "SymbolIndex",
    "SymbolLocation",
    "TestCoverageEstimate",
    "TestGap",
    "TestMaturityInsight",
    "TypeAliasEntry",
    "WarningSummary",
    "from_dict",
    "to_dict",
]
