"""Cross-cutting annotations computed over the semantics layer.

Four passes run over the analysed files:

* ``ANCHOR``: symbols imported by at least ``anchor_fan_in`` files other than
  the ones declaring them.
* ``WARN``: functions with many parameters or ``any`` typed signatures, long
  functions, and files whose brace nesting is deep.
* ``NOTE``: ``@MX:NOTE`` markers left in the source.
* ``TODO``: TODO/FIXME/HACK/XXX markers inside comments.

Fan-in uses a reverse import index (specifier to importing files) built once
per pass, so the cost is linear in the number of imports.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .config import AnnotationThresholds
from .logging import get_logger
from .models import (
    AnchorSummary,
    AnnotationSummary,
    FunctionEntry,
    MxAnnotation,
    SemanticFile,
    SemanticsLayer,
    WarningSummary,
)

logger = get_logger("annotations")

TOP_ANCHOR_LIMIT = 20
WARNING_LIMIT = 30

ANY_TYPES = {"any", "Any", "typing.Any"}
_BRACELESS_LANGUAGES = {"python"}

_NOTE_RE = re.compile(r"@MX:NOTE\s+(.+)")
_TODO_RE = re.compile(r"\b(TODO|FIXME|HACK|XXX)\b[:\s]*(.*)$")
_BRACE_COMMENT_RE = re.compile(r"//(.+)|/\*(.+)\*/|\*\s*(.+)")
_HASH_COMMENT_RE = re.compile(r"#(.+)")


@dataclass
class AnnotationResult:
    by_file: Dict[str, List[MxAnnotation]] = field(default_factory=dict)
    summary: AnnotationSummary = field(default_factory=AnnotationSummary)


class AnnotationAnalyzer:
    """Generates ANCHOR, WARN, NOTE and TODO annotations for a semantics layer."""

    def __init__(self, thresholds: Optional[AnnotationThresholds] = None) -> None:
        self.thresholds = thresholds or AnnotationThresholds()

    def generate(self, semantics: SemanticsLayer, root: Path) -> AnnotationResult:
        """Return annotations grouped by file plus the summary. Does not mutate ``semantics``."""
        sources = _read_sources(semantics.files, Path(root))

        anchors = self.analyze_fan_in(semantics)
        warnings = self.analyze_signatures(semantics.files)
        warnings.extend(self.analyze_source_complexity(semantics.files, sources))
        notes = scan_notes(semantics.files, sources)
        todos = scan_todos(semantics.files, sources)
        logger.debug(
            "Annotations: %d anchors, %d warnings, %d notes, %d todos",
            len(anchors),
            len(warnings),
            len(notes),
            len(todos),
        )

        annotations = [*anchors, *warnings, *notes, *todos]
        by_file: Dict[str, List[MxAnnotation]] = {}
        for annotation in annotations:
            path = annotation.metadata.get("file") or annotation.metadata.get("declarationFile")
            if path:
                by_file.setdefault(str(path), []).append(annotation)
        return AnnotationResult(by_file=by_file, summary=build_summary(annotations))

    def apply(self, semantics: SemanticsLayer, result: AnnotationResult) -> None:
        """Attach ``result`` to the files and exported symbols of ``semantics``.

        An annotation lands on the export declared with the same name on the
        annotated line.
        Annotations from a previous pass are cleared first.
        """
        for semantic_file in semantics.files:
            semantic_file.annotations = list(result.by_file.get(semantic_file.path, []))
            for symbol in semantic_file.exports:
                symbol.annotations = []
            for annotation in semantic_file.annotations:
                if not annotation.symbol_name:
                    continue
                line = annotation.metadata.get("symbolLine", annotation.line)
                for symbol in semantic_file.exports:
                    if symbol.name == annotation.symbol_name and symbol.line == line:
                        symbol.annotations.append(annotation)
                        break
        semantics.annotation_summary = result.summary

    def analyze_fan_in(self, semantics: SemanticsLayer) -> List[MxAnnotation]:
        importers: Dict[str, Set[str]] = {}
        for semantic_file in semantics.files:
            for entry in semantic_file.imports:
                for specifier in entry.specifiers:
                    importers.setdefault(specifier, set()).add(semantic_file.path)

        annotations: List[MxAnnotation] = []
        for name, locations in semantics.symbols.by_name.items():
            if not locations:
                continue
            declaring = {location.file for location in locations}
            fan_in = len(importers.get(name, set()) - declaring)
            if fan_in < self.thresholds.anchor_fan_in:
                continue
            primary = locations[0]
            annotations.append(
                MxAnnotation(
                    tag="ANCHOR",
                    message=f"High fan-in ({fan_in} files import this symbol); changes have a wide impact",
                    line=primary.line,
                    symbol_name=name,
                    metadata={"fanIn": fan_in, "declarationFile": primary.file},
                )
            )
        return annotations

    def analyze_signatures(self, files: List[SemanticFile]) -> List[MxAnnotation]:
        annotations: List[MxAnnotation] = []
        for semantic_file in files:
            for function in _all_functions(semantic_file):
                reasons: List[str] = []
                if len(function.params) >= self.thresholds.param_count:
                    reasons.append(f"{len(function.params)} parameters")
                has_any = function.return_type in ANY_TYPES or any(
                    param.type in ANY_TYPES for param in function.params
                )
                if has_any:
                    reasons.append("uses any type")
                if not reasons:
                    continue
                annotations.append(
                    MxAnnotation(
                        tag="WARN",
                        message=", ".join(reasons),
                        line=function.line,
                        symbol_name=function.name,
                        metadata={
                            "file": semantic_file.path,
                            "paramCount": len(function.params),
                            "hasAnyType": has_any,
                        },
                    )
                )
        return annotations

    def analyze_source_complexity(
        self, files: List[SemanticFile], sources: Dict[str, str]
    ) -> List[MxAnnotation]:
        annotations: List[MxAnnotation] = []
        for semantic_file in files:
            content = sources.get(semantic_file.path)
            if content is None:
                continue
            lines = content.split("\n")
            functions = sorted(_all_functions(semantic_file), key=lambda function: function.line)

            for index, function in enumerate(functions):
                if index + 1 < len(functions):
                    end_line = functions[index + 1].line - 1
                else:
                    end_line = len(lines)
                length = end_line - function.line + 1
                if length >= self.thresholds.function_length:
                    annotations.append(
                        MxAnnotation(
                            tag="WARN",
                            message=f"Function length {length} lines",
                            line=function.line,
                            symbol_name=function.name,
                            metadata={"file": semantic_file.path, "functionLength": length},
                        )
                    )

            if semantic_file.language in _BRACELESS_LANGUAGES:
                continue
            depth, depth_line = max_brace_depth(lines)
            if depth >= self.thresholds.nesting_depth:
                enclosing = _enclosing_function(functions, depth_line)
                annotations.append(
                    MxAnnotation(
                        tag="WARN",
                        message=f"Nesting depth {depth}",
                        line=depth_line,
                        symbol_name=enclosing.name if enclosing else None,
                        metadata=_nesting_metadata(semantic_file.path, depth, enclosing),
                    )
                )
        return annotations


def max_brace_depth(lines: List[str]) -> tuple[int, int]:
    """Return the deepest ``{`` nesting level and the 1-based line where it first occurs."""
    max_depth = 0
    max_line = 0
    depth = 0
    for index, line in enumerate(lines):
        for char in line:
            if char == "{":
                depth += 1
                if depth > max_depth:
                    max_depth = depth
                    max_line = index + 1
            elif char == "}":
                depth = max(0, depth - 1)
    return max_depth, max_line


def scan_notes(files: List[SemanticFile], sources: Dict[str, str]) -> List[MxAnnotation]:
    annotations: List[MxAnnotation] = []
    for semantic_file in files:
        content = sources.get(semantic_file.path)
        if content is None:
            continue
        for index, line in enumerate(content.split("\n")):
            for match in _NOTE_RE.finditer(line):
                annotations.append(
                    MxAnnotation(
                        tag="NOTE",
                        message=match.group(1).strip(),
                        line=index + 1,
                        metadata={"file": semantic_file.path},
                    )
                )
    return annotations


def scan_todos(files: List[SemanticFile], sources: Dict[str, str]) -> List[MxAnnotation]:
    annotations: List[MxAnnotation] = []
    for semantic_file in files:
        content = sources.get(semantic_file.path)
        if content is None:
            continue
        comment_re = (
            _HASH_COMMENT_RE if semantic_file.language in _BRACELESS_LANGUAGES else _BRACE_COMMENT_RE
        )
        for index, line in enumerate(content.split("\n")):
            comment = comment_re.search(line)
            if comment is None:
                continue
            text = next((group for group in comment.groups() if group), "")
            match = _TODO_RE.search(text)
            if match is None:
                continue
            keyword = match.group(1)
            message = match.group(2).strip() or f"{keyword} found"
            annotations.append(
                MxAnnotation(
                    tag="TODO",
                    message=f"[{keyword}] {message}",
                    line=index + 1,
                    metadata={"file": semantic_file.path, "keyword": keyword},
                )
            )
    return annotations


def build_summary(annotations: List[MxAnnotation]) -> AnnotationSummary:
    by_tag: Dict[str, int] = {}
    anchors: List[AnchorSummary] = []
    warnings: List[WarningSummary] = []
    for annotation in annotations:
        by_tag[annotation.tag] = by_tag.get(annotation.tag, 0) + 1
        if annotation.tag == "ANCHOR" and annotation.symbol_name:
            anchors.append(
                AnchorSummary(
                    symbol=annotation.symbol_name,
                    file=str(annotation.metadata.get("declarationFile", "")),
                    fan_in=int(annotation.metadata.get("fanIn", 0)),
                )
            )
        elif annotation.tag == "WARN" and annotation.symbol_name:
            warnings.append(
                WarningSummary(
                    symbol=annotation.symbol_name,
                    file=str(annotation.metadata.get("file", "")),
                    reason=annotation.message,
                )
            )
    anchors.sort(key=lambda anchor: anchor.fan_in, reverse=True)
    return AnnotationSummary(
        total=len(annotations),
        by_tag=by_tag,
        top_anchors=anchors[:TOP_ANCHOR_LIMIT],
        warnings=warnings[:WARNING_LIMIT],
    )


def _nesting_metadata(
    path: str, depth: int, enclosing: Optional[FunctionEntry]
) -> Dict[str, object]:
    metadata: Dict[str, object] = {"file": path, "nestingDepth": depth}
    if enclosing is not None:
        metadata["symbolLine"] = enclosing.line
    return metadata


def _all_functions(semantic_file: SemanticFile) -> List[FunctionEntry]:
    functions = list(semantic_file.functions)
    for entry in semantic_file.classes:
        functions.extend(entry.methods)
    return functions


def _enclosing_function(functions: List[FunctionEntry], line: int) -> Optional[FunctionEntry]:
    enclosing: Optional[FunctionEntry] = None
    for function in functions:
        if function.line <= line and (enclosing is None or function.line >= enclosing.line):
            enclosing = function
    return enclosing


def _read_sources(files: List[SemanticFile], root: Path) -> Dict[str, str]:
    sources: Dict[str, str] = {}
    for semantic_file in files:
        path = Path(semantic_file.path)
        absolute = path if path.is_absolute() else root / path
        try:
            sources[semantic_file.path] = absolute.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping source passes for %s: %s", semantic_file.path, exc)
    return sources


__all__ = [
    "ANY_TYPES",
    "AnnotationAnalyzer",
    "AnnotationResult",
    "build_summary",
    "max_brace_depth",
    "scan_notes",
    "scan_todos",
]
