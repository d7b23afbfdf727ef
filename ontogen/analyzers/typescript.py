"""Regex based TypeScript/JavaScript analysis.

This backend needs no parser. It only sees top-level exported declarations
and cannot see class or interface members.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from ..logging import get_logger
from ..models import (
    ClassEntry,
    FunctionEntry,
    ImportEntry,
    InterfaceEntry,
    Param,
    SemanticFile,
    SymbolEntry,
    TypeAliasEntry,
)
from .base import LanguagePlugin, empty_semantic_file

logger = get_logger("analyzers.typescript")

SCRIPT_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")

_IMPORT_RE = re.compile(
    r"^import\s+(?:(type)\s+)?"
    r"(?:(\*\s+as\s+\w+|\{[^}]*\}|\w+)(?:\s*,\s*(\{[^}]*\}|\*\s+as\s+\w+))?|(\{[^}]*\}))"
    r"\s+from\s+['\"]([^'\"]+)['\"]",
    re.MULTILINE,
)
_SIDE_EFFECT_IMPORT_RE = re.compile(r"^import\s+['\"]([^'\"]+)['\"]", re.MULTILINE)

_EXPORT_RE = re.compile(
    r"^export\s+(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?"
    r"(?:(?P<async>async\s+)?function\*?\s+(?P<function>\w+)"
    r"|class\s+(?P<class>\w+)"
    r"|interface\s+(?P<interface>\w+)"
    r"|type\s+(?P<type>\w+)"
    r"|(?:const\s+)?enum\s+(?P<enum>\w+)"
    r"|(?:const|let|var)\s+(?P<constant>\w+))"
)
_EXPORT_KINDS = ("function", "class", "interface", "type", "enum", "constant")
_FUNCTION_SIGNATURE_RE = re.compile(
    r"function\*?\s+\w+\s*(?:<[^>]*>)?\s*\(([^)]*)\)\s*(?::\s*([^{;=]+?))?\s*(?:\{|;|$)",
    re.MULTILINE,
)
_TYPE_DEFINITION_RE = re.compile(r"type\s+\w+\s*(?:<[^>]*>)?\s*=\s*([^;]+)")
_CLASS_HERITAGE_RE = re.compile(
    r"class\s+\w+\s*(?:<[^>]*>)?\s*(?:extends\s+([\w.]+)(?:<[^>]*>)?)?\s*(?:implements\s+([\w.,\s<>]+?))?\s*\{"
)
_INTERFACE_EXTENDS_RE = re.compile(r"interface\s+\w+\s*(?:<[^>]*>)?\s*extends\s+([^{]+)\{")
_ALIAS_RE = re.compile(r"\s+as\s+\w+")


def language_for_path(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    return "javascript" if suffix in {".js", ".jsx", ".mjs", ".cjs"} else "typescript"


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split ``text`` on ``separator`` outside of brackets, braces and generics."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for index, char in enumerate(text):
        arrow = char == "=" and text[index + 1 : index + 2] == ">"
        if char in "([{<":
            depth += 1
        elif char in ")]}>" and depth > 0 and not (char == ">" and text[index - 1 : index] == "="):
            depth -= 1
        if char == separator and depth == 0 and not arrow:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def parse_param(raw: str) -> Param:
    """Parse ``name?: Type = default`` into a :class:`Param`."""
    text = raw.strip()
    default_split = split_top_level(text, "=")
    has_default = len(default_split) > 1
    head = default_split[0] if default_split else text
    annotation_split = split_top_level(head, ":")
    name = annotation_split[0].strip()
    type_text = ":".join(annotation_split[1:]).strip() if len(annotation_split) > 1 else "unknown"
    optional = has_default or name.endswith("?")
    name = name.rstrip("?").strip()
    for modifier in ("public ", "private ", "protected ", "readonly "):
        if name.startswith(modifier):
            name = name[len(modifier):].strip()
    return Param(name=name, type=type_text or "unknown", optional=optional)


def parse_imports(content: str) -> List[ImportEntry]:
    """Return named, default, namespace and side-effect imports found in ``content``."""
    results: List[ImportEntry] = []
    for match in _IMPORT_RE.finditer(content):
        is_type_only = match.group(1) == "type"
        first = (match.group(2) or "").strip()
        second = (match.group(3) or "").strip()
        only_named = (match.group(4) or "").strip()
        source = match.group(5)

        specifiers: List[str] = []
        is_default = False
        if only_named:
            specifiers.extend(_named_specifiers(only_named))
        else:
            if first.startswith("{"):
                specifiers.extend(_named_specifiers(first))
            elif first.startswith("*"):
                specifiers.append(" ".join(first.split()))
            elif first:
                is_default = True
                specifiers.append(first)
            if second.startswith("{"):
                specifiers.extend(_named_specifiers(second))
            elif second:
                specifiers.append(" ".join(second.split()))
        if source:
            results.append(
                ImportEntry(
                    source=source,
                    specifiers=specifiers,
                    is_type_only=is_type_only,
                    is_default=is_default,
                )
            )

    for match in _SIDE_EFFECT_IMPORT_RE.finditer(content):
        results.append(ImportEntry(source=match.group(1)))
    return results


def _named_specifiers(block: str) -> List[str]:
    inner = block.strip().lstrip("{").rstrip("}")
    names: List[str] = []
    for part in inner.split(","):
        name = _ALIAS_RE.sub("", part.strip()).strip()
        if name.startswith("type "):
            name = name[len("type "):].strip()
        if name:
            names.append(name)
    return names


class TypeScriptRegexPlugin(LanguagePlugin):
    """Line-anchored regex extraction for TypeScript and JavaScript files."""

    name = "typescript-regex"
    language = "typescript"
    extensions = SCRIPT_EXTENSIONS

    def extract_imports(self, path: str, content: str) -> List[ImportEntry]:
        try:
            return parse_imports(content)
        except Exception as exc:  # pragma: no cover
            logger.warning("Import extraction failed for %s: %s", path, exc)
            return []

    def analyze_file(self, path: str, content: str) -> SemanticFile:
        try:
            return self._analyze(path, content)
        except Exception as exc:
            logger.warning("Regex analysis failed for %s: %s", path, exc)
            return empty_semantic_file(path, language_for_path(path))

    def _analyze(self, path: str, content: str) -> SemanticFile:
        result = SemanticFile(path=path, language=language_for_path(path))
        result.imports = parse_imports(content)

        offsets = _line_offsets(content)
        for index, raw_line in enumerate(content.split("\n")):
            line = raw_line.strip()
            match = _EXPORT_RE.match(line)
            if not match:
                continue
            line_no = index + 1
            tail = content[offsets[index]:]
            kind, name = _export_kind(match)
            if not name:
                continue
            result.exports.append(SymbolEntry(name=name, kind=kind, line=line_no, exported=True))
            if kind == "function":
                params, return_type = _function_signature(tail)
                result.functions.append(
                    FunctionEntry(
                        name=name,
                        kind="function",
                        line=line_no,
                        exported=True,
                        params=params,
                        return_type=return_type,
                        is_async=bool(match.group("async")),
                    )
                )
            elif kind == "class":
                extends, implements = _class_heritage(tail)
                result.classes.append(
                    ClassEntry(
                        name=name,
                        kind="class",
                        line=line_no,
                        exported=True,
                        extends=extends,
                        implements=implements,
                    )
                )
            elif kind == "interface":
                result.interfaces.append(
                    InterfaceEntry(
                        name=name,
                        kind="interface",
                        line=line_no,
                        exported=True,
                        extends=_interface_extends(tail),
                    )
                )
            elif kind == "type":
                definition = _TYPE_DEFINITION_RE.search(tail)
                result.types.append(
                    TypeAliasEntry(
                        name=name,
                        kind="type",
                        line=line_no,
                        exported=True,
                        definition=" ".join(definition.group(1).split()) if definition else "",
                    )
                )
        return result


def _export_kind(match: re.Match) -> Tuple[str, Optional[str]]:
    for kind in _EXPORT_KINDS:
        if match.group(kind):
            return kind, match.group(kind)
    return "variable", None


def _line_offsets(content: str) -> List[int]:
    offsets = [0]
    for line in content.split("\n")[:-1]:
        offsets.append(offsets[-1] + len(line) + 1)
    return offsets


def _function_signature(tail: str) -> Tuple[List[Param], str]:
    match = _FUNCTION_SIGNATURE_RE.search(tail)
    if not match:
        return [], "void"
    params = [parse_param(raw) for raw in split_top_level(match.group(1))]
    return_type = " ".join((match.group(2) or "").split()) or "void"
    return params, return_type


def _class_heritage(tail: str) -> Tuple[Optional[str], List[str]]:
    match = _CLASS_HERITAGE_RE.search(tail)
    if not match:
        return None, []
    implements = split_top_level(match.group(2) or "")
    return match.group(1), implements


def _interface_extends(tail: str) -> List[str]:
    match = _INTERFACE_EXTENDS_RE.search(tail)
    if not match:
        return []
    return split_top_level(match.group(1))


__all__ = [
    "SCRIPT_EXTENSIONS",
    "TypeScriptRegexPlugin",
    "language_for_path",
    "parse_imports",
    "parse_param",
    "split_top_level",
]
