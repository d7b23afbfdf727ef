"""Tree-sitter powered TypeScript/JavaScript analysis."""

from __future__ import annotations

from functools import lru_cache
from pathlib import PurePosixPath
from typing import List, Optional

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

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
from .typescript import SCRIPT_EXTENSIONS, TypeScriptRegexPlugin, language_for_path

logger = get_logger("analyzers.tree_sitter")

_TSX_SUFFIXES = {".tsx", ".jsx"}
_FUNCTION_NODES = {"function_declaration", "generator_function_declaration"}
_CLASS_NODES = {"class_declaration", "abstract_class_declaration"}
_VARIABLE_NODES = {"lexical_declaration", "variable_declaration"}
_METHOD_NODES = {"method_definition", "abstract_method_signature", "method_signature"}
_FIELD_NODES = {"public_field_definition", "property_declaration"}
_PARAMETER_NODES = {"required_parameter", "optional_parameter"}


@lru_cache(maxsize=None)
def _load_language(dialect: str) -> Language:
    if dialect == "tsx":
        return Language(tree_sitter_typescript.language_tsx())
    return Language(tree_sitter_typescript.language_typescript())


def ast_backend_available() -> bool:
    """Return True when the TypeScript grammar loads into the installed tree-sitter."""
    try:
        _load_language("typescript")
        _load_language("tsx")
    except (TypeError, ValueError, OSError) as exc:
        logger.debug("Tree-sitter TypeScript grammar unavailable: %s", exc)
        return False
    return True


class TypeScriptTreeSitterPlugin(LanguagePlugin):
    """Extracts symbols, members, inheritance and doc comments from the syntax tree.

    Any failure while walking the tree falls back to ``fallback``, which in
    turn degrades to an empty file.
    """

    name = "typescript"
    language = "typescript"
    extensions = SCRIPT_EXTENSIONS

    def __init__(self, fallback: Optional[LanguagePlugin] = None) -> None:
        self.fallback = fallback or TypeScriptRegexPlugin()

    def analyze_file(self, path: str, content: str) -> SemanticFile:
        try:
            return self._analyze(path, content)
        except Exception as exc:
            logger.warning("AST analysis failed for %s: %s; using regex fallback", path, exc)
            try:
                return self.fallback.analyze_file(path, content)
            except Exception as fallback_exc:  # pragma: no cover - fallback never raises
                logger.warning("Regex fallback failed for %s: %s", path, fallback_exc)
                return empty_semantic_file(path, language_for_path(path))

    def extract_imports(self, path: str, content: str) -> List[ImportEntry]:
        return self.analyze_file(path, content).imports

    def _analyze(self, path: str, content: str) -> SemanticFile:
        source = content.encode("utf-8")
        dialect = "tsx" if PurePosixPath(path).suffix.lower() in _TSX_SUFFIXES else "typescript"
        # Parsers are not shared across threads.
        parser = Parser(_load_language(dialect))
        tree = parser.parse(source)
        walker = _Walker(source, SemanticFile(path=path, language=language_for_path(path)))
        for node in tree.root_node.named_children:
            walker.visit_statement(node)
        return walker.result


class _Walker:
    def __init__(self, source: bytes, result: SemanticFile) -> None:
        self.source = source
        self.result = result

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return "unknown"
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    @staticmethod
    def line(node: Node) -> int:
        return node.start_point[0] + 1

    def visit_statement(self, node: Node) -> None:
        if node.type == "import_statement":
            self._import(node)
        elif node.type == "export_statement":
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                self._declaration(declaration, exported=True, anchor=node)
        else:
            self._declaration(node, exported=False, anchor=node)

    def _declaration(self, node: Node, *, exported: bool, anchor: Node) -> None:
        kind = node.type
        if kind == "ambient_declaration":
            for child in node.named_children:
                self._declaration(child, exported=exported, anchor=anchor)
            return
        line = self.line(anchor)
        doc = self._doc_comment(anchor)
        if kind in _FUNCTION_NODES:
            entry = self._function(node, "function", exported, line, doc)
            if entry is not None:
                self.result.functions.append(entry)
                self._export(entry, exported)
        elif kind in _CLASS_NODES:
            entry = self._class(node, exported, line, doc)
            if entry is not None:
                self.result.classes.append(entry)
                self._export(entry, exported)
        elif kind == "interface_declaration":
            entry = self._interface(node, exported, line, doc)
            if entry is not None:
                self.result.interfaces.append(entry)
                self._export(entry, exported)
        elif kind == "type_alias_declaration":
            name = node.child_by_field_name("name")
            if name is None:
                return
            entry = TypeAliasEntry(
                name=self.text(name),
                kind="type",
                line=line,
                exported=exported,
                doc=doc,
                definition=" ".join(self.text(node.child_by_field_name("value")).split()),
            )
            self.result.types.append(entry)
            self._export(entry, exported)
        elif kind == "enum_declaration" and exported:
            name = node.child_by_field_name("name")
            if name is not None:
                self.result.exports.append(
                    SymbolEntry(name=self.text(name), kind="enum", line=line, exported=True, doc=doc)
                )
        elif kind in _VARIABLE_NODES and exported:
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name = declarator.child_by_field_name("name")
                if name is None or name.type != "identifier":
                    continue
                self.result.exports.append(
                    SymbolEntry(
                        name=self.text(name),
                        kind="constant",
                        line=self.line(declarator),
                        exported=True,
                        doc=doc,
                    )
                )

    def _export(self, entry: SymbolEntry, exported: bool) -> None:
        if exported:
            self.result.exports.append(
                SymbolEntry(
                    name=entry.name,
                    kind=entry.kind,
                    line=entry.line,
                    exported=True,
                    doc=entry.doc,
                )
            )

    def _import(self, node: Node) -> None:
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return
        source = self.text(source_node).strip("'\"`")
        entry = ImportEntry(source=source)
        for child in node.children:
            if child.type == "type" and not child.is_named:
                entry.is_type_only = True
            if child.type != "import_clause":
                continue
            for part in child.named_children:
                if part.type == "identifier":
                    entry.is_default = True
                    entry.specifiers.append(self.text(part))
                elif part.type == "namespace_import":
                    identifiers = [c for c in part.named_children if c.type == "identifier"]
                    if identifiers:
                        entry.specifiers.append(f"* as {self.text(identifiers[-1])}")
                elif part.type == "named_imports":
                    for specifier in part.named_children:
                        if specifier.type != "import_specifier":
                            continue
                        name = specifier.child_by_field_name("name")
                        if name is not None:
                            entry.specifiers.append(self.text(name))
        self.result.imports.append(entry)

    def _function(
        self, node: Node, kind: str, exported: bool, line: int, doc: Optional[str]
    ) -> Optional[FunctionEntry]:
        name = node.child_by_field_name("name")
        if name is None:
            return None
        return FunctionEntry(
            name=self.text(name),
            kind=kind,
            line=line,
            exported=exported,
            doc=doc,
            params=self._params(node.child_by_field_name("parameters")),
            return_type=self._annotation(node.child_by_field_name("return_type")) or "void",
            is_async=any(child.type == "async" for child in node.children),
        )

    def _params(self, node: Optional[Node]) -> List[Param]:
        if node is None:
            return []
        params: List[Param] = []
        for child in node.named_children:
            if child.type not in _PARAMETER_NODES:
                continue
            pattern = child.child_by_field_name("pattern")
            annotation = self._annotation(child.child_by_field_name("type"))
            params.append(
                Param(
                    name=self.text(pattern),
                    type=annotation or "unknown",
                    optional=child.type == "optional_parameter"
                    or child.child_by_field_name("value") is not None,
                )
            )
        return params

    def _annotation(self, node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None
        text = self.text(node).strip()
        if text.startswith(":"):
            text = text[1:]
        return " ".join(text.split()) or None

    def _class(self, node: Node, exported: bool, line: int, doc: Optional[str]) -> Optional[ClassEntry]:
        name = node.child_by_field_name("name")
        if name is None:
            return None
        entry = ClassEntry(name=self.text(name), kind="class", line=line, exported=exported, doc=doc)
        for child in node.children:
            if child.type != "class_heritage":
                continue
            for clause in child.named_children:
                types = [
                    part for part in clause.named_children if part.type != "type_arguments"
                ]
                if clause.type == "extends_clause" and types:
                    entry.extends = self.text(types[0])
                elif clause.type == "implements_clause":
                    entry.implements = [self.text(part) for part in types]

        body = node.child_by_field_name("body")
        if body is None:
            return entry
        for member in body.named_children:
            if member.type in _METHOD_NODES:
                method = self._function(
                    member, "method", False, self.line(member), self._doc_comment(member)
                )
                if method is not None:
                    entry.methods.append(method)
            elif member.type in _FIELD_NODES:
                field_name = member.child_by_field_name("name")
                if field_name is not None:
                    entry.properties.append(
                        SymbolEntry(
                            name=self.text(field_name),
                            kind="property",
                            line=self.line(member),
                            exported=False,
                            signature=self._annotation(member.child_by_field_name("type")),
                        )
                    )
        return entry

    def _interface(
        self, node: Node, exported: bool, line: int, doc: Optional[str]
    ) -> Optional[InterfaceEntry]:
        name = node.child_by_field_name("name")
        if name is None:
            return None
        entry = InterfaceEntry(
            name=self.text(name), kind="interface", line=line, exported=exported, doc=doc
        )
        for child in node.named_children:
            if child.type == "extends_type_clause":
                entry.extends = [self.text(part) for part in child.named_children]
        body = node.child_by_field_name("body")
        if body is None:
            return entry
        for member in body.named_children:
            if member.type != "property_signature":
                continue
            prop_name = member.child_by_field_name("name")
            if prop_name is None:
                continue
            entry.properties.append(
                Param(
                    name=self.text(prop_name),
                    type=self._annotation(member.child_by_field_name("type")) or "unknown",
                    optional=any(part.type == "?" for part in member.children),
                )
            )
        return entry

    def _doc_comment(self, node: Node) -> Optional[str]:
        previous = node.prev_sibling
        if previous is None or previous.type != "comment":
            return None
        text = self.text(previous)
        if not text.startswith("/**"):
            return None
        body = text[3:-2] if text.endswith("*/") else text[3:]
        lines = [line.strip().lstrip("*").strip() for line in body.splitlines()]
        doc = " ".join(line for line in lines if line)
        return doc or None


__all__ = ["TypeScriptTreeSitterPlugin", "ast_backend_available"]
