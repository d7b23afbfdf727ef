"""Python source analysis using the standard library ``ast`` module."""

from __future__ import annotations

import ast
from typing import List, Optional, Sequence, Set, Union

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

logger = get_logger("analyzers.python")

_INTERFACE_BASES = {"Protocol", "TypedDict", "typing.Protocol", "typing.TypedDict"}
_BOUND_ARGS = {"self", "cls"}

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


class PythonPlugin(LanguagePlugin):
    """Extracts module-level symbols and imports from Python files.

    Public names (no leading underscore) count as exported unless the module
    declares ``__all__``, in which case only the listed names do.
    """

    name = "python"
    language = "python"
    extensions = (".py", ".pyi")

    def analyze_file(self, path: str, content: str) -> SemanticFile:
        try:
            tree = ast.parse(content, filename=path)
        except (SyntaxError, ValueError) as exc:
            logger.warning("Unable to parse %s: %s", path, exc)
            return empty_semantic_file(path, self.language)
        try:
            return self._collect(path, tree)
        except Exception as exc:  # pragma: no cover
            logger.warning("Python analysis failed for %s: %s", path, exc)
            return empty_semantic_file(path, self.language)

    def _collect(self, path: str, tree: ast.Module) -> SemanticFile:
        result = SemanticFile(path=path, language=self.language)
        public = _declared_all(tree)

        def is_exported(name: str) -> bool:
            if public is not None:
                return name in public
            return not name.startswith("_")

        for node in tree.body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    result.imports.append(ImportEntry(source=alias.name))
            elif isinstance(node, ast.ImportFrom):
                source = "." * node.level + (node.module or "")
                names = [alias.name for alias in node.names]
                result.imports.append(
                    ImportEntry(
                        source=source,
                        specifiers=[] if names == ["*"] else names,
                        is_type_only=False,
                    )
                )
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                entry = _function(node, "function", is_exported(node.name))
                result.functions.append(entry)
                _export(result, entry)
            elif isinstance(node, ast.ClassDef):
                bases = [ast.unparse(base) for base in node.bases]
                if _INTERFACE_BASES.intersection(bases):
                    interface = _interface(node, bases, is_exported(node.name))
                    result.interfaces.append(interface)
                    _export(result, interface)
                else:
                    entry = _class(node, bases, is_exported(node.name))
                    result.classes.append(entry)
                    _export(result, entry)
            elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
                name = node.target.id
                annotation = ast.unparse(node.annotation)
                if annotation.split(".")[-1] == "TypeAlias" and node.value is not None:
                    alias = TypeAliasEntry(
                        name=name,
                        kind="type",
                        line=node.lineno,
                        exported=is_exported(name),
                        definition=ast.unparse(node.value),
                    )
                    result.types.append(alias)
                    _export(result, alias)
                elif is_exported(name):
                    result.exports.append(
                        SymbolEntry(
                            name=name,
                            kind=_constant_kind(name),
                            line=node.lineno,
                            exported=True,
                            signature=annotation,
                        )
                    )
            elif isinstance(node, ast.Assign):
                for target in node.targets:
                    if isinstance(target, ast.Name) and target.id != "__all__" and is_exported(target.id):
                        result.exports.append(
                            SymbolEntry(
                                name=target.id,
                                kind=_constant_kind(target.id),
                                line=node.lineno,
                                exported=True,
                            )
                        )
            elif _is_type_statement(node):
                name = node.name.id  # type: ignore[attr-defined]
                alias = TypeAliasEntry(
                    name=name,
                    kind="type",
                    line=node.lineno,
                    exported=is_exported(name),
                    definition=ast.unparse(node.value),  # type: ignore[attr-defined]
                )
                result.types.append(alias)
                _export(result, alias)
        return result


def _declared_all(tree: ast.Module) -> Optional[Set[str]]:
    for node in tree.body:
        if not isinstance(node, ast.Assign):
            continue
        if not any(isinstance(target, ast.Name) and target.id == "__all__" for target in node.targets):
            continue
        if isinstance(node.value, (ast.List, ast.Tuple)):
            return {
                element.value
                for element in node.value.elts
                if isinstance(element, ast.Constant) and isinstance(element.value, str)
            }
    return None


def _is_type_statement(node: ast.stmt) -> bool:
    type_alias = getattr(ast, "TypeAlias", None)
    return type_alias is not None and isinstance(node, type_alias)


def _constant_kind(name: str) -> str:
    return "constant" if name.isupper() else "variable"


def _docstring(node: ast.AST) -> Optional[str]:
    doc = ast.get_docstring(node)  # type: ignore[arg-type]
    if not doc:
        return None
    return " ".join(doc.split())


def _export(result: SemanticFile, entry: SymbolEntry) -> None:
    if entry.exported:
        result.exports.append(
            SymbolEntry(
                name=entry.name,
                kind=entry.kind,
                line=entry.line,
                exported=True,
                doc=entry.doc,
            )
        )


def _params(args: ast.arguments, skip_bound: bool) -> List[Param]:
    positional = [*args.posonlyargs, *args.args]
    defaults_start = len(positional) - len(args.defaults)
    params: List[Param] = []
    for index, arg in enumerate(positional):
        if skip_bound and index == 0 and arg.arg in _BOUND_ARGS:
            continue
        params.append(_param(arg.arg, arg.annotation, index >= defaults_start))
    if args.vararg is not None:
        params.append(_param(f"*{args.vararg.arg}", args.vararg.annotation, True))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(_param(arg.arg, arg.annotation, default is not None))
    if args.kwarg is not None:
        params.append(_param(f"**{args.kwarg.arg}", args.kwarg.annotation, True))
    return params


def _param(name: str, annotation: Optional[ast.expr], optional: bool) -> Param:
    type_text = ast.unparse(annotation) if annotation is not None else "unknown"
    return Param(name=name, type=type_text, optional=optional)


def _function(node: FunctionNode, kind: str, exported: bool) -> FunctionEntry:
    return FunctionEntry(
        name=node.name,
        kind=kind,
        line=node.lineno,
        exported=exported,
        doc=_docstring(node),
        params=_params(node.args, skip_bound=kind == "method"),
        return_type=ast.unparse(node.returns) if node.returns is not None else "unknown",
        is_async=isinstance(node, ast.AsyncFunctionDef),
    )


def _class(node: ast.ClassDef, bases: Sequence[str], exported: bool) -> ClassEntry:
    entry = ClassEntry(
        name=node.name,
        kind="class",
        line=node.lineno,
        exported=exported,
        doc=_docstring(node),
        extends=bases[0] if bases else None,
        implements=list(bases[1:]),
    )
    for member in node.body:
        if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef)):
            entry.methods.append(_function(member, "method", False))
        elif isinstance(member, ast.AnnAssign) and isinstance(member.target, ast.Name):
            entry.properties.append(
                SymbolEntry(
                    name=member.target.id,
                    kind="property",
                    line=member.lineno,
                    signature=ast.unparse(member.annotation),
                )
            )
        elif isinstance(member, ast.Assign):
            for target in member.targets:
                if isinstance(target, ast.Name):
                    entry.properties.append(
                        SymbolEntry(name=target.id, kind="property", line=member.lineno)
                    )
    return entry


def _interface(node: ast.ClassDef, bases: Sequence[str], exported: bool) -> InterfaceEntry:
    entry = InterfaceEntry(
        name=node.name,
        kind="interface",
        line=node.lineno,
        exported=exported,
        doc=_docstring(node),
        extends=[base for base in bases if base not in _INTERFACE_BASES],
    )
    for member in node.body:
        if isinstance(member, ast.AnnAssign) and isinstance(member.target, ast.Name):
            annotation = ast.unparse(member.annotation)
            entry.properties.append(
                Param(
                    name=member.target.id,
                    type=annotation,
                    optional=annotation.startswith(("Optional[", "NotRequired[")),
                )
            )
    return entry


__all__ = ["PythonPlugin"]
