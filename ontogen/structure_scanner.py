"""Project tree scanning for the structure layer."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .logging import get_logger, record_warning
from .models import (
    DirectoryNode,
    FileInfo,
    IncrementalChange,
    ModuleRelation,
    StructureLayer,
    StructureStats,
)

logger = get_logger("structure")

LANGUAGE_BY_SUFFIX: Dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".pyi": "python",
    ".rb": "ruby",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".swift": "swift",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".php": "php",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".vue": "vue",
    ".svelte": "svelte",
}

_SCRIPT_LANGUAGES = {"typescript", "javascript"}

_STATIC_IMPORT_RE = re.compile(r"^import\s+.*?from\s+['\"]([^'\"]+)['\"]", re.MULTILINE)
_REEXPORT_RE = re.compile(r"^export\s+.*?from\s+['\"]([^'\"]+)['\"]", re.MULTILINE)
_DYNAMIC_IMPORT_RE = re.compile(r"import\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")

_PY_FROM_RE = re.compile(r"^[ \t]*from\s+(\.+[\w.]*|[\w.]+)\s+import\s+(\*|\S.*)$", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^[ \t]*import\s+([\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)", re.MULTILINE)
_PY_DYNAMIC_RE = re.compile(
    r"(?:importlib\.import_module|__import__)\(\s*['\"]([^'\"]+)['\"]"
)

_GLOB_CHARS = re.compile(r"[*?\[\]]")

IGNORE_FILENAME = ".gitignore"


def detect_language(path: str) -> Optional[str]:
    """Return the language for ``path`` based on its extension."""
    return LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower())


def load_ignore_patterns(root: Path) -> List[str]:
    """Return the simple name-only patterns from the project's ignore file.

    Lines that carry a path separator, a negation marker or glob
    metacharacters cannot be applied as a name match and are dropped.
    """
    ignore_path = root / IGNORE_FILENAME
    try:
        text = ignore_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Unable to read %s: %s", ignore_path, exc)
        return []

    patterns: List[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        cleaned = line[:-1] if line.endswith("/") else line
        if not cleaned or "/" in cleaned or _GLOB_CHARS.search(cleaned):
            continue
        patterns.append(cleaned)
    return patterns


def merge_exclude_patterns(*sources: Iterable[str]) -> List[str]:
    """Concatenate pattern sources, dropping duplicates but keeping first-seen order."""
    merged: List[str] = []
    seen = set()
    for source in sources:
        for pattern in source:
            if pattern and pattern not in seen:
                seen.add(pattern)
                merged.append(pattern)
    return merged


def is_excluded(name: str, patterns: Sequence[str]) -> bool:
    return any(name == pattern or name.startswith(pattern) for pattern in patterns)


def extract_module_relations(source: str, content: str, language: Optional[str]) -> List[ModuleRelation]:
    """Return the import edges found in ``content`` for a file at relative path ``source``."""
    relations: List[ModuleRelation] = []
    if language in _SCRIPT_LANGUAGES:
        for match in _STATIC_IMPORT_RE.finditer(content):
            relations.append(ModuleRelation(source=source, target=match.group(1), kind="import"))
        for match in _REEXPORT_RE.finditer(content):
            relations.append(ModuleRelation(source=source, target=match.group(1), kind="reexport"))
        for match in _DYNAMIC_IMPORT_RE.finditer(content):
            relations.append(
                ModuleRelation(source=source, target=match.group(1), kind="dynamic-import")
            )
    elif language == "python":
        for match in _PY_FROM_RE.finditer(content):
            kind = "reexport" if match.group(2).strip() == "*" else "import"
            relations.append(ModuleRelation(source=source, target=match.group(1), kind=kind))
        for match in _PY_IMPORT_RE.finditer(content):
            for part in match.group(1).split(","):
                module = part.strip().split()[0] if part.strip() else ""
                if module:
                    relations.append(ModuleRelation(source=source, target=module, kind="import"))
        for match in _PY_DYNAMIC_RE.finditer(content):
            relations.append(
                ModuleRelation(source=source, target=match.group(1), kind="dynamic-import")
            )
    return relations


def collect_stats(tree: DirectoryNode) -> StructureStats:
    """Aggregate file and directory counts below ``tree`` (the root itself is not counted)."""
    stats = StructureStats()

    def _walk(node: DirectoryNode) -> None:
        if node.type == "file":
            stats.total_files += 1
            info = node.file_info
            if info is not None:
                if info.language:
                    stats.by_language[info.language] = stats.by_language.get(info.language, 0) + 1
                if info.extension:
                    stats.by_extension[info.extension] = stats.by_extension.get(info.extension, 0) + 1
            return
        stats.total_dirs += 1
        for child in node.children:
            _walk(child)

    for child in tree.children:
        _walk(child)
    return stats


def iter_files(node: DirectoryNode) -> Iterable[DirectoryNode]:
    """Yield every file node below ``node`` depth-first."""
    if node.type == "file":
        yield node
        return
    for child in node.children:
        yield from iter_files(child)


class StructureScanner:
    """Walks a project tree and produces the structure layer."""

    def __init__(self, rescan_threshold: int = 50) -> None:
        self.rescan_threshold = rescan_threshold

    def scan(
        self,
        root: Path,
        exclude_patterns: Sequence[str] = (),
        max_depth: int = 10,
        *,
        skip_paths: Sequence[str] = (),
        extract_relations: bool = True,
        warnings: Optional[List[str]] = None,
    ) -> StructureLayer:
        """Return a fresh structure layer for ``root``.

        ``exclude_patterns`` are merged with the ignore file patterns. Entries
        whose name equals or starts with a pattern are skipped, as are the
        project-relative directories in ``skip_paths``.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")

        excludes = merge_exclude_patterns(exclude_patterns, load_ignore_patterns(root_path))
        sink = warnings if warnings is not None else []
        relations: List[ModuleRelation] = []
        tree = self._scan_directory(
            root_path,
            root_path,
            excludes,
            {path.strip("/") for path in skip_paths if path},
            max_depth,
            0,
            relations if extract_relations else None,
            sink,
        )
        stats = collect_stats(tree)
        logger.info(
            "Structure scan complete: %d files, %d directories, %d relations",
            stats.total_files,
            stats.total_dirs,
            len(relations),
        )
        return StructureLayer(root_dir=str(root_path), tree=tree, modules=relations, stats=stats)

    def update_incremental(
        self,
        root: Path,
        existing: StructureLayer,
        changes: IncrementalChange,
        exclude_patterns: Sequence[str] = (),
        max_depth: int = 10,
        *,
        skip_paths: Sequence[str] = (),
        warnings: Optional[List[str]] = None,
    ) -> StructureLayer:
        """Refresh ``existing`` for ``changes``, rescanning fully past the threshold."""
        logger.info(
            "Structure incremental update: %d added, %d modified, %d deleted",
            len(changes.added),
            len(changes.modified),
            len(changes.deleted),
        )
        if changes.total > self.rescan_threshold:
            logger.info(
                "%d changed files exceed the rescan threshold of %d; running a full scan",
                changes.total,
                self.rescan_threshold,
            )
            return self.scan(
                root, exclude_patterns, max_depth, skip_paths=skip_paths, warnings=warnings
            )

        refreshed = self.scan(
            root,
            exclude_patterns,
            max_depth,
            skip_paths=skip_paths,
            extract_relations=False,
            warnings=warnings,
        )
        root_path = Path(refreshed.root_dir)
        stale = set(changes.deleted) | set(changes.added) | set(changes.modified)
        modules = [relation for relation in existing.modules if relation.source not in stale]

        present = {node.path for node in iter_files(refreshed.tree)}
        for rel_path in [*changes.added, *changes.modified]:
            if rel_path not in present:
                continue
            language = detect_language(rel_path)
            content = _read_text(root_path / rel_path)
            if content is None:
                continue
            modules.extend(extract_module_relations(rel_path, content, language))

        refreshed.modules = modules
        return refreshed

    def _scan_directory(
        self,
        directory: Path,
        root: Path,
        excludes: Sequence[str],
        skip_paths: set,
        max_depth: int,
        depth: int,
        relations: Optional[List[ModuleRelation]],
        warnings: List[str],
    ) -> DirectoryNode:
        rel_dir = directory.relative_to(root).as_posix() if directory != root else "."
        node = DirectoryNode(name=directory.name, path=rel_dir, type="directory")
        if depth >= max_depth:
            return node

        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            record_warning(logger, warnings, f"Unable to read directory {rel_dir}: {exc.strerror or exc}")
            return node

        for entry in entries:
            if is_excluded(entry.name, excludes):
                continue
            rel_path = entry.name if rel_dir == "." else f"{rel_dir}/{entry.name}"
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError:
                continue
            if is_dir:
                if rel_path in skip_paths:
                    continue
                node.children.append(
                    self._scan_directory(
                        Path(entry.path),
                        root,
                        excludes,
                        skip_paths,
                        max_depth,
                        depth + 1,
                        relations,
                        warnings,
                    )
                )
            elif is_file:
                file_path = Path(entry.path)
                info = _file_info(file_path)
                node.children.append(
                    DirectoryNode(name=entry.name, path=rel_path, type="file", file_info=info)
                )
                if relations is not None and info.language in (_SCRIPT_LANGUAGES | {"python"}):
                    content = _read_text(file_path)
                    if content is not None:
                        relations.extend(extract_module_relations(rel_path, content, info.language))
        return node


def _file_info(path: Path) -> FileInfo:
    info = FileInfo(extension=path.suffix.lower(), language=detect_language(path.name))
    try:
        data = path.read_bytes()
    except OSError:
        return info
    info.size_bytes = len(data)
    info.line_count = data.count(b"\n") + 1 if data else 0
    return info


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Skipping relation extraction for %s: %s", path, exc)
        return None


__all__ = [
    "LANGUAGE_BY_SUFFIX",
    "StructureScanner",
    "collect_stats",
    "detect_language",
    "extract_module_relations",
    "is_excluded",
    "iter_files",
    "load_ignore_patterns",
    "merge_exclude_patterns",
]
