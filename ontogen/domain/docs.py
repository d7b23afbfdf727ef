"""Local scanning of project documentation for the documentation index."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import DocCrossReference, DocumentationIndex, DocumentInsight, SymbolIndex

logger = get_logger("domain.docs")

DOCS_DIRECTORIES = ("docs", "doc", "documentation")
DOC_EXTENSIONS = {".md", ".markdown", ".mdx", ".txt", ".yaml", ".yml"}
CONFIG_EXTENSIONS = {".yaml", ".yml"}
MAX_DOC_DEPTH = 3
MAX_DOC_FILES = 50
SUMMARY_BODY_CHARS = 4000
MIN_SYMBOL_LENGTH = 3

_TITLE_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)\s*([\w+#.-]*)")
_FENCED_BLOCK_RE = re.compile(r"^\s*(?:```|~~~)[^\n]*\n(.*?)^\s*(?:```|~~~)", re.MULTILINE | re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")

_DDL_RE = re.compile(r"\bCREATE\s+(?:TABLE|INDEX|VIEW|TYPE)\b", re.IGNORECASE)
_OPENAPI_RE = re.compile(r"^\s*[\"']?(openapi|swagger)[\"']?\s*:", re.MULTILINE | re.IGNORECASE)
_ADR_NAME_RE = re.compile(r"(^|[-_/])(adr|decision)s?([-_./]|\d|$)", re.IGNORECASE)
_ADR_CONTENT_RE = re.compile(r"^#+\s*(status|decision|context|consequences)\b", re.MULTILINE | re.IGNORECASE)
_RUNBOOK_NAME_RE = re.compile(r"runbook|playbook|procedure|operations|incident", re.IGNORECASE)
_RUNBOOK_CONTENT_RE = re.compile(r"^#+\s*(runbook|procedure|rollback|troubleshooting)\b", re.MULTILINE | re.IGNORECASE)
_GUIDE_NAME_RE = re.compile(r"guide|tutorial|getting[-_ ]?started|howto|how[-_]to", re.IGNORECASE)
_REFERENCE_NAME_RE = re.compile(r"reference|api", re.IGNORECASE)

DocumentSummarizer = Callable[[str, str], Tuple[str, List[str], List[str]]]


def find_docs_root(root: Path) -> Optional[Path]:
    for name in DOCS_DIRECTORIES:
        candidate = root / name
        if candidate.is_dir():
            return candidate
    return None


def collect_doc_files(
    docs_root: Path, max_depth: int = MAX_DOC_DEPTH, limit: int = MAX_DOC_FILES
) -> List[Path]:
    """Return documentation files under ``docs_root`` in sorted order, at most ``limit``."""
    found: List[Path] = []

    def _walk(directory: Path, depth: int) -> None:
        if depth > max_depth or len(found) >= limit:
            return
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            logger.warning("Unable to read %s: %s", directory, exc)
            return
        for entry in entries:
            if len(found) >= limit:
                return
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                _walk(entry, depth + 1)
            elif entry.is_file() and entry.suffix.lower() in DOC_EXTENSIONS:
                found.append(entry)

    _walk(docs_root, 1)
    return found


def extract_title(content: str, path: str) -> str:
    match = _TITLE_RE.search(content)
    if match:
        return match.group(1).strip()
    return Path(path).stem


def infer_doc_type(path: str, content: str) -> str:
    """Classify a document; the first matching heuristic wins."""
    name = Path(path).name
    suffix = Path(path).suffix.lower()
    if _DDL_RE.search(content):
        return "schema"
    if _OPENAPI_RE.search(content):
        return "api-spec"
    if _ADR_NAME_RE.search(path) or _ADR_CONTENT_RE.search(content):
        return "adr"
    if _RUNBOOK_NAME_RE.search(name) or _RUNBOOK_CONTENT_RE.search(content):
        return "runbook"
    if _GUIDE_NAME_RE.search(name):
        return "guide"
    if _REFERENCE_NAME_RE.search(name):
        return "reference"
    if suffix in CONFIG_EXTENSIONS:
        return "config"
    return "other"


def extract_headings(content: str) -> List[str]:
    headings: List[str] = []
    in_fence = False
    for line in content.splitlines():
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADING_RE.match(line)
        if match:
            headings.append(match.group(2).strip())
    return headings


def extract_code_languages(content: str) -> List[str]:
    languages: List[str] = []
    in_fence = False
    for line in content.splitlines():
        match = _FENCE_RE.match(line)
        if not match:
            continue
        if not in_fence:
            language = match.group(2).lower()
            if language and language not in languages:
                languages.append(language)
        in_fence = not in_fence
    return languages


def build_cross_references(
    documents: Dict[str, str], symbols: SymbolIndex
) -> List[DocCrossReference]:
    """Match every declared symbol name against every document by whole word.

    Confidence is ``high`` when the name appears in inline code or a fenced
    block, ``medium`` for two or more mentions, ``low`` otherwise.
    """
    references: List[DocCrossReference] = []
    candidates = [
        (name, locations[0].file)
        for name, locations in sorted(symbols.by_name.items())
        if len(name) >= MIN_SYMBOL_LENGTH and locations
    ]
    for doc_path, content in documents.items():
        code_text = "\n".join(
            [*_INLINE_CODE_RE.findall(content), *_FENCED_BLOCK_RE.findall(content)]
        )
        for name, symbol_file in candidates:
            pattern = re.compile(rf"\b{re.escape(name)}\b")
            mentions = len(pattern.findall(content))
            if not mentions:
                continue
            if pattern.search(code_text):
                confidence = "high"
            elif mentions >= 2:
                confidence = "medium"
            else:
                confidence = "low"
            references.append(
                DocCrossReference(
                    doc_path=doc_path,
                    symbol_name=name,
                    symbol_file=symbol_file,
                    confidence=confidence,
                )
            )
    return references


def build_documentation_index(
    root: Path,
    symbols: Optional[SymbolIndex] = None,
    summarize: Optional[DocumentSummarizer] = None,
) -> Optional[DocumentationIndex]:
    """Scan the docs directory and return its index, or None when the project has none.

    ``summarize`` is called per document with the project-relative path and
    the truncated body. A failure there leaves that document without a
    summary and does not affect the others.
    """
    root = Path(root)
    docs_root = find_docs_root(root)
    if docs_root is None:
        return None

    files = collect_doc_files(docs_root)
    logger.debug("Indexing %d documentation files under %s", len(files), docs_root)
    texts: Dict[str, str] = {}
    documents: List[DocumentInsight] = []
    for path in files:
        relative = path.relative_to(root).as_posix()
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Unable to read %s: %s", relative, exc)
            continue
        texts[relative] = content
        # YAML comments look like markdown headings.
        markup = path.suffix.lower() not in CONFIG_EXTENSIONS
        document = DocumentInsight(
            path=relative,
            title=extract_title(content, relative) if markup else path.stem,
            doc_type=infer_doc_type(relative, content),
            headings=extract_headings(content) if markup else [],
            code_block_languages=extract_code_languages(content) if markup else [],
        )
        if summarize is not None:
            try:
                summary, concepts, related = summarize(relative, content[:SUMMARY_BODY_CHARS])
            except Exception as exc:
                logger.warning("Document summary failed for %s: %s", relative, exc)
            else:
                document.summary = summary
                document.key_concepts = concepts
                document.related_symbols = list(dict.fromkeys(related))
        documents.append(document)

    references = build_cross_references(texts, symbols) if symbols is not None else []
    by_doc: Dict[str, List[str]] = {}
    for reference in references:
        by_doc.setdefault(reference.doc_path, []).append(reference.symbol_name)
    for document in documents:
        _merge_symbols(document, by_doc.get(document.path, []))

    return DocumentationIndex(
        docs_root=docs_root.relative_to(root).as_posix(),
        total_files=len(documents),
        documents=documents,
        cross_references=references,
    )


def _merge_symbols(document: DocumentInsight, names: Sequence[str]) -> None:
    for name in names:
        if name not in document.related_symbols:
            document.related_symbols.append(name)


__all__ = [
    "DOCS_DIRECTORIES",
    "build_cross_references",
    "build_documentation_index",
    "collect_doc_files",
    "extract_code_languages",
    "extract_headings",
    "extract_title",
    "find_docs_root",
    "infer_doc_type",
]
