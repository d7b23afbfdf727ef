"""Base classes for language plugins."""

from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import List, Tuple

from ..models import ImportEntry, SemanticFile


class LanguagePlugin(ABC):
    """Contract for plugins that turn one source file into a ``SemanticFile``.

    ``analyze_file`` must never raise: any internal failure degrades to a
    less detailed result, and ultimately to :func:`empty_semantic_file`.
    """

    name: str = ""
    language: str = ""
    extensions: Tuple[str, ...] = ()

    def can_handle(self, path: str) -> bool:
        """Return True when the file extension belongs to this plugin."""
        return PurePosixPath(path).suffix.lower() in self.extensions

    @abstractmethod
    def analyze_file(self, path: str, content: str) -> SemanticFile:
        """Return the symbols and imports declared in ``content``."""

    def extract_imports(self, path: str, content: str) -> List[ImportEntry]:
        """Return only the import statements of ``content``."""
        return self.analyze_file(path, content).imports


def empty_semantic_file(path: str, language: str) -> SemanticFile:
    """Return a valid result with no symbols, used when analysis fails outright."""
    return SemanticFile(path=path, language=language)


__all__ = ["LanguagePlugin", "empty_semantic_file"]
