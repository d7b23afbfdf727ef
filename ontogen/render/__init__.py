"""Markdown rendering of ontology layers."""

from .markdown import (
    DOMAIN_DOCUMENT,
    INDEX_DOCUMENT,
    SEMANTICS_DOCUMENT,
    STRUCTURE_DOCUMENT,
    render_directory_tree,
    render_domain,
    render_index,
    render_ontology,
    render_semantics,
    render_structure,
)

__all__ = [
    "DOMAIN_DOCUMENT",
    "INDEX_DOCUMENT",
    "SEMANTICS_DOCUMENT",
    "STRUCTURE_DOCUMENT",
    "render_directory_tree",
    "render_domain",
    "render_index",
    "render_ontology",
    "render_semantics",
    "render_structure",
]
