"""Domain layer synthesis."""

from .docs import build_documentation_index
from .synthesizer import DomainSynthesizer, collect_domain_context, compute_input_hash

__all__ = [
    "DomainSynthesizer",
    "build_documentation_index",
    "collect_domain_context",
    "compute_input_hash",
]
