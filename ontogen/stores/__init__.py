"""Persistence helpers for ontology caches."""

from .ontology_cache import (
    DOMAIN_CACHE_FILENAME,
    ONTOLOGY_CACHE_FILENAME,
    DomainCacheStore,
    OntologyCacheStore,
    utc_timestamp,
)

__all__ = [
    "DOMAIN_CACHE_FILENAME",
    "DomainCacheStore",
    "ONTOLOGY_CACHE_FILENAME",
    "OntologyCacheStore",
    "utc_timestamp",
]
