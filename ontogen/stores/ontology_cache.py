"""Persistent caches for built ontology layers and the domain analysis."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from ..logging import get_logger
from ..models import DomainLayer, OntologyCache, from_dict, to_dict

logger = get_logger("stores")

ONTOLOGY_CACHE_FILENAME = "ontology-cache.json"
DOMAIN_CACHE_FILENAME = "domain-cache.json"


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class OntologyCacheStore:
    """Reads and writes ``ontology-cache.json``.

    ``load`` only returns a cache written by the same tool version; any
    other payload is treated as absent so the caller falls back to a full
    build.
    """

    def __init__(self, path: Path, version: str) -> None:
        self.path = Path(path)
        self.version = version

    @classmethod
    def in_directory(cls, cache_dir: Path, version: str) -> "OntologyCacheStore":
        return cls(Path(cache_dir) / ONTOLOGY_CACHE_FILENAME, version)

    def load(self) -> Optional[OntologyCache]:
        data = _read_json(self.path)
        if not isinstance(data, dict):
            return None
        if data.get("version") != self.version:
            logger.info(
                "Ignoring ontology cache written by version %s (current %s)",
                data.get("version"),
                self.version,
            )
            return None
        try:
            return from_dict(OntologyCache, data)
        except (TypeError, ValueError) as exc:
            logger.warning("Ontology cache at %s is malformed: %s", self.path, exc)
            return None

    def save(self, cache: OntologyCache) -> None:
        _write_json(self.path, to_dict(cache))


class DomainCacheStore:
    """Holds the last domain analysis together with the hash of its inputs."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def in_directory(cls, cache_dir: Path) -> "DomainCacheStore":
        return cls(Path(cache_dir) / DOMAIN_CACHE_FILENAME)

    def get(self, input_hash: str) -> Optional[DomainLayer]:
        data = _read_json(self.path)
        if not isinstance(data, dict) or data.get("inputHash") != input_hash:
            return None
        try:
            return from_dict(DomainLayer, data.get("data") or {})
        except (TypeError, ValueError) as exc:
            logger.warning("Domain cache at %s is malformed: %s", self.path, exc)
            return None

    def store(self, input_hash: str, domain: DomainLayer) -> None:
        payload = {"inputHash": input_hash, "builtAt": utc_timestamp(), "data": to_dict(domain)}
        try:
            _write_json(self.path, payload)
        except OSError as exc:
            logger.warning("Failed to write domain cache %s: %s", self.path, exc)


def _read_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Unable to read cache %s: %s", path, exc)
        return None


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


__all__ = [
    "DOMAIN_CACHE_FILENAME",
    "DomainCacheStore",
    "ONTOLOGY_CACHE_FILENAME",
    "OntologyCacheStore",
    "utc_timestamp",
]
