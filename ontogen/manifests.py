"""Manifest readers that map declared dependency names to version strings."""

from __future__ import annotations

import json
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from .logging import get_logger

logger = get_logger("manifests")

_REQUIREMENT_SPLIT = re.compile(r"(?=[<>=!~;\[ @])")


def read_dependency_versions(root: Path) -> Dict[str, str]:
    """Return ``name -> version`` for every dependency the project declares.

    ``package.json`` dependencies and devDependencies come first, then
    ``requirements.txt`` and ``pyproject.toml``. Unpinned Python requirements
    map to ``"*"``. The first declaration of a name wins.
    """
    versions: Dict[str, str] = {}
    for loader in (_node_versions, _requirements_versions, _pyproject_versions):
        for name, version in loader(root).items():
            versions.setdefault(name, version)
    return versions


def load_package_json(root: Path) -> Dict[str, Any]:
    """Return the parsed package.json contents or an empty dict."""
    package_json = root / "package.json"
    if not package_json.exists():
        return {}
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Unable to parse %s: %s", package_json, exc)
        return {}
    return data if isinstance(data, dict) else {}


def read_manifest_text(root: Path, limit: int = 3000) -> str:
    """Return the raw text of the first manifest found, truncated to ``limit`` characters."""
    for name in ("package.json", "pyproject.toml", "requirements.txt", "go.mod", "Cargo.toml"):
        path = root / name
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        return text[:limit]
    return ""


def _node_versions(root: Path) -> Dict[str, str]:
    data = load_package_json(root)
    versions: Dict[str, str] = {}
    for key in ("dependencies", "devDependencies", "peerDependencies"):
        deps = data.get(key)
        if not isinstance(deps, dict):
            continue
        for name, version in deps.items():
            if isinstance(name, str):
                versions.setdefault(name, str(version))
    return versions


def _requirements_versions(root: Path) -> Dict[str, str]:
    requirements = root / "requirements.txt"
    if not requirements.exists():
        return {}
    try:
        lines = requirements.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return {}
    versions: Dict[str, str] = {}
    for line in lines:
        parsed = _parse_requirement(line)
        if parsed is not None:
            versions.setdefault(*parsed)
    return versions


def _pyproject_versions(root: Path) -> Dict[str, str]:
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return {}
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Unable to parse %s: %s", pyproject, exc)
        return {}

    versions: Dict[str, str] = {}
    project = data.get("project")
    if isinstance(project, dict):
        requirements = list(project.get("dependencies", []) or [])
        optional = project.get("optional-dependencies", {}) or {}
        if isinstance(optional, dict):
            for values in optional.values():
                requirements.extend(values or [])
        for requirement in requirements:
            if isinstance(requirement, str):
                parsed = _parse_requirement(requirement)
                if parsed is not None:
                    versions.setdefault(*parsed)

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    poetry_deps = poetry.get("dependencies", {}) if isinstance(poetry, dict) else {}
    if isinstance(poetry_deps, dict):
        for name, spec in poetry_deps.items():
            if name.lower() == "python":
                continue
            if isinstance(spec, dict):
                spec = spec.get("version", "*")
            versions.setdefault(name, str(spec))
    return versions


def _parse_requirement(line: str) -> Optional[tuple[str, str]]:
    stripped = line.split("#", 1)[0].strip()
    if not stripped or stripped.startswith("-"):
        return None
    name = _REQUIREMENT_SPLIT.split(stripped, 1)[0].strip()
    if not name:
        return None
    spec = stripped[len(name):].strip()
    if spec.startswith("["):
        spec = spec.split("]", 1)[-1].strip()
    spec = spec.split(";", 1)[0].strip()
    return name, spec or "*"


__all__ = ["load_package_json", "read_dependency_versions", "read_manifest_text"]
