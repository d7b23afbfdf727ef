"""Configuration loading for ontogen (.ontogen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".ontogen.yml"

DEFAULT_OUTPUT_DIR = ".agent/ontology"
DEFAULT_MAX_DEPTH = 10
DEFAULT_LANGUAGES = ("typescript", "javascript", "python")

DEFAULT_EXCLUDE_PATTERNS = (
    # JavaScript / TypeScript
    "node_modules", ".next", ".nuxt", ".output", ".svelte-kit",
    # Python
    ".venv", "venv", "__pycache__", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    ".tox", ".eggs",
    # JVM
    "target", ".gradle", ".idea",
    # Ruby / PHP / Go
    "vendor", ".bundle", ".gopath",
    # .NET
    "bin", "obj", "packages",
    # Build output
    "dist", "build", "out", "output",
    # Coverage
    "coverage", ".nyc_output",
    # Version control / OS
    ".git", ".hg", ".svn", ".DS_Store",
    # Caches
    ".cache", ".tmp", "tmp", ".temp",
    # Editors
    ".vscode", ".eclipse",
    # Infrastructure
    ".terraform", ".serverless",
    # Agent tooling
    ".agent", ".ontogen",
)

_PROVIDERS = {"anthropic", "openai", "custom", "claude-code"}
_DEFAULT_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "custom": "ONTOGEN_AI_API_KEY",
    "claude-code": "ANTHROPIC_API_KEY",
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class StructureSettings:
    enabled: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))


@dataclass
class SemanticsSettings:
    enabled: bool = True
    languages: List[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))


@dataclass
class DomainSettings:
    enabled: bool = False


@dataclass
class AIConfig:
    """AI backend selection for the domain layer."""

    provider: str = "anthropic"
    api_key_env: str = "ANTHROPIC_API_KEY"
    model: str = "claude-sonnet-4-20250514"
    max_tokens_per_request: int = 4096
    rate_limit_ms: int = 1000
    base_url: Optional[str] = None
    request_timeout: float = 60.0


@dataclass
class AnnotationThresholds:
    anchor_fan_in: int = 3
    param_count: int = 5
    function_length: int = 50
    nesting_depth: int = 3


@dataclass
class IncrementalSettings:
    structure_rescan_threshold: int = 50
    domain_change_ratio: float = 0.2


@dataclass
class OntologyConfig:
    """Represents the settings defined in .ontogen.yml."""

    output_dir: str = DEFAULT_OUTPUT_DIR
    structure: StructureSettings = field(default_factory=StructureSettings)
    semantics: SemanticsSettings = field(default_factory=SemanticsSettings)
    domain: DomainSettings = field(default_factory=DomainSettings)
    ai: Optional[AIConfig] = None
    annotations: AnnotationThresholds = field(default_factory=AnnotationThresholds)
    incremental: IncrementalSettings = field(default_factory=IncrementalSettings)

    def output_path(self, root: Path) -> Path:
        return root / self.output_dir

    def cache_dir(self, root: Path) -> Path:
        return self.output_path(root) / ".cache"


def load_config(config_path: Path) -> OntologyConfig:
    """Load configuration from disk. A missing file yields the defaults."""
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return OntologyConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = OntologyConfig()
    output_dir = _as_str(data.get("output_dir"))
    if output_dir:
        config.output_dir = output_dir.strip("/") or DEFAULT_OUTPUT_DIR

    layers = _as_dict(data.get("layers"))

    structure_data = _as_dict(layers.get("structure"))
    if structure_data:
        enabled = _as_bool(structure_data.get("enabled"))
        if enabled is not None:
            config.structure.enabled = enabled
        max_depth = _as_int(structure_data.get("max_depth"))
        if max_depth is not None and max_depth > 0:
            config.structure.max_depth = max_depth
        if "exclude_patterns" in structure_data:
            config.structure.exclude_patterns = _as_str_list(
                structure_data.get("exclude_patterns")
            )

    semantics_data = _as_dict(layers.get("semantics"))
    if semantics_data:
        enabled = _as_bool(semantics_data.get("enabled"))
        if enabled is not None:
            config.semantics.enabled = enabled
        languages = [lang.lower() for lang in _as_str_list(semantics_data.get("languages"))]
        if languages:
            config.semantics.languages = languages

    domain_data = _as_dict(layers.get("domain"))
    if domain_data:
        config.domain.enabled = bool(_as_bool(domain_data.get("enabled")))

    config.ai = _parse_ai(_as_dict(data.get("ai")))

    annotation_data = _as_dict(data.get("annotations"))
    for name in ("anchor_fan_in", "param_count", "function_length", "nesting_depth"):
        value = _as_int(annotation_data.get(name))
        if value is not None and value > 0:
            setattr(config.annotations, name, value)

    incremental_data = _as_dict(data.get("incremental"))
    threshold = _as_int(incremental_data.get("structure_rescan_threshold"))
    if threshold is not None and threshold >= 0:
        config.incremental.structure_rescan_threshold = threshold
    ratio = _as_float(incremental_data.get("domain_change_ratio"))
    if ratio is not None and 0.0 <= ratio <= 1.0:
        config.incremental.domain_change_ratio = ratio

    return config


def _parse_ai(ai_data: Dict[str, Any]) -> Optional[AIConfig]:
    if not ai_data:
        return None
    provider = (_as_str(ai_data.get("provider")) or "anthropic").lower()
    if provider not in _PROVIDERS:
        raise ConfigError(
            f"Unknown ai.provider '{provider}'. Expected one of: {', '.join(sorted(_PROVIDERS))}"
        )
    ai = AIConfig(provider=provider, api_key_env=_DEFAULT_KEY_ENV[provider])
    if provider == "openai":
        ai.model = "gpt-4o-mini"
    api_key_env = _as_str(ai_data.get("api_key_env"))
    if api_key_env:
        ai.api_key_env = api_key_env
    model = _as_str(ai_data.get("model"))
    if model:
        ai.model = model
    max_tokens = _as_int(ai_data.get("max_tokens_per_request"))
    if max_tokens is not None and max_tokens > 0:
        ai.max_tokens_per_request = max_tokens
    rate_limit = _as_int(ai_data.get("rate_limit_ms"))
    if rate_limit is not None and rate_limit >= 0:
        ai.rate_limit_ms = rate_limit
    ai.base_url = _as_str(ai_data.get("base_url"))
    timeout = _as_float(ai_data.get("request_timeout"))
    if timeout is not None and timeout > 0:
        ai.request_timeout = timeout
    if provider == "custom" and not ai.base_url:
        raise ConfigError("ai.base_url is required when ai.provider is 'custom'")
    return ai


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "AIConfig",
    "AnnotationThresholds",
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_EXCLUDE_PATTERNS",
    "DomainSettings",
    "IncrementalSettings",
    "OntologyConfig",
    "SemanticsSettings",
    "StructureSettings",
    "load_config",
]
