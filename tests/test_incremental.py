"""Tests for change detection and incremental updates."""

from __future__ import annotations

from ontogen.analyzers import PluginRegistry
from ontogen.config import AIConfig, OntologyConfig
from ontogen.incremental import apply_update, diff_hashes, hash_file, scan_file_hashes
from ontogen.models import (
    BuildResult,
    DomainLayer,
    IncrementalChange,
    OntologyData,
    OntologyMetadata,
)


def _registry() -> PluginRegistry:
    return PluginRegistry.create_default(prefer_ast=False, discover=False)


def _data() -> OntologyData:
    return OntologyData(
        metadata=OntologyMetadata(project_name="project", generated_at="now", tool_version="0")
    )


class _FakeSynthesizer:
    def __init__(self) -> None:
        self.calls = []

    def build(self, root, structure, semantics, ai_config, cache_dir, force=False):
        self.calls.append(force)
        return DomainLayer(project_summary="fresh"), BuildResult(layer="domain")


def _domain_config(provider: str = "anthropic") -> OntologyConfig:
    config = OntologyConfig()
    config.domain.enabled = True
    config.ai = AIConfig(provider=provider)
    return config


def _ten_files(project_builder) -> list[str]:
    paths = [f"src/mod{index}.ts" for index in range(10)]
    project_builder.write({path: f"export const value{index} = {index};\n" for index, path in enumerate(paths)})
    return paths


def test_scan_file_hashes_respects_excludes_and_skips(project_builder) -> None:
    project_builder.write(
        {
            "src/a.ts": "export const a = 1;\n",
            "README.md": "# Readme\n",
            "node_modules/lib/index.js": "module.exports = 1;\n",
            "generated/ONTOLOGY.md": "# Generated\n",
        }
    )

    hashes = scan_file_hashes(
        project_builder.path(), OntologyConfig().structure.exclude_patterns, skip_paths=["generated"]
    )

    assert set(hashes) == {"README.md", "src/a.ts"}
    assert hashes["src/a.ts"] == hash_file(project_builder.path() / "src" / "a.ts")
    assert len(hashes["src/a.ts"]) == 64


def test_hash_file_missing_returns_empty(tmp_path) -> None:
    assert hash_file(tmp_path / "missing.txt") == ""


def test_diff_hashes_classifies_changes() -> None:
    changes = diff_hashes(
        {"a": "1", "b": "2-new", "d": "4"},
        {"a": "1", "b": "2", "c": "3"},
    )

    assert changes.added == ["d"]
    assert changes.modified == ["b"]
    assert changes.deleted == ["c"]
    assert changes.total == 3
    assert diff_hashes({"a": "1"}, {"a": "1"}).is_empty()


def test_apply_update_builds_missing_layers(project_builder) -> None:
    project_builder.write({"src/a.ts": "export function alpha() {}\n"})
    data = _data()

    report = apply_update(
        project_builder.path(), data, IncrementalChange(), OntologyConfig(), _registry()
    )

    assert [result.layer for result in report.results] == ["structure", "semantics"]
    assert all(result.success for result in report.results)
    assert data.structure is not None
    assert data.semantics is not None
    assert "alpha" in data.semantics.symbols.by_name


def test_apply_update_is_idempotent(project_builder) -> None:
    project_builder.write(
        {"src/a.ts": "export function alpha() {}\n", "src/b.ts": "export function beta() {}\n"}
    )
    data = _data()
    config = OntologyConfig()
    apply_update(project_builder.path(), data, IncrementalChange(), config, _registry())

    project_builder.write({"src/b.ts": "export function gamma() {}\n"})
    changes = IncrementalChange(modified=["src/b.ts"])
    apply_update(project_builder.path(), data, changes, config, _registry())
    first = sorted(data.semantics.symbols.by_name)
    apply_update(project_builder.path(), data, changes, config, _registry())

    assert first == ["alpha", "gamma"]
    assert sorted(data.semantics.symbols.by_name) == first
    assert data.structure.stats.total_files == 2


def test_small_change_keeps_domain_cache(project_builder) -> None:
    paths = _ten_files(project_builder)
    data = _data()
    data.domain = DomainLayer(project_summary="cached")
    synthesizer = _FakeSynthesizer()
    config = _domain_config()
    apply_update(project_builder.path(), data, IncrementalChange(), OntologyConfig(), _registry())

    report = apply_update(
        project_builder.path(),
        data,
        IncrementalChange(modified=paths[:1]),
        config,
        _registry(),
        synthesizer=synthesizer,
    )

    assert synthesizer.calls == []
    assert data.domain.project_summary == "cached"
    assert report.result_for("domain").warnings == ["Domain cache retained (10% of files changed)"]


def test_large_change_rebuilds_domain(project_builder) -> None:
    paths = _ten_files(project_builder)
    data = _data()
    data.domain = DomainLayer(project_summary="cached")
    synthesizer = _FakeSynthesizer()
    apply_update(project_builder.path(), data, IncrementalChange(), OntologyConfig(), _registry())

    report = apply_update(
        project_builder.path(),
        data,
        IncrementalChange(modified=paths[:6]),
        _domain_config(),
        _registry(),
        synthesizer=synthesizer,
    )

    assert synthesizer.calls == [True]
    assert data.domain.project_summary == "fresh"
    assert report.result_for("domain").success is True


def test_claude_code_provider_defers_domain(project_builder) -> None:
    paths = _ten_files(project_builder)
    data = _data()
    synthesizer = _FakeSynthesizer()
    apply_update(project_builder.path(), data, IncrementalChange(), OntologyConfig(), _registry())

    report = apply_update(
        project_builder.path(),
        data,
        IncrementalChange(modified=paths),
        _domain_config("claude-code"),
        _registry(),
        synthesizer=synthesizer,
    )

    assert synthesizer.calls == []
    assert "claude-code provider" in report.result_for("domain").warnings[0]


def test_disabled_domain_is_not_reported(project_builder) -> None:
    _ten_files(project_builder)
    data = _data()

    report = apply_update(
        project_builder.path(), data, IncrementalChange(), OntologyConfig(), _registry()
    )

    assert report.result_for("domain") is None
