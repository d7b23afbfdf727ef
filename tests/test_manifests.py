from __future__ import annotations

from pathlib import Path

from ontogen.manifests import load_package_json, read_dependency_versions, read_manifest_text


def test_node_dependencies_come_first(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(
        '{"dependencies": {"react": "^18.2.0"}, "devDependencies": {"vitest": "1.0.0", "react": "17"}}',
        encoding="utf-8",
    )
    (tmp_path / "requirements.txt").write_text("react==0.1\n", encoding="utf-8")

    versions = read_dependency_versions(tmp_path)

    assert versions == {"react": "^18.2.0", "vitest": "1.0.0"}


def test_python_requirements_and_pyproject(tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text(
        "# pinned\nrequests>=2.31  # http\nuvicorn[standard]>=0.20\n-e .\nrich\n",
        encoding="utf-8",
    )
    (tmp_path / "pyproject.toml").write_text(
        '[project]\ndependencies = ["PyYAML>=6.0", "requests==1.0"]\n'
        '[project.optional-dependencies]\ntest = ["pytest>=7.4"]\n'
        '[tool.poetry.dependencies]\npython = "^3.11"\nhttpx = {version = "^0.27"}\n',
        encoding="utf-8",
    )

    versions = read_dependency_versions(tmp_path)

    assert versions["requests"] == ">=2.31"
    assert versions["uvicorn"] == ">=0.20"
    assert versions["rich"] == "*"
    assert versions["PyYAML"] == ">=6.0"
    assert versions["pytest"] == ">=7.4"
    assert versions["httpx"] == "^0.27"
    assert "python" not in versions


def test_malformed_manifests_are_ignored(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{broken", encoding="utf-8")
    (tmp_path / "pyproject.toml").write_text("[project\n", encoding="utf-8")

    assert load_package_json(tmp_path) == {}
    assert read_dependency_versions(tmp_path) == {}


def test_read_manifest_text_prefers_package_json(tmp_path: Path) -> None:
    assert read_manifest_text(tmp_path) == ""

    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n", encoding="utf-8")
    assert read_manifest_text(tmp_path).startswith("[project]")

    (tmp_path / "package.json").write_text('{"name": "shop"}' + " " * 5000, encoding="utf-8")
    text = read_manifest_text(tmp_path, limit=100)
    assert text.startswith('{"name": "shop"}')
    assert len(text) == 100
