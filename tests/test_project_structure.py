"""
Unit tests for project structure and configuration validation.

Tests verify that the project structure is correctly initialized
with all required directories, files, and valid configurations.
"""

import tomllib
from pathlib import Path
from typing import Any, Dict

import pytest


# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent

PACKAGE_DIRS = ["otkit", "otkit/core", "otkit/utils", "otkit/report"]


@pytest.fixture(scope="module")
def pyproject() -> Dict[str, Any]:
    """Parsed pyproject.toml."""
    with open(PROJECT_ROOT / "pyproject.toml", "rb") as f:
        return tomllib.load(f)


class TestDirectoryStructure:
    """Tests for verifying directory structure."""

    @pytest.mark.parametrize("relative", PACKAGE_DIRS + ["tests"])
    def test_directory_exists(self, relative: str) -> None:
        path = PROJECT_ROOT / relative
        assert path.is_dir(), f"Directory {path} does not exist"

    @pytest.mark.parametrize("relative", PACKAGE_DIRS + ["tests"])
    def test_init_exists(self, relative: str) -> None:
        init_file = PROJECT_ROOT / relative / "__init__.py"
        assert init_file.is_file(), f"Init file {init_file} does not exist"

    @pytest.mark.parametrize("relative", PACKAGE_DIRS[1:])
    def test_subpackage_init_has_docstring(self, relative: str) -> None:
        content = (PROJECT_ROOT / relative / "__init__.py").read_text()
        assert content.strip().startswith('"""'), f"{relative}/__init__.py missing docstring"

    def test_main_module_exists(self) -> None:
        """Verify ``python -m otkit`` has an entry point."""
        assert (PROJECT_ROOT / "otkit" / "__main__.py").is_file()


class TestPyprojectToml:
    """Tests for verifying pyproject.toml configuration."""

    def test_build_system(self, pyproject: Dict[str, Any]) -> None:
        assert "requires" in pyproject["build-system"], "build-system.requires missing"
        assert "build-backend" in pyproject["build-system"], "build-system.build-backend missing"

    def test_name_and_version(self, pyproject: Dict[str, Any]) -> None:
        assert pyproject["project"]["name"] == "otkit"
        assert pyproject["project"]["version"] == "0.1.0"

    def test_description(self, pyproject: Dict[str, Any]) -> None:
        assert len(pyproject["project"].get("description", "")) > 0, "project.description should not be empty"

    def test_python_requires(self, pyproject: Dict[str, Any]) -> None:
        assert ">=3.9" in pyproject["project"]["requires-python"], "Should require Python 3.9+"

    @pytest.mark.parametrize(
        "package",
        ["opentelemetry-api", "opentelemetry-sdk", "opentelemetry-exporter-otlp", "grpcio"],
    )
    def test_runtime_dependency(self, pyproject: Dict[str, Any], package: str) -> None:
        deps = pyproject["project"]["dependencies"]
        assert any(dep.startswith(package) for dep in deps), f"{package} should be in dependencies"

    def test_dev_dependencies(self, pyproject: Dict[str, Any]) -> None:
        dev_deps = pyproject["project"]["optional-dependencies"]["dev"]
        assert any("pytest" in dep for dep in dev_deps), "pytest should be in dev dependencies"

    def test_scripts(self, pyproject: Dict[str, Any]) -> None:
        assert pyproject["project"]["scripts"].get("otkit") == "otkit.cli:main"

    def test_urls(self, pyproject: Dict[str, Any]) -> None:
        assert "urls" in pyproject["project"], "project.urls missing"

    def test_pytest_config(self, pyproject: Dict[str, Any]) -> None:
        assert "pytest" in pyproject["tool"], "tool.pytest missing"


class TestPackageImports:
    """Tests for verifying package imports work correctly."""

    def test_import_otkit(self) -> None:
        import otkit
        assert otkit.__version__ == "0.1.0"
        assert otkit.__author__ == "KR"
        assert "@" in otkit.__email__, "__email__ should be a valid email"

    def test_top_level_exports(self) -> None:
        import otkit
        for name in ("decode", "decode_logs", "decode_metrics", "decode_message", "search", "format_export"):
            assert callable(getattr(otkit, name)), f"otkit.{name} should be exported"

    def test_import_subpackages(self) -> None:
        import otkit.core
        import otkit.report
        import otkit.utils
        assert otkit.core is not None
        assert otkit.report is not None
        assert otkit.utils is not None

    def test_version_matches_pyproject(self, pyproject: Dict[str, Any]) -> None:
        import otkit
        assert otkit.__version__ == pyproject["project"]["version"], (
            "Version in __init__.py doesn't match pyproject.toml"
        )


class TestPackageMetadata:
    """Tests for verifying package metadata."""

    def test_keywords(self, pyproject: Dict[str, Any]) -> None:
        assert len(pyproject["project"]["keywords"]) >= 3, "Should have at least 3 keywords"

    def test_classifiers(self, pyproject: Dict[str, Any]) -> None:
        assert len(pyproject["project"]["classifiers"]) >= 5, "Should have at least 5 classifiers"

    def test_license(self, pyproject: Dict[str, Any]) -> None:
        assert "license" in pyproject["project"], "project.license missing"

    def test_authors(self, pyproject: Dict[str, Any]) -> None:
        authors = pyproject["project"]["authors"]
        assert len(authors) >= 1, "Should have at least 1 author"
        assert "name" in authors[0], "Author should have name"
        assert "email" in authors[0], "Author should have email"


class TestReadmeDocumentation:
    """Tests for verifying README documentation."""

    @pytest.fixture(scope="class")
    def readme(self) -> str:
        return (PROJECT_ROOT / "README.md").read_text()

    def test_readme_not_empty(self, readme: str) -> None:
        assert len(readme) > 100, "README.md should have substantial content"

    def test_readme_sections(self, readme: str) -> None:
        assert "# otkit" in readme, "README.md should have project title"
        assert "## Installation" in readme, "README.md should have installation section"
        assert "```python" in readme, "README.md should have Python code examples"
