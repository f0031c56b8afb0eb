"""Test project setup and structure"""

import importlib
from pathlib import Path


def test_package_imports():
    """Verify all core dependencies are importable"""
    importlib.import_module("typer")
    importlib.import_module("rich")
    importlib.import_module("pydantic")
    importlib.import_module("jinja2")
    importlib.import_module("yaml")


def test_directory_structure():
    """Verify project directory structure"""
    base_dir = Path(__file__).parent.parent

    assert (base_dir / "aksdeploy" / "__init__.py").is_file()
    assert (base_dir / "aksdeploy" / "cli.py").is_file()
    assert (base_dir / "aksdeploy" / "engine").is_dir()
    assert (base_dir / "aksdeploy" / "steps").is_dir()
    assert (base_dir / "aksdeploy" / "templates" / "github-workflow.yml.j2").is_file()
    assert (base_dir / "tests" / "unit").is_dir()
    assert (base_dir / "tests" / "integration").is_dir()


def test_example_config_loads():
    """The shipped example deploy.yaml validates without secrets"""
    from aksdeploy.config import load_config

    base_dir = Path(__file__).parent.parent
    config = load_config(base_dir / "examples" / "deploy.yaml", resolve_secrets=False)

    assert config.registry.login_server == "container12341.azurecr.io"
    assert config.cluster.pull_secret == "clusterdockerauth"
