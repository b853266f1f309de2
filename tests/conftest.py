"""Shared pytest configuration and fixtures."""

import pytest

from railsdeploy.core.config import load_config
from railsdeploy.core.output import write_artifacts
from railsdeploy.core.parse import parse_artifacts
from railsdeploy.core.render import render


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "cli: exercises the command-line entry point")


@pytest.fixture
def default_config(tmp_path):
    """Config as created on first run: placeholders where user input is needed."""
    return load_config(str(tmp_path / "missing.yaml"))


@pytest.fixture
def filled_config(default_config):
    """Config with every user-supplied value filled in."""
    cfg = default_config
    cfg["git_user"] = "octo"
    cfg["dockerhub_user"] = "octodocker"
    cfg["database"]["password"] = "s3cret"
    cfg["tekton"]["registry_username"] = "octodocker"
    cfg["tekton"]["registry_password"] = "dckr_pat_123"
    return cfg


@pytest.fixture
def render_dir(tmp_path):
    """Render a config into a fresh directory and return its parsed ArtifactSet."""
    def _render(config, name="out"):
        out = tmp_path / name
        artifacts, _warnings = render(config)
        write_artifacts(artifacts, str(out))
        return parse_artifacts(str(out))
    return _render
