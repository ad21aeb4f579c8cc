"""Shared test fixtures for aepgraph.

Provides reusable fixtures for loading document fixtures, building resource
graphs, isolating configuration and resetting global output state. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest
import yaml
from rich.logging import RichHandler

from aepgraph.graph import load_api
from aepgraph.models import API
from aepgraph.output import LOGGER_NAME, reset_output
from aepgraph.parser.builder import build_api


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the CLI log handler after every test.

    Both cache references to sys.stdout/sys.stderr at creation time. When
    Typer's CliRunner redirects those streams during a test and the test
    finishes, the cached references become stale. Resetting forces fresh
    instances on next use.
    """
    yield
    reset_output()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Raw document fixtures (plain dicts loaded from fixture files)
# ---------------------------------------------------------------------------


@pytest.fixture
def widgets_raw() -> dict[str, Any]:
    """OpenAPI 3.0 document with one unannotated resource and a custom method."""
    with open(FIXTURES_DIR / "widgets.json") as f:
        return json.load(f)


@pytest.fixture
def bookstore_raw() -> dict[str, Any]:
    """OpenAPI 3.1 document with annotated, nested and long-running resources."""
    with open(FIXTURES_DIR / "bookstore.yaml") as f:
        return yaml.safe_load(f)


@pytest.fixture
def petstore_swagger_raw() -> dict[str, Any]:
    """Swagger 2.0 document served under a ``/v1`` prefix."""
    with open(FIXTURES_DIR / "petstore_swagger.json") as f:
        return json.load(f)


@pytest.fixture
def library_ir_raw() -> dict[str, Any]:
    """Serialized resource graph with synthesized patterns and two parents."""
    with open(FIXTURES_DIR / "library.ir.json") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Resource graph fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def widgets_api(widgets_raw: dict[str, Any]) -> API:
    return build_api(widgets_raw)


@pytest.fixture
def bookstore_api(bookstore_raw: dict[str, Any]) -> API:
    return build_api(bookstore_raw)


@pytest.fixture
def library_api(library_ir_raw: dict[str, Any]) -> API:
    return load_api(library_ir_raw)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config. Clears all AEPGRAPH_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("aepgraph.config._is_xdg_platform", lambda: True)

    for var in [
        "AEPGRAPH_PATH_PREFIX",
        "AEPGRAPH_SERVER_URL",
        "AEPGRAPH_FETCH_TIMEOUT",
        "AEPGRAPH_DEADLINE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path

