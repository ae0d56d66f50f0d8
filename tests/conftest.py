"""Shared test fixtures for edgectl.

Provides reusable fixtures for building endpoint registries, creating
isolated config environments, managing output state, and running CLI
commands. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from edgectl.definitions import Registry
from edgectl.definitions.loader import BUILTIN_DIR, parse_definition_set
from edgectl.models import EndpointSet
from edgectl.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Definition fixtures
# ---------------------------------------------------------------------------


SAMPLE_SET: dict[str, Any] = {
    "name": "dns",
    "description": "DNS record management",
    "endpoints": [
        {
            "name": "list",
            "method": "GET",
            "path": "/zones/{zone_id}/dns_records",
            "description": "List DNS records",
            "paginated": True,
            "params": [
                {"name": "zone_id", "required": True, "location": "path"},
                {"name": "type", "type": "enum", "location": "query", "enum": ["A", "AAAA", "CNAME"]},
                {"name": "proxied", "type": "boolean", "location": "query"},
                {"name": "per_page", "type": "integer", "location": "query", "default": 100},
            ],
        },
        {
            "name": "get",
            "method": "GET",
            "path": "/zones/{zone_id}/dns_records/{record_id}",
            "params": [
                {"name": "zone_id", "required": True, "location": "path"},
                {"name": "record_id", "required": True, "location": "path"},
            ],
        },
        {
            "name": "create",
            "method": "POST",
            "path": "/zones/{zone_id}/dns_records",
            "params": [
                {"name": "zone_id", "required": True, "location": "path"},
                {"name": "type", "type": "enum", "required": True, "location": "body", "enum": ["A", "AAAA", "CNAME"]},
                {"name": "name", "required": True, "location": "body"},
                {"name": "content", "required": True, "location": "body"},
                {"name": "ttl", "type": "integer", "location": "body"},
                {"name": "proxied", "type": "boolean", "location": "body"},
            ],
        },
        {
            "name": "delete",
            "method": "DELETE",
            "path": "/zones/{zone_id}/dns_records/{record_id}",
            "params": [
                {"name": "zone_id", "required": True, "location": "path"},
                {"name": "record_id", "required": True, "location": "path"},
            ],
        },
    ],
}


@pytest.fixture
def sample_set() -> EndpointSet:
    """A small in-memory ``dns`` definition set."""
    return parse_definition_set(json.loads(json.dumps(SAMPLE_SET)), source="<memory>")


@pytest.fixture
def registry(sample_set: EndpointSet) -> Registry:
    """Registry holding only :data:`SAMPLE_SET`."""
    return Registry.build([sample_set])


@pytest.fixture(scope="session")
def builtin_registry() -> Registry:
    """Registry built from the definitions bundled with the package."""
    from edgectl.definitions import load_registry

    registry, diagnostics = load_registry([BUILTIN_DIR])
    assert diagnostics == []
    return registry


@pytest.fixture
def write_definition(tmp_path: Path) -> Callable[..., Path]:
    """Write a definition document into ``tmp_path/<directory>/<filename>``.

    Dicts are written as JSON; strings are written verbatim.
    """

    def _write(filename: str, content: Any, directory: str = "endpoints") -> Path:
        target = tmp_path / directory
        target.mkdir(parents=True, exist_ok=True)
        path = target / filename
        if isinstance(content, str):
            path.write_text(content)
        else:
            path.write_text(json.dumps(content))
        return path

    return _write


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all CF_* and EDGECTL_* environment variables and
    changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    config_dir = tmp_path / "config"
    cache_dir = tmp_path / "cache"
    data_dir = tmp_path / "data"

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))

    for var in [
        "CF_API_TOKEN",
        "CF_API_KEY",
        "CF_API_EMAIL",
        "CF_ZONE_ID",
        "CF_ZONE_NAME",
        "CF_ACCOUNT_ID",
        "CF_TUNNEL_TOKEN",
        "CF_OUTPUT_FORMAT",
        "EDGECTL_BASE_URL",
        "EDGECTL_ENDPOINTS_PATH",
        "EDGECTL_LOG_LEVEL",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a TABLE-format, quiet, colourless OutputManager as the global
    output and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.TABLE, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Set up JSON output for tests that check JSON-formatted output.

    Installs a JSON-format OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
