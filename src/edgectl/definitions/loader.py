"""Load endpoint definition files from disk.

Each file describes one :class:`~edgectl.models.EndpointSet` in JSON or
YAML. Directories are scanned non-recursively, files in lexicographic order,
and directories in the order given; that order is what the registry's
last-loaded-wins override rule relies on.

A file that cannot be parsed, fails model validation, or breaks the path
placeholder invariant is reported as a :class:`~edgectl.models.LoadDiagnostic`
and skipped. It never aborts the load of the remaining files.

The public functions are:

* :func:`load` -- Scan directories and return ``(sets, diagnostics)``.
* :func:`load_file` -- Load a single file, raising on failure.
* :func:`parse_definition_set` -- Validate an in-memory dict.
* :func:`default_search_path` -- Built-ins, user config, then ``./endpoints``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from edgectl.exceptions import LoadError, SchemaInvariantError
from edgectl.models import EndpointDefinition, EndpointSet, LoadDiagnostic

logger = logging.getLogger(__name__)

DEFINITION_SUFFIXES = (".json", ".yaml", ".yml")
BUILTIN_DIR = Path(__file__).parent / "builtin"
ENV_ENDPOINTS_PATH = "EDGECTL_ENDPOINTS_PATH"


class _SchemaError(LoadError):
    """Structural validation failure (wrong types, missing fields)."""


def default_search_path() -> list[Path]:
    """Return the definition directories in override order (lowest first).

    1. The bundled ``builtin`` directory shipped with the package.
    2. ``<config_dir>/endpoints/``.
    3. ``./endpoints/`` relative to the working directory.
    4. Any directories listed in ``$EDGECTL_ENDPOINTS_PATH``.
    """
    from edgectl.config import get_endpoints_dir

    dirs = [BUILTIN_DIR, get_endpoints_dir(), Path.cwd() / "endpoints"]
    extra = os.environ.get(ENV_ENDPOINTS_PATH, "")
    dirs.extend(Path(p) for p in extra.split(os.pathsep) if p)
    return dirs


def load(
    directories: Iterable[Path | str],
) -> tuple[list[EndpointSet], list[LoadDiagnostic]]:
    """Load every definition file in *directories*.

    Args:
        directories: Directories in priority order. Missing directories are
            skipped silently.

    Returns:
        A ``(sets, diagnostics)`` tuple. ``sets`` is in load order.
    """
    sets: list[EndpointSet] = []
    diagnostics: list[LoadDiagnostic] = []

    for directory in directories:
        directory = Path(directory)
        if not directory.is_dir():
            logger.debug("Skipping missing definition directory %s", directory)
            continue

        files = sorted(
            (
                p
                for p in directory.iterdir()
                if p.is_file() and p.suffix.lower() in DEFINITION_SUFFIXES
            ),
            key=lambda p: p.name,
        )
        for path in files:
            try:
                endpoint_set = load_file(path)
            except SchemaInvariantError as exc:
                diagnostics.append(
                    LoadDiagnostic(path=str(path), reason=str(exc), kind="invariant")
                )
            except _SchemaError as exc:
                diagnostics.append(
                    LoadDiagnostic(path=str(path), reason=str(exc), kind="schema")
                )
            except LoadError as exc:
                diagnostics.append(
                    LoadDiagnostic(path=str(path), reason=str(exc), kind="parse")
                )
            else:
                logger.debug(
                    "Loaded %d endpoints from %s", len(endpoint_set.endpoints), path
                )
                sets.append(endpoint_set)
                continue
            logger.warning("Skipping definition file %s: %s", path, diagnostics[-1].reason)

    return sets, diagnostics


def load_file(path: Path | str) -> EndpointSet:
    """Load and validate a single definition file.

    Args:
        path: A ``.json``, ``.yaml`` or ``.yml`` file.

    Returns:
        The validated :class:`~edgectl.models.EndpointSet`.

    Raises:
        LoadError: If the file cannot be read, parsed, or validated.
        SchemaInvariantError: If a path placeholder has no matching
            ``location=path`` parameter (or vice versa).
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LoadError(f"Failed to read {file_path}: {exc}", path=str(file_path)) from exc

    if not content.strip():
        raise LoadError(f"Definition file is empty: {file_path}", path=str(file_path))

    hint = "json" if file_path.suffix.lower() == ".json" else "yaml"
    data = _parse_content(content, hint=hint, path=str(file_path))
    return parse_definition_set(data, source=str(file_path))


def parse_definition_set(data: dict[str, Any], source: Optional[str] = None) -> EndpointSet:
    """Validate a parsed definition document and check its invariants.

    Args:
        data: The decoded JSON/YAML object.
        source: Where *data* came from, recorded on every definition.

    Returns:
        The validated :class:`~edgectl.models.EndpointSet`.

    Raises:
        LoadError: If *data* does not match the definition file shape.
        SchemaInvariantError: If an endpoint breaks the placeholder invariant.
    """
    try:
        endpoint_set = EndpointSet.model_validate({**data, "source": source})
    except PydanticValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise _SchemaError(f"Invalid definition set: {errors}", path=source) from exc

    for endpoint in endpoint_set.endpoints:
        check_placeholders(endpoint)
    return endpoint_set


def check_placeholders(endpoint: EndpointDefinition) -> None:
    """Verify that path placeholders and ``location=path`` parameters agree.

    Every ``{name}`` in the path needs exactly one path parameter called
    ``name``, and every path parameter must appear in the path.

    Raises:
        SchemaInvariantError: On the first mismatch.
    """
    placeholders = endpoint.placeholders
    path_params = {p.name for p in endpoint.path_params}

    seen: set[str] = set()
    for name in placeholders:
        if name in seen:
            raise SchemaInvariantError(
                f"{endpoint.name}: placeholder '{{{name}}}' appears twice in {endpoint.path}",
                path=endpoint.source,
            )
        seen.add(name)
        if name not in path_params:
            # A same-named parameter in another location is still a mismatch.
            other = endpoint.param(name)
            where = f" (declared with location={other.location.value})" if other else ""
            raise SchemaInvariantError(
                f"{endpoint.name}: placeholder '{{{name}}}' has no path parameter{where}",
                path=endpoint.source,
            )

    unused = sorted(path_params - seen)
    if unused:
        raise SchemaInvariantError(
            f"{endpoint.name}: path parameter '{unused[0]}' does not appear in {endpoint.path}",
            path=endpoint.source,
        )


def _parse_content(content: str, hint: str = "", path: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Raises:
        LoadError: If the content cannot be parsed as either format, or is
            not an object.
    """
    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            raise LoadError(f"Invalid JSON: {exc}", path=path) from exc
        if not isinstance(result, dict):
            raise LoadError(
                f"Definition file must be a JSON object (got {type(result).__name__})",
                path=path,
            )
        return result

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise LoadError(f"Invalid YAML: {exc}", path=path) from exc
    if not isinstance(result, dict):
        raise LoadError(
            "Definition file must be a YAML mapping (got "
            f"{type(result).__name__ if result is not None else 'empty document'})",
            path=path,
        )
    return result
