"""Endpoint definitions -- load declarative files and index them.

Typical usage::

    from edgectl.definitions import load_registry

    registry, diagnostics = load_registry()
    endpoint = registry.lookup("zones", "list")

Sub-modules:

* :mod:`~edgectl.definitions.loader` -- directory scanning, JSON/YAML
  parsing, and the path placeholder invariant.
* :mod:`~edgectl.definitions.registry` -- the read-only
  :class:`~edgectl.definitions.registry.Registry`.

The ``builtin`` directory holds the definitions shipped with the package.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from edgectl.definitions.loader import default_search_path, load, load_file
from edgectl.definitions.registry import Registry
from edgectl.models import LoadDiagnostic


def load_registry(
    directories: Optional[Iterable[Path | str]] = None,
) -> tuple[Registry, list[LoadDiagnostic]]:
    """Load definitions and build a :class:`Registry` in one step.

    Args:
        directories: Directories to scan. Defaults to
            :func:`~edgectl.definitions.loader.default_search_path`.

    Returns:
        A ``(registry, diagnostics)`` tuple.
    """
    sets, diagnostics = load(directories if directories is not None else default_search_path())
    return Registry.build(sets), diagnostics


__all__ = ["Registry", "default_search_path", "load", "load_file", "load_registry"]
