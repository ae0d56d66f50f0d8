"""In-memory index of all loaded endpoint definitions.

:class:`Registry` is built once per process from the loader's output and is
read-only afterwards. It is passed explicitly into the resolver and the CLI
layer; there is no module-level registry, so tests can build one from an
in-memory :class:`~edgectl.models.EndpointSet` without touching the disk.
"""

from __future__ import annotations

import difflib
from typing import Iterable, Iterator, Optional

from edgectl.models import PLACEHOLDER_RE, EndpointDefinition, EndpointSet

Key = tuple[str, str]


class Registry:
    """Lookup structure keyed by ``(category, name)`` and by path template.

    Use :meth:`build` rather than the constructor.

    Attributes:
        overrides: One ``(key, replaced_source, new_source)`` entry for every
            definition that replaced an earlier one during :meth:`build`.
    """

    def __init__(self) -> None:
        self._by_key: dict[Key, EndpointDefinition] = {}
        self._by_path: dict[str, EndpointDefinition] = {}
        self.overrides: list[tuple[Key, Optional[str], Optional[str]]] = []

    @classmethod
    def build(cls, sets: Iterable[EndpointSet]) -> Registry:
        """Merge definition sets into one registry.

        Sets are applied in order; a definition whose ``(category, name)``
        already exists replaces the earlier one (last-loaded wins).

        Args:
            sets: Endpoint sets in loader order.

        Returns:
            The populated registry.
        """
        registry = cls()
        for endpoint_set in sets:
            for endpoint in endpoint_set.endpoints:
                registry._add(endpoint)
        return registry

    def _add(self, endpoint: EndpointDefinition) -> None:
        key = (endpoint.category, endpoint.name)
        previous = self._by_key.get(key)
        if previous is not None:
            self.overrides.append((key, previous.source, endpoint.source))
            if self._by_path.get(previous.path) is previous:
                del self._by_path[previous.path]
        self._by_key[key] = endpoint
        self._by_path[endpoint.path] = endpoint

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def lookup(self, category: str, name: str) -> Optional[EndpointDefinition]:
        """Return the definition registered under ``(category, name)``."""
        return self._by_key.get((category, name))

    def list(self, category: Optional[str] = None) -> list[EndpointDefinition]:
        """Return definitions sorted by category then name.

        Args:
            category: Only return definitions in this category.
        """
        return [
            self._by_key[key]
            for key in sorted(self._by_key)
            if category is None or key[0] == category
        ]

    def categories(self) -> list[str]:
        """Return every category name, sorted."""
        return sorted({category for category, _ in self._by_key})

    def verbs(self, category: str) -> list[str]:
        """Return the endpoint names in *category*, sorted."""
        return sorted(name for cat, name in self._by_key if cat == category)

    def lookup_by_path(self, path: str) -> Optional[EndpointDefinition]:
        """Find the definition whose path template matches *path*.

        An exact template match wins. Otherwise concrete segments are matched
        against ``{placeholder}`` segments, so ``/zones/abc/dns_records``
        finds ``/zones/{zone_id}/dns_records``. Among several candidates the
        one with the most literal segments wins.
        """
        path = "/" + path.split("?", 1)[0].strip("/")
        exact = self._by_path.get(path)
        if exact is not None:
            return exact

        segments = path.strip("/").split("/")
        best: Optional[EndpointDefinition] = None
        best_score = -1
        for template, endpoint in self._by_path.items():
            parts = template.strip("/").split("/")
            if len(parts) != len(segments):
                continue
            score = 0
            for part, segment in zip(parts, segments):
                if PLACEHOLDER_RE.fullmatch(part):
                    continue
                if part != segment:
                    break
                score += 1
            else:
                if score > best_score:
                    best, best_score = endpoint, score
        return best

    def suggest(self, category: str, verb: str, limit: int = 3) -> list[str]:
        """Return up to *limit* registered verbs in *category* close to *verb*.

        Prefix matches come first, then :func:`difflib.get_close_matches`.
        When *category* itself is unknown, close category names are returned
        instead.
        """
        names = self.verbs(category)
        if not names:
            return difflib.get_close_matches(category, self.categories(), n=limit)

        prefixed = [n for n in names if n.startswith(verb) or verb.startswith(n)]
        close = difflib.get_close_matches(verb, names, n=limit, cutoff=0.5)
        ordered = list(dict.fromkeys(prefixed + close))
        return ordered[:limit]

    # ------------------------------------------------------------------ #
    # Container protocol
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[EndpointDefinition]:
        return iter(self.list())
