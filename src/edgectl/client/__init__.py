"""HTTP client layer: request dispatch and response envelopes.

* :class:`~edgectl.client.dispatcher.Dispatcher` -- async REST/GraphQL
  execution with retry, pagination, and dry-run.
* :mod:`~edgectl.client.envelope` -- response parsing and rendering.
"""

from edgectl.client.dispatcher import Dispatcher
from edgectl.client.envelope import parse, parse_graphql, raise_for_envelope, render_envelope

__all__ = ["Dispatcher", "parse", "parse_graphql", "raise_for_envelope", "render_envelope"]
