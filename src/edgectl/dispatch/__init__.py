"""Command resolution and parameter binding.

Typical usage::

    from edgectl.dispatch import bind, resolve

    resolved = resolve(registry, "dns", "list", ["example.com", "--type", "A"])
    plan = bind(resolved.definition, resolved.bound_args, auth)

Sub-modules:

* :mod:`~edgectl.dispatch.resolver` -- ``(category, verb, args)`` to a
  definition match or a raw passthrough.
* :mod:`~edgectl.dispatch.binder` -- validation, coercion, and
  :class:`~edgectl.models.RequestPlan` construction.
"""

from edgectl.dispatch.binder import bind, bind_raw
from edgectl.dispatch.resolver import RAW_CATEGORY, parse_args, parse_raw, resolve

__all__ = ["RAW_CATEGORY", "bind", "bind_raw", "parse_args", "parse_raw", "resolve"]
