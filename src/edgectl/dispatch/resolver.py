"""Map a typed invocation onto a registry entry or a raw passthrough.

Resolution order for ``(category, verb, raw_args)``:

1. An exact ``(category, verb)`` match in the registry gives a
   :class:`~edgectl.models.DefinitionMatch`, with ``raw_args`` parsed into
   textual arguments keyed by parameter name. Failing that, a definition
   named ``<verb>_<category>`` (``zones list`` for ``list_zones``), or the
   only one named ``<verb>_...`` in the category, is used.
2. Category ``raw`` gives a :class:`~edgectl.models.RawPassthrough` that
   uses the verb as a literal path.
3. Anything else raises :class:`~edgectl.exceptions.UnresolvedCommandError`
   with the nearest registered verbs.

Because (1) runs first, a user definition file may declare a ``raw``
category: its exact verbs resolve normally, and every other ``raw`` verb is
still a passthrough.

Argument syntax understood by :func:`parse_args`:

* ``--name value`` and ``--name=value``; ``-`` and ``_`` are interchangeable.
* A bare ``--flag`` means ``true``; ``--no-flag`` means ``false`` for a
  boolean parameter ``flag``. Any other parameter needs a value.
* Positional tokens fill ``location=path`` parameters in declaration order.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from edgectl.definitions.registry import Registry
from edgectl.exceptions import UnresolvedCommandError, ValidationError
from edgectl.models import (
    DefinitionMatch,
    EndpointDefinition,
    HTTPMethod,
    ParamType,
    RawPassthrough,
    ResolvedCommand,
)

RAW_CATEGORY = "raw"

BOOLEAN_LITERALS = frozenset({"true", "false", "1", "0", "yes", "no", "on", "off"})


def resolve(
    registry: Registry,
    category: str,
    verb: str,
    raw_args: Sequence[str] = (),
    defaults: Optional[Mapping[str, str]] = None,
) -> ResolvedCommand:
    """Resolve one invocation.

    Args:
        registry: The loaded endpoint registry.
        category: First command word, e.g. ``dns``.
        verb: Second command word, e.g. ``list``; a path for ``raw``.
        raw_args: Remaining command-line tokens.
        defaults: Fallback values for path parameters the user did not
            supply (typically ``{"zone_id": ...}``).

    Returns:
        A :class:`~edgectl.models.DefinitionMatch` or
        :class:`~edgectl.models.RawPassthrough`.

    Raises:
        UnresolvedCommandError: No definition matches and the category is
            not ``raw``.
        ValidationError: The arguments cannot be parsed.
    """
    definition = registry.lookup(category, verb) or _lookup_alias(registry, category, verb)
    if definition is not None:
        return DefinitionMatch(
            definition=definition,
            bound_args=parse_args(definition, raw_args, defaults),
        )

    if category == RAW_CATEGORY:
        return parse_raw(verb, raw_args)

    raise UnresolvedCommandError(category, verb, registry.suggest(category, verb))


def _lookup_alias(registry: Registry, category: str, verb: str) -> Optional[EndpointDefinition]:
    """Find ``<verb>_<category>``, or the single ``<verb>_*`` definition in *category*."""
    definition = registry.lookup(category, f"{verb}_{category}")
    if definition is not None:
        return definition
    prefixed = [d for d in registry.list(category) if d.name.startswith(f"{verb}_")]
    return prefixed[0] if len(prefixed) == 1 else None


def _normalize(name: str) -> str:
    return name.strip().replace("-", "_")


def parse_args(
    definition: EndpointDefinition,
    raw_args: Sequence[str],
    defaults: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Turn command-line tokens into ``{param_name: text}``.

    Values stay textual; coercion is the binder's job. Flags that name no
    parameter are kept (normalised) so the binder can report them.

    When fewer positionals are given than there are unfilled path
    parameters, parameters covered by *defaults* are skipped first, so
    ``dns get <record_id>`` works with a default zone configured.

    Raises:
        ValidationError: A flag is repeated or there are surplus positionals.
    """
    defaults = dict(defaults or {})
    names = {_normalize(p.name): p.name for p in definition.params}
    booleans = {p.name for p in definition.params if p.type == ParamType.BOOLEAN}

    flags: dict[str, str] = {}
    positionals: list[str] = []

    i = 0
    args = list(raw_args)
    while i < len(args):
        token = args[i]
        if token == "--":
            positionals.extend(args[i + 1:])
            break
        if not token.startswith("--") or len(token) == 2:
            positionals.append(token)
            i += 1
            continue

        raw_name, sep, value = token[2:].partition("=")
        key = names.get(_normalize(raw_name), _normalize(raw_name))
        if not sep:
            nxt = args[i + 1] if i + 1 < len(args) else None
            normalized = _normalize(raw_name)
            negated = names.get(normalized[3:]) if normalized.startswith("no_") else None
            if key not in names.values() and negated in booleans:
                key, value = negated, "false"
            elif key in booleans:
                if nxt is not None and nxt.lower() in BOOLEAN_LITERALS:
                    value = nxt
                    i += 1
                else:
                    value = "true"
            elif nxt is not None and not nxt.startswith("--"):
                value = nxt
                i += 1
            elif key in names.values():
                raise ValidationError(f"--{raw_name} needs a value", param=key)
            else:
                value = "true"

        if key in flags:
            raise ValidationError(f"--{raw_name} given more than once", param=key)
        flags[key] = value
        i += 1

    unfilled = [p for p in definition.path_params if p.name not in flags]
    if len(positionals) > len(unfilled):
        surplus = positionals[len(unfilled)]
        raise ValidationError(
            f"Unexpected argument '{surplus}' for {definition.category} {definition.name}"
        )

    targets = list(unfilled)
    for param in unfilled:
        if len(targets) <= len(positionals):
            break
        if param.name in defaults:
            targets.remove(param)
    for param, value in zip(targets, positionals):
        flags[param.name] = value
    for param in unfilled:
        if param.name not in flags and param.name in defaults:
            flags[param.name] = defaults[param.name]

    return flags


def parse_raw(path: str, raw_args: Sequence[str] = ()) -> RawPassthrough:
    """Build a passthrough from a literal path and ``--method`` / ``--body`` flags.

    Accepts ``--method M``, ``--method=M``, ``-X M``, ``--body B``,
    ``--body=B`` and ``-d B``. See :func:`read_body` for body syntax.

    Raises:
        ValidationError: Unknown flag, missing flag value, or an HTTP method
            outside GET/POST/PUT/PATCH/DELETE.
    """
    method = "GET"
    body_arg: Optional[str] = None

    args = list(raw_args)
    i = 0
    while i < len(args):
        token = args[i]
        name, sep, value = token.partition("=") if token.startswith("--") else (token, "", "")
        if name not in ("--method", "-X", "--body", "-d"):
            raise ValidationError(f"Unexpected argument '{token}' for raw request")
        if not sep:
            if i + 1 >= len(args):
                raise ValidationError(f"{name} needs a value")
            value = args[i + 1]
            i += 1
        if name in ("--method", "-X"):
            method = value
        else:
            body_arg = value
        i += 1

    try:
        http_method = HTTPMethod(method.upper())
    except ValueError:
        allowed = ", ".join(m.value for m in HTTPMethod)
        raise ValidationError(
            f"Unsupported method '{method}' (expected one of: {allowed})", param="method"
        ) from None

    body, raw_body = read_body(body_arg) if body_arg is not None else (None, None)
    if not path.startswith("/"):
        path = "/" + path
    return RawPassthrough(method=http_method, path=path, body=body, raw_body=raw_body)


def read_body(value: str) -> tuple[Any, Optional[bytes]]:
    """Interpret a ``--body`` argument.

    ``@file`` reads the file, ``-`` reads stdin, anything else is the body
    itself. JSON text becomes a structured body; other text is passed
    through as raw bytes.

    Returns:
        ``(structured_body, None)`` or ``(None, raw_bytes)``.

    Raises:
        ValidationError: If ``@file`` cannot be read.
    """
    if value == "-":
        text = sys.stdin.read()
    elif value.startswith("@"):
        file_path = Path(value[1:]).expanduser()
        try:
            text = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ValidationError(f"Cannot read body file {file_path}: {exc}", param="body") from exc
    else:
        text = value

    try:
        return json.loads(text), None
    except json.JSONDecodeError:
        return None, text.encode("utf-8")
