"""Validate arguments against an endpoint's parameters and build a request plan.

:func:`bind` walks the definition's parameters in declaration order and
places each supplied value according to its location:

* ``path`` -- substituted into the ``{placeholder}`` (URL-quoted).
* ``query`` -- appended to the query list, keeping declaration order.
* ``header`` -- set directly.
* ``body`` -- collected into one JSON object, built only when at least one
  body parameter is supplied. Absent optional fields are never sent as
  ``null``. A dotted ``field`` such as ``origin.host`` nests the value.

Textual values from the command line are coerced to the declared type. A
missing required value, a failed coercion, or a value outside an enum's
allowed set raises :class:`~edgectl.exceptions.ValidationError` naming the
first offending parameter. Nothing here touches the network.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl, quote

from edgectl.exceptions import ValidationError
from edgectl.models import (
    PLACEHOLDER_RE,
    AuthContext,
    EndpointDefinition,
    HTTPMethod,
    ParamDefinition,
    ParamLocation,
    ParamType,
    RawPassthrough,
    RequestPlan,
)

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})

_COLON_PLACEHOLDER_RE = re.compile(r"(?<=/):([A-Za-z_][A-Za-z0-9_]*)")


def coerce(param: ParamDefinition, value: Any) -> Any:
    """Convert *value* to the Python type declared by *param*.

    Raises:
        ValidationError: If the value cannot be represented as that type.
    """
    if param.type == ParamType.INTEGER:
        if isinstance(value, bool):
            raise ValidationError(
                f"Parameter '{param.name}' expects an integer, got {value!r}", param=param.name
            )
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except ValueError:
            raise ValidationError(
                f"Parameter '{param.name}' expects an integer, got '{value}'", param=param.name
            ) from None

    if param.type == ParamType.BOOLEAN:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValidationError(
            f"Parameter '{param.name}' expects true or false, got '{value}'", param=param.name
        )

    if param.type == ParamType.ENUM:
        text = str(value)
        allowed = param.values or []
        if text not in allowed:
            raise ValidationError(
                f"Parameter '{param.name}' must be one of: {', '.join(allowed)} (got '{text}')",
                param=param.name,
            )
        return text

    return str(value)


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _set_field(body: dict[str, Any], field: str, value: Any) -> None:
    *parents, key = field.split(".")
    for parent in parents:
        body = body.setdefault(parent, {})
    body[key] = value


def bind(
    definition: EndpointDefinition,
    supplied: Mapping[str, Any],
    auth: Optional[AuthContext] = None,
) -> RequestPlan:
    """Build the :class:`~edgectl.models.RequestPlan` for one endpoint call.

    Args:
        definition: The matched endpoint.
        supplied: Argument values keyed by parameter name. ``None`` values
            count as absent.
        auth: When given, its headers are included in the plan.

    Returns:
        The resolved request plan.

    Raises:
        ValidationError: On the first missing, malformed, or unknown
            parameter.
    """
    path = definition.path
    query: list[tuple[str, Any]] = []
    headers: dict[str, str] = {}
    body: dict[str, Any] = {}

    for param in definition.params:
        raw = supplied.get(param.name)
        if raw is None:
            if param.required or param.location == ParamLocation.PATH:
                raise ValidationError(
                    f"Missing required parameter '{param.name}' for "
                    f"{definition.category} {definition.name}",
                    param=param.name,
                )
            continue

        value = coerce(param, raw)
        if param.location == ParamLocation.PATH:
            path = path.replace("{" + param.name + "}", quote(_to_text(value), safe=""))
        elif param.location == ParamLocation.QUERY:
            query.append((param.name, value))
        elif param.location == ParamLocation.HEADER:
            headers[param.name] = _to_text(value)
        else:
            _set_field(body, param.field or param.name, value)

    unknown = [name for name in supplied if definition.param(name) is None]
    if unknown:
        accepted = ", ".join(p.name for p in definition.params) or "none"
        raise ValidationError(
            f"Unknown parameter '{unknown[0]}' for {definition.category} "
            f"{definition.name} (accepted: {accepted})",
            param=unknown[0],
        )

    if auth is not None:
        headers.update(auth.headers())

    return RequestPlan(
        method=definition.method,
        path=path,
        query=query,
        headers=headers,
        body=body or None,
        paginate=definition.paginated,
    )


def bind_raw(
    raw: RawPassthrough,
    auth: Optional[AuthContext] = None,
    substitutions: Optional[Mapping[str, str]] = None,
) -> RequestPlan:
    """Build the plan for a raw passthrough request.

    A query string in the path is split into ``query`` pairs.
    ``{name}`` and ``:name`` segments are replaced from *substitutions*
    (e.g. ``/zones/:zone_id/dns_records``).

    Raises:
        ValidationError: If a placeholder has no substitution.
    """
    path, _, query_string = raw.path.partition("?")
    values = dict(substitutions or {})

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            raise ValidationError(
                f"No value for '{name}' in {raw.path} (pass --zone or set a default zone)"
                if name == "zone_id"
                else f"No value for '{name}' in {raw.path}",
                param=name,
            )
        return quote(values[name], safe="")

    path = PLACEHOLDER_RE.sub(_replace, path)
    path = _COLON_PLACEHOLDER_RE.sub(_replace, path)

    headers = auth.headers() if auth is not None else {}
    return RequestPlan(
        method=raw.method,
        path=path,
        query=parse_qsl(query_string, keep_blank_values=True),
        headers=headers,
        body=raw.body,
        raw_body=raw.raw_body,
        paginate=raw.method == HTTPMethod.GET,
    )
