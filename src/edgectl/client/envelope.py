"""Response envelope parsing and the bridge to the output system.

REST responses are wrapped as::

    {"success": bool, "errors": [...], "messages": [...],
     "result": <opaque>, "result_info": {...}}

GraphQL responses are ``{"data": <opaque>, "errors": [...]}``. Both are
normalised into a :class:`~edgectl.models.ResponseEnvelope`. The ``result``
value is never inspected here; only its presence matters.

See Also:
    :mod:`edgectl.output` -- renders the envelope's ``result``.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from edgectl.exceptions import MalformedResponseError, ProviderError
from edgectl.models import ResponseEnvelope
from edgectl.output import get_output

EXCERPT_LENGTH = 200


def _excerpt(raw_body: bytes) -> str:
    text = raw_body.decode("utf-8", errors="replace")
    if len(text) > EXCERPT_LENGTH:
        return text[:EXCERPT_LENGTH] + "..."
    return text


def _decode(raw_body: bytes) -> Any:
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedResponseError(
            f"Response is not valid JSON: {exc}", excerpt=_excerpt(raw_body)
        ) from exc


def parse(raw_body: bytes, status_code: Optional[int] = None) -> ResponseEnvelope:
    """Parse a REST response body into a :class:`~edgectl.models.ResponseEnvelope`.

    Args:
        raw_body: The undecoded response body.
        status_code: HTTP status, recorded on the envelope.

    Returns:
        The parsed envelope. ``result`` is passed through untouched.

    Raises:
        MalformedResponseError: If the body is not a JSON object or has no
            ``success`` field.
    """
    data = _decode(raw_body)
    if not isinstance(data, dict) or "success" not in data:
        raise MalformedResponseError(
            "Response is not an API envelope (missing 'success')",
            excerpt=_excerpt(raw_body),
        )
    try:
        return ResponseEnvelope.model_validate({**data, "status_code": status_code})
    except PydanticValidationError as exc:
        raise MalformedResponseError(
            f"Response envelope has an unexpected shape: {exc.error_count()} error(s)",
            excerpt=_excerpt(raw_body),
        ) from exc


def parse_graphql(raw_body: bytes, status_code: Optional[int] = None) -> ResponseEnvelope:
    """Parse a GraphQL response body into an envelope.

    ``data`` becomes ``result`` and ``success`` is true when ``errors`` is
    empty or absent.

    Raises:
        MalformedResponseError: If the body has neither ``data`` nor ``errors``.
    """
    data = _decode(raw_body)
    if not isinstance(data, dict) or ("data" not in data and "errors" not in data):
        raise MalformedResponseError(
            "Response is not a GraphQL result (missing 'data' and 'errors')",
            excerpt=_excerpt(raw_body),
        )
    errors = data.get("errors") or []
    try:
        return ResponseEnvelope(
            success=not errors,
            result=data.get("data"),
            errors=errors,
            status_code=status_code,
        )
    except PydanticValidationError as exc:
        raise MalformedResponseError(
            f"GraphQL errors have an unexpected shape: {exc.error_count()} error(s)",
            excerpt=_excerpt(raw_body),
        ) from exc


def raise_for_envelope(envelope: ResponseEnvelope) -> ResponseEnvelope:
    """Return *envelope* unchanged, or raise if it reports failure.

    Raises:
        ProviderError: If ``envelope.success`` is false.
    """
    if not envelope.success:
        raise ProviderError(envelope.errors, status_code=envelope.status_code)
    return envelope


def render_envelope(envelope: ResponseEnvelope) -> None:
    """Print an envelope using the global output system.

    Warnings from ``messages`` go to stderr, ``result`` to stdout, and the
    pagination summary (when present) to stderr at info level.
    """
    output = get_output()

    for message in envelope.messages:
        if message.message:
            output.warning(message.message)

    if envelope.result is not None:
        output.format_response(envelope.result)

    info = envelope.result_info
    if info is not None and info.total_count is not None:
        shown = info.count if info.count is not None else "?"
        summary = f"{shown} of {info.total_count} result(s)"
        if info.page is not None and info.total_pages:
            summary += f" (page {info.page}/{info.total_pages})"
        output.info(summary)
