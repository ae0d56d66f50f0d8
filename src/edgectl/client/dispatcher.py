"""Asynchronous request dispatcher for REST and GraphQL plans.

:class:`Dispatcher` wraps :class:`httpx.AsyncClient` and executes a
:class:`~edgectl.models.RequestPlan`:

* **Auth injection** -- the :data:`~edgectl.models.AuthContext` headers are
  merged over the plan's headers. With no auth context a
  :class:`~edgectl.exceptions.ConfigError` is raised before any I/O.
* **Retry** -- connection errors, timeouts, HTTP 5xx and HTTP 429 are
  retried with exponential backoff (``backoff_base * 2**attempt``, or the
  server's ``Retry-After``) up to ``max_retries`` times, after which a
  :class:`~edgectl.exceptions.NetworkError` is raised.
* **No retry for 4xx** -- other client errors are parsed straight into an
  envelope with ``success=False``.
* **Pagination** -- :meth:`Dispatcher.paginate` follows ``result_info``
  cursors or page numbers strictly sequentially.
* **GraphQL fan-out** -- :meth:`Dispatcher.gather_graphql` runs independent
  analytics queries concurrently and merges them key-wise.
* **Dry-run** -- the plan is printed to stderr and a synthetic successful
  envelope is returned without network I/O.

Example::

    async with Dispatcher(config.request, auth) as dispatcher:
        envelope = await dispatcher.execute(plan)
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Optional

import httpx

from edgectl import __version__
from edgectl.client.envelope import parse, parse_graphql, raise_for_envelope
from edgectl.exceptions import (
    ConfigError,
    MalformedResponseError,
    NetworkError,
    ValidationError,
)
from edgectl.models import (
    ApiError,
    AuthContext,
    HTTPMethod,
    RequestConfig,
    RequestPlan,
    ResponseEnvelope,
    ResultInfo,
    Transport,
)
from edgectl.output import get_output

logger = logging.getLogger(__name__)

ZONE_ID_RE = re.compile(r"[0-9a-f]{32}")

_REDACTED_HEADERS = frozenset({"authorization", "x-auth-key"})

_RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class Dispatcher:
    """Execute request plans against the provider's REST and GraphQL APIs.

    Must be used as an async context manager.

    Args:
        config: Base URLs, timeout, and retry settings.
        auth: Default authentication context for :meth:`execute`.
        transport: Optional httpx transport, e.g.
            :class:`httpx.MockTransport` in tests.
        dry_run: When ``True``, plans are printed to stderr and never sent.
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        auth: Optional[AuthContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        dry_run: bool = False,
    ) -> None:
        self._config = config or RequestConfig()
        self._auth = auth
        self._transport = transport
        self._dry_run = dry_run
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Dispatcher:
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            transport=self._transport,
            follow_redirects=True,
            headers={"User-Agent": f"edgectl/{__version__}"},
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def execute(
        self,
        plan: RequestPlan,
        auth: Optional[AuthContext] = None,
    ) -> ResponseEnvelope:
        """Send one plan and return its parsed envelope.

        Args:
            plan: The request to send.
            auth: Overrides the dispatcher's default auth context.

        Returns:
            The response envelope. Non-retryable 4xx responses come back with
            ``success=False`` rather than raising.

        Raises:
            ConfigError: No authentication context is available.
            NetworkError: Transient failures persisted past ``max_retries``.
            MalformedResponseError: A 2xx body is not a valid envelope.
        """
        auth = auth or self._auth
        headers = dict(plan.headers)
        if auth is not None:
            headers.update(auth.headers())
        elif not self._dry_run:
            raise ConfigError(
                "No credentials configured. Set CF_API_TOKEN, or CF_API_KEY and CF_API_EMAIL."
            )

        is_graphql = plan.transport == Transport.GRAPHQL
        url = self._config.graphql_url if is_graphql else plan.path

        if self._dry_run:
            return self._print_dry_run(plan, url, headers)

        response = await self._send_with_retry(plan, url, headers)
        return self._to_envelope(response, graphql=is_graphql)

    async def paginate(
        self,
        plan: RequestPlan,
        auth: Optional[AuthContext] = None,
    ) -> ResponseEnvelope:
        """Fetch every page of a listing and concatenate the results.

        Pages are requested one after another using ``result_info.cursor``
        (sent back as the ``cursor`` query parameter) or, failing that,
        ``page``/``total_pages``. Stops at the first unsuccessful envelope
        and returns it, or after ``max_pages`` pages.
        """
        first = await self.execute(plan, auth)
        if not first.success or not isinstance(first.result, list):
            return first

        results: list[Any] = list(first.result)
        current = first
        pages = 1
        while True:
            next_query = _next_page_query(plan.query, current.result_info)
            if next_query is None or not current.result:
                break
            if pages >= self._config.max_pages:
                get_output().warning(
                    f"Stopped after {pages} pages; raise request.max_pages to fetch more"
                )
                break
            current = await self.execute(plan.model_copy(update={"query": next_query}), auth)
            if not current.success:
                return current
            if isinstance(current.result, list):
                results.extend(current.result)
            pages += 1
            logger.debug("Fetched page %d (%d results so far)", pages, len(results))

        last_info = current.result_info
        total = last_info.total_count if last_info and last_info.total_count is not None else len(results)
        return first.model_copy(
            update={
                "result": results,
                "result_info": ResultInfo(count=len(results), total_count=total),
                "messages": first.messages if current is first else first.messages + current.messages,
            }
        )

    async def graphql(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> ResponseEnvelope:
        """Run one GraphQL query document."""
        plan = RequestPlan(
            method=HTTPMethod.POST,
            path=self._config.graphql_url,
            body={"query": query, "variables": variables or {}},
            transport=Transport.GRAPHQL,
        )
        return await self.execute(plan)

    async def gather_graphql(self, queries: dict[str, str]) -> dict[str, ResponseEnvelope]:
        """Run independent GraphQL queries concurrently.

        Results are merged key-wise only after every query has completed.

        Args:
            queries: Query documents keyed by a caller-chosen name.

        Returns:
            One envelope per key of *queries*.
        """
        names = list(queries)
        envelopes = await asyncio.gather(*(self.graphql(queries[name]) for name in names))
        return dict(zip(names, envelopes))

    async def resolve_zone_id(self, zone: str) -> str:
        """Return the zone ID for a zone name or ID.

        32-character hex strings are returned unchanged; anything else is
        looked up with ``GET /zones?name=<zone>``.

        Raises:
            ValidationError: No zone has that name.
            ProviderError: The lookup itself failed.
        """
        if ZONE_ID_RE.fullmatch(zone):
            return zone
        if self._dry_run:
            get_output().debug(f"[dry-run] not resolving zone name '{zone}'")
            return zone

        plan = RequestPlan(method=HTTPMethod.GET, path="/zones", query=[("name", zone)])
        envelope = raise_for_envelope(await self.execute(plan))
        zones = envelope.result if isinstance(envelope.result, list) else []
        if not zones:
            raise ValidationError(f"Zone not found: {zone}", param="zone")
        zone_id = zones[0].get("id") if isinstance(zones[0], dict) else None
        if not zone_id:
            raise MalformedResponseError(f"Zone lookup for '{zone}' returned no id")
        logger.debug("Resolved zone %s to %s", zone, zone_id)
        return zone_id

    async def resolve_account_id(self) -> str:
        """Return the ID of the first account the credentials can access.

        Raises:
            ConfigError: The credentials cannot see any account.
        """
        if self._dry_run:
            return "<account_id>"
        plan = RequestPlan(method=HTTPMethod.GET, path="/accounts", query=[("per_page", 1)])
        envelope = raise_for_envelope(await self.execute(plan))
        accounts = envelope.result if isinstance(envelope.result, list) else []
        if not accounts or not isinstance(accounts[0], dict) or "id" not in accounts[0]:
            raise ConfigError("No account found for these credentials; set CF_ACCOUNT_ID")
        return accounts[0]["id"]

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _send_with_retry(
        self,
        plan: RequestPlan,
        url: str,
        headers: dict[str, str],
    ) -> httpx.Response:
        """Send the request, retrying transient failures with exponential backoff."""
        assert self._client is not None, "Dispatcher not initialised -- use as async context manager"

        max_retries = self._config.max_retries
        output = get_output()

        kwargs: dict[str, Any] = {"headers": headers}
        if plan.query:
            kwargs["params"] = plan.query
        if plan.body is not None:
            kwargs["json"] = plan.body
        elif plan.raw_body is not None:
            kwargs["content"] = plan.raw_body

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.request(plan.method.value, url, **kwargs)
            except _RETRYABLE_ERRORS as exc:
                if attempt < max_retries:
                    delay = self._delay(attempt, None)
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay:g}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise NetworkError(
                    f"Connection failed after {attempt + 1} attempts: {exc}",
                    attempts=attempt + 1,
                ) from exc

            logger.debug("%s %s -> %d", plan.method.value, response.url, response.status_code)
            status = response.status_code
            if status >= 500 or status == 429:
                if attempt < max_retries:
                    delay = self._delay(attempt, response)
                    reason = "Rate limited" if status == 429 else f"Server error {status}"
                    output.debug(
                        f"{reason}, retrying in {delay:g}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise NetworkError(
                    f"HTTP {status} {response.reason_phrase} after {attempt + 1} attempts",
                    attempts=attempt + 1,
                )

            return response

        raise NetworkError("Request failed after all retries", attempts=max_retries + 1)  # pragma: no cover

    def _delay(self, attempt: int, response: Optional[httpx.Response]) -> float:
        delay = self._config.backoff_base * 2 ** attempt
        if response is not None:
            retry_after = response.headers.get("retry-after", "")
            if retry_after.isdigit():
                delay = float(retry_after)
        return min(delay, self._config.max_backoff)

    @staticmethod
    def _to_envelope(response: httpx.Response, graphql: bool) -> ResponseEnvelope:
        status = response.status_code
        parser = parse_graphql if graphql else parse
        try:
            envelope = parser(response.content, status_code=status)
        except MalformedResponseError:
            if status < 400:
                raise
            text = response.text.strip()[:200] or response.reason_phrase
            return ResponseEnvelope(
                success=False,
                errors=[ApiError(code=status, message=text)],
                status_code=status,
            )
        if status >= 400 and envelope.success:
            envelope = envelope.model_copy(update={"success": False})
        return envelope

    def _print_dry_run(
        self,
        plan: RequestPlan,
        url: str,
        headers: dict[str, str],
    ) -> ResponseEnvelope:
        """Print request details to stderr and return a synthetic success envelope."""
        output = get_output()
        target = url if url.startswith("http") else f"{self._config.base_url}{url}"
        output.info(f"[dry-run] {plan.method.value} {target}")

        for key, value in headers.items():
            shown = "***" if key.lower() in _REDACTED_HEADERS else value
            output.info(f"  Header: {key}: {shown}")
        for key, value in plan.query:
            if isinstance(value, bool):
                value = "true" if value else "false"
            output.info(f"  Param: {key}={value}")
        if plan.body is not None:
            output.info(f"  Body (JSON): {json.dumps(plan.body, indent=2)}")
        elif plan.raw_body is not None:
            output.info(f"  Body: {plan.raw_body.decode('utf-8', errors='replace')}")

        return ResponseEnvelope(success=True, result=None, status_code=None)


def _next_page_query(
    query: list[tuple[str, Any]],
    info: Optional[ResultInfo],
) -> Optional[list[tuple[str, Any]]]:
    """Return the query for the page after *info*, or ``None`` when done."""
    if info is None:
        return None
    if info.cursor:
        return [(k, v) for k, v in query if k != "cursor"] + [("cursor", info.cursor)]
    if info.page is not None and info.total_pages is not None and info.page < info.total_pages:
        return [(k, v) for k, v in query if k != "page"] + [("page", info.page + 1)]
    return None
