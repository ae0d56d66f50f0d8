"""GraphQL analytics reports.

Each :class:`Report` names a zone-scoped dataset, the dimensions to group
by, and the ordering; :func:`render_query` turns it into a GraphQL document
using the ``zone_groups.graphql.j2`` template. :func:`extract_rows`
flattens the ``viewer.zones[0].<dataset>`` groups of a response into
records suitable for :meth:`~edgectl.output.OutputManager.format_response`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

TIME_WINDOWS: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_WINDOW = "24h"
DEFAULT_LIMIT = 20

BYTE_FIELDS = frozenset({"edgeResponseBytes", "bytes", "cachedBytes"})


class Report(BaseModel):
    """One analytics query shape."""

    name: str
    description: str
    dataset: str = "httpRequestsAdaptiveGroups"
    dimensions: list[str]
    order_by: str = "count_DESC"
    filter: Optional[str] = Field(default=None, description="Extra filter clause, e.g. 'edgeResponseStatus_geq: 400'")
    count: bool = True
    sum_fields: list[str] = Field(default_factory=list)
    fixed_limit: Optional[int] = Field(default=None, description="Ignore the caller's limit and always use this one")


REPORTS: dict[str, Report] = {
    report.name: report
    for report in (
        Report(
            name="top-urls",
            description="Top requested URLs",
            dimensions=["clientRequestPath"],
        ),
        Report(
            name="top-ips",
            description="Top visitor IPs",
            dimensions=["clientIP", "clientCountryName", "clientASNDescription"],
        ),
        Report(
            name="top-countries",
            description="Top countries",
            dimensions=["clientCountryName"],
        ),
        Report(
            name="errors",
            description="Error responses (4xx, 5xx)",
            dimensions=["edgeResponseStatus", "clientRequestPath", "clientIP"],
            filter="edgeResponseStatus_geq: 400",
        ),
        Report(
            name="cache",
            description="Cache hit/miss statistics",
            dimensions=["cacheStatus"],
        ),
        Report(
            name="bandwidth",
            description="Bandwidth by content type",
            dimensions=["edgeResponseContentTypeName"],
            order_by="sum_edgeResponseBytes_DESC",
            count=False,
            sum_fields=["edgeResponseBytes"],
        ),
        Report(
            name="bots",
            description="Likely automated traffic by device type",
            dimensions=["clientDeviceType", "botScoreSrcName"],
            filter="botScore_leq: 30",
        ),
        Report(
            name="firewall",
            description="Firewall events (Pro plan and above)",
            dataset="firewallEventsAdaptiveGroups",
            dimensions=["action", "clientIP", "clientCountryName", "clientRequestPath", "ruleId", "source"],
        ),
        Report(
            name="hourly",
            description="Hourly traffic summary",
            dataset="httpRequests1hGroups",
            dimensions=["datetime"],
            order_by="datetime_ASC",
            count=False,
            sum_fields=["requests", "bytes", "cachedBytes", "threats"],
            fixed_limit=168,
        ),
    )
}

#: Reports fetched concurrently by ``analytics top``.
OVERVIEW_REPORTS = ("top-urls", "top-ips", "top-countries", "errors", "cache")


def _create_jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(disabled_extensions=("graphql.j2",)),
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )


_env = _create_jinja_env()


def parse_since(window: str, now: Optional[datetime] = None) -> str:
    """Convert a window such as ``24h`` into an RFC 3339 UTC start time.

    Unknown windows fall back to ``24h``.
    """
    delta = TIME_WINDOWS.get(window)
    if delta is None:
        logger.warning("Unknown time window %r, using %s", window, DEFAULT_WINDOW)
        delta = TIME_WINDOWS[DEFAULT_WINDOW]
    now = now or datetime.now(timezone.utc)
    return (now - delta).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_bytes(size: int) -> str:
    """Human-readable byte count using binary units (``1.50 KB``)."""
    for unit, factor in (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024)):
        if size >= factor:
            return f"{size / factor:.2f} {unit}"
    return f"{size} B"


def render_query(report: Report, zone_id: str, since: str, limit: int = DEFAULT_LIMIT) -> str:
    """Render the GraphQL document for *report* against one zone."""
    template = _env.get_template("zone_groups.graphql.j2")
    return template.render(
        report=report,
        zone_id=zone_id,
        since=since,
        limit=report.fixed_limit or limit,
    )


def extract_groups(result: Any, dataset: str) -> list[dict[str, Any]]:
    """Return ``viewer.zones[0].<dataset>`` from a GraphQL result, or ``[]``."""
    try:
        groups = result["viewer"]["zones"][0][dataset]
    except (KeyError, IndexError, TypeError):
        return []
    return groups if isinstance(groups, list) else []


def extract_rows(report: Report, result: Any, human: bool = True) -> list[dict[str, Any]]:
    """Flatten a report's groups into one record per group.

    Columns are ``count`` (when the report counts), the dimensions, then the
    summed fields. With *human*, byte sums are rendered by
    :func:`format_bytes`.
    """
    rows = []
    for group in extract_groups(result, report.dataset):
        row: dict[str, Any] = {}
        if report.count:
            row["count"] = group.get("count", 0)
        dimensions = group.get("dimensions") or {}
        for name in report.dimensions:
            row[name] = dimensions.get(name)
        sums = group.get("sum") or {}
        for name in report.sum_fields:
            value = sums.get(name, 0)
            row[name] = format_bytes(value) if human and name in BYTE_FIELDS and isinstance(value, int) else value
        rows.append(row)
    return rows
