"""Zone analytics over the provider's GraphQL API."""

from edgectl.analytics.queries import (
    DEFAULT_LIMIT,
    DEFAULT_WINDOW,
    OVERVIEW_REPORTS,
    REPORTS,
    TIME_WINDOWS,
    Report,
    extract_rows,
    format_bytes,
    parse_since,
    render_query,
)

__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_WINDOW",
    "OVERVIEW_REPORTS",
    "REPORTS",
    "TIME_WINDOWS",
    "Report",
    "extract_rows",
    "format_bytes",
    "parse_since",
    "render_query",
]
