"""Analytics commands -- zone traffic reports over GraphQL.

One command per :data:`~edgectl.analytics.REPORTS` entry, plus ``top``
(several reports fetched concurrently) and ``query`` (a custom GraphQL
document). Every command accepts ``--zone``, ``--since`` and ``--limit``.
"""

from __future__ import annotations

from typing import Any, Optional

import click
import typer

from edgectl.analytics import (
    DEFAULT_LIMIT,
    DEFAULT_WINDOW,
    OVERVIEW_REPORTS,
    REPORTS,
    TIME_WINDOWS,
    Report,
    extract_rows,
    parse_since,
    render_query,
)
from edgectl.client.envelope import raise_for_envelope
from edgectl.commands.common import handle_errors, make_dispatcher, require_zone, run
from edgectl.dispatch.resolver import read_body
from edgectl.exceptions import ValidationError
from edgectl.output import OutputFormat, format_response, get_output, info, warning

analytics_app = typer.Typer(no_args_is_help=True)

ZONE_OPTION = typer.Option(None, "--zone", "-z", help="Zone name or ID (default: the configured zone).")
SINCE_OPTION = typer.Option(
    DEFAULT_WINDOW, "--since", "-s", click_type=click.Choice(list(TIME_WINDOWS)), help="Time window."
)
LIMIT_OPTION = typer.Option(DEFAULT_LIMIT, "--limit", "-l", min=1, help="Maximum number of groups.")


def _human() -> bool:
    return get_output().format != OutputFormat.JSON


def _show(report: Report, rows: list[dict[str, Any]]) -> None:
    if not rows:
        warning(f"No data found for {report.name}")
        return
    format_response(rows)
    info(f"Total groups: {len(rows)}")


async def _run_report(ctx: typer.Context, report: Report, zone: str, since: str, limit: int) -> list[dict[str, Any]]:
    async with make_dispatcher(ctx) as dispatcher:
        zone_id = await dispatcher.resolve_zone_id(zone)
        envelope = await dispatcher.graphql(render_query(report, zone_id, since, limit))
    return extract_rows(report, raise_for_envelope(envelope).result, human=_human())


def _make_report_command(report: Report):
    def report_command(
        ctx: typer.Context,
        zone: Optional[str] = ZONE_OPTION,
        since: str = SINCE_OPTION,
        limit: int = LIMIT_OPTION,
    ) -> None:
        with handle_errors():
            zone_name = require_zone(ctx, zone)
        rows = run(_run_report(ctx, report, zone_name, parse_since(since), limit))
        _show(report, rows)

    report_command.__name__ = f"{report.name.replace('-', '_')}_command"
    report_command.__doc__ = f"{report.description}."
    return report_command


for _report in REPORTS.values():
    analytics_app.command(_report.name)(_make_report_command(_report))


@analytics_app.command("top")
def analytics_top(
    ctx: typer.Context,
    zone: Optional[str] = ZONE_OPTION,
    since: str = SINCE_OPTION,
    limit: int = LIMIT_OPTION,
) -> None:
    """Traffic overview: top URLs, IPs, countries, errors and cache status.

    The reports are fetched concurrently.

    Example::

        edgectl analytics top --zone example.com --since 7d --limit 5
    """
    with handle_errors():
        zone_name = require_zone(ctx, zone)
    start = parse_since(since)

    async def _overview() -> dict[str, list[dict[str, Any]]]:
        async with make_dispatcher(ctx) as dispatcher:
            zone_id = await dispatcher.resolve_zone_id(zone_name)
            envelopes = await dispatcher.gather_graphql(
                {name: render_query(REPORTS[name], zone_id, start, limit) for name in OVERVIEW_REPORTS}
            )
        return {
            name: extract_rows(REPORTS[name], raise_for_envelope(envelopes[name]).result, human=_human())
            for name in OVERVIEW_REPORTS
        }

    sections = run(_overview())
    if not _human():
        format_response(sections)
        return
    for name in OVERVIEW_REPORTS:
        info(REPORTS[name].description)
        _show(REPORTS[name], sections[name])


@analytics_app.command("query")
def analytics_query(
    ctx: typer.Context,
    document: str = typer.Argument(help="GraphQL query text, @file, or - for stdin."),
) -> None:
    """Run a custom GraphQL query and print its data.

    The document is either query text or a JSON object with ``query`` and
    optional ``variables``.

    Example::

        edgectl analytics query @report.graphql
        edgectl analytics query @request.json
    """
    with handle_errors():
        body, raw = read_body(document)
        if raw is not None:
            text, variables = raw.decode("utf-8"), None
        elif isinstance(body, dict) and isinstance(body.get("query"), str):
            text, variables = body["query"], body.get("variables")
            if variables is not None and not isinstance(variables, dict):
                raise ValidationError("GraphQL 'variables' must be a JSON object", param="document")
        else:
            raise ValidationError(
                "A JSON query document needs a 'query' string", param="document"
            )

    async def _query():
        async with make_dispatcher(ctx) as dispatcher:
            return await dispatcher.graphql(text, variables)

    envelope = run(_query())
    with handle_errors():
        result = raise_for_envelope(envelope).result
    if result is not None:
        format_response(result)
