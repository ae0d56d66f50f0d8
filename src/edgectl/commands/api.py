"""Generic endpoint commands -- ``<category> <verb>``, ``call`` and ``raw``.

Every registry category becomes a top-level command taking a verb and
free-form arguments, e.g.::

    edgectl dns list example.com --type A --all
    edgectl call zones get 023e105f4ecef8ad9ca31a8372d0c353
    edgectl --zone example.com raw /zones/:zone_id/settings

Arguments are handed unchanged to :func:`~edgectl.dispatch.resolve`, so
the same resolution and validation applies however a command is reached.
"""

from __future__ import annotations

from typing import Optional

import typer

from edgectl.client.dispatcher import Dispatcher
from edgectl.client.envelope import raise_for_envelope, render_envelope
from edgectl.commands.common import (
    get_registry,
    get_settings,
    make_dispatcher,
    run,
)
from edgectl.definitions.registry import Registry
from edgectl.dispatch import RAW_CATEGORY, bind, bind_raw, resolve
from edgectl.models import (
    PLACEHOLDER_RE,
    DefinitionMatch,
    RawPassthrough,
    RequestPlan,
    ResponseEnvelope,
)
from edgectl.output import debug

#: Commands with their own implementation; a category of the same name is
#: only reachable through ``call``.
RESERVED_NAMES = frozenset({"analytics", "call", "config", "endpoints", RAW_CATEGORY, "tunnel"})

PASSTHROUGH_SETTINGS = {"allow_extra_args": True, "ignore_unknown_options": True}

#: Fills ``account_id`` until the account is looked up from the credentials.
ACCOUNT_LOOKUP = "<account_id>"


async def _send(dispatcher: Dispatcher, plan: RequestPlan, all_pages: bool) -> ResponseEnvelope:
    if all_pages:
        return await dispatcher.paginate(plan)
    return await dispatcher.execute(plan)


async def _invoke(
    ctx: typer.Context,
    category: str,
    verb: str,
    args: list[str],
    all_pages: bool,
) -> None:
    settings = get_settings(ctx)
    registry = get_registry(ctx)

    defaults: dict[str, str] = {}
    if settings.default_zone:
        defaults["zone_id"] = settings.default_zone
    defaults["account_id"] = settings.default_account or ACCOUNT_LOOKUP

    resolved = resolve(registry, category, verb, args, defaults)

    async with make_dispatcher(ctx) as dispatcher:
        if isinstance(resolved, DefinitionMatch):
            plan = await _plan_for_definition(dispatcher, resolved)
        else:
            plan = await _plan_for_raw(dispatcher, registry, resolved, defaults)

        if all_pages and not plan.paginate:
            debug(f"{category} {verb} is not paginated; fetching a single page")
        envelope = await _send(dispatcher, plan, all_pages and plan.paginate)

    render_envelope(raise_for_envelope(envelope))


async def _plan_for_definition(dispatcher: Dispatcher, match: DefinitionMatch) -> RequestPlan:
    definition = match.definition
    args = dict(match.bound_args)
    needs_account = args.get("account_id") == ACCOUNT_LOOKUP

    # Arguments are validated before any lookup goes over the network.
    bind(definition, args)

    if "zone_id" in args and definition.param("zone_id") is not None:
        args["zone_id"] = await dispatcher.resolve_zone_id(args["zone_id"])
    if needs_account:
        args["account_id"] = await dispatcher.resolve_account_id()

    return bind(definition, args)


async def _plan_for_raw(
    dispatcher: Dispatcher,
    registry: Registry,
    raw: RawPassthrough,
    defaults: dict[str, str],
) -> RequestPlan:
    names = set(PLACEHOLDER_RE.findall(raw.path))
    names.update(part[1:] for part in raw.path.split("?", 1)[0].split("/") if part.startswith(":"))

    substitutions: dict[str, str] = {}
    if "zone_id" in names and "zone_id" in defaults:
        substitutions["zone_id"] = await dispatcher.resolve_zone_id(defaults["zone_id"])
    if "account_id" in names:
        account_id = defaults["account_id"]
        substitutions["account_id"] = (
            await dispatcher.resolve_account_id() if account_id == ACCOUNT_LOOKUP else account_id
        )

    plan = bind_raw(raw, substitutions=substitutions)
    known = registry.lookup_by_path(plan.path)
    if known is not None:
        debug(f"{plan.path} is '{known.category} {known.name}': {known.description}")
    return plan


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


def call_command(
    ctx: typer.Context,
    category: str = typer.Argument(help="Endpoint category, e.g. 'dns'."),
    verb: str = typer.Argument(help="Endpoint name within the category, e.g. 'list'."),
    all_pages: bool = typer.Option(False, "--all", help="Fetch every page of a paginated listing."),
) -> None:
    """Call any registered endpoint by category and name.

    Extra arguments fill path parameters positionally or name parameters
    with --name value.

    Example::

        edgectl call dns create example.com --type A --name www --content 192.0.2.1
    """
    run(_invoke(ctx, category, verb, list(ctx.args), all_pages))


def raw_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="API path, e.g. '/zones/:zone_id/dns_records'."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    body: Optional[str] = typer.Option(
        None, "--body", "-d", help="Request body: JSON text, @file, or - for stdin."
    ),
    all_pages: bool = typer.Option(False, "--all", help="Follow result_info pagination."),
) -> None:
    """Send a request to an arbitrary API path.

    ``{zone_id}`` and ``:zone_id`` are replaced with the global --zone (or
    default) zone's ID; ``account_id`` likewise.

    Example::

        edgectl --zone example.com raw /zones/:zone_id/settings/ssl
        edgectl raw /zones/:zone_id/purge_cache -X POST -d '{"purge_everything": true}'
    """
    tokens = ["--method", method]
    if body is not None:
        tokens += ["--body", body]
    tokens += list(ctx.args)
    run(_invoke(ctx, RAW_CATEGORY, path, tokens, all_pages))


def _category_help(registry: Registry, category: str) -> str:
    lines = [f"Endpoints in the '{category}' category.", "", "Verbs:", ""]
    for definition in registry.list(category):
        summary = definition.description.splitlines()[0] if definition.description else definition.path
        lines.append(f"* {definition.name}: {summary}")
    return "\n".join(lines)


def _make_category_command(category: str):
    def category_command(
        ctx: typer.Context,
        verb: str = typer.Argument(help="Endpoint name, see the list below."),
        all_pages: bool = typer.Option(False, "--all", help="Fetch every page of a paginated listing."),
    ) -> None:
        run(_invoke(ctx, category, verb, list(ctx.args), all_pages))

    category_command.__name__ = f"{category.replace('-', '_')}_command"
    return category_command


def register_category_commands(app: typer.Typer, registry: Registry) -> list[str]:
    """Add one ``<category> <verb> [args...]`` command per registry category.

    Returns:
        The categories that were registered. Categories named like a
        built-in command are skipped.
    """
    registered = []
    for category in registry.categories():
        if category in RESERVED_NAMES:
            debug(f"Category '{category}' is shadowed by a built-in command; use 'edgectl call {category} ...'")
            continue
        app.command(
            name=category,
            help=_category_help(registry, category),
            context_settings=PASSTHROUGH_SETTINGS,
        )(_make_category_command(category))
        registered.append(category)
    return registered


def register_api_commands(app: typer.Typer) -> None:
    """Add ``call`` and ``raw`` to *app*."""
    app.command(name="call", context_settings=PASSTHROUGH_SETTINGS)(call_command)
    app.command(name="raw", context_settings=PASSTHROUGH_SETTINGS)(raw_command)


__all__ = ["RESERVED_NAMES", "register_api_commands", "register_category_commands"]
