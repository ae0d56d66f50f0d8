"""Helpers shared by the command modules.

Commands read the invocation state the root callback stores in
``ctx.obj`` (resolved settings, registry, dry-run flag) through these
functions, and wrap their bodies in :func:`handle_errors` so that any
:class:`~edgectl.exceptions.EdgectlError` becomes an ``Error:`` line on
stderr and the matching exit code.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Coroutine, Iterator, Optional, TypeVar

import typer

from edgectl.auth import resolve_auth
from edgectl.client.dispatcher import Dispatcher
from edgectl.definitions.registry import Registry
from edgectl.exceptions import ConfigError, EdgectlError, UnresolvedCommandError, ValidationError
from edgectl.models import AuthContext, GlobalConfig
from edgectl.output import error, suggest

T = TypeVar("T")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Translate :class:`~edgectl.exceptions.EdgectlError` into a clean exit."""
    try:
        yield
    except UnresolvedCommandError as exc:
        error(str(exc))
        suggest("Run 'edgectl endpoints list' to see the available commands")
        raise typer.Exit(code=exc.exit_code) from None
    except EdgectlError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion with error translation."""
    with handle_errors():
        return asyncio.run(coro)


def get_settings(ctx: typer.Context) -> GlobalConfig:
    """Return the settings resolved by the root callback."""
    obj = ctx.ensure_object(dict)
    settings = obj.get("settings")
    if settings is None:
        settings = GlobalConfig()
        obj["settings"] = settings
    return settings


def get_registry(ctx: typer.Context) -> Registry:
    """Return the endpoint registry the application was built with."""
    obj = ctx.ensure_object(dict)
    registry = obj.get("registry")
    if registry is None:
        from edgectl.definitions import load_registry

        registry, _ = load_registry()
        obj["registry"] = registry
    return registry


def is_dry_run(ctx: typer.Context) -> bool:
    return bool(ctx.ensure_object(dict).get("dry_run", False))


def load_auth(ctx: typer.Context) -> Optional[AuthContext]:
    """Resolve credentials; in dry-run mode missing credentials are tolerated."""
    try:
        return resolve_auth(get_settings(ctx).auth)
    except ConfigError:
        if is_dry_run(ctx):
            return None
        raise


def make_dispatcher(ctx: typer.Context) -> Dispatcher:
    """Build a :class:`~edgectl.client.dispatcher.Dispatcher` for this invocation."""
    settings = get_settings(ctx)
    return Dispatcher(settings.request, load_auth(ctx), dry_run=is_dry_run(ctx))


def require_zone(ctx: typer.Context, zone: Optional[str]) -> str:
    """Return *zone*, or the default zone, or fail with a usage error."""
    zone = zone or get_settings(ctx).default_zone
    if not zone:
        raise ValidationError(
            "No zone given. Pass --zone, or set CF_ZONE_ID or CF_ZONE_NAME.",
            param="zone",
        )
    return zone
