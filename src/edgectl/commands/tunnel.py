"""Tunnel commands -- run the ``cloudflared`` daemon for a tunnel.

Provides the ``edgectl tunnel`` sub-command group. Tunnel management
through the API (create, list, routes, ...) lives in the ``tunnels``
endpoint category; these commands only supervise the local daemon.
"""

from __future__ import annotations

import os
import re
from typing import Optional

import typer

from edgectl.client.envelope import raise_for_envelope
from edgectl.commands.common import get_settings, handle_errors, is_dry_run, make_dispatcher, run
from edgectl.config import ENV_TUNNEL_TOKEN, get_tunnel_state_path
from edgectl.exceptions import TunnelError, ValidationError
from edgectl.models import HTTPMethod, RequestPlan
from edgectl.output import format_response, info, print_data, success, suggest
from edgectl.tunnel import TunnelSupervisor, install_hint

tunnel_app = typer.Typer(no_args_is_help=True)

TUNNEL_ID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")


def _supervisor(ctx: typer.Context) -> TunnelSupervisor:
    return TunnelSupervisor(get_tunnel_state_path(), binary=get_settings(ctx).tunnel.binary)


async def _fetch_token(ctx: typer.Context, tunnel: str, account: Optional[str]) -> str:
    """Look up the run token for a tunnel given by ID or name."""
    async with make_dispatcher(ctx) as dispatcher:
        account_id = account or get_settings(ctx).default_account or await dispatcher.resolve_account_id()

        tunnel_id = tunnel
        if not TUNNEL_ID_RE.fullmatch(tunnel):
            found = raise_for_envelope(
                await dispatcher.execute(
                    RequestPlan(
                        method=HTTPMethod.GET,
                        path=f"/accounts/{account_id}/cfd_tunnel",
                        query=[("name", tunnel), ("is_deleted", "false")],
                    )
                )
            ).result
            if not found or not isinstance(found, list):
                raise ValidationError(f"Tunnel not found: {tunnel}", param="tunnel")
            tunnel_id = found[0]["id"]

        envelope = await dispatcher.execute(
            RequestPlan(method=HTTPMethod.GET, path=f"/accounts/{account_id}/cfd_tunnel/{tunnel_id}/token")
        )
    token = raise_for_envelope(envelope).result
    if not isinstance(token, str) or not token:
        raise TunnelError(f"Could not get a token for tunnel {tunnel}")
    return token


@tunnel_app.command("start")
def tunnel_start(
    ctx: typer.Context,
    tunnel: Optional[str] = typer.Argument(None, help="Tunnel ID or name (not needed with --token)."),
    token: Optional[str] = typer.Option(
        None, "--token", help=f"Tunnel run token (default: ${ENV_TUNNEL_TOKEN})."
    ),
    account: Optional[str] = typer.Option(None, "--account", help="Account ID that owns the tunnel."),
    foreground: bool = typer.Option(
        False, "--foreground", help="Run attached to the terminal instead of in the background."
    ),
) -> None:
    """Start the tunnel daemon.

    The run token comes from --token, $CF_TUNNEL_TOKEN, or is fetched from
    the API for the given tunnel.

    Example::

        edgectl tunnel start my-tunnel
        edgectl tunnel start --token "$TOKEN" --foreground
    """
    token = token or os.environ.get(ENV_TUNNEL_TOKEN)
    with handle_errors():
        if not token and not tunnel:
            raise ValidationError("Give a tunnel ID or name, or --token", param="tunnel")

    supervisor = _supervisor(ctx)
    if is_dry_run(ctx):
        info(f"[dry-run] {supervisor.binary or 'cloudflared'} tunnel run --token ***")
        return

    if not token:
        token = run(_fetch_token(ctx, tunnel, account))

    if foreground:
        info("Running tunnel (Ctrl+C to stop)...")
    with handle_errors():
        state = supervisor.start(token, background=not foreground)

    if state is not None:
        success(f"Tunnel started in background (PID: {state.pid})")
        suggest("Stop it with: edgectl tunnel stop")


@tunnel_app.command("stop")
def tunnel_stop(ctx: typer.Context) -> None:
    """Stop the background tunnel daemon.

    Example::

        edgectl tunnel stop
    """
    with handle_errors():
        stopped = _supervisor(ctx).stop()
    if stopped:
        success("Tunnel stopped.")
    else:
        info("No running tunnel found.")


@tunnel_app.command("status")
def tunnel_status(ctx: typer.Context) -> None:
    """Show whether the daemon is installed and running.

    Example::

        edgectl tunnel status
    """
    status = _supervisor(ctx).status()
    format_response(status.model_dump(mode="json"))
    if not status.installed:
        suggest("Install it: edgectl tunnel install-hint")


@tunnel_app.command("install-hint")
def tunnel_install_hint() -> None:
    """Print install instructions for the tunnel daemon on this platform.

    Example::

        edgectl tunnel install-hint
    """
    for line in install_hint():
        print_data(line)
