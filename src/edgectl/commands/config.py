"""Config commands -- view, verify and modify the global configuration.

Provides the ``edgectl config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~edgectl.models.GlobalConfig`), listing the directories edgectl
uses, and checking that the configured credentials are accepted by the
API.
"""

from __future__ import annotations

import typer

from edgectl.commands.common import get_settings, handle_errors, is_dry_run, load_auth, make_dispatcher, run
from edgectl.exceptions import ConfigError
from edgectl.exit_codes import EXIT_AUTH_FAILURE
from edgectl.output import error, format_response, info, print_table, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Prints the settings after environment and CLI overrides, and a redacted
    description of the credentials that would be used.

    Example::

        edgectl config show
        edgectl --json config show
    """
    from edgectl.auth import describe_auth, resolve_auth
    from edgectl.config import get_config_dir

    settings = get_settings(ctx)
    info(f"Config directory: {get_config_dir()}")
    try:
        info(f"Credentials: {describe_auth(resolve_auth(settings.auth))}")
    except ConfigError as exc:
        info(f"Credentials: none ({exc})")
    format_response(settings.model_dump(mode="json"))


@config_app.command("paths")
def config_paths() -> None:
    """Show the files and directories edgectl reads and writes.

    Example::

        edgectl config paths
    """
    from edgectl.config import get_config_dir, get_data_dir, get_tunnel_state_path
    from edgectl.definitions import default_search_path

    config_dir = get_config_dir()
    rows = [
        ["config", str(config_dir / "config.json")],
        ["data", str(get_data_dir())],
        ["tunnel state", str(get_tunnel_state_path())],
    ]
    rows += [["endpoints", str(path)] for path in default_search_path()]
    print_table(["name", "path"], rows)


@config_app.command("test")
def config_test(ctx: typer.Context) -> None:
    """Verify the configured credentials against the API.

    API tokens are checked with ``GET /user/tokens/verify``; a legacy API
    key is checked by fetching ``/user``.

    Example::

        edgectl config test
    """
    from edgectl.client.envelope import raise_for_envelope
    from edgectl.models import BearerAuth, HTTPMethod, RequestPlan

    with handle_errors():
        auth = load_auth(ctx)
    path = "/user/tokens/verify" if isinstance(auth, BearerAuth) else "/user"

    async def _verify() -> dict:
        async with make_dispatcher(ctx) as dispatcher:
            envelope = await dispatcher.execute(RequestPlan(method=HTTPMethod.GET, path=path))
        result = raise_for_envelope(envelope).result
        return result if isinstance(result, dict) else {}

    result = run(_verify())
    if is_dry_run(ctx):
        return
    status = result.get("status")
    if status is None or status == "active":
        success("Credentials are valid.")
        if result:
            format_response(result)
        return

    error(f"Token status is '{status}'")
    raise typer.Exit(code=EXIT_AUTH_FAILURE)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, float, or str). The updated config is
    validated against :class:`~edgectl.models.GlobalConfig` before saving.

    Example::

        edgectl config set default_zone example.com
        edgectl config set output.format json
        edgectl config set request.max_retries 5
    """
    from pydantic import ValidationError as PydanticValidationError

    from edgectl.config import load_global_config, save_global_config
    from edgectl.models import GlobalConfig

    with handle_errors():
        config = load_global_config()
    data = config.model_dump(mode="json")

    # Navigate the dot-separated key path.
    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    # Type coerce the value to match the current field type.
    current = target[final_key]
    if isinstance(current, bool):
        coerced: object = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif isinstance(current, float):
        try:
            coerced = float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif value.lower() in ("", "none", "null") and current is None:
        coerced = None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except PydanticValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", help="Skip the confirmation prompt."),
) -> None:
    """Reset configuration to defaults by removing the config file.

    Example::

        edgectl config reset
        edgectl config reset --force
    """
    from edgectl.config import delete_global_config

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    if delete_global_config():
        success("Configuration reset to defaults.")
    else:
        info("No configuration file; already using defaults.")
