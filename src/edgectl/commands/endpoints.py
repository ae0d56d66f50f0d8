"""Endpoints commands -- inspect the loaded endpoint definitions.

Provides the ``edgectl endpoints`` sub-command group:

* ``list`` -- every registered endpoint, optionally for one category.
* ``show`` -- one endpoint's path, parameters and examples.
* ``check`` -- load definition files and report the ones that fail.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from edgectl.commands.common import get_registry, handle_errors
from edgectl.definitions import Registry, default_search_path, load
from edgectl.exceptions import LoadError, UnresolvedCommandError
from edgectl.output import OutputFormat, format_response, get_output, info, print_table, success, warning

endpoints_app = typer.Typer(no_args_is_help=True)


@endpoints_app.command("list")
def endpoints_list(
    ctx: typer.Context,
    category: Optional[str] = typer.Argument(None, help="Only list this category."),
) -> None:
    """List registered endpoints.

    Example::

        edgectl endpoints list
        edgectl endpoints list dns --json
    """
    registry = get_registry(ctx)
    definitions = registry.list(category)
    if not definitions:
        warning(f"No endpoints registered{f' in {category}' if category else ''}")
        return

    rows = [
        [d.category, d.name, d.method.value, d.path, d.description.splitlines()[0] if d.description else ""]
        for d in definitions
    ]
    print_table(["category", "name", "method", "path", "description"], rows, title="Endpoints")
    info(f"{len(rows)} endpoint(s) in {len({d.category for d in definitions})} categories")


@endpoints_app.command("show")
def endpoints_show(
    ctx: typer.Context,
    category: str = typer.Argument(help="Endpoint category."),
    name: str = typer.Argument(help="Endpoint name."),
) -> None:
    """Show one endpoint's definition.

    Example::

        edgectl endpoints show dns create
    """
    registry = get_registry(ctx)
    with handle_errors():
        definition = registry.lookup(category, name)
        if definition is None:
            raise UnresolvedCommandError(category, name, registry.suggest(category, name))

    if get_output().format == OutputFormat.JSON:
        format_response(definition.model_dump(mode="json", by_alias=True, exclude_none=True))
        return

    info(f"{definition.method.value} {definition.path}")
    if definition.description:
        info(definition.description)
    if definition.required_plan:
        info(f"Requires the {definition.required_plan} plan")
    if definition.source:
        info(f"Defined in {definition.source}")

    print_table(
        ["param", "type", "location", "required", "description"],
        [
            [
                p.name,
                p.type.value + (f" ({'|'.join(p.values)})" if p.values else ""),
                p.location.value,
                "yes" if p.required else "",
                p.description or "",
            ]
            for p in definition.params
        ],
        title=f"{definition.category} {definition.name}",
    )
    for example in definition.examples:
        info(f"  $ {example}")


@endpoints_app.command("check")
def endpoints_check(
    directories: Optional[list[Path]] = typer.Argument(
        None, help="Directories to check (default: the normal search path)."
    ),
) -> None:
    """Validate definition files without running anything.

    Exits with status 7 when at least one file was rejected.

    Example::

        edgectl endpoints check ./endpoints
    """
    search_path = directories or default_search_path()
    sets, diagnostics = load(search_path)
    registry = Registry.build(sets)

    for key, old, new in registry.overrides:
        info(f"{key[0]} {key[1]}: {new} overrides {old}")

    if diagnostics:
        print_table(
            ["file", "kind", "reason"],
            [[d.path, d.kind, d.reason] for d in diagnostics],
            title="Rejected definition files",
        )

    total = sum(len(s.endpoints) for s in sets)
    with handle_errors():
        if diagnostics:
            raise LoadError(
                f"{len(diagnostics)} definition file(s) rejected; "
                f"{len(sets)} loaded with {total} endpoint(s)"
            )
    success(f"{len(sets)} definition file(s) OK, {total} endpoint(s), {len(registry)} after overrides")
