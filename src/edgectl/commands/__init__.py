"""Built-in CLI sub-commands for edgectl.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~edgectl.commands.api` -- one command per endpoint category, plus
  ``call`` and ``raw``.
* :mod:`~edgectl.commands.analytics` -- GraphQL traffic reports.
* :mod:`~edgectl.commands.config` -- view, test and modify settings.
* :mod:`~edgectl.commands.endpoints` -- inspect and check definitions.
* :mod:`~edgectl.commands.tunnel` -- supervise the tunnel daemon.

Each group module exports a :class:`typer.Typer` sub-application; the
generic endpoint commands are registered by function because they depend
on the loaded registry.
"""
