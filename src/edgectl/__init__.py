"""edgectl -- schema-driven command-line client for the Cloudflare API.

Instead of one hand-written function per API call, edgectl loads declarative
endpoint definitions (method, path template, typed parameters) from JSON or
YAML files, resolves the typed command against them, binds and validates the
arguments, and dispatches the resulting request generically.

Typical workflow::

    edgectl zones list
    edgectl dns list example.com --type A
    edgectl raw /user/tokens/verify
    edgectl analytics top-urls --zone example.com --since 7d

Definitions are read from the bundled ``definitions/builtin`` directory, then
``<config_dir>/endpoints/``, then ``./endpoints/``; later files override
earlier ones with the same ``(category, name)``.

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration, ``.env`` loading and credentials.
    auth: Builds the request authentication context.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.4.0"
