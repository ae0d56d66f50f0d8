"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~edgectl.exceptions.EdgectlError` subclass.
User errors (bad arguments, unknown commands) and operational errors
(network, provider) use distinct codes so that shell wrappers can tell them
apart without parsing stderr.

Example::

    $ edgectl dns list --per-page abc
    $ echo $?
    2   # EXIT_INVALID_USAGE -- 'per_page' is not an integer
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration problems)."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, a failed parameter validation, or an unknown command."""

EXIT_AUTH_FAILURE = 3
"""The provider rejected the credentials (HTTP 401/403)."""

EXIT_NOT_FOUND = 4
"""The provider reported that the resource does not exist (HTTP 404)."""

EXIT_PROVIDER_ERROR = 5
"""The provider returned ``success: false`` or an unparsable envelope."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error persisted after all retries (timeout, 5xx, 429)."""

EXIT_DEFINITION_ERROR = 7
"""An endpoint definition file could not be loaded or validated."""

EXIT_TUNNEL_ERROR = 8
"""The tunnel daemon could not be found, started or stopped."""
