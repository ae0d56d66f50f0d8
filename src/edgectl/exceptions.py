"""Exception hierarchy for edgectl.

All exceptions inherit from :class:`EdgectlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`edgectl.exit_codes`.
The top-level error handler in :func:`edgectl.app.main` catches
``EdgectlError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    EdgectlError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- InvalidUsageError           (exit 2)
    |   +-- ValidationError         (exit 2)
    |   +-- UnresolvedCommandError  (exit 2)
    +-- ProviderError               (exit 5, or 3 / 4 for 401-403 / 404)
    +-- MalformedResponseError      (exit 5)
    +-- NetworkError                (exit 6)
    +-- LoadError                   (exit 7)
    |   +-- SchemaInvariantError    (exit 7)
    +-- TunnelError                 (exit 8)

Only :class:`NetworkError` is the result of automatic retries; every other
kind is terminal for the current command.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from edgectl.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_DEFINITION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PROVIDER_ERROR,
    EXIT_TUNNEL_ERROR,
)


class EdgectlError(Exception):
    """Base exception for all edgectl errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`edgectl.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(EdgectlError):
    """Raised for configuration problems (no credentials, invalid config JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidUsageError(EdgectlError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class ValidationError(InvalidUsageError):
    """Raised when supplied arguments do not satisfy an endpoint's parameter schema.

    Always raised before any network call is attempted.

    Attributes:
        param: Name of the first offending parameter, when known.
    """

    def __init__(self, message: str, param: Optional[str] = None):
        super().__init__(message)
        self.param = param


class UnresolvedCommandError(InvalidUsageError):
    """Raised when ``(category, verb)`` matches no registered endpoint.

    Attributes:
        category: The category the user typed.
        verb: The verb the user typed.
        suggestions: Nearest registered verbs in the same category.
    """

    def __init__(
        self,
        category: str,
        verb: str,
        suggestions: Sequence[str] = (),
    ):
        self.category = category
        self.verb = verb
        self.suggestions = list(suggestions)
        message = f"Unknown command: {category} {verb}"
        if self.suggestions:
            message += f" (did you mean: {', '.join(self.suggestions)}?)"
        super().__init__(message)


class ProviderError(EdgectlError):
    """Raised for a well-formed envelope with ``success: false``.

    The exit code follows the HTTP status: 401/403 map to
    :data:`EXIT_AUTH_FAILURE`, 404 to :data:`EXIT_NOT_FOUND`, everything else
    to :data:`EXIT_PROVIDER_ERROR`.

    Attributes:
        errors: The provider's ``errors`` entries, in order.
        status_code: HTTP status of the response, when known.
    """

    exit_code = EXIT_PROVIDER_ERROR

    def __init__(
        self,
        errors: Sequence[Any] = (),
        status_code: Optional[int] = None,
    ):
        self.errors = list(errors)
        self.status_code = status_code
        parts = [
            f"[{getattr(e, 'code', 0)}] {getattr(e, 'message', e)}"
            for e in self.errors
        ]
        if parts:
            message = "; ".join(parts)
        elif status_code is not None:
            message = f"HTTP {status_code}: request failed"
        else:
            message = "Request failed"
        if status_code in (401, 403):
            code: Optional[int] = EXIT_AUTH_FAILURE
        elif status_code == 404:
            code = EXIT_NOT_FOUND
        else:
            code = None
        super().__init__(message, exit_code=code)


class MalformedResponseError(EdgectlError):
    """Raised when a response body is not a structurally valid envelope.

    Attributes:
        excerpt: The first 200 characters of the raw body, for debugging.
    """

    exit_code = EXIT_PROVIDER_ERROR

    def __init__(self, message: str, excerpt: str = ""):
        self.excerpt = excerpt
        if excerpt:
            message = f"{message}\n  Body: {excerpt}"
        super().__init__(message)


class NetworkError(EdgectlError):
    """Raised when a transient failure persists after all retries.

    Attributes:
        attempts: Number of attempts made, including the first.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class LoadError(EdgectlError):
    """Raised when a definition file cannot be read, parsed or validated.

    Attributes:
        path: The offending file, when known.
    """

    exit_code = EXIT_DEFINITION_ERROR

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class SchemaInvariantError(LoadError):
    """Raised when a path placeholder has no matching ``location=path`` parameter (or vice versa)."""


class TunnelError(EdgectlError):
    """Raised when the tunnel daemon is missing or fails to start or stop."""

    exit_code = EXIT_TUNNEL_ERROR
