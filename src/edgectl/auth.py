"""Authentication context resolution.

The dispatcher needs exactly one :data:`~edgectl.models.AuthContext`:

* :class:`~edgectl.models.BearerAuth` -- an API token, sent as
  ``Authorization: Bearer <token>``.
* :class:`~edgectl.models.LegacyKeyAuth` -- a global API key plus the
  account email, sent as ``X-Auth-Key`` and ``X-Auth-Email``.

A token wins when both are configured. Each credential is read from its
environment variable first, then from the matching ``*_source`` descriptor in
:class:`~edgectl.models.AuthConfig`. Token acquisition itself is out of
scope: the credentials must already exist.
"""

from __future__ import annotations

import os
from typing import Optional

from edgectl.config import ENV_API_EMAIL, ENV_API_KEY, ENV_API_TOKEN, resolve_credential
from edgectl.exceptions import ConfigError
from edgectl.models import AuthConfig, AuthContext, BearerAuth, LegacyKeyAuth


def _lookup(env_var: str, source: Optional[str]) -> Optional[str]:
    value = os.environ.get(env_var)
    if value:
        return value
    if source:
        return resolve_credential(source)
    return None


def resolve_auth(auth_config: Optional[AuthConfig] = None) -> AuthContext:
    """Build the authentication context from the environment and config.

    Args:
        auth_config: Credential sources from the global config. ``None``
            means environment variables only.

    Returns:
        A :class:`~edgectl.models.BearerAuth` or
        :class:`~edgectl.models.LegacyKeyAuth`.

    Raises:
        ConfigError: If neither a token nor a key/email pair is available,
            or if a configured source cannot be read.
    """
    cfg = auth_config or AuthConfig()

    token = _lookup(ENV_API_TOKEN, cfg.token_source)
    if token:
        return BearerAuth(token=token)

    key = _lookup(ENV_API_KEY, cfg.key_source)
    email = _lookup(ENV_API_EMAIL, cfg.email_source)
    if key and email:
        return LegacyKeyAuth(email=email, key=key)
    if key or email:
        missing = ENV_API_EMAIL if key else ENV_API_KEY
        raise ConfigError(f"Legacy API key authentication also needs {missing}")

    raise ConfigError(
        f"No credentials configured. Set {ENV_API_TOKEN}, "
        f"or {ENV_API_KEY} and {ENV_API_EMAIL}."
    )


def describe_auth(auth: AuthContext) -> str:
    """Return a redacted one-line description, e.g. for ``config show``."""
    if isinstance(auth, BearerAuth):
        return f"API token (...{auth.token[-4:]})" if len(auth.token) > 4 else "API token"
    return f"API key for {auth.email}"
