"""Canonical Pydantic models shared across all edgectl modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into four groups:

**Definition models** -- parsed from endpoint definition files:
    :class:`HTTPMethod`, :class:`ParamType`, :class:`ParamLocation`,
    :class:`ParamDefinition`, :class:`EndpointDefinition`,
    :class:`EndpointSet`, and :class:`LoadDiagnostic`.

**Request models** -- produced per invocation by the resolver and binder:
    :class:`DefinitionMatch`, :class:`RawPassthrough`, :class:`RequestPlan`,
    :class:`BearerAuth`, and :class:`LegacyKeyAuth`.

**Envelope models** -- the provider's uniform response wrapper:
    :class:`ApiError`, :class:`ApiMessage`, :class:`ResultInfo`, and
    :class:`ResponseEnvelope`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`AuthConfig`, :class:`RequestConfig`, :class:`OutputConfig`,
    :class:`TunnelConfig`, and :class:`GlobalConfig`; plus the tunnel
    supervisor's :class:`TunnelState` and :class:`TunnelStatus`.
"""

from __future__ import annotations

import enum
import re
from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_GRAPHQL_URL = "https://api.cloudflare.com/client/v4/graphql"

PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


# --- Definition Models ---


class HTTPMethod(str, enum.Enum):
    """HTTP verbs an endpoint definition may declare."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ParamType(str, enum.Enum):
    """Value types a parameter is coerced to at bind time."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ENUM = "enum"


class ParamLocation(str, enum.Enum):
    """Where a bound parameter value ends up in the request."""

    PATH = "path"
    QUERY = "query"
    BODY = "body"
    HEADER = "header"


class ParamDefinition(BaseModel):
    """One argument of an endpoint.

    Path parameters become positional arguments on the command line; all
    other locations are supplied as ``--flag value``. ``default`` is shown in
    ``endpoints show`` but never sent: an absent optional parameter is
    omitted from the request. ``field`` names the body key when it differs
    from the flag; dots nest it (``config.dimensions``).

    Example::

        ParamDefinition(
            name="type",
            type="enum",
            location="query",
            values=["A", "AAAA", "CNAME"],
        )
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: ParamType = ParamType.STRING
    required: bool = False
    location: ParamLocation = ParamLocation.BODY
    description: Optional[str] = None
    default: Any = None
    field: Optional[str] = Field(
        default=None, description="Body key, dotted for nested objects"
    )
    values: Optional[list[str]] = Field(
        default=None,
        alias="enum",
        description="Allowed values when type is enum",
    )

    @model_validator(mode="after")
    def _check_enum_values(self) -> ParamDefinition:
        if self.type == ParamType.ENUM and not self.values:
            raise ValueError(
                f"parameter '{self.name}' has type enum but no allowed values"
            )
        return self


class EndpointDefinition(BaseModel):
    """One callable API operation.

    ``category`` and ``version`` are inherited from the enclosing
    :class:`EndpointSet` when the file leaves them empty. ``source`` records
    the file the definition was loaded from and is not part of the file
    format.
    """

    name: str
    method: HTTPMethod
    path: str
    description: str = ""
    category: str = ""
    version: Optional[str] = None
    params: list[ParamDefinition] = Field(default_factory=list)
    required_plan: Optional[str] = Field(
        default=None, description="Lowest plan that can call this endpoint"
    )
    examples: list[str] = Field(default_factory=list)
    paginated: bool = Field(
        default=False, description="Response carries result_info for paging"
    )
    source: Optional[str] = Field(default=None, exclude=True)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode="after")
    def _check_unique_params(self) -> EndpointDefinition:
        seen: set[str] = set()
        for param in self.params:
            if param.name in seen:
                raise ValueError(
                    f"endpoint '{self.name}' declares parameter '{param.name}' twice"
                )
            seen.add(param.name)
        return self

    @property
    def placeholders(self) -> list[str]:
        """Placeholder names in ``path``, in order of appearance."""
        return PLACEHOLDER_RE.findall(self.path)

    @property
    def path_params(self) -> list[ParamDefinition]:
        """Parameters with ``location=path``, in declaration order."""
        return [p for p in self.params if p.location == ParamLocation.PATH]

    def param(self, name: str) -> Optional[ParamDefinition]:
        """Return the parameter called *name*, or ``None``."""
        for p in self.params:
            if p.name == name:
                return p
        return None


class EndpointSet(BaseModel):
    """One loaded definition file."""

    name: str
    description: str = ""
    version: str = "v4"
    endpoints: list[EndpointDefinition] = Field(default_factory=list)
    source: Optional[str] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _inherit_defaults(self) -> EndpointSet:
        for endpoint in self.endpoints:
            if not endpoint.category:
                endpoint.category = self.name
            if endpoint.version is None:
                endpoint.version = self.version
            if endpoint.source is None:
                endpoint.source = self.source
        return self


class LoadDiagnostic(BaseModel):
    """A definition file that was skipped, and why."""

    path: str
    reason: str
    kind: Literal["parse", "schema", "invariant"] = "parse"


# --- Request Models ---


class BearerAuth(BaseModel):
    """API-token authentication: one ``Authorization: Bearer`` header."""

    kind: Literal["bearer"] = "bearer"
    token: str = Field(repr=False)

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class LegacyKeyAuth(BaseModel):
    """Global API key authentication: ``X-Auth-Email`` plus ``X-Auth-Key``."""

    kind: Literal["legacy"] = "legacy"
    email: str
    key: str = Field(repr=False)

    def headers(self) -> dict[str, str]:
        return {"X-Auth-Email": self.email, "X-Auth-Key": self.key}


AuthContext = Union[BearerAuth, LegacyKeyAuth]


class DefinitionMatch(BaseModel):
    """The invocation matched a registered endpoint."""

    definition: EndpointDefinition
    bound_args: dict[str, str] = Field(default_factory=dict)


class RawPassthrough(BaseModel):
    """The invocation is an arbitrary ``raw`` request with no definition."""

    method: HTTPMethod = HTTPMethod.GET
    path: str
    body: Any = None
    raw_body: Optional[bytes] = None


ResolvedCommand = Union[DefinitionMatch, RawPassthrough]


class Transport(str, enum.Enum):
    """Which provider endpoint a plan is sent to."""

    REST = "rest"
    GRAPHQL = "graphql"


class RequestPlan(BaseModel):
    """A fully resolved request, ready for the dispatcher.

    ``query`` is an ordered list of pairs so that declaration order survives
    into the URL. At most one of ``body`` (JSON-serialisable) and
    ``raw_body`` is set. ``paginate`` marks a listing that ``--all`` may
    follow page by page.
    """

    method: HTTPMethod
    path: str
    query: list[tuple[str, Any]] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    raw_body: Optional[bytes] = None
    transport: Transport = Transport.REST
    paginate: bool = False


# --- Envelope Models ---


class ApiError(BaseModel):
    """One ``{code, message}`` entry of an envelope's ``errors`` list."""

    model_config = ConfigDict(extra="allow")

    code: int = 0
    message: str = ""


class ApiMessage(BaseModel):
    """One entry of an envelope's ``messages`` list (warnings and notices)."""

    model_config = ConfigDict(extra="allow")

    code: int = 0
    message: str = ""


class ResultInfo(BaseModel):
    """Pagination details from ``result_info``. Unknown keys are preserved."""

    model_config = ConfigDict(extra="allow")

    cursor: Optional[str] = None
    page: Optional[int] = None
    per_page: Optional[int] = None
    total_pages: Optional[int] = None
    count: Optional[int] = None
    total_count: Optional[int] = None


class ResponseEnvelope(BaseModel):
    """The provider's uniform success/error/result wrapper.

    ``result`` is opaque: the core never looks inside it.
    """

    success: bool
    result: Any = None
    errors: list[ApiError] = Field(default_factory=list)
    messages: list[ApiMessage] = Field(default_factory=list)
    result_info: Optional[ResultInfo] = None
    status_code: Optional[int] = None

    @field_validator("errors", "messages", mode="before")
    @classmethod
    def _wrap_strings(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [{"message": v} if isinstance(v, str) else v for v in value]
        return value


# --- Configuration Models ---


class AuthConfig(BaseModel):
    """Credential source descriptors stored in :class:`GlobalConfig`.

    Each field accepts ``env:VAR``, ``file:/path`` or ``prompt``; see
    :func:`~edgectl.config.resolve_credential`. Environment variables
    (``CF_API_TOKEN``, ``CF_API_KEY``, ``CF_API_EMAIL``) take precedence.
    """

    token_source: Optional[str] = None
    key_source: Optional[str] = None
    email_source: Optional[str] = None


class RequestConfig(BaseModel):
    """HTTP settings applied to every API call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Max retry attempts")
    backoff_base: float = Field(
        default=1.0, description="First retry delay in seconds; doubles per attempt"
    )
    max_backoff: float = Field(default=30.0, description="Upper bound for one delay")
    max_pages: int = Field(default=100, description="Page ceiling for --all")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="REST root")
    graphql_url: str = Field(default=DEFAULT_GRAPHQL_URL, description="GraphQL endpoint")


class OutputConfig(BaseModel):
    """Default output format stored in :class:`GlobalConfig`."""

    format: str = Field(default="table", description="Output format: table, json, compact")


class TunnelConfig(BaseModel):
    """Tunnel daemon settings stored in :class:`GlobalConfig`."""

    binary: Optional[str] = Field(
        default=None, description="Path to cloudflared (searched on PATH when unset)"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/edgectl/config.json``.

    Loaded and saved by :func:`~edgectl.config.load_global_config` and
    :func:`~edgectl.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by environment variables or
    CLI flags. See :func:`~edgectl.config.resolve_config`.
    """

    default_zone: Optional[str] = None
    default_account: Optional[str] = None
    auth: AuthConfig = Field(default_factory=AuthConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    tunnel: TunnelConfig = Field(default_factory=TunnelConfig)


class TunnelState(BaseModel):
    """What the supervisor persists about a background tunnel."""

    pid: int
    started_at: datetime
    binary: str


class TunnelStatus(BaseModel):
    """Snapshot returned by :meth:`~edgectl.tunnel.supervisor.TunnelSupervisor.status`."""

    installed: bool
    binary: Optional[str] = None
    version: Optional[str] = None
    running: bool = False
    pid: Optional[int] = None
    started_at: Optional[datetime] = None
    uptime_seconds: Optional[int] = None
