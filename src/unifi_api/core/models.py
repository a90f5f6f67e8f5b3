"""
UniFi API Client - Data Models

This module contains Pydantic models for configuration and the response
envelope, and the immutable Session value held by the auth manager.
"""

import ssl
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Generic, List, Literal, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

from .. import __version__
from .exceptions import ConfigurationError, InvalidRequestError, ResourceNotFoundError

T = TypeVar("T")

DEFAULT_USER_AGENT = f"unifi-api-python/{__version__}"
DEFAULT_SESSION_LIFETIME = timedelta(hours=24)
SESSION_REFRESH_THRESHOLD = timedelta(minutes=10)


class TransportConfig(BaseModel):
    """Configuration for the pooled HTTP transport."""

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    base_url: str = Field(..., description="Controller base URL, e.g. https://192.168.1.1")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_idle_connections: int = Field(default=10, ge=0, description="Keep-alive connections kept in the pool")
    max_connections: int = Field(default=10, ge=1, description="Upper bound on open connections")
    keepalive_expiry: float = Field(default=90.0, ge=0, description="Idle connection lifetime in seconds")
    verify_ssl: bool = Field(default=True, description="Whether to verify TLS certificates")
    ca_bundle: Optional[str] = Field(default=None, description="Custom CA bundle path")
    ssl_context: Optional[ssl.SSLContext] = Field(default=None, description="Fully custom TLS context", repr=False)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    rate_limit: Optional[float] = Field(default=None, gt=0, description="Max requests per second")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Validate URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")


class RetrySettings(BaseModel):
    """Retry configuration surface exposed to the embedding application."""

    max_retries: int = Field(default=3, ge=0)
    initial_backoff: float = Field(default=0.1, ge=0, description="Seconds before the first retry")
    max_backoff: float = Field(default=5.0, ge=0, description="Upper bound for any single backoff")

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max_backoff < self.initial_backoff:
            raise ValueError("max_backoff must be >= initial_backoff")
        return self


class ClientConfig(BaseModel):
    """Configuration for connecting to a UniFi controller."""

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    host: str = Field(..., min_length=1, description="Controller IP address or hostname")
    scheme: Literal["https", "http"] = Field(default="https", description="http only for plain-HTTP test controllers")
    port: int = Field(default=443, gt=0, lt=65536)
    username: str = Field(..., min_length=1, description="Local admin username")
    password: str = Field(..., min_length=1, description="Local admin password", repr=False)  # Hide in logs
    site: str = Field(default="default")
    verify_ssl: bool = Field(default=True, description="Whether to verify SSL certificates")
    ca_bundle: Optional[str] = None
    ssl_context: Optional[ssl.SSLContext] = Field(default=None, repr=False)
    timeout: float = Field(default=30.0, gt=0)
    max_idle_connections: int = Field(default=10, ge=0)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    rate_limit: Optional[float] = Field(default=None, gt=0)
    retry: Optional[RetrySettings] = None

    @model_validator(mode="before")
    @classmethod
    def scheme_from_host(cls, values):
        """Take the scheme from a pasted http:// URL unless one was given."""
        if isinstance(values, dict) and "scheme" not in values:
            host = values.get("host")
            if isinstance(host, str) and host.startswith("http://"):
                values = {**values, "scheme": "http"}
        return values

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        """Strip any scheme or trailing slash a user pasted in."""
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("host must not be empty")
        return v

    @classmethod
    def validated(cls, **values: Any) -> "ClientConfig":
        """Build a config, reporting problems as ConfigurationError."""
        try:
            return cls(**values)
        except PydanticValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigurationError(f"Invalid client configuration: {e}",
                                     context={"fields": fields})

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if (self.scheme, self.port) in (("https", 443), ("http", 80)):
            return f"{self.scheme}://{host}"
        return f"{self.scheme}://{host}:{self.port}"

    def transport_config(self) -> TransportConfig:
        return TransportConfig(
            base_url=self.base_url,
            timeout=self.timeout,
            max_idle_connections=self.max_idle_connections,
            verify_ssl=self.verify_ssl,
            ca_bundle=self.ca_bundle,
            ssl_context=self.ssl_context,
            user_agent=self.user_agent,
            rate_limit=self.rate_limit,
        )


@dataclass(frozen=True)
class Session:
    """An authenticated session: cookie credential plus anti-forgery token."""

    token: str
    csrf_token: str = ""
    username: str = ""
    cookie_name: str = "unifises"
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: Optional[datetime] = None

    def is_valid(self) -> bool:
        if self.expires_at is not None and datetime.now() >= self.expires_at:
            return False
        return bool(self.token)

    def needs_refresh(self) -> bool:
        """True when less than ten minutes of the session remain."""
        if self.expires_at is None:
            return False
        return self.expires_at - datetime.now() < SESSION_REFRESH_THRESHOLD

    @property
    def age(self) -> timedelta:
        return datetime.now() - self.created_at

    @property
    def time_until_expiry(self) -> timedelta:
        if self.expires_at is None:
            return timedelta(0)
        return self.expires_at - datetime.now()

    def __repr__(self) -> str:
        return (
            f"Session(username={self.username!r}, cookie_name={self.cookie_name!r}, "
            f"created_at={self.created_at.isoformat()}, token=[REDACTED])"
        )


class ResponseMeta(BaseModel):
    """Metadata block of the network application envelope."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    rc: str = ""
    message: Optional[str] = Field(default=None, alias="msg")
    count: Optional[int] = None


class APIResponse(BaseModel, Generic[T]):
    """Generic ``{"meta": {...}, "data": [...]}`` envelope."""

    model_config = ConfigDict(extra="allow")

    meta: ResponseMeta = Field(default_factory=ResponseMeta)
    data: List[T] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.meta.rc in ("", "ok")

    def raise_for_rc(self, endpoint: str = "") -> "APIResponse[T]":
        """Raise InvalidRequestError when ``meta.rc`` reports an application error."""
        if not self.ok:
            raise InvalidRequestError(
                f"API error: {self.meta.message or self.meta.rc} (rc={self.meta.rc})",
                rc=self.meta.rc,
                endpoint=endpoint,
            )
        return self

    def first(self, endpoint: str = "") -> T:
        """Return the single item of a one-result response."""
        self.raise_for_rc(endpoint)
        if not self.data:
            raise ResourceNotFoundError("No data in response", endpoint=endpoint)
        return self.data[0]
