"""
UniFi API Client - Request and Response Values

Immutable value objects passed between the transport layers.
"""

import json
from dataclasses import dataclass, field, replace
from http.cookies import CookieError, SimpleCookie
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

from .exceptions import APIError, ValidationError
from .models import APIResponse

M = TypeVar("M", bound=BaseModel)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
SUPPORTED_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"})


def _freeze_headers(headers: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    # Later keys win, compared case-insensitively
    merged: Dict[str, str] = {}
    lowered: Dict[str, str] = {}
    for key, value in (headers or {}).items():
        previous = lowered.get(key.lower())
        if previous is not None:
            del merged[previous]
        lowered[key.lower()] = key
        merged[key] = value
    return MappingProxyType(merged)


@dataclass(frozen=True)
class Request:
    """A single API call: method, path, optional JSON body, headers and query."""

    method: str
    path: str
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "method", (self.method or "").upper())
        object.__setattr__(self, "headers", _freeze_headers(self.headers))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params or {})))

    @property
    def is_safe(self) -> bool:
        """True for read-only methods, which never carry the CSRF header."""
        return self.method in SAFE_METHODS

    def validate(self) -> None:
        """Raise ValidationError if the request cannot be sent."""
        if not self.method or not self.path:
            raise ValidationError(
                "Method and path are required",
                context={"method": self.method, "path": self.path},
            )
        if self.method not in SUPPORTED_METHODS:
            raise ValidationError(f"Unsupported HTTP method: {self.method}",
                                  context={"method": self.method})

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def with_body(self, body: Any) -> "Request":
        return replace(self, body=body)

    def with_header(self, key: str, value: str) -> "Request":
        return replace(self, headers={**self.headers, key: value})

    def with_headers(self, headers: Mapping[str, str]) -> "Request":
        return replace(self, headers={**self.headers, **headers})

    def with_params(self, params: Mapping[str, Any]) -> "Request":
        return replace(self, params={**self.params, **params})

    def encoded_body(self) -> Optional[bytes]:
        """Serialize the body to JSON bytes (pydantic models by alias)."""
        if self.body is None:
            return None
        if isinstance(self.body, (bytes, bytearray)):
            return bytes(self.body)
        if isinstance(self.body, BaseModel):
            return self.body.model_dump_json(by_alias=True, exclude_none=True).encode()
        try:
            return json.dumps(self.body).encode()
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Request body is not JSON serializable: {e}",
                                  context={"path": self.path})


@dataclass(frozen=True)
class Response:
    """Raw HTTP response as returned by the transport."""

    status_code: int
    body: bytes = b""
    headers: httpx.Headers = field(default_factory=httpx.Headers)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def cookies(self) -> Dict[str, str]:
        """Cookie values set by this response, keyed by name."""
        jar: Dict[str, str] = {}
        for raw in self.headers.get_list("set-cookie"):
            parsed = SimpleCookie()
            try:
                parsed.load(raw)
            except CookieError:
                continue
            for name, morsel in parsed.items():
                jar[name] = morsel.value
        return jar

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise APIError(
                f"Invalid JSON response from controller: {e}",
                status_code=self.status_code,
                response_text=self.text[:200],
            )

    def parse(self, model: Optional[Type[M]] = None) -> Any:
        """Decode the body into ``model``, or into plain JSON when no model is given."""
        data = self.json()
        if model is None or data is None:
            return data
        return model.model_validate(data)

    def envelope(self) -> APIResponse:
        """Decode the ``{meta, data}`` envelope used by the network application."""
        data = self.json()
        if data is None:
            return APIResponse()
        if isinstance(data, list):
            return APIResponse(data=data)
        if not isinstance(data, dict) or ("meta" not in data and "data" not in data):
            # Some system endpoints return bare documents
            return APIResponse(data=[data])
        return APIResponse.model_validate(data)
