"""Internal data models for rest-fixture-client.

All models use Pydantic v2. Request and response models are frozen: once a
RestRequest is handed to the executor it cannot change underneath it.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Core HTTP Models
# =============================================================================


class HttpMethod(str, Enum):
    """HTTP verbs the executor knows how to build an exchange for."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"


def _lookup_header(headers: tuple[tuple[str, str], ...], name: str) -> list[str]:
    name_lower = name.lower()
    return [value for key, value in headers if key.lower() == name_lower]


class RestRequest(BaseModel):
    """Declarative description of one HTTP request.

    method and resource are required for execution but optional here, so an
    incomplete request can be built and then rejected by the executor.
    Headers are an ordered sequence of (name, value) pairs; duplicates are kept.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: HttpMethod | None = Field(default=None, description="HTTP verb")
    resource: str | None = Field(
        default=None, description="Resource path relative to the base URL, e.g. /orders/1"
    )
    query: str | None = Field(default=None, description="Raw query string, without the '?'")
    headers: tuple[tuple[str, str], ...] = Field(
        default=(), description="Request headers in insertion order"
    )
    body: str | None = Field(default=None, description="Plain request body")
    file_name: Path | None = Field(
        default=None, description="File streamed as the request body"
    )
    multipart_file_name: Path | None = Field(
        default=None, description="File uploaded as a multipart/form-data part"
    )
    multipart_file_parameter_name: str = Field(
        default="file", description="Form field name of the multipart file part"
    )

    def is_valid(self) -> bool:
        return self.method is not None and self.resource is not None

    def header(self, name: str) -> list[str]:
        """All values of header `name`, matched case-insensitively."""
        return _lookup_header(self.headers, name)

    def with_header(self, name: str, value: str) -> RestRequest:
        """Return a copy with (name, value) appended to the headers."""
        return self.model_copy(update={"headers": (*self.headers, (name, value))})


class RestResponse(BaseModel):
    """One HTTP response as seen by the caller.

    Header names keep the case they had on the wire, in wire order.
    body is None when the response carried no payload; raw_body is always set.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int = Field(description="HTTP status code")
    status_text: str = Field(default="", description="Reason phrase")
    headers: tuple[tuple[str, str], ...] = Field(
        default=(), description="Response headers in wire order"
    )
    body: str | None = Field(default=None, description="Decoded body text")
    raw_body: bytes = Field(default=b"", description="Undecoded body bytes")
    transaction_id: int = Field(description="Sequence number of the exchange on its executor")
    elapsed_ms: float = Field(default=0.0, description="Round-trip time in milliseconds")
    http_version: str = Field(default="HTTP/1.1", description="Protocol version")

    def header(self, name: str) -> list[str]:
        """All values of header `name`, matched case-insensitively."""
        return _lookup_header(self.headers, name)


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class BasicAuthConfig(BaseModel):
    """Credentials for HTTP basic authentication."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(description="Basic auth user name")
    password: str = Field(default="", description="Basic auth password")


class ClientConfig(BaseModel):
    """Configuration of the HTTP client behind a RequestExecutor."""

    model_config = ConfigDict(extra="forbid")

    base_url: str | None = Field(default=None, description="Default protocol+host+port")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    follow_redirects: bool = Field(default=True, description="Follow 3xx redirects")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent on every request (supports ${ENV_VAR} substitution)",
    )
    proxy: str | None = Field(default=None, description="Proxy URL, e.g. http://proxy:3128")
    basic_auth: BasicAuthConfig | None = Field(default=None, description="Basic auth credentials")
    verify_ssl: bool = Field(default=True, description="Verify server certificates")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle file")
    cert: str | None = Field(default=None, description="Client certificate (mTLS)")
    key: str | None = Field(default=None, description="Client private key (mTLS)")

    @model_validator(mode="after")
    def check_cert_pair(self) -> Self:
        if (self.cert is None) != (self.key is None):
            raise ValueError("cert and key must be specified together")
        return self
