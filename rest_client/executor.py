"""Executor - Sends a RestRequest through httpx and captures the response.

The RequestExecutor validates a RestRequest, maps its verb to an Exchange,
configures the exchange (URL, headers, body), sends it and converts the
httpx response into a RestResponse. The exchange is released on every path,
including failures in mapping, configuration and sending.
"""

from __future__ import annotations

import itertools
import logging
import re
import ssl
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlsplit

import httpx

from rest_client.exchange import EXCHANGE_FACTORIES, Exchange, ExchangeFactory
from rest_client.models import ClientConfig, HttpMethod, RestRequest, RestResponse

logger = logging.getLogger(__name__)


class RestClientError(Exception):
    """Base class for executor errors."""


class ConfigurationError(RestClientError):
    """Raised when the executor is constructed with an unusable HTTP client."""


class InvalidRequestError(RestClientError):
    """Raised when a request cannot be executed as described.

    Covers incomplete requests, a missing base URL, an absolute resource
    combined with a base URL, unparseable URLs, invalid header names and
    missing attachment files.
    Nothing is sent when this is raised.
    """


class TransportConstructionError(RestClientError):
    """Raised when no usable Exchange can be built for the request's method."""


class ExecutionError(RestClientError):
    """Raised when the exchange fails on the wire (connection, timeout, protocol)."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


# Sentinel for "use the configured base URL"; None means "no base URL".
_UNSET: Any = object()

DEFAULT_FILE_CONTENT_TYPE = "application/octet-stream"

# RFC 7230 token: the only characters allowed in a header field name.
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def _is_absolute_url(resource: str) -> bool:
    parts = urlsplit(resource)
    return bool(parts.scheme and parts.netloc)


class RequestExecutor:
    """Executes RestRequests against a base URL using an httpx.Client.

    Usage:
        executor = RequestExecutor(httpx.Client(), base_url="http://localhost:8080")
        response = executor.execute(RestRequest(method=HttpMethod.GET, resource="/orders"))

    Or, owning the client, built from configuration:
        with RequestExecutor.from_config(config) as executor:
            response = executor.execute(request)
    """

    def __init__(
        self,
        client: httpx.Client,
        base_url: str | None = None,
        *,
        follow_redirects: bool = True,
        exchange_factories: Mapping[HttpMethod, Any] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            client: The httpx client every exchange is sent through. Shared
                across calls; the executor does not close it unless it was
                created by from_config().
            base_url: Default protocol+host+port prepended to request resources.
            follow_redirects: Whether exchanges follow 3xx responses.
            exchange_factories: Verb -> Exchange constructor mapping. Defaults
                to EXCHANGE_FACTORIES.

        Raises:
            ConfigurationError: If client is not an httpx.Client.
        """
        if not isinstance(client, httpx.Client):
            raise ConfigurationError(
                f"Invalid HTTP client: expected httpx.Client, got {type(client).__name__}"
            )
        self._client = client
        self._base_url = base_url
        self._follow_redirects = follow_redirects
        self._exchange_factories = (
            exchange_factories if exchange_factories is not None else EXCHANGE_FACTORIES
        )
        self._transaction_ids = itertools.count(1)
        self._owns_client = False

    @classmethod
    def from_config(cls, config: ClientConfig) -> RequestExecutor:
        """Build an executor with its own httpx.Client from a ClientConfig.

        The executor owns that client and closes it in close().
        """
        client = httpx.Client(**build_client_kwargs(config))
        executor = cls(client, config.base_url, follow_redirects=config.follow_redirects)
        executor._owns_client = True
        return executor

    def __enter__(self) -> RequestExecutor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            self._client.close()

    @property
    def client(self) -> httpx.Client:
        return self._client

    @property
    def base_url(self) -> str | None:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str | None) -> None:
        self._base_url = value

    def execute(self, request: RestRequest | None, base_url: str | None = _UNSET) -> RestResponse:
        """Execute a request and return its response.

        Args:
            request: The request to execute.
            base_url: Protocol+host+port to send to. Defaults to the executor's
                base_url. Passing None explicitly falls back only to the
                httpx client's own base_url.

        Returns:
            RestResponse for the completed exchange.

        Raises:
            InvalidRequestError: If the request or target address is invalid.
            TransportConstructionError: If no Exchange can be built for the method.
            ExecutionError: If the exchange fails on the wire.
        """
        host = self._resolve_host(self._base_url if base_url is _UNSET else base_url)
        self._validate(host, request)

        with self.create_exchange(request) as exchange:
            self.configure_exchange(exchange, host, request)
            logger.debug("Executing %s %s", exchange.name, exchange.url)
            start_time = time.perf_counter()
            try:
                http_response = exchange.send(self._client)
            except (httpx.TransportError, httpx.DecodingError, httpx.TooManyRedirects, OSError) as e:
                logger.warning("%s %s failed: %s", exchange.name, exchange.url, e)
                raise ExecutionError(
                    f"{exchange.name} {exchange.url} failed: {type(e).__name__}: {e}", cause=e
                ) from e
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            response = self._convert_response(http_response, elapsed_ms)

        logger.debug(
            "%s %s -> %d (%.1f ms)", exchange.name, exchange.url, response.status_code, elapsed_ms
        )
        return response

    def create_exchange(self, request: RestRequest) -> Exchange:
        """Map the request's method to a fresh Exchange.

        Raises:
            TransportConstructionError: If the method has no factory, the factory
                is not callable, or calling it fails or returns a non-Exchange.
        """
        method = request.method
        try:
            factory: ExchangeFactory = self._exchange_factories[method]
        except KeyError:
            raise TransportConstructionError(f"No exchange available for method {method}") from None

        if not callable(factory):
            raise TransportConstructionError(
                f"Exchange for method {method} cannot be instantiated: {factory!r} is not callable"
            )

        try:
            exchange = factory()
        except Exception as e:
            raise TransportConstructionError(
                f"Exchange for method {method} failed when instantiating: {e}"
            ) from e

        if not isinstance(exchange, Exchange):
            raise TransportConstructionError(
                f"Exchange for method {method} is not an Exchange: {type(exchange).__name__}"
            )
        return exchange

    def configure_exchange(self, exchange: Exchange, host: str, request: RestRequest) -> None:
        """Set URL, headers and body of `exchange` from `request`.

        Raises:
            InvalidRequestError: If the URL cannot be parsed, a header name is
                not an HTTP token, or an attachment file does not exist or
                cannot be opened.
        """
        url_string = f"{host}{request.resource or ''}"
        try:
            url = httpx.URL(url_string)
            if request.query:
                # The query string replaces any query already on the resource.
                url = url.copy_with(query=request.query.encode("utf-8"))
        except httpx.InvalidURL as e:
            raise InvalidRequestError(f"Problem when building URI: {url_string}: {e}") from e
        exchange.url = url

        exchange.follow_redirects = self._follow_redirects
        for name, value in request.headers:
            if not _HEADER_NAME.match(name):
                raise InvalidRequestError(f"Invalid header name: {name!r}")
            exchange.add_header(name, value)

        if request.multipart_file_name is not None:
            path = self._check_file(request.multipart_file_name)
            fields = dict(parse_qsl(request.body)) if request.body else None
            try:
                exchange.set_multipart_body(path, request.multipart_file_parameter_name, fields)
            except OSError as e:
                raise InvalidRequestError(f"Cannot read file: {path}: {e}") from e
        elif request.file_name is not None:
            path = self._check_file(request.file_name)
            try:
                exchange.set_file_body(path, DEFAULT_FILE_CONTENT_TYPE)
            except OSError as e:
                raise InvalidRequestError(f"Cannot read file: {path}: {e}") from e
        else:
            exchange.set_plain_body(request.body)

    def _resolve_host(self, host: str | None) -> str | None:
        if host:
            return host
        # Same fallback as an unconfigured executor: the client's own base URL.
        client_base = str(self._client.base_url)
        return client_base.rstrip("/") or None

    def _validate(self, host: str | None, request: RestRequest | None) -> None:
        if request is None:
            raise InvalidRequestError("Invalid request: None")
        if not request.is_valid():
            raise InvalidRequestError(
                f"Invalid request: method and resource are required (got {request!r})"
            )
        if host is None:
            raise InvalidRequestError(
                "Host address is missing: pass a base URL, set one on this executor, "
                "or configure base_url on the httpx client"
            )
        if _is_absolute_url(request.resource):
            raise InvalidRequestError(
                f"Resource must be relative to the base URL {host}: {request.resource}"
            )

    @staticmethod
    def _check_file(file_name: Path) -> Path:
        path = Path(file_name)
        if not path.is_file():
            raise InvalidRequestError(f"File not found: {file_name}")
        return path

    def _convert_response(self, response: httpx.Response, elapsed_ms: float) -> RestResponse:
        """Convert httpx Response to RestResponse."""
        encoding = response.headers.encoding
        headers = tuple(
            (key.decode(encoding), value.decode(encoding)) for key, value in response.headers.raw
        )
        content = response.content
        return RestResponse(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers=headers,
            body=response.text if content else None,
            raw_body=content,
            transaction_id=next(self._transaction_ids),
            elapsed_ms=elapsed_ms,
            http_version=response.http_version,
        )


def build_client_kwargs(config: ClientConfig) -> dict[str, Any]:
    """Build kwargs for httpx.Client from a ClientConfig.

    Args:
        config: Client configuration with optional proxy, auth and TLS settings.

    Returns:
        Dictionary of kwargs for httpx.Client constructor.
    """
    kwargs: dict[str, Any] = {
        "headers": config.headers,
        "timeout": config.timeout,
    }

    if config.proxy:
        kwargs["proxy"] = config.proxy

    if config.basic_auth is not None:
        kwargs["auth"] = httpx.BasicAuth(config.basic_auth.username, config.basic_auth.password)

    # Handle client certificate (mTLS)
    if config.cert and config.key:
        kwargs["cert"] = (config.cert, config.key)

    # Handle server verification
    if config.ca_bundle:
        ssl_context = ssl.create_default_context()
        try:
            ssl_context.load_verify_locations(config.ca_bundle)
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(f"Invalid CA bundle '{config.ca_bundle}': {e}") from e
        kwargs["verify"] = ssl_context
    elif not config.verify_ssl:
        kwargs["verify"] = False
    # else: use httpx default (True)

    return kwargs
