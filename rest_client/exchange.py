"""Exchange - one in-flight HTTP request/response pair.

An Exchange is built per call by the RequestExecutor, configured from a
RestRequest, sent once, and released. Releasing closes the httpx response
(returning its connection to the pool) and any file opened for upload.

Usage:
    with Exchange("GET") as exchange:
        exchange.url = httpx.URL("http://host/resource")
        response = exchange.send(client)
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import IO, Any, Callable

import httpx

from rest_client.models import HttpMethod

logger = logging.getLogger(__name__)


_PLAIN = "plain"
_FILE = "file"
_MULTIPART = "multipart"


def _sanitize_header_value(value: str) -> str:
    """Sanitize a header value to ensure it's ASCII-safe.

    HTTP headers must contain only ASCII characters per RFC 7230. Non-ASCII
    characters are replaced by '?' so the request can still be sent.
    """
    return value.encode("ascii", errors="replace").decode("ascii")


class Exchange:
    """Handle on a single HTTP exchange and the resources it holds."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.url: httpx.URL | None = None
        self.headers: list[tuple[str, str]] = []
        self.follow_redirects = True
        self._body_kind: str | None = None
        self._content: bytes | IO[bytes] | None = None
        self._files: dict[str, tuple[str, IO[bytes]]] | None = None
        self._data: dict[str, Any] | None = None
        self._upload: IO[bytes] | None = None
        self._response: httpx.Response | None = None
        self.released = False

    def __enter__(self) -> Exchange:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<Exchange {self.name} {self.url}>"

    # --- configuration ---

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, _sanitize_header_value(value)))

    def _remove_header(self, name: str) -> None:
        name_lower = name.lower()
        self.headers = [(k, v) for k, v in self.headers if k.lower() != name_lower]

    def _has_header(self, name: str) -> bool:
        name_lower = name.lower()
        return any(k.lower() == name_lower for k, _ in self.headers)

    def set_plain_body(self, body: str | None) -> None:
        self._body_kind = _PLAIN
        self._content = body.encode("utf-8") if body is not None else None

    def set_file_body(self, path: Path, content_type: str) -> None:
        """Stream the contents of `path` as the request body.

        The file is opened here and stays open until release().
        """
        self._upload = open(path, "rb")
        self._body_kind = _FILE
        self._content = self._upload
        if not self._has_header("Content-Type"):
            self.add_header("Content-Type", content_type)

    def set_multipart_body(
        self,
        path: Path,
        parameter_name: str,
        fields: dict[str, Any] | None = None,
    ) -> None:
        """Send `path` as a multipart/form-data file part, plus optional form fields.

        httpx generates the Content-Type with the part boundary, so any
        caller-supplied Content-Type is dropped.
        """
        self._upload = open(path, "rb")
        self._body_kind = _MULTIPART
        self._files = {parameter_name: (path.name, self._upload)}
        self._data = fields or None
        if self._has_header("Content-Type"):
            logger.debug("Dropping Content-Type header from multipart request %s", self.url)
            self._remove_header("Content-Type")

    @property
    def is_plain_request(self) -> bool:
        return self._body_kind == _PLAIN

    @property
    def is_file_request(self) -> bool:
        return self._body_kind == _FILE

    @property
    def is_multipart_request(self) -> bool:
        return self._body_kind == _MULTIPART

    # --- execution ---

    def send(self, client: httpx.Client) -> httpx.Response:
        """Send the exchange through `client` and read the full response body.

        Raises:
            httpx.HTTPError: Whatever httpx raises for transport or protocol failures.
        """
        if self.url is None:
            raise ValueError(f"{self.name} exchange has no URL")
        request = client.build_request(
            self.name,
            self.url,
            headers=self.headers or None,
            content=self._content,
            files=self._files,
            data=self._data,
        )
        self._response = client.send(request, stream=True, follow_redirects=self.follow_redirects)
        self._response.read()
        return self._response

    def release(self) -> None:
        """Close the response and any upload file held by this exchange."""
        try:
            if self._response is not None:
                self._response.close()
        finally:
            if self._upload is not None:
                self._upload.close()
            self.released = True


ExchangeFactory = Callable[[], Exchange]

# Closed mapping from verb to constructor; covers every HttpMethod member.
EXCHANGE_FACTORIES: dict[HttpMethod, ExchangeFactory] = {
    method: functools.partial(Exchange, method.value) for method in HttpMethod
}
