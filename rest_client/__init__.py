"""rest-fixture-client: a REST client wrapper for acceptance-test fixtures."""

from rest_client.exchange import EXCHANGE_FACTORIES, Exchange
from rest_client.executor import (
    ConfigurationError,
    ExecutionError,
    InvalidRequestError,
    RequestExecutor,
    RestClientError,
    TransportConstructionError,
)
from rest_client.models import ClientConfig, HttpMethod, RestRequest, RestResponse

__version__ = "0.1.0"
__all__ = [
    "ClientConfig",
    "ConfigurationError",
    "EXCHANGE_FACTORIES",
    "Exchange",
    "ExecutionError",
    "HttpMethod",
    "InvalidRequestError",
    "RequestExecutor",
    "RestClientError",
    "RestRequest",
    "RestResponse",
    "TransportConstructionError",
]
