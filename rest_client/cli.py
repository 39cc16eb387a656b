"""CLI entry point for rest-fixture-client.

Executes a single request described on the command line and prints the
response, the way a fixture table row would.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from rest_client.config_loader import ConfigError, load_client_config
from rest_client.executor import RequestExecutor, RestClientError
from rest_client.models import ClientConfig, HttpMethod, RestRequest, RestResponse


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def parse_header(value: str) -> tuple[str, str]:
    """Parse NAME:VALUE format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if ":" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid header '{value}'. Expected NAME:VALUE (e.g., 'Accept:application/json')"
        )
    name, header_value = value.split(":", 1)
    name = name.strip()
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid header '{value}'. Name cannot be empty.")
    return (name, header_value.strip())


def parse_method(value: str) -> HttpMethod:
    try:
        return HttpMethod(value.upper())
    except ValueError:
        choices = ", ".join(m.value for m in HttpMethod)
        raise argparse.ArgumentTypeError(f"Invalid method '{value}'. Choose from: {choices}")


@dataclass
class RequestArgs:
    """Parsed arguments for a single request."""

    method: HttpMethod
    resource: str
    base_url: str | None
    config: Path | None
    headers: list[tuple[str, str]]
    query: str | None
    body: str | None
    file: Path | None
    multipart_file: Path | None
    multipart_param: str
    timeout: float | None
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="rest-client",
        description="Execute one REST request and print the response.",
    )
    parser.add_argument("method", type=parse_method, help="HTTP method (GET, POST, PUT, DELETE, OPTIONS, HEAD)")
    parser.add_argument("resource", help="Resource path relative to the base URL, e.g. /orders/1")
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Protocol, host and port to send to (overrides base_url from --config)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to client configuration YAML file",
    )
    parser.add_argument(
        "--header",
        type=parse_header,
        action="append",
        default=[],
        metavar="NAME:VALUE",
        dest="headers",
        help="Add a request header (can be repeated)",
    )
    parser.add_argument("--query", type=str, default=None, help="Raw query string, without '?'")
    parser.add_argument("--body", type=str, default=None, help="Request body")

    attachment = parser.add_mutually_exclusive_group()
    attachment.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Stream this file as the request body",
    )
    attachment.add_argument(
        "--multipart-file",
        type=Path,
        default=None,
        help="Upload this file as multipart/form-data",
    )
    parser.add_argument(
        "--multipart-param",
        type=str,
        default="file",
        help="Form field name of the multipart file part (default: file)",
    )
    parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help="Request timeout in seconds (overrides --config)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log request details to stderr")
    return parser


def parse_args(args: list[str] | None = None) -> RequestArgs:
    """Parse command line arguments.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    namespace = build_parser().parse_args(args)
    return RequestArgs(
        method=namespace.method,
        resource=namespace.resource,
        base_url=namespace.base_url,
        config=namespace.config,
        headers=namespace.headers or [],
        query=namespace.query,
        body=namespace.body,
        file=namespace.file,
        multipart_file=namespace.multipart_file,
        multipart_param=namespace.multipart_param,
        timeout=namespace.timeout,
        verbose=namespace.verbose,
    )


def build_request(args: RequestArgs) -> RestRequest:
    return RestRequest(
        method=args.method,
        resource=args.resource,
        query=args.query,
        headers=tuple(args.headers),
        body=args.body,
        file_name=args.file,
        multipart_file_name=args.multipart_file,
        multipart_file_parameter_name=args.multipart_param,
    )


def load_config(args: RequestArgs) -> ClientConfig:
    """Load --config (if any) and apply command line overrides."""
    config = load_client_config(args.config) if args.config else ClientConfig()
    overrides: dict[str, object] = {}
    if args.base_url is not None:
        overrides["base_url"] = args.base_url
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    return config.model_copy(update=overrides) if overrides else config


def format_response(response: RestResponse) -> str:
    lines = [f"{response.http_version} {response.status_code} {response.status_text}".rstrip()]
    lines.extend(f"{name}: {value}" for name, value in response.headers)
    if response.body is not None:
        lines.append("")
        lines.append(response.body)
    return "\n".join(lines)


def run_request(args: RequestArgs) -> int:
    """Execute the request described by args. Returns the process exit code."""
    try:
        config = load_config(args)
        request = build_request(args)
        with RequestExecutor.from_config(config) as executor:
            response = executor.execute(request)
    except (ConfigError, RestClientError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_response(response))
    return 0


def main() -> int:
    """Main entry point."""
    try:
        parsed = parse_args()
        if parsed.verbose:
            logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        return run_request(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
