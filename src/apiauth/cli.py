"""CLI entry point for APIAuth: date, sign, verify and serve."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

import httpx
import uvicorn

from apiauth.authenticator import Authenticator
from apiauth.client import APIAuth
from apiauth.config import APIAuthConfig, load_config
from apiauth.dates import http_date, http_date_for
from apiauth.errors import APIAuthError
from apiauth.logging_config import configure_logging
from apiauth.server import create_app

logger = logging.getLogger("apiauth")

DEFAULT_CONFIG = Path("apiauth.yaml")

# Headers printed by `apiauth sign`, in order
_SIGNED_HEADERS = ("Date", "Content-Type", "Content-MD5", "Authorization")


def _header(value: str) -> tuple[str, str]:
    """argparse type for ``-H "Name: value"``."""
    name, sep, val = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected 'Name: value', got {value!r}")
    return name.strip(), val.strip()


def _add_request_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("method", help="HTTP method, e.g. GET")
    parser.add_argument("url", help="Request URL including any query string")
    parser.add_argument(
        "-H", "--header", dest="headers", type=_header, action="append", default=[],
        help="Request header as 'Name: value' (repeatable)",
    )
    parser.add_argument(
        "--data", type=str, default=None,
        help="Request body (UTF-8 text)",
    )


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", type=Path, default=None,
        help=f"Config file path (default: {DEFAULT_CONFIG} if present)",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="apiauth",
        description="APIAuth HMAC request signing and verification",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    date_parser = subparsers.add_parser("date", help="Print a Date header value")
    date_parser.add_argument(
        "--at", type=datetime.fromisoformat, default=None,
        help="ISO 8601 time to format instead of now",
    )

    sign_parser = subparsers.add_parser("sign", help="Print signed headers for a request")
    _add_request_args(sign_parser)
    _add_config_arg(sign_parser)
    sign_parser.add_argument("--access-id", type=str, default=None, help="Access ID (overrides config)")
    sign_parser.add_argument("--secret-key", type=str, default=None, help="Secret key (overrides config)")
    sign_parser.add_argument(
        "--legacy", action="store_true", default=False,
        help="Sign without the HTTP method, for verifiers that predate it",
    )

    verify_parser = subparsers.add_parser("verify", help="Verify a signed request")
    _add_request_args(verify_parser)
    _add_config_arg(verify_parser)
    verify_parser.add_argument(
        "--secret-key", type=str, default=None,
        help="Secret key to verify against (default: look up the access ID in config)",
    )
    verify_parser.add_argument(
        "--strict", action="store_true", default=False,
        help="Reject signatures that do not cover the HTTP method",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the verification server")
    _add_config_arg(serve_parser)
    serve_parser.add_argument("--host", type=str, default=None, help="Host address to bind to (overrides config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (overrides config)")
    serve_parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    serve_parser.add_argument(
        "--log-format", type=str, default=None, choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )

    return parser.parse_args(argv)


def _load(path: Path | None) -> APIAuthConfig:
    """Load the config file; the default path may be absent, an explicit one may not."""
    if path is None:
        if not DEFAULT_CONFIG.exists():
            return APIAuthConfig()
        path = DEFAULT_CONFIG
    return load_config(path)


def _build_request(args: argparse.Namespace) -> httpx.Request:
    content = args.data.encode("utf-8") if args.data is not None else None
    return httpx.Request(args.method.upper(), args.url, headers=args.headers, content=content)


def _cmd_date(args: argparse.Namespace, config: APIAuthConfig) -> int:
    print(http_date_for(args.at) if args.at is not None else http_date())
    return 0


def _cmd_sign(args: argparse.Namespace, config: APIAuthConfig) -> int:
    access_id = args.access_id if args.access_id is not None else config.client.access_id
    secret_key = args.secret_key if args.secret_key is not None else config.client.secret_key
    if not access_id or not secret_key:
        print("error: an access ID and secret key are required", file=sys.stderr)
        return 2

    include_method = config.client.include_method and not args.legacy
    request = APIAuth(access_id, secret_key, include_method=include_method).sign_request(
        _build_request(args)
    )
    for name in _SIGNED_HEADERS:
        value = request.headers.get(name)
        if value:
            print(f"{name}: {value}")
    return 0


def _cmd_verify(args: argparse.Namespace, config: APIAuthConfig) -> int:
    if args.secret_key is not None:
        secret_key = args.secret_key

        def secret_lookup(access_id: str) -> str | None:
            return secret_key
    else:
        secret_lookup = config.auth.credentials.get

    authenticator = Authenticator(
        secret_lookup=secret_lookup,
        accept_legacy=config.auth.accept_legacy and not args.strict,
    )
    result = authenticator.authenticate(_build_request(args))
    print(f"OK {result.access_id} {result.scheme.value}")
    return 0


def _cmd_serve(args: argparse.Namespace, config: APIAuthConfig) -> int:
    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.log_level is not None:
        config.server.log_level = args.log_level
    if args.log_format is not None:
        config.server.log_format = args.log_format

    configure_logging(level=config.server.log_level, fmt=config.server.log_format)
    logger.info("Starting APIAuth verifier on %s:%d", config.server.host, config.server.port)

    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
    )
    return 0


_COMMANDS = {
    "date": _cmd_date,
    "sign": _cmd_sign,
    "verify": _cmd_verify,
    "serve": _cmd_serve,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the APIAuth CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    try:
        config = _load(getattr(args, "config", None))
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    try:
        code = _COMMANDS[args.command](args, config)
    except APIAuthError as exc:
        print(f"{exc.code}: {exc.message}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
