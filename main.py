"""Command-line interface for the identity service."""

from __future__ import annotations
import argparse
import logging
import secrets
import sys
from pathlib import Path
from typing import Sequence

from identity.config import Settings, load_settings
from identity.errors import TokenError
from identity.tokens import TokenService

logger = logging.getLogger("identity.main")

_KEY_BYTES = 48


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Identity service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP identity service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )
    serve_parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (defaults to IDENTITY_CONFIG)",
    )

    subparsers.add_parser("generate-key", help="Print a new random token signing key")

    inspect_parser = subparsers.add_parser(
        "inspect-token", help="Verify a bearer token with the configured key and print its claims"
    )
    inspect_parser.add_argument("token", help="Encoded bearer token")
    inspect_parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (defaults to IDENTITY_CONFIG)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    # Bare serve options may be given without the subcommand.
    if not args_list or (args_list[0].startswith("-") and args_list[0] not in ("-h", "--help")):
        args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(config: str | None) -> Settings:
    path = Path(config).expanduser() if config else None
    try:
        return load_settings(path)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc


def _serve(*, settings: Settings, host: str, port: int) -> None:
    from identity.service import create_app
    import uvicorn

    logger.info(
        "Starting identity service on http://%s:%s (token ttl %s)",
        host,
        port,
        settings.token_ttl,
    )
    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _generate_key() -> str:
    return secrets.token_urlsafe(_KEY_BYTES)


def _inspect_token(settings: Settings, token: str) -> int:
    service = TokenService(settings.signing_key, ttl=settings.token_ttl)
    try:
        claims = service.verify(token)
    except TokenError as exc:
        print(f"Token rejected: {exc.kind.value} ({exc})")
        return 1

    print(f"subject:    {claims.subject}")
    print(f"email:      {claims.email}")
    print(f"issued at:  {claims.issued_at.isoformat()}")
    print(f"expires at: {claims.expires_at.isoformat()}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "generate-key":
        print(_generate_key())
        return 0

    settings = _load_settings(args.config)

    if args.command == "inspect-token":
        return _inspect_token(settings, args.token)

    _serve(settings=settings, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
