"""
Command-line interface for sending a single request to the payment gateway.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence, TextIO, Tuple

from .api import ConfigError, create_client, load_client_config
from .core.client import GatewayClient, generate_nonce_str
from .core.errors import GatewayError
from .core.params import ParameterSet
from .core.routing import ENDPOINTS
from .core.transport import TransportResult

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _key_value(value: str) -> Tuple[str, str]:
    name, sep, val = value.partition("=")
    name = name.strip()
    if not sep:
        raise argparse.ArgumentTypeError("Values must look like KEY=VALUE")
    if not name:
        raise argparse.ArgumentTypeError("Key must not be empty")
    return name, val


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wechatpay-v2",
        description="Send one signed request to the WeChat Pay v2 gateway",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing WECHATPAY_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_key_value,
        metavar="KEY=VALUE",
        default=[],
        help="Override a WECHATPAY_* setting for this run only",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging threshold (default: INFO)",
    )
    parser.add_argument(
        "--endpoint",
        required=True,
        help=(
            "Endpoint name (one of: "
            + ", ".join(sorted(ENDPOINTS))
            + ") or a path relative to the gateway host"
        ),
    )
    parser.add_argument(
        "--param",
        action="append",
        type=_key_value,
        metavar="KEY=VALUE",
        default=[],
        help="Request field; nonce_str is generated when omitted",
    )
    parser.add_argument(
        "--get",
        action="store_true",
        help="Send the fields as a signed query string instead of an XML body",
    )
    parser.add_argument(
        "--sign-type",
        default="MD5",
        choices=("MD5", "HMAC-SHA256"),
        help="Signature algorithm for --get requests (default: MD5)",
    )
    return parser


def _dispatch(client: GatewayClient, args: argparse.Namespace, params: ParameterSet) -> TransportResult:
    if args.get:
        return client.get_api(args.endpoint, params, args.sign_type)
    if args.endpoint in ENDPOINTS:
        return client.call(args.endpoint, params)
    return client.post_api(args.endpoint, params)


def run_cli(argv: Sequence[str] | None = None, *, out: Optional[TextIO] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    out = out or sys.stdout

    logging.basicConfig(level=args.log_level, format=LOG_FORMAT)
    overrides = dict(args.set)

    try:
        config = load_client_config(env_file=args.env_file, overrides=overrides)
    except ConfigError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    client = create_client(config=config)
    params = ParameterSet(dict(args.param))
    if params.is_empty("nonce_str"):
        params.set("nonce_str", generate_nonce_str())

    try:
        result = _dispatch(client, args, params)
    except GatewayError as exc:
        logging.error("Request failed: %s", exc)
        return 1

    logging.info("Gateway answered %s with status %d", result.url, result.status_code)
    out.write(result.text)
    out.write("\n")
    return 0


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    sys.exit(main())
