"""
Minimal script that uses the public API to query an order.
"""

from __future__ import annotations

import argparse
import logging
import sys

from wechatpay_v2 import (
    ConfigError,
    GatewayError,
    ParameterSet,
    create_client,
    generate_nonce_str,
    load_client_config,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query a WeChat Pay order using the SDK API")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing WECHATPAY_* settings",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument("--out-trade-no", help="Merchant order number")
    parser.add_argument("--transaction-id", help="Gateway transaction id")
    parser.add_argument(
        "--prod",
        action="store_true",
        help="Talk to the production gateway instead of the sandbox",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = load_client_config(
            env_file=args.env_file,
            is_prod=True if args.prod else None,
        )
    except ConfigError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    client = create_client(config=config)
    params = ParameterSet(nonce_str=generate_nonce_str())
    if args.out_trade_no:
        params.set("out_trade_no", args.out_trade_no)
    if args.transaction_id:
        params.set("transaction_id", args.transaction_id)

    try:
        response = client.query_order(params)
    except GatewayError as exc:
        logging.error("Order query failed: %s", exc)
        return 1

    if not client.verify_response(response):
        logging.warning("Response signature did not verify")

    if not response.is_success:
        logging.error(
            "Gateway rejected the query: %s %s",
            response.err_code or response.return_code,
            response.err_code_des or response.return_msg,
        )
        return 1

    logging.info(
        "Order %s is %s",
        response.get("out_trade_no"),
        response.get("trade_state"),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
