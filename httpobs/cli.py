"""
Command-line utilities.

    httpobs ping --url http://localhost:8080/ping
"""

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

import httpx

from httpobs.clients.http import create_http_client
from httpobs.observability.logging import configure_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="httpobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ping = subparsers.add_parser("ping", help="call a service's /ping endpoint")
    ping.add_argument("--url", default="http://localhost:8080/ping")
    ping.add_argument("--timeout", type=float, default=5.0)
    ping.add_argument("--log-level", default="WARNING")
    return parser


async def ping(url: str, timeout: float, log_level: str) -> int:
    """
    GET ``url`` and print the JSON response.

    Returns:
        Process exit code: 0 on a 2xx response, 1 otherwise
    """
    configure_logging(level=log_level, stream=sys.stderr, force=True)
    logger = get_logger("httpobs.cli", level=log_level)

    client = create_http_client(timeout_seconds=timeout, retries=0, logger=logger)
    async with client:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("ping failed", url=url, error=str(e))
            return 1

    try:
        payload = response.json()
    except ValueError:
        payload = response.text
    print(json.dumps(payload, indent=2, default=str))
    return 0 if response.is_success else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "ping":
        return asyncio.run(ping(args.url, args.timeout, args.log_level))
    return 2


if __name__ == "__main__":
    sys.exit(main())
