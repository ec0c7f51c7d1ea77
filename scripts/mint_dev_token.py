"""Mint a bearer JWT for calling the leave API locally.

Usage:
    JWT_SECRET=dev-secret python -m scripts.mint_dev_token alice@example.com
    curl -H "Authorization: Bearer $(python -m scripts.mint_dev_token alice@example.com)" ...
"""

from __future__ import annotations

import argparse
from datetime import timedelta
from typing import Iterable, Optional

from src.api.auth import issue_identity_token
from src.common.config import load_auth_config
from src.common.env import load_env


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mint a bearer token identifying a requester.")
    parser.add_argument("address", help="Email address placed in the identity claim.")
    parser.add_argument("--hours", type=float, default=8.0, help="Token lifetime in hours.")
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> None:
    args = parse_args(argv)
    load_env()
    token = issue_identity_token(args.address, load_auth_config(), expires_delta=timedelta(hours=args.hours))
    print(token)


if __name__ == "__main__":
    main()
