"""Command-line interface for the USPD read-model engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from .config import AppConfig, load_config
from .exceptions import EngineError
from .logging_setup import configure_logging
from .services import AggregationService


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="uspd-readmodel",
        description="USPD mintable capacity and collateralization read models",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--chain-id",
        type=int,
        default=None,
        help="Chain id to query (default: api.default_chain_id from config)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("capacity", help="Mintable capacity of the unallocated stabilizers")
    sub.add_parser("ratio", help="System collateralization ratio")

    position_parser = sub.add_parser("position", help="Collateralization ratio of one position")
    position_parser.add_argument("position_id", type=int, help="Position (stabilizer) id")

    metadata_parser = sub.add_parser("metadata", help="Stabilizer NFT metadata")
    metadata_parser.add_argument("token_id", type=int, help="Stabilizer token id")

    serve_parser = sub.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind host (overrides config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (overrides config)")

    return parser


async def _query(args: argparse.Namespace, config: AppConfig) -> dict[str, Any]:
    """Execute a one-shot query command and return its payload."""
    service = AggregationService.from_config(config)
    chain_id = args.chain_id if args.chain_id is not None else config.api.default_chain_id

    try:
        if args.command == "capacity":
            result = await service.get_mintable_capacity(chain_id)
        elif args.command == "ratio":
            result = await service.get_system_ratio(chain_id)
        elif args.command == "position":
            result = await service.get_position_ratio(chain_id, args.position_id)
        elif args.command == "metadata":
            result = await service.get_stabilizer_metadata(chain_id, args.token_id)
        else:
            raise ValueError(f"Unknown command: {args.command}")
    finally:
        await service.close()
    return result.to_payload()


def _serve(args: argparse.Namespace, config: AppConfig) -> None:
    import uvicorn

    from .api import create_app

    app = create_app(AggregationService.from_config(config), config.api.default_chain_id)
    uvicorn.run(
        app,
        host=args.host or config.api.host,
        port=args.port or config.api.port,
        log_config=None,
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "serve":
        _serve(args, config)
        return 0

    try:
        payload = asyncio.run(_query(args, config))
    except (EngineError, ValueError) as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 2

    print(json.dumps(payload, indent=2))
    return 0
