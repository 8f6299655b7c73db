#!/usr/bin/env python3
"""Pyth Price Keeper.

Periodically compares the latest Pyth prices with the prices recorded on-chain
and pushes an update when a feed is stale or its composite price drifted past
the configured threshold.

The feed configuration lives in a GitHub gist (config.yaml). Start with env
vars or CLI flags, see --help.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from .src.ConfigStore import ConfigStore, JsonFileStorage
from .src.PriceKeeper import PriceKeeper
from .src.PythContract import PythContract
from .src.sources import BaseHttpSource, GistConfigSource
from .src.TxSubmitter import Web3TxSubmitter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Every option falls back to an environment variable.

    :returns: Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        description="Pyth Price Keeper: push stale or drifted price feeds on-chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single dry-run cycle, print the decision
  python -m keeper.main --gist-id abc123 --rpc-url https://rpc.example.org --once

  # Keep running every 30 seconds and submit updates
  python -m keeper.main --gist-id abc123 --rpc-url https://rpc.example.org \\
      --interval 30 --private-key 0x...

Environment variables (CLI args take precedence):
  GIST_ID, RPC_URL, STORAGE_PATH, INTERVAL, PRIVATE_KEY
""",
    )

    parser.add_argument(
        "--gist-id",
        dest="gist_id",
        type=str,
        help="Id of the GitHub gist holding config.yaml",
        default=os.environ.get("GIST_ID"),
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="RPC URL of the chain hosting the Pyth contract",
        default=os.environ.get("RPC_URL"),
    )

    parser.add_argument(
        "--storage-path",
        dest="storage_path",
        type=str,
        help="JSON file caching the config (default: .keeper-storage.json)",
        default=os.environ.get("STORAGE_PATH") or ".keeper-storage.json",
    )

    parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between keeper cycles (minimum: 1, default: 60)",
        default=int(os.environ.get("INTERVAL") or "60"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and print the result",
    )

    parser.add_argument(
        "--private-key",
        dest="private_key",
        type=str,
        help="Private key used to submit updates (dry run if not set)",
        default=os.environ.get("PRIVATE_KEY"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


async def run_once(keeper: PriceKeeper) -> None:
    """Run a single cycle, print its result and release HTTP resources."""
    try:
        result = await keeper.run_once()
        print(json.dumps(result.to_dict(), indent=2))
        keeper.handle_result(result)
    finally:
        await BaseHttpSource.close_shared_client()


def main() -> None:
    """Main entry point for the Pyth Price Keeper CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if not args.gist_id:
        parser.error("GIST_ID not set (use --gist-id or the GIST_ID env var)")

    if not args.rpc_url:
        parser.error("RPC_URL not set (use --rpc-url or the RPC_URL env var)")

    if args.interval < 1:
        parser.error("--interval must be at least 1 second")

    # Log configuration
    logger.info("=" * 60)
    logger.info("Pyth Price Keeper")
    logger.info("=" * 60)
    logger.info(f"Gist:              {args.gist_id}")
    logger.info(f"RPC URL:           {args.rpc_url}")
    logger.info(f"Config Storage:    {args.storage_path}")
    logger.info(f"Interval:          {args.interval}s")
    logger.info(f"Mode:              {'once' if args.once else 'loop'}")
    logger.info(f"Submission:        {'enabled' if args.private_key else 'dry run'}")
    logger.info("=" * 60)

    try:
        w3 = PythContract.connect(args.rpc_url)
        submitter = Web3TxSubmitter(w3, args.private_key) if args.private_key else None
        keeper = PriceKeeper(
            config_store=ConfigStore(
                JsonFileStorage(args.storage_path),
                GistConfigSource(args.gist_id),
            ),
            w3=w3,
            submitter=submitter,
            interval=args.interval,
        )
        if args.once:
            asyncio.run(run_once(keeper))
        else:
            asyncio.run(keeper.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
