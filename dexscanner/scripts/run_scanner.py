#!/usr/bin/env python3
"""
Command-line entry point for pool discovery and live price tracking.

Usage:
    # Discover pools and print them
    uv run python -m dexscanner.scripts.run_scanner --discover-only

    # Discover, then track prices until Ctrl+C (needs RPC_URL)
    uv run python -m dexscanner.scripts.run_scanner

    # Custom config files
    uv run python -m dexscanner.scripts.run_scanner --protocols config/protocols.json --tokens config/tokens.json
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dexscanner.config.manager import ConfigManager
from dexscanner.errors import ScannerError
from dexscanner.tracking.events import PriceChangeEvent, PriceEventSink
from dexscanner.tracking.scanner import Scanner, discover_from_config
from dexscanner.types import CachedPool

logger = logging.getLogger(__name__)


def format_pool(pool: CachedPool) -> str:
    fee = f" fee={pool.fee}" if pool.fee is not None else ""
    price = f" price={pool.price.token0_price:.6g}" if pool.price else " price=n/a"
    return (
        f"{pool.pair_label} [{pool.protocol}] {pool.address}{fee}"
        f" liquidity=${pool.liquidity_usd:,.0f}{price}"
    )


def log_price_change(event: PriceChangeEvent) -> None:
    """Default handler: one block of log lines per price update."""
    pool = event.pool
    price = event.new_price
    logger.info(f"💱 Price Update: {pool.pair_label} [{pool.protocol}]")
    logger.info(f"   Pool: {pool.address}")
    logger.info(f"   {pool.token0.symbol} price: {price.token0_price:.6f} {pool.token1.symbol}")
    logger.info(f"   {pool.token1.symbol} price: {price.token1_price:.6f} {pool.token0.symbol}")
    if event.change_pct is not None:
        logger.info(f"   Change: {event.change_pct:.4f}%")


def build_config(args: argparse.Namespace) -> ConfigManager:
    overrides = {}
    if args.protocols:
        overrides["PROTOCOLS_JSON"] = args.protocols
    if args.tokens:
        overrides["TOKENS_JSON"] = args.tokens
    return ConfigManager(**overrides)


async def run(args: argparse.Namespace) -> int:
    """Run discovery and, unless --discover-only, live tracking."""
    config = build_config(args)

    logger.info("🚀 Discovering pools...")
    pools = await discover_from_config(config)
    logger.info(f"📊 {len(pools)} pools after whitelist filtering")

    if args.discover_only:
        for pool in pools:
            logger.info(f"  {format_pool(pool)}")
        return 0

    if not pools:
        logger.error("❌ No pools to track")
        return 1

    sink = PriceEventSink()
    sink.register(log_price_change)
    scanner = Scanner(config.scanner.RPC_URL, sink)

    await scanner.start(pools)
    logger.info("Scanner running. Press Ctrl+C to stop.")
    try:
        await scanner.wait()
    finally:
        await scanner.stop()

    if scanner.subscription_error is not None:
        logger.error(f"❌ Price tracking stopped: {scanner.subscription_error}")
        return 1
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Discover DEX pools from subgraphs and track their prices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  RPC_URL               Websocket RPC endpoint (tracking only)
  THE_GRAPH_API_KEY     Graph gateway API key
  PROTOCOLS_JSON        Protocol table (default protocols.json)
  TOKENS_JSON           Token whitelist (default tokens.json)
        """,
    )
    parser.add_argument("--discover-only", action="store_true", help="Run discovery, print pools and exit")
    parser.add_argument("--protocols", help="Path to protocols.json (overrides PROTOCOLS_JSON)")
    parser.add_argument("--tokens", help="Path to tokens.json (overrides TOKENS_JSON)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default INFO)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        return 0
    except ScannerError as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
