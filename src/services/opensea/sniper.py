from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .config_loader import CONFIG_FILE_DEFAULT, load_app_config
from .console import log
from .engine import OpenSeaBot
from .errors import ConfigurationError, SniperError
from .strategy import format_eth, format_gwei


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="OpenSea listing sniper: auto-buy or counter-offer")
    parser.add_argument("--collection", default=os.getenv("OPENSEA_COLLECTION", ""), help="Collection slug")
    parser.add_argument("--config", default=os.getenv("OPENSEA_CONFIG", CONFIG_FILE_DEFAULT))
    parser.add_argument("--api-base", default="")
    parser.add_argument("--buy-threshold", help="Auto-buy below this price, ETH")
    parser.add_argument("--offer-percentage", help="Offer fraction of the listing price, (0, 1]")
    parser.add_argument("--max-gas-price", help="Gas ceiling, gwei")
    parser.add_argument("--poll-interval", help="Seconds between polls")
    parser.add_argument("--error-retry-delay", help="Seconds to wait after a failed fetch")
    parser.add_argument("--limit", help="Listings fetched per poll")
    parser.add_argument("--dry-run", action="store_true", help="Log decisions without transacting")
    parser.add_argument("--buy", nargs=3, metavar=("CONTRACT", "TOKEN_ID", "PRICE_ETH"))
    parser.add_argument("--offer", nargs=3, metavar=("CONTRACT", "TOKEN_ID", "AMOUNT_ETH"))
    parser.add_argument("--expiration-days", type=int, default=None)
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "buy_threshold": args.buy_threshold,
        "offer_percentage": args.offer_percentage,
        "max_gas_price": args.max_gas_price,
        "polling_interval": args.poll_interval,
        "error_retry_delay": args.error_retry_delay,
        "listing_limit": args.limit,
    }
    if args.dry_run:
        overrides["dry_run"] = True
    return {k: v for k, v in overrides.items() if v is not None}


async def run(bot: OpenSeaBot, args: argparse.Namespace) -> int:
    if args.buy:
        contract, token_id, price = args.buy
        result = await bot.buy_now(contract, token_id, price)
        log("sniper", f"Bought #{result.token_id} tx={result.tx_hash}")
        return 0

    if args.offer:
        contract, token_id, amount = args.offer
        offer = await bot.make_offer(contract, token_id, amount, args.expiration_days)
        log("sniper", f"Offer {offer.order_hash} expires {offer.expiration.isoformat()}")
        return 0

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, bot.stop)
        except (NotImplementedError, RuntimeError):
            continue
    await bot.monitor_collection(args.collection)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    if not args.collection and not args.buy and not args.offer:
        log("sniper", "CONFIG ERROR: pass --collection, --buy or --offer")
        return 1

    try:
        app_config = load_app_config(
            config_file=args.config,
            overrides=build_overrides(args),
            api_base=args.api_base,
        )
    except ConfigurationError as e:
        log("sniper", f"CONFIG ERROR: {e}")
        return 1

    cfg = app_config.bot
    log("sniper", f"Mode: {'DRY-RUN' if cfg.dry_run else 'LIVE'}")
    log(
        "sniper",
        f"buy_threshold={format_eth(cfg.buy_threshold)} ETH offer_pct={cfg.offer_percentage} "
        f"max_gas={format_gwei(cfg.max_gas_price)} gwei poll={cfg.polling_interval}s "
        f"retry={cfg.error_retry_delay}s limit={cfg.listing_limit}",
    )

    try:
        bot = OpenSeaBot.from_config(app_config)
    except ValueError as e:
        log("sniper", f"CONFIG ERROR: {e}")
        return 1
    log("sniper", f"Wallet: {bot.chain.address}")

    try:
        return asyncio.run(run(bot, args))
    except KeyboardInterrupt:
        log("sniper", "Stopped by user")
        return 0
    except SniperError as e:
        log("sniper", f"FAILED: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
