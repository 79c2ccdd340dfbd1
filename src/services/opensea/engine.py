from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .chain import Web3ChainClient
from .client import OpenSeaClient
from .console import log
from .errors import InvalidOrderError, LogAndContinue, NoOrderFoundError, OrderPostError
from .executor import OfferExecutor, PurchaseExecutor
from .models import (
    ActionDecision,
    AppConfig,
    BotConfig,
    BuyDecision,
    ChainClient,
    ChainSettings,
    ExecutionResult,
    Listing,
    OfferResult,
    OrderProtocol,
    PurchaseResult,
    QueryService,
    RoyaltyDirectory,
)
from .prerequisites import PrerequisiteManager
from .seaport import SeaportClient
from .strategy import classify, format_eth, now_ts, to_wei


Sleeper = Callable[[float], Awaitable[None]]

# Outcomes that will not change on a later poll; anything else is retried.
FINAL_ERRORS = (NoOrderFoundError, InvalidOrderError, OrderPostError)


class CollectionMonitor:
    """Polls one collection and hands each new listing to the buy or offer path.

    One cycle is FETCH, DISPATCH, then a ``polling_interval`` sleep. A failed
    FETCH sleeps ``error_retry_delay`` and retries. Listings are handled one at
    a time; a failing listing is logged and the batch moves on. It is picked
    up again on a later poll unless the failure is one of ``FINAL_ERRORS``.
    ``stop()`` is honoured at the top of the next cycle.
    """

    def __init__(
        self,
        *,
        config: BotConfig,
        query: QueryService,
        purchaser: Any,
        offerer: Any,
        sleep: Sleeper = asyncio.sleep,
        logger: Callable[[str, str], None] = log,
    ) -> None:
        self.config = config
        self.query = query
        self.purchaser = purchaser
        self.offerer = offerer
        self._sleep = sleep
        self.log = logger
        self.fetch_errors = LogAndContinue("monitor", logger)
        self.dispatch_errors = LogAndContinue("monitor", logger, brief=True)
        self._stop = asyncio.Event()
        self._seen: Dict[str, None] = {}
        self._status = "idle"

    @property
    def status(self) -> str:
        return self._status

    def stop(self) -> None:
        self._stop.set()

    async def _call(self, fn, *args, **kwargs):
        return await asyncio.to_thread(fn, *args, **kwargs)

    def _seen_add(self, key: str) -> None:
        if key in self._seen:
            return
        self._seen[key] = None
        if len(self._seen) > self.config.seen_cache_size:
            oldest = next(iter(self._seen))
            self._seen.pop(oldest, None)

    async def monitor(self, collection_slug: str) -> None:
        self.log("monitor", f"Monitoring new listings for {collection_slug}...")
        while not self._stop.is_set():
            try:
                listings = await self._call(
                    self.query.list_new_listings, collection_slug, self.config.listing_limit
                )
            except Exception as exc:
                self._status = f"fetch_err:{exc}"
                self.fetch_errors.handle(exc, f"FETCH {collection_slug}")
                await self._sleep(self.config.error_retry_delay)
                continue

            handled = await self.dispatch(listings)
            self._status = f"running seen={len(self._seen)} last_batch={len(listings)} handled={handled}"
            await self._sleep(self.config.polling_interval)

        self._status = "stopped"
        self.log("monitor", f"Stopped monitoring {collection_slug}")

    async def dispatch(self, listings: List[Listing]) -> int:
        handled = 0
        for listing in listings:
            decision = classify(listing, self.config)
            if decision is None:
                continue
            key = listing.seen_key
            if key in self._seen:
                continue
            self._seen_add(key)

            self.log(
                "monitor",
                f"Found NFT #{listing.token_id} for {format_eth(int(listing.price or 0))} ETH",
            )
            try:
                await self._execute(decision)
                handled += 1
            except Exception as exc:
                context = f"DISPATCH #{listing.token_id}"
                if not isinstance(exc, FINAL_ERRORS):
                    self._seen.pop(key, None)
                    context += " (retry next poll)"
                self.dispatch_errors.handle(exc, context)
        return handled

    async def _execute(self, decision: ActionDecision) -> Optional[ExecutionResult]:
        if isinstance(decision, BuyDecision):
            if self.config.dry_run:
                self.log(
                    "monitor",
                    f"DRY BUY #{decision.token_id} price={format_eth(decision.price)} ETH",
                )
                return None
            return await self.purchaser.buy_now(
                decision.contract_address, decision.token_id, decision.price
            )

        if self.config.dry_run:
            self.log(
                "monitor",
                f"DRY OFFER #{decision.token_id} amount={format_eth(decision.offer_amount)} WETH",
            )
            return None
        return await self.offerer.make_offer(
            decision.contract_address, decision.token_id, decision.offer_amount
        )


class OpenSeaBot:
    def __init__(
        self,
        *,
        config: BotConfig,
        chain_settings: ChainSettings,
        query: QueryService,
        royalties: RoyaltyDirectory,
        protocol: OrderProtocol,
        chain: ChainClient,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], int] = now_ts,
        logger: Callable[[str, str], None] = log,
    ) -> None:
        self.config = config
        self.chain = chain
        self.prerequisites = PrerequisiteManager(
            chain=chain,
            spender=chain_settings.seaport_address,
            confirmation_timeout=config.confirmation_timeout,
            logger=logger,
        )
        self.purchaser = PurchaseExecutor(
            config=config,
            query=query,
            protocol=protocol,
            chain=chain,
            logger=logger,
        )
        self.offerer = OfferExecutor(
            config=config,
            weth_address=chain_settings.weth_address,
            query=query,
            royalties=royalties,
            protocol=protocol,
            chain=chain,
            prerequisites=self.prerequisites,
            clock=clock,
            logger=logger,
        )
        self.monitor = CollectionMonitor(
            config=config,
            query=query,
            purchaser=self.purchaser,
            offerer=self.offerer,
            sleep=sleep,
            logger=logger,
        )

    @classmethod
    def from_config(cls, app_config: AppConfig) -> "OpenSeaBot":
        client = OpenSeaClient(
            api_base=app_config.api_base,
            api_key=app_config.credentials.api_key,
            routes=app_config.routes,
            timeout=app_config.request_timeout,
        )
        chain = Web3ChainClient(
            rpc_url=app_config.credentials.rpc_url,
            private_key=app_config.credentials.private_key,
            weth_address=app_config.chain.weth_address,
            request_timeout=app_config.request_timeout,
        )
        seaport = SeaportClient(
            chain=chain,
            seaport_address=app_config.chain.seaport_address,
            version=app_config.chain.seaport_version,
            conduit_key=app_config.chain.conduit_key,
        )
        return cls(
            config=app_config.bot,
            chain_settings=app_config.chain,
            query=client,
            royalties=client,
            protocol=seaport,
            chain=chain,
        )

    @property
    def status(self) -> str:
        return self.monitor.status

    async def monitor_collection(self, collection_slug: str) -> None:
        await self.monitor.monitor(collection_slug)

    async def buy_now(
        self,
        contract_address: str,
        token_id: str,
        price_eth: Union[Decimal, str, int, float],
    ) -> PurchaseResult:
        """Buy one token. ``price_eth`` is always in ETH, whatever its type."""
        return await self.purchaser.buy_now(contract_address, token_id, to_wei(price_eth))

    async def make_offer(
        self,
        contract_address: str,
        token_id: str,
        amount_eth: Union[Decimal, str, int, float],
        expiration_days: Optional[int] = None,
    ) -> OfferResult:
        """Offer WETH on one token. ``amount_eth`` is always in ETH, whatever its type."""
        return await self.offerer.make_offer(
            contract_address, token_id, to_wei(amount_eth), expiration_days
        )

    def stop(self) -> None:
        self.monitor.stop()
