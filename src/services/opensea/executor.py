from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from .console import log
from .errors import AbortAndPropagate, InvalidOrderError, NoOrderFoundError, TransactionFailedError
from .gas import check_gas
from .models import (
    BotConfig,
    ChainClient,
    OfferResult,
    OrderProtocol,
    PurchaseResult,
    QueryService,
    RoyaltyDirectory,
    RoyaltyInfo,
)
from .prerequisites import PrerequisiteManager
from .strategy import (
    build_offer_terms,
    expiration_ts,
    format_eth,
    format_gwei,
    now_ts,
)


class PurchaseExecutor:
    def __init__(
        self,
        *,
        config: BotConfig,
        query: QueryService,
        protocol: OrderProtocol,
        chain: ChainClient,
        logger: Callable[[str, str], None] = log,
    ) -> None:
        self.config = config
        self.query = query
        self.protocol = protocol
        self.chain = chain
        self.log = logger
        self.errors = AbortAndPropagate("buy", logger)

    async def _call(self, fn, *args, **kwargs):
        return await asyncio.to_thread(fn, *args, **kwargs)

    async def buy_now(self, contract_address: str, token_id: str, expected_price: int) -> PurchaseResult:
        try:
            return await self._buy(contract_address, str(token_id), int(expected_price))
        except Exception as exc:
            self.errors.handle(exc, f"BUY {contract_address}/{token_id}")

    async def _buy(self, contract_address: str, token_id: str, expected_price: int) -> PurchaseResult:
        account = self.chain.address
        order = await self._call(self.query.get_listing_order, contract_address, token_id)
        if order is None:
            raise NoOrderFoundError(f"No listing order for {contract_address}/{token_id}")

        if not await self._call(self.protocol.validate, order, account):
            raise InvalidOrderError(f"Order {order.order_hash or '?'} is not fillable")

        tx = await self._call(self.protocol.build_fulfillment, order, account)

        gas_price = await self._call(self.chain.get_gas_price)
        check_gas(gas_price, self.config.max_gas_price)
        tx["gasPrice"] = gas_price
        tx["gas"] = self.config.purchase_gas_limit

        tx_hash = await self._call(self.chain.send_transaction, tx)
        self.log("buy", f"SENT #{token_id} gas={format_gwei(gas_price)} gwei tx={tx_hash}")
        receipt = await self._call(self.chain.wait, tx_hash, self.config.confirmation_timeout)
        if int(receipt.get("status", 0)) == 0:
            raise TransactionFailedError(f"Transaction {tx_hash} failed", tx_hash)

        self.log(
            "buy",
            f"BOUGHT #{token_id} price={format_eth(expected_price)} ETH "
            f"https://etherscan.io/tx/{tx_hash}",
        )
        return PurchaseResult(tx_hash=tx_hash, token_id=token_id, price=expected_price)


class OfferExecutor:
    def __init__(
        self,
        *,
        config: BotConfig,
        weth_address: str,
        query: QueryService,
        royalties: RoyaltyDirectory,
        protocol: OrderProtocol,
        chain: ChainClient,
        prerequisites: PrerequisiteManager,
        clock: Callable[[], int] = now_ts,
        logger: Callable[[str, str], None] = log,
    ) -> None:
        self.config = config
        self.weth_address = weth_address
        self.query = query
        self.royalties = royalties
        self.protocol = protocol
        self.chain = chain
        self.prerequisites = prerequisites
        self.clock = clock
        self.log = logger
        self.errors = AbortAndPropagate("offer", logger)

    async def _call(self, fn, *args, **kwargs):
        return await asyncio.to_thread(fn, *args, **kwargs)

    async def make_offer(
        self,
        contract_address: str,
        token_id: str,
        offer_amount: int,
        expiration_days: Optional[int] = None,
    ) -> OfferResult:
        days = self.config.offer_expiration_days if expiration_days is None else int(expiration_days)
        try:
            return await self._offer(contract_address, str(token_id), offer_amount, days)
        except Exception as exc:
            self.errors.handle(exc, f"OFFER {contract_address}/{token_id}")

    async def _resolve_royalty(self, contract_address: str) -> RoyaltyInfo:
        try:
            info = await self._call(self.royalties.get_royalty_info, contract_address)
        except Exception as exc:
            self.log("offer", f"ROYALTY LOOKUP FAIL {contract_address}: {exc}")
            info = None
        if info is None:
            fallback = self.config.fallback_royalty
            self.log("offer", f"Royalty fallback {fallback.recipient} {fallback.basis_points}bps")
            return fallback
        return info

    async def _offer(
        self,
        contract_address: str,
        token_id: str,
        offer_amount: int,
        days: int,
    ) -> OfferResult:
        amount = int(offer_amount)
        if amount <= 0:
            raise ValueError(f"Offer amount must be positive: {offer_amount}")
        if days < 1:
            raise ValueError(f"expiration_days must be >= 1: {days}")
        account = self.chain.address

        await self._call(self.prerequisites.ensure_funds, amount)
        await self._call(self.prerequisites.ensure_allowance, amount)

        royalty = await self._resolve_royalty(contract_address)
        end_time = expiration_ts(self.clock(), days)
        terms = build_offer_terms(
            weth_address=self.weth_address,
            contract_address=contract_address,
            token_id=token_id,
            offer_amount=amount,
            royalty=royalty,
            account=account,
            end_time=end_time,
        )

        order = await self._call(self.protocol.create_order, terms, account)
        order_hash = await self._call(self.query.post_offer, order)

        self.log(
            "offer",
            f"OFFER SENT #{token_id} amount={format_eth(amount)} WETH exp={days}d "
            f"https://opensea.io/assets/ethereum/{contract_address}/{token_id}",
        )
        return OfferResult(
            order_hash=order_hash,
            offer_amount=amount,
            expiration=datetime.fromtimestamp(end_time, tz=timezone.utc),
        )
