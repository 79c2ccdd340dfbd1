from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, Dict, List, Optional, Union

from .models import (
    BASIS_POINTS,
    SECONDS_PER_DAY,
    WEI_PER_ETH,
    WEI_PER_GWEI,
    ZERO_ADDRESS,
    ActionDecision,
    BotConfig,
    BuyDecision,
    ItemType,
    Listing,
    ListingOrder,
    OfferDecision,
    RoyaltyInfo,
)


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def to_base_int(value: Any) -> Optional[int]:
    d = to_decimal(value)
    if d is None or not d.is_finite() or d < 0:
        return None
    if d != d.to_integral_value():
        return None
    return int(d)


def to_wei(amount: Union[Decimal, str, float, int], unit_size: int = WEI_PER_ETH) -> int:
    d = to_decimal(amount)
    if d is None or not d.is_finite():
        raise ValueError(f"Bad amount: {amount}")
    return int((d * unit_size).to_integral_value(rounding=ROUND_DOWN))


def _format_units(value: int, unit_size: int) -> str:
    d = (Decimal(value) / Decimal(unit_size)).normalize()
    return format(d, "f")


def format_eth(wei: int) -> str:
    return _format_units(wei, WEI_PER_ETH)


def format_gwei(wei: int) -> str:
    return _format_units(wei, WEI_PER_GWEI)


def now_ts() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())


def percent_of(amount: int, fraction: Decimal) -> int:
    return int((Decimal(amount) * fraction).to_integral_value(rounding=ROUND_DOWN))


def royalty_amount(offer_amount: int, basis_points: int) -> int:
    return offer_amount * basis_points // BASIS_POINTS


def expiration_ts(start_ts: int, days: int) -> int:
    return start_ts + days * SECONDS_PER_DAY


def classify(listing: Listing, config: BotConfig) -> Optional[ActionDecision]:
    if not listing.resolvable:
        return None
    contract = str(listing.contract_address)
    token_id = str(listing.token_id)
    price = int(listing.price or 0)
    if price < config.buy_threshold:
        return BuyDecision(contract_address=contract, token_id=token_id, price=price)
    return OfferDecision(
        contract_address=contract,
        token_id=token_id,
        offer_amount=percent_of(price, config.offer_percentage),
    )


def parse_listing(item: Dict[str, Any]) -> Listing:
    asset = item.get("asset")
    if not isinstance(asset, dict):
        asset = {}
    asset_contract = asset.get("asset_contract")
    if not isinstance(asset_contract, dict):
        asset_contract = {}

    token_id = str(asset.get("token_id") or "").strip() or None
    contract = str(asset_contract.get("address") or "").strip() or None
    price = to_base_int(item.get("ending_price") or item.get("starting_price"))
    event_id = str(item.get("id") or item.get("order_hash") or "").strip()
    return Listing(
        token_id=token_id,
        contract_address=contract,
        price=price,
        raw=item,
        event_id=event_id,
    )


def parse_listing_order(payload: Any) -> Optional[ListingOrder]:
    orders: List[Any] = []
    if isinstance(payload, dict):
        raw_orders = payload.get("orders")
        if isinstance(raw_orders, list):
            orders = raw_orders
    elif isinstance(payload, list):
        orders = payload

    for item in orders:
        if not isinstance(item, dict):
            continue
        protocol_data = item.get("protocol_data")
        if not isinstance(protocol_data, dict) or not isinstance(protocol_data.get("parameters"), dict):
            continue
        return ListingOrder(
            order_hash=str(item.get("order_hash") or "").strip(),
            protocol_data=protocol_data,
            protocol_address=str(item.get("protocol_address") or "").strip(),
            raw=item,
        )
    return None


def parse_royalty_info(payload: Any) -> Optional[RoyaltyInfo]:
    if not isinstance(payload, dict):
        return None
    recipient = str(payload.get("payout_address") or "").strip()
    bps = to_base_int(payload.get("dev_seller_fee_basis_points"))
    if bps is None or bps > BASIS_POINTS:
        return None
    if bps == 0:
        # A collection without royalties has no payout address; no leg is built for it.
        return RoyaltyInfo(recipient=recipient or ZERO_ADDRESS, basis_points=0)
    if not recipient:
        return None
    return RoyaltyInfo(recipient=recipient, basis_points=bps)


def build_offer_terms(
    *,
    weth_address: str,
    contract_address: str,
    token_id: str,
    offer_amount: int,
    royalty: RoyaltyInfo,
    account: str,
    end_time: int,
) -> Dict[str, Any]:
    consideration: List[Dict[str, Any]] = [
        {
            "itemType": ItemType.ERC721,
            "token": contract_address,
            "identifier": str(token_id),
            "amount": 1,
            "recipient": account,
        }
    ]
    fee = royalty_amount(offer_amount, royalty.basis_points)
    if fee > 0:
        consideration.append(
            {
                "itemType": ItemType.ERC20,
                "token": weth_address,
                "identifier": "0",
                "amount": fee,
                "recipient": royalty.recipient,
            }
        )
    return {
        "offer": [
            {
                "itemType": ItemType.ERC20,
                "token": weth_address,
                "identifier": "0",
                "amount": offer_amount,
            }
        ],
        "consideration": consideration,
        "endTime": end_time,
    }


def infer_remote_id(payload: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        val = payload.get(key)
        if val is not None:
            text = str(val).strip()
            if text:
                return text
    for section_key in ("order", "result", "data"):
        sec = payload.get(section_key)
        if isinstance(sec, dict):
            for key in keys:
                val = sec.get(key)
                if val is not None:
                    text = str(val).strip()
                    if text:
                        return text
    return ""
