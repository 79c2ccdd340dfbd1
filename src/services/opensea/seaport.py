from __future__ import annotations

import secrets
from typing import Any, Callable, Dict, List, Tuple

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_bytes, to_checksum_address

from .abi import FULFILL_ORDER_ARG_TYPES, FULFILL_ORDER_SIGNATURE, SEAPORT_ABI, SEAPORT_EIP712_TYPES
from .models import ZERO_ADDRESS, ZERO_BYTES32, ItemType, ListingOrder
from .strategy import now_ts


FULL_OPEN = 0


def to_uint(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value or "0").strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


def to_bytes32(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raw = to_bytes(hexstr=str(value or ZERO_BYTES32))
    if len(raw) > 32:
        raise ValueError(f"Not a bytes32 value: {value}")
    return raw.rjust(32, b"\x00")


def order_is_fillable(is_cancelled: bool, total_filled: int, total_size: int) -> bool:
    if is_cancelled:
        return False
    return total_size == 0 or total_filled < total_size


def native_consideration_total(parameters: Dict[str, Any]) -> int:
    total = 0
    for item in parameters.get("consideration") or []:
        if to_uint(item.get("itemType")) != ItemType.NATIVE:
            continue
        total += max(to_uint(item.get("startAmount")), to_uint(item.get("endAmount")))
    return total


def _offer_item_tuple(item: Dict[str, Any]) -> Tuple[int, str, int, int, int]:
    return (
        to_uint(item.get("itemType")),
        to_checksum_address(item.get("token") or ZERO_ADDRESS),
        to_uint(item.get("identifierOrCriteria")),
        to_uint(item.get("startAmount")),
        to_uint(item.get("endAmount")),
    )


def _consideration_item_tuple(item: Dict[str, Any]) -> Tuple[int, str, int, int, int, str]:
    return (*_offer_item_tuple(item), to_checksum_address(item.get("recipient") or ZERO_ADDRESS))


def order_parameters_tuple(parameters: Dict[str, Any]) -> Tuple[Any, ...]:
    consideration = parameters.get("consideration") or []
    total_original = parameters.get("totalOriginalConsiderationItems")
    return (
        to_checksum_address(parameters.get("offerer") or ZERO_ADDRESS),
        to_checksum_address(parameters.get("zone") or ZERO_ADDRESS),
        [_offer_item_tuple(x) for x in parameters.get("offer") or []],
        [_consideration_item_tuple(x) for x in consideration],
        to_uint(parameters.get("orderType")),
        to_uint(parameters.get("startTime")),
        to_uint(parameters.get("endTime")),
        to_bytes32(parameters.get("zoneHash")),
        to_uint(parameters.get("salt")),
        to_bytes32(parameters.get("conduitKey")),
        to_uint(total_original) if total_original is not None else len(consideration),
    )


def encode_fulfill_order(order: ListingOrder, fulfiller_conduit_key: str = ZERO_BYTES32) -> str:
    selector = keccak(text=FULFILL_ORDER_SIGNATURE)[:4]
    args = [
        (order_parameters_tuple(order.parameters), to_bytes(hexstr=order.signature)),
        to_bytes32(fulfiller_conduit_key),
    ]
    return "0x" + (selector + abi_encode(FULFILL_ORDER_ARG_TYPES, args)).hex()


def _term_item(item: Dict[str, Any], with_recipient: bool) -> Dict[str, Any]:
    amount = to_uint(item.get("amount", 1))
    out: Dict[str, Any] = {
        "itemType": int(item["itemType"]),
        "token": to_checksum_address(item.get("token") or ZERO_ADDRESS),
        "identifierOrCriteria": to_uint(item.get("identifier", 0)),
        "startAmount": amount,
        "endAmount": amount,
    }
    if with_recipient:
        out["recipient"] = to_checksum_address(item["recipient"])
    return out


def _serialize(components: Dict[str, Any]) -> Dict[str, Any]:
    def _items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {k: (str(v) if k not in ("itemType", "token", "recipient") else v) for k, v in item.items()}
            for item in items
        ]

    return {
        "offerer": components["offerer"],
        "zone": components["zone"],
        "offer": _items(components["offer"]),
        "consideration": _items(components["consideration"]),
        "orderType": components["orderType"],
        "startTime": str(components["startTime"]),
        "endTime": str(components["endTime"]),
        "zoneHash": components["zoneHash"],
        "salt": str(components["salt"]),
        "conduitKey": components["conduitKey"],
        "totalOriginalConsiderationItems": len(components["consideration"]),
        "counter": str(components["counter"]),
    }


class SeaportClient:
    def __init__(
        self,
        *,
        chain: Any,
        seaport_address: str,
        version: str = "1.4",
        conduit_key: str = ZERO_BYTES32,
        clock: Callable[[], int] = now_ts,
        salt_factory: Callable[[], int] = lambda: secrets.randbits(256),
    ) -> None:
        self.chain = chain
        self.seaport_address = to_checksum_address(seaport_address)
        self.version = version
        self.conduit_key = conduit_key
        self.clock = clock
        self.salt_factory = salt_factory

    def _contract(self, address: str = "") -> Any:
        return self.chain.contract(address or self.seaport_address, SEAPORT_ABI)

    def typed_data(self, components: Dict[str, Any]) -> Dict[str, Any]:
        message = dict(components)
        message["zoneHash"] = to_bytes32(components["zoneHash"])
        message["conduitKey"] = to_bytes32(components["conduitKey"])
        return {
            "types": SEAPORT_EIP712_TYPES,
            "primaryType": "OrderComponents",
            "domain": {
                "name": "Seaport",
                "version": self.version,
                "chainId": self.chain.chain_id,
                "verifyingContract": self.seaport_address,
            },
            "message": message,
        }

    def validate(self, order: ListingOrder, account: str) -> bool:
        params = order.parameters
        if not params or not order.order_hash:
            return False
        if str(params.get("offerer") or "").lower() == account.lower():
            return False
        now = self.clock()
        if not to_uint(params.get("startTime")) <= now < to_uint(params.get("endTime")):
            return False
        status = self._contract(order.protocol_address).functions.getOrderStatus(
            to_bytes32(order.order_hash)
        ).call()
        _is_validated, is_cancelled, total_filled, total_size = status
        return order_is_fillable(bool(is_cancelled), int(total_filled), int(total_size))

    def build_fulfillment(self, order: ListingOrder, account: str) -> Dict[str, Any]:
        return {
            "to": to_checksum_address(order.protocol_address or self.seaport_address),
            "from": to_checksum_address(account),
            "data": encode_fulfill_order(order),
            "value": native_consideration_total(order.parameters),
        }

    def create_order(self, terms: Dict[str, Any], account: str) -> Dict[str, Any]:
        offerer = to_checksum_address(account)
        counter = int(self._contract().functions.getCounter(offerer).call())
        components = {
            "offerer": offerer,
            "zone": ZERO_ADDRESS,
            "offer": [_term_item(x, with_recipient=False) for x in terms["offer"]],
            "consideration": [_term_item(x, with_recipient=True) for x in terms["consideration"]],
            "orderType": FULL_OPEN,
            "startTime": self.clock(),
            "endTime": int(terms["endTime"]),
            "zoneHash": ZERO_BYTES32,
            "salt": self.salt_factory(),
            "conduitKey": self.conduit_key,
            "counter": counter,
        }
        signature = self.chain.sign_typed_data(self.typed_data(components))
        return {
            "parameters": _serialize(components),
            "signature": signature,
            "protocol_address": self.seaport_address,
        }
