from __future__ import annotations

from typing import Any, Dict, List


WETH_ABI: List[Dict[str, Any]] = [
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": [],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

SEAPORT_ABI: List[Dict[str, Any]] = [
    {
        "name": "getCounter",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "offerer", "type": "address"}],
        "outputs": [{"name": "counter", "type": "uint256"}],
    },
    {
        "name": "getOrderStatus",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "orderHash", "type": "bytes32"}],
        "outputs": [
            {"name": "isValidated", "type": "bool"},
            {"name": "isCancelled", "type": "bool"},
            {"name": "totalFilled", "type": "uint256"},
            {"name": "totalSize", "type": "uint256"},
        ],
    },
]

OFFER_ITEM_TUPLE = "(uint8,address,uint256,uint256,uint256)"
CONSIDERATION_ITEM_TUPLE = "(uint8,address,uint256,uint256,uint256,address)"
ORDER_PARAMETERS_TUPLE = (
    f"(address,address,{OFFER_ITEM_TUPLE}[],{CONSIDERATION_ITEM_TUPLE}[],"
    "uint8,uint256,uint256,bytes32,uint256,bytes32,uint256)"
)
FULFILL_ORDER_ARG_TYPES = [f"({ORDER_PARAMETERS_TUPLE},bytes)", "bytes32"]
FULFILL_ORDER_SIGNATURE = f"fulfillOrder({','.join(FULFILL_ORDER_ARG_TYPES)})"

SEAPORT_EIP712_TYPES: Dict[str, List[Dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "OrderComponents": [
        {"name": "offerer", "type": "address"},
        {"name": "zone", "type": "address"},
        {"name": "offer", "type": "OfferItem[]"},
        {"name": "consideration", "type": "ConsiderationItem[]"},
        {"name": "orderType", "type": "uint8"},
        {"name": "startTime", "type": "uint256"},
        {"name": "endTime", "type": "uint256"},
        {"name": "zoneHash", "type": "bytes32"},
        {"name": "salt", "type": "uint256"},
        {"name": "conduitKey", "type": "bytes32"},
        {"name": "counter", "type": "uint256"},
    ],
    "OfferItem": [
        {"name": "itemType", "type": "uint8"},
        {"name": "token", "type": "address"},
        {"name": "identifierOrCriteria", "type": "uint256"},
        {"name": "startAmount", "type": "uint256"},
        {"name": "endAmount", "type": "uint256"},
    ],
    "ConsiderationItem": [
        {"name": "itemType", "type": "uint8"},
        {"name": "token", "type": "address"},
        {"name": "identifierOrCriteria", "type": "uint256"},
        {"name": "startAmount", "type": "uint256"},
        {"name": "endAmount", "type": "uint256"},
        {"name": "recipient", "type": "address"},
    ],
}
