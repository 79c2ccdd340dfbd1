from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Optional, Protocol, Union

from .errors import ConfigurationError


WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
SEAPORT_ADDRESS = "0x00000000000001ad428e4906aE43D8F9852d0dD6"
SEAPORT_VERSION = "1.4"
ZERO_BYTES32 = "0x" + "00" * 32
ZERO_ADDRESS = "0x" + "00" * 20
OPENSEA_FEE_RECIPIENT = "0x0000a26b00c1F0DF003000390027140000fAa719"

BASIS_POINTS = 10_000
SECONDS_PER_DAY = 86_400
WEI_PER_ETH = 10**18
WEI_PER_GWEI = 10**9


class ItemType(IntEnum):
    NATIVE = 0
    ERC20 = 1
    ERC721 = 2
    ERC1155 = 3


@dataclass(frozen=True)
class RoyaltyInfo:
    recipient: str
    basis_points: int

    def __post_init__(self) -> None:
        if not 0 <= self.basis_points <= BASIS_POINTS:
            raise ConfigurationError(f"Royalty basis points out of range: {self.basis_points}")


@dataclass(frozen=True)
class BotConfig:
    buy_threshold: int = WEI_PER_ETH // 10
    offer_percentage: Decimal = Decimal("0.8")
    max_gas_price: int = 50 * WEI_PER_GWEI
    polling_interval: float = 60.0
    error_retry_delay: float = 30.0
    listing_limit: int = 10
    offer_expiration_days: int = 7
    purchase_gas_limit: int = 300_000
    confirmation_timeout: float = 300.0
    seen_cache_size: int = 10_000
    dry_run: bool = False
    fallback_royalty: RoyaltyInfo = field(
        default_factory=lambda: RoyaltyInfo(recipient=OPENSEA_FEE_RECIPIENT, basis_points=1000)
    )

    def __post_init__(self) -> None:
        if not Decimal("0") < self.offer_percentage <= Decimal("1"):
            raise ConfigurationError(f"offer_percentage must be in (0, 1]: {self.offer_percentage}")
        if self.buy_threshold < 0:
            raise ConfigurationError(f"buy_threshold must be >= 0: {self.buy_threshold}")
        if self.max_gas_price <= 0:
            raise ConfigurationError(f"max_gas_price must be > 0: {self.max_gas_price}")
        if self.polling_interval < 0 or self.error_retry_delay < 0:
            raise ConfigurationError("polling_interval and error_retry_delay must be >= 0")
        if self.listing_limit < 1:
            raise ConfigurationError(f"listing_limit must be >= 1: {self.listing_limit}")
        if self.offer_expiration_days < 1:
            raise ConfigurationError(f"offer_expiration_days must be >= 1: {self.offer_expiration_days}")
        if self.purchase_gas_limit <= 0:
            raise ConfigurationError(f"purchase_gas_limit must be > 0: {self.purchase_gas_limit}")


@dataclass(frozen=True)
class Credentials:
    private_key: str
    rpc_url: str
    api_key: str = ""


@dataclass
class ApiRoutes:
    events: str = "/events"
    listings: str = "/asset/{contract}/{token_id}/listings"
    asset_contract: str = "/asset_contract/{contract}"
    post_offer: str = "https://api.opensea.io/api/v2/orders/ethereum/seaport/offers"


@dataclass
class ChainSettings:
    weth_address: str = WETH_ADDRESS
    seaport_address: str = SEAPORT_ADDRESS
    seaport_version: str = SEAPORT_VERSION
    conduit_key: str = ZERO_BYTES32


@dataclass
class AppConfig:
    api_base: str
    routes: ApiRoutes
    credentials: Credentials
    bot: BotConfig
    chain: ChainSettings
    request_timeout: float
    config_file: str


@dataclass
class Listing:
    token_id: Optional[str]
    contract_address: Optional[str]
    price: Optional[int]
    raw: Dict[str, Any]
    event_id: str = ""

    @property
    def resolvable(self) -> bool:
        return bool(self.token_id) and bool(self.contract_address) and self.price is not None

    @property
    def seen_key(self) -> str:
        if self.event_id:
            return self.event_id
        return f"{self.contract_address}:{self.token_id}:{self.price}"


@dataclass(frozen=True)
class BuyDecision:
    contract_address: str
    token_id: str
    price: int


@dataclass(frozen=True)
class OfferDecision:
    contract_address: str
    token_id: str
    offer_amount: int


ActionDecision = Union[BuyDecision, OfferDecision]


@dataclass
class ListingOrder:
    order_hash: str
    protocol_data: Dict[str, Any]
    protocol_address: str
    raw: Dict[str, Any]

    @property
    def parameters(self) -> Dict[str, Any]:
        params = self.protocol_data.get("parameters")
        return params if isinstance(params, dict) else {}

    @property
    def signature(self) -> str:
        return str(self.protocol_data.get("signature") or "0x")


@dataclass(frozen=True)
class PurchaseResult:
    tx_hash: str
    token_id: str
    price: int


@dataclass(frozen=True)
class OfferResult:
    order_hash: str
    offer_amount: int
    expiration: datetime


ExecutionResult = Union[PurchaseResult, OfferResult]


class QueryService(Protocol):
    def list_new_listings(self, collection_slug: str, limit: int) -> List[Listing]: ...

    def get_listing_order(self, contract_address: str, token_id: str) -> Optional[ListingOrder]: ...

    def post_offer(self, order: Dict[str, Any]) -> str: ...


class RoyaltyDirectory(Protocol):
    def get_royalty_info(self, contract_address: str) -> Optional[RoyaltyInfo]: ...


class OrderProtocol(Protocol):
    def validate(self, order: ListingOrder, account: str) -> bool: ...

    def build_fulfillment(self, order: ListingOrder, account: str) -> Dict[str, Any]: ...

    def create_order(self, terms: Dict[str, Any], account: str) -> Dict[str, Any]: ...


class ChainClient(Protocol):
    @property
    def address(self) -> str: ...

    def get_gas_price(self) -> int: ...

    def send_transaction(self, tx: Dict[str, Any]) -> str: ...

    def wait(self, tx_hash: str, timeout: float) -> Dict[str, Any]: ...

    def get_weth_balance(self) -> int: ...

    def get_weth_allowance(self, spender: str) -> int: ...

    def deposit_weth(self, amount: int) -> str: ...

    def approve_weth(self, spender: str, amount: int) -> str: ...
