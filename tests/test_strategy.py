from decimal import Decimal

import pytest

from src.services.opensea.models import (
    BotConfig,
    BuyDecision,
    ItemType,
    Listing,
    OfferDecision,
    RoyaltyInfo,
)
from src.services.opensea.strategy import (
    build_offer_terms,
    classify,
    format_eth,
    format_gwei,
    parse_listing,
    parse_listing_order,
    parse_royalty_info,
    royalty_amount,
    to_wei,
)

ETH = 10**18
NFT = "0x1A92f7381B9F03921564a437210bB9396471050C"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
ME = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"


def _listing(price, token_id="7", contract=NFT) -> Listing:
    return Listing(token_id=token_id, contract_address=contract, price=price, raw={})


def test_price_below_threshold_is_buy() -> None:
    cfg = BotConfig(buy_threshold=ETH // 10)
    decision = classify(_listing(to_wei("0.05")), cfg)
    assert decision == BuyDecision(contract_address=NFT, token_id="7", price=to_wei("0.05"))


def test_price_equal_to_threshold_is_offer() -> None:
    cfg = BotConfig(buy_threshold=ETH // 10, offer_percentage=Decimal("0.8"))
    decision = classify(_listing(ETH // 10), cfg)
    assert isinstance(decision, OfferDecision)
    assert decision.offer_amount == to_wei("0.08")


def test_offer_amount_is_exact_in_wei() -> None:
    cfg = BotConfig(buy_threshold=ETH // 10, offer_percentage=Decimal("0.8"))
    decision = classify(_listing(to_wei("0.2")), cfg)
    assert decision == OfferDecision(contract_address=NFT, token_id="7", offer_amount=160_000_000_000_000_000)


def test_offer_amount_truncates_fractional_wei() -> None:
    cfg = BotConfig(buy_threshold=0, offer_percentage=Decimal("0.3"))
    decision = classify(_listing(7), cfg)
    assert isinstance(decision, OfferDecision)
    assert decision.offer_amount == 2


def test_zero_threshold_never_buys() -> None:
    cfg = BotConfig(buy_threshold=0)
    assert isinstance(classify(_listing(0), cfg), OfferDecision)


@pytest.mark.parametrize(
    "listing",
    [
        _listing(None),
        _listing(ETH, token_id=None),
        _listing(ETH, contract=None),
    ],
)
def test_unresolvable_listing_has_no_decision(listing: Listing) -> None:
    assert classify(listing, BotConfig()) is None


def test_royalty_leg_is_floored() -> None:
    assert royalty_amount(1_000_000, 1000) == 100_000
    assert royalty_amount(999, 1000) == 99
    assert royalty_amount(1_000_000, 0) == 0


def test_parse_listing_reads_asset_event() -> None:
    event = {
        "id": 991,
        "ending_price": "50000000000000000",
        "asset": {"token_id": "1234", "asset_contract": {"address": NFT}},
    }
    listing = parse_listing(event)
    assert listing.token_id == "1234"
    assert listing.contract_address == NFT
    assert listing.price == 50_000_000_000_000_000
    assert listing.event_id == "991"
    assert listing.resolvable


def test_parse_listing_without_asset_is_unresolvable() -> None:
    listing = parse_listing({"id": 1, "ending_price": "100", "asset": None})
    assert not listing.resolvable
    assert listing.seen_key == "1"


def test_parse_listing_rejects_bad_price() -> None:
    listing = parse_listing(
        {"asset": {"token_id": "1", "asset_contract": {"address": NFT}}, "ending_price": "abc"}
    )
    assert listing.price is None


def test_parse_listing_order_takes_first_order_with_protocol_data() -> None:
    payload = {
        "orders": [
            {"order_hash": "0xbad"},
            {
                "order_hash": "0xabc",
                "protocol_address": "0x00000000000001ad428e4906aE43D8F9852d0dD6",
                "protocol_data": {"parameters": {"offerer": ME}, "signature": "0x01"},
            },
        ]
    }
    order = parse_listing_order(payload)
    assert order is not None
    assert order.order_hash == "0xabc"
    assert order.parameters == {"offerer": ME}
    assert order.signature == "0x01"
    assert parse_listing_order({"orders": []}) is None


def test_parse_royalty_info() -> None:
    info = parse_royalty_info({"payout_address": ME, "dev_seller_fee_basis_points": 500})
    assert info == RoyaltyInfo(recipient=ME, basis_points=500)
    assert parse_royalty_info({"payout_address": ME, "dev_seller_fee_basis_points": 20000}) is None
    assert parse_royalty_info({"payout_address": "", "dev_seller_fee_basis_points": 500}) is None


def test_zero_royalty_collection_is_not_a_failed_lookup() -> None:
    info = parse_royalty_info({"payout_address": None, "dev_seller_fee_basis_points": 0})
    assert info == RoyaltyInfo(recipient="0x" + "00" * 20, basis_points=0)
    assert parse_royalty_info({"payout_address": ME, "dev_seller_fee_basis_points": "0"}).recipient == ME
    assert parse_royalty_info({"payout_address": ME}) is None


def test_offer_terms_carry_nft_and_royalty_legs() -> None:
    terms = build_offer_terms(
        weth_address=WETH,
        contract_address=NFT,
        token_id="42",
        offer_amount=1_000_000,
        royalty=RoyaltyInfo(recipient=ME, basis_points=1000),
        account=ME,
        end_time=1_700_000_000,
    )
    assert terms["offer"] == [
        {"itemType": ItemType.ERC20, "token": WETH, "identifier": "0", "amount": 1_000_000}
    ]
    nft_leg, royalty_leg = terms["consideration"]
    assert nft_leg["itemType"] == ItemType.ERC721
    assert nft_leg["identifier"] == "42"
    assert nft_leg["recipient"] == ME
    assert royalty_leg["amount"] == 100_000
    assert royalty_leg["token"] == WETH
    assert terms["endTime"] == 1_700_000_000


def test_offer_terms_skip_zero_royalty_leg() -> None:
    terms = build_offer_terms(
        weth_address=WETH,
        contract_address=NFT,
        token_id="42",
        offer_amount=1_000_000,
        royalty=RoyaltyInfo(recipient=ME, basis_points=0),
        account=ME,
        end_time=1,
    )
    assert len(terms["consideration"]) == 1


def test_unit_conversions() -> None:
    assert to_wei(1) == ETH
    assert to_wei("0.16") == 160_000_000_000_000_000
    assert to_wei(Decimal("0.05")) == 50_000_000_000_000_000
    assert to_wei(0.2) == 200_000_000_000_000_000
    with pytest.raises(ValueError):
        to_wei("nope")
    with pytest.raises(ValueError):
        to_wei(True)
    assert format_eth(160_000_000_000_000_000) == "0.16"
    assert format_eth(0) == "0"
    assert format_gwei(20 * 10**9) == "20"
