import pytest

from src.services.opensea import sniper


def test_build_overrides_keeps_only_given_flags() -> None:
    args = sniper.parse_args(
        ["--collection", "cool-cats-nft", "--buy-threshold", "0.1", "--max-gas-price", "40", "--dry-run"]
    )
    assert sniper.build_overrides(args) == {
        "buy_threshold": "0.1",
        "max_gas_price": "40",
        "dry_run": True,
    }


def test_buy_and_offer_take_three_values() -> None:
    args = sniper.parse_args(["--buy", "0xabc", "7", "0.05"])
    assert args.buy == ["0xabc", "7", "0.05"]
    assert args.offer is None


def test_main_without_target_is_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENSEA_COLLECTION", raising=False)
    monkeypatch.setattr(sniper, "load_dotenv", lambda: False)
    assert sniper.main([]) == 1


def test_main_with_missing_credentials_is_config_error(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in ("PRIVATE_KEY", "RPC_URL", "INFURA_URL", "OPENSEA_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(sniper, "load_dotenv", lambda: False)
    missing = tmp_path / "absent.json"
    assert sniper.main(["--collection", "cool-cats-nft", "--config", str(missing)]) == 1
