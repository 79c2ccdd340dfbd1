import json
from decimal import Decimal
from pathlib import Path

import pytest

from src.services.opensea.config_loader import (
    API_BASE_DEFAULT,
    load_app_config,
    resolve_bot_config,
    resolve_credentials,
)
from src.services.opensea.errors import ConfigurationError
from src.services.opensea.models import OPENSEA_FEE_RECIPIENT

ENV = {"PRIVATE_KEY": "0x" + "11" * 32, "RPC_URL": "http://localhost:8545"}


def test_defaults_match_documented_values() -> None:
    cfg = resolve_bot_config()
    assert cfg.buy_threshold == 10**17
    assert cfg.offer_percentage == Decimal("0.8")
    assert cfg.max_gas_price == 50 * 10**9
    assert cfg.polling_interval == 60.0
    assert cfg.error_retry_delay == 30.0
    assert cfg.listing_limit == 10
    assert cfg.purchase_gas_limit == 300_000
    assert cfg.fallback_royalty.recipient == OPENSEA_FEE_RECIPIENT
    assert cfg.fallback_royalty.basis_points == 1000
    assert not cfg.dry_run


def test_overrides_are_merged_in_human_units() -> None:
    cfg = resolve_bot_config(
        {"buyThreshold": "0.25", "offerPercentage": 0.5, "max_gas_price": "30.5", "dry_run": "yes"}
    )
    assert cfg.buy_threshold == 250_000_000_000_000_000
    assert cfg.offer_percentage == Decimal("0.5")
    assert cfg.max_gas_price == 30_500_000_000
    assert cfg.dry_run
    assert cfg.polling_interval == 60.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"offer_percentage": "0"},
        {"offer_percentage": "1.01"},
        {"buy_threshold": "-1"},
        {"max_gas_price": "0"},
        {"listing_limit": "zero"},
        {"offer_percentage": "abc"},
        {"fallback_royalty": {"basis_points": 10001}},
    ],
)
def test_invalid_values_raise_configuration_error(overrides) -> None:
    with pytest.raises(ConfigurationError):
        resolve_bot_config(overrides)


def test_offer_percentage_of_one_is_allowed() -> None:
    assert resolve_bot_config({"offer_percentage": "1"}).offer_percentage == Decimal("1")


def test_missing_credentials_are_reported() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_credentials({})
    assert "PRIVATE_KEY" in str(exc_info.value)
    assert "RPC_URL" in str(exc_info.value)


def test_infura_url_is_accepted_as_rpc_url() -> None:
    creds = resolve_credentials({"PRIVATE_KEY": "0xabc", "INFURA_URL": "https://mainnet.infura.io/v3/x"})
    assert creds.rpc_url == "https://mainnet.infura.io/v3/x"
    assert creds.api_key == ""


def test_load_app_config_reads_file_then_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "opensea.json"
    config_file.write_text(
        json.dumps(
            {
                "bot": {"buy_threshold": "0.2", "polling_interval": 5},
                "api": {"base": "https://example.test/api", "routes": {"events": "/v2/events"}},
                "chain": {"seaport_version": "1.5"},
            }
        ),
        encoding="utf-8",
    )
    app = load_app_config(
        config_file=str(config_file),
        overrides={"polling_interval": "2"},
        env={**ENV, "OPENSEA_API_KEY": "key"},
    )
    assert app.bot.buy_threshold == 2 * 10**17
    assert app.bot.polling_interval == 2.0
    assert app.api_base == "https://example.test/api"
    assert app.routes.events == "/v2/events"
    assert app.routes.listings == "/asset/{contract}/{token_id}/listings"
    assert app.chain.seaport_version == "1.5"
    assert app.credentials.api_key == "key"


def test_load_app_config_without_file_uses_defaults(tmp_path: Path) -> None:
    app = load_app_config(config_file=str(tmp_path / "missing.json"), env=ENV)
    assert app.api_base == API_BASE_DEFAULT
    assert app.bot == resolve_bot_config()


def test_load_app_config_rejects_non_object_json(tmp_path: Path) -> None:
    config_file = tmp_path / "opensea.json"
    config_file.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_app_config(config_file=str(config_file), env=ENV)


def test_load_app_config_requires_credentials(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_app_config(config_file=str(tmp_path / "missing.json"), env={})
