from __future__ import annotations

import json
import os
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigurationError
from .models import (
    WEI_PER_ETH,
    WEI_PER_GWEI,
    ApiRoutes,
    AppConfig,
    BotConfig,
    ChainSettings,
    Credentials,
    RoyaltyInfo,
)
from .strategy import to_wei


API_BASE_DEFAULT = "https://api.opensea.io/api/v1"
CONFIG_FILE_DEFAULT = "configs/opensea.json"
REQUEST_TIMEOUT_DEFAULT = 10.0

_ALIASES = {
    "buyThreshold": "buy_threshold",
    "offerPercentage": "offer_percentage",
    "maxGasPrice": "max_gas_price",
    "pollingInterval": "polling_interval",
    "errorRetryDelay": "error_retry_delay",
}


def _to_decimal(value: Any, field_name: str) -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigurationError(f"Bad decimal for {field_name}: {value}") from exc
    if not d.is_finite():
        raise ConfigurationError(f"Bad decimal for {field_name}: {value}")
    return d


def _to_int(value: Any, field_name: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Bad integer for {field_name}: {value}") from exc


def _to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _read_json(path: str) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Bad JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"JSON root must be object: {path}")
    return payload


def _section(raw: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key)
    return dict(value) if isinstance(value, dict) else {}


def _normalize_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {_ALIASES.get(k, k): v for k, v in raw.items() if v is not None}


def resolve_bot_config(overrides: Optional[Mapping[str, Any]] = None) -> BotConfig:
    """Merge human-unit overrides (ETH, gwei, seconds) over the defaults.

    Thresholds are given in ETH and the gas ceiling in gwei; both are stored
    as integer wei.
    """
    base = BotConfig()
    merged = _normalize_keys(overrides or {})
    changes: Dict[str, Any] = {}

    if "buy_threshold" in merged:
        changes["buy_threshold"] = to_wei(
            _to_decimal(merged["buy_threshold"], "buy_threshold"), WEI_PER_ETH
        )
    if "offer_percentage" in merged:
        changes["offer_percentage"] = _to_decimal(merged["offer_percentage"], "offer_percentage")
    if "max_gas_price" in merged:
        changes["max_gas_price"] = to_wei(
            _to_decimal(merged["max_gas_price"], "max_gas_price"), WEI_PER_GWEI
        )
    for name in ("polling_interval", "error_retry_delay", "confirmation_timeout"):
        if name in merged:
            changes[name] = float(_to_decimal(merged[name], name))
    for name in ("listing_limit", "offer_expiration_days", "purchase_gas_limit", "seen_cache_size"):
        if name in merged:
            changes[name] = _to_int(merged[name], name)
    if "dry_run" in merged:
        changes["dry_run"] = _to_bool(merged["dry_run"], base.dry_run)

    royalty_raw = merged.get("fallback_royalty")
    if isinstance(royalty_raw, dict):
        changes["fallback_royalty"] = RoyaltyInfo(
            recipient=str(royalty_raw.get("recipient") or base.fallback_royalty.recipient).strip(),
            basis_points=_to_int(
                royalty_raw.get("basis_points", base.fallback_royalty.basis_points),
                "fallback_royalty.basis_points",
            ),
        )

    return replace(base, **changes)


def resolve_credentials(env: Optional[Mapping[str, str]] = None) -> Credentials:
    source = os.environ if env is None else env
    private_key = str(source.get("PRIVATE_KEY", "")).strip()
    rpc_url = str(source.get("RPC_URL", "") or source.get("INFURA_URL", "")).strip()
    api_key = str(source.get("OPENSEA_API_KEY", "")).strip()

    missing = []
    if not private_key:
        missing.append("PRIVATE_KEY")
    if not rpc_url:
        missing.append("RPC_URL")
    if missing:
        raise ConfigurationError(f"Missing required credentials: {', '.join(missing)}")
    return Credentials(private_key=private_key, rpc_url=rpc_url, api_key=api_key)


def _parse_routes(raw: Dict[str, Any]) -> ApiRoutes:
    base = ApiRoutes()
    routes_raw = _section(_section(raw, "api"), "routes")
    return ApiRoutes(
        events=str(routes_raw.get("events", base.events)),
        listings=str(routes_raw.get("listings", base.listings)),
        asset_contract=str(routes_raw.get("asset_contract", base.asset_contract)),
        post_offer=str(routes_raw.get("post_offer", base.post_offer)),
    )


def _parse_chain(raw: Dict[str, Any]) -> ChainSettings:
    base = ChainSettings()
    chain_raw = _section(raw, "chain")
    return ChainSettings(
        weth_address=str(chain_raw.get("weth_address", base.weth_address)).strip(),
        seaport_address=str(chain_raw.get("seaport_address", base.seaport_address)).strip(),
        seaport_version=str(chain_raw.get("seaport_version", base.seaport_version)).strip(),
        conduit_key=str(chain_raw.get("conduit_key", base.conduit_key)).strip(),
    )


def load_app_config(
    *,
    config_file: str = CONFIG_FILE_DEFAULT,
    overrides: Optional[Mapping[str, Any]] = None,
    api_base: str = "",
    env: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    raw = _read_json(config_file)

    bot_raw = _section(raw, "bot")
    bot_raw.update(_normalize_keys(overrides or {}))
    bot = resolve_bot_config(bot_raw)

    api_section = _section(raw, "api")
    base_from_file = str(api_section.get("base", "")).strip()
    final_base = api_base.strip() or base_from_file or API_BASE_DEFAULT
    timeout = max(
        1.0,
        float(_to_decimal(api_section.get("request_timeout", REQUEST_TIMEOUT_DEFAULT), "api.request_timeout")),
    )

    return AppConfig(
        api_base=final_base,
        routes=_parse_routes(raw),
        credentials=resolve_credentials(env),
        bot=bot,
        chain=_parse_chain(raw),
        request_timeout=timeout,
        config_file=config_file,
    )
