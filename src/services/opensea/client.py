from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from .errors import OrderPostError, QueryServiceError
from .models import ApiRoutes, Listing, ListingOrder, RoyaltyInfo
from .strategy import infer_remote_id, parse_listing, parse_listing_order, parse_royalty_info


class OpenSeaClient:
    def __init__(
        self,
        *,
        api_base: str,
        api_key: str,
        routes: ApiRoutes,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.routes = routes
        self.timeout = timeout
        self.session = session or requests.Session()
        adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4, max_retries=0)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers.update({"accept": "application/json"})
        if api_key:
            self.session.headers.update({"X-API-KEY": api_key})

    def _path(self, path: str, **kwargs: str) -> str:
        rendered = path.format(**kwargs)
        if rendered.startswith("http://") or rendered.startswith("https://"):
            return rendered
        if not rendered.startswith("/"):
            rendered = "/" + rendered
        return f"{self.api_base}{rendered}"

    def _request_id_headers(self) -> Dict[str, str]:
        return {"x-request-id": str(uuid.uuid4())}

    def _raise_for_error(self, response: requests.Response) -> None:
        if response.status_code < 400:
            return
        message = response.text
        try:
            payload = response.json()
            if isinstance(payload, dict) and payload.get("errors"):
                message = json.dumps(payload["errors"], ensure_ascii=False)
            elif isinstance(payload, dict) and payload.get("detail"):
                message = str(payload["detail"])
            else:
                message = json.dumps(payload, ensure_ascii=False)
        except ValueError:
            pass
        raise QueryServiceError(f"HTTP {response.status_code}: {message}")

    def _json_or_text(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.session.get(
                url,
                params=params or {},
                headers=self._request_id_headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise QueryServiceError(f"GET {url} failed: {exc}") from exc
        self._raise_for_error(response)
        return self._json_or_text(response)

    def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={**self._request_id_headers(), "content-type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise QueryServiceError(f"POST {url} failed: {exc}") from exc
        self._raise_for_error(response)
        return self._json_or_text(response)

    def list_new_listings(self, collection_slug: str, limit: int = 10) -> List[Listing]:
        payload = self._get(
            self._path(self.routes.events),
            {
                "collection_slug": collection_slug,
                "event_type": "created",
                "limit": max(1, limit),
            },
        )
        events: List[Any] = []
        if isinstance(payload, dict):
            raw_events = payload.get("asset_events")
            if isinstance(raw_events, list):
                events = raw_events
        elif isinstance(payload, list):
            events = payload
        return [parse_listing(x) for x in events if isinstance(x, dict)]

    def get_listing_order(self, contract_address: str, token_id: str) -> Optional[ListingOrder]:
        payload = self._get(
            self._path(self.routes.listings, contract=contract_address, token_id=str(token_id))
        )
        return parse_listing_order(payload)

    def post_offer(self, order: Dict[str, Any]) -> str:
        try:
            payload = self._post(self._path(self.routes.post_offer), order)
        except QueryServiceError as exc:
            raise OrderPostError(f"Offer rejected: {exc}") from exc
        order_hash = infer_remote_id(payload, "order_hash") if isinstance(payload, dict) else ""
        if not order_hash:
            raise OrderPostError(f"Offer response has no order hash: {payload}")
        return order_hash

    def get_royalty_info(self, contract_address: str) -> Optional[RoyaltyInfo]:
        payload = self._get(self._path(self.routes.asset_contract, contract=contract_address))
        return parse_royalty_info(payload)
