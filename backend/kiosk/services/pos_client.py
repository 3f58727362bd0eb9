# Overview: External POS API client (httpx); order submission and stock checks.

"""
POS API Client

The store's POS receives every kiosk order for the cashier queue and owns
the live stock counts for items linked by pos_item_id.

    POST {POS_API_URL}/api/orders/submit   body {"orderData": {...}}
    GET  {POS_API_URL}/api/stock/check?itemId=<id>

Requests carry X-Kiosk-ID and, when configured, X-API-Key. A response whose
body lacks success=true is an error even on HTTP 200.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed

import httpx


class PosApiError(Exception):
    """Raised when the POS API fails or rejects a request."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PosApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        kiosk_id: str,
        api_key: str = "",
        timeout: float = 10,
        transport: httpx.BaseTransport | None = None,
        max_workers: int = 8,
    ):
        self.base_url = base_url.rstrip("/")
        self.kiosk_id = kiosk_id
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, config) -> "PosApiClient":
        return cls(
            base_url=config["POS_API_URL"],
            kiosk_id=config["KIOSK_ID"],
            api_key=config.get("KIOSK_API_KEY", ""),
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 10),
            transport=config.get("POS_TRANSPORT"),
        )

    def _headers(self) -> dict:
        headers = {"X-Kiosk-ID": self.kiosk_id}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def _request(self, method: str, path: str, *, params: dict | None = None, json_body: dict | None = None, failure: str) -> dict:
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, path, params=params, json=json_body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise PosApiError(failure, details={"cause": str(exc)}) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400 or not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise PosApiError(message or failure, details={"status": response.status_code})
        return body

    def submit_order(self, order: dict) -> dict:
        """Send an order to the POS queue. Returns the POS `data` payload."""
        body = self._request(
            "POST", "/api/orders/submit", json_body={"orderData": order}, failure="Failed to submit order to POS"
        )
        return body.get("data") or {}

    def check_stock(self, item_id: str) -> dict:
        if not item_id:
            raise ValueError("itemId is required")
        body = self._request("GET", "/api/stock/check", params={"itemId": item_id}, failure="Failed to check stock")
        return body.get("data") or {}

    def check_stock_many(self, item_ids) -> dict[str, dict]:
        """
        Check several items concurrently.

        Returns item_id -> {"ok": True, "data": {...}} or {"ok": False, "error": "..."};
        one failing item never fails the others.
        """
        unique_ids = list(dict.fromkeys(i for i in item_ids if i))
        results: dict[str, dict] = {}
        if not unique_ids:
            return results

        workers = max(1, min(self.max_workers, len(unique_ids)))
        with ThreadPoolExecutor(max_workers=workers) as ex:
            futs = {ex.submit(self.check_stock, item_id): item_id for item_id in unique_ids}
            for fut in as_completed(futs):
                item_id = futs[fut]
                try:
                    results[item_id] = {"ok": True, "data": fut.result()}
                except PosApiError as exc:
                    results[item_id] = {"ok": False, "error": str(exc)}
        return results
