# Overview: NOWPayments crypto gateway client (httpx); payment creation, status, IPN signatures.

"""
NOWPayments Gateway Client

Thin wrapper over the gateway REST API. Every call raises GatewayError on
transport failures and non-2xx responses so routes can answer 502 with a
stable message while the cause is logged.

The httpx transport is injectable (NOWPAYMENTS_TRANSPORT config key) so
tests run against httpx.MockTransport.
"""
from __future__ import annotations

import hashlib
import hmac
import json

import httpx


TERMINAL_STATUSES = frozenset({"finished", "failed", "refunded", "expired"})
PAID_STATUSES = frozenset({"finished", "confirmed"})
ACTIVE_STATUSES = ("waiting", "confirming", "sending")


class GatewayError(Exception):
    """Raised when the payment gateway cannot be reached or rejects a call."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def is_terminal(status: str | None) -> bool:
    return status in TERMINAL_STATUSES


def sign_ipn_payload(payload: dict, secret: str) -> str:
    """HMAC-SHA512 over the key-sorted compact JSON body."""
    message = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512).hexdigest()


def verify_ipn_signature(payload: dict, signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_ipn_payload(payload, secret), signature)


class NowPaymentsClient:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config) -> "NowPaymentsClient":
        return cls(
            base_url=config["NOWPAYMENTS_API_URL"],
            api_key=config["NOWPAYMENTS_API_KEY"],
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 10),
            transport=config.get("NOWPAYMENTS_TRANSPORT"),
        )

    def _request(self, method: str, path: str, *, params: dict | None = None, json_body: dict | None = None, failure: str):
        headers = {"x-api-key": self.api_key}
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, path, params=params, json=json_body, headers=headers)
        except httpx.HTTPError as exc:
            raise GatewayError(failure, details={"cause": str(exc)}) from exc

        if response.status_code >= 400:
            raise GatewayError(failure, details={"status": response.status_code, "body": response.text[:500]})
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(failure, details={"cause": "invalid JSON response"}) from exc

    def get_currencies(self) -> dict:
        return self._request(
            "GET", "/currencies", params={"fixed_rate": "true"}, failure="Failed to fetch currencies"
        )

    def get_min_amount(
        self,
        currency_from: str,
        currency_to: str = "trx",
        fiat_equivalent: str = "usd",
        is_fixed_rate: bool = False,
        is_fee_paid_by_user: bool = False,
    ) -> dict:
        if not currency_from:
            raise ValueError("currency_from is required")
        params = {
            "currency_from": currency_from,
            "currency_to": currency_to,
            "fiat_equivalent": fiat_equivalent,
            "is_fixed_rate": "true" if is_fixed_rate else "false",
            "is_fee_paid_by_user": "true" if is_fee_paid_by_user else "false",
        }
        return self._request("GET", "/min-amount", params=params, failure="Failed to fetch minimum amount")

    def create_payment(
        self,
        *,
        price_amount,
        price_currency: str,
        pay_currency: str,
        order_id: str | None = None,
        order_description: str | None = None,
        ipn_callback_url: str | None = None,
    ) -> dict:
        if not price_amount or not price_currency or not pay_currency:
            raise ValueError("Missing required fields: price_amount, price_currency, pay_currency")
        body = {
            "price_amount": float(price_amount),
            "price_currency": price_currency,
            "pay_currency": pay_currency,
            "order_id": order_id,
            "order_description": order_description,
            "is_fixed_rate": True,
            "is_fee_paid_by_user": False,
        }
        if ipn_callback_url:
            body["ipn_callback_url"] = ipn_callback_url
        return self._request("POST", "/payment", json_body=body, failure="Failed to create payment")

    def get_payment(self, payment_id) -> dict:
        if not payment_id:
            raise ValueError("Payment ID is required")
        return self._request("GET", f"/payment/{payment_id}", failure="Failed to check payment status")
