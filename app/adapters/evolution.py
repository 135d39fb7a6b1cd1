"""
Evolution API (WhatsApp gateway) adapter.

Verifies inbound webhook credentials and sends messages directly through the
gateway's REST message endpoints.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Mapping, Optional

import requests

from app.adapters.base import (
    BaseDispatcher,
    DispatchResult,
    OutboundDelivery,
    response_body,
)
from app.core.encoder import encode_gateway_request
from app.exceptions import MissingConnectionError, ProviderError
from app.infra.logging_config import get_logger

logger = get_logger("evolution_adapter")

DEFAULT_TIMEOUT_SECONDS = 15.0

# Header names the gateway (or a proxy in front of it) may carry the token in.
SECRET_HEADERS = ("x-secret", "x-evo-secret", "apikey")
SECRET_QUERY_PARAMS = ("token", "secret")


class WebhookAuth(StrEnum):
    OK = "ok"
    MISSING = "missing"
    INVALID = "invalid"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def presented_secret(
    headers: Optional[Mapping[str, str]], query: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """Token from Authorization: Bearer, a secret header, or the query string."""
    headers = headers or {}
    auth = _header(headers, "authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    for name in SECRET_HEADERS:
        value = _header(headers, name)
        if value:
            return value
    for name in SECRET_QUERY_PARAMS:
        value = (query or {}).get(name)
        if value:
            return value
    return None


def verify_webhook(
    secret: Optional[str],
    headers: Optional[Mapping[str, str]] = None,
    query: Optional[Mapping[str, str]] = None,
) -> WebhookAuth:
    """Check the presented token against the configured secret, if any."""
    if not secret:
        return WebhookAuth.OK
    actual = presented_secret(headers, query)
    if actual is None:
        return WebhookAuth.MISSING
    return WebhookAuth.OK if actual == secret else WebhookAuth.INVALID


def extract_gateway_message_id(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    key = body.get("key")
    if isinstance(key, dict) and key.get("id"):
        return str(key["id"])
    data = body.get("data")
    if isinstance(data, dict):
        return extract_gateway_message_id(data)
    return str(body["id"]) if body.get("id") else None


class EvolutionAdapter(BaseDispatcher):
    """Direct dispatch through the gateway REST API."""

    name = "gateway"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self._timeout = timeout

    def dispatch(self, delivery: OutboundDelivery) -> DispatchResult:
        base_url = (delivery.gateway_url or self._base_url or "").rstrip("/")
        api_key = delivery.gateway_token or self._api_key
        if not base_url or not api_key:
            raise MissingConnectionError(
                "Gateway URL or API key is not configured for this instance",
                details={"instance": delivery.instance},
            )
        request = encode_gateway_request(
            delivery.content, delivery.number, delivery.instance
        )
        url = f"{base_url}{request.path}"
        logger.info("Sending %s via gateway %s", delivery.content.message_type, url)
        try:
            resp = requests.post(
                url,
                json=request.body,
                headers={"Content-Type": "application/json", "apikey": api_key},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(f"Gateway request failed: {e}") from e
        body = response_body(resp)
        if not resp.ok:
            raise ProviderError(
                "External provider failed to send message",
                details={"provider_status": resp.status_code, "provider_message": body},
            )
        return DispatchResult(
            via=self.name,
            external_id=extract_gateway_message_id(body),
            response=body,
        )
