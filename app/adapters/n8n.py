"""
N8N (automation engine) client.

Posts JSON to automation webhooks, both for relaying inbound events and for
handing outbound messages over as gateway-shaped envelopes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import requests

from app.adapters.base import (
    BaseDispatcher,
    DispatchResult,
    OutboundDelivery,
    response_body,
)
from app.core.encoder import encode_envelope
from app.exceptions import RoutingError
from app.infra.logging_config import get_logger

logger = get_logger("n8n_adapter")

DEFAULT_TIMEOUT_SECONDS = 15.0


@dataclass
class PostResult:
    ok: bool
    status_code: Optional[int] = None
    body: Any = None
    error: Optional[str] = None


def extract_external_id(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    candidate = (
        body.get("external_id")
        or body.get("id")
        or (data.get("id") if isinstance(data, dict) else None)
    )
    return str(candidate) if candidate else None


class N8NClient:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def post(
        self, url: str, payload: dict[str, Any], token: Optional[str] = None
    ) -> PostResult:
        """POST payload as JSON. Network errors are returned, not raised."""
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = requests.post(
                url, json=payload, headers=headers, timeout=self._timeout
            )
        except requests.RequestException as e:
            return PostResult(ok=False, error=str(e))
        return PostResult(
            ok=resp.ok,
            status_code=resp.status_code,
            body=response_body(resp),
            error=None if resp.ok else f"HTTP {resp.status_code}",
        )


class N8NDispatcher(BaseDispatcher):
    """Outbound dispatch through the automation engine's send webhook."""

    name = "n8n"

    def __init__(
        self,
        webhook_url: str,
        client: Optional[N8NClient] = None,
        token: Optional[str] = None,
        server_url: Optional[str] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._client = client or N8NClient()
        self._token = token
        self._server_url = server_url

    def dispatch(self, delivery: OutboundDelivery) -> DispatchResult:
        envelope = encode_envelope(
            delivery.content,
            remote_jid=delivery.remote_jid,
            instance=delivery.instance,
            message_id=delivery.message_id,
            push_name=delivery.push_name,
            conversation_id=delivery.conversation_id,
            server_url=self._server_url,
        )
        if "/test/" in self._webhook_url:
            logger.warning("Outbound webhook points at an N8N test URL")
        result = self._client.post(self._webhook_url, envelope, token=self._token)
        if not result.ok:
            raise RoutingError(
                f"N8N webhook error: {result.error}",
                details={"status": result.status_code, "response": result.body},
            )
        return DispatchResult(
            via=self.name,
            external_id=extract_external_id(result.body),
            response=result.body,
        )
