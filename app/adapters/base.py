"""
Outbound dispatcher interface.

A dispatcher hands an encoded outbound message to one downstream (the
automation engine or the gateway itself) and reports the external id the
downstream assigned, if any.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from app.core.encoder import OutboundContent


@dataclass
class OutboundDelivery:
    """Everything a dispatcher needs to send one message."""

    content: OutboundContent
    instance: str
    remote_jid: str
    number: str
    message_id: Optional[str] = None
    push_name: Optional[str] = None
    conversation_id: Optional[str] = None
    gateway_url: Optional[str] = None
    gateway_token: Optional[str] = None


@dataclass
class DispatchResult:
    via: str
    external_id: Optional[str] = None
    response: Any = None
    extra: dict[str, Any] = field(default_factory=dict)


class BaseDispatcher(ABC):
    """Contract for outbound dispatchers. Raise a DeliveryError subclass on failure."""

    name: str = "base"

    @abstractmethod
    def dispatch(self, delivery: OutboundDelivery) -> DispatchResult:
        ...


def response_body(resp) -> Any:
    """JSON body if there is one, else the raw text."""
    try:
        return resp.json()
    except ValueError:
        return resp.text
