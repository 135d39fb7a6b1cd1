"""Downstream adapters: the WhatsApp gateway and the automation engine."""

from app.adapters.base import BaseDispatcher, DispatchResult, OutboundDelivery
from app.adapters.evolution import EvolutionAdapter
from app.adapters.n8n import N8NClient, N8NDispatcher

__all__ = [
    "BaseDispatcher",
    "DispatchResult",
    "EvolutionAdapter",
    "N8NClient",
    "N8NDispatcher",
    "OutboundDelivery",
]
