"""Gateway webhook acknowledgement body."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    """
    Returned to the gateway for every authenticated delivery, with HTTP 200.

    processed / forwarded describe what happened internally; they never
    change the status code.
    """

    ok: bool = True
    processed: bool = False
    forwarded: bool = False
    request_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    results: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
