"""
Webhook routes for the WhatsApp gateway (Evolution API).

GET answers the hub.* verification handshake. POST receives events; after
authentication the response is always 200, malformed bodies included, so the
gateway does not retry.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.commands.webhooks.evolution_command import EvolutionWebhookCommand
from app.config import get_settings
from app.core.context import RequestContext
from app.db import get_db

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

HUB_SUBSCRIBE = "subscribe"


@router.get("/evolution", response_class=PlainTextResponse)
def verify_evolution_webhook(request: Request) -> str:
    """Echo hub.challenge when hub.mode=subscribe and hub.verify_token matches."""
    params = request.query_params
    expected = get_settings().evolution_verify_token
    if (
        params.get("hub.mode") == HUB_SUBSCRIBE
        and expected
        and params.get("hub.verify_token") == expected
    ):
        return params.get("hub.challenge") or ""
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/evolution")
async def evolution_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Receive gateway events (single or batch)."""
    command = EvolutionWebhookCommand(db)
    command.authorize(dict(request.headers), dict(request.query_params))
    ctx = RequestContext.new(correlation_id=request.headers.get("x-request-id"))
    try:
        body = await request.json()
    except ValueError:
        return command.reject(ctx, "invalid_json").model_dump()
    if not isinstance(body, dict):
        return command.reject(ctx, "body_not_object").model_dump()
    # Sync DB work and the relay's HTTP call stay off the event loop.
    ack = await run_in_threadpool(command.execute, ctx, body)
    return ack.model_dump()
