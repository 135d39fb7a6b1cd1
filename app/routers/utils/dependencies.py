from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, Request

from app.core.context import RequestContext


def _parse_uuid(value: Optional[str], header: str) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{header} must be a UUID") from None


def get_request_context(
    request: Request,
    x_workspace_id: Optional[str] = Header(default=None),
    x_system_user_id: Optional[str] = Header(default=None),
    x_request_id: Optional[str] = Header(default=None),
) -> RequestContext:
    """FastAPI dependency building the per-request context from headers."""
    ctx = RequestContext.new(
        workspace_id=_parse_uuid(x_workspace_id, "X-Workspace-Id"),
        user_id=_parse_uuid(x_system_user_id, "X-System-User-Id"),
        correlation_id=x_request_id,
        prefix="send",
    )
    # Read back by the error handlers so failures carry the same id.
    request.state.request_context = ctx
    return ctx
