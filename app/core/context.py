"""Per-request context passed explicitly through services and commands."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, replace
from typing import Optional
from uuid import UUID


def new_request_id(prefix: str = "evo") -> str:
    """Correlation id of the form <prefix>_<epoch ms>_<9 random chars>."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class RequestContext:
    workspace_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    correlation_id: str = ""

    @classmethod
    def new(
        cls,
        workspace_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[str] = None,
        prefix: str = "evo",
    ) -> "RequestContext":
        return cls(
            workspace_id=workspace_id,
            user_id=user_id,
            correlation_id=correlation_id or new_request_id(prefix),
        )

    def with_workspace(self, workspace_id: Optional[UUID]) -> "RequestContext":
        return replace(self, workspace_id=workspace_id)
