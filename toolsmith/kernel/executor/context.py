"""Per-invocation execution context handed to tool handlers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionContext(BaseModel):
    """Immutable facts about one tool invocation.

    Attributes:
        execution_id: Unique id of this invocation (``test-`` prefix for dry runs)
        tool_id: Tool name
        tool_version: Tool version
        timestamp: Invocation start, UTC
        request_id: Transport-level request id (``X-Request-ID``)
        user_id: Calling end user, when the caller supplies one
        session_id: Calling session, when the caller supplies one
        dry_run: True when invoked through ``ToolDispatcher.test``
        metadata: Free-form caller metadata
    """

    model_config = ConfigDict(frozen=True)

    execution_id: str
    tool_id: str
    tool_version: str
    timestamp: datetime = Field(default_factory=_utcnow)
    request_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    dry_run: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        tool_id: str,
        tool_version: str,
        *,
        execution_id: str | None = None,
        dry_run: bool = False,
        request_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ExecutionContext:
        """Build a context, generating the execution id when absent.

        ``user_id`` and ``session_id`` are lifted out of ``metadata`` when the
        caller put them there.
        """
        metadata = dict(metadata or {})
        if execution_id is None:
            prefix = "test-" if dry_run else ""
            execution_id = f"{prefix}{uuid.uuid4()}"
        user_id = metadata.get("user_id")
        session_id = metadata.get("session_id")
        return cls(
            execution_id=execution_id,
            tool_id=tool_id,
            tool_version=tool_version,
            request_id=request_id,
            user_id=str(user_id) if user_id is not None else None,
            session_id=str(session_id) if session_id is not None else None,
            dry_run=dry_run,
            metadata=metadata,
        )
