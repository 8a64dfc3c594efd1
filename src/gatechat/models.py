"""Domain models for gatechat."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class Role(str, Enum):
    """Author of a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ToolCallStatus(str, Enum):
    """Lifecycle of a tool call, in forward order."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_TOOL_STATUSES = {ToolCallStatus.COMPLETED, ToolCallStatus.ERROR}

_STATUS_RANK = {
    ToolCallStatus.PENDING: 0,
    ToolCallStatus.RUNNING: 1,
    ToolCallStatus.COMPLETED: 2,
    ToolCallStatus.ERROR: 2,
}


class ToolCall(BaseModel):
    """A function invocation requested by the assistant."""

    id: str
    name: str
    arguments: dict[str, Any] = {}
    result: Any = None  # set once completed
    status: ToolCallStatus = ToolCallStatus.PENDING

    def can_advance(self, status: ToolCallStatus) -> bool:
        """Check whether moving to ``status`` is a forward transition."""
        if status == self.status:
            return True
        if self.status in TERMINAL_TOOL_STATUSES:
            return False
        return _STATUS_RANK[status] > _STATUS_RANK[self.status]

    def advance(self, status: ToolCallStatus, result: Any = None) -> "ToolCall":
        """Return a copy moved to ``status``.

        Raises:
            ValueError: if the transition goes backward or leaves a terminal state.
        """
        if not self.can_advance(status):
            raise ValueError(
                f"Tool call {self.id}: cannot move from {self.status.value} to {status.value}"
            )
        update: dict[str, Any] = {"status": status}
        if result is not None:
            update["result"] = result
        return self.model_copy(update=update)


class Message(BaseModel):
    """One turn in the transcript."""

    id: str
    role: Role
    content: str
    timestamp: str  # creation time of the id, not touched on append
    channel: str | None = None
    tool_calls: list[ToolCall] | None = None


class RunPhase(str, Enum):
    """Reconciler view of a run."""

    STREAMING = "streaming"
    DONE = "done"


class ChatEvent(BaseModel):
    """A push event reporting progress of a run."""

    run_id: str = ""
    session_key: str = ""
    seq: int | None = None
    state: str = ""
    message: Any = None
    error_message: str | None = None


class SessionState(BaseModel):
    """Session-level flags rendered alongside the transcript."""

    loading: bool = False
    sending: bool = False
    error: str | None = None
    active_run_id: str | None = None


class RpcResult(BaseModel):
    """Response envelope returned by gateway RPC calls."""

    success: bool = False
    result: Any = None
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "RpcResult":
        """Build from a raw response, treating anything unexpected as a failure."""
        if not isinstance(payload, dict):
            return cls(success=False, error="Malformed gateway response")
        error = payload.get("error")
        return cls(
            success=bool(payload.get("success")),
            result=payload.get("result"),
            error=str(error) if error else None,
        )


def run_message_id(run_id: str) -> str:
    """Derive the transcript id of the assistant message produced by a run."""
    return f"run-{run_id}"
