"""JSON export of a chat session."""

import json

from .models import Message, SessionState, ToolCall
from .store import ChatStore


def tool_call_to_dict(call: ToolCall) -> dict:
    """Convert a ToolCall to a dict for JSON serialization."""
    return {
        "id": call.id,
        "name": call.name,
        "arguments": call.arguments,
        "result": call.result,
        "status": call.status.value,
    }


def message_to_dict(message: Message) -> dict:
    """Convert a Message to a dict for JSON serialization."""
    data = {
        "id": message.id,
        "role": message.role.value,
        "content": message.content,
        "timestamp": message.timestamp,
    }
    # Optional fields only when set
    if message.channel is not None:
        data["channel"] = message.channel
    if message.tool_calls is not None:
        data["tool_calls"] = [tool_call_to_dict(c) for c in message.tool_calls]
    return data


def state_to_dict(state: SessionState) -> dict:
    """Convert session flags to a dict."""
    return {
        "loading": state.loading,
        "sending": state.sending,
        "error": state.error,
        "active_run_id": state.active_run_id,
    }


def compute_metadata(store: ChatStore, session_key: str) -> dict:
    """Compute summary counts for the transcript."""
    messages = store.messages
    by_role: dict[str, int] = {}
    for msg in messages:
        by_role[msg.role.value] = by_role.get(msg.role.value, 0) + 1
    return {
        "session_key": session_key,
        "total_messages": len(messages),
        "by_role": by_role,
        "run_messages": sum(1 for m in messages if m.id.startswith("run-")),
    }


def render_json(store: ChatStore, session_key: str, compact: bool = False) -> str:
    """Render the transcript and session state as a JSON string."""
    data = {
        "metadata": compute_metadata(store, session_key),
        "state": state_to_dict(store.state),
        "messages": [message_to_dict(m) for m in store.messages],
    }
    return json.dumps(data, indent=None if compact else 2, ensure_ascii=False)
