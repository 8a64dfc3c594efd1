"""Defensive parsing of gateway payloads: history records, push events, event logs."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from .models import ChatEvent, Message, Role, ToolCall, ToolCallStatus

logger = structlog.get_logger()


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_content_blocks(content: Any) -> list[dict]:
    """Normalize message content into a list of blocks."""
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if isinstance(content, list):
        return [b if isinstance(b, dict) else {"type": "text", "text": str(b)} for b in content]
    return []


def text_of(value: Any) -> str:
    """Flatten a content value to text.

    Strings pass through, block lists contribute their text blocks joined by
    newlines, a nested object contributes its ``text``. Falsy values give "".
    """
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        texts = [
            str(b.get("text", ""))
            for b in get_content_blocks(value)
            if b.get("type", "text") == "text" and b.get("text")
        ]
        return "\n".join(texts)
    if isinstance(value, dict):
        return text_of(value.get("text"))
    return str(value)


def extract_text(message: Any, allow_plain: bool = False) -> str:
    """Extract the text of an event or record payload.

    Precedence: ``content``, then ``text``, then (only when ``allow_plain``)
    the payload itself if it is a plain string. Anything else yields "".
    """
    if isinstance(message, str):
        return message if allow_plain else ""
    if not isinstance(message, dict):
        return ""
    for key in ("content", "text"):
        text = text_of(message.get(key))
        if text:
            return text
    return ""


def parse_role(value: Any) -> Role:
    """Map a raw role, defaulting to assistant when absent or unrecognized."""
    try:
        return Role(value)
    except ValueError:
        return Role.ASSISTANT


def parse_tool_calls(raw: Any) -> list[ToolCall] | None:
    """Parse a raw ``toolCalls`` list, skipping entries without an id."""
    if not isinstance(raw, list):
        return None
    calls = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        arguments = item.get("arguments")
        try:
            status = ToolCallStatus(item.get("status", "pending"))
        except ValueError:
            status = ToolCallStatus.PENDING
        calls.append(
            ToolCall(
                id=str(item["id"]),
                name=str(item.get("name") or "?"),
                arguments=arguments if isinstance(arguments, dict) else {},
                result=item.get("result"),
                status=status,
            )
        )
    return calls


def message_from_record(record: Any, index: int, timestamp: str | None = None) -> Message:
    """Map one raw history record into a Message.

    Every field is optional: id falls back to ``msg-<index>``, role to
    assistant, content to "", timestamp to ``timestamp`` or now.
    """
    rec = record if isinstance(record, dict) else {}
    channel = rec.get("channel")
    return Message(
        id=str(rec.get("id") or f"msg-{index}"),
        role=parse_role(rec.get("role")),
        content=extract_text(rec),
        timestamp=str(rec.get("timestamp") or timestamp or now_iso()),
        channel=str(channel) if channel else None,
        tool_calls=parse_tool_calls(rec.get("toolCalls")),
    )


def parse_history(result: Any) -> list[Message]:
    """Map a history ``result`` payload into Messages; anything malformed is empty."""
    if not isinstance(result, dict):
        return []
    raw_messages = result.get("messages")
    if not isinstance(raw_messages, list):
        return []
    fetched_at = now_iso()
    return [message_from_record(m, i, fetched_at) for i, m in enumerate(raw_messages)]


def parse_seq(value: Any) -> int | None:
    """Parse an event sequence number, None when missing or not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def parse_event(raw: Any) -> ChatEvent:
    """Build a ChatEvent from a raw push payload using the gateway's camelCase keys."""
    if isinstance(raw, ChatEvent):
        return raw
    if not isinstance(raw, dict):
        return ChatEvent()
    error_message = raw.get("errorMessage")
    return ChatEvent(
        run_id=str(raw.get("runId") or ""),
        session_key=str(raw.get("sessionKey") or ""),
        seq=parse_seq(raw.get("seq")),
        state=str(raw.get("state") or ""),
        message=raw.get("message"),
        error_message=str(error_message) if error_message else None,
    )


def load_records(path: Path) -> list[dict]:
    """Load a JSONL event log, skipping blank, malformed and non-object lines."""
    records = []
    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(
                    "Skipping malformed JSON", path=str(path), line=line_num, error=str(e)
                )
                continue
            if isinstance(rec, dict):
                records.append(rec)
            else:
                logger.warning("Skipping non-object record", path=str(path), line=line_num)
    return records
