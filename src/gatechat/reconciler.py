"""Run reconciliation: apply push events for a run to the transcript exactly once."""

from collections import OrderedDict
from typing import Any

import structlog
from pydantic import BaseModel

from .config import Settings, get_settings
from .models import ChatEvent, Message, Role, RunPhase, ToolCall, run_message_id
from .parser import extract_text, now_iso, parse_event, parse_tool_calls
from .store import ChatStore

logger = structlog.get_logger()

DEFAULT_ERROR_MESSAGE = "An error occurred"
TERMINAL_STATES = {"final", "error", "aborted"}


class RunRecord(BaseModel):
    """Reconciler bookkeeping for one run."""

    run_id: str
    phase: RunPhase = RunPhase.STREAMING
    last_seq: int | None = None


def merge_tool_calls(existing: list[ToolCall] | None, incoming: list[ToolCall]) -> list[ToolCall]:
    """Merge tool calls by id, keeping first-seen order.

    Status updates are applied only when they move forward; a backward update
    keeps the existing call.
    """
    merged = list(existing or [])
    index = {call.id: i for i, call in enumerate(merged)}
    for call in incoming:
        if call.id not in index:
            index[call.id] = len(merged)
            merged.append(call)
            continue
        current = merged[index[call.id]]
        if not current.can_advance(call.status):
            logger.debug(
                "Ignoring backward tool call update",
                tool_call_id=call.id,
                current=current.status.value,
                incoming=call.status.value,
            )
            continue
        merged[index[call.id]] = current.model_copy(
            update={
                "status": call.status,
                "name": call.name if call.name != "?" else current.name,
                "arguments": call.arguments or current.arguments,
                "result": call.result if call.result is not None else current.result,
            }
        )
    return merged


class RunReconciler:
    """Drives a ChatStore from the push events of gateway runs.

    Each run is tracked in an explicit table keyed by run id. A record is
    created on the first event and, on the terminal event (``final``,
    ``error`` or ``aborted``), moves to a bounded archive in the ``DONE``
    phase. Deltas append to the run message, ``final`` replaces its content.
    Events are applied in delivery order without buffering.
    """

    def __init__(self, store: ChatStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()
        self._runs: dict[str, RunRecord] = {}
        self._finished: OrderedDict[str, RunRecord] = OrderedDict()

    def active_runs(self) -> dict[str, RunRecord]:
        """Snapshot of the runs that have not reached a terminal event."""
        return {run_id: rec.model_copy() for run_id, rec in self._runs.items()}

    def finished_run(self, run_id: str) -> RunRecord | None:
        """The archived ``DONE`` record of ``run_id``, if still remembered."""
        record = self._finished.get(run_id)
        return record.model_copy() if record is not None else None

    def is_finished(self, run_id: str) -> bool:
        """Whether a terminal event was seen recently for ``run_id``."""
        return run_id in self._finished

    def expire(self, run_id: str) -> None:
        """Forget a run without touching the transcript."""
        self._archive(run_id)

    def on_event(self, event: ChatEvent | dict[str, Any]) -> None:
        """Apply one push event."""
        event = parse_event(event)
        state = event.state

        if state not in ("delta", *TERMINAL_STATES):
            logger.debug("Ignoring chat event with unknown state", run_id=event.run_id, state=state)
            return

        if state == "delta" and self.is_finished(event.run_id):
            logger.debug("Dropping delta for finished run", run_id=event.run_id, seq=event.seq)
            return

        stale = self._track(event)

        if state == "delta":
            if not stale:
                self._apply_delta(event)
        elif state == "final":
            # a stale final still ends the run, it just does not rewrite content
            if not stale:
                self._apply_final(event)
            self._finish(event.run_id, sending=False, active_run_id=None)
        elif state == "error":
            error = event.error_message or DEFAULT_ERROR_MESSAGE
            logger.info("Run failed", run_id=event.run_id, error=error)
            self._finish(event.run_id, error=error, sending=False, active_run_id=None)
        elif state == "aborted":
            logger.info("Run aborted", run_id=event.run_id)
            self._finish(event.run_id, sending=False, active_run_id=None)

    def _track(self, event: ChatEvent) -> bool:
        """Look up or create the run record and apply the sequence guard.

        Returns True when the event's ``seq`` is lower than the last applied
        one. Equal ``seq`` values are in order and are applied.
        """
        record = self._runs.get(event.run_id)
        if record is None:
            record = RunRecord(run_id=event.run_id)
            self._runs[event.run_id] = record
        if event.seq is None:
            return False
        if (
            self.settings.dedupe_by_seq
            and record.last_seq is not None
            and event.seq < record.last_seq
        ):
            logger.debug(
                "Stale chat event",
                run_id=event.run_id,
                state=event.state,
                seq=event.seq,
                last_seq=record.last_seq,
            )
            return True
        record.last_seq = event.seq
        return False

    def _apply_delta(self, event: ChatEvent) -> None:
        message_id = run_message_id(event.run_id)
        text = extract_text(event.message)
        tool_calls = self._incoming_tool_calls(event)
        existing = self.store.get(message_id)

        if existing is not None:
            update: dict[str, Any] = {"content": existing.content + text}
            if tool_calls:
                update["tool_calls"] = merge_tool_calls(existing.tool_calls, tool_calls)
            self.store.patch(message_id, **update)
        elif text:
            self.store.append(self._new_message(message_id, text, tool_calls))

    def _apply_final(self, event: ChatEvent) -> None:
        message_id = run_message_id(event.run_id)
        text = extract_text(event.message, allow_plain=True)
        tool_calls = self._incoming_tool_calls(event)
        existing = self.store.get(message_id)

        if existing is not None:
            update: dict[str, Any] = {"content": text}
            if tool_calls:
                update["tool_calls"] = merge_tool_calls(existing.tool_calls, tool_calls)
            self.store.patch(message_id, **update)
        elif text:
            self.store.append(self._new_message(message_id, text, tool_calls))

    def _finish(self, run_id: str, **flags: Any) -> None:
        self._archive(run_id)
        self.store.set_state(**flags)

    def _archive(self, run_id: str) -> None:
        record = self._runs.pop(run_id, None) or RunRecord(run_id=run_id)
        record.phase = RunPhase.DONE
        limit = self.settings.finished_run_memory
        if limit <= 0:
            return
        self._finished[run_id] = record
        self._finished.move_to_end(run_id)
        while len(self._finished) > limit:
            self._finished.popitem(last=False)

    @staticmethod
    def _incoming_tool_calls(event: ChatEvent) -> list[ToolCall]:
        if not isinstance(event.message, dict):
            return []
        return parse_tool_calls(event.message.get("toolCalls")) or []

    @staticmethod
    def _new_message(message_id: str, text: str, tool_calls: list[ToolCall]) -> Message:
        return Message(
            id=message_id,
            role=Role.ASSISTANT,
            content=text,
            timestamp=now_iso(),
            tool_calls=tool_calls or None,
        )
