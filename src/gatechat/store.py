"""Transcript store: the ordered message list plus session flags."""

from collections.abc import Callable
from typing import Any

import structlog

from .models import Message, SessionState

logger = structlog.get_logger()

Subscriber = Callable[["ChatStore"], None]

PATCHABLE_FIELDS = set(Message.model_fields) - {"id"}


class ChatStore:
    """Owns the transcript and the session flags of one chat session.

    All mutation goes through ``append``, ``patch``, ``replace_all`` and
    ``set_state``. Subscribers are called synchronously after each mutation.
    A store is created once per session and torn down with ``close``.
    """

    def __init__(self, messages: list[Message] | None = None):
        self._messages: list[Message] = list(messages or [])
        self._state = SessionState()
        self._subscribers: list[Subscriber] = []
        self._closed = False

    @property
    def messages(self) -> list[Message]:
        """Copy of the transcript in display order."""
        return list(self._messages)

    @property
    def state(self) -> SessionState:
        """Copy of the session flags."""
        return self._state.model_copy()

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, message_id: str) -> Message | None:
        """Return the message with ``message_id``, or None."""
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def append(self, message: Message) -> None:
        """Add a message at the end. Callers ensure the id is not present."""
        self._check_open()
        self._messages.append(message)
        logger.debug("Message appended", message_id=message.id, role=message.role.value)
        self._notify()

    def patch(self, message_id: str, **fields: Any) -> bool:
        """Merge ``fields`` into the message with ``message_id``.

        Returns False without notifying when no such message exists.

        Raises:
            TypeError: for ``id`` or a field Message does not have.
            pydantic.ValidationError: when the merged message is invalid.
        """
        self._check_open()
        unknown = set(fields) - PATCHABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot patch message fields: {', '.join(sorted(unknown))}")
        for i, msg in enumerate(self._messages):
            if msg.id == message_id:
                self._messages[i] = Message.model_validate({**msg.model_dump(), **fields})
                logger.debug("Message patched", message_id=message_id, fields=sorted(fields))
                self._notify()
                return True
        return False

    def replace_all(self, messages: list[Message]) -> None:
        """Discard the transcript and install ``messages``."""
        self._check_open()
        self._messages = list(messages)
        logger.debug("Transcript replaced", count=len(self._messages))
        self._notify()

    def set_state(self, **flags: Any) -> None:
        """Update session flags (``loading``, ``sending``, ``error``, ``active_run_id``)."""
        self._check_open()
        unknown = set(flags) - set(SessionState.model_fields)
        if unknown:
            raise TypeError(f"Unknown session flags: {', '.join(sorted(unknown))}")
        self._state = self._state.model_copy(update=flags)
        self._notify()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for mutations; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def close(self) -> None:
        """End the store's lifecycle; later mutations raise RuntimeError."""
        self._subscribers.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("ChatStore is closed")

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)
