"""Request orchestration: history load, send/ack cycle and history clear."""

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from .config import Settings, get_settings
from .gateway import Gateway
from .models import ChatEvent, Message, Role, RpcResult
from .parser import now_iso, parse_history
from .reconciler import RunReconciler
from .store import ChatStore

logger = structlog.get_logger()

SEND_FAILED_MESSAGE = "Failed to send message"
RUN_TIMEOUT_MESSAGE = "Run timed out"


class ChatOrchestrator:
    """Issues gateway requests for one chat session and tracks the active run.

    Completion of a send is driven by the run's terminal push event, handled
    by the reconciler; the send acknowledgment only records the run id.
    """

    def __init__(
        self,
        gateway: Gateway,
        settings: Settings | None = None,
        store: ChatStore | None = None,
    ):
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.store = store or ChatStore()
        self.reconciler = RunReconciler(self.store, self.settings)
        self._active_since: datetime | None = None

    @property
    def session_key(self) -> str:
        return self.settings.session_key

    async def load_history(self, limit: int | None = None) -> None:
        """Replace the transcript with the gateway's history snapshot.

        A failed or unsuccessful fetch yields an empty transcript, not an error.
        A session closed while the fetch is in flight discards the result.
        """
        if limit is None:
            limit = self.settings.history_limit
        self.store.set_state(loading=True, error=None)
        messages: list[Message] = []
        try:
            response = RpcResult.from_payload(await self.gateway.history(self.session_key, limit))
            if response.success and response.result:
                messages = parse_history(response.result)
            else:
                logger.info("No chat history available", error=response.error)
        except Exception as e:
            logger.warning("Failed to fetch chat history", error=str(e))
        if self.store.closed:
            logger.debug("Session closed during history load", session_key=self.session_key)
            return
        self.store.replace_all(messages)
        self.store.set_state(loading=False)

    async def send(self, content: str, channel: str | None = None) -> Message:
        """Send a user message; returns the optimistic message shown immediately."""
        user_message = Message(
            id=uuid.uuid4().hex,
            role=Role.USER,
            content=content,
            timestamp=now_iso(),
            channel=channel,
        )
        self.store.append(user_message)
        self.store.set_state(sending=True, error=None)
        self._active_since = datetime.now(timezone.utc)

        idempotency_key = str(uuid.uuid4())
        try:
            payload = await self.gateway.send(self.session_key, content, idempotency_key)
        except Exception as e:
            logger.warning("Failed to send chat message", error=str(e))
            self._active_since = None
            if not self.store.closed:
                self.store.set_state(error=str(e), sending=False)
            return user_message

        if self.store.closed:
            logger.debug("Session closed during send", idempotency_key=idempotency_key)
            self._active_since = None
            return user_message

        ack = RpcResult.from_payload(payload)
        if not ack.success:
            logger.info("Chat send rejected", error=ack.error)
            self.store.set_state(error=ack.error or SEND_FAILED_MESSAGE, sending=False)
            self._active_since = None
            return user_message

        run_id = ack.result.get("runId") if isinstance(ack.result, dict) else None
        if run_id:
            run_id = str(run_id)
            if self.reconciler.is_finished(run_id):
                # terminal event already delivered while the ack was in flight
                logger.debug("Ack arrived after run finished", run_id=run_id)
            else:
                self.store.set_state(active_run_id=run_id)
        logger.debug("Chat send acknowledged", run_id=run_id, idempotency_key=idempotency_key)
        return user_message

    async def clear_history(self) -> None:
        """Clear the remote history; the transcript is emptied only on success."""
        try:
            response = RpcResult.from_payload(await self.gateway.clear(self.session_key))
        except Exception as e:
            logger.error("Failed to clear history", error=str(e))
            return
        if not response.success:
            logger.error("Failed to clear history", error=response.error)
            return
        if self.store.closed:
            logger.debug("Session closed during history clear", session_key=self.session_key)
            return
        self.store.replace_all([])

    def handle_event(self, event: ChatEvent | dict[str, Any]) -> None:
        """Forward a push event to the reconciler. Events for a closed session are dropped."""
        if self.store.closed:
            logger.debug("Dropping chat event for closed session", session_key=self.session_key)
            return
        self.reconciler.on_event(event)
        if not self.store.state.sending:
            self._active_since = None

    def expire_stale_run(self, now: datetime | None = None) -> bool:
        """Give up on the active run once ``run_timeout_seconds`` has elapsed.

        Returns True when a run was expired.
        """
        timeout = self.settings.run_timeout_seconds
        if timeout is None or self.store.closed:
            return False
        state = self.store.state
        if not state.sending or self._active_since is None:
            return False
        now = now or datetime.now(timezone.utc)
        if (now - self._active_since).total_seconds() < timeout:
            return False

        run_id = state.active_run_id
        logger.warning("Chat run timed out", run_id=run_id, timeout=timeout)
        if run_id:
            self.reconciler.expire(run_id)
        self.store.set_state(error=RUN_TIMEOUT_MESSAGE, sending=False, active_run_id=None)
        self._active_since = None
        return True

    def close(self) -> None:
        """Tear down the session's store."""
        self.store.close()
