"""Gateway transport contract and an in-memory implementation."""

from typing import Any, Protocol


class GatewayError(Exception):
    """Raised by a transport when a gateway call cannot complete."""


class Gateway(Protocol):
    """RPC surface of the remote gateway.

    Each call returns the raw response envelope, ``{"success": bool,
    "result": ..., "error": ...}``. Push events are delivered separately, to
    ``ChatOrchestrator.handle_event``.
    """

    async def history(self, session_key: str, limit: int) -> dict[str, Any]: ...

    async def send(
        self, session_key: str, message: str, idempotency_key: str
    ) -> dict[str, Any]: ...

    async def clear(self, session_key: str) -> dict[str, Any]: ...


class StaticGateway:
    """Gateway serving canned responses and recording every call.

    Args:
        history_messages: Raw records returned by ``history``; None answers
            with ``{"success": False}``.
        run_ids: Run ids handed out by successive ``send`` acks.
        send_error: When set, ``send`` answers unsuccessfully with this error.
        clear_ok: Whether ``clear`` succeeds.
    """

    def __init__(
        self,
        history_messages: list[dict] | None = None,
        run_ids: list[str] | None = None,
        send_error: str | None = None,
        clear_ok: bool = True,
    ):
        self.history_messages = history_messages
        self.run_ids = list(run_ids or [])
        self.send_error = send_error
        self.clear_ok = clear_ok
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def history(self, session_key: str, limit: int) -> dict[str, Any]:
        self.calls.append(("chat.history", {"sessionKey": session_key, "limit": limit}))
        if self.history_messages is None:
            return {"success": False, "error": "No history"}
        kept = self.history_messages[-limit:] if limit > 0 else []
        return {"success": True, "result": {"messages": kept}}

    async def send(self, session_key: str, message: str, idempotency_key: str) -> dict[str, Any]:
        self.calls.append(
            (
                "chat.send",
                {"sessionKey": session_key, "message": message, "idempotencyKey": idempotency_key},
            )
        )
        if self.send_error is not None:
            return {"success": False, "error": self.send_error}
        result: dict[str, Any] = {"status": "started"}
        if self.run_ids:
            result["runId"] = self.run_ids.pop(0)
        return {"success": True, "result": result}

    async def clear(self, session_key: str) -> dict[str, Any]:
        self.calls.append(("chat.clear", {"sessionKey": session_key}))
        return {"success": self.clear_ok}
