"""gatechat: client-side chat state for a gateway that streams run events.

The package logs through structlog. Until ``configure_logging``
is called, structlog's defaults apply and every event, debug included, is
printed to stdout. Applications embedding gatechat should call
``configure_logging`` (or their own ``structlog.configure``) at startup.
"""

from .gateway import Gateway, GatewayError, StaticGateway
from .log import configure_logging
from .models import ChatEvent, Message, Role, SessionState, ToolCall, ToolCallStatus
from .orchestrator import ChatOrchestrator
from .reconciler import RunReconciler
from .store import ChatStore

__all__ = [
    "ChatEvent",
    "ChatOrchestrator",
    "ChatStore",
    "Gateway",
    "GatewayError",
    "Message",
    "Role",
    "RunReconciler",
    "SessionState",
    "StaticGateway",
    "ToolCall",
    "ToolCallStatus",
    "configure_logging",
]
