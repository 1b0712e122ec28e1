"""MCP server module."""

from .app import create_app
from .protocol import ProtocolHandler
from .security import SecurityGate
from .session import Session, SessionState
from .tools import TOOLS, handle_tool_call

__all__ = [
    "create_app",
    "ProtocolHandler",
    "SecurityGate",
    "Session",
    "SessionState",
    "TOOLS",
    "handle_tool_call",
]
