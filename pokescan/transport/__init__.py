"""
Producer → overlay link: newline-JSON over a local TCP socket.
"""

from .client import FrameBuffer, InboundThrottle, TelemetryClient
from .codec import decode, encode
from .portfile import DEFAULT_PORT, read_port, resolve_port, write_port
from .server import SendScheduler, TelemetryServer

__all__ = [
    "FrameBuffer",
    "InboundThrottle",
    "TelemetryClient",
    "decode",
    "encode",
    "DEFAULT_PORT",
    "read_port",
    "resolve_port",
    "write_port",
    "SendScheduler",
    "TelemetryServer",
]
