"""
API Module - Black Box Interface

Purpose: Serve the kubelet callbacks (health, logs, exec) over HTTP and WebSocket
Interface: create_kubelet_router(), frame()
Hidden: Query decoding, tag-byte framing, status code mapping
"""

from .webserver import (
    ERROR_TAG,
    LOGS_NOT_IMPLEMENTED,
    PING,
    RESULT_TAG,
    create_kubelet_router,
    frame,
)

__all__ = [
    "ERROR_TAG",
    "LOGS_NOT_IMPLEMENTED",
    "PING",
    "RESULT_TAG",
    "create_kubelet_router",
    "frame",
]
