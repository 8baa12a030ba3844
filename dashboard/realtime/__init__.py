"""
Real-time delivery: WebSocket clients and periodic refresh jobs.
"""
from .websocket import ConnectionManager, ClientCommand, create_event, handle_command, serve_client
from .scheduler import RefreshScheduler, art_filter_sets

__all__ = [
    "ConnectionManager",
    "ClientCommand",
    "create_event",
    "handle_command",
    "serve_client",
    "RefreshScheduler",
    "art_filter_sets",
]
