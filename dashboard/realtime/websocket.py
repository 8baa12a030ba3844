"""
WebSocket fan-out of dashboard updates and the client command protocol.

Every message is {"event": ..., "data": ..., "timestamp": ...}.

Clients may send {"command": ..., "payload": {...}}:
- setMode: switch the current mode, broadcast profile and dashboard
- refresh: send a fresh dashboard to the requesting client
- ping: answered with pong
"""
import asyncio
import json
import logging
import threading
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from dashboard.errors import InvalidModeError
from dashboard.utils.helpers import iso_now

logger = logging.getLogger("realtime.ws")


def create_event(event: str, data: Any) -> Dict[str, Any]:
    """Envelope for every server-sent message."""
    return {"event": event, "data": data, "timestamp": iso_now()}


class ClientCommand(BaseModel):
    """A command sent by a WebSocket client."""
    command: str
    payload: Optional[Dict[str, Any]] = None


class ConnectionManager:
    """Tracks open WebSocket connections and broadcasts to them."""

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Event loop that owns the connections, used by broadcast_threadsafe()."""
        self._loop = loop

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._clients.add(websocket)
        logger.info(f"WebSocket client connected (total: {len(self._clients)})")

    async def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            self._clients.discard(websocket)
        logger.info(f"WebSocket client disconnected (remaining: {len(self._clients)})")

    async def send(self, websocket: WebSocket, event: str, data: Any) -> None:
        try:
            await websocket.send_json(create_event(event, data))
        except Exception as e:
            logger.error(f"Error sending to client: {e}")

    async def broadcast(self, event: str, data: Any) -> int:
        """
        Send an event to every connected client.

        Returns:
            Number of clients that received it
        """
        with self._lock:
            clients = list(self._clients)

        message = create_event(event, data)
        delivered = 0
        for client in clients:
            try:
                await client.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"Failed to send to WebSocket: {e}")
        logger.debug(f"Broadcast {event} to {delivered}/{len(clients)} clients")
        return delivered

    def broadcast_threadsafe(self, event: str, data: Any) -> None:
        """Schedule a broadcast from a worker thread. Dropped if no loop is attached."""
        if self._loop is None or self._loop.is_closed():
            logger.debug(f"No event loop attached, dropping {event} broadcast")
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(event, data), self._loop)

    async def close_all(self) -> None:
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for client in clients:
            try:
                await client.close(code=1000, reason="Server shutting down")
            except Exception as e:
                logger.error(f"Error closing client connection: {e}")


async def _aggregate_current(context) -> Dict[str, Any]:
    composite = await run_in_threadpool(context.aggregator.aggregate, context.mode_state.current)
    return composite.to_dict()


async def handle_command(context, websocket: WebSocket, raw: Any) -> None:
    """Validate and dispatch one client command."""
    manager = context.ws_manager
    try:
        command = ClientCommand.model_validate(raw)
    except ValidationError:
        logger.warning(f"Invalid WebSocket command: {raw!r}")
        await manager.send(websocket, "error", {"message": "Invalid message format"})
        return

    logger.debug(f"Received command: {command.command}")

    if command.command == "setMode":
        mode = (command.payload or {}).get("mode")
        if not mode:
            await manager.send(websocket, "error", {"message": "Mode is required", "command": "setMode"})
            return
        try:
            context.mode_state.set_mode(mode)
        except InvalidModeError as e:
            await manager.send(websocket, "error", {"message": str(e), "command": "setMode"})
            return
        profile = context.mode_state.profile()
        await manager.broadcast("profile:changed", profile)
        await manager.broadcast("dashboard:update", await _aggregate_current(context))

    elif command.command == "refresh":
        try:
            await manager.send(websocket, "dashboard:update", await _aggregate_current(context))
        except Exception as e:
            logger.error(f"Refresh failed: {e}")
            await manager.send(websocket, "error", {"message": "Failed to refresh dashboard", "command": "refresh"})

    elif command.command == "ping":
        await manager.send(websocket, "pong", {"timestamp": iso_now()})

    else:
        await manager.send(
            websocket, "error", {"message": f"Unknown command: {command.command}", "command": command.command}
        )


async def serve_client(context, websocket: WebSocket) -> None:
    """
    Run one client session until it disconnects.

    On connect the client receives connection, profile:changed and
    dashboard:update, in that order.
    """
    manager = context.ws_manager
    await manager.connect(websocket)
    try:
        await manager.send(websocket, "connection", {
            "message": "Connected to Dashboard API WebSocket",
            "clients": manager.client_count,
        })
        await manager.send(websocket, "profile:changed", context.mode_state.profile())
        await manager.send(websocket, "dashboard:update", await _aggregate_current(context))

        while True:
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except ValueError:
                await manager.send(websocket, "error", {"message": "Invalid message format"})
                continue
            await handle_command(context, websocket, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
