#!/usr/bin/env python
# WebSocket connection to the server's world rooms
import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set

import websockets

logger = logging.getLogger(__name__)

DocumentHandler = Callable[[str, str, Any], Optional[Awaitable[None]]]


class SyncConnection:
    """Room-scoped change notifications from the server.

    The server does not filter by origin: this client receives the broadcasts
    its own writes cause, and handlers have to cope with that.
    """

    def __init__(self, ws_url: str, ping_interval: float = 30, ping_timeout: float = 10):
        self.ws_url = ws_url
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.websocket = None
        self.connected = False
        self.shutdown_requested = False
        self.client_id: Optional[str] = None
        self.rooms: Set[str] = set()
        self._handlers: List[DocumentHandler] = []

    def subscribe(self, handler: DocumentHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def connect(self) -> bool:
        """Connect to the WebSocket server and re-join any remembered rooms"""
        try:
            self.websocket = await websockets.connect(
                self.ws_url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout
            )
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Could not connect to {self.ws_url}: {e}")
            return False

        self.connected = True
        logger.info(f"Connected to {self.ws_url}")
        for world_id in sorted(self.rooms):
            await self._send({"type": "join", "world_id": world_id})
        return True

    async def disconnect(self):
        """Disconnect from the WebSocket server"""
        self.connected = False
        self.shutdown_requested = True

        if self.websocket:
            await self.websocket.close()
            self.websocket = None

    async def join(self, world_id: str) -> None:
        """Start receiving a world's notifications"""
        self.rooms.add(world_id)
        if self.connected:
            await self._send({"type": "join", "world_id": world_id})

    async def leave(self, world_id: str) -> None:
        self.rooms.discard(world_id)
        if self.connected:
            await self._send({"type": "leave", "world_id": world_id})

    async def relay(self, world_id: str, name: str, payload: Any) -> None:
        """Ask the server to fan a document out to the room without persisting it"""
        await self._send({"type": "manage_update", "world_id": world_id, "name": name, "payload": payload})

    async def ping(self) -> None:
        await self._send({"type": "ping"})

    async def _send(self, data: dict) -> None:
        if not self.websocket or not self.connected:
            logger.warning(f"Not connected, dropping {data.get('type')} message")
            return
        try:
            await self.websocket.send(json.dumps(data))
        except websockets.exceptions.ConnectionClosed:
            logger.warning(f"Connection closed while sending {data.get('type')}")
            self.connected = False

    async def listen(self):
        """Listen for messages from the server"""
        if not self.websocket or not self.connected:
            return

        while self.connected and not self.shutdown_requested:
            try:
                message = await asyncio.wait_for(self.websocket.recv(), timeout=0.5)
            except asyncio.TimeoutError:
                # This is normal, just keep checking
                continue
            except websockets.exceptions.ConnectionClosed:
                logger.warning("Connection closed by server")
                self.connected = False
                break
            await self._process_message(message)

    async def _process_message(self, message: str):
        """Process a message received from the server"""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning(f"Failed to decode message: {message!r}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object message: {message!r}")
            return

        event_type = data.get("type")

        if event_type == "document_changed":
            world_id = data.get("world_id")
            name = data.get("name")
            if not world_id or not name:
                logger.warning(f"document_changed without world_id or name: {data}")
                return
            await self._dispatch(world_id, name, data.get("payload"))

        elif event_type == "connected":
            self.client_id = data.get("client_id")

        elif event_type == "joined":
            logger.debug(f"Joined room {data.get('world_id')}")

        elif event_type == "error":
            logger.error(f"Server error: {data.get('error', 'Unknown error')}")

        elif event_type == "pong":
            # Ping response - no action needed
            pass

    async def _dispatch(self, world_id: str, name: str, payload: Any) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(world_id, name, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler failed on {name} for world {world_id}")
