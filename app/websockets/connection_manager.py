# app/websockets/connection_manager.py
import json
import logging
import uuid
from collections import defaultdict
from typing import Dict, Set

from fastapi import WebSocket, WebSocketDisconnect

from app.schemas.events import ConnectedEvent, ErrorEvent, ServerEvent
from app.websockets.event_dispatcher import EventRegistry

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Open sync sockets and the world rooms they joined"""

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.client_rooms: Dict[str, Set[str]] = defaultdict(set)
        self.rooms: Dict[str, Set[str]] = defaultdict(set)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        client_id = str(uuid.uuid4())
        self.connections[client_id] = websocket
        logger.info(f"Client {client_id} connected")
        await self.send_event(client_id, ConnectedEvent(client_id=client_id))
        return client_id

    def disconnect(self, client_id: str):
        self.connections.pop(client_id, None)
        for world_id in self.client_rooms.pop(client_id, set()):
            self._drop_member(world_id, client_id)
        logger.info(f"Client {client_id} disconnected")

    def join(self, client_id: str, world_id: str):
        self.client_rooms[client_id].add(world_id)
        self.rooms[world_id].add(client_id)

    def leave(self, client_id: str, world_id: str):
        rooms = self.client_rooms.get(client_id)
        if rooms is not None:
            rooms.discard(world_id)
        self._drop_member(world_id, client_id)

    def _drop_member(self, world_id: str, client_id: str):
        members = self.rooms.get(world_id)
        if members is None:
            return
        members.discard(client_id)
        if not members:
            del self.rooms[world_id]

    async def send_event(self, client_id: str, event: ServerEvent) -> bool:
        websocket = self.connections.get(client_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(event.to_wire())
            return True
        except Exception as e:
            # a dead socket only costs its own client
            logger.warning(f"Send to {client_id} failed, dropping it: {str(e)}")
            self.disconnect(client_id)
            return False

    async def broadcast_to_world(self, world_id: str, event: ServerEvent) -> int:
        """Send to every member of the room, the client that caused the change included"""
        delivered = 0
        for client_id in list(self.rooms.get(world_id, ())):
            if await self.send_event(client_id, event):
                delivered += 1
        return delivered


connection_manager = ConnectionManager()
event_registry = EventRegistry(connection_manager)


async def handle_sync_connection(websocket: WebSocket):
    client_id = await connection_manager.connect(websocket)

    try:
        while True:
            message = await websocket.receive_text()
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                await connection_manager.send_event(client_id, ErrorEvent(error="Invalid JSON"))
                continue
            if not isinstance(data, dict):
                await connection_manager.send_event(client_id, ErrorEvent(error="Events must be JSON objects"))
                continue
            await event_registry.dispatcher.dispatch(client_id, data)
    except WebSocketDisconnect:
        pass
    finally:
        connection_manager.disconnect(client_id)
