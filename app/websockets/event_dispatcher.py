# app/websockets/event_dispatcher.py
import logging
from typing import Any, Awaitable, Callable, Dict

from app.schemas.events import (
    DocumentChangedEvent, ErrorEvent, EventType, ManageUpdateRequest, RoomEvent,
    RoomRequest, ServerEvent
)

logger = logging.getLogger(__name__)

Handler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class EventDispatcher:
    """Dispatches WebSocket events to appropriate handlers based on event type."""

    def __init__(self, manager):
        self.manager = manager
        self.handlers: Dict[str, Handler] = {}

    def register_handler(self, event_type: str, handler: Handler):
        self.handlers[event_type] = handler

    async def dispatch(self, client_id: str, event_data: Dict[str, Any]):
        event_type = event_data.get("type")
        handler = self.handlers.get(event_type)
        if handler:
            try:
                await handler(client_id, event_data)
            except Exception as e:
                logger.error(f"Error in event handler for {event_type}: {str(e)}")
                await self.manager.send_event(
                    client_id,
                    ErrorEvent(error=f"Error processing {event_type}: {str(e)}")
                )
        else:
            logger.warning(f"No handler registered for event type: {event_type}")
            await self.manager.send_event(client_id, ErrorEvent(error=f"Unknown event type: {event_type}"))


class EventRegistry:
    """Registry for all supported event handlers."""

    def __init__(self, manager):
        self.manager = manager
        self.dispatcher = EventDispatcher(manager)
        self._setup_handlers()

    def _setup_handlers(self):
        self.dispatcher.register_handler(EventType.JOIN.value, self.handle_join)
        self.dispatcher.register_handler(EventType.LEAVE.value, self.handle_leave)
        self.dispatcher.register_handler(EventType.MANAGE_UPDATE.value, self.handle_manage_update)
        self.dispatcher.register_handler(EventType.PING.value, self.handle_ping)

    async def handle_join(self, client_id: str, event_data: Dict[str, Any]):
        """Subscribe the client to a world's room."""
        request = RoomRequest.model_validate(event_data)
        self.manager.join(client_id, request.world_id)
        await self.manager.send_event(client_id, RoomEvent(type=EventType.JOINED, world_id=request.world_id))

    async def handle_leave(self, client_id: str, event_data: Dict[str, Any]):
        request = RoomRequest.model_validate(event_data)
        self.manager.leave(client_id, request.world_id)
        await self.manager.send_event(client_id, RoomEvent(type=EventType.LEFT, world_id=request.world_id))

    async def handle_manage_update(self, client_id: str, event_data: Dict[str, Any]):
        """Fan a document out to the room as if it had been written, without persisting it.

        The sender gets it too, rooms have no origin filtering.
        """
        request = ManageUpdateRequest.model_validate(event_data)
        await self.manager.broadcast_to_world(
            request.world_id,
            DocumentChangedEvent(world_id=request.world_id, name=request.name, payload=request.payload)
        )

    async def handle_ping(self, client_id: str, event_data: Dict[str, Any]):
        """Respond to ping events with a pong."""
        await self.manager.send_event(client_id, ServerEvent(type=EventType.PONG))
