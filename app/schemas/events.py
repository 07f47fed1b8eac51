from typing import Any, Optional
from pydantic import BaseModel
from datetime import datetime, timezone
import enum


class EventType(str, enum.Enum):
    # server -> client
    CONNECTED = "connected"
    DOCUMENT_CHANGED = "document_changed"
    JOINED = "joined"
    LEFT = "left"
    PONG = "pong"
    ERROR = "error"
    # client -> server
    JOIN = "join"
    LEAVE = "leave"
    MANAGE_UPDATE = "manage_update"
    PING = "ping"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ServerEvent(BaseModel):
    """Base for everything the server sends down a sync socket"""
    type: EventType
    timestamp: Optional[str] = None

    def to_wire(self) -> dict:
        data = self.model_dump(mode="json")
        data["timestamp"] = data.get("timestamp") or _now()
        return data


class ConnectedEvent(ServerEvent):
    type: EventType = EventType.CONNECTED
    client_id: str


class DocumentChangedEvent(ServerEvent):
    """A document of a world was written (payload is the body) or deleted (payload is None)"""
    type: EventType = EventType.DOCUMENT_CHANGED
    world_id: str
    name: str
    payload: Any = None


class RoomEvent(ServerEvent):
    type: EventType = EventType.JOINED
    world_id: str


class ErrorEvent(ServerEvent):
    type: EventType = EventType.ERROR
    error: str


class RoomRequest(BaseModel):
    """Client join / leave"""
    world_id: str


class ManageUpdateRequest(BaseModel):
    """Relay a document to a room without persisting it"""
    world_id: str
    name: str
    payload: Any = None
