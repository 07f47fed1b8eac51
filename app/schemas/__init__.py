"""
Schema definitions for the application.
This module exports all schemas for easy importing throughout the app.
"""

# Import from events
from app.schemas.events import (
    EventType, ServerEvent, ConnectedEvent, DocumentChangedEvent, RoomEvent,
    ErrorEvent, RoomRequest, ManageUpdateRequest
)

# Import from worlds
from app.schemas.worlds import (
    WorldCreate, WorldCreated, WorldList, OkResponse
)
