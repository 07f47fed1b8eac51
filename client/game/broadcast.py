#!/usr/bin/env python
# Same-device broadcast between open views, no server hop
import asyncio
import inspect
import logging
from typing import Annotated, Any, Awaitable, Callable, List, Literal, Optional, Set, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from client.game.models import MalformedNotification

logger = logging.getLogger(__name__)

CHANNEL_NAME = "dnd_map_updates"


class MapUpdate(BaseModel):
    type: Literal["map_update"] = "map_update"
    world_id: str
    map_id: str


class MapDeleted(BaseModel):
    type: Literal["map_deleted"] = "map_deleted"
    world_id: str
    map_id: str


class PlayerDeleted(BaseModel):
    type: Literal["player_deleted"] = "player_deleted"
    world_id: str
    player_id: str


class CreaturePov(BaseModel):
    type: Literal["creature_pov"] = "creature_pov"
    world_id: str
    element_id: str
    image_url: Optional[str] = None
    creature_name: str = ""


class PlayerUpdate(BaseModel):
    type: Literal["player_update"] = "player_update"
    world_id: str
    player_id: str


class ElementUpdate(BaseModel):
    type: Literal["element_update"] = "element_update"
    world_id: str
    map_id: str
    element_id: str


class WorldUpdate(BaseModel):
    type: Literal["world_update"] = "world_update"
    world_id: str


BroadcastMessage = Annotated[
    Union[MapUpdate, MapDeleted, PlayerDeleted, CreaturePov, PlayerUpdate, ElementUpdate, WorldUpdate],
    Field(discriminator="type"),
]

_message_adapter = TypeAdapter(BroadcastMessage)

Listener = Callable[[Any], Union[None, Awaitable[None]]]


def parse_message(data: Any) -> BroadcastMessage:
    try:
        return _message_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedNotification(f"Invalid broadcast message: {e.error_count()} validation error(s)") from e


class BroadcastHub:
    """The device: every BroadcastManager opened on it can reach the others.

    Each delivery runs as its own task, so a publisher never waits on a
    listener and delivery order relative to store writes is not guaranteed.
    """

    def __init__(self, name: str = CHANNEL_NAME):
        self.name = name
        self._managers: List["BroadcastManager"] = []
        self._pending: Set[asyncio.Task] = set()

    def open(self) -> "BroadcastManager":
        manager = BroadcastManager(self)
        self._managers.append(manager)
        return manager

    def _detach(self, manager: "BroadcastManager") -> None:
        if manager in self._managers:
            self._managers.remove(manager)

    def _post(self, sender: "BroadcastManager", message: BaseModel) -> None:
        loop = asyncio.get_running_loop()
        for manager in list(self._managers):
            if manager is sender:
                continue
            task = loop.create_task(manager._deliver(message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every in-flight delivery (and any it triggered) is done"""
        while self._pending:
            await asyncio.gather(*list(self._pending))


class BroadcastManager:
    """One tab's end of the hub"""

    def __init__(self, hub: BroadcastHub):
        self._hub = hub
        self._listeners: List[Listener] = []
        self.closed = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def broadcast(self, message: BaseModel) -> None:
        """Fire and forget; the sending tab does not hear its own message"""
        if self.closed:
            logger.debug(f"Dropping {message.type} on a closed broadcast channel")
            return
        self._hub._post(self, message)

    async def _deliver(self, message: BaseModel) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                name = getattr(listener, "__qualname__", repr(listener))
                logger.exception(f"Broadcast listener {name} failed on {message.type}")

    def close(self) -> None:
        self.closed = True
        self._listeners = []
        self._hub._detach(self)
