#!/usr/bin/env python
# Point-of-view window: the creature image the GM last showed
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pydantic import BaseModel

from client.game.broadcast import BroadcastManager, CreaturePov

logger = logging.getLogger(__name__)


@dataclass
class PovImage:
    element_id: str
    image_url: Optional[str]
    creature_name: str = ""


class PovView:
    """Holds no map selection, only the latest creature_pov for its world"""

    kind = "pov"

    def __init__(
        self,
        world_id: str,
        broadcast: BroadcastManager,
        on_change: Optional[Callable[["PovView"], None]] = None,
    ):
        self.world_id = world_id
        self.broadcast = broadcast
        self.on_change = on_change
        self.current: Optional[PovImage] = None
        self.closed = False
        self._unsubscribers: List[Callable[[], None]] = []

    async def open(self) -> "PovView":
        self._unsubscribers.append(self.broadcast.subscribe(self.handle_broadcast))
        self._notify()
        return self

    def close(self) -> None:
        self.closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def handle_broadcast(self, message: BaseModel) -> None:
        if self.closed or not isinstance(message, CreaturePov) or message.world_id != self.world_id:
            return
        self.current = PovImage(
            element_id=message.element_id,
            image_url=message.image_url,
            creature_name=message.creature_name,
        )
        logger.debug(f"Showing {message.creature_name or message.element_id}")
        self._notify()

    def dismiss(self) -> None:
        self.current = None
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None and not self.closed:
            self.on_change(self)
