#!/usr/bin/env python
# Shared plumbing for every view that tracks a selected map
import asyncio
import logging
from typing import Any, Callable, List, Optional

from pydantic import BaseModel

from client.game.broadcast import BroadcastManager
from client.game.cache import WorldCache
from client.game.models import MapRecord, pick_fallback_map
from client.game.refresher import RefreshAction, SelectiveRefresher
from client.game.state import ViewState
from client.game.suppression import EchoSuppressor
from client.utils.config import Config

logger = logging.getLogger(__name__)


class BaseView:
    """A window onto one world with a current map.

    Network notifications are handled one at a time per view. Each handler
    snapshots the selection before its first await and drops its result if
    the selection moved or the view closed while it was waiting.
    """

    kind = "base"

    def __init__(
        self,
        world_id: str,
        cache: WorldCache,
        broadcast: Optional[BroadcastManager] = None,
        network=None,
        config: Optional[Config] = None,
        suppressor: Optional[EchoSuppressor] = None,
        on_change: Optional[Callable[["BaseView"], None]] = None,
    ):
        self.world_id = world_id
        self.cache = cache
        self.broadcast = broadcast
        self.network = network
        self.config = config or Config()
        self.suppressor = suppressor or EchoSuppressor()
        self.refresher = SelectiveRefresher(cache)
        self.state = ViewState(world_id=world_id)
        self.on_change = on_change
        self.closed = False
        self._lock = asyncio.Lock()
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def world(self):
        return self.state.world

    @property
    def maps(self) -> List[MapRecord]:
        return self.state.maps

    @property
    def current_map(self) -> Optional[MapRecord]:
        return self.state.current_map

    async def open(self) -> "BaseView":
        await self.cache.load(self.world_id)
        self._sync_from_cache()
        await self._initial_selection()

        if self.network is not None:
            self._unsubscribers.append(self.network.subscribe(self.handle_document_changed))
            await self.network.join(self.world_id)
        if self.broadcast is not None:
            self._unsubscribers.append(self.broadcast.subscribe(self.handle_broadcast))

        logger.info(f"Opened {self.kind} view on world {self.world_id}")
        self._notify()
        return self

    def close(self) -> None:
        """Stop listening; anything still in flight is discarded when it lands"""
        self.closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _initial_selection(self) -> None:
        fallback = pick_fallback_map(self.state.maps)
        await self.select_map(fallback.id if fallback else None)

    async def select_map(self, map_id: Optional[str]) -> Optional[MapRecord]:
        """Point the view at a map, hydrating it fully when the store allows"""
        if not map_id:
            self.state.select(None)
            self._notify()
            return None

        record = await self.cache.ensure_full(self.world_id, map_id)
        if record is None:
            logger.warning(f"Map {map_id} is not in world {self.world_id}")
            return None
        if self.closed:
            return None

        self.state.select(record)
        self._sync_from_cache()
        self._notify()
        return record

    def arm_suppression(self, window_ms: int, document_name: Optional[str] = None) -> None:
        self.suppressor.arm_suppression(window_ms, document_name)

    def publish(self, message: BaseModel) -> None:
        if self.broadcast is not None:
            self.broadcast.broadcast(message)

    async def handle_document_changed(self, world_id: str, name: str, payload: Any) -> None:
        """Network channel handler"""
        if world_id != self.world_id or self.closed:
            return
        if self.suppressor.consume(name):
            return

        async with self._lock:
            current_map_id, generation = self.state.snapshot()
            outcome = await self.refresher.reconcile(world_id, name, payload, current_map_id)
            if self.closed:
                return

            self._sync_from_cache()
            if outcome.changes_selection:
                if not self.state.is_current(generation):
                    logger.debug(f"Selection moved while handling {name}, dropping the outcome")
                elif outcome.action == RefreshAction.REFRESHED and outcome.selection is not None:
                    self.state.replace_current(outcome.selection)
                else:
                    self.state.select(outcome.selection)
            self._notify()

    async def handle_broadcast(self, message: BaseModel) -> None:
        """Cross-tab channel handler"""
        if self.closed or getattr(message, "world_id", None) != self.world_id:
            return
        await self.on_broadcast(message)

    async def on_broadcast(self, message: BaseModel) -> None:
        pass

    def _sync_from_cache(self) -> None:
        self.state.world = self.cache.get_world(self.world_id)
        self.state.maps = self.cache.get_maps(self.world_id)

    def _notify(self) -> None:
        if self.on_change is not None and not self.closed:
            self.on_change(self)
