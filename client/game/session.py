#!/usr/bin/env python
# One "tab": a cache, a cross-tab endpoint and the views opened on them
import logging
from typing import Callable, List, Optional

from client.api.document_service import DocumentService
from client.game.broadcast import BroadcastHub
from client.game.cache import WorldCache
from client.game.suppression import EchoSuppressor
from client.utils.config import Config
from client.views.editor_view import EditorView
from client.views.manage_view import ManageView
from client.views.player_view import PlayerView
from client.views.pov_view import PovView

logger = logging.getLogger(__name__)

VIEW_TYPES = {
    "editor": EditorView,
    "manage": ManageView,
    "player": PlayerView,
    "pov": PovView,
}


class WorldSession:
    """Composition root for one client tab.

    The cache belongs to this session alone; other tabs on the same device
    hear about its writes through the hub.
    """

    def __init__(self, config: Config, hub: BroadcastHub, network=None, store=None):
        self.config = config
        self.store = store or DocumentService(config.api_url)
        self.cache = WorldCache(self.store)
        self.hub = hub
        self.broadcast = hub.open()
        self.network = network
        self.views: List = []

    async def open_view(self, kind: str, world_id: str, on_change: Optional[Callable] = None):
        view_class = VIEW_TYPES.get(kind)
        if view_class is None:
            raise ValueError(f"Unknown view type: {kind}")

        if view_class is PovView:
            view = PovView(world_id, self.broadcast, on_change=on_change)
        else:
            view = view_class(
                world_id,
                self.cache,
                broadcast=self.broadcast,
                network=self.network,
                config=self.config,
                suppressor=EchoSuppressor(),
                on_change=on_change,
            )
        self.views.append(view)
        await view.open()
        return view

    def close(self) -> None:
        for view in self.views:
            view.close()
        self.views = []
        self.broadcast.close()
