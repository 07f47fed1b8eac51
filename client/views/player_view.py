#!/usr/bin/env python
# Player-facing view: shows what the GM reveals, follows the GM's map
import logging
from typing import List, Optional

from pydantic import BaseModel

from client.game.broadcast import CreaturePov, MapUpdate
from client.game.models import InteractiveElement, MapRecord, pick_fallback_map
from client.views.base_view import BaseView

logger = logging.getLogger(__name__)


class PlayerView(BaseView):
    kind = "player"

    async def _initial_selection(self) -> None:
        await self._select_root()

    async def _select_root(self) -> Optional[MapRecord]:
        world = self.cache.get_world(self.world_id)
        root_id = world.root_map_id if world else None
        if root_id and self.cache.get_map(self.world_id, root_id) is not None:
            return await self.select_map(root_id)
        # a rootMapId that names no map counts as unset
        fallback = pick_fallback_map(self.cache.get_maps(self.world_id))
        return await self.select_map(fallback.id if fallback else None)

    async def on_broadcast(self, message: BaseModel) -> None:
        if isinstance(message, CreaturePov):
            return
        if isinstance(message, MapUpdate):
            await self.follow_map(message.map_id)
            return

        # anything else may have changed what the GM reveals
        await self.cache.load(self.world_id, force=True)
        self._sync_from_cache()
        await self._select_root()

    async def follow_map(self, map_id: str) -> Optional[MapRecord]:
        if self.cache.get_map(self.world_id, map_id) is None:
            # the cross-tab message can beat the index write
            await self.cache.fetch_map(self.world_id, map_id)
        return await self.select_map(map_id)

    async def activate_element(self, element: InteractiveElement) -> Optional[MapRecord]:
        """Portals move this view only, nothing is persisted"""
        if not element.is_portal:
            return None
        return await self.select_map(element.target_map_id)

    def visible_elements(self) -> List[InteractiveElement]:
        current = self.state.current_map
        if current is None or not current.is_full:
            return []
        return [e for e in current.elements if e.visible]
