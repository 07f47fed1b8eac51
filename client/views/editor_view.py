#!/usr/bin/env python
# World editor: build the map tree, place elements, manage players
import logging
from typing import Optional

from client.game.broadcast import ElementUpdate, MapDeleted, MapUpdate, PlayerDeleted, PlayerUpdate
from client.game.cache import new_id
from client.game.models import ElementType, InteractiveElement, MapFull, Player, pick_fallback_map
from client.views.base_view import BaseView

logger = logging.getLogger(__name__)


class EditorView(BaseView):
    kind = "editor"

    async def create_map(
        self,
        name: str,
        image_url: Optional[str] = None,
        parent_map_id: Optional[str] = None,
        music_url: Optional[str] = None,
    ) -> MapFull:
        new_map = await self.cache.create_map(
            self.world_id,
            name,
            image_url=image_url,
            parent_map_id=parent_map_id,
            music_url=music_url,
        )
        await self.select_map(new_map.id)
        self.publish(MapUpdate(world_id=self.world_id, map_id=new_map.id))
        return new_map

    async def delete_map(self, map_id: str) -> bool:
        ok = await self.cache.delete_map(self.world_id, map_id)
        self._sync_from_cache()
        if self.state.current_map_id == map_id:
            fallback = pick_fallback_map(self.state.maps)
            await self.select_map(fallback.id if fallback else None)
        else:
            self._notify()
        self.publish(MapDeleted(world_id=self.world_id, map_id=map_id))
        return ok

    async def set_map_music(self, map_id: str, music_url: Optional[str]) -> bool:
        record = await self.cache.ensure_full(self.world_id, map_id)
        if record is None or not record.is_full:
            logger.warning(f"Cannot set music on map {map_id}, no full record")
            return False
        updated = record.model_copy(deep=True)
        updated.music_url = music_url
        ok = await self.cache.save_map(self.world_id, updated)
        self._refresh_current()
        self.publish(MapUpdate(world_id=self.world_id, map_id=map_id))
        return ok

    def new_element(self, x: float, y: float, element_type: ElementType = ElementType.PORTAL) -> InteractiveElement:
        """Unsaved element at a clicked position"""
        return InteractiveElement(
            id=new_id("element"),
            type=element_type,
            name="New Element",
            x=x,
            y=y,
            visible=True,
            world_id=self.world_id,
            map_id=self.state.current_map_id,
        )

    async def save_element(self, element: InteractiveElement) -> bool:
        map_id = self.state.current_map_id
        if map_id is None:
            logger.warning("No map selected, cannot save element")
            return False
        updated = await self.cache.update_element(self.world_id, map_id, element)
        if updated is None:
            return False
        self._refresh_current()
        self.publish(ElementUpdate(world_id=self.world_id, map_id=map_id, element_id=element.id))
        return True

    async def delete_element(self, element_id: str) -> bool:
        map_id = self.state.current_map_id
        if map_id is None:
            return False
        updated = await self.cache.delete_element(self.world_id, map_id, element_id)
        if updated is None:
            return False
        self._refresh_current()
        self.publish(ElementUpdate(world_id=self.world_id, map_id=map_id, element_id=element_id))
        return True

    def new_player(self, name: str = "New Player") -> Player:
        return Player(
            id=new_id("player"),
            world_id=self.world_id,
            map_id=self.state.current_map_id,
            name=name,
            hp_max=10,
            hp_current=10,
            hp_bonus=0,
            ac=10,
        )

    async def save_player(self, player: Player) -> bool:
        ok = await self.cache.update_player(self.world_id, player)
        self._sync_from_cache()
        self._notify()
        self.publish(PlayerUpdate(world_id=self.world_id, player_id=player.id))
        return ok

    async def add_player(self, name: str = "New Player") -> Player:
        player = self.new_player(name)
        await self.save_player(player)
        return player

    async def delete_player(self, player_id: str) -> bool:
        ok = await self.cache.delete_player(self.world_id, player_id)
        self._sync_from_cache()
        self._notify()
        self.publish(PlayerDeleted(world_id=self.world_id, player_id=player_id))
        return ok

    def _refresh_current(self) -> None:
        fresh = self.cache.get_map(self.world_id, self.state.current_map_id)
        if fresh is not None:
            self.state.replace_current(fresh)
        self._sync_from_cache()
        self._notify()
