#!/usr/bin/env python
# Game master view: drive the session, reveal elements, follow portals
import logging
from typing import List, Optional

from client.game.broadcast import CreaturePov, ElementUpdate, MapUpdate, PlayerUpdate
from client.game.documents import WORLD_DOCUMENT, map_document_name
from client.game.models import InteractiveElement, MapRecord, Player
from client.views.base_view import BaseView

logger = logging.getLogger(__name__)


class ManageView(BaseView):
    """The GM's view of a world.

    Its own writes arm echo suppression so the broadcast they trigger does
    not re-hydrate the view it came from.
    """

    kind = "manage"

    async def change_map(self, map_id: str) -> Optional[MapRecord]:
        record = await self.select_map(map_id)
        if record is None:
            return None
        await self._persist_root(record.id, self.config.map_change_suppression_ms)
        self.publish(MapUpdate(world_id=self.world_id, map_id=record.id))
        return record

    def hidden_elements(self) -> List[str]:
        current = self.state.current_map
        if current is None or not current.is_full:
            return []
        return [e.id for e in current.elements if not e.visible]

    async def toggle_element_visibility(self, element_id: str) -> bool:
        current = self.state.current_map
        if current is None or not current.is_full:
            logger.warning("No fully loaded map selected, cannot toggle visibility")
            return False
        element = current.get_element(element_id)
        if element is None:
            logger.warning(f"Element {element_id} is not on map {current.id}")
            return False

        flipped = element.model_copy(update={"visible": not element.visible})
        # show the change before the store round trip
        self.state.replace_current(current.with_element(flipped))
        self._notify()

        self.arm_suppression(self.config.visibility_suppression_ms, map_document_name(current.id))
        saved = await self.cache.update_element(self.world_id, current.id, flipped)
        if saved is not None:
            self.state.replace_current(saved)
        self._sync_from_cache()
        self._notify()

        self.publish(ElementUpdate(world_id=self.world_id, map_id=current.id, element_id=element_id))
        return saved is not None

    async def activate_element(self, element: InteractiveElement) -> Optional[MapRecord]:
        """Click on an element: creatures go to the point-of-view window, portals navigate"""
        if element.is_creature:
            self.publish(CreaturePov(
                world_id=self.world_id,
                element_id=element.id,
                image_url=element.image_url,
                creature_name=element.name,
            ))
            return None
        if element.is_portal:
            return await self.navigate_portal(element)
        return None

    async def navigate_portal(self, element: InteractiveElement) -> Optional[MapRecord]:
        target = await self.cache.ensure_full(self.world_id, element.target_map_id)
        if target is None:
            logger.warning(f"Portal {element.id} targets unknown map {element.target_map_id}")
            return None
        if self.closed:
            return None

        # selection moves before any further await so in-flight handlers see it
        self.state.select(target)
        self._sync_from_cache()
        self._notify()

        await self._persist_root(target.id, self.config.navigation_suppression_ms)
        self.publish(MapUpdate(world_id=self.world_id, map_id=target.id))
        logger.info(f"Now managing {target.name}")
        return target

    async def update_element(self, element: InteractiveElement) -> bool:
        """Save combat stats and other edits to an element on the selected map"""
        map_id = self.state.current_map_id
        if map_id is None:
            return False
        saved = await self.cache.update_element(self.world_id, map_id, element)
        if saved is None:
            return False
        self.state.replace_current(saved)
        self._sync_from_cache()
        self._notify()
        self.publish(ElementUpdate(world_id=self.world_id, map_id=map_id, element_id=element.id))
        return True

    async def update_player(self, player: Player) -> bool:
        ok = await self.cache.update_player(self.world_id, player)
        self._sync_from_cache()
        self._notify()
        return ok

    async def save_player(self, player: Player) -> bool:
        ok = await self.update_player(player)
        self.publish(PlayerUpdate(world_id=self.world_id, player_id=player.id))
        return ok

    async def _persist_root(self, map_id: str, window_ms: int) -> bool:
        world = self.cache.get_world(self.world_id)
        if world is None:
            return False
        updated = world.model_copy(deep=True)
        updated.root_map_id = map_id
        updated.touch()
        self.arm_suppression(window_ms, WORLD_DOCUMENT)
        ok = await self.cache.save_world(updated)
        self._sync_from_cache()
        return ok
