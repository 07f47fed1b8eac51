#!/usr/bin/env python
# Decides what a view should show after a change notification
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from client.game.cache import WorldCache
from client.game.documents import DocumentKind, classify_document, map_id_from_document
from client.game.models import MapRecord, pick_fallback_map

logger = logging.getLogger(__name__)


class RefreshAction(str, Enum):
    UNCHANGED = "unchanged"
    # same map, fresher record
    REFRESHED = "refreshed"
    # nothing was selected, now something is
    SELECTED = "selected"
    # selected map vanished, moved to the fallback map
    FELL_BACK = "fell_back"
    # selected map vanished and no map is left
    CLEARED = "cleared"


@dataclass
class RefreshOutcome:
    kind: DocumentKind
    applied: bool
    action: RefreshAction = RefreshAction.UNCHANGED
    selection: Optional[MapRecord] = None

    @property
    def changes_selection(self) -> bool:
        return self.action != RefreshAction.UNCHANGED


class SelectiveRefresher:
    """Applies a notification to the cache and works out the new selection.

    A notification about a map other than the selected one never moves the
    selection; a selected map that disappears is replaced by the fallback
    map, never left dangling.
    """

    def __init__(self, cache: WorldCache):
        self.cache = cache

    async def reconcile(
        self,
        world_id: str,
        document_name: str,
        payload: Any,
        current_map_id: Optional[str],
    ) -> RefreshOutcome:
        kind = classify_document(document_name)

        if kind == DocumentKind.MAP:
            applied = self.cache.apply_remote(world_id, document_name, payload)
            outcome = RefreshOutcome(kind=kind, applied=applied)
            if not applied and payload is not None:
                return outcome
            return await self._reconcile_map(world_id, map_id_from_document(document_name), payload, current_map_id, outcome)

        if kind in (DocumentKind.WORLD, DocumentKind.MAP_INDEX):
            applied = self.cache.apply_remote(world_id, document_name, payload)
            outcome = RefreshOutcome(kind=kind, applied=applied)
            if not applied or current_map_id is None:
                return outcome
            return await self._refresh_selection(world_id, current_map_id, outcome)

        logger.info(f"Unrecognised document {document_name}, re-hydrating world {world_id}")
        await self.cache.load(world_id, force=True)
        outcome = RefreshOutcome(kind=kind, applied=True)
        if current_map_id is None:
            return outcome
        return await self._refresh_selection(world_id, current_map_id, outcome)

    async def _reconcile_map(
        self,
        world_id: str,
        map_id: str,
        payload: Any,
        current_map_id: Optional[str],
        outcome: RefreshOutcome,
    ) -> RefreshOutcome:
        if current_map_id is None:
            candidate = self.cache.get_map(world_id, map_id) or pick_fallback_map(self.cache.get_maps(world_id))
            if candidate is None:
                return outcome
            full = await self.cache.ensure_full(world_id, candidate.id)
            outcome.action = RefreshAction.SELECTED
            outcome.selection = full or candidate
            return outcome

        if current_map_id != map_id:
            return outcome

        if payload is None:
            # the selected map's document was deleted
            return await self._refresh_selection(world_id, current_map_id, outcome)

        full = await self.cache.ensure_full(world_id, map_id)
        if full is not None:
            outcome.action = RefreshAction.REFRESHED
            outcome.selection = full
        return outcome

    async def _refresh_selection(self, world_id: str, current_map_id: str, outcome: RefreshOutcome) -> RefreshOutcome:
        if self.cache.get_map(world_id, current_map_id) is not None:
            outcome.action = RefreshAction.REFRESHED
            outcome.selection = await self.cache.ensure_full(world_id, current_map_id)
            return outcome

        # maps.json and the map document are separate writes, so the index
        # can briefly miss a map that still exists
        fetched = await self.cache.fetch_map(world_id, current_map_id)
        if fetched is not None:
            outcome.action = RefreshAction.REFRESHED
            outcome.selection = fetched
            return outcome

        fallback = pick_fallback_map(self.cache.get_maps(world_id))
        if fallback is None:
            logger.info(f"Selected map {current_map_id} is gone and world {world_id} has no maps left")
            outcome.action = RefreshAction.CLEARED
            outcome.selection = None
            return outcome

        logger.info(f"Selected map {current_map_id} is gone, falling back to {fallback.id}")
        outcome.action = RefreshAction.FELL_BACK
        outcome.selection = await self.cache.ensure_full(world_id, fallback.id) or fallback
        return outcome
