#!/usr/bin/env python
# Local cache of worlds and their map index, hydrated from the document store
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from client.api.base_service import APIError, DocumentNotFound
from client.game.documents import (
    MAP_INDEX_DOCUMENT,
    WORLD_DOCUMENT,
    DocumentKind,
    classify_document,
    map_document_name,
    map_id_from_document,
)
from client.game.models import (
    InteractiveElement,
    MalformedNotification,
    MapFull,
    MapRecord,
    Player,
    World,
    build_index,
    parse_full_map,
    parse_index,
    parse_world,
    pick_fallback_map,
)

logger = logging.getLogger(__name__)


def new_id(prefix: str) -> str:
    """Timestamp id in the store's style, with a short suffix against same-millisecond clashes"""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


@dataclass
class WorldEntry:
    """Cached state of one world: its metadata and its map index.

    Entries in ``maps`` are MapRef until a full record has been fetched or
    saved locally, then MapFull.
    """
    world: World
    maps: List[MapRecord] = field(default_factory=list)

    def find(self, map_id: str) -> Optional[MapRecord]:
        return next((m for m in self.maps if m.id == map_id), None)

    def merge(self, record: MapRecord) -> None:
        for i, existing in enumerate(self.maps):
            if existing.id == record.id:
                self.maps[i] = record
                return
        self.maps.append(record)

    def remove(self, map_id: str) -> bool:
        before = len(self.maps)
        self.maps = [m for m in self.maps if m.id != map_id]
        return len(self.maps) != before


class WorldCache:
    """In-process cache of every world this client has touched.

    Reads never raise: a store that is down or a document that is missing
    degrades to an empty world or the lightweight index record. Writes update
    the cache first, then the store, and report (but never roll back) store
    failures.
    """

    def __init__(self, store):
        self.store = store
        self._entries: Dict[str, WorldEntry] = {}
        self._hydrating: Dict[str, asyncio.Lock] = {}

    # Read path

    async def list_worlds(self) -> List[str]:
        try:
            return await self.store.list_worlds()
        except APIError as e:
            logger.warning(f"Could not list worlds, starting with none: {e.detail}")
            return []

    async def load_all(self) -> List[World]:
        """Hydrate every world on the server, for world pickers"""
        worlds = []
        for world_id in await self.list_worlds():
            entry = await self.load(world_id)
            worlds.append(entry.world)
        return worlds

    async def load(self, world_id: str, force: bool = False) -> WorldEntry:
        """Cached entry for a world, hydrating it from world.json and maps.json when absent"""
        entry = self._entries.get(world_id)
        if entry is not None and not force:
            return entry

        async with self._hydrating.setdefault(world_id, asyncio.Lock()):
            entry = self._entries.get(world_id)
            if entry is not None and not force:
                # another caller hydrated it while this one waited
                return entry

            world = await self._read_world(world_id)
            maps = await self._read_index(world_id)
            # refresh in place, callers may hold the entry across awaits
            entry = self._entries.get(world_id)
            if entry is None:
                entry = WorldEntry(world=world, maps=maps)
                self._entries[world_id] = entry
            else:
                entry.world = world
                entry.maps = maps
            return entry

    async def _read_world(self, world_id: str) -> World:
        try:
            return parse_world(await self.store.get_document(world_id, WORLD_DOCUMENT))
        except DocumentNotFound:
            logger.info(f"No {WORLD_DOCUMENT} for world {world_id}, using an empty world")
        except (APIError, MalformedNotification) as e:
            logger.warning(f"Failed to load {WORLD_DOCUMENT} for world {world_id}: {e}")
        return World.empty(world_id)

    async def _read_index(self, world_id: str) -> List[MapRecord]:
        try:
            return parse_index(await self.store.get_document(world_id, MAP_INDEX_DOCUMENT))
        except DocumentNotFound:
            logger.info(f"No {MAP_INDEX_DOCUMENT} for world {world_id}, using an empty index")
        except (APIError, MalformedNotification) as e:
            logger.warning(f"Failed to load {MAP_INDEX_DOCUMENT} for world {world_id}: {e}")
        return []

    def get_entry(self, world_id: str) -> Optional[WorldEntry]:
        return self._entries.get(world_id)

    def get_world(self, world_id: str) -> Optional[World]:
        entry = self._entries.get(world_id)
        return entry.world if entry else None

    def get_maps(self, world_id: str) -> List[MapRecord]:
        entry = self._entries.get(world_id)
        return list(entry.maps) if entry else []

    def get_map(self, world_id: str, map_id: Optional[str]) -> Optional[MapRecord]:
        """Synchronous lookup, may return an index record without elements"""
        if not map_id:
            return None
        entry = self._entries.get(world_id)
        return entry.find(map_id) if entry else None

    async def ensure_full(self, world_id: str, map_id: Optional[str]) -> Optional[MapRecord]:
        """Full record for a map in the index.

        Falls back to the index record when the per-map document cannot be
        fetched, and to None when the map is not in the index at all.
        """
        if not map_id:
            return None
        entry = await self.load(world_id)
        record = entry.find(map_id)
        if record is None:
            return None
        if record.is_full:
            return record

        full = await self._read_map(world_id, map_id)
        if full is None:
            return record
        entry.merge(full)
        return full

    async def fetch_map(self, world_id: str, map_id: str) -> Optional[MapFull]:
        """Fetch a map's own document even when the index does not list it"""
        entry = await self.load(world_id)
        full = await self._read_map(world_id, map_id)
        if full is not None:
            entry.merge(full)
        return full

    async def _read_map(self, world_id: str, map_id: str) -> Optional[MapFull]:
        name = map_document_name(map_id)
        try:
            full = parse_full_map(await self.store.get_document(world_id, name))
        except DocumentNotFound:
            logger.info(f"Map document {name} not found in world {world_id}")
            return None
        except (APIError, MalformedNotification) as e:
            logger.warning(f"Failed to load {name} for world {world_id}: {e}")
            return None
        if full.id != map_id:
            logger.warning(f"Map document {name} carries id {full.id}, ignoring it")
            return None
        return full

    # Write path

    async def _put(self, world_id: str, name: str, body: Any) -> bool:
        try:
            await self.store.put_document(world_id, name, body)
            return True
        except APIError as e:
            logger.error(f"Failed to persist {name} for world {world_id}: {e.detail}")
            return False

    async def create_world(self, world_id: str, name: str, description: Optional[str] = None) -> WorldEntry:
        world = World.empty(world_id)
        world.name = name
        world.description = description or ""
        entry = WorldEntry(world=world, maps=[])
        self._entries[world_id] = entry

        try:
            await self.store.create_world(world_id, name)
        except APIError as e:
            logger.error(f"Failed to create world folder {world_id}: {e.detail}")
        await self._put(world_id, WORLD_DOCUMENT, world.to_document())
        await self._put(world_id, MAP_INDEX_DOCUMENT, [])
        return entry

    async def save_world(self, world: World) -> bool:
        """Merge world metadata into the cache, then persist world.json"""
        entry = self._entries.get(world.id)
        if entry is None:
            entry = WorldEntry(world=world.model_copy(deep=True))
            self._entries[world.id] = entry
        else:
            entry.world = world.model_copy(deep=True)
        return await self._put(world.id, WORLD_DOCUMENT, entry.world.to_document())

    async def create_map(
        self,
        world_id: str,
        name: str,
        image_url: Optional[str] = None,
        parent_map_id: Optional[str] = None,
        music_url: Optional[str] = None,
    ) -> MapFull:
        entry = await self.load(world_id)
        parent = entry.find(parent_map_id) if parent_map_id else None
        level = parent.level + 1 if parent else 0
        new_map = MapFull(
            id=new_id("map"),
            world_id=world_id,
            name=name,
            image_url=image_url,
            parent_map_id=parent.id if parent else None,
            level=level,
            music_url=music_url,
            elements=[],
        )
        await self.save_map(world_id, new_map)
        return new_map

    async def save_map(self, world_id: str, map_full: MapFull) -> bool:
        """Write the map document, then the lightweight index, then touch world.json.

        The three writes are not atomic; a failure is logged and the later
        steps still run. A stale index is repaired by ensure_full on the next
        read.
        """
        entry = self._entries.get(world_id)
        if entry is None:
            entry = WorldEntry(world=World.empty(world_id))
            self._entries[world_id] = entry
        saved = map_full.model_copy(deep=True)
        entry.merge(saved)

        ok = await self._put(world_id, map_document_name(saved.id), saved.to_document())
        ok = await self._put(world_id, MAP_INDEX_DOCUMENT, build_index(entry.maps)) and ok
        entry.world.touch()
        ok = await self._put(world_id, WORLD_DOCUMENT, entry.world.to_document()) and ok
        return ok

    async def delete_map(self, world_id: str, map_id: str) -> bool:
        entry = self._entries.get(world_id)
        if entry is None:
            return False

        entry.remove(map_id)
        if entry.world.root_map_id == map_id:
            fallback = pick_fallback_map(entry.maps)
            entry.world.root_map_id = fallback.id if fallback else None

        ok = True
        name = map_document_name(map_id)
        try:
            await self.store.delete_document(world_id, name)
        except DocumentNotFound:
            logger.info(f"Map document {name} was already gone from world {world_id}")
        except APIError as e:
            logger.error(f"Failed to delete {name} for world {world_id}: {e.detail}")
            ok = False
        ok = await self._put(world_id, MAP_INDEX_DOCUMENT, build_index(entry.maps)) and ok
        entry.world.touch()
        ok = await self._put(world_id, WORLD_DOCUMENT, entry.world.to_document()) and ok
        return ok

    async def _full_for_edit(self, world_id: str, map_id: str) -> Optional[MapFull]:
        record = await self.ensure_full(world_id, map_id)
        if record is None:
            logger.warning(f"Map {map_id} is not in world {world_id}")
            return None
        if not record.is_full:
            logger.warning(f"Map {map_id} has no full record available, refusing to edit its elements")
            return None
        return record

    async def add_element(self, world_id: str, map_id: str, element: InteractiveElement) -> Optional[MapFull]:
        return await self.update_element(world_id, map_id, element)

    async def update_element(self, world_id: str, map_id: str, element: InteractiveElement) -> Optional[MapFull]:
        current = await self._full_for_edit(world_id, map_id)
        if current is None:
            return None
        updated = current.with_element(element)
        await self.save_map(world_id, updated)
        return self.get_map(world_id, map_id)

    async def delete_element(self, world_id: str, map_id: str, element_id: str) -> Optional[MapFull]:
        current = await self._full_for_edit(world_id, map_id)
        if current is None:
            return None
        updated = current.without_element(element_id)
        await self.save_map(world_id, updated)
        return self.get_map(world_id, map_id)

    async def add_player(self, world_id: str, player: Player) -> bool:
        return await self.update_player(world_id, player)

    async def update_player(self, world_id: str, player: Player) -> bool:
        entry = await self.load(world_id)
        world = entry.world.model_copy(deep=True)
        world.upsert_player(player.model_copy(deep=True))
        return await self.save_world(world)

    async def delete_player(self, world_id: str, player_id: str) -> bool:
        entry = self._entries.get(world_id)
        if entry is None:
            return False
        world = entry.world.model_copy(deep=True)
        world.remove_player(player_id)
        return await self.save_world(world)

    # Remote notifications

    def apply_remote(self, world_id: str, document_name: str, payload: Any) -> bool:
        """Update the cache from a change notification without touching the store.

        Idempotent: world.json and maps.json replace wholesale, a map document
        is merged by id, a map document with a null payload (a delete) removes
        the map. Returns False when nothing was applied.
        """
        entry = self._entries.get(world_id)
        if entry is None:
            # not hydrated yet, the next load reads the store directly
            logger.debug(f"Ignoring {document_name} for unloaded world {world_id}")
            return False

        kind = classify_document(document_name)
        try:
            if kind == DocumentKind.WORLD:
                if payload is None:
                    return False
                entry.world = parse_world(payload)
                return True

            if kind == DocumentKind.MAP_INDEX:
                if payload is None:
                    return False
                entry.maps = [self._keep_elements(entry, ref) for ref in parse_index(payload)]
                return True

            if kind == DocumentKind.MAP:
                map_id = map_id_from_document(document_name)
                if payload is None:
                    return entry.remove(map_id)
                full = parse_full_map(payload)
                if full.id != map_id:
                    logger.warning(f"Skipping {document_name} for world {world_id}: it carries map {full.id}")
                    return False
                entry.merge(full)
                return True
        except MalformedNotification as e:
            logger.warning(f"Skipping malformed {document_name} for world {world_id}: {e}")
            return False

        logger.debug(f"Ignoring notification for unknown document {document_name}")
        return False

    @staticmethod
    def _keep_elements(entry: WorldEntry, ref: MapRecord) -> MapRecord:
        """Index entries carry no elements; keep a full record already held for the same map"""
        held = entry.find(ref.id)
        if held is None or not held.is_full or ref.is_full:
            return ref
        return held.model_copy(update={
            "name": ref.name,
            "image_url": ref.image_url,
            "parent_map_id": ref.parent_map_id,
            "level": ref.level,
        })
