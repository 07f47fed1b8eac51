#!/usr/bin/env python
# Domain models for worlds, maps and the elements placed on them
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class MalformedNotification(ValueError):
    """A document body that does not have the shape its name promises"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ElementType(str, Enum):
    PORTAL = "portal"
    NPC = "npc"
    ENEMY = "enemy"
    ITEM = "item"
    LOOT = "loot"
    PLAYER = "player"


class DocumentModel(BaseModel):
    """Base for everything persisted as a JSON document in the store.

    Wire keys are camelCase; unknown keys are kept so a document written by
    a newer client survives a round trip through this one.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CombatStats(DocumentModel):
    # editors store whatever number was typed, fractions included
    hp_max: Optional[Union[int, float]] = None
    hp_current: Optional[Union[int, float]] = None
    hp_bonus: Optional[Union[int, float]] = None
    ac: Optional[Union[int, float]] = None


class InteractiveElement(CombatStats):
    """A clickable marker on a map, positioned in percent of the image bounds"""
    id: str
    type: ElementType = ElementType.ITEM
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    visible: bool = True
    world_id: Optional[str] = Field(None, alias="worldId")
    map_id: Optional[str] = Field(None, alias="mapId")
    # portal only
    target_map_id: Optional[str] = Field(None, alias="targetMapId")
    # npc / enemy only
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @property
    def is_portal(self) -> bool:
        return self.type == ElementType.PORTAL and bool(self.target_map_id)

    @property
    def is_creature(self) -> bool:
        return self.type in (ElementType.NPC, ElementType.ENEMY)


class Player(CombatStats):
    id: str
    world_id: Optional[str] = Field(None, alias="worldId")
    # grouping hint for the UI, players belong to the world
    map_id: Optional[str] = Field(None, alias="mapId")
    type: ElementType = ElementType.PLAYER
    name: str = ""
    visible: bool = True


class World(DocumentModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
    root_map_id: Optional[str] = Field(None, alias="rootMapId")
    players: List[Player] = Field(default_factory=list)

    @classmethod
    def empty(cls, world_id: str) -> "World":
        """Placeholder used when the store has nothing (or nothing readable)"""
        now = utc_now_iso()
        return cls(id=world_id, name=world_id, created_at=now, updated_at=now)

    def touch(self) -> None:
        self.updated_at = utc_now_iso()

    def get_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def upsert_player(self, player: Player) -> None:
        for i, existing in enumerate(self.players):
            if existing.id == player.id:
                self.players[i] = player
                return
        self.players.append(player)

    def remove_player(self, player_id: str) -> bool:
        before = len(self.players)
        self.players = [p for p in self.players if p.id != player_id]
        return len(self.players) != before


class MapRef(DocumentModel):
    """Index form of a map: enough to list and navigate, no elements"""
    id: str
    world_id: Optional[str] = Field(None, alias="worldId")
    name: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    parent_map_id: Optional[str] = Field(None, alias="parentMapId")
    level: int = 0

    is_full: ClassVar[bool] = False

    @field_validator("level", mode="before")
    @classmethod
    def _missing_level_is_root(cls, value: Any) -> Any:
        return 0 if value is None else value

    def to_ref(self) -> "MapRef":
        return MapRef(
            id=self.id,
            world_id=self.world_id,
            name=self.name,
            image_url=self.image_url,
            parent_map_id=self.parent_map_id,
            level=self.level,
        )


class MapFull(MapRef):
    """Full form of a map as stored in its own <mapId>.json document"""
    elements: List[InteractiveElement] = Field(default_factory=list)
    music_url: Optional[str] = Field(None, alias="musicUrl")

    is_full: ClassVar[bool] = True

    def get_element(self, element_id: str) -> Optional[InteractiveElement]:
        return next((e for e in self.elements if e.id == element_id), None)

    def with_element(self, element: InteractiveElement) -> "MapFull":
        """Copy of this map with the element replaced by id, or appended"""
        updated = self.model_copy(deep=True)
        for i, existing in enumerate(updated.elements):
            if existing.id == element.id:
                updated.elements[i] = element.model_copy(deep=True)
                return updated
        updated.elements.append(element.model_copy(deep=True))
        return updated

    def without_element(self, element_id: str) -> "MapFull":
        updated = self.model_copy(deep=True)
        updated.elements = [e for e in updated.elements if e.id != element_id]
        return updated


MapRecord = Union[MapRef, MapFull]


def _coerce_json(data: Any) -> Any:
    if isinstance(data, (str, bytes)):
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedNotification(f"Document is not valid JSON: {e}") from e
    return data


def _validate(model, data: Any, what: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedNotification(f"Invalid {what}: {e.error_count()} validation error(s)") from e


def parse_world(data: Any) -> World:
    data = _coerce_json(data)
    # older world.json files wrap the record as {"world": {...}}
    if isinstance(data, dict) and isinstance(data.get("world"), dict):
        data = data["world"]
    if not isinstance(data, dict):
        raise MalformedNotification("World document must be a JSON object")
    return _validate(World, data, "world document")


def parse_map(data: Any) -> MapRecord:
    """Parse a map record, full only when it carries an elements list"""
    data = _coerce_json(data)
    if not isinstance(data, dict):
        raise MalformedNotification("Map document must be a JSON object")
    if isinstance(data.get("elements"), list):
        return _validate(MapFull, data, "map document")
    data = {k: v for k, v in data.items() if k != "elements"}
    return _validate(MapRef, data, "map index entry")


def parse_full_map(data: Any) -> MapFull:
    """Parse a per-map document; those are authoritative even without elements"""
    data = _coerce_json(data)
    if not isinstance(data, dict):
        raise MalformedNotification("Map document must be a JSON object")
    if not isinstance(data.get("elements"), list):
        data = {**data, "elements": []}
    return _validate(MapFull, data, "map document")


def parse_index(data: Any) -> List[MapRecord]:
    data = _coerce_json(data)
    if not isinstance(data, list):
        raise MalformedNotification("Map index must be a JSON array")
    return [parse_map(item) for item in data]


def build_index(maps: Sequence[MapRecord]) -> List[Dict[str, Any]]:
    """Lightweight maps.json body: index fields only, elements stripped"""
    return [m.to_ref().to_document() for m in maps]


def pick_fallback_map(maps: Sequence[MapRecord]) -> Optional[MapRecord]:
    """First root (level 0) map, else the first map, else None"""
    for m in maps:
        if m.level == 0:
            return m
    return maps[0] if maps else None
