# app/services/document_service.py
import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)

WORLD_DOCUMENT = "world.json"
MAP_INDEX_DOCUMENT = "maps.json"

WORLD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
DOCUMENT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+\.json$")

# folders every world gets on creation
WORLD_FOLDERS = ("configs", "maps", "music", "images")

DocumentChange = Tuple[str, Any]


class InvalidDocumentName(ValueError):
    """A world id or document name that could escape the worlds directory"""


def is_map_document(name: str) -> bool:
    return name.endswith(".json") and name not in (WORLD_DOCUMENT, MAP_INDEX_DOCUMENT)


class DocumentService:
    """Service for the JSON documents of every world, stored as files.

    Layout is ``<worlds_dir>/<world_id>/configs/<name>``. Missing or
    unreadable documents read as None.
    """

    def __init__(self, worlds_dir: str):
        self.worlds_dir = worlds_dir

    def _world_dir(self, world_id: str) -> str:
        if not world_id or not WORLD_ID_PATTERN.match(world_id):
            raise InvalidDocumentName(f"Invalid world id: {world_id!r}")
        return os.path.join(self.worlds_dir, world_id)

    def _configs_dir(self, world_id: str) -> str:
        return os.path.join(self._world_dir(world_id), "configs")

    def _document_path(self, world_id: str, name: str) -> str:
        if not name or not DOCUMENT_NAME_PATTERN.match(name):
            raise InvalidDocumentName(f"Invalid document name: {name!r}")
        return os.path.join(self._configs_dir(world_id), name)

    def list_worlds(self) -> List[str]:
        """Get the ids of every world folder"""
        os.makedirs(self.worlds_dir, exist_ok=True)
        return sorted(
            entry.name for entry in os.scandir(self.worlds_dir)
            if entry.is_dir()
        )

    def create_world(self, world_id: str, name: Optional[str] = None) -> dict:
        """
        Create the folders of a world.

        An existing world.json is left alone so creating a world twice never
        wipes it.
        """
        world_dir = self._world_dir(world_id)
        for folder in WORLD_FOLDERS:
            os.makedirs(os.path.join(world_dir, folder), exist_ok=True)

        world_path = self._document_path(world_id, WORLD_DOCUMENT)
        existing = self._read_json(world_path)
        if existing is not None:
            return existing

        world_meta = {"id": world_id, "name": name or world_id, "rootMapId": None}
        self._write_json(world_path, world_meta)
        logger.info(f"Created world {world_id}")
        return world_meta

    def get_document(self, world_id: str, name: str) -> Optional[Any]:
        return self._read_json(self._document_path(world_id, name))

    def put_document(self, world_id: str, name: str, body: Any) -> None:
        path = self._document_path(world_id, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        self._write_json(path, body)

    def delete_document(self, world_id: str, name: str) -> List[DocumentChange]:
        """
        Delete a document and keep the world consistent.

        Deleting a per-map document also drops the map from maps.json and
        re-points world.json's rootMapId when it named that map.

        Returns:
            Every changed document in write order, the deleted one first with
            a None payload.
        """
        path = self._document_path(world_id, name)
        if os.path.exists(path):
            os.remove(path)
        changes: List[DocumentChange] = [(name, None)]

        if not is_map_document(name):
            return changes

        map_id = name[: -len(".json")]
        configs_dir = self._configs_dir(world_id)

        maps = self._read_json(os.path.join(configs_dir, MAP_INDEX_DOCUMENT))
        if not isinstance(maps, list):
            maps = []
        maps = [m for m in maps if not (isinstance(m, dict) and m.get("id") == map_id)]
        self._write_json(os.path.join(configs_dir, MAP_INDEX_DOCUMENT), maps)
        changes.append((MAP_INDEX_DOCUMENT, maps))

        world_path = os.path.join(configs_dir, WORLD_DOCUMENT)
        world = self._read_json(world_path)
        if isinstance(world, dict):
            if world.get("rootMapId") == map_id:
                world["rootMapId"] = pick_fallback_map_id(maps)
            world["updatedAt"] = datetime.now(timezone.utc).isoformat()
            self._write_json(world_path, world)
            changes.append((WORLD_DOCUMENT, world))
        elif world is not None:
            logger.warning(f"Could not update {WORLD_DOCUMENT} of world {world_id} after map delete")

        return changes

    def _read_json(self, path: str) -> Optional[Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

    def _write_json(self, path: str, body: Any) -> None:
        # write next to the target then swap, readers never see half a file
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(body, f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def pick_fallback_map_id(maps: List[Any]) -> Optional[str]:
    """First level-0 map, else the first map, else None"""
    entries = [m for m in maps if isinstance(m, dict) and m.get("id")]
    for m in entries:
        if (m.get("level") or 0) == 0:
            return m["id"]
    return entries[0]["id"] if entries else None
