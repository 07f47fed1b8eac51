#!/usr/bin/env python
# Document naming for the per-world resource store
from enum import Enum
from typing import Optional


WORLD_DOCUMENT = "world.json"
MAP_INDEX_DOCUMENT = "maps.json"
DOCUMENT_SUFFIX = ".json"


class DocumentKind(str, Enum):
    """What a store document holds, decided from its name alone"""
    WORLD = "world"
    MAP_INDEX = "map_index"
    MAP = "map"
    OTHER = "other"


def classify_document(name: Optional[str]) -> DocumentKind:
    """Route a document name to the part of the cache it describes"""
    if not name:
        return DocumentKind.OTHER
    if name == WORLD_DOCUMENT or name.endswith("/" + WORLD_DOCUMENT):
        return DocumentKind.WORLD
    if name == MAP_INDEX_DOCUMENT or name.endswith("/" + MAP_INDEX_DOCUMENT):
        return DocumentKind.MAP_INDEX
    if name.endswith(DOCUMENT_SUFFIX) and len(name) > len(DOCUMENT_SUFFIX):
        return DocumentKind.MAP
    return DocumentKind.OTHER


def map_document_name(map_id: str) -> str:
    return f"{map_id}{DOCUMENT_SUFFIX}"


def map_id_from_document(name: str) -> Optional[str]:
    """Map id a per-map document name refers to, or None for other documents"""
    if classify_document(name) != DocumentKind.MAP:
        return None
    return name[: -len(DOCUMENT_SUFFIX)]
