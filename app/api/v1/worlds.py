# app/api/v1/worlds.py
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.api.dependencies import get_connection_manager, get_document_service
from app.schemas import DocumentChangedEvent, OkResponse, WorldCreate, WorldCreated, WorldList
from app.services.document_service import DocumentService, InvalidDocumentName
from app.websockets.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _bad_name(e: InvalidDocumentName) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/list-worlds", response_model=WorldList)
async def list_worlds(document_service: DocumentService = Depends(get_document_service)):
    """List the world folders"""
    return {"worlds": document_service.list_worlds()}


@router.post("/world", response_model=WorldCreated)
async def create_world(
    world: WorldCreate,
    document_service: DocumentService = Depends(get_document_service)
):
    """
    Create a world folder with its configs, maps, music and images folders

    An existing world.json is kept.
    """
    if not world.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="id required")
    try:
        document_service.create_world(world.id, world.name)
    except InvalidDocumentName as e:
        raise _bad_name(e)
    return {"ok": True, "id": world.id}


@router.get("/world/{world_id}/config/{name}")
async def get_document(
    world_id: str,
    name: str,
    document_service: DocumentService = Depends(get_document_service)
):
    try:
        document = document_service.get_document(world_id, name)
    except InvalidDocumentName as e:
        raise _bad_name(e)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


@router.put("/world/{world_id}/config/{name}", response_model=OkResponse)
async def put_document(
    world_id: str,
    name: str,
    body: Any = Body(...),
    document_service: DocumentService = Depends(get_document_service),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    """Write a document, then tell everyone in the world's room"""
    try:
        document_service.put_document(world_id, name, body)
    except InvalidDocumentName as e:
        raise _bad_name(e)

    await manager.broadcast_to_world(
        world_id,
        DocumentChangedEvent(world_id=world_id, name=name, payload=body)
    )
    return {"ok": True}


@router.delete("/world/{world_id}/config/{name}", response_model=OkResponse)
async def delete_document(
    world_id: str,
    name: str,
    document_service: DocumentService = Depends(get_document_service),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    """
    Delete a document

    Deleting a map document rewrites maps.json and world.json too; the room
    hears about each changed document, the deleted one with a null payload.
    """
    try:
        changes = document_service.delete_document(world_id, name)
    except InvalidDocumentName as e:
        raise _bad_name(e)

    for changed_name, payload in changes:
        await manager.broadcast_to_world(
            world_id,
            DocumentChangedEvent(world_id=world_id, name=changed_name, payload=payload)
        )
    logger.info(f"Deleted {name} from world {world_id}")
    return {"ok": True}
