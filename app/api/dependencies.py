# app/api/dependencies.py
from fastapi import Depends

from app.config import Settings, get_settings
from app.services.document_service import DocumentService
from app.websockets.connection_manager import ConnectionManager, connection_manager


def get_document_service(settings: Settings = Depends(get_settings)) -> DocumentService:
    """Document store rooted at the configured worlds directory"""
    return DocumentService(settings.WORLDS_DIR)


def get_connection_manager() -> ConnectionManager:
    return connection_manager
