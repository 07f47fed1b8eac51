#!/usr/bin/env python
# Document service for the per-world resource store
from typing import Any, List
from urllib.parse import quote

from client.api.base_service import BaseService


class DocumentService(BaseService):
    """Service for reading and writing world documents on the server"""

    def _document_endpoint(self, world_id: str, name: str) -> str:
        return f"/world/{quote(world_id, safe='')}/config/{quote(name, safe='')}"

    async def list_worlds(self) -> List[str]:
        """Get the ids of every world folder on the server"""
        response = await self.get("/list-worlds")
        worlds = response.get("worlds", []) if isinstance(response, dict) else []
        return [w for w in worlds if isinstance(w, str)]

    async def create_world(self, world_id: str, name: str) -> Any:
        """Create the world folder (existing worlds are left as they are)"""
        return await self.post("/world", {"id": world_id, "name": name})

    async def get_document(self, world_id: str, name: str) -> Any:
        """Read one document, raises DocumentNotFound when it is missing"""
        return await self.get(self._document_endpoint(world_id, name))

    async def put_document(self, world_id: str, name: str, body: Any) -> Any:
        return await self.put(self._document_endpoint(world_id, name), body)

    async def delete_document(self, world_id: str, name: str) -> Any:
        return await self.delete(self._document_endpoint(world_id, name))
