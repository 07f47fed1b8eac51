from typing import List, Optional
from pydantic import BaseModel, Field


class WorldCreate(BaseModel):
    """Properties required to create a world folder"""
    id: Optional[str] = None
    name: Optional[str] = Field(None, max_length=100)


class WorldCreated(BaseModel):
    ok: bool = True
    id: str


class WorldList(BaseModel):
    worlds: List[str]


class OkResponse(BaseModel):
    ok: bool = True
