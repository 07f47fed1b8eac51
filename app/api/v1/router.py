# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1 import worlds

# Create the main router
api_router = APIRouter()

# Include all the sub-routers
api_router.include_router(worlds.router, tags=["worlds"])
