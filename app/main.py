# app/main.py
from fastapi import FastAPI, WebSocket, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from app.api.v1.router import api_router
from app.config import get_settings
from app.websockets.connection_manager import handle_sync_connection

# Get settings
settings = get_settings()

# Setup logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize app
app = FastAPI(
    title="World Atlas API",
    description="File-backed world, map and element documents with live change notifications",
    version=settings.VERSION
)

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Health check and welcome message"""
    return {
        "message": "Welcome to the World Atlas API",
        "status": "online",
        "version": settings.VERSION
    }


# Error handler for global exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if not isinstance(exc, HTTPException) else exc.detail
        }
    )


@app.websocket(f"{settings.API_PREFIX}/ws/sync")
async def sync_websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for live change notifications

    Clients send ``join`` with a world id and then receive a
    ``document_changed`` event for every write or delete in that world.
    """
    await handle_sync_connection(websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=True)
