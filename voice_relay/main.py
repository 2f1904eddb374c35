"""
FastAPI server for the realtime voice relay.

This module builds the FastAPI application that exposes the client WebSocket
endpoint plus a handful of stateless HTTP helpers: a health check, a text
extraction passthrough for uploads, and direct access to the web search tool.
The application is created from an immutable ``RelaySettings`` instance, so the
whole process shares one configuration that is never mutated after startup.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from voice_relay import __version__
from voice_relay.config.constants import LOGGER_NAME
from voice_relay.config.settings import RelaySettings
from voice_relay.services.web_search import WebSearchClient
from voice_relay.websocket_manager import WebSocketManager

logger = logging.getLogger(LOGGER_NAME)

APP_NAME = "Realtime Voice Relay"


class UploadRequest(BaseModel):
    """Body of POST /upload; the client has already extracted the text."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    filename: Optional[str] = None
    content_type: Optional[str] = Field(None, alias="contentType")
    text: Optional[str] = None
    content: Optional[str] = None


def create_app(settings: RelaySettings,
               websocket_manager: Optional[WebSocketManager] = None,
               search_client: Optional[WebSearchClient] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Process configuration
        websocket_manager: Listener to use; built from ``settings`` when omitted
        search_client: Client for GET /search; built from ``settings.search_endpoint`` when omitted

    Returns:
        FastAPI: The configured application
    """
    app = FastAPI(
        title=APP_NAME,
        description="Relay between browser/telephony clients and the OpenAI Realtime API",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    manager = websocket_manager or WebSocketManager(settings)
    if search_client is None and settings.search_endpoint:
        search_client = WebSearchClient(settings.search_endpoint, timeout=settings.search_timeout)

    app.state.settings = settings
    app.state.websocket_manager = manager
    app.state.search_client = search_client

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for relay clients.

        Each connection gets its own relay session and upstream Realtime API
        connection; see ``WebSocketManager.handle_websocket``.
        """
        await manager.handle_websocket(websocket)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers and monitoring tools."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "active_sessions": len(manager.registry),
        }

    @app.post("/upload")
    async def upload(request: Request):
        """Text extraction passthrough: echoes the provided text, nothing is stored."""
        try:
            body = await request.json()
        except (ValueError, RecursionError):
            raise HTTPException(status_code=400, detail="Invalid JSON")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Invalid JSON")

        try:
            upload_request = UploadRequest.model_validate(body)
        except ValidationError:
            raise HTTPException(status_code=400, detail="Invalid upload request")
        if not upload_request.filename:
            raise HTTPException(status_code=400, detail="Missing filename")

        extracted_text = upload_request.text or upload_request.content or ""
        logger.info(f"File uploaded: {upload_request.filename} ({len(extracted_text)} chars)")
        return {
            "success": True,
            "filename": upload_request.filename,
            "text": extracted_text,
            "contentType": upload_request.content_type or "application/octet-stream",
            "id": uuid.uuid4().hex[:16],
            "message": "File content extracted as text",
        }

    @app.get("/search")
    async def search(q: Optional[str] = None):
        """Run the web search tool directly."""
        if not q:
            raise HTTPException(status_code=400, detail="Query parameter (q) required")
        if app.state.search_client is None:
            raise HTTPException(status_code=503, detail="Web search is not configured")
        result = await app.state.search_client.search(q)
        return result.as_dict()

    @app.get("/")
    async def root():
        """Basic information about the service."""
        return {
            "name": APP_NAME,
            "version": __version__,
            "endpoints": {
                "/ws": "WebSocket endpoint for relay clients",
                "/health": "Health check endpoint",
                "/upload": "Text extraction passthrough for uploaded files",
                "/search": "Web search (when configured)",
            },
        }

    return app
