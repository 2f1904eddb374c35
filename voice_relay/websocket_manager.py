"""
Listener for client WebSocket connections.

For every client that connects, the listener creates a relay session together
with its upstream peer, runs the session alongside the client reader, and tears
both down together when either side finishes. Failures inside one session are
contained here so they never affect other sessions or the listener itself.
"""

import asyncio
import logging
import uuid
from typing import Callable, Optional

from fastapi import WebSocket

from voice_relay.bot.relay_session import RelaySession
from voice_relay.bot.tool_bridge import ToolBridge, build_tool_bridge
from voice_relay.bot.upstream_peer import UpstreamSessionPeer
from voice_relay.config.constants import LOGGER_NAME
from voice_relay.config.settings import RelaySettings
from voice_relay.handlers.client_connection import ClientConnection
from voice_relay.models.session_registry import SessionRegistry
from voice_relay.services.credentials import CredentialProvider

logger = logging.getLogger(LOGGER_NAME)

PeerFactory = Callable[[RelaySettings, str], UpstreamSessionPeer]


def new_session_id() -> str:
    return uuid.uuid4().hex[:8]


class WebSocketManager:
    """Accepts client connections and pairs each with its own relay session.

    Args:
        settings: Immutable process configuration shared by all sessions
        credential_provider: Source of ephemeral upstream credentials
        tool_bridge: Tools offered to the upstream model
        peer_factory: Builds the upstream peer for a new session
    """

    def __init__(self, settings: RelaySettings,
                 credential_provider: Optional[CredentialProvider] = None,
                 tool_bridge: Optional[ToolBridge] = None,
                 peer_factory: PeerFactory = UpstreamSessionPeer):
        self.settings = settings
        self.credential_provider = credential_provider or CredentialProvider(settings)
        self.tool_bridge = tool_bridge if tool_bridge is not None else build_tool_bridge(settings)
        self.peer_factory = peer_factory
        self.registry = SessionRegistry()

    def create_session(self, websocket: WebSocket) -> RelaySession:
        session_id = new_session_id()
        client = ClientConnection(websocket, session_id)
        peer = self.peer_factory(self.settings, session_id)
        return RelaySession(
            session_id,
            self.settings,
            client,
            peer,
            self.credential_provider,
            self.tool_bridge,
        )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a client WebSocket connection throughout its lifecycle.

        This method:
        1. Accepts the WebSocket connection
        2. Creates the relay session and its upstream peer
        3. Runs the client reader and the session side by side
        4. When one of them finishes, shuts the other down within ``close_timeout``
        """
        await websocket.accept()
        session = self.create_session(websocket)
        self.registry.add_session(session.session_id, session)
        logger.info(f"[{session.session_id}] New connection")

        session_task = asyncio.create_task(session.run())
        reader_task = asyncio.create_task(session.client.receive_frames(session))

        try:
            done, _ = await asyncio.wait(
                {session_task, reader_task}, return_when=asyncio.FIRST_COMPLETED
            )

            if reader_task in done:
                reader_error = reader_task.exception()
                if reader_error is not None:
                    logger.error(f"[{session.session_id}] Client reader failed: {reader_error}",
                                 exc_info=reader_error)
                session.notify_client_closed(None if reader_error else reader_task.result())
                _, still_running = await asyncio.wait(
                    {session_task}, timeout=self.settings.close_timeout
                )
                if still_running:
                    logger.warning(f"[{session.session_id}] Session did not close in time, cancelling")
            else:
                reader_task.cancel()
                await asyncio.gather(reader_task, return_exceptions=True)

            if session_task.done() and not session_task.cancelled() and session_task.exception():
                error = session_task.exception()
                logger.error(f"[{session.session_id}] Relay session failed: {error}", exc_info=error)
        finally:
            for task in (session_task, reader_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(session_task, reader_task, return_exceptions=True)
            await session.shutdown()
            self.registry.remove_session(session.session_id)
            logger.info(f"[{session.session_id}] Connection closed")
